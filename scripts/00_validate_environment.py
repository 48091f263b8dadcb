import platform
import sys

from pathlib import Path


PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from countsim.config import LOGS_DIR
from countsim.utils.logging import package_versions, write_json


def main() -> None:
    versions = package_versions()
    info = {
        "python_version": sys.version,
        "platform": platform.platform(),
        "packages": versions,
        "missing_packages": sorted(k for k, v in versions.items() if v is None),
    }
    write_json(LOGS_DIR / "environment_check.json", info)
    print("Wrote outputs/logs/environment_check.json")
    if info["missing_packages"]:
        raise SystemExit(f"Missing required packages: {info['missing_packages']}")


if __name__ == "__main__":
    main()
