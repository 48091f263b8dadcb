import json
import subprocess
import sys
from pathlib import Path


def test_render_report_smoke(tmp_path: Path):
    repo_root = Path(__file__).resolve().parents[1]

    cmd = [
        sys.executable,
        str(repo_root / "scripts" / "01_render_report.py"),
        "--n-obs",
        "400",
        "--mc-reps",
        "3",
        "--outdir",
        str(tmp_path),
    ]
    subprocess.run(cmd, cwd=repo_root, check=True)

    report = tmp_path / "report.html"
    assert report.exists()
    doc = report.read_text(encoding="utf-8")
    assert 'class="toc"' in doc
    for anchor in ["simulation-setup", "simulated-outcomes", "parameter-recovery", "repeated-simulations", "session-info"]:
        assert f'href="#{anchor}"' in doc, f"Missing TOC entry: {anchor}"
    assert doc.count("data:image/png;base64,") == 3
    assert "Absolute error and interval width" in doc

    for name in ["count_histograms.png", "parameter_recovery.png", "pseudo_r2_spread.png"]:
        assert (tmp_path / "figures" / name).exists()

    meta = json.loads((tmp_path / "logs" / "report_run_metadata.json").read_text(encoding="utf-8"))
    assert meta["n_obs"] == 400
    assert set(meta["pseudo_r2"]) == {"poisson", "nb_moderate", "nb_strong"}
    assert meta["monte_carlo"]["n_reps"] == 3


def test_render_report_rejects_bad_n_obs(tmp_path: Path):
    repo_root = Path(__file__).resolve().parents[1]
    cmd = [sys.executable, str(repo_root / "scripts" / "01_render_report.py"), "--n-obs", "0", "--outdir", str(tmp_path)]
    proc = subprocess.run(cmd, cwd=repo_root, capture_output=True, text=True)
    assert proc.returncode != 0
    assert not (tmp_path / "report.html").exists()
