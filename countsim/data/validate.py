from typing import Iterable, Mapping


def assert_required_columns(df, required: Iterable[str]) -> None:
    missing = [c for c in required if c not in df.columns]
    if missing:
        raise ValueError(f"Missing required columns: {missing}")


def assert_positive_n_obs(n_obs: int) -> None:
    if int(n_obs) != n_obs or n_obs < 1:
        raise ValueError(f"n_obs must be a positive integer; got {n_obs!r}")


def assert_positive_sizes(nb_sizes: Mapping[str, float]) -> None:
    bad = {k: v for k, v in nb_sizes.items() if not (float(v) > 0.0)}
    if bad:
        raise ValueError(f"Negative-binomial size parameters must be > 0; got {bad}")
