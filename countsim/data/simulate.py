from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional, Union

import numpy as np
import pandas as pd

from countsim.config import INTERCEPT, N_OBS, NB_SIZES, POISSON_PROCESS, SEED, SLOPE
from countsim.data.validate import assert_positive_n_obs, assert_positive_sizes


SeedLike = Union[int, np.random.SeedSequence, None]

LONG_COLUMNS = ["process", "x", "mu", "y"]


@dataclass(frozen=True)
class SimulatedDataset:
    x: np.ndarray
    mu: np.ndarray
    responses: Dict[str, np.ndarray]
    intercept: float
    slope: float
    nb_sizes: Dict[str, float] = field(default_factory=dict)

    @property
    def n_obs(self) -> int:
        return int(self.x.size)

    @property
    def processes(self) -> list:
        return list(self.responses)

    def size_for(self, process: str) -> Optional[float]:
        """True NB size for a process, or None for the Poisson process."""
        return self.nb_sizes.get(process)

    def to_long(self) -> pd.DataFrame:
        """Simulation table: one row per (process, observation)."""
        frames = []
        for process, y in self.responses.items():
            frames.append(
                pd.DataFrame(
                    {
                        "process": process,
                        "x": self.x,
                        "mu": self.mu,
                        "y": np.asarray(y, dtype=np.int64),
                    }
                )
            )
        out = pd.concat(frames, ignore_index=True)
        out["process"] = pd.Categorical(out["process"], categories=self.processes, ordered=True)
        return out[LONG_COLUMNS]


def simulate_covariate(n_obs: int, rng: np.random.Generator) -> np.ndarray:
    assert_positive_n_obs(n_obs)
    return rng.standard_normal(int(n_obs))


def linear_predictor(x: np.ndarray, intercept: float, slope: float) -> np.ndarray:
    return float(intercept) + float(slope) * np.asarray(x, dtype=float)


def simulate_poisson(mu: np.ndarray, rng: np.random.Generator) -> np.ndarray:
    return rng.poisson(np.asarray(mu, dtype=float))


def simulate_negbin(mu: np.ndarray, size: float, rng: np.random.Generator) -> np.ndarray:
    """Negative-binomial counts with mean ``mu`` and variance ``mu + mu**2 / size``.

    numpy parameterises the distribution by (n, p) with mean n(1-p)/p, so the
    mean/size form maps to n=size, p=size/(size+mu).
    """

    if not float(size) > 0.0:
        raise ValueError(f"size must be > 0; got {size!r}")
    mu = np.asarray(mu, dtype=float)
    p = size / (size + mu)
    return rng.negative_binomial(size, p)


def simulate_dataset(
    *,
    n_obs: int = N_OBS,
    intercept: float = INTERCEPT,
    slope: float = SLOPE,
    nb_sizes: Optional[Mapping[str, float]] = None,
    seed: SeedLike = SEED,
) -> SimulatedDataset:
    """Draw the covariate and one response vector per generating process.

    All draws come from a single generator in a fixed order (covariate,
    Poisson, then each NB size in mapping order), so the covariate depends
    only on ``seed`` and ``n_obs``.
    """

    sizes = dict(NB_SIZES if nb_sizes is None else nb_sizes)
    assert_positive_n_obs(n_obs)
    assert_positive_sizes(sizes)
    if POISSON_PROCESS in sizes:
        raise ValueError(f"'{POISSON_PROCESS}' is reserved for the Poisson process")

    rng = np.random.default_rng(seed)
    x = simulate_covariate(n_obs, rng)
    mu = np.exp(linear_predictor(x, intercept, slope))

    responses: Dict[str, np.ndarray] = {POISSON_PROCESS: simulate_poisson(mu, rng)}
    for process, size in sizes.items():
        responses[process] = simulate_negbin(mu, float(size), rng)

    return SimulatedDataset(
        x=x,
        mu=mu,
        responses=responses,
        intercept=float(intercept),
        slope=float(slope),
        nb_sizes={k: float(v) for k, v in sizes.items()},
    )


def describe_responses(dataset: SimulatedDataset) -> pd.DataFrame:
    """Observed vs. implied mean/variance per process."""
    mu = dataset.mu
    rows = []
    for process, y in dataset.responses.items():
        size = dataset.size_for(process)
        implied_var = mu if size is None else mu + mu**2 / size
        y = np.asarray(y, dtype=float)
        rows.append(
            {
                "process": process,
                "size": np.nan if size is None else size,
                "n": int(y.size),
                "mean": float(y.mean()),
                "implied_mean": float(mu.mean()),
                "variance": float(y.var(ddof=1)) if y.size > 1 else np.nan,
                # Marginal variance: E[Var(y|x)] + Var(E[y|x]).
                "implied_variance": float(implied_var.mean() + mu.var()),
                "share_zero": float(np.mean(y == 0)),
                "max": int(y.max()),
            }
        )
    return pd.DataFrame(rows)
