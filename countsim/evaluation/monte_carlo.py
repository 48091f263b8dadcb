from __future__ import annotations

from typing import Dict, Mapping, Optional, Tuple

import numpy as np
import pandas as pd

from countsim.config import CI_ALPHA, INTERCEPT, INTERCEPT_TERM, N_OBS, PSEUDO_R2_KINDS, SLOPE, SLOPE_TERM
from countsim.data.simulate import simulate_dataset
from countsim.evaluation.pseudo_r2 import compute_pseudo_r2
from countsim.evaluation.recovery import parameter_comparison_table
from countsim.models.glm import fit_models


COEF_DRAW_COLUMNS = ["iter", "model", "term", "estimate", "lower", "upper", "truth", "covered"]
R2_DRAW_COLUMNS = ["iter", "model", *PSEUDO_R2_KINDS, "theta"]


def monte_carlo_draws(
    *,
    n_reps: int,
    n_obs: int = N_OBS,
    intercept: float = INTERCEPT,
    slope: float = SLOPE,
    nb_sizes: Optional[Mapping[str, float]] = None,
    seed: int,
    alpha: float = CI_ALPHA,
) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """Repeat simulate -> fit -> pseudo-R² ``n_reps`` times.

    Returns (coefficient draws, pseudo-R² draws). Replicate streams are
    spawned from one SeedSequence so each replicate is independent and the
    whole study is reproducible from ``seed``.
    """

    if n_reps <= 0:
        return pd.DataFrame(columns=COEF_DRAW_COLUMNS), pd.DataFrame(columns=R2_DRAW_COLUMNS)

    truth = {INTERCEPT_TERM: float(intercept), SLOPE_TERM: float(slope)}

    children = np.random.SeedSequence(seed).spawn(int(n_reps))
    coef_frames = []
    r2_rows = []
    for i, child in enumerate(children):
        dataset = simulate_dataset(
            n_obs=n_obs,
            intercept=intercept,
            slope=slope,
            nb_sizes=nb_sizes,
            seed=child,
        )
        fits = fit_models(dataset, alpha=alpha)

        comparison = parameter_comparison_table(fits, truth, alpha=alpha)
        comparison.insert(0, "iter", i)
        coef_frames.append(comparison[COEF_DRAW_COLUMNS])

        for process, fit in fits.items():
            r2_rows.append({"iter": i, "model": process, **compute_pseudo_r2(fit.result), "theta": fit.theta})

    coef_draws = pd.concat(coef_frames, ignore_index=True)
    r2_draws = pd.DataFrame(r2_rows)[R2_DRAW_COLUMNS]
    return coef_draws, r2_draws


def summarize_coverage(coef_draws: pd.DataFrame) -> pd.DataFrame:
    """Coverage, bias, RMSE and mean CI width per (model, term)."""
    cols = ["model", "term", "n_reps", "coverage", "bias", "rmse", "mean_ci_width"]
    if coef_draws.empty:
        return pd.DataFrame(columns=cols)

    d = coef_draws.copy()
    d["error"] = d["estimate"].astype(float) - d["truth"].astype(float)
    d["ci_width"] = d["upper"].astype(float) - d["lower"].astype(float)
    d["covered"] = d["covered"].astype(bool)

    rows = []
    for (model, term), g in d.groupby(["model", "term"], sort=False):
        rows.append(
            {
                "model": model,
                "term": term,
                "n_reps": int(len(g)),
                "coverage": float(g["covered"].mean()),
                "bias": float(g["error"].mean()),
                "rmse": float(np.sqrt(np.mean(g["error"] ** 2))),
                "mean_ci_width": float(g["ci_width"].mean()),
            }
        )
    return pd.DataFrame(rows)[cols]


def summarize_pseudo_r2(r2_draws: pd.DataFrame) -> pd.DataFrame:
    """Mean and SD of each pseudo-R² kind per model."""
    cols = ["model", "n_reps"] + [f"{k}_{s}" for k in PSEUDO_R2_KINDS for s in ("mean", "sd")]
    if r2_draws.empty:
        return pd.DataFrame(columns=cols)

    rows = []
    for model, g in r2_draws.groupby("model", sort=False):
        row: Dict[str, object] = {"model": model, "n_reps": int(len(g))}
        for k in PSEUDO_R2_KINDS:
            vals = g[k].dropna().to_numpy(dtype=float)
            row[f"{k}_mean"] = float(vals.mean()) if vals.size else np.nan
            row[f"{k}_sd"] = float(vals.std(ddof=1)) if vals.size > 1 else np.nan
        rows.append(row)
    return pd.DataFrame(rows)[cols]


def pseudo_r2_decreasing_share(r2_draws: pd.DataFrame, order: list, kind: str) -> float:
    """Share of replicates where ``kind`` strictly decreases along ``order``."""
    if r2_draws.empty:
        return np.nan
    wide = r2_draws.pivot(index="iter", columns="model", values=kind)[order]
    diffs = np.diff(wide.to_numpy(dtype=float), axis=1)
    return float(np.mean(np.all(diffs < 0, axis=1)))
