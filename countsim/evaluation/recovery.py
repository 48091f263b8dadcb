from __future__ import annotations

from typing import Mapping

import numpy as np
import pandas as pd

from countsim.config import CI_ALPHA


COMPARISON_COLUMNS = ["model", "term", "lower", "estimate", "upper", "truth", "covered", "std_error"]


def parameter_comparison_table(
    fits: Mapping[str, object],
    truth: Mapping[str, float],
    *,
    alpha: float = CI_ALPHA,
) -> pd.DataFrame:
    """Rows of (model, term) with the CI, point estimate and true value."""
    frames = []
    for process, fit in fits.items():
        coefs = fit.coefficients(alpha=alpha)
        unknown = sorted(set(coefs["term"]) - set(truth))
        if unknown:
            raise ValueError(f"No true value supplied for terms: {unknown}")
        coefs.insert(0, "model", process)
        coefs["truth"] = coefs["term"].map(truth).astype(float)
        frames.append(coefs)

    if not frames:
        return pd.DataFrame(columns=COMPARISON_COLUMNS)

    out = pd.concat(frames, ignore_index=True)
    out["covered"] = (out["lower"] <= out["truth"]) & (out["truth"] <= out["upper"])
    return out[COMPARISON_COLUMNS]


def recovery_error_summary(comparison: pd.DataFrame) -> pd.DataFrame:
    """Absolute error and CI width per (model, term)."""
    out = comparison[["model", "term", "estimate", "truth", "lower", "upper"]].copy()
    out["abs_error"] = np.abs(out["estimate"] - out["truth"])
    out["ci_width"] = out["upper"] - out["lower"]
    return out[["model", "term", "abs_error", "ci_width"]]
