from __future__ import annotations

import warnings
from typing import Dict, Mapping

import numpy as np
import pandas as pd

from countsim.config import PSEUDO_R2_KINDS


def _nagelkerke(cox_snell: float, llnull: float, nobs: float) -> float:
    # Cox-Snell cannot reach 1 for discrete outcomes; rescale by its maximum.
    max_cs = 1.0 - np.exp(2.0 * llnull / nobs)
    if max_cs <= 0:
        return np.nan
    return float(cox_snell / max_cs)


def compute_pseudo_r2(result) -> Dict[str, float]:
    """McFadden, Cox-Snell and Nagelkerke pseudo-R² for a fitted GLM result.

    Warnings raised along the way (null-model refits, deprecations) are
    suppressed so they do not leak into report output.
    """

    with warnings.catch_warnings():
        warnings.simplefilter("ignore")
        mcfadden = float(result.pseudo_rsquared(kind="mcf"))
        cox_snell = float(result.pseudo_rsquared(kind="cs"))
        llnull = float(result.llnull)
        nobs = float(result.nobs)

    return {
        "mcfadden": mcfadden,
        "cox_snell": cox_snell,
        "nagelkerke": _nagelkerke(cox_snell, llnull, nobs),
    }


def pseudo_r2_table(fits: Mapping[str, object], true_sizes: Mapping[str, float] | None = None) -> pd.DataFrame:
    """One row per fitted model: pseudo-R² values, estimated and true NB size."""
    true_sizes = true_sizes or {}
    rows = []
    for process, fit in fits.items():
        values = compute_pseudo_r2(fit.result)
        rows.append(
            {
                "model": process,
                **{k: values[k] for k in PSEUDO_R2_KINDS},
                "theta": fit.theta,
                "true_size": true_sizes.get(process, np.nan),
            }
        )
    return pd.DataFrame(rows)
