from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional

import numpy as np
import pandas as pd
import statsmodels.api as sm

from countsim.config import (
    CI_ALPHA,
    INTERCEPT_TERM,
    NB_ALPHA_START_FLOOR,
    NB_FIT_MAXITER,
    NB_FIT_METHOD,
    NB_START_MAXITER,
    NB_START_METHOD,
    SLOPE_TERM,
)
from countsim.data.simulate import SimulatedDataset


COEFFICIENT_COLUMNS = ["term", "estimate", "std_error", "lower", "upper"]


@dataclass(frozen=True)
class FittedModel:
    process: str
    family: str
    result: object
    alpha: float = np.nan
    alpha_std_error: float = np.nan
    converged: bool = True
    ci_alpha: float = CI_ALPHA

    @property
    def theta(self) -> float:
        """Estimated NB size (1/alpha); NaN for the Poisson fit."""
        if np.isnan(self.alpha) or self.alpha <= 0:
            return np.nan
        return float(1.0 / self.alpha)

    @property
    def theta_std_error(self) -> float:
        # Delta method on theta = 1/alpha.
        if np.isnan(self.alpha) or self.alpha <= 0:
            return np.nan
        return float(self.alpha_std_error / self.alpha**2)

    def coefficients(self, alpha: Optional[float] = None) -> pd.DataFrame:
        """Coefficient table with Wald intervals at level 1 - alpha (default: ci_alpha)."""
        res = self.result
        ci = res.conf_int(alpha=self.ci_alpha if alpha is None else alpha)
        return pd.DataFrame(
            {
                "term": list(res.params.index),
                "estimate": res.params.to_numpy(dtype=float),
                "std_error": res.bse.to_numpy(dtype=float),
                "lower": ci.iloc[:, 0].to_numpy(dtype=float),
                "upper": ci.iloc[:, 1].to_numpy(dtype=float),
            }
        )[COEFFICIENT_COLUMNS]


def design_matrix(x: np.ndarray) -> pd.DataFrame:
    x = np.asarray(x, dtype=float)
    return pd.DataFrame({INTERCEPT_TERM: np.ones_like(x), SLOPE_TERM: x})


def fit_poisson_glm(
    y: np.ndarray, x: np.ndarray, *, process: str = "poisson", ci_alpha: float = CI_ALPHA
) -> FittedModel:
    X = design_matrix(x)
    res = sm.GLM(np.asarray(y, dtype=float), X, family=sm.families.Poisson()).fit()
    return FittedModel(
        process=process,
        family="poisson",
        result=res,
        converged=bool(getattr(res, "converged", True)) and bool(np.isfinite(res.llf)),
        ci_alpha=ci_alpha,
    )


def moment_alpha(y: np.ndarray, mu: np.ndarray, *, floor: float = NB_ALPHA_START_FLOOR) -> float:
    """Method-of-moments NB2 alpha from Poisson fitted means, floored away from 0."""
    y = np.asarray(y, dtype=float)
    mu = np.asarray(mu, dtype=float)
    denom = float(np.sum(mu**2))
    if denom <= 0:
        return float(floor)
    return float(max(floor, np.sum((y - mu) ** 2 - y) / denom))


def _usable(res) -> bool:
    alpha = float(res.params["alpha"])
    return bool(np.isfinite(res.llf) and np.isfinite(alpha) and alpha > 0)


def estimate_nb_alpha(
    y: np.ndarray,
    X: pd.DataFrame,
    *,
    start_method: str = NB_START_METHOD,
    start_maxiter: int = NB_START_MAXITER,
    method: str = NB_FIT_METHOD,
    maxiter: int = NB_FIT_MAXITER,
) -> tuple[float, float, bool]:
    """ML estimate of the NB2 dispersion alpha (variance = mu + alpha * mu**2).

    Starts from the Poisson coefficients plus a moment estimate of alpha,
    searches with Nelder-Mead, then polishes with a gradient method. The
    gradient method alone can run alpha into the zero boundary when the
    data are strongly overdispersed, so the solution with the higher finite
    log-likelihood is kept.

    Returns (alpha, alpha_std_error, converged). Raises RuntimeError when no
    attempt yields a finite log-likelihood.
    """

    y = np.asarray(y, dtype=float)
    poisson = sm.GLM(y, X, family=sm.families.Poisson()).fit()
    start = np.append(poisson.params.to_numpy(dtype=float), moment_alpha(y, poisson.fittedvalues))

    model = sm.NegativeBinomial(y, X, loglike_method="nb2")
    searched = model.fit(start_params=start, method=start_method, maxiter=start_maxiter, disp=0)
    candidates = [searched] if _usable(searched) else []
    polish_from = np.array(searched.params, dtype=float) if candidates else start.copy()
    polished = model.fit(start_params=polish_from, method=method, maxiter=maxiter, disp=0)
    if _usable(polished):
        candidates.append(polished)
    if not candidates:
        raise RuntimeError("Negative-binomial dispersion fit produced no finite log-likelihood")

    res = max(candidates, key=lambda r: float(r.llf))
    alpha = float(res.params["alpha"])
    alpha_se = float(res.bse["alpha"])
    converged = bool(res.mle_retvals.get("converged", True)) and bool(np.isfinite(alpha_se))
    return alpha, alpha_se, converged


def fit_negbin_glm(
    y: np.ndarray, x: np.ndarray, *, process: str = "negbin", ci_alpha: float = CI_ALPHA
) -> FittedModel:
    """NB-family GLM with the dispersion estimated from the data.

    alpha is estimated by maximum likelihood first, then held fixed while the
    GLM is fitted, so coefficient intervals are conditional on alpha.
    """

    X = design_matrix(x)
    y = np.asarray(y, dtype=float)
    alpha, alpha_se, alpha_converged = estimate_nb_alpha(y, X)
    res = sm.GLM(y, X, family=sm.families.NegativeBinomial(alpha=alpha)).fit()
    return FittedModel(
        process=process,
        family="negative_binomial",
        result=res,
        alpha=alpha,
        alpha_std_error=alpha_se,
        converged=bool(alpha_converged and getattr(res, "converged", True) and np.isfinite(res.llf)),
        ci_alpha=ci_alpha,
    )


def fit_models(dataset: SimulatedDataset, alpha: float = CI_ALPHA) -> Dict[str, FittedModel]:
    """One fit per generating process, in the dataset's process order.

    ``alpha`` sets the default interval level of each fit's coefficient table.
    """
    fits: Dict[str, FittedModel] = {}
    for process, y in dataset.responses.items():
        if dataset.size_for(process) is None:
            fits[process] = fit_poisson_glm(y, dataset.x, process=process, ci_alpha=alpha)
        else:
            fits[process] = fit_negbin_glm(y, dataset.x, process=process, ci_alpha=alpha)
    return fits


def fit_summary_table(fits: Dict[str, FittedModel], true_sizes: Optional[Dict[str, float]] = None) -> pd.DataFrame:
    true_sizes = true_sizes or {}
    rows = []
    for process, fit in fits.items():
        res = fit.result
        rows.append(
            {
                "model": process,
                "family": fit.family,
                "nobs": int(res.nobs),
                "converged": fit.converged,
                "theta": fit.theta,
                "theta_std_error": fit.theta_std_error,
                "true_size": true_sizes.get(process, np.nan),
                "aic": float(res.aic),
                "deviance": float(res.deviance),
                "null_deviance": float(res.null_deviance),
            }
        )
    return pd.DataFrame(rows)
