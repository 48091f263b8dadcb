import numpy as np
import pytest

from countsim.config import INTERCEPT, MONTE_CARLO_SEED, NB_SIZES, PROCESSES, SLOPE, TRUE_COEFFICIENTS
from countsim.data.simulate import simulate_dataset
from countsim.models.glm import fit_models, fit_negbin_glm, fit_summary_table, moment_alpha


@pytest.fixture(scope="module")
def scenario():
    ds = simulate_dataset(n_obs=1000, intercept=INTERCEPT, slope=SLOPE, nb_sizes=NB_SIZES, seed=123456)
    return ds, fit_models(ds)


def test_one_fit_per_process_in_order(scenario):
    _, fits = scenario
    assert list(fits) == PROCESSES
    assert fits["poisson"].family == "poisson"
    assert fits["nb_moderate"].family == "negative_binomial"
    assert fits["nb_strong"].family == "negative_binomial"


def test_estimates_are_close_to_truth(scenario):
    _, fits = scenario
    for process, fit in fits.items():
        coefs = fit.coefficients().set_index("term")
        assert coefs.index.tolist() == list(TRUE_COEFFICIENTS)
        for term, truth in TRUE_COEFFICIENTS.items():
            est = coefs.loc[term, "estimate"]
            se = coefs.loc[term, "std_error"]
            assert np.isfinite(est) and se > 0
            assert abs(est - truth) < 5 * se, f"{process}/{term}: {est:.3f} vs {truth}"


def test_intervals_bracket_estimates(scenario):
    _, fits = scenario
    for fit in fits.values():
        coefs = fit.coefficients(alpha=0.05)
        assert (coefs["lower"] < coefs["estimate"]).all()
        assert (coefs["estimate"] < coefs["upper"]).all()

        wider = fit.coefficients(alpha=0.01)
        assert ((wider["upper"] - wider["lower"]) > (coefs["upper"] - coefs["lower"])).all()


def test_dispersion_is_estimated_for_nb_only(scenario):
    _, fits = scenario
    assert np.isnan(fits["poisson"].theta)
    assert 0.3 < fits["nb_moderate"].theta < 0.8
    assert 0.01 < fits["nb_strong"].theta < 0.2
    assert fits["nb_moderate"].theta > fits["nb_strong"].theta
    assert fits["nb_moderate"].theta_std_error > 0


def test_slope_precision_is_lower_with_more_dispersion(scenario):
    _, fits = scenario
    se = {p: f.coefficients().set_index("term").loc["x", "std_error"] for p, f in fits.items()}
    assert se["poisson"] < se["nb_moderate"] < se["nb_strong"]


def test_fit_summary_table(scenario):
    ds, fits = scenario
    summary = fit_summary_table(fits, true_sizes=ds.nb_sizes)
    assert summary["model"].tolist() == PROCESSES
    assert (summary["nobs"] == 1000).all()
    assert summary["converged"].all()
    assert summary.loc[summary["model"] == "nb_strong", "true_size"].iloc[0] == NB_SIZES["nb_strong"]
    assert (summary["deviance"] <= summary["null_deviance"]).all()


def test_strong_nb_dispersion_does_not_collapse_across_seeds():
    children = np.random.SeedSequence(MONTE_CARLO_SEED).spawn(30)
    for i, child in enumerate(children):
        ds = simulate_dataset(n_obs=1000, nb_sizes={"nb_strong": 0.05}, seed=child)
        fit = fit_negbin_glm(ds.responses["nb_strong"], ds.x, process="nb_strong")
        assert np.isfinite(fit.theta) and 0.02 < fit.theta < 0.2, f"replicate {i}: theta={fit.theta}"
        assert np.isfinite(fit.result.llf)
        assert np.isfinite(fit.alpha_std_error)
        assert fit.converged, f"replicate {i} not flagged as converged"


def test_moment_alpha_start_value():
    mu = np.full(4, 2.0)
    y = np.array([0.0, 0.0, 0.0, 8.0])
    # sum((y - mu)^2 - y) / sum(mu^2) = (4 * 3 + 36 - 8) / 16
    assert moment_alpha(y, mu) == pytest.approx(40.0 / 16.0)
    assert moment_alpha(mu, mu) == pytest.approx(0.05)


def test_fit_models_interval_level(scenario):
    ds, default_fits = scenario
    fits_90 = fit_models(ds, alpha=0.10)
    for process, fit in fits_90.items():
        assert fit.ci_alpha == 0.10
        narrow = fit.coefficients()
        wide = default_fits[process].coefficients()
        assert ((narrow["upper"] - narrow["lower"]) < (wide["upper"] - wide["lower"])).all()
