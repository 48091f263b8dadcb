import numpy as np
import pytest

from countsim.config import NB_SIZES, PROCESSES
from countsim.data.simulate import describe_responses, linear_predictor, simulate_dataset


def test_covariate_is_reproducible_for_fixed_seed():
    a = simulate_dataset(n_obs=1000, seed=123456)
    b = simulate_dataset(n_obs=1000, seed=123456)
    np.testing.assert_array_equal(a.x, b.x)
    for process in PROCESSES:
        np.testing.assert_array_equal(a.responses[process], b.responses[process])


def test_covariate_does_not_depend_on_dispersion():
    a = simulate_dataset(n_obs=500, seed=99, nb_sizes={"nb_a": 0.5, "nb_b": 0.05})
    b = simulate_dataset(n_obs=500, seed=99, nb_sizes={"nb_a": 3.0, "nb_b": 10.0})
    np.testing.assert_array_equal(a.x, b.x)
    np.testing.assert_array_equal(a.responses["poisson"], b.responses["poisson"])


def test_different_seeds_give_different_covariates():
    a = simulate_dataset(n_obs=200, seed=1)
    b = simulate_dataset(n_obs=200, seed=2)
    assert not np.array_equal(a.x, b.x)


def test_linear_predictor_and_mean():
    ds = simulate_dataset(n_obs=50, intercept=0.5, slope=-1.0, seed=3)
    np.testing.assert_allclose(linear_predictor(ds.x, 0.5, -1.0), 0.5 - ds.x)
    np.testing.assert_allclose(ds.mu, np.exp(0.5 - ds.x))


def test_simulation_table_row_counts():
    ds = simulate_dataset(n_obs=1000, seed=123456)
    table = ds.to_long()

    assert table.columns.tolist() == ["process", "x", "mu", "y"]
    assert len(table) == 1000 * 3
    counts = table["process"].value_counts()
    for process in PROCESSES:
        assert counts[process] == 1000
    assert list(table["process"].cat.categories) == PROCESSES
    assert (table["y"] >= 0).all()


def test_response_means_converge_to_implied_mean():
    n = 200_000
    ds = simulate_dataset(n_obs=n, intercept=0.5, slope=-1.0, seed=20240501)
    mu = ds.mu
    for process, y in ds.responses.items():
        size = ds.size_for(process)
        cond_var = mu if size is None else mu + mu**2 / size
        se = np.sqrt(cond_var.mean() / n)
        diff = float(np.mean(y) - np.mean(mu))
        assert abs(diff) < 6 * se, f"{process}: mean off by {diff:.4f} (se={se:.4f})"


def test_overdispersion_increases_with_smaller_size():
    ds = simulate_dataset(n_obs=5000, seed=11)
    variances = {p: float(np.var(y)) for p, y in ds.responses.items()}
    assert variances["poisson"] < variances["nb_moderate"] < variances["nb_strong"]


def test_describe_responses_has_one_row_per_process():
    ds = simulate_dataset(n_obs=300, seed=5)
    desc = describe_responses(ds)
    assert desc["process"].tolist() == PROCESSES
    assert (desc["n"] == 300).all()
    assert desc.loc[desc["process"] == "poisson", "size"].isna().all()
    assert desc.loc[desc["process"] == "nb_strong", "size"].iloc[0] == NB_SIZES["nb_strong"]


@pytest.mark.parametrize("bad_size", [0.0, -0.5])
def test_non_positive_size_is_rejected(bad_size):
    with pytest.raises(ValueError):
        simulate_dataset(n_obs=10, nb_sizes={"nb": bad_size}, seed=1)


@pytest.mark.parametrize("bad_n", [0, -5])
def test_non_positive_n_obs_is_rejected(bad_n):
    with pytest.raises(ValueError):
        simulate_dataset(n_obs=bad_n, seed=1)


def test_poisson_name_is_reserved():
    with pytest.raises(ValueError):
        simulate_dataset(n_obs=10, nb_sizes={"poisson": 1.0}, seed=1)
