import numpy as np
import pandas as pd
import pytest

from conftest import simulate_scores

from ceiling.errors import ConvergenceError, DataError
from ceiling.stats.contrasts import INTERCEPT, ModelSpec
from ceiling.stats.linear import fit_linear_model
from ceiling.stats.tobit import (
    LOG_SIGMA,
    censored_mean,
    fit_censored_regression,
    refit_censored,
)


def _spec(contrast="treatment"):
    return ModelSpec(
        response="post_score",
        factor="group",
        levels=("A", "B", "C"),
        contrast=contrast,
        covariates=("pre_score",),
    )


def test_recovers_parameters_from_ceiling_censored_data(simulated_frame):
    assert (simulated_frame["post_score"] == 80.0).mean() > 0.05
    fit = fit_censored_regression(simulated_frame, _spec(), 0.0, 80.0)
    coef = fit.coefficients
    assert coef["group[T.B]"] == pytest.approx(5.0, abs=3.0)
    assert coef["group[T.C]"] == pytest.approx(10.0, abs=3.0)
    assert coef["pre_score"] == pytest.approx(0.8, abs=0.12)
    assert fit.sigma == pytest.approx(8.0, rel=0.15)
    assert fit.n_right > 0
    assert fit.n_left == 0
    assert fit.n_uncensored + fit.n_right == fit.n_obs


def test_censored_fit_corrects_ols_attenuation(simulated_frame):
    tobit = fit_censored_regression(simulated_frame, _spec(), 0.0, 80.0)
    ols = fit_linear_model(simulated_frame, _spec())
    ols_c = float(ols.beta[list(ols.columns).index("group[T.C]")])
    assert tobit.coefficients["group[T.C]"] > ols_c


def test_parameter_order_ends_with_log_sigma(simulated_frame):
    fit = fit_censored_regression(simulated_frame, _spec(), 0.0, 80.0)
    assert fit.param_names[0] == INTERCEPT
    assert fit.param_names[-1] == LOG_SIGMA
    assert fit.covariance.shape == (5, 5)
    assert np.allclose(fit.covariance, fit.covariance.T)
    assert np.all(np.linalg.eigvalsh(fit.covariance) > 0)


def test_fit_arrays_are_read_only(simulated_frame):
    fit = fit_censored_regression(simulated_frame, _spec(), 0.0, 80.0)
    with pytest.raises(ValueError):
        fit.beta[0] = 0.0


def test_without_censoring_matches_least_squares(simulated_frame):
    fit = fit_censored_regression(simulated_frame, _spec(), -1000.0, 1000.0)
    ols = fit_linear_model(simulated_frame, _spec())
    assert fit.n_left == 0 and fit.n_right == 0
    assert np.allclose(fit.beta, ols.beta, atol=1e-6)
    assert fit.sigma == pytest.approx(np.sqrt(ols.ss_res / fit.n_obs), rel=1e-6)


def test_sdif_and_treatment_are_reparameterizations(simulated_frame):
    treat = fit_censored_regression(simulated_frame, _spec(), 0.0, 80.0)
    sdif = refit_censored(treat, simulated_frame, contrast="sdif")

    assert sdif.contrast == "sdif"
    assert treat.contrast == "treatment"
    assert sdif.loglik == pytest.approx(treat.loglik, abs=1e-6)
    assert sdif.sigma == pytest.approx(treat.sigma, rel=1e-6)
    b, c = treat.coefficients["group[T.B]"], treat.coefficients["group[T.C]"]
    assert sdif.coefficients["group[B-A]"] == pytest.approx(b, abs=1e-5)
    assert sdif.coefficients["group[C-B]"] == pytest.approx(c - b, abs=1e-5)
    assert np.allclose(sdif.expected_response(), treat.expected_response(), atol=1e-5)


def test_refit_with_new_reference(simulated_frame):
    treat = fit_censored_regression(simulated_frame, _spec(), 0.0, 80.0)
    by_c = refit_censored(treat, simulated_frame, reference="C")
    assert by_c.spec.levels == ("C", "A", "B")
    assert by_c.coefficients["group[T.A]"] == pytest.approx(
        -treat.coefficients["group[T.C]"], abs=1e-5
    )


def test_response_outside_bounds_raises(simulated_frame):
    frame = simulated_frame.copy()
    frame.loc[0, "post_score"] = 85.0
    with pytest.raises(DataError, match="outside"):
        fit_censored_regression(frame, _spec(), 0.0, 80.0)


def test_iteration_budget_exhaustion_raises(simulated_frame):
    with pytest.raises(ConvergenceError) as excinfo:
        fit_censored_regression(simulated_frame, _spec(), 0.0, 80.0, max_iter=1)
    assert excinfo.value.iterations == 1


def test_rank_deficient_design_raises():
    frame = simulate_scores(n_per_group=20)
    frame["pre_score"] = 1.0
    with pytest.raises(DataError, match="rank-deficient"):
        fit_censored_regression(frame, _spec(), 0.0, 80.0)


def test_floor_censoring_is_handled():
    frame = simulate_scores(intercept=-35.0, lower=0.0, upper=200.0, seed=99)
    assert (frame["post_score"] == 0.0).mean() > 0.05
    fit = fit_censored_regression(frame, _spec(), 0.0, 200.0)
    assert fit.n_left > 0
    assert fit.coefficients["pre_score"] == pytest.approx(0.8, abs=0.12)


def test_censored_mean_limits():
    mu = np.array([-1e6, 50.0, 1e6])
    mean = censored_mean(mu, 5.0, 0.0, 100.0)
    assert mean[0] == pytest.approx(0.0)
    assert mean[1] == pytest.approx(50.0, abs=1e-9)
    assert mean[2] == pytest.approx(100.0)


def test_censored_mean_is_pulled_below_latent_mean_near_ceiling():
    mean = censored_mean(np.array([100.0]), 10.0, 0.0, 100.0)
    # E[min(Y, U)] = U - sigma * phi(0) when mu == U
    assert mean[0] == pytest.approx(100.0 - 10.0 / np.sqrt(2 * np.pi))


def test_string_indexed_frame_keeps_row_labels():
    frame = simulate_scores(n_per_group=50)
    frame.index = [f"s{i}" for i in range(len(frame))]
    fit = fit_censored_regression(frame, _spec(), 0.0, 80.0)
    assert fit.row_index[:2] == ("s0", "s1")

    sdif = refit_censored(fit, frame, contrast="sdif")
    assert sdif.row_index == fit.row_index
    assert sdif.loglik == pytest.approx(fit.loglik, abs=1e-6)
