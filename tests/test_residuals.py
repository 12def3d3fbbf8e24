import numpy as np
import pytest
from scipy import stats as scipy_stats

from ceiling.residuals import (
    compute_residuals,
    normal_quantile_pairs,
    qq_correlation,
    residuals_vs_fitted,
)
from ceiling.stats.contrasts import ModelSpec
from ceiling.stats.tobit import fit_censored_regression


@pytest.fixture
def residuals(simulated_frame):
    spec = ModelSpec(
        response="post_score",
        factor="group",
        levels=("A", "B", "C"),
        covariates=("pre_score",),
    )
    return compute_residuals(fit_censored_regression(simulated_frame, spec, 0, 80))


def test_fitted_plus_residual_recovers_observed(residuals):
    assert np.allclose(residuals.fitted + residuals.residual, residuals.observed)
    assert np.all(residuals.fitted <= 80.0)
    assert np.all(residuals.fitted >= 0.0)


def test_residuals_respect_censoring_limits(residuals):
    frame = residuals.to_frame()
    assert (frame["residual"] <= frame["max_residual"] + 1e-9).all()
    assert (frame["residual"] >= frame["min_residual"] - 1e-9).all()


def test_ceiling_rows_lie_on_upper_limit(residuals):
    flagged = residuals_vs_fitted(residuals)
    at_ceiling = np.isclose(residuals.observed, 80.0)
    assert np.array_equal(flagged["at_upper_bound"].to_numpy(), at_ceiling)
    assert not flagged["at_lower_bound"].any()


def test_rows_keep_their_original_index(residuals, simulated_frame):
    assert residuals.row_index.tolist() == simulated_frame.index.tolist()


def test_quantile_pairs_are_sorted(residuals):
    pairs = normal_quantile_pairs(residuals)
    assert len(pairs) == len(residuals.residual)
    assert np.all(np.diff(pairs["sample"]) >= 0)
    assert np.all(np.diff(pairs["theoretical"]) > 0)
    assert qq_correlation(residuals) > 0.9


def test_small_sample_plotting_positions():
    pairs = normal_quantile_pairs(np.array([3.0, -1.0, 0.0, 2.0, 1.0]))
    assert pairs["sample"].tolist() == [-1.0, 0.0, 1.0, 2.0, 3.0]
    expected = scipy_stats.norm.ppf((np.arange(1, 6) - 3 / 8) / (5 + 1 / 4))
    assert np.allclose(pairs["theoretical"], expected)
    assert pairs["theoretical"].iloc[2] == pytest.approx(0.0)


def test_residuals_carry_string_row_labels(simulated_frame):
    frame = simulated_frame.copy()
    frame.index = [f"subject-{i}" for i in range(len(frame))]
    spec = ModelSpec(
        response="post_score",
        factor="group",
        levels=("A", "B", "C"),
        covariates=("pre_score",),
    )
    residuals = compute_residuals(fit_censored_regression(frame, spec, 0, 80))
    assert residuals.row_index.tolist() == frame.index.tolist()
    assert residuals.to_frame()["row"].iloc[0] == "subject-0"
