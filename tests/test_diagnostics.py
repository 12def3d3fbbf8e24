import math

import numpy as np
import pandas as pd
import pytest

from conftest import scores_with_ceiling_counts

from ceiling.data_processing import validate_score_table
from ceiling.diagnostics import (
    compute_group_summary,
    evaluate_30_20_rule,
    evaluate_70_rule,
    run_ceiling_floor_diagnostics,
)
from ceiling.errors import EmptyGroupWarning
from ceiling.schema import AnalysisConfig
from ceiling.selection import ModelChoice, select_model


def _dataset(counts, **kwargs):
    return validate_score_table(scores_with_ceiling_counts(counts), 0, 100, **kwargs)


def test_summary_counts_and_proportions():
    dataset = _dataset({"A": 19, "B": 33, "C": 49})
    summary = compute_group_summary(dataset, side="ceiling", near_width=1)
    assert summary["group"].tolist() == ["A", "B", "C"]
    assert summary["n"].tolist() == [100, 100, 100]
    assert summary["n_at_bound"].tolist() == [19, 33, 49]
    assert np.allclose(summary["p_at_bound"], [0.19, 0.33, 0.49])
    assert (summary["p_at_bound"] <= summary["p_near_bound"]).all()


def test_near_window_counts_scores_just_below_ceiling():
    tidy = pd.DataFrame(
        {
            "group": ["A"] * 4 + ["B"] * 4,
            "pre_score": [1.0] * 8,
            "post_score": [100, 99, 98.5, 50, 100, 100, 10, 20],
        }
    )
    dataset = validate_score_table(tidy, 0, 100)
    summary = compute_group_summary(dataset, near_width=1).set_index("group")
    assert summary.loc["A", "n_near_bound"] == 2
    assert summary.loc["A", "n_at_bound"] == 1
    assert summary.loc["B", "p_at_bound"] == pytest.approx(0.5)


def test_floor_summary_uses_lower_bound():
    tidy = pd.DataFrame(
        {
            "group": ["A", "A", "B", "B"],
            "pre_score": [1.0, 2.0, 3.0, 4.0],
            "post_score": [0.0, 0.5, 0.0, 0.0],
        }
    )
    dataset = validate_score_table(tidy, 0, 10)
    summary = compute_group_summary(dataset, side="floor").set_index("group")
    assert summary.loc["A", "p_at_bound"] == pytest.approx(0.5)
    assert summary.loc["A", "p_near_bound"] == pytest.approx(1.0)
    assert summary.loc["B", "p_at_bound"] == pytest.approx(1.0)


def test_empty_group_gets_nan_and_warning():
    dataset = _dataset({"A": 10, "B": 20}, levels=["A", "B", "C"])
    with pytest.warns(EmptyGroupWarning):
        summary = compute_group_summary(dataset)
    row = summary.set_index("group").loc["C"]
    assert row["n"] == 0
    assert math.isnan(row["p_at_bound"])


def test_30_20_rule_reports_every_violation():
    outcome = evaluate_30_20_rule({"A": 0.19, "B": 0.33, "C": 0.49})
    assert not outcome.passed
    single = {item["groups"] for item in outcome.violations if item["kind"] == "group"}
    pairs = {item["groups"] for item in outcome.violations if item["kind"] == "pair"}
    assert single == {("B",), ("C",)}
    assert pairs == {("A", "C")}
    assert outcome.max_difference == pytest.approx(0.30)


def test_30_20_rule_passes_at_exact_thresholds():
    outcome = evaluate_30_20_rule({"A": 0.30, "B": 0.10})
    assert outcome.passed
    assert outcome.violations == ()


def test_70_rule_boundary():
    assert evaluate_70_rule({"A": 0.70, "B": 0.20}).passed
    failed = evaluate_70_rule({"A": 0.75, "B": 0.20})
    assert not failed.passed
    assert failed.violations[0]["groups"] == ("A",)


def test_empty_groups_are_excluded_from_rules():
    outcome = evaluate_30_20_rule({"A": 0.10, "B": float("nan"), "C": 0.25})
    assert outcome.passed
    assert outcome.empty_groups == ("B",)


def test_moderate_ceiling_selects_censored_model():
    dataset = _dataset({"A": 19, "B": 33, "C": 49})
    report = run_ceiling_floor_diagnostics(dataset, AnalysisConfig())
    decision = select_model(report.rule_30_20, report.rule_70)
    assert decision.choice is ModelChoice.USE_CENSORED
    assert set(decision.violating_groups) == {"A", "B", "C"}


def test_low_ceiling_selects_linear_model():
    dataset = _dataset({"A": 10, "B": 20, "C": 25})
    report = run_ceiling_floor_diagnostics(dataset, AnalysisConfig())
    decision = select_model(report.rule_30_20, report.rule_70)
    assert decision.choice is ModelChoice.USE_LINEAR
    assert decision.violations == ()


def test_extreme_ceiling_has_no_valid_model():
    dataset = _dataset({"A": 10, "B": 20, "C": 75})
    report = run_ceiling_floor_diagnostics(dataset, AnalysisConfig())
    decision = select_model(report.rule_30_20, report.rule_70)
    assert decision.choice is ModelChoice.NO_VALID_MODEL
    assert decision.violating_groups == ("C",)


def test_both_sides_screen_floor_and_ceiling():
    tidy = pd.DataFrame(
        {
            "group": ["A"] * 10 + ["B"] * 10,
            "pre_score": np.arange(20, dtype=float),
            "post_score": [0.0] * 4 + [50.0] * 6 + [50.0] * 10,
        }
    )
    dataset = validate_score_table(tidy, 0, 100)
    report = run_ceiling_floor_diagnostics(dataset, AnalysisConfig(side="both"))
    assert set(report.summary["bound"]) == {"floor", "ceiling"}
    assert not report.rule_30_20.passed
    assert report.rule_30_20.violations[0]["bound"] == "floor"
    assert report.rule_70.passed
