"""Screen grouped scores for ceiling and floor effects.

The screen summarizes, per group, how many post-scores sit exactly on a scale
bound and how many sit within ``near_width`` of it, then applies two
heuristics:

- the 30-20 rule, which gates ANOVA/ANCOVA: no group may have more than 30%
  of its scores at the bound and no two groups may differ by more than 20
  percentage points;
- the 70% rule, which gates Tobit regression: no group may have more than
  70% of its scores at the bound.

Both rules are computed identically at the floor with the lower bound
substituted for the upper one.

Summary tables name their proportions ``p_at_bound`` and ``p_near_bound``
and carry a ``bound`` column (``"ceiling"`` or ``"floor"``). On ceiling rows
these are the per-group ``p_at_ceiling`` and ``p_near_ceiling`` values; on
floor rows they are the floor equivalents.
"""

from __future__ import annotations

import itertools
import logging
import math
import warnings
from dataclasses import dataclass, field
from typing import Any, Mapping

import numpy as np
import pandas as pd

from .data_processing import ScoreDataset
from .errors import EmptyGroupWarning
from .schema import COLUMNS, AnalysisConfig

BOUND_TOL = 1e-9
RULE_TOL = 1e-12

SUMMARY_COLUMNS = [
    "bound",
    "group",
    "n",
    "n_at_bound",
    "n_near_bound",
    "p_at_bound",
    "p_near_bound",
]


@dataclass(frozen=True)
class RuleOutcome:
    """Result of one ceiling/floor heuristic.

    ``violations`` holds one dict per failing group or pair with keys
    ``bound``, ``kind`` (``"group"`` or ``"pair"``), ``groups``, ``value``
    and ``threshold``.
    """

    rule: str
    passed: bool
    violations: tuple[dict[str, Any], ...] = ()
    max_proportion: float = math.nan
    max_difference: float = math.nan
    empty_groups: tuple[str, ...] = ()

    def describe(self) -> str:
        if self.passed:
            return f"{self.rule} rule passed"
        parts = []
        for item in self.violations:
            label = " vs ".join(item["groups"])
            what = "difference" if item["kind"] == "pair" else "proportion"
            parts.append(
                f"{item['bound']} {what} {item['value']:.3f} for {label} "
                f"exceeds {item['threshold']:.2f}"
            )
        return f"{self.rule} rule failed: " + "; ".join(parts)


@dataclass(frozen=True)
class CeilingFloorReport:
    """Group summaries and rule outcomes for the configured bound(s)."""

    summary: pd.DataFrame
    rule_30_20: RuleOutcome
    rule_70: RuleOutcome
    sides: tuple[str, ...] = field(default=("ceiling",))


def _bound_masks(
    values: np.ndarray,
    side: str,
    lower_bound: float,
    upper_bound: float,
    near_width: float,
) -> tuple[np.ndarray, np.ndarray]:
    if side == "ceiling":
        at = np.isclose(values, upper_bound, atol=BOUND_TOL, rtol=0.0)
        near = values >= (upper_bound - near_width) - BOUND_TOL
    elif side == "floor":
        at = np.isclose(values, lower_bound, atol=BOUND_TOL, rtol=0.0)
        near = values <= (lower_bound + near_width) + BOUND_TOL
    else:
        raise ValueError(f"side must be 'ceiling' or 'floor', got {side!r}.")
    return at, near | at


def compute_group_summary(
    dataset: ScoreDataset,
    side: str = "ceiling",
    near_width: float = 1.0,
    column: str = COLUMNS.post_score,
) -> pd.DataFrame:
    """Compute per-group counts and proportions at and near one bound.

    Every declared level gets a row. Levels without observations report
    ``n = 0`` and NaN proportions, and trigger an ``EmptyGroupWarning``.
    """
    rows = []
    empty = []
    for level, values in dataset.grouped(column).items():
        n = int(len(values))
        if n == 0:
            empty.append(level)
            rows.append(
                {
                    "bound": side,
                    "group": level,
                    "n": 0,
                    "n_at_bound": 0,
                    "n_near_bound": 0,
                    "p_at_bound": math.nan,
                    "p_near_bound": math.nan,
                }
            )
            continue
        at, near = _bound_masks(
            values,
            side,
            dataset.lower_bound,
            dataset.upper_bound,
            float(near_width),
        )
        rows.append(
            {
                "bound": side,
                "group": level,
                "n": n,
                "n_at_bound": int(at.sum()),
                "n_near_bound": int(near.sum()),
                "p_at_bound": float(at.sum()) / n,
                "p_near_bound": float(near.sum()) / n,
            }
        )

    if empty:
        warnings.warn(
            f"Groups without observed {column}: {empty}; excluded from rule checks.",
            EmptyGroupWarning,
            stacklevel=2,
        )
    return pd.DataFrame(rows, columns=SUMMARY_COLUMNS)


def _split_proportions(
    proportions: Mapping[str, float],
) -> tuple[dict[str, float], tuple[str, ...]]:
    valid = {}
    empty = []
    for group, value in proportions.items():
        value = float(value)
        if math.isfinite(value):
            valid[str(group)] = value
        else:
            empty.append(str(group))
    return valid, tuple(empty)


def evaluate_30_20_rule(
    proportions: Mapping[str, float],
    bound: str = "ceiling",
    max_single_proportion: float = 0.30,
    max_pairwise_difference: float = 0.20,
) -> RuleOutcome:
    """Apply the 30-20 rule to per-group proportions at one bound.

    Every group above ``max_single_proportion`` and every pair whose
    difference exceeds ``max_pairwise_difference`` is reported.
    """
    valid, empty = _split_proportions(proportions)
    violations: list[dict[str, Any]] = []

    for group, value in valid.items():
        if value > max_single_proportion + RULE_TOL:
            violations.append(
                {
                    "bound": bound,
                    "kind": "group",
                    "groups": (group,),
                    "value": value,
                    "threshold": float(max_single_proportion),
                }
            )

    max_diff = math.nan
    if len(valid) >= 2:
        max_diff = 0.0
        for (g1, p1), (g2, p2) in itertools.combinations(valid.items(), 2):
            diff = abs(p1 - p2)
            max_diff = max(max_diff, diff)
            if diff > max_pairwise_difference + RULE_TOL:
                violations.append(
                    {
                        "bound": bound,
                        "kind": "pair",
                        "groups": (g1, g2),
                        "value": diff,
                        "threshold": float(max_pairwise_difference),
                    }
                )

    return RuleOutcome(
        rule="30-20",
        passed=not violations,
        violations=tuple(violations),
        max_proportion=max(valid.values()) if valid else math.nan,
        max_difference=max_diff,
        empty_groups=empty,
    )


def evaluate_70_rule(
    proportions: Mapping[str, float],
    bound: str = "ceiling",
    max_censored_proportion: float = 0.70,
) -> RuleOutcome:
    """Apply the 70% rule to per-group proportions at one bound."""
    valid, empty = _split_proportions(proportions)
    violations = [
        {
            "bound": bound,
            "kind": "group",
            "groups": (group,),
            "value": value,
            "threshold": float(max_censored_proportion),
        }
        for group, value in valid.items()
        if value > max_censored_proportion + RULE_TOL
    ]
    return RuleOutcome(
        rule="70%",
        passed=not violations,
        violations=tuple(violations),
        max_proportion=max(valid.values()) if valid else math.nan,
        empty_groups=empty,
    )


def combine_outcomes(outcomes: list[RuleOutcome]) -> RuleOutcome:
    """Merge per-bound outcomes of the same rule; fails if any bound fails."""
    if not outcomes:
        raise ValueError("At least one rule outcome is required.")
    violations = tuple(v for outcome in outcomes for v in outcome.violations)
    max_props = [o.max_proportion for o in outcomes if math.isfinite(o.max_proportion)]
    max_diffs = [o.max_difference for o in outcomes if math.isfinite(o.max_difference)]
    empty = tuple(dict.fromkeys(g for o in outcomes for g in o.empty_groups))
    return RuleOutcome(
        rule=outcomes[0].rule,
        passed=all(o.passed for o in outcomes),
        violations=violations,
        max_proportion=max(max_props) if max_props else math.nan,
        max_difference=max(max_diffs) if max_diffs else math.nan,
        empty_groups=empty,
    )


def run_ceiling_floor_diagnostics(
    dataset: ScoreDataset, config: AnalysisConfig
) -> CeilingFloorReport:
    """Summarize the configured bound(s) and evaluate both rules."""
    summaries = []
    outcomes_30_20 = []
    outcomes_70 = []
    for side in config.sides:
        summary = compute_group_summary(
            dataset, side=side, near_width=config.near_width
        )
        summaries.append(summary)
        proportions = dict(zip(summary["group"], summary["p_at_bound"]))
        outcomes_30_20.append(
            evaluate_30_20_rule(
                proportions,
                bound=side,
                max_single_proportion=config.max_single_proportion,
                max_pairwise_difference=config.max_pairwise_difference,
            )
        )
        outcomes_70.append(
            evaluate_70_rule(
                proportions,
                bound=side,
                max_censored_proportion=config.max_censored_proportion,
            )
        )

    rule_30_20 = combine_outcomes(outcomes_30_20)
    rule_70 = combine_outcomes(outcomes_70)
    logging.info("%s", rule_30_20.describe())
    logging.info("%s", rule_70.describe())

    return CeilingFloorReport(
        summary=pd.concat(summaries, ignore_index=True),
        rule_30_20=rule_30_20,
        rule_70=rule_70,
        sides=config.sides,
    )
