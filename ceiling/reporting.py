"""Format result tables and the printed analysis report.

This module is used after model fitting to present estimates, standard
errors and p-values consistently in exported CSV artifacts and on stdout.
"""

from __future__ import annotations

import math
from typing import Iterable

import numpy as np
import pandas as pd

from .diagnostics import CeilingFloorReport
from .selection import ModelDecision


def _round_std_error(std_error: float) -> tuple[float, int]:
    """Round a standard error to one or two significant figures.

    Args:
        std_error (float): Standard error of an estimate.

    Returns:
        tuple[float, int]: Rounded standard error and decimal places used.

    Raises:
        ValueError: If the standard error is non-finite or non-positive.

    Note:
        Use one significant figure by default and two when the leading digit
        is 1.
    """
    se = float(std_error)
    if not np.isfinite(se) or se <= 0:
        raise ValueError(f"Standard error must be finite and > 0, got {std_error!r}")

    exponent = int(np.floor(np.log10(abs(se))))
    leading = abs(se) / (10**exponent)
    sig_figs = 2 if 1.0 <= leading < 2.0 else 1
    ndigits = sig_figs - 1 - exponent
    return float(round(abs(se), ndigits)), int(max(0, ndigits))


def std_error_decimal_places(std_error: float) -> int:
    """Return decimal places implied by rounding a standard error.

    Args:
        std_error (float): Standard error of a reported estimate (same unit as
            the estimate).

    Returns:
        int: Number of decimal places that the paired estimate should use.
    """
    rounded, ndigits = _round_std_error(std_error)
    if ndigits <= 0:
        return 0
    txt = f"{rounded:.12f}".rstrip("0")
    if "." not in txt:
        return 0
    return len(txt.split(".", 1)[1])


def format_estimate(value: float, std_error: float) -> str:
    """Format an estimate using the precision implied by its standard error.

    Args:
        value (float): Estimate to format.
        std_error (float): Standard error used to infer decimal places.

    Returns:
        str: Estimate rounded to the standard-error-implied precision, or
        three decimals when the standard error is unusable.
    """
    se = float(std_error)
    if not np.isfinite(se) or se <= 0:
        return f"{float(value):.3f}"
    dp = std_error_decimal_places(se)
    return f"{float(value):.{dp}f}"


def format_pvalue(value: float) -> str:
    """Format p-values consistently for tables and plot annotations."""
    if not np.isfinite(value):
        return "NaN"
    if value < 1e-3:
        return "<0.001"
    return f"{value:.3f}"


def add_formatted_columns(
    df: pd.DataFrame,
    estimate_col: str = "estimate",
    std_error_col: str = "std_error",
    pvalue_cols: Iterable[str] = ("p_value",),
    suffix: str = " (reported)",
) -> pd.DataFrame:
    """Add reporting-ready string columns next to numeric result columns.

    Args:
        df (pandas.DataFrame): Numeric result table.
        estimate_col (str): Column holding estimates.
        std_error_col (str): Column holding standard errors.
        pvalue_cols (Iterable[str]): Columns to render with ``format_pvalue``.
        suffix (str, optional): Suffix appended to generated columns.

    Returns:
        pandas.DataFrame: Copy of ``df`` with formatted string columns added.

    Raises:
        KeyError: If ``estimate_col`` or ``std_error_col`` is absent.

    Note:
        Original numeric columns are preserved for downstream computation.
    """
    for col in (estimate_col, std_error_col):
        if col not in df.columns:
            raise KeyError(f"Missing column '{col}' for reporting format.")

    out = df.copy()
    estimates = pd.to_numeric(out[estimate_col], errors="coerce")
    ses = pd.to_numeric(out[std_error_col], errors="coerce")
    out[f"{estimate_col}{suffix}"] = [
        format_estimate(v, s) if np.isfinite(v) else "" for v, s in zip(estimates, ses)
    ]
    out[f"{std_error_col}{suffix}"] = [
        (
            f"{_round_std_error(s)[0]:.{std_error_decimal_places(s)}f}"
            if (np.isfinite(s) and s > 0)
            else ""
        )
        for s in ses
    ]
    for col in pvalue_cols:
        if col in out.columns:
            pvalues = pd.to_numeric(out[col], errors="coerce")
            out[f"{col}{suffix}"] = [format_pvalue(float(p)) for p in pvalues]
    return out


def decision_table(decision: ModelDecision) -> pd.DataFrame:
    """One row per violation (or a single row when nothing was violated)."""
    base = {
        "decision": decision.choice.name,
        "rule": decision.rule,
        "justification": decision.justification,
    }
    if not decision.violations:
        return pd.DataFrame(
            [
                {
                    **base,
                    "bound": "",
                    "kind": "",
                    "groups": "",
                    "value": math.nan,
                    "threshold": math.nan,
                }
            ]
        )
    rows = []
    for item in decision.violations:
        rows.append(
            {
                **base,
                "bound": item["bound"],
                "kind": item["kind"],
                "groups": " vs ".join(item["groups"]),
                "value": item["value"],
                "threshold": item["threshold"],
            }
        )
    return pd.DataFrame(rows)


def print_report(
    report: CeilingFloorReport,
    decision: ModelDecision,
    tables: dict[str, pd.DataFrame] | None = None,
) -> None:
    """Print the group summary, decision and any model tables."""
    print("\nCeiling/floor screen by group:")
    for _, row in report.summary.iterrows():
        if int(row["n"]) == 0:
            print(f" - [{row['bound']}] {row['group']}: n=0 (no observed scores)")
            continue
        print(
            f" - [{row['bound']}] {row['group']}: n={int(row['n'])}, "
            f"at bound={row['p_at_bound']:.1%}, near bound={row['p_near_bound']:.1%}"
        )

    print(f"\nDecision: {decision.choice.name}")
    print(f"  {decision.justification}")

    for name, table in (tables or {}).items():
        if table is None or table.empty:
            continue
        print(f"\n{name}:")
        print(table.to_string(index=False, float_format=lambda v: f"{v:.4f}"))
