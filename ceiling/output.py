"""Write analysis tables to reproducible CSV files.

This module is the output boundary between in-memory analysis and the
tabular artifacts of a run.
"""

from __future__ import annotations

import os
from typing import Dict, Mapping

import pandas as pd

from .reporting import add_formatted_columns

TABLE_FILES = {
    "group_summary": "group_summary.csv",
    "pre_score_summary": "pre_score_summary.csv",
    "decision": "decision.csv",
    "model_summary": "model_summary.csv",
    "coefficients": "coefficients.csv",
    "confidence_intervals": "confidence_intervals.csv",
    "type3": "type3.csv",
    "effect_sizes": "effect_sizes.csv",
    "pairwise": "pairwise.csv",
    "linear_coefficients": "linear_coefficients.csv",
    "linear_type3": "linear_type3.csv",
    "residuals": "residuals.csv",
    "qq_pairs": "qq_pairs.csv",
}


def _report_ready(table: pd.DataFrame) -> pd.DataFrame:
    if {"estimate", "std_error"} <= set(table.columns):
        return add_formatted_columns(table)
    return table


def save_tables_to_csv(
    tables: Mapping[str, pd.DataFrame], output_dir: str = "output"
) -> Dict[str, str]:
    """Save every non-empty result table to its CSV file.

    Args:
        tables (Mapping[str, pandas.DataFrame]): Result tables keyed by the
            names in ``TABLE_FILES``; unknown keys are written as
            ``<key>.csv``.
        output_dir (str): Directory where CSV outputs are written.

    Returns:
        dict[str, str]: Written path per table name.

    Note:
        Tables with ``estimate`` and ``std_error`` columns gain formatted
        ``(reported)`` columns; numeric columns are kept unchanged.
    """
    os.makedirs(output_dir, exist_ok=True)
    paths: Dict[str, str] = {}
    for name, table in tables.items():
        if table is None:
            continue
        path = os.path.join(output_dir, TABLE_FILES.get(name, f"{name}.csv"))
        _report_ready(table).to_csv(path, index=False)
        paths[name] = path
        print(f"Saved {name.replace('_', ' ')} to {path}")
    return paths
