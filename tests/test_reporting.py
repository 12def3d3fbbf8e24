import math

import numpy as np
import pandas as pd
import pytest

from ceiling.diagnostics import evaluate_30_20_rule, evaluate_70_rule
from ceiling.output import save_tables_to_csv
from ceiling.reporting import (
    add_formatted_columns,
    decision_table,
    format_estimate,
    format_pvalue,
    std_error_decimal_places,
)
from ceiling.selection import select_model


@pytest.mark.parametrize(
    "se,expected",
    [(0.023, 2), (0.0153, 3), (1.4, 1), (3.0, 0), (26.0, 0)],
)
def test_std_error_decimal_places(se, expected):
    assert std_error_decimal_places(se) == expected


def test_format_estimate_uses_standard_error_precision():
    assert format_estimate(12.3456, 0.023) == "12.35"
    assert format_estimate(12.3456, 0.0153) == "12.346"
    assert format_estimate(12.3456, float("nan")) == "12.346"


def test_format_pvalue():
    assert format_pvalue(0.0004) == "<0.001"
    assert format_pvalue(0.04567) == "0.046"
    assert format_pvalue(float("nan")) == "NaN"


def test_add_formatted_columns_keeps_numeric_columns():
    df = pd.DataFrame(
        {"term": ["a", "b"], "estimate": [1.23456, 2.0], "std_error": [0.012, np.nan]}
    )
    df["p_value"] = [0.5, 1e-5]
    out = add_formatted_columns(df)
    assert out["estimate"].tolist() == [1.23456, 2.0]
    assert out["estimate (reported)"].tolist() == ["1.235", "2.000"]
    assert out["std_error (reported)"].tolist() == ["0.012", ""]
    assert out["p_value (reported)"].tolist() == ["0.500", "<0.001"]


def test_add_formatted_columns_requires_columns():
    with pytest.raises(KeyError):
        add_formatted_columns(pd.DataFrame({"estimate": [1.0]}))


def test_decision_table_lists_violations():
    props = {"A": 0.19, "B": 0.33, "C": 0.49}
    decision = select_model(evaluate_30_20_rule(props), evaluate_70_rule(props))
    table = decision_table(decision)
    assert (table["decision"] == "USE_CENSORED").all()
    assert table["groups"].tolist() == ["B", "C", "A vs C"]


def test_decision_table_without_violations_has_one_row():
    props = {"A": 0.1, "B": 0.1}
    decision = select_model(evaluate_30_20_rule(props), evaluate_70_rule(props))
    table = decision_table(decision)
    assert len(table) == 1
    assert math.isnan(table.loc[0, "value"])


def test_save_tables_to_csv(tmp_path):
    tables = {
        "coefficients": pd.DataFrame(
            {"term": ["x"], "estimate": [1.5], "std_error": [0.2], "p_value": [0.01]}
        ),
        "group_summary": pd.DataFrame({"group": ["A"], "n": [3]}),
        "extra_table": pd.DataFrame({"value": [1]}),
        "skipped": None,
    }
    paths = save_tables_to_csv(tables, output_dir=str(tmp_path))
    assert set(paths) == {"coefficients", "group_summary", "extra_table"}
    assert paths["extra_table"].endswith("extra_table.csv")

    written = pd.read_csv(paths["coefficients"])
    assert "estimate (reported)" in written.columns
    assert written.loc[0, "estimate (reported)"] == pytest.approx(1.5)
    summary = pd.read_csv(tmp_path / "group_summary.csv")
    assert list(summary.columns) == ["group", "n"]
