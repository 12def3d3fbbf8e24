import logging

import pandas as pd
import pytest

from conftest import scores_with_ceiling_counts, simulate_scores

from ceiling.errors import ModelingGateError
from ceiling.pipeline import main, run_analysis
from ceiling.schema import AnalysisConfig
from ceiling.selection import ModelChoice


def _write(frame, tmp_path, name="scores.csv"):
    path = tmp_path / name
    frame.to_csv(path, index=False)
    return path


def test_censored_branch_end_to_end(tmp_path):
    frame = simulate_scores(n_per_group=80, upper=72.0)
    path = _write(frame, tmp_path)
    outdir = tmp_path / "out"
    result = run_analysis(path, AnalysisConfig(lower_bound=0, upper_bound=72), outdir)

    assert result.decision.choice is ModelChoice.USE_CENSORED
    assert result.linear_fit is None
    assert result.censored_fit is not None
    for name in (
        "group_summary",
        "pre_score_summary",
        "decision",
        "model_summary",
        "coefficients",
        "confidence_intervals",
        "type3",
        "effect_sizes",
        "pairwise",
        "residuals",
        "qq_pairs",
    ):
        assert (outdir / f"{name}.csv").exists(), name
    assert (outdir / "score_distributions.png").exists()
    assert (outdir / "residual_qq.png").exists()
    assert (outdir / "residuals_vs_fitted.png").exists()

    pairwise = pd.read_csv(outdir / "pairwise.csv")
    assert pairwise["comparison"].tolist() == ["B - A", "C - B"]


def test_linear_branch_also_reports_tobit_by_default(tmp_path):
    frame = simulate_scores(n_per_group=40, upper=1000.0)
    path = _write(frame, tmp_path)
    config = AnalysisConfig(lower_bound=0, upper_bound=1000)
    result = run_analysis(path, config, tmp_path / "out", make_plots=False)

    assert result.decision.choice is ModelChoice.USE_LINEAR
    assert result.linear_fit is not None
    assert result.censored_fit is not None
    assert "linear_type3" in result.output_paths
    assert result.figures == []


def test_linear_branch_can_skip_tobit(tmp_path):
    frame = simulate_scores(n_per_group=40, upper=1000.0)
    path = _write(frame, tmp_path)
    config = AnalysisConfig(
        lower_bound=0, upper_bound=1000, fit_censored_when_linear_ok=False
    )
    result = run_analysis(path, config, tmp_path / "out", make_plots=False)
    assert result.censored_fit is None
    assert "coefficients" not in result.tables


def test_no_valid_model_writes_decision_then_raises(tmp_path):
    frame = scores_with_ceiling_counts({"A": 10, "B": 80})
    path = _write(frame, tmp_path)
    outdir = tmp_path / "out"
    with pytest.raises(ModelingGateError):
        run_analysis(path, AnalysisConfig(), outdir, make_plots=False)
    decision = pd.read_csv(outdir / "decision.csv")
    assert decision.loc[0, "decision"] == "NO_VALID_MODEL"
    assert (outdir / "group_summary.csv").exists()
    assert not (outdir / "coefficients.csv").exists()


def test_cli_returns_zero_and_respects_options(tmp_path, capsys):
    frame = simulate_scores(n_per_group=60, upper=72.0).rename(
        columns={"group": "arm", "post_score": "final"}
    )
    path = _write(frame, tmp_path)
    outdir = tmp_path / "cli"
    code = main(
        [
            "--input",
            str(path),
            "--lower",
            "0",
            "--upper",
            "72",
            "--group-col",
            "arm",
            "--post-col",
            "final",
            "--levels",
            "C,B,A",
            "--contrast",
            "sdif",
            "--type3",
            "lr",
            "--outdir",
            str(outdir),
            "--no-plots",
        ]
    )
    assert code == 0
    assert "Decision:" in capsys.readouterr().out
    coefficients = pd.read_csv(outdir / "coefficients.csv")
    assert "group[B-C]" in coefficients["term"].tolist()
    type3 = pd.read_csv(outdir / "type3.csv")
    assert (type3["method"] == "Likelihood ratio").all()


def test_cli_returns_one_when_no_model_is_valid(tmp_path, caplog):
    path = _write(scores_with_ceiling_counts({"A": 5, "B": 90}), tmp_path)
    with caplog.at_level(logging.ERROR):
        code = main(
            [
                "--input",
                str(path),
                "--lower",
                "0",
                "--upper",
                "100",
                "--outdir",
                str(tmp_path / "out"),
                "--no-plots",
            ]
        )
    assert code == 1
    assert "ModelingGateError" in caplog.text


def test_cli_returns_one_for_out_of_range_scores(tmp_path):
    frame = pd.DataFrame(
        {"group": ["A", "B"], "pre_score": [1.0, 2.0], "post_score": [50.0, 120.0]}
    )
    path = _write(frame, tmp_path)
    code = main(
        [
            "--input",
            str(path),
            "--lower",
            "0",
            "--upper",
            "100",
            "--outdir",
            str(tmp_path / "out"),
            "--no-plots",
        ]
    )
    assert code == 1


def test_cli_rejects_inverted_bounds(tmp_path):
    path = _write(simulate_scores(n_per_group=5), tmp_path)
    with pytest.raises(SystemExit):
        main(["--input", str(path), "--lower", "10", "--upper", "0"])


def test_cli_returns_one_when_linear_model_has_no_residual_df(tmp_path):
    frame = pd.DataFrame(
        {
            "group": ["A", "A", "B", "C"],
            "pre_score": [10.0, 20.0, 30.0, 40.0],
            "post_score": [50.0, 55.0, 60.0, 65.0],
        }
    )
    path = _write(frame, tmp_path)
    code = main(
        [
            "--input",
            str(path),
            "--lower",
            "0",
            "--upper",
            "100",
            "--outdir",
            str(tmp_path / "out"),
            "--no-plots",
        ]
    )
    assert code == 1
