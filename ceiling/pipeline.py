"""End-to-end ceiling/floor analysis: screen, decide, fit, diagnose, report."""

from __future__ import annotations

import argparse
import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Sequence

import pandas as pd

from .data_processing import ScoreDataset, load_dataset
from .diagnostics import (
    CeilingFloorReport,
    compute_group_summary,
    run_ceiling_floor_diagnostics,
)
from .errors import ConvergenceError, DataError, ModelingGateError
from .inference import (
    coefficient_table,
    confidence_intervals,
    effect_sizes,
    pairwise_comparisons,
    type3_table,
)
from .output import save_tables_to_csv
from .plotting import plot_qq, plot_residuals_vs_fitted, plot_score_distributions
from .reporting import decision_table, print_report
from .residuals import (
    ResidualSet,
    compute_residuals,
    normal_quantile_pairs,
    qq_correlation,
    residuals_vs_fitted,
)
from .schema import (
    COLUMNS,
    CONTRASTS,
    SIDES,
    TYPE3_METHODS,
    AnalysisConfig,
    PlotConfig,
)
from .selection import ModelChoice, ModelDecision, require_valid_model, select_model
from .stats.contrasts import ModelSpec
from .stats.linear import (
    LinearFit,
    fit_linear_model,
    linear_coefficient_table,
    linear_type3_table,
)
from .stats.tobit import CensoredFit, fit_censored_regression

DEFAULT_OUTPUT_DIR = Path("output") / "ceiling_analysis"


@dataclass
class AnalysisResult:
    """Everything produced by one pipeline run."""

    dataset: ScoreDataset
    report: CeilingFloorReport
    decision: ModelDecision
    censored_fit: CensoredFit | None = None
    linear_fit: LinearFit | None = None
    residuals: ResidualSet | None = None
    tables: dict[str, pd.DataFrame] = field(default_factory=dict)
    output_paths: dict[str, str] = field(default_factory=dict)
    figures: list[str] = field(default_factory=list)


def model_spec_for(dataset: ScoreDataset, contrast: str = "treatment") -> ModelSpec:
    """Post-score ~ group + pre-score, with the dataset's level order."""
    return ModelSpec(
        response=COLUMNS.post_score,
        factor=COLUMNS.group,
        levels=dataset.levels,
        contrast=contrast,
        covariates=(COLUMNS.pre_score,),
    )


def _censored_tables(
    fit: CensoredFit, frame: pd.DataFrame, config: AnalysisConfig
) -> tuple[dict[str, pd.DataFrame], ResidualSet]:
    residuals = compute_residuals(fit)
    tables = {
        "model_summary": pd.DataFrame(
            [
                {
                    "contrast": fit.contrast,
                    "n_obs": fit.n_obs,
                    "n_left_censored": fit.n_left,
                    "n_uncensored": fit.n_uncensored,
                    "n_right_censored": fit.n_right,
                    "iterations": fit.iterations,
                    "loglik": fit.loglik,
                    "sigma": fit.sigma,
                }
            ]
        ),
        "coefficients": coefficient_table(fit),
        "confidence_intervals": confidence_intervals(fit, config.confidence_level),
        "type3": type3_table(
            fit, method=config.type3_method, max_iter=config.max_iter, tol=config.tol
        ),
        "effect_sizes": effect_sizes(fit, config.confidence_level),
        "pairwise": pairwise_comparisons(
            fit, frame, adjacent_only=True, max_iter=config.max_iter, tol=config.tol
        ),
        "residuals": residuals_vs_fitted(residuals),
        "qq_pairs": normal_quantile_pairs(residuals),
    }
    logging.info("Residual Q-Q correlation: %.4f", qq_correlation(residuals))
    return tables, residuals


def run_analysis(
    input_path: str | Path,
    config: AnalysisConfig,
    outdir: str | Path = DEFAULT_OUTPUT_DIR,
    levels: Sequence[str] | None = None,
    reference: str | None = None,
    group_col: str | None = None,
    pre_col: str | None = None,
    post_col: str | None = None,
    plot_config: PlotConfig | None = None,
    make_plots: bool = True,
) -> AnalysisResult:
    """Run the full analysis on one score file.

    Raises:
        DataError: Invalid input table.
        ModelingGateError: The 70% rule failed; the group summary and
            decision tables are still written before raising.
        ConvergenceError: The Tobit optimizer failed.
    """
    output_dir = Path(outdir)
    output_dir.mkdir(parents=True, exist_ok=True)
    start_time = time.time()

    dataset = load_dataset(
        input_path,
        lower_bound=config.lower_bound,
        upper_bound=config.upper_bound,
        levels=levels,
        reference=reference,
        group_col=group_col,
        pre_col=pre_col,
        post_col=post_col,
    )

    report = run_ceiling_floor_diagnostics(dataset, config)
    decision = select_model(report.rule_30_20, report.rule_70)
    logging.info("Model decision: %s", decision.choice.name)

    result = AnalysisResult(dataset=dataset, report=report, decision=decision)
    result.tables["group_summary"] = report.summary
    result.tables["pre_score_summary"] = pd.concat(
        [
            compute_group_summary(
                dataset,
                side=side,
                near_width=config.near_width,
                column=COLUMNS.pre_score,
            )
            for side in config.sides
        ],
        ignore_index=True,
    )
    result.tables["decision"] = decision_table(decision)

    plot_config = plot_config or PlotConfig()
    if make_plots:
        result.figures.append(
            plot_score_distributions(dataset, str(output_dir), plot_config)
        )

    try:
        require_valid_model(decision)
    except ModelingGateError:
        logging.error("Stopping before model fitting: %s", decision.justification)
        result.output_paths = save_tables_to_csv(result.tables, str(output_dir))
        raise

    frame = dataset.complete_cases()
    spec = model_spec_for(dataset, config.contrast)
    logging.info("Fitting on %d complete rows", len(frame))

    if decision.choice is ModelChoice.USE_LINEAR:
        step_start = time.time()
        result.linear_fit = fit_linear_model(frame, spec)
        result.tables["linear_coefficients"] = linear_coefficient_table(
            result.linear_fit, config.confidence_level
        )
        result.tables["linear_type3"] = linear_type3_table(result.linear_fit)
        logging.info("Linear model completed in %.2f seconds", time.time() - step_start)

    if (
        decision.choice is ModelChoice.USE_CENSORED
        or config.fit_censored_when_linear_ok
    ):
        step_start = time.time()
        result.censored_fit = fit_censored_regression(
            frame,
            spec,
            config.lower_bound,
            config.upper_bound,
            max_iter=config.max_iter,
            tol=config.tol,
        )
        tables, residuals = _censored_tables(result.censored_fit, frame, config)
        result.tables.update(tables)
        result.residuals = residuals
        logging.info("Tobit model completed in %.2f seconds", time.time() - step_start)
        if make_plots:
            qq_path = plot_qq(residuals, str(output_dir), plot_config)
            if qq_path is not None:
                result.figures.append(qq_path)
            result.figures.append(
                plot_residuals_vs_fitted(residuals, str(output_dir), plot_config)
            )

    result.output_paths = save_tables_to_csv(result.tables, str(output_dir))
    logging.info("Total execution time: %.2f seconds", time.time() - start_time)
    return result


def _parse_levels(text: str | None) -> list[str] | None:
    if text is None:
        return None
    return [part.strip() for part in text.split(",") if part.strip()]


def _build_arg_parser() -> argparse.ArgumentParser:
    """Build command-line parser for module execution."""
    parser = argparse.ArgumentParser(
        description="Ceiling/floor screening and Tobit analysis of bounded scores."
    )
    parser.add_argument("--input", required=True, help="Path to input data file.")
    parser.add_argument(
        "--lower", type=float, required=True, help="Lowest attainable score."
    )
    parser.add_argument(
        "--upper", type=float, required=True, help="Highest attainable score."
    )
    parser.add_argument(
        "--side",
        choices=SIDES,
        default="ceiling",
        help="Bound(s) to screen (default: ceiling).",
    )
    parser.add_argument(
        "--near-width",
        type=float,
        default=1.0,
        help="Window below/above the bound counted as 'near' (default: 1).",
    )
    parser.add_argument("--group-col", default=None, help="Group column name.")
    parser.add_argument("--pre-col", default=None, help="Pre-score column name.")
    parser.add_argument("--post-col", default=None, help="Post-score column name.")
    parser.add_argument(
        "--levels",
        default=None,
        help="Comma-separated group levels in order; the first is the reference.",
    )
    parser.add_argument(
        "--reference", default=None, help="Reference level (moved to the front)."
    )
    parser.add_argument(
        "--contrast",
        choices=CONTRASTS,
        default="treatment",
        help="Coding of the group factor (default: treatment).",
    )
    parser.add_argument(
        "--confidence",
        type=float,
        default=0.95,
        help="Confidence level for intervals (default: 0.95).",
    )
    parser.add_argument(
        "--type3",
        choices=TYPE3_METHODS,
        default="wald",
        help="Type III test for the Tobit model (default: wald).",
    )
    parser.add_argument(
        "--max-iter", type=int, default=100, help="Optimizer iteration budget."
    )
    parser.add_argument(
        "--outdir",
        default=str(DEFAULT_OUTPUT_DIR),
        help=f"Output directory (default: {DEFAULT_OUTPUT_DIR}).",
    )
    parser.add_argument(
        "--seed", type=int, default=PlotConfig().seed, help="Jitter seed."
    )
    parser.add_argument("--no-plots", action="store_true", help="Skip figures.")
    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entrypoint for running the ceiling/floor analysis."""
    parser = _build_arg_parser()
    args = parser.parse_args(argv)

    try:
        config = AnalysisConfig(
            lower_bound=args.lower,
            upper_bound=args.upper,
            near_width=args.near_width,
            side=args.side,
            confidence_level=args.confidence,
            contrast=args.contrast,
            max_iter=args.max_iter,
            type3_method=args.type3,
        )
    except ValueError as exc:
        parser.error(str(exc))

    try:
        result = run_analysis(
            input_path=args.input,
            config=config,
            outdir=args.outdir,
            levels=_parse_levels(args.levels),
            reference=args.reference,
            group_col=args.group_col,
            pre_col=args.pre_col,
            post_col=args.post_col,
            plot_config=PlotConfig(seed=args.seed),
            make_plots=not args.no_plots,
        )
    except (DataError, ConvergenceError, ModelingGateError) as exc:
        logging.error("%s: %s", type(exc).__name__, exc)
        return 1

    shown: dict[str, Any] = {
        key: result.tables.get(key)
        for key in (
            "linear_type3",
            "linear_coefficients",
            "coefficients",
            "confidence_intervals",
            "type3",
            "effect_sizes",
            "pairwise",
        )
    }
    print_report(result.report, result.decision, shown)
    print(f"\nWrote ceiling/floor analysis outputs to {args.outdir}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
