"""
A Python package for screening bounded test scores for ceiling and floor
effects and modelling them with censored (Tobit) regression.

Modules:
    - data_processing: Loads and validates grouped pre/post score tables.
    - diagnostics: Per-group bound summaries and the 30-20 and 70% rules.
    - selection: Chooses between a linear model, a censored model, or neither.
    - stats: Contrast coding, Tobit maximum likelihood and OLS ANCOVA.
    - inference: Confidence intervals, Type III tests, effect sizes and
      pairwise comparisons for a Tobit fit.
    - residuals: Response-scale residuals and normal Q-Q coordinates.
    - plotting: Score distribution and residual diagnostic figures.
    - pipeline: End-to-end run and command-line entry point.
"""

__version__ = "1.0.0"

from .data_processing import ScoreDataset, load_dataset, load_score_data
from .diagnostics import (
    CeilingFloorReport,
    RuleOutcome,
    compute_group_summary,
    evaluate_30_20_rule,
    evaluate_70_rule,
    run_ceiling_floor_diagnostics,
)
from .errors import (
    CensoringWarning,
    ConvergenceError,
    DataError,
    EmptyGroupWarning,
    ModelingGateError,
)
from .inference import (
    coefficient_table,
    confidence_intervals,
    effect_sizes,
    pairwise_comparisons,
    refit_with_contrasts,
    type3_table,
)
from .pipeline import AnalysisResult, run_analysis
from .residuals import ResidualSet, compute_residuals, normal_quantile_pairs
from .schema import AnalysisConfig, PlotConfig
from .selection import ModelChoice, ModelDecision, select_model
from .stats import CensoredFit, ModelSpec, fit_censored_regression, fit_linear_model

__all__ = [
    # Data processing
    "ScoreDataset",
    "load_dataset",
    "load_score_data",
    # Screening and selection
    "CeilingFloorReport",
    "RuleOutcome",
    "compute_group_summary",
    "evaluate_30_20_rule",
    "evaluate_70_rule",
    "run_ceiling_floor_diagnostics",
    "ModelChoice",
    "ModelDecision",
    "select_model",
    # Models
    "CensoredFit",
    "ModelSpec",
    "fit_censored_regression",
    "fit_linear_model",
    # Inference and residuals
    "coefficient_table",
    "confidence_intervals",
    "effect_sizes",
    "pairwise_comparisons",
    "refit_with_contrasts",
    "type3_table",
    "ResidualSet",
    "compute_residuals",
    "normal_quantile_pairs",
    # Pipeline and configuration
    "AnalysisConfig",
    "AnalysisResult",
    "PlotConfig",
    "run_analysis",
    # Errors
    "CensoringWarning",
    "ConvergenceError",
    "DataError",
    "EmptyGroupWarning",
    "ModelingGateError",
]
