"""
Statistical models for bounded score outcomes.

This subpackage holds the numerical core of the analysis. All functions
operate on data frames, arrays and primitive types; nothing here reads
files or draws figures.

Modules:
    contrasts:
        Model specifications, treatment and successive-difference coding of
        the group factor, and design-matrix construction.

    tobit:
        Doubly censored normal (Tobit) regression fitted by Newton-Raphson
        maximum likelihood, plus the censored expectation used for fitted
        values.

    linear:
        Ordinary least squares ANCOVA with coefficient and Type III F tables,
        used when the ceiling/floor screen allows a linear model.

Design Principle:
    This subpackage has no dependencies on plotting/ or the pipeline. It can
    be tested independently.
"""

from .contrasts import (
    INTERCEPT,
    Design,
    ModelSpec,
    build_design,
    contrast_matrix,
    sdif_contrast,
    treatment_contrast,
)
from .linear import (
    LinearFit,
    fit_linear_model,
    linear_coefficient_table,
    linear_type3_table,
)
from .tobit import (
    CensoredFit,
    censored_loglik,
    censored_mean,
    fit_censored_regression,
    refit_censored,
)

__all__ = [
    "INTERCEPT",
    "Design",
    "ModelSpec",
    "build_design",
    "contrast_matrix",
    "sdif_contrast",
    "treatment_contrast",
    "LinearFit",
    "fit_linear_model",
    "linear_coefficient_table",
    "linear_type3_table",
    "CensoredFit",
    "censored_loglik",
    "censored_mean",
    "fit_censored_regression",
    "refit_censored",
]
