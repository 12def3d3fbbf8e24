"""Response-scale residuals for checking a fitted Tobit model.

Fitted values are expected observed scores under censoring, not the latent
linear predictor. Residuals are therefore bounded above by
``upper_bound - fitted`` and below by ``lower_bound - fitted``; points lying
on those lines in a residual-vs-fitted plot are the censored observations
and are expected, not a sign of heteroscedasticity.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

import numpy as np
import pandas as pd
from scipy import stats as scipy_stats

from .stats.tobit import CensoredFit


@dataclass(frozen=True)
class ResidualSet:
    """Aligned fitted values and residuals for one fitted model."""

    row_index: np.ndarray
    observed: np.ndarray
    fitted: np.ndarray
    residual: np.ndarray
    lower_bound: float
    upper_bound: float

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(
            {
                "row": self.row_index,
                "observed": self.observed,
                "fitted": self.fitted,
                "residual": self.residual,
                "max_residual": self.upper_bound - self.fitted,
                "min_residual": self.lower_bound - self.fitted,
            }
        )


def compute_residuals(fit: CensoredFit) -> ResidualSet:
    """Compute censored-expectation fitted values and residuals per row."""
    observed = np.asarray(fit.y, dtype=float)
    fitted = fit.expected_response()
    residual = observed - fitted
    if fit.row_index:
        index = np.asarray(fit.row_index)
    else:
        index = np.arange(len(observed))
    return ResidualSet(
        row_index=index,
        observed=observed,
        fitted=fitted,
        residual=residual,
        lower_bound=fit.lower_bound,
        upper_bound=fit.upper_bound,
    )


def normal_quantile_pairs(residuals: ResidualSet | np.ndarray) -> pd.DataFrame:
    """Sorted residuals against theoretical normal quantiles.

    Plotting positions follow ``(i - a) / (n + 1 - 2a)`` with ``a = 3/8``
    for ``n <= 10`` and ``a = 1/2`` otherwise.
    """
    values = residuals.residual if isinstance(residuals, ResidualSet) else residuals
    values = np.sort(np.asarray(values, dtype=float))
    n = len(values)
    if n == 0:
        return pd.DataFrame(columns=["theoretical", "sample"])
    a = 3.0 / 8.0 if n <= 10 else 0.5
    positions = (np.arange(1, n + 1) - a) / (n + 1 - 2 * a)
    return pd.DataFrame(
        {
            "theoretical": scipy_stats.norm.ppf(positions),
            "sample": values,
        }
    )


def residuals_vs_fitted(residuals: ResidualSet) -> pd.DataFrame:
    """Fitted/residual pairs, flagging rows pinned to a censoring boundary."""
    frame = residuals.to_frame()
    frame["at_upper_bound"] = np.isclose(
        frame["residual"], frame["max_residual"], atol=1e-9, rtol=0.0
    )
    frame["at_lower_bound"] = np.isclose(
        frame["residual"], frame["min_residual"], atol=1e-9, rtol=0.0
    )
    return frame


def qq_correlation(residuals: ResidualSet) -> float:
    """Correlation between sorted residuals and normal quantiles."""
    pairs = normal_quantile_pairs(residuals)
    if len(pairs) < 3:
        return math.nan
    return float(np.corrcoef(pairs["theoretical"], pairs["sample"])[0, 1])
