"""Provide ordinary least-squares ANOVA/ANCOVA for unbiased score data.

This module supports:
- fitting the group + covariate linear model by least squares,
- t-based coefficient tables and confidence intervals, and
- Type III F-tests that compare the full model with the model lacking each
  term, so every term is tested controlling for all the others.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field

import numpy as np
import pandas as pd
from scipy.stats import f as f_dist
from scipy.stats import t as student_t

from ..errors import DataError
from .contrasts import Design, ModelSpec, build_design


@dataclass(frozen=True)
class LinearFit:
    """Container for least-squares fit outputs."""

    spec: ModelSpec
    columns: tuple[str, ...]
    beta: np.ndarray
    covariance: np.ndarray
    yhat: np.ndarray
    resid: np.ndarray
    ss_res: float
    df_res: int
    r2: float
    design: Design
    term_columns: dict[str, tuple[int, ...]] = field(default_factory=dict)

    @property
    def std_errors(self) -> np.ndarray:
        return np.sqrt(np.clip(np.diag(self.covariance), 0.0, None))

    @property
    def mse(self) -> float:
        return self.ss_res / self.df_res if self.df_res > 0 else math.nan


def _least_squares(X: np.ndarray, y: np.ndarray) -> tuple[np.ndarray, float]:
    beta, *_ = np.linalg.lstsq(X, y, rcond=None)
    resid = y - X @ beta
    return beta, float(np.sum(np.square(resid)))


def fit_linear_model(frame: pd.DataFrame, spec: ModelSpec) -> LinearFit:
    """Fit ``spec`` by ordinary least squares.

    Args:
        frame (pandas.DataFrame): Complete rows with the response, factor and
            covariate columns named in ``spec``.
        spec (ModelSpec): Structured model description.

    Returns:
        LinearFit: Estimates, covariance ``MSE * (X'X)^-1`` and residuals.

    Raises:
        DataError: If the design is rank-deficient (raised by ``build_design``)
            or leaves no residual degrees of freedom.
    """
    design = build_design(frame, spec)
    X, y = design.X, design.y
    n, p = X.shape
    df_res = n - p
    if df_res <= 0:
        raise DataError(
            f"Insufficient data for regression: {n} rows for {p} parameters."
        )

    beta, ss_res = _least_squares(X, y)
    yhat = X @ beta
    resid = y - yhat
    mse = ss_res / df_res
    covariance = mse * np.linalg.inv(X.T @ X)

    ss_tot = float(np.sum(np.square(y - np.mean(y))))
    r2 = float(1.0 - ss_res / ss_tot) if ss_tot > 0 else math.nan

    logging.info(
        "OLS fit (%s contrasts): SS_res=%.4f, df_res=%d, R2=%.4f",
        spec.contrast,
        ss_res,
        df_res,
        r2,
    )
    return LinearFit(
        spec=spec,
        columns=design.columns,
        beta=beta,
        covariance=covariance,
        yhat=yhat,
        resid=resid,
        ss_res=ss_res,
        df_res=int(df_res),
        r2=r2,
        design=design,
        term_columns=dict(design.term_columns),
    )


def linear_coefficient_table(
    fit: LinearFit, confidence_level: float = 0.95
) -> pd.DataFrame:
    """Estimates, standard errors, t statistics, p-values and t-based CIs."""
    se = fit.std_errors
    with np.errstate(divide="ignore", invalid="ignore"):
        t_stat = np.where(se > 0, fit.beta / se, np.nan)
    pvalue = 2.0 * student_t.sf(np.abs(t_stat), fit.df_res)
    t_crit = float(student_t.ppf(0.5 + confidence_level / 2.0, fit.df_res))
    return pd.DataFrame(
        {
            "term": list(fit.columns),
            "estimate": fit.beta,
            "std_error": se,
            "statistic": t_stat,
            "p_value": pvalue,
            "ci_low": fit.beta - t_crit * se,
            "ci_high": fit.beta + t_crit * se,
        }
    )


def linear_type3_table(fit: LinearFit) -> pd.DataFrame:
    """Run one extra-sum-of-squares F-test per term (Type III)."""
    rows = []
    for term in fit.term_columns:
        reduced = fit.design.drop_term(term)
        _, ss_reduced = _least_squares(reduced.X, reduced.y)
        df_term = len(fit.term_columns[term])
        ss_term = max(ss_reduced - fit.ss_res, 0.0)
        mse = fit.mse
        if df_term > 0 and mse > 0:
            f_stat = float((ss_term / df_term) / mse)
            pvalue = float(f_dist.sf(f_stat, df_term, fit.df_res))
        else:
            f_stat = math.nan
            pvalue = math.nan
        rows.append(
            {
                "term": term,
                "sum_sq": ss_term,
                "df": df_term,
                "statistic": f_stat,
                "p_value": pvalue,
            }
        )
    rows.append(
        {
            "term": "Residuals",
            "sum_sq": fit.ss_res,
            "df": fit.df_res,
            "statistic": math.nan,
            "p_value": math.nan,
        }
    )
    return pd.DataFrame(rows)
