"""Fit Tobit (doubly censored normal) regression by maximum likelihood.

The latent score follows ``Normal(X @ beta, sigma)`` and is observed clipped
to ``[lower_bound, upper_bound]``. Each observation contributes

- ``log phi((y - mu) / sigma) - log sigma`` when strictly inside the bounds,
- ``log Phi((lower - mu) / sigma)`` when it sits on the lower bound,
- ``log Phi((mu - upper) / sigma)`` when it sits on the upper bound.

``sigma`` is optimized on the log scale. Tail log-probabilities use
``scipy.special.log_ndtr`` so that observations far from the bound do not
underflow. The optimizer is Newton-Raphson with analytic derivatives and
step halving; it falls back to a gradient step whenever the Hessian does not
give an ascent direction.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field

import numpy as np
import pandas as pd
from scipy import stats as scipy_stats
from scipy.special import log_ndtr

from ..errors import ConvergenceError, DataError
from .contrasts import Design, ModelSpec, build_design

LOG_SIGMA = "logSigma"
BOUND_TOL = 1e-9
MAX_HALVINGS = 40
_LOG_SQRT_2PI = 0.5 * math.log(2.0 * math.pi)


def _frozen(arr: np.ndarray) -> np.ndarray:
    out = np.array(arr, dtype=float, copy=True)
    out.setflags(write=False)
    return out


@dataclass(frozen=True)
class CensoredFit:
    """Immutable result of one Tobit fit.

    Parameters are ordered as the design columns followed by ``logSigma``;
    ``covariance`` uses the same order. Refitting under another contrast
    creates a new instance.
    """

    spec: ModelSpec
    columns: tuple[str, ...]
    beta: np.ndarray
    log_sigma: float
    covariance: np.ndarray
    lower_bound: float
    upper_bound: float
    loglik: float
    iterations: int
    X: np.ndarray
    y: np.ndarray
    term_columns: dict[str, tuple[int, ...]] = field(default_factory=dict)
    row_index: tuple = ()

    @property
    def sigma(self) -> float:
        return float(math.exp(self.log_sigma))

    @property
    def contrast(self) -> str:
        return self.spec.contrast

    @property
    def intercept(self) -> float:
        return float(self.beta[0])

    @property
    def param_names(self) -> tuple[str, ...]:
        return self.columns + (LOG_SIGMA,)

    @property
    def params(self) -> np.ndarray:
        return np.append(self.beta, self.log_sigma)

    @property
    def std_errors(self) -> np.ndarray:
        return np.sqrt(np.clip(np.diag(self.covariance), 0.0, None))

    @property
    def coefficients(self) -> dict[str, float]:
        return {name: float(val) for name, val in zip(self.columns, self.beta)}

    @property
    def n_obs(self) -> int:
        return int(len(self.y))

    def _masks(self):
        return _censoring_masks(self.y, self.lower_bound, self.upper_bound)

    @property
    def n_left(self) -> int:
        return int(self._masks()[0].sum())

    @property
    def n_right(self) -> int:
        return int(self._masks()[1].sum())

    @property
    def n_uncensored(self) -> int:
        return self.n_obs - self.n_left - self.n_right

    @property
    def censored_fraction(self) -> float:
        return (self.n_left + self.n_right) / self.n_obs if self.n_obs else math.nan

    def linear_predictor(self) -> np.ndarray:
        return self.X @ self.beta

    def expected_response(self) -> np.ndarray:
        """Expected observed score for every fitted row, accounting for censoring."""
        return censored_mean(
            self.linear_predictor(), self.sigma, self.lower_bound, self.upper_bound
        )


def censored_mean(
    mu: np.ndarray, sigma: float, lower_bound: float, upper_bound: float
) -> np.ndarray:
    """E[clip(Y*, lower, upper)] for ``Y* ~ Normal(mu, sigma)``."""
    mu = np.asarray(mu, dtype=float)
    a = (lower_bound - mu) / sigma
    b = (upper_bound - mu) / sigma
    p_low = scipy_stats.norm.cdf(a)
    p_high = scipy_stats.norm.sf(b)
    p_mid = scipy_stats.norm.cdf(b) - p_low
    return (
        lower_bound * p_low
        + upper_bound * p_high
        + mu * p_mid
        + sigma * (scipy_stats.norm.pdf(a) - scipy_stats.norm.pdf(b))
    )


def _censoring_masks(
    y: np.ndarray, lower_bound: float, upper_bound: float
) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    left = np.isclose(y, lower_bound, atol=BOUND_TOL, rtol=0.0)
    right = np.isclose(y, upper_bound, atol=BOUND_TOL, rtol=0.0)
    return left, right, ~(left | right)


def _check_response(y: np.ndarray, lower_bound: float, upper_bound: float) -> None:
    outside = (y < lower_bound - BOUND_TOL) | (y > upper_bound + BOUND_TOL)
    if np.any(outside):
        idx = np.flatnonzero(outside)[:10].tolist()
        raise DataError(
            f"{int(outside.sum())} response value(s) lie outside "
            f"[{lower_bound}, {upper_bound}] at positions {idx}: "
            f"{y[outside][:10].tolist()}"
        )


def censored_loglik(
    params: np.ndarray,
    X: np.ndarray,
    y: np.ndarray,
    lower_bound: float,
    upper_bound: float,
) -> float:
    """Log-likelihood of the doubly censored normal model."""
    beta = params[:-1]
    log_sigma = float(params[-1])
    sigma = math.exp(log_sigma)
    mu = X @ beta
    left, right, mid = _censoring_masks(y, lower_bound, upper_bound)
    z = (y[mid] - mu[mid]) / sigma
    ll = float(np.sum(-_LOG_SQRT_2PI - 0.5 * z**2 - log_sigma))
    ll += float(np.sum(log_ndtr((lower_bound - mu[left]) / sigma)))
    ll += float(np.sum(log_ndtr((mu[right] - upper_bound) / sigma)))
    return ll


def _tail_terms(w: np.ndarray, c: float, sigma: float):
    """Per-row derivatives of ``log Phi(w)`` where ``dw/dmu = c / sigma``."""
    log_cdf = log_ndtr(w)
    lam = np.exp(scipy_stats.norm.logpdf(w) - log_cdf)
    g2 = -lam * (w + lam)
    d_mu = c * lam / sigma
    d_s = -lam * w
    d_mumu = g2 / sigma**2
    d_mus = -(c / sigma) * (g2 * w + lam)
    d_ss = g2 * w**2 + lam * w
    return log_cdf, d_mu, d_s, d_mumu, d_mus, d_ss


def _loglik_derivatives(
    params: np.ndarray,
    X: np.ndarray,
    y: np.ndarray,
    lower_bound: float,
    upper_bound: float,
) -> tuple[float, np.ndarray, np.ndarray]:
    """Return log-likelihood, gradient and Hessian in (beta, log sigma)."""
    beta = params[:-1]
    log_sigma = float(params[-1])
    sigma = math.exp(log_sigma)
    mu = X @ beta
    n = len(y)
    left, right, mid = _censoring_masks(y, lower_bound, upper_bound)

    ll_i = np.zeros(n)
    d_mu = np.zeros(n)
    d_s = np.zeros(n)
    d_mumu = np.zeros(n)
    d_mus = np.zeros(n)
    d_ss = np.zeros(n)

    z = (y[mid] - mu[mid]) / sigma
    ll_i[mid] = -_LOG_SQRT_2PI - 0.5 * z**2 - log_sigma
    d_mu[mid] = z / sigma
    d_s[mid] = z**2 - 1.0
    d_mumu[mid] = -1.0 / sigma**2
    d_mus[mid] = -2.0 * z / sigma
    d_ss[mid] = -2.0 * z**2

    for mask, w, c in (
        (left, (lower_bound - mu[left]) / sigma, -1.0),
        (right, (mu[right] - upper_bound) / sigma, 1.0),
    ):
        if not np.any(mask):
            continue
        terms = _tail_terms(w, c, sigma)
        ll_i[mask], d_mu[mask], d_s[mask] = terms[0], terms[1], terms[2]
        d_mumu[mask], d_mus[mask], d_ss[mask] = terms[3], terms[4], terms[5]

    p = X.shape[1]
    grad = np.empty(p + 1)
    grad[:p] = X.T @ d_mu
    grad[p] = d_s.sum()

    hess = np.empty((p + 1, p + 1))
    hess[:p, :p] = X.T @ (X * d_mumu[:, None])
    hess[:p, p] = X.T @ d_mus
    hess[p, :p] = hess[:p, p]
    hess[p, p] = d_ss.sum()
    return float(ll_i.sum()), grad, hess


def _start_values(X: np.ndarray, y: np.ndarray, lower_bound: float, upper_bound: float):
    beta, *_ = np.linalg.lstsq(X, y, rcond=None)
    resid = y - X @ beta
    sigma = float(np.sqrt(np.mean(resid**2)))
    if not np.isfinite(sigma) or sigma <= 0:
        sigma = (upper_bound - lower_bound) / 4.0
    return np.append(beta, math.log(sigma))


def _newton_direction(grad: np.ndarray, hess: np.ndarray) -> tuple[np.ndarray, float]:
    """Newton step and decrement; gradient step if the Hessian is unusable."""
    try:
        step = np.linalg.solve(-hess, grad)
    except np.linalg.LinAlgError:
        step = None
    if step is not None and np.all(np.isfinite(step)):
        decrement = float(grad @ step)
        if decrement > 0:
            return step, decrement
    scale = max(1.0, float(np.max(np.abs(grad))))
    return grad / scale, math.inf


def fit_censored_design(
    design: Design,
    lower_bound: float,
    upper_bound: float,
    max_iter: int = 100,
    tol: float = 1e-8,
) -> tuple[np.ndarray, np.ndarray, float, int]:
    """Maximize the censored likelihood for a prepared design.

    Returns:
        tuple: ``(params, covariance, loglik, iterations)`` where ``params``
        ends with ``log(sigma)``.

    Raises:
        DataError: If a response lies strictly outside the bounds.
        ConvergenceError: If no stable optimum is reached within ``max_iter``
            iterations or the Hessian at the optimum is not negative definite.
    """
    X = np.asarray(design.X, dtype=float)
    y = np.asarray(design.y, dtype=float)
    _check_response(y, lower_bound, upper_bound)

    params = _start_values(X, y, lower_bound, upper_bound)
    ll, grad, hess = _loglik_derivatives(params, X, y, lower_bound, upper_bound)

    for iteration in range(1, int(max_iter) + 1):
        step, decrement = _newton_direction(grad, hess)
        if decrement < tol:
            return _finish(params, ll, grad, hess, iteration - 1)

        t = 1.0
        for _ in range(MAX_HALVINGS):
            candidate = params + t * step
            ll_new = censored_loglik(candidate, X, y, lower_bound, upper_bound)
            if np.isfinite(ll_new) and ll_new >= ll:
                break
            t *= 0.5
        else:
            raise ConvergenceError(
                f"Line search failed at iteration {iteration}; "
                f"log-likelihood stuck at {ll:.6f}.",
                iterations=iteration,
                gradient_norm=float(np.linalg.norm(grad)),
            )

        ll_old = ll
        params = candidate
        ll, grad, hess = _loglik_derivatives(params, X, y, lower_bound, upper_bound)
        logging.debug("Tobit iteration %d: loglik=%.10f", iteration, ll)

        small_change = abs(ll - ll_old) < tol * (1.0 + abs(ll))
        if small_change and float(np.max(np.abs(grad))) < math.sqrt(tol):
            return _finish(params, ll, grad, hess, iteration)

    raise ConvergenceError(
        f"Tobit fit did not converge within {max_iter} iterations "
        f"(gradient norm {float(np.linalg.norm(grad)):.3g}).",
        iterations=int(max_iter),
        gradient_norm=float(np.linalg.norm(grad)),
    )


def _finish(params, ll, grad, hess, iterations):
    info = -hess
    try:
        chol = np.linalg.cholesky(info)
    except np.linalg.LinAlgError:
        raise ConvergenceError(
            "Hessian at the optimum is not negative definite; "
            "the censored likelihood has no unique maximum.",
            iterations=iterations,
            gradient_norm=float(np.linalg.norm(grad)),
        ) from None
    inv_chol = np.linalg.inv(chol)
    covariance = inv_chol.T @ inv_chol
    return params, covariance, float(ll), int(iterations)


def fit_censored_regression(
    frame: pd.DataFrame,
    spec: ModelSpec,
    lower_bound: float,
    upper_bound: float,
    max_iter: int = 100,
    tol: float = 1e-8,
) -> CensoredFit:
    """Fit the Tobit model described by ``spec`` on complete rows of ``frame``."""
    design = build_design(frame, spec)
    params, covariance, ll, iterations = fit_censored_design(
        design, lower_bound, upper_bound, max_iter=max_iter, tol=tol
    )
    fit = CensoredFit(
        spec=spec,
        columns=design.columns,
        beta=_frozen(params[:-1]),
        log_sigma=float(params[-1]),
        covariance=_frozen(covariance),
        lower_bound=float(lower_bound),
        upper_bound=float(upper_bound),
        loglik=ll,
        iterations=iterations,
        X=_frozen(design.X),
        y=_frozen(design.y),
        term_columns=dict(design.term_columns),
        row_index=tuple(frame.index),
    )
    logging.info(
        "Tobit fit (%s contrasts) converged in %d iterations: loglik=%.4f, "
        "sigma=%.4f, censored left/right=%d/%d of %d",
        spec.contrast,
        iterations,
        ll,
        fit.sigma,
        fit.n_left,
        fit.n_right,
        fit.n_obs,
    )
    return fit


def refit_censored(
    fit: CensoredFit,
    frame: pd.DataFrame,
    contrast: str | None = None,
    reference: str | None = None,
    max_iter: int = 100,
    tol: float = 1e-8,
) -> CensoredFit:
    """Fit a new model on the same data under another coding of the factor."""
    spec = fit.spec
    if reference is not None:
        spec = spec.with_reference(reference)
    if contrast is not None:
        spec = spec.with_contrast(contrast)
    return fit_censored_regression(
        frame.loc[list(fit.row_index)] if fit.row_index else frame,
        spec,
        fit.lower_bound,
        fit.upper_bound,
        max_iter=max_iter,
        tol=tol,
    )
