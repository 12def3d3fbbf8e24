"""Exception and warning types raised by the analysis pipeline."""

from __future__ import annotations

from typing import Any


class DataError(ValueError):
    """Input data cannot support the requested analysis.

    Raised for missing columns, non-numeric entries in numeric columns,
    responses outside the declared score bounds, unknown or empty group
    levels, and rank-deficient design matrices.
    """


class ConvergenceError(RuntimeError):
    """The maximum-likelihood optimizer did not reach a stable optimum."""

    def __init__(self, message: str, iterations: int, gradient_norm: float):
        super().__init__(message)
        self.iterations = int(iterations)
        self.gradient_norm = float(gradient_norm)


class ModelingGateError(RuntimeError):
    """No valid model exists for the observed ceiling/floor proportions."""

    def __init__(self, message: str, decision: Any):
        super().__init__(message)
        self.decision = decision


class CensoringWarning(UserWarning):
    """Heavy censoring makes a reported quantity slightly optimistic."""


class EmptyGroupWarning(UserWarning):
    """A declared group level has no observed post-scores."""
