"""Build design matrices from a structured model specification.

A model is described by its response column, one categorical factor with a
declared level order and contrast scheme, and zero or more continuous
covariates. Two contrast schemes are supported:

- ``"treatment"``: each non-reference level's coefficient is its difference
  from the first (reference) level;
- ``"sdif"``: each coefficient is the difference between a level and the
  level immediately before it in the declared order.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace

import numpy as np
import pandas as pd

from ..errors import DataError

INTERCEPT = "(Intercept)"


@dataclass(frozen=True)
class ModelSpec:
    """Structured replacement for a formula such as ``post ~ group + pre``."""

    response: str
    factor: str
    levels: tuple[str, ...]
    contrast: str = "treatment"
    covariates: tuple[str, ...] = ()

    def with_contrast(self, contrast: str) -> "ModelSpec":
        return replace(self, contrast=contrast)

    def with_reference(self, reference: str) -> "ModelSpec":
        """Return a copy whose level order starts with ``reference``."""
        if reference not in self.levels:
            raise DataError(f"Unknown reference level '{reference}'.")
        levels = (reference,) + tuple(lvl for lvl in self.levels if lvl != reference)
        return replace(self, levels=levels)

    @property
    def terms(self) -> tuple[str, ...]:
        return (INTERCEPT, self.factor) + tuple(self.covariates)


@dataclass(frozen=True)
class Design:
    """Numeric design matrix with column labels and term-to-column mapping."""

    X: np.ndarray
    y: np.ndarray
    columns: tuple[str, ...]
    term_columns: dict[str, tuple[int, ...]] = field(default_factory=dict)

    def drop_term(self, term: str) -> "Design":
        """Return the design with every column of ``term`` removed."""
        drop = set(self.term_columns[term])
        keep = [idx for idx in range(self.X.shape[1]) if idx not in drop]
        remap = {old: new for new, old in enumerate(keep)}
        term_columns = {
            name: tuple(remap[idx] for idx in cols)
            for name, cols in self.term_columns.items()
            if name != term
        }
        return Design(
            X=self.X[:, keep],
            y=self.y,
            columns=tuple(self.columns[idx] for idx in keep),
            term_columns=term_columns,
        )


def treatment_contrast(n_levels: int) -> np.ndarray:
    """Reference coding: identity without the first column."""
    if n_levels < 2:
        raise ValueError("A factor needs at least two levels.")
    return np.eye(n_levels)[:, 1:]


def sdif_contrast(n_levels: int) -> np.ndarray:
    """Successive-difference coding.

    Column ``j`` (1-based) holds ``-(k - j) / k`` for the first ``j`` levels
    and ``j / k`` for the rest, so its coefficient equals
    ``mean(level j+1) - mean(level j)``.
    """
    if n_levels < 2:
        raise ValueError("A factor needs at least two levels.")
    k = n_levels
    mat = np.zeros((k, k - 1), dtype=float)
    for j in range(1, k):
        mat[:j, j - 1] = -(k - j) / k
        mat[j:, j - 1] = j / k
    return mat


def contrast_matrix(scheme: str, n_levels: int) -> np.ndarray:
    if scheme == "treatment":
        return treatment_contrast(n_levels)
    if scheme == "sdif":
        return sdif_contrast(n_levels)
    raise ValueError(f"Unknown contrast scheme {scheme!r}.")


def factor_column_names(spec: ModelSpec) -> tuple[str, ...]:
    levels = spec.levels
    if spec.contrast == "treatment":
        return tuple(f"{spec.factor}[T.{lvl}]" for lvl in levels[1:])
    return tuple(
        f"{spec.factor}[{levels[j]}-{levels[j - 1]}]" for j in range(1, len(levels))
    )


def build_design(frame: pd.DataFrame, spec: ModelSpec) -> Design:
    """Encode ``frame`` into a full-rank design for ``spec``.

    Raises:
        DataError: If a column is missing, a declared level has no rows, a
            value is missing, or the resulting matrix is rank-deficient.
    """
    needed = [spec.response, spec.factor, *spec.covariates]
    missing = [col for col in needed if col not in frame.columns]
    if missing:
        raise DataError(f"Model columns not found in data: {missing}")

    labels = frame[spec.factor].astype(str).to_numpy()
    unknown = sorted(set(labels) - set(spec.levels))
    if unknown:
        raise DataError(f"Rows carry levels outside {list(spec.levels)}: {unknown}")
    empty = [lvl for lvl in spec.levels if not np.any(labels == lvl)]
    if empty:
        raise DataError(
            f"Levels {empty} have no complete observations; "
            "the design matrix would be rank-deficient."
        )

    y = frame[spec.response].to_numpy(dtype=float)
    if not np.all(np.isfinite(y)):
        raise DataError(f"Response '{spec.response}' contains missing values.")

    index = {lvl: i for i, lvl in enumerate(spec.levels)}
    codes = np.array([index[lab] for lab in labels], dtype=int)
    factor_block = contrast_matrix(spec.contrast, len(spec.levels))[codes]

    blocks = [np.ones((len(frame), 1)), factor_block]
    columns = [INTERCEPT, *factor_column_names(spec)]
    term_columns = {
        INTERCEPT: (0,),
        spec.factor: tuple(range(1, 1 + factor_block.shape[1])),
    }
    for cov in spec.covariates:
        values = frame[cov].to_numpy(dtype=float)
        if not np.all(np.isfinite(values)):
            raise DataError(f"Covariate '{cov}' contains missing values.")
        term_columns[cov] = (len(columns),)
        columns.append(cov)
        blocks.append(values[:, None])

    X = np.hstack(blocks)
    rank = int(np.linalg.matrix_rank(X))
    if rank < X.shape[1]:
        raise DataError(
            f"Design matrix is rank-deficient (rank {rank} < {X.shape[1]} columns: "
            f"{columns})."
        )
    return Design(X=X, y=y, columns=tuple(columns), term_columns=term_columns)
