"""
Handles CSV parsing, column detection and validation of bounded score data.
"""

# Loading summary: read a delimited table, resolve the group/pre/post columns
# by explicit name or by a list of common aliases, coerce numeric columns while
# keeping genuinely missing post-scores, and check every observed post-score
# against the declared scale bounds before any group-level computation.

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

import numpy as np
import pandas as pd

from .errors import DataError
from .schema import COLUMNS

GROUP_CANDIDATES = ("group", "condition", "treatment", "arm", "grp")
PRE_CANDIDATES = ("pre_score", "pre", "pretest", "pre-test", "baseline", "score_pre")
POST_CANDIDATES = (
    "post_score",
    "post",
    "posttest",
    "post-test",
    "outcome",
    "score_post",
)


@dataclass(frozen=True)
class ScoreDataset:
    """Validated, read-only view of the subject-level score table.

    Rows are subjects. Rows with a missing post-score are retained in
    ``data`` but excluded from every group-level computation.
    """

    data: pd.DataFrame
    levels: tuple[str, ...]
    lower_bound: float
    upper_bound: float

    @property
    def reference(self) -> str:
        return self.levels[0]

    @property
    def n_rows(self) -> int:
        return int(len(self.data))

    def observed(self) -> pd.DataFrame:
        """Return rows with a non-missing post-score."""
        return self.data.loc[self.data[COLUMNS.post_score].notna()].copy()

    def complete_cases(self) -> pd.DataFrame:
        """Return rows usable for model fitting (post and pre both present)."""
        mask = self.data[COLUMNS.post_score].notna() & self.data[
            COLUMNS.pre_score
        ].notna()
        return self.data.loc[mask].copy()

    def grouped(self, column: str = COLUMNS.post_score) -> dict[str, np.ndarray]:
        """Map every declared level to its non-missing values of ``column``.

        Levels without observations map to an empty array.
        """
        out: dict[str, np.ndarray] = {}
        for level in self.levels:
            values = self.data.loc[self.data[COLUMNS.group] == level, column]
            out[level] = values.dropna().to_numpy(dtype=float)
        return out


def load_score_data(filepath: str | Path, sep: str | None = None) -> pd.DataFrame:
    """
    Load a delimited score table.

    Args:
        filepath: Path to the CSV/TSV file.
        sep: Column delimiter. ``None`` sniffs comma, tab or semicolon.

    Returns:
        pd.DataFrame: Raw table with columns as found in the file.
    """
    if sep is None:
        return pd.read_csv(filepath, sep=None, engine="python")
    return pd.read_csv(filepath, sep=sep)


def _resolve_column(
    frame: pd.DataFrame,
    explicit: str | None,
    candidates: tuple[str, ...],
    label: str,
) -> str:
    """Resolve one input column using explicit name or canonical candidates."""
    if explicit is not None:
        if explicit not in frame.columns:
            raise DataError(
                f"Column '{explicit}' not found for {label}. "
                f"Available columns: {list(frame.columns)}"
            )
        return explicit

    lookup = {str(col).strip().lower(): str(col) for col in frame.columns}
    for name in candidates:
        found = lookup.get(name.lower())
        if found is not None:
            return found
    raise DataError(
        f"Could not detect {label} column. Tried {list(candidates)}; "
        f"available columns: {list(frame.columns)}"
    )


def _coerce_numeric(series: pd.Series, name: str) -> pd.Series:
    """Convert to float, keeping blanks as NaN and rejecting other text."""
    numeric = pd.to_numeric(series, errors="coerce")
    blank = series.isna() | series.astype(str).str.strip().eq("")
    bad = numeric.isna() & ~blank
    if bool(bad.any()):
        rows = list(series.index[bad][:10])
        values = [series.loc[idx] for idx in rows]
        raise DataError(
            f"Column '{name}' has {int(bad.sum())} non-numeric value(s); "
            f"rows {rows} contain {values}."
        )
    return numeric.astype(float)


def standardize_score_table(
    raw_df: pd.DataFrame,
    group_col: str | None = None,
    pre_col: str | None = None,
    post_col: str | None = None,
) -> pd.DataFrame:
    """Standardize a raw table into ``group``, ``pre_score``, ``post_score``."""
    group_name = _resolve_column(raw_df, group_col, GROUP_CANDIDATES, label="group")
    pre_name = _resolve_column(raw_df, pre_col, PRE_CANDIDATES, label="pre-score")
    post_name = _resolve_column(raw_df, post_col, POST_CANDIDATES, label="post-score")

    groups = raw_df[group_name]
    missing_group = groups.isna() | groups.astype(str).str.strip().eq("")
    if bool(missing_group.any()):
        rows = list(raw_df.index[missing_group][:10])
        raise DataError(f"Group label is missing in rows {rows}.")

    tidy = pd.DataFrame(
        {
            COLUMNS.group: groups.astype(str).str.strip(),
            COLUMNS.pre_score: _coerce_numeric(raw_df[pre_name], pre_name),
            COLUMNS.post_score: _coerce_numeric(raw_df[post_name], post_name),
        }
    )
    return tidy.reset_index(drop=True)


def _resolve_levels(
    observed_levels: Sequence[str],
    levels: Sequence[str] | None,
    reference: str | None,
) -> tuple[str, ...]:
    if levels is None:
        ordered = sorted(set(observed_levels))
    else:
        ordered = [str(level).strip() for level in levels]
        if len(set(ordered)) != len(ordered):
            raise DataError(f"Declared group levels contain duplicates: {ordered}")
        unknown = sorted(set(observed_levels) - set(ordered))
        if unknown:
            raise DataError(
                f"Data contains group labels not in the declared levels: {unknown}"
            )

    if reference is not None:
        reference = str(reference).strip()
        if reference not in ordered:
            raise DataError(
                f"Reference level '{reference}' is not one of {list(ordered)}."
            )
        ordered = [reference] + [lvl for lvl in ordered if lvl != reference]

    if len(ordered) < 2:
        raise DataError(
            f"At least two group levels are required, found {list(ordered)}."
        )
    return tuple(ordered)


def validate_score_table(
    tidy: pd.DataFrame,
    lower_bound: float,
    upper_bound: float,
    levels: Sequence[str] | None = None,
    reference: str | None = None,
) -> ScoreDataset:
    """Check bounds and group levels, returning a read-only dataset.

    Raises:
        DataError: If a column is missing, a post-score lies strictly outside
            ``[lower_bound, upper_bound]``, or the declared levels do not match
            the data.
    """
    required = {COLUMNS.group, COLUMNS.pre_score, COLUMNS.post_score}
    missing = required - set(tidy.columns)
    if missing:
        raise DataError(f"Input data is missing required columns: {sorted(missing)}")

    lower = float(lower_bound)
    upper = float(upper_bound)
    if lower >= upper:
        raise DataError(f"lower_bound ({lower}) must be below upper_bound ({upper}).")

    post = tidy[COLUMNS.post_score]
    below = post < lower
    above = post > upper
    if bool(below.any()) or bool(above.any()):
        detail = []
        if bool(below.any()):
            detail.append(
                f"{int(below.sum())} below lower bound {lower} "
                f"(rows {list(post.index[below][:10])})"
            )
        if bool(above.any()):
            detail.append(
                f"{int(above.sum())} above upper bound {upper} "
                f"(rows {list(post.index[above][:10])})"
            )
        raise DataError("Post-scores outside the score scale: " + "; ".join(detail))

    ordered = _resolve_levels(tidy[COLUMNS.group].unique().tolist(), levels, reference)

    n_missing = int(post.isna().sum())
    logging.info(
        "Loaded %d rows across %d groups (%d missing post-scores retained)",
        len(tidy),
        len(ordered),
        n_missing,
    )

    data = tidy.copy()
    data[COLUMNS.group] = pd.Categorical(
        data[COLUMNS.group], categories=list(ordered), ordered=True
    )
    return ScoreDataset(
        data=data.reset_index(drop=True),
        levels=ordered,
        lower_bound=lower,
        upper_bound=upper,
    )


def load_dataset(
    filepath: str | Path,
    lower_bound: float,
    upper_bound: float,
    levels: Sequence[str] | None = None,
    reference: str | None = None,
    group_col: str | None = None,
    pre_col: str | None = None,
    post_col: str | None = None,
) -> ScoreDataset:
    """Load, standardize and validate a score file in one step."""
    raw_df = load_score_data(filepath)
    tidy = standardize_score_table(
        raw_df, group_col=group_col, pre_col=pre_col, post_col=post_col
    )
    return validate_score_table(
        tidy,
        lower_bound=lower_bound,
        upper_bound=upper_bound,
        levels=levels,
        reference=reference,
    )
