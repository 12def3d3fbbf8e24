"""Define standardized column names and analysis configuration."""

from __future__ import annotations

import math
from dataclasses import dataclass, field

SIDES: tuple[str, ...] = ("ceiling", "floor", "both")
CONTRASTS: tuple[str, ...] = ("treatment", "sdif")
TYPE3_METHODS: tuple[str, ...] = ("wald", "lr")


@dataclass(frozen=True)
class ScoreColumns:
    """Container for standardized column labels.

    These column names are used in every DataFrame that flows through the
    analysis pipeline, from loading through diagnostics and model fitting.

    Attributes:
        group: Column name for the categorical group label. Levels follow a
            declared order whose first entry is the reference level.

        pre_score: Column name for the baseline score, used as the continuous
            covariate in ANCOVA and Tobit models.

        post_score: Column name for the outcome score. Values are bounded by
            the test scale and may be missing; missing rows stay in the
            dataset but are excluded from group summaries and fits.
    """

    group: str = "group"
    pre_score: str = "pre_score"
    post_score: str = "post_score"


COLUMNS = ScoreColumns()


@dataclass(frozen=True)
class AnalysisConfig:
    """Numerical settings for the ceiling/floor analysis.

    Attributes:
        lower_bound: Minimum attainable score on the test scale.
        upper_bound: Maximum attainable score on the test scale.
        near_width: Width of the "near the bound" window. A score counts as
            near the ceiling when ``score >= upper_bound - near_width``.
        side: Which bound to screen: ``"ceiling"``, ``"floor"`` or ``"both"``.
        max_single_proportion: 30-20 rule limit on any one group's proportion
            at the bound.
        max_pairwise_difference: 30-20 rule limit on the largest difference in
            proportion at the bound between two groups.
        max_censored_proportion: 70% rule limit on any one group's proportion
            at the bound.
        confidence_level: Coverage for Wald confidence intervals.
        contrast: Coding of the group factor, ``"treatment"`` (differences
            from the reference level) or ``"sdif"`` (successive differences).
        max_iter: Newton-Raphson iteration budget.
        tol: Convergence tolerance on the gradient and log-likelihood change.
        type3_method: ``"wald"`` (chi-square from the covariance matrix) or
            ``"lr"`` (likelihood ratio against refits without each term).
        fit_censored_when_linear_ok: Also fit the Tobit model when the linear
            model is acceptable.
    """

    lower_bound: float = 0.0
    upper_bound: float = 100.0
    near_width: float = 1.0
    side: str = "ceiling"
    max_single_proportion: float = 0.30
    max_pairwise_difference: float = 0.20
    max_censored_proportion: float = 0.70
    confidence_level: float = 0.95
    contrast: str = "treatment"
    max_iter: int = 100
    tol: float = 1e-8
    type3_method: str = "wald"
    fit_censored_when_linear_ok: bool = True

    def __post_init__(self) -> None:
        lower = float(self.lower_bound)
        upper = float(self.upper_bound)
        if not (math.isfinite(lower) and math.isfinite(upper)):
            raise ValueError("Score bounds must be finite.")
        if lower >= upper:
            raise ValueError(
                f"lower_bound ({lower}) must be smaller than upper_bound ({upper})."
            )
        if self.near_width < 0:
            raise ValueError("near_width must be >= 0.")
        if self.side not in SIDES:
            raise ValueError(f"side must be one of {SIDES}, got {self.side!r}.")
        if self.contrast not in CONTRASTS:
            raise ValueError(
                f"contrast must be one of {CONTRASTS}, got {self.contrast!r}."
            )
        if self.type3_method not in TYPE3_METHODS:
            raise ValueError(
                f"type3_method must be one of {TYPE3_METHODS}, "
                f"got {self.type3_method!r}."
            )
        for name in (
            "max_single_proportion",
            "max_pairwise_difference",
            "max_censored_proportion",
        ):
            value = float(getattr(self, name))
            if not 0.0 < value <= 1.0:
                raise ValueError(f"{name} must lie in (0, 1], got {value}.")
        if not 0.0 < float(self.confidence_level) < 1.0:
            raise ValueError("confidence_level must lie strictly between 0 and 1.")
        if int(self.max_iter) < 1:
            raise ValueError("max_iter must be >= 1.")
        if not float(self.tol) > 0:
            raise ValueError("tol must be > 0.")

    @property
    def sides(self) -> tuple[str, ...]:
        """Return the individual bounds screened by this configuration."""
        if self.side == "both":
            return ("floor", "ceiling")
        return (self.side,)


DEFAULT_PALETTE: tuple[str, ...] = (
    "#2C4B7D",
    "#C13B2A",
    "#197A40",
    "#7A3B9E",
    "#D98E04",
    "#3B8EA5",
)


@dataclass(frozen=True)
class PlotConfig:
    """Rendering settings passed explicitly into the plotting layer.

    Attributes:
        palette: Colors assigned to group levels in declared order.
        seed: Seed for the horizontal jitter of dotplot markers.
        jitter: Half-width of the horizontal jitter in axis units.
        dpi: Raster resolution for PNG output.
        formats: File formats written for every figure.
    """

    palette: tuple[str, ...] = DEFAULT_PALETTE
    seed: int = 20240101
    jitter: float = 0.12
    dpi: int = 300
    formats: tuple[str, ...] = field(default=("png",))

    def color_for(self, index: int) -> str:
        """Return the palette color for the level at ``index``."""
        return self.palette[int(index) % len(self.palette)]
