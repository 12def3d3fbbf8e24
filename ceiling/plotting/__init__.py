"""
Figures for ceiling/floor screening and Tobit residual diagnostics.

All plotting functions accept precomputed data and do not fit models.

Modules:
    score_plots:
        Boxplots with jittered dotplots of pre- and post-scores by group,
        with the scale bounds drawn as reference lines.

    diagnostic_plots:
        Normal Q-Q plot of response-scale residuals and residual-vs-fitted
        plot with the censoring limits overlaid.

Styling:
    Palette, jitter seed, resolution and formats come from an explicit
    ``PlotConfig``; nothing is read from module-level state.
"""

from .diagnostic_plots import plot_qq, plot_residuals_vs_fitted
from .score_plots import plot_score_distributions
from .style import apply_style

__all__ = [
    "apply_style",
    "plot_qq",
    "plot_residuals_vs_fitted",
    "plot_score_distributions",
]
