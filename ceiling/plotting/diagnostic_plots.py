"""Residual diagnostic figures for a fitted Tobit model."""

from __future__ import annotations

import os
import warnings

import matplotlib.pyplot as plt
import numpy as np

from ..residuals import ResidualSet, normal_quantile_pairs
from ..schema import PlotConfig
from .style import (
    STYLE,
    apply_style,
    clean_axis,
    fallback_note,
    save_figure,
    set_axis_labels,
    should_plot_qq,
)


def plot_qq(
    residuals: ResidualSet,
    output_dir: str = "output",
    config: PlotConfig | None = None,
) -> str | None:
    """Normal Q-Q plot of response-scale residuals.

    Returns ``None`` and warns when there are too few residuals.
    """
    config = config or PlotConfig()
    n = len(residuals.residual)
    if not should_plot_qq(n):
        warnings.warn(fallback_note("Q-Q plot", n), RuntimeWarning, stacklevel=2)
        return None

    apply_style()
    pairs = normal_quantile_pairs(residuals)
    fig, ax = plt.subplots(figsize=STYLE.FIGSIZE_SINGLE)
    ax.scatter(
        pairs["theoretical"],
        pairs["sample"],
        s=STYLE.MARKERSIZE,
        alpha=STYLE.ALPHA_POINT,
        color=config.color_for(0),
        edgecolors="none",
    )
    q25, q75 = np.percentile(pairs["sample"], [25, 75])
    t25, t75 = np.percentile(pairs["theoretical"], [25, 75])
    slope = (q75 - q25) / (t75 - t25) if t75 > t25 else 1.0
    x_line = np.array([pairs["theoretical"].min(), pairs["theoretical"].max()])
    ax.plot(
        x_line,
        q25 + slope * (x_line - t25),
        color="black",
        linewidth=STYLE.LINEWIDTH_THIN,
        linestyle="--",
    )
    set_axis_labels(ax, x="Theoretical normal quantile", y="Residual")
    clean_axis(ax, grid_axis="both")

    path = save_figure(
        fig,
        os.path.join(output_dir, "residual_qq"),
        formats=config.formats,
        dpi=config.dpi,
    )
    plt.close(fig)
    return str(path)


def plot_residuals_vs_fitted(
    residuals: ResidualSet,
    output_dir: str = "output",
    config: PlotConfig | None = None,
) -> str:
    """Residuals against fitted values with the censoring limits overlaid.

    Points on the dashed line ``residual = upper_bound - fitted`` are scores
    at the ceiling; the dotted line marks the floor equivalently.
    """
    config = config or PlotConfig()
    apply_style()
    fig, ax = plt.subplots(figsize=STYLE.FIGSIZE_SINGLE)
    ax.scatter(
        residuals.fitted,
        residuals.residual,
        s=STYLE.MARKERSIZE,
        alpha=STYLE.ALPHA_POINT,
        color=config.color_for(0),
        edgecolors="none",
        zorder=3,
    )
    grid = np.linspace(
        float(np.min(residuals.fitted)), float(np.max(residuals.fitted)), 200
    )
    ax.plot(
        grid,
        residuals.upper_bound - grid,
        color=config.color_for(1),
        linestyle="--",
        linewidth=STYLE.LINEWIDTH_THIN,
        label="Ceiling limit",
    )
    ax.plot(
        grid,
        residuals.lower_bound - grid,
        color=config.color_for(2),
        linestyle=":",
        linewidth=STYLE.LINEWIDTH_THIN,
        label="Floor limit",
    )
    ax.axhline(0.0, color="black", linewidth=0.9)

    spread = np.ptp(residuals.residual) if len(residuals.residual) else 1.0
    pad = 0.15 * (spread if spread > 0 else 1.0)
    ax.set_ylim(
        float(np.min(residuals.residual)) - pad,
        float(np.max(residuals.residual)) + pad,
    )
    ax.legend(loc="lower left")
    set_axis_labels(ax, x="Fitted value (censored expectation)", y="Residual")
    clean_axis(ax, grid_axis="both")

    path = save_figure(
        fig,
        os.path.join(output_dir, "residuals_vs_fitted"),
        formats=config.formats,
        dpi=config.dpi,
    )
    plt.close(fig)
    return str(path)
