"""Centralized plotting style, axis helpers and save helpers."""

from __future__ import annotations

import warnings
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

import matplotlib.pyplot as plt
from matplotlib.axes import Axes
from matplotlib.figure import Figure
from matplotlib.ticker import MaxNLocator

OUTPUT_FORMATS: tuple[str, ...] = ("png", "svg")
FIGURE_DPI = 300
QQ_MIN_N = 8


@dataclass(frozen=True)
class StyleConfig:
    BASE_FONTSIZE: float = 12.0
    TITLE_FONTSIZE: float = 14.0
    LABEL_FONTSIZE: float = 12.0
    TICK_FONTSIZE: float = 11.0
    LEGEND_FONTSIZE: float = 11.0
    ANNOTATION_FONTSIZE: float = 10.0
    LINEWIDTH: float = 1.8
    LINEWIDTH_THIN: float = 1.0
    MARKERSIZE: float = 26.0
    ALPHA_POINT: float = 0.7
    GRID_ALPHA: float = 0.20
    FIGSIZE_SINGLE: tuple[float, float] = (7.0, 4.6)
    FIGSIZE_WIDE: tuple[float, float] = (10.5, 4.6)


STYLE = StyleConfig()

FONT_SIZES = {
    "axis_label": STYLE.LABEL_FONTSIZE,
    "tick": STYLE.TICK_FONTSIZE,
}


def apply_style() -> None:
    """Apply the project Matplotlib style."""
    plt.rcParams.update(
        {
            "font.size": STYLE.BASE_FONTSIZE,
            "axes.titlesize": STYLE.TITLE_FONTSIZE,
            "axes.labelsize": STYLE.LABEL_FONTSIZE,
            "xtick.labelsize": STYLE.TICK_FONTSIZE,
            "ytick.labelsize": STYLE.TICK_FONTSIZE,
            "legend.fontsize": STYLE.LEGEND_FONTSIZE,
            "mathtext.fontset": "stix",
            "mathtext.default": "regular",
            "axes.linewidth": STYLE.LINEWIDTH_THIN,
            "axes.spines.top": False,
            "axes.spines.right": False,
            "grid.alpha": STYLE.GRID_ALPHA,
            "grid.linestyle": ":",
            "legend.frameon": False,
            "lines.linewidth": STYLE.LINEWIDTH,
            "savefig.dpi": FIGURE_DPI,
            "savefig.bbox": "tight",
        }
    )


def clean_axis(
    ax: Axes,
    *,
    grid_axis: str = "y",
    nbins_x: int = 6,
    nbins_y: int = 6,
    categorical_x: bool = False,
) -> None:
    """Apply consistent ticks, grid, and spine formatting to one axis."""
    ax.tick_params(axis="both", which="major", labelsize=FONT_SIZES["tick"], width=1.0)
    ax.yaxis.set_major_locator(MaxNLocator(nbins=nbins_y, min_n_ticks=4))
    if not categorical_x:
        ax.xaxis.set_major_locator(MaxNLocator(nbins=nbins_x, min_n_ticks=4))
    ax.spines["top"].set_visible(False)
    ax.spines["right"].set_visible(False)
    ax.grid(False)
    if grid_axis == "both":
        ax.grid(True, axis="both", alpha=STYLE.GRID_ALPHA, linestyle=":", linewidth=0.7)
    elif grid_axis in {"x", "y"}:
        ax.grid(
            True, axis=grid_axis, alpha=STYLE.GRID_ALPHA, linestyle=":", linewidth=0.7
        )


def set_axis_labels(ax: Axes, x: str | None = None, y: str | None = None) -> None:
    """Apply standardized axis labels with project typography."""
    if x is not None:
        ax.set_xlabel(x, fontsize=FONT_SIZES["axis_label"], labelpad=6)
    if y is not None:
        ax.set_ylabel(y, fontsize=FONT_SIZES["axis_label"], labelpad=6)


def should_plot_qq(n: int, min_n: int = QQ_MIN_N) -> bool:
    """Return whether a Q-Q plot is meaningful for sample size n."""
    return int(n) >= int(min_n)


def fallback_note(kind: str, n: int, min_n: int = QQ_MIN_N) -> str:
    """Return standardized explanatory note when a diagnostic is omitted."""
    return (
        f"{kind} omitted (n={int(n)} < {int(min_n)}); "
        "insufficient sample size for a reliable shape diagnostic."
    )


def save_figure(
    fig: Figure,
    savepath_base: str | Path,
    formats: Sequence[str] = ("png",),
    dpi: int = FIGURE_DPI,
    *,
    bbox_inches: str = "tight",
    pad_inches: float = 0.12,
) -> Path:
    """Save a figure to multiple formats using one extensionless base path."""
    unknown = [ext for ext in formats if ext not in OUTPUT_FORMATS]
    if unknown:
        raise ValueError(
            f"Unsupported figure format(s) {unknown}. Expected {OUTPUT_FORMATS}."
        )
    base = Path(savepath_base)
    base.parent.mkdir(parents=True, exist_ok=True)
    with warnings.catch_warnings():
        warnings.simplefilter("ignore")
        for ext in formats:
            fig.savefig(
                str(base.with_suffix(f".{ext}")),
                dpi=dpi if ext == "png" else None,
                bbox_inches=bbox_inches,
                pad_inches=pad_inches,
            )
    return base.with_suffix(f".{formats[0]}")
