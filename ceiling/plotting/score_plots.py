"""Boxplots with jittered dotplots of pre- and post-scores by group."""

from __future__ import annotations

import os

import matplotlib.pyplot as plt
import numpy as np

from ..data_processing import ScoreDataset
from ..schema import COLUMNS, PlotConfig
from .style import STYLE, apply_style, clean_axis, save_figure, set_axis_labels


def _draw_group_scores(ax, dataset: ScoreDataset, column: str, config: PlotConfig, rng):
    grouped = dataset.grouped(column)
    positions = np.arange(1, len(dataset.levels) + 1, dtype=float)
    data = [grouped[level] for level in dataset.levels]
    nonempty = [i for i, values in enumerate(data) if len(values)]

    if nonempty:
        ax.boxplot(
            [data[i] for i in nonempty],
            positions=positions[nonempty],
            widths=0.5,
            patch_artist=True,
            showfliers=False,
            boxprops={"facecolor": "white", "edgecolor": "black", "linewidth": 1.0},
            medianprops={"color": "black", "linewidth": STYLE.LINEWIDTH},
            whiskerprops={"color": "black", "linewidth": 1.0},
            capprops={"color": "black", "linewidth": 1.0},
        )
    for idx, values in enumerate(data):
        if not len(values):
            continue
        jitter = rng.uniform(-config.jitter, config.jitter, size=len(values))
        ax.scatter(
            positions[idx] + jitter,
            values,
            s=STYLE.MARKERSIZE,
            alpha=STYLE.ALPHA_POINT,
            color=config.color_for(idx),
            edgecolors="none",
            zorder=3,
        )

    for bound, label in (
        (dataset.upper_bound, "Ceiling"),
        (dataset.lower_bound, "Floor"),
    ):
        ax.axhline(bound, color="0.35", linestyle="--", linewidth=STYLE.LINEWIDTH_THIN)
        ax.annotate(
            label,
            xy=(1.0, bound),
            xycoords=("axes fraction", "data"),
            xytext=(-4, 3),
            textcoords="offset points",
            ha="right",
            va="bottom",
            fontsize=STYLE.ANNOTATION_FONTSIZE,
            color="0.35",
        )

    ax.set_xticks(positions)
    ax.set_xticklabels(list(dataset.levels))
    ax.set_xlim(0.4, len(dataset.levels) + 0.6)
    clean_axis(ax, grid_axis="y", categorical_x=True)


def plot_score_distributions(
    dataset: ScoreDataset,
    output_dir: str = "output",
    config: PlotConfig | None = None,
) -> str:
    """Render pre/post score distributions per group; return the figure path.

    Jitter is drawn from a generator seeded by ``config.seed``, so repeated
    calls produce identical figures.
    """
    config = config or PlotConfig()
    apply_style()
    rng = np.random.default_rng(config.seed)

    fig, axes = plt.subplots(1, 2, figsize=STYLE.FIGSIZE_WIDE, sharey=True)
    for ax, column, title in (
        (axes[0], COLUMNS.pre_score, "Pre-test"),
        (axes[1], COLUMNS.post_score, "Post-test"),
    ):
        _draw_group_scores(ax, dataset, column, config, rng)
        ax.set_title(title)
        set_axis_labels(ax, x="Group")
    set_axis_labels(axes[0], y="Score")

    path = save_figure(
        fig,
        os.path.join(output_dir, "score_distributions"),
        formats=config.formats,
        dpi=config.dpi,
    )
    plt.close(fig)
    return str(path)
