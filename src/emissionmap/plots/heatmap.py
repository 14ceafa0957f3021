"""
--------------------------------------------------------------------------------
<emissionmap project>
src/emissionmap/plots/heatmap.py

Static annotated heatmap: states (rows, optimal leaf order, gaps between cut
clusters) × genomes (aligned block | matched block), with the row dendrogram on
the left, a column-group strip on top and a colour bar centred at 0.5.
--------------------------------------------------------------------------------
"""

from __future__ import annotations

import logging
from pathlib import Path

import matplotlib

matplotlib.use("Agg")
import matplotlib.patches as mpatches  # noqa: E402
import matplotlib.pyplot as plt  # noqa: E402
import numpy as np  # noqa: E402
import pandas as pd  # noqa: E402
import scipy.cluster.hierarchy as sch  # noqa: E402
import seaborn as sns  # noqa: E402
from matplotlib.colors import TwoSlopeNorm  # noqa: E402

from ..algo.hierarchy import RowClustering  # noqa: E402
from ..core.config import HeatmapBlock  # noqa: E402
from ..core.errors import ConfigError, EmissionMapError  # noqa: E402
from .layout import AxisLayout, axis_layout, figure_size  # noqa: E402

logger = logging.getLogger(__name__)

_STRIP_HEIGHT_IN = 0.28
_CBAR_WIDTH_IN = 0.22
_DENDRO_COLOR = "0.25"


def _ensure_path(p: str | Path) -> Path:
    p = Path(p)
    p.parent.mkdir(parents=True, exist_ok=True)
    return p


def _colormap(name: str):
    try:
        return matplotlib.colormaps[name]
    except KeyError as e:
        raise ConfigError(f"Unknown colormap {name!r}.") from e


def group_palette(groups: list[str]) -> dict[str, tuple]:
    """Colorblind palette keyed by group, in first-appearance order."""
    ordered = list(dict.fromkeys(groups))
    colors = sns.color_palette("colorblind", n_colors=max(len(ordered), 1))
    return {g: colors[i % len(colors)] for i, g in enumerate(ordered)}


def _text_color(rgba) -> str:
    r, g, b = rgba[:3]
    lum = 0.2126 * r + 0.7152 * g + 0.0722 * b
    return "white" if lum < 0.45 else "black"


def _draw_dendrogram(ax: plt.Axes, Z: np.ndarray, rows: AxisLayout, order: np.ndarray) -> None:
    dn = sch.dendrogram(Z, no_plot=True)
    if list(dn["leaves"]) != [int(i) for i in order]:
        raise EmissionMapError("Dendrogram leaf order disagrees with the row order.")
    n = len(order)
    # scipy puts leaf k at 5 + 10k; map those onto the gapped row centres
    leaf_axis = 5.0 + 10.0 * np.arange(n)
    for xs, ys in zip(dn["icoord"], dn["dcoord"]):
        ax.plot(ys, np.interp(xs, leaf_axis, rows.centers), color=_DENDRO_COLOR, lw=0.8)
    top = float(np.max(Z[:, 2])) if len(Z) else 0.0
    ax.set_xlim((top * 1.03) if top > 0 else 1.0, 0.0)  # root on the left, leaves touch the grid
    ax.set_ylim(rows.extent, 0.0)
    ax.axis("off")


def _draw_group_strip(
    ax: plt.Axes, columns: pd.DataFrame, cols: AxisLayout, palette: dict[str, tuple]
) -> None:
    for j, group in enumerate(columns["group"].tolist()):
        ax.add_patch(
            mpatches.Rectangle(
                (cols.starts[j], 0.0), 1.0, 1.0, facecolor=palette[group], edgecolor="white", lw=0.6
            )
        )
    for block in cols.blocks():
        kind = columns["emission_type"].iloc[block.start]
        mid = (cols.starts[block.start] + cols.starts[block.stop - 1] + 1.0) / 2.0
        ax.text(mid, 1.35, kind, ha="center", va="bottom", fontweight="bold", clip_on=False)
    ax.set_xlim(0.0, cols.extent)
    ax.set_ylim(0.0, 1.0)
    ax.set_xticks([])
    ax.set_yticks([])
    for spine in ax.spines.values():
        spine.set_visible(False)
    handles = [mpatches.Patch(color=c, label=g) for g, c in palette.items()]
    ax.legend(
        handles=handles,
        title="Group",
        loc="lower left",
        bbox_to_anchor=(1.01, 0.0),
        frameon=False,
        fontsize="small",
        title_fontsize="small",
    )


def plot_emission_heatmap(
    frame: pd.DataFrame,
    columns: pd.DataFrame,
    clustering: RowClustering,
    out: str | Path,
    style: HeatmapBlock | None = None,
) -> Path:
    """
    Render `frame` (columns already in display order, rows in input order) and
    write it to `out`. `columns` is the ordered layout from `order_columns`.
    """
    style = style or HeatmapBlock()
    if list(columns["name"]) != list(frame.columns):
        raise EmissionMapError("Column layout does not match the table's column order.")
    n_rows, n_cols = frame.shape
    if len(clustering.order) != n_rows:
        raise EmissionMapError(
            f"Row order has {len(clustering.order)} entries for {n_rows} state(s)."
        )

    order = clustering.order
    data = frame.to_numpy(dtype=np.float64)[order, :]
    state_labels = [str(s) for s in frame.index[order]]
    labels_in_order = clustering.labels_in_order()
    rows = axis_layout(
        labels_in_order.tolist() if labels_in_order is not None else [0] * n_rows,
        style.block_gap,
    )
    cols = axis_layout(columns["emission_type"].tolist(), style.block_gap)

    cmap = _colormap(style.cmap)
    norm = TwoSlopeNorm(vmin=0.0, vcenter=style.center, vmax=1.0)
    palette = group_palette(columns["group"].tolist())

    dendro_w = style.dendrogram_width if clustering.linkage is not None else 0.05
    label_w = 0.3 + 0.075 * max(len(s) for s in state_labels) * style.font_scale
    longest_col = max(len(str(s)) for s in columns["label"])
    rot = np.deg2rad(style.label_rotation)
    bottom_h = 0.4 + 0.075 * longest_col * style.font_scale * float(np.sin(rot) + 0.15)
    heat_w, heat_h = figure_size(rows, cols, cell_width=style.cell_width, cell_height=style.cell_height)
    width, height = figure_size(
        rows,
        cols,
        cell_width=style.cell_width,
        cell_height=style.cell_height,
        extra_width=dendro_w + label_w + _CBAR_WIDTH_IN + 1.6,
        extra_height=_STRIP_HEIGHT_IN + bottom_h + 0.9,
    )

    with sns.axes_style("white"), sns.plotting_context("notebook", font_scale=style.font_scale):
        fig = plt.figure(figsize=(width, height))
        try:
            gs = fig.add_gridspec(
                2,
                4,
                width_ratios=[dendro_w, heat_w, label_w, _CBAR_WIDTH_IN],
                height_ratios=[_STRIP_HEIGHT_IN, heat_h],
                wspace=0.02,
                hspace=0.04,
            )
            strip_ax = fig.add_subplot(gs[0, 1])
            dendro_ax = fig.add_subplot(gs[1, 0])
            ax = fig.add_subplot(gs[1, 1])
            cax = fig.add_subplot(gs[1, 3])

            mesh = None
            for rb in rows.blocks():
                for cb in cols.blocks():
                    mesh = ax.pcolormesh(
                        cols.edges(cb),
                        rows.edges(rb),
                        data[rb, cb],
                        cmap=cmap,
                        norm=norm,
                        edgecolors="white",
                        linewidth=0.4,
                    )
            ax.set_xlim(0.0, cols.extent)
            ax.set_ylim(rows.extent, 0.0)

            if style.annotate:
                fontsize = max(4.0, 7.0 * style.font_scale * min(1.0, style.cell_height / 0.32))
                for i in range(n_rows):
                    for j in range(n_cols):
                        v = data[i, j]
                        ax.text(
                            cols.centers[j],
                            rows.centers[i],
                            format(v, style.fmt),
                            ha="center",
                            va="center",
                            fontsize=fontsize,
                            color=_text_color(cmap(norm(v))),
                        )

            ax.set_xticks(cols.centers)
            ax.set_xticklabels(
                columns["label"].tolist(),
                rotation=style.label_rotation,
                ha="right" if 0.0 < style.label_rotation < 90.0 else "center",
                rotation_mode="anchor",
            )
            ax.yaxis.tick_right()
            ax.set_yticks(rows.centers)
            ax.set_yticklabels(state_labels)
            ax.tick_params(axis="both", length=0)
            for spine in ax.spines.values():
                spine.set_visible(False)
            ax.set_ylabel("")

            if clustering.linkage is not None:
                _draw_dendrogram(dendro_ax, clustering.linkage, rows, order)
            else:
                dendro_ax.axis("off")
            _draw_group_strip(strip_ax, columns, cols, palette)

            cbar = fig.colorbar(mesh, cax=cax)
            cbar.set_ticks([0.0, style.center / 2, style.center, (1.0 + style.center) / 2, 1.0])
            cbar.set_label("Emission probability")
            cbar.outline.set_visible(False)

            title = style.title or (
                f"Emission probabilities: {n_rows} states × {n_cols} columns"
                + (f", {clustering.n_clusters} clusters" if clustering.n_clusters else "")
            )
            fig.suptitle(title, y=1.0)

            out = _ensure_path(out)
            try:
                fig.savefig(out, dpi=style.dpi, bbox_inches="tight")
            except (OSError, ValueError) as e:
                raise EmissionMapError(f"Could not save heatmap to {out}: {e}") from e
        finally:
            plt.close(fig)
    logger.info("Saved heatmap to %s", out)
    return out
