"""
--------------------------------------------------------------------------------
<emissionmap project>
src/emissionmap/plots/interactive.py

Interactive HTML variant of the heatmap (Vega-Lite via Altair). One panel per
column block, concatenated side by side; hover shows state, genome, group and
cluster.
--------------------------------------------------------------------------------
"""

from __future__ import annotations

import logging
from pathlib import Path

import altair as alt
import pandas as pd

from ..algo.hierarchy import RowClustering
from ..core.config import HeatmapBlock
from ..core.errors import EmissionMapError

logger = logging.getLogger(__name__)

_PX_PER_INCH = 60


def long_form(frame: pd.DataFrame, columns: pd.DataFrame, clustering: RowClustering) -> pd.DataFrame:
    """One row per (state, column) with the column annotations and cluster attached."""
    order = clustering.order
    rank = pd.Series(range(len(order)), index=frame.index[order], name="row_position")
    tidy = (
        frame.rename_axis("state")
        .reset_index()
        .melt(id_vars="state", var_name="name", value_name="value")
        .merge(columns, on="name", how="left", validate="many_to_one")
    )
    tidy["row_position"] = tidy["state"].map(rank)
    if clustering.labels is not None:
        clusters = pd.Series(clustering.labels, index=frame.index)
        tidy["cluster"] = tidy["state"].map(clusters).astype("int64")
    else:
        tidy["cluster"] = 0
    tidy["state"] = tidy["state"].astype(str)
    return tidy


def _x_field(block_cols: pd.DataFrame) -> str:
    # common names label the axis unless two genomes share one within the block
    return "label" if not block_cols["label"].duplicated().any() else "name"


def write_interactive_heatmap(
    frame: pd.DataFrame,
    columns: pd.DataFrame,
    clustering: RowClustering,
    out: str | Path,
    style: HeatmapBlock | None = None,
) -> Path:
    style = style or HeatmapBlock()
    if list(columns["name"]) != list(frame.columns):
        raise EmissionMapError("Column layout does not match the table's column order.")
    tidy = long_form(frame, columns, clustering)
    state_order = [str(s) for s in frame.index[clustering.order]]
    palette_domain = list(dict.fromkeys(columns["group"].tolist()))
    cell_w = max(8, int(style.cell_width * _PX_PER_INCH))
    cell_h = max(8, int(style.cell_height * _PX_PER_INCH))

    prob_color = alt.Color(
        "value:Q",
        scale=alt.Scale(scheme="redblue", reverse=True, domain=[0.0, 1.0], domainMid=style.center),
        legend=alt.Legend(title="Emission probability"),
    )
    group_color = alt.Color(
        "group:N",
        scale=alt.Scale(domain=palette_domain, scheme="tableau10"),
        legend=alt.Legend(title="Group"),
    )
    tooltip = [
        alt.Tooltip("state:N", title="State"),
        alt.Tooltip("common_name:N", title="Genome"),
        alt.Tooltip("genome:N", title="Genome id"),
        alt.Tooltip("group:N", title="Group"),
        alt.Tooltip("emission_type:N", title="Type"),
        alt.Tooltip("value:Q", title="Probability", format=style.fmt),
        alt.Tooltip("cluster:Q", title="Cluster"),
    ]

    panels = []
    for i, kind in enumerate(pd.unique(columns["emission_type"])):
        block_cols = columns[columns["emission_type"] == kind]
        block = tidy[tidy["emission_type"] == kind]
        x_field = _x_field(block_cols)
        x_sort = block_cols[x_field].tolist()
        width = cell_w * len(block_cols)

        strip = (
            alt.Chart(block_cols)
            .mark_rect(stroke="white", strokeWidth=0.5)
            .encode(
                x=alt.X(f"{x_field}:N", sort=x_sort, axis=None),
                color=group_color,
                tooltip=["common_name:N", "group:N", "distance_to_human:Q"],
            )
            .properties(width=width, height=12, title=str(kind))
        )
        base = alt.Chart(block).encode(
            x=alt.X(
                f"{x_field}:N",
                sort=x_sort,
                title=None,
                axis=alt.Axis(labelAngle=-style.label_rotation),
            ),
            y=alt.Y(
                "state:N",
                sort=state_order,
                title="State" if i == 0 else None,
                axis=alt.Axis(labels=i == 0, ticks=i == 0),
            ),
        )
        heat = base.mark_rect(stroke="white", strokeWidth=0.5).encode(color=prob_color, tooltip=tooltip)
        if style.annotate:
            text = base.mark_text(fontSize=9).encode(
                text=alt.Text("value:Q", format=style.fmt),
                color=alt.condition(
                    f"abs(datum.value - {style.center}) > 0.3",
                    alt.value("white"),
                    alt.value("black"),
                ),
            )
            heat = alt.layer(heat, text)
        heat = heat.properties(width=width, height=cell_h * len(state_order))
        panels.append(alt.vconcat(strip, heat, spacing=4).resolve_scale(color="independent"))

    gap_px = max(6, int(style.block_gap * cell_w))
    chart = alt.hconcat(*panels, spacing=gap_px).resolve_scale(color="independent")
    if style.title:
        chart = chart.properties(title=style.title)

    out = Path(out)
    out.parent.mkdir(parents=True, exist_ok=True)
    with alt.data_transformers.enable("default", max_rows=None):
        chart.save(str(out), format="html")
    logger.info("Saved interactive heatmap to %s", out)
    return out
