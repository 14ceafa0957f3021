"""
--------------------------------------------------------------------------------
<emissionmap project>
src/emissionmap/transforms/reorder.py

Column placement by phylogenetic distance. Aligned columns form the first
block, matched columns the second; each block runs from the genome closest to
human outward. Placement is an explicit sort on validated ranks, so gaps in
the rank sequence are harmless and collisions are rejected.
--------------------------------------------------------------------------------
"""

from __future__ import annotations

import logging
from typing import Tuple

import pandas as pd

from ..core.errors import DuplicateRankError, EmissionMapError, MissingAnnotationError
from ..io.columns import COLUMNS_FRAME_FIELDS, EmissionKind

logger = logging.getLogger(__name__)

def annotate_columns(columns_df: pd.DataFrame, species: pd.DataFrame) -> pd.DataFrame:
    """
    Join the columns metadata table with the species table.

    Every genome referenced by a column must have a species record, and the
    referenced genomes must not share a distanceToHuman rank.
    """
    missing_fields = [c for c in COLUMNS_FRAME_FIELDS if c not in columns_df.columns]
    if missing_fields:
        raise EmissionMapError(f"Columns table is missing field(s): {missing_fields}")

    genomes = pd.unique(columns_df["genome"])
    missing = [g for g in genomes if g not in species.index]
    if missing:
        raise MissingAnnotationError(sorted(missing))

    used = species.loc[list(genomes)]
    ranks = used["distance_to_human"]
    dup_mask = ranks.duplicated(keep=False)
    if dup_mask.any():
        collisions = {
            int(rank): sorted(names.index.tolist())
            for rank, names in ranks[dup_mask].groupby(ranks[dup_mask])
        }
        raise DuplicateRankError(collisions)

    annotated = columns_df.merge(used, left_on="genome", right_index=True, how="left", validate="many_to_one")
    if len(annotated) != len(columns_df):
        raise EmissionMapError(
            f"Annotation join changed the column count ({len(columns_df)} → {len(annotated)})."
        )
    return annotated


def order_columns(
    frame: pd.DataFrame, annotated: pd.DataFrame
) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """
    Reorder `frame` columns: aligned block then matched block, ascending
    distance_to_human inside each block.

    Returns (reordered frame, ordered layout). The layout carries `position`
    (0-based display index) and `label` (the common name shown on the axis).
    Column keys in the returned frame keep their raw names so aligned and
    matched columns of the same genome stay distinct.
    """
    unknown = set(annotated["name"]) ^ set(frame.columns)
    if unknown:
        raise EmissionMapError(
            f"Columns table and emissions table disagree on column names: {sorted(unknown)[:10]}"
        )
    layout = annotated.assign(
        _block=annotated["emission_type"].map(lambda k: EmissionKind(k).block)
    ).sort_values(["_block", "distance_to_human"], kind="mergesort")
    layout = layout.drop(columns="_block").reset_index(drop=True)
    layout["position"] = range(len(layout))
    layout["label"] = layout["common_name"]

    ordered = frame.loc[:, layout["name"].tolist()]
    ordered.attrs = dict(frame.attrs)
    if sorted(ordered.columns) != sorted(frame.columns):
        raise EmissionMapError("Column reordering lost or duplicated a column.")
    logger.info(
        "Ordered %d column(s): %d aligned, %d matched.",
        len(layout),
        int((layout["emission_type"] == EmissionKind.ALIGNED.value).sum()),
        int((layout["emission_type"] == EmissionKind.MATCHED.value).sum()),
    )
    return ordered, layout
