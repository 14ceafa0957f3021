"""
--------------------------------------------------------------------------------
<emissionmap project>
src/emissionmap/transforms/correct.py

Matched probabilities are conditional on alignment; multiplying by the aligned
probability of the same genome makes them unconditional and comparable.
--------------------------------------------------------------------------------
"""

from __future__ import annotations

import logging
from typing import Iterable, List

import pandas as pd

from ..core.errors import EmissionMapError, IncompletePairError
from ..io.columns import EmissionColumn, EmissionKind

logger = logging.getLogger(__name__)

CORRECTED_ATTR = "emissionmap.matched_corrected"


def find_incomplete_pairs(columns: Iterable[EmissionColumn]) -> List[str]:
    """Genomes that have a matched column but no aligned column."""
    columns = list(columns)
    aligned = {c.genome for c in columns if c.kind is EmissionKind.ALIGNED}
    return sorted({c.genome for c in columns if c.kind is EmissionKind.MATCHED and c.genome not in aligned})


def is_corrected(frame: pd.DataFrame) -> bool:
    return bool(frame.attrs.get(CORRECTED_ATTR, False))


def correct_matched(frame: pd.DataFrame, columns: Iterable[EmissionColumn]) -> pd.DataFrame:
    """
    Return a copy of `frame` where every `<genome>_matched` column is replaced by
    matched × aligned for the same genome and state. Aligned columns are copied
    unchanged.

    Raises IncompletePairError when a matched column lacks its aligned partner,
    and EmissionMapError when `frame` was already corrected.
    """
    if is_corrected(frame):
        raise EmissionMapError(
            "Matched probabilities were already corrected; applying the correction twice "
            "would multiply by the aligned probability again."
        )
    columns = list(columns)
    missing_cols = [c.name for c in columns if c.name not in frame.columns]
    if missing_cols:
        raise EmissionMapError(f"Columns not present in the emissions table: {missing_cols}")
    incomplete = find_incomplete_pairs(columns)
    if incomplete:
        raise IncompletePairError(incomplete)

    out = frame.copy()
    n = 0
    for col in columns:
        if col.kind is not EmissionKind.MATCHED:
            continue
        aligned_name = col.partner_name()
        out[col.name] = frame[col.name].to_numpy() * frame[aligned_name].to_numpy()
        n += 1
    out.attrs[CORRECTED_ATTR] = True
    logger.info("Corrected %d matched column(s) by their aligned probability.", n)
    return out
