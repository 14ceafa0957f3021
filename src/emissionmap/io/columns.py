"""
--------------------------------------------------------------------------------
<emissionmap project>
src/emissionmap/io/columns.py

Strict parser for emissions column names: `<genome>_aligned` / `<genome>_matched`.
Names are tagged once at ingestion; nothing downstream re-parses strings.
--------------------------------------------------------------------------------
"""

from __future__ import annotations

import re
from collections import Counter
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List

import pandas as pd

from ..core.errors import MalformedInputError

_COLUMN_RE = re.compile(r"^(?P<genome>.+)_(?P<kind>aligned|matched)$")

COLUMNS_FRAME_FIELDS = ["name", "genome", "emission_type", "index"]


class EmissionKind(str, Enum):
    ALIGNED = "aligned"
    MATCHED = "matched"

    @property
    def block(self) -> int:
        """Display block: aligned columns come first."""
        return 0 if self is EmissionKind.ALIGNED else 1


@dataclass(frozen=True)
class EmissionColumn:
    genome: str
    kind: EmissionKind
    index: int
    name: str

    def partner_name(self) -> str:
        other = EmissionKind.MATCHED if self.kind is EmissionKind.ALIGNED else EmissionKind.ALIGNED
        return f"{self.genome}_{other.value}"


def parse_column_name(name: str, index: int) -> EmissionColumn:
    m = _COLUMN_RE.match(str(name).strip())
    if m is None or not m.group("genome").strip():
        raise MalformedInputError(
            f"Column {index} ({name!r}) does not match '<genome>_aligned' or '<genome>_matched'."
        )
    return EmissionColumn(
        genome=m.group("genome"),
        kind=EmissionKind(m.group("kind")),
        index=int(index),
        name=str(name).strip(),
    )


def parse_columns(names: Iterable[str]) -> List[EmissionColumn]:
    """Parse all emission column names, reporting every malformed one at once."""
    names = list(names)
    dupes = sorted(n for n, c in Counter(names).items() if c > 1)
    if dupes:
        raise MalformedInputError(f"Duplicated emissions column name(s): {dupes}")
    out: List[EmissionColumn] = []
    bad: List[str] = []
    for i, name in enumerate(names):
        try:
            out.append(parse_column_name(name, i))
        except MalformedInputError:
            bad.append(repr(name))
    if bad:
        raise MalformedInputError(
            f"{len(bad)} emissions column name(s) do not match "
            f"'<genome>_aligned' or '<genome>_matched': {', '.join(bad[:10])}"
            + (" ..." if len(bad) > 10 else "")
        )
    if not out:
        raise MalformedInputError("Emissions table has no emission columns.")
    return out


def columns_frame(columns: Iterable[EmissionColumn]) -> pd.DataFrame:
    """One row per emissions column: the derived columns metadata table."""
    rows = [
        {
            "name": c.name,
            "genome": c.genome,
            "emission_type": c.kind.value,
            "index": c.index,
        }
        for c in columns
    ]
    return pd.DataFrame(rows, columns=COLUMNS_FRAME_FIELDS)
