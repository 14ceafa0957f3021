"""
--------------------------------------------------------------------------------
<emissionmap project>
src/emissionmap/plots/layout.py

Grid geometry shared by the renderers: where each cell sits once gaps are
inserted between column blocks (aligned | matched) and row clusters.
--------------------------------------------------------------------------------
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Hashable, List, Sequence

import numpy as np


@dataclass(frozen=True)
class AxisLayout:
    starts: np.ndarray  # left/top coordinate of each cell (cells are 1 unit wide)
    boundaries: List[int]  # cell indices that start a new block
    extent: float  # total length including gaps

    @property
    def centers(self) -> np.ndarray:
        return self.starts + 0.5

    @property
    def n_blocks(self) -> int:
        return len(self.boundaries) + 1 if len(self.starts) else 0

    def blocks(self) -> List[slice]:
        edges = [0, *self.boundaries, len(self.starts)]
        return [slice(a, b) for a, b in zip(edges[:-1], edges[1:])]

    def edges(self, block: slice) -> np.ndarray:
        """Cell edges for one block (len = cells + 1), ready for pcolormesh."""
        starts = self.starts[block]
        return np.append(starts, starts[-1] + 1.0)


def axis_layout(block_ids: Sequence[Hashable], gap: float) -> AxisLayout:
    """Lay cells out along one axis, adding `gap` units wherever the block id changes."""
    ids = list(block_ids)
    n = len(ids)
    if n == 0:
        return AxisLayout(starts=np.zeros(0), boundaries=[], extent=0.0)
    boundaries = [i for i in range(1, n) if ids[i] != ids[i - 1]]
    offsets = np.zeros(n)
    for b in boundaries:
        offsets[b:] += gap
    starts = np.arange(n, dtype=np.float64) + offsets
    return AxisLayout(starts=starts, boundaries=boundaries, extent=float(n + gap * len(boundaries)))


def figure_size(
    rows: AxisLayout,
    cols: AxisLayout,
    *,
    cell_width: float,
    cell_height: float,
    extra_width: float = 0.0,
    extra_height: float = 0.0,
) -> tuple[float, float]:
    """Width and height in inches; both grow linearly with the column and row counts."""
    width = cell_width * cols.extent + extra_width
    height = cell_height * rows.extent + extra_height
    return float(width), float(height)
