"""
--------------------------------------------------------------------------------
<emissionmap project>
src/emissionmap/algo/leaf_order.py

Optimal leaf ordering on a fixed merge tree (Bar-Joseph, Gifford & Jaakkola,
Bioinformatics 2001).

For an internal node v with children w and x, M(v, i, j) is the smallest sum of
adjacent distances over orderings of v's leaves that start at leaf i (under w)
and end at leaf j (under x):

    M(v, i, j) = min_{h in w, l in x}  M(w, i, h) + D(h, l) + M(x, l, j)

The inner minimum is split in two passes so each node costs O(|w|·|x|·(|w|+|x|)).
Each pass broadcasts a |w|×|w|×|x| (then |w|×|x|×|x|) float64 block, so peak
memory at the root is about n³/8 values: ~1 GB for 1000 leaves.
Only child flips are explored; the topology from the clustering step is never
changed.
--------------------------------------------------------------------------------
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Sequence

import numpy as np
from scipy.spatial.distance import squareform


@dataclass
class _NodeTable:
    leaves: np.ndarray  # leaf ids under this node, left child's leaves first
    n_left: int  # how many of `leaves` belong to the left child
    cost: np.ndarray | None  # (k, k) endpoint cost; inf where both ends share a child
    best_h: np.ndarray | None = None  # (n_left, n_right): left end of the bridge given (i, l)
    best_l: np.ndarray | None = None  # (n_left, n_right): right end of the bridge given (i, j)
    children: tuple[int, int] | None = None


def _as_square(D: np.ndarray, n: int) -> np.ndarray:
    D = np.asarray(D, dtype=np.float64)
    if D.ndim == 1:
        D = squareform(D, checks=False)
    if D.shape != (n, n):
        raise ValueError(f"Distance matrix has shape {D.shape}; expected ({n}, {n}).")
    if not np.isfinite(D).all():
        raise ValueError("Distance matrix contains NaN/inf.")
    return D


def _children(Z: np.ndarray, k: int) -> tuple[int, int]:
    return int(Z[k, 0]), int(Z[k, 1])


def _check_linkage(Z: np.ndarray) -> int:
    Z = np.asarray(Z)
    if Z.ndim != 2 or Z.shape[1] != 4:
        raise ValueError(f"Linkage matrix must have shape (n-1, 4); got {Z.shape}.")
    return Z.shape[0] + 1


def optimal_leaf_order(Z: np.ndarray, D: np.ndarray) -> np.ndarray:
    """
    Return the leaf permutation consistent with merge tree `Z` that minimizes
    the sum of distances between adjacent leaves.

    `D` is the square (n×n) or condensed pairwise distance matrix used to build `Z`
    (any dissimilarity works; it need not be the one used for clustering).
    """
    Z = np.asarray(Z, dtype=np.float64)
    n = _check_linkage(Z)
    if n == 1:
        return np.zeros(1, dtype=np.int64)
    D = _as_square(D, n)

    tables: Dict[int, _NodeTable] = {}

    def table(node: int) -> _NodeTable:
        if node < n:
            return _NodeTable(leaves=np.array([node]), n_left=1, cost=np.zeros((1, 1)))
        return tables[node]

    for k in range(n - 1):
        w, x = _children(Z, k)
        tw, tx = table(w), table(x)
        a, b = len(tw.leaves), len(tx.leaves)
        bridge = D[np.ix_(tw.leaves, tx.leaves)]  # (a, b): D(h, l)

        # pass 1: T(i, l) = min_h M(w, i, h) + D(h, l)
        s1 = tw.cost[:, :, None] + bridge[None, :, :]  # (i, h, l)
        best_h = np.argmin(s1, axis=1)
        t = np.take_along_axis(s1, best_h[:, None, :], axis=1)[:, 0, :]

        # pass 2: M(v, i, j) = min_l T(i, l) + M(x, l, j)
        s2 = t[:, :, None] + tx.cost[None, :, :]  # (i, l, j)
        best_l = np.argmin(s2, axis=1)
        m = np.take_along_axis(s2, best_l[:, None, :], axis=1)[:, 0, :]

        cost = np.full((a + b, a + b), np.inf)
        cost[:a, a:] = m
        cost[a:, :a] = m.T
        tables[n + k] = _NodeTable(
            leaves=np.concatenate([tw.leaves, tx.leaves]),
            n_left=a,
            cost=cost,
            best_h=best_h,
            best_l=best_l,
            children=(w, x),
        )
        # backtracking only needs the argmin tables
        for child in (w, x):
            if child >= n:
                tables[child].cost = None

    root = tables[2 * n - 2]
    a = root.n_left
    cross = root.cost[:a, a:]
    i, j = np.unravel_index(int(np.argmin(cross)), cross.shape)
    return _backtrack(tables, n, 2 * n - 2, int(i), int(a + j))


def _backtrack(tables: Dict[int, _NodeTable], n: int, root: int, start: int, end: int) -> np.ndarray:
    """Emit leaves of `root` from local endpoint `start` to `end` (iterative; trees can be deep)."""
    order: List[int] = []
    stack = [(root, start, end)]
    while stack:
        node, s, e = stack.pop()
        if node < n:
            order.append(node)
            continue
        tbl = tables[node]
        a = tbl.n_left
        w_id, x_id = tbl.children
        if s < a:
            i, j = s, e - a
            l = int(tbl.best_l[i, j])
            h = int(tbl.best_h[i, l])
            # left part i→h, then right part l→j
            stack.append((x_id, l, j))
            stack.append((w_id, i, h))
        else:
            # reversed path: right part j→l, then left part h→i
            i, j = e, s - a
            l = int(tbl.best_l[i, j])
            h = int(tbl.best_h[i, l])
            stack.append((w_id, h, i))
            stack.append((x_id, j, l))
    return np.asarray(order, dtype=np.int64)


def ordering_cost(order: Sequence[int], D: np.ndarray) -> float:
    """Sum of distances between consecutive leaves in `order`."""
    order = np.asarray(order, dtype=np.int64)
    if order.size < 2:
        return 0.0
    D = np.asarray(D, dtype=np.float64)
    if D.ndim == 1:
        D = squareform(D, checks=False)
    return float(D[order[:-1], order[1:]].sum())


def reorder_linkage(Z: np.ndarray, order: Sequence[int]) -> np.ndarray:
    """
    Swap merge children so `scipy.cluster.hierarchy.leaves_list` (and the
    dendrogram) reproduce `order`. Heights, sizes and memberships are unchanged.
    Raises ValueError if `order` splits any cluster of `Z`.
    """
    Z = np.array(Z, dtype=np.float64, copy=True)
    n = _check_linkage(Z)
    order = np.asarray(order, dtype=np.int64)
    if sorted(order.tolist()) != list(range(n)):
        raise ValueError("order must be a permutation of the leaves.")
    lo = np.empty(2 * n - 1, dtype=np.int64)
    hi = np.empty(2 * n - 1, dtype=np.int64)
    lo[order] = np.arange(n)
    hi[order] = np.arange(n)
    for k in range(n - 1):
        c0, c1 = _children(Z, k)
        node = n + k
        lo[node] = min(lo[c0], lo[c1])
        hi[node] = max(hi[c0], hi[c1])
        if hi[node] - lo[node] + 1 != int(Z[k, 3]):
            raise ValueError(f"order is not consistent with the tree: cluster {node} is split.")
        if lo[c0] > lo[c1]:
            Z[k, 0], Z[k, 1] = c1, c0
    return Z
