"""
--------------------------------------------------------------------------------
<emissionmap project>
src/emissionmap/algo/hierarchy.py

Row (state) clustering: agglomerative linkage, optimal leaf ordering on the
resulting tree, and an optional flat cut into a fixed number of clusters.
--------------------------------------------------------------------------------
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional

import numpy as np
import scipy.cluster.hierarchy as sch
from scipy.spatial.distance import pdist

from ..core.errors import ConfigError, EmissionMapError
from .leaf_order import optimal_leaf_order, ordering_cost, reorder_linkage

logger = logging.getLogger(__name__)


@dataclass
class RowClustering:
    """
    `order` lists row indices top-to-bottom. `labels` holds the flat cluster
    (1..k, numbered in display order) of each row in ORIGINAL row order, or is
    None when no cut was requested. `linkage` is None for single-row tables.
    """

    order: np.ndarray
    linkage: Optional[np.ndarray]
    labels: Optional[np.ndarray]
    metric: str
    method: str
    cost: float = 0.0

    @property
    def n_clusters(self) -> int:
        return 0 if self.labels is None else int(np.unique(self.labels).size)

    def labels_in_order(self) -> Optional[np.ndarray]:
        return None if self.labels is None else self.labels[self.order]


def _resolve_method(method: str, metric: str) -> str:
    if method == "ward" and metric != "euclidean":
        logger.warning("Ward linkage requires Euclidean distance; switching to 'average'.")
        return "average"
    return method


def cut_clusters(Z: np.ndarray, order: np.ndarray, n_clusters: int) -> np.ndarray:
    """
    Cut tree `Z` into exactly `n_clusters` groups by undoing the top merges.
    Labels are renumbered 1..k by first appearance along `order`, so clusters
    read top-to-bottom in the figure.
    """
    n = Z.shape[0] + 1
    if n_clusters < 1 or n_clusters > n:
        raise ConfigError(f"n_clusters must be between 1 and the number of states ({n}); got {n_clusters}.")
    raw = sch.cut_tree(Z, n_clusters=n_clusters).ravel()
    if np.unique(raw).size != n_clusters:
        raise EmissionMapError(
            f"Tree cut produced {np.unique(raw).size} clusters instead of {n_clusters}."
        )
    remap: dict[int, int] = {}
    for idx in order:
        remap.setdefault(int(raw[idx]), len(remap) + 1)
    return np.array([remap[int(c)] for c in raw], dtype=np.int64)


def cluster_boundaries(labels_in_order: Optional[np.ndarray]) -> List[int]:
    """Display positions where a new cluster starts (k-1 entries; none without a cut)."""
    if labels_in_order is None or len(labels_in_order) == 0:
        return []
    lab = np.asarray(labels_in_order)
    return [int(i) for i in np.flatnonzero(lab[1:] != lab[:-1]) + 1]


def cluster_rows(
    X: np.ndarray,
    *,
    metric: str = "euclidean",
    method: str = "average",
    n_clusters: int = 0,
    optimal_ordering: bool = True,
) -> RowClustering:
    X = np.asarray(X, dtype=np.float64)
    if X.ndim != 2:
        raise EmissionMapError(f"Row clustering needs a 2-D matrix; got shape {X.shape}.")
    n = X.shape[0]
    if n_clusters < 0:
        raise ConfigError(f"n_clusters must be >= 0; got {n_clusters}.")
    if n_clusters > n:
        raise ConfigError(
            f"Cannot cut {n} state(s) into {n_clusters} clusters; use n_clusters <= {n} (0 disables the cut)."
        )
    if n < 2:
        logger.info("Single state: skipping row clustering.")
        labels = np.ones(n, dtype=np.int64) if n_clusters else None
        return RowClustering(
            order=np.arange(n), linkage=None, labels=labels, metric=metric, method=method
        )

    method = _resolve_method(method, metric)
    dists = pdist(X, metric=metric)
    if not np.isfinite(dists).all():
        raise EmissionMapError(
            f"Metric '{metric}' produced non-finite distances (e.g. 'correlation' on a constant row). "
            "Pick another metric."
        )
    Z = sch.linkage(dists, method=method)
    default_order = sch.leaves_list(Z)
    if optimal_ordering:
        order = optimal_leaf_order(Z, dists)
        Z = reorder_linkage(Z, order)
        logger.info(
            "Optimal leaf ordering: adjacent distance %.4g → %.4g",
            ordering_cost(default_order, dists),
            ordering_cost(order, dists),
        )
    else:
        order = default_order
    labels = cut_clusters(Z, order, n_clusters) if n_clusters > 0 else None
    logger.info(
        "Clustered %d state(s) (metric=%s, method=%s, clusters=%s).",
        n,
        metric,
        method,
        n_clusters or "uncut",
    )
    return RowClustering(
        order=np.asarray(order, dtype=np.int64),
        linkage=Z,
        labels=labels,
        metric=metric,
        method=method,
        cost=ordering_cost(order, dists),
    )
