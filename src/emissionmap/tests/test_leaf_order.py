"""
--------------------------------------------------------------------------------
<emissionmap project>
src/emissionmap/tests/test_leaf_order.py

Optimal leaf ordering: a hand-checked 4-leaf tree, exhaustive child flips on
small random trees, and agreement with scipy's implementation.
--------------------------------------------------------------------------------
"""

from __future__ import annotations

import itertools

import numpy as np
import pytest
import scipy.cluster.hierarchy as sch
from scipy.spatial.distance import pdist

from emissionmap.algo.leaf_order import optimal_leaf_order, ordering_cost, reorder_linkage

# leaves {0,1} merge, {2,3} merge, then the two pairs
Z4 = np.array([[0, 1, 4.0, 2], [2, 3, 4.0, 2], [4, 5, 9.0, 4]])
D4 = np.array(
    [
        [0, 4, 8, 1],
        [4, 0, 9, 8],
        [8, 9, 0, 4],
        [1, 8, 4, 0],
    ],
    dtype=float,
)


def _members(Z: np.ndarray) -> list[frozenset]:
    n = Z.shape[0] + 1
    sets = [frozenset([i]) for i in range(n)]
    for a, b, _, _ in Z:
        sets.append(sets[int(a)] | sets[int(b)])
    return sets[n:]


def _all_flip_costs(Z: np.ndarray, D: np.ndarray) -> list[float]:
    costs = []
    for flips in itertools.product([False, True], repeat=Z.shape[0]):
        Zf = Z.copy()
        for k, flip in enumerate(flips):
            if flip:
                Zf[k, 0], Zf[k, 1] = Zf[k, 1], Zf[k, 0]
        costs.append(ordering_cost(sch.leaves_list(Zf), D))
    return costs


def test_four_leaf_known_optimum():
    order = optimal_leaf_order(Z4, D4)
    assert order.tolist() in ([1, 0, 3, 2], [2, 3, 0, 1])
    assert ordering_cost(order, D4) == pytest.approx(9.0)
    # the naive order pays 4 + 9 + 4
    assert ordering_cost(sch.leaves_list(Z4), D4) == pytest.approx(17.0)


def test_four_leaf_accepts_condensed_distances():
    order = optimal_leaf_order(Z4, D4[np.triu_indices(4, k=1)])
    assert ordering_cost(order, D4) == pytest.approx(9.0)


@pytest.mark.parametrize("seed", [0, 1, 2, 3])
@pytest.mark.parametrize("method", ["average", "complete", "single", "ward"])
def test_matches_brute_force_over_flips(seed, method):
    rng = np.random.default_rng(seed)
    X = rng.random((7, 4))
    y = pdist(X)
    Z = sch.linkage(y, method=method)
    order = optimal_leaf_order(Z, y)
    assert sorted(order.tolist()) == list(range(7))
    assert ordering_cost(order, y) == pytest.approx(min(_all_flip_costs(Z, y)))


@pytest.mark.parametrize("seed", [5, 11])
def test_agrees_with_scipy(seed):
    rng = np.random.default_rng(seed)
    X = rng.random((25, 6))
    y = pdist(X, metric="cityblock")
    Z = sch.linkage(y, method="average")
    ours = ordering_cost(optimal_leaf_order(Z, y), y)
    theirs = ordering_cost(sch.leaves_list(sch.optimal_leaf_ordering(Z, y)), y)
    assert ours == pytest.approx(theirs)


def test_reorder_linkage_preserves_topology():
    rng = np.random.default_rng(3)
    y = pdist(rng.random((12, 3)))
    Z = sch.linkage(y, method="average")
    order = optimal_leaf_order(Z, y)
    Zr = reorder_linkage(Z, order)
    assert sch.leaves_list(Zr).tolist() == order.tolist()
    assert _members(Zr) == _members(Z)
    np.testing.assert_array_equal(Zr[:, 2:], Z[:, 2:])


def test_reorder_linkage_rejects_split_cluster():
    with pytest.raises(ValueError, match="split"):
        reorder_linkage(Z4, [0, 2, 1, 3])


def test_single_leaf():
    Z = np.zeros((0, 4))
    assert optimal_leaf_order(Z, np.zeros((1, 1))).tolist() == [0]
