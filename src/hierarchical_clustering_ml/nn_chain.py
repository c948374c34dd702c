"""
Nearest-neighbour chain linkage, O(n^2) time for reducible linkage methods.

The build runs in two phases over the same working table the naive engine uses:

1. `chain_merges` grows a chain of nearest neighbours until its last two
   clusters are reciprocal nearest neighbours, merges them, and continues from
   the rest of the chain. This discovers the merge tree, but in chain order.
2. `replay_merges` applies that tree again on a fresh table, always taking the
   ready merge (both children formed) with the smallest working distance, ties
   to the smallest (lower id, higher id) pair. This is the naive engine's
   selection rule, and the updates go through the same `merge_clusters`, so
   ids, order and heights come out identical to `linkage.build`.

With tied distances several trees are valid and the chain may not pick the one
the naive scan picks, so a tie met during phase 1 hands the whole build to
`linkage.build`. Tie-free input keeps the O(n^2) path.

Only methods with the reducibility property are accepted: single, complete,
average, weighted and ward.
"""

import heapq
import logging
import time
from typing import Dict, List, Optional, Tuple, Union

import numpy as np

from hierarchical_clustering_ml.config import DEFAULTS
from hierarchical_clustering_ml.dendrogram import Dendrogram, Merge
from hierarchical_clustering_ml.distances import validate_distance_matrix
from hierarchical_clustering_ml.errors import UnsupportedMethod
from hierarchical_clustering_ml.linkage import (
    LinkageMethod,
    build,
    init_clusters,
    merge_clusters,
    merge_height,
    working_matrix,
)

__all__ = ["nearest_neighbor", "near_ties", "chain_merges", "replay_merges", "build_fast"]

logger = logging.getLogger(__name__)


def nearest_neighbor(W: np.ndarray, a: int, prev: int, node_ids: np.ndarray) -> int:
    """
    Slot of the live cluster closest to slot `a`.

    Ties prefer `prev` (the chain element before `a`), which guarantees the chain
    stops at a reciprocal pair, and otherwise the lowest cluster id.

    @param W: working distance table, +inf for dead slots and the diagonal
    @param a: slot at the tip of the chain
    @param prev: slot before `a` in the chain, or -1
    @param node_ids: cluster id held by each slot
    @return: slot of the nearest neighbour
    """
    row = W[a]
    value = row.min()
    if prev >= 0 and row[prev] == value:
        return prev
    candidates = np.flatnonzero(row == value)
    return int(candidates[np.argmin(node_ids[candidates])])


def near_ties(values: np.ndarray, value: float, rtol: float = DEFAULTS.tie_rtol) -> int:
    """
    Count entries of `values` equal to `value` up to a relative tolerance.

    @param values: working-table entries, +inf for dead slots
    @param value: reference distance
    @param rtol: relative tolerance; 0 distances must match exactly
    @return: number of matching entries
    """
    return int(np.count_nonzero(np.abs(values - value) <= rtol * abs(value)))


def chain_merges(W: np.ndarray, method: LinkageMethod,
                 rtol: float = DEFAULTS.tie_rtol) -> Optional[List[Tuple[int, int]]]:
    """
    Discover the merge tree with the nearest-neighbour chain.

    Clusters created here get provisional ids n + p in discovery order p. A new
    chain always starts at the live cluster with the lowest id.

    The chain only reproduces the naive engine's tree when no choice it makes is
    tied. The scan stops and returns None as soon as a nearest neighbour is not
    unique, or a reciprocal pair's distance also occurs between either member
    and another live cluster.

    @param W: working distance table (n, n); modified in-place
    @param method: reducible linkage method
    @param rtol: relative tolerance under which two distances count as tied
    @return: list of n - 1 (child id, child id) pairs, indexed by discovery order,
             or None if a tie was met
    """
    n = W.shape[0]
    active, sizes, node_ids = init_clusters(n)
    chain: List[int] = []
    pairs: List[Tuple[int, int]] = []

    for p in range(n - 1):
        if not chain:
            live = np.flatnonzero(active)
            chain.append(int(live[np.argmin(node_ids[live])]))
        while True:
            a = chain[-1]
            prev = chain[-2] if len(chain) > 1 else -1
            b = nearest_neighbor(W, a, prev, node_ids)
            if near_ties(W[a], W[a, b], rtol) > 1:
                return None
            if b == prev:
                break
            chain.append(b)
            if len(chain) > n - p:
                raise RuntimeError("Nearest-neighbour chain revisited a cluster; "
                                   f"{method.value!r} linkage is not reducible on this input.")
        chain.pop()
        chain.pop()

        # W[a, b] itself is counted once in each row
        if near_ties(W[a], W[a, b], rtol) + near_ties(W[b], W[a, b], rtol) > 2:
            return None

        i, j = min(a, b), max(a, b)
        pairs.append((int(node_ids[i]), int(node_ids[j])))
        merge_clusters(i, j, active, sizes, W, method)
        node_ids[i] = n + p
        node_ids[j] = -1

    return pairs


def replay_merges(W: np.ndarray, method: LinkageMethod,
                  pairs: List[Tuple[int, int]]) -> List[Merge]:
    """
    Re-apply a known merge tree in the naive engine's order.

    A merge becomes ready once both of its children exist; its key
    (working distance, lower id, higher id) is fixed from then on, because the
    distance between two live clusters only changes when one of them merges.

    @param W: fresh working distance table (n, n); modified in-place
    @param method: linkage method used to build `pairs`
    @param pairs: merge tree from `chain_merges` (provisional ids)
    @return: merges in final order, with final ids
    """
    n = W.shape[0]
    active, sizes, _ = init_clusters(n)
    slot: Dict[int, int] = {leaf: leaf for leaf in range(n)}
    final_id: Dict[int, int] = {leaf: leaf for leaf in range(n)}
    parent: Dict[int, int] = {}
    for p, (x, y) in enumerate(pairs):
        parent[x] = p
        parent[y] = p

    ready: List[Tuple[float, int, int, int]] = []

    def push(p: int) -> None:
        x, y = pairs[p]
        lo, hi = sorted((final_id[x], final_id[y]))
        heapq.heappush(ready, (float(W[slot[x], slot[y]]), lo, hi, p))

    for p, (x, y) in enumerate(pairs):
        if x < n and y < n:
            push(p)

    merges: List[Merge] = []
    for step in range(n - 1):
        value, lo, hi, p = heapq.heappop(ready)
        x, y = pairs[p]
        i, j = sorted((slot[x], slot[y]))
        merges.append(Merge(lo, hi, merge_height(method, value), int(sizes[i] + sizes[j])))
        merge_clusters(i, j, active, sizes, W, method)

        created = n + p
        slot[created] = i
        final_id[created] = n + step
        if created in parent:
            q = parent[created]
            qx, qy = pairs[q]
            sibling = qy if qx == created else qx
            if sibling in final_id:
                push(q)

    return merges


def build_fast(matrix, method: Union[str, LinkageMethod] = "average") -> Dendrogram:
    """
    Build the dendrogram with the nearest-neighbour chain algorithm.

    Produces the same Dendrogram as `linkage.build` for the same input.

    @param matrix: (n, n) distance matrix or condensed distance vector, n >= 2
    @param method: reducible linkage method or its name
    @return: Dendrogram with exactly n - 1 merges
    @raises UnsupportedMethod: for centroid and median linkage
    @raises InvalidMatrix: malformed distances
    @raises EmptyInput: n < 2
    """
    method = LinkageMethod.parse(method)
    if not method.is_reducible:
        raise UnsupportedMethod(
            f"{method.value!r} linkage lacks the reducibility property; "
            "use the naive builder instead."
        )
    D = validate_distance_matrix(matrix)
    n = D.shape[0]
    logger.debug("NN-chain linkage: n=%d, method=%s", n, method.value)
    start = time.perf_counter()

    pairs = chain_merges(working_matrix(D, method), method)
    if pairs is None:
        logger.debug("Tied distances: NN-chain falls back to the naive scan")
        return build(D, method)
    merges = replay_merges(working_matrix(D, method), method, pairs)

    logger.debug("NN-chain linkage finished in %.3fs", time.perf_counter() - start)
    return Dendrogram(tuple(merges))
