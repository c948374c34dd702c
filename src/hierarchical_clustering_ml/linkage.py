#!/usr/bin/env python3
# linkage.py
"""
Naive agglomerative linkage engine over a precomputed distance matrix.

The engine keeps a dense working copy of the distance table (O(n^2) memory). Each
of the n - 1 steps scans every live pair for the global minimum, merges that pair,
and updates the new cluster's distance to every other live cluster with the
Lance-Williams recurrence of the chosen linkage. Total cost is O(n^3).

Cluster bookkeeping is slot based: the cluster created by a merge takes over the
lower of its children's slots, and `node_ids` maps each slot to its current
cluster id (0..n-1 for observations, n + k for the k-th merge).

Ties between equal minimal distances go to the lexicographically smallest
(lower id, higher id) pair, which makes every build reproducible.

Ward, centroid and median run the recurrence on squared distances; their merge
heights are reported as square roots so that all methods share the input's units.

Doxygen-style docstrings are used (with @param / @return tags).
"""

import logging
import time
from enum import Enum
from typing import List, Tuple, Union

import numpy as np

from hierarchical_clustering_ml.dendrogram import Dendrogram, Merge
from hierarchical_clustering_ml.distances import validate_distance_matrix

__all__ = [
    "LinkageMethod",
    "working_matrix",
    "merge_height",
    "init_clusters",
    "lance_williams_update",
    "extract_min_pair",
    "merge_clusters",
    "build",
]

logger = logging.getLogger(__name__)


class LinkageMethod(str, Enum):
    SINGLE = "single"
    COMPLETE = "complete"
    AVERAGE = "average"
    WEIGHTED = "weighted"
    WARD = "ward"
    CENTROID = "centroid"
    MEDIAN = "median"

    @classmethod
    def parse(cls, value: Union[str, "LinkageMethod"]) -> "LinkageMethod":
        """
        Resolve a method given as enum member or (case-insensitive) name.

        @param value: LinkageMethod or string such as 'average'
        @return: the matching LinkageMethod
        @raises ValueError: for unknown names
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            valid = ", ".join(m.value for m in cls)
            raise ValueError(f"Unsupported linkage: {value!r} (expected one of {valid})") from None

    @property
    def is_monotonic(self) -> bool:
        return self not in (LinkageMethod.CENTROID, LinkageMethod.MEDIAN)

    @property
    def is_reducible(self) -> bool:
        # same set: the reducible methods are exactly those without inversions
        return self.is_monotonic

    @property
    def uses_squared_distances(self) -> bool:
        return self in (LinkageMethod.WARD, LinkageMethod.CENTROID, LinkageMethod.MEDIAN)


def working_matrix(D: np.ndarray, method: LinkageMethod) -> np.ndarray:
    """
    Build the engine's private working table from a validated distance matrix.

    Only the strict upper triangle of D is read and mirrored, so the table is
    exactly symmetric. Squared-distance methods get squared entries. The diagonal
    is +inf so a cluster is never its own nearest neighbour.

    @param D: validated (n, n) distance matrix
    @param method: linkage method
    @return: new (n, n) float array
    """
    W = np.triu(D, 1)
    W = W + W.T
    if method.uses_squared_distances:
        W = W * W
    np.fill_diagonal(W, np.inf)
    return W


def merge_height(method: LinkageMethod, value: float) -> float:
    """Convert a working-table value into a reported merge height."""
    if method.uses_squared_distances:
        # centroid / median can go slightly negative on non-Euclidean input
        return float(np.sqrt(max(value, 0.0)))
    return float(value)


def init_clusters(n: int) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Initialize cluster bookkeeping structures.

    @param n: Number of initial clusters (typically = number of samples).

    @return: A tuple (active, sizes, node_ids)
        - active: boolean array length n (True indicates the slot holds a live cluster)
        - sizes: integer array length n (cluster sizes)
        - node_ids: integer array length n; node_ids[i] is the cluster id in slot i
    """
    active = np.ones(n, dtype=bool)
    sizes = np.ones(n, dtype=int)
    node_ids = np.arange(n, dtype=int)
    return active, sizes, node_ids


def lance_williams_update(linkage: Union[str, LinkageMethod],
                          d_ik, d_jk,
                          size_i: int, size_j: int,
                          d_ij: float = 0.0,
                          size_k=1):
    """
    Lance-Williams update: distance between the merged cluster (i u j) and k.

    Works on scalars or NumPy arrays (one entry per cluster k). For ward, centroid
    and median all distances are squared distances.

    @param linkage: linkage method or its name
    @param d_ik: distance between cluster i and k
    @param d_jk: distance between cluster j and k
    @param size_i: size of cluster i (int)
    @param size_j: size of cluster j (int)
    @param d_ij: distance between cluster i and j (ward, centroid, median)
    @param size_k: size of cluster k (ward only)
    @return: updated distance d(iuj, k)
    """
    method = LinkageMethod.parse(linkage)
    if method is LinkageMethod.SINGLE:
        return np.minimum(d_ik, d_jk)
    elif method is LinkageMethod.COMPLETE:
        return np.maximum(d_ik, d_jk)
    elif method is LinkageMethod.AVERAGE:
        return (size_i * d_ik + size_j * d_jk) / (size_i + size_j)
    elif method is LinkageMethod.WEIGHTED:
        return 0.5 * (d_ik + d_jk)
    elif method is LinkageMethod.WARD:
        total = size_i + size_j + size_k
        return ((size_i + size_k) * d_ik + (size_j + size_k) * d_jk - size_k * d_ij) / total
    elif method is LinkageMethod.CENTROID:
        size_ij = size_i + size_j
        return (size_i * d_ik + size_j * d_jk) / size_ij - (size_i * size_j * d_ij) / (size_ij * size_ij)
    else:
        return 0.5 * d_ik + 0.5 * d_jk - 0.25 * d_ij


def extract_min_pair(W: np.ndarray, active: np.ndarray, node_ids: np.ndarray) -> Tuple[int, int, float]:
    """
    Find the live pair with the globally smallest working distance.

    Among equal minima the pair whose (lower id, higher id) is lexicographically
    smallest wins.

    @param W: working distance table (n, n), +inf on the diagonal
    @param active: boolean mask of live slots
    @param node_ids: cluster id held by each slot
    @return: tuple (slot_i, slot_j, value) with slot_i < slot_j
    """
    live = np.flatnonzero(active)
    sub = W[np.ix_(live, live)]
    value = sub.min()
    rows, cols = np.nonzero(np.triu(sub == value, k=1))
    a = node_ids[live[rows]]
    b = node_ids[live[cols]]
    best = np.lexsort((np.maximum(a, b), np.minimum(a, b)))[0]
    i, j = int(live[rows[best]]), int(live[cols[best]])
    return min(i, j), max(i, j), float(value)


def merge_clusters(i: int, j: int,
                   active: np.ndarray,
                   sizes: np.ndarray,
                   W: np.ndarray,
                   linkage: LinkageMethod) -> None:
    """
    Merge cluster j into cluster i. Update active mask, sizes and the working
    table rows/columns of every remaining live cluster.

    @param i: slot of cluster to keep (int)
    @param j: slot of cluster to deactivate (int). j != i.
    @param active: boolean mask of live slots; modified in-place
    @param sizes: integer array of cluster sizes; modified in-place
    @param W: working distance table (n, n); modified in-place
    @param linkage: linkage method
    @return: None
    """
    if i == j:
        raise ValueError("Cannot merge a cluster with itself.")
    if not (active[i] and active[j]):
        raise ValueError("Both clusters must be active to merge.")

    size_i = int(sizes[i])
    size_j = int(sizes[j])

    act_idx = np.flatnonzero(active)
    others = act_idx[(act_idx != i) & (act_idx != j)]

    d_new = lance_williams_update(linkage, W[i, others], W[j, others],
                                  size_i, size_j, d_ij=W[i, j], size_k=sizes[others])

    W[i, others] = d_new
    W[others, i] = d_new

    # deactivate j: set its distances to +inf and update active/sizes
    W[j, :] = np.inf
    W[:, j] = np.inf
    active[j] = False
    sizes[i] = size_i + size_j
    sizes[j] = 0


def build(matrix, method: Union[str, LinkageMethod] = "average") -> Dendrogram:
    """
    Build the full dendrogram with the naive O(n^3) algorithm.

    @param matrix: (n, n) distance matrix or condensed distance vector, n >= 2
    @param method: linkage method or its name
    @return: Dendrogram with exactly n - 1 merges
    @raises InvalidMatrix: malformed distances
    @raises EmptyInput: n < 2
    """
    method = LinkageMethod.parse(method)
    D = validate_distance_matrix(matrix)
    n = D.shape[0]
    logger.debug("Naive linkage: n=%d, method=%s", n, method.value)
    start = time.perf_counter()

    W = working_matrix(D, method)
    active, sizes, node_ids = init_clusters(n)
    merges: List[Merge] = []

    for step in range(n - 1):
        i, j, value = extract_min_pair(W, active, node_ids)
        a, b = int(node_ids[i]), int(node_ids[j])
        merges.append(Merge(min(a, b), max(a, b), merge_height(method, value),
                            int(sizes[i] + sizes[j])))
        merge_clusters(i, j, active, sizes, W, method)
        node_ids[i] = n + step
        node_ids[j] = -1

    logger.debug("Naive linkage finished in %.3fs", time.perf_counter() - start)
    return Dendrogram(tuple(merges))
