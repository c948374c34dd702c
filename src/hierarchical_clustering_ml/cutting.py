"""
Flatten a Dendrogram into cluster labels.

Both cuts pick a subset of merges, join each merge's children with its new id in a
disjoint-set forest over all 2n - 1 cluster ids, and label every observation by the
root of its component. Labels are numbered by first appearance in observation
order, so observation 0 is always in cluster 0.

Merges are visited in recorded order and heights are never assumed sorted, so
dendrograms with inversions (centroid, median) are handled as-is.
"""

import math
from numbers import Integral
from typing import Iterable

import numpy as np
from scipy.cluster.hierarchy import DisjointSet

from hierarchical_clustering_ml.dendrogram import Dendrogram, Merge
from hierarchical_clustering_ml.errors import InvalidK, InvalidThreshold

__all__ = ["cut_to_k", "cut_by_height", "n_clusters_at"]


def _labels(dendrogram: Dendrogram, applied: Iterable[int]) -> np.ndarray:
    n = dendrogram.n_observations
    forest = DisjointSet(range(2 * n - 1))
    for k in applied:
        merge: Merge = dendrogram[k]
        forest.merge(merge.left, n + k)
        forest.merge(merge.right, n + k)

    labels = np.empty(n, dtype=int)
    seen = {}
    for obs in range(n):
        root = forest[obs]
        labels[obs] = seen.setdefault(root, len(seen))
    return labels


def cut_to_k(dendrogram: Dendrogram, k: int) -> np.ndarray:
    """
    Partition into exactly k clusters by applying the first n - k merges.

    @param dendrogram: Dendrogram over n observations
    @param k: number of clusters, 1 <= k <= n
    @return: integer array shape (n,) with labels 0..k-1
    @raises InvalidK: if k is not an integer in [1, n]
    """
    n = dendrogram.n_observations
    if isinstance(k, bool) or not isinstance(k, Integral) or not (1 <= k <= n):
        raise InvalidK(f"k must be an integer between 1 and {n}, got {k!r}.")
    return _labels(dendrogram, range(n - int(k)))


def _check_threshold(threshold: float) -> float:
    try:
        value = float(threshold)
    except (TypeError, ValueError) as exc:
        raise InvalidThreshold(f"Threshold must be a number, got {threshold!r}.") from exc
    if math.isnan(value):
        raise InvalidThreshold("Threshold must not be NaN.")
    return value


def cut_by_height(dendrogram: Dendrogram, threshold: float) -> np.ndarray:
    """
    Partition by applying every merge whose height is <= threshold.

    With inversions, a merge below the threshold whose child merge lies above
    it only joins the parts its applied descendants already connect.

    @param dendrogram: Dendrogram over n observations
    @param threshold: maximum merge height to apply
    @return: integer array shape (n,) of labels
    @raises InvalidThreshold: if threshold is NaN or not numeric
    """
    value = _check_threshold(threshold)
    applied = [k for k, merge in enumerate(dendrogram) if merge.height <= value]
    return _labels(dendrogram, applied)


def n_clusters_at(dendrogram: Dendrogram, threshold: float) -> int:
    """Number of clusters `cut_by_height` yields at `threshold`."""
    return int(cut_by_height(dendrogram, threshold).max()) + 1
