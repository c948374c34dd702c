#!/usr/bin/env python3
# agglomerative_clustering.py
"""
Agglomerative clustering entry points: distances in, labels (and linkage) out.

`linkage` chooses between the naive engine and the nearest-neighbour chain. The
`agglomerative*` helpers build the full dendrogram and cut it either to a number
of clusters or at a maximum merge distance:

    - agglomerative:             rows of X, Euclidean distances
    - agglomerative_precomputed: a distance matrix (or condensed vector)
    - agglomerative_kernel:      a kernel matrix, via feature-space distances

Doxygen-style docstrings are used (with @param / @return tags).
"""

import logging
from enum import Enum
from numbers import Integral
from typing import Optional, Tuple, Union

import numpy as np

from hierarchical_clustering_ml.config import DEFAULTS
from hierarchical_clustering_ml.cutting import cut_by_height, cut_to_k
from hierarchical_clustering_ml.dendrogram import Dendrogram
from hierarchical_clustering_ml.distances import (
    compute_pairwise_distances,
    kernel_to_distances,
    validate_distance_matrix,
)
from hierarchical_clustering_ml.errors import InvalidK, UnsupportedMethod
from hierarchical_clustering_ml.linkage import LinkageMethod, build
from hierarchical_clustering_ml.nn_chain import build_fast

__all__ = [
    "Strategy",
    "linkage",
    "agglomerative",
    "agglomerative_precomputed",
    "agglomerative_kernel",
]

logger = logging.getLogger(__name__)


class Strategy(str, Enum):
    NAIVE = "naive"
    NN_CHAIN = "nn_chain"


def linkage(matrix,
            method: Union[str, LinkageMethod] = DEFAULTS.linkage,
            strategy: Optional[Union[str, Strategy]] = None) -> Dendrogram:
    """
    Build a dendrogram from a distance matrix.

    @param matrix: (n, n) distance matrix or condensed distance vector, n >= 2
    @param method: linkage method or its name
    @param strategy: 'naive', 'nn_chain', or None to use the chain whenever the
                     method allows it
    @return: Dendrogram with n - 1 merges
    @raises UnsupportedMethod: 'nn_chain' requested for centroid or median
    """
    method = LinkageMethod.parse(method)
    if strategy is None:
        strategy = Strategy.NN_CHAIN if method.is_reducible else Strategy.NAIVE
    try:
        strategy = Strategy(strategy)
    except ValueError:
        raise ValueError(f"Unknown build strategy: {strategy!r}") from None

    if strategy is Strategy.NN_CHAIN:
        if not method.is_reducible:
            raise UnsupportedMethod(
                f"{method.value!r} linkage cannot use the nearest-neighbour chain."
            )
        return build_fast(matrix, method)
    return build(matrix, method)


# the `linkage` keyword of the helpers below shadows the function
_build_dendrogram = linkage


def _cut(dendrogram: Dendrogram,
         n_clusters: Optional[int],
         distance_threshold: Optional[float]) -> np.ndarray:
    if distance_threshold is not None:
        return cut_by_height(dendrogram, distance_threshold)
    return cut_to_k(dendrogram, 1 if n_clusters is None else n_clusters)


def agglomerative_precomputed(D,
                              n_clusters: Optional[int] = None,
                              linkage: Union[str, LinkageMethod] = DEFAULTS.linkage,
                              return_linkage: bool = False,
                              distance_threshold: Optional[float] = None
                              ) -> Tuple[np.ndarray, Optional[np.ndarray]]:
    """
    Cluster observations given their pairwise distances.

    @param D: (n, n) distance matrix or condensed distance vector
    @param n_clusters: desired number of clusters (1 <= n_clusters <= n_samples);
                       defaults to 1 when no distance_threshold is given
    @param linkage: one of 'single', 'complete', 'average', 'weighted', 'ward',
                    'centroid', 'median'
    @param return_linkage: if True, also return SciPy-style linkage matrix Z shape (n-1, 4)
                           with rows [idx1, idx2, dist, new_cluster_size]
    @param distance_threshold: if given, merges above this height are not applied

    @return: tuple (labels, linkage_matrix_or_None)
        - labels: integer array shape (n_samples,) with labels 0..(k-1)
        - linkage_matrix_or_None: np.ndarray shape (n-1, 4) if return_linkage else None
    """
    if n_clusters is not None and distance_threshold is not None:
        raise ValueError("Give either n_clusters or distance_threshold, not both.")
    D = validate_distance_matrix(D)
    n = D.shape[0]
    # fail before building anything
    if n_clusters is not None and (isinstance(n_clusters, bool) or not isinstance(n_clusters, Integral)
                                   or not (1 <= n_clusters <= n)):
        raise InvalidK(f"n_clusters must be an integer between 1 and {n}, got {n_clusters!r}.")

    dendrogram = _build_dendrogram(D, linkage)
    labels = _cut(dendrogram, n_clusters, distance_threshold)
    logger.info("Agglomerative clustering: %d observations -> %d clusters (linkage=%s)",
                n, int(labels.max()) + 1, LinkageMethod.parse(linkage).value)

    if return_linkage:
        return labels, dendrogram.to_linkage_matrix()
    return labels, None


def agglomerative(X: np.ndarray,
                  n_clusters: Optional[int] = None,
                  linkage: Union[str, LinkageMethod] = DEFAULTS.linkage,
                  return_linkage: bool = False,
                  distance_threshold: Optional[float] = None
                  ) -> Tuple[np.ndarray, Optional[np.ndarray]]:
    """
    Perform agglomerative clustering on data matrix X (Euclidean distances).

    @param X: data matrix shape (n_samples, n_features)
    @param n_clusters: see `agglomerative_precomputed`
    @param linkage: see `agglomerative_precomputed`
    @param return_linkage: see `agglomerative_precomputed`
    @param distance_threshold: see `agglomerative_precomputed`
    @return: tuple (labels, linkage_matrix_or_None)
    """
    X = np.asarray(X, dtype=float)
    if X.ndim != 2:
        raise ValueError("X must be a 2D array (n_samples, n_features).")
    return agglomerative_precomputed(compute_pairwise_distances(X), n_clusters, linkage,
                                     return_linkage, distance_threshold)


def agglomerative_kernel(K: np.ndarray,
                         n_clusters: Optional[int] = None,
                         linkage: Union[str, LinkageMethod] = DEFAULTS.linkage,
                         return_linkage: bool = False,
                         distance_threshold: Optional[float] = None
                         ) -> Tuple[np.ndarray, Optional[np.ndarray]]:
    """
    Cluster observations given a kernel (similarity) matrix.

    @param K: symmetric (n, n) kernel matrix
    @return: tuple (labels, linkage_matrix_or_None); other parameters as in
             `agglomerative_precomputed`
    """
    return agglomerative_precomputed(kernel_to_distances(K), n_clusters, linkage,
                                     return_linkage, distance_threshold)
