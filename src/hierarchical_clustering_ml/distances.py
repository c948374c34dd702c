"""
Distance-matrix boundary: building, converting and validating the n x n input.

The clustering engine only consumes a validated square matrix. This module turns
raw observations, kernel matrices, or SciPy-style condensed vectors into one,
and rejects anything the engine must not see.

Doxygen-style docstrings are used (with @param / @return tags).
"""

import math

import numpy as np
from scipy.spatial.distance import squareform

from hierarchical_clustering_ml.config import DEFAULTS
from hierarchical_clustering_ml.errors import EmptyInput, InvalidMatrix

__all__ = [
    "compute_pairwise_distances",
    "kernel_to_distances",
    "validate_distance_matrix",
]


def compute_pairwise_distances(X: np.ndarray) -> np.ndarray:
    """
    Compute full pairwise Euclidean distance matrix for rows of X.

    @param X: 2D array, shape (n_samples, n_features). Rows are observations.
    @return: 2D array D shape (n_samples, n_samples) where D[i, j] is the Euclidean
             distance between X[i] and X[j]. The diagonal entries are zero.
    """
    X = np.asarray(X, dtype=float)
    sq = np.sum(X * X, axis=1, keepdims=True)  # (n,1)
    return _gram_to_distances(X @ X.T, sq)


def kernel_to_distances(K: np.ndarray) -> np.ndarray:
    """
    Convert a kernel (similarity) matrix to feature-space distances.

    d(i, j) = sqrt(K[i, i] + K[j, j] - 2 K[i, j]), the distance between the
    implicit feature vectors of observations i and j.

    @param K: symmetric kernel matrix (n, n)
    @return: distance matrix (n, n) with an exactly zero diagonal
    @raises InvalidMatrix: if K is not a finite, symmetric square matrix
    """
    K = np.asarray(K, dtype=float)
    if K.ndim != 2 or K.shape[0] != K.shape[1]:
        raise InvalidMatrix(f"Kernel matrix must be square, got shape {K.shape}.")
    if not np.all(np.isfinite(K)):
        raise InvalidMatrix("Kernel matrix contains NaN or infinite entries.")
    if not np.allclose(K, K.T, rtol=DEFAULTS.symmetry_rtol, atol=DEFAULTS.symmetry_atol):
        raise InvalidMatrix("Kernel matrix is not symmetric.")
    diag = np.diag(K)[:, None]
    return _gram_to_distances(K, diag)


def _gram_to_distances(G: np.ndarray, diag: np.ndarray) -> np.ndarray:
    D2 = diag + diag.T - 2.0 * G
    # Numerical safety: clip small negatives to zero
    D2[D2 < 0] = 0.0
    D = np.sqrt(D2)
    D = np.triu(D, 1)
    return D + D.T


def validate_distance_matrix(matrix,
                             rtol: float = DEFAULTS.symmetry_rtol,
                             atol: float = DEFAULTS.symmetry_atol) -> np.ndarray:
    """
    Check that `matrix` is a usable distance matrix and return it as a float array.

    Accepts a square (n, n) array-like or a SciPy-style condensed vector of
    length n (n - 1) / 2. The caller's object is never modified.

    @param matrix: square distance matrix or condensed distance vector
    @param rtol: relative tolerance for the symmetry check
    @param atol: absolute tolerance for the symmetry and zero-diagonal checks
    @return: new float array of shape (n, n)
    @raises InvalidMatrix: non-numeric, non-square, non-finite, negative,
                           asymmetric or non-zero diagonal input
    @raises EmptyInput: fewer than two observations
    """
    try:
        D = np.array(matrix, dtype=float)
    except (TypeError, ValueError) as exc:
        raise InvalidMatrix(f"Distance matrix is not numeric: {exc}") from exc

    if D.ndim == 1:
        return _expand_condensed(D)

    if D.ndim != 2 or D.shape[0] != D.shape[1]:
        raise InvalidMatrix(f"Distance matrix must be square, got shape {D.shape}.")
    n = D.shape[0]
    if n < 2:
        raise EmptyInput(f"At least 2 observations are required, got {n}.")
    _check_entries(D)
    if not np.allclose(D, D.T, rtol=rtol, atol=atol):
        raise InvalidMatrix("Distance matrix is not symmetric.")
    if not np.allclose(np.diag(D), 0.0, rtol=0.0, atol=atol):
        raise InvalidMatrix("Distance matrix must have a zero diagonal.")
    return D


def _expand_condensed(d: np.ndarray) -> np.ndarray:
    m = d.shape[0]
    n = int(round((1.0 + math.sqrt(1.0 + 8.0 * m)) / 2.0))
    if n * (n - 1) // 2 != m:
        raise InvalidMatrix(f"Condensed distance vector has invalid length {m}.")
    if n < 2:
        raise EmptyInput(f"At least 2 observations are required, got {n}.")
    _check_entries(d)
    return squareform(d, force="tomatrix", checks=False)


def _check_entries(D: np.ndarray) -> None:
    if not np.all(np.isfinite(D)):
        raise InvalidMatrix("Distance matrix contains NaN or infinite entries.")
    if np.any(D < 0):
        raise InvalidMatrix("Distance matrix contains negative entries.")
