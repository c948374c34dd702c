"""
Immutable merge history produced by the linkage engines.

A dendrogram over n observations is stored as a flat sequence of n - 1 merges
indexed by creation order. Ids 0..n-1 are the observations; merge k creates
cluster id n + k. Rows map one-to-one onto SciPy's linkage matrix
(left, right, height, size).
"""

from dataclasses import dataclass
from typing import Iterator, List, NamedTuple, Sequence, Tuple

import numpy as np

from hierarchical_clustering_ml.errors import InvalidDendrogram

__all__ = ["Merge", "Dendrogram"]


class Merge(NamedTuple):
    """One agglomeration step: two cluster ids joined at `height`."""
    left: int
    right: int
    height: float
    size: int


@dataclass(frozen=True)
class Dendrogram:
    """
    Ordered, validated sequence of Merge records.

    Equality compares merges exactly, so two dendrograms are equal only when
    their merge order, ids, heights and sizes agree bit for bit.
    """
    merges: Tuple[Merge, ...]

    def __post_init__(self) -> None:
        merges = tuple(
            Merge(int(m[0]), int(m[1]), float(m[2]), int(m[3])) for m in self.merges
        )
        _check_merges(merges)
        object.__setattr__(self, "merges", merges)

    @property
    def n_observations(self) -> int:
        return len(self.merges) + 1

    def __len__(self) -> int:
        return len(self.merges)

    def __iter__(self) -> Iterator[Merge]:
        return iter(self.merges)

    def __getitem__(self, index: int) -> Merge:
        return self.merges[index]

    @property
    def heights(self) -> np.ndarray:
        return np.array([m.height for m in self.merges], dtype=float)

    @property
    def sizes(self) -> np.ndarray:
        return np.array([m.size for m in self.merges], dtype=int)

    def is_monotonic(self) -> bool:
        """True when no merge is lower than an earlier one (no inversions)."""
        h = self.heights
        return bool(np.all(h[1:] >= h[:-1]))

    def children(self, cluster_id: int) -> Tuple[int, int]:
        """
        Return the two ids joined to form `cluster_id`.

        @param cluster_id: id of a merged cluster, in [n, 2n - 1)
        @return: tuple (left, right)
        @raises IndexError: if `cluster_id` is an observation or out of range
        """
        n = self.n_observations
        if not (n <= cluster_id < 2 * n - 1):
            raise IndexError(f"{cluster_id} is not a merged cluster id.")
        merge = self.merges[cluster_id - n]
        return merge.left, merge.right

    def leaves(self, cluster_id: int) -> List[int]:
        """
        Observation indices contained in a cluster, in ascending order.

        @param cluster_id: any id in [0, 2n - 1)
        @return: sorted list of observation indices
        @raises IndexError: if `cluster_id` is out of range
        """
        n = self.n_observations
        if not (0 <= cluster_id < 2 * n - 1):
            raise IndexError(f"Cluster id {cluster_id} out of range.")
        found: List[int] = []
        stack = [cluster_id]
        while stack:
            node = stack.pop()
            if node < n:
                found.append(node)
            else:
                merge = self.merges[node - n]
                stack.append(merge.left)
                stack.append(merge.right)
        return sorted(found)

    def to_linkage_matrix(self) -> np.ndarray:
        """
        Convert to a SciPy-compatible linkage matrix.

        @return: float array shape (n - 1, 4) with rows [left, right, height, size]
        """
        return np.array([list(m) for m in self.merges], dtype=float).reshape(-1, 4)

    @classmethod
    def from_linkage_matrix(cls, Z: np.ndarray) -> "Dendrogram":
        """
        Build a Dendrogram from a (n - 1, 4) linkage matrix, e.g. SciPy's output.

        @param Z: array-like with rows [left, right, height, size]
        @return: validated Dendrogram
        @raises InvalidDendrogram: if Z has the wrong shape or describes no valid tree
        """
        Z = np.asarray(Z, dtype=float)
        if Z.ndim != 2 or Z.shape[1] != 4:
            raise InvalidDendrogram(f"Linkage matrix must have shape (m, 4), got {Z.shape}.")
        ids = Z[:, :2]
        if np.any(ids != np.round(ids)) or np.any(Z[:, 3] != np.round(Z[:, 3])):
            raise InvalidDendrogram("Linkage matrix ids and sizes must be integral.")
        return cls(tuple(Merge(int(a), int(b), float(h), int(s)) for a, b, h, s in Z))


def _check_merges(merges: Sequence[Merge]) -> None:
    if not merges:
        raise InvalidDendrogram("A dendrogram needs at least one merge.")
    n = len(merges) + 1
    sizes = [1] * n + [0] * (n - 1)
    used = [False] * (2 * n - 1)
    for k, merge in enumerate(merges):
        new_id = n + k
        for child in (merge.left, merge.right):
            if not (0 <= child < new_id):
                raise InvalidDendrogram(
                    f"Merge {k} references cluster {child} before it exists."
                )
            if used[child]:
                raise InvalidDendrogram(f"Cluster {child} is merged more than once.")
            used[child] = True
        if merge.left == merge.right:
            raise InvalidDendrogram(f"Merge {k} joins cluster {merge.left} with itself.")
        if not np.isfinite(merge.height) or merge.height < 0:
            raise InvalidDendrogram(f"Merge {k} has invalid height {merge.height}.")
        expected = sizes[merge.left] + sizes[merge.right]
        if merge.size != expected:
            raise InvalidDendrogram(
                f"Merge {k} has size {merge.size}, expected {expected}."
            )
        sizes[new_id] = expected
