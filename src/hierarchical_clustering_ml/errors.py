"""
Error kinds raised by the clustering core.

Every error derives from ``ValueError`` as well as from the package base class,
so code written against plain ``ValueError`` keeps working.
"""

__all__ = [
    "HierarchicalClusteringError",
    "InvalidMatrix",
    "EmptyInput",
    "UnsupportedMethod",
    "InvalidK",
    "InvalidThreshold",
    "InvalidDendrogram",
]


class HierarchicalClusteringError(ValueError):
    """Base class for all errors raised by this package."""


class InvalidMatrix(HierarchicalClusteringError):
    """Distance matrix is non-square, asymmetric, negative or non-finite."""


class EmptyInput(HierarchicalClusteringError):
    """Fewer than two observations: no merge is possible."""


class UnsupportedMethod(HierarchicalClusteringError):
    """Linkage method cannot be used with the requested build strategy."""


class InvalidK(HierarchicalClusteringError):
    """Requested cluster count lies outside [1, n]."""


class InvalidThreshold(HierarchicalClusteringError):
    """Cut height is not a comparable number."""


class InvalidDendrogram(HierarchicalClusteringError):
    """Merge records do not describe a valid binary merge tree."""
