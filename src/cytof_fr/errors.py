"""
Error types raised by the analysis core.

All errors subclass ValueError: they describe bad input data, never transient
failures, and are not retried.
"""

from typing import Any, Iterable, Optional


class CytofFRError(ValueError):
    """Base class for all cytof_fr errors."""


class InsufficientDataError(CytofFRError):
    """Fewer distinct points than requested partitions."""

    def __init__(self, n_partitions: int, n_distinct: int):
        self.n_partitions = n_partitions
        self.n_distinct = n_distinct
        super().__init__(
            f"Cannot fit {n_partitions} partitions from {n_distinct} distinct points"
        )


class EmptySampleError(CytofFRError):
    """A sample contributes zero cells, so its occupancy vector is undefined."""

    def __init__(self, sample_id: Any):
        self.sample_id = sample_id
        super().__init__(f"Sample '{sample_id}' has no cells")


class DimensionMismatchError(CytofFRError):
    """Cell dimensionality disagrees with the partition's centroids."""

    def __init__(self, expected: int, got: int, sample_id: Optional[Any] = None):
        self.expected = expected
        self.got = got
        self.sample_id = sample_id
        where = f" in sample '{sample_id}'" if sample_id is not None else ""
        super().__init__(
            f"Expected cells with {expected} markers, got {got}{where}"
        )


class DisconnectedGraphError(CytofFRError):
    """The sample graph has more than one connected component."""

    def __init__(self, n_nodes: int, n_components: int):
        self.n_nodes = n_nodes
        self.n_components = n_components
        super().__init__(
            f"Graph with {n_nodes} nodes has {n_components} connected components; "
            "a spanning tree requires exactly one"
        )


class InvalidClassSelectionError(CytofFRError):
    """The classes passed to the tester do not form a valid two-class comparison."""

    def __init__(self, message: str, classes: Iterable[Any] = ()):
        self.classes = tuple(classes)
        super().__init__(message)
