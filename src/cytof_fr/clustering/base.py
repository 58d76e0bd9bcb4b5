"""
Abstract base class for partitioning methods and the fitted Partition.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Union

import numpy as np
from scipy.spatial.distance import cdist

from ..errors import DimensionMismatchError


@dataclass(frozen=True, eq=False)
class Partition:
    """
    A fixed-cardinality partition of receptor space.

    Partition cell i is the Voronoi region of centroids[i]. Assignment is
    nearest-centroid under Euclidean distance; among equidistant centroids the
    lowest index wins.
    """
    centroids: np.ndarray

    def __post_init__(self):
        centroids = np.array(self.centroids, dtype=np.float64)
        if centroids.ndim != 2 or centroids.shape[0] == 0:
            raise ValueError(f"Centroids must be a non-empty 2D array, got shape {centroids.shape}")
        centroids.setflags(write=False)
        object.__setattr__(self, 'centroids', centroids)

    @property
    def n_partitions(self) -> int:
        return self.centroids.shape[0]

    @property
    def n_markers(self) -> int:
        return self.centroids.shape[1]

    def assign(self, cell: np.ndarray) -> int:
        """Return the partition index of a single cell."""
        cell = np.asarray(cell, dtype=np.float64)
        if cell.ndim != 1:
            raise ValueError(f"A single cell must be a 1D vector, got shape {cell.shape}")
        return int(self.assign_batch(cell[np.newaxis, :])[0])

    def assign_batch(self, cells: np.ndarray, sample_id: Optional[Any] = None) -> np.ndarray:
        """
        Assign every cell to its nearest centroid.

        Args:
            cells: Array of shape (n_cells, n_markers)
            sample_id: Used only in error messages

        Returns:
            Integer array of shape (n_cells,) with values in [0, K)
        """
        cells = np.asarray(cells, dtype=np.float64)
        if cells.ndim != 2:
            raise ValueError(f"Cells must be a 2D array, got shape {cells.shape}")
        if cells.shape[0] == 0:
            return np.empty(0, dtype=np.int64)
        if cells.shape[1] != self.n_markers:
            raise DimensionMismatchError(self.n_markers, cells.shape[1], sample_id)
        return nearest_centroid(cells, self.centroids)

    def save(self, path: Union[str, Path]) -> Path:
        """Save centroids to an .npz file and return the path written."""
        path = Path(path)
        # np.savez appends .npz to any other name
        if path.suffix != '.npz':
            path = path.with_name(path.name + '.npz')
        path.parent.mkdir(parents=True, exist_ok=True)
        np.savez(path, centroids=self.centroids)
        return path

    @classmethod
    def load(cls, path: Union[str, Path]) -> 'Partition':
        """Load a partition saved with save()."""
        with np.load(path) as data:
            return cls(centroids=data['centroids'])


def nearest_centroid(points: np.ndarray, centroids: np.ndarray, batch_size: int = 50000) -> np.ndarray:
    """
    Index of the nearest centroid for each point.

    np.argmin returns the first minimum, which pins ties to the lowest index.
    Points are processed in batches to bound the size of the distance block.
    """
    labels = np.empty(points.shape[0], dtype=np.int64)
    for start in range(0, points.shape[0], batch_size):
        end = min(start + batch_size, points.shape[0])
        d = cdist(points[start:end], centroids, metric='sqeuclidean')
        labels[start:end] = np.argmin(d, axis=1)
    return labels


class ClusteringMethod(ABC):
    """
    Abstract base class for partitioning methods.

    Subclasses must implement fit() and get_params().
    """

    @abstractmethod
    def fit(self, cells: np.ndarray) -> Partition:
        """
        Fit a partition of receptor space.

        Args:
            cells: Pooled cells, shape (n_cells, n_markers)

        Returns:
            Fitted Partition
        """
        pass

    @abstractmethod
    def get_params(self) -> Dict[str, Any]:
        """
        Get the parameters of this partitioning instance.

        Returns:
            Dictionary of parameter names to values
        """
        pass
