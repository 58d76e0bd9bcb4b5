"""
K-means partitioning of receptor space.

Lloyd iterations are run here rather than through sklearn.cluster.KMeans so that
an empty cluster keeps its previous centroid instead of being relocated, and so
that the whole fit is driven by one explicit random stream.
"""

import logging
from typing import Any, Dict, Optional, Tuple, Union

import numpy as np
from sklearn.cluster import kmeans_plusplus

from .base import ClusteringMethod, Partition, nearest_centroid
from ..errors import InsufficientDataError

logger = logging.getLogger(__name__)

RandomState = Union[int, np.random.Generator, None]

INIT_METHODS = ('random', 'k-means++')


def resolve_n_init(n_init: Union[int, str], init: str) -> int:
    """Number of restarts; 'auto' follows sklearn (10 for 'random', 1 for 'k-means++')."""
    if n_init == 'auto':
        return 10 if init == 'random' else 1
    if isinstance(n_init, bool) or not isinstance(n_init, int) or n_init < 1:
        raise ValueError(f"n_init must be a positive integer or 'auto', got {n_init!r}")
    return n_init


class KMeansPartitioner(ClusteringMethod):
    """
    K-means partitioner with seeded initialization from the input points.
    """

    def __init__(
        self,
        n_partitions: int = 200,
        max_iterations: int = 100,
        init: str = 'random',
        random_state: RandomState = 0,
        n_init: Union[int, str] = 'auto',
    ):
        """
        Initialize the partitioner.

        Args:
            n_partitions: Number of centroids K
            max_iterations: Maximum number of Lloyd iterations
            init: 'random' (uniform draw of K distinct input points) or
                'k-means++' (D^2-weighted draw of K distinct input points)
            random_state: Seed or Generator driving the initialization
            n_init: Number of initializations; the fit with the lowest inertia is kept
        """
        if n_partitions < 1:
            raise ValueError(f"n_partitions must be positive, got {n_partitions}")
        if max_iterations < 1:
            raise ValueError(f"max_iterations must be positive, got {max_iterations}")
        if init not in INIT_METHODS:
            raise ValueError(f"Unknown init '{init}'. Must be one of {INIT_METHODS}")

        self.n_partitions = n_partitions
        self.max_iterations = max_iterations
        self.init = init
        self.random_state = random_state
        self.n_init = resolve_n_init(n_init, init)

        # Populated by fit()
        self.n_iter_: Optional[int] = None
        self.converged_: Optional[bool] = None
        self.inertia_: Optional[float] = None
        self.labels_: Optional[np.ndarray] = None

    def fit(self, cells: np.ndarray) -> Partition:
        """
        Fit K centroids on pooled cells.

        Restarts draw their starting centroids one after another from the same
        stream; on equal inertia the earlier restart is kept.

        Args:
            cells: Array of shape (n_cells, n_markers)

        Returns:
            Fitted Partition

        Raises:
            InsufficientDataError: If fewer than K distinct points are supplied
        """
        points = np.asarray(cells, dtype=np.float64)
        if points.ndim != 2:
            raise ValueError(f"Cells must be a 2D array, got shape {points.shape}")

        rng = np.random.default_rng(self.random_state)
        distinct = self._distinct_points(points)

        best = None
        for _ in range(self.n_init):
            start = self._initial_centroids(distinct, rng)
            centroids, labels, n_iter, converged = lloyd_iterations(
                points, start, self.max_iterations
            )
            inertia = float(np.sum((points - centroids[labels]) ** 2))
            if best is None or inertia < best[4]:
                best = (centroids, labels, n_iter, converged, inertia)

        centroids, labels, n_iter, converged, inertia = best
        self.n_iter_ = n_iter
        self.converged_ = converged
        self.inertia_ = inertia
        self.labels_ = labels

        if converged:
            logger.info("K-means (K=%d, %d init) converged after %d iterations, inertia %.4g",
                        self.n_partitions, self.n_init, n_iter, self.inertia_)
        else:
            logger.warning("K-means (K=%d) stopped at max_iterations=%d without converging",
                           self.n_partitions, self.max_iterations)

        return Partition(centroids=centroids)

    def _distinct_points(self, points: np.ndarray) -> np.ndarray:
        """Distinct rows of points, failing if fewer than K."""
        # np.unique sorts rows, so the candidate order does not depend on input order
        distinct = np.unique(points, axis=0) if points.shape[0] else points
        if distinct.shape[0] < self.n_partitions:
            raise InsufficientDataError(self.n_partitions, distinct.shape[0])
        return distinct

    def _initial_centroids(self, distinct: np.ndarray, rng: np.random.Generator) -> np.ndarray:
        """Pick K of the distinct input points as starting centroids."""
        if self.init == 'random':
            idx = rng.choice(distinct.shape[0], size=self.n_partitions, replace=False)
            return distinct[idx].copy()

        seed = int(rng.integers(np.iinfo(np.int32).max))
        centers, _ = kmeans_plusplus(distinct, n_clusters=self.n_partitions, random_state=seed)
        return np.asarray(centers, dtype=np.float64)

    def get_params(self) -> Dict[str, Any]:
        """Get partitioning parameters."""
        return {
            'method': 'kmeans',
            'n_partitions': self.n_partitions,
            'max_iterations': self.max_iterations,
            'init': self.init,
            'n_init': self.n_init,
        }


def lloyd_iterations(
    points: np.ndarray,
    centroids: np.ndarray,
    max_iterations: int,
) -> Tuple[np.ndarray, np.ndarray, int, bool]:
    """
    Alternate nearest-centroid assignment and mean updates.

    Args:
        points: Array of shape (n, d)
        centroids: Starting centroids, shape (K, d)
        max_iterations: Upper bound on assignment/update rounds

    Returns:
        Tuple of (centroids, labels, n_iter, converged). labels are the
        assignments under the returned centroids.
    """
    centroids = np.array(centroids, dtype=np.float64)
    labels = None
    converged = False
    n_iter = 0

    for n_iter in range(1, max_iterations + 1):
        new_labels = nearest_centroid(points, centroids)
        if labels is not None and np.array_equal(new_labels, labels):
            converged = True
            break
        labels = new_labels
        centroids = update_centroids(points, labels, centroids)

    if not converged:
        labels = nearest_centroid(points, centroids)

    return centroids, labels, n_iter, converged


def update_centroids(points: np.ndarray, labels: np.ndarray, centroids: np.ndarray) -> np.ndarray:
    """
    Recompute each centroid as the mean of its points.

    A centroid with no assigned points keeps its previous position.
    """
    k, n_dims = centroids.shape
    counts = np.bincount(labels, minlength=k)
    sums = np.column_stack([
        np.bincount(labels, weights=points[:, j], minlength=k) for j in range(n_dims)
    ])

    updated = centroids.copy()
    occupied = counts > 0
    updated[occupied] = sums[occupied] / counts[occupied, np.newaxis]

    n_empty = int(k - occupied.sum())
    if n_empty:
        logger.debug("%d of %d centroids had no points and were kept in place", n_empty, k)
    return updated


def fit_partition(
    cells: np.ndarray,
    n_partitions: int,
    max_iterations: int = 100,
    seed: RandomState = 0,
    init: str = 'random',
    n_init: Union[int, str] = 'auto',
) -> Partition:
    """
    Fit a partition in one call.

    Args:
        cells: Pooled cells, shape (n_cells, n_markers)
        n_partitions: Number of centroids K
        max_iterations: Maximum number of Lloyd iterations
        seed: Seed or Generator for initialization
        init: Initialization method
        n_init: Number of initializations, or 'auto'

    Returns:
        Fitted Partition
    """
    partitioner = KMeansPartitioner(
        n_partitions=n_partitions,
        max_iterations=max_iterations,
        init=init,
        random_state=seed,
        n_init=n_init,
    )
    return partitioner.fit(cells)
