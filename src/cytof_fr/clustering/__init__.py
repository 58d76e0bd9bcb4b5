"""Partitioning of receptor space."""

from .base import ClusteringMethod, Partition
from .kmeans import KMeansPartitioner, fit_partition

__all__ = ['ClusteringMethod', 'Partition', 'KMeansPartitioner', 'fit_partition']
