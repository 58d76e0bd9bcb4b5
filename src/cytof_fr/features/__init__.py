"""Sample featurization, distance graphs and spanning trees."""

from .downsample import downsample_cells
from .occupancy import Occupancy, OccupancyTable, featurize, build_occupancy_table
from .graphs import pairwise_distances, build_graph, minimum_spanning_tree

__all__ = [
    'downsample_cells',
    'Occupancy', 'OccupancyTable', 'featurize', 'build_occupancy_table',
    'pairwise_distances', 'build_graph', 'minimum_spanning_tree',
]
