"""
Sample distance matrices, complete sample graphs and minimum spanning trees.

The sample graph is complete, so a spanning tree always exists; connectivity
is still checked before extraction.
"""

import logging
from itertools import combinations
from typing import Optional, Sequence

import igraph
import numpy as np
from sklearn.metrics import pairwise_distances as _sk_pairwise_distances

from ..errors import DisconnectedGraphError

logger = logging.getLogger(__name__)


def pairwise_distances(vectors: np.ndarray, metric: str = 'euclidean') -> np.ndarray:
    """
    Pairwise distances between sample feature vectors.

    Args:
        vectors: Feature matrix, shape (n_samples, n_features)
        metric: Any metric accepted by sklearn.metrics.pairwise_distances

    Returns:
        Symmetric, zero-diagonal, nonnegative matrix of shape (n_samples, n_samples)
    """
    vectors = np.asarray(vectors, dtype=np.float64)
    if vectors.ndim != 2 or vectors.shape[0] == 0:
        raise ValueError(f"Vectors must be a non-empty 2D array, got shape {vectors.shape}")

    d = _sk_pairwise_distances(vectors, metric=metric)

    # Round-off can leave tiny asymmetries and negatives
    d = (d + d.T) / 2.0
    np.fill_diagonal(d, 0.0)
    np.maximum(d, 0.0, out=d)
    return d


def build_graph(distance_matrix: np.ndarray, names: Optional[Sequence[str]] = None) -> igraph.Graph:
    """
    Build the complete weighted undirected graph over samples.

    Vertex i is row i of the distance matrix. Edges are added for every pair
    i < j in lexicographic order with weight d[i, j].

    Args:
        distance_matrix: Square distance matrix
        names: Optional vertex names (sample ids)

    Returns:
        igraph.Graph with a 'weight' edge attribute
    """
    d = np.asarray(distance_matrix, dtype=np.float64)
    if d.ndim != 2 or d.shape[0] != d.shape[1]:
        raise ValueError(f"Distance matrix must be square, got shape {d.shape}")
    n_nodes = d.shape[0]
    if names is not None and len(names) != n_nodes:
        raise ValueError(f"Got {len(names)} names for {n_nodes} nodes")

    edges = list(combinations(range(n_nodes), 2))
    graph = igraph.Graph(n=n_nodes, edges=edges, directed=False)
    graph.es['weight'] = [float(d[i, j]) for i, j in edges]
    if names is not None:
        graph.vs['name'] = list(names)
    return graph


class _UnionFind:
    """Disjoint sets over 0..n-1 with path halving and union by size."""

    def __init__(self, n: int):
        self.parent = list(range(n))
        self.size = [1] * n

    def find(self, x: int) -> int:
        parent = self.parent
        while parent[x] != x:
            parent[x] = parent[parent[x]]
            x = parent[x]
        return x

    def union(self, a: int, b: int) -> bool:
        ra, rb = self.find(a), self.find(b)
        if ra == rb:
            return False
        if self.size[ra] < self.size[rb]:
            ra, rb = rb, ra
        self.parent[rb] = ra
        self.size[ra] += self.size[rb]
        return True


def minimum_spanning_tree(graph: igraph.Graph) -> np.ndarray:
    """
    Minimum spanning tree by Kruskal's algorithm.

    Edges are scanned in order of (weight, lower endpoint, higher endpoint),
    so among equal weights the lowest node-index pair is taken first. This
    fixes the tree whenever several spanning trees share the minimum weight.

    Args:
        graph: Undirected graph with a 'weight' edge attribute

    Returns:
        Array of shape (n_nodes - 1, 3) with rows [source, target, weight],
        source < target, in the order the edges were accepted

    Raises:
        DisconnectedGraphError: If the graph is not connected
    """
    n_nodes = graph.vcount()
    if n_nodes == 0:
        raise ValueError("Cannot build a spanning tree of an empty graph")
    if not graph.is_connected():
        n_components = len(graph.connected_components())
        raise DisconnectedGraphError(n_nodes, n_components)

    weights = graph.es['weight'] if graph.ecount() else []
    candidates = sorted(
        (float(w), min(u, v), max(u, v))
        for (u, v), w in zip(graph.get_edgelist(), weights)
    )

    uf = _UnionFind(n_nodes)
    tree = []
    for w, u, v in candidates:
        if uf.union(u, v):
            tree.append((u, v, w))
            if len(tree) == n_nodes - 1:
                break

    logger.debug("MST over %d nodes, total weight %.6g", n_nodes, sum(e[2] for e in tree))
    return np.array(tree, dtype=np.float64).reshape(-1, 3)


def tree_weight(mst: np.ndarray) -> float:
    """Total weight of a spanning tree returned by minimum_spanning_tree()."""
    return float(np.asarray(mst)[:, 2].sum()) if len(mst) else 0.0
