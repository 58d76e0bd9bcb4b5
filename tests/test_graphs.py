"""Tests for distance matrices, sample graphs and minimum spanning trees."""

from itertools import combinations

import igraph
import pytest
import numpy as np

from cytof_fr.errors import DisconnectedGraphError
from cytof_fr.features.graphs import (
    build_graph, minimum_spanning_tree, pairwise_distances, tree_weight, _UnionFind
)


def _brute_force_min_weight(d):
    """Minimum spanning tree weight by enumerating every (n-1)-edge subset."""
    n = d.shape[0]
    edges = list(combinations(range(n), 2))
    best = np.inf
    for subset in combinations(edges, n - 1):
        uf = _UnionFind(n)
        if all(uf.union(u, v) for u, v in subset):
            best = min(best, sum(d[u, v] for u, v in subset))
    return best


def _is_spanning_tree(mst, n):
    uf = _UnionFind(n)
    acyclic = all(uf.union(int(u), int(v)) for u, v in mst[:, :2])
    connected = len({uf.find(i) for i in range(n)}) == 1
    return len(mst) == n - 1 and acyclic and connected


class TestPairwiseDistances:
    """Tests for pairwise distances."""

    def test_symmetric_zero_diagonal(self):
        """Test d[i][j] == d[j][i] and d[i][i] == 0."""
        rng = np.random.default_rng(0)
        vectors = rng.dirichlet(np.ones(20), size=12)

        d = pairwise_distances(vectors)

        assert d.shape == (12, 12)
        np.testing.assert_array_equal(d, d.T)
        np.testing.assert_array_equal(np.diag(d), np.zeros(12))
        assert np.all(d >= 0)

    def test_euclidean_values(self):
        """Test Euclidean distances on a 3-4-5 triangle."""
        d = pairwise_distances(np.array([[0.0, 0.0], [3.0, 4.0], [3.0, 0.0]]))

        assert d[0, 1] == pytest.approx(5.0)
        assert d[0, 2] == pytest.approx(3.0)
        assert d[1, 2] == pytest.approx(4.0)

    def test_other_metric(self):
        """Test a non-default metric is passed through."""
        d = pairwise_distances(np.array([[0.0, 0.0], [3.0, 4.0]]), metric='manhattan')

        assert d[0, 1] == pytest.approx(7.0)

    def test_rejects_empty(self):
        """Test empty input is rejected."""
        with pytest.raises(ValueError):
            pairwise_distances(np.empty((0, 3)))


class TestBuildGraph:
    """Tests for the complete sample graph."""

    def test_complete(self):
        """Test one edge per node pair with the matrix entry as weight."""
        rng = np.random.default_rng(1)
        d = pairwise_distances(rng.normal(size=(6, 3)))

        graph = build_graph(d, names=[f"S{i}" for i in range(6)])

        assert graph.vcount() == 6
        assert graph.ecount() == 15
        assert not graph.is_directed()
        for edge in graph.es:
            i, j = edge.tuple
            assert edge['weight'] == pytest.approx(d[i, j])
        assert graph.vs['name'] == ['S0', 'S1', 'S2', 'S3', 'S4', 'S5']

    def test_single_node(self):
        """Test a single node gives an edgeless graph."""
        graph = build_graph(np.zeros((1, 1)))

        assert graph.vcount() == 1
        assert graph.ecount() == 0

    def test_rejects_non_square(self):
        """Test non-square matrices are rejected."""
        with pytest.raises(ValueError):
            build_graph(np.zeros((2, 3)))

    def test_rejects_name_count(self):
        """Test the number of names must match the number of nodes."""
        with pytest.raises(ValueError):
            build_graph(np.zeros((3, 3)), names=['a', 'b'])


class TestMinimumSpanningTree:
    """Tests for Kruskal MST extraction."""

    @pytest.mark.parametrize('n_nodes', [2, 3, 4, 5, 6])
    def test_matches_brute_force(self, n_nodes):
        """Test the tree is spanning and minimal on small random graphs."""
        rng = np.random.default_rng(n_nodes)
        for _ in range(5):
            d = pairwise_distances(rng.normal(size=(n_nodes, 4)))

            mst = minimum_spanning_tree(build_graph(d))

            assert _is_spanning_tree(mst, n_nodes)
            assert tree_weight(mst) == pytest.approx(_brute_force_min_weight(d))

    def test_matches_brute_force_with_ties(self):
        """Test minimality when many weights coincide."""
        rng = np.random.default_rng(3)
        for _ in range(10):
            w = rng.integers(1, 3, size=(6, 6)).astype(float)
            d = np.triu(w, 1) + np.triu(w, 1).T

            mst = minimum_spanning_tree(build_graph(d))

            assert _is_spanning_tree(mst, 6)
            assert tree_weight(mst) == pytest.approx(_brute_force_min_weight(d))

    def test_tie_break_lowest_pair(self):
        """Test equal weights resolve to the lowest node-index pairs."""
        d = np.ones((4, 4)) - np.eye(4)

        mst = minimum_spanning_tree(build_graph(d))

        np.testing.assert_array_equal(mst[:, :2], [[0, 1], [0, 2], [0, 3]])

    def test_reproducible(self):
        """Test repeated extraction gives the same tree."""
        rng = np.random.default_rng(4)
        d = pairwise_distances(rng.normal(size=(15, 3)))

        np.testing.assert_array_equal(
            minimum_spanning_tree(build_graph(d)), minimum_spanning_tree(build_graph(d))
        )

    def test_endpoint_order(self):
        """Test every edge is stored with source < target."""
        rng = np.random.default_rng(5)
        mst = minimum_spanning_tree(build_graph(pairwise_distances(rng.normal(size=(20, 2)))))

        assert np.all(mst[:, 0] < mst[:, 1])

    def test_single_node(self):
        """Test a single node has an empty tree."""
        mst = minimum_spanning_tree(build_graph(np.zeros((1, 1))))

        assert mst.shape == (0, 3)
        assert tree_weight(mst) == 0.0

    def test_disconnected(self):
        """Test a disconnected graph raises."""
        graph = igraph.Graph(n=4, edges=[(0, 1), (2, 3)])
        graph.es['weight'] = [1.0, 1.0]

        with pytest.raises(DisconnectedGraphError) as excinfo:
            minimum_spanning_tree(graph)

        assert excinfo.value.n_components == 2

    def test_two_separated_clusters_single_bridge(self):
        """Test two distant clusters are joined by exactly one edge."""
        rng = np.random.default_rng(6)
        a = rng.normal(size=(10, 2))
        b = rng.normal(size=(10, 2)) + 100.0
        d = pairwise_distances(np.vstack([a, b]))

        mst = minimum_spanning_tree(build_graph(d))

        crossing = [(u, v) for u, v in mst[:, :2].astype(int) if (u < 10) != (v < 10)]
        assert len(crossing) == 1
