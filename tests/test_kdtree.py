"""Tests for KDTree."""

import math

import numpy as np
import pytest

from medoidkit.container import KDNode, KDTree
from medoidkit.errors import DimensionalityError


def _subtree_points(tree, node):
    return [n.data for n in tree.traverse(node)] if node is not None else []


def _assert_partition(tree):
    """Every left descendant is below and every right descendant at or above."""
    for node in tree.traverse():
        d = node.discriminator
        for point in _subtree_points(tree, node.left):
            assert point[d] < node.data[d]
        for point in _subtree_points(tree, node.right):
            assert point[d] >= node.data[d]


class TestKDTreeInsert:
    """Test tree construction."""

    def test_empty_tree(self):
        """Test a tree with no points."""
        tree = KDTree()

        assert tree.root is None
        assert tree.size == 0
        assert len(tree) == 0
        assert tree.dimension is None
        assert tree.traverse() == []

    def test_first_insert_becomes_root(self):
        """Test that the first point is the root with discriminator 0."""
        tree = KDTree()
        node = tree.insert([3.0, 4.0], payload="a")

        assert tree.root is node
        assert node.discriminator == 0
        assert node.parent is None
        assert tree.dimension == 2

    def test_children_and_discriminators(self):
        """Test routing of smaller points left and others right."""
        tree = KDTree()
        root = tree.insert([5.0, 5.0])
        left = tree.insert([2.0, 9.0])
        right = tree.insert([7.0, 1.0])
        left_right = tree.insert([1.0, 9.5])

        assert root.left is left
        assert root.right is right
        assert left.discriminator == 1
        assert right.discriminator == 1
        assert left.right is left_right
        assert left_right.discriminator == 0
        assert left_right.parent is left
        assert left.parent is root

    def test_ties_route_right(self):
        """Test that equal discriminator values go to the right subtree."""
        tree = KDTree()
        root = tree.insert([5.0, 5.0])
        tie = tree.insert([5.0, 0.0])

        assert root.right is tie
        assert root.left is None

    def test_discriminator_wraps(self):
        """Test that discriminators cycle through the dimensions."""
        tree = KDTree([[0.0, 0.0], [1.0, 1.0], [2.0, 2.0], [3.0, 3.0]])
        depths = [node.discriminator for node in tree.traverse()]

        assert depths == [0, 1, 0, 1]

    def test_bulk_construction_with_payloads(self):
        """Test building from points and payloads."""
        tree = KDTree.from_points([[0.0], [1.0], [-1.0]], payloads=["a", "b", "c"])

        assert tree.size == 3
        assert sorted(node.payload for node in tree) == ["a", "b", "c"]

    def test_payload_length_mismatch(self):
        """Test that mismatched payloads are rejected."""
        with pytest.raises(ValueError, match="payloads"):
            KDTree([[0.0], [1.0]], payloads=["a"])

    def test_dimension_mismatch(self):
        """Test that points of another dimension are rejected."""
        tree = KDTree([[0.0, 0.0]])
        with pytest.raises(DimensionalityError):
            tree.insert([1.0, 2.0, 3.0])
        assert tree.size == 1

    def test_zero_dimensional_point(self):
        """Test that an empty point cannot start a tree."""
        with pytest.raises(DimensionalityError):
            KDTree().insert([])

    def test_randomized_partition_invariant(self):
        """Test the ordering invariant after many random inserts."""
        rng = np.random.default_rng(0)
        # Integer coordinates force plenty of ties
        points = rng.integers(0, 10, size=(300, 3)).astype(float)
        tree = KDTree(points)

        assert tree.size == 300
        assert len(tree.traverse()) == 300
        _assert_partition(tree)

    def test_clear(self):
        """Test dropping every node."""
        tree = KDTree([[0.0], [1.0]])
        tree.clear()

        assert tree.root is None
        assert tree.size == 0
        assert tree.dimension is None


class TestKDTreeFind:
    """Test exact lookups."""

    def test_find_node(self):
        """Test finding a stored point."""
        tree = KDTree([[1.0, 1.0], [2.0, 2.0], [0.5, 3.0]])
        node = tree.find_node([2.0, 2.0])

        assert node is not None
        np.testing.assert_array_equal(node.data, [2.0, 2.0])
        assert tree.find_node([9.0, 9.0]) is None

    def test_find_node_with_payload(self):
        """Test that payload disambiguates duplicate points."""
        tree = KDTree([[1.0, 1.0], [1.0, 1.0]], payloads=["first", "second"])

        assert tree.find_node([1.0, 1.0]).payload == "first"
        assert tree.find_node_with_payload([1.0, 1.0], "second").payload == "second"
        assert tree.find_node_with_payload([1.0, 1.0], "third") is None

    def test_find_on_empty_tree(self):
        """Test that lookups on an empty tree return None."""
        tree = KDTree()
        assert tree.find_node([0.0]) is None
        assert tree.find_node_with_payload([0.0], None) is None


class TestKDTreeNearest:
    """Test nearest-neighbor queries."""

    def test_empty_tree(self):
        """Test that queries on an empty tree return None."""
        tree = KDTree()
        assert tree.find_nearest_node([0.0, 0.0]) is None
        assert tree.find_nearest_distance_node([0.0, 0.0]) is None

    def test_simple_nearest(self):
        """Test a small hand-checked case."""
        tree = KDTree([[0.0, 0.0], [5.0, 5.0], [9.0, 1.0]], payloads=["a", "b", "c"])

        assert tree.find_nearest_node([4.0, 4.5]).payload == "b"
        distance, node = tree.find_nearest_distance_node([9.0, 4.0])
        assert node.payload == "c"
        assert distance == pytest.approx(3.0)

    def test_matches_brute_force(self):
        """Test random queries against a linear scan."""
        rng = np.random.default_rng(1)
        points = rng.normal(size=(200, 4))
        tree = KDTree(points, payloads=list(range(200)))

        for query in rng.normal(size=(50, 4)):
            distances = np.linalg.norm(points - query, axis=1)
            distance, node = tree.find_nearest_distance_node(query)
            assert distance == pytest.approx(distances.min())
            assert node.payload == int(np.argmin(distances))


class TestKDTreeRange:
    """Test radius queries."""

    def test_empty_tree_and_negative_radius(self):
        """Test that degenerate queries return an empty list."""
        assert KDTree().find_nearest_nodes([0.0], 1.0) == []
        assert KDTree([[0.0]]).find_nearest_nodes([0.0], -1.0) == []

    def test_inclusive_radius_sorted(self):
        """Test that the boundary is included and results are sorted."""
        tree = KDTree([[0.0, 0.0], [3.0, 4.0], [1.0, 0.0], [10.0, 10.0]])
        found = tree.find_nearest_nodes([0.0, 0.0], 5.0)

        assert [distance for distance, _ in found] == [0.0, 1.0, 5.0]
        assert all(isinstance(node, KDNode) for _, node in found)

    def test_matches_brute_force(self):
        """Test random range queries against a linear scan."""
        rng = np.random.default_rng(2)
        points = rng.uniform(-5, 5, size=(250, 2))
        tree = KDTree(points, payloads=list(range(250)))

        for query in rng.uniform(-5, 5, size=(20, 2)):
            radius = 1.5
            distances = np.linalg.norm(points - query, axis=1)
            expected = sorted(int(i) for i in np.flatnonzero(distances <= radius))

            found = tree.find_nearest_nodes(query, radius)
            assert sorted(node.payload for _, node in found) == expected
            found_distances = [distance for distance, _ in found]
            assert found_distances == sorted(found_distances)
            for distance, node in found:
                assert distance == pytest.approx(math.dist(node.data, query))


class TestKDTreeTraversal:
    """Test subtree enumeration."""

    def test_preorder(self):
        """Test that traversal visits node, left subtree, then right subtree."""
        tree = KDTree([[5.0], [2.0], [8.0], [1.0], [3.0], [9.0]])
        values = [node.data[0] for node in tree.traverse()]

        assert values == [5.0, 2.0, 1.0, 3.0, 8.0, 9.0]

    def test_subtree(self):
        """Test traversal starting below the root."""
        tree = KDTree([[5.0], [2.0], [8.0], [1.0]])
        left = tree.root.left

        assert [node.data[0] for node in tree.traverse(left)] == [2.0, 1.0]
        assert tree.get_children(tree.root) == [tree.root.left, tree.root.right]

    def test_iteration(self):
        """Test iterating the tree yields every node."""
        tree = KDTree([[1.0], [2.0], [0.0]])
        assert len(list(tree)) == 3
