"""
Unit tests for quadtree construction.

Tests boundary geometry, insertion, the depth cap, dropped bodies and the
mass/center-of-mass aggregation.
"""

import unittest
import numpy as np
from quadgrav.constants import ConfigurationError, SolverConfig
from quadgrav.quadtree import Boundary, QuadNode, QuadTree


class TestBoundary(unittest.TestCase):
    """Test half-open square regions and quadrant numbering"""

    def setUp(self):
        self.boundary = Boundary(0.0, 0.0, 100.0)

    def test_half_open_containment(self):
        self.assertTrue(self.boundary.contains((0.0, 0.0)))
        self.assertTrue(self.boundary.contains((99.999, 99.999)))
        self.assertFalse(self.boundary.contains((100.0, 50.0)))
        self.assertFalse(self.boundary.contains((50.0, 100.0)))
        self.assertFalse(self.boundary.contains((-0.001, 50.0)))

    def test_quadrant_order(self):
        """0 top-left, 1 top-right, 2 bottom-left, 3 bottom-right (y down)"""
        self.assertEqual(self.boundary.quadrant_index((25.0, 25.0)), 0)
        self.assertEqual(self.boundary.quadrant_index((75.0, 25.0)), 1)
        self.assertEqual(self.boundary.quadrant_index((25.0, 75.0)), 2)
        self.assertEqual(self.boundary.quadrant_index((75.0, 75.0)), 3)

    def test_midline_belongs_to_higher_quadrant(self):
        self.assertEqual(self.boundary.quadrant_index((50.0, 50.0)), 3)
        self.assertEqual(self.boundary.quadrant_index((50.0, 0.0)), 1)

    def test_quadrants_partition_parent(self):
        expected = [(0.0, 0.0), (50.0, 0.0), (0.0, 50.0), (50.0, 50.0)]
        for q, (left, top) in enumerate(expected):
            child = self.boundary.quadrant(q)
            self.assertEqual(child, Boundary(left, top, 50.0))

        rng = np.random.default_rng(0)
        for point in rng.uniform(0.0, 100.0, size=(200, 2)):
            q = self.boundary.quadrant_index(point)
            self.assertTrue(self.boundary.quadrant(q).contains(point))

    def test_clamp(self):
        clamped = self.boundary.clamp((150.0, -5.0))
        self.assertTrue(self.boundary.contains(clamped))
        self.assertEqual(clamped[1], 0.0)
        self.assertLess(clamped[0], 100.0)
        self.assertAlmostEqual(clamped[0], 100.0)

        np.testing.assert_array_equal(self.boundary.clamp((10.0, 20.0)), [10.0, 20.0])

    def test_invalid_boundary(self):
        with self.assertRaises(ConfigurationError):
            Boundary(0.0, 0.0, 0.0)
        with self.assertRaises(ConfigurationError):
            Boundary(0.0, 0.0, -10.0)
        with self.assertRaises(ConfigurationError):
            Boundary(float('nan'), 0.0, 10.0)

    def test_center(self):
        np.testing.assert_array_equal(Boundary(10.0, 20.0, 40.0).center, [30.0, 40.0])


class TestQuadTreeConstruction(unittest.TestCase):
    """Test tree data structure and insertion"""

    def setUp(self):
        self.boundary = Boundary(0.0, 0.0, 800.0)
        self.config = SolverConfig()

    def _check_structure(self, tree):
        """Every leaf holds bodies inside its region; internal nodes have 4 children."""
        n_nodes = 0
        stored = []
        for node in tree.iter_nodes():
            n_nodes += 1
            if node.is_leaf():
                if len(node.bodies) > 1:
                    self.assertEqual(node.depth, tree.max_depth)
                for i in node.bodies:
                    self.assertTrue(node.boundary.contains(tree.positions[i]))
                stored.extend(node.bodies)
            else:
                self.assertEqual(len(node.children), 4)
                for q, child in enumerate(node.children):
                    self.assertEqual(child.boundary, node.boundary.quadrant(q))
                    self.assertEqual(child.depth, node.depth + 1)
        self.assertEqual(n_nodes, tree.n_nodes)
        self.assertEqual(sorted(stored), sorted(np.flatnonzero(tree.inserted).tolist()))

    def test_empty_tree(self):
        tree = QuadTree(self.boundary, self.config)
        tree.build_tree(np.zeros((0, 2)), np.zeros(0))

        self.assertTrue(tree.root.is_empty())
        self.assertEqual(tree.root.total_mass, 0.0)
        np.testing.assert_array_equal(tree.root.center_of_mass, [0.0, 0.0])

    def test_single_body_tree(self):
        """Single body should create a root-only tree"""
        tree = QuadTree(self.boundary, self.config)
        tree.build_tree(np.array([[123.5, 456.25]]), np.array([2.0]))

        self.assertTrue(tree.root.is_leaf())
        self.assertEqual(tree.root.body, 0)
        self.assertEqual(tree.root.total_mass, 2.0)
        np.testing.assert_array_equal(tree.root.center_of_mass, [123.5, 456.25])
        self.assertEqual(tree.n_nodes, 1)

    def test_two_bodies_split_root(self):
        positions = np.array([[100.0, 100.0], [700.0, 700.0]])
        tree = QuadTree(self.boundary, self.config)
        tree.build_tree(positions, np.array([1.0, 3.0]))

        self.assertFalse(tree.root.is_leaf())
        self.assertEqual(tree.root.children[0].body, 0)
        self.assertEqual(tree.root.children[3].body, 1)
        self.assertTrue(tree.root.children[1].is_empty())
        self.assertEqual(tree.n_nodes, 5)
        self.assertEqual(tree.max_depth_reached, 1)

        # Root's COM should be the weighted average
        np.testing.assert_array_almost_equal(tree.root.center_of_mass, [550.0, 550.0])
        self.assertEqual(tree.root.total_mass, 4.0)

    def test_close_pair_splits_until_separated(self):
        positions = np.array([[1.0, 1.0], [2.0, 2.0]])
        tree = QuadTree(self.boundary, self.config)
        tree.build_tree(positions, np.ones(2))

        self.assertGreater(tree.max_depth_reached, 1)
        self.assertEqual(tree.n_merged, 0)
        self._check_structure(tree)

    def test_random_bodies_structure(self):
        rng = np.random.default_rng(42)
        positions = rng.uniform(0.0, 800.0, size=(500, 2))
        masses = rng.uniform(0.5, 2.0, size=500)

        tree = QuadTree(self.boundary, self.config)
        tree.build_tree(positions, masses)

        self.assertTrue(np.all(tree.inserted))
        self._check_structure(tree)

    def test_mass_conservation(self):
        """Root mass and COM equal the sum over inserted bodies"""
        rng = np.random.default_rng(7)
        positions = rng.uniform(0.0, 800.0, size=(300, 2))
        masses = rng.uniform(0.1, 5.0, size=300)

        tree = QuadTree(self.boundary, self.config)
        tree.build_tree(positions, masses)

        np.testing.assert_allclose(tree.root.total_mass, np.sum(masses), rtol=1e-12)
        expected_com = np.sum(positions * masses[:, np.newaxis], axis=0) / np.sum(masses)
        np.testing.assert_allclose(tree.root.center_of_mass, expected_com, rtol=1e-12)

    def test_every_internal_node_aggregates_children(self):
        rng = np.random.default_rng(3)
        positions = rng.uniform(0.0, 800.0, size=(100, 2))
        tree = QuadTree(self.boundary, self.config)
        tree.build_tree(positions, np.ones(100))

        for node in tree.iter_nodes():
            if not node.is_leaf():
                child_mass = sum(c.total_mass for c in node.children)
                self.assertAlmostEqual(node.total_mass, child_mass)

    def test_coincident_bodies_respect_depth_cap(self):
        """1000 bodies at one point terminate at max_depth with merged mass"""
        positions = np.full((1000, 2), 400.0)
        tree = QuadTree(self.boundary, self.config)
        tree.build_tree(positions, np.ones(1000))

        self.assertEqual(tree.max_depth_reached, self.config.max_depth)
        self.assertEqual(tree.n_merged, 999)
        self.assertEqual(tree.n_nodes, 1 + 4 * self.config.max_depth)
        self.assertEqual(tree.root.total_mass, 1000.0)
        np.testing.assert_array_almost_equal(tree.root.center_of_mass, [400.0, 400.0])

        buckets = [leaf for leaf in tree.leaves() if len(leaf.bodies) > 1]
        self.assertEqual(len(buckets), 1)
        self.assertEqual(len(buckets[0].bodies), 1000)
        self._check_structure(tree)

    def test_small_max_depth(self):
        config = SolverConfig(max_depth=1)
        positions = np.array([[10.0, 10.0], [20.0, 20.0], [700.0, 700.0]])
        tree = QuadTree(self.boundary, config)
        tree.build_tree(positions, np.ones(3))

        self.assertEqual(tree.max_depth_reached, 1)
        self.assertEqual(tree.n_merged, 1)
        self.assertEqual(tree.root.children[0].bodies, [0, 1])
        np.testing.assert_array_almost_equal(tree.root.children[0].center_of_mass, [15.0, 15.0])

    def test_outside_bodies_are_dropped(self):
        positions = np.array([[100.0, 100.0], [800.0, 10.0], [-1.0, 5.0], [300.0, 500.0]])
        masses = np.array([1.0, 10.0, 10.0, 1.0])
        tree = QuadTree(self.boundary, self.config)
        tree.build_tree(positions, masses)

        np.testing.assert_array_equal(tree.dropped, [1, 2])
        np.testing.assert_array_equal(tree.inserted, [True, False, False, True])
        self.assertEqual(tree.root.total_mass, 2.0)
        self.assertFalse(tree.insert(1))

    def test_tree_snapshots_inputs(self):
        positions = np.array([[100.0, 100.0], [700.0, 700.0]])
        tree = QuadTree(self.boundary, self.config)
        tree.build_tree(positions, np.ones(2))
        positions[0] = [500.0, 500.0]

        np.testing.assert_array_equal(tree.positions[0], [100.0, 100.0])


class TestQuadNode(unittest.TestCase):
    """Test QuadNode helpers"""

    def test_subdivide(self):
        node = QuadNode(Boundary(0.0, 0.0, 8.0), depth=2)
        self.assertTrue(node.is_empty())
        node.subdivide()

        self.assertFalse(node.is_leaf())
        self.assertFalse(node.is_empty())
        self.assertEqual([c.depth for c in node.children], [3, 3, 3, 3])
        self.assertEqual(node.children[2].boundary, Boundary(0.0, 4.0, 4.0))
        self.assertIsNone(node.body)


if __name__ == '__main__':
    unittest.main()
