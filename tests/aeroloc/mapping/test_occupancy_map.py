"""
Unit tests for the 3-D occupancy grid.

Tests cover:
    - Index / world conversion and bounds
    - Occupancy and free-space queries
    - Distance field and clipped obstacle distances
    - Ray casting
    - Building a map from points
"""

import unittest

import numpy as np
from numpy.testing import assert_allclose

from aeroloc.mapping import OccupancyMap


class TestOccupancyQueries(unittest.TestCase):
    """Test cases for indexing and occupancy checks."""

    def setUp(self) -> None:
        grid = np.zeros((10, 8, 4), dtype=bool)
        grid[0, :, :] = True
        self.map = OccupancyMap(grid, resolution=0.5, origin=np.array([-1.0, 0.0, 0.0]))

    def test_bounds(self) -> None:
        lo, hi = self.map.bounds
        assert_allclose(lo, [-1.0, 0.0, 0.0])
        assert_allclose(hi, [4.0, 4.0, 2.0])

    def test_index_round_trip(self) -> None:
        idx = np.array([[3, 2, 1]])
        center = self.map.index_to_world(idx)
        assert_allclose(center, [[0.75, 1.25, 0.75]])
        self.assertEqual(self.map.world_to_index(center).tolist(), idx.tolist())

    def test_occupied_and_free(self) -> None:
        pts = np.array([
            [-0.9, 1.0, 1.0],  # wall
            [1.0, 1.0, 1.0],   # free
            [10.0, 1.0, 1.0],  # outside
        ])
        self.assertEqual(self.map.is_occupied(pts).tolist(), [True, False, False])
        self.assertEqual(self.map.is_free(pts).tolist(), [False, True, False])
        self.assertEqual(self.map.in_bounds(pts).tolist(), [True, True, False])

    def test_free_cells(self) -> None:
        free = self.map.free_cells()
        self.assertEqual(len(free), 9 * 8 * 4)
        self.assertTrue(np.all(free[:, 0] >= 1))

    def test_invalid_construction(self) -> None:
        with self.assertRaises(ValueError):
            OccupancyMap(np.zeros((4, 4)), 0.1)
        with self.assertRaises(ValueError):
            OccupancyMap(np.zeros((4, 4, 4)), 0.0)


class TestDistanceField(unittest.TestCase):
    """Test cases for distance_field / distance_to_obstacle."""

    def setUp(self) -> None:
        grid = np.zeros((10, 10, 10), dtype=bool)
        grid[5, 5, 5] = True
        self.map = OccupancyMap(grid, resolution=0.5)

    def test_field_values(self) -> None:
        field = self.map.distance_field()
        self.assertEqual(field[5, 5, 5], 0.0)
        self.assertAlmostEqual(field[5, 5, 7], 1.0)
        self.assertAlmostEqual(field[6, 6, 5], np.sqrt(2) * 0.5)

    def test_clipped_and_outside(self) -> None:
        pts = np.array([
            [2.75, 2.75, 2.75],  # occupied voxel center
            [2.75, 2.75, 3.75],  # two voxels above
            [0.25, 0.25, 0.25],  # far corner
            [-5.0, 0.0, 0.0],    # outside
        ])
        d = self.map.distance_to_obstacle(pts, max_distance=1.5)
        assert_allclose(d, [0.0, 1.0, 1.5, 1.5])

    def test_empty_map_is_infinitely_far(self) -> None:
        empty = OccupancyMap(np.zeros((3, 3, 3), dtype=bool), 1.0)
        self.assertTrue(np.all(np.isinf(empty.distance_field())))
        assert_allclose(empty.distance_to_obstacle(np.array([[1.5, 1.5, 1.5]]), 2.0), [2.0])


class TestRaycast(unittest.TestCase):
    """Test cases for ray casting."""

    def setUp(self) -> None:
        grid = np.zeros((20, 3, 3), dtype=bool)
        grid[10, :, :] = True
        self.map = OccupancyMap(grid, resolution=0.1)

    def test_hit_and_miss(self) -> None:
        origins = np.array([[0.05, 0.15, 0.15], [0.05, 0.15, 0.15], [1.95, 0.15, 0.15]])
        directions = np.array([[1.0, 0.0, 0.0], [-1.0, 0.0, 0.0], [1.0, 0.0, 0.0]])
        ranges = self.map.raycast(origins, directions, max_range=3.0)
        # Wall face at x = 1.0, marched at half resolution
        self.assertAlmostEqual(ranges[0], 0.95, delta=0.051)
        self.assertEqual(ranges[1], 3.0)
        self.assertEqual(ranges[2], 3.0)

    def test_max_range_limits_hits(self) -> None:
        ranges = self.map.raycast(np.array([[0.05, 0.15, 0.15]]), np.array([[1.0, 0.0, 0.0]]), 0.5)
        self.assertEqual(ranges[0], 0.5)

    def test_batches_agree(self) -> None:
        rng = np.random.default_rng(0)
        origins = np.tile([0.05, 0.15, 0.15], (50, 1))
        angles = rng.uniform(-0.5, 0.5, 50)
        directions = np.column_stack([np.cos(angles), np.sin(angles), np.zeros(50)])
        full = self.map.raycast(origins, directions, 3.0)
        batched = self.map.raycast(origins, directions, 3.0, batch_size=7)
        assert_allclose(full, batched)

    def test_shape_mismatch(self) -> None:
        with self.assertRaises(ValueError):
            self.map.raycast(np.zeros((2, 3)), np.zeros((3, 3)), 1.0)


class TestFromPoints(unittest.TestCase):
    """Test cases for OccupancyMap.from_points."""

    def test_points_are_occupied(self) -> None:
        pts = np.array([[0.0, 0.0, 0.0], [1.0, 1.0, 1.0], [0.2, 0.9, 0.4]])
        m = OccupancyMap.from_points(pts, resolution=0.5)
        self.assertEqual(m.shape, (3, 3, 3))
        self.assertTrue(np.all(m.is_occupied(pts)))
        self.assertEqual(int(m.occupied.sum()), 3)

    def test_padding_shifts_origin(self) -> None:
        m = OccupancyMap.from_points(np.array([[1.0, 1.0, 1.0]]), 0.5, padding=1.0)
        assert_allclose(m.origin, [0.0, 0.0, 0.0])
        self.assertTrue(m.is_occupied(np.array([[1.0, 1.0, 1.0]]))[0])

    def test_rejects_empty(self) -> None:
        with self.assertRaises(ValueError):
            OccupancyMap.from_points(np.zeros((0, 3)), 0.5)
