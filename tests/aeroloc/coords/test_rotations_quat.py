"""Unit tests for aeroloc.coords.rotations.

Test cases include:
- Euler ↔ rotation matrix round trips (scalar and batch)
- Euler ↔ quaternion round trips
- Quaternion normalization and zero-norm rejection
- Slerp end points
"""

import unittest

import numpy as np
from numpy.testing import assert_allclose

from aeroloc.coords.rotations import (
    euler_to_quat,
    euler_to_quat_batch,
    euler_to_rotation_matrix,
    euler_to_rotation_matrix_batch,
    quat_slerp,
    quat_to_euler,
    rotation_matrix_to_euler,
)


class TestEulerRotationMatrix(unittest.TestCase):
    """Test cases for Euler ↔ rotation matrix conversion."""

    def test_yaw_only(self) -> None:
        R = euler_to_rotation_matrix(0.0, 0.0, np.pi / 2)
        assert_allclose(R @ np.array([1.0, 0.0, 0.0]), [0.0, 1.0, 0.0], atol=1e-12)

    def test_round_trip(self) -> None:
        euler = np.array([0.1, -0.2, 2.5])
        assert_allclose(rotation_matrix_to_euler(euler_to_rotation_matrix(*euler)), euler, atol=1e-12)

    def test_orthonormal(self) -> None:
        R = euler_to_rotation_matrix(0.3, 0.4, -1.2)
        assert_allclose(R @ R.T, np.eye(3), atol=1e-12)
        self.assertAlmostEqual(np.linalg.det(R), 1.0)

    def test_batch_matches_scalar(self) -> None:
        euler = np.array([[0.1, 0.2, 0.3], [-0.5, 0.0, 3.0]])
        batch = euler_to_rotation_matrix_batch(euler)
        self.assertEqual(batch.shape, (2, 3, 3))
        for i in range(2):
            assert_allclose(batch[i], euler_to_rotation_matrix(*euler[i]), atol=1e-12)


class TestQuaternions(unittest.TestCase):
    """Test cases for Euler ↔ quaternion conversion."""

    def test_identity(self) -> None:
        assert_allclose(euler_to_quat(0.0, 0.0, 0.0), [1.0, 0.0, 0.0, 0.0])

    def test_yaw_quarter_turn(self) -> None:
        q = euler_to_quat(0.0, 0.0, np.pi / 2)
        assert_allclose(q, [np.cos(np.pi / 4), 0.0, 0.0, np.sin(np.pi / 4)], atol=1e-12)

    def test_round_trip(self) -> None:
        euler = np.array([0.2, -0.3, -2.0])
        assert_allclose(quat_to_euler(euler_to_quat(*euler)), euler, atol=1e-12)

    def test_batch_unit_norm(self) -> None:
        rng = np.random.default_rng(0)
        q = euler_to_quat_batch(rng.uniform(-np.pi, np.pi, (50, 3)))
        assert_allclose(np.linalg.norm(q, axis=1), 1.0, atol=1e-12)

    def test_denormalized_input_accepted(self) -> None:
        q = 3.0 * euler_to_quat(0.0, 0.0, 1.0)
        assert_allclose(quat_to_euler(q), [0.0, 0.0, 1.0], atol=1e-12)

    def test_zero_norm_raises(self) -> None:
        with self.assertRaises(ValueError):
            quat_to_euler(np.zeros(4))

    def test_slerp_end_points(self) -> None:
        q0 = euler_to_quat(0.0, 0.0, 0.0)
        q1 = euler_to_quat(0.0, 0.0, 2.0)
        assert_allclose(quat_slerp(q0, q1, 0.0), q0, atol=1e-12)
        assert_allclose(quat_slerp(q0, q1, 1.0), q1, atol=1e-12)
        assert_allclose(quat_to_euler(quat_slerp(q0, q1, 0.5)), [0.0, 0.0, 1.0], atol=1e-12)
