"""
Unit tests for the endpoint and raycast observation models.

Scans are simulated in a small room with one box; the true pose must score
higher than displaced or rotated hypotheses.
"""

import unittest

import numpy as np
import pytest

from aeroloc.coords import se3_compose
from aeroloc.models import (
    EndpointObservationModel,
    RaycastObservationModel,
    create_observation_model,
)
from aeroloc.sensors import LaserPreprocessor, ProcessedObservation
from aeroloc.sim import make_box_room, simulate_scan

TRUE_POSE = np.array([3.0, 2.5, 1.5, 0.0, 0.0, 0.3])


def _room():
    return make_box_room((6.0, 5.0, 3.0), resolution=0.1, boxes=[(1.0, 1.0, 2.0, 1.5)])


def _observation(room, sensor_pose):
    scan = simulate_scan(room, sensor_pose, num_beams=180, noise_std=0.0)
    return LaserPreprocessor(0.05, 14.0, sample_distance=0.2).process(scan)


def _hypotheses():
    shifted = TRUE_POSE + np.array([0.5, 0.0, 0.0, 0.0, 0.0, 0.0])
    rotated = TRUE_POSE + np.array([0.0, 0.0, 0.0, 0.0, 0.0, 0.3])
    return np.vstack([TRUE_POSE, shifted, rotated])


@pytest.mark.parametrize("model_cls", [EndpointObservationModel, RaycastObservationModel])
def test_true_pose_scores_highest(model_cls):
    room = _room()
    model = model_cls(room, sigma=0.2)
    model.set_observed_measurements(_observation(room, TRUE_POSE))
    scores = model.log_likelihood(_hypotheses())
    assert scores.shape == (3,)
    assert int(np.argmax(scores)) == 0
    assert np.all(np.isfinite(scores))


class TestObservationModelBase(unittest.TestCase):
    """Behavior shared by both models."""

    def setUp(self) -> None:
        self.room = _room()
        self.model = EndpointObservationModel(self.room)

    def test_requires_observation(self) -> None:
        with self.assertRaises(RuntimeError):
            self.model.log_likelihood(TRUE_POSE[np.newaxis, :])

    def test_empty_observation_scores_zero(self) -> None:
        self.model.set_observed_measurements(
            ProcessedObservation(np.zeros((0, 3)), np.zeros(0), "laser", 0.0)
        )
        np.testing.assert_array_equal(self.model.log_likelihood(_hypotheses()), 0.0)

    def test_random_term_keeps_scores_finite(self) -> None:
        """Hypotheses far outside the map still get a finite score."""
        self.model.set_observed_measurements(_observation(self.room, TRUE_POSE))
        far = np.array([[50.0, 50.0, 50.0, 0.0, 0.0, 0.0]])
        self.assertTrue(np.isfinite(self.model.log_likelihood(far)[0]))
        self.assertGreater(self.model.likelihood(TRUE_POSE[np.newaxis, :])[0], 0.0)

    def test_sensor_offset_is_applied(self) -> None:
        offset = np.array([0.3, 0.0, 0.0, 0.0, 0.0, 0.0])
        obs = _observation(self.room, se3_compose(TRUE_POSE, offset))
        self.model.set_observed_measurements(obs)
        without = self.model.log_likelihood(TRUE_POSE[np.newaxis, :])[0]
        self.model.set_base_to_sensor_transform(offset)
        with_offset = self.model.log_likelihood(TRUE_POSE[np.newaxis, :])[0]
        self.assertGreater(with_offset, without)

    def test_sensor_transform_shape_checked(self) -> None:
        with self.assertRaises(ValueError):
            self.model.set_base_to_sensor_transform(np.zeros(3))

    def test_invalid_parameters(self) -> None:
        with self.assertRaises(ValueError):
            EndpointObservationModel(self.room, sigma=0.0)
        with self.assertRaises(ValueError):
            EndpointObservationModel(self.room, z_hit=0.0, z_rand=0.0)
        with self.assertRaises(ValueError):
            EndpointObservationModel(self.room, max_obstacle_distance=-1.0)


class TestCreateObservationModel(unittest.TestCase):
    """Test cases for the model factory."""

    def setUp(self) -> None:
        self.room = make_box_room((2.0, 2.0, 2.0), resolution=0.2, boxes=None)

    def test_by_name(self) -> None:
        endpoint = create_observation_model("endpoint", self.room, max_obstacle_distance=1.5)
        self.assertIsInstance(endpoint, EndpointObservationModel)
        self.assertEqual(endpoint.max_obstacle_distance, 1.5)

    def test_raycast_ignores_obstacle_distance(self) -> None:
        model = create_observation_model("raycast", self.room, sigma=0.3, max_obstacle_distance=1.5)
        self.assertIsInstance(model, RaycastObservationModel)
        self.assertEqual(model.sigma, 0.3)

    def test_unknown_name(self) -> None:
        with self.assertRaises(ValueError):
            create_observation_model("beam", self.room)
