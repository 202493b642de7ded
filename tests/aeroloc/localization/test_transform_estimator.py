"""Unit tests for the map→odom correction estimator."""

import logging
import unittest

import numpy as np
from numpy.testing import assert_allclose

from aeroloc.coords import FrameIds, se3_compose
from aeroloc.localization import TransformEstimator
from aeroloc.tf import BufferBroadcaster, StampedTransform, TransformBuffer


class TestTransformEstimator(unittest.TestCase):
    """Test cases for TransformEstimator."""

    def setUp(self) -> None:
        self.frames = FrameIds()
        self.buffer = TransformBuffer()
        self.odom_pose = np.array([1.0, 0.5, 1.2, 0.0, 0.0, 0.4])
        self.buffer.set_transform(
            StampedTransform(self.frames.odom, self.frames.base, 1.0, self.odom_pose)
        )
        self.broadcaster = BufferBroadcaster(self.buffer)
        self.estimator = TransformEstimator(
            self.buffer, self.broadcaster, self.frames, tolerance=0.5, lookup_timeout=0.0
        )

    def test_correction_closes_the_chain(self) -> None:
        best = np.array([3.0, 2.0, 1.5, 0.0, 0.0, 1.0])
        correction = self.estimator.compute_correction(best, 1.0)
        assert_allclose(se3_compose(correction, self.odom_pose), best, atol=1e-12)

    def test_update_publishes_with_validity_window(self) -> None:
        self.assertTrue(self.estimator.is_stale(0.0))
        best = np.array([3.0, 2.0, 1.5, 0.0, 0.0, 1.0])
        self.assertTrue(self.estimator.update(best, 1.0))

        sent = self.broadcaster.latest
        self.assertEqual((sent.parent, sent.child), ("map", "world"))
        self.assertEqual(sent.stamp, 1.5)
        assert_allclose(sent.pose, self.estimator.latest_correction)
        self.assertFalse(self.estimator.is_stale(1.2))
        self.assertTrue(self.estimator.is_stale(1.6))

        # The correction lands in the buffer: latest map→base resolves to the estimate
        tf = self.buffer.lookup_transform("map", self.frames.base)
        assert_allclose(tf.pose, best, atol=1e-9)

    def test_rebroadcast_restamps(self) -> None:
        self.estimator.update(np.array([3.0, 2.0, 1.5, 0.0, 0.0, 1.0]), 1.0)
        first = self.broadcaster.latest
        again = self.estimator.rebroadcast(4.0)
        self.assertEqual(again.stamp, 4.5)
        assert_allclose(again.pose, first.pose)
        self.assertEqual(len(self.broadcaster.sent), 2)
        self.assertFalse(self.estimator.is_stale(4.2))

    def test_identity_before_first_update(self) -> None:
        sent = self.estimator.rebroadcast(2.0)
        assert_allclose(sent.pose, np.zeros(6))

    def test_lookup_failure_keeps_previous(self) -> None:
        best = np.array([3.0, 2.0, 1.5, 0.0, 0.0, 1.0])
        self.estimator.update(best, 1.0)
        previous = self.estimator.latest_correction.copy()
        with self.assertLogs("aeroloc.localization.transform_estimator", level=logging.WARNING):
            self.assertFalse(self.estimator.update(best + 1.0, 5.0))
        assert_allclose(self.estimator.latest_correction, previous)
        self.assertEqual(len(self.broadcaster.sent), 1)

    def test_invalid_tolerance(self) -> None:
        with self.assertRaises(ValueError):
            TransformEstimator(self.buffer, self.broadcaster, tolerance=0.0)
