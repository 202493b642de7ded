"""
Unit tests for the engine's per-scan decisions.

Tests cover:
    - Scans before initialization are dropped
    - First scan after an initialization is fused
    - Translation / rotation thresholds choose between fuse and drift
    - Out-of-order scans, missing odometry and missing sensor transforms
    - Weight collapse under both collapse policies
"""

import dataclasses
import logging
import unittest

import numpy as np
from numpy.testing import assert_allclose

from aeroloc.localization import (
    EngineState,
    LocalizationConfig,
    LocalizationEngine,
    RecordingPublisher,
    ScanOutcome,
)
from aeroloc.sim import SimulatedVehicle, make_box_room
from aeroloc.tf import TransformBuffer

START = np.array([3.0, 2.5, 1.5, 0.0, 0.0, 0.0])


def _make_engine(**overrides):
    room = make_box_room((6.0, 5.0, 3.0), resolution=0.1, boxes=[(1.0, 1.0, 2.0, 1.5)])
    buffer = TransformBuffer(cache_time=100.0)
    vehicle = SimulatedVehicle(
        room, buffer, num_beams=90, range_noise_std=0.0, rng=np.random.default_rng(0)
    )
    params = dict(
        num_particles=50,
        initial_pose=tuple(START),
        init_std_devs=(0.05, 0.05, 0.05, 0.0, 0.0, 0.05),
        lookup_timeout=0.0,
        seed=0,
    )
    params.update(overrides)
    publisher = RecordingPublisher()
    engine = LocalizationEngine(LocalizationConfig(**params), room, buffer, publisher=publisher)
    return engine, vehicle, publisher


def _offset(dx=0.0, dyaw=0.0):
    return START + np.array([dx, 0.0, 0.0, 0.0, 0.0, dyaw])


class TestGating(unittest.TestCase):
    """Fuse / drift / skip decisions."""

    def setUp(self) -> None:
        self.engine, self.vehicle, self.publisher = _make_engine()

    def tearDown(self) -> None:
        self.engine.close()

    def test_not_initialized(self) -> None:
        scan = self.vehicle.step(START, 0.0)
        self.assertEqual(self.engine.process_scan(scan), ScanOutcome.NOT_INITIALIZED)
        self.assertIs(self.engine.state, EngineState.UNINITIALIZED)
        self.assertEqual(self.publisher.poses, [])

    def test_initialization_publishes(self) -> None:
        self.vehicle.publish_odometry(START, 0.0)
        self.assertTrue(self.engine.initialize_from_pose(START, 0.0, frame_id="map"))
        self.assertTrue(self.engine.is_initialized)
        self.assertEqual(len(self.publisher.poses), 1)
        self.assertEqual(len(self.publisher.snapshots[0]), 50)
        self.assertEqual(self.publisher.poses[0].frame_id, "map")

    def test_gate_sequence(self) -> None:
        self.engine.initialize_from_pose(START, 0.0)
        sequence = [
            (0.0, _offset(), ScanOutcome.FUSED),                 # first scan after init
            (0.1, _offset(dx=0.1), ScanOutcome.DRIFTED),         # 0.1 m < 0.3 m
            (0.2, _offset(dx=0.2), ScanOutcome.DRIFTED),
            (0.3, _offset(dx=0.35), ScanOutcome.FUSED),          # 0.35 m since last fuse
            (0.4, _offset(dx=0.35, dyaw=0.2), ScanOutcome.DRIFTED),
            (0.5, _offset(dx=0.35, dyaw=0.45), ScanOutcome.FUSED),  # |yaw| 0.45 rad
        ]
        for stamp, pose, expected in sequence:
            outcome = self.engine.process_scan(self.vehicle.step(pose, stamp))
            self.assertEqual(outcome, expected, f"scan at t={stamp}")
        self.assertEqual(len(self.publisher.clouds), 3)

    def test_drift_advances_odometry_bookkeeping(self) -> None:
        self.engine.initialize_from_pose(START, 0.0)
        self.engine.process_scan(self.vehicle.step(START, 0.0))
        self.engine.process_scan(self.vehicle.step(_offset(dx=0.1), 0.1))
        assert_allclose(self.engine.motion_model.last_odom_pose, _offset(dx=0.1), atol=1e-9)
        self.assertAlmostEqual(self.engine.motion_model.last_odom_stamp, 0.1)

    def test_publish_on_every_scan(self) -> None:
        engine, vehicle, publisher = _make_engine(publish_on_update=False)
        try:
            engine.initialize_from_pose(START, 0.0)
            engine.process_scan(vehicle.step(START, 0.0))
            engine.process_scan(vehicle.step(_offset(dx=0.1), 0.1))
            self.assertEqual(len(publisher.poses), 3)
        finally:
            engine.close()

    def test_publish_only_on_update(self) -> None:
        self.engine.initialize_from_pose(START, 0.0)
        self.engine.process_scan(self.vehicle.step(START, 0.0))
        self.engine.process_scan(self.vehicle.step(_offset(dx=0.1), 0.1))
        self.assertEqual(len(self.publisher.poses), 2)

    def test_stale_scan(self) -> None:
        self.engine.initialize_from_pose(START, 0.0)
        scan = self.vehicle.step(START, 1.0)
        self.assertEqual(self.engine.process_scan(scan), ScanOutcome.FUSED)
        older = dataclasses.replace(scan, stamp=0.5)
        with self.assertLogs("aeroloc.localization.engine", level=logging.WARNING) as logs:
            self.assertEqual(self.engine.process_scan(older), ScanOutcome.STALE)
        self.assertIn("0.500 s older", logs.output[0])

    def test_reinitialization_fuses_next_scan(self) -> None:
        self.engine.initialize_from_pose(START, 0.0)
        self.engine.process_scan(self.vehicle.step(START, 0.0))
        self.engine.initialize_from_config(0.05)
        self.assertFalse(self.engine.motion_model.has_last_odom_pose())
        outcome = self.engine.process_scan(self.vehicle.step(_offset(dx=0.05), 0.1))
        self.assertEqual(outcome, ScanOutcome.FUSED)

    def test_clock_covers_gap_after_initialization(self) -> None:
        self.engine.initialize_from_pose(START, 0.0)
        self.assertEqual(self.engine.process_scan(self.vehicle.step(START, 5.0)), ScanOutcome.FUSED)
        self.assertAlmostEqual(self.engine.filter.time, 5.0)
        self.assertAlmostEqual(self.engine.filter.particles.last_weighting_time, 5.0)

        self.assertEqual(self.engine.process_scan(self.vehicle.step(START, 5.1)), ScanOutcome.DRIFTED)
        self.assertAlmostEqual(self.engine.filter.time, 5.1)
        self.assertAlmostEqual(self.engine.filter.particles.last_weighting_time, 5.0)

    def test_scan_in_base_frame(self) -> None:
        self.engine.initialize_from_pose(START, 0.0)
        scan = dataclasses.replace(self.vehicle.step(START, 0.1), frame_id=self.engine.frames.base)
        self.assertEqual(self.engine.process_scan(scan), ScanOutcome.FUSED)
        assert_allclose(self.engine.observation_model.base_to_sensor, np.zeros(6))


class TestSkippedScans(unittest.TestCase):
    """Scans dropped without touching the engine state."""

    def setUp(self) -> None:
        self.engine, self.vehicle, self.publisher = _make_engine()
        self.engine.initialize_from_pose(START, 0.0)

    def tearDown(self) -> None:
        self.engine.close()

    def test_no_odometry_warns_once(self) -> None:
        scan = self.vehicle.step(START, 0.0)
        late = dataclasses.replace(scan, stamp=10.0)
        with self.assertLogs("aeroloc.localization.engine", level=logging.WARNING) as logs:
            self.assertEqual(self.engine.process_scan(late), ScanOutcome.NO_ODOMETRY)
            self.assertEqual(self.engine.process_scan(late), ScanOutcome.NO_ODOMETRY)
        self.assertEqual(len(logs.records), 1)
        # Nothing was recorded, so the earlier scan is not stale
        self.assertEqual(self.engine.process_scan(scan), ScanOutcome.FUSED)

    def test_no_sensor_transform(self) -> None:
        scan = self.vehicle.step(START, 0.0)
        unknown = dataclasses.replace(scan, frame_id="camera")
        states_before = self.engine.filter.particles.states.copy()
        self.assertEqual(self.engine.process_scan(unknown), ScanOutcome.NO_SENSOR_TRANSFORM)
        self.assertFalse(self.engine.motion_model.has_last_odom_pose())
        assert_allclose(self.engine.filter.particles.states, states_before)
        self.assertEqual(self.publisher.clouds, [])
        # The first-scan fuse is still pending
        self.assertEqual(self.engine.process_scan(scan), ScanOutcome.FUSED)


class TestWeightCollapse(unittest.TestCase):
    """Both collapse policies."""

    @staticmethod
    def _reject_everything(engine):
        engine.observation_model.log_likelihood = lambda states: np.full(len(states), -np.inf)

    def test_retain_keeps_prior_weights(self) -> None:
        engine, vehicle, _ = _make_engine(collapse_policy="retain")
        try:
            engine.initialize_from_pose(START, 0.0)
            self._reject_everything(engine)
            self.assertEqual(engine.process_scan(vehicle.step(START, 0.0)), ScanOutcome.WEIGHT_COLLAPSE)
            assert_allclose(engine.filter.particles.weights, 1.0 / 50)
            self.assertTrue(engine.is_initialized)
            self.assertFalse(engine.needs_reinitialization)
        finally:
            engine.close()

    def test_reinitialize_spreads_particles(self) -> None:
        engine, vehicle, _ = _make_engine(collapse_policy="reinitialize")
        try:
            engine.initialize_from_pose(START, 0.0)
            self._reject_everything(engine)
            self.assertEqual(engine.process_scan(vehicle.step(START, 0.0)), ScanOutcome.WEIGHT_COLLAPSE)
            spread = engine.filter.particles.states[:, :2].std(axis=0)
            self.assertTrue(np.all(spread > 0.5))
            self.assertTrue(engine.is_initialized)
            self.assertFalse(engine.needs_reinitialization)
        finally:
            engine.close()

    def test_failed_reinitialization_is_flagged(self) -> None:
        engine, vehicle, _ = _make_engine(
            collapse_policy="reinitialize", global_min_clearance=50.0, max_sampling_attempts=2
        )
        try:
            engine.initialize_from_pose(START, 0.0)
            self._reject_everything(engine)
            self.assertEqual(engine.process_scan(vehicle.step(START, 0.0)), ScanOutcome.WEIGHT_COLLAPSE)
            self.assertTrue(engine.needs_reinitialization)
        finally:
            engine.close()
