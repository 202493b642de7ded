"""
Scan-driven localization engine.

The engine owns the particle filter and turns each incoming laser scan into
one of three actions:

    - Full update (fused): predict with the odometry delta, weight against
      the map, resample when N_eff is low. Taken for the first scan after
      an initialization, and whenever the vehicle has moved at least
      threshold_translation, or turned at least threshold_rotation in yaw,
      since the last fused scan.
    - Drift: motion update only, so uncertainty keeps growing while the
      vehicle creeps below the thresholds.
    - Skip: scan dropped with no state change (not initialized, out of
      order, odometry or sensor transform unavailable).

After every fused update the best particle is published together with the
whole population, and the map→odom correction is refreshed.

All state is mutated from a single thread; LocalizationNode serializes
scans, initialization requests and timer ticks onto one worker.
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Optional

import numpy as np

from aeroloc.coords.transforms import se3_relative
from aeroloc.errors import (
    InvalidDistribution,
    NotInitialized,
    PoseUnavailable,
    StaleData,
    TransformUnavailable,
    WeightCollapse,
)
from aeroloc.estimators.distributions import (
    GaussianStateDistribution,
    StateDistribution,
    UniformStateDistribution,
)
from aeroloc.estimators.particle_filter import ParticleFilter, ResamplingMode
from aeroloc.localization.config import LocalizationConfig
from aeroloc.localization.publishing import PosePublisher, build_pose_array
from aeroloc.localization.transform_estimator import TransformEstimator
from aeroloc.localization.types import EngineState, PoseEstimate, ScanOutcome
from aeroloc.mapping.occupancy import OccupancyMap
from aeroloc.models.motion_models import OdometryMotionModel
from aeroloc.models.observation_models import create_observation_model
from aeroloc.sensors.laser import LaserPreprocessor
from aeroloc.sensors.types import LaserScan
from aeroloc.tf.buffer import BufferBroadcaster, TransformBroadcaster, TransformBuffer

logger = logging.getLogger(__name__)


class LocalizationEngine:
    """
    Particle-filter localizer against a prior 3D map.

    Args:
        config: Engine parameters.
        occupancy_map: Prior map of the environment.
        transform_buffer: Source of odom→base and base→sensor transforms.
        broadcaster: Sink for the map→odom correction (defaults to one
            writing back into transform_buffer).
        publisher: Sink for pose estimates and population snapshots.
        rng: Random generator (seeded from config.seed if None).

    Attributes:
        state: EngineState.UNINITIALIZED until the first successful init.
        filter: The owned ParticleFilter.
        last_estimate: Last published PoseEstimate, or None.
        needs_reinitialization: Set when the observation rejected every
            particle and the re-initialization attempt failed.

    Example:
        engine = LocalizationEngine(LocalizationConfig(), occupancy_map, buffer)
        engine.initialize_from_pose(np.array([1.0, 2.0, 1.0, 0, 0, 0]), stamp=0.0)
        outcome = engine.process_scan(scan)  # ScanOutcome.FUSED
    """

    def __init__(
        self,
        config: LocalizationConfig,
        occupancy_map: OccupancyMap,
        transform_buffer: TransformBuffer,
        broadcaster: Optional[TransformBroadcaster] = None,
        publisher: Optional[PosePublisher] = None,
        rng: Optional[np.random.Generator] = None,
    ):
        self.config = config
        self.map = occupancy_map
        self.transform_buffer = transform_buffer
        self.rng = np.random.default_rng(config.seed) if rng is None else rng
        self.frames = config.frames

        if broadcaster is None:
            broadcaster = BufferBroadcaster(transform_buffer)
        self.publisher = PosePublisher() if publisher is None else publisher

        self.motion_model = OdometryMotionModel(
            config.motion_noise_std,
            transform_buffer=transform_buffer,
            frames=self.frames,
            lookup_timeout=config.lookup_timeout,
            rng=self.rng,
        )
        self.observation_model = create_observation_model(
            config.observation_model,
            occupancy_map,
            sigma=config.observation_sigma,
            z_hit=config.z_hit,
            z_rand=config.z_rand,
            max_range=config.filter_max_range,
            max_obstacle_distance=config.max_obstacle_distance,
        )
        self.preprocessor = LaserPreprocessor(
            config.filter_min_range, config.filter_max_range, config.sample_distance
        )
        self.transform_estimator = TransformEstimator(
            transform_buffer,
            broadcaster,
            frames=self.frames,
            tolerance=config.transform_tolerance,
            lookup_timeout=config.lookup_timeout,
        )

        self.filter = ParticleFilter(
            config.num_particles,
            self.motion_model,
            resampling_mode=ResamplingMode.NEFF,
            resample_threshold=config.resample_threshold,
            rng=self.rng,
        )
        # Seeded around the configured pose; tracking only starts on an init event.
        self.filter.draw_all_from_distribution(
            GaussianStateDistribution(config.initial_pose, config.init_std_devs)
        )
        logger.info("Particle filter created with %d particles", config.num_particles)

        self._executor = (
            ThreadPoolExecutor(max_workers=config.snapshot_workers)
            if config.snapshot_workers > 1
            else None
        )

        self.state = EngineState.UNINITIALIZED
        self.last_estimate: Optional[PoseEstimate] = None
        self.needs_reinitialization = False
        self._first_scan = True
        self._last_localized_pose: Optional[np.ndarray] = None
        self._last_scan_stamp: Optional[float] = None
        self._warned_no_odometry = False

    @property
    def is_initialized(self) -> bool:
        return self.state is EngineState.TRACKING

    # ------------------------------------------------------------------
    # Initialization
    # ------------------------------------------------------------------

    def initialize_from_pose(
        self,
        pose: np.ndarray,
        stamp: float,
        frame_id: Optional[str] = None,
    ) -> bool:
        """
        Re-seed the population around an externally supplied pose.

        Particles are drawn from a Gaussian with the configured per-axis
        init_std_devs.

        Args:
            pose: Vehicle pose [x, y, z, roll, pitch, yaw] in the map frame.
            stamp: Time of the initial pose.
            frame_id: Frame of the pose; a mismatch with the map frame is
                logged but the pose is used as given.

        Returns:
            True on success; False leaves the previous population untouched.
        """
        if frame_id is not None and frame_id != self.frames.map:
            logger.warning(
                "Initial pose is in frame '%s', expected '%s'; using it as given",
                frame_id, self.frames.map,
            )
        logger.info("Initializing particles around pose %s", np.round(np.asarray(pose), 3))
        return self._initialize(
            lambda: GaussianStateDistribution(pose, self.config.init_std_devs), stamp
        )

    def initialize_from_config(self, stamp: float) -> bool:
        """Re-seed the population around the configured initial_pose."""
        logger.info("Initializing particles from configured pose")
        return self.initialize_from_pose(np.asarray(self.config.initial_pose), stamp)

    def initialize_global(self, stamp: float) -> bool:
        """
        Re-seed the population uniformly over the map's free space.

        Returns:
            True on success; False if the map has no admissible free space.
        """
        logger.info("Initializing particles uniformly over the map (global localization)")
        return self._initialize(
            lambda: UniformStateDistribution(
                self.map,
                z_range=self.config.global_z_range,
                min_clearance=self.config.global_min_clearance,
                max_attempts=self.config.max_sampling_attempts,
            ),
            stamp,
        )

    def _initialize(self, make_distribution, stamp: float) -> bool:
        try:
            distribution: StateDistribution = make_distribution()
            self.filter.draw_all_from_distribution(distribution)
        except InvalidDistribution as e:
            logger.error("Initialization failed, keeping previous particles: %s", e)
            return False

        self.filter.set_resampling_mode(ResamplingMode.NEFF)
        self.filter.reset_timer(stamp)
        self.motion_model.reset()
        self._first_scan = True
        self._last_localized_pose = None
        self.needs_reinitialization = False
        self.state = EngineState.TRACKING

        self.publish_pose_estimate(stamp)
        return True

    # ------------------------------------------------------------------
    # Scan processing
    # ------------------------------------------------------------------

    def process_scan(self, scan: LaserScan) -> ScanOutcome:
        """
        Process one laser scan.

        Returns:
            ScanOutcome describing what was done with the scan.
        """
        try:
            self._check_admissible(scan)
        except NotInitialized as e:
            logger.warning("%s, skipping scan", e)
            return ScanOutcome.NOT_INITIALIZED
        except StaleData as e:
            logger.warning("Ignoring scan: %s", e)
            return ScanOutcome.STALE

        try:
            odom_pose, odom_stamp = self.motion_model.lookup_odom_pose(scan.stamp)
        except PoseUnavailable as e:
            if not self._warned_no_odometry:
                logger.warning(
                    "Odometry not available, skipping scans until it is "
                    "(this message is printed once): %s", e,
                )
                self._warned_no_odometry = True
            else:
                logger.debug("Odometry not available, skipping scan: %s", e)
            return ScanOutcome.NO_ODOMETRY

        if self.motion_model.has_last_odom_pose():
            delta = se3_relative(self.motion_model.last_odom_pose, odom_pose)
            dt = odom_stamp - self.motion_model.last_odom_stamp
        else:
            # First scan since initialization: only time has passed since the reset
            delta = np.zeros(6)
            dt = max(odom_stamp - self.filter.time, 0.0)

        if self._first_scan or self._moved_past_threshold(odom_pose):
            outcome = self._fuse(scan, odom_pose, delta, dt)
            if outcome is ScanOutcome.NO_SENSOR_TRANSFORM:
                return outcome
        else:
            self.filter.drift(delta, dt)
            outcome = ScanOutcome.DRIFTED
            if not self.config.publish_on_update:
                self.publish_pose_estimate(scan.stamp)

        self.motion_model.set_last_odom_pose(odom_pose, odom_stamp)
        self._last_scan_stamp = scan.stamp
        return outcome

    def _check_admissible(self, scan: LaserScan) -> None:
        if self.state is EngineState.UNINITIALIZED:
            raise NotInitialized("Localization not initialized yet")
        if self._last_scan_stamp is not None and scan.stamp < self._last_scan_stamp:
            raise StaleData(
                f"scan is {self._last_scan_stamp - scan.stamp:.3f} s older than the previous one"
            )

    def _moved_past_threshold(self, odom_pose: np.ndarray) -> bool:
        if self._last_localized_pose is None:
            return True
        moved = se3_relative(self._last_localized_pose, odom_pose)
        return bool(
            np.linalg.norm(moved[:3]) >= self.config.threshold_translation
            or abs(moved[5]) >= self.config.threshold_rotation
        )

    def _fuse(
        self,
        scan: LaserScan,
        odom_pose: np.ndarray,
        delta: np.ndarray,
        dt: float,
    ) -> ScanOutcome:
        started = time.perf_counter()

        try:
            base_to_sensor = self.motion_model.lookup_target_to_base(scan.frame_id, scan.stamp)
        except TransformUnavailable as e:
            logger.warning("Sensor transform unavailable, skipping scan: %s", e)
            return ScanOutcome.NO_SENSOR_TRANSFORM

        observation = self.preprocessor.process(scan)
        self.publisher.publish_filtered_cloud(observation)

        self.observation_model.set_base_to_sensor_transform(base_to_sensor)
        self.observation_model.set_observed_measurements(observation)
        self.filter.set_observation_model(self.observation_model)

        self._first_scan = False
        try:
            resampled = self.filter.filter(delta, dt)
        except WeightCollapse as e:
            return self._handle_collapse(scan, e)

        logger.info(
            "Laser filter done in %.4f s (%d points, N_eff %.1f%s)",
            time.perf_counter() - started,
            len(observation),
            self.filter.particles.effective_sample_size(),
            ", resampled" if resampled else "",
        )
        self._last_localized_pose = np.asarray(odom_pose, dtype=np.float64).copy()
        self.publish_pose_estimate(scan.stamp)
        return ScanOutcome.FUSED

    def _handle_collapse(self, scan: LaserScan, error: WeightCollapse) -> ScanOutcome:
        if self.config.collapse_policy == "retain":
            logger.warning("%s; keeping prior weights", error)
            return ScanOutcome.WEIGHT_COLLAPSE

        logger.error("%s; re-initializing globally", error)
        if not self.initialize_global(scan.stamp):
            self.needs_reinitialization = True
        return ScanOutcome.WEIGHT_COLLAPSE

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------

    def current_estimate(self, stamp: float) -> PoseEstimate:
        """Best particle as a PoseEstimate in the map frame."""
        return PoseEstimate(stamp=stamp, frame_id=self.frames.map, pose=self.filter.best_state())

    def publish_pose_estimate(self, stamp: float) -> PoseEstimate:
        """Publish the best pose, the population snapshot and the correction."""
        estimate = self.current_estimate(stamp)
        self.last_estimate = estimate

        states, weights = self.filter.get_particles()
        snapshot = build_pose_array(
            states,
            weights,
            stamp,
            self.frames.map,
            executor=self._executor,
            workers=self.config.snapshot_workers,
        )
        self.publisher.publish_particles(snapshot)
        self.publisher.publish_pose(estimate)
        self.transform_estimator.update(estimate.pose, stamp)
        return estimate

    def on_timer(self, now: float) -> None:
        """Re-broadcast the current map→odom correction."""
        self.transform_estimator.rebroadcast(now)

    def close(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None
