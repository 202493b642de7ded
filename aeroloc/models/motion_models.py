"""
Odometry-driven motion model for particle prediction.

Each particle is moved by the odometry delta measured since the previous
step, expressed in the particle's own frame, and then perturbed by
independent Gaussian noise on each of the six pose axes:

    x_k⁽ⁱ⁾ = (x_{k-1}⁽ⁱ⁾ ⊕ Δ) + w,    w ~ N(0, diag(σ² · dt))

The noise variance grows linearly with the elapsed time dt, so uncertainty
keeps growing through steps where no scan is fused (drift steps).

The model also owns the odometry bookkeeping: it resolves the odometry pose
at a scan's timestamp through the transform buffer and remembers the last
processed odometry pose.
"""

from typing import Optional, Tuple

import numpy as np

from aeroloc.coords.frames import FrameIds
from aeroloc.coords.transforms import se3_compose_batch, wrap_angle
from aeroloc.errors import PoseUnavailable, TransformUnavailable


class OdometryMotionModel:
    """
    Odometry motion model with per-axis Gaussian drift noise.

    Args:
        noise_std: Per-axis noise standard deviations (6,) for
            [x, y, z, roll, pitch, yaw], per sqrt(second).
        transform_buffer: Buffer with lookup_transform(target, source, stamp,
            timeout); needed only for the odometry lookups.
        frames: Frame names of the localization tree.
        lookup_timeout: Maximum wait for a transform lookup (seconds).
        rng: Random generator for the noise.

    Example:
        >>> model = OdometryMotionModel(np.full(6, 0.0))
        >>> states = np.zeros((2, 6))
        >>> delta = np.array([1.0, 0, 0, 0, 0, 0])
        >>> model.predict(states, delta, dt=0.1)[:, 0].tolist()
        [1.0, 1.0]
    """

    def __init__(
        self,
        noise_std: np.ndarray,
        transform_buffer=None,
        frames: FrameIds = FrameIds(),
        lookup_timeout: float = 0.1,
        rng: Optional[np.random.Generator] = None,
    ):
        self.noise_std = np.asarray(noise_std, dtype=np.float64).reshape(6)
        if np.any(self.noise_std < 0):
            raise ValueError(f"noise_std must be non-negative, got {self.noise_std}")
        self.transform_buffer = transform_buffer
        self.frames = frames
        self.lookup_timeout = lookup_timeout
        self.rng = np.random.default_rng() if rng is None else rng

        self.last_odom_pose: Optional[np.ndarray] = None
        self.last_odom_stamp: Optional[float] = None

    def _perturb(self, states: np.ndarray, dt: float) -> np.ndarray:
        if dt <= 0:
            return states
        noise = self.rng.normal(0.0, self.noise_std * np.sqrt(dt), size=states.shape)
        out = states + noise
        out[:, 3:] = wrap_angle(out[:, 3:])
        return out

    def predict(self, states: np.ndarray, delta: np.ndarray, dt: float) -> np.ndarray:
        """
        Move every particle by the odometry delta and add drift noise.

        Args:
            states: Particle states (N, 6).
            delta: Odometry motion since the previous step (6,), in the
                vehicle frame.
            dt: Elapsed time in seconds.

        Returns:
            New particle states (N, 6).
        """
        return self._perturb(se3_compose_batch(states, delta), dt)

    def drift(
        self,
        states: np.ndarray,
        dt: float,
        delta: Optional[np.ndarray] = None,
    ) -> np.ndarray:
        """
        Time update for a step whose scan is not fused.

        Noise grows with dt as in predict. If the odometry delta is given,
        particles follow it so that the population stays with the vehicle.
        """
        states = np.asarray(states, dtype=np.float64)
        if delta is not None:
            states = se3_compose_batch(states, delta)
        return self._perturb(states, dt)

    def lookup_odom_pose(self, stamp: float) -> Tuple[np.ndarray, float]:
        """
        Vehicle pose in the odometry frame at a timestamp.

        Returns:
            Tuple of (pose (6,), stamp).

        Raises:
            PoseUnavailable: If no buffer is attached or the lookup fails.
        """
        if self.transform_buffer is None:
            raise PoseUnavailable("No transform buffer attached to the motion model")
        try:
            tf = self.transform_buffer.lookup_transform(
                self.frames.odom, self.frames.base, stamp, timeout=self.lookup_timeout
            )
        except TransformUnavailable as e:
            raise PoseUnavailable(f"Odometry pose unavailable at {stamp:.6f}: {e}") from e
        return tf.pose, stamp

    def lookup_target_to_base(self, frame_id: str, stamp: float) -> np.ndarray:
        """
        Pose of a target (sensor) frame in the vehicle base frame.

        Raises:
            TransformUnavailable: If the lookup fails.
        """
        if self.transform_buffer is None:
            raise TransformUnavailable("No transform buffer attached to the motion model")
        tf = self.transform_buffer.lookup_transform(
            self.frames.base, frame_id, stamp, timeout=self.lookup_timeout
        )
        return tf.pose

    def set_last_odom_pose(self, pose: np.ndarray, stamp: float) -> None:
        self.last_odom_pose = np.asarray(pose, dtype=np.float64).copy()
        self.last_odom_stamp = float(stamp)

    def has_last_odom_pose(self) -> bool:
        return self.last_odom_pose is not None

    def reset(self) -> None:
        """Forget the last odometry pose (after a re-initialization)."""
        self.last_odom_pose = None
        self.last_odom_stamp = None
