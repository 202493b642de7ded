"""Data types exposed by the localization engine."""

from dataclasses import dataclass
from enum import Enum

import numpy as np

from aeroloc.coords.rotations import euler_to_quat


class EngineState(Enum):
    """Lifecycle state of the localization engine."""

    UNINITIALIZED = "uninitialized"
    TRACKING = "tracking"


class ScanOutcome(Enum):
    """What the engine did with one scan.

    Attributes:
        FUSED: Full step: predict, weight, resample if needed.
        DRIFTED: Motion below threshold; motion update only.
        NOT_INITIALIZED: Dropped on NotInitialized, no initialization yet.
        STALE: Dropped on StaleData, older than the previously processed scan.
        NO_ODOMETRY: Dropped on PoseUnavailable, odometry pose not
            resolvable at the scan time.
        NO_SENSOR_TRANSFORM: Dropped on TransformUnavailable, sensor-to-base
            transform not resolvable.
        WEIGHT_COLLAPSE: WeightCollapse, the observation rejected every
            particle; handled per the configured collapse policy.
    """

    FUSED = "fused"
    DRIFTED = "drifted"
    NOT_INITIALIZED = "not_initialized"
    STALE = "stale"
    NO_ODOMETRY = "no_odometry"
    NO_SENSOR_TRANSFORM = "no_sensor_transform"
    WEIGHT_COLLAPSE = "weight_collapse"


@dataclass(frozen=True)
class PoseEstimate:
    """
    Best-estimate vehicle pose.

    Attributes:
        stamp: Time the estimate corresponds to (seconds).
        frame_id: Frame the pose is expressed in (the map frame).
        pose: [x, y, z, roll, pitch, yaw] of the maximum-weight particle.
    """

    stamp: float
    frame_id: str
    pose: np.ndarray

    @property
    def position(self) -> np.ndarray:
        return self.pose[:3]

    @property
    def quaternion(self) -> np.ndarray:
        """Orientation as a unit quaternion [qw, qx, qy, qz]."""
        return euler_to_quat(*self.pose[3:])


@dataclass(frozen=True)
class PoseArraySnapshot:
    """
    Snapshot of the whole weighted population, for visualization.

    Attributes:
        stamp: Time of the snapshot (seconds).
        frame_id: Frame of the poses (the map frame).
        positions: Particle positions, shape (N, 3).
        quaternions: Particle orientations [qw, qx, qy, qz], shape (N, 4).
        weights: Particle weights, shape (N,).
    """

    stamp: float
    frame_id: str
    positions: np.ndarray
    quaternions: np.ndarray
    weights: np.ndarray

    def __len__(self) -> int:
        return len(self.positions)
