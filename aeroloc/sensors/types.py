"""Sensor data types consumed by the localizer.

- LaserScan: one planar range scan as delivered by the sensor transport
- ProcessedObservation: filtered, downsampled returns ready for weighting
"""

from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True)
class LaserScan:
    """
    Planar range scan.

    Beam i points at angle ``angle_min + i * angle_increment`` in the
    sensor frame, about the sensor's z-axis.

    Attributes:
        stamp: Acquisition time in seconds.
        frame_id: Sensor frame id.
        angle_min: Angle of the first beam (radians).
        angle_increment: Angular step between beams (radians).
        ranges: Measured ranges in meters, shape (B,). NaN/inf mark no return.
        range_min: Minimum valid range reported by the sensor (meters).
        range_max: Maximum valid range reported by the sensor (meters).
    """

    stamp: float
    frame_id: str
    angle_min: float
    angle_increment: float
    ranges: np.ndarray
    range_min: float = 0.0
    range_max: float = np.inf

    def __post_init__(self) -> None:
        """Validate scan fields."""
        ranges = np.asarray(self.ranges, dtype=np.float64)
        if ranges.ndim != 1:
            raise ValueError(f"ranges must be 1-D, got shape {ranges.shape}")
        if not self.frame_id:
            raise ValueError("frame_id must be a non-empty string")
        if self.range_min < 0:
            raise ValueError(f"range_min must be non-negative, got {self.range_min}")
        object.__setattr__(self, "ranges", ranges)

    @property
    def num_beams(self) -> int:
        return len(self.ranges)

    def beam_angles(self) -> np.ndarray:
        """Angle of every beam, shape (B,)."""
        return self.angle_min + np.arange(self.num_beams) * self.angle_increment


@dataclass(frozen=True)
class ProcessedObservation:
    """
    Filtered and downsampled scan returns in the sensor frame.

    ``points`` and ``ranges`` are index-aligned: ranges[i] is the measured
    range of points[i].

    Attributes:
        points: Cartesian returns in the sensor frame, shape (M, 3).
        ranges: Measured ranges, shape (M,).
        frame_id: Sensor frame id.
        stamp: Acquisition time in seconds.
    """

    points: np.ndarray
    ranges: np.ndarray
    frame_id: str
    stamp: float

    def __post_init__(self) -> None:
        """Validate that points and ranges are aligned."""
        points = np.asarray(self.points, dtype=np.float64).reshape(-1, 3)
        ranges = np.asarray(self.ranges, dtype=np.float64).reshape(-1)
        if len(points) != len(ranges):
            raise ValueError(
                f"points ({len(points)}) and ranges ({len(ranges)}) must have the same length"
            )
        object.__setattr__(self, "points", points)
        object.__setattr__(self, "ranges", ranges)

    def __len__(self) -> int:
        return len(self.ranges)
