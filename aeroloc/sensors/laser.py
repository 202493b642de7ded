"""Laser scan preprocessing.

Turns a raw planar scan into a ProcessedObservation:

    1. Range gating: keep beams with range in
       [max(scan.range_min, filter_min_range), filter_max_range].
    2. Polar to Cartesian: beam i at angle angle_min + i·angle_increment
       becomes (r cos a, r sin a, 0) in the sensor frame.
    3. Uniform downsampling: greedily keep points so that no two kept points
       lie within ``sample_distance`` of each other.

Downsampling bounds the number of likelihood evaluations per scan by the
size of the observed scene rather than by the sensor's beam count.
"""

import logging
from typing import Tuple

import numpy as np
from scipy.spatial import KDTree

from aeroloc.sensors.types import LaserScan, ProcessedObservation

logger = logging.getLogger(__name__)


def filter_ranges(
    ranges: np.ndarray,
    min_range: float,
    max_range: float,
) -> np.ndarray:
    """
    Mask of beams whose range lies in [min_range, max_range].

    Non-finite ranges are rejected.

    Example:
        >>> filter_ranges(np.array([0.02, 5.0, 15.0, 3.0]), 0.05, 14.0)
        array([False,  True, False,  True])
    """
    ranges = np.asarray(ranges, dtype=np.float64)
    with np.errstate(invalid="ignore"):
        return np.isfinite(ranges) & (ranges >= min_range) & (ranges <= max_range)


def polar_to_cartesian(angles: np.ndarray, ranges: np.ndarray) -> np.ndarray:
    """Planar beam endpoints (M, 3) in the sensor frame, z = 0."""
    angles = np.asarray(angles, dtype=np.float64)
    ranges = np.asarray(ranges, dtype=np.float64)
    return np.column_stack(
        [ranges * np.cos(angles), ranges * np.sin(angles), np.zeros_like(ranges)]
    )


def uniform_downsample(points: np.ndarray, radius: float) -> np.ndarray:
    """
    Greedy radius-based downsampling.

    Points are visited in order; a point is kept unless it lies within
    ``radius`` of a point kept earlier. Kept points are therefore pairwise
    more than ``radius`` apart.

    Args:
        points: Points of shape (M, D).
        radius: Suppression radius; values <= 0 keep every point.

    Returns:
        Sorted indices of the kept points.

    Example:
        >>> pts = np.array([[0.0, 0.0], [0.05, 0.0], [1.0, 0.0]])
        >>> uniform_downsample(pts, 0.2).tolist()
        [0, 2]
    """
    points = np.asarray(points, dtype=np.float64)
    n = len(points)
    if n == 0 or radius <= 0:
        return np.arange(n)

    tree = KDTree(points)
    neighbors = tree.query_ball_point(points, r=radius)

    suppressed = np.zeros(n, dtype=bool)
    kept = []
    for i in range(n):
        if suppressed[i]:
            continue
        kept.append(i)
        suppressed[neighbors[i]] = True
    return np.asarray(kept, dtype=int)


class LaserPreprocessor:
    """
    Scan filter and downsampler.

    Args:
        filter_min_range: Lower range bound applied on top of the sensor's own.
        filter_max_range: Upper range bound (meters).
        sample_distance: Downsampling radius (meters); <= 0 disables it.

    Example:
        >>> pre = LaserPreprocessor(0.05, 14.0, sample_distance=0.2)
        >>> scan = LaserScan(0.0, "laser", 0.0, np.pi / 2, np.array([1.0, 2.0]))
        >>> obs = pre.process(scan)
        >>> obs.ranges.tolist()
        [1.0, 2.0]
    """

    def __init__(
        self,
        filter_min_range: float = 0.05,
        filter_max_range: float = 14.0,
        sample_distance: float = 0.2,
    ):
        if filter_min_range < 0:
            raise ValueError(f"filter_min_range must be non-negative, got {filter_min_range}")
        if filter_max_range <= filter_min_range:
            raise ValueError(
                f"filter_max_range ({filter_max_range}) must exceed "
                f"filter_min_range ({filter_min_range})"
            )
        self.filter_min_range = filter_min_range
        self.filter_max_range = filter_max_range
        self.sample_distance = sample_distance

    def valid_beams(self, scan: LaserScan) -> np.ndarray:
        """Mask of beams kept by range gating."""
        lower = max(scan.range_min, self.filter_min_range)
        return filter_ranges(scan.ranges, lower, self.filter_max_range)

    def to_points(self, scan: LaserScan) -> Tuple[np.ndarray, np.ndarray]:
        """Range-gated beams as (points (M, 3), ranges (M,)), before downsampling."""
        mask = self.valid_beams(scan)
        ranges = scan.ranges[mask]
        return polar_to_cartesian(scan.beam_angles()[mask], ranges), ranges

    def process(self, scan: LaserScan) -> ProcessedObservation:
        """Filter, convert and downsample a scan."""
        points, ranges = self.to_points(scan)
        kept = uniform_downsample(points, self.sample_distance)

        logger.debug(
            "Laser point cloud subsampled: %d from %d (%d out of valid range)",
            len(kept), len(points), scan.num_beams - len(points),
        )
        return ProcessedObservation(
            points=points[kept],
            ranges=ranges[kept],
            frame_id=scan.frame_id,
            stamp=scan.stamp,
        )
