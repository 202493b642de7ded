"""Synthetic indoor environments and laser scans.

This module builds small voxel worlds (a walled room with a few boxes that
break its symmetry) and simulates a planar laser scanner mounted on an
aerial vehicle by ray-casting into the map. Returns that reach the maximum
range without hitting anything are reported as +inf, as real drivers do.

The SimulatedVehicle helper also feeds the transform buffer with the
odometry and static mounting transforms a real vehicle would publish, so
the localization engine can run end to end without hardware.
"""

from typing import Iterable, Optional, Tuple

import numpy as np

from aeroloc.coords.frames import FrameIds
from aeroloc.coords.rotations import euler_to_rotation_matrix
from aeroloc.coords.transforms import se3_compose, se3_inverse
from aeroloc.mapping.occupancy import OccupancyMap
from aeroloc.sensors.types import LaserScan
from aeroloc.tf.types import StampedTransform

# (x_min, y_min, x_max, y_max) footprints of full-height boxes in a 10 x 8 m room
DEFAULT_BOXES = (
    (2.0, 1.0, 3.0, 2.5),
    (6.5, 5.0, 8.0, 5.6),
    (7.2, 1.2, 7.6, 1.6),
)


def make_box_room(
    size: Tuple[float, float, float] = (10.0, 8.0, 3.0),
    resolution: float = 0.1,
    boxes: Optional[Iterable[Tuple[float, float, float, float]]] = DEFAULT_BOXES,
) -> OccupancyMap:
    """Create a closed room (walls, floor and ceiling) with optional boxes.

    The map origin is at (0, 0, 0) and the interior spans the given size.
    Walls are one voxel thick and lie just inside the outer boundary.

    Args:
        size: Room extent (x, y, z) in meters.
        resolution: Voxel edge length in meters.
        boxes: Floor-to-ceiling obstacles as (x_min, y_min, x_max, y_max).

    Returns:
        OccupancyMap of the room.

    Example:
        >>> room = make_box_room((4.0, 3.0, 2.0), resolution=0.2, boxes=None)
        >>> room.shape
        (20, 15, 10)
    """
    shape = tuple(int(round(s / resolution)) for s in size)
    grid = np.zeros(shape, dtype=bool)
    grid[0, :, :] = grid[-1, :, :] = True
    grid[:, 0, :] = grid[:, -1, :] = True
    grid[:, :, 0] = grid[:, :, -1] = True

    for x0, y0, x1, y1 in boxes or ():
        i0, j0 = int(np.floor(x0 / resolution)), int(np.floor(y0 / resolution))
        i1, j1 = int(np.ceil(x1 / resolution)), int(np.ceil(y1 / resolution))
        grid[max(i0, 0):i1, max(j0, 0):j1, :] = True

    return OccupancyMap(grid, resolution, origin=np.zeros(3))


def simulate_scan(
    occupancy_map: OccupancyMap,
    sensor_pose: np.ndarray,
    stamp: float = 0.0,
    frame_id: str = "laser",
    num_beams: int = 360,
    max_range: float = 14.0,
    range_min: float = 0.05,
    noise_std: float = 0.0,
    rng: Optional[np.random.Generator] = None,
) -> LaserScan:
    """Simulate a planar 360° laser scan by ray-casting into the map.

    Beams are evenly spaced over [-π, π) in the sensor's x-y plane.

    Args:
        occupancy_map: World the scanner sees.
        sensor_pose: Sensor pose [x, y, z, roll, pitch, yaw] in the map frame.
        stamp: Scan timestamp.
        frame_id: Sensor frame name.
        num_beams: Number of beams.
        max_range: Sensor maximum range; beams without a hit report +inf.
        range_min: Sensor minimum range.
        noise_std: Std-dev of additive Gaussian range noise (meters).
        rng: Random generator for the noise.

    Returns:
        LaserScan in the sensor frame.
    """
    rng = np.random.default_rng() if rng is None else rng
    sensor_pose = np.asarray(sensor_pose, dtype=np.float64)

    angle_increment = 2.0 * np.pi / num_beams
    angles = -np.pi + angle_increment * np.arange(num_beams)
    local_dirs = np.column_stack([np.cos(angles), np.sin(angles), np.zeros(num_beams)])
    R = euler_to_rotation_matrix(*sensor_pose[3:])
    directions = local_dirs @ R.T
    origins = np.tile(sensor_pose[:3], (num_beams, 1))

    ranges = occupancy_map.raycast(origins, directions, max_range)
    no_return = ranges >= max_range
    if noise_std > 0:
        ranges = ranges + rng.normal(0.0, noise_std, size=num_beams)
    ranges[no_return] = np.inf

    return LaserScan(
        stamp=stamp,
        frame_id=frame_id,
        angle_min=-np.pi,
        angle_increment=angle_increment,
        ranges=ranges,
        range_min=range_min,
        range_max=max_range,
    )


class SimulatedVehicle:
    """Vehicle carrying an odometry source and a laser scanner.

    The vehicle publishes, into a transform buffer:

        - odom → base at every step (its odometry pose, which differs from
          the true map pose by a fixed map→odom offset),
        - base → base_link and base_link → sensor once, as static transforms.

    Args:
        occupancy_map: World the scanner sees.
        transform_buffer: Buffer receiving the vehicle's transforms.
        frames: Frame names of the localization tree.
        sensor_frame: Name of the laser frame.
        base_to_sensor: Sensor pose in the base frame (6,).
        map_to_odom: True map→odom offset (6,); unknown to the localizer.
        num_beams: Beams per scan.
        range_noise_std: Std-dev of range noise (meters).
        rng: Random generator.
    """

    def __init__(
        self,
        occupancy_map: OccupancyMap,
        transform_buffer,
        frames: FrameIds = FrameIds(),
        sensor_frame: str = "laser",
        base_to_sensor: Optional[np.ndarray] = None,
        map_to_odom: Optional[np.ndarray] = None,
        num_beams: int = 360,
        range_noise_std: float = 0.01,
        rng: Optional[np.random.Generator] = None,
    ):
        self.map = occupancy_map
        self.transform_buffer = transform_buffer
        self.frames = frames
        self.sensor_frame = sensor_frame
        self.base_to_sensor = (
            np.array([0.0, 0.0, 0.1, 0.0, 0.0, 0.0])
            if base_to_sensor is None
            else np.asarray(base_to_sensor, dtype=np.float64)
        )
        self.map_to_odom = np.zeros(6) if map_to_odom is None else np.asarray(map_to_odom, dtype=np.float64)
        self.num_beams = num_beams
        self.range_noise_std = range_noise_std
        self.rng = np.random.default_rng() if rng is None else rng

        transform_buffer.set_transform(
            StampedTransform(frames.base, frames.base_link, 0.0, np.zeros(6)), static=True
        )
        transform_buffer.set_transform(
            StampedTransform(frames.base_link, sensor_frame, 0.0, self.base_to_sensor), static=True
        )

    def odom_pose(self, true_pose: np.ndarray) -> np.ndarray:
        """Odometry-frame pose corresponding to a true map-frame pose."""
        return se3_compose(se3_inverse(self.map_to_odom), true_pose)

    def publish_odometry(self, true_pose: np.ndarray, stamp: float) -> np.ndarray:
        """Publish odom → base for a true pose; returns the odometry pose."""
        odom_pose = self.odom_pose(true_pose)
        self.transform_buffer.set_transform(
            StampedTransform(self.frames.odom, self.frames.base, stamp, odom_pose)
        )
        return odom_pose

    def step(self, true_pose: np.ndarray, stamp: float) -> LaserScan:
        """Publish odometry at stamp and return the scan seen from true_pose."""
        true_pose = np.asarray(true_pose, dtype=np.float64)
        self.publish_odometry(true_pose, stamp)
        return simulate_scan(
            self.map,
            se3_compose(true_pose, self.base_to_sensor),
            stamp=stamp,
            frame_id=self.sensor_frame,
            num_beams=self.num_beams,
            noise_std=self.range_noise_std,
            rng=self.rng,
        )
