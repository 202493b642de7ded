"""3-D occupancy grid map.

The map is a dense boolean voxel grid with a fixed resolution and the world
coordinates of its minimum corner. It answers the queries the localizer
needs from a map provider:

- point occupancy and free-space checks (vectorized)
- enumeration of free voxels, for uniform global initialization
- distance to the nearest occupied voxel, for the likelihood-field model
- ray casting, for the beam model and for scan simulation

The distance field is computed once, lazily, with
scipy.ndimage.distance_transform_edt.
"""

from typing import Optional, Tuple

import numpy as np
from scipy import ndimage


class OccupancyMap:
    """
    Dense 3-D occupancy grid.

    Attributes:
        occupied: Boolean array of shape (nx, ny, nz), True for occupied voxels.
        resolution: Voxel edge length in meters.
        origin: World coordinates [x, y, z] of the grid's minimum corner.

    Example:
        >>> grid = np.zeros((10, 10, 5), dtype=bool)
        >>> grid[0, :, :] = True  # a wall at x = 0
        >>> m = OccupancyMap(grid, resolution=0.5)
        >>> m.is_occupied(np.array([[0.1, 2.0, 1.0]]))
        array([ True])
    """

    def __init__(
        self,
        occupied: np.ndarray,
        resolution: float,
        origin: Optional[np.ndarray] = None,
    ):
        occupied = np.asarray(occupied).astype(bool)
        if occupied.ndim != 3:
            raise ValueError(f"occupied must be a 3-D array, got shape {occupied.shape}")
        if min(occupied.shape) < 1:
            raise ValueError(f"occupied must be non-empty, got shape {occupied.shape}")
        if not resolution > 0:
            raise ValueError(f"resolution must be positive, got {resolution}")

        self.occupied = occupied
        self.resolution = float(resolution)
        self.origin = (
            np.zeros(3) if origin is None else np.asarray(origin, dtype=np.float64).reshape(3)
        )
        self._distance_field: Optional[np.ndarray] = None
        self._free_cells: Optional[np.ndarray] = None

    @classmethod
    def from_points(
        cls,
        points: np.ndarray,
        resolution: float,
        padding: float = 0.0,
    ) -> "OccupancyMap":
        """
        Build a map whose occupied voxels are those containing the given points.

        Args:
            points: Occupied points in world coordinates, shape (M, 3).
            resolution: Voxel edge length in meters.
            padding: Free margin added around the points' bounding box (meters).
        """
        points = np.asarray(points, dtype=np.float64)
        if points.ndim != 2 or points.shape[1] != 3 or len(points) == 0:
            raise ValueError(f"points must have shape (M, 3) with M > 0, got {points.shape}")

        lo = points.min(axis=0) - padding
        hi = points.max(axis=0) + padding
        shape = np.floor((hi - lo) / resolution).astype(int) + 1

        grid = np.zeros(tuple(shape), dtype=bool)
        idx = np.floor((points - lo) / resolution).astype(int)
        idx = np.minimum(idx, shape - 1)
        grid[idx[:, 0], idx[:, 1], idx[:, 2]] = True
        return cls(grid, resolution, origin=lo)

    @property
    def shape(self) -> Tuple[int, int, int]:
        return self.occupied.shape

    @property
    def bounds(self) -> Tuple[np.ndarray, np.ndarray]:
        """World-coordinate (min, max) corners of the mapped volume."""
        return self.origin.copy(), self.origin + np.array(self.shape) * self.resolution

    def world_to_index(self, points: np.ndarray) -> np.ndarray:
        """Voxel indices (M, 3) of world points (M, 3); may lie outside the grid."""
        points = np.atleast_2d(np.asarray(points, dtype=np.float64))
        return np.floor((points - self.origin) / self.resolution).astype(int)

    def index_to_world(self, indices: np.ndarray) -> np.ndarray:
        """World coordinates of voxel centers for indices (M, 3)."""
        indices = np.atleast_2d(np.asarray(indices))
        return self.origin + (indices + 0.5) * self.resolution

    def _valid_index(self, idx: np.ndarray) -> np.ndarray:
        return np.all((idx >= 0) & (idx < np.array(self.shape)), axis=1)

    def in_bounds(self, points: np.ndarray) -> np.ndarray:
        """Boolean mask of points inside the mapped volume."""
        return self._valid_index(self.world_to_index(points))

    def is_occupied(self, points: np.ndarray) -> np.ndarray:
        """Boolean mask of points falling in occupied voxels (False outside the map)."""
        idx = self.world_to_index(points)
        valid = self._valid_index(idx)
        result = np.zeros(len(idx), dtype=bool)
        v = idx[valid]
        result[valid] = self.occupied[v[:, 0], v[:, 1], v[:, 2]]
        return result

    def is_free(self, points: np.ndarray) -> np.ndarray:
        """Boolean mask of points inside the map and not occupied."""
        return self.in_bounds(points) & ~self.is_occupied(points)

    def free_cells(self) -> np.ndarray:
        """Indices (K, 3) of all free voxels."""
        if self._free_cells is None:
            self._free_cells = np.argwhere(~self.occupied)
        return self._free_cells

    def distance_field(self) -> np.ndarray:
        """Distance in meters from every voxel center to the nearest occupied voxel."""
        if self._distance_field is None:
            if not self.occupied.any():
                self._distance_field = np.full(self.shape, np.inf)
            else:
                self._distance_field = ndimage.distance_transform_edt(
                    ~self.occupied, sampling=self.resolution
                )
        return self._distance_field

    def distance_to_obstacle(
        self,
        points: np.ndarray,
        max_distance: float,
    ) -> np.ndarray:
        """
        Distance from each point to the nearest occupied voxel, clipped.

        Points outside the map are reported at max_distance.

        Args:
            points: World points of shape (M, 3).
            max_distance: Upper bound on the reported distance (meters).

        Returns:
            Distances of shape (M,).
        """
        idx = self.world_to_index(points)
        valid = self._valid_index(idx)
        result = np.full(len(idx), float(max_distance))
        v = idx[valid]
        field = self.distance_field()
        result[valid] = np.minimum(field[v[:, 0], v[:, 1], v[:, 2]], max_distance)
        return result

    def raycast(
        self,
        origins: np.ndarray,
        directions: np.ndarray,
        max_range: float,
        batch_size: int = 4096,
    ) -> np.ndarray:
        """
        Range to the first occupied voxel along each ray.

        Rays are marched at half the map resolution. Rays that leave the map
        or reach max_range without a hit return max_range.

        Args:
            origins: Ray origins, shape (M, 3).
            directions: Unit ray directions, shape (M, 3).
            max_range: Maximum range in meters.
            batch_size: Rays processed per vectorized batch.

        Returns:
            Ranges of shape (M,).
        """
        origins = np.atleast_2d(np.asarray(origins, dtype=np.float64))
        directions = np.atleast_2d(np.asarray(directions, dtype=np.float64))
        if origins.shape != directions.shape or origins.shape[1] != 3:
            raise ValueError(
                f"origins and directions must both have shape (M, 3), "
                f"got {origins.shape} and {directions.shape}"
            )

        step = 0.5 * self.resolution
        t = np.arange(step, max_range + step, step)
        ranges = np.full(len(origins), float(max_range))
        shape = np.array(self.shape)

        for start in range(0, len(origins), batch_size):
            o = origins[start:start + batch_size]
            d = directions[start:start + batch_size]
            samples = o[:, np.newaxis, :] + t[np.newaxis, :, np.newaxis] * d[:, np.newaxis, :]
            idx = np.floor((samples - self.origin) / self.resolution).astype(int)
            inside = np.all((idx >= 0) & (idx < shape), axis=2)
            np.clip(idx, 0, shape - 1, out=idx)
            hit = inside & self.occupied[idx[..., 0], idx[..., 1], idx[..., 2]]
            any_hit = hit.any(axis=1)
            first = np.argmax(hit, axis=1)
            ranges[start:start + batch_size][any_hit] = np.minimum(t[first[any_hit]], max_range)

        return ranges

    def __repr__(self) -> str:
        lo, hi = self.bounds
        return (
            f"OccupancyMap(shape={self.shape}, resolution={self.resolution}, "
            f"bounds={lo.round(3).tolist()}..{hi.round(3).tolist()})"
        )
