"""
State distributions used to (re)initialize a particle population.

A distribution is only a sampler: the particle set draws from it once per
initialization event and does not keep it afterwards.

    - GaussianStateDistribution: around a known pose, per-axis std-devs
    - UniformStateDistribution: uniform over the free space of a map, for
      global localization
"""

from abc import ABC, abstractmethod
from typing import Optional, Tuple

import numpy as np

from aeroloc.coords.transforms import wrap_angle
from aeroloc.errors import InvalidDistribution
from aeroloc.mapping.occupancy import OccupancyMap


class StateDistribution(ABC):
    """Abstract sampler of 6-DOF particle states."""

    @abstractmethod
    def sample(self, n: int, rng: np.random.Generator) -> np.ndarray:
        """
        Draw n independent states.

        Returns:
            Array of shape (n, 6).

        Raises:
            InvalidDistribution: If valid samples cannot be produced.
        """


class GaussianStateDistribution(StateDistribution):
    """
    Independent normal distribution on each pose axis.

    Args:
        mean: Mean pose [x, y, z, roll, pitch, yaw].
        std_devs: Per-axis standard deviations (6,), non-negative.

    Example:
        >>> dist = GaussianStateDistribution(np.zeros(6), np.full(6, 0.2))
        >>> dist.sample(100, np.random.default_rng(0)).shape
        (100, 6)
    """

    def __init__(self, mean: np.ndarray, std_devs: np.ndarray):
        self.mean = np.asarray(mean, dtype=np.float64).reshape(6)
        self.std_devs = np.asarray(std_devs, dtype=np.float64).reshape(6)
        if not np.all(np.isfinite(self.mean)):
            raise InvalidDistribution(f"Mean pose must be finite, got {self.mean}")
        if np.any(self.std_devs < 0) or not np.all(np.isfinite(self.std_devs)):
            raise InvalidDistribution(
                f"Standard deviations must be finite and non-negative, got {self.std_devs}"
            )

    def sample(self, n: int, rng: np.random.Generator) -> np.ndarray:
        samples = rng.normal(self.mean, self.std_devs, size=(n, 6))
        samples[:, 3:] = wrap_angle(samples[:, 3:])
        return samples


class UniformStateDistribution(StateDistribution):
    """
    Uniform distribution over the free voxels of an occupancy map.

    Positions are drawn uniformly inside randomly chosen free voxels and yaw
    uniformly in [-π, π). Roll and pitch are drawn uniformly in
    [-max_tilt, max_tilt] (zero by default: a hovering vehicle).

    A sample is valid when its voxel is free and its distance to the nearest
    obstacle is at least min_clearance. Invalid draws are retried for at
    most max_attempts rounds.

    Args:
        occupancy_map: Map whose free space is sampled.
        z_range: Optional (z_min, z_max) restriction on the sampled height.
        min_clearance: Required distance to the nearest obstacle (meters).
        max_tilt: Bound on |roll| and |pitch| (radians).
        max_attempts: Maximum number of sampling rounds.
    """

    def __init__(
        self,
        occupancy_map: OccupancyMap,
        z_range: Optional[Tuple[float, float]] = None,
        min_clearance: float = 0.0,
        max_tilt: float = 0.0,
        max_attempts: int = 100,
    ):
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")
        self.map = occupancy_map
        self.z_range = z_range
        self.min_clearance = float(min_clearance)
        self.max_tilt = float(max_tilt)
        self.max_attempts = max_attempts

    def _candidate_cells(self) -> np.ndarray:
        cells = self.map.free_cells()
        if self.z_range is not None and len(cells):
            z = self.map.index_to_world(cells)[:, 2]
            cells = cells[(z >= self.z_range[0]) & (z <= self.z_range[1])]
        return cells

    def _is_valid(self, positions: np.ndarray) -> np.ndarray:
        valid = self.map.is_free(positions)
        if self.min_clearance > 0.0:
            clearance = self.map.distance_to_obstacle(positions, self.min_clearance)
            valid &= clearance >= self.min_clearance
        return valid

    def sample(self, n: int, rng: np.random.Generator) -> np.ndarray:
        cells = self._candidate_cells()
        if len(cells) == 0:
            raise InvalidDistribution("Occupancy map has no free cells to sample from")

        positions = np.empty((0, 3))
        for _ in range(self.max_attempts):
            needed = n - len(positions)
            if needed <= 0:
                break
            chosen = cells[rng.integers(0, len(cells), size=needed)]
            offsets = rng.uniform(0.0, 1.0, size=(needed, 3))
            candidates = self.map.origin + (chosen + offsets) * self.map.resolution
            positions = np.vstack([positions, candidates[self._is_valid(candidates)]])

        if len(positions) < n:
            raise InvalidDistribution(
                f"Found only {len(positions)} of {n} valid samples "
                f"after {self.max_attempts} attempts"
            )

        samples = np.empty((n, 6))
        samples[:, :3] = positions[:n]
        samples[:, 3:5] = rng.uniform(-self.max_tilt, self.max_tilt, size=(n, 2))
        samples[:, 5] = rng.uniform(-np.pi, np.pi, size=n)
        return samples
