"""
Range-sensor observation models.

Both models score particle states against the occupancy map using the
processed returns of one scan. Per-point scores follow a mixture of a
Gaussian "hit" term and a uniform "random return" term,

    p(z_j | x) = z_hit · N(e_j; 0, σ²) + z_rand / max_range

and are combined by summing their logarithms, which avoids the underflow
of multiplying many small per-point likelihoods.

    - EndpointObservationModel: e_j is the distance from the projected
      endpoint to the nearest obstacle (likelihood field).
    - RaycastObservationModel: e_j is the difference between the measured
      range and the range ray-cast through the map from the particle.
"""

from abc import ABC, abstractmethod
from typing import Optional, Tuple

import numpy as np

from aeroloc.coords.rotations import euler_to_rotation_matrix, euler_to_rotation_matrix_batch
from aeroloc.mapping.occupancy import OccupancyMap
from aeroloc.sensors.types import ProcessedObservation


class ObservationModel(ABC):
    """
    Base class for observation models.

    Args:
        occupancy_map: Map the returns are scored against.
        sigma: Standard deviation of the hit term (meters).
        z_hit: Weight of the hit term.
        z_rand: Weight of the random-return term; 0 disables it.
        max_range: Sensor range used to normalize the random-return term.
    """

    def __init__(
        self,
        occupancy_map: OccupancyMap,
        sigma: float = 0.2,
        z_hit: float = 0.8,
        z_rand: float = 0.2,
        max_range: float = 14.0,
    ):
        if sigma <= 0:
            raise ValueError(f"sigma must be positive, got {sigma}")
        if z_hit < 0 or z_rand < 0 or z_hit + z_rand <= 0:
            raise ValueError(f"Invalid mixture weights z_hit={z_hit}, z_rand={z_rand}")
        if max_range <= 0:
            raise ValueError(f"max_range must be positive, got {max_range}")

        self.map = occupancy_map
        self.sigma = sigma
        self.z_hit = z_hit
        self.z_rand = z_rand
        self.max_range = max_range

        self.base_to_sensor = np.zeros(6)
        self.observation: Optional[ProcessedObservation] = None

    def set_base_to_sensor_transform(self, pose: np.ndarray) -> None:
        """Set the sensor's pose in the vehicle base frame (6,)."""
        pose = np.asarray(pose, dtype=np.float64)
        if pose.shape != (6,):
            raise ValueError(f"pose must have shape (6,), got {pose.shape}")
        self.base_to_sensor = pose.copy()

    def set_observed_measurements(self, observation: ProcessedObservation) -> None:
        """Set the returns scored by the next log_likelihood call."""
        self.observation = observation

    def sensor_frames(self, states: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """
        Sensor pose in the map frame for every particle: particle ⊕ base_to_sensor.

        Returns:
            Tuple of (rotations (N, 3, 3), origins (N, 3)).
        """
        R_base = euler_to_rotation_matrix_batch(states[:, 3:])
        b = self.base_to_sensor
        R_sensor = euler_to_rotation_matrix(b[3], b[4], b[5])
        origins = states[:, :3] + R_base @ b[:3]
        return R_base @ R_sensor, origins

    def points_in_map(self, states: np.ndarray) -> np.ndarray:
        """Observed points projected into the map frame per particle, shape (N, M, 3)."""
        R, t = self.sensor_frames(states)
        pts = self.observation.points
        return np.einsum("nij,mj->nmi", R, pts) + t[:, np.newaxis, :]

    def _mixture_log(self, error: np.ndarray) -> np.ndarray:
        hit = self.z_hit * np.exp(-0.5 * (error / self.sigma) ** 2) / (
            self.sigma * np.sqrt(2.0 * np.pi)
        )
        with np.errstate(divide="ignore"):
            return np.log(hit + self.z_rand / self.max_range)

    def log_likelihood(self, states: np.ndarray) -> np.ndarray:
        """
        Log-likelihood of the current observation for each state.

        Args:
            states: Particle states (N, 6).

        Returns:
            Array of shape (N,). Zeros if the observation has no points.

        Raises:
            RuntimeError: If no observation has been set.
        """
        if self.observation is None:
            raise RuntimeError("No observation set. Call set_observed_measurements() first.")
        states = np.atleast_2d(np.asarray(states, dtype=np.float64))
        if len(self.observation) == 0:
            return np.zeros(len(states))
        return np.sum(self._mixture_log(self._errors(states)), axis=1)

    def likelihood(self, states: np.ndarray) -> np.ndarray:
        """Likelihood of the current observation for each state (may underflow to 0)."""
        return np.exp(self.log_likelihood(states))

    @abstractmethod
    def _errors(self, states: np.ndarray) -> np.ndarray:
        """Per-point errors e_j for each state, shape (N, M)."""


class EndpointObservationModel(ObservationModel):
    """
    Likelihood-field model on beam endpoints.

    Each return is projected into the map from the particle's sensor pose;
    its error is the distance to the nearest occupied voxel, clipped at
    max_obstacle_distance (also used for endpoints outside the map).

    Example:
        >>> grid = np.zeros((20, 20, 10), dtype=bool); grid[15, :, :] = True
        >>> m = OccupancyMap(grid, resolution=0.2)
        >>> model = EndpointObservationModel(m, sigma=0.2)
        >>> model.set_observed_measurements(ProcessedObservation(
        ...     np.array([[1.0, 0.0, 0.0]]), np.array([1.0]), "laser", 0.0))
        >>> near, far = model.log_likelihood(np.array(
        ...     [[2.1, 2.0, 1.0, 0, 0, 0], [0.5, 2.0, 1.0, 0, 0, 0]]))
        >>> bool(near > far)
        True
    """

    def __init__(
        self,
        occupancy_map: OccupancyMap,
        sigma: float = 0.2,
        z_hit: float = 0.8,
        z_rand: float = 0.2,
        max_range: float = 14.0,
        max_obstacle_distance: float = 2.0,
    ):
        super().__init__(occupancy_map, sigma, z_hit, z_rand, max_range)
        if max_obstacle_distance <= 0:
            raise ValueError(
                f"max_obstacle_distance must be positive, got {max_obstacle_distance}"
            )
        self.max_obstacle_distance = max_obstacle_distance

    def _errors(self, states: np.ndarray) -> np.ndarray:
        points = self.points_in_map(states)
        n, m, _ = points.shape
        d = self.map.distance_to_obstacle(points.reshape(-1, 3), self.max_obstacle_distance)
        return d.reshape(n, m)


class RaycastObservationModel(ObservationModel):
    """
    Beam model: compares measured ranges with ranges ray-cast through the map.

    Rays start at the particle's sensor origin and follow each return's
    bearing. Costlier than the endpoint model (one ray march per particle
    and return) but sensitive to free space in front of obstacles.
    """

    def _errors(self, states: np.ndarray) -> np.ndarray:
        R, origins = self.sensor_frames(states)
        pts = self.observation.points
        norms = np.linalg.norm(pts, axis=1, keepdims=True)
        bearings = pts / np.where(norms > 0, norms, 1.0)

        n, m = len(states), len(pts)
        directions = np.einsum("nij,mj->nmi", R, bearings).reshape(-1, 3)
        ray_origins = np.repeat(origins, m, axis=0)
        expected = self.map.raycast(ray_origins, directions, self.max_range).reshape(n, m)
        return self.observation.ranges[np.newaxis, :] - expected


OBSERVATION_MODELS = {
    "endpoint": EndpointObservationModel,
    "raycast": RaycastObservationModel,
}


def create_observation_model(name: str, occupancy_map: OccupancyMap, **kwargs) -> ObservationModel:
    """
    Build an observation model by name ("endpoint" or "raycast").

    Keyword arguments not accepted by the chosen model are ignored.
    """
    try:
        cls = OBSERVATION_MODELS[name]
    except KeyError:
        raise ValueError(
            f"Unknown observation model '{name}', expected one of {sorted(OBSERVATION_MODELS)}"
        ) from None
    if cls is not EndpointObservationModel:
        kwargs.pop("max_obstacle_distance", None)
    return cls(occupancy_map, **kwargs)
