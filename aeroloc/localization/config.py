"""Localization configuration.

All process-wide parameters (frame names, thresholds, noise levels) are
loaded once into an immutable LocalizationConfig, which is passed
explicitly to every component at construction.

Configurations can be written as JSON:

    {
        "num_particles": 300,
        "frames": {"map": "map", "odom": "odom"},
        "threshold_translation": 0.3,
        "initial_pose": [1.0, 2.0, 1.5, 0.0, 0.0, 0.0]
    }
"""

import json
import warnings
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

from aeroloc.coords.frames import FrameIds
from aeroloc.models.observation_models import OBSERVATION_MODELS

COLLAPSE_POLICIES = ("retain", "reinitialize")


@dataclass(frozen=True)
class LocalizationConfig:
    """
    Parameters of the localization engine.

    Attributes:
        num_particles: Population size N (fixed for the whole run).
        frames: Names of the map, odometry, base and body frames.
        filter_min_range: Lower range bound applied to scans (meters).
        filter_max_range: Upper range bound applied to scans (meters).
        threshold_translation: Translation since the last fused scan that
            triggers a full update (meters).
        threshold_rotation: |yaw| change since the last fused scan that
            triggers a full update (radians).
        sample_distance: Scan downsampling radius (meters).
        transform_tolerance: Validity window of published corrections and
            period of their re-broadcast (seconds).
        init_std_devs: Per-axis std-devs of pose initializations.
        motion_noise_std: Per-axis motion noise, per sqrt(second).
        initial_pose: Pose used by configuration-based initialization.
        resample_threshold: Resample when N_eff < resample_threshold · N.
        observation_model: "endpoint" or "raycast".
        observation_sigma: Std-dev of the observation hit term (meters).
        z_hit: Weight of the observation hit term.
        z_rand: Weight of the observation random-return term.
        max_obstacle_distance: Clip distance of the likelihood field (meters).
        global_z_range: Optional height band for global initialization.
        global_min_clearance: Obstacle clearance for global samples (meters).
        max_sampling_attempts: Sampling rounds before initialization fails.
        lookup_timeout: Maximum wait of a transform lookup (seconds).
        snapshot_workers: Threads used to build the published pose array.
        collapse_policy: "retain" keeps the prior weights when every particle
            is rejected; "reinitialize" starts a global localization instead.
        publish_on_update: Publish estimates only after fused scans (True)
            or after every processed scan (False).
        seed: Random seed, None for a nondeterministic run.
    """

    num_particles: int = 500
    frames: FrameIds = field(default_factory=FrameIds)
    filter_min_range: float = 0.05
    filter_max_range: float = 14.0
    threshold_translation: float = 0.3
    threshold_rotation: float = 0.4
    sample_distance: float = 0.2
    transform_tolerance: float = 1.0
    init_std_devs: Tuple[float, ...] = (0.2, 0.2, 0.2, 0.2, 0.2, 0.2)
    motion_noise_std: Tuple[float, ...] = (0.2, 0.2, 0.2, 0.05, 0.05, 0.2)
    initial_pose: Tuple[float, ...] = (0.0, 0.0, 0.0, 0.0, 0.0, 0.0)
    resample_threshold: float = 0.5
    observation_model: str = "endpoint"
    observation_sigma: float = 0.2
    z_hit: float = 0.8
    z_rand: float = 0.2
    max_obstacle_distance: float = 2.0
    global_z_range: Optional[Tuple[float, float]] = None
    global_min_clearance: float = 0.0
    max_sampling_attempts: int = 100
    lookup_timeout: float = 0.1
    snapshot_workers: int = 1
    collapse_policy: str = "retain"
    publish_on_update: bool = True
    seed: Optional[int] = None

    def __post_init__(self) -> None:
        """Validate parameter ranges."""
        if self.num_particles < 1:
            raise ValueError(f"num_particles must be >= 1, got {self.num_particles}")
        if self.filter_min_range < 0:
            raise ValueError(f"filter_min_range must be non-negative, got {self.filter_min_range}")
        if self.filter_max_range <= self.filter_min_range:
            raise ValueError(
                f"filter_max_range ({self.filter_max_range}) must exceed "
                f"filter_min_range ({self.filter_min_range})"
            )
        if self.threshold_translation < 0 or self.threshold_rotation < 0:
            raise ValueError("Motion thresholds must be non-negative")
        if self.transform_tolerance <= 0:
            raise ValueError(
                f"transform_tolerance must be positive, got {self.transform_tolerance}"
            )
        for name in ("init_std_devs", "motion_noise_std", "initial_pose"):
            value = getattr(self, name)
            if len(value) != 6:
                raise ValueError(f"{name} must have 6 entries, got {len(value)}")
        if any(s < 0 for s in self.init_std_devs) or any(s < 0 for s in self.motion_noise_std):
            raise ValueError("Standard deviations must be non-negative")
        if not 0.0 < self.resample_threshold <= 1.0:
            raise ValueError(
                f"resample_threshold must be in (0, 1], got {self.resample_threshold}"
            )
        if self.observation_model not in OBSERVATION_MODELS:
            raise ValueError(
                f"observation_model must be one of {sorted(OBSERVATION_MODELS)}, "
                f"got '{self.observation_model}'"
            )
        if self.collapse_policy not in COLLAPSE_POLICIES:
            raise ValueError(
                f"collapse_policy must be one of {COLLAPSE_POLICIES}, got '{self.collapse_policy}'"
            )
        if self.max_sampling_attempts < 1:
            raise ValueError(
                f"max_sampling_attempts must be >= 1, got {self.max_sampling_attempts}"
            )
        if self.snapshot_workers < 1:
            raise ValueError(f"snapshot_workers must be >= 1, got {self.snapshot_workers}")
        if self.lookup_timeout < 0:
            raise ValueError(f"lookup_timeout must be non-negative, got {self.lookup_timeout}")

        if self.sample_distance <= 0:
            warnings.warn(
                "sample_distance <= 0 disables scan downsampling; "
                "per-scan cost will grow with the sensor's beam count",
                UserWarning,
            )
        if self.threshold_translation == 0 and self.threshold_rotation == 0:
            warnings.warn(
                "Both motion thresholds are 0: every scan will be fused",
                UserWarning,
            )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LocalizationConfig":
        """
        Build a configuration from a plain dictionary.

        Lists become tuples and a "frames" mapping becomes FrameIds; keys
        that are not configuration fields raise ValueError.
        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown configuration keys: {unknown}")

        kwargs: Dict[str, Any] = {}
        for key, value in data.items():
            if key == "frames":
                value = FrameIds(**value) if isinstance(value, dict) else FrameIds(*value)
            elif isinstance(value, list):
                value = tuple(value)
            kwargs[key] = value
        return cls(**kwargs)

    def to_dict(self) -> Dict[str, Any]:
        """Plain-dictionary (JSON-compatible) form of the configuration."""
        out: Dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, FrameIds):
                value = value._asdict()
            elif isinstance(value, tuple):
                value = list(value)
            out[f.name] = value
        return out


def load_config(path: Union[str, Path]) -> LocalizationConfig:
    """
    Load a LocalizationConfig from a JSON file.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the file is not valid JSON or holds invalid values.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")
    with open(path, "r") as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in {path}: {e}") from e
    if not isinstance(data, dict):
        raise ValueError(f"Configuration in {path} must be a JSON object")
    return LocalizationConfig.from_dict(data)
