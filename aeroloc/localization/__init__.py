"""
Map-based localization.

- LocalizationEngine: particle filter driven by laser scans and odometry
- LocalizationNode: single-writer event loop around the engine
- TransformEstimator: map→odom correction publishing
- LocalizationConfig / load_config: immutable run parameters
"""

from aeroloc.localization.config import LocalizationConfig, load_config
from aeroloc.localization.engine import LocalizationEngine
from aeroloc.localization.node import LocalizationNode
from aeroloc.localization.publishing import PosePublisher, RecordingPublisher, build_pose_array
from aeroloc.localization.transform_estimator import TransformEstimator
from aeroloc.localization.types import (
    EngineState,
    PoseArraySnapshot,
    PoseEstimate,
    ScanOutcome,
)

__all__ = [
    # Configuration
    "LocalizationConfig",
    "load_config",
    # Engine
    "LocalizationEngine",
    "LocalizationNode",
    "TransformEstimator",
    "EngineState",
    "ScanOutcome",
    # Outputs
    "PoseEstimate",
    "PoseArraySnapshot",
    "PosePublisher",
    "RecordingPublisher",
    "build_pose_array",
]
