"""
Motion and observation models for the particle filter.

- OdometryMotionModel: odometry delta plus per-axis Gaussian drift
- EndpointObservationModel: likelihood field on beam endpoints
- RaycastObservationModel: beam model on ray-cast ranges
"""

from aeroloc.models.motion_models import OdometryMotionModel
from aeroloc.models.observation_models import (
    OBSERVATION_MODELS,
    EndpointObservationModel,
    ObservationModel,
    RaycastObservationModel,
    create_observation_model,
)

__all__ = [
    "OdometryMotionModel",
    "ObservationModel",
    "EndpointObservationModel",
    "RaycastObservationModel",
    "OBSERVATION_MODELS",
    "create_observation_model",
]
