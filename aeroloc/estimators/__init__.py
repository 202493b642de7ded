"""
Sequential Monte Carlo estimation of the vehicle pose.

Available components:
    - ParticleSet: weighted population with reweighting and resampling
    - ParticleFilter: particle set bound to motion and observation models
    - Gaussian and uniform-over-free-space state distributions
"""

from aeroloc.estimators.distributions import (
    GaussianStateDistribution,
    StateDistribution,
    UniformStateDistribution,
)
from aeroloc.estimators.particle_filter import (
    ParticleFilter,
    ParticleSet,
    ResamplingMode,
    effective_sample_size,
    systematic_resample,
)

__all__ = [
    # Distributions
    "StateDistribution",
    "GaussianStateDistribution",
    "UniformStateDistribution",
    # Particle filter
    "ParticleSet",
    "ParticleFilter",
    "ResamplingMode",
    "effective_sample_size",
    "systematic_resample",
]
