"""Particle-filter localization for aerial vehicles in known 3-D maps.

This package contains the components of a Monte Carlo localization node:
- coords: Rotation representations and SE(3) frame algebra
- estimators: Weighted particle population, resampling, state distributions
- models: Odometry motion model and range-sensor observation models
- sensors: Laser scan types and preprocessing
- mapping: 3-D occupancy map and map loader
- localization: Engine state machine, transform estimator, event-driven node
- sim, eval: Scan simulation, metrics and plots for demos and tests
"""

__version__ = "0.1.0"
