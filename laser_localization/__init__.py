"""Laser localization examples.

Examples:
    - example_localization.py: Simulated flight through a box room, tracked
      by the particle-filter localizer from a known or a global start.

Key Concepts Demonstrated:
    - Odometry-driven prediction with scan-based reweighting
    - Motion-threshold gating between full updates and drift
    - map→odom correction from the best particle
    - Visualization: particle cloud and tracking errors

Dependencies:
    - aeroloc.localization: Engine, configuration, publishers
    - aeroloc.sim: Box room and simulated vehicle
    - matplotlib, tqdm, numpy
"""

__version__ = "0.1.0"

__all__ = []
