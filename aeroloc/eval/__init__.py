"""
Evaluation and visualization.

Modules:
    metrics: Pose error metrics
    plots: Particle cloud and tracking error figures
"""

from .metrics import compute_error_stats, compute_pose_errors
from .plots import plot_particle_cloud, plot_tracking_errors, save_figure

__all__ = [
    # Metrics
    "compute_pose_errors",
    "compute_error_stats",
    # Plots
    "plot_particle_cloud",
    "plot_tracking_errors",
    "save_figure",
]
