"""
Visualization utilities for particle-filter localization.

All functions return matplotlib Figure objects for flexible display/saving.
"""

from pathlib import Path
from typing import List, Optional, Tuple, Union

import matplotlib.pyplot as plt
import numpy as np

from aeroloc.localization.types import PoseArraySnapshot
from aeroloc.mapping.occupancy import OccupancyMap


def plot_particle_cloud(
    snapshot: PoseArraySnapshot,
    occupancy_map: Optional[OccupancyMap] = None,
    truth: Optional[np.ndarray] = None,
    estimate: Optional[np.ndarray] = None,
    slice_z: Optional[float] = None,
    title: str = "Particle Cloud",
) -> plt.Figure:
    """
    Plot particle positions (top view) over a horizontal slice of the map.

    Args:
        snapshot: Population snapshot to draw
        occupancy_map: Map drawn underneath (optional)
        truth: True pose (6,) (optional)
        estimate: Estimated pose (6,) (optional)
        slice_z: Height of the map slice (defaults to the truth or estimate height)
        title: Plot title

    Returns:
        fig: Matplotlib figure
    """
    fig, ax = plt.subplots(figsize=(10, 8))

    if occupancy_map is not None:
        lo, hi = occupancy_map.bounds
        if slice_z is None:
            ref = truth if truth is not None else estimate
            slice_z = float(ref[2]) if ref is not None else 0.5 * (lo[2] + hi[2])
        k = int(np.clip(
            np.floor((slice_z - occupancy_map.origin[2]) / occupancy_map.resolution),
            0,
            occupancy_map.shape[2] - 1,
        ))
        ax.imshow(
            occupancy_map.occupied[:, :, k].T,
            origin="lower",
            extent=(lo[0], hi[0], lo[1], hi[1]),
            cmap="Greys",
            alpha=0.6,
        )

    sizes = 5.0 + 200.0 * snapshot.weights / max(float(snapshot.weights.max()), 1e-12)
    ax.scatter(
        snapshot.positions[:, 0],
        snapshot.positions[:, 1],
        s=sizes,
        c="tab:blue",
        alpha=0.4,
        label=f"Particles (N={len(snapshot)})",
    )

    if truth is not None:
        ax.plot(truth[0], truth[1], "g*", markersize=15, label="Ground Truth", zorder=10)
    if estimate is not None:
        ax.plot(estimate[0], estimate[1], "rx", markersize=12, mew=2, label="Estimate", zorder=11)
        ax.arrow(
            estimate[0],
            estimate[1],
            0.5 * np.cos(estimate[5]),
            0.5 * np.sin(estimate[5]),
            color="red",
            width=0.02,
            zorder=11,
        )

    ax.set_xlabel("x (m)", fontsize=11)
    ax.set_ylabel("y (m)", fontsize=11)
    ax.set_title(title, fontsize=12, fontweight="bold")
    ax.legend(fontsize=9)
    ax.grid(True, alpha=0.3)
    ax.set_aspect("equal")

    plt.tight_layout()
    return fig


def plot_tracking_errors(
    times: np.ndarray,
    translation_errors: np.ndarray,
    yaw_errors: np.ndarray,
    title: str = "Tracking Error vs Time",
) -> plt.Figure:
    """
    Plot translation and yaw errors over time.

    Args:
        times: Timestamps (N,) in seconds
        translation_errors: Position errors (N,) in meters
        yaw_errors: Yaw errors (N,) in radians
        title: Plot title

    Returns:
        fig: Matplotlib figure
    """
    fig, (ax_t, ax_r) = plt.subplots(2, 1, figsize=(12, 8), sharex=True)

    ax_t.plot(times, translation_errors, color="blue", linewidth=1.5)
    ax_t.set_ylabel("Position Error (m)", fontsize=11)
    ax_t.grid(True, alpha=0.3)

    ax_r.plot(times, np.degrees(yaw_errors), color="red", linewidth=1.5)
    ax_r.set_xlabel("Time (s)", fontsize=11)
    ax_r.set_ylabel("Yaw Error (deg)", fontsize=11)
    ax_r.grid(True, alpha=0.3)

    fig.suptitle(title, fontsize=14, fontweight="bold")
    plt.tight_layout()
    return fig


def save_figure(
    fig: plt.Figure,
    out_dir: Union[str, Path],
    name: str,
    formats: Tuple[str, ...] = ("png",),
) -> List[Path]:
    """
    Save figure in one or more formats.

    Returns:
        paths: List of saved file paths
    """
    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)

    paths = []
    for fmt in formats:
        filepath = out_dir / f"{name}.{fmt}"
        fig.savefig(filepath, dpi=150, bbox_inches="tight")
        paths.append(filepath)

    return paths
