"""
Evaluation metrics for pose tracking.

This module compares estimated 6-DOF poses against ground truth and
summarizes the errors over a run.
"""

from typing import Dict, Tuple

import numpy as np

from aeroloc.coords.transforms import wrap_angle


def compute_pose_errors(
    truth: np.ndarray, estimated: np.ndarray
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Compute translation and yaw errors between true and estimated poses.

    Args:
        truth: True poses, shape (N, 6) or (6,)
        estimated: Estimated poses, same shape as truth

    Returns:
        Tuple of (translation_errors, yaw_errors):
            - translation_errors: Euclidean position errors (N,) in meters
            - yaw_errors: Absolute wrapped yaw errors (N,) in radians

    Raises:
        ValueError: If inputs have incompatible shapes
    """
    truth = np.atleast_2d(np.asarray(truth, dtype=np.float64))
    estimated = np.atleast_2d(np.asarray(estimated, dtype=np.float64))

    if truth.shape != estimated.shape or truth.shape[1] != 6:
        raise ValueError(
            f"Shape mismatch: truth {truth.shape} vs estimated {estimated.shape}"
        )

    translation = np.linalg.norm(estimated[:, :3] - truth[:, :3], axis=1)
    yaw = np.abs(wrap_angle(estimated[:, 5] - truth[:, 5]))
    return translation, yaw


def compute_error_stats(errors: np.ndarray) -> Dict[str, float]:
    """
    Compute error statistics of scalar errors.

    Args:
        errors: Error magnitudes, shape (N,)

    Returns:
        stats: Dictionary with keys 'mean', 'median', 'rmse', 'p95', 'max'
    """
    errors = np.abs(np.asarray(errors, dtype=np.float64))
    if errors.size == 0:
        raise ValueError("errors must not be empty")

    return {
        "mean": float(np.mean(errors)),
        "median": float(np.median(errors)),
        "rmse": float(np.sqrt(np.mean(errors**2))),
        "p95": float(np.percentile(errors, 95)),
        "max": float(np.max(errors)),
    }
