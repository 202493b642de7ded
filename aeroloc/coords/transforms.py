"""SE(3) operations on 6-DOF poses.

Poses are NumPy arrays [x, y, z, roll, pitch, yaw] of shape (6,), with
Euler angles in the ZYX convention. A pose doubles as the rigid transform
that maps points from the child frame into the parent frame.

Key functions:
    - se3_compose: p1 ⊕ p2
    - se3_inverse: p⁻¹
    - se3_relative: p1⁻¹ ⊕ p2 (motion from p1 to p2)
    - se3_apply: transform points by a pose
    - se3_compose_batch: compose a population of poses with one transform
    - se3_interpolate: interpolate between two poses
"""

import numpy as np

from .rotations import (
    euler_to_quat,
    euler_to_rotation_matrix,
    euler_to_rotation_matrix_batch,
    quat_slerp,
    quat_to_euler,
    rotation_matrix_to_euler,
    rotation_matrix_to_euler_batch,
)


def wrap_angle(theta):
    """
    Normalize an angle (or array of angles) to [-π, π].

    Uses atan2(sin θ, cos θ), which is stable for any real input.

    Examples:
        >>> float(wrap_angle(3 * np.pi))
        3.141592653589793
    """
    return np.arctan2(np.sin(theta), np.cos(theta))


def _as_pose(p: np.ndarray, name: str) -> np.ndarray:
    p = np.asarray(p, dtype=np.float64)
    if p.shape != (6,):
        raise ValueError(f"{name} must have shape (6,), got {p.shape}")
    return p


def se3_to_matrix(p: np.ndarray) -> np.ndarray:
    """
    Convert a pose to a 4x4 homogeneous transformation matrix.

    Args:
        p: Pose [x, y, z, roll, pitch, yaw].

    Returns:
        4x4 matrix T with T[:3, :3] = R and T[:3, 3] = t.
    """
    p = _as_pose(p, "p")
    T = np.eye(4)
    T[:3, :3] = euler_to_rotation_matrix(p[3], p[4], p[5])
    T[:3, 3] = p[:3]
    return T


def se3_from_matrix(T: np.ndarray) -> np.ndarray:
    """
    Convert a 4x4 homogeneous transformation matrix to a pose.

    Raises:
        ValueError: If T is not 4x4.
    """
    T = np.asarray(T, dtype=np.float64)
    if T.shape != (4, 4):
        raise ValueError(f"T must have shape (4, 4), got {T.shape}")
    return np.concatenate([T[:3, 3], rotation_matrix_to_euler(T[:3, :3])])


def se3_compose(p1: np.ndarray, p2: np.ndarray) -> np.ndarray:
    """
    Compose two poses: p1 ⊕ p2.

    If p1 is the pose of frame B in frame A and p2 the pose of frame C in
    frame B, the result is the pose of C in A.

    Examples:
        >>> p1 = np.array([0, 0, 0, 0, 0, np.pi / 2])
        >>> p2 = np.array([1, 0, 0, 0, 0, 0])
        >>> np.allclose(se3_compose(p1, p2), [0, 1, 0, 0, 0, np.pi / 2])
        True
    """
    p1 = _as_pose(p1, "p1")
    p2 = _as_pose(p2, "p2")
    return se3_from_matrix(se3_to_matrix(p1) @ se3_to_matrix(p2))


def se3_inverse(p: np.ndarray) -> np.ndarray:
    """
    Invert a pose: p ⊕ p⁻¹ = identity.

    Returns:
        Pose of the parent frame expressed in the child frame.
    """
    p = _as_pose(p, "p")
    R = euler_to_rotation_matrix(p[3], p[4], p[5])
    T_inv = np.eye(4)
    T_inv[:3, :3] = R.T
    T_inv[:3, 3] = -R.T @ p[:3]
    return se3_from_matrix(T_inv)


def se3_relative(p1: np.ndarray, p2: np.ndarray) -> np.ndarray:
    """
    Relative pose from p1 to p2: p1⁻¹ ⊕ p2.

    Used to turn two odometry poses into the motion delta between them,
    expressed in the frame of p1.
    """
    return se3_compose(se3_inverse(p1), p2)


def se3_apply(p: np.ndarray, points: np.ndarray) -> np.ndarray:
    """
    Transform points from the child frame of p into its parent frame.

    Args:
        p: Pose [x, y, z, roll, pitch, yaw].
        points: Array of shape (M, 3) or (3,).

    Returns:
        Transformed points with the same shape as the input.
    """
    p = _as_pose(p, "p")
    points = np.asarray(points, dtype=np.float64)
    single = points.ndim == 1
    pts = np.atleast_2d(points)
    if pts.shape[1] != 3:
        raise ValueError(f"points must have shape (M, 3), got {points.shape}")

    R = euler_to_rotation_matrix(p[3], p[4], p[5])
    out = pts @ R.T + p[:3]
    return out[0] if single else out


def se3_compose_batch(poses: np.ndarray, delta: np.ndarray) -> np.ndarray:
    """
    Compose every pose in a population with the same transform: poses[i] ⊕ delta.

    Args:
        poses: Array of shape (N, 6).
        delta: Transform of shape (6,), expressed in each pose's own frame.

    Returns:
        Array of shape (N, 6).
    """
    poses = np.asarray(poses, dtype=np.float64)
    if poses.ndim != 2 or poses.shape[1] != 6:
        raise ValueError(f"poses must have shape (N, 6), got {poses.shape}")
    delta = _as_pose(delta, "delta")

    R = euler_to_rotation_matrix_batch(poses[:, 3:])
    R_delta = euler_to_rotation_matrix(delta[3], delta[4], delta[5])

    out = np.empty_like(poses)
    out[:, :3] = poses[:, :3] + R @ delta[:3]
    out[:, 3:] = rotation_matrix_to_euler_batch(R @ R_delta)
    return out


def se3_interpolate(p0: np.ndarray, p1: np.ndarray, alpha: float) -> np.ndarray:
    """
    Interpolate between two poses.

    Translation is interpolated linearly, rotation by quaternion slerp.

    Args:
        p0: Pose at alpha = 0.
        p1: Pose at alpha = 1.
        alpha: Interpolation fraction in [0, 1].
    """
    p0 = _as_pose(p0, "p0")
    p1 = _as_pose(p1, "p1")
    t = (1.0 - alpha) * p0[:3] + alpha * p1[:3]
    q = quat_slerp(euler_to_quat(*p0[3:]), euler_to_quat(*p1[3:]), alpha)
    return np.concatenate([t, quat_to_euler(q)])
