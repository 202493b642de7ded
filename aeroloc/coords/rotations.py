"""Rotation representations and conversions.

Conversions between the rotation representations used by the localizer:
- Rotation matrices (3x3, SO(3)), or stacks of them with shape (N, 3, 3)
- Quaternions [qw, qx, qy, qz] (scalar first)
- Euler angles [roll, pitch, yaw] in radians (ZYX / 3-2-1 convention)

Single-rotation functions mirror the batch functions; the batch variants
are what the particle population uses, since every particle carries its
own attitude.
"""

import numpy as np
from numpy.typing import NDArray


def euler_to_rotation_matrix(
    roll: float,
    pitch: float,
    yaw: float,
) -> NDArray[np.float64]:
    """Convert Euler angles to a rotation matrix.

    Args:
        roll: Rotation about x in radians.
        pitch: Rotation about y in radians.
        yaw: Rotation about z in radians.

    Returns:
        3x3 rotation matrix R such that v_parent = R @ v_child.

    Example:
        >>> R = euler_to_rotation_matrix(0.0, 0.0, np.pi / 2)
        >>> np.allclose(R @ [1, 0, 0], [0, 1, 0])
        True
    """
    return euler_to_rotation_matrix_batch(
        np.array([[roll, pitch, yaw]], dtype=np.float64)
    )[0]


def euler_to_rotation_matrix_batch(euler: NDArray[np.float64]) -> NDArray[np.float64]:
    """Convert a stack of Euler angles to rotation matrices.

    Args:
        euler: Array of shape (N, 3) with [roll, pitch, yaw] rows.

    Returns:
        Array of shape (N, 3, 3).

    Raises:
        ValueError: If euler does not have shape (N, 3).
    """
    euler = np.asarray(euler, dtype=np.float64)
    if euler.ndim != 2 or euler.shape[1] != 3:
        raise ValueError(f"Expected (N, 3) Euler angles, got shape {euler.shape}")

    cr, cp, cy = np.cos(euler).T
    sr, sp, sy = np.sin(euler).T

    R = np.empty((euler.shape[0], 3, 3), dtype=np.float64)
    R[:, 0, 0] = cy * cp
    R[:, 0, 1] = cy * sp * sr - sy * cr
    R[:, 0, 2] = cy * sp * cr + sy * sr
    R[:, 1, 0] = sy * cp
    R[:, 1, 1] = sy * sp * sr + cy * cr
    R[:, 1, 2] = sy * sp * cr - cy * sr
    R[:, 2, 0] = -sp
    R[:, 2, 1] = cp * sr
    R[:, 2, 2] = cp * cr
    return R


def rotation_matrix_to_euler(R: NDArray[np.float64]) -> NDArray[np.float64]:
    """Convert a rotation matrix to Euler angles.

    At gimbal lock (pitch = ±90°) only the combination of roll and yaw is
    observable; roll is set to zero.

    Args:
        R: 3x3 rotation matrix.

    Returns:
        Array [roll, pitch, yaw] in radians.

    Raises:
        ValueError: If R is not 3x3.
    """
    R = np.asarray(R, dtype=np.float64)
    if R.shape != (3, 3):
        raise ValueError(f"Expected 3x3 matrix, got shape {R.shape}")
    return rotation_matrix_to_euler_batch(R[np.newaxis])[0]


def rotation_matrix_to_euler_batch(R: NDArray[np.float64]) -> NDArray[np.float64]:
    """Convert a stack of rotation matrices (N, 3, 3) to Euler angles (N, 3)."""
    R = np.asarray(R, dtype=np.float64)
    if R.ndim != 3 or R.shape[1:] != (3, 3):
        raise ValueError(f"Expected (N, 3, 3) matrices, got shape {R.shape}")

    sin_pitch = np.clip(-R[:, 2, 0], -1.0, 1.0)
    pitch = np.arcsin(sin_pitch)
    roll = np.arctan2(R[:, 2, 1], R[:, 2, 2])
    yaw = np.arctan2(R[:, 1, 0], R[:, 0, 0])

    locked = np.abs(sin_pitch) >= 1.0 - 1e-12
    if np.any(locked):
        roll[locked] = 0.0
        yaw[locked] = np.arctan2(-R[locked, 0, 1], R[locked, 1, 1])

    return np.column_stack([roll, pitch, yaw])


def euler_to_quat(
    roll: float,
    pitch: float,
    yaw: float,
) -> NDArray[np.float64]:
    """Convert Euler angles to a unit quaternion [qw, qx, qy, qz]."""
    return euler_to_quat_batch(np.array([[roll, pitch, yaw]], dtype=np.float64))[0]


def euler_to_quat_batch(euler: NDArray[np.float64]) -> NDArray[np.float64]:
    """Convert Euler angles (N, 3) to unit quaternions (N, 4).

    Example:
        >>> q = euler_to_quat_batch(np.zeros((2, 3)))
        >>> q[:, 0]
        array([1., 1.])
    """
    euler = np.asarray(euler, dtype=np.float64)
    if euler.ndim != 2 or euler.shape[1] != 3:
        raise ValueError(f"Expected (N, 3) Euler angles, got shape {euler.shape}")

    half = 0.5 * euler
    cr, cp, cy = np.cos(half).T
    sr, sp, sy = np.sin(half).T

    q = np.column_stack(
        [
            cr * cp * cy + sr * sp * sy,
            sr * cp * cy - cr * sp * sy,
            cr * sp * cy + sr * cp * sy,
            cr * cp * sy - sr * sp * cy,
        ]
    )
    return q / np.linalg.norm(q, axis=1, keepdims=True)


def quat_to_euler(q: NDArray[np.float64]) -> NDArray[np.float64]:
    """Convert a quaternion [qw, qx, qy, qz] to Euler angles [roll, pitch, yaw].

    The quaternion is normalized first, so slightly denormalized inputs from
    messages are accepted.

    Raises:
        ValueError: If q is not a non-zero 4-element array.
    """
    q = np.asarray(q, dtype=np.float64)
    if q.shape != (4,):
        raise ValueError(f"Expected 4-element quaternion, got shape {q.shape}")
    norm = np.linalg.norm(q)
    if norm < 1e-12:
        raise ValueError("Quaternion has zero norm")
    qw, qx, qy, qz = q / norm

    roll = np.arctan2(2.0 * (qw * qx + qy * qz), 1.0 - 2.0 * (qx * qx + qy * qy))
    pitch = np.arcsin(np.clip(2.0 * (qw * qy - qz * qx), -1.0, 1.0))
    yaw = np.arctan2(2.0 * (qw * qz + qx * qy), 1.0 - 2.0 * (qy * qy + qz * qz))

    return np.array([roll, pitch, yaw], dtype=np.float64)


def quat_slerp(
    q0: NDArray[np.float64],
    q1: NDArray[np.float64],
    alpha: float,
) -> NDArray[np.float64]:
    """Spherical linear interpolation between two unit quaternions.

    Args:
        q0: Start quaternion [qw, qx, qy, qz].
        q1: End quaternion.
        alpha: Interpolation fraction, 0 gives q0 and 1 gives q1.

    Returns:
        Interpolated unit quaternion along the shorter arc.
    """
    q0 = np.asarray(q0, dtype=np.float64)
    q1 = np.asarray(q1, dtype=np.float64)

    dot = float(np.dot(q0, q1))
    if dot < 0.0:
        q1 = -q1
        dot = -dot

    if dot > 0.9995:
        # Nearly parallel: fall back to normalized lerp
        q = q0 + alpha * (q1 - q0)
        return q / np.linalg.norm(q)

    theta = np.arccos(dot)
    sin_theta = np.sin(theta)
    q = (np.sin((1.0 - alpha) * theta) * q0 + np.sin(alpha * theta) * q1) / sin_theta
    return q / np.linalg.norm(q)
