"""Coordinate frames, rotations and SE(3) transforms.

- Rotation representations (quaternions, matrices, Euler angles)
- SE(3) pose algebra on [x, y, z, roll, pitch, yaw] vectors
- Frame names of the localization frame tree
"""

from aeroloc.coords.frames import FrameIds
from aeroloc.coords.rotations import (
    euler_to_quat,
    euler_to_quat_batch,
    euler_to_rotation_matrix,
    euler_to_rotation_matrix_batch,
    quat_slerp,
    quat_to_euler,
    rotation_matrix_to_euler,
    rotation_matrix_to_euler_batch,
)
from aeroloc.coords.transforms import (
    se3_apply,
    se3_compose,
    se3_compose_batch,
    se3_from_matrix,
    se3_interpolate,
    se3_inverse,
    se3_relative,
    se3_to_matrix,
    wrap_angle,
)

__all__ = [
    # Frames
    "FrameIds",
    # Rotations
    "euler_to_quat",
    "euler_to_quat_batch",
    "euler_to_rotation_matrix",
    "euler_to_rotation_matrix_batch",
    "quat_slerp",
    "quat_to_euler",
    "rotation_matrix_to_euler",
    "rotation_matrix_to_euler_batch",
    # SE(3)
    "se3_apply",
    "se3_compose",
    "se3_compose_batch",
    "se3_from_matrix",
    "se3_interpolate",
    "se3_inverse",
    "se3_relative",
    "se3_to_matrix",
    "wrap_angle",
]
