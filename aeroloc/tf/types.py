"""Stamped rigid transforms exchanged with the transform service."""

from dataclasses import dataclass, field

import numpy as np

from aeroloc.coords.transforms import se3_to_matrix


@dataclass(frozen=True)
class StampedTransform:
    """
    Pose of a child frame in a parent frame at a point in time.

    For corrections published by the localizer, ``stamp`` is the end of the
    validity window (issue time + tolerance): consumers may use the
    transform up to that time and must treat it as stale afterwards.

    Attributes:
        parent: Parent frame id.
        child: Child frame id.
        stamp: Time in seconds.
        pose: Child pose in the parent frame [x, y, z, roll, pitch, yaw].
    """

    parent: str
    child: str
    stamp: float
    pose: np.ndarray = field(default_factory=lambda: np.zeros(6))

    def __post_init__(self) -> None:
        """Validate frame ids and pose shape."""
        if not self.parent or not self.child:
            raise ValueError("Frame ids must be non-empty strings")
        pose = np.asarray(self.pose, dtype=np.float64)
        if pose.shape != (6,):
            raise ValueError(f"pose must have shape (6,), got {pose.shape}")
        if not np.all(np.isfinite(pose)):
            raise ValueError(f"pose must be finite, got {pose}")
        # A frame relative to itself is only meaningful as the identity
        if self.parent == self.child and np.any(pose != 0.0):
            raise ValueError(f"Parent and child frame are both '{self.parent}'")
        object.__setattr__(self, "pose", pose)

    def is_stale(self, now: float) -> bool:
        """True once ``now`` is past the transform's stamp."""
        return now > self.stamp

    def to_matrix(self) -> np.ndarray:
        """4x4 homogeneous matrix mapping child coordinates into the parent frame."""
        return se3_to_matrix(self.pose)
