"""Map→odometry correction transform.

The localizer does not publish the vehicle pose as a transform directly:
the odometry source already owns odom→base. Instead it publishes the
correction map→odom that makes the chain map→odom→base agree with the best
particle:

    T_map_odom = T_map_base ⊕ T_odom_base⁻¹

Each published correction is stamped with the end of its validity window
(issue time + tolerance) and is re-broadcast on a fixed timer, so consumers
can keep interpolating between scans. A correction that is neither
refreshed nor re-broadcast expires; consumers must treat it as stale.
"""

import logging
from typing import Optional

import numpy as np

from aeroloc.coords.frames import FrameIds
from aeroloc.coords.transforms import se3_compose, se3_inverse
from aeroloc.errors import TransformUnavailable
from aeroloc.tf.types import StampedTransform

logger = logging.getLogger(__name__)


class TransformEstimator:
    """
    Computes and broadcasts the map→odom correction.

    Args:
        transform_buffer: Buffer used to look up odom→base at the estimate's time.
        broadcaster: Sink with send_transform(StampedTransform).
        frames: Frame names of the localization tree.
        tolerance: Validity window of published corrections (seconds).
        lookup_timeout: Maximum wait of the odometry lookup (seconds).

    Attributes:
        latest_correction: Current map→odom pose (identity until the first update).
        last_published: Last transform sent, or None.
    """

    def __init__(
        self,
        transform_buffer,
        broadcaster,
        frames: FrameIds = FrameIds(),
        tolerance: float = 1.0,
        lookup_timeout: float = 0.1,
    ):
        if tolerance <= 0:
            raise ValueError(f"tolerance must be positive, got {tolerance}")
        self.transform_buffer = transform_buffer
        self.broadcaster = broadcaster
        self.frames = frames
        self.tolerance = tolerance
        self.lookup_timeout = lookup_timeout

        self.latest_correction = np.zeros(6)
        self.last_published: Optional[StampedTransform] = None

    def compute_correction(self, best_pose: np.ndarray, stamp: float) -> np.ndarray:
        """
        map→odom correction for a base pose in the map at a given time.

        Raises:
            TransformUnavailable: If odom→base cannot be resolved at stamp.
        """
        odom_to_base = self.transform_buffer.lookup_transform(
            self.frames.odom, self.frames.base, stamp, timeout=self.lookup_timeout
        )
        return se3_compose(best_pose, se3_inverse(odom_to_base.pose))

    def update(self, best_pose: np.ndarray, stamp: float) -> bool:
        """
        Recompute the correction from a new estimate and broadcast it.

        On lookup failure the previous correction is kept and nothing is
        sent; it stays valid until its window expires.

        Returns:
            True if a new correction was published.
        """
        try:
            correction = self.compute_correction(best_pose, stamp)
        except TransformUnavailable as e:
            logger.warning(
                "Failed to compute %s->%s correction, will not publish it: %s",
                self.frames.map, self.frames.odom, e,
            )
            return False

        self.latest_correction = correction
        self._send(stamp)
        return True

    def rebroadcast(self, now: float) -> StampedTransform:
        """Re-send the current correction with a validity window starting now."""
        return self._send(now)

    def _send(self, issued: float) -> StampedTransform:
        transform = StampedTransform(
            parent=self.frames.map,
            child=self.frames.odom,
            stamp=issued + self.tolerance,
            pose=self.latest_correction.copy(),
        )
        self.broadcaster.send_transform(transform)
        self.last_published = transform
        return transform

    def is_stale(self, now: float) -> bool:
        """True if nothing was published yet or the last correction has expired."""
        return self.last_published is None or self.last_published.is_stale(now)
