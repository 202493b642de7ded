"""
In-process transform buffer and broadcaster.

The buffer stores a time history of every parent→child edge of the frame
tree and answers lookups between any two connected frames at a given time,
interpolating between stored samples. Lookups may wait for data, but never
longer than their timeout: a lookup that cannot be resolved in time raises
TransformUnavailable.
"""

import bisect
import logging
import threading
import time
from typing import Dict, List, Optional

import numpy as np

from aeroloc.coords.transforms import se3_compose, se3_interpolate, se3_inverse
from aeroloc.errors import TransformUnavailable
from aeroloc.tf.types import StampedTransform

logger = logging.getLogger(__name__)


class _Edge:
    """Time history of one parent→child transform."""

    def __init__(self, parent: str, static: bool):
        self.parent = parent
        self.static = static
        self.stamps: List[float] = []
        self.poses: List[np.ndarray] = []

    def insert(self, stamp: float, pose: np.ndarray) -> None:
        if self.static:
            self.stamps, self.poses = [stamp], [pose]
            return
        i = bisect.bisect_left(self.stamps, stamp)
        if i < len(self.stamps) and self.stamps[i] == stamp:
            self.poses[i] = pose
        else:
            self.stamps.insert(i, stamp)
            self.poses.insert(i, pose)

    def prune(self, oldest: float) -> None:
        i = bisect.bisect_left(self.stamps, oldest)
        # Keep at least one sample so the edge stays resolvable near its newest stamp
        i = min(i, len(self.stamps) - 1)
        if i > 0:
            del self.stamps[:i]
            del self.poses[:i]

    def at(self, stamp: Optional[float], child: str) -> np.ndarray:
        if self.static or stamp is None:
            return self.poses[-1]
        if stamp > self.stamps[-1]:
            raise TransformUnavailable(
                f"Lookup of {self.parent}->{child} at {stamp:.6f} would extrapolate "
                f"into the future (latest {self.stamps[-1]:.6f})"
            )
        if stamp < self.stamps[0]:
            raise TransformUnavailable(
                f"Lookup of {self.parent}->{child} at {stamp:.6f} is older than the "
                f"buffer (earliest {self.stamps[0]:.6f})"
            )
        i = bisect.bisect_left(self.stamps, stamp)
        if self.stamps[i] == stamp:
            return self.poses[i]
        t0, t1 = self.stamps[i - 1], self.stamps[i]
        return se3_interpolate(self.poses[i - 1], self.poses[i], (stamp - t0) / (t1 - t0))


class TransformBuffer:
    """
    Thread-safe store of stamped transforms forming a frame tree.

    Args:
        cache_time: Seconds of history kept per dynamic edge.

    Example:
        >>> buf = TransformBuffer()
        >>> buf.set_transform(StampedTransform("world", "base", 1.0, np.ones(6)))
        >>> np.allclose(buf.lookup_transform("world", "base", 1.0).pose, 1.0)
        True
    """

    def __init__(self, cache_time: float = 10.0):
        if cache_time <= 0:
            raise ValueError(f"cache_time must be positive, got {cache_time}")
        self.cache_time = cache_time
        self._edges: Dict[str, _Edge] = {}
        self._cond = threading.Condition()

    def set_transform(self, transform: StampedTransform, static: bool = False) -> None:
        """
        Insert a transform sample.

        A frame has a single parent; inserting a sample with a new parent
        re-parents the frame and drops its previous history.
        """
        if transform.parent == transform.child:
            raise ValueError(f"Cannot store a transform from '{transform.child}' to itself")
        with self._cond:
            edge = self._edges.get(transform.child)
            if edge is None or edge.parent != transform.parent or edge.static != static:
                if edge is not None and edge.parent != transform.parent:
                    logger.warning(
                        "Frame '%s' re-parented from '%s' to '%s'",
                        transform.child, edge.parent, transform.parent,
                    )
                edge = _Edge(transform.parent, static)
                self._edges[transform.child] = edge
            edge.insert(float(transform.stamp), transform.pose)
            if not static:
                edge.prune(edge.stamps[-1] - self.cache_time)
            self._cond.notify_all()

    def clear(self) -> None:
        with self._cond:
            self._edges.clear()

    def frames(self) -> List[str]:
        """All frame ids known to the buffer."""
        with self._cond:
            names = set(self._edges)
            names.update(e.parent for e in self._edges.values())
            return sorted(names)

    def _ancestors(self, frame: str) -> List[str]:
        """Frames from ``frame`` up to the root of its tree, inclusive."""
        chain = [frame]
        while chain[-1] in self._edges:
            parent = self._edges[chain[-1]].parent
            if parent in chain:
                raise TransformUnavailable(f"Frame tree has a cycle through '{parent}'")
            chain.append(parent)
        return chain

    def _pose_in_ancestor(self, chain: List[str], ancestor: str, stamp: Optional[float]) -> np.ndarray:
        """Pose of chain[0] in ``ancestor``, composing only the edges in between."""
        pose = np.zeros(6)
        for frame in chain[:chain.index(ancestor)]:
            pose = se3_compose(self._edges[frame].at(stamp, frame), pose)
        return pose

    def _resolve(self, target: str, source: str, stamp: Optional[float]) -> np.ndarray:
        known = set(self._edges) | {e.parent for e in self._edges.values()}
        for frame in (target, source):
            if frame not in known:
                raise TransformUnavailable(f"Frame '{frame}' does not exist")
        if target == source:
            return np.zeros(6)

        source_chain = self._ancestors(source)
        target_chain = self._ancestors(target)
        common = next((f for f in source_chain if f in target_chain), None)
        if common is None:
            raise TransformUnavailable(
                f"Frames '{target}' and '{source}' are not connected "
                f"(roots '{target_chain[-1]}' and '{source_chain[-1]}')"
            )
        # Only edges below the closest common ancestor are evaluated
        T_common_source = self._pose_in_ancestor(source_chain, common, stamp)
        T_common_target = self._pose_in_ancestor(target_chain, common, stamp)
        return se3_compose(se3_inverse(T_common_target), T_common_source)

    def lookup_transform(
        self,
        target: str,
        source: str,
        stamp: Optional[float] = None,
        timeout: float = 0.0,
    ) -> StampedTransform:
        """
        Pose of ``source`` in ``target`` at ``stamp``.

        Args:
            target: Frame the result is expressed in (parent).
            source: Frame whose pose is looked up (child).
            stamp: Query time; None for the latest available data.
            timeout: Maximum time in seconds to wait for data to arrive.

        Returns:
            StampedTransform(parent=target, child=source).

        Raises:
            TransformUnavailable: If the lookup cannot be resolved before
                the timeout expires.
        """
        deadline = time.monotonic() + max(timeout, 0.0)
        with self._cond:
            while True:
                try:
                    pose = self._resolve(target, source, stamp)
                    break
                except TransformUnavailable:
                    remaining = deadline - time.monotonic()
                    if remaining <= 0:
                        raise
                    self._cond.wait(remaining)

        result_stamp = float(stamp) if stamp is not None else time.time()
        return StampedTransform(target, source, result_stamp, pose)

    def can_transform(self, target: str, source: str, stamp: Optional[float] = None) -> bool:
        """True if a lookup would succeed right now."""
        try:
            self.lookup_transform(target, source, stamp)
        except TransformUnavailable:
            return False
        return True


class TransformBroadcaster:
    """Sink for transforms published by the localizer."""

    def send_transform(self, transform: StampedTransform) -> None:
        raise NotImplementedError


class BufferBroadcaster(TransformBroadcaster):
    """
    Broadcaster that records every sent transform and optionally forwards it
    into a TransformBuffer.

    Attributes:
        sent: All transforms sent, in order.
    """

    def __init__(self, buffer: Optional[TransformBuffer] = None):
        self.buffer = buffer
        self.sent: List[StampedTransform] = []
        self._lock = threading.Lock()

    def send_transform(self, transform: StampedTransform) -> None:
        with self._lock:
            self.sent.append(transform)
        if self.buffer is not None:
            self.buffer.set_transform(transform)

    @property
    def latest(self) -> Optional[StampedTransform]:
        with self._lock:
            return self.sent[-1] if self.sent else None
