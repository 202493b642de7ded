"""Publication of pose estimates and population snapshots.

The engine publishes through a PosePublisher sink; transports subclass it.
RecordingPublisher keeps everything it receives, for tests and demos.
"""

import threading
from concurrent.futures import Executor
from typing import List, Optional

import numpy as np

from aeroloc.coords.rotations import euler_to_quat_batch
from aeroloc.localization.types import PoseArraySnapshot, PoseEstimate
from aeroloc.sensors.types import ProcessedObservation


class PosePublisher:
    """Sink for the engine's outputs. The base class discards everything."""

    def publish_pose(self, estimate: PoseEstimate) -> None:
        pass

    def publish_particles(self, snapshot: PoseArraySnapshot) -> None:
        pass

    def publish_filtered_cloud(self, observation: ProcessedObservation) -> None:
        pass


class RecordingPublisher(PosePublisher):
    """
    Publisher that records every output.

    Attributes:
        poses: Published best-estimate poses, in order.
        snapshots: Published population snapshots, in order.
        clouds: Published filtered scans, in order.
    """

    def __init__(self):
        self.poses: List[PoseEstimate] = []
        self.snapshots: List[PoseArraySnapshot] = []
        self.clouds: List[ProcessedObservation] = []
        self._lock = threading.Lock()

    def publish_pose(self, estimate: PoseEstimate) -> None:
        with self._lock:
            self.poses.append(estimate)

    def publish_particles(self, snapshot: PoseArraySnapshot) -> None:
        with self._lock:
            self.snapshots.append(snapshot)

    def publish_filtered_cloud(self, observation: ProcessedObservation) -> None:
        with self._lock:
            self.clouds.append(observation)

    @property
    def latest_pose(self) -> Optional[PoseEstimate]:
        with self._lock:
            return self.poses[-1] if self.poses else None


def build_pose_array(
    states: np.ndarray,
    weights: np.ndarray,
    stamp: float,
    frame_id: str,
    executor: Optional[Executor] = None,
    workers: int = 1,
) -> PoseArraySnapshot:
    """
    Convert a particle population into a publishable pose array.

    The Euler→quaternion conversion is independent per particle; with an
    executor the population is split into ``workers`` chunks, each writing
    its own disjoint slice of the output.

    Args:
        states: Particle states (N, 6).
        weights: Particle weights (N,).
        stamp: Snapshot time.
        frame_id: Frame of the poses.
        executor: Optional executor running the chunks concurrently.
        workers: Number of chunks when an executor is given.
    """
    states = np.asarray(states, dtype=np.float64)
    n = len(states)
    quaternions = np.empty((n, 4))

    def fill(indices: np.ndarray) -> None:
        if len(indices):
            quaternions[indices[0]:indices[-1] + 1] = euler_to_quat_batch(
                states[indices[0]:indices[-1] + 1, 3:]
            )

    chunks = np.array_split(np.arange(n), max(1, min(workers, n)))
    if executor is None or len(chunks) == 1:
        for chunk in chunks:
            fill(chunk)
    else:
        for future in [executor.submit(fill, chunk) for chunk in chunks]:
            future.result()

    return PoseArraySnapshot(
        stamp=stamp,
        frame_id=frame_id,
        positions=states[:, :3].copy(),
        quaternions=quaternions,
        weights=np.asarray(weights, dtype=np.float64).copy(),
    )
