"""
Threaded front end of the localization engine.

Scans, initialization requests and timer ticks arrive from independent
producers (sensor drivers, operators, a periodic timer). The node puts them
on one event queue drained by a single worker thread, which is the only
thread that touches the engine. Initialization requests return a Future
resolved with the engine's boolean result.

Usage:
    node = LocalizationNode(engine)
    node.start()
    node.request_initial_pose(pose, stamp=0.0).result(timeout=5.0)
    node.submit_scan(scan)
    ...
    node.stop()
"""

import logging
import threading
import time
from collections import Counter
from concurrent.futures import Future
from dataclasses import dataclass
from queue import Empty, Queue
from typing import Callable, Optional

import numpy as np

from aeroloc.localization.engine import LocalizationEngine
from aeroloc.localization.types import ScanOutcome
from aeroloc.sensors.types import LaserScan

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScanEvent:
    scan: LaserScan


@dataclass(frozen=True)
class InitialPoseEvent:
    pose: np.ndarray
    stamp: float
    frame_id: Optional[str]
    future: Future


@dataclass(frozen=True)
class ConfigPoseEvent:
    stamp: float
    future: Future


@dataclass(frozen=True)
class GlobalLocalizationEvent:
    stamp: float
    future: Future


@dataclass(frozen=True)
class TimerEvent:
    now: float


_STOP = object()


class LocalizationNode:
    """
    Serializes all engine inputs onto one worker thread.

    Args:
        engine: The engine driven by this node.
        clock: Time source for timer ticks and default request stamps.
        timer_period: Correction re-broadcast period (defaults to the
            engine's transform_tolerance).
        queue_size: Maximum number of pending scans; further scans are
            dropped while the queue is full.

    Attributes:
        outcomes: Count of ScanOutcome values seen so far.
    """

    def __init__(
        self,
        engine: LocalizationEngine,
        clock: Callable[[], float] = time.time,
        timer_period: Optional[float] = None,
        queue_size: int = 100,
    ):
        self.engine = engine
        self.clock = clock
        self.timer_period = (
            engine.config.transform_tolerance if timer_period is None else timer_period
        )
        if self.timer_period <= 0:
            raise ValueError(f"timer_period must be positive, got {self.timer_period}")

        self.scan_queue_size = queue_size
        self.events: Queue = Queue()
        self.outcomes: Counter = Counter()
        self._pending_scans = 0
        self._pending_lock = threading.Lock()

        self.running = False
        self._stop_event = threading.Event()
        self.worker_thread: Optional[threading.Thread] = None
        self.timer_thread: Optional[threading.Thread] = None

    def start(self) -> None:
        """Start the worker and timer threads."""
        if self.running:
            return
        self.running = True
        self._stop_event.clear()
        self.worker_thread = threading.Thread(target=self._worker_loop, daemon=True)
        self.timer_thread = threading.Thread(target=self._timer_loop, daemon=True)
        self.worker_thread.start()
        self.timer_thread.start()
        logger.info("Localization node started (timer period %.2f s)", self.timer_period)

    def stop(self, timeout: Optional[float] = 5.0) -> None:
        """Stop both threads after the already-queued events are processed."""
        if not self.running:
            self.engine.close()
            return
        self.running = False
        self._stop_event.set()
        if self.timer_thread is not None:
            self.timer_thread.join(timeout)
        self.events.put(_STOP)
        if self.worker_thread is not None:
            self.worker_thread.join(timeout)
        self.engine.close()
        logger.info("Localization node stopped")

    def __enter__(self) -> "LocalizationNode":
        self.start()
        return self

    def __exit__(self, *exc) -> None:
        self.stop()

    # ------------------------------------------------------------------
    # Producers
    # ------------------------------------------------------------------

    def submit_scan(self, scan: LaserScan) -> bool:
        """
        Queue a scan for processing.

        Returns:
            False if the scan was dropped because the queue is full.
        """
        with self._pending_lock:
            if self._pending_scans >= self.scan_queue_size:
                logger.warning("Scan queue full, dropping scan at %.3f", scan.stamp)
                return False
            self._pending_scans += 1
        self.events.put(ScanEvent(scan))
        return True

    def request_initial_pose(
        self,
        pose: np.ndarray,
        stamp: Optional[float] = None,
        frame_id: Optional[str] = None,
    ) -> Future:
        """Queue an initialization around an externally supplied pose."""
        future: Future = Future()
        stamp = self.clock() if stamp is None else stamp
        self.events.put(InitialPoseEvent(np.asarray(pose, dtype=np.float64), stamp, frame_id, future))
        return future

    def request_config_pose(self, stamp: Optional[float] = None) -> Future:
        """Queue an initialization around the configured initial pose."""
        future: Future = Future()
        self.events.put(ConfigPoseEvent(self.clock() if stamp is None else stamp, future))
        return future

    def request_global_localization(self, stamp: Optional[float] = None) -> Future:
        """Queue a uniform re-initialization over the map."""
        future: Future = Future()
        self.events.put(GlobalLocalizationEvent(self.clock() if stamp is None else stamp, future))
        return future

    def tick(self, now: Optional[float] = None) -> None:
        """Queue a correction re-broadcast."""
        self.events.put(TimerEvent(self.clock() if now is None else now))

    # ------------------------------------------------------------------
    # Consumer
    # ------------------------------------------------------------------

    def process_pending(self) -> int:
        """
        Drain the queue on the calling thread (for use without start()).

        Returns:
            Number of events processed.
        """
        if self.running:
            raise RuntimeError("process_pending() cannot be used while the worker is running")
        count = 0
        while True:
            try:
                event = self.events.get_nowait()
            except Empty:
                return count
            if event is not _STOP:
                self._dispatch(event)
                count += 1

    def _worker_loop(self) -> None:
        while True:
            event = self.events.get()
            if event is _STOP:
                break
            self._dispatch(event)

    def _timer_loop(self) -> None:
        while not self._stop_event.wait(self.timer_period):
            self.tick()

    def _dispatch(self, event) -> None:
        if isinstance(event, ScanEvent):
            with self._pending_lock:
                self._pending_scans -= 1
            try:
                outcome = self.engine.process_scan(event.scan)
            except Exception:
                logger.exception("Unexpected error while processing scan at %.3f", event.scan.stamp)
                return
            self.outcomes[outcome] += 1
        elif isinstance(event, TimerEvent):
            try:
                self.engine.on_timer(event.now)
            except Exception:
                logger.exception("Unexpected error while re-broadcasting at %.3f", event.now)
        elif isinstance(event, InitialPoseEvent):
            self._resolve(
                event.future,
                lambda: self.engine.initialize_from_pose(event.pose, event.stamp, event.frame_id),
            )
        elif isinstance(event, ConfigPoseEvent):
            self._resolve(event.future, lambda: self.engine.initialize_from_config(event.stamp))
        elif isinstance(event, GlobalLocalizationEvent):
            self._resolve(event.future, lambda: self.engine.initialize_global(event.stamp))
        else:
            raise TypeError(f"Unknown event type: {type(event).__name__}")

    @staticmethod
    def _resolve(future: Future, call: Callable[[], bool]) -> None:
        if not future.set_running_or_notify_cancel():
            return
        try:
            future.set_result(call())
        except Exception as e:
            logger.exception("Initialization request failed")
            future.set_exception(e)

    def fused_count(self) -> int:
        return self.outcomes[ScanOutcome.FUSED]
