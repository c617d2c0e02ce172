"""
Background scan scheduling.

Responsibility:
    Decide, once per update tick, whether a new detection cycle should
    start; run cycles on a background worker; hand the latest completed
    result back to the update loop.

Model:
    - The update loop (single thread, never blocks) calls tick() and
      latest() once per frame.
    - A cycle is dispatched only when the scheduler is IDLE and at least
      frames_skip ticks have passed since the last dispatch. At most one
      cycle is ever in flight; while SCANNING, ticks just skip.
    - One dedicated daemon worker consumes a single-slot channel. Jobs
      always run to completion; there is no cancellation and a stale
      region is accepted.
    - The result buffer, the IDLE/SCANNING flag and the adaptive
      threshold are only read or written under one lock. The detector
      runs outside the lock; only the hand-off is locked.
    - Only the most recent result survives (double buffer, not a queue).
"""

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Tuple, Union

import numpy as np

from dotscan.dot_finder import DotFinder, FindResult
from dotscan.grayscale import flip_vertically
from dotscan.region import RegionOfInterest
from dotscan.threshold import ThresholdController

logger = logging.getLogger(__name__)

FrameSource = Union[np.ndarray, Callable[[], Optional[np.ndarray]], None]
StateListener = Callable[["ScanState"], None]


class ScanState(Enum):
    IDLE = "idle"
    SCANNING = "scanning"


@dataclass(frozen=True)
class ResultBuffer:
    """Last completed cycle, as seen by the update loop.

    Attributes:
        points: Read-only (count, 2) array of display points.
        count: Number of points.
        cycle: Sequence number of the cycle that produced it (0 = none yet).
    """

    points: np.ndarray
    count: int
    cycle: int = 0

    @classmethod
    def empty(cls) -> "ResultBuffer":
        points = np.empty((0, 2), dtype=np.float64)
        points.setflags(write=False)
        return cls(points=points, count=0, cycle=0)


@dataclass(frozen=True)
class ScanJob:
    """Snapshot handed to the worker at dispatch time."""

    cycle: int
    roi: RegionOfInterest
    frame: Optional[np.ndarray]
    threshold: int
    screen_size: Tuple[int, int]


class ScanScheduler:
    """Throttled, single-flight background scanning.

    Usage:
        scheduler = ScanScheduler(finder, frames_skip=5, max_points=500)
        scheduler.start()
        # every frame, on the update loop:
        buffer = scheduler.latest()
        scheduler.tick(camera.get_frame, roi)
        ...
        scheduler.close()

    State listeners are invoked under the scheduler lock, in transition
    order; they must be quick and must not call back into the scheduler.
    A listener that raises is logged and skipped.
    """

    def __init__(
        self,
        finder: DotFinder,
        frames_skip: int = 5,
        max_points: int = 500,
        threshold: Optional[ThresholdController] = None,
        screen_size: Optional[Tuple[int, int]] = None,
        flip_frames: bool = False,
    ) -> None:
        if frames_skip < 1:
            raise ValueError(f"frames_skip must be >= 1, got {frames_skip}.")
        if max_points < 1:
            raise ValueError(f"max_points must be >= 1, got {max_points}.")

        self._finder = finder
        self._frames_skip = frames_skip
        self._max_points = max_points
        self._flip_frames = flip_frames

        self._lock = threading.Lock()
        self._idle = threading.Condition(self._lock)
        self._wakeup = threading.Condition(self._lock)

        # Guarded by _lock
        self._threshold = threshold or ThresholdController()
        self._state = ScanState.IDLE
        self._result = ResultBuffer.empty()
        self._pending: Optional[ScanJob] = None
        self._screen_size = screen_size or finder.sensor_size
        self._listeners: List[StateListener] = []
        self._stopping = False

        # Update loop only
        self._skipped = 0
        self._cycle = 0
        self._worker: Optional[threading.Thread] = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start the background worker. Calling it twice is a no-op."""
        if self._worker is not None and self._worker.is_alive():
            return

        with self._lock:
            self._stopping = False
        self._worker = threading.Thread(
            target=self._run, name="dotscan-worker", daemon=True
        )
        self._worker.start()
        logger.info(
            "ScanScheduler started (frames_skip=%d, max_points=%d, threshold=%d)",
            self._frames_skip, self._max_points, self.threshold,
        )

    def close(self, timeout: Optional[float] = None) -> None:
        """Stop the worker after the in-flight cycle, if any, completes."""
        if self._worker is None:
            return

        with self._lock:
            self._stopping = True
            self._wakeup.notify_all()

        self._worker.join(timeout)
        if self._worker.is_alive():
            logger.warning("Scan worker still running after %.2fs.", timeout or 0.0)
        else:
            logger.info("ScanScheduler stopped after %d cycles.", self._cycle)
        self._worker = None

    def __enter__(self) -> "ScanScheduler":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def running(self) -> bool:
        return self._worker is not None and self._worker.is_alive()

    # ------------------------------------------------------------------
    # Update loop side
    # ------------------------------------------------------------------

    def tick(self, frame_source: FrameSource, roi: RegionOfInterest) -> bool:
        """Advance one update tick and dispatch a cycle if allowed.

        Args:
            frame_source: Current frame, or a callable returning it. The
                          callable is only invoked when a cycle is
                          dispatched.
            roi: Region to scan if a cycle is dispatched.

        Returns:
            True if a cycle was dispatched on this tick.

        Raises:
            RuntimeError: If the scheduler has not been started or its
                          worker has died.
        """
        if self._worker is None:
            raise RuntimeError("ScanScheduler.tick() called before start().")
        if not self._worker.is_alive():
            raise RuntimeError("ScanScheduler worker is no longer running.")

        self._skipped += 1

        with self._lock:
            if self._state is not ScanState.IDLE or self._skipped < self._frames_skip:
                return False
            threshold = self._threshold.value
            screen_size = self._screen_size

        if self._finder.bounds_for(roi) is None:
            logger.debug("Region %s is empty after clipping, cycle skipped.", roi)
            return False

        frame = frame_source() if callable(frame_source) else frame_source
        if frame is not None:
            frame = flip_vertically(frame) if self._flip_frames else np.array(frame, copy=True)

        self._cycle += 1
        job = ScanJob(
            cycle=self._cycle,
            roi=roi,
            frame=frame,
            threshold=threshold,
            screen_size=screen_size,
        )

        with self._lock:
            self._skipped = 0
            self._pending = job
            self._set_state(ScanState.SCANNING)
            self._wakeup.notify()

        logger.debug("Dispatched scan cycle %d (roi=%s, threshold=%d)", job.cycle, roi, threshold)
        return True

    def latest(self) -> ResultBuffer:
        """Return the most recent completed result."""
        with self._lock:
            return self._result

    @property
    def state(self) -> ScanState:
        with self._lock:
            return self._state

    @property
    def threshold(self) -> int:
        with self._lock:
            return self._threshold.value

    def set_screen_size(self, screen_size: Tuple[int, int]) -> None:
        """Display size used by cycles dispatched from now on."""
        with self._lock:
            self._screen_size = (int(screen_size[0]), int(screen_size[1]))

    def add_listener(self, listener: StateListener) -> None:
        with self._lock:
            self._listeners.append(listener)

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """Block until no cycle is in flight. Returns False on timeout."""
        with self._lock:
            return self._idle.wait_for(lambda: self._state is ScanState.IDLE, timeout)

    def reset(self) -> None:
        """Drop the displayed result and restart the skip counter."""
        self._skipped = 0
        with self._lock:
            self._result = ResultBuffer.empty()

    # ------------------------------------------------------------------
    # Worker side
    # ------------------------------------------------------------------

    def _run(self) -> None:
        while True:
            with self._lock:
                while self._pending is None and not self._stopping:
                    self._wakeup.wait()
                if self._pending is None:
                    return
                job, self._pending = self._pending, None

            self._execute(job)

    def _execute(self, job: ScanJob) -> None:
        result: Optional[FindResult]
        try:
            result = self._finder.find_points(
                job.roi,
                job.frame,
                threshold=job.threshold,
                screen_size=job.screen_size,
                max_points=self._max_points,
            )
        except Exception:
            logger.exception("Scan cycle %d failed, keeping previous result.", job.cycle)
            result = None

        with self._lock:
            if result is not None:
                points = result.points[: self._max_points]
                points.setflags(write=False)
                self._result = ResultBuffer(points=points, count=len(points), cycle=job.cycle)
                self._threshold.update(result.raw_count)
            self._set_state(ScanState.IDLE)

        if result is not None:
            logger.debug(
                "Scan cycle %d done: %d points (raw=%s)",
                job.cycle, len(result.points), result.raw_count,
            )

    def _set_state(self, state: ScanState) -> None:
        # Caller holds _lock
        self._state = state
        if state is ScanState.IDLE:
            self._idle.notify_all()
        for listener in self._listeners:
            try:
                listener(state)
            except Exception:
                logger.exception("State listener %r failed on %s.", listener, state.name)
