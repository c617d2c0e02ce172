"""
Tests for the background scan scheduler.
"""

import threading

import numpy as np
import pytest

from dotscan.dot_finder import DotFinder
from dotscan.platform import Platform
from dotscan.region import RegionOfInterest
from dotscan.scheduler import ScanScheduler, ScanState

FULL = RegionOfInterest(0.0, 0.0, 1.0, 1.0)
EMPTY = RegionOfInterest(1.0, 0.0, 0.5, 1.0)


class GatedDetector:
    """Detector stub that blocks until its gate is opened."""

    def __init__(self, result=None, gated=False):
        self.gate = threading.Event()
        if not gated:
            self.gate.set()
        self.result = result if result is not None else np.empty((0, 2), dtype=np.float32)
        self.error = None
        self.grays = []

    def __call__(self, gray, width, height, threshold):
        self.grays.append(gray.copy())
        self.gate.wait(5.0)
        if self.error is not None:
            raise self.error
        return self.result


class NoneDetector(GatedDetector):
    def __call__(self, gray, width, height, threshold):
        super().__call__(gray, width, height, threshold)
        return None


def _frame() -> np.ndarray:
    return np.zeros((48, 64, 3), dtype=np.uint8)


@pytest.fixture
def make_scheduler():
    created = []

    def _make(detector, **kwargs):
        finder = DotFinder(64, 48, Platform.HANDHELD, detector=detector)
        scheduler = ScanScheduler(finder, **kwargs)
        scheduler.start()
        created.append((scheduler, detector))
        return scheduler

    yield _make

    for scheduler, detector in created:
        detector.gate.set()
        scheduler.close(timeout=5.0)


def test_invalid_parameters():
    """Test that non-positive cadence or capacity is rejected."""
    finder = DotFinder(64, 48, Platform.HANDHELD, detector=GatedDetector())
    with pytest.raises(ValueError, match="frames_skip"):
        ScanScheduler(finder, frames_skip=0)
    with pytest.raises(ValueError, match="max_points"):
        ScanScheduler(finder, max_points=0)


def test_tick_before_start():
    """Test that ticking a scheduler that was never started fails."""
    finder = DotFinder(64, 48, Platform.HANDHELD, detector=GatedDetector())
    scheduler = ScanScheduler(finder)
    with pytest.raises(RuntimeError, match="start"):
        scheduler.tick(_frame(), FULL)


def test_dispatch_cadence(make_scheduler):
    """Test that a cycle starts every frames_skip ticks when idle."""
    scheduler = make_scheduler(GatedDetector(), frames_skip=3)

    assert [scheduler.tick(_frame(), FULL) for _ in range(3)] == [False, False, True]
    assert scheduler.wait_idle(5.0)
    assert [scheduler.tick(_frame(), FULL) for _ in range(3)] == [False, False, True]
    assert scheduler.wait_idle(5.0)


def test_single_cycle_in_flight(make_scheduler):
    """Test that ticks while scanning never dispatch a second cycle."""
    detector = GatedDetector(gated=True)
    scheduler = make_scheduler(detector, frames_skip=1)

    assert scheduler.tick(_frame(), FULL)
    assert scheduler.state is ScanState.SCANNING
    assert not any(scheduler.tick(_frame(), FULL) for _ in range(10))

    detector.gate.set()
    assert scheduler.wait_idle(5.0)
    assert len(detector.grays) == 1
    assert scheduler.tick(_frame(), FULL)


def test_states_alternate(make_scheduler):
    """Test that state transitions strictly alternate."""
    scheduler = make_scheduler(GatedDetector(), frames_skip=1)
    seen = []
    scheduler.add_listener(seen.append)

    for _ in range(3):
        assert scheduler.tick(_frame(), FULL)
        assert scheduler.wait_idle(5.0)

    assert seen == [ScanState.SCANNING, ScanState.IDLE] * 3


def test_latest_keeps_previous_result_while_scanning(make_scheduler):
    """Test the update loop keeps seeing the last completed result."""
    detector = GatedDetector(result=np.array([[1.0, 1.0], [2.0, 2.0]], dtype=np.float32))
    scheduler = make_scheduler(detector, frames_skip=1)

    assert scheduler.latest().count == 0
    assert scheduler.latest().cycle == 0

    scheduler.tick(_frame(), FULL)
    assert scheduler.wait_idle(5.0)
    first = scheduler.latest()
    assert first.count == 2
    assert first.cycle == 1

    detector.gate.clear()
    scheduler.tick(_frame(), FULL)
    assert scheduler.latest() is first

    detector.gate.set()
    assert scheduler.wait_idle(5.0)
    assert scheduler.latest().cycle == 2


def test_result_points_are_read_only(make_scheduler):
    """Test the published buffer cannot be mutated by the reader."""
    detector = GatedDetector(result=np.array([[1.0, 1.0]], dtype=np.float32))
    scheduler = make_scheduler(detector, frames_skip=1)

    scheduler.tick(_frame(), FULL)
    assert scheduler.wait_idle(5.0)

    with pytest.raises(ValueError):
        scheduler.latest().points[0, 0] = 0.0


def test_low_yield_lowers_threshold(make_scheduler):
    """Test that an empty detection lowers the threshold by one step."""
    scheduler = make_scheduler(GatedDetector(), frames_skip=1)
    assert scheduler.threshold == 82

    scheduler.tick(_frame(), FULL)
    assert scheduler.wait_idle(5.0)

    assert scheduler.threshold == 79


def test_unavailable_detector_keeps_threshold(make_scheduler):
    """Test that 'unavailable' does not adapt the threshold."""
    scheduler = make_scheduler(NoneDetector(), frames_skip=1)

    scheduler.tick(_frame(), FULL)
    assert scheduler.wait_idle(5.0)

    assert scheduler.threshold == 82
    assert scheduler.latest().count == 0


def test_empty_region_not_dispatched(make_scheduler):
    """Test that an empty region skips the cycle but keeps counting ticks."""
    detector = GatedDetector()
    scheduler = make_scheduler(detector, frames_skip=2)
    calls = []

    def frame_source():
        calls.append(1)
        return _frame()

    assert not scheduler.tick(frame_source, EMPTY)
    assert not scheduler.tick(frame_source, EMPTY)
    assert scheduler.state is ScanState.IDLE
    assert calls == []

    assert scheduler.tick(frame_source, FULL)
    assert calls == [1]
    assert scheduler.wait_idle(5.0)


def test_frame_source_called_only_on_dispatch(make_scheduler):
    """Test that the frame provider is not invoked on skipped ticks."""
    scheduler = make_scheduler(GatedDetector(), frames_skip=4)
    calls = []

    def frame_source():
        calls.append(1)
        return _frame()

    for _ in range(8):
        scheduler.tick(frame_source, FULL)
        scheduler.wait_idle(5.0)

    assert len(calls) == 2


def test_worker_error_keeps_previous_result(make_scheduler):
    """Test that a failing cycle is logged and the scheduler recovers."""
    detector = GatedDetector(result=np.array([[1.0, 1.0]], dtype=np.float32))
    scheduler = make_scheduler(detector, frames_skip=1)

    scheduler.tick(_frame(), FULL)
    assert scheduler.wait_idle(5.0)
    threshold = scheduler.threshold

    detector.error = RuntimeError("boom")
    scheduler.tick(_frame(), FULL)
    assert scheduler.wait_idle(5.0)

    assert scheduler.state is ScanState.IDLE
    assert scheduler.latest().cycle == 1
    assert scheduler.threshold == threshold
    assert scheduler.running


def test_frame_snapshot_is_isolated(make_scheduler):
    """Test that mutating the camera frame after dispatch is not seen."""
    detector = GatedDetector()
    scheduler = make_scheduler(detector, frames_skip=1)
    frame = _frame()

    scheduler.tick(frame, FULL)
    frame[...] = 255
    assert scheduler.wait_idle(5.0)

    assert detector.grays[0].max() == 0


def test_bottom_up_frames_are_flipped(make_scheduler):
    """Test that bottom-left origin frames are turned top-down."""
    detector = GatedDetector()
    scheduler = make_scheduler(detector, frames_skip=1, flip_frames=True)
    frame = _frame()
    frame[0] = 255

    scheduler.tick(frame, FULL)
    assert scheduler.wait_idle(5.0)

    gray = detector.grays[0]
    assert np.all(gray[-1] == 255)
    assert np.all(gray[0] == 0)


def test_close_is_idempotent(make_scheduler):
    """Test that closing twice is harmless."""
    scheduler = make_scheduler(GatedDetector())
    scheduler.close(timeout=5.0)
    scheduler.close(timeout=5.0)
    assert not scheduler.running


def test_failing_listener_does_not_kill_worker(make_scheduler):
    """Test that a raising state listener is logged and scanning goes on."""
    scheduler = make_scheduler(GatedDetector(), frames_skip=1)

    def listener(state):
        if state is ScanState.IDLE:
            raise RuntimeError("listener failure")

    scheduler.add_listener(listener)

    assert scheduler.tick(_frame(), FULL)
    assert scheduler.wait_idle(5.0)
    assert scheduler.running
    assert scheduler.tick(_frame(), FULL)
    assert scheduler.wait_idle(5.0)
    assert scheduler.latest().cycle == 2


def test_tick_after_worker_death(make_scheduler):
    """Test that a dead worker is reported as such, not as 'not started'."""
    scheduler = make_scheduler(GatedDetector(), frames_skip=1)
    worker = scheduler._worker
    with scheduler._lock:
        scheduler._stopping = True
        scheduler._wakeup.notify_all()
    worker.join(5.0)

    with pytest.raises(RuntimeError, match="no longer running"):
        scheduler.tick(_frame(), FULL)
