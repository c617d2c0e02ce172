"""
DotScanner — the single public API for scanning feedback.

This module wires the scan line, the scheduler, the background
alignment and the projection builder together. It is the object an
application owns for the lifetime of the camera session.

Public contract:
    scanner.start(sensor_width, sensor_height, screen_size)
    scanner.update(frame_or_provider, dt) -> ScanFrame     # every tick
    scanner.set_orientation(orientation, screen_size)      # on rotation
    scanner.close()

Constraints:
    - update() and set_orientation() must be called from one thread
      (the update loop). Detection runs on the scheduler's worker.
    - update() never blocks on detection.

Non-goals:
    - No camera capture, no marker recognition, no drawing.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

from dotscan.alignment import BackgroundAlignment, compute_alignment
from dotscan.config import AppConfig, load_config
from dotscan.detector import PointDetector
from dotscan.dot_finder import DotFinder
from dotscan.platform import DeviceProfile, Orientation
from dotscan.projection import RenderCamera, update_projection_matrix
from dotscan.scan_line import ScanLine
from dotscan.scheduler import FrameSource, ScanScheduler
from dotscan.threshold import ThresholdController

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScanFrame:
    """What the update loop renders on one tick.

    Attributes:
        points: (N, 2) display points from the last completed cycle.
        alpha: (N,) opacity of each point for the current line position.
        line_position: Scan line position in display space (1 = top).
        going_down: Direction of the scan line.
        cycle: Cycle that produced the points (0 = none yet).
        dispatched: Whether a new cycle was dispatched on this tick.
    """

    points: np.ndarray
    alpha: np.ndarray
    line_position: float
    going_down: bool
    cycle: int
    dispatched: bool


class DotScanner:
    """Scan-line dot feedback plus rendering camera alignment.

    Usage:
        scanner = DotScanner()                      # Uses safe defaults
        scanner.start(640, 480)
        frame_state = scanner.update(frame, dt)     # every tick
        scanner.close()

    Or as a context manager once the camera size is known:
        with DotScanner(config).start(640, 480) as scanner:
            ...
    """

    def __init__(
        self,
        config: Optional[AppConfig] = None,
        detector: Optional[PointDetector] = None,
    ) -> None:
        """Initialize the scanner. Nothing runs until start().

        Args:
            config: Application configuration. If None, safe defaults
                    are used (no config file required).
            detector: Point detector. Defaults to OpenCV FAST.
        """
        if config is None:
            config = load_config()

        self._config = config
        self._detector = detector
        self._device = DeviceProfile.parse(config.platform.device)
        self._orientation = Orientation.parse(config.platform.orientation)
        self._scan_line = ScanLine(
            area_to_scan=config.scan.area_to_scan,
            sweep_period=config.scan.sweep_period,
            max_alpha=config.visualization.max_alpha,
        )
        self._camera = RenderCamera(
            near_clip=config.camera.near_clip,
            far_clip=config.camera.far_clip,
        )
        self._scheduler: Optional[ScanScheduler] = None
        self._sensor_size: Optional[Tuple[int, int]] = None
        self._screen_size: Optional[Tuple[int, int]] = None
        self._alignment: Optional[BackgroundAlignment] = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(
        self,
        sensor_width: int,
        sensor_height: int,
        screen_size: Optional[Tuple[int, int]] = None,
    ) -> "DotScanner":
        """Start scanning once the camera delivers frames.

        Args:
            sensor_width: Actual camera image width.
            sensor_height: Actual camera image height.
            screen_size: (width, height) of the display. Defaults to the
                         configured display size, else the sensor size.

        Raises:
            ValueError: If the camera or screen dimensions are not positive.
            RuntimeError: If the scanner is already started.
        """
        if self._scheduler is not None:
            raise RuntimeError("DotScanner already started.")

        finder = DotFinder(
            sensor_width,
            sensor_height,
            self._device.platform,
            detector=self._detector,
            clamp_points=self._config.scan.clamp_points,
        )
        self._sensor_size = finder.sensor_size
        if screen_size is None:
            screen_size = (
                self._config.display.width or sensor_width,
                self._config.display.height or sensor_height,
            )

        self._scheduler = ScanScheduler(
            finder,
            frames_skip=self._config.scan.frames_skip,
            max_points=self._config.scan.max_points,
            threshold=ThresholdController(self._config.threshold),
            screen_size=screen_size,
            flip_frames=self._config.camera.frame_origin == "bottom_left",
        )
        self._scheduler.start()
        self._scan_line.reset()
        try:
            self._apply_screen(self._orientation, screen_size)
        except Exception:
            self._scheduler.close()
            self._scheduler = None
            self._screen_size = None
            self._alignment = None
            raise

        logger.info(
            "DotScanner started (device=%s, sensor=%dx%d, screen=%dx%d, focal=%.1fpx)",
            self._device.value, sensor_width, sensor_height, *screen_size,
            self.focal_length_in_pixels,
        )
        return self

    def close(self) -> None:
        """Stop the scheduler. The in-flight cycle, if any, completes first."""
        if self._scheduler is None:
            return
        self._scheduler.close()
        self._scheduler = None
        logger.info("DotScanner closed.")

    def __enter__(self) -> "DotScanner":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Update loop
    # ------------------------------------------------------------------

    def update(self, frame_source: FrameSource, dt: float) -> ScanFrame:
        """Advance one tick.

        Moves the scan line, reads the latest detection result and fades
        it against the line, then lets the scheduler dispatch a new
        cycle over the band around the line if it is time to.

        Args:
            frame_source: Current frame (H, W, C), or a callable returning it.
            dt: Seconds since the previous tick.

        Raises:
            RuntimeError: If called before start().
        """
        scheduler = self._require_started()

        self._scan_line.advance(dt)
        buffer = scheduler.latest()
        alpha = self._scan_line.dot_alpha(buffer.points)

        dispatched = scheduler.tick(frame_source, self._scan_line.region())

        return ScanFrame(
            points=buffer.points,
            alpha=alpha,
            line_position=self._scan_line.position,
            going_down=self._scan_line.going_down,
            cycle=buffer.cycle,
            dispatched=dispatched,
        )

    def set_orientation(
        self,
        orientation,
        screen_size: Tuple[int, int],
    ) -> bool:
        """Report the current screen state.

        Alignment and projection are only recomputed when the
        orientation or the screen size actually changed.

        Returns:
            True if they were recomputed.
        """
        self._require_started()
        orientation = Orientation.parse(orientation)
        screen_size = (int(screen_size[0]), int(screen_size[1]))
        if orientation is self._orientation and screen_size == self._screen_size:
            return False

        self._apply_screen(orientation, screen_size)
        logger.info(
            "Screen changed: orientation=%s, size=%dx%d",
            orientation.name, *screen_size,
        )
        return True

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def config(self) -> AppConfig:
        """Return the active configuration (read-only)."""
        return self._config

    @property
    def focal_length_in_pixels(self) -> float:
        """Focal length handed to the marker recognizer with the camera size."""
        return self._config.camera.focal_length_in_pixels

    @property
    def device(self) -> DeviceProfile:
        return self._device

    @property
    def orientation(self) -> Orientation:
        return self._orientation

    @property
    def camera(self) -> RenderCamera:
        return self._camera

    @property
    def alignment(self) -> Optional[BackgroundAlignment]:
        return self._alignment

    @property
    def scheduler(self) -> Optional[ScanScheduler]:
        return self._scheduler

    @property
    def scan_line(self) -> ScanLine:
        return self._scan_line

    @property
    def screen_size(self) -> Optional[Tuple[int, int]]:
        return self._screen_size

    # ------------------------------------------------------------------

    def _require_started(self) -> ScanScheduler:
        if self._scheduler is None:
            raise RuntimeError("DotScanner is not started. Call start() first.")
        return self._scheduler

    def _apply_screen(self, orientation: Orientation, screen_size: Tuple[int, int]) -> None:
        sensor_width, sensor_height = self._sensor_size
        self._orientation = orientation
        self._screen_size = (int(screen_size[0]), int(screen_size[1]))
        self._alignment = compute_alignment(
            self._device, orientation, self._screen_size, self._sensor_size,
        )
        self._scheduler.set_screen_size(self._screen_size)
        update_projection_matrix(
            self._camera,
            self._device,
            orientation,
            sensor_width,
            sensor_height,
            self._alignment.screen_camera_ratio,
        )
