"""
One detection cycle.

Responsibility:
    Chain region normalization, grayscale extraction, the point detector
    and coordinate mapping for a single frame snapshot. This is the work
    a scan job runs on the background worker.

Non-goals:
    - No scheduling, locking or threshold adaptation (see scheduler).
    - No rendering.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

from dotscan.detector import FastPointDetector, PointDetector
from dotscan.grayscale import to_grayscale
from dotscan.mapping import map_points
from dotscan.platform import Platform
from dotscan.region import PixelBounds, RegionOfInterest, normalize_frame_area

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FindResult:
    """Outcome of one cycle.

    Attributes:
        points: (M, 2) mapped display points, at most max_points.
        raw_count: Detector yield before capping, or None when nothing
                   was detected (empty region, no frame, detector down).
    """

    points: np.ndarray
    raw_count: Optional[int]

    @property
    def count(self) -> int:
        return len(self.points)

    @classmethod
    def empty(cls) -> "FindResult":
        return cls(points=np.empty((0, 2), dtype=np.float64), raw_count=None)


class DotFinder:
    """Detects dots inside a region of a camera frame.

    Created once the camera dimensions are known; the sensor size is
    fixed for the lifetime of the instance.

    Usage:
        finder = DotFinder(640, 480, Platform.HANDHELD)
        result = finder.find_points(roi, frame, threshold=82,
                                    screen_size=(1080, 1920), max_points=500)
    """

    def __init__(
        self,
        sensor_width: int,
        sensor_height: int,
        platform: Platform,
        detector: Optional[PointDetector] = None,
        clamp_points: bool = False,
    ) -> None:
        """Initialize the finder.

        Raises:
            ValueError: If the camera dimensions are not positive.
        """
        if sensor_width <= 0 or sensor_height <= 0:
            raise ValueError(
                f"Camera dimensions must be positive, got {sensor_width}x{sensor_height}."
            )

        self._sensor_size = (int(sensor_width), int(sensor_height))
        self._platform = platform
        self._detector = detector if detector is not None else FastPointDetector()
        self._clamp_points = clamp_points

        logger.info(
            "DotFinder initialized (sensor=%dx%d, platform=%s)",
            sensor_width, sensor_height, platform.value,
        )

    @property
    def sensor_size(self) -> Tuple[int, int]:
        return self._sensor_size

    @property
    def platform(self) -> Platform:
        return self._platform

    def bounds_for(self, roi: RegionOfInterest) -> Optional[PixelBounds]:
        """Pixel bounds of a region for this sensor, or None if empty."""
        width, height = self._sensor_size
        return normalize_frame_area(roi, width, height, self._platform)

    def find_points(
        self,
        roi: RegionOfInterest,
        frame: Optional[np.ndarray],
        threshold: int,
        screen_size: Tuple[int, int],
        max_points: int,
    ) -> FindResult:
        """Run one detection cycle over a region of a frame.

        Args:
            roi: Region to scan, normalized.
            frame: Color frame snapshot (H, W, C), top-left origin.
            threshold: Detector threshold for this cycle.
            screen_size: (width, height) of the display.
            max_points: Maximum number of points kept.

        Returns:
            A FindResult. Never raises for empty regions, missing or
            mis-sized frames and an unavailable detector.
        """
        bounds = self.bounds_for(roi)
        if bounds is None:
            logger.debug("Empty region %s, nothing to scan.", roi)
            return FindResult.empty()

        if frame is not None and frame.shape[:2] != (self._sensor_size[1], self._sensor_size[0]):
            logger.warning(
                "Frame size %dx%d does not match the %dx%d sensor, nothing to scan.",
                frame.shape[1], frame.shape[0], *self._sensor_size,
            )
            return FindResult.empty()

        gray = to_grayscale(frame, bounds)
        if gray is None:
            logger.debug("No frame available, nothing to scan.")
            return FindResult.empty()

        raw = self._detector(gray, bounds.cols, bounds.rows, threshold)
        if raw is None:
            return FindResult.empty()

        raw = np.asarray(raw).reshape(-1, 2)
        points = map_points(
            raw,
            bounds,
            sensor_size=self._sensor_size,
            screen_size=screen_size,
            platform=self._platform,
            max_points=max_points,
            clamp=self._clamp_points,
        )
        return FindResult(points=points, raw_count=len(raw))
