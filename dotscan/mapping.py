"""
Coordinate mapping from detector output to display space.

Responsibility:
    Remap raw detector points (pixels relative to the scanned crop) into
    normalized display coordinates: undo the crop offset, apply the
    sensor/display orientation rule for the platform, then compensate
    for the sensor image being stretched onto a display with different
    proportions.

Display space:
    [0, 1] x [0, 1], y pointing up. Points are NOT clamped by default:
    near the crop edges, under a strong aspect mismatch, values can
    leave the unit square slightly.
"""

from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

from dotscan.platform import Platform
from dotscan.region import PixelBounds

Size = Tuple[int, int]


@dataclass(frozen=True, slots=True)
class AspectRatios:
    """Long-side / short-side ratios of the display and the sensor."""

    screen_ratio: float
    sensor_ratio: float

    @property
    def width_ratio(self) -> float:
        """Horizontal compensation factor, used when the screen is longer."""
        return self.screen_ratio / self.sensor_ratio

    @property
    def height_ratio(self) -> float:
        """Vertical compensation factor, used when the sensor is longer."""
        return self.sensor_ratio / self.screen_ratio


def long_short_ratio(size: Size) -> float:
    """max(w, h) / min(w, h) of a (width, height) pair."""
    width, height = size
    if width <= 0 or height <= 0:
        raise ValueError(f"Size must be positive, got {width}x{height}.")
    return max(width, height) / min(width, height)


def aspect_ratios(screen_size: Size, sensor_size: Size) -> AspectRatios:
    """Compute the display and sensor aspect ratios."""
    return AspectRatios(
        screen_ratio=long_short_ratio(screen_size),
        sensor_ratio=long_short_ratio(sensor_size),
    )


def to_display(
    points: np.ndarray,
    bounds: PixelBounds,
    sensor_size: Size,
    platform: Platform,
) -> np.ndarray:
    """Orientation remap: crop pixels → normalized display coordinates.

    Handheld displays are rotated relative to the sensor, so axes are
    swapped and inverted. Desktop only flips y.
    """
    sensor_width, sensor_height = sensor_size
    px = points[:, 0].astype(np.float64) + bounds.x
    py = points[:, 1].astype(np.float64) + bounds.y

    mapped = np.empty((len(points), 2), dtype=np.float64)
    if platform is Platform.HANDHELD:
        mapped[:, 0] = 1.0 - py / sensor_height
        mapped[:, 1] = 1.0 - px / sensor_width
    else:
        mapped[:, 0] = px / sensor_width
        mapped[:, 1] = 1.0 - py / sensor_height
    return mapped


def compensate_aspect(points: np.ndarray, ratios: AspectRatios) -> np.ndarray:
    """Scale points about the 0.5 midpoint on the stretched axis only.

    Equal ratios leave the points untouched.
    """
    result = np.array(points, dtype=np.float64, copy=True)
    if ratios.screen_ratio > ratios.sensor_ratio:
        result[:, 0] = 0.5 + (result[:, 0] - 0.5) * ratios.width_ratio
    elif ratios.screen_ratio < ratios.sensor_ratio:
        result[:, 1] = 0.5 + (result[:, 1] - 0.5) * ratios.height_ratio
    return result


def map_points(
    points: Optional[np.ndarray],
    bounds: PixelBounds,
    sensor_size: Size,
    screen_size: Size,
    platform: Platform,
    max_points: Optional[int] = None,
    clamp: bool = False,
) -> np.ndarray:
    """Map raw detector points into normalized display space.

    Args:
        points: (N, 2) array of (x, y) pixels relative to the crop, or None.
        bounds: Pixel bounds of the crop inside the sensor frame.
        sensor_size: (width, height) of the sensor.
        screen_size: (width, height) of the display.
        platform: Platform class (drives the orientation remap).
        max_points: Keep and map only the first max_points points.
        clamp: Clamp the result to [0, 1].

    Returns:
        An (M, 2) float64 array, M = min(N, max_points).
    """
    if points is None or len(points) == 0:
        return np.empty((0, 2), dtype=np.float64)

    points = np.asarray(points).reshape(-1, 2)
    if max_points is not None:
        points = points[:max_points]

    mapped = to_display(points, bounds, sensor_size, platform)
    mapped = compensate_aspect(mapped, aspect_ratios(screen_size, sensor_size))

    if clamp:
        np.clip(mapped, 0.0, 1.0, out=mapped)
    return mapped
