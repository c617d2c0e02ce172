"""
Region-of-interest normalization.

Responsibility:
    Turn a requested normalized rectangle into sensor-pixel bounds that
    are guaranteed to lie inside the frame, honoring the platform axis
    rules. An empty result means "nothing to scan this cycle".

Non-goals:
    - No pixel access (see grayscale).
    - No display-space mapping (see mapping).
"""

import math
from dataclasses import dataclass
from typing import Optional

from dotscan.platform import Platform


@dataclass(frozen=True, slots=True)
class RegionOfInterest:
    """Area to scan, in normalized [0, 1] x [0, 1] camera coordinates.

    Values outside the unit square are accepted and clipped during
    normalization; non-finite values are rejected.
    """

    x: float
    y: float
    width: float
    height: float

    def __post_init__(self) -> None:
        for name in ("x", "y", "width", "height"):
            value = getattr(self, name)
            if not math.isfinite(value):
                raise ValueError(
                    f"RegionOfInterest.{name} must be finite, got {value}."
                )


@dataclass(frozen=True, slots=True)
class PixelBounds:
    """Normalized region scaled to sensor pixels.

    The float values are kept as-is because the coordinate mapper uses
    them as offsets; the integer accessors truncate like a pixel index.
    """

    x: float
    y: float
    width: float
    height: float

    @property
    def col(self) -> int:
        return int(self.x)

    @property
    def row(self) -> int:
        return int(self.y)

    @property
    def cols(self) -> int:
        return int(self.width)

    @property
    def rows(self) -> int:
        return int(self.height)


def _clamp01(value: float) -> float:
    return min(max(value, 0.0), 1.0)


def clip_region(roi: RegionOfInterest, platform: Platform) -> Optional[RegionOfInterest]:
    """Clip a region to the unit square in sensor axes.

    On desktop the sensor is rotated by 90 degrees relative to what it
    reports, so x/y and width/height are swapped before clamping.
    Overflow is always trimmed from width/height, never from x/y.

    Returns:
        The clipped region, or None if it is empty.
    """
    if platform is Platform.DESKTOP:
        x, y, width, height = roi.y, roi.x, roi.height, roi.width
    else:
        x, y, width, height = roi.x, roi.y, roi.width, roi.height

    x = _clamp01(x)
    y = _clamp01(y)
    width = _clamp01(width)
    height = _clamp01(height)

    if x + width > 1.0:
        width = 1.0 - x
    if y + height > 1.0:
        height = 1.0 - y

    if width <= 0.0 or height <= 0.0:
        return None

    return RegionOfInterest(x=x, y=y, width=width, height=height)


def normalize_frame_area(
    roi: RegionOfInterest,
    sensor_width: int,
    sensor_height: int,
    platform: Platform,
) -> Optional[PixelBounds]:
    """Convert a normalized region into sensor-pixel bounds.

    Args:
        roi: Requested region, normalized.
        sensor_width: Sensor width in pixels.
        sensor_height: Sensor height in pixels.
        platform: Platform class (drives the axis swap).

    Returns:
        PixelBounds inside the sensor frame, or None if the region
        collapses to nothing after clipping.
    """
    clipped = clip_region(roi, platform)
    if clipped is None:
        return None

    return PixelBounds(
        x=clipped.x * float(sensor_width),
        y=clipped.y * float(sensor_height),
        width=clipped.width * float(sensor_width),
        height=clipped.height * float(sensor_height),
    )
