"""
Platform, device profile and orientation tags.

Responsibility:
    Resolve once, at startup, everything that depends on the device the
    scanner runs on: whether sensor axes line up with the display
    (handheld) or are rotated by 90 degrees (desktop), the screen
    orientation, and the fixed camera intrinsics.

Non-goals:
    - No calibration. Intrinsic parameters come from a fixed table.
    - No detection of the running platform. The caller chooses it.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Sequence, Union

logger = logging.getLogger(__name__)


class Platform(Enum):
    """Platform class driving the sensor/display axis rules."""

    HANDHELD = "handheld"
    DESKTOP = "desktop"


class DeviceProfile(Enum):
    """Device the scanner targets."""

    IPHONE = "iphone"
    ANDROID = "android"
    DESKTOP = "desktop"

    @property
    def platform(self) -> Platform:
        if self is DeviceProfile.DESKTOP:
            return Platform.DESKTOP
        return Platform.HANDHELD

    @property
    def mirrored(self) -> bool:
        """True when the background plane is mirrored on x (front-facing iOS feed)."""
        return self is DeviceProfile.IPHONE

    @classmethod
    def parse(cls, value: Union[str, "DeviceProfile"]) -> "DeviceProfile":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(
                f"Unknown device profile: '{value}'. "
                f"Must be one of {[d.value for d in cls]}."
            ) from None


class Orientation(Enum):
    """Screen orientation. Values follow the usual mobile engine codes."""

    PORTRAIT = 1
    PORTRAIT_UPSIDE_DOWN = 2
    LANDSCAPE_LEFT = 3
    LANDSCAPE_RIGHT = 4

    @property
    def is_portrait(self) -> bool:
        return self in (Orientation.PORTRAIT, Orientation.PORTRAIT_UPSIDE_DOWN)

    @classmethod
    def parse(cls, value: Union[str, int, "Orientation", None]) -> "Orientation":
        """Parse a name or numeric code.

        Anything that is not one of the four known orientations falls back
        to PORTRAIT so the projection stays defined.
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, int) and not isinstance(value, bool):
            for member in cls:
                if member.value == value:
                    return member
        elif isinstance(value, str):
            key = value.strip().upper()
            if key in cls.__members__:
                return cls[key]
            if key.isdigit():
                return cls.parse(int(key))

        logger.warning("Unknown orientation %r, falling back to PORTRAIT.", value)
        return cls.PORTRAIT


def render_orientation(device: DeviceProfile, orientation: Orientation) -> Orientation:
    """Orientation actually used for rendering.

    Desktop sensors are reported rotated, so they always render as
    LANDSCAPE_LEFT whatever the window orientation is.
    """
    if device.platform is Platform.DESKTOP:
        return Orientation.LANDSCAPE_LEFT
    return orientation


@dataclass(frozen=True, slots=True)
class IntrinsicParams:
    """Fixed camera calibration.

    Attributes:
        fx: Focal length along x, in pixels.
        fy: Focal length along y, in pixels.
        cx: Principal point x, in pixels.
        cy: Principal point y, in pixels.
    """

    fx: float
    fy: float
    cx: float
    cy: float

    @classmethod
    def from_matrix(cls, matrix: Sequence[float]) -> "IntrinsicParams":
        """Build from a row-major 3x3 camera matrix (9 values)."""
        values = [float(v) for v in matrix]
        if len(values) != 9:
            raise ValueError(
                f"Camera matrix must have 9 values, got {len(values)}."
            )
        return cls(fx=values[0], fy=values[4], cx=values[2], cy=values[5])


# Per-device calibration. iPad calibration matches the Android row.
_INTRINSICS: Dict[DeviceProfile, IntrinsicParams] = {
    DeviceProfile.IPHONE: IntrinsicParams.from_matrix((
        617.750, 0.0, 317.206,
        0.0, 618.238, 244.322,
        0.0, 0.0, 1.0,
    )),
    DeviceProfile.ANDROID: IntrinsicParams.from_matrix((
        785.39254, 0.0, 318.72601,
        0.0, 783.77783, 225.41132,
        0.0, 0.0, 1.0,
    )),
    DeviceProfile.DESKTOP: IntrinsicParams.from_matrix((
        785.39254, 0.0, 318.72601,
        0.0, 783.77783, 225.41132,
        0.0, 0.0, 1.0,
    )),
}


def intrinsics_for(device: DeviceProfile) -> IntrinsicParams:
    """Return the intrinsic parameters for a device profile."""
    return _INTRINSICS[device]
