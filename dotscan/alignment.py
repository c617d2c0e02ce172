"""
Background-plane alignment.

Responsibility:
    Work out how the live video plane is rotated and scaled on screen
    for a given orientation, and how much of the screen the camera
    image covers on each axis. That on-screen camera ratio is what the
    projection builder uses to keep the virtual camera aligned.

The video plane is a 2x2 quad scaled to (1, sensor_ratio) and rendered
by an orthographic camera; orthographic_size is chosen so the quad fits
the screen on its short side.
"""

import logging
from dataclasses import dataclass
from typing import Tuple

from dotscan.mapping import Size, aspect_ratios
from dotscan.platform import DeviceProfile, Orientation, render_orientation

logger = logging.getLogger(__name__)

_ROTATION_DEG = {
    Orientation.PORTRAIT: 0.0,
    Orientation.LANDSCAPE_LEFT: 90.0,
    Orientation.PORTRAIT_UPSIDE_DOWN: 180.0,
    Orientation.LANDSCAPE_RIGHT: 270.0,
}


@dataclass(frozen=True)
class BackgroundAlignment:
    """Transform of the video plane plus the on-screen camera ratio.

    Attributes:
        rotation_deg: Rotation of the plane around the view axis.
        scale: (x, y, z) local scale of the plane.
        orthographic_size: Half-height of the background camera view.
        screen_camera_ratio: (horizontal, vertical) share of the screen
                             covered by the camera image, each in (0, 1].
    """

    rotation_deg: float
    scale: Tuple[float, float, float]
    orthographic_size: float
    screen_camera_ratio: Tuple[float, float]


def compute_alignment(
    device: DeviceProfile,
    orientation: Orientation,
    screen_size: Size,
    sensor_size: Size,
) -> BackgroundAlignment:
    """Compute the background alignment for the current screen.

    Args:
        device: Device profile (desktop always aligns as landscape-left,
                iPhone mirrors the plane on x).
        orientation: Current screen orientation.
        screen_size: (width, height) of the screen.
        sensor_size: (width, height) of the camera image.

    Returns:
        The BackgroundAlignment.
    """
    ratios = aspect_ratios(screen_size, sensor_size)
    camera_ratio = ratios.sensor_ratio
    screen_ratio = ratios.screen_ratio
    wider_screen = screen_ratio > camera_ratio

    orientation = render_orientation(device, orientation)
    scale_x = -1.0 if device.mirrored else 1.0

    if orientation.is_portrait:
        if wider_screen:
            ratio = (camera_ratio / screen_ratio, 1.0)
            ortho = camera_ratio
        else:
            ratio = (1.0, 1.0)
            ortho = screen_ratio
    else:
        if wider_screen:
            ratio = (1.0, camera_ratio / screen_ratio)
            ortho = camera_ratio / screen_ratio
        else:
            ratio = (1.0, 1.0)
            ortho = 1.0

    alignment = BackgroundAlignment(
        rotation_deg=_ROTATION_DEG[orientation],
        scale=(scale_x, camera_ratio, 1.0),
        orthographic_size=ortho,
        screen_camera_ratio=ratio,
    )
    logger.debug("Background alignment for %s: %s", orientation.name, alignment)
    return alignment
