"""
Projection matrix synthesis from camera intrinsics.

Responsibility:
    Build the asymmetric (off-axis) perspective matrix that makes the
    rendering camera's frustum match the physical camera's field of
    view, for the current orientation and on-screen camera ratio, and
    apply it to the rendering camera.

Matrix convention:
    Returned as a (4, 4) numpy array indexed m[row, col], OpenGL clip
    space (camera looks down -z). as_gl_array() gives the 16
    column-major floats a GL uniform expects.

    m00 = 2 px / width        m02 = 2 u0 / width - 1
    m11 = 2 py / height       m12 = 2 v0 / height - 1
    m22 = -(far + near) / (far - near)
    m23 = -2 far near / (far - near)
    m32 = -1

Failure behavior:
    Degenerate inputs give the zero matrix, which apply_projection()
    refuses to assign.
"""

import logging
import math
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

import numpy as np

from dotscan.platform import (
    DeviceProfile,
    IntrinsicParams,
    Orientation,
    intrinsics_for,
    render_orientation,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FrustumLayout:
    """How intrinsics map onto the screen axes for one table entry.

    Attributes:
        transposed: Sensor x runs along the screen's vertical axis, so
                    focal lengths, principal point and extents swap.
        mirror_u: Principal point measured from the far edge horizontally.
        mirror_v: Principal point measured from the far edge vertically.
    """

    transposed: bool
    mirror_u: bool
    mirror_v: bool


# Keyed by (sensor is taller than wide, orientation).
FRUSTUM_LAYOUTS: Dict[Tuple[bool, Orientation], FrustumLayout] = {
    (True, Orientation.PORTRAIT): FrustumLayout(False, False, False),
    (True, Orientation.PORTRAIT_UPSIDE_DOWN): FrustumLayout(False, True, True),
    (True, Orientation.LANDSCAPE_LEFT): FrustumLayout(True, False, False),
    (True, Orientation.LANDSCAPE_RIGHT): FrustumLayout(True, True, True),
    (False, Orientation.PORTRAIT): FrustumLayout(True, False, False),
    (False, Orientation.PORTRAIT_UPSIDE_DOWN): FrustumLayout(True, True, True),
    (False, Orientation.LANDSCAPE_LEFT): FrustumLayout(False, True, False),
    (False, Orientation.LANDSCAPE_RIGHT): FrustumLayout(False, False, True),
}


@dataclass(frozen=True)
class FrustumParams:
    """Focal lengths, principal point and extent on screen axes, in pixels."""

    px: float
    py: float
    u0: float
    v0: float
    width: float
    height: float


def frustum_params(
    orientation: Orientation,
    sensor_width: int,
    sensor_height: int,
    width_ratio: float,
    height_ratio: float,
    intrinsics: IntrinsicParams,
) -> FrustumParams:
    """Resolve the table entry and derive the frustum parameters.

    The on-screen camera ratio is applied to the principal point and the
    extents; which ratio goes with which screen axis depends on whether
    the sensor is tall or wide.
    """
    tall = sensor_width < sensor_height
    layout = FRUSTUM_LAYOUTS[(tall, orientation)]

    if layout.transposed:
        pu, pv = intrinsics.fy, intrinsics.fx
        cu, cv = intrinsics.cy, intrinsics.cx
        du, dv = float(sensor_height), float(sensor_width)
    else:
        pu, pv = intrinsics.fx, intrinsics.fy
        cu, cv = intrinsics.cx, intrinsics.cy
        du, dv = float(sensor_width), float(sensor_height)

    ru, rv = (height_ratio, width_ratio) if tall else (width_ratio, height_ratio)

    u0 = (du - cu if layout.mirror_u else cu) * ru
    v0 = (dv - cv if layout.mirror_v else cv) * rv

    return FrustumParams(px=pu, py=pv, u0=u0, v0=v0, width=du * ru, height=dv * rv)


def build_projection_matrix(
    orientation: Orientation,
    near: float,
    far: float,
    sensor_width: int,
    sensor_height: int,
    width_ratio: float,
    height_ratio: float,
    intrinsics: IntrinsicParams,
) -> np.ndarray:
    """Build the off-axis perspective matrix.

    Args:
        orientation: Screen orientation used for rendering.
        near: Near clip distance.
        far: Far clip distance.
        sensor_width: Camera image width in pixels.
        sensor_height: Camera image height in pixels.
        width_ratio: Horizontal on-screen camera ratio.
        height_ratio: Vertical on-screen camera ratio.
        intrinsics: Camera intrinsic parameters.

    Returns:
        A (4, 4) float64 matrix, or the zero matrix if the inputs are
        degenerate.
    """
    matrix = np.zeros((4, 4), dtype=np.float64)

    params = frustum_params(
        orientation, sensor_width, sensor_height, width_ratio, height_ratio, intrinsics,
    )
    values = (near, far, params.width, params.height, params.u0, params.v0)
    if params.width <= 0 or params.height <= 0 or far == near or not all(
        math.isfinite(v) for v in values
    ):
        logger.warning(
            "Degenerate projection (width=%s, height=%s, near=%s, far=%s).",
            params.width, params.height, near, far,
        )
        return matrix

    matrix[0, 0] = 2.0 * params.px / params.width
    matrix[0, 2] = 2.0 * (params.u0 / params.width) - 1.0
    matrix[1, 1] = 2.0 * params.py / params.height
    matrix[1, 2] = 2.0 * (params.v0 / params.height) - 1.0
    matrix[2, 2] = -(far + near) / (far - near)
    matrix[2, 3] = -(2.0 * far * near) / (far - near)
    matrix[3, 2] = -1.0
    return matrix


def as_gl_array(matrix: np.ndarray) -> List[float]:
    """Flatten a (4, 4) matrix into 16 column-major floats."""
    return [float(v) for v in np.asarray(matrix).T.ravel()]


@dataclass
class RenderCamera:
    """Rendering camera receiving the projection matrix."""

    near_clip: float = 0.3
    far_clip: float = 1000.0
    projection_matrix: Optional[np.ndarray] = None


def apply_projection(camera: RenderCamera, matrix: np.ndarray) -> bool:
    """Assign a projection matrix unless it is the zero matrix.

    Returns:
        True if the camera was updated.
    """
    if not np.any(matrix):
        logger.warning("Zero projection matrix, rendering camera left unchanged.")
        return False

    camera.projection_matrix = np.array(matrix, dtype=np.float64, copy=True)
    return True


def update_projection_matrix(
    camera: RenderCamera,
    device: DeviceProfile,
    orientation: Orientation,
    sensor_width: int,
    sensor_height: int,
    screen_camera_ratio: Tuple[float, float],
    intrinsics: Optional[IntrinsicParams] = None,
) -> bool:
    """Rebuild and apply the projection for the current screen state.

    Desktop renders as landscape-left whatever the orientation is.

    Returns:
        True if the camera received a new matrix.
    """
    if intrinsics is None:
        intrinsics = intrinsics_for(device)

    matrix = build_projection_matrix(
        render_orientation(device, orientation),
        camera.near_clip,
        camera.far_clip,
        sensor_width,
        sensor_height,
        screen_camera_ratio[0],
        screen_camera_ratio[1],
        intrinsics,
    )
    return apply_projection(camera, matrix)
