"""
Visualization for the dot scanner.

Responsibility:
    Draw the scan line and the faded dots of a ScanFrame onto a display
    frame. Pure rendering: an annotated copy is returned and no I/O is
    performed (show_frame aside).

Non-goals:
    - No file writing.
    - No detection or scheduling logic.
"""

import cv2
import numpy as np

from dotscan.config import VisualizationConfig
from dotscan.platform import Platform
from dotscan.scanner import ScanFrame

_WINDOW_NAME = "Dot Scanner"


def to_display_frame(frame: np.ndarray, platform: Platform) -> np.ndarray:
    """Orient a camera frame the way the display shows it.

    Handheld displays are rotated a quarter turn relative to the sensor.
    """
    if platform is Platform.HANDHELD:
        return cv2.rotate(frame, cv2.ROTATE_90_CLOCKWISE)
    return frame


def draw_scan(
    frame: np.ndarray,
    scan: ScanFrame,
    config: VisualizationConfig,
) -> np.ndarray:
    """Draw the scan line and the dots onto a display frame.

    Args:
        frame: Display-oriented BGR image (not modified — a copy is returned).
        scan: State of the current tick.
        config: Visualization parameters.

    Returns:
        A new BGR numpy array.
    """
    h, w = frame.shape[:2]

    # Per-pixel opacity of the dot layer. Drawn faintest first so
    # overlapping dots keep the strongest opacity.
    alpha_map = np.zeros((h, w), dtype=np.float32)
    for i in np.argsort(scan.alpha, kind="stable"):
        alpha = float(scan.alpha[i])
        if alpha <= 0.0:
            continue
        x, y = scan.points[i]
        center = (int(round(x * w)), int(round((1.0 - y) * h)))
        cv2.circle(alpha_map, center, config.dot_radius, alpha, thickness=cv2.FILLED)

    color = np.array(config.dot_color, dtype=np.float32)
    weight = alpha_map[:, :, None]
    annotated = (frame.astype(np.float32) * (1.0 - weight) + color * weight)
    annotated = annotated.astype(np.uint8)

    line_y = int(round((1.0 - scan.line_position) * (h - 1)))
    cv2.line(
        annotated,
        (0, line_y),
        (w - 1, line_y),
        color=config.line_color,
        thickness=config.line_thickness,
    )
    return annotated


def show_frame(annotated: np.ndarray) -> int:
    """Show an annotated frame in a window and return the key pressed.

    Returns:
        The key code (int) pressed during waitKey, or -1 if no key.
    """
    cv2.imshow(_WINDOW_NAME, annotated)
    return cv2.waitKey(1) & 0xFF
