"""
Grayscale extraction for the point detector.

Responsibility:
    Cut the scanned rectangle out of a color frame and average its
    channels into a single-channel luma buffer.

Hard-coded:
    - Luma is the plain channel average floor((c0 + c1 + c2) / 3), so
      channel order (RGB or BGR) does not matter.
    - A fourth (alpha) channel is ignored.
    - Frames are addressed top-left origin, row-major.
"""

from typing import Optional

import numpy as np

from dotscan.region import PixelBounds


def to_grayscale(frame: Optional[np.ndarray], bounds: PixelBounds) -> Optional[np.ndarray]:
    """Extract a grayscale buffer over a sub-rectangle of a color frame.

    Pixel i of the output reads frame[row + i // cols, col + i % cols].

    Args:
        frame: Color frame as an (H, W, C) array with C >= 3, or None.
        bounds: Pixel bounds inside the frame.

    Returns:
        A (rows, cols) uint8 array, or None if the frame is absent.

    Raises:
        ValueError: If the frame is not a 3-channel (or more) image.
    """
    if frame is None:
        return None

    if frame.ndim != 3 or frame.shape[2] < 3:
        raise ValueError(
            f"Expected a color frame (H, W, C>=3), got shape {frame.shape}."
        )

    row, col = bounds.row, bounds.col
    area = frame[row:row + bounds.rows, col:col + bounds.cols, :3]

    # uint16 holds 3 * 255 without overflow
    total = area.astype(np.uint16).sum(axis=2)
    return (total // 3).astype(np.uint8)


def flip_vertically(frame: np.ndarray) -> np.ndarray:
    """Return a top-left-origin copy of a bottom-up frame."""
    return np.ascontiguousarray(frame[::-1])
