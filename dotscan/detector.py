"""
Point detector boundary.

Responsibility:
    Define the contract between the scanner and the interest-point
    detector, and provide the default implementation built on OpenCV's
    FAST corner detector.

Public contract:
    detector(gray, width, height, threshold) -> Optional[np.ndarray]

    The result is an (N, 2) float32 array of (x, y) pixel positions
    relative to the grayscale buffer, in detector order, or None when
    the detector is unavailable or failed. None is never an error for
    the caller: it counts as "zero points".

Non-goals:
    - No marker or code recognition.
    - No coordinate mapping.
"""

import logging
from typing import Optional, Protocol

import cv2
import numpy as np

logger = logging.getLogger(__name__)


class PointDetector(Protocol):
    """Callable returning candidate interest points from a luma buffer."""

    def __call__(
        self,
        gray: np.ndarray,
        width: int,
        height: int,
        threshold: int,
    ) -> Optional[np.ndarray]:
        ...


class FastPointDetector:
    """FAST corner detector via OpenCV.

    The underlying cv2 detector is created once and its threshold updated
    per call. Instances are not thread-safe; the scheduler guarantees a
    single call in flight.
    """

    def __init__(self, nonmax_suppression: bool = True) -> None:
        self._fast = cv2.FastFeatureDetector_create(
            threshold=10,
            nonmaxSuppression=nonmax_suppression,
        )
        logger.debug("FAST detector created (nonmax_suppression=%s)", nonmax_suppression)

    def __call__(
        self,
        gray: np.ndarray,
        width: int,
        height: int,
        threshold: int,
    ) -> Optional[np.ndarray]:
        if gray is None or gray.size == 0 or width <= 0 or height <= 0:
            return None

        image = np.ascontiguousarray(gray, dtype=np.uint8).reshape(height, width)

        try:
            self._fast.setThreshold(int(threshold))
            keypoints = self._fast.detect(image, None)
        except cv2.error as e:
            logger.warning("FAST detection failed, counting as zero points: %s", e)
            return None

        if not keypoints:
            return np.empty((0, 2), dtype=np.float32)

        return np.array([kp.pt for kp in keypoints], dtype=np.float32)
