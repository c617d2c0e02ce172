"""
Scanning line sweep.

Responsibility:
    Move a horizontal scanning line up and down the display, derive the
    band of the frame to scan around it, and fade dots according to
    their distance from the line: dots the line has not reached yet are
    hidden, dots it has just swept are brightest and fade out behind it.

Display space follows mapping: normalized, y pointing up. The line
starts at the top (position 1.0).
"""

from typing import Optional

import numpy as np

from dotscan.region import RegionOfInterest


def ping_pong(t: float, length: float) -> float:
    """Bounce t back and forth between 0 and length."""
    t = t % (2.0 * length)
    return 2.0 * length - t if t > length else t


class ScanLine:
    """Ping-pong scanning line.

    Args:
        area_to_scan: Fraction of the frame scanned on each side of the line.
        sweep_period: Seconds for one top-to-bottom crossing.
        max_alpha: Opacity of a dot right on the line.
    """

    def __init__(
        self,
        area_to_scan: float = 0.2,
        sweep_period: float = 5.0,
        max_alpha: float = 0.5,
    ) -> None:
        self._area = area_to_scan
        self._period = sweep_period
        self._max_alpha = max_alpha
        self.reset()

    def reset(self) -> None:
        """Put the line back at the top of the screen."""
        self._timer = 0.0
        self._position = 1.0
        self._going_down = True

    @property
    def position(self) -> float:
        return self._position

    @property
    def going_down(self) -> bool:
        return self._going_down

    def advance(self, dt: float) -> float:
        """Move the line by dt seconds and return its new position."""
        self._timer += dt
        new_position = ping_pong(self._period + self._timer, self._period) / self._period
        self._going_down = not (self._position < new_position)
        self._position = new_position
        return new_position

    def region(self) -> RegionOfInterest:
        """Band of the camera frame to scan around the line."""
        x = (1.0 - self._position) - self._area
        width = self._area * 2.0
        if x + width > 1.0:
            width = 1.0 - x
        elif x < 0.0:
            width += x
            x = 0.0
        return RegionOfInterest(x=x, y=0.0, width=width, height=1.0)

    def dot_alpha(self, points: Optional[np.ndarray]) -> np.ndarray:
        """Opacity of each dot given the current line position.

        Args:
            points: (N, 2) display points.

        Returns:
            (N,) float array in [0, max_alpha].
        """
        if points is None or len(points) == 0:
            return np.empty(0, dtype=np.float64)

        y = np.asarray(points, dtype=np.float64)[:, 1]
        if self._going_down:
            distance = y - self._position
        else:
            distance = self._position - y

        alpha = np.clip(1.0 - distance / self._area, 0.0, 1.0) * self._max_alpha
        alpha[distance < 0.0] = 0.0
        return alpha
