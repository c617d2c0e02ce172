"""
Adaptive detection threshold.

Responsibility:
    Nudge the detector threshold after every completed cycle so the
    number of detected points stays in a usable band: fewer than
    low_yield points lowers it, more than high_yield raises it.

Hard-coded behavior:
    - Fixed-step controller, not a PID loop. It moves slowly on purpose
      so flickering yield does not make the dots jump around.
    - Bounds are 100 / 500 by default. Older notes mention a 100-300
      band; the implemented bounds are kept.

Thread-safety:
    None here. The scheduler only touches the controller under its
    result lock.
"""

import logging
from typing import Optional

from dotscan.config import ThresholdConfig

logger = logging.getLogger(__name__)


class ThresholdController:
    """Process-wide adaptive threshold, clamped to [minimum, maximum]."""

    def __init__(self, config: Optional[ThresholdConfig] = None) -> None:
        self._config = config or ThresholdConfig()
        self._value = self._clamp(self._config.initial)

    @property
    def value(self) -> int:
        return self._value

    def update(self, count: Optional[int]) -> int:
        """Adjust the threshold from one cycle's point count.

        Args:
            count: Number of points the detector returned, before any
                   capping. None (detector unavailable) leaves the
                   threshold unchanged.

        Returns:
            The new threshold.
        """
        if count is None:
            return self._value

        previous = self._value
        if count < self._config.low_yield:
            self._value -= self._config.step
        elif count > self._config.high_yield:
            self._value += self._config.step
        self._value = self._clamp(self._value)

        if self._value != previous:
            logger.debug("Threshold %d -> %d (yield=%d)", previous, self._value, count)
        return self._value

    def reset(self) -> None:
        self._value = self._clamp(self._config.initial)

    def _clamp(self, value: int) -> int:
        return int(min(max(value, self._config.minimum), self._config.maximum))
