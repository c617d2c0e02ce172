"""
Tests for the adaptive threshold controller.
"""

import numpy as np

from dotscan.config import ThresholdConfig
from dotscan.threshold import ThresholdController


def test_default_value():
    """Test the controller starts at the configured default."""
    assert ThresholdController().value == 82


def test_low_yield_lowers_threshold():
    """Test fewer than 100 points lowers the threshold by 3."""
    controller = ThresholdController()
    assert controller.update(50) == 79


def test_high_yield_raises_threshold():
    """Test more than 500 points raises the threshold by 3."""
    controller = ThresholdController()
    assert controller.update(600) == 85


def test_band_leaves_threshold_unchanged():
    """Test yields inside [100, 500] leave the threshold alone."""
    controller = ThresholdController()
    for count in (100, 300, 500):
        assert controller.update(count) == 82


def test_none_leaves_threshold_unchanged():
    """Test an unavailable detector does not move the threshold."""
    controller = ThresholdController()
    assert controller.update(None) == 82


def test_strictly_decreases_until_floor():
    """Test consecutive low-yield cycles walk the threshold down to 1."""
    controller = ThresholdController()
    previous = controller.value

    for _ in range(40):
        value = controller.update(0)
        if previous > 1:
            assert value == max(previous - 3, 1)
            assert value < previous
        else:
            assert value == 1
        previous = value

    assert controller.value == 1


def test_clamped_at_ceiling():
    """Test the threshold never exceeds 255."""
    controller = ThresholdController(ThresholdConfig(initial=254))
    assert controller.update(1000) == 255
    assert controller.update(1000) == 255


def test_random_yields_stay_in_range():
    """Test the threshold stays in [1, 255] for any yield sequence."""
    rng = np.random.default_rng(7)
    controller = ThresholdController()

    for count in rng.integers(0, 2000, size=5000):
        value = controller.update(int(count))
        assert 1 <= value <= 255


def test_reset():
    """Test reset returns to the initial value."""
    controller = ThresholdController()
    controller.update(0)
    controller.reset()
    assert controller.value == 82
