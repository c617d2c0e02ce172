"""
Tests for the scanning line sweep.
"""

import numpy as np
import pytest

from dotscan.scan_line import ScanLine, ping_pong


@pytest.mark.parametrize(
    "t, expected",
    [(0.0, 0.0), (2.0, 2.0), (5.0, 5.0), (6.0, 4.0), (10.0, 0.0), (12.5, 2.5)],
)
def test_ping_pong(t, expected):
    """Test the bounce between 0 and length."""
    assert ping_pong(t, 5.0) == pytest.approx(expected)


def test_starts_at_top_going_down():
    """Test the initial line position."""
    line = ScanLine()
    assert line.position == 1.0
    assert line.going_down


def test_sweeps_down_then_up():
    """Test the line crosses the screen in one period and comes back."""
    line = ScanLine(sweep_period=5.0)

    assert line.advance(1.0) == pytest.approx(0.8)
    assert line.going_down

    line.advance(4.0)
    assert line.position == pytest.approx(0.0)

    assert line.advance(1.0) == pytest.approx(0.2)
    assert not line.going_down


@pytest.mark.parametrize(
    "dt, x, width",
    [
        (0.0, 0.0, 0.2),   # top: left overflow folded into width
        (2.5, 0.3, 0.4),   # middle
        (5.0, 0.8, 0.2),   # bottom: right overflow trimmed
    ],
)
def test_region_band(dt, x, width):
    """Test the scanned band follows the line and stays in the frame."""
    line = ScanLine(area_to_scan=0.2, sweep_period=5.0)
    line.advance(dt)

    roi = line.region()

    assert roi.x == pytest.approx(x)
    assert roi.width == pytest.approx(width)
    assert roi.y == 0.0
    assert roi.height == 1.0


def test_dot_alpha_going_down():
    """Test dots fade behind a descending line and stay hidden below it."""
    line = ScanLine(area_to_scan=0.2, sweep_period=5.0, max_alpha=0.5)
    line.advance(2.5)  # position 0.5, going down

    alpha = line.dot_alpha(np.array([[0.1, 0.5], [0.1, 0.6], [0.1, 0.8], [0.1, 0.4]]))

    assert alpha == pytest.approx([0.5, 0.25, 0.0, 0.0])


def test_dot_alpha_going_up():
    """Test the fade mirrors when the line climbs back."""
    line = ScanLine(area_to_scan=0.2, sweep_period=5.0, max_alpha=0.5)
    line.advance(5.0)
    line.advance(2.5)  # position 0.5, going up

    assert not line.going_down
    alpha = line.dot_alpha(np.array([[0.1, 0.4], [0.1, 0.6]]))

    assert alpha == pytest.approx([0.25, 0.0])


def test_dot_alpha_no_points():
    """Test that no points yield no alphas."""
    assert ScanLine().dot_alpha(None).shape == (0,)


def test_reset():
    """Test reset puts the line back on top."""
    line = ScanLine()
    line.advance(7.0)
    line.reset()
    assert line.position == 1.0
    assert line.going_down
    assert line.advance(1.0) == pytest.approx(0.8)
