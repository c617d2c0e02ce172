"""
Tests for region-of-interest normalization.
"""

import numpy as np
import pytest

from dotscan.platform import Platform
from dotscan.region import RegionOfInterest, clip_region, normalize_frame_area


def test_handheld_axes_map_directly():
    """Test that handheld regions scale straight to sensor pixels."""
    bounds = normalize_frame_area(
        RegionOfInterest(0.4, 0.0, 0.2, 1.0), 640, 480, Platform.HANDHELD,
    )

    assert bounds.x == pytest.approx(256.0)
    assert bounds.y == pytest.approx(0.0)
    assert bounds.width == pytest.approx(128.0)
    assert bounds.height == pytest.approx(480.0)
    assert (bounds.col, bounds.row, bounds.cols, bounds.rows) == (256, 0, 128, 480)


def test_desktop_swaps_axes():
    """Test that desktop swaps x/y and width/height before clamping."""
    bounds = normalize_frame_area(
        RegionOfInterest(0.1, 0.2, 0.3, 0.4), 640, 480, Platform.DESKTOP,
    )

    assert bounds.x == pytest.approx(0.2 * 640)
    assert bounds.y == pytest.approx(0.1 * 480)
    assert bounds.width == pytest.approx(0.4 * 640)
    assert bounds.height == pytest.approx(0.3 * 480)


def test_overflow_trimmed_from_extent():
    """Test that overflow past the frame edge shrinks width/height, not x/y."""
    clipped = clip_region(RegionOfInterest(0.9, 0.5, 0.5, 0.8), Platform.HANDHELD)

    assert clipped.x == pytest.approx(0.9)
    assert clipped.y == pytest.approx(0.5)
    assert clipped.width == pytest.approx(0.1)
    assert clipped.height == pytest.approx(0.5)


def test_negative_origin_clamped():
    """Test that a negative origin is clamped independently of the extent."""
    clipped = clip_region(RegionOfInterest(-0.3, 0.0, 0.5, 1.0), Platform.HANDHELD)

    assert clipped.x == 0.0
    assert clipped.width == pytest.approx(0.5)


@pytest.mark.parametrize("roi", [
    RegionOfInterest(1.0, 0.0, 0.2, 1.0),
    RegionOfInterest(0.2, 0.2, 0.0, 0.5),
    RegionOfInterest(0.5, 0.5, -1.0, 0.5),
    RegionOfInterest(0.0, 2.0, 1.0, 1.0),
])
def test_empty_region(roi):
    """Test that regions collapsing after clipping yield no bounds."""
    assert normalize_frame_area(roi, 640, 480, Platform.HANDHELD) is None


def test_random_regions_stay_inside_frame():
    """Test the unit-square guarantee over arbitrary real inputs."""
    rng = np.random.default_rng(1234)

    for platform in Platform:
        for values in rng.uniform(-2.0, 2.0, size=(500, 4)):
            clipped = clip_region(RegionOfInterest(*values), platform)
            if clipped is None:
                continue
            assert clipped.x >= 0.0 and clipped.y >= 0.0
            assert clipped.width > 0.0 and clipped.height > 0.0
            assert clipped.x + clipped.width <= 1.0 + 1e-12
            assert clipped.y + clipped.height <= 1.0 + 1e-12


def test_non_finite_rejected():
    """Test that NaN or infinite regions are rejected at construction."""
    with pytest.raises(ValueError, match="finite"):
        RegionOfInterest(float("nan"), 0.0, 0.5, 0.5)
