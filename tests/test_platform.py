"""
Tests for platform, device and orientation tags.
"""

import pytest

from dotscan.platform import (
    DeviceProfile,
    IntrinsicParams,
    Orientation,
    Platform,
    intrinsics_for,
    render_orientation,
)


def test_device_platforms():
    """Test the handheld/desktop split of device profiles."""
    assert DeviceProfile.IPHONE.platform is Platform.HANDHELD
    assert DeviceProfile.ANDROID.platform is Platform.HANDHELD
    assert DeviceProfile.DESKTOP.platform is Platform.DESKTOP


def test_device_parse():
    """Test device names are parsed case-insensitively."""
    assert DeviceProfile.parse(" Android ") is DeviceProfile.ANDROID
    assert DeviceProfile.parse(DeviceProfile.IPHONE) is DeviceProfile.IPHONE
    with pytest.raises(ValueError, match="Unknown device profile"):
        DeviceProfile.parse("toaster")


@pytest.mark.parametrize(
    "value, expected",
    [
        (1, Orientation.PORTRAIT),
        (4, Orientation.LANDSCAPE_RIGHT),
        ("landscape_left", Orientation.LANDSCAPE_LEFT),
        ("2", Orientation.PORTRAIT_UPSIDE_DOWN),
        (Orientation.LANDSCAPE_LEFT, Orientation.LANDSCAPE_LEFT),
    ],
)
def test_orientation_parse(value, expected):
    """Test orientation names and numeric codes."""
    assert Orientation.parse(value) is expected


@pytest.mark.parametrize("value", [0, 5, "face_up", None, True])
def test_unknown_orientation_falls_back_to_portrait(value):
    """Test that unknown orientations render as portrait."""
    assert Orientation.parse(value) is Orientation.PORTRAIT


def test_render_orientation():
    """Test desktop forces landscape-left and handheld passes through."""
    assert render_orientation(DeviceProfile.DESKTOP, Orientation.PORTRAIT) is Orientation.LANDSCAPE_LEFT
    assert render_orientation(DeviceProfile.ANDROID, Orientation.PORTRAIT) is Orientation.PORTRAIT


def test_intrinsics_table():
    """Test the per-device calibration."""
    iphone = intrinsics_for(DeviceProfile.IPHONE)
    assert (iphone.fx, iphone.fy, iphone.cx, iphone.cy) == (617.750, 618.238, 317.206, 244.322)
    assert intrinsics_for(DeviceProfile.DESKTOP) == intrinsics_for(DeviceProfile.ANDROID)


def test_intrinsics_from_matrix():
    """Test building intrinsics from a 3x3 camera matrix."""
    params = IntrinsicParams.from_matrix([1, 0, 3, 0, 2, 4, 0, 0, 1])
    assert params == IntrinsicParams(fx=1.0, fy=2.0, cx=3.0, cy=4.0)

    with pytest.raises(ValueError, match="9 values"):
        IntrinsicParams.from_matrix([1, 2, 3])
