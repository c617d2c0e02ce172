"""
Tests for the configuration module.
"""

import pytest

from dotscan.config import (
    AppConfig,
    CameraConfig,
    OutputConfig,
    PlatformConfig,
    ScanConfig,
    ThresholdConfig,
    load_config,
    validate_config,
)


def test_load_defaults():
    """Test loading configuration without any file."""
    config = load_config(None)
    assert isinstance(config, AppConfig)
    assert config.platform.device == "desktop"
    assert config.scan.frames_skip == 5
    assert config.scan.max_points == 500
    assert config.threshold.initial == 82
    assert config.threshold.low_yield == 100
    assert config.threshold.high_yield == 500


def test_validation_failure():
    """Test fail-fast validation."""
    with pytest.raises(ValueError, match="device"):
        validate_config(AppConfig(platform=PlatformConfig(device="windows_phone")))

    with pytest.raises(ValueError, match="frames_skip"):
        validate_config(AppConfig(scan=ScanConfig(frames_skip=0)))

    with pytest.raises(ValueError, match="clip planes"):
        validate_config(AppConfig(camera=CameraConfig(near_clip=10.0, far_clip=1.0)))

    with pytest.raises(ValueError, match="threshold"):
        validate_config(AppConfig(threshold=ThresholdConfig(initial=300)))

    with pytest.raises(ValueError, match="low_yield"):
        validate_config(AppConfig(threshold=ThresholdConfig(low_yield=500, high_yield=100)))

    with pytest.raises(ValueError, match="output.mode"):
        validate_config(AppConfig(output=OutputConfig(mode="display,save_image")))


def test_env_override(monkeypatch):
    """Test environment variable overrides."""
    monkeypatch.setenv("DOT_SCAN_PLATFORM_DEVICE", "android")
    monkeypatch.setenv("DOT_SCAN_SCAN_FRAMES_SKIP", "3")
    monkeypatch.setenv("DOT_SCAN_SCAN_CLAMP_POINTS", "true")

    config = load_config(None)

    assert config.platform.device == "android"
    assert config.scan.frames_skip == 3
    assert config.scan.clamp_points is True


def test_yaml_file(tmp_path):
    """Test loading values from a YAML file."""
    path = tmp_path / "scan.yaml"
    path.write_text(
        "platform:\n"
        "  device: iPhone\n"
        "  orientation: landscape_left\n"
        "scan:\n"
        "  max_points: 200\n"
        "display:\n"
        "  width: 1080\n"
        "  height: 1920\n"
        "visualization:\n"
        "  dot_color: [255, 0, 0]\n",
        encoding="utf-8",
    )

    config = load_config(str(path))

    assert config.platform.device == "iphone"
    assert config.platform.orientation == "landscape_left"
    assert config.scan.max_points == 200
    assert config.display.width == 1080
    assert config.visualization.dot_color == (255, 0, 0)


def test_missing_file():
    """Test that an explicit but missing config path fails loudly."""
    with pytest.raises(FileNotFoundError):
        load_config("does/not/exist.yaml")
