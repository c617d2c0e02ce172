"""
Configuration management for the dot scanner.

Provides a layered configuration system with the following precedence
(highest to lowest):

    CLI arguments > Environment variables > YAML config file > Defaults

Design constraints:
    - The system MUST run with zero configuration (safe defaults only).
    - Missing or invalid values fail early and loudly.
    - No detection logic, I/O, or camera access belongs here.

Non-goals:
    - No dynamic reloading. Everything is fixed at process start.
    - No database-backed or remote configuration.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Tuple

import yaml

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Project root resolution
# ---------------------------------------------------------------------------
# Resolved relative to this file's location: dotscan/config.py → project root
_PROJECT_ROOT = Path(__file__).resolve().parent.parent


def get_project_root() -> Path:
    """Return the resolved project root directory."""
    return _PROJECT_ROOT


# ---------------------------------------------------------------------------
# Configuration dataclasses
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CameraConfig:
    """Physical camera and rendering camera parameters.

    Attributes:
        requested_width: Requested capture width. The device may deliver
                         a different resolution.
        requested_height: Requested capture height.
        focal_length_in_pixels: Focal length reported to the recognizer.
        near_clip: Near clip plane of the rendering camera.
        far_clip: Far clip plane of the rendering camera.
        frame_origin: Row order of incoming frames, 'top_left' (OpenCV)
                      or 'bottom_left' (texture readout, flipped on snapshot).
    """

    requested_width: int = 640
    requested_height: int = 480
    focal_length_in_pixels: float = 551.3
    near_clip: float = 0.3
    far_clip: float = 1000.0
    frame_origin: str = "top_left"


@dataclass(frozen=True)
class PlatformConfig:
    """Target device profile and initial screen orientation.

    Attributes:
        device: 'iphone', 'android' or 'desktop'. Selects the intrinsic
                parameter table and the handheld/desktop axis rules.
        orientation: Initial screen orientation on handheld devices.
    """

    device: str = "desktop"
    orientation: str = "portrait"


@dataclass(frozen=True)
class ScanConfig:
    """Scan cadence and dot output.

    Attributes:
        max_points: Maximum number of dots kept per cycle.
        frames_skip: Ticks to wait between two detection dispatches.
        area_to_scan: Fraction of the frame scanned on each side of the line.
        sweep_period: Seconds for the scan line to cross the frame once.
        clamp_points: Clamp mapped dots to [0, 1]. Off by default so dots
                      near the edges behave as on device.
    """

    max_points: int = 500
    frames_skip: int = 5
    area_to_scan: float = 0.2
    sweep_period: float = 5.0
    clamp_points: bool = False


@dataclass(frozen=True)
class ThresholdConfig:
    """Adaptive detection threshold controller.

    Attributes:
        initial: Starting threshold handed to the point detector.
        minimum: Lower clamp bound.
        maximum: Upper clamp bound.
        low_yield: Below this many points the threshold is lowered.
        high_yield: Above this many points the threshold is raised.
        step: Adjustment applied per cycle.
    """

    initial: int = 82
    minimum: int = 1
    maximum: int = 255
    low_yield: int = 100
    high_yield: int = 500
    step: int = 3


@dataclass(frozen=True)
class DisplayConfig:
    """Display (screen) size. None means 'same as the sensor'."""

    width: Optional[int] = None
    height: Optional[int] = None


@dataclass(frozen=True)
class InputConfig:
    """Input source configuration.

    Attributes:
        source: Input source — file path, directory path, video path,
                or integer device index (as string or int).
        resize_width: Optional width to downscale input frames before scanning.
                      None means no resizing.
    """

    source: str = "0"
    resize_width: Optional[int] = None


@dataclass(frozen=True)
class OutputConfig:
    """Output behavior configuration.

    Attributes:
        mode: Output mode(s). Supports multiple comma-separated values:
              'display', 'save_video', 'save_json', 'save_csv'.
              Example: "display,save_json"
        save_path: Directory where output artifacts are written.
    """

    mode: str = "display"
    save_path: str = "output/"


@dataclass(frozen=True)
class VisualizationConfig:
    """Visualization rendering parameters.

    Attributes:
        dot_color: BGR color of the dots.
        dot_radius: Dot radius in pixels.
        max_alpha: Opacity of a dot sitting right on the scan line.
        line_color: BGR color of the scan line.
        line_thickness: Scan line thickness in pixels.
    """

    dot_color: Tuple[int, int, int] = (0, 255, 255)
    dot_radius: int = 2
    max_alpha: float = 0.5
    line_color: Tuple[int, int, int] = (255, 255, 255)
    line_thickness: int = 1


@dataclass(frozen=True)
class AppConfig:
    """Top-level application configuration.

    Aggregates all sub-configurations into a single, frozen object.
    """

    camera: CameraConfig = field(default_factory=CameraConfig)
    platform: PlatformConfig = field(default_factory=PlatformConfig)
    scan: ScanConfig = field(default_factory=ScanConfig)
    threshold: ThresholdConfig = field(default_factory=ThresholdConfig)
    display: DisplayConfig = field(default_factory=DisplayConfig)
    input: InputConfig = field(default_factory=InputConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    visualization: VisualizationConfig = field(default_factory=VisualizationConfig)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

_VALID_DEVICES = {"iphone", "android", "desktop"}
_VALID_ORIENTATIONS = {
    "portrait", "portrait_upside_down", "landscape_left", "landscape_right",
}
_VALID_FRAME_ORIGINS = {"top_left", "bottom_left"}
_VALID_OUTPUT_MODES = {"display", "save_video", "save_json", "save_csv"}


def validate_config(config: AppConfig) -> None:
    """Validate configuration values. Raises ValueError on invalid state."""

    camera = config.camera
    if camera.requested_width <= 0 or camera.requested_height <= 0:
        raise ValueError(
            f"camera.requested_width/requested_height must be positive, "
            f"got {camera.requested_width}x{camera.requested_height}."
        )

    if camera.near_clip <= 0 or camera.far_clip <= camera.near_clip:
        raise ValueError(
            f"camera clip planes must satisfy 0 < near_clip < far_clip, "
            f"got near_clip={camera.near_clip}, far_clip={camera.far_clip}."
        )

    if camera.frame_origin not in _VALID_FRAME_ORIGINS:
        raise ValueError(
            f"Invalid camera.frame_origin: '{camera.frame_origin}'. "
            f"Must be one of {_VALID_FRAME_ORIGINS}."
        )

    if config.platform.device not in _VALID_DEVICES:
        raise ValueError(
            f"Invalid platform.device: '{config.platform.device}'. "
            f"Must be one of {_VALID_DEVICES}."
        )

    if config.platform.orientation not in _VALID_ORIENTATIONS:
        raise ValueError(
            f"Invalid platform.orientation: '{config.platform.orientation}'. "
            f"Must be one of {_VALID_ORIENTATIONS}."
        )

    scan = config.scan
    if scan.max_points < 1:
        raise ValueError(f"scan.max_points must be >= 1, got {scan.max_points}.")

    if scan.frames_skip < 1:
        raise ValueError(f"scan.frames_skip must be >= 1, got {scan.frames_skip}.")

    if not (0.0 < scan.area_to_scan <= 0.5):
        raise ValueError(
            f"scan.area_to_scan must be in (0.0, 0.5], got {scan.area_to_scan}."
        )

    if scan.sweep_period <= 0:
        raise ValueError(
            f"scan.sweep_period must be positive, got {scan.sweep_period}."
        )

    threshold = config.threshold
    if not (1 <= threshold.minimum <= threshold.initial <= threshold.maximum <= 255):
        raise ValueError(
            f"threshold values must satisfy 1 <= minimum <= initial <= maximum <= 255, "
            f"got minimum={threshold.minimum}, initial={threshold.initial}, "
            f"maximum={threshold.maximum}."
        )

    if threshold.low_yield >= threshold.high_yield:
        raise ValueError(
            f"threshold.low_yield must be lower than threshold.high_yield, "
            f"got {threshold.low_yield} and {threshold.high_yield}."
        )

    if threshold.step < 1:
        raise ValueError(f"threshold.step must be >= 1, got {threshold.step}.")

    for name in ("width", "height"):
        value = getattr(config.display, name)
        if value is not None and value <= 0:
            raise ValueError(
                f"display.{name} must be positive or None, got {value}."
            )

    # Validate each mode in comma-separated list
    modes = set(m.strip() for m in config.output.mode.split(','))
    invalid_modes = modes - _VALID_OUTPUT_MODES
    if invalid_modes:
        raise ValueError(
            f"Invalid output.mode(s): {invalid_modes}. "
            f"Valid modes: {_VALID_OUTPUT_MODES}. "
            f"Use comma-separated values for multiple outputs."
        )

    if config.input.resize_width is not None and config.input.resize_width <= 0:
        raise ValueError(
            f"input.resize_width must be positive or None, "
            f"got {config.input.resize_width}."
        )

    vis = config.visualization
    if not (0.0 <= vis.max_alpha <= 1.0):
        raise ValueError(
            f"visualization.max_alpha must be in [0.0, 1.0], got {vis.max_alpha}."
        )

    if vis.dot_radius <= 0 or vis.line_thickness <= 0:
        raise ValueError(
            f"visualization.dot_radius and line_thickness must be positive, "
            f"got {vis.dot_radius} and {vis.line_thickness}."
        )


# ---------------------------------------------------------------------------
# YAML loading
# ---------------------------------------------------------------------------

def _parse_tuple(value, expected_len: int, cast_type=float):
    """Convert a list from YAML into a tuple of the expected type and length."""
    if isinstance(value, (list, tuple)):
        if len(value) != expected_len:
            raise ValueError(
                f"Expected {expected_len} values, got {len(value)}: {value}"
            )
        return tuple(cast_type(v) for v in value)
    return value


def _parse_bool(value) -> bool:
    """Accept YAML booleans as well as env-style strings ('true', '0', ...)."""
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(value)


def _optional_int(value) -> Optional[int]:
    if value is None or (isinstance(value, str) and value.strip().lower() in {"", "none"}):
        return None
    return int(value)


def _build_camera_config(raw: dict) -> CameraConfig:
    """Build CameraConfig from a raw YAML dict."""
    kwargs = {}
    if "requested_width" in raw:
        kwargs["requested_width"] = int(raw["requested_width"])
    if "requested_height" in raw:
        kwargs["requested_height"] = int(raw["requested_height"])
    if "focal_length_in_pixels" in raw:
        kwargs["focal_length_in_pixels"] = float(raw["focal_length_in_pixels"])
    if "near_clip" in raw:
        kwargs["near_clip"] = float(raw["near_clip"])
    if "far_clip" in raw:
        kwargs["far_clip"] = float(raw["far_clip"])
    if "frame_origin" in raw:
        kwargs["frame_origin"] = str(raw["frame_origin"]).lower()
    return CameraConfig(**kwargs)


def _build_platform_config(raw: dict) -> PlatformConfig:
    """Build PlatformConfig from a raw YAML dict."""
    kwargs = {}
    if "device" in raw:
        kwargs["device"] = str(raw["device"]).lower()
    if "orientation" in raw:
        kwargs["orientation"] = str(raw["orientation"]).lower()
    return PlatformConfig(**kwargs)


def _build_scan_config(raw: dict) -> ScanConfig:
    """Build ScanConfig from a raw YAML dict."""
    kwargs = {}
    if "max_points" in raw:
        kwargs["max_points"] = int(raw["max_points"])
    if "frames_skip" in raw:
        kwargs["frames_skip"] = int(raw["frames_skip"])
    if "area_to_scan" in raw:
        kwargs["area_to_scan"] = float(raw["area_to_scan"])
    if "sweep_period" in raw:
        kwargs["sweep_period"] = float(raw["sweep_period"])
    if "clamp_points" in raw:
        kwargs["clamp_points"] = _parse_bool(raw["clamp_points"])
    return ScanConfig(**kwargs)


def _build_threshold_config(raw: dict) -> ThresholdConfig:
    """Build ThresholdConfig from a raw YAML dict."""
    kwargs = {
        key: int(raw[key])
        for key in ("initial", "minimum", "maximum", "low_yield", "high_yield", "step")
        if key in raw
    }
    return ThresholdConfig(**kwargs)


def _build_display_config(raw: dict) -> DisplayConfig:
    """Build DisplayConfig from a raw YAML dict."""
    kwargs = {}
    if "width" in raw:
        kwargs["width"] = _optional_int(raw["width"])
    if "height" in raw:
        kwargs["height"] = _optional_int(raw["height"])
    return DisplayConfig(**kwargs)


def _build_input_config(raw: dict) -> InputConfig:
    """Build InputConfig from a raw YAML dict."""
    kwargs = {}
    if "source" in raw:
        kwargs["source"] = str(raw["source"])
    if "resize_width" in raw:
        kwargs["resize_width"] = _optional_int(raw["resize_width"])
    return InputConfig(**kwargs)


def _build_output_config(raw: dict) -> OutputConfig:
    """Build OutputConfig from a raw YAML dict."""
    kwargs = {}
    if "mode" in raw:
        kwargs["mode"] = str(raw["mode"]).lower()
    if "save_path" in raw:
        kwargs["save_path"] = str(raw["save_path"])
    return OutputConfig(**kwargs)


def _build_visualization_config(raw: dict) -> VisualizationConfig:
    """Build VisualizationConfig from a raw YAML dict."""
    kwargs = {}
    if "dot_color" in raw:
        kwargs["dot_color"] = _parse_tuple(raw["dot_color"], 3, int)
    if "dot_radius" in raw:
        kwargs["dot_radius"] = int(raw["dot_radius"])
    if "max_alpha" in raw:
        kwargs["max_alpha"] = float(raw["max_alpha"])
    if "line_color" in raw:
        kwargs["line_color"] = _parse_tuple(raw["line_color"], 3, int)
    if "line_thickness" in raw:
        kwargs["line_thickness"] = int(raw["line_thickness"])
    return VisualizationConfig(**kwargs)


# ---------------------------------------------------------------------------
# Environment variable overrides
# ---------------------------------------------------------------------------

_ENV_PREFIX = "DOT_SCAN_"


def _apply_env_overrides(raw: dict) -> dict:
    """Apply environment variable overrides to the raw config dict.

    Environment variables follow the pattern:
        DOT_SCAN_PLATFORM_DEVICE=android
        DOT_SCAN_SCAN_FRAMES_SKIP=3

    The variable name maps to the nested config key by replacing
    underscores after the section name with dots.
    """
    env_map = {
        f"{_ENV_PREFIX}CAMERA_NEAR_CLIP": ("camera", "near_clip"),
        f"{_ENV_PREFIX}CAMERA_FAR_CLIP": ("camera", "far_clip"),
        f"{_ENV_PREFIX}CAMERA_FRAME_ORIGIN": ("camera", "frame_origin"),
        f"{_ENV_PREFIX}PLATFORM_DEVICE": ("platform", "device"),
        f"{_ENV_PREFIX}PLATFORM_ORIENTATION": ("platform", "orientation"),
        f"{_ENV_PREFIX}SCAN_MAX_POINTS": ("scan", "max_points"),
        f"{_ENV_PREFIX}SCAN_FRAMES_SKIP": ("scan", "frames_skip"),
        f"{_ENV_PREFIX}SCAN_CLAMP_POINTS": ("scan", "clamp_points"),
        f"{_ENV_PREFIX}THRESHOLD_INITIAL": ("threshold", "initial"),
        f"{_ENV_PREFIX}INPUT_SOURCE": ("input", "source"),
        f"{_ENV_PREFIX}INPUT_RESIZE_WIDTH": ("input", "resize_width"),
        f"{_ENV_PREFIX}OUTPUT_MODE": ("output", "mode"),
        f"{_ENV_PREFIX}OUTPUT_SAVE_PATH": ("output", "save_path"),
    }

    for env_var, (section, key) in env_map.items():
        value = os.environ.get(env_var)
        if value is not None:
            raw.setdefault(section, {})[key] = value
            logger.debug("Config override from env: %s=%s", env_var, value)

    return raw


# ---------------------------------------------------------------------------
# Public loader
# ---------------------------------------------------------------------------

def load_config(config_path: Optional[str] = None) -> AppConfig:
    """Load and validate application configuration.

    Precedence (highest → lowest):
        Environment variables > YAML file > Hard-coded defaults

    Args:
        config_path: Path to a YAML configuration file. If None,
                     the system runs entirely on defaults (safe for
                     programmatic usage).

    Returns:
        A validated, frozen AppConfig instance.

    Raises:
        FileNotFoundError: If config_path is provided but does not exist.
        ValueError: If any configuration value is invalid.
        yaml.YAMLError: If the YAML file is malformed.
    """
    raw: dict = {}

    # --- Layer 1: YAML file ---
    if config_path is not None:
        resolved = Path(config_path)
        if not resolved.is_absolute():
            resolved = _PROJECT_ROOT / resolved

        if not resolved.is_file():
            raise FileNotFoundError(
                f"Configuration file not found: {resolved}. "
                f"Provide a valid path or omit to use defaults."
            )

        logger.info("Loading config from: %s", resolved)
        with open(resolved, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}

    # --- Layer 2: Environment variable overrides ---
    raw = _apply_env_overrides(raw)

    # --- Build typed configs ---
    config = AppConfig(
        camera=_build_camera_config(raw.get("camera", {})),
        platform=_build_platform_config(raw.get("platform", {})),
        scan=_build_scan_config(raw.get("scan", {})),
        threshold=_build_threshold_config(raw.get("threshold", {})),
        display=_build_display_config(raw.get("display", {})),
        input=_build_input_config(raw.get("input", {})),
        output=_build_output_config(raw.get("output", {})),
        visualization=_build_visualization_config(raw.get("visualization", {})),
    )

    # --- Validate ---
    validate_config(config)

    logger.debug("Configuration loaded: %s", config)
    return config
