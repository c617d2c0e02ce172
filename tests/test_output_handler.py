"""
Tests for drawing and output routing.
"""

import json

import numpy as np

from dotscan.config import AppConfig, OutputConfig, VisualizationConfig
from dotscan.output_handler import OutputHandler
from dotscan.platform import Platform
from dotscan.scanner import ScanFrame
from dotscan.visualizer import draw_scan, to_display_frame


def _scan(cycle: int = 1, alpha: float = 0.5) -> ScanFrame:
    return ScanFrame(
        points=np.array([[0.5, 0.5]]),
        alpha=np.array([alpha]),
        line_position=1.0,
        going_down=True,
        cycle=cycle,
        dispatched=False,
    )


def test_draw_scan_blends_dots_and_line():
    """Test the dot is blended by its alpha and the line is drawn on top."""
    frame = np.zeros((100, 100, 3), dtype=np.uint8)
    config = VisualizationConfig(dot_color=(0, 255, 255), max_alpha=0.5)

    annotated = draw_scan(frame, _scan(), config)

    assert tuple(annotated[50, 50]) == (0, 127, 127)
    assert tuple(annotated[0, 10]) == (255, 255, 255)
    assert tuple(annotated[80, 80]) == (0, 0, 0)
    assert not np.any(frame)


def test_draw_scan_skips_hidden_dots():
    """Test that zero-alpha dots leave the frame untouched."""
    frame = np.full((100, 100, 3), 40, dtype=np.uint8)
    annotated = draw_scan(frame, _scan(alpha=0.0), VisualizationConfig())
    assert tuple(annotated[50, 50]) == (40, 40, 40)


def test_handheld_frames_are_rotated():
    """Test the display orientation of handheld frames."""
    frame = np.zeros((480, 640, 3), dtype=np.uint8)
    assert to_display_frame(frame, Platform.HANDHELD).shape == (640, 480, 3)
    assert to_display_frame(frame, Platform.DESKTOP).shape == (480, 640, 3)


def test_records_cycles_to_json(tmp_path):
    """Test that completed cycles are written once on finalize."""
    config = AppConfig(output=OutputConfig(mode="save_json,save_csv", save_path=str(tmp_path)))
    handler = OutputHandler(config)
    frame = np.zeros((100, 100, 3), dtype=np.uint8)

    assert handler.process_frame(frame, _scan(cycle=0))
    assert handler.process_frame(frame, _scan(cycle=1))
    assert handler.process_frame(frame, _scan(cycle=1))
    handler.finalize()

    with open(tmp_path / "cycles.json", encoding="utf-8") as f:
        payload = json.load(f)

    assert payload["total_cycles"] == 1
    assert payload["cycles"][0]["points"] == [[0.5, 0.5]]
    assert (tmp_path / "cycles.csv").exists()
