"""
Output handling for the dot scanner.

Responsibility:
    Route each tick's annotated frame and each completed scan cycle to
    the configured sinks: display window, video file, JSON, or CSV.
    Several sinks can be active at once.

Non-goals:
    - No scanning logic.
    - No input acquisition.
"""

import logging
from typing import Dict, Optional, Set

import cv2
import numpy as np

from dotscan.config import AppConfig, get_project_root
from dotscan.scanner import ScanFrame
from dotscan.serializer import save_csv, save_json
from dotscan.visualizer import draw_scan, show_frame

logger = logging.getLogger(__name__)

_QUIT_KEYS = {ord("q"), 27}  # 'q' or ESC


class OutputHandler:
    """Routes scan results to configured output sinks.

    Supported modes:
        - 'display': Show annotated frames in an OpenCV window.
        - 'save_video': Write annotated frames to a video file.
        - 'save_json': Record every completed cycle, write JSON on finalize.
        - 'save_csv': Record every completed cycle, write CSV on finalize.

    Usage:
        handler = OutputHandler(config)
        handler.process_frame(display_frame, scan)
        ...
        handler.finalize()  # Flush any buffered output
    """

    def __init__(self, config: AppConfig, fps: float = 20.0) -> None:
        """Initialize the output handler.

        Args:
            config: Application configuration (output mode, paths, vis params).
            fps: Frame rate written into the saved video.
        """
        self._config = config
        self._fps = fps
        self._video_writer: Optional[cv2.VideoWriter] = None
        self._modes: Set[str] = set(m.strip() for m in config.output.mode.split(','))

        self._cycles: Dict[int, np.ndarray] = {}

        save_path = get_project_root() / config.output.save_path
        self._save_path = save_path

        if self._modes & {'save_video', 'save_json', 'save_csv'}:
            self._save_path.mkdir(parents=True, exist_ok=True)

        logger.info("OutputHandler initialized: modes=%s, save_path=%s",
                    self._modes, self._save_path)

    def process_frame(self, frame: np.ndarray, scan: ScanFrame) -> bool:
        """Process one tick through the output pipeline.

        Args:
            frame: Display-oriented BGR frame.
            scan: Scanner state for this tick.

        Returns:
            True to continue processing, False to signal the caller
            should stop (e.g., user pressed 'q' in display mode).
        """
        if self._modes & {'save_json', 'save_csv'} and scan.cycle > 0:
            # Re-reading the same buffer on later ticks overwrites with identical data
            self._cycles[scan.cycle] = scan.points

        if not self._modes & {'display', 'save_video'}:
            return True

        annotated = draw_scan(frame, scan, self._config.visualization)

        if 'save_video' in self._modes:
            self._write_video(annotated)

        if 'display' in self._modes:
            key = show_frame(annotated)
            if key in _QUIT_KEYS:
                logger.info("Quit signal received (key press).")
                return False

        return True

    def _write_video(self, annotated: np.ndarray) -> None:
        """Write annotated frame to the video writer."""
        if self._video_writer is None:
            output_file = str(self._save_path / "scan.avi")
            h, w = annotated.shape[:2]
            fourcc = cv2.VideoWriter_fourcc(*"XVID")
            self._video_writer = cv2.VideoWriter(output_file, fourcc, self._fps, (w, h))
            logger.info("Video writer opened: %s (%dx%d)", output_file, w, h)

        self._video_writer.write(annotated)

    def finalize(self) -> None:
        """Flush buffered output and release resources.

        Must be called after all frames have been processed.
        """
        if 'save_json' in self._modes and self._cycles:
            save_json(self._cycles, str(self._save_path / "cycles.json"))

        if 'save_csv' in self._modes and self._cycles:
            save_csv(self._cycles, str(self._save_path / "cycles.csv"))

        if self._video_writer is not None:
            self._video_writer.release()
            self._video_writer = None
            logger.info("Video writer released.")

        if 'display' in self._modes:
            cv2.destroyAllWindows()

        self._cycles.clear()
        logger.info("OutputHandler finalized.")
