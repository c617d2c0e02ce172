"""
Frame provider for the scanner.

Responsibility:
    Acquire color frames from a webcam, a video file, a single image or
    a directory of images, and expose them as a uniform iterator of
    (frame_id, frame, dt) tuples, dt being the seconds the scanner
    should advance for that frame.

Non-goals:
    - No scanning, drawing, or output writing.
    - No infinite retry on bad sources.
    - No implicit fallback between source types.

Robustness:
    - Validates the source at initialization time.
    - Logs and skips unreadable frames (never crashes the pipeline).
    - Releases resources on cleanup.
"""

import logging
import os
import time
from pathlib import Path
from typing import Iterator, Optional, Tuple, Union

import cv2
import numpy as np

logger = logging.getLogger(__name__)

_IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".bmp", ".tiff", ".tif", ".webp"}

_VIDEO_EXTENSIONS = {".mp4", ".avi", ".mov", ".mkv", ".wmv", ".flv"}

# Still images are replayed at this rate so the scan line keeps moving
_STILL_FRAME_INTERVAL = 1.0 / 30.0

# Safety valve for dead webcam streams
_MAX_CONSECUTIVE_FAILURES = 30


class InputHandler:
    """Uniform frame iterator for images, videos, and webcam streams.

    The source type is auto-detected at initialization:
        - Integer or digit string  → webcam device index
        - File with image extension → single image
        - File with video extension → video file
        - Directory path → all images in directory (sorted)

    Usage:
        handler = InputHandler(source="0", requested_size=(640, 480))
        for frame_id, frame, dt in handler:
            scanner.update(frame, dt)
        handler.release()

    For webcams the requested size is only a hint: the device picks the
    closest mode it supports, so read frame sizes from the frames.
    """

    def __init__(
        self,
        source: Union[str, int],
        resize_width: Optional[int] = None,
        requested_size: Optional[Tuple[int, int]] = None,
        still_repeat: int = 1,
    ) -> None:
        """Initialize the input handler and validate the source.

        Args:
            source: File path, directory path, video path, or device
                    index (or digit string like "0").
            resize_width: Optional width to downscale frames. Aspect ratio
                          is preserved. None means no resizing.
            requested_size: (width, height) requested from a webcam.
            still_repeat: How many times each still image is replayed,
                          so a full scan sweep can run over it.

        Raises:
            FileNotFoundError: If a file/directory source does not exist.
            ValueError: If the source type cannot be determined.
            RuntimeError: If a video/webcam source cannot be opened.
        """
        self._resize_width = resize_width
        self._still_repeat = max(1, still_repeat)
        self._cap: Optional[cv2.VideoCapture] = None
        self._image_paths = []

        source_str = str(source).strip()

        if source_str.isdigit():
            self._mode = "webcam"
            self._open_video_capture(int(source_str))
            if requested_size is not None:
                self._cap.set(cv2.CAP_PROP_FRAME_WIDTH, requested_size[0])
                self._cap.set(cv2.CAP_PROP_FRAME_HEIGHT, requested_size[1])
        elif os.path.isfile(source_str):
            ext = Path(source_str).suffix.lower()
            if ext in _IMAGE_EXTENSIONS:
                self._mode = "image"
                self._image_paths = [source_str]
            elif ext in _VIDEO_EXTENSIONS:
                self._mode = "video"
                self._open_video_capture(source_str)
            else:
                raise ValueError(
                    f"Unrecognized file extension: '{ext}' for source '{source_str}'. "
                    f"Supported images: {_IMAGE_EXTENSIONS}. "
                    f"Supported videos: {_VIDEO_EXTENSIONS}."
                )
        elif os.path.isdir(source_str):
            self._mode = "directory"
            self._image_paths = sorted(
                str(p)
                for p in Path(source_str).iterdir()
                if p.suffix.lower() in _IMAGE_EXTENSIONS
            )
            if not self._image_paths:
                raise ValueError(
                    f"No image files found in directory: '{source_str}'. "
                    f"Supported extensions: {_IMAGE_EXTENSIONS}."
                )
            logger.info("Found %d images in directory: %s", len(self._image_paths), source_str)
        else:
            raise FileNotFoundError(
                f"Input source not found: '{source_str}'. "
                f"Provide a valid file path, directory, or device index."
            )

        logger.info("InputHandler initialized: mode=%s, source=%s", self._mode, source_str)

    @property
    def mode(self) -> str:
        return self._mode

    def _open_video_capture(self, source: Union[str, int]) -> None:
        """Open a VideoCapture and validate it.

        Raises:
            RuntimeError: If the source cannot be opened.
        """
        self._cap = cv2.VideoCapture(source)
        if not self._cap.isOpened():
            source_desc = (
                f"webcam device {source}" if isinstance(source, int)
                else f"video file '{source}'"
            )
            raise RuntimeError(
                f"Failed to open {source_desc}. "
                f"Ensure the source exists and is accessible."
            )

    def __iter__(self) -> Iterator[Tuple[int, np.ndarray, float]]:
        """Iterate over (frame_id, frame, dt) from the configured source.

        Invalid frames are logged and skipped (never raises mid-iteration).
        """
        if self._mode in ("image", "directory"):
            yield from self._iterate_images()
        elif self._mode == "video":
            yield from self._iterate_video()
        else:
            yield from self._iterate_webcam()

    def _iterate_images(self) -> Iterator[Tuple[int, np.ndarray, float]]:
        """Replay each readable image still_repeat times."""
        frame_id = 0
        for path in self._image_paths:
            frame = cv2.imread(path)
            if frame is None:
                logger.warning("Skipping unreadable image: %s", path)
                continue

            frame = self._maybe_resize(frame)
            for _ in range(self._still_repeat):
                yield frame_id, frame, _STILL_FRAME_INTERVAL
                frame_id += 1

    def _iterate_video(self) -> Iterator[Tuple[int, np.ndarray, float]]:
        """Yield frames from a video file, timed by its frame rate."""
        fps = self._cap.get(cv2.CAP_PROP_FPS)
        dt = 1.0 / fps if fps and fps > 0 else _STILL_FRAME_INTERVAL

        frame_id = 0
        while True:
            ret, frame = self._cap.read()
            if not ret or frame is None:
                logger.info("End of video reached at frame %d.", frame_id)
                break

            yield frame_id, self._maybe_resize(frame), dt
            frame_id += 1

    def _iterate_webcam(self) -> Iterator[Tuple[int, np.ndarray, float]]:
        """Yield frames from a webcam, timed by the wall clock."""
        frame_id = 0
        consecutive_failures = 0
        last = time.perf_counter()

        while True:
            ret, frame = self._cap.read()

            if not ret or frame is None:
                consecutive_failures += 1
                if consecutive_failures >= _MAX_CONSECUTIVE_FAILURES:
                    logger.error(
                        "Webcam produced %d consecutive failed reads. "
                        "Stopping to avoid infinite loop.",
                        _MAX_CONSECUTIVE_FAILURES,
                    )
                    break
                logger.warning("Failed to read frame %d from webcam, skipping.", frame_id)
                frame_id += 1
                continue

            consecutive_failures = 0
            now = time.perf_counter()
            dt, last = now - last, now
            yield frame_id, self._maybe_resize(frame), dt
            frame_id += 1

    def _maybe_resize(self, frame: np.ndarray) -> np.ndarray:
        """Resize frame if resize_width is configured, preserving aspect ratio."""
        if self._resize_width is None:
            return frame

        h, w = frame.shape[:2]
        if w <= self._resize_width:
            return frame

        scale = self._resize_width / w
        new_w = self._resize_width
        new_h = int(h * scale)
        return cv2.resize(frame, (new_w, new_h), interpolation=cv2.INTER_AREA)

    def release(self) -> None:
        """Release any held resources (video capture handles)."""
        if self._cap is not None:
            self._cap.release()
            self._cap = None
            logger.debug("VideoCapture released.")

    def __del__(self) -> None:
        """Safety net: release resources if not explicitly released."""
        self.release()
