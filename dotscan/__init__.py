"""
Dot Scanner — scan-line interest point feedback and AR camera alignment.

Public API:
    - DotScanner: Lifecycle facade (start → update every tick → close).
    - ScanFrame: What the update loop renders on one tick.
    - ScanScheduler / ResultBuffer / ScanState: Single-flight background scanning.
    - DotFinder: One detection cycle over a region of a frame.
    - RegionOfInterest: Normalized area to scan.
    - build_projection_matrix / update_projection_matrix / RenderCamera:
      Intrinsic-camera projection for the rendering camera.
    - DeviceProfile / Orientation / Platform: Device and screen tags.

Usage:
    from dotscan import DotScanner

    scanner = DotScanner()
    scanner.start(640, 480)
    frame_state = scanner.update(frame, dt)
    scanner.close()
"""

from dotscan.dot_finder import DotFinder, FindResult
from dotscan.platform import DeviceProfile, IntrinsicParams, Orientation, Platform
from dotscan.projection import (
    RenderCamera,
    build_projection_matrix,
    update_projection_matrix,
)
from dotscan.region import PixelBounds, RegionOfInterest, normalize_frame_area
from dotscan.scanner import DotScanner, ScanFrame
from dotscan.scheduler import ResultBuffer, ScanScheduler, ScanState

__all__ = [
    "DotScanner",
    "ScanFrame",
    "ScanScheduler",
    "ScanState",
    "ResultBuffer",
    "DotFinder",
    "FindResult",
    "RegionOfInterest",
    "PixelBounds",
    "normalize_frame_area",
    "RenderCamera",
    "build_projection_matrix",
    "update_projection_matrix",
    "DeviceProfile",
    "IntrinsicParams",
    "Orientation",
    "Platform",
]
