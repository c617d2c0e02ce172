"""
Dot Scanner CLI Entrypoint.

Responsibility:
    Parse command-line arguments, configure the application, wire
    together the frame provider, the scanner and the output sinks, and
    run the update loop.

Usage:
    python main.py --source 0                       # Webcam
    python main.py --source shelf.jpg               # Sweep over a still image
    python main.py --source clip.mp4 --output-mode save_video,save_json
    python main.py --config my_config.yaml --device android

This module is the executable entry point. It should not be imported
by other modules.
"""

import argparse
import dataclasses
import logging
import sys
import time

# Configure logging before importing local modules
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("main")

from dotscan.config import AppConfig, load_config, validate_config
from dotscan.input_handler import InputHandler
from dotscan.output_handler import OutputHandler
from dotscan.projection import as_gl_array
from dotscan.scanner import DotScanner
from dotscan.visualizer import to_display_frame

# Frames a still image is replayed for: two full sweeps at 30 fps
_STILL_REPEAT = 300


def parse_args() -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Dot Scanner — scan-line interest point feedback",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    parser.add_argument(
        "--source",
        type=str,
        help="Input source: '0' for webcam, path to image/video file, or directory.",
    )
    parser.add_argument(
        "--config",
        type=str,
        help="Path to YAML configuration file.",
    )
    parser.add_argument(
        "--device",
        type=str,
        choices=["iphone", "android", "desktop"],
        help="Device profile (intrinsics and axis rules). Overrides config.",
    )
    parser.add_argument(
        "--frames-skip",
        type=int,
        help="Ticks between two detection cycles. Overrides config.",
    )
    parser.add_argument(
        "--output-mode",
        type=str,
        help="Output mode(s), comma-separated: display, save_video, "
             "save_json, save_csv. Overrides config.",
    )
    parser.add_argument(
        "--output-path",
        type=str,
        help="Path/directory for output artifacts. Overrides config.",
    )

    return parser.parse_args()


def apply_cli_overrides(config: AppConfig, args: argparse.Namespace) -> AppConfig:
    """Return a copy of config with the CLI arguments applied."""
    if args.source is not None:
        config = dataclasses.replace(
            config, input=dataclasses.replace(config.input, source=args.source)
        )
    if args.device is not None:
        config = dataclasses.replace(
            config, platform=dataclasses.replace(config.platform, device=args.device)
        )
    if args.frames_skip is not None:
        config = dataclasses.replace(
            config, scan=dataclasses.replace(config.scan, frames_skip=args.frames_skip)
        )
    if args.output_mode is not None:
        config = dataclasses.replace(
            config, output=dataclasses.replace(config.output, mode=args.output_mode)
        )
    if args.output_path is not None:
        config = dataclasses.replace(
            config, output=dataclasses.replace(config.output, save_path=args.output_path)
        )
    return config


def main() -> int:
    """Main execution loop."""
    args = parse_args()

    # 1. Load Configuration (CLI args > ENV > YAML > Defaults)
    try:
        config = apply_cli_overrides(load_config(args.config), args)
        validate_config(config)
        logger.info("Configuration active for this run.")
    except Exception as e:
        logger.error("Configuration error: %s", e)
        return 1

    # 2. Initialize Components
    try:
        input_handler = InputHandler(
            source=config.input.source,
            resize_width=config.input.resize_width,
            requested_size=(config.camera.requested_width, config.camera.requested_height),
            still_repeat=_STILL_REPEAT,
        )
        output_handler = OutputHandler(config)
        scanner = DotScanner(config)
    except (FileNotFoundError, ValueError, RuntimeError) as e:
        logger.error("Initialization failed: %s", e)
        return 1
    except Exception as e:
        logger.exception("Unexpected initialization error: %s", e)
        return 1

    # 3. Update Loop
    logger.info("Starting update loop. Press 'q' or ESC to quit in display mode.")

    frame_count = 0
    start_time = time.perf_counter()

    try:
        for _, frame, dt in input_handler:
            if scanner.scheduler is None:
                # The camera size is only known once the first frame arrives
                h, w = frame.shape[:2]
                platform = scanner.device.platform
                display_h, display_w = to_display_frame(frame, platform).shape[:2]
                scanner.start(w, h, screen_size=(display_w, display_h))
                if scanner.camera.projection_matrix is not None:
                    logger.info("Projection matrix: %s", as_gl_array(scanner.camera.projection_matrix))

            frame_count += 1
            scan = scanner.update(frame, dt)

            if frame_count % 100 == 0:
                logger.info(
                    "Processed %d frames (cycle=%d, dots=%d, threshold=%d)",
                    frame_count, scan.cycle, len(scan.points), scanner.scheduler.threshold,
                )

            display = to_display_frame(frame, scanner.device.platform)
            if not output_handler.process_frame(display, scan):
                logger.info("Stopping loop per user request.")
                break

    except KeyboardInterrupt:
        logger.info("Interrupted by user.")
    except Exception as e:
        logger.exception("Runtime error during processing: %s", e)
        return 1
    finally:
        # 4. Cleanup
        elapsed = time.perf_counter() - start_time
        fps = frame_count / elapsed if elapsed > 0 else 0.0

        scanner.close()
        input_handler.release()
        output_handler.finalize()

        logger.info(
            "Processing finished. Total frames: %d. Avg FPS: %.2f.",
            frame_count, fps
        )

    return 0


if __name__ == "__main__":
    sys.exit(main())
