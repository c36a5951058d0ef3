"""
Detection Overlay CLI Entrypoint.

Responsibility:
    Parse command-line arguments, configure the application, wire together
    the detector, throttle, overlay renderer and I/O handlers, and run the
    main processing loop.

Usage:
    python main.py --source 0                               # Webcam, incremental overlay
    python main.py --source bill.jpg --strategy full_redraw # Still image
    python main.py --source video.mp4 --min-interval 3 --output-mode save_video
    python main.py --config my_config.yaml

This module is the executable entry point. It should not be imported
by other modules.
"""

import argparse
import logging
import sys

# Configure logging before importing local modules
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("main")

from detect_overlay.config import load_config, validate_config
from detect_overlay.detector import Detector
from detect_overlay.input_handler import InputHandler
from detect_overlay.output_handler import OutputHandler
from detect_overlay.overlay import create_renderer
from detect_overlay.session import DetectionSession
from detect_overlay.throttle import ThrottleGate

# Seconds to wait for the last inference of a still image before giving up
_STATIC_INFERENCE_TIMEOUT = 30.0


def parse_args() -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Detection Overlay — throttled object detection with on-screen boxes",
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
        "--confidence",
        type=float,
        help="Detection confidence threshold (0.0 - 1.0). Overrides config.",
    )
    parser.add_argument(
        "--backend",
        type=str,
        choices=["cpu", "cuda"],
        help="Compute backend preference. Overrides config.",
    )
    parser.add_argument(
        "--strategy",
        type=str,
        choices=["incremental", "full_redraw"],
        help="Overlay strategy. Overrides config.",
    )
    parser.add_argument(
        "--min-interval",
        type=float,
        help="Minimum seconds between frames sent to the detector. Overrides config.",
    )
    parser.add_argument(
        "--output-mode",
        type=str,
        help="Output mode(s). Use comma-separated values for multiple outputs: "
             "display, save_image, save_video, save_json, save_csv. "
             "Example: 'display,save_json'. Overrides config.",
    )
    parser.add_argument(
        "--output-path",
        type=str,
        help="Path/directory for output artifacts. Overrides config.",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging.",
    )

    return parser.parse_args()


def main() -> int:
    """Main execution loop."""
    args = parse_args()

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    # 1. Load Configuration (CLI args > ENV > YAML > Defaults)
    try:
        config = load_config(args.config)

        # Apply CLI overrides
        if args.source is not None:
            # We must use object.__setattr__ because the dataclass is frozen
            object.__setattr__(config.input, "source", args.source)

        if args.confidence is not None:
            object.__setattr__(config.detection, "confidence_threshold", args.confidence)

        if args.backend is not None:
            object.__setattr__(config.model, "backend", args.backend)

        if args.strategy is not None:
            object.__setattr__(config.overlay, "strategy", args.strategy)

        if args.min_interval is not None:
            object.__setattr__(config.throttle, "min_interval", args.min_interval)

        if args.output_mode is not None:
            object.__setattr__(config.output, "mode", args.output_mode)

        if args.output_path is not None:
            object.__setattr__(config.output, "save_path", args.output_path)

        validate_config(config)
        logger.info("Configuration active for this run.")

    except Exception as e:
        logger.error("Configuration error: %s", e)
        return 1

    # 2. Initialize Components (setup failures are fatal)
    try:
        detector = Detector(config)
        input_handler = InputHandler(
            source=config.input.source,
            resize_width=config.input.resize_width,
        )
        renderer = create_renderer(config.overlay)
        output_handler = OutputHandler(config, renderer.surface)
        session = DetectionSession(
            detector,
            renderer,
            ThrottleGate(config.throttle.min_interval),
            display_size=config.overlay.display_size,
        )
        session.add_callback(output_handler.on_render)

    except (FileNotFoundError, ValueError, RuntimeError) as e:
        logger.error("Initialization failed: %s", e)
        return 1
    except Exception as e:
        logger.exception("Unexpected initialization error: %s", e)
        return 1

    # 3. Processing Loop
    logger.info("Starting processing loop. Press 'q' or ESC to quit in display mode.")

    quit_requested = False
    session.start()
    try:
        for frame in input_handler:
            if input_handler.is_static:
                # Still images are detected one by one, never throttled.
                session.process([frame], timeout=_STATIC_INFERENCE_TIMEOUT)
            else:
                session.submit_frame(frame)
                session.present(frame)
                session.drain()

            if frame.frame_id and frame.frame_id % 30 == 0:
                logger.info("Processed %d frames...", frame.frame_id)

            if not output_handler.show():
                quit_requested = True
                logger.info("Stopping loop per user request.")
                break

        if input_handler.is_static and not quit_requested:
            output_handler.show(wait=True)

    except KeyboardInterrupt:
        logger.info("Interrupted by user.")
    except Exception as e:
        logger.exception("Runtime error during processing: %s", e)
        return 1
    finally:
        # 4. Cleanup
        session.stop()
        input_handler.release()
        output_handler.finalize()

        stats = session.stats
        logger.info(
            "Processing finished. Frames: %d, sent to detector: %d, rendered: %d.",
            stats.frames_seen, stats.frames_accepted, stats.results_rendered,
        )

    return 0


if __name__ == "__main__":
    sys.exit(main())
