"""
Output handling for the detection overlay pipeline.

Responsibility:
    Route the display surface and rendered results to configured sinks:
    display window, saved images, video file, JSON, or CSV.
    Supports multiple orthogonal outputs simultaneously.

Non-goals:
    - No detection or rendering logic.
    - No input acquisition.
"""

import logging
from pathlib import Path
from typing import Dict, List, Optional

import cv2

from detect_overlay.config import AppConfig, get_project_root, parse_modes
from detect_overlay.detection import Detection
from detect_overlay.serializer import save_csv, save_json
from detect_overlay.session import InferenceResult
from detect_overlay.surface import DisplaySurface
from detect_overlay.visualizer import show_image

logger = logging.getLogger(__name__)

_QUIT_KEYS = {ord("q"), 27}  # 'q' or ESC


class OutputHandler:
    """Routes the overlay to configured output sinks.

    Supports orthogonal outputs - multiple modes can be active simultaneously:
        - 'display': Show the composited surface in an OpenCV window.
        - 'save_image': Write the composited surface after each render.
        - 'save_video': Write every shown surface to a video file.
        - 'save_json': Accumulate rendered detections, write JSON on finalize.
        - 'save_csv': Accumulate rendered detections, write CSV on finalize.

    Usage:
        handler = OutputHandler(config, renderer.surface)
        session.add_callback(handler.on_render)
        ...
        handler.show()      # once per loop iteration, display thread
        handler.finalize()  # Flush any buffered output
    """

    def __init__(self, config: AppConfig, surface: DisplaySurface) -> None:
        """Initialize the output handler.

        Args:
            config: Application configuration (output mode, paths).
            surface: The display surface the renderer draws on.
        """
        self._surface = surface
        self._video_writer: Optional[cv2.VideoWriter] = None
        self._modes = parse_modes(config.output.mode)
        self._detections_buffer: Dict[int, List[Detection]] = {}

        save_path = Path(config.output.save_path)
        if not save_path.is_absolute():
            save_path = get_project_root() / save_path
        self._save_path = save_path

        if self._modes & {"save_image", "save_video", "save_json", "save_csv"}:
            self._save_path.mkdir(parents=True, exist_ok=True)

        logger.info("OutputHandler initialized: modes=%s, save_path=%s",
                    self._modes, self._save_path)

    @property
    def modes(self) -> set:
        return set(self._modes)

    def on_render(self, result: InferenceResult) -> None:
        """Session callback: record a freshly rendered result."""
        frame_id = result.frame.frame_id

        if "save_json" in self._modes or "save_csv" in self._modes:
            self._detections_buffer[frame_id] = list(result.detections)

        if "save_image" in self._modes:
            output_file = self._save_path / f"frame_{frame_id:06d}.jpg"
            cv2.imwrite(str(output_file), self._surface.compose())
            logger.debug("Saved frame %d to %s", frame_id, output_file)

    def show(self, wait: bool = False) -> bool:
        """Push the current surface to the display/video sinks.

        Args:
            wait: Block until a key is pressed (still images).

        Returns:
            True to continue processing, False if the user asked to quit.
        """
        if not self._modes & {"display", "save_video"}:
            return True
        if self._surface.size is None:
            return True

        composed = self._surface.compose()

        if "save_video" in self._modes:
            self._write_video(composed)

        if "display" in self._modes:
            key = show_image(composed, wait_ms=0 if wait else 1)
            if key in _QUIT_KEYS:
                logger.info("Quit signal received (key press).")
                return False

        return True

    def _write_video(self, image) -> None:
        if self._video_writer is None:
            output_file = str(self._save_path / "output.avi")
            h, w = image.shape[:2]
            fourcc = cv2.VideoWriter_fourcc(*"XVID")
            self._video_writer = cv2.VideoWriter(output_file, fourcc, 20.0, (w, h))
            logger.info("Video writer opened: %s (%dx%d)", output_file, w, h)

        self._video_writer.write(image)

    def finalize(self) -> None:
        """Flush buffered output and release resources.

        Must be called after all frames have been processed.
        """
        if "save_json" in self._modes and self._detections_buffer:
            save_json(self._detections_buffer, str(self._save_path / "detections.json"))

        if "save_csv" in self._modes and self._detections_buffer:
            save_csv(self._detections_buffer, str(self._save_path / "detections.csv"))

        if self._video_writer is not None:
            self._video_writer.release()
            self._video_writer = None
            logger.info("Video writer released.")

        if "display" in self._modes:
            cv2.destroyAllWindows()

        self._detections_buffer.clear()
        logger.info("OutputHandler finalized.")
