"""
Detector — adapter around a pre-trained object-detection model.

Public contract:
    Detector.detect(frame: np.ndarray) -> list[Detection]

Each Detection carries a normalized bounding box with a bottom-left
origin and its candidate labels ranked by confidence.

Constraints:
    - Input must be a BGR numpy array (as returned by OpenCV).
    - Per-frame engine failures raise InferenceError; callers log and
      skip the frame.
    - A single Detector must not run two inferences at once
      (cv2.dnn.Net is not thread-safe); the session uses one worker.

Non-goals:
    - No file reading, camera access, or I/O of any kind.
    - No visualization, throttling, or temporal state.
"""

import logging
from typing import List, Optional

import cv2
import numpy as np

from detect_overlay.config import AppConfig, load_config
from detect_overlay.detection import Detection
from detect_overlay.errors import InferenceError
from detect_overlay.model_loader import load_class_names, load_model
from detect_overlay.preprocessor import preprocess
from detect_overlay.postprocessor import postprocess

logger = logging.getLogger(__name__)


class Detector:
    """Object detector running an ONNX YOLO-style model via OpenCV DNN.

    Usage:
        detector = Detector()                      # Uses safe defaults
        detector = Detector(config=my_config)       # Custom config
        detections = detector.detect(frame)         # BGR numpy array

    The constructor loads the model once. Subsequent detect() calls
    reuse the loaded network.
    """

    def __init__(self, config: Optional[AppConfig] = None) -> None:
        """Initialize the detector and load the model.

        Args:
            config: Application configuration. If None, safe defaults
                    are used (no config file required).

        Raises:
            FileNotFoundError: If the model file is missing.
            RuntimeError: If the model or requested backend is unusable.
            ValueError: If configuration values are invalid.
        """
        if config is None:
            config = load_config()

        self._config = config
        self._net = load_model(config.model)
        self._class_names = load_class_names(config.model.labels_path)

        logger.info(
            "Detector initialized (backend=%s, confidence_threshold=%.2f, classes=%d)",
            config.model.backend,
            config.detection.confidence_threshold,
            len(self._class_names),
        )

    def detect(self, frame: np.ndarray) -> List[Detection]:
        """Detect objects in a single BGR frame.

        Args:
            frame: A BGR image as a numpy array with shape (H, W, 3)
                   and dtype uint8.

        Returns:
            A list of Detection objects, sorted by top-label confidence
            (descending). Returns an empty list if nothing is detected.

        Raises:
            InferenceError: If the frame is malformed (not an ndarray,
                            empty, or not 3-channel) or the engine fails
                            on it.
        """
        try:
            self._validate_frame(frame)
        except (TypeError, ValueError) as e:
            raise InferenceError(f"Malformed frame: {e}") from e

        blob = preprocess(frame, self._config.model)

        try:
            self._net.setInput(blob)
            output = self._net.forward()
        except cv2.error as e:
            raise InferenceError(f"Model forward pass failed: {e}") from e

        detection_cfg = self._config.detection
        try:
            return postprocess(
                network_output=output,
                input_size=self._config.model.input_size,
                confidence_threshold=detection_cfg.confidence_threshold,
                nms_threshold=detection_cfg.nms_threshold,
                class_names=self._class_names,
                max_labels=detection_cfg.max_labels,
            )
        except ValueError as e:
            raise InferenceError(f"Unexpected model output: {e}") from e

    @property
    def config(self) -> AppConfig:
        """Return the active configuration (read-only)."""
        return self._config

    @property
    def class_names(self) -> List[str]:
        return list(self._class_names)

    @staticmethod
    def _validate_frame(frame: np.ndarray) -> None:
        """Validate that the input frame meets the API contract.

        Raises:
            TypeError: If frame is not a numpy ndarray.
            ValueError: If frame is empty or has wrong dimensions.
        """
        if not isinstance(frame, np.ndarray):
            raise TypeError(
                f"Expected frame to be a numpy ndarray, "
                f"got {type(frame).__name__}. "
                f"Use cv2.imread() or VideoCapture.read() to obtain frames."
            )

        if frame.size == 0:
            raise ValueError(
                "Frame is empty (zero size). "
                "Ensure the input source is providing valid frames."
            )

        if frame.ndim != 3:
            raise ValueError(
                f"Expected a 3-dimensional frame (H, W, C), "
                f"got {frame.ndim} dimensions with shape {frame.shape}. "
                f"Grayscale images must be converted to BGR first."
            )

        if frame.shape[2] != 3:
            raise ValueError(
                f"Expected 3 channels (BGR), got {frame.shape[2]} channels. "
                f"Input must be a BGR image as returned by OpenCV."
            )
