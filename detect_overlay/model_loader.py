"""
Model loading for the detection overlay system.

Responsibility:
    Load the ONNX detection model from disk, configure the compute
    backend, and return a ready-to-infer cv2.dnn.Net object. Also load
    the optional class-names file.

Non-goals:
    - No preprocessing, inference, or frame-level logic.
    - No automatic model downloading or conversion.
    - No fallback to alternative models.

Failure behavior:
    - Missing model files raise FileNotFoundError with the exact
      missing path and expected location.
    - Unreadable models or an incompatible backend raise RuntimeError.
"""

import logging
from pathlib import Path
from typing import List, Optional

import cv2

from detect_overlay.config import ModelConfig, get_project_root

logger = logging.getLogger(__name__)


def _resolve(path: str) -> Path:
    resolved = Path(path)
    if not resolved.is_absolute():
        resolved = get_project_root() / resolved
    return resolved


def load_model(config: ModelConfig) -> cv2.dnn.Net:
    """Load and configure the detection model.

    Args:
        config: ModelConfig containing the model path and backend preference.

    Returns:
        A configured cv2.dnn.Net ready for inference.

    Raises:
        FileNotFoundError: If the model file does not exist.
        RuntimeError: If the model cannot be parsed or the backend is unavailable.
    """
    model_path = _resolve(config.model_path)

    # Validate file existence — fail fast with actionable messages
    if not model_path.is_file():
        raise FileNotFoundError(
            f"Detection model not found.\n"
            f"  Expected: {model_path}\n"
            f"  Export the model to ONNX and place it at the path above,\n"
            f"  or update 'model.model_path' in your config."
        )

    logger.info("Loading model: %s", model_path)
    try:
        net = cv2.dnn.readNetFromONNX(str(model_path))
    except cv2.error as e:
        raise RuntimeError(
            f"Failed to load detection model from {model_path}.\n"
            f"  OpenCV error: {e}"
        ) from e

    # Configure backend and target
    if config.backend == "cuda":
        logger.info("Setting CUDA backend and target.")
        try:
            net.setPreferableBackend(cv2.dnn.DNN_BACKEND_CUDA)
            net.setPreferableTarget(cv2.dnn.DNN_TARGET_CUDA)
        except cv2.error as e:
            raise RuntimeError(
                f"Failed to set CUDA backend. Ensure OpenCV was built with "
                f"CUDA support (opencv-contrib-python or custom build).\n"
                f"  OpenCV error: {e}"
            ) from e
    else:
        logger.info("Using CPU backend.")
        net.setPreferableBackend(cv2.dnn.DNN_BACKEND_OPENCV)
        net.setPreferableTarget(cv2.dnn.DNN_TARGET_CPU)

    logger.info("Model loaded successfully.")
    return net


def load_class_names(labels_path: Optional[str]) -> List[str]:
    """Read one class name per line, skipping blanks.

    A missing file is not fatal: detections fall back to 'class_<id>'
    identifiers and a warning is logged.
    """
    if labels_path is None:
        return []

    path = _resolve(labels_path)
    if not path.is_file():
        logger.warning("Class names file not found (%s); using numeric labels.", path)
        return []

    with open(path, "r", encoding="utf-8") as f:
        names = [line.strip() for line in f if line.strip()]

    logger.info("Loaded %d class names from %s", len(names), path)
    return names
