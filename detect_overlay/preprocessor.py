"""
Preprocessing for the detector adapter.

Responsibility:
    Convert a raw BGR frame (numpy array) into a 4D DNN-compatible
    input blob using cv2.dnn.blobFromImage.

Non-goals:
    - No frame acquisition or I/O.
    - No inference or coordinate mapping.
    - No model-awareness beyond the blob parameters.

Hard-coded:
    - The frame is stretched to the input size (crop=False, no
      letterbox), so normalized network coordinates map straight back
      onto the original frame.
"""

import numpy as np
import cv2

from detect_overlay.config import ModelConfig


def preprocess(frame: np.ndarray, config: ModelConfig) -> np.ndarray:
    """Convert a raw BGR frame into a DNN input blob.

    Args:
        frame: Input image as a BGR numpy array (H, W, 3).
        config: ModelConfig providing input_size, scale_factor and swap_rb.

    Returns:
        A 4D numpy array of shape (1, 3, H, W) with dtype float32,
        ready to be passed to net.setInput().

    Raises:
        ValueError: If the frame is empty or has unexpected dimensions.
    """
    if frame is None or frame.size == 0:
        raise ValueError(
            "Cannot preprocess an empty frame. "
            "Ensure the input source is providing valid frames."
        )

    blob = cv2.dnn.blobFromImage(
        image=frame,
        scalefactor=config.scale_factor,
        size=config.input_size,
        mean=(0.0, 0.0, 0.0),
        swapRB=config.swap_rb,
        crop=False,
    )

    return blob
