"""
Tests for the preprocessing module.
"""

import numpy as np
import pytest

from detect_overlay.config import ModelConfig
from detect_overlay.preprocessor import preprocess


def test_preprocess_valid_input():
    """Test standard preprocessing on a valid frame."""
    config = ModelConfig(input_size=(320, 320))
    frame = np.zeros((480, 640, 3), dtype=np.uint8)

    blob = preprocess(frame, config)

    assert isinstance(blob, np.ndarray)
    assert blob.shape == (1, 3, 320, 320)
    assert blob.dtype == np.float32


def test_preprocess_scales_and_swaps_channels():
    """Pure blue BGR input lands in the last (B) channel of an RGB blob."""
    config = ModelConfig(input_size=(64, 64), scale_factor=1.0 / 255.0, swap_rb=True)
    frame = np.zeros((100, 100, 3), dtype=np.uint8)
    frame[:, :, 0] = 255

    blob = preprocess(frame, config)

    assert blob[0, 2].min() == pytest.approx(1.0)
    assert blob[0, 0].max() == pytest.approx(0.0)


def test_preprocess_empty_frame():
    """Test that preprocessing rejects empty frames."""
    with pytest.raises(ValueError):
        preprocess(np.array([]), ModelConfig())


def test_preprocess_none_frame():
    """Test that preprocessing rejects None."""
    with pytest.raises(ValueError):
        preprocess(None, ModelConfig())


def test_preprocess_non_square_input():
    config = ModelConfig(input_size=(160, 96))
    blob = preprocess(np.zeros((200, 200, 3), dtype=np.uint8), config)
    assert blob.shape == (1, 3, 96, 160)
