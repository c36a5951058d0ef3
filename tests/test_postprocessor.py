"""
Tests for the postprocessing module.
"""

import numpy as np
import pytest

from detect_overlay.postprocessor import postprocess

CLASSES = ("dollar-bill", "coin")


def _output(rows, channel_first=False):
    """Build a (1, N, 4 + C) tensor, or (1, 4 + C, N) if channel_first."""
    tensor = np.array(rows, dtype=np.float32)[np.newaxis]
    if channel_first:
        tensor = tensor.transpose(0, 2, 1)
    return tensor


def test_postprocess_valid_detection():
    """Pixel-space centre box → normalized, bottom-left-origin rect."""
    # cx, cy, w, h in 640x640 input pixels, then per-class scores
    tensor = _output([[320, 160, 128, 64, 0.9, 0.05]])

    detections = postprocess(
        network_output=tensor,
        input_size=(640, 640),
        confidence_threshold=0.5,
        nms_threshold=0.45,
        class_names=CLASSES,
    )

    assert len(detections) == 1
    det = detections[0]
    box = det.bounding_box
    assert box.x == pytest.approx(0.4)
    assert box.width == pytest.approx(0.2)
    assert box.height == pytest.approx(0.1)
    # top edge at 0.2 from the top → bottom edge at 0.7 from the bottom
    assert box.y == pytest.approx(0.7)

    assert [label.identifier for label in det.labels] == ["dollar-bill", "coin"]
    assert det.labels[0].confidence == pytest.approx(0.9, abs=1e-5)


def test_postprocess_channel_first_layout():
    tensor = _output([[320, 160, 128, 64, 0.9, 0.05]], channel_first=True)
    assert tensor.shape == (1, 6, 1)

    detections = postprocess(tensor, (640, 640), 0.5, 0.45, class_names=CLASSES)

    assert len(detections) == 1
    assert detections[0].bounding_box.x == pytest.approx(0.4)


def test_postprocess_confidence_filtering():
    """Candidates whose best class score is below threshold are ignored."""
    tensor = _output([[320, 160, 128, 64, 0.4, 0.3]])
    assert postprocess(tensor, (640, 640), 0.5, 0.45, class_names=CLASSES) == []


def test_postprocess_nms_keeps_best_overlapping_box():
    tensor = _output([
        [320, 320, 200, 200, 0.8, 0.0],
        [322, 322, 200, 200, 0.9, 0.0],
        [100, 100, 50, 50, 0.0, 0.7],
    ])

    detections = postprocess(tensor, (640, 640), 0.5, 0.45, class_names=CLASSES)

    assert len(detections) == 2
    assert detections[0].confidence == pytest.approx(0.9, abs=1e-5)
    assert detections[1].top_label.identifier == "coin"
    # Zero scores are not reported as candidate labels.
    assert len(detections[1].labels) == 1


def test_postprocess_max_labels():
    tensor = _output([[320, 320, 100, 100, 0.9, 0.6]])
    detections = postprocess(tensor, (640, 640), 0.5, 0.45, class_names=CLASSES, max_labels=1)
    assert len(detections[0].labels) == 1


def test_postprocess_unknown_class_names():
    tensor = _output([[320, 320, 100, 100, 0.9]])
    detections = postprocess(tensor, (640, 640), 0.5, 0.45)
    assert detections[0].top_label.identifier == "class_0"


def test_postprocess_full_frame_box():
    tensor = _output([[320, 240, 640, 480, 0.95, 0.0]])
    detections = postprocess(tensor, (640, 480), 0.5, 0.45, class_names=CLASSES)
    box = detections[0].bounding_box
    assert (box.x, box.y, box.width, box.height) == pytest.approx((0.0, 0.0, 1.0, 1.0))


def test_postprocess_rejects_unexpected_shape():
    with pytest.raises(ValueError, match="shape"):
        postprocess(np.zeros((1, 2, 3, 4), dtype=np.float32), (640, 640), 0.5, 0.45)


def test_postprocess_channel_first_with_mismatched_class_names(caplog):
    """A labels file that disagrees with the model still parses channel-first output."""
    tensor = np.zeros((1, 5, 8400), dtype=np.float32)
    tensor[0, :, 0] = [320, 320, 640, 640, 0.9]

    with caplog.at_level("WARNING"):
        detections = postprocess(tensor, (640, 640), 0.5, 0.45, class_names=CLASSES)

    assert len(detections) == 1
    det = detections[0]
    assert det.top_label.identifier == "dollar-bill"
    box = det.bounding_box
    assert (box.x, box.y, box.width, box.height) == pytest.approx((0.0, 0.0, 1.0, 1.0))
    assert "Class names list 2 classes" in caplog.text
