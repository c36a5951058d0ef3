"""
Tests for the detector module.
"""

from pathlib import Path

import cv2
import numpy as np
import pytest

import detect_overlay.detector as detector_module
from detect_overlay.config import AppConfig
from detect_overlay.detector import Detector
from detect_overlay.errors import InferenceError

# Skip integration tests if model files are missing
_PROJECT_ROOT = Path(__file__).resolve().parent.parent
_MODEL_EXISTS = (_PROJECT_ROOT / "models/best.onnx").exists()


class FakeNet:
    """Stands in for cv2.dnn.Net with a fixed output tensor."""

    def __init__(self, output=None, error=None):
        self.output = output
        self.error = error
        self.inputs = []

    def setInput(self, blob):
        self.inputs.append(blob)

    def forward(self):
        if self.error is not None:
            raise self.error
        return self.output


@pytest.fixture
def fake_detector(monkeypatch):
    """Detector wired to a FakeNet returning one full-frame 'dollar-bill'."""
    # (1, 4 + C, N) with C=1, N=1: full 640x640 box, score 0.9
    output = np.array([[[320.0], [320.0], [640.0], [640.0], [0.9]]], dtype=np.float32)
    net = FakeNet(output=output)
    monkeypatch.setattr(detector_module, "load_model", lambda config: net)
    monkeypatch.setattr(detector_module, "load_class_names", lambda path: ["dollar-bill"])
    return Detector(AppConfig()), net


def test_detector_returns_normalized_detections(fake_detector):
    detector, net = fake_detector
    frame = np.zeros((480, 640, 3), dtype=np.uint8)

    detections = detector.detect(frame)

    assert len(detections) == 1
    det = detections[0]
    assert det.top_label.identifier == "dollar-bill"
    box = det.bounding_box
    assert (box.x, box.y, box.width, box.height) == pytest.approx((0.0, 0.0, 1.0, 1.0))
    assert net.inputs[0].shape == (1, 3, 640, 640)


def test_detector_wraps_engine_errors(fake_detector):
    detector, net = fake_detector
    net.error = cv2.error("forward failed")

    with pytest.raises(InferenceError, match="forward"):
        detector.detect(np.zeros((10, 10, 3), dtype=np.uint8))


def test_detector_wraps_malformed_output(fake_detector):
    detector, net = fake_detector
    net.output = np.zeros((1, 2, 3, 4), dtype=np.float32)

    with pytest.raises(InferenceError, match="output"):
        detector.detect(np.zeros((10, 10, 3), dtype=np.uint8))


def test_detector_input_validation(fake_detector):
    """Malformed frames are per-frame inference failures."""
    detector, _ = fake_detector

    # 1. Wrong type
    with pytest.raises(InferenceError, match="numpy ndarray") as excinfo:
        detector.detect("not a frame")
    assert isinstance(excinfo.value.__cause__, TypeError)

    # 2. Empty frame
    with pytest.raises(InferenceError, match="empty"):
        detector.detect(np.array([]))

    # 3. Wrong shape (grayscale)
    with pytest.raises(InferenceError, match="3-dimensional") as excinfo:
        detector.detect(np.zeros((100, 100), dtype=np.uint8))
    assert isinstance(excinfo.value.__cause__, ValueError)

    # 4. Wrong channels (BGRA)
    with pytest.raises(InferenceError, match="3 channels"):
        detector.detect(np.zeros((100, 100, 4), dtype=np.uint8))


def test_malformed_frame_is_skipped_by_session(fake_detector, caplog):
    from detect_overlay.frame import Frame
    from detect_overlay.overlay import OverlayRenderer
    from detect_overlay.session import DetectionSession
    from detect_overlay.surface import DisplaySurface

    detector, _ = fake_detector
    gray = Frame(np.zeros((48, 64), dtype=np.uint8), 0.0, 0)

    with DetectionSession(detector, OverlayRenderer(DisplaySurface())) as session:
        session.submit_frame(gray, force=True)
        assert session.wait_idle(timeout=5.0)
        assert session.drain() == 0
        assert session.stats.inference_failures == 1
    assert "Malformed frame" in caplog.text
    assert "Unexpected inference error" not in caplog.text


def test_missing_model_file_is_fatal(tmp_path):
    from detect_overlay.config import ModelConfig

    config = AppConfig(model=ModelConfig(model_path=str(tmp_path / "missing.onnx")))
    with pytest.raises(FileNotFoundError, match="model"):
        Detector(config)


@pytest.mark.skipif(not _MODEL_EXISTS, reason="Model files not found")
def test_detector_integration_smoke():
    """Smoke test: detector initializes and runs on a dummy frame."""
    detector = Detector()
    frame = np.zeros((480, 640, 3), dtype=np.uint8)

    detections = detector.detect(frame)
    assert isinstance(detections, list)
