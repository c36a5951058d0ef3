"""
Detection Overlay — throttled object detection drawn over camera or image frames.

Public API:
    - DetectionSession: throttle → detect → render pipeline for one capture session.
    - OverlayRenderer / DisplaySurface: the overlay and what it is drawn on.
    - ThrottleGate: time-based frame admission.
    - map_to_display: normalized bottom-left boxes → display pixels.
    - Detector: OpenCV DNN adapter for ONNX detection models.
    - Detection, Label, NormalizedRect, DisplayRect, Frame: value types.

Usage:
    from detect_overlay import (
        DetectionSession, Detector, DisplaySurface, OverlayRenderer, ThrottleGate,
    )

    renderer = OverlayRenderer(DisplaySurface())
    with DetectionSession(Detector(), renderer, ThrottleGate(3.0)) as session:
        session.submit_frame(frame)
        session.present(frame)
        session.drain()
"""

from detect_overlay.detection import Detection, DisplayRect, Label, NormalizedRect
from detect_overlay.detector import Detector
from detect_overlay.errors import DetectOverlayError, InferenceError
from detect_overlay.frame import Frame
from detect_overlay.geometry import map_to_display
from detect_overlay.overlay import OverlayRenderer, create_renderer
from detect_overlay.session import DetectionSession, InferenceResult
from detect_overlay.surface import DisplaySurface, LayerHandle
from detect_overlay.throttle import ThrottleGate

__all__ = [
    "DetectOverlayError",
    "Detection",
    "DetectionSession",
    "Detector",
    "DisplayRect",
    "DisplaySurface",
    "Frame",
    "InferenceError",
    "InferenceResult",
    "Label",
    "LayerHandle",
    "NormalizedRect",
    "OverlayRenderer",
    "ThrottleGate",
    "create_renderer",
    "map_to_display",
]
