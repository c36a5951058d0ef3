"""
Exception types for the detection overlay pipeline.

Setup failures (missing model, unopenable source, bad config) use the
built-in FileNotFoundError / RuntimeError / ValueError so callers can
treat them uniformly at startup. Per-frame failures raised by the
detector adapter use InferenceError, which the session logs and skips.
"""


class DetectOverlayError(Exception):
    """Base class for errors raised by this package."""


class InferenceError(DetectOverlayError):
    """A single frame could not be run through the detector.

    Never fatal: the frame is dropped and the next one proceeds normally.
    """

    def __init__(self, message: str, frame_id=None) -> None:
        super().__init__(message)
        self.frame_id = frame_id
