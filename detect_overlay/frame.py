"""
Frame value type.

A Frame is one image sample delivered by the frame source: a BGR
numpy array plus the monotonic capture timestamp and a 0-based index.
Frames are created per tick and discarded after one inference cycle.
"""

from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True, eq=False)
class Frame:
    """An immutable image sample.

    Attributes:
        image: BGR image with shape (H, W, 3), as returned by OpenCV.
        timestamp: Capture time in seconds (time.monotonic() clock).
        frame_id: 0-based index within the source.
    """

    image: np.ndarray
    timestamp: float
    frame_id: int = 0

    @property
    def width(self) -> int:
        return int(self.image.shape[1])

    @property
    def height(self) -> int:
        return int(self.image.shape[0])

    @property
    def size(self):
        """(width, height) in pixels."""
        return self.width, self.height
