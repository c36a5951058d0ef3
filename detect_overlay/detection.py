"""
Detection data transfer objects.

This module defines the value types that flow between the detector
adapter and the overlay renderer:

    - NormalizedRect: a detector-space box, components in [0, 1],
      origin at the BOTTOM-LEFT corner of the frame.
    - Label: one (identifier, confidence) candidate.
    - Detection: one detected object instance with its ranked labels.
    - DisplayRect: a box in on-screen pixel coordinates, origin at the
      TOP-LEFT corner of the display surface.

All types are frozen and carry no behavior beyond data access and
serialization.

Non-goals:
    - No rendering logic.
    - No file I/O.
    - No coordinate transformation (that belongs in geometry).
"""

from dataclasses import dataclass
from typing import Optional, Tuple


def _clamp_unit(value: float) -> float:
    return max(0.0, min(1.0, value))


@dataclass(frozen=True, slots=True)
class NormalizedRect:
    """A bounding box in normalized detector space.

    Attributes:
        x: Left edge, as a fraction of frame width.
        y: Bottom edge, as a fraction of frame height (origin bottom-left).
        width: Box width, as a fraction of frame width.
        height: Box height, as a fraction of frame height.
    """

    x: float
    y: float
    width: float
    height: float

    def is_normalized(self) -> bool:
        """Return True if every component lies in [0, 1]."""
        return all(
            0.0 <= v <= 1.0 for v in (self.x, self.y, self.width, self.height)
        )

    def clamped(self) -> "NormalizedRect":
        """Return a copy clamped into the unit square.

        The origin is clamped first, then the extent is limited so the
        box does not run past the right or top edge.
        """
        x = _clamp_unit(self.x)
        y = _clamp_unit(self.y)
        width = max(0.0, min(self.x + self.width, 1.0) - x)
        height = max(0.0, min(self.y + self.height, 1.0) - y)
        return NormalizedRect(x=x, y=y, width=width, height=height)

    def to_dict(self) -> dict:
        """Return a plain dict suitable for JSON serialization."""
        return {
            "x": round(self.x, 6),
            "y": round(self.y, 6),
            "width": round(self.width, 6),
            "height": round(self.height, 6),
        }


@dataclass(frozen=True, slots=True)
class Label:
    """A single classification candidate for a detection."""

    identifier: str
    confidence: float

    def to_dict(self) -> dict:
        return {
            "identifier": self.identifier,
            "confidence": round(self.confidence, 4),
        }


@dataclass(frozen=True, slots=True)
class Detection:
    """A single detected object.

    Attributes:
        bounding_box: Normalized box, origin bottom-left.
        labels: Candidate labels ordered by confidence, highest first.
                May be empty.
    """

    bounding_box: NormalizedRect
    labels: Tuple[Label, ...] = ()

    @property
    def top_label(self) -> Optional[Label]:
        """The highest-confidence label, or None if there are no labels."""
        return self.labels[0] if self.labels else None

    @property
    def confidence(self) -> float:
        """Confidence of the top label (0.0 when unlabelled)."""
        top = self.top_label
        return top.confidence if top is not None else 0.0

    def to_dict(self) -> dict:
        """Return a plain dict suitable for JSON serialization."""
        return {
            "bounding_box": self.bounding_box.to_dict(),
            "labels": [label.to_dict() for label in self.labels],
        }


@dataclass(frozen=True, slots=True)
class DisplayRect:
    """A bounding box in display-surface pixels (origin top-left)."""

    x: float
    y: float
    width: float
    height: float

    @property
    def top_left(self) -> Tuple[int, int]:
        """Integer top-left corner for OpenCV drawing calls."""
        return int(round(self.x)), int(round(self.y))

    @property
    def bottom_right(self) -> Tuple[int, int]:
        """Integer bottom-right corner for OpenCV drawing calls."""
        return int(round(self.x + self.width)), int(round(self.y + self.height))

    def to_dict(self) -> dict:
        return {
            "x": round(self.x, 2),
            "y": round(self.y, 2),
            "width": round(self.width, 2),
            "height": round(self.height, 2),
        }
