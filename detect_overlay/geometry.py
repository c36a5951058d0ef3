"""
Coordinate mapping from detector space to display space.

The detector reports boxes normalized to [0, 1] with the origin at the
bottom-left of the frame; the display surface has its origin at the
top-left and is measured in pixels. The mapping is a scale plus a
vertical flip:

    x      = box.x * w
    y      = (1 - box.y - box.height) * h
    width  = box.width * w
    height = box.height * h

No letterbox or aspect-ratio correction is applied: if the frame and the
display surface differ in aspect ratio, boxes stretch with the image.
"""

from typing import Tuple

from detect_overlay.detection import DisplayRect, NormalizedRect


def _check_display_size(display_size: Tuple[float, float]) -> Tuple[float, float]:
    if len(display_size) != 2:
        raise ValueError(
            f"display_size must be a (width, height) pair, got {display_size}."
        )
    w, h = display_size
    if w <= 0 or h <= 0:
        raise ValueError(
            f"display_size dimensions must be positive, got {display_size}."
        )
    return float(w), float(h)


def map_to_display(
    box: NormalizedRect,
    display_size: Tuple[float, float],
    clamp: bool = False,
) -> DisplayRect:
    """Map a normalized, bottom-left-origin box to display pixels.

    Args:
        box: Detector-space box.
        display_size: (width, height) of the display surface in pixels.
        clamp: Clamp the box into the unit square first. When False,
               out-of-range components pass through unchanged.

    Returns:
        The box in display coordinates (origin top-left).

    Raises:
        ValueError: If display_size is not a positive (width, height) pair.
    """
    w, h = _check_display_size(display_size)
    if clamp:
        box = box.clamped()

    return DisplayRect(
        x=box.x * w,
        y=(1.0 - box.y - box.height) * h,
        width=box.width * w,
        height=box.height * h,
    )


def label_rect(rect: DisplayRect, height: float = 20) -> DisplayRect:
    """Return the label strip sitting directly above `rect`."""
    return DisplayRect(x=rect.x, y=rect.y - height, width=rect.width, height=height)
