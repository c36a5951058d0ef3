"""
Drawing primitives for the detection overlay.

Responsibility:
    Rasterize boxes and label text onto BGR images with OpenCV, scale
    frames to the display size, and show images in a window. Both
    overlay strategies and the display surface draw through here.

Non-goals:
    - No coordinate mapping (see geometry).
    - No handle bookkeeping (see overlay / surface).
    - No file writing.
"""

from typing import Tuple

import cv2
import numpy as np

from detect_overlay.detection import DisplayRect

# Hard-coded rendering constants (cosmetic internals, not user-facing)
_FONT = cv2.FONT_HERSHEY_SIMPLEX
_FONT_THICKNESS = 1
_LABEL_PADDING = 4

WINDOW_NAME = "Detection Overlay"


def fit_to_display(image: np.ndarray, display_size: Tuple[int, int]) -> np.ndarray:
    """Return `image` stretched to (width, height), copying if unchanged.

    The aspect ratio is NOT preserved, matching how boxes are mapped.
    """
    width, height = int(display_size[0]), int(display_size[1])
    if image.shape[1] == width and image.shape[0] == height:
        return image.copy()
    return cv2.resize(image, (width, height), interpolation=cv2.INTER_LINEAR)


def blank_canvas(display_size: Tuple[int, int]) -> np.ndarray:
    """Black BGR canvas of the given (width, height)."""
    width, height = int(display_size[0]), int(display_size[1])
    return np.zeros((height, width, 3), dtype=np.uint8)


def draw_box(
    image: np.ndarray,
    rect: DisplayRect,
    color: Tuple[int, int, int],
    thickness: int,
) -> None:
    """Stroke `rect` onto `image` in place."""
    cv2.rectangle(image, rect.top_left, rect.bottom_right, color=color, thickness=thickness)


def draw_label(
    image: np.ndarray,
    rect: DisplayRect,
    text: str,
    color: Tuple[int, int, int],
) -> None:
    """Draw `text` inside the label strip `rect`, in place.

    The font is scaled so the glyphs fit the strip height. If the strip
    lies above the top edge of the image the text is pushed down to stay
    visible.
    """
    if not text:
        return

    font_scale = max(rect.height - 2 * _LABEL_PADDING, 1) / 22.0
    (_, text_h), baseline = cv2.getTextSize(text, _FONT, font_scale, _FONT_THICKNESS)

    x, _ = rect.top_left
    baseline_y = int(round(rect.y + rect.height)) - _LABEL_PADDING
    if baseline_y - text_h < 0:
        baseline_y = text_h + _LABEL_PADDING

    cv2.putText(
        image,
        text,
        (x + _LABEL_PADDING // 2, baseline_y),
        _FONT,
        font_scale,
        color,
        _FONT_THICKNESS,
        cv2.LINE_AA,
    )


def show_image(image: np.ndarray, wait_ms: int = 1) -> int:
    """Show `image` in the overlay window and return the key pressed.

    Args:
        image: BGR image to display.
        wait_ms: Milliseconds to wait for a key; 0 blocks until a key.

    Returns:
        The key code (int) pressed during waitKey, or 255 if no key.
    """
    cv2.imshow(WINDOW_NAME, image)
    return cv2.waitKey(wait_ms) & 0xFF
