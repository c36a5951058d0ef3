"""
Display surface with a raster image and an ordered layer stack.

The surface stands in for the on-screen view the overlay is drawn on:

    - `image`: the background raster (live preview or a fully
      composited frame), replaced wholesale via `set_image`.
    - layers: rectangle-stroke and text layers kept in insertion order
      and addressed by LayerHandle. Only the owner of a handle removes it.

`compose()` produces what would be on screen: the image with every live
layer drawn on top. The renderer writes to the surface and never reads
it back.

Thread-safety: none. The surface belongs to the display-owning thread.
"""

import itertools
import logging
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

import numpy as np

from detect_overlay import visualizer
from detect_overlay.detection import DisplayRect

logger = logging.getLogger(__name__)

RECT = "rect"
TEXT = "text"


@dataclass(frozen=True)
class LayerHandle:
    """Opaque reference to one live layer on a DisplaySurface."""

    layer_id: int
    kind: str


@dataclass(frozen=True)
class _Layer:
    kind: str
    rect: DisplayRect
    color: Tuple[int, int, int]
    thickness: int = 1
    text: str = ""


class DisplaySurface:
    """Raster image plus overlay layers.

    Usage:
        surface = DisplaySurface(size=(640, 480))
        surface.set_image(frame_bgr)
        handle = surface.add_rect(rect, color=(0, 0, 255), thickness=2)
        surface.remove(handle)
        annotated = surface.compose()
    """

    def __init__(self, size: Optional[Tuple[int, int]] = None) -> None:
        self._size = tuple(size) if size is not None else None
        self._image: Optional[np.ndarray] = None
        self._layers: Dict[int, _Layer] = {}
        self._ids = itertools.count(1)

    @property
    def size(self) -> Optional[Tuple[int, int]]:
        """(width, height) of the surface, or None before the first image."""
        return self._size

    @property
    def image(self) -> Optional[np.ndarray]:
        return self._image

    @property
    def layer_count(self) -> int:
        return len(self._layers)

    def layers(self, kind: Optional[str] = None) -> list:
        """Live layers in drawing order, optionally filtered by kind."""
        return [
            layer for layer in self._layers.values()
            if kind is None or layer.kind == kind
        ]

    def set_image(self, image: np.ndarray) -> None:
        """Replace the raster image; the surface adopts its size."""
        self._image = image
        self._size = (int(image.shape[1]), int(image.shape[0]))

    def add_rect(
        self,
        rect: DisplayRect,
        color: Tuple[int, int, int],
        thickness: int,
    ) -> LayerHandle:
        """Add a rectangle-stroke layer and return its handle."""
        return self._add(_Layer(kind=RECT, rect=rect, color=color, thickness=thickness))

    def add_text(
        self,
        rect: DisplayRect,
        text: str,
        color: Tuple[int, int, int],
    ) -> LayerHandle:
        """Add a text layer drawn inside `rect` and return its handle."""
        return self._add(_Layer(kind=TEXT, rect=rect, color=color, text=text))

    def remove(self, handle: LayerHandle) -> None:
        """Remove the layer behind `handle`.

        Raises:
            KeyError: If the handle is not live on this surface.
        """
        if handle.layer_id not in self._layers:
            raise KeyError(f"Unknown or already released layer: {handle}")
        del self._layers[handle.layer_id]

    def compose(self) -> np.ndarray:
        """Return a new BGR image with every live layer drawn on the raster.

        Raises:
            ValueError: If the surface has neither an image nor a size.
        """
        if self._image is not None:
            canvas = self._image.copy()
        elif self._size is not None:
            canvas = visualizer.blank_canvas(self._size)
        else:
            raise ValueError("Display surface has no image and no size to compose.")

        for layer in self._layers.values():
            if layer.kind == RECT:
                visualizer.draw_box(canvas, layer.rect, layer.color, layer.thickness)
            else:
                visualizer.draw_label(canvas, layer.rect, layer.text, layer.color)
        return canvas

    def _add(self, layer: _Layer) -> LayerHandle:
        layer_id = next(self._ids)
        self._layers[layer_id] = layer
        return LayerHandle(layer_id=layer_id, kind=layer.kind)
