"""
Overlay rendering for detection results.

Responsibility:
    Turn one frame's detections into on-screen annotations (box plus the
    top label) on a DisplaySurface, replacing the previous frame's
    annotations so the surface never shows boxes from two frames.

Two strategies, selected by OverlayConfig.strategy:

    - 'full_redraw': composite the frame, every box and every label
      into a single new raster and swap it onto the surface.
    - 'incremental': keep the live preview as the surface image and
      maintain rectangle and text layer handles on top of it. Every
      render first releases all handles created by the previous one.

Non-goals:
    - No detection or model logic.
    - No window management or file output.
"""

import logging
from typing import Iterable, List, Optional, Sequence, Tuple

from detect_overlay import visualizer
from detect_overlay.config import OverlayConfig
from detect_overlay.detection import Detection
from detect_overlay.frame import Frame
from detect_overlay.geometry import label_rect, map_to_display
from detect_overlay.surface import DisplaySurface, LayerHandle

logger = logging.getLogger(__name__)


class FullRedrawStrategy:
    """Recomposite the whole frame on every render."""

    name = "full_redraw"

    def __init__(self, surface: DisplaySurface, config: OverlayConfig) -> None:
        self._surface = surface
        self._config = config

    @property
    def live_handle_count(self) -> int:
        return 0

    def present(self, frame: Frame, display_size: Tuple[int, int]) -> None:
        # The surface only changes when a composited result arrives.
        pass

    def draw(
        self,
        detections: Sequence[Detection],
        display_size: Tuple[int, int],
        frame: Optional[Frame],
    ) -> None:
        if frame is None:
            raise ValueError("Full-redraw rendering needs the source frame.")

        cfg = self._config
        image = visualizer.fit_to_display(frame.image, display_size)

        for det in detections:
            rect = map_to_display(det.bounding_box, display_size, clamp=cfg.clamp_boxes)
            visualizer.draw_box(image, rect, cfg.box_color, cfg.thickness)

            top = det.top_label
            if top is not None:
                visualizer.draw_label(
                    image, label_rect(rect, cfg.label_height), top.identifier, cfg.text_color
                )

        self._surface.set_image(image)

    def clear(self) -> None:
        pass


class IncrementalLayerStrategy:
    """Maintain one rect layer (and optional text layer) per detection."""

    name = "incremental"

    def __init__(self, surface: DisplaySurface, config: OverlayConfig) -> None:
        self._surface = surface
        self._config = config
        self._rect_handles: List[LayerHandle] = []
        self._text_handles: List[LayerHandle] = []

    @property
    def rect_handles(self) -> Tuple[LayerHandle, ...]:
        return tuple(self._rect_handles)

    @property
    def text_handles(self) -> Tuple[LayerHandle, ...]:
        return tuple(self._text_handles)

    @property
    def live_handle_count(self) -> int:
        return len(self._rect_handles) + len(self._text_handles)

    def present(self, frame: Frame, display_size: Tuple[int, int]) -> None:
        self._surface.set_image(visualizer.fit_to_display(frame.image, display_size))

    def draw(
        self,
        detections: Sequence[Detection],
        display_size: Tuple[int, int],
        frame: Optional[Frame],
    ) -> None:
        self.clear()

        if frame is not None and self._surface.image is None:
            self.present(frame, display_size)

        cfg = self._config
        for det in detections:
            rect = map_to_display(det.bounding_box, display_size, clamp=cfg.clamp_boxes)
            # Appended as soon as created: a failure mid-loop still leaves
            # every live handle reachable by the next clear().
            self._rect_handles.append(
                self._surface.add_rect(rect, cfg.box_color, cfg.thickness)
            )

            top = det.top_label
            if top is not None:
                self._text_handles.append(
                    self._surface.add_text(
                        label_rect(rect, cfg.label_height), top.identifier, cfg.text_color
                    )
                )

    def clear(self) -> None:
        """Remove and release every handle from both collections."""
        for handles in (self._rect_handles, self._text_handles):
            while handles:
                handle = handles.pop()
                try:
                    self._surface.remove(handle)
                except KeyError:
                    logger.warning("Overlay layer already released: %s", handle)


_STRATEGIES = {
    FullRedrawStrategy.name: FullRedrawStrategy,
    IncrementalLayerStrategy.name: IncrementalLayerStrategy,
}


class OverlayRenderer:
    """Render detection results onto a display surface.

    Usage:
        surface = DisplaySurface()
        renderer = OverlayRenderer(surface, config.overlay)
        renderer.present(frame)                       # every delivered frame
        renderer.render(detections, frame.size, frame, sequence=7)

    Results carry a sequence number; a result whose sequence is not newer
    than the last rendered one is dropped, so an inference that finishes
    late never overwrites a newer overlay.
    """

    def __init__(
        self,
        surface: DisplaySurface,
        config: Optional[OverlayConfig] = None,
    ) -> None:
        """
        Raises:
            ValueError: If surface is missing or the strategy is unknown.
        """
        if surface is None:
            raise ValueError("OverlayRenderer requires a display surface.")
        config = config or OverlayConfig()

        try:
            strategy_cls = _STRATEGIES[config.strategy]
        except KeyError:
            raise ValueError(
                f"Unknown overlay strategy: '{config.strategy}'. "
                f"Must be one of {sorted(_STRATEGIES)}."
            ) from None

        self._surface = surface
        self._config = config
        self._strategy = strategy_cls(surface, config)
        self._last_sequence: Optional[int] = None
        self.renders = 0
        self.stale_dropped = 0

        logger.info("OverlayRenderer initialized (strategy=%s)", self._strategy.name)

    @property
    def surface(self) -> DisplaySurface:
        return self._surface

    @property
    def strategy(self):
        return self._strategy

    @property
    def last_sequence(self) -> Optional[int]:
        return self._last_sequence

    def present(self, frame: Frame, display_size: Optional[Tuple[int, int]] = None) -> None:
        """Show a newly delivered frame (live preview), keeping the overlay."""
        self._strategy.present(frame, display_size or frame.size)

    def render(
        self,
        detections: Iterable[Detection],
        display_size: Tuple[int, int],
        frame: Optional[Frame] = None,
        sequence: Optional[int] = None,
    ) -> bool:
        """Replace the current overlay with `detections`.

        Args:
            detections: One frame's detections.
            display_size: (width, height) of the display surface.
            frame: The frame the detections belong to. Required by the
                   full-redraw strategy.
            sequence: Monotonic result number; None disables stale checks.

        Returns:
            True if rendered, False if dropped as stale.

        Raises:
            ValueError: On a precondition failure (e.g. missing frame for
                        full redraw, non-positive display size).
        """
        if sequence is not None:
            if self._last_sequence is not None and sequence <= self._last_sequence:
                self.stale_dropped += 1
                logger.debug(
                    "Dropping stale render (sequence=%d, last=%d)",
                    sequence, self._last_sequence,
                )
                return False

        self._strategy.draw(list(detections), display_size, frame)
        # Only a completed draw advances the stale-result watermark.
        if sequence is not None:
            self._last_sequence = sequence
        self.renders += 1
        return True

    def clear(self) -> None:
        """Remove every annotation currently on the surface."""
        self._strategy.clear()

    def reset(self) -> None:
        """Clear the overlay and forget the last rendered sequence."""
        self.clear()
        self._last_sequence = None


def create_renderer(
    config: OverlayConfig,
    surface: Optional[DisplaySurface] = None,
) -> OverlayRenderer:
    """Build a renderer (and a surface sized from config if none given)."""
    if surface is None:
        surface = DisplaySurface(size=config.display_size)
    return OverlayRenderer(surface, config)
