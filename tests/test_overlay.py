"""
Tests for the overlay renderer and its two strategies.
"""

import numpy as np
import pytest

from detect_overlay.config import OverlayConfig
from detect_overlay.detection import Detection, DisplayRect, Label, NormalizedRect
from detect_overlay.frame import Frame
from detect_overlay.overlay import (
    FullRedrawStrategy,
    IncrementalLayerStrategy,
    OverlayRenderer,
    create_renderer,
)
from detect_overlay.surface import DisplaySurface

RED = (0, 0, 255)


def _det(x, y, w, h, *labels):
    return Detection(NormalizedRect(x, y, w, h), tuple(Label(name, conf) for name, conf in labels))


def _frame(width=100, height=200):
    return Frame(image=np.zeros((height, width, 3), dtype=np.uint8), timestamp=0.0)


@pytest.fixture
def incremental():
    surface = DisplaySurface(size=(100, 200))
    return OverlayRenderer(surface, OverlayConfig(strategy="incremental"))


@pytest.fixture
def full_redraw():
    surface = DisplaySurface()
    return OverlayRenderer(surface, OverlayConfig(strategy="full_redraw"))


def test_strategy_selection(incremental, full_redraw):
    assert isinstance(incremental.strategy, IncrementalLayerStrategy)
    assert isinstance(full_redraw.strategy, FullRedrawStrategy)


def test_handles_do_not_accumulate_across_renders(incremental):
    """N1 then N2 detections leaves exactly N2 boxes (+ their labels) live."""
    first = [
        _det(0.1, 0.1, 0.2, 0.2, ("cat", 0.9)),
        _det(0.4, 0.4, 0.2, 0.2, ("dog", 0.8)),
        _det(0.7, 0.7, 0.2, 0.2),
    ]
    second = [_det(0.0, 0.0, 0.5, 0.5, ("bird", 0.7))]

    incremental.render(first, (100, 200))
    strategy = incremental.strategy
    assert len(strategy.rect_handles) == 3
    assert len(strategy.text_handles) == 2
    assert incremental.surface.layer_count == 5

    incremental.render(second, (100, 200))
    assert len(strategy.rect_handles) == 1
    assert len(strategy.text_handles) == 1
    assert incremental.surface.layer_count == 2


def test_empty_labels_draw_rectangle_only(incremental):
    incremental.render([_det(0.2, 0.2, 0.3, 0.3)], (100, 200))

    assert len(incremental.strategy.rect_handles) == 1
    assert incremental.strategy.text_handles == ()
    assert incremental.surface.layers("text") == []


def test_render_with_no_detections_clears_overlay(incremental):
    incremental.render([_det(0.2, 0.2, 0.3, 0.3, ("cat", 0.5))], (100, 200))
    incremental.render([], (100, 200))

    assert incremental.surface.layer_count == 0
    assert incremental.strategy.live_handle_count == 0


def test_label_uses_top_label_and_sits_above_box(incremental):
    det = _det(0.2, 0.3, 0.1, 0.1, ("dollar-bill", 0.9), ("receipt", 0.1))
    incremental.render([det], (100, 200))

    (box,) = incremental.surface.layers("rect")
    (text,) = incremental.surface.layers("text")
    assert box.rect.y == pytest.approx(120.0)
    assert text.text == "dollar-bill"
    assert text.rect.y == pytest.approx(box.rect.y - 20)
    assert text.rect.x == pytest.approx(box.rect.x)
    assert text.rect.width == pytest.approx(box.rect.width)


def test_failed_render_is_cleaned_up_by_next_render(incremental, monkeypatch):
    """Handles created before a failure are still released next cycle."""
    surface = incremental.surface
    original_add_text = surface.add_text
    calls = {"n": 0}

    def flaky_add_text(*args, **kwargs):
        calls["n"] += 1
        if calls["n"] == 1:
            raise RuntimeError("drawing backend hiccup")
        return original_add_text(*args, **kwargs)

    monkeypatch.setattr(surface, "add_text", flaky_add_text)
    dets = [_det(0.1, 0.1, 0.2, 0.2, ("cat", 0.9)), _det(0.5, 0.5, 0.2, 0.2, ("dog", 0.9))]

    with pytest.raises(RuntimeError):
        incremental.render(dets, (100, 200))
    assert surface.layer_count == 1

    incremental.render([], (100, 200))
    assert surface.layer_count == 0


def test_stale_sequence_is_dropped(incremental):
    newer = [_det(0.0, 0.0, 1.0, 1.0, ("new", 0.9))]
    older = [_det(0.1, 0.1, 0.1, 0.1, ("old", 0.9)), _det(0.5, 0.5, 0.1, 0.1)]

    assert incremental.render(newer, (100, 200), sequence=2)
    assert not incremental.render(older, (100, 200), sequence=1)
    assert not incremental.render(older, (100, 200), sequence=2)

    assert incremental.stale_dropped == 2
    assert incremental.last_sequence == 2
    (text,) = incremental.surface.layers("text")
    assert text.text == "new"


def test_incremental_compose_draws_over_live_background(incremental):
    frame = _frame()
    incremental.present(frame)
    incremental.render([_det(0.0, 0.0, 1.0, 1.0)], (100, 200))

    composed = incremental.surface.compose()

    assert composed.shape == (200, 100, 3)
    assert tuple(composed[0, 50]) == RED
    assert tuple(composed[100, 50]) == (0, 0, 0)
    # The background raster itself is never drawn on.
    assert not incremental.surface.image.any()


def test_full_redraw_replaces_surface_image(full_redraw):
    frame = _frame()
    full_redraw.render([_det(0.0, 0.0, 1.0, 1.0, ("dollar-bill", 0.9))], (100, 200), frame=frame)

    image = full_redraw.surface.image
    assert image.shape == (200, 100, 3)
    assert tuple(image[0, 50]) == RED
    assert tuple(image[100, 50]) == (0, 0, 0)
    assert full_redraw.surface.layer_count == 0
    # Source frame untouched.
    assert not frame.image.any()


def test_full_redraw_scales_frame_to_display(full_redraw):
    full_redraw.render([], (320, 240), frame=_frame(64, 48))
    assert full_redraw.surface.size == (320, 240)


def test_full_redraw_previous_boxes_do_not_persist(full_redraw):
    full_redraw.render([_det(0.0, 0.0, 1.0, 1.0)], (100, 200), frame=_frame())
    full_redraw.render([], (100, 200), frame=_frame())
    assert not full_redraw.surface.image.any()


def test_full_redraw_requires_frame(full_redraw):
    with pytest.raises(ValueError, match="frame"):
        full_redraw.render([_det(0, 0, 1, 1)], (100, 200))


def test_rejected_render_does_not_consume_sequence(full_redraw):
    with pytest.raises(ValueError, match="frame"):
        full_redraw.render([_det(0, 0, 1, 1)], (100, 200), sequence=1)
    assert full_redraw.last_sequence is None
    assert full_redraw.renders == 0

    assert full_redraw.render([_det(0, 0, 1, 1)], (100, 200), frame=_frame(), sequence=1)
    assert full_redraw.last_sequence == 1
    assert full_redraw.stale_dropped == 0


def test_missing_surface_is_rejected():
    with pytest.raises(ValueError, match="surface"):
        OverlayRenderer(None)


def test_unknown_strategy_is_rejected():
    with pytest.raises(ValueError, match="strategy"):
        OverlayRenderer(DisplaySurface(), OverlayConfig(strategy="sprites"))


def test_create_renderer_sizes_surface_from_config():
    renderer = create_renderer(OverlayConfig(display_size=(320, 240)))
    assert renderer.surface.size == (320, 240)
    assert renderer.surface.compose().shape == (240, 320, 3)


def test_clamp_boxes_applied(incremental):
    incremental.render([_det(-0.5, 0.0, 1.0, 1.0)], (100, 200))
    (box,) = incremental.surface.layers("rect")
    assert box.rect == DisplayRect(0.0, 0.0, 50.0, 200.0)
