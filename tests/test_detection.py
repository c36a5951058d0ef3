"""
Tests for the detection value types.
"""

import pytest

from detect_overlay.detection import Detection, DisplayRect, Label, NormalizedRect


def test_top_label_is_first_label():
    det = Detection(
        NormalizedRect(0, 0, 1, 1),
        labels=(Label("dollar-bill", 0.9), Label("coupon", 0.05)),
    )
    assert det.top_label == Label("dollar-bill", 0.9)
    assert det.confidence == pytest.approx(0.9)


def test_unlabelled_detection():
    det = Detection(NormalizedRect(0, 0, 1, 1))
    assert det.top_label is None
    assert det.confidence == 0.0
    assert det.to_dict()["labels"] == []


def test_clamped_rect():
    rect = NormalizedRect(x=0.8, y=-0.2, width=0.5, height=0.5).clamped()
    assert rect.x == pytest.approx(0.8)
    assert rect.y == pytest.approx(0.0)
    assert rect.width == pytest.approx(0.2)
    assert rect.height == pytest.approx(0.3)
    assert rect.is_normalized()


def test_clamped_rect_fully_outside_is_empty():
    rect = NormalizedRect(x=1.5, y=0.1, width=0.2, height=0.2).clamped()
    assert rect.x == 1.0
    assert rect.width == 0.0


def test_display_rect_integer_corners():
    rect = DisplayRect(10.4, 20.6, 30.0, 40.0)
    assert rect.top_left == (10, 21)
    assert rect.bottom_right == (40, 61)
