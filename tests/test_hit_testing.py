"""Tests for annotation/device hit-testing in canvas/hit_testing.py."""
from __future__ import annotations

import pytest

from canvas.hit_testing import (
    annotation_at,
    annotation_bounds,
    device_at,
    hit_test_annotation,
    hit_test_device,
    item_at,
    selection_bounds,
)
from models import (
    ArrowAnnotation,
    CircleAnnotation,
    Device,
    DeviceInfo,
    RectangleAnnotation,
    Scene,
    TextAnnotation,
)

INFO = DeviceInfo(key="pixel-8", name="Pixel 8", width=200, height=400)


# ─────────────────────────────────────────────────────────
# Annotations
# ─────────────────────────────────────────────────────────


class TestAnnotationHits:
    def test_rectangle_inside(self):
        r = RectangleAnnotation(id="r", x=10, y=20, width=100, height=60)
        assert hit_test_annotation(r, 50, 50)
        assert hit_test_annotation(r, 10, 20)
        assert hit_test_annotation(r, 110, 80)

    def test_rectangle_outside(self):
        r = RectangleAnnotation(id="r", x=10, y=20, width=100, height=60)
        assert not hit_test_annotation(r, 111, 50)
        assert not hit_test_annotation(r, 50, 19)

    def test_circle_uses_box(self):
        c = CircleAnnotation(id="c", x=0, y=0, width=100, height=40)
        # Corner of the box is outside the painted disc but still hits
        assert hit_test_annotation(c, 99, 1)

    def test_arrow_near_start(self):
        a = ArrowAnnotation(id="a", start_x=100, start_y=100, end_x=300, end_y=50)
        assert hit_test_annotation(a, 105, 100)

    def test_arrow_far_from_start(self):
        a = ArrowAnnotation(id="a", start_x=100, start_y=100, end_x=300, end_y=50)
        assert not hit_test_annotation(a, 125, 100)

    def test_arrow_end_does_not_hit(self):
        a = ArrowAnnotation(id="a", start_x=100, start_y=100, end_x=300, end_y=50)
        assert not hit_test_annotation(a, 300, 50)

    def test_text_bounds(self):
        t = TextAnnotation(id="t", x=100, y=100, text="abcd", font_size=20, padding=10)
        x, y, w, h = annotation_bounds(t)
        tw = 4 * 20 * 0.6
        assert (x, y, w, h) == pytest.approx((90, 100 - 40, tw + 20, 50))
        assert hit_test_annotation(t, 90, 60)
        assert hit_test_annotation(t, 100 + tw + 10, 110)
        assert not hit_test_annotation(t, 100, 111)
        assert not hit_test_annotation(t, 89, 80)

    def test_arrow_selection_outline_padded(self):
        a = ArrowAnnotation(id="a", start_x=0, start_y=50, end_x=100, end_y=0)
        assert selection_bounds(a) == pytest.approx((-10, -10, 120, 70))

    def test_unknown_type_raises(self):
        with pytest.raises(TypeError):
            annotation_bounds(object())

    def test_topmost_wins(self):
        low = RectangleAnnotation(id="low", x=0, y=0, width=100, height=100)
        high = RectangleAnnotation(id="high", x=50, y=50, width=100, height=100)
        assert annotation_at([low, high], 75, 75) is high
        assert annotation_at([low, high], 25, 25) is low
        assert annotation_at([low, high], 500, 500) is None


# ─────────────────────────────────────────────────────────
# Devices
# ─────────────────────────────────────────────────────────


class TestDeviceHits:
    def test_scaled_box(self):
        d = Device(id="d", info=INFO, x=0, y=0, scale=0.5)
        assert hit_test_device(d, 49, 99)
        assert not hit_test_device(d, 51, 0)

    def test_rotation_ignored(self):
        d = Device(id="d", info=INFO, x=0, y=0, rotation=90, perspective=30)
        assert hit_test_device(d, 90, 190)
        assert not hit_test_device(d, 150, 0)

    def test_topmost_device(self):
        a = Device(id="a", info=INFO, x=0, y=0)
        b = Device(id="b", info=INFO, x=50, y=0)
        assert device_at([a, b], 10, 0) is b
        assert device_at([a, b], -90, 0) is a


class TestItemPriority:
    def test_annotation_over_device(self):
        scene = Scene()
        d = Device(id="d", info=INFO, x=0, y=0)
        r = RectangleAnnotation(id="r", x=-10, y=-10, width=20, height=20)
        scene.add_device(d)
        scene.add_annotation(r)
        assert item_at(scene, 0, 0) is r
        assert item_at(scene, 50, 50) is d
        assert item_at(scene, 500, 500) is None
