"""Tests for device/viewport transforms and zoom helpers in canvas/transforms.py."""
from __future__ import annotations

import math

import pytest
from PyQt6.QtCore import QPointF

from canvas.transforms import (
    device_transform,
    fit_viewport,
    perspective_factors,
    viewport_transform,
    wheel_zoom,
    zoom_about,
)
from models import Device, DeviceInfo, Viewport

INFO = DeviceInfo(key="iphone-15", name="iPhone 15", width=400, height=800)


def make_device(**kw) -> Device:
    d = Device(id="device_test", info=INFO)
    for k, v in kw.items():
        setattr(d, k, v)
    return d


def mapped(matrix, x, y):
    p = matrix.map(QPointF(x, y))
    return p.x(), p.y()


# ─────────────────────────────────────────────────────────
# Perspective factors
# ─────────────────────────────────────────────────────────


class TestPerspectiveFactors:
    def test_zero_is_identity(self):
        assert perspective_factors(0) == (1.0, 0.0, 1.0)

    def test_brightness_at_max(self):
        _, _, brightness = perspective_factors(60)
        assert brightness == pytest.approx(0.7)

    def test_brightness_linear(self):
        _, _, brightness = perspective_factors(30)
        assert brightness == pytest.approx(0.85)

    def test_scale_and_shear(self):
        pf, k, _ = perspective_factors(30)
        assert pf == pytest.approx(math.cos(math.radians(30)))
        assert k == pytest.approx(math.sin(math.radians(30)) * 0.3)


# ─────────────────────────────────────────────────────────
# Device transform
# ─────────────────────────────────────────────────────────


class TestDeviceTransform:
    def test_flat_device_is_uniform_scale(self):
        dt = device_transform(make_device(x=100, y=50, scale=2))
        assert dt.brightness == 1.0
        m = dt.matrix
        assert m.m11() == pytest.approx(2)
        assert m.m22() == pytest.approx(2)
        assert m.m12() == pytest.approx(0)
        assert m.m21() == pytest.approx(0)
        assert mapped(m, 0, 0) == pytest.approx((100, 50))
        assert mapped(m, 10, 10) == pytest.approx((120, 70))

    def test_translate_then_rotate_then_scale(self):
        dt = device_transform(make_device(x=10, y=20, scale=2, rotation=90))
        # Local +x maps to model +y after a 90 degree rotation
        assert mapped(dt.matrix, 5, 0) == pytest.approx((10, 30))

    def test_perspective_shears_horizontally(self):
        p = 45
        dt = device_transform(make_device(perspective=p))
        pf = math.cos(math.radians(p))
        k = math.sin(math.radians(p)) * 0.3
        # A point on the vertical axis is pushed sideways by k*y, then squashed
        x, y = mapped(dt.matrix, 0, 100)
        assert x == pytest.approx(k * 100)
        assert y == pytest.approx(100 * pf)
        assert dt.brightness == pytest.approx(1 - (45 / 60) * 0.3)

    def test_perspective_keeps_horizontal_axis(self):
        dt = device_transform(make_device(perspective=30))
        assert mapped(dt.matrix, 50, 0) == pytest.approx((50, 0))


# ─────────────────────────────────────────────────────────
# Viewport
# ─────────────────────────────────────────────────────────


class TestViewport:
    def test_viewport_transform_matches_model_to_screen(self):
        vp = Viewport(zoom=2, pan_x=30, pan_y=-10)
        t = viewport_transform(vp)
        assert mapped(t, 50, 40) == pytest.approx(vp.model_to_screen(50, 40))
        assert mapped(t, 50, 40) == pytest.approx(((50 - 30) * 2, (40 + 10) * 2))

    def test_screen_model_inverse(self):
        vp = Viewport(zoom=1.5, pan_x=12, pan_y=7)
        assert vp.screen_to_model(*vp.model_to_screen(3, 4)) == pytest.approx((3, 4))

    @pytest.mark.parametrize("new_zoom", [0.5, 1.7, 3.0])
    def test_zoom_about_keeps_cursor_point(self, new_zoom):
        vp = Viewport(zoom=1.2, pan_x=40, pan_y=-25)
        before = vp.screen_to_model(300, 200)
        zoom_about(vp, 300, 200, new_zoom)
        assert vp.zoom == pytest.approx(new_zoom)
        assert vp.screen_to_model(300, 200) == pytest.approx(before)

    def test_zoom_about_clamps(self):
        vp = Viewport()
        zoom_about(vp, 0, 0, 100)
        assert vp.zoom == 5.0
        zoom_about(vp, 0, 0, 0.001)
        assert vp.zoom == pytest.approx(0.1)

    def test_wheel_down_zooms_out(self):
        vp = Viewport()
        before = vp.screen_to_model(250, 125)
        wheel_zoom(vp, 250, 125, 120)
        assert vp.zoom == pytest.approx(0.9)
        assert vp.screen_to_model(250, 125) == pytest.approx(before)

    def test_wheel_up_zooms_in(self):
        vp = Viewport()
        wheel_zoom(vp, 0, 0, -120)
        assert vp.zoom == pytest.approx(1.1)


# ─────────────────────────────────────────────────────────
# Zoom to fit
# ─────────────────────────────────────────────────────────


class TestFitViewport:
    def test_no_bounds_resets(self):
        vp = Viewport(zoom=3, pan_x=10, pan_y=10)
        fit_viewport(vp, None, 800, 600)
        assert (vp.zoom, vp.pan_x, vp.pan_y) == (1.0, 0.0, 0.0)

    def test_fits_and_centers(self):
        vp = Viewport()
        fit_viewport(vp, (0, 0, 400, 800), 1000, 800)
        # min(0.8*1000/400, 0.8*800/800, 2) = 0.8
        assert vp.zoom == pytest.approx(0.8)
        cx, cy = vp.model_to_screen(200, 400)
        assert (cx, cy) == pytest.approx((500, 400))

    def test_small_content_capped_at_two(self):
        vp = Viewport()
        fit_viewport(vp, (100, 100, 10, 10), 1000, 800)
        assert vp.zoom == pytest.approx(2.0)
