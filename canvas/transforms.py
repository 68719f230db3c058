"""
canvas/transforms.py

Coordinate mapping between model, viewport and drawing-surface space.

A device is drawn in local coordinates centered on the origin, so its
frame occupies ``[-w/2, -h/2, w, h]``. ``device_transform`` maps that
local space into model space; ``viewport_transform`` maps model space
onto the screen (or export surface, after the outer export scale).
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional, Tuple

from PyQt6.QtGui import QTransform

from models import MAX_PERSPECTIVE, Device, Viewport, clamp_zoom
from settings import get_settings

# Horizontal shear per unit sin(perspective)
SKEW_FACTOR = 0.3

# Darkening at full perspective
BRIGHTNESS_DROP = 0.3


@dataclass(frozen=True)
class DeviceTransform:
    """Local-to-model matrix and the brightness multiplier for one device."""
    matrix: QTransform
    brightness: float = 1.0


def perspective_factors(perspective: float) -> Tuple[float, float, float]:
    """
    Return (vertical scale, shear, brightness) for a perspective angle.

    At 0 degrees this is (1, 0, 1). Brightness falls linearly to 0.7 at
    the maximum angle of 60 degrees.
    """
    if not perspective:
        return 1.0, 0.0, 1.0
    rad = math.radians(perspective)
    pf = math.cos(rad)
    k = math.sin(rad) * SKEW_FACTOR
    brightness = 1.0 - (perspective / MAX_PERSPECTIVE) * BRIGHTNESS_DROP
    return pf, k, brightness


def device_transform(device: Device) -> DeviceTransform:
    """
    Build the transform placing ``device`` in model space.

    Order: translate(x, y), rotate(rotation), then either a uniform
    scale or a squashed scale followed by a horizontal shear
    ``x' = x + k*y``.
    """
    t = QTransform()
    t.translate(device.x, device.y)
    t.rotate(device.rotation)

    if not device.perspective:
        t.scale(device.scale, device.scale)
        return DeviceTransform(t, 1.0)

    pf, k, brightness = perspective_factors(device.perspective)
    t.scale(device.scale, device.scale * pf)
    # Row-vector convention: the left operand is applied first
    shear = QTransform(1.0, 0.0, k, 1.0, 0.0, 0.0)
    return DeviceTransform(shear * t, brightness)


def viewport_transform(viewport: Viewport) -> QTransform:
    """Model-to-screen matrix: ``screen = (model - pan) * zoom``."""
    t = QTransform()
    t.scale(viewport.zoom, viewport.zoom)
    t.translate(-viewport.pan_x, -viewport.pan_y)
    return t


def zoom_about(viewport: Viewport, sx: float, sy: float, new_zoom: float) -> Viewport:
    """
    Change zoom keeping the model point under screen point (sx, sy) fixed.

    The zoom is clamped first. Mutates and returns ``viewport``.
    """
    old_zoom = viewport.zoom
    new_zoom = clamp_zoom(new_zoom)
    viewport.pan_x = sx / old_zoom - sx / new_zoom + viewport.pan_x
    viewport.pan_y = sy / old_zoom - sy / new_zoom + viewport.pan_y
    viewport.zoom = new_zoom
    return viewport


def wheel_zoom(viewport: Viewport, sx: float, sy: float, delta_y: float) -> Viewport:
    """Zoom one wheel step about the cursor. Positive ``delta_y`` scrolls down."""
    z = get_settings().settings.canvas.zoom
    factor = z.wheel_out_factor if delta_y > 0 else z.wheel_in_factor
    return zoom_about(viewport, sx, sy, viewport.zoom * factor)


def fit_viewport(
    viewport: Viewport,
    bounds: Optional[Tuple[float, float, float, float]],
    width: float,
    height: float,
) -> Viewport:
    """
    Zoom and pan so ``bounds`` is centered in a ``width`` x ``height`` canvas.

    With no bounds the viewport resets to zoom 1 at the origin.
    """
    if bounds is None:
        viewport.zoom = 1.0
        viewport.pan_x = 0.0
        viewport.pan_y = 0.0
        return viewport

    z = get_settings().settings.canvas.zoom
    bx, by, bw, bh = bounds
    candidates = [z.fit_max_zoom]
    if bw > 0:
        candidates.append(z.fit_margin * width / bw)
    if bh > 0:
        candidates.append(z.fit_margin * height / bh)
    zoom = clamp_zoom(min(candidates))

    viewport.zoom = zoom
    viewport.pan_x = bx + bw / 2 - width / (2 * zoom)
    viewport.pan_y = by + bh / 2 - height / (2 * zoom)
    return viewport
