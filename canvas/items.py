"""
canvas/items.py

Painters for the individual scene layers: device frames (with shadow,
tint, user image and placeholder), annotations and selection outlines.

Every painter leaves the QPainter state as it found it.
"""

from __future__ import annotations

import math
from collections import OrderedDict
from functools import lru_cache
from typing import Optional, Tuple

import numpy as np
from PIL import Image, ImageFilter
from PyQt6.QtCore import QPointF, QRectF, Qt
from PyQt6.QtGui import QBrush, QFont, QImage, QPainter, QPen, QPolygonF

from canvas.hit_testing import annotation_bounds, selection_bounds
from canvas.transforms import device_transform
from debug_trace import trace
from models import (
    Annotation,
    ArrowAnnotation,
    CircleAnnotation,
    Device,
    RectangleAnnotation,
    TextAnnotation,
)
from settings import get_settings
from utils import array_to_qimage, cover_rect, is_visible_color, parse_color, rounded_rect_path

# Arrowhead wing angle either side of the shaft
ARROW_WING_ANGLE = math.pi / 6

_TINT_CACHE_MAX = 64
# Least recently used entries are evicted first
_tint_cache: OrderedDict[Tuple[int, str, int, int], QImage] = OrderedDict()


def local_frame_rect(device: Device) -> QRectF:
    """The frame rectangle in device-local coordinates, centered on the origin."""
    w, h = device.info.width, device.info.height
    return QRectF(-w / 2, -h / 2, w, h)


# =============================================================================
# Shadow
# =============================================================================

def _shadow_padding(blur: float) -> int:
    return int(math.ceil(blur * 3)) + 1


@lru_cache(maxsize=32)
def make_shadow(width: int, height: int, blur: int) -> QImage:
    """
    Black rectangle of ``width`` x ``height`` blurred by a Gaussian of
    standard deviation ``blur``, on a transparent margin wide enough to
    hold the falloff.
    """
    pad = _shadow_padding(blur)
    mask = np.zeros((height + 2 * pad, width + 2 * pad), dtype=np.uint8)
    mask[pad:pad + height, pad:pad + width] = 255
    if blur > 0:
        mask = np.asarray(Image.fromarray(mask).filter(ImageFilter.GaussianBlur(blur)))
    rgba = np.zeros(mask.shape + (4,), dtype=np.uint8)
    rgba[..., 3] = mask
    return array_to_qimage(rgba)


def paint_shadow(painter: QPainter, device: Device) -> None:
    """Paint the device shadow in local coordinates at opacity ``intensity``."""
    shadow = device.shadow
    rect = local_frame_rect(device)
    blur = max(0, int(round(shadow.blur)))
    image = make_shadow(max(1, int(round(rect.width()))), max(1, int(round(rect.height()))), blur)
    pad = _shadow_padding(blur)

    painter.save()
    painter.setOpacity(shadow.intensity)
    painter.drawImage(
        QPointF(rect.x() + shadow.distance - pad, rect.y() + shadow.distance - pad),
        image,
    )
    painter.restore()


# =============================================================================
# Frame
# =============================================================================

def tinted_template(template: QImage, color: str, width: int, height: int) -> QImage:
    """
    Return ``template`` recolored by multiplying it with ``color``.

    The template is redrawn beneath the multiplied layer and its alpha is
    used as a mask, so transparent areas of the template stay transparent.
    """
    key = (template.cacheKey(), color.lower(), width, height)
    cached = _tint_cache.get(key)
    if cached is not None:
        _tint_cache.move_to_end(key)
        return cached

    target = QRectF(0, 0, width, height)
    out = QImage(width, height, QImage.Format.Format_ARGB32_Premultiplied)
    out.fill(Qt.GlobalColor.transparent)
    p = QPainter(out)
    try:
        p.setRenderHint(QPainter.RenderHint.SmoothPixmapTransform, True)
        p.drawImage(target, template)
        p.setCompositionMode(QPainter.CompositionMode.CompositionMode_Multiply)
        p.fillRect(target, parse_color(color))
        p.setCompositionMode(QPainter.CompositionMode.CompositionMode_DestinationOver)
        p.drawImage(target, template)
        p.setCompositionMode(QPainter.CompositionMode.CompositionMode_DestinationIn)
        p.drawImage(target, template)
    finally:
        p.end()

    _tint_cache[key] = out
    while len(_tint_cache) > _TINT_CACHE_MAX:
        _tint_cache.popitem(last=False)
    return out


def paint_frame(painter: QPainter, device: Device, template: QImage) -> None:
    rect = local_frame_rect(device)
    if device.is_tinted:
        frame = tinted_template(
            template, device.frame_color,
            max(1, int(round(rect.width()))), max(1, int(round(rect.height()))),
        )
        painter.drawImage(rect, frame)
    else:
        painter.drawImage(rect, template)


def paint_placeholder(painter: QPainter, device: Device) -> None:
    """Gray box with the device name, drawn when the template is unavailable."""
    t = get_settings().settings.templates
    rect = local_frame_rect(device)

    painter.save()
    painter.setPen(QPen(parse_color(t.placeholder_stroke), 2))
    painter.setBrush(QBrush(parse_color(t.placeholder_fill)))
    painter.drawRect(rect)

    font = QFont()
    font.setPixelSize(t.placeholder_font_size)
    painter.setFont(font)
    painter.setPen(QPen(parse_color(t.placeholder_text)))
    painter.drawText(rect, Qt.AlignmentFlag.AlignCenter, device.info.name)
    painter.restore()


def paint_user_image(painter: QPainter, device: Device) -> None:
    """Clip to the screen rectangle and draw the user image cover-scaled."""
    screen = device.info.screen
    image = device.image
    if screen is None or image is None or image.isNull():
        return

    frame = local_frame_rect(device)
    clip = QRectF(frame.x() + screen.x, frame.y() + screen.y, screen.width, screen.height)

    painter.save()
    painter.setClipRect(clip, Qt.ClipOperation.IntersectClip)
    painter.drawImage(cover_rect(image.width(), image.height(), clip), image)
    painter.restore()


def paint_device(
    painter: QPainter,
    device: Device,
    template: Optional[QImage],
    include_shadow: bool = True,
    placeholder: bool = True,
) -> None:
    """
    Paint one device: shadow, frame (or placeholder), then the user image.

    ``painter`` must already carry the viewport transform. When
    ``template`` is None the frame layer is a placeholder, or nothing
    at all if ``placeholder`` is False.
    """
    trace(f"paint_device {device.id} ({device.info.key})", "PAINT")
    dt = device_transform(device)

    painter.save()
    painter.setTransform(dt.matrix, True)
    painter.setOpacity(painter.opacity() * dt.brightness)
    painter.setRenderHint(QPainter.RenderHint.SmoothPixmapTransform, True)

    if include_shadow and device.shadow.enabled:
        paint_shadow(painter, device)

    if template is not None:
        paint_frame(painter, device, template)
    elif placeholder:
        paint_placeholder(painter, device)

    paint_user_image(painter, device)
    painter.restore()


# =============================================================================
# Annotations
# =============================================================================

def paint_text(painter: QPainter, a: TextAnnotation) -> None:
    x, y, w, h = annotation_bounds(a)
    if is_visible_color(a.background_color):
        painter.setPen(Qt.PenStyle.NoPen)
        painter.setBrush(QBrush(parse_color(a.background_color)))
        painter.drawPath(rounded_rect_path(QRectF(x, y, w, h), a.corner_radius))

    font = QFont(a.font_family)
    font.setPixelSize(max(1, int(round(a.font_size))))
    painter.setFont(font)
    painter.setPen(QPen(parse_color(a.color)))
    text_rect = QRectF(a.x, y, max(0.0, w - a.padding), h)
    painter.drawText(
        text_rect,
        Qt.AlignmentFlag.AlignLeft | Qt.AlignmentFlag.AlignVCenter,
        a.text,
    )


def _shape_pen_and_brush(painter: QPainter, fill: Optional[str], stroke: Optional[str], width: float) -> None:
    if is_visible_color(fill):
        painter.setBrush(QBrush(parse_color(fill)))
    else:
        painter.setBrush(Qt.BrushStyle.NoBrush)
    if stroke and width > 0:
        painter.setPen(QPen(parse_color(stroke), width))
    else:
        painter.setPen(Qt.PenStyle.NoPen)


def paint_rectangle(painter: QPainter, a: RectangleAnnotation) -> None:
    _shape_pen_and_brush(painter, a.fill_color, a.stroke_color, a.stroke_width)
    painter.drawPath(rounded_rect_path(QRectF(a.x, a.y, a.width, a.height), a.corner_radius))


def paint_circle(painter: QPainter, a: CircleAnnotation) -> None:
    _shape_pen_and_brush(painter, a.fill_color, a.stroke_color, a.stroke_width)
    r = min(a.width, a.height) / 2
    painter.drawEllipse(QPointF(a.x + a.width / 2, a.y + a.height / 2), r, r)


def arrow_head(a: ArrowAnnotation) -> QPolygonF:
    """Triangle at the end point with wings at +/-30 degrees off the shaft."""
    angle = math.atan2(a.end_y - a.start_y, a.end_x - a.start_x)
    return QPolygonF([
        QPointF(a.end_x, a.end_y),
        QPointF(a.end_x - a.arrow_size * math.cos(angle - ARROW_WING_ANGLE),
                a.end_y - a.arrow_size * math.sin(angle - ARROW_WING_ANGLE)),
        QPointF(a.end_x - a.arrow_size * math.cos(angle + ARROW_WING_ANGLE),
                a.end_y - a.arrow_size * math.sin(angle + ARROW_WING_ANGLE)),
    ])


def paint_arrow(painter: QPainter, a: ArrowAnnotation) -> None:
    color = parse_color(a.color)
    pen = QPen(color, a.stroke_width)
    pen.setCapStyle(Qt.PenCapStyle.RoundCap)
    painter.setPen(pen)
    painter.drawLine(QPointF(a.start_x, a.start_y), QPointF(a.end_x, a.end_y))

    painter.setPen(Qt.PenStyle.NoPen)
    painter.setBrush(QBrush(color))
    painter.drawPolygon(arrow_head(a))


def paint_annotation(painter: QPainter, annotation: Annotation) -> None:
    """Paint any annotation variant in model coordinates."""
    painter.save()
    try:
        if isinstance(annotation, TextAnnotation):
            paint_text(painter, annotation)
        elif isinstance(annotation, RectangleAnnotation):
            paint_rectangle(painter, annotation)
        elif isinstance(annotation, CircleAnnotation):
            paint_circle(painter, annotation)
        elif isinstance(annotation, ArrowAnnotation):
            paint_arrow(painter, annotation)
        else:
            raise TypeError(f"Unknown annotation type: {type(annotation).__name__}")
    finally:
        painter.restore()


# =============================================================================
# Selection decoration
# =============================================================================

def _selection_pen(color: str, zoom: float) -> QPen:
    s = get_settings().settings.canvas.selection
    width = s.line_width / zoom
    pen = QPen(parse_color(color), width)
    # Dash pattern entries are in units of the pen width
    dash = s.dash_length / s.line_width if s.line_width > 0 else 1.0
    pen.setDashPattern([dash, dash])
    return pen


def paint_device_selection(painter: QPainter, device: Device, zoom: float) -> None:
    """Dashed outline plus four corner handles, constant size on screen."""
    s = get_settings().settings.canvas.selection
    x, y, w, h = device.bounds()
    color = parse_color(s.device_color)

    painter.save()
    painter.setBrush(Qt.BrushStyle.NoBrush)
    painter.setPen(_selection_pen(s.device_color, zoom))
    painter.drawRect(QRectF(x, y, w, h))

    size = s.handle_size / zoom
    painter.setPen(QPen(parse_color("#FFFFFF"), 1 / zoom))
    painter.setBrush(QBrush(color))
    for hx, hy in ((x, y), (x + w, y), (x, y + h), (x + w, y + h)):
        painter.drawRect(QRectF(hx - size / 2, hy - size / 2, size, size))
    painter.restore()


def paint_annotation_selection(painter: QPainter, annotation: Annotation, zoom: float) -> None:
    s = get_settings().settings.canvas.selection
    x, y, w, h = selection_bounds(annotation)

    painter.save()
    painter.setBrush(Qt.BrushStyle.NoBrush)
    painter.setPen(_selection_pen(s.annotation_color, zoom))
    painter.drawRect(QRectF(x, y, w, h))
    painter.restore()
