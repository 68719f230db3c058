"""
canvas/background.py

Background fills painted beneath everything else: solid color, linear
gradient, cover-scaled image, or a repeating pattern tile.

Backgrounds are painted in surface coordinates, before the viewport
transform, so they never pan or zoom with the scene.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from typing import Optional, Tuple, Type, TypeVar

from PyQt6.QtCore import QPointF, QRectF, Qt
from PyQt6.QtGui import QBrush, QImage, QLinearGradient, QPainter, QPen, QPolygonF

from settings import get_settings
from utils import cover_rect, parse_color

log = logging.getLogger(__name__)

E = TypeVar("E", bound=Enum)


class BackgroundMode(str, Enum):
    SOLID = "solid"
    GRADIENT = "gradient"
    IMAGE = "image"
    PATTERN = "pattern"


class GradientDirection(str, Enum):
    TO_BOTTOM = "to-bottom"
    TO_RIGHT = "to-right"
    TO_BOTTOM_RIGHT = "to-bottom-right"
    DEG_45 = "45deg"


class Pattern(str, Enum):
    DOTS = "dots"
    GRID = "grid"
    DIAGONAL = "diagonal"
    HEXAGON = "hexagon"


def _coerce(enum_cls: Type[E], value, default: E) -> E:
    try:
        return enum_cls(value)
    except ValueError:
        log.warning("Unknown %s %r, using %r", enum_cls.__name__, value, default.value)
        return default


@dataclass
class Background:
    """Background fill parameters. ``image`` is only used in IMAGE mode."""
    mode: BackgroundMode = BackgroundMode.SOLID
    color: str = "#F5F5F5"
    gradient_start: str = "#667eea"
    gradient_end: str = "#764ba2"
    gradient_direction: GradientDirection = GradientDirection.TO_BOTTOM
    pattern: Pattern = Pattern.DOTS
    pattern_color: str = "#E5E7EB"
    pattern_background: str = "#F8F9FA"
    image: Optional[QImage] = None

    @classmethod
    def from_settings(cls) -> "Background":
        b = get_settings().settings.background
        return cls(
            mode=_coerce(BackgroundMode, b.mode, BackgroundMode.SOLID),
            color=b.color,
            gradient_start=b.gradient_start,
            gradient_end=b.gradient_end,
            gradient_direction=_coerce(GradientDirection, b.gradient_direction, GradientDirection.TO_BOTTOM),
            pattern=_coerce(Pattern, b.pattern, Pattern.DOTS),
            pattern_color=b.pattern_color,
            pattern_background=b.pattern_background,
        )


def gradient_endpoints(
    direction: GradientDirection, width: float, height: float
) -> Tuple[QPointF, QPointF]:
    """Start and end points of the gradient line for a direction."""
    if direction == GradientDirection.TO_BOTTOM:
        return QPointF(0, 0), QPointF(0, height)
    if direction == GradientDirection.TO_RIGHT:
        return QPointF(0, 0), QPointF(width, 0)
    if direction == GradientDirection.TO_BOTTOM_RIGHT:
        return QPointF(0, 0), QPointF(width, height)
    if direction == GradientDirection.DEG_45:
        return QPointF(0, height), QPointF(width, 0)
    raise TypeError(f"Unknown gradient direction: {direction!r}")


# ----------------------------
# Pattern tiles
# ----------------------------

TILE_SIZES = {
    Pattern.DOTS: (40, 40),
    Pattern.GRID: (30, 30),
    Pattern.DIAGONAL: (20, 20),
    Pattern.HEXAGON: (60, 52),
}


@lru_cache(maxsize=None)
def make_pattern_tile(pattern: Pattern, color: str) -> QImage:
    """
    Render one repeat of ``pattern`` in ``color`` on a transparent tile.

    Memoized per (pattern, color); callers must not paint into the result.
    """
    if pattern not in TILE_SIZES:
        raise TypeError(f"Unknown pattern: {pattern!r}")
    w, h = TILE_SIZES[pattern]
    tile = QImage(w, h, QImage.Format.Format_ARGB32_Premultiplied)
    tile.fill(Qt.GlobalColor.transparent)

    qcolor = parse_color(color)
    p = QPainter(tile)
    p.setRenderHint(QPainter.RenderHint.Antialiasing, True)
    try:
        if pattern == Pattern.DOTS:
            p.setPen(Qt.PenStyle.NoPen)
            p.setBrush(QBrush(qcolor))
            p.drawEllipse(QPointF(20, 20), 3, 3)
        elif pattern == Pattern.GRID:
            p.setPen(QPen(qcolor, 1))
            p.drawLine(QPointF(0, 0), QPointF(30, 0))
            p.drawLine(QPointF(0, 0), QPointF(0, 30))
        elif pattern == Pattern.DIAGONAL:
            p.setPen(QPen(qcolor, 2))
            p.drawLine(QPointF(0, 20), QPointF(20, 0))
        else:
            p.setPen(QPen(qcolor, 1.5))
            p.setBrush(Qt.BrushStyle.NoBrush)
            cx, cy, r = 30.0, 26.0, 15.0
            hexagon = QPolygonF([
                QPointF(cx + r * math.cos(i * math.pi / 3), cy + r * math.sin(i * math.pi / 3))
                for i in range(6)
            ])
            p.drawPolygon(hexagon)
    finally:
        p.end()
    return tile


# ----------------------------
# Painting
# ----------------------------

def paint_background(painter: QPainter, background: Background, width: float, height: float) -> None:
    """Fill the ``width`` x ``height`` surface rectangle with ``background``."""
    rect = QRectF(0, 0, width, height)
    mode = background.mode

    if mode == BackgroundMode.SOLID:
        painter.fillRect(rect, parse_color(background.color))
    elif mode == BackgroundMode.GRADIENT:
        start, end = gradient_endpoints(background.gradient_direction, width, height)
        gradient = QLinearGradient(start, end)
        gradient.setColorAt(0.0, parse_color(background.gradient_start))
        gradient.setColorAt(1.0, parse_color(background.gradient_end))
        painter.fillRect(rect, QBrush(gradient))
    elif mode == BackgroundMode.IMAGE:
        image = background.image
        if image is None or image.isNull():
            painter.fillRect(rect, parse_color(background.color))
            return
        painter.save()
        painter.setClipRect(rect)
        painter.drawImage(cover_rect(image.width(), image.height(), rect), image)
        painter.restore()
    elif mode == BackgroundMode.PATTERN:
        painter.fillRect(rect, parse_color(background.pattern_background))
        tile = make_pattern_tile(background.pattern, background.pattern_color)
        painter.fillRect(rect, QBrush(tile))
    else:
        raise TypeError(f"Unknown background mode: {mode!r}")
