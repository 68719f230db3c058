"""
utils.py

Color parsing, geometry and image conversion helpers shared by the
compositor, background generator and export pipeline.
"""

from __future__ import annotations

import re
from typing import Optional

import numpy as np
from PIL import Image
from PyQt6.QtCore import QRectF
from PyQt6.QtGui import QColor, QImage, QPainterPath


_RGB_FUNC_RE = re.compile(
    r"^rgba?\(\s*([\d.]+)\s*,\s*([\d.]+)\s*,\s*([\d.]+)\s*(?:,\s*([\d.]+)\s*)?\)$",
    re.IGNORECASE,
)


def qcolor_to_hex(c: QColor, include_alpha: bool = False) -> str:
    """
    Convert a QColor to a hex string.

    Args:
        c: The QColor to convert
        include_alpha: If True, include alpha channel as 4th byte

    Returns:
        Hex string like "#RRGGBB" or "#RRGGBBAA"
    """
    if include_alpha:
        return "#{:02X}{:02X}{:02X}{:02X}".format(c.red(), c.green(), c.blue(), c.alpha())
    return "#{:02X}{:02X}{:02X}".format(c.red(), c.green(), c.blue())


def parse_color(s: Optional[str], fallback: Optional[QColor] = None) -> QColor:
    """
    Parse a CSS-style color string to a QColor.

    Accepts "#RGB", "#RRGGBB", "#RRGGBBAA", "rgb(r, g, b)",
    "rgba(r, g, b, a)" with a in 0..1, and "transparent".

    Args:
        s: Color string
        fallback: Color to return if parsing fails (default: opaque black)

    Returns:
        Parsed QColor or a copy of the fallback
    """
    if fallback is None:
        fallback = QColor(0, 0, 0)
    if not s:
        return QColor(fallback)
    s = s.strip()
    if s.lower() == "transparent":
        return QColor(0, 0, 0, 0)

    m = _RGB_FUNC_RE.match(s)
    if m:
        r, g, b = (max(0, min(255, int(float(v)))) for v in m.group(1, 2, 3))
        a = float(m.group(4)) if m.group(4) is not None else 1.0
        return QColor(r, g, b, max(0, min(255, round(a * 255))))

    h = s[1:] if s.startswith("#") else s
    try:
        if len(h) == 3:
            return QColor(int(h[0] * 2, 16), int(h[1] * 2, 16), int(h[2] * 2, 16))
        if len(h) == 6:
            return QColor(int(h[0:2], 16), int(h[2:4], 16), int(h[4:6], 16))
        if len(h) == 8:
            return QColor(int(h[0:2], 16), int(h[2:4], 16), int(h[4:6], 16), int(h[6:8], 16))
    except ValueError:
        pass
    return QColor(fallback)


def is_visible_color(s: Optional[str]) -> bool:
    """True if the color string is set and not fully transparent."""
    return bool(s) and parse_color(s).alpha() > 0


def cover_rect(src_w: float, src_h: float, dst: QRectF) -> QRectF:
    """
    Rectangle that scales a source uniformly to cover ``dst``, centered.

    The scale is max(dst.w / src_w, dst.h / src_h); the overflow on one
    axis extends equally past both edges of ``dst``.
    """
    if src_w <= 0 or src_h <= 0:
        return QRectF(dst)
    scale = max(dst.width() / src_w, dst.height() / src_h)
    w = src_w * scale
    h = src_h * scale
    return QRectF(dst.x() + (dst.width() - w) / 2, dst.y() + (dst.height() - h) / 2, w, h)


def rounded_rect_path(rect: QRectF, radius: float) -> QPainterPath:
    """Path for a rectangle with rounded corners (plain rect when radius <= 0)."""
    path = QPainterPath()
    if radius <= 0:
        path.addRect(rect)
    else:
        r = min(radius, rect.width() / 2, rect.height() / 2)
        path.addRoundedRect(rect, r, r)
    return path


# ----------------------------
# QImage <-> numpy / Pillow
# ----------------------------

def qimage_to_array(image: QImage) -> np.ndarray:
    """
    Copy a QImage into an (h, w, 4) uint8 RGBA array (straight alpha).
    """
    img = image.convertToFormat(QImage.Format.Format_RGBA8888)
    w, h = img.width(), img.height()
    bpl = img.bytesPerLine()
    raw = img.constBits().asstring(img.sizeInBytes())
    arr = np.frombuffer(raw, dtype=np.uint8).reshape(h, bpl)
    return arr[:, : w * 4].reshape(h, w, 4).copy()


def array_to_qimage(arr: np.ndarray) -> QImage:
    """
    Build a detached QImage from an (h, w, 4) uint8 RGBA array.
    """
    arr = np.ascontiguousarray(arr, dtype=np.uint8)
    h, w = arr.shape[:2]
    image = QImage(arr.tobytes(), w, h, w * 4, QImage.Format.Format_RGBA8888)
    return image.copy()


def qimage_to_pil(image: QImage) -> Image.Image:
    """Convert a QImage to an RGBA Pillow image."""
    return Image.fromarray(qimage_to_array(image))
