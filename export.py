"""
export.py

High-resolution raster export of the scene.

The live composition is re-rendered on an off-screen QImage of the
requested tier, scaled from the canvas' logical size, then encoded with
Pillow and written atomically to the export directory.
"""

from __future__ import annotations

import io
import logging
import os
import tempfile
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Tuple

from PIL import Image
from PyQt6.QtCore import Qt
from PyQt6.QtGui import QImage, QPainter

from canvas.background import Background
from canvas.compositor import Compositor, RenderOptions
from debug_trace import trace, trace_call
from errors import ExportError
from models import Scene
from settings import get_settings
from utils import qimage_to_pil

log = logging.getLogger(__name__)

# Named output tiers: (width, height) in pixels
EXPORT_DIMENSIONS: Dict[str, Tuple[int, int]] = {
    "hd": (1920, 1080),
    "fhd": (2560, 1440),
    "4k": (3840, 2160),
    "8k": (7680, 4320),
}

DEFAULT_QUALITY = "4k"

# Format name -> (Pillow format, file extension)
IMAGE_FORMATS: Dict[str, Tuple[str, str]] = {
    "png": ("PNG", "png"),
    "jpg": ("JPEG", "jpg"),
    "jpeg": ("JPEG", "jpg"),
    "webp": ("WEBP", "webp"),
}


@dataclass
class ExportOptions:
    """Export parameters. ``image_format`` is one of png, jpg, webp or svg."""
    quality: str = DEFAULT_QUALITY
    image_format: str = "png"
    jpg_quality: int = 95
    transparent_background: bool = False
    include_shadows: bool = True
    include_annotations: bool = False

    @classmethod
    def from_settings(cls) -> "ExportOptions":
        e = get_settings().settings.export
        return cls(
            quality=e.quality,
            image_format=e.image_format,
            jpg_quality=e.jpg_quality,
            transparent_background=e.transparent_background,
            include_shadows=e.include_shadows,
            include_annotations=e.include_annotations,
        )


def resolve_quality(quality: str) -> str:
    """Return ``quality`` if it names a tier, else the default tier."""
    key = (quality or "").lower()
    if key in EXPORT_DIMENSIONS:
        return key
    log.warning("Unknown export quality %r, using %s", quality, DEFAULT_QUALITY)
    return DEFAULT_QUALITY


def export_dimensions(quality: str) -> Tuple[int, int]:
    return EXPORT_DIMENSIONS[resolve_quality(quality)]


async def render_export(
    compositor: Compositor,
    scene: Scene,
    background: Background,
    canvas_width: float,
    canvas_height: float,
    options: Optional[ExportOptions] = None,
) -> QImage:
    """
    Render the scene at the exact pixel size of the requested tier.

    The canvas' logical size is stretched to the target on each axis
    independently, so a canvas with a different aspect ratio is
    distorted rather than letterboxed. Selection is never painted, and
    devices whose template is unavailable are left out.
    """
    opts = options or ExportOptions()
    if canvas_width <= 0 or canvas_height <= 0:
        raise ExportError(f"Invalid canvas size {canvas_width}x{canvas_height}")

    width, height = export_dimensions(opts.quality)
    trace(f"render_export {width}x{height} from canvas {canvas_width}x{canvas_height}", "EXPORT")

    image = QImage(width, height, QImage.Format.Format_ARGB32_Premultiplied)
    if image.isNull():
        raise ExportError(f"Cannot allocate a {width}x{height} export surface")
    image.fill(Qt.GlobalColor.transparent)

    await compositor.preload(scene)

    render_options = RenderOptions(
        transparent_background=opts.transparent_background,
        include_shadows=opts.include_shadows,
        include_annotations=opts.include_annotations,
        include_selection=False,
        placeholders=False,
    )
    painter = QPainter(image)
    try:
        painter.setRenderHint(QPainter.RenderHint.Antialiasing, True)
        painter.setRenderHint(QPainter.RenderHint.SmoothPixmapTransform, True)
        painter.scale(width / canvas_width, height / canvas_height)
        compositor.paint(painter, scene, background, canvas_width, canvas_height, render_options)
    finally:
        painter.end()
    return image


@trace_call("EXPORT")
def encode_image(image: QImage, image_format: str = "png", jpg_quality: int = 95) -> Tuple[bytes, str]:
    """
    Encode ``image`` and return (payload, file extension).

    JPEG has no alpha channel, so transparent pixels are flattened onto
    white. An ``svg`` request is served as PNG.

    Raises:
        ExportError: Unknown format or the encoder failed.
    """
    fmt = (image_format or "png").lower()
    if fmt == "svg":
        log.warning("SVG export is not supported; writing PNG instead")
        fmt = "png"
    if fmt not in IMAGE_FORMATS:
        raise ExportError(f"Unsupported export format: {image_format}")
    pil_format, ext = IMAGE_FORMATS[fmt]

    pil_image = qimage_to_pil(image)
    save_kwargs = {}
    if pil_format == "JPEG":
        flat = Image.new("RGB", pil_image.size, (255, 255, 255))
        flat.paste(pil_image, mask=pil_image.getchannel("A"))
        pil_image = flat
        save_kwargs = {"quality": jpg_quality}
    elif pil_format == "WEBP":
        save_kwargs = {"quality": jpg_quality}

    buf = io.BytesIO()
    try:
        pil_image.save(buf, format=pil_format, **save_kwargs)
    except (OSError, ValueError) as e:
        raise ExportError(f"Cannot encode {ext.upper()}: {e}") from e
    return buf.getvalue(), ext


def export_filename(quality: str, ext: str, timestamp_ms: Optional[int] = None) -> str:
    """``mockup_<quality>_<ms timestamp>.<ext>``"""
    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)
    return f"mockup_{quality}_{timestamp_ms}.{ext}"


def write_atomic(path: Path, data: bytes) -> None:
    """Write ``data`` to a temporary file beside ``path`` and rename it into place."""
    path = Path(path)
    tmp_name = None
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=".mockup_", suffix=".part", dir=path.parent)
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        os.replace(tmp_name, path)
    except OSError as e:
        if tmp_name and os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise ExportError(f"Cannot write {path}: {e}") from e


async def export_mockup(
    compositor: Compositor,
    scene: Scene,
    background: Background,
    canvas_width: float,
    canvas_height: float,
    options: Optional[ExportOptions] = None,
    directory: Optional[Path] = None,
) -> Path:
    """
    Render, encode and save the scene. Returns the written file path.

    Raises:
        ExportError: Rendering, encoding or writing failed. No partial
            file is left behind.
    """
    opts = options or ExportOptions.from_settings()
    quality = resolve_quality(opts.quality)
    image = await render_export(compositor, scene, background, canvas_width, canvas_height, opts)
    data, ext = encode_image(image, opts.image_format, opts.jpg_quality)

    out_dir = Path(directory) if directory else get_settings().get_export_dir()
    path = out_dir / export_filename(quality, ext)
    write_atomic(path, data)
    log.info("Exported %s (%d bytes)", path, len(data))
    trace(f"export written: {path}", "EXPORT")
    return path
