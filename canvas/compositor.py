"""
canvas/compositor.py

Paints a Scene in fixed layer order:

    background -> devices -> annotations -> selection

The same code path serves live preview and export; ``RenderOptions``
selects which layers take part.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from PyQt6.QtCore import QRectF, Qt
from PyQt6.QtGui import QImage, QPainter

from canvas.background import Background, paint_background
from canvas.cache import TemplateCache
from canvas.items import (
    paint_annotation,
    paint_annotation_selection,
    paint_device,
    paint_device_selection,
)
from canvas.transforms import viewport_transform
from debug_trace import trace
from models import Scene


@dataclass
class RenderOptions:
    """Layer switches for one render pass.

    ``placeholders`` draws a gray box for devices whose template failed
    to load; when False those devices get no frame layer at all.
    """
    transparent_background: bool = False
    include_shadows: bool = True
    include_annotations: bool = True
    include_selection: bool = True
    placeholders: bool = True

    @classmethod
    def preview(cls) -> "RenderOptions":
        return cls()


class Compositor:
    """Renders scenes using templates from a shared ``TemplateCache``."""

    def __init__(self, cache: TemplateCache):
        self.cache = cache

    async def preload(self, scene: Scene) -> None:
        """Await every template the scene needs. Failures are recorded, not raised."""
        await self.cache.load_many(d.info.key for d in scene.devices)

    async def render(
        self,
        painter: QPainter,
        scene: Scene,
        background: Background,
        width: float,
        height: float,
        options: Optional[RenderOptions] = None,
    ) -> None:
        """Load all templates, then paint the whole frame without yielding."""
        await self.preload(scene)
        self.paint(painter, scene, background, width, height, options)

    async def render_image(
        self,
        scene: Scene,
        background: Background,
        width: int,
        height: int,
        options: Optional[RenderOptions] = None,
    ) -> QImage:
        """Render to a new ``width`` x ``height`` ARGB image."""
        image = QImage(max(1, width), max(1, height), QImage.Format.Format_ARGB32_Premultiplied)
        image.fill(Qt.GlobalColor.transparent)
        await self.preload(scene)
        painter = QPainter(image)
        try:
            painter.setRenderHint(QPainter.RenderHint.Antialiasing, True)
            self.paint(painter, scene, background, width, height, options)
        finally:
            painter.end()
        return image

    def paint(
        self,
        painter: QPainter,
        scene: Scene,
        background: Background,
        width: float,
        height: float,
        options: Optional[RenderOptions] = None,
    ) -> None:
        """
        Paint synchronously using whatever templates are already cached.

        ``width`` and ``height`` are the logical surface size; ``painter``
        may already carry an outer scale (export).
        """
        opts = options or RenderOptions()
        trace(
            f"paint {len(scene.devices)} devices, {len(scene.annotations)} annotations "
            f"at {width}x{height} zoom={scene.viewport.zoom:.3f}",
            "RENDER",
        )

        painter.save()
        try:
            rect = QRectF(0, 0, width, height)
            painter.setCompositionMode(QPainter.CompositionMode.CompositionMode_Source)
            painter.fillRect(rect, Qt.GlobalColor.transparent)
            painter.setCompositionMode(QPainter.CompositionMode.CompositionMode_SourceOver)

            if not opts.transparent_background:
                paint_background(painter, background, width, height)

            painter.setTransform(viewport_transform(scene.viewport), True)

            for device in scene.devices:
                paint_device(
                    painter,
                    device,
                    self.cache.get(device.info.key),
                    include_shadow=opts.include_shadows,
                    placeholder=opts.placeholders,
                )

            if opts.include_annotations:
                for annotation in scene.annotations:
                    paint_annotation(painter, annotation)

            if opts.include_selection:
                zoom = scene.viewport.zoom
                if scene.selected_device is not None:
                    paint_device_selection(painter, scene.selected_device, zoom)
                if scene.selected_annotation is not None:
                    paint_annotation_selection(painter, scene.selected_annotation, zoom)
        finally:
            painter.restore()
