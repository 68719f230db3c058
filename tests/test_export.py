"""Tests for high-resolution export in export.py."""
from __future__ import annotations

import asyncio
import io
import re

import pytest
from PIL import Image
from PyQt6.QtGui import QColor, QImage

from canvas.background import Background
from canvas.cache import TemplateCache
from canvas.compositor import Compositor
from errors import ExportError
from export import (
    EXPORT_DIMENSIONS,
    ExportOptions,
    encode_image,
    export_dimensions,
    export_filename,
    export_mockup,
    render_export,
    resolve_quality,
    write_atomic,
)
from models import RectangleAnnotation, Scene


def small_image(color="#FF0000", alpha=255) -> QImage:
    img = QImage(6, 4, QImage.Format.Format_ARGB32)
    c = QColor(color)
    c.setAlpha(alpha)
    img.fill(c)
    return img


# ─────────────────────────────────────────────────────────
# Quality tiers
# ─────────────────────────────────────────────────────────


class TestQuality:
    def test_tiers(self):
        assert EXPORT_DIMENSIONS == {
            "hd": (1920, 1080),
            "fhd": (2560, 1440),
            "4k": (3840, 2160),
            "8k": (7680, 4320),
        }

    def test_unknown_falls_back_to_4k(self, caplog):
        assert resolve_quality("ultra") == "4k"
        assert export_dimensions("ultra") == (3840, 2160)
        assert "ultra" in caplog.text

    def test_case_insensitive(self):
        assert resolve_quality("HD") == "hd"


# ─────────────────────────────────────────────────────────
# Rendering
# ─────────────────────────────────────────────────────────


class TestRenderExport:
    @pytest.mark.parametrize("canvas", [(1200, 800), (333, 777)])
    def test_4k_exact_size(self, tmp_path, canvas):
        compositor = Compositor(TemplateCache(tmp_path))
        image = asyncio.run(render_export(
            compositor, Scene(), Background(), canvas[0], canvas[1], ExportOptions(quality="4k"),
        ))
        assert (image.width(), image.height()) == (3840, 2160)

    def test_scales_canvas_to_target(self, tmp_path):
        scene = Scene()
        scene.add_annotation(RectangleAnnotation(
            id="r", x=0, y=0, width=100, height=100,
            fill_color="#00FF00", stroke_color=None, corner_radius=0,
        ))
        compositor = Compositor(TemplateCache(tmp_path))
        opts = ExportOptions(quality="hd", include_annotations=True)
        image = asyncio.run(render_export(compositor, scene, Background(color="#FFFFFF"), 960, 540, opts))
        # Canvas (100, 100) maps to export (200, 200)
        assert image.pixelColor(190, 190) == QColor("#00FF00")
        assert image.pixelColor(210, 210) == QColor("#FFFFFF")

    def test_annotations_off_by_default(self, tmp_path):
        scene = Scene()
        scene.add_annotation(RectangleAnnotation(
            id="r", x=0, y=0, width=100, height=100,
            fill_color="#00FF00", stroke_color=None, corner_radius=0,
        ))
        compositor = Compositor(TemplateCache(tmp_path))
        image = asyncio.run(render_export(
            compositor, scene, Background(color="#FFFFFF"), 960, 540, ExportOptions(quality="hd"),
        ))
        assert image.pixelColor(50, 50) == QColor("#FFFFFF")

    def test_transparent_background(self, tmp_path):
        compositor = Compositor(TemplateCache(tmp_path))
        opts = ExportOptions(quality="hd", transparent_background=True)
        image = asyncio.run(render_export(compositor, Scene(), Background(), 960, 540, opts))
        assert image.pixelColor(10, 10).alpha() == 0

    def test_invalid_canvas_size(self, tmp_path):
        compositor = Compositor(TemplateCache(tmp_path))
        with pytest.raises(ExportError):
            asyncio.run(render_export(compositor, Scene(), Background(), 0, 100))


# ─────────────────────────────────────────────────────────
# Encoding
# ─────────────────────────────────────────────────────────


class TestEncode:
    def test_png(self):
        data, ext = encode_image(small_image(), "png")
        assert ext == "png"
        assert data.startswith(b"\x89PNG\r\n\x1a\n")
        assert Image.open(io.BytesIO(data)).size == (6, 4)

    def test_jpeg_flattened_on_white(self):
        data, ext = encode_image(small_image("#000000", alpha=0), "jpg")
        assert ext == "jpg"
        assert data[:3] == b"\xff\xd8\xff"
        decoded = Image.open(io.BytesIO(data)).convert("RGB")
        assert all(v > 245 for v in decoded.getpixel((2, 2)))

    def test_jpeg_alias(self):
        _, ext = encode_image(small_image(), "jpeg")
        assert ext == "jpg"

    def test_webp(self):
        data, ext = encode_image(small_image(), "webp")
        assert ext == "webp"
        assert data[:4] == b"RIFF" and data[8:12] == b"WEBP"

    def test_svg_degrades_to_png(self, caplog):
        data, ext = encode_image(small_image(), "svg")
        assert ext == "png"
        assert data.startswith(b"\x89PNG")
        assert "SVG" in caplog.text

    def test_unknown_format(self):
        with pytest.raises(ExportError):
            encode_image(small_image(), "tiff")

    def test_png_keeps_alpha(self):
        data, _ = encode_image(small_image(alpha=0), "png")
        assert Image.open(io.BytesIO(data)).getpixel((0, 0))[3] == 0


# ─────────────────────────────────────────────────────────
# Writing
# ─────────────────────────────────────────────────────────


class TestWrite:
    def test_filename_pattern(self):
        assert export_filename("4k", "png", 1718000000123) == "mockup_4k_1718000000123.png"
        assert re.fullmatch(r"mockup_hd_\d{13}\.jpg", export_filename("hd", "jpg"))

    def test_write_atomic(self, tmp_path):
        path = tmp_path / "out" / "a.png"
        write_atomic(path, b"data")
        assert path.read_bytes() == b"data"
        assert [p.name for p in path.parent.iterdir()] == ["a.png"]

    def test_write_failure_raises_export_error(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("x")
        with pytest.raises(ExportError):
            write_atomic(blocker / "a.png", b"data")

    def test_export_mockup_writes_file(self, tmp_path):
        compositor = Compositor(TemplateCache(tmp_path))
        opts = ExportOptions(quality="nonsense", image_format="png")
        out = tmp_path / "exports"
        path = asyncio.run(export_mockup(compositor, Scene(), Background(), 400, 300, opts, out))
        assert path.parent == out
        assert re.fullmatch(r"mockup_4k_\d+\.png", path.name)
        with Image.open(path) as img:
            assert img.size == (3840, 2160)
        assert [p.name for p in out.iterdir()] == [path.name]

    def test_export_mockup_default_directory(self, tmp_path, settings_manager):
        compositor = Compositor(TemplateCache(tmp_path))
        opts = ExportOptions(quality="hd", image_format="jpg")
        path = asyncio.run(export_mockup(compositor, Scene(), Background(), 400, 300, opts))
        assert path.parent == tmp_path / "exports"
        assert path.suffix == ".jpg"

    def test_options_from_settings(self, settings_manager):
        settings_manager.settings.export.quality = "fhd"
        settings_manager.settings.export.include_annotations = True
        opts = ExportOptions.from_settings()
        assert opts.quality == "fhd"
        assert opts.include_annotations is True
        assert opts.include_shadows is True
