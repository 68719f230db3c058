"""Tests for upload validation, decoding and downscaling in uploads.py."""
from __future__ import annotations

import asyncio

import pytest
from PyQt6.QtGui import QColor, QImage

from errors import UploadError
from uploads import (
    decode_upload,
    fit_within,
    is_image_file,
    load_uploads,
    process_upload,
    process_uploads,
)


def write_png(path, w, h, color="#3366CC"):
    img = QImage(w, h, QImage.Format.Format_ARGB32)
    img.fill(QColor(color))
    assert img.save(str(path))
    return path


# ─────────────────────────────────────────────────────────
# Helpers
# ─────────────────────────────────────────────────────────


class TestHelpers:
    @pytest.mark.parametrize("name, expected", [
        ("shot.png", True),
        ("shot.JPG", True),
        ("notes.txt", False),
        ("archive.zip", False),
        ("noext", False),
    ])
    def test_is_image_file(self, name, expected):
        assert is_image_file(name) is expected

    def test_fit_within_never_upscales(self):
        assert fit_within(100, 50, 2048) == (100, 50)

    def test_fit_within_landscape(self):
        assert fit_within(4096, 2048, 2048) == (2048, 1024)

    def test_fit_within_portrait(self):
        assert fit_within(1000, 3000, 1500) == (500, 1500)


# ─────────────────────────────────────────────────────────
# Decoding
# ─────────────────────────────────────────────────────────


class TestDecode:
    def test_small_image_unchanged(self, tmp_path):
        path = write_png(tmp_path / "a.png", 30, 20)
        img = decode_upload(path)
        assert (img.width(), img.height()) == (30, 20)

    def test_large_image_downscaled(self, tmp_path):
        path = write_png(tmp_path / "big.png", 3000, 1500)
        img = decode_upload(path)
        assert (img.width(), img.height()) == (2048, 1024)

    def test_max_dimension_from_settings(self, tmp_path, settings_manager):
        settings_manager.settings.uploads.max_dimension = 64
        path = write_png(tmp_path / "a.png", 128, 32)
        img = decode_upload(path)
        assert (img.width(), img.height()) == (64, 16)

    def test_not_an_image(self, tmp_path):
        path = tmp_path / "notes.txt"
        path.write_text("hello")
        with pytest.raises(UploadError) as exc:
            decode_upload(path)
        assert exc.value.path == str(path)

    def test_corrupt_image(self, tmp_path):
        path = tmp_path / "broken.png"
        path.write_bytes(b"\x89PNG garbage")
        with pytest.raises(UploadError):
            decode_upload(path)


class TestBatch:
    def test_one_result_per_path_in_order(self, tmp_path):
        good = write_png(tmp_path / "good.png", 10, 10)
        bad = tmp_path / "bad.txt"
        bad.write_text("x")
        other = write_png(tmp_path / "other.png", 5, 8)
        results = process_uploads([good, bad, other])
        assert [r.path.name for r in results] == ["good.png", "bad.txt", "other.png"]
        assert [r.ok for r in results] == [True, False, True]
        assert isinstance(results[1].error, UploadError)
        assert results[2].original_size == (5, 8)

    def test_original_size_recorded_before_scaling(self, tmp_path):
        path = write_png(tmp_path / "big.png", 4096, 128)
        result = process_upload(path)
        assert result.original_size == (4096, 128)
        assert (result.image.width(), result.image.height()) == (2048, 64)

    def test_async_batch(self, tmp_path):
        paths = [write_png(tmp_path / f"{i}.png", 10 + i, 10) for i in range(4)]
        paths.insert(2, tmp_path / "missing.png")
        results = asyncio.run(load_uploads(paths))
        assert [r.ok for r in results] == [True, True, False, True, True]
        assert [r.image.width() for r in results if r.ok] == [10, 11, 12, 13]
