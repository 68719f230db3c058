"""Tests for the asynchronous template cache in canvas/cache.py."""
from __future__ import annotations

import asyncio
import threading
from pathlib import Path

import pytest
from PyQt6.QtGui import QColor, QImage

from canvas.cache import TemplateCache, decode_template
from errors import AssetLoadError


class CountingDecoder:
    """Decoder stub that records each decoded key."""

    def __init__(self, fail=()):
        self.calls = []
        self.fail = set(fail)
        self._lock = threading.Lock()

    def __call__(self, path):
        with self._lock:
            self.calls.append(path.stem)
        if path.stem in self.fail:
            raise AssetLoadError(f"Template not found: {path}")
        img = QImage(4, 4, QImage.Format.Format_ARGB32_Premultiplied)
        img.fill(QColor("#336699"))
        return img


# ─────────────────────────────────────────────────────────
# Dedupe and memoization
# ─────────────────────────────────────────────────────────


class TestTemplateCache:
    def test_concurrent_loads_share_one_decode(self, tmp_path):
        decoder = CountingDecoder()
        cache = TemplateCache(tmp_path, decoder=decoder)

        async def go():
            return await asyncio.gather(*(cache.load("iphone-15") for _ in range(5)))

        results = asyncio.run(go())
        assert decoder.calls == ["iphone-15"]
        assert all(r.ok for r in results)
        assert len({id(r.image) for r in results}) == 1
        assert "iphone-15" in cache
        assert len(cache) == 1

    def test_loaded_template_is_memoized(self, tmp_path):
        decoder = CountingDecoder()
        cache = TemplateCache(tmp_path, decoder=decoder)
        asyncio.run(cache.load("a"))
        asyncio.run(cache.load("a"))
        assert decoder.calls == ["a"]
        assert cache.get("a") is not None

    def test_failure_is_returned_and_remembered(self, tmp_path):
        decoder = CountingDecoder(fail={"ghost"})
        cache = TemplateCache(tmp_path, decoder=decoder)
        first = asyncio.run(cache.load("ghost"))
        second = asyncio.run(cache.load("ghost"))
        assert not first.ok
        assert isinstance(first.error, AssetLoadError)
        assert first.error.key == "ghost"
        assert second.error is first.error
        assert decoder.calls == ["ghost"]
        assert cache.has_failed("ghost")
        assert cache.get("ghost") is None

    def test_os_error_recorded_as_failure(self, tmp_path):
        calls = []

        def denied(path):
            calls.append(path.stem)
            raise PermissionError(13, "Permission denied", str(path))

        cache = TemplateCache(tmp_path, decoder=denied)
        results = asyncio.run(cache.load_many(["locked", "locked-too"]))
        assert [r.ok for r in results] == [False, False]
        assert isinstance(results[0].error, AssetLoadError)
        assert results[0].error.key == "locked"
        assert "Permission denied" in str(results[0].error)
        asyncio.run(cache.load("locked"))
        assert sorted(calls) == ["locked", "locked-too"]
        assert cache.has_failed("locked")

    def test_load_many_dedupes_keys(self, tmp_path):
        decoder = CountingDecoder(fail={"b"})
        cache = TemplateCache(tmp_path, decoder=decoder)
        results = asyncio.run(cache.load_many(["a", "b", "a", "c"]))
        assert [r.key for r in results] == ["a", "b", "c"]
        assert [r.ok for r in results] == [True, False, True]
        assert sorted(decoder.calls) == ["a", "b", "c"]

    def test_put_clears_failure(self, tmp_path):
        cache = TemplateCache(tmp_path, decoder=CountingDecoder(fail={"x"}))
        asyncio.run(cache.load("x"))
        cache.put("x", QImage(1, 1, QImage.Format.Format_ARGB32))
        assert not cache.has_failed("x")
        assert asyncio.run(cache.load("x")).ok

    def test_template_path(self, tmp_path):
        cache = TemplateCache(tmp_path)
        assert cache.template_path("galaxy-s24") == tmp_path / "galaxy-s24.png"

    def test_default_directory_from_settings(self, settings_manager, tmp_path):
        cache = TemplateCache()
        assert cache.templates_dir == tmp_path / "templates"


# ─────────────────────────────────────────────────────────
# File decoding
# ─────────────────────────────────────────────────────────


class TestDecodeTemplate:
    def test_missing_file(self, tmp_path):
        with pytest.raises(AssetLoadError):
            decode_template(tmp_path / "missing.png")

    def test_unreadable_directory(self, tmp_path, monkeypatch):
        def denied(self):
            raise PermissionError(13, "Permission denied", str(self))

        monkeypatch.setattr(Path, "is_file", denied)
        with pytest.raises(AssetLoadError) as exc:
            decode_template(tmp_path / "locked.png")
        assert exc.value.key == "locked"
        assert isinstance(exc.value.__cause__, PermissionError)

    def test_corrupt_file(self, tmp_path):
        path = tmp_path / "broken.png"
        path.write_bytes(b"not a png")
        with pytest.raises(AssetLoadError):
            decode_template(path)

    def test_real_file(self, tmp_path):
        path = tmp_path / "frame.png"
        img = QImage(8, 6, QImage.Format.Format_ARGB32)
        img.fill(QColor("#FF00FF"))
        assert img.save(str(path))
        decoded = decode_template(path)
        assert (decoded.width(), decoded.height()) == (8, 6)
        assert decoded.format() == QImage.Format.Format_ARGB32_Premultiplied

    def test_end_to_end_from_disk(self, tmp_path):
        img = QImage(3, 3, QImage.Format.Format_ARGB32)
        img.fill(QColor("#00FF00"))
        img.save(str(tmp_path / "pixel-8.png"))
        cache = TemplateCache(tmp_path)
        results = asyncio.run(cache.load_many(["pixel-8", "unknown"]))
        assert results[0].ok
        assert not results[1].ok
