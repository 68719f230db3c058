"""
canvas/cache.py

Memoized asynchronous loader for device frame templates.

Templates are addressed as ``<templates dir>/<device key>.png``. Each key
is decoded at most once: concurrent callers share the in-flight task, and
both successes and failures are remembered for the life of the cache.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional

from PyQt6.QtGui import QImage

from catalog import template_path
from debug_trace import trace
from errors import AssetLoadError
from settings import get_settings

log = logging.getLogger(__name__)

Decoder = Callable[[Path], QImage]


@dataclass(frozen=True)
class TemplateResult:
    """Outcome of a template load. Exactly one of ``image``/``error`` is set."""
    key: str
    image: Optional[QImage] = None
    error: Optional[AssetLoadError] = None

    @property
    def ok(self) -> bool:
        return self.image is not None


def decode_template(path: Path) -> QImage:
    """Read and decode a template file. Runs on a worker thread."""
    try:
        found = path.is_file()
    except OSError as e:
        raise AssetLoadError(f"Cannot read template {path}: {e}", key=path.stem) from e
    if not found:
        raise AssetLoadError(f"Template not found: {path}", key=path.stem)
    image = QImage(str(path))
    if image.isNull():
        raise AssetLoadError(f"Cannot decode template: {path}", key=path.stem)
    return image.convertToFormat(QImage.Format.Format_ARGB32_Premultiplied)


class TemplateCache:
    """
    Append-only cache of decoded frame templates.

    Args:
        templates_dir: Directory holding ``<key>.png`` files. Defaults to
            the configured templates directory.
        decoder: Function decoding one file; replaceable for tests.
    """

    def __init__(self, templates_dir: Optional[Path] = None, decoder: Decoder = decode_template):
        self.templates_dir = Path(templates_dir) if templates_dir else get_settings().get_templates_dir()
        self._decoder = decoder
        self._images: Dict[str, QImage] = {}
        self._failures: Dict[str, AssetLoadError] = {}
        self._inflight: Dict[str, asyncio.Task] = {}

    def template_path(self, key: str) -> Path:
        return template_path(key, self.templates_dir)

    def get(self, key: str) -> Optional[QImage]:
        """Return the decoded template if it has already been loaded."""
        return self._images.get(key)

    def has_failed(self, key: str) -> bool:
        return key in self._failures

    def put(self, key: str, image: QImage) -> None:
        """Insert an already decoded template."""
        self._images[key] = image
        self._failures.pop(key, None)

    def __contains__(self, key: str) -> bool:
        return key in self._images

    def __len__(self) -> int:
        return len(self._images)

    async def load(self, key: str) -> TemplateResult:
        """
        Load one template, sharing any load already in progress for ``key``.

        Never raises for missing or corrupt files; the failure is returned
        in the result and remembered.
        """
        if key in self._images:
            return TemplateResult(key, image=self._images[key])
        if key in self._failures:
            return TemplateResult(key, error=self._failures[key])

        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._load(key))
            self._inflight[key] = task
        return await task

    async def load_many(self, keys: Iterable[str]) -> List[TemplateResult]:
        unique = list(dict.fromkeys(keys))
        return list(await asyncio.gather(*(self.load(k) for k in unique)))

    async def _load(self, key: str) -> TemplateResult:
        path = self.template_path(key)
        trace(f"Loading template {key} from {path}", "CACHE")
        try:
            image = await asyncio.to_thread(self._decoder, path)
        except AssetLoadError as e:
            if not e.key:
                e.key = key
            return self._fail(key, e)
        except OSError as e:
            return self._fail(key, AssetLoadError(f"Cannot read template {path}: {e}", key=key))
        finally:
            self._inflight.pop(key, None)

        self._images[key] = image
        trace(f"Template {key} decoded ({image.width()}x{image.height()})", "CACHE")
        return TemplateResult(key, image=image)

    def _fail(self, key: str, error: AssetLoadError) -> TemplateResult:
        self._failures[key] = error
        log.warning("Template %s unavailable: %s", key, error)
        return TemplateResult(key, error=error)
