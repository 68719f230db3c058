"""
uploads.py

Validation, decoding and downscaling of user-selected images.

Each file is processed independently: a bad file yields an ``UploadResult``
carrying an ``UploadError`` and the rest of the batch continues.
"""

from __future__ import annotations

import asyncio
import logging
import mimetypes
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional, Tuple, Union

from PyQt6.QtCore import Qt
from PyQt6.QtGui import QImage, QImageReader

from debug_trace import trace, trace_call
from errors import UploadError
from settings import get_settings

log = logging.getLogger(__name__)

PathLike = Union[str, Path]


@dataclass(frozen=True)
class UploadResult:
    """Outcome for one file. Exactly one of ``image``/``error`` is set."""
    path: Path
    image: Optional[QImage] = None
    error: Optional[UploadError] = None
    original_size: Tuple[int, int] = (0, 0)

    @property
    def ok(self) -> bool:
        return self.image is not None


def is_image_file(path: PathLike) -> bool:
    mime, _ = mimetypes.guess_type(str(path))
    return bool(mime) and mime.startswith("image/")


def fit_within(width: int, height: int, max_dimension: int) -> Tuple[int, int]:
    """Size scaled down so the longest side is at most ``max_dimension``; never scaled up."""
    if width <= max_dimension and height <= max_dimension:
        return width, height
    ratio = min(max_dimension / width, max_dimension / height)
    return max(1, round(width * ratio)), max(1, round(height * ratio))


@trace_call("UPLOAD")
def decode_upload(path: PathLike, max_dimension: Optional[int] = None) -> QImage:
    """
    Decode an image file, downscaling it when its longest side exceeds
    ``max_dimension`` (default from settings, 2048).

    Raises:
        UploadError: Not an image type, unreadable, or undecodable.
    """
    path = Path(path)
    if max_dimension is None:
        max_dimension = get_settings().settings.uploads.max_dimension

    if not is_image_file(path):
        raise UploadError(f"{path.name}: not an image file", path=str(path))

    reader = QImageReader(str(path))
    reader.setAutoTransform(True)
    image = reader.read()
    if image.isNull():
        raise UploadError(f"{path.name}: {reader.errorString()}", path=str(path))

    w, h = fit_within(image.width(), image.height(), max_dimension)
    if (w, h) != (image.width(), image.height()):
        trace(f"Downscaling {path.name} {image.width()}x{image.height()} -> {w}x{h}", "UPLOAD")
        image = image.scaled(
            w, h,
            Qt.AspectRatioMode.KeepAspectRatio,
            Qt.TransformationMode.SmoothTransformation,
        )
    return image


def process_upload(path: PathLike, max_dimension: Optional[int] = None) -> UploadResult:
    path = Path(path)
    reader_size = QImageReader(str(path)).size()
    original = (max(0, reader_size.width()), max(0, reader_size.height()))
    try:
        image = decode_upload(path, max_dimension)
    except UploadError as e:
        log.warning("Skipping upload %s", e)
        return UploadResult(path, error=e, original_size=original)
    return UploadResult(path, image=image, original_size=original)


def process_uploads(paths: Iterable[PathLike], max_dimension: Optional[int] = None) -> List[UploadResult]:
    """Process files in order, one result per path."""
    return [process_upload(p, max_dimension) for p in paths]


async def load_uploads(paths: Iterable[PathLike], max_dimension: Optional[int] = None) -> List[UploadResult]:
    """Decode files on worker threads. Results keep the input order."""
    return list(await asyncio.gather(
        *(asyncio.to_thread(process_upload, p, max_dimension) for p in paths)
    ))
