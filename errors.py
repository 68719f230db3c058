"""
errors.py

Exception types for the mockup engine.

None of these are fatal: callers either recover locally (skip a catalog
record, draw a placeholder, skip an upload) or surface the message to the
user and abandon the operation (export).
"""

from __future__ import annotations


class MockupError(Exception):
    """Base class for all engine errors."""


class ValidationError(MockupError):
    """A device catalog record failed schema validation."""

    def __init__(self, message: str, index: int = -1, device_id: str = ""):
        super().__init__(message)
        self.index = index
        self.device_id = device_id


class AssetLoadError(MockupError):
    """A template or user image could not be read or decoded."""

    def __init__(self, message: str, key: str = ""):
        super().__init__(message)
        self.key = key


class UploadError(MockupError):
    """A user-selected file is not an image or could not be decoded."""

    def __init__(self, message: str, path: str = ""):
        super().__init__(message)
        self.path = path


class ExportError(MockupError):
    """Serializing or writing an export failed."""
