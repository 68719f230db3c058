"""
schemas/__init__.py

JSON Schema definitions and validation utilities for device catalog records.
"""

from __future__ import annotations

import json
import os
from typing import Any, Dict, List, Optional, Tuple

from jsonschema import Draft202012Validator

# Schema file paths
SCHEMA_DIR = os.path.dirname(os.path.abspath(__file__))
DEVICE_CATALOG_SCHEMA_PATH = os.path.join(SCHEMA_DIR, "device_catalog_schema.json")

# Cached schema and validator
_device_schema: Optional[Dict] = None
_device_validator: Optional[Draft202012Validator] = None


def get_device_schema() -> Dict:
    """Load and return the device catalog record schema."""
    global _device_schema
    if _device_schema is None:
        with open(DEVICE_CATALOG_SCHEMA_PATH, "r", encoding="utf-8") as f:
            _device_schema = json.load(f)
    return _device_schema


def _get_validator() -> Draft202012Validator:
    global _device_validator
    if _device_validator is None:
        _device_validator = Draft202012Validator(get_device_schema())
    return _device_validator


def validate_device_record(record: Any) -> Tuple[bool, List[str]]:
    """
    Validate one catalog record against the device schema.

    Args:
        record: A single entry of the catalog's ``devices`` array

    Returns:
        Tuple of (is_valid, list_of_error_messages)
    """
    errors = sorted(_get_validator().iter_errors(record), key=lambda e: [str(p) for p in e.absolute_path])
    if not errors:
        return True, []

    error_messages = []
    for error in errors:
        path = " -> ".join(str(p) for p in error.absolute_path) if error.absolute_path else "root"
        error_messages.append(f"{path}: {error.message}")
    return False, error_messages
