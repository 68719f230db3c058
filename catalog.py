"""
catalog.py

Device catalog loading. A catalog file is a JSON object whose ``devices``
array holds one record per device model; each record is validated against
``schemas/device_catalog_schema.json``.

Invalid records are logged and dropped. Loading never raises for a
partially invalid file.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

from errors import ValidationError
from models import DeviceInfo, ScreenRect
from schemas import validate_device_record
from settings import get_settings

log = logging.getLogger(__name__)

# Tried in order by default_device()
PREFERRED_DEVICES = ("iphone-15", "iphone-15-pro", "iphone-14", "galaxy-s24", "pixel-8")

PHONE_TYPES = ("phone", "mobile")


def validate_records(records: Iterable[Any]) -> Tuple[List[Dict[str, Any]], List[ValidationError]]:
    """Split raw records into (valid records, validation errors)."""
    valid: List[Dict[str, Any]] = []
    errors: List[ValidationError] = []
    for index, record in enumerate(records):
        ok, messages = validate_device_record(record)
        if ok:
            record.setdefault("is_legacy", False)
            valid.append(record)
            continue
        device_id = record.get("device_id", "") if isinstance(record, dict) else ""
        errors.append(ValidationError("; ".join(messages), index=index, device_id=str(device_id)))
    return valid, errors


def parse_catalog(data: Any) -> List[Dict[str, Any]]:
    """
    Return the valid records of a parsed catalog document.

    A document without a ``devices`` list yields an empty catalog.
    """
    devices = data.get("devices") if isinstance(data, dict) else None
    if not isinstance(devices, list):
        log.error("Device catalog has no 'devices' list")
        return []

    valid, errors = validate_records(devices)
    for e in errors:
        log.error("Dropping catalog record %d (%s): %s", e.index, e.device_id or "?", e)
    return valid


def load_catalog(path: Path) -> List[Dict[str, Any]]:
    """Read a catalog file and return its valid records."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        log.error("Cannot read device catalog %s: %s", path, e)
        return []
    return parse_catalog(data)


def _coords_bounds(coords: List[List[float]]) -> ScreenRect:
    xs = [p[0] for p in coords]
    ys = [p[1] for p in coords]
    return ScreenRect(min(xs), min(ys), max(xs) - min(xs), max(ys) - min(ys))


def to_device_info(record: Dict[str, Any], orientation: int = 0) -> DeviceInfo:
    """
    Map a validated record to ``DeviceInfo``.

    Size comes from the orientation's ``template_image_size`` when present,
    else ``display_resolution``. The screen rectangle is the bounding box
    of the orientation's four corner coordinates.
    """
    width, height = record["display_resolution"]
    screen = None
    orientations = record.get("orientations") or []
    if 0 <= orientation < len(orientations):
        o = orientations[orientation]
        if o.get("template_image_size"):
            width, height = o["template_image_size"]
        screen = _coords_bounds(o["coords"])

    return DeviceInfo(
        key=record["device_id"],
        name=record["name"],
        width=float(width),
        height=float(height),
        screen=screen,
        device_type=record.get("device_type", "phone"),
        brand=record.get("brand", ""),
    )


def load_device_infos(path: Path) -> List[DeviceInfo]:
    return [to_device_info(r) for r in load_catalog(path)]


def filter_catalog(infos: Iterable[DeviceInfo], category: str = "all", query: str = "") -> List[DeviceInfo]:
    """Filter by device type (``"all"`` matches everything) and a name/brand/type search."""
    q = query.strip().lower()
    out = []
    for info in infos:
        if category != "all" and info.device_type != category:
            continue
        if q and q not in " ".join((info.name, info.brand, info.device_type)).lower():
            continue
        out.append(info)
    return out


def default_device(infos: List[DeviceInfo]) -> Optional[DeviceInfo]:
    """Pick a device to auto-place: a preferred model if present, else the first phone."""
    for preferred in PREFERRED_DEVICES:
        variants = (preferred, preferred.replace("-", "_"))
        for info in infos:
            if any(v in info.key for v in variants):
                return info
    for info in infos:
        if info.device_type in PHONE_TYPES:
            return info
    return None


def template_path(device_id: str, templates_dir: Optional[Path] = None) -> Path:
    """``<templates dir>/<device_id>.png``."""
    base = Path(templates_dir) if templates_dir else get_settings().get_templates_dir()
    return base / f"{device_id}.png"
