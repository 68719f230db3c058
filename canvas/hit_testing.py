"""
canvas/hit_testing.py

Point-in-shape tests for selection. All coordinates are model space.

Annotations and devices are tested topmost-first (reverse list order)
and the first match wins.
"""

from __future__ import annotations

import math
from typing import Optional, Sequence, Tuple, Union

from models import (
    Annotation,
    ArrowAnnotation,
    CircleAnnotation,
    Device,
    RectangleAnnotation,
    Scene,
    TextAnnotation,
)

Box = Tuple[float, float, float, float]

# Pick radius around an arrow's start point
ARROW_HIT_RADIUS = 20.0

# Padding of an arrow's selection outline
ARROW_OUTLINE_PAD = 10.0

# Approximate glyph advance as a fraction of the font size
TEXT_CHAR_WIDTH = 0.6


def text_width(annotation: TextAnnotation) -> float:
    return len(annotation.text) * annotation.font_size * TEXT_CHAR_WIDTH


def annotation_bounds(annotation: Annotation) -> Box:
    """Box (x, y, width, height) used both for hit-testing and the text background."""
    if isinstance(annotation, TextAnnotation):
        p = annotation.padding
        fs = annotation.font_size
        return (
            annotation.x - p,
            annotation.y - (fs + 2 * p),
            text_width(annotation) + 2 * p,
            fs + 3 * p,
        )
    if isinstance(annotation, (RectangleAnnotation, CircleAnnotation)):
        return annotation.x, annotation.y, annotation.width, annotation.height
    if isinstance(annotation, ArrowAnnotation):
        x0 = min(annotation.start_x, annotation.end_x)
        y0 = min(annotation.start_y, annotation.end_y)
        x1 = max(annotation.start_x, annotation.end_x)
        y1 = max(annotation.start_y, annotation.end_y)
        return x0, y0, x1 - x0, y1 - y0
    raise TypeError(f"Unknown annotation type: {type(annotation).__name__}")


def selection_bounds(annotation: Annotation) -> Box:
    """Box drawn as the dashed selection outline around an annotation."""
    x, y, w, h = annotation_bounds(annotation)
    if isinstance(annotation, ArrowAnnotation):
        pad = ARROW_OUTLINE_PAD
        return x - pad, y - pad, w + 2 * pad, h + 2 * pad
    return x, y, w, h


def _in_box(px: float, py: float, box: Box) -> bool:
    x, y, w, h = box
    return x <= px <= x + w and y <= py <= y + h


def hit_test_annotation(annotation: Annotation, px: float, py: float) -> bool:
    """
    True if (px, py) strikes ``annotation``.

    Arrows only respond near their start point.
    """
    if isinstance(annotation, ArrowAnnotation):
        dist = math.hypot(px - annotation.start_x, py - annotation.start_y)
        return dist < ARROW_HIT_RADIUS
    return _in_box(px, py, annotation_bounds(annotation))


def hit_test_device(device: Device, px: float, py: float) -> bool:
    """Axis-aligned test against the scaled frame, ignoring rotation and perspective."""
    return _in_box(px, py, device.bounds())


def annotation_at(annotations: Sequence[Annotation], px: float, py: float) -> Optional[Annotation]:
    for annotation in reversed(annotations):
        if hit_test_annotation(annotation, px, py):
            return annotation
    return None


def device_at(devices: Sequence[Device], px: float, py: float) -> Optional[Device]:
    for device in reversed(devices):
        if hit_test_device(device, px, py):
            return device
    return None


def item_at(scene: Scene, px: float, py: float) -> Optional[Union[Annotation, Device]]:
    """Annotations take priority over devices."""
    hit = annotation_at(scene.annotations, px, py)
    if hit is not None:
        return hit
    return device_at(scene.devices, px, py)
