"""
models.py

Scene data model for the mockup editor: placed devices, annotations,
viewport state and the scene that owns them.

Nothing in this module paints. Images are carried as opaque ``QImage``
handles and are never modified in place, so copies may share them.
"""

from __future__ import annotations

import itertools
import time
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, ClassVar, List, Optional, Tuple, Union

from settings import get_settings
from utils import parse_color

if TYPE_CHECKING:
    from PyQt6.QtGui import QImage


# ----------------------------
# Identifiers
# ----------------------------

_id_counter = itertools.count(1)


def make_id(prefix: str) -> str:
    """Return a new identifier such as ``device_1718000000000_3``."""
    return f"{prefix}_{int(time.time() * 1000)}_{next(_id_counter)}"


# ----------------------------
# Tool mode constants
# ----------------------------

class Mode:
    """Editor tool constants."""
    SELECT = "select"
    MOVE = "move"
    TEXT = "text"
    SHAPE = "shape"
    CIRCLE = "circle"
    ARROW = "arrow"


# Frame color that means "draw the template untinted"
IDENTITY_FRAME_COLOR = "#000000"

MAX_PERSPECTIVE = 60.0


# ----------------------------
# Devices
# ----------------------------

@dataclass(frozen=True)
class ScreenRect:
    """Screen area inside a frame template, in template pixels."""
    x: float
    y: float
    width: float
    height: float


@dataclass(frozen=True)
class DeviceInfo:
    """Catalog data for a device model. Shared by every placed copy."""
    key: str
    name: str
    width: float
    height: float
    screen: Optional[ScreenRect] = None
    device_type: str = "phone"
    brand: str = ""


@dataclass
class Shadow:
    """Drop shadow painted beneath a device frame."""
    enabled: bool = True
    intensity: float = 0.3   # opacity, 0..1
    distance: float = 15.0   # offset in local pixels, both axes
    blur: float = 25.0       # blur radius in local pixels

    @classmethod
    def from_settings(cls) -> "Shadow":
        d = get_settings().settings.devices
        return cls(
            enabled=d.shadow_enabled,
            intensity=d.shadow_intensity,
            distance=d.shadow_distance,
            blur=d.shadow_blur,
        )


@dataclass
class Device:
    """A device frame placed in the scene.

    ``x``/``y`` is the frame center in model space. ``perspective`` is an
    angle in degrees (0..60) driving the skew approximation.
    """
    id: str
    info: DeviceInfo
    x: float = 0.0
    y: float = 0.0
    scale: float = 1.0
    rotation: float = 0.0
    perspective: float = 0.0
    frame_color: Optional[str] = IDENTITY_FRAME_COLOR
    image: Optional["QImage"] = field(default=None, compare=False)
    shadow: Shadow = field(default_factory=Shadow)

    @classmethod
    def create(cls, info: DeviceInfo, x: float, y: float) -> "Device":
        """Place a new device with the configured defaults."""
        return cls(
            id=make_id("device"),
            info=info,
            x=x,
            y=y,
            frame_color=get_settings().settings.devices.frame_color,
            shadow=Shadow.from_settings(),
        )

    def bounds(self) -> Tuple[float, float, float, float]:
        """Axis-aligned box (x, y, width, height) ignoring rotation and perspective."""
        w = self.info.width * self.scale
        h = self.info.height * self.scale
        return self.x - w / 2, self.y - h / 2, w, h

    @property
    def is_tinted(self) -> bool:
        if not self.frame_color:
            return False
        # Any spelling of opaque black (#000, rgb(0,0,0)) is the identity tint
        return parse_color(self.frame_color).rgba() != parse_color(IDENTITY_FRAME_COLOR).rgba()

    def clone(self) -> "Device":
        """Copy with no shared mutable records. ``info`` and ``image`` are shared."""
        return replace(self, shadow=replace(self.shadow))


# ----------------------------
# Annotations
# ----------------------------

@dataclass
class TextAnnotation:
    """Text label with a rounded background box. (x, y) anchors the text."""
    kind: ClassVar[str] = "text"
    id: str
    x: float
    y: float
    text: str
    font_size: float = 24.0
    font_family: str = "Arial"
    color: str = "#FFFFFF"
    background_color: Optional[str] = "rgba(0,0,0,0.7)"
    padding: float = 12.0
    corner_radius: float = 8.0

    def clone(self) -> "TextAnnotation":
        return replace(self)


@dataclass
class RectangleAnnotation:
    """Filled, stroked rectangle. (x, y) is the top-left corner."""
    kind: ClassVar[str] = "rectangle"
    id: str
    x: float
    y: float
    width: float = 100.0
    height: float = 60.0
    fill_color: Optional[str] = "rgba(37, 99, 235, 0.3)"
    stroke_color: Optional[str] = "#2563EB"
    stroke_width: float = 2.0
    corner_radius: float = 8.0

    def clone(self) -> "RectangleAnnotation":
        return replace(self)


@dataclass
class CircleAnnotation:
    """Circle inscribed in the box (x, y, width, height)."""
    kind: ClassVar[str] = "circle"
    id: str
    x: float
    y: float
    width: float = 80.0
    height: float = 80.0
    fill_color: Optional[str] = "rgba(37, 99, 235, 0.3)"
    stroke_color: Optional[str] = "#2563EB"
    stroke_width: float = 2.0

    def clone(self) -> "CircleAnnotation":
        return replace(self)


@dataclass
class ArrowAnnotation:
    """Straight arrow from start to end with a filled head at the end."""
    kind: ClassVar[str] = "arrow"
    id: str
    start_x: float
    start_y: float
    end_x: float
    end_y: float
    color: str = "#EF4444"
    stroke_width: float = 3.0
    arrow_size: float = 12.0

    def clone(self) -> "ArrowAnnotation":
        return replace(self)


Annotation = Union[TextAnnotation, RectangleAnnotation, CircleAnnotation, ArrowAnnotation]

ANNOTATION_TYPES: Tuple[type, ...] = (TextAnnotation, RectangleAnnotation, CircleAnnotation, ArrowAnnotation)


# ----------------------------
# Viewport
# ----------------------------

@dataclass
class Viewport:
    """Zoom/pan state.

    ``pan`` is the model-space point shown at the screen origin, so
    ``screen = (model - pan) * zoom``.
    """
    zoom: float = 1.0
    pan_x: float = 0.0
    pan_y: float = 0.0

    def screen_to_model(self, sx: float, sy: float) -> Tuple[float, float]:
        return sx / self.zoom + self.pan_x, sy / self.zoom + self.pan_y

    def model_to_screen(self, mx: float, my: float) -> Tuple[float, float]:
        return (mx - self.pan_x) * self.zoom, (my - self.pan_y) * self.zoom

    def clone(self) -> "Viewport":
        return replace(self)


def clamp_zoom(zoom: float) -> float:
    """Clamp a zoom level to the configured range. Default: [0.1, 5]."""
    z = get_settings().settings.canvas.zoom
    return max(z.min_zoom, min(z.max_zoom, zoom))


# ----------------------------
# Scene
# ----------------------------

class Scene:
    """Devices, annotations, selection and viewport.

    Paint order and hit priority follow list order: the last element is
    topmost. At most one of ``selected_device`` and ``selected_annotation``
    is set.
    """

    def __init__(self):
        self.devices: List[Device] = []
        self.annotations: List[Annotation] = []
        self.viewport = Viewport()
        self._selected_device: Optional[Device] = None
        self._selected_annotation: Optional[Annotation] = None

    @property
    def selected_device(self) -> Optional[Device]:
        return self._selected_device

    @selected_device.setter
    def selected_device(self, device: Optional[Device]) -> None:
        self._selected_device = device
        if device is not None:
            self._selected_annotation = None

    @property
    def selected_annotation(self) -> Optional[Annotation]:
        return self._selected_annotation

    @selected_annotation.setter
    def selected_annotation(self, annotation: Optional[Annotation]) -> None:
        self._selected_annotation = annotation
        if annotation is not None:
            self._selected_device = None

    def clear_selection(self) -> None:
        self._selected_device = None
        self._selected_annotation = None

    def add_device(self, device: Device) -> None:
        self.devices.append(device)

    def remove_device(self, device: Device) -> bool:
        """Remove a device by identity. Returns False if it is not in the scene."""
        for i, d in enumerate(self.devices):
            if d is device:
                del self.devices[i]
                if self._selected_device is device:
                    self._selected_device = None
                return True
        return False

    def add_annotation(self, annotation: Annotation) -> None:
        self.annotations.append(annotation)

    def remove_annotation(self, annotation: Annotation) -> bool:
        """Remove an annotation by identity. Returns False if it is not in the scene."""
        for i, a in enumerate(self.annotations):
            if a is annotation:
                del self.annotations[i]
                if self._selected_annotation is annotation:
                    self._selected_annotation = None
                return True
        return False

    def find_device(self, device_id: str) -> Optional[Device]:
        for d in self.devices:
            if d.id == device_id:
                return d
        return None

    def devices_bounds(self) -> Optional[Tuple[float, float, float, float]]:
        """Union of all device boxes as (x, y, width, height), or None if empty."""
        if not self.devices:
            return None
        min_x = min_y = float("inf")
        max_x = max_y = float("-inf")
        for d in self.devices:
            x, y, w, h = d.bounds()
            min_x = min(min_x, x)
            min_y = min(min_y, y)
            max_x = max(max_x, x + w)
            max_y = max(max_y, y + h)
        return min_x, min_y, max_x - min_x, max_y - min_y
