"""
canvas/scene.py

Editor controller: tool modes, pointer dragging, zoom, keyboard commands
and property edits on top of the Scene model.

Pointer coordinates arrive in screen (widget) pixels and are mapped to
model space through the viewport. Every completed edit mutates the scene
first and then records exactly one history snapshot.
"""

from __future__ import annotations

import logging
from dataclasses import fields
from typing import Any, Callable, List, Optional, Sequence

from PyQt6.QtGui import QImage

from canvas.background import Background, BackgroundMode
from canvas.hit_testing import annotation_at, device_at
from canvas.transforms import fit_viewport, wheel_zoom, zoom_about
from catalog import default_device
from debug_trace import trace
from history import HistoryManager
from models import (
    MAX_PERSPECTIVE,
    Annotation,
    ArrowAnnotation,
    CircleAnnotation,
    Device,
    DeviceInfo,
    Mode,
    RectangleAnnotation,
    Scene,
    TextAnnotation,
    clamp_zoom,
    make_id,
)
from settings import get_settings
from uploads import UploadResult

log = logging.getLogger(__name__)

# Device properties accepted by update_device()
DEVICE_PROPERTIES = (
    "x", "y", "scale", "rotation", "perspective", "frame_color",
    "shadow_enabled", "shadow_intensity", "shadow_distance", "shadow_blur",
)

# Upload contexts
UPLOAD_DEVICE = "device"
UPLOAD_BACKGROUND = "background"


class EditorScene:
    """
    Interaction layer between a UI adapter and the Scene model.

    Args:
        catalog: Known devices, used to auto-place a device for uploads.
        width: Initial canvas width in screen pixels.
        height: Initial canvas height in screen pixels.
    """

    def __init__(self, catalog: Optional[Sequence[DeviceInfo]] = None, width: float = 1200, height: float = 800):
        self.scene = Scene()
        self.background = Background.from_settings()
        self.history = HistoryManager(self.scene)
        self.catalog: List[DeviceInfo] = list(catalog or [])
        self.mode = Mode.SELECT
        self.canvas_width = width
        self.canvas_height = height

        self._on_changed: Optional[Callable[[], None]] = None
        # Drag state (model coordinates)
        self._drag_last: Optional[tuple] = None
        self._drag_origin: Optional[tuple] = None
        self._drag_moved = False
        self._creating: Optional[Annotation] = None

        # Baseline so the first edit can be undone
        self.history.snapshot()

    # -------------------------------------------------------------------------
    # Callbacks / plumbing
    # -------------------------------------------------------------------------

    def set_changed_callback(self, callback: Optional[Callable[[], None]]) -> None:
        """Set callback invoked whenever the scene needs repainting."""
        self._on_changed = callback

    def _changed(self) -> None:
        if self._on_changed is not None:
            self._on_changed()

    def _commit(self, what: str) -> None:
        trace(f"commit: {what}", "HISTORY")
        self.history.snapshot()
        self._changed()

    def set_mode(self, mode: str) -> None:
        """Set the current tool mode."""
        self.mode = mode
        self._creating = None
        self._drag_last = None

    def resize(self, width: float, height: float) -> None:
        self.canvas_width = width
        self.canvas_height = height

    @property
    def viewport(self):
        return self.scene.viewport

    def to_model(self, sx: float, sy: float) -> tuple:
        return self.scene.viewport.screen_to_model(sx, sy)

    # -------------------------------------------------------------------------
    # Devices
    # -------------------------------------------------------------------------

    def _place_device(self, info: DeviceInfo) -> Device:
        cx, cy = self.to_model(self.canvas_width / 2, self.canvas_height / 2)
        device = Device.create(info, cx, cy)
        self.scene.add_device(device)
        self.scene.selected_device = device
        return device

    def add_device(self, info: DeviceInfo) -> Device:
        """Place a device centered in the visible area and select it."""
        device = self._place_device(info)
        self._commit(f"add device {info.key}")
        return device

    def delete_selected_device(self) -> bool:
        device = self.scene.selected_device
        if device is None or not self.scene.remove_device(device):
            return False
        self._commit(f"delete device {device.id}")
        return True

    def select_layer(self, index: int) -> Optional[Device]:
        """Select the device at ``index`` in paint order."""
        if not 0 <= index < len(self.scene.devices):
            return None
        device = self.scene.devices[index]
        self.scene.selected_device = device
        self._changed()
        return device

    def update_device(self, device: Optional[Device] = None, **changes: Any) -> Device:
        """
        Apply property changes to ``device`` (default: the selection).

        Perspective is clamped to [0, 60] and shadow intensity to [0, 1].

        Raises:
            ValueError: No device, an unknown property, or a non-positive scale.
        """
        device = device or self.scene.selected_device
        if device is None:
            raise ValueError("No device selected")
        unknown = set(changes) - set(DEVICE_PROPERTIES)
        if unknown:
            raise ValueError(f"Unknown device properties: {', '.join(sorted(unknown))}")
        if "scale" in changes and not changes["scale"] > 0:
            raise ValueError(f"Scale must be positive, got {changes['scale']}")

        for name, value in changes.items():
            if name == "perspective":
                device.perspective = max(0.0, min(MAX_PERSPECTIVE, float(value)))
            elif name == "shadow_enabled":
                device.shadow.enabled = bool(value)
            elif name == "shadow_intensity":
                device.shadow.intensity = max(0.0, min(1.0, float(value)))
            elif name == "shadow_distance":
                device.shadow.distance = float(value)
            elif name == "shadow_blur":
                device.shadow.blur = max(0.0, float(value))
            elif name == "frame_color":
                device.frame_color = value
            else:
                setattr(device, name, float(value))

        self._commit(f"update device {device.id}: {', '.join(changes)}")
        return device

    def attach_image(self, image: QImage, device: Optional[Device] = None) -> Device:
        device = device or self.scene.selected_device
        if device is None:
            raise ValueError("No device selected")
        device.image = image
        self._commit(f"attach image to {device.id}")
        return device

    # -------------------------------------------------------------------------
    # Annotations
    # -------------------------------------------------------------------------

    def add_text(self, sx: float, sy: float, text: str) -> Optional[TextAnnotation]:
        """Create a text annotation at a screen point. Empty text creates nothing."""
        if not text:
            return None
        mx, my = self.to_model(sx, sy)
        annotation = TextAnnotation(id=make_id("text"), x=mx, y=my, text=text)
        self.scene.add_annotation(annotation)
        self.scene.selected_annotation = annotation
        self._commit(f"add text {annotation.id}")
        return annotation

    def update_annotation(self, annotation: Optional[Annotation] = None, **changes: Any) -> Annotation:
        """
        Edit fields of ``annotation`` (default: the selection).

        Raises:
            ValueError: No annotation, or a field the annotation does not have.
        """
        annotation = annotation or self.scene.selected_annotation
        if annotation is None:
            raise ValueError("No annotation selected")
        names = {f.name for f in fields(annotation)} - {"id"}
        unknown = set(changes) - names
        if unknown:
            raise ValueError(f"Unknown {annotation.kind} properties: {', '.join(sorted(unknown))}")
        for name, value in changes.items():
            setattr(annotation, name, value)
        self._commit(f"update annotation {annotation.id}")
        return annotation

    def delete_selected_annotation(self) -> bool:
        annotation = self.scene.selected_annotation
        if annotation is None or not self.scene.remove_annotation(annotation):
            return False
        self._commit(f"delete annotation {annotation.id}")
        return True

    def _start_annotation(self, mx: float, my: float) -> Optional[Annotation]:
        if self.mode == Mode.SHAPE:
            return RectangleAnnotation(id=make_id("shape"), x=mx, y=my)
        if self.mode == Mode.CIRCLE:
            return CircleAnnotation(id=make_id("circle"), x=mx, y=my)
        if self.mode == Mode.ARROW:
            return ArrowAnnotation(id=make_id("arrow"), start_x=mx, start_y=my, end_x=mx + 100, end_y=my - 50)
        return None

    def _size_annotation(self, annotation: Annotation, mx: float, my: float) -> None:
        ox, oy = self._drag_origin
        if isinstance(annotation, ArrowAnnotation):
            annotation.end_x = mx
            annotation.end_y = my
        elif isinstance(annotation, (RectangleAnnotation, CircleAnnotation)):
            annotation.x = min(ox, mx)
            annotation.y = min(oy, my)
            annotation.width = abs(mx - ox)
            annotation.height = abs(my - oy)
        else:
            raise TypeError(f"Cannot size annotation type: {type(annotation).__name__}")

    # -------------------------------------------------------------------------
    # Pointer events (screen coordinates)
    # -------------------------------------------------------------------------

    def pointer_press(self, sx: float, sy: float) -> None:
        mx, my = self.to_model(sx, sy)
        self._drag_origin = (mx, my)
        self._drag_last = (mx, my)
        self._drag_moved = False

        if self.mode in (Mode.SHAPE, Mode.CIRCLE, Mode.ARROW):
            annotation = self._start_annotation(mx, my)
            self.scene.add_annotation(annotation)
            self.scene.selected_annotation = annotation
            self._creating = annotation
        elif self.mode in (Mode.SELECT, Mode.MOVE):
            hit_annotation = annotation_at(self.scene.annotations, mx, my)
            if hit_annotation is not None:
                self.scene.selected_annotation = hit_annotation
            else:
                hit_device = device_at(self.scene.devices, mx, my)
                if hit_device is not None:
                    self.scene.selected_device = hit_device
                else:
                    self.scene.clear_selection()
                    self._drag_last = None
        else:
            # Text placement needs the string; the adapter calls add_text()
            self._drag_last = None
        self._changed()

    def pointer_move(self, sx: float, sy: float) -> None:
        if self._drag_last is None:
            return
        mx, my = self.to_model(sx, sy)

        if self._creating is not None:
            self._size_annotation(self._creating, mx, my)
            self._drag_moved = True
            self._changed()
            return

        lx, ly = self._drag_last
        dx, dy = mx - lx, my - ly
        self._drag_last = (mx, my)
        if dx == 0 and dy == 0:
            return

        target = self.scene.selected_device or self.scene.selected_annotation
        if target is None:
            return
        _translate(target, dx, dy)
        self._drag_moved = True
        self._changed()

    def pointer_release(self, sx: float, sy: float) -> None:
        if self._drag_last is None:
            return
        if self._creating is not None:
            annotation = self._creating
            self._creating = None
            self._drag_last = None
            self._commit(f"create {annotation.kind} {annotation.id}")
            return

        moved = self._drag_moved
        self._drag_last = None
        self._drag_moved = False
        if moved:
            self._commit("drag")

    # -------------------------------------------------------------------------
    # Zoom
    # -------------------------------------------------------------------------

    def wheel(self, sx: float, sy: float, delta_y: float) -> None:
        """Zoom one step about the cursor. Positive ``delta_y`` scrolls down (zoom out)."""
        wheel_zoom(self.scene.viewport, sx, sy, delta_y)
        self._changed()

    def zoom_to(self, zoom: float, sx: float = 0.0, sy: float = 0.0) -> None:
        zoom_about(self.scene.viewport, sx, sy, zoom)
        self._changed()

    def zoom_in(self) -> None:
        factor = get_settings().settings.canvas.zoom.button_factor
        self.scene.viewport.zoom = clamp_zoom(self.scene.viewport.zoom * factor)
        self._changed()

    def zoom_out(self) -> None:
        factor = get_settings().settings.canvas.zoom.button_factor
        self.scene.viewport.zoom = clamp_zoom(self.scene.viewport.zoom / factor)
        self._changed()

    def zoom_to_fit(self) -> None:
        fit_viewport(self.scene.viewport, self.scene.devices_bounds(), self.canvas_width, self.canvas_height)
        self._changed()

    # -------------------------------------------------------------------------
    # History / keyboard
    # -------------------------------------------------------------------------

    def undo(self) -> bool:
        done = self.history.undo()
        if done:
            self._changed()
        return done

    def redo(self) -> bool:
        done = self.history.redo()
        if done:
            self._changed()
        return done

    def clear_selection(self) -> None:
        self.scene.clear_selection()
        self._changed()

    def handle_key(self, key: str, ctrl: bool = False, shift: bool = False, text_input_focused: bool = False) -> bool:
        """
        Handle a keyboard shortcut. Returns True if the key was consumed.

        ``ctrl`` means Ctrl or Cmd. Keys are ignored while a text field
        has focus.
        """
        if text_input_focused:
            return False
        if ctrl and key == "z" and not shift:
            self.undo()
            return True
        if ctrl and (key == "Z" or (key == "z" and shift)):
            self.redo()
            return True
        if key in ("Delete", "Backspace"):
            return self.delete_selected_device()
        if key == "Escape":
            self.clear_selection()
            return True
        return False

    # -------------------------------------------------------------------------
    # Uploads
    # -------------------------------------------------------------------------

    def apply_uploads(self, results: Sequence[UploadResult], context: str = UPLOAD_DEVICE) -> int:
        """
        Apply successfully decoded uploads in order. Returns how many were used.

        Each image goes to the selected device; failing that, to the
        background when ``context`` is "background"; otherwise a default
        device is placed first if the scene is empty.
        """
        applied = 0
        for result in results:
            if not result.ok:
                continue
            if self.scene.selected_device is not None:
                self.scene.selected_device.image = result.image
            elif context == UPLOAD_BACKGROUND:
                self.background.image = result.image
                self.background.mode = BackgroundMode.IMAGE
            else:
                if not self.scene.devices:
                    info = default_device(self.catalog)
                    if info is None:
                        log.warning("No device available for upload %s", result.path.name)
                        continue
                    self._place_device(info)
                if self.scene.selected_device is None:
                    continue
                self.scene.selected_device.image = result.image
            applied += 1

        if applied:
            self._commit(f"apply {applied} upload(s)")
        return applied


def _translate(target, dx: float, dy: float) -> None:
    if isinstance(target, ArrowAnnotation):
        target.start_x += dx
        target.start_y += dy
        target.end_x += dx
        target.end_y += dy
    elif isinstance(target, (Device, TextAnnotation, RectangleAnnotation, CircleAnnotation)):
        target.x += dx
        target.y += dy
    else:
        raise TypeError(f"Cannot move {type(target).__name__}")
