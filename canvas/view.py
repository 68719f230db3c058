"""
canvas/view.py

Preview widget: paints the editor scene and forwards mouse, wheel, key
and file-drop events to the EditorScene controller.
"""

from __future__ import annotations

import asyncio
from typing import Callable, List, Optional

from PyQt6.QtCore import Qt
from PyQt6.QtGui import QImage, QPainter
from PyQt6.QtWidgets import QInputDialog, QWidget

from canvas.cache import TemplateCache
from canvas.compositor import Compositor, RenderOptions
from canvas.scene import UPLOAD_DEVICE, EditorScene
from debug_trace import trace
from models import Mode
from uploads import UploadResult, is_image_file, load_uploads

_KEY_NAMES = {
    Qt.Key.Key_Delete: "Delete",
    Qt.Key.Key_Backspace: "Backspace",
    Qt.Key.Key_Escape: "Escape",
}


class MockupView(QWidget):
    """
    Widget showing the live composition.

    Every scene change renders a full frame on a private asyncio loop;
    ``paintEvent`` only copies the latest frame to the widget.
    """

    def __init__(self, editor: EditorScene, cache: Optional[TemplateCache] = None, parent=None):
        super().__init__(parent)
        self.editor = editor
        self.compositor = Compositor(cache or TemplateCache())
        self._loop = asyncio.new_event_loop()
        self._on_upload_results: Optional[Callable[[List[UploadResult]], None]] = None
        self._frame: Optional[QImage] = None

        self.setAcceptDrops(True)
        self.setFocusPolicy(Qt.FocusPolicy.StrongFocus)
        self.setMouseTracking(False)
        self.setMinimumSize(400, 300)

        editor.set_changed_callback(self.refresh)

    def set_upload_results_callback(self, callback: Optional[Callable[[List[UploadResult]], None]]):
        """Set callback receiving the per-file results of every drop/upload."""
        self._on_upload_results = callback

    def run(self, coro):
        """Run a coroutine to completion on the view's event loop."""
        return self._loop.run_until_complete(coro)

    def refresh(self) -> None:
        """Render the scene into the frame buffer and schedule a repaint."""
        self._frame = self.run(self.compositor.render_image(
            self.editor.scene,
            self.editor.background,
            self.width(),
            self.height(),
            RenderOptions.preview(),
        ))
        self.update()

    @property
    def frame(self) -> Optional[QImage]:
        """The most recently rendered frame."""
        return self._frame

    def close_loop(self) -> None:
        if not self._loop.is_closed():
            self._loop.close()

    # -------------------------------------------------------------------------
    # Painting
    # -------------------------------------------------------------------------

    def paintEvent(self, event):
        if self._frame is None:
            return
        painter = QPainter(self)
        try:
            painter.drawImage(0, 0, self._frame)
        finally:
            painter.end()

    def resizeEvent(self, event):
        self.editor.resize(self.width(), self.height())
        super().resizeEvent(event)
        if not self._loop.is_closed():
            self.refresh()

    # -------------------------------------------------------------------------
    # Mouse / wheel
    # -------------------------------------------------------------------------

    def mousePressEvent(self, event):
        if event.button() != Qt.MouseButton.LeftButton:
            super().mousePressEvent(event)
            return
        pos = event.position()
        if self.editor.mode == Mode.TEXT:
            text, ok = QInputDialog.getText(self, "Add Text", "Enter text:")
            if ok:
                self.editor.add_text(pos.x(), pos.y(), text)
            return
        self.editor.pointer_press(pos.x(), pos.y())

    def mouseMoveEvent(self, event):
        pos = event.position()
        self.editor.pointer_move(pos.x(), pos.y())

    def mouseReleaseEvent(self, event):
        if event.button() != Qt.MouseButton.LeftButton:
            super().mouseReleaseEvent(event)
            return
        pos = event.position()
        self.editor.pointer_release(pos.x(), pos.y())

    def wheelEvent(self, event):
        """Zoom about the cursor."""
        delta = event.angleDelta().y()
        if delta == 0:
            return
        pos = event.position()
        # Qt reports wheel-up as positive; the controller expects scroll-down positive
        self.editor.wheel(pos.x(), pos.y(), -delta)
        event.accept()

    # -------------------------------------------------------------------------
    # Keyboard
    # -------------------------------------------------------------------------

    def keyPressEvent(self, event):
        mods = event.modifiers()
        ctrl = bool(mods & (Qt.KeyboardModifier.ControlModifier | Qt.KeyboardModifier.MetaModifier))
        shift = bool(mods & Qt.KeyboardModifier.ShiftModifier)

        key = _KEY_NAMES.get(Qt.Key(event.key()))
        if key is None and event.key() == Qt.Key.Key_Z:
            key = "Z" if shift else "z"
        if key is None or not self.editor.handle_key(key, ctrl=ctrl, shift=shift):
            super().keyPressEvent(event)
            return
        event.accept()

    # -------------------------------------------------------------------------
    # Drag & drop uploads
    # -------------------------------------------------------------------------

    def dragEnterEvent(self, event):
        """Accept drops containing at least one image file."""
        if event.mimeData().hasUrls():
            for u in event.mimeData().urls():
                if is_image_file(u.toLocalFile()):
                    event.acceptProposedAction()
                    return
        event.ignore()

    def dragMoveEvent(self, event):
        event.acceptProposedAction()

    def dropEvent(self, event):
        """Decode dropped files and hand them to the selected/default device."""
        paths = [u.toLocalFile() for u in event.mimeData().urls() if u.isLocalFile()]
        if not paths:
            event.ignore()
            return
        self.upload_files(paths, UPLOAD_DEVICE)
        event.acceptProposedAction()

    def upload_files(self, paths: List[str], context: str = UPLOAD_DEVICE) -> List[UploadResult]:
        results = self.run(load_uploads(paths))
        applied = self.editor.apply_uploads(results, context)
        trace(f"uploads: {applied}/{len(results)} applied ({context})", "UPLOAD")
        if self._on_upload_results is not None:
            self._on_upload_results(results)
        return results
