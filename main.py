"""
main.py

MockupStudio main window: device library, preview canvas, device
properties, layers, undo/redo and export.

Usage:
    python main.py [catalog.json]
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Dict, List, Optional

from PyQt6.QtCore import Qt
from PyQt6.QtGui import QAction, QActionGroup, QKeySequence
from PyQt6.QtWidgets import (
    QApplication,
    QCheckBox,
    QColorDialog,
    QComboBox,
    QDockWidget,
    QDoubleSpinBox,
    QFileDialog,
    QFormLayout,
    QLineEdit,
    QListWidget,
    QListWidgetItem,
    QMainWindow,
    QMessageBox,
    QPushButton,
    QToolBar,
    QVBoxLayout,
    QWidget,
)

from canvas.cache import TemplateCache
from canvas.scene import UPLOAD_BACKGROUND, UPLOAD_DEVICE, EditorScene
from canvas.view import MockupView
from catalog import filter_catalog, load_device_infos
from debug_trace import close_log, trace, trace_exception
from errors import ExportError
from export import EXPORT_DIMENSIONS, ExportOptions, export_mockup
from models import DeviceInfo, Mode
from settings import SettingsManager, get_settings
from uploads import UploadResult
from utils import parse_color, qcolor_to_hex

IMAGE_FILTER = "Images (*.png *.jpg *.jpeg *.webp *.gif *.bmp)"

CATEGORIES = ["all", "phone", "tablet", "laptop", "desktop", "watch"]


class DevicePanel(QWidget):
    """Property editor for the selected device."""

    def __init__(self, editor: EditorScene, parent=None):
        super().__init__(parent)
        self.editor = editor
        self._updating = False

        form = QFormLayout(self)

        def spin(lo: float, hi: float, step: float, decimals: int = 1) -> QDoubleSpinBox:
            sb = QDoubleSpinBox(self)
            sb.setRange(lo, hi)
            sb.setSingleStep(step)
            sb.setDecimals(decimals)
            sb.setKeyboardTracking(False)
            return sb

        self.scale_spin = spin(0.05, 10.0, 0.05, 2)
        self.rotation_spin = spin(-360.0, 360.0, 1.0)
        self.perspective_spin = spin(0.0, 60.0, 1.0)
        self.shadow_check = QCheckBox("Enabled", self)
        self.intensity_spin = spin(0.0, 1.0, 0.05, 2)
        self.distance_spin = spin(0.0, 200.0, 1.0)
        self.blur_spin = spin(0.0, 200.0, 1.0)
        self.color_btn = QPushButton("Frame Color...", self)

        form.addRow("Scale", self.scale_spin)
        form.addRow("Rotation", self.rotation_spin)
        form.addRow("Perspective", self.perspective_spin)
        form.addRow("Shadow", self.shadow_check)
        form.addRow("Intensity", self.intensity_spin)
        form.addRow("Distance", self.distance_spin)
        form.addRow("Blur", self.blur_spin)
        form.addRow(self.color_btn)

        self.scale_spin.valueChanged.connect(lambda v: self._apply(scale=v))
        self.rotation_spin.valueChanged.connect(lambda v: self._apply(rotation=v))
        self.perspective_spin.valueChanged.connect(lambda v: self._apply(perspective=v))
        self.shadow_check.toggled.connect(lambda v: self._apply(shadow_enabled=v))
        self.intensity_spin.valueChanged.connect(lambda v: self._apply(shadow_intensity=v))
        self.distance_spin.valueChanged.connect(lambda v: self._apply(shadow_distance=v))
        self.blur_spin.valueChanged.connect(lambda v: self._apply(shadow_blur=v))
        self.color_btn.clicked.connect(self._pick_color)

        self.sync()

    def _apply(self, **changes):
        if self._updating or self.editor.scene.selected_device is None:
            return
        self.editor.update_device(**changes)

    def _pick_color(self):
        device = self.editor.scene.selected_device
        if device is None:
            return
        c = QColorDialog.getColor(parse_color(device.frame_color), self, "Frame Color")
        if c.isValid():
            self.editor.update_device(frame_color=qcolor_to_hex(c))

    def sync(self):
        """Load the selected device's values into the controls."""
        device = self.editor.scene.selected_device
        self.setEnabled(device is not None)
        if device is None:
            return
        self._updating = True
        try:
            self.scale_spin.setValue(device.scale)
            self.rotation_spin.setValue(device.rotation)
            self.perspective_spin.setValue(device.perspective)
            self.shadow_check.setChecked(device.shadow.enabled)
            self.intensity_spin.setValue(device.shadow.intensity)
            self.distance_spin.setValue(device.shadow.distance)
            self.blur_spin.setValue(device.shadow.blur)
        finally:
            self._updating = False


class MainWindow(QMainWindow):
    """Main application window.

    Args:
        settings_manager: The SettingsManager instance for application settings.
        catalog_path: Optional device catalog JSON file.
    """

    def __init__(self, settings_manager: SettingsManager, catalog_path: Optional[Path] = None):
        super().__init__()
        self.settings_manager = settings_manager
        self.setWindowTitle("MockupStudio")

        self.devices: List[DeviceInfo] = load_device_infos(catalog_path) if catalog_path else []

        self.editor = EditorScene(self.devices)
        self.view = MockupView(self.editor, TemplateCache(settings_manager.get_templates_dir()))
        self.view.set_upload_results_callback(self._on_upload_results)
        self.setCentralWidget(self.view)

        self._build_library_dock()
        self._build_properties_dock()
        self._build_toolbar()
        self._build_menus()

        self.editor.set_changed_callback(self._on_editor_changed)
        self.editor.history.on_change = self._update_undo_actions
        self._update_undo_actions()

        self.statusBar().showMessage(f"{len(self.devices)} devices in library. Drop images onto the canvas.")

    # -------------------------------------------------------------------------
    # UI construction
    # -------------------------------------------------------------------------

    def _build_library_dock(self):
        dock = QDockWidget("Devices", self)
        w = QWidget(dock)
        layout = QVBoxLayout(w)

        self.search_edit = QLineEdit(w)
        self.search_edit.setPlaceholderText("Search devices...")
        self.category_combo = QComboBox(w)
        self.category_combo.addItems(CATEGORIES)
        self.device_list = QListWidget(w)

        layout.addWidget(self.search_edit)
        layout.addWidget(self.category_combo)
        layout.addWidget(self.device_list)
        dock.setWidget(w)
        self.addDockWidget(Qt.DockWidgetArea.LeftDockWidgetArea, dock)

        self.search_edit.textChanged.connect(self._refresh_device_list)
        self.category_combo.currentTextChanged.connect(self._refresh_device_list)
        self.device_list.itemDoubleClicked.connect(self._on_device_activated)
        self._refresh_device_list()

    def _build_properties_dock(self):
        dock = QDockWidget("Properties", self)
        w = QWidget(dock)
        layout = QVBoxLayout(w)
        self.device_panel = DevicePanel(self.editor, w)
        self.layers_list = QListWidget(w)
        layout.addWidget(self.device_panel)
        layout.addWidget(self.layers_list)
        dock.setWidget(w)
        self.addDockWidget(Qt.DockWidgetArea.RightDockWidgetArea, dock)

        self.layers_list.currentRowChanged.connect(self._on_layer_selected)

    def _build_toolbar(self):
        tb = QToolBar("Tools")
        self.addToolBar(tb)

        group = QActionGroup(self)
        self.mode_actions: Dict[str, QAction] = {}
        for text, mode, shortcut in (
            ("Select", Mode.SELECT, "V"),
            ("Move", Mode.MOVE, "M"),
            ("Text", Mode.TEXT, "T"),
            ("Shape", Mode.SHAPE, "R"),
            ("Circle", Mode.CIRCLE, "C"),
            ("Arrow", Mode.ARROW, "A"),
        ):
            act = QAction(text, self)
            act.setCheckable(True)
            act.setShortcut(shortcut)
            act.triggered.connect(lambda checked, m=mode: self.editor.set_mode(m))
            group.addAction(act)
            tb.addAction(act)
            self.mode_actions[mode] = act
        self.mode_actions[Mode.SELECT].setChecked(True)

        tb.addSeparator()
        self.undo_act = QAction("Undo", self)
        self.undo_act.triggered.connect(self.editor.undo)
        tb.addAction(self.undo_act)
        self.redo_act = QAction("Redo", self)
        self.redo_act.triggered.connect(self.editor.redo)
        tb.addAction(self.redo_act)

        tb.addSeparator()
        for text, slot in (
            ("Zoom In", self.editor.zoom_in),
            ("Zoom Out", self.editor.zoom_out),
            ("Fit", self.editor.zoom_to_fit),
        ):
            act = QAction(text, self)
            act.triggered.connect(slot)
            tb.addAction(act)

        tb.addSeparator()
        self.quality_combo = QComboBox(self)
        self.quality_combo.addItems(list(EXPORT_DIMENSIONS))
        self.quality_combo.setCurrentText(self.settings_manager.settings.export.quality)
        tb.addWidget(self.quality_combo)
        export_act = QAction("Export", self)
        export_act.triggered.connect(self.export_image)
        tb.addAction(export_act)

    def _build_menus(self):
        file_menu = self.menuBar().addMenu("&File")

        upload_act = QAction("Add Screen Images...", self)
        upload_act.triggered.connect(lambda: self.upload_dialog(UPLOAD_DEVICE))
        file_menu.addAction(upload_act)

        bg_act = QAction("Set Background Image...", self)
        bg_act.triggered.connect(lambda: self.upload_dialog(UPLOAD_BACKGROUND))
        file_menu.addAction(bg_act)

        export_act = QAction("&Export...", self)
        export_act.setShortcut("Ctrl+E")
        export_act.triggered.connect(self.export_image)
        file_menu.addAction(export_act)

        file_menu.addSeparator()
        exit_act = QAction("E&xit", self)
        exit_act.setShortcut(QKeySequence.StandardKey.Quit)
        exit_act.triggered.connect(self.close)
        file_menu.addAction(exit_act)

        edit_menu = self.menuBar().addMenu("&Edit")
        edit_menu.addAction(self.undo_act)
        edit_menu.addAction(self.redo_act)
        delete_act = QAction("Delete Device", self)
        delete_act.triggered.connect(self.editor.delete_selected_device)
        edit_menu.addAction(delete_act)

    # -------------------------------------------------------------------------
    # Device library / layers
    # -------------------------------------------------------------------------

    def _refresh_device_list(self):
        self.device_list.clear()
        shown = filter_catalog(self.devices, self.category_combo.currentText(), self.search_edit.text())
        for info in shown:
            item = QListWidgetItem(f"{info.name}  ({int(info.width)}x{int(info.height)})")
            item.setData(Qt.ItemDataRole.UserRole, info.key)
            self.device_list.addItem(item)

    def _on_device_activated(self, item: QListWidgetItem):
        key = item.data(Qt.ItemDataRole.UserRole)
        for info in self.devices:
            if info.key == key:
                self.editor.add_device(info)
                return

    def _on_layer_selected(self, row: int):
        if row >= 0:
            self.editor.select_layer(row)

    def _refresh_layers(self):
        self.layers_list.blockSignals(True)
        try:
            self.layers_list.clear()
            selected = self.editor.scene.selected_device
            for i, d in enumerate(self.editor.scene.devices):
                self.layers_list.addItem(d.info.name)
                if d is selected:
                    self.layers_list.setCurrentRow(i)
        finally:
            self.layers_list.blockSignals(False)

    # -------------------------------------------------------------------------
    # Editor callbacks
    # -------------------------------------------------------------------------

    def _on_editor_changed(self):
        self.view.refresh()
        self.device_panel.sync()
        self._refresh_layers()
        self.statusBar().showMessage(f"Zoom {round(self.editor.viewport.zoom * 100)}%")

    def _update_undo_actions(self):
        self.undo_act.setEnabled(self.editor.history.can_undo)
        self.redo_act.setEnabled(self.editor.history.can_redo)

    def _on_upload_results(self, results: List[UploadResult]):
        failed = [r for r in results if not r.ok]
        if failed:
            QMessageBox.warning(
                self, "Some images were skipped",
                "\n".join(str(r.error) for r in failed),
            )

    # -------------------------------------------------------------------------
    # Uploads / export
    # -------------------------------------------------------------------------

    def upload_dialog(self, context: str):
        paths, _ = QFileDialog.getOpenFileNames(self, "Select Images", "", IMAGE_FILTER)
        if paths:
            self.view.upload_files(paths, context)

    def export_image(self):
        options = ExportOptions.from_settings()
        options.quality = self.quality_combo.currentText()
        try:
            path = self.view.run(export_mockup(
                self.view.compositor,
                self.editor.scene,
                self.editor.background,
                self.view.width(),
                self.view.height(),
                options,
                self.settings_manager.get_export_dir(),
            ))
        except ExportError as e:
            trace_exception("Export failed")
            QMessageBox.critical(self, "Export failed", str(e))
            return
        self.statusBar().showMessage(f"Exported {path}")

    def closeEvent(self, event):
        self.view.close_loop()
        super().closeEvent(event)


def main():
    """Application entry point."""
    trace("Application starting", "MAIN")
    app = QApplication(sys.argv)

    trace("Loading settings", "MAIN")
    settings_manager = get_settings()
    settings_manager.ensure_file_complete()

    def save_on_quit():
        trace("Saving settings on quit", "MAIN")
        settings_manager.save()
        close_log()

    app.aboutToQuit.connect(save_on_quit)

    catalog_path = Path(sys.argv[1]) if len(sys.argv) > 1 else None

    trace("Creating MainWindow", "MAIN")
    w = MainWindow(settings_manager, catalog_path)
    w.resize(1400, 900)
    w.show()
    trace("Entering event loop", "MAIN")
    sys.exit(app.exec())


if __name__ == "__main__":
    # Set up global exception handler to catch crashes
    def excepthook(exc_type, exc_value, exc_tb):
        import traceback
        trace("UNCAUGHT EXCEPTION:", "CRASH")
        trace("".join(traceback.format_exception(exc_type, exc_value, exc_tb)), "CRASH")
        close_log()
        sys.__excepthook__(exc_type, exc_value, exc_tb)

    sys.excepthook = excepthook

    try:
        main()
    except Exception as e:
        trace(f"FATAL: {type(e).__name__}: {e}", "CRASH")
        trace_exception("Fatal exception")
        close_log()
        raise
