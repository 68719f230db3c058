"""
settings.py

Persistent settings management for MockupStudio.

Handles cross-platform settings storage using TOML format with platformdirs
for proper user config directory detection.

Settings file location:
    - Windows: %APPDATA%/mockupstudio/settings.toml
    - macOS: ~/Library/Application Support/mockupstudio/settings.toml
    - Linux: ~/.config/mockupstudio/settings.toml

Default values are documented in comments throughout this file.
If settings.toml is corrupted, these defaults will be used.
"""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass, field, fields, is_dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import platformdirs

# TOML reading - use tomllib for Python 3.11+, tomli for earlier versions
if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

import tomli_w

APP_NAME = "mockupstudio"

log = logging.getLogger(__name__)

# Global settings manager instance (singleton)
_settings_manager: Optional["SettingsManager"] = None


def get_settings() -> "SettingsManager":
    """Get the global settings manager instance.

    Returns:
        The singleton SettingsManager instance.
    """
    global _settings_manager
    if _settings_manager is None:
        _settings_manager = SettingsManager()
    return _settings_manager


def set_settings(manager: Optional["SettingsManager"]) -> None:
    """Replace the global settings manager (``None`` resets to lazy default)."""
    global _settings_manager
    _settings_manager = manager


# =============================================================================
# Canvas Settings
# =============================================================================

@dataclass
class CanvasSelectionSettings:
    """Selection decoration settings.

    Widths, dash and handle sizes are in screen pixels; the compositor
    divides them by the current zoom.

    Defaults:
        device_color: "#2563EB"
        annotation_color: "#10B981"
        line_width: 2.0
        dash_length: 5.0
        handle_size: 8.0
    """
    device_color: str = "#2563EB"       # Default: blue
    annotation_color: str = "#10B981"   # Default: green
    line_width: float = 2.0             # Default: 2.0 pixels
    dash_length: float = 5.0            # Default: 5.0 pixels
    handle_size: float = 8.0            # Default: 8.0 pixels


@dataclass
class CanvasZoomSettings:
    """Zoom behavior settings.

    Defaults:
        min_zoom: 0.1
        max_zoom: 5.0
        wheel_in_factor: 1.1
        wheel_out_factor: 0.9
        button_factor: 1.2
        fit_margin: 0.8
        fit_max_zoom: 2.0
    """
    min_zoom: float = 0.1           # Default: 0.1 (10%)
    max_zoom: float = 5.0           # Default: 5.0 (500%)
    wheel_in_factor: float = 1.1    # Default: 1.1 per wheel step up
    wheel_out_factor: float = 0.9   # Default: 0.9 per wheel step down
    button_factor: float = 1.2      # Default: 1.2 per zoom button click
    fit_margin: float = 0.8         # Default: devices fill 80% of the canvas
    fit_max_zoom: float = 2.0       # Default: zoom-to-fit never exceeds 200%


@dataclass
class CanvasSettings:
    """All canvas-related settings."""
    selection: CanvasSelectionSettings = field(default_factory=CanvasSelectionSettings)
    zoom: CanvasZoomSettings = field(default_factory=CanvasZoomSettings)


# =============================================================================
# History Settings
# =============================================================================

@dataclass
class HistorySettings:
    """Undo/redo settings.

    Defaults:
        max_depth: 50
        include_annotations: False
    """
    max_depth: int = 50                 # Default: 50 snapshots per stack
    include_annotations: bool = False   # Default: only devices + viewport


# =============================================================================
# Template Settings
# =============================================================================

@dataclass
class TemplateSettings:
    """Device frame template settings.

    Defaults:
        directory: "" (./images/mockup_templates)
        placeholder_fill: "#E5E7EB"
        placeholder_stroke: "#9CA3AF"
        placeholder_text: "#6B7280"
        placeholder_font_size: 14
    """
    directory: str = ""                     # Default: ./images/mockup_templates
    placeholder_fill: str = "#E5E7EB"       # Default: light gray
    placeholder_stroke: str = "#9CA3AF"     # Default: gray
    placeholder_text: str = "#6B7280"       # Default: dark gray
    placeholder_font_size: int = 14         # Default: 14 pixels


# =============================================================================
# Export Settings
# =============================================================================

@dataclass
class ExportSettings:
    """Export defaults.

    Defaults:
        quality: "4k"
        image_format: "png"
        jpg_quality: 95
        transparent_background: False
        include_shadows: True
        include_annotations: False
        directory: "" (~/Pictures/MockupStudio)
    """
    quality: str = "4k"                     # Default: "4k" (3840x2160)
    image_format: str = "png"               # Default: "png"
    jpg_quality: int = 95                   # Default: 95 (0.95)
    transparent_background: bool = False    # Default: False
    include_shadows: bool = True            # Default: True
    include_annotations: bool = False       # Default: False
    directory: str = ""                     # Default: ~/Pictures/MockupStudio


# =============================================================================
# Background Settings
# =============================================================================

@dataclass
class BackgroundSettings:
    """Default background fill values.

    Defaults:
        mode: "solid"
        color: "#F5F5F5"
        gradient_start: "#667eea"
        gradient_end: "#764ba2"
        gradient_direction: "to-bottom"
        pattern: "dots"
        pattern_color: "#E5E7EB"
        pattern_background: "#F8F9FA"
    """
    mode: str = "solid"                     # Default: "solid"
    color: str = "#F5F5F5"                  # Default: off-white
    gradient_start: str = "#667eea"         # Default: indigo
    gradient_end: str = "#764ba2"           # Default: purple
    gradient_direction: str = "to-bottom"   # Default: "to-bottom"
    pattern: str = "dots"                   # Default: "dots"
    pattern_color: str = "#E5E7EB"          # Default: light gray
    pattern_background: str = "#F8F9FA"     # Default: near white


# =============================================================================
# Device Settings
# =============================================================================

@dataclass
class DeviceDefaultSettings:
    """Defaults applied to newly placed devices.

    Defaults:
        frame_color: "#000000"
        shadow_enabled: True
        shadow_intensity: 0.3
        shadow_distance: 15.0
        shadow_blur: 25.0
    """
    frame_color: str = "#000000"    # Default: black (no tint)
    shadow_enabled: bool = True     # Default: True
    shadow_intensity: float = 0.3   # Default: 0.3
    shadow_distance: float = 15.0   # Default: 15 pixels
    shadow_blur: float = 25.0       # Default: 25 pixels


# =============================================================================
# Upload Settings
# =============================================================================

@dataclass
class UploadSettings:
    """User image upload settings.

    Defaults:
        max_dimension: 2048
    """
    max_dimension: int = 2048   # Default: 2048 pixels on the longest side


# =============================================================================
# Main App Settings
# =============================================================================

@dataclass
class AppSettings:
    """Application settings with default values.

    Attributes:
        workspace_dir: Default directory for catalogs and assets.
        canvas: Selection and zoom settings.
        history: Undo/redo settings.
        templates: Frame template lookup and placeholder settings.
        export: Export defaults.
        background: Default background fill.
        devices: Defaults for newly placed devices.
        uploads: User image upload settings.
    """
    # Workspace directory (empty = current working directory)
    workspace_dir: str = ""

    # Nested settings categories
    canvas: CanvasSettings = field(default_factory=CanvasSettings)
    history: HistorySettings = field(default_factory=HistorySettings)
    templates: TemplateSettings = field(default_factory=TemplateSettings)
    export: ExportSettings = field(default_factory=ExportSettings)
    background: BackgroundSettings = field(default_factory=BackgroundSettings)
    devices: DeviceDefaultSettings = field(default_factory=DeviceDefaultSettings)
    uploads: UploadSettings = field(default_factory=UploadSettings)


def _merge_section(target: Any, data: Dict[str, Any]) -> None:
    """Copy known keys from a TOML table onto a settings dataclass.

    Nested dataclasses recurse into nested tables. Unknown keys and values
    whose type does not match the default are ignored.
    """
    for f in fields(target):
        if f.name not in data:
            continue
        current = getattr(target, f.name)
        value = data[f.name]
        if is_dataclass(current):
            if isinstance(value, dict):
                _merge_section(current, value)
            continue
        if isinstance(current, bool):
            if isinstance(value, bool):
                setattr(target, f.name, value)
        elif isinstance(current, float):
            if isinstance(value, (int, float)) and not isinstance(value, bool):
                setattr(target, f.name, float(value))
        elif isinstance(current, int):
            if isinstance(value, int) and not isinstance(value, bool):
                setattr(target, f.name, value)
        elif isinstance(current, str):
            if isinstance(value, str):
                setattr(target, f.name, value)


def _section_dict(section: Any) -> Dict[str, Any]:
    """Convert a settings dataclass to a TOML-compatible dict."""
    out: Dict[str, Any] = {}
    for f in fields(section):
        value = getattr(section, f.name)
        out[f.name] = _section_dict(value) if is_dataclass(value) else value
    return out


# =============================================================================
# Settings Manager
# =============================================================================

class SettingsManager:
    """Manages loading, saving, and accessing application settings.

    Settings are stored in a TOML file at the platform-appropriate location.
    If the settings file doesn't exist, defaults are used and the file is
    created on first save.

    Args:
        app_name: Application name used for the config directory.
        config_dir: Explicit directory overriding the platform location.
    """

    def __init__(self, app_name: str = APP_NAME, config_dir: Optional[Path] = None):
        if config_dir is not None:
            self.settings_dir = Path(config_dir)
        else:
            self.settings_dir = Path(platformdirs.user_config_dir(app_name))
        self.settings_file = self.settings_dir / "settings.toml"
        self.settings = self.load()
        self._needs_save = not self.settings_file.exists()  # Save if file didn't exist

    def ensure_file_complete(self) -> None:
        """Ensure settings file exists with all sections. Call once at startup."""
        if self._needs_save or not self.settings_file.exists():
            self.save()
            self._needs_save = False

    def load(self) -> AppSettings:
        """Load settings from the TOML file.

        Returns:
            AppSettings instance with values from file or defaults if file
            doesn't exist or is invalid.
        """
        if not self.settings_file.exists():
            return AppSettings()

        try:
            with open(self.settings_file, "rb") as f:
                data = tomllib.load(f)
        except (OSError, tomllib.TOMLDecodeError) as e:
            log.warning("Ignoring unreadable settings file %s: %s", self.settings_file, e)
            return AppSettings()

        return self._parse_toml(data)

    def _parse_toml(self, data: Dict[str, Any]) -> AppSettings:
        """Parse TOML data into AppSettings.

        Args:
            data: Parsed TOML dictionary.

        Returns:
            AppSettings instance populated from TOML data.
        """
        settings = AppSettings()

        general = data.get("general", {})
        if isinstance(general.get("workspace_dir"), str):
            settings.workspace_dir = general["workspace_dir"]

        for name in ("canvas", "history", "templates", "export", "background", "devices", "uploads"):
            section = data.get(name)
            if isinstance(section, dict):
                _merge_section(getattr(settings, name), section)

        return settings

    def save(self) -> None:
        """Save current settings to the TOML file.

        Creates the settings directory if it doesn't exist.
        """
        self.settings_dir.mkdir(parents=True, exist_ok=True)

        data = self._to_toml_dict()

        with open(self.settings_file, "wb") as f:
            tomli_w.dump(data, f)

    def _to_toml_dict(self) -> Dict[str, Any]:
        """Convert settings to a TOML-compatible dictionary structure.

        Returns:
            Dictionary organized by TOML sections.
        """
        s = self.settings
        return {
            "general": {
                "workspace_dir": s.workspace_dir,
            },
            "canvas": _section_dict(s.canvas),
            "history": _section_dict(s.history),
            "templates": _section_dict(s.templates),
            "export": _section_dict(s.export),
            "background": _section_dict(s.background),
            "devices": _section_dict(s.devices),
            "uploads": _section_dict(s.uploads),
        }

    def to_toml(self) -> str:
        """Convert current settings to a TOML-formatted string.

        Returns:
            TOML representation of the current settings.
        """
        return tomli_w.dumps(self._to_toml_dict())

    def get_workspace_dir(self) -> Path:
        """Get the resolved workspace directory path.

        Returns:
            Path to workspace directory. Falls back to the current working
            directory if workspace_dir setting is empty.
        """
        if self.settings.workspace_dir:
            return Path(self.settings.workspace_dir)
        return Path.cwd()

    def get_templates_dir(self) -> Path:
        """Get the directory holding device frame templates.

        Returns:
            The configured directory, or ``images/mockup_templates`` under
            the workspace directory.
        """
        if self.settings.templates.directory:
            return Path(self.settings.templates.directory)
        return self.get_workspace_dir() / "images" / "mockup_templates"

    def get_export_dir(self) -> Path:
        """Get the directory exports are written to.

        Returns:
            The configured directory, or ~/Pictures/MockupStudio.
        """
        if self.settings.export.directory:
            return Path(self.settings.export.directory)
        return Path.home() / "Pictures" / "MockupStudio"
