"""Tests for TOML settings persistence in settings.py."""
from __future__ import annotations

from pathlib import Path

from settings import AppSettings, SettingsManager, get_settings, set_settings


class TestSettingsManager:
    def test_defaults_when_missing(self, tmp_path):
        sm = SettingsManager(config_dir=tmp_path / "cfg")
        assert sm.settings == AppSettings()
        assert sm.settings.history.max_depth == 50
        assert sm.settings.uploads.max_dimension == 2048
        assert sm.settings.canvas.zoom.min_zoom == 0.1

    def test_round_trip(self, tmp_path):
        sm = SettingsManager(config_dir=tmp_path)
        sm.settings.export.quality = "8k"
        sm.settings.canvas.zoom.max_zoom = 4.0
        sm.settings.background.pattern = "grid"
        sm.save()
        again = SettingsManager(config_dir=tmp_path)
        assert again.settings.export.quality == "8k"
        assert again.settings.canvas.zoom.max_zoom == 4.0
        assert again.settings.background.pattern == "grid"

    def test_corrupt_file_falls_back(self, tmp_path, caplog):
        (tmp_path / "settings.toml").write_text("this is [[ not toml", encoding="utf-8")
        sm = SettingsManager(config_dir=tmp_path)
        assert sm.settings == AppSettings()
        assert "settings" in caplog.text

    def test_wrong_types_ignored(self, tmp_path):
        (tmp_path / "settings.toml").write_text(
            '[history]\nmax_depth = "lots"\ninclude_annotations = true\n'
            '[canvas.zoom]\nmax_zoom = 3\n',
            encoding="utf-8",
        )
        sm = SettingsManager(config_dir=tmp_path)
        assert sm.settings.history.max_depth == 50
        assert sm.settings.history.include_annotations is True
        assert sm.settings.canvas.zoom.max_zoom == 3.0

    def test_ensure_file_complete(self, tmp_path):
        sm = SettingsManager(config_dir=tmp_path / "new")
        assert not sm.settings_file.exists()
        sm.ensure_file_complete()
        assert sm.settings_file.exists()
        assert "[canvas.zoom]" in sm.to_toml()

    def test_directories(self, tmp_path):
        sm = SettingsManager(config_dir=tmp_path)
        sm.settings.workspace_dir = str(tmp_path / "ws")
        assert sm.get_templates_dir() == tmp_path / "ws" / "images" / "mockup_templates"
        assert sm.get_export_dir() == Path.home() / "Pictures" / "MockupStudio"
        sm.settings.export.directory = str(tmp_path / "out")
        assert sm.get_export_dir() == tmp_path / "out"


class TestSingleton:
    def test_set_settings_swaps_instance(self, tmp_path, settings_manager):
        assert get_settings() is settings_manager
        other = SettingsManager(config_dir=tmp_path / "other")
        set_settings(other)
        assert get_settings() is other
