"""Shared fixtures: offscreen Qt platform, one QApplication per session,
and an isolated settings manager per test.
"""
from __future__ import annotations

import os
import sys

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest
from PyQt6.QtWidgets import QApplication

from settings import SettingsManager, set_settings


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture(scope="session", autouse=True)
def qapp():
    """Provide a single QApplication for the entire test session."""
    app = QApplication.instance() or QApplication(sys.argv)
    yield app


@pytest.fixture(autouse=True)
def settings_manager(tmp_path):
    """Settings backed by a throwaway directory, installed as the global instance."""
    sm = SettingsManager(config_dir=tmp_path / "config")
    sm.settings.templates.directory = str(tmp_path / "templates")
    sm.settings.export.directory = str(tmp_path / "exports")
    set_settings(sm)
    yield sm
    set_settings(None)
