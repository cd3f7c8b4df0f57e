"""Tests for settings → BuildOptions mapping."""

from __future__ import annotations

from backend.config import settings
from engine.preview.types import BuildOptions, TranspileMode


class TestBuildOptions:
    def test_defaults(self):
        options = settings.build_options()
        assert isinstance(options, BuildOptions)
        assert options.entry_path == "app/index.tsx"
        assert options.transpile_mode == TranspileMode.SERVER
        assert options.title == "App Preview"

    def test_title_override(self):
        assert settings.build_options(title="Demo").title == "Demo"

    def test_browser_mode(self, monkeypatch):
        monkeypatch.setattr(settings, "PREVIEW_TRANSPILE_MODE", "browser")
        assert settings.build_options().transpile_mode == TranspileMode.BROWSER
