"""
Preview service configuration — all environment variables in one place.

Read from environment at import time. Invalid values fail fast.
"""

from __future__ import annotations

import os

from engine.preview.types import (
    DEFAULT_CDN_BASE,
    DEFAULT_ENTRY_PATH,
    DEFAULT_REACT_VERSION,
    BuildOptions,
    TranspileMode,
)


class Settings:
    """Application settings from environment variables."""

    # Application
    ENVIRONMENT: str = os.environ.get("ENVIRONMENT", "development")

    # Build
    PREVIEW_ENTRY_PATH: str = os.environ.get("PREVIEW_ENTRY_PATH", DEFAULT_ENTRY_PATH)
    PREVIEW_TRANSPILE_MODE: str = os.environ.get("PREVIEW_TRANSPILE_MODE", TranspileMode.SERVER.value)
    PREVIEW_TITLE: str = os.environ.get("PREVIEW_TITLE", "App Preview")

    # Document scripts
    PREVIEW_REACT_VERSION: str = os.environ.get("PREVIEW_REACT_VERSION", DEFAULT_REACT_VERSION)
    PREVIEW_CDN_BASE: str = os.environ.get("PREVIEW_CDN_BASE", DEFAULT_CDN_BASE).rstrip("/")

    # Headless sandbox ("off" | "node")
    PREVIEW_SANDBOX: str = os.environ.get("PREVIEW_SANDBOX", "off")
    NODE_BINARY: str = os.environ.get("NODE_BINARY", "node")
    PREVIEW_SANDBOX_TIMEOUT_SECONDS: float = float(os.environ.get("PREVIEW_SANDBOX_TIMEOUT_SECONDS", "5"))

    # Request limits
    PREVIEW_MAX_FILES: int = int(os.environ.get("PREVIEW_MAX_FILES", "200"))
    PREVIEW_MAX_FILE_BYTES: int = int(os.environ.get("PREVIEW_MAX_FILE_BYTES", str(512 * 1024)))
    PREVIEW_RATE_LIMIT_PER_MINUTE: int = int(os.environ.get("PREVIEW_RATE_LIMIT_PER_MINUTE", "120"))  # per IP

    def build_options(self, title: str | None = None) -> BuildOptions:
        """BuildOptions for one request. `title` overrides the configured default."""
        return BuildOptions(
            entry_path=self.PREVIEW_ENTRY_PATH,
            transpile_mode=TranspileMode(self.PREVIEW_TRANSPILE_MODE),
            title=title or self.PREVIEW_TITLE,
            react_version=self.PREVIEW_REACT_VERSION,
            cdn_base=self.PREVIEW_CDN_BASE,
        )


# Singleton instance
settings = Settings()

# Validate settings
_MODES = {mode.value for mode in TranspileMode}

if settings.PREVIEW_TRANSPILE_MODE not in _MODES:
    raise RuntimeError(f"PREVIEW_TRANSPILE_MODE must be one of {sorted(_MODES)}")
if settings.PREVIEW_SANDBOX not in ("off", "node"):
    raise RuntimeError("PREVIEW_SANDBOX must be 'off' or 'node'")
if settings.PREVIEW_SANDBOX_TIMEOUT_SECONDS <= 0:
    raise RuntimeError("PREVIEW_SANDBOX_TIMEOUT_SECONDS must be positive")
if settings.PREVIEW_MAX_FILES < 1:
    raise RuntimeError("PREVIEW_MAX_FILES must be at least 1")
if not settings.PREVIEW_ENTRY_PATH:
    raise RuntimeError("PREVIEW_ENTRY_PATH must not be empty")
