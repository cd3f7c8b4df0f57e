"""Preview request and report models."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, field_validator

from backend.config import settings
from engine.preview.types import SourceFile


class SourceFileIn(BaseModel):
    """One file of the project snapshot."""

    model_config = {"extra": "forbid"}

    path: str = Field(min_length=1, max_length=1024)
    content: str = ""

    @field_validator("path")
    @classmethod
    def path_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("path must not be blank")
        return v

    @field_validator("content")
    @classmethod
    def content_within_limit(cls, v: str) -> str:
        if len(v.encode("utf-8")) > settings.PREVIEW_MAX_FILE_BYTES:
            raise ValueError(f"file exceeds {settings.PREVIEW_MAX_FILE_BYTES} bytes")
        return v

    def to_source(self) -> SourceFile:
        return SourceFile(path=self.path, content=self.content)


class PreviewRequest(BaseModel):
    """What the client sends to POST /api/preview-html and /api/preview/build."""

    model_config = {"extra": "forbid"}

    files: list[SourceFileIn] = Field(min_length=1)
    name: str | None = Field(default=None, max_length=200)  # project name, used as document title

    @field_validator("files")
    @classmethod
    def files_within_limit(cls, v: list[SourceFileIn]) -> list[SourceFileIn]:
        if len(v) > settings.PREVIEW_MAX_FILES:
            raise ValueError(f"at most {settings.PREVIEW_MAX_FILES} files per build")
        return v

    def snapshot(self) -> list[SourceFile]:
        return [f.to_source() for f in self.files]


class TransitionOut(BaseModel):
    state: str
    at: float


class BuildReport(BaseModel):
    """What POST /api/preview/build returns."""

    state: str  # "ready" | "errored"
    entry: str | None
    modules: list[str]
    compile_errors: dict[str, dict[str, Any]]
    assets: list[str]
    error: dict[str, Any] | None
    history: list[TransitionOut]
    warnings: list[str]
    markup: str | None = None  # headless render, when the sandbox is enabled
