"""
Pydantic models for the preview service.

All request/response shapes defined here. No imports from routes.
"""

from backend.models.preview import BuildReport, PreviewRequest, SourceFileIn, TransitionOut

__all__ = [
    "BuildReport",
    "PreviewRequest",
    "SourceFileIn",
    "TransitionOut",
]
