"""Preview routes — build a project snapshot into an iframe-ready document."""

from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, HTTPException, Query, Request, status
from fastapi.responses import HTMLResponse, Response

from backend.config import settings
from backend.middleware.rate_limit import rate_limiter
from backend.models.preview import BuildReport, PreviewRequest
from engine.preview import Build, BuildResult, NodeSandbox, SourceFile, single_file_snapshot

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["preview"])

# Each build is new content; nothing is cacheable.
_HEADERS = {
    "Cache-Control": "no-store",
    "X-Content-Type-Options": "nosniff",
}


def _sandbox() -> NodeSandbox | None:
    if settings.PREVIEW_SANDBOX != "node":
        return None
    return NodeSandbox(node_binary=settings.NODE_BINARY, timeout_seconds=settings.PREVIEW_SANDBOX_TIMEOUT_SECONDS)


def _check_rate_limit(request: Request) -> None:
    client_ip = request.client.host if request.client else "unknown"
    if not rate_limiter.check_rate_limit(f"preview:{client_ip}", max_requests=settings.PREVIEW_RATE_LIMIT_PER_MINUTE):
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many preview builds. Please wait a moment.",
        )


async def _run_build(files: list[SourceFile], name: str | None) -> BuildResult:
    # Parsing and the optional Node subprocess block; keep them off the event loop.
    build = Build(files, settings.build_options(title=name), _sandbox())
    result = await asyncio.to_thread(build.run)
    logger.info("preview: %s entry=%s files=%d", result.state.value, result.entry, len(files))
    return result


def _html(result: BuildResult) -> Response:
    return HTMLResponse(content=result.document, headers=_HEADERS)


@router.post("/preview-html", response_class=HTMLResponse)
async def preview_html(req: PreviewRequest, request: Request) -> Response:
    """
    Build a multi-file snapshot and return the preview document.

    Always 200 once the request validates: a failed build is still a
    document, with the error overlay showing.
    """
    _check_rate_limit(request)
    result = await _run_build(req.snapshot(), req.name)
    return _html(result)


@router.get("/preview-html", response_class=HTMLResponse)
async def preview_single_file(
    request: Request,
    code: str = Query(...),
    name: str | None = Query(default=None, max_length=200),
) -> Response:
    """Preview one source string as the project's entry file."""
    _check_rate_limit(request)
    if len(code.encode("utf-8")) > settings.PREVIEW_MAX_FILE_BYTES:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"code exceeds {settings.PREVIEW_MAX_FILE_BYTES} bytes",
        )
    result = await _run_build(single_file_snapshot(code, settings.PREVIEW_ENTRY_PATH), name)
    return _html(result)


@router.post("/preview/build", response_model=BuildReport)
async def preview_build(req: PreviewRequest, request: Request) -> BuildReport:
    """Build a snapshot and return the JSON report instead of the document."""
    _check_rate_limit(request)
    result = await _run_build(req.snapshot(), req.name)
    return BuildReport(**result.to_dict())
