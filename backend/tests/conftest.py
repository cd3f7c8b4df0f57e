"""
Pytest configuration and fixtures for preview service tests.
"""

from __future__ import annotations

import os

# Set test environment variables before importing config
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("PREVIEW_SANDBOX", "off")
os.environ.setdefault("PREVIEW_MAX_FILES", "5")
os.environ.setdefault("PREVIEW_MAX_FILE_BYTES", "4096")

import httpx  # noqa: E402
import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402

from backend.main import app  # noqa: E402
from backend.middleware.rate_limit import rate_limiter  # noqa: E402


@pytest_asyncio.fixture
async def async_client():
    """Async HTTP client against the ASGI app."""
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client


@pytest.fixture(autouse=True)
def reset_rate_limiter():
    rate_limiter.reset()
    yield
    rate_limiter.reset()
