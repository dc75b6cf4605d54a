"""Shared test fixtures."""

# ruff: noqa: E402  -- settings are read at import time

import os

os.environ.setdefault("JWT_SECRET", "test-jwt-secret-do-not-use-in-production")

import pytest
from httpx import ASGITransport, AsyncClient

from src.main import app


@pytest.fixture
async def client() -> AsyncClient:
    """Async HTTP client for testing FastAPI endpoints."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
