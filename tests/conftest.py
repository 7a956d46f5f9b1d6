"""Shared test fixtures."""

import os

# Settings() has no JWT_SECRET default
os.environ.setdefault("JWT_SECRET", "test-secret-not-for-production-0123456789")
# Integration flows fund users through the dev-only deposit endpoint
os.environ.setdefault("ALLOW_SIMULATED_DEPOSITS", "true")

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402


@pytest.fixture
async def client() -> AsyncClient:
    """Async HTTP client for testing FastAPI endpoints."""
    from src.main import app

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
