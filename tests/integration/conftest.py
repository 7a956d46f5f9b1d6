"""Integration-test fixtures.

Needs PostgreSQL with migrations applied (alembic upgrade head), which also
seeds the markets used here. Redis is optional: the order rate limiter
lets requests through when it cannot reach it.

Every integration test shares one event loop so the module-level
SQLAlchemy engine pool stays valid for the whole session.
"""

import uuid
from collections.abc import Awaitable, Callable

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import text

from src.main import app
from src.pm_common.database import async_session_factory

SEED_MARKET_ID = "MKT-NGN-USD-1500"
PASSWORD = "Lagos2026pass"


@pytest_asyncio.fixture(loop_scope="session", scope="session")
async def client() -> AsyncClient:  # type: ignore[override]
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


async def _register(client: AsyncClient, prefix: str) -> dict[str, str]:
    uid = uuid.uuid4().hex[:8]
    user = {
        "username": f"{prefix}_{uid}",
        "email": f"{prefix}_{uid}@example.ng",
        "password": PASSWORD,
    }
    resp = await client.post("/api/v1/auth/register", json=user)
    assert resp.status_code == 201, resp.text
    login = await client.post(
        "/api/v1/auth/login", json={"username": user["username"], "password": PASSWORD}
    )
    data = login.json()["data"]
    return {**user, "user_id": data["user"]["user_id"], "token": data["access_token"]}


@pytest_asyncio.fixture(loop_scope="session")
async def new_user(client: AsyncClient) -> Callable[..., Awaitable[dict[str, str]]]:
    """Register a fresh user, optionally fund it; returns creds plus auth headers."""

    async def _make(prefix: str = "trader", fund: str | None = "10000.00") -> dict[str, str]:
        user = await _register(client, prefix)
        headers = {"Authorization": f"Bearer {user['token']}"}
        if fund is not None:
            resp = await client.post("/api/v1/account/deposit", json={"amount": fund}, headers=headers)
            assert resp.status_code == 200, resp.text
        return {**user, "headers": headers}  # type: ignore[dict-item]

    return _make


@pytest_asyncio.fixture(loop_scope="session")
async def admin(client: AsyncClient) -> dict[str, str]:
    user = await _register(client, "admin")
    async with async_session_factory() as session:
        await session.execute(
            text("UPDATE users SET is_admin = TRUE WHERE username = :u"), {"u": user["username"]}
        )
        await session.commit()
    return {**user, "headers": {"Authorization": f"Bearer {user['token']}"}}  # type: ignore[dict-item]
