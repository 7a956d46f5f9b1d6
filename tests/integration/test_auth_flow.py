"""Register, login, refresh and protected-route access over HTTP."""

import uuid

import pytest
from httpx import AsyncClient

from tests.integration.conftest import PASSWORD

pytestmark = [pytest.mark.integration, pytest.mark.asyncio(loop_scope="session")]


def _user() -> dict[str, str]:
    uid = uuid.uuid4().hex[:8]
    return {"username": f"auth_{uid}", "email": f"auth_{uid}@example.ng", "password": PASSWORD}


class TestRegister:
    async def test_creates_user_with_empty_wallet(self, client: AsyncClient) -> None:
        user = _user()
        resp = await client.post("/api/v1/auth/register", json=user)
        assert resp.status_code == 201
        body = resp.json()
        assert body["code"] == 0
        assert body["data"]["username"] == user["username"]

        login = await client.post(
            "/api/v1/auth/login", json={"username": user["username"], "password": PASSWORD}
        )
        token = login.json()["data"]["access_token"]
        balance = await client.get(
            "/api/v1/account/balance", headers={"Authorization": f"Bearer {token}"}
        )
        assert balance.json()["data"]["balance_minor"] == 0

    async def test_duplicate_username(self, client: AsyncClient) -> None:
        user = _user()
        await client.post("/api/v1/auth/register", json=user)
        resp = await client.post("/api/v1/auth/register", json={**user, "email": "x" + user["email"]})
        assert resp.status_code == 409
        assert resp.json()["code"] == 1001

    async def test_weak_password(self, client: AsyncClient) -> None:
        resp = await client.post("/api/v1/auth/register", json={**_user(), "password": "weak"})
        assert resp.status_code == 422


class TestLogin:
    async def test_login_and_refresh(self, client: AsyncClient) -> None:
        user = _user()
        await client.post("/api/v1/auth/register", json=user)
        resp = await client.post(
            "/api/v1/auth/login", json={"username": user["username"], "password": PASSWORD}
        )
        data = resp.json()["data"]
        assert data["token_type"] == "Bearer"
        assert data["user"]["is_admin"] is False

        refreshed = await client.post(
            "/api/v1/auth/refresh", json={"refresh_token": data["refresh_token"]}
        )
        assert refreshed.status_code == 200
        assert refreshed.json()["data"]["access_token"]

    async def test_wrong_password(self, client: AsyncClient) -> None:
        user = _user()
        await client.post("/api/v1/auth/register", json=user)
        resp = await client.post(
            "/api/v1/auth/login", json={"username": user["username"], "password": "Wrong2026pass"}
        )
        assert resp.status_code == 401
        assert resp.json()["code"] == 1003

    async def test_protected_route_needs_token(self, client: AsyncClient) -> None:
        assert (await client.get("/api/v1/account/balance")).status_code == 401

    async def test_me_returns_logged_in_user(self, client: AsyncClient, new_user) -> None:
        user = await new_user(fund=None)
        resp = await client.get("/api/v1/auth/me", headers=user["headers"])
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert (data["user_id"], data["username"]) == (user["user_id"], user["username"])
        assert data["is_admin"] is False
