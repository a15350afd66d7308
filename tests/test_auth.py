"""
Auth endpoint tests: signup, login, logout and /users/me, including the
access-token cookie and the already-signed-in conflict.
"""
import pytest
from httpx import AsyncClient

from socialfeed.config import settings

COOKIE = settings.ACCESS_TOKEN_COOKIE


async def _signup(client: AsyncClient, username: str = "ana", password: str = "p1"):
    return await client.post("/api/v1/auth/signup", json={
        "username": username,
        "password": password,
        "name": username.title(),
    })


# ---------------------------------------------------------------------------
# Signup
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_signup_sets_cookie_and_returns_self_user(async_client: AsyncClient):
    resp = await _signup(async_client)
    assert resp.status_code == 201
    body = resp.json()
    assert body["username"] == "ana"
    assert body["name"] == "Ana"
    assert "password" not in body
    assert resp.cookies.get(COOKIE)


@pytest.mark.asyncio
async def test_signup_then_get_self(async_client: AsyncClient):
    created = (await _signup(async_client)).json()

    resp = await async_client.get("/api/v1/users/me")
    assert resp.status_code == 200
    assert resp.json() == created


@pytest.mark.asyncio
async def test_signup_while_signed_in_conflicts(async_client: AsyncClient):
    await _signup(async_client, "ana")
    resp = await _signup(async_client, "bob")
    assert resp.status_code == 409
    assert resp.json()["detail"] == "already authenticated"


@pytest.mark.asyncio
async def test_duplicate_username_returns_409(async_client: AsyncClient):
    await _signup(async_client, "ana")
    async_client.cookies.clear()
    resp = await _signup(async_client, "ana")
    assert resp.status_code == 409


@pytest.mark.asyncio
async def test_signup_missing_field_returns_422(async_client: AsyncClient):
    resp = await async_client.post("/api/v1/auth/signup", json={"username": "ana"})
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_signup_with_stale_token_proceeds(async_client: AsyncClient):
    async_client.cookies.set(COOKIE, "not-a-valid-token")
    resp = await _signup(async_client)
    assert resp.status_code == 201
    assert resp.cookies.get(COOKIE) != "not-a-valid-token"


def _clears_cookie(resp) -> bool:
    return any(
        header.startswith(f"{COOKIE}=") and "Max-Age=0" in header
        for header in resp.headers.get_list("set-cookie")
    )


@pytest.mark.asyncio
async def test_stale_token_is_cleared_when_login_fails(async_client: AsyncClient):
    async_client.cookies.set(COOKIE, "not-a-valid-token")
    resp = await async_client.post(
        "/api/v1/auth/login", json={"username": "nobody", "password": "p1"}
    )
    assert resp.status_code == 401
    assert _clears_cookie(resp)


@pytest.mark.asyncio
async def test_stale_token_is_cleared_when_username_is_taken(async_client: AsyncClient):
    await _signup(async_client, "ana")
    async_client.cookies.clear()
    async_client.cookies.set(COOKIE, "not-a-valid-token")

    resp = await _signup(async_client, "ana")
    assert resp.status_code == 409
    assert resp.json()["detail"] == "username already taken"
    assert _clears_cookie(resp)


@pytest.mark.asyncio
async def test_error_without_stale_token_sets_no_cookie(async_client: AsyncClient):
    resp = await async_client.post(
        "/api/v1/auth/login", json={"username": "nobody", "password": "p1"}
    )
    assert resp.status_code == 401
    assert resp.headers.get_list("set-cookie") == []


# ---------------------------------------------------------------------------
# Login / logout
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_login_sets_cookie(async_client: AsyncClient):
    created = (await _signup(async_client)).json()
    async_client.cookies.clear()

    resp = await async_client.post("/api/v1/auth/login", json={"username": "ana", "password": "p1"})
    assert resp.status_code == 200
    assert resp.json() == created
    assert resp.cookies.get(COOKIE)


@pytest.mark.asyncio
async def test_login_failures_are_indistinguishable(async_client: AsyncClient):
    await _signup(async_client)
    async_client.cookies.clear()

    wrong_password = await async_client.post(
        "/api/v1/auth/login", json={"username": "ana", "password": "wrong"}
    )
    unknown_user = await async_client.post(
        "/api/v1/auth/login", json={"username": "nobody", "password": "p1"}
    )
    assert wrong_password.status_code == unknown_user.status_code == 401
    assert wrong_password.json() == unknown_user.json() == {"detail": "invalid credentials"}


@pytest.mark.asyncio
async def test_login_while_signed_in_conflicts(async_client: AsyncClient):
    await _signup(async_client)
    resp = await async_client.post("/api/v1/auth/login", json={"username": "ana", "password": "p1"})
    assert resp.status_code == 409


@pytest.mark.asyncio
async def test_logout_clears_cookie(async_client: AsyncClient):
    await _signup(async_client)
    resp = await async_client.post("/api/v1/auth/logout")
    assert resp.status_code == 204
    assert COOKIE not in async_client.cookies

    me = await async_client.get("/api/v1/users/me")
    assert me.status_code == 200
    assert me.json() is None


# ---------------------------------------------------------------------------
# /users/me
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_get_self_anonymous_returns_null(async_client: AsyncClient):
    resp = await async_client.get("/api/v1/users/me")
    assert resp.status_code == 200
    assert resp.json() is None


@pytest.mark.asyncio
async def test_get_self_with_invalid_token_is_unauthorized(async_client: AsyncClient):
    resp = await async_client.get(
        "/api/v1/users/me", headers={"Authorization": "Bearer garbage"}
    )
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_get_self_with_bearer_header(async_client: AsyncClient):
    resp = await _signup(async_client)
    token = resp.cookies.get(COOKIE)
    async_client.cookies.clear()

    me = await async_client.get("/api/v1/users/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.json()["username"] == "ana"


@pytest.mark.asyncio
async def test_health(async_client: AsyncClient):
    resp = await async_client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "healthy"
