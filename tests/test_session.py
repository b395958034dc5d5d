# Copyright (c) 2025 Preston Elder
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Tests for sessions and the house service authenticator (session.py)."""
from __future__ import annotations

import base64
import json

import httpx
import pytest

from plumlightpad.errors import AuthError, AuthErrorReason
from plumlightpad.session import Session, SessionAuthenticator

EMAIL = "me@example.com"
PASSWORD = "hunter2"


def basic_auth_header(email: str = EMAIL, password: str = PASSWORD) -> str:
    encoded = base64.b64encode(f"{email}:{password}".encode()).decode()
    return f"Basic {encoded}"


class FakeHouseService:
    """Minimal house service behind httpx.MockTransport."""

    def __init__(self, houses=("house-1", "house-2")):
        self.houses = list(houses)
        self.tokens = {hid: f"token-{hid}" for hid in self.houses}
        self.requests: list[httpx.Request] = []
        self.issued = 0

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.headers.get("Authorization") != basic_auth_header():
            return httpx.Response(401, json={"error": "unauthorized"})

        if request.url.path.endswith("/getHouses"):
            return httpx.Response(200, json=self.houses)
        if request.url.path.endswith("/getHouse"):
            hid = json.loads(request.content)["hid"]
            self.issued += 1
            return httpx.Response(200, json={
                "hid": hid,
                "house_access_token": f"{self.tokens[hid]}-{self.issued}",
            })
        return httpx.Response(404)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def service() -> FakeHouseService:
    return FakeHouseService()


@pytest.fixture
async def authenticator(service):
    auth = SessionAuthenticator(transport=service.transport())
    yield auth
    await auth.aclose()


# ============================================================================
# Session
# ============================================================================

class TestSession:
    """Tests for the Session value."""

    def test_from_token_never_expires(self):
        session = Session.from_token("abc")
        assert session.lifetime is None
        assert session.expires_at is None
        assert not session.expired

    def test_lifetime_expiry(self):
        session = Session(token="abc", issued_at=1000.0, lifetime=60.0)
        assert session.expires_at == 1060.0
        assert not session.is_expired(now=1059.9)
        assert session.is_expired(now=1060.0)

    def test_invalidate_is_permanent(self):
        session = Session.from_token("abc")
        session.invalidate()
        assert session.expired
        assert session.is_expired(now=0)

    def test_token_hidden_from_repr(self):
        assert "secret-token" not in repr(Session.from_token("secret-token"))


# ============================================================================
# SessionAuthenticator
# ============================================================================

class TestAuthenticate:
    """Tests for SessionAuthenticator.authenticate."""

    @pytest.mark.asyncio
    async def test_success_uses_first_house(self, authenticator, service):
        session = await authenticator.authenticate(EMAIL, PASSWORD)
        assert session.house_id == "house-1"
        assert session.token == "token-house-1-1"
        assert not session.expired

    @pytest.mark.asyncio
    async def test_requests(self, authenticator, service):
        await authenticator.authenticate(EMAIL, PASSWORD)
        get_houses, get_house = service.requests
        assert get_houses.method == "GET"
        assert get_houses.url.path == "/v2/getHouses"
        assert get_house.method == "POST"
        assert json.loads(get_house.content) == {"hid": "house-1"}
        assert get_house.headers["User-Agent"].startswith("plumlightpad/")

    @pytest.mark.asyncio
    async def test_configured_house(self, service):
        async with SessionAuthenticator(house_id="house-2", transport=service.transport()) as auth:
            session = await auth.authenticate(EMAIL, PASSWORD)
        assert session.house_id == "house-2"

    @pytest.mark.asyncio
    async def test_house_not_on_account(self, service):
        async with SessionAuthenticator(house_id="house-9", transport=service.transport()) as auth:
            with pytest.raises(AuthError) as exc_info:
                await auth.authenticate(EMAIL, PASSWORD)
        assert exc_info.value.reason is AuthErrorReason.INVALID_CREDENTIALS

    @pytest.mark.asyncio
    async def test_bad_password(self, authenticator):
        with pytest.raises(AuthError) as exc_info:
            await authenticator.authenticate(EMAIL, "wrong")
        assert exc_info.value.reason is AuthErrorReason.INVALID_CREDENTIALS

    @pytest.mark.asyncio
    async def test_no_houses(self):
        service = FakeHouseService(houses=())
        async with SessionAuthenticator(transport=service.transport()) as auth:
            with pytest.raises(AuthError) as exc_info:
                await auth.authenticate(EMAIL, PASSWORD)
        assert exc_info.value.reason is AuthErrorReason.SERVICE_UNAVAILABLE

    @pytest.mark.asyncio
    async def test_server_error(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(503))
        async with SessionAuthenticator(transport=transport) as auth:
            with pytest.raises(AuthError) as exc_info:
                await auth.authenticate(EMAIL, PASSWORD)
        assert exc_info.value.reason is AuthErrorReason.SERVICE_UNAVAILABLE

    @pytest.mark.asyncio
    async def test_unreachable(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        async with SessionAuthenticator(transport=httpx.MockTransport(handler)) as auth:
            with pytest.raises(AuthError) as exc_info:
                await auth.authenticate(EMAIL, PASSWORD)
        assert exc_info.value.reason is AuthErrorReason.SERVICE_UNAVAILABLE
        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)

    @pytest.mark.asyncio
    async def test_invalid_json(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, content=b"<html>"))
        async with SessionAuthenticator(transport=transport) as auth:
            with pytest.raises(AuthError) as exc_info:
                await auth.authenticate(EMAIL, PASSWORD)
        assert exc_info.value.reason is AuthErrorReason.SERVICE_UNAVAILABLE

    @pytest.mark.asyncio
    async def test_missing_token(self):
        def handler(request):
            if request.url.path.endswith("/getHouses"):
                return httpx.Response(200, json=["house-1"])
            return httpx.Response(200, json={"hid": "house-1"})

        async with SessionAuthenticator(transport=httpx.MockTransport(handler)) as auth:
            with pytest.raises(AuthError) as exc_info:
                await auth.authenticate(EMAIL, PASSWORD)
        assert exc_info.value.reason is AuthErrorReason.SERVICE_UNAVAILABLE


class TestRefresh:
    """Tests for SessionAuthenticator.refresh."""

    @pytest.mark.asyncio
    async def test_refresh_issues_new_session(self, authenticator):
        first = await authenticator.authenticate(EMAIL, PASSWORD)
        second = await authenticator.refresh(first)
        assert first.expired
        assert not second.expired
        assert second.token != first.token
        assert second.house_id == first.house_id

    @pytest.mark.asyncio
    async def test_refresh_keeps_house(self, authenticator):
        session = Session.from_token("old", house_id="house-2")
        await authenticator.authenticate(EMAIL, PASSWORD)
        fresh = await authenticator.refresh(session)
        assert fresh.house_id == "house-2"

    @pytest.mark.asyncio
    async def test_refresh_without_credentials(self, authenticator):
        session = Session.from_token("old")
        with pytest.raises(AuthError) as exc_info:
            await authenticator.refresh(session)
        assert exc_info.value.reason is AuthErrorReason.INVALID_CREDENTIALS
        assert session.expired
