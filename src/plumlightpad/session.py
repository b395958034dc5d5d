# Copyright (c) 2025 Preston Elder
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""House sessions and the authenticator that issues them.

A Session wraps the House Access Token that authorizes local device
connections. Sessions are plain values passed explicitly to every call that
needs them; there is no process-wide "current session".

Example usage:
    async with SessionAuthenticator() as auth:
        session = await auth.authenticate("me@example.com", "secret")
        ...
        session = await auth.refresh(session)
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Optional

import httpx

from .const import (
    API_BASE_URL,
    API_GET_HOUSE,
    API_GET_HOUSES,
    DEFAULT_SESSION_LIFETIME,
    FIELD_HID,
    FIELD_HOUSE_ACCESS_TOKEN,
    USER_AGENT_ADDITION,
    VERSION,
)
from .errors import AuthError, AuthErrorReason

logger = logging.getLogger(__name__)


@dataclass
class Session:
    """House-scoped access token with an expiry policy.

    Once invalidated (or past its lifetime) a Session stays expired; the
    token is never presented to a device again.
    """

    token: str = field(repr=False)
    house_id: Optional[str] = None
    issued_at: float = field(default_factory=time.time)
    lifetime: Optional[float] = DEFAULT_SESSION_LIFETIME
    _invalidated: bool = field(default=False, repr=False)

    @classmethod
    def from_token(
        cls,
        token: str,
        house_id: Optional[str] = None,
        lifetime: Optional[float] = None,
    ) -> "Session":
        """Wrap an already known House Access Token."""
        return cls(token=token, house_id=house_id, lifetime=lifetime)

    @property
    def expires_at(self) -> Optional[float]:
        if self.lifetime is None:
            return None
        return self.issued_at + self.lifetime

    def is_expired(self, now: Optional[float] = None) -> bool:
        if self._invalidated:
            return True
        expires_at = self.expires_at
        if expires_at is None:
            return False
        return (time.time() if now is None else now) >= expires_at

    @property
    def expired(self) -> bool:
        """Whether the token may no longer be used."""
        return self.is_expired()

    def invalidate(self) -> None:
        """Mark this session expired. Irreversible."""
        self._invalidated = True


class SessionAuthenticator:
    """Exchanges account credentials for a house Session.

    Credentials are held in memory only so that refresh() can re-issue a
    session after the device rejects a token. They are never persisted.
    """

    def __init__(
        self,
        base_url: str = API_BASE_URL,
        *,
        house_id: Optional[str] = None,
        timeout: float = 10.0,
        session_lifetime: Optional[float] = DEFAULT_SESSION_LIFETIME,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the authenticator.

        Args:
            base_url: Base URL of the house service.
            house_id: House to scope sessions to. Defaults to the first house
                on the account.
            timeout: Request timeout in seconds.
            session_lifetime: Seconds an issued session stays valid (None for
                no local expiry).
            transport: Optional httpx transport, mainly for tests.
        """
        self.base_url = base_url.rstrip("/")
        self.house_id = house_id
        self.timeout = timeout
        self.session_lifetime = session_lifetime
        self._transport = transport
        self._credentials: Optional[tuple[str, str]] = None
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers={"User-Agent": f"{USER_AGENT_ADDITION}/{VERSION}"},
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def aclose(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "SessionAuthenticator":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()

    async def authenticate(self, email: str, password: str) -> Session:
        """Log in and return a Session for the configured house.

        Raises:
            AuthError: INVALID_CREDENTIALS if the service rejects the login,
                SERVICE_UNAVAILABLE if it cannot be reached or answers with
                something unusable.
        """
        auth = httpx.BasicAuth(email, password)

        houses = await self._request("GET", API_GET_HOUSES, auth)
        if not isinstance(houses, list) or not houses:
            raise AuthError(
                AuthErrorReason.SERVICE_UNAVAILABLE, "Account has no houses"
            )

        house_id = self.house_id or houses[0]
        if house_id not in houses:
            raise AuthError(
                AuthErrorReason.INVALID_CREDENTIALS,
                f"House {house_id} is not accessible with these credentials",
            )

        house = await self._request("POST", API_GET_HOUSE, auth, json={FIELD_HID: house_id})
        token = house.get(FIELD_HOUSE_ACCESS_TOKEN) if isinstance(house, dict) else None
        if not isinstance(token, str) or not token:
            raise AuthError(
                AuthErrorReason.SERVICE_UNAVAILABLE,
                f"House {house_id} document has no access token",
            )

        self._credentials = (email, password)
        logger.info("Authenticated with house service for house %s", house_id)
        return Session(token=token, house_id=house_id, lifetime=self.session_lifetime)

    async def refresh(self, session: Session) -> Session:
        """Invalidate ``session`` and issue a replacement."""
        session.invalidate()
        if self._credentials is None:
            raise AuthError(
                AuthErrorReason.INVALID_CREDENTIALS,
                "No credentials available to refresh the session",
            )
        logger.info("Refreshing session for house %s", session.house_id)
        if session.house_id and self.house_id is None:
            self.house_id = session.house_id
        return await self.authenticate(*self._credentials)

    async def _request(
        self,
        method: str,
        path: str,
        auth: httpx.BasicAuth,
        json: Optional[dict[str, Any]] = None,
    ) -> Any:
        try:
            response = await self.client.request(method, path, auth=auth, json=json)
        except httpx.TransportError as e:
            raise AuthError(
                AuthErrorReason.SERVICE_UNAVAILABLE,
                f"House service unreachable: {e}",
            ) from e

        if response.status_code in (401, 403):
            raise AuthError(
                AuthErrorReason.INVALID_CREDENTIALS,
                f"House service rejected credentials ({response.status_code})",
            )
        if response.is_error:
            raise AuthError(
                AuthErrorReason.SERVICE_UNAVAILABLE,
                f"House service returned {response.status_code} for {path}",
            )

        try:
            return response.json()
        except ValueError as e:
            raise AuthError(
                AuthErrorReason.SERVICE_UNAVAILABLE,
                f"House service returned invalid JSON for {path}",
            ) from e
