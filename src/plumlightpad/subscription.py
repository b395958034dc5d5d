# Copyright (c) 2025 Preston Elder
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Event subscriptions on a Lightpad connection.

Example usage:
    manager = SubscriptionManager(authenticator)
    async with await manager.subscribe(endpoint, session) as events:
        async for event in events:
            print(describe_event(event))

A subscription yields events in the order the device sent them. It ends
quietly when cancelled and raises SubscriptionError once if the connection
is lost; it never reconnects by itself. Call subscribe() again for that.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

from .const import DEFAULT_CONNECT_TIMEOUT
from .errors import ConnectError, ConnectErrorReason, SubscriptionError
from .events import LightpadEvent
from .models import DeviceEndpoint
from .session import Session
from .transport import LightpadConnection, StreamEnd, connect

logger = logging.getLogger(__name__)

Connector = Callable[..., Awaitable[LightpadConnection]]


class Subscription:
    """Ordered, cancellable, single-use async iterator of events."""

    def __init__(
        self,
        connection: LightpadConnection,
        session: Session,
        cancel: Optional[asyncio.Event] = None,
    ):
        connection.claim_events()
        self.connection = connection
        self.session = session
        self.cancel_token = cancel if cancel is not None else asyncio.Event()
        self._finished = False
        self._watcher: Optional[asyncio.Task] = asyncio.ensure_future(self._watch_cancel())

    async def _watch_cancel(self) -> None:
        # Ends on cancellation or when the connection goes away, whichever is first
        cancelled = asyncio.ensure_future(self.cancel_token.wait())
        closed = asyncio.ensure_future(self.connection.wait_closed())
        try:
            await asyncio.wait({cancelled, closed}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (cancelled, closed):
                if not task.done():
                    task.cancel()
        if self.cancelled:
            logger.debug("Subscription to %s cancelled", self.connection.endpoint.address)
            self.connection.close()

    @property
    def cancelled(self) -> bool:
        return self.cancel_token.is_set()

    @property
    def finished(self) -> bool:
        return self._finished

    def cancel(self) -> None:
        """Stop the subscription and close its connection."""
        self.cancel_token.set()
        self.connection.close()

    def _finish(self) -> None:
        if self._finished:
            return
        self._finished = True
        if self._watcher is not None and not self._watcher.done():
            self._watcher.cancel()
        self._watcher = None
        self.connection.close()
        self.connection.release_events()

    def __aiter__(self) -> "Subscription":
        return self

    async def __anext__(self) -> LightpadEvent:
        if self._finished:
            raise StopAsyncIteration
        if self.cancelled:
            self._finish()
            raise StopAsyncIteration

        getter = asyncio.ensure_future(self.connection.events.get())
        waiter = asyncio.ensure_future(self.cancel_token.wait())
        try:
            await asyncio.wait({getter, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (getter, waiter):
                if not task.done():
                    task.cancel()

        # Cancellation wins over anything that arrived at the same time
        if self.cancelled or not getter.done() or getter.cancelled():
            self._finish()
            raise StopAsyncIteration

        item = getter.result()
        if isinstance(item, StreamEnd):
            self._finish()
            if item.error is None:
                raise StopAsyncIteration
            raise SubscriptionError(
                f"Event stream from {self.connection.endpoint.address} ended: {item.error}"
            ) from item.error
        return item

    async def aclose(self) -> None:
        self.cancel()
        self._finish()

    async def __aenter__(self) -> "Subscription":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()


class SubscriptionManager:
    """Opens connections for subscriptions and owns the auth retry policy.

    If the device rejects the session and an authenticator is available,
    the session is refreshed once and the connection retried once. Nothing
    else is retried.
    """

    def __init__(
        self,
        authenticator=None,
        *,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
        connector: Connector = connect,
    ):
        """Initialize the manager.

        Args:
            authenticator: Object with an async ``refresh(session)`` method,
                normally a SessionAuthenticator. None disables the retry.
            connect_timeout: Seconds allowed for each connection attempt.
            connector: Coroutine used to open connections.
        """
        self.authenticator = authenticator
        self.connect_timeout = connect_timeout
        self._connect = connector
        self.session: Optional[Session] = None

    async def open_connection(
        self, endpoint: DeviceEndpoint, session: Session
    ) -> tuple[LightpadConnection, Session]:
        """Connect, refreshing the session once if the device rejects it.

        Returns the connection and the session it was opened with.
        """
        try:
            connection = await self._connect(endpoint, session, timeout=self.connect_timeout)
            return connection, session
        except ConnectError as e:
            if e.reason is not ConnectErrorReason.AUTH_REJECTED or self.authenticator is None:
                raise
            logger.info(
                "Lightpad at %s rejected the session; re-authenticating once",
                endpoint.address,
            )

        session.invalidate()
        fresh = await self.authenticator.refresh(session)
        connection = await self._connect(endpoint, fresh, timeout=self.connect_timeout)
        return connection, fresh

    async def subscribe(
        self,
        endpoint: DeviceEndpoint,
        session: Session,
        cancel: Optional[asyncio.Event] = None,
    ) -> Subscription:
        """Open a connection to ``endpoint`` and start a subscription on it."""
        connection, session = await self.open_connection(endpoint, session)
        self.session = session
        logger.info("Subscribed to events from Lightpad at %s", endpoint.address)
        return Subscription(connection, session, cancel)


async def subscribe(
    endpoint: DeviceEndpoint,
    session: Session,
    cancel: Optional[asyncio.Event] = None,
    *,
    authenticator=None,
    connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
) -> Subscription:
    """Shortcut for SubscriptionManager(...).subscribe(...)."""
    manager = SubscriptionManager(authenticator, connect_timeout=connect_timeout)
    return await manager.subscribe(endpoint, session, cancel)
