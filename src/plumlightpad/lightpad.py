# Copyright (c) 2025 Preston Elder
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""High-level Lightpad interface.

This module provides a Pythonic facade over the connection, command and
subscription layers, offering cached state, listeners and simple async
methods.

Example usage:
    from plumlightpad import DeviceEndpoint, Lightpad, Session

    async def main():
        endpoint = DeviceEndpoint("192.168.1.10", load_id="8aae8c21-...")
        pad = Lightpad(endpoint, Session.from_token("281babee-..."))
        await pad.connect()

        await pad.set_level(128)
        print(f"Drawing {pad.watts}W")

        async for event in pad.events():
            print(describe_event(event))
"""
from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, AsyncIterator, Callable, Optional

from .commands import (
    Command,
    GetLoadMetrics,
    SetGlow,
    SetLevel,
    SetLightpadConfig,
    SetLoadConfig,
    send,
)
from .config import ClientSettings
from .const import LEVEL_MAX, LEVEL_MIN
from .errors import CommandError, CommandErrorReason, SubscriptionError
from .events import DimmerChange, LightpadEvent, PIRSignal, Power, Unknown
from .models import DeviceEndpoint, ForceGlow, LoadMetrics, Response
from .session import Session
from .subscription import Subscription, SubscriptionManager

logger = logging.getLogger(__name__)


class Lightpad:
    """High-level interface to a single Lightpad.

    One connection carries both the event subscription and commands. State
    is cached from the event stream and from command replies.
    """

    def __init__(
        self,
        endpoint: DeviceEndpoint,
        session: Session,
        *,
        authenticator=None,
        settings: Optional[ClientSettings] = None,
    ):
        """Initialize Lightpad.

        Args:
            endpoint: Where the device lives.
            session: House session used to authorize the connection.
            authenticator: Optional SessionAuthenticator used to refresh a
                rejected session once.
            settings: Timeouts and other tunables.
        """
        self._endpoint = endpoint
        self._session = session
        self._settings = settings or ClientSettings()
        self._manager = SubscriptionManager(
            authenticator, connect_timeout=self._settings.connect_timeout
        )
        self._subscription: Optional[Subscription] = None
        self._pump: Optional[asyncio.Task] = None

        # Cached state
        self._level: Optional[int] = None
        self._watts: Optional[int] = None
        self._last_motion: Optional[int] = None
        self._last_motion_at: Optional[float] = None

        self._listeners: list[Callable[[LightpadEvent], None]] = []
        self._disconnect_callbacks: list[Callable[[Optional[Exception]], None]] = []
        self._event_queues: list[asyncio.Queue] = []

    # =========================================================================
    # Connection
    # =========================================================================

    @property
    def endpoint(self) -> DeviceEndpoint:
        return self._endpoint

    @property
    def session(self) -> Session:
        """The session in use; replaced if the device forced a refresh."""
        return self._session

    @property
    def connected(self) -> bool:
        """Whether the device connection is currently open."""
        return (
            self._subscription is not None
            and not self._subscription.finished
            and self._subscription.connection.is_open
        )

    async def connect(self) -> None:
        """Connect to the device and start listening for events."""
        if self.connected:
            return
        self._subscription = await self._manager.subscribe(self._endpoint, self._session)
        self._session = self._subscription.session
        self._pump = asyncio.create_task(self._pump_events(self._subscription))

    async def disconnect(self) -> None:
        """Stop listening and close the connection."""
        if self._subscription is not None:
            await self._subscription.aclose()
        if self._pump is not None:
            await self._pump
            self._pump = None
        self._subscription = None

    async def __aenter__(self) -> "Lightpad":
        await self.connect()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.disconnect()

    # =========================================================================
    # Cached state
    # =========================================================================

    @property
    def level(self) -> Optional[int]:
        """Last known dim level (0-255), None until reported."""
        return self._level

    @property
    def is_on(self) -> bool:
        return bool(self._level)

    @property
    def watts(self) -> Optional[int]:
        """Last reported power draw in watts."""
        return self._watts

    @property
    def last_motion(self) -> Optional[int]:
        """Signal strength of the most recent motion event."""
        return self._last_motion

    @property
    def last_motion_at(self) -> Optional[float]:
        """Wall clock time of the most recent motion event."""
        return self._last_motion_at

    # =========================================================================
    # Commands
    # =========================================================================

    async def _send(self, command: Command, timeout: Optional[float]) -> Response:
        """Send a command, reconnecting once with a refreshed session if the
        current one expired."""
        try:
            return await self._send_once(command, timeout)
        except CommandError as e:
            if (
                e.reason is not CommandErrorReason.SESSION_EXPIRED
                or self._manager.authenticator is None
            ):
                raise
        logger.info(
            "Session for %s expired; re-authenticating and reconnecting once",
            self._endpoint.address,
        )
        await self.disconnect()
        await self.connect()
        return await self._send_once(command, timeout)

    async def _send_once(self, command: Command, timeout: Optional[float]) -> Response:
        if not self.connected:
            raise CommandError(
                CommandErrorReason.TRANSPORT_CLOSED,
                f"Lightpad at {self._endpoint.address} is not connected",
            )
        return await send(
            self._subscription.connection,
            command,
            timeout=timeout if timeout is not None else self._settings.command_timeout,
        )

    async def set_level(self, level: int, *, timeout: Optional[float] = None) -> None:
        """Set the dim level, 0 (off) to 255 (full).

        Args:
            level: Target level.
            timeout: Seconds to wait for the reply. Defaults to the configured
                command timeout.
        """
        await self._send(SetLevel(level), timeout)
        self._level = level

    async def turn_on(self, *, timeout: Optional[float] = None) -> None:
        await self.set_level(LEVEL_MAX, timeout=timeout)

    async def turn_off(self, *, timeout: Optional[float] = None) -> None:
        await self.set_level(LEVEL_MIN, timeout=timeout)

    async def set_glow(self, glow: ForceGlow, *, timeout: Optional[float] = None) -> None:
        """Force the glow ring to a colour and intensity."""
        await self._send(SetGlow(glow), timeout)

    async def set_lightpad_config(
        self, config: dict[str, Any], *, timeout: Optional[float] = None
    ) -> None:
        """Upload a new Lightpad configuration document."""
        await self._send(SetLightpadConfig(config), timeout)

    async def set_load_config(
        self, config: dict[str, Any], *, timeout: Optional[float] = None
    ) -> None:
        """Upload a new logical load configuration document."""
        await self._send(SetLoadConfig(config), timeout)

    async def get_metrics(self, *, timeout: Optional[float] = None) -> LoadMetrics:
        """Fetch current level and power draw of the load."""
        response = await self._send(GetLoadMetrics(), timeout)
        metrics = LoadMetrics.from_dict(response.payload)
        self._level = metrics.level
        self._watts = metrics.power
        return metrics

    # =========================================================================
    # Events
    # =========================================================================

    def add_listener(self, callback: Callable[[LightpadEvent], None]) -> None:
        """Register a callback invoked for every event, in order."""
        self._listeners.append(callback)

    def remove_listener(self, callback: Callable[[LightpadEvent], None]) -> None:
        if callback in self._listeners:
            self._listeners.remove(callback)

    def on_disconnect(self, callback: Callable[[Optional[Exception]], None]) -> None:
        """Register a callback for when the event stream ends.

        The callback receives the SubscriptionError, or None after a local
        disconnect.
        """
        self._disconnect_callbacks.append(callback)

    async def events(self) -> AsyncIterator[LightpadEvent]:
        """Iterate over events received from now until disconnect."""
        if not self.connected:
            return
        queue: asyncio.Queue = asyncio.Queue()
        self._event_queues.append(queue)
        try:
            while True:
                event = await queue.get()
                if event is None:
                    return
                yield event
        finally:
            self._event_queues.remove(queue)

    async def _pump_events(self, subscription: Subscription) -> None:
        error: Optional[Exception] = None
        try:
            async for event in subscription:
                self._on_event(event)
        except SubscriptionError as e:
            logger.warning("Lost event stream from %s: %s", self._endpoint.address, e)
            error = e
        finally:
            for queue in self._event_queues:
                queue.put_nowait(None)
            for callback in self._disconnect_callbacks:
                try:
                    callback(error)
                except Exception:
                    logger.exception("Error in disconnect callback")

    def _on_event(self, event: LightpadEvent) -> None:
        if isinstance(event, DimmerChange):
            self._level = event.level
        elif isinstance(event, Power):
            self._watts = event.watts
        elif isinstance(event, PIRSignal):
            self._last_motion = event.signal
            self._last_motion_at = time.time()
        elif isinstance(event, Unknown):
            logger.debug("Unknown event from %s: %s", self._endpoint.address, event.raw_message)

        for queue in self._event_queues:
            queue.put_nowait(event)
        for callback in self._listeners:
            try:
                callback(event)
            except Exception:
                logger.exception("Error in event listener")
