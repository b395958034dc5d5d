# Copyright (c) 2025 Preston Elder
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Lightpad simulator server.

This module contains the LightpadSimulator class that provides a TCP server
for simulating a Plum Lightpad.
"""

import asyncio
import json
import logging
import ssl
from typing import Any, Optional

from ..const import (
    EVENT_DIMMER_CHANGE,
    EVENT_PIR_SIGNAL,
    EVENT_POWER,
    FIELD_LEVEL,
    FIELD_SIGNAL,
    FIELD_TYPE,
    FIELD_WATTS,
    LANE_EVENT,
    LEVEL_MAX,
    LEVEL_MIN,
)
from .protocol import LightpadSimulatorProtocol
from .state import LightpadSimulatorState

logger = logging.getLogger(__name__)


class LightpadSimulator:
    """Plum Lightpad simulator server.

    Listens on a TCP port and behaves like a Lightpad towards
    LightpadConnection: it checks the house access token, answers commands
    and pushes events to every authenticated client.

    Example:
        simulator = LightpadSimulator(port=0)
        await simulator.start()

        # Someone walks past
        simulator.emit_motion(112)

        # Someone uses the physical dimmer
        simulator.set_level(200)

        await simulator.stop()
    """

    def __init__(
        self,
        host: str = "127.0.0.1",
        port: int = 0,
        state: Optional[LightpadSimulatorState] = None,
        ssl_context: Optional[ssl.SSLContext] = None,
    ):
        self.host = host
        self.port = port
        self.state = state or LightpadSimulatorState()
        self.ssl_context = ssl_context
        self.server: Optional[asyncio.Server] = None
        self.protocols: list[LightpadSimulatorProtocol] = []

    @property
    def bound_port(self) -> int:
        """The port actually listened on, useful when started with port=0."""
        if self.server is None or not self.server.sockets:
            return self.port
        return self.server.sockets[0].getsockname()[1]

    @property
    def authenticated_clients(self) -> list[LightpadSimulatorProtocol]:
        return [p for p in self.protocols if p.authenticated]

    async def start(self):
        """Start the simulator server."""
        loop = asyncio.get_running_loop()

        def handle_disconnect(protocol):
            if protocol in self.protocols:
                self.protocols.remove(protocol)

        def protocol_factory():
            protocol = LightpadSimulatorProtocol(
                self.state,
                on_level_change=self._broadcast_level,
                on_disconnect=handle_disconnect,
            )
            self.protocols.append(protocol)
            return protocol

        self.server = await loop.create_server(
            protocol_factory,
            self.host,
            self.port,
            ssl=self.ssl_context,
        )

        logger.info(f"Lightpad simulator listening on {self.host}:{self.bound_port}")

    async def stop(self):
        """Stop the simulator server."""
        self.drop_connections()

        if self.server:
            self.server.close()
            await self.server.wait_closed()
            self.server = None
            logger.info("Lightpad simulator stopped")

    def drop_connections(self):
        """Close every client connection, as if the device went away."""
        for protocol in list(self.protocols):
            protocol.close()
        self.protocols.clear()

    # =========================================================================
    # Event broadcasting
    # =========================================================================

    def broadcast_event(self, event: dict[str, Any]):
        """Push an event to all authenticated clients."""
        logger.debug(f"Simulator: Broadcasting {event}")
        for protocol in list(self.protocols):
            protocol.send_event(event)

    def _broadcast_level(self):
        self.emit_dimmer_change(self.state.level)
        self.emit_power(self.state.watts)

    def emit_dimmer_change(self, level: int):
        self.broadcast_event({FIELD_TYPE: EVENT_DIMMER_CHANGE, FIELD_LEVEL: level})

    def emit_power(self, watts: int):
        self.broadcast_event({FIELD_TYPE: EVENT_POWER, FIELD_WATTS: watts})

    def emit_motion(self, signal: int):
        """Report a motion sensor reading."""
        self.state.motion_signal = signal
        self.broadcast_event({FIELD_TYPE: EVENT_PIR_SIGNAL, FIELD_SIGNAL: signal})

    def emit_raw(self, body: bytes):
        """Send an event frame with an arbitrary body, JSON or not."""
        for protocol in self.authenticated_clients:
            protocol.send_raw(LANE_EVENT, body)

    def send_garbage(self, data: bytes = b"\xff\x00\x00\x00\x01?"):
        """Write unframed bytes to every client, breaking their framing."""
        for protocol in list(self.protocols):
            protocol.send_bytes(data)

    # =========================================================================
    # Programmatic control
    # =========================================================================

    def set_level(self, level: int):
        """Change the level as if the physical dimmer was used.

        Args:
            level: New level, clamped to 0-255.
        """
        self.state.level = max(LEVEL_MIN, min(LEVEL_MAX, level))
        logger.info(f"Simulator: Level changed locally to {self.state.level}")
        self._broadcast_level()

    def set_reject_auth(self, reject: bool = True):
        self.state.reject_auth = reject

    def set_respond_to_commands(self, respond: bool = True):
        self.state.respond_to_commands = respond

    def emit(self, event_type: str, **fields: Any):
        """Push an event with the given type tag and fields."""
        self.broadcast_event({FIELD_TYPE: event_type, **fields})

    def emit_json(self, payload: Any):
        """Push any JSON value as an event body."""
        self.emit_raw(json.dumps(payload).encode("utf-8"))
