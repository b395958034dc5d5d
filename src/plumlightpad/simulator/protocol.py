# Copyright (c) 2025 Preston Elder
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Per-connection protocol of the Lightpad simulator.

Speaks the same framing as a real Lightpad: an auth frame first, then
command requests answered on the command lane, with push events sent on
the event lane.
"""

import asyncio
import json
import logging
from typing import Any, Callable, Optional

from ..const import (
    CMD_GET_METRICS,
    CMD_SET_GLOW,
    CMD_SET_LEVEL,
    CMD_SET_LIGHTPAD_CONFIG,
    CMD_SET_LOAD_CONFIG,
    FIELD_COMMAND,
    FIELD_CONFIG,
    FIELD_ERROR,
    FIELD_FORCE_GLOW,
    FIELD_HAT,
    FIELD_LEVEL,
    FIELD_MSG_ID,
    FIELD_SUCCESS,
    LANE_AUTH,
    LANE_COMMAND,
    LANE_EVENT,
    LEVEL_MAX,
    LEVEL_MIN,
)
from ..decoder import Frame, StreamDecoder, encode_frame
from .state import LightpadSimulatorState

logger = logging.getLogger(__name__)


class HandlerError(Exception):
    """Raised by a handler to answer with success=false."""


class CommandRegistry:
    """Maps command names to simulator handlers."""

    _handlers: dict[str, Callable] = {}

    @classmethod
    def register(cls, command: str):
        def decorator(func):
            cls._handlers[command] = func
            return func
        return decorator

    @classmethod
    def get(cls, command: str) -> Optional[Callable]:
        return cls._handlers.get(command)

    @classmethod
    def commands(cls) -> list[str]:
        return sorted(cls._handlers)


class LightpadSimulatorProtocol(asyncio.Protocol):
    """One client connection to the simulated Lightpad."""

    def __init__(
        self,
        state: LightpadSimulatorState,
        on_level_change: Optional[Callable[[], None]] = None,
        on_disconnect: Optional[Callable[["LightpadSimulatorProtocol"], None]] = None,
    ):
        self.state = state
        self.transport: Optional[asyncio.Transport] = None
        self.authenticated = False
        self.auth_attempts = 0
        self.commands_received: list[dict[str, Any]] = []
        self._decoder = StreamDecoder()
        self._on_level_change = on_level_change
        self._on_disconnect = on_disconnect

    def connection_made(self, transport):
        self.transport = transport
        peer = transport.get_extra_info("peername")
        logger.info(f"Simulator: Client connected from {peer}")

    def connection_lost(self, exc):
        logger.info("Simulator: Client disconnected")
        self.authenticated = False
        if self._on_disconnect:
            self._on_disconnect(self)

    def data_received(self, data: bytes):
        for frame in self._decoder.feed(data):
            self._handle_frame(frame)
        if self._decoder.failed:
            logger.warning(f"Simulator: Bad framing from client: {self._decoder.error}")
            self.close()

    # =========================================================================
    # Sending
    # =========================================================================

    def _send(self, lane: bytes, message: dict[str, Any]):
        self.send_raw(lane, json.dumps(message).encode("utf-8"))

    def send_raw(self, lane: bytes, body: bytes):
        """Send a frame with an arbitrary body."""
        if self.transport and not self.transport.is_closing():
            self.transport.write(encode_frame(lane, body))

    def send_bytes(self, data: bytes):
        """Write bytes that bypass framing entirely."""
        if self.transport and not self.transport.is_closing():
            self.transport.write(data)

    def send_event(self, event: dict[str, Any]):
        """Push an event to this client if it has authenticated."""
        if self.authenticated:
            self._send(LANE_EVENT, event)

    def close(self):
        if self.transport and not self.transport.is_closing():
            self.transport.close()

    # =========================================================================
    # Receiving
    # =========================================================================

    def _handle_frame(self, frame: Frame):
        try:
            message = json.loads(frame.body.decode("utf-8"))
        except ValueError:
            logger.warning(f"Simulator: Ignoring non-JSON {frame.lane!r} frame")
            return
        if not isinstance(message, dict):
            logger.warning(f"Simulator: Ignoring non-object {frame.lane!r} frame")
            return

        if frame.lane == LANE_AUTH:
            self._handle_auth(message)
        elif frame.lane == LANE_COMMAND:
            self._handle_command(message)
        else:
            logger.warning(f"Simulator: Ignoring {frame.lane!r} frame from client")

    def _handle_auth(self, message: dict[str, Any]):
        self.auth_attempts += 1
        token = message.get(FIELD_HAT)
        if self.state.reject_auth or token != self.state.house_access_token:
            logger.info("Simulator: Rejected house access token")
            self._send(LANE_AUTH, {FIELD_SUCCESS: False, FIELD_ERROR: "invalid house access token"})
            self.close()
            return
        self.authenticated = True
        logger.info("Simulator: Client authenticated")
        self._send(LANE_AUTH, {FIELD_SUCCESS: True})

    def _handle_command(self, message: dict[str, Any]):
        self.commands_received.append(message)
        msg_id = message.get(FIELD_MSG_ID)
        command = message.get(FIELD_COMMAND)
        reply = {FIELD_MSG_ID: msg_id, FIELD_COMMAND: command}

        if not self.state.respond_to_commands:
            logger.debug(f"Simulator: Not answering {command}")
            return

        if not self.authenticated:
            self._send(LANE_COMMAND, {**reply, FIELD_SUCCESS: False, FIELD_ERROR: "unauthorized"})
            return

        handler = CommandRegistry.get(command)
        if handler is None:
            logger.warning(f"Simulator: Unknown command {command}")
            self._send(LANE_COMMAND, {**reply, FIELD_SUCCESS: False, FIELD_ERROR: "unknown command"})
            return

        try:
            result = handler(self, message) or {}
        except HandlerError as e:
            self._send(LANE_COMMAND, {**reply, FIELD_SUCCESS: False, FIELD_ERROR: str(e)})
            return

        self._send(LANE_COMMAND, {**reply, FIELD_SUCCESS: True, **result})

        if command == CMD_SET_LEVEL and self._on_level_change:
            self._on_level_change()

    # =========================================================================
    # Command handlers
    # =========================================================================

    @CommandRegistry.register(CMD_SET_LEVEL)
    def _set_level(self, message: dict[str, Any]):
        level = message.get(FIELD_LEVEL)
        if isinstance(level, bool) or not isinstance(level, int):
            raise HandlerError("level must be an integer")
        if not LEVEL_MIN <= level <= LEVEL_MAX:
            raise HandlerError(f"level {level} out of range")
        self.state.level = level
        logger.info(f"Simulator: Level set to {level}")

    @CommandRegistry.register(CMD_SET_LIGHTPAD_CONFIG)
    def _set_lightpad_config(self, message: dict[str, Any]):
        config = message.get(FIELD_CONFIG)
        if not isinstance(config, dict):
            raise HandlerError("config must be an object")
        self.state.lightpad_config.update(config)

    @CommandRegistry.register(CMD_SET_LOAD_CONFIG)
    def _set_load_config(self, message: dict[str, Any]):
        config = message.get(FIELD_CONFIG)
        if not isinstance(config, dict):
            raise HandlerError("config must be an object")
        self.state.load_config.update(config)

    @CommandRegistry.register(CMD_SET_GLOW)
    def _set_glow(self, message: dict[str, Any]):
        glow = message.get(FIELD_FORCE_GLOW)
        if not isinstance(glow, dict):
            raise HandlerError("forceGlow must be an object")
        self.state.glow = glow
        logger.info(f"Simulator: Glow ring forced to {glow}")

    @CommandRegistry.register(CMD_GET_METRICS)
    def _get_metrics(self, message: dict[str, Any]):
        return self.state.get_metrics()
