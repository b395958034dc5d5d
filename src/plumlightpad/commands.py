# Copyright (c) 2025 Preston Elder
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Imperative commands sent to a Lightpad over an open connection.

Arguments are validated before anything touches the network.
"""
from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Optional, Union

from .const import (
    CMD_GET_METRICS,
    CMD_SET_GLOW,
    CMD_SET_LEVEL,
    CMD_SET_LIGHTPAD_CONFIG,
    CMD_SET_LOAD_CONFIG,
    DEFAULT_COMMAND_TIMEOUT,
    FIELD_CONFIG,
    FIELD_ERROR,
    FIELD_FORCE_GLOW,
    FIELD_LEVEL,
    FIELD_LLID,
    FIELD_LPID,
    LEVEL_MAX,
    LEVEL_MIN,
    MAX_FRAME_SIZE,
)
from .errors import CommandError, CommandErrorReason
from .models import DeviceEndpoint, ForceGlow, Response

logger = logging.getLogger(__name__)


def _document_problem(kind: str, config: Any) -> Optional[str]:
    """Config documents must be JSON mappings that fit in one frame."""
    if not isinstance(config, Mapping):
        return f"{kind} config must be a mapping"
    try:
        body = json.dumps(dict(config), separators=(",", ":")).encode("utf-8")
    except (TypeError, ValueError) as e:
        return f"{kind} config is not JSON serializable: {e}"
    if len(body) > MAX_FRAME_SIZE:
        return f"{kind} config of {len(body)} bytes exceeds the {MAX_FRAME_SIZE} byte frame limit"
    return None


@dataclass
class SetLevel:
    level: int
    NAME = CMD_SET_LEVEL

    def validate(self) -> Optional[str]:
        if not isinstance(self.level, int) or isinstance(self.level, bool):
            return f"level must be an integer, got {self.level!r}"
        if not LEVEL_MIN <= self.level <= LEVEL_MAX:
            return f"level {self.level} out of range {LEVEL_MIN}-{LEVEL_MAX}"
        return None

    def arguments(self, endpoint: DeviceEndpoint) -> dict[str, Any]:
        return {FIELD_LLID: endpoint.load_id, FIELD_LEVEL: self.level}


@dataclass
class SetLightpadConfig:
    config: Mapping[str, Any] = field(default_factory=dict)
    NAME = CMD_SET_LIGHTPAD_CONFIG

    def validate(self) -> Optional[str]:
        return _document_problem("lightpad", self.config)

    def arguments(self, endpoint: DeviceEndpoint) -> dict[str, Any]:
        return {FIELD_LPID: endpoint.lightpad_id, FIELD_CONFIG: dict(self.config)}


@dataclass
class SetLoadConfig:
    config: Mapping[str, Any] = field(default_factory=dict)
    NAME = CMD_SET_LOAD_CONFIG

    def validate(self) -> Optional[str]:
        return _document_problem("load", self.config)

    def arguments(self, endpoint: DeviceEndpoint) -> dict[str, Any]:
        return {FIELD_LLID: endpoint.load_id, FIELD_CONFIG: dict(self.config)}


@dataclass
class SetGlow:
    glow: ForceGlow = field(default_factory=ForceGlow)
    NAME = CMD_SET_GLOW

    def validate(self) -> Optional[str]:
        if not isinstance(self.glow, ForceGlow):
            return "glow must be a ForceGlow"
        return self.glow.validate()

    def arguments(self, endpoint: DeviceEndpoint) -> dict[str, Any]:
        return {FIELD_LLID: endpoint.load_id, FIELD_FORCE_GLOW: self.glow.to_dict()}


@dataclass
class GetLoadMetrics:
    NAME = CMD_GET_METRICS

    def validate(self) -> Optional[str]:
        return None

    def arguments(self, endpoint: DeviceEndpoint) -> dict[str, Any]:
        return {FIELD_LLID: endpoint.load_id}


Command = Union[SetLevel, SetLightpadConfig, SetLoadConfig, SetGlow, GetLoadMetrics]


async def send(
    connection,
    command: Command,
    *,
    timeout: float = DEFAULT_COMMAND_TIMEOUT,
) -> Response:
    """Send ``command`` over ``connection`` and return the device's reply.

    Args:
        connection: An open LightpadConnection.
        command: The command to send.
        timeout: Seconds to wait for the reply.

    Raises:
        CommandError: INVALID_ARGUMENT before any I/O, NO_REPLY on timeout,
            TRANSPORT_CLOSED if the connection goes away, REJECTED if the
            device answers with success=false, SESSION_EXPIRED if the
            connection's session went stale (the connection is closed).
    """
    problem = command.validate()
    if problem is not None:
        raise CommandError(CommandErrorReason.INVALID_ARGUMENT, problem)

    reply = await connection.request(
        command.NAME, command.arguments(connection.endpoint), timeout=timeout
    )
    response = Response.from_dict(reply)
    if not response.success:
        message = response.payload.get(FIELD_ERROR, "no reason given")
        logger.warning("Lightpad rejected %s: %s", command.NAME, message)
        raise CommandError(
            CommandErrorReason.REJECTED, f"{command.NAME} rejected: {message}"
        )
    return response
