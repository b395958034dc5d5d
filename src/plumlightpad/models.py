# Copyright (c) 2025 Preston Elder
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Plain data types shared by the transport, commands and facade."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

from .const import (
    COLOR_MAX,
    COLOR_MIN,
    DEFAULT_PORT,
    FIELD_BLUE,
    FIELD_COMMAND,
    FIELD_GREEN,
    FIELD_INTENSITY,
    FIELD_LEVEL,
    FIELD_LIGHTPAD_METRICS,
    FIELD_LLID,
    FIELD_MSG_ID,
    FIELD_POWER,
    FIELD_RED,
    FIELD_SUCCESS,
    FIELD_TIMEOUT,
    FIELD_WHITE,
)


@dataclass(frozen=True)
class DeviceEndpoint:
    """Where a Lightpad lives on the local network.

    The device presents a self-signed certificate, so verification is off
    unless explicitly requested.
    """

    host: str
    port: int = DEFAULT_PORT
    lightpad_id: str = ""
    load_id: str = ""
    encrypted: bool = True
    verify_certificate: bool = False

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"


@dataclass
class ForceGlow:
    """Manual glow ring state."""

    intensity: float = 1.0
    timeout: int = 0
    red: int = 255
    green: int = 255
    blue: int = 255
    white: int = 255

    def validate(self) -> Optional[str]:
        """Return a description of the first invalid field, or None."""
        if not isinstance(self.intensity, (int, float)) or isinstance(self.intensity, bool):
            return "intensity must be a number"
        if not 0.0 <= self.intensity <= 1.0:
            return f"intensity {self.intensity} out of range 0.0-1.0"
        if not isinstance(self.timeout, int) or isinstance(self.timeout, bool) or self.timeout < 0:
            return f"timeout {self.timeout!r} must be a non-negative integer"
        for name in (FIELD_RED, FIELD_GREEN, FIELD_BLUE, FIELD_WHITE):
            value = getattr(self, name)
            if not isinstance(value, int) or isinstance(value, bool):
                return f"{name} must be an integer"
            if not COLOR_MIN <= value <= COLOR_MAX:
                return f"{name} {value} out of range {COLOR_MIN}-{COLOR_MAX}"
        return None

    def to_dict(self) -> dict[str, Any]:
        """Convert to protocol dict format."""
        return {
            FIELD_INTENSITY: self.intensity,
            FIELD_TIMEOUT: self.timeout,
            FIELD_RED: self.red,
            FIELD_GREEN: self.green,
            FIELD_BLUE: self.blue,
            FIELD_WHITE: self.white,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ForceGlow":
        """Create from protocol dict."""
        return cls(
            intensity=data.get(FIELD_INTENSITY, 1.0),
            timeout=data.get(FIELD_TIMEOUT, 0),
            red=data.get(FIELD_RED, 255),
            green=data.get(FIELD_GREEN, 255),
            blue=data.get(FIELD_BLUE, 255),
            white=data.get(FIELD_WHITE, 255),
        )


@dataclass
class LoadMetrics:
    """Current draw and level of a logical load."""

    load_id: str = ""
    level: int = 0
    power: int = 0
    lightpad_metrics: list = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LoadMetrics":
        """Create from a getLogicalLoadMetrics reply."""
        return cls(
            load_id=data.get(FIELD_LLID, ""),
            level=data.get(FIELD_LEVEL, 0),
            power=data.get(FIELD_POWER, 0),
            lightpad_metrics=list(data.get(FIELD_LIGHTPAD_METRICS, [])),
        )


def parse_success(value: Any) -> bool:
    """Devices report success as a bool or as the string "true"."""
    if isinstance(value, str):
        return value.lower() == "true"
    return value is True


@dataclass
class Response:
    """Reply to a single command."""

    msg_id: int
    command: str
    success: bool
    payload: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Response":
        payload = {
            key: value
            for key, value in data.items()
            if key not in (FIELD_MSG_ID, FIELD_COMMAND, FIELD_SUCCESS)
        }
        return cls(
            msg_id=data.get(FIELD_MSG_ID, 0),
            command=data.get(FIELD_COMMAND, ""),
            success=parse_success(data.get(FIELD_SUCCESS)),
            payload=payload,
        )
