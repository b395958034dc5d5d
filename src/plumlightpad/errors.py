# Copyright (c) 2025 Preston Elder
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Exception types raised by the Lightpad client.

Every failure carries a reason enum so callers can branch on the cause
without parsing messages.
"""
from __future__ import annotations

from enum import Enum
from typing import Optional


class AuthErrorReason(str, Enum):
    INVALID_CREDENTIALS = "invalid_credentials"
    SERVICE_UNAVAILABLE = "service_unavailable"


class ConnectErrorReason(str, Enum):
    UNREACHABLE = "unreachable"
    AUTH_REJECTED = "auth_rejected"
    TIMEOUT = "timeout"


class CommandErrorReason(str, Enum):
    INVALID_ARGUMENT = "invalid_argument"
    NO_REPLY = "no_reply"
    TRANSPORT_CLOSED = "transport_closed"
    REJECTED = "rejected"
    SESSION_EXPIRED = "session_expired"


class LightpadError(Exception):
    """Base class for all Lightpad client errors."""


class AuthError(LightpadError):
    """The house service refused or could not issue a session."""

    def __init__(self, reason: AuthErrorReason, message: Optional[str] = None):
        self.reason = reason
        super().__init__(message or reason.value)


class ConnectError(LightpadError):
    """A single connection attempt to a device failed."""

    def __init__(self, reason: ConnectErrorReason, message: Optional[str] = None):
        self.reason = reason
        super().__init__(message or reason.value)


class CommandError(LightpadError):
    """A command could not be delivered or was refused."""

    def __init__(self, reason: CommandErrorReason, message: Optional[str] = None):
        self.reason = reason
        super().__init__(message or reason.value)


class DecodeError(LightpadError):
    """Framing failure on the inbound byte stream.

    Only raised inside the transport; per-message payload problems never
    surface as this error.
    """


class SubscriptionError(LightpadError):
    """The event stream ended because the connection was lost."""
