# Copyright (c) 2025 Preston Elder
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Async client for Plum Lightpad smart dimmers.

Authenticate against the Plum house service, connect to a Lightpad on the
local network, send it commands and subscribe to its event stream.
"""

from .const import VERSION
from .commands import (
    Command,
    GetLoadMetrics,
    SetGlow,
    SetLevel,
    SetLightpadConfig,
    SetLoadConfig,
    send,
)
from .config import ClientSettings, credentials_from_env
from .decoder import DecoderState, Frame, StreamDecoder, encode_frame
from .errors import (
    AuthError,
    AuthErrorReason,
    CommandError,
    CommandErrorReason,
    ConnectError,
    ConnectErrorReason,
    DecodeError,
    LightpadError,
    SubscriptionError,
)
from .events import (
    DimmerChange,
    LightpadEvent,
    PIRSignal,
    Power,
    Unknown,
    classify_event,
    describe_event,
)
from .lightpad import Lightpad
from .models import DeviceEndpoint, ForceGlow, LoadMetrics, Response
from .session import Session, SessionAuthenticator
from .subscription import Subscription, SubscriptionManager, subscribe
from .transport import LightpadConnection, connect

__version__ = VERSION

__all__ = [
    "__version__",
    # High level
    "Lightpad",
    "ClientSettings",
    "credentials_from_env",
    # Session
    "Session",
    "SessionAuthenticator",
    # Transport
    "DeviceEndpoint",
    "LightpadConnection",
    "connect",
    # Commands
    "Command",
    "SetLevel",
    "SetLightpadConfig",
    "SetLoadConfig",
    "SetGlow",
    "GetLoadMetrics",
    "ForceGlow",
    "LoadMetrics",
    "Response",
    "send",
    # Events
    "LightpadEvent",
    "DimmerChange",
    "Power",
    "PIRSignal",
    "Unknown",
    "classify_event",
    "describe_event",
    "DecoderState",
    "Frame",
    "StreamDecoder",
    "encode_frame",
    # Subscriptions
    "Subscription",
    "SubscriptionManager",
    "subscribe",
    # Errors
    "LightpadError",
    "AuthError",
    "AuthErrorReason",
    "ConnectError",
    "ConnectErrorReason",
    "CommandError",
    "CommandErrorReason",
    "DecodeError",
    "SubscriptionError",
]
