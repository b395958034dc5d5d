# Copyright (c) 2025 Preston Elder
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Typed Lightpad push events.

The set of variants is closed: DimmerChange, Power, PIRSignal and Unknown.
Anything the device sends that does not fit one of the first three becomes
Unknown, carrying the original text, so a single odd message never ends a
subscription.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Union

from .const import (
    EVENT_DIMMER_CHANGE,
    EVENT_PIR_SIGNAL,
    EVENT_POWER,
    FIELD_LEVEL,
    FIELD_SIGNAL,
    FIELD_TYPE,
    FIELD_WATTS,
    LEVEL_MAX,
    LEVEL_MIN,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Event:
    """Common base of all Lightpad events."""

    KIND = "event"


@dataclass(frozen=True)
class DimmerChange(Event):
    KIND = EVENT_DIMMER_CHANGE

    level: int


@dataclass(frozen=True)
class Power(Event):
    KIND = EVENT_POWER

    watts: int


@dataclass(frozen=True)
class PIRSignal(Event):
    KIND = EVENT_PIR_SIGNAL

    signal: int


@dataclass(frozen=True)
class Unknown(Event):
    KIND = "unknown"

    raw_message: str


LightpadEvent = Union[DimmerChange, Power, PIRSignal, Unknown]


def _as_int(value: Any) -> int:
    # JSON true/false must not pass as 1/0
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"expected integer, got {value!r}")
    return value


def _dimmer_change(data: dict[str, Any]) -> DimmerChange:
    level = _as_int(data[FIELD_LEVEL])
    if not LEVEL_MIN <= level <= LEVEL_MAX:
        raise ValueError(f"level {level} out of range")
    return DimmerChange(level=level)


def _power(data: dict[str, Any]) -> Power:
    return Power(watts=_as_int(data[FIELD_WATTS]))


def _pir_signal(data: dict[str, Any]) -> PIRSignal:
    return PIRSignal(signal=_as_int(data[FIELD_SIGNAL]))


_PARSERS = {
    EVENT_DIMMER_CHANGE: _dimmer_change,
    EVENT_POWER: _power,
    EVENT_PIR_SIGNAL: _pir_signal,
}


def classify_event(body: Union[bytes, str]) -> LightpadEvent:
    """Turn one event message body into a typed event.

    Never raises. Unrecognized tags and malformed payloads come back as
    Unknown with the raw text.
    """
    if isinstance(body, bytes):
        raw = body.decode("utf-8", errors="replace")
    else:
        raw = body

    try:
        data = json.loads(raw)
    except ValueError:
        logger.debug("Event body is not JSON: %r", raw)
        return Unknown(raw_message=raw)

    if not isinstance(data, dict):
        return Unknown(raw_message=raw)

    tag = data.get(FIELD_TYPE)
    parser = _PARSERS.get(tag) if isinstance(tag, str) else None
    if parser is None:
        return Unknown(raw_message=raw)

    try:
        return parser(data)
    except (KeyError, ValueError) as e:
        logger.debug("Malformed %s event (%s): %r", data.get(FIELD_TYPE), e, raw)
        return Unknown(raw_message=raw)


def describe_event(event: LightpadEvent) -> str:
    """One-line human description of an event."""
    if isinstance(event, DimmerChange):
        return f"heard a {event.KIND} event with value {event.level}"
    if isinstance(event, Power):
        return f"heard a {event.KIND} event with value {event.watts}"
    if isinstance(event, PIRSignal):
        return f"heard a {event.KIND} event with value {event.signal}"
    if isinstance(event, Unknown):
        return f"heard an unknown event with message {event.raw_message}"
    raise TypeError(f"Unhandled event type: {type(event).__name__}")
