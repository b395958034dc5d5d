# Copyright (c) 2025 Preston Elder
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Tests for event classification (events.py)."""
from __future__ import annotations

import json

import pytest

from plumlightpad.events import (
    DimmerChange,
    Event,
    PIRSignal,
    Power,
    Unknown,
    classify_event,
    describe_event,
)


# ============================================================================
# Known Events
# ============================================================================

class TestKnownEvents:
    """Tags with well-formed payloads decode to their variant."""

    def test_dimmer_change(self):
        event = classify_event(b'{"type": "dimmerchange", "level": 128}')
        assert event == DimmerChange(level=128)

    def test_power(self):
        event = classify_event(b'{"type": "power", "watts": 42}')
        assert event == Power(watts=42)

    def test_pir_signal(self):
        event = classify_event(b'{"type": "pirSignal", "signal": 112}')
        assert event == PIRSignal(signal=112)

    def test_accepts_str_body(self):
        """Already decoded text is accepted too."""
        assert classify_event('{"type": "power", "watts": 0}') == Power(watts=0)

    def test_extra_fields_are_ignored(self):
        body = json.dumps({"type": "power", "watts": 7, "lpid": "abc"}).encode()
        assert classify_event(body) == Power(watts=7)

    @pytest.mark.parametrize("level", [0, 255])
    def test_dimmer_level_bounds(self, level):
        body = json.dumps({"type": "dimmerchange", "level": level}).encode()
        assert classify_event(body) == DimmerChange(level=level)


# ============================================================================
# Unknown Passthrough
# ============================================================================

class TestUnknownEvents:
    """Anything unexpected becomes Unknown with the raw text preserved."""

    @pytest.mark.parametrize("body", [
        '{"type": "firmwareNotice", "version": "2.1.0"}',
        '{"level": 10}',
        '{"type": ["power"], "watts": 1}',
        '{"type": "dimmerchange", "level": "bright"}',
        '{"type": "dimmerchange", "level": 300}',
        '{"type": "dimmerchange", "level": true}',
        '{"type": "power"}',
        '[1, 2, 3]',
        '"power"',
        'this is not json',
        '',
    ])
    def test_unknown(self, body):
        event = classify_event(body.encode("utf-8"))
        assert isinstance(event, Unknown)
        assert event.raw_message == body

    def test_invalid_utf8_does_not_raise(self):
        event = classify_event(b'\xff\xfe{"type": "power"}')
        assert isinstance(event, Unknown)
        assert "�" in event.raw_message

    def test_every_result_is_an_event(self):
        """Classification is total over arbitrary input."""
        for body in (b"", b"\x00", b"{}", b"null", b'{"type": null}'):
            assert isinstance(classify_event(body), Event)


# ============================================================================
# Descriptions
# ============================================================================

class TestDescribeEvent:
    """Tests for describe_event."""

    def test_known_events(self):
        assert describe_event(DimmerChange(level=3)) == "heard a dimmerchange event with value 3"
        assert describe_event(Power(watts=60)) == "heard a power event with value 60"
        assert describe_event(PIRSignal(signal=9)) == "heard a pirSignal event with value 9"

    def test_unknown_event(self):
        text = describe_event(Unknown(raw_message="odd"))
        assert text == "heard an unknown event with message odd"

    def test_unhandled_type_raises(self):
        with pytest.raises(TypeError):
            describe_event(Event())

    def test_events_are_immutable(self):
        event = Power(watts=1)
        with pytest.raises(AttributeError):
            event.watts = 2
