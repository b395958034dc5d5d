# Copyright (c) 2025 Preston Elder
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Pytest configuration and fixtures for Lightpad tests."""
from __future__ import annotations

import asyncio
import json
from typing import Any

import pytest

from plumlightpad import DeviceEndpoint, LightpadConnection, Session
from plumlightpad.const import LANE_AUTH, LANE_COMMAND, LANE_EVENT
from plumlightpad.decoder import Frame, StreamDecoder, encode_frame
from plumlightpad.simulator import LightpadSimulator, LightpadSimulatorState


# ============================================================================
# Mock Transport and Device
# ============================================================================

class MockTransport:
    """Mock asyncio transport for network simulation."""

    def __init__(self):
        self.written_data: list[bytes] = []
        self._closing = False

    def write(self, data: bytes) -> None:
        """Record written data."""
        self.written_data.append(data)

    def is_closing(self) -> bool:
        """Return whether transport is closing."""
        return self._closing

    def close(self) -> None:
        """Mark transport as closing."""
        self._closing = True

    def get_extra_info(self, name: str, default: Any = None) -> Any:
        return default

    def get_written_frames(self) -> list[Frame]:
        """Decode everything written so far into frames."""
        return StreamDecoder().feed(b"".join(self.written_data))

    def get_written_messages(self, lane: bytes = LANE_COMMAND) -> list[dict]:
        """Parse and return all written JSON messages on one lane."""
        return [
            json.loads(frame.body.decode("utf-8"))
            for frame in self.get_written_frames()
            if frame.lane == lane
        ]

    def get_last_message(self, lane: bytes = LANE_COMMAND) -> dict | None:
        """Get the last written JSON message on one lane."""
        messages = self.get_written_messages(lane)
        return messages[-1] if messages else None

    def clear(self) -> None:
        """Clear recorded data."""
        self.written_data.clear()


class MockDevice:
    """Helper to feed device frames into a LightpadConnection."""

    def __init__(self, connection: LightpadConnection, transport: MockTransport):
        self.connection = connection
        self.transport = transport

    def send(self, lane: bytes, message: Any) -> None:
        body = message if isinstance(message, bytes) else json.dumps(message).encode("utf-8")
        self.connection.data_received(encode_frame(lane, body))

    def accept_auth(self) -> None:
        self.send(LANE_AUTH, {"success": True})

    def reject_auth(self, error: str = "bad token") -> None:
        self.send(LANE_AUTH, {"success": False, "error": error})

    def send_event(self, event: Any) -> None:
        self.send(LANE_EVENT, event)

    def reply(self, msg_id: int, command: str, success: bool = True, **extra) -> None:
        self.send(LANE_COMMAND, {"msgId": msg_id, "command": command, "success": success, **extra})

    async def wait_for_command(self, count: int = 1) -> dict:
        """Wait until ``count`` commands were written and return the last."""
        for _ in range(100):
            messages = self.transport.get_written_messages(LANE_COMMAND)
            if len(messages) >= count:
                return messages[count - 1]
            await asyncio.sleep(0.01)
        raise AssertionError(f"Command {count} was never written")


# ============================================================================
# Connection Fixtures
# ============================================================================

@pytest.fixture
def endpoint() -> DeviceEndpoint:
    """Endpoint for mocked connections."""
    return DeviceEndpoint(
        host="192.168.1.50",
        lightpad_id="lp-0001",
        load_id="ll-0001",
        encrypted=False,
    )


@pytest.fixture
def session() -> Session:
    """Session holding the simulator's default token."""
    return Session.from_token(LightpadSimulatorState().house_access_token, house_id="house-1")


@pytest.fixture
def mock_transport() -> MockTransport:
    """Create a mock transport."""
    return MockTransport()


@pytest.fixture
async def mock_connection(endpoint, session, mock_transport) -> tuple[LightpadConnection, MockTransport, MockDevice]:
    """Create a LightpadConnection over a mocked transport.

    Returns:
        Tuple of (connection, transport, device)
    """
    connection = LightpadConnection(endpoint, session)
    connection.connection_made(mock_transport)
    yield connection, mock_transport, MockDevice(connection, mock_transport)
    connection.close()
    await asyncio.sleep(0)


# ============================================================================
# Simulator Fixtures
# ============================================================================

@pytest.fixture
async def simulator():
    """Create and start a simulator on a free port."""
    sim = LightpadSimulator(port=0)
    await sim.start()
    yield sim
    await sim.stop()


@pytest.fixture
def sim_endpoint(simulator) -> DeviceEndpoint:
    """Plain TCP endpoint pointing at the running simulator."""
    return DeviceEndpoint(
        host="127.0.0.1",
        port=simulator.bound_port,
        lightpad_id=simulator.state.lightpad_id,
        load_id=simulator.state.load_id,
        encrypted=False,
    )


async def _wait_until(predicate, timeout: float = 2.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("Condition not met in time")
        await asyncio.sleep(0.01)


@pytest.fixture
def wait_until():
    """Poll a predicate until it is true or fail the test."""
    return _wait_until


# ============================================================================
# Utility Fixtures
# ============================================================================

@pytest.fixture
def callback_tracker() -> dict[str, list]:
    """Track callback invocations."""
    return {
        "calls": [],
        "args": [],
    }


@pytest.fixture
def make_callback(callback_tracker):
    """Factory to create tracked callbacks."""
    def factory(name: str = "callback"):
        def callback(*args, **kwargs):
            callback_tracker["calls"].append(name)
            callback_tracker["args"].append((args, kwargs))
        return callback
    return factory
