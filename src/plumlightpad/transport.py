# Copyright (c) 2025 Preston Elder
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Persistent authenticated connection to a single Lightpad.

LightpadConnection is the only reader of its socket. Each inbound frame is
routed by lane: auth replies complete the handshake, command replies wake
the waiter holding the matching msgId, and push events are decoded and
queued in arrival order for whoever owns the subscription.

connect() makes exactly one attempt. Retrying is the caller's decision.
"""
from __future__ import annotations

import asyncio
import json
import logging
import ssl
from dataclasses import dataclass
from typing import Any, Optional

from .const import (
    DEFAULT_COMMAND_TIMEOUT,
    DEFAULT_CONNECT_TIMEOUT,
    FIELD_COMMAND,
    FIELD_ERROR,
    FIELD_HAT,
    FIELD_LLID,
    FIELD_MSG_ID,
    FIELD_SUCCESS,
    LANE_AUTH,
    LANE_COMMAND,
    LANE_EVENT,
)
from .decoder import Frame, StreamDecoder, encode_frame
from .errors import (
    CommandError,
    CommandErrorReason,
    ConnectError,
    ConnectErrorReason,
    SubscriptionError,
)
from .events import classify_event
from .models import DeviceEndpoint, parse_success
from .session import Session

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StreamEnd:
    """Queued after the last event once the connection is gone.

    ``error`` is None when the connection was closed locally.
    """

    error: Optional[BaseException] = None


def create_ssl_context(endpoint: DeviceEndpoint) -> ssl.SSLContext:
    """TLS context for a device; self-signed certificates are trusted unless
    the endpoint asks for verification."""
    context = ssl.create_default_context()
    if not endpoint.verify_certificate:
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
    return context


class LightpadConnection(asyncio.Protocol):
    """Protocol for one live device connection."""

    def __init__(self, endpoint: DeviceEndpoint, session: Session):
        self.endpoint = endpoint
        self.session = session
        self.transport: Optional[asyncio.Transport] = None
        self.decoder = StreamDecoder()
        self.events: asyncio.Queue = asyncio.Queue()

        loop = asyncio.get_running_loop()
        self._authenticated: asyncio.Future = loop.create_future()
        self._closed: asyncio.Future = loop.create_future()
        self._pending: dict[int, asyncio.Future] = {}
        self._command_lock = asyncio.Lock()
        self._msg_id = 0
        self._closing = False
        self._close_error: Optional[BaseException] = None
        self._claimed = False

    # =========================================================================
    # State
    # =========================================================================

    @property
    def is_open(self) -> bool:
        """Whether the socket is connected and not being torn down."""
        return (
            self.transport is not None
            and not self.transport.is_closing()
            and not self._closed.done()
        )

    @property
    def close_error(self) -> Optional[BaseException]:
        """Why the connection ended, or None if closed locally / still open."""
        return self._close_error

    def claim_events(self) -> None:
        """Reserve the event queue for a single subscription."""
        if self._claimed:
            raise SubscriptionError(
                f"Connection to {self.endpoint.address} already has an active subscription"
            )
        self._claimed = True

    def release_events(self) -> None:
        self._claimed = False

    # =========================================================================
    # asyncio.Protocol
    # =========================================================================

    def connection_made(self, transport: asyncio.BaseTransport) -> None:
        self.transport = transport
        logger.info("Connected to Lightpad at %s", self.endpoint.address)
        self._write(LANE_AUTH, {
            FIELD_HAT: self.session.token,
            FIELD_LLID: self.endpoint.load_id,
        })

    def data_received(self, data: bytes) -> None:
        for frame in self.decoder.feed(data):
            self._route(frame)
        if self.decoder.failed:
            self._abort(self.decoder.error)

    def eof_received(self) -> Optional[bool]:
        self.decoder.feed_eof()
        if not self._closing and self._close_error is None:
            self._close_error = ConnectionResetError(
                f"Connection closed by Lightpad at {self.endpoint.address}"
            )
        # Let the transport close itself
        return None

    def connection_lost(self, exc: Optional[Exception]) -> None:
        if self._close_error is None and not self._closing:
            self._close_error = exc or ConnectionResetError(
                f"Connection to Lightpad at {self.endpoint.address} lost"
            )
        error = self._close_error

        if error is None:
            logger.info("Connection to Lightpad at %s closed", self.endpoint.address)
        else:
            logger.info(
                "Connection to Lightpad at %s lost: %s", self.endpoint.address, error
            )

        if not self._authenticated.done():
            self._authenticated.set_exception(ConnectError(
                ConnectErrorReason.UNREACHABLE,
                f"Lightpad at {self.endpoint.address} closed the connection during authentication",
            ))
            # Nobody may be waiting; keep asyncio from logging it as unretrieved
            self._authenticated.exception()

        for msg_id, future in list(self._pending.items()):
            if not future.done():
                future.set_exception(CommandError(
                    CommandErrorReason.TRANSPORT_CLOSED,
                    f"Connection closed before reply to message {msg_id}",
                ))
        self._pending.clear()

        self.events.put_nowait(StreamEnd(error))
        if not self._closed.done():
            self._closed.set_result(None)

    # =========================================================================
    # Routing
    # =========================================================================

    def _route(self, frame: Frame) -> None:
        if frame.lane == LANE_EVENT:
            event = classify_event(frame.body)
            logger.debug("Event from %s: %s", self.endpoint.address, event)
            self.events.put_nowait(event)
            return

        try:
            message = json.loads(frame.body.decode("utf-8"))
        except ValueError:
            logger.warning(
                "Discarding undecodable %r reply from %s: %r",
                frame.lane, self.endpoint.address, frame.body,
            )
            return
        if not isinstance(message, dict):
            logger.warning("Discarding non-object reply from %s: %r", self.endpoint.address, message)
            return

        if frame.lane == LANE_AUTH:
            if not self._authenticated.done():
                self._authenticated.set_result(message)
            return

        msg_id = message.get(FIELD_MSG_ID)
        future = self._pending.pop(msg_id, None) if isinstance(msg_id, int) else None
        if future is None:
            logger.warning(
                "Reply for unknown message %s (%s) from %s",
                msg_id, message.get(FIELD_COMMAND), self.endpoint.address,
            )
            return
        if not future.done():
            future.set_result(message)

    def _write(self, lane: bytes, message: dict[str, Any]) -> None:
        body = json.dumps(message, separators=(",", ":")).encode("utf-8")
        frame = encode_frame(lane, body)
        logger.debug(
            "Sending %r frame (%d bytes) to %s: %s",
            lane, len(body), self.endpoint.address, message.get(FIELD_COMMAND, "auth"),
        )
        self.transport.write(frame)

    def _expire(self, command: str) -> CommandError:
        """Drop the connection because its session went stale."""
        error = CommandError(
            CommandErrorReason.SESSION_EXPIRED,
            f"Session expired; {command} to {self.endpoint.address} abandoned",
        )
        logger.info(
            "Session for Lightpad at %s expired; closing connection", self.endpoint.address
        )
        self._abort(error)
        return error

    def _abort(self, error: Optional[BaseException]) -> None:
        if self._close_error is None:
            self._close_error = error
        if self.transport is not None and not self.transport.is_closing():
            self.transport.close()

    # =========================================================================
    # Public API
    # =========================================================================

    async def wait_authenticated(self, timeout: float = DEFAULT_CONNECT_TIMEOUT) -> None:
        """Wait for the device to accept or reject the house access token."""
        try:
            reply = await asyncio.wait_for(self._authenticated, timeout)
        except asyncio.TimeoutError as e:
            raise ConnectError(
                ConnectErrorReason.TIMEOUT,
                f"Lightpad at {self.endpoint.address} did not answer authentication within {timeout}s",
            ) from e

        if not parse_success(reply.get(FIELD_SUCCESS)):
            raise ConnectError(
                ConnectErrorReason.AUTH_REJECTED,
                f"Lightpad at {self.endpoint.address} rejected the house access token: "
                f"{reply.get(FIELD_ERROR, 'no reason given')}",
            )
        logger.info("Authenticated with Lightpad at %s", self.endpoint.address)

    async def request(
        self,
        command: str,
        arguments: dict[str, Any],
        timeout: float = DEFAULT_COMMAND_TIMEOUT,
    ) -> dict[str, Any]:
        """Send one command and wait for the reply carrying its msgId.

        Only one command is in flight per connection at a time. Once the
        session has expired the token is not used again: the connection is
        closed and SESSION_EXPIRED raised, including for a command whose
        reply arrives after the session went stale.
        """
        async with self._command_lock:
            if not self.is_open:
                raise CommandError(
                    CommandErrorReason.TRANSPORT_CLOSED,
                    f"Connection to {self.endpoint.address} is closed",
                )
            if self.session.expired:
                raise self._expire(command)

            self._msg_id += 1
            msg_id = self._msg_id
            future = asyncio.get_running_loop().create_future()
            self._pending[msg_id] = future
            try:
                try:
                    self._write(LANE_COMMAND, {
                        **arguments,
                        FIELD_MSG_ID: msg_id,
                        FIELD_COMMAND: command,
                    })
                except (TypeError, ValueError) as e:
                    raise CommandError(
                        CommandErrorReason.INVALID_ARGUMENT,
                        f"Cannot encode {command}: {e}",
                    ) from e
                reply = await asyncio.wait_for(future, timeout)
            except asyncio.TimeoutError as e:
                raise CommandError(
                    CommandErrorReason.NO_REPLY,
                    f"No reply to {command} from {self.endpoint.address} within {timeout}s",
                ) from e
            finally:
                self._pending.pop(msg_id, None)

            if self.session.expired:
                raise self._expire(command)
            return reply

    def close(self) -> None:
        """Close the connection. Safe to call multiple times."""
        self._closing = True
        if self.transport is not None and not self.transport.is_closing():
            self.transport.close()

    async def wait_closed(self) -> None:
        await asyncio.shield(self._closed)


async def connect(
    endpoint: DeviceEndpoint,
    session: Session,
    *,
    timeout: float = DEFAULT_CONNECT_TIMEOUT,
) -> LightpadConnection:
    """Open and authenticate a connection to ``endpoint``. One attempt only.

    Raises:
        ConnectError: UNREACHABLE, AUTH_REJECTED (including an already expired
            session, which is never sent) or TIMEOUT.
    """
    if session.expired:
        raise ConnectError(
            ConnectErrorReason.AUTH_REJECTED,
            "Session has expired; re-authenticate before connecting",
        )

    loop = asyncio.get_running_loop()
    ssl_context = create_ssl_context(endpoint) if endpoint.encrypted else None

    logger.info("Connecting to Lightpad at %s", endpoint.address)
    try:
        _, connection = await asyncio.wait_for(
            loop.create_connection(
                lambda: LightpadConnection(endpoint, session),
                endpoint.host,
                endpoint.port,
                ssl=ssl_context,
            ),
            timeout=timeout,
        )
    except asyncio.TimeoutError as e:
        raise ConnectError(
            ConnectErrorReason.TIMEOUT,
            f"Timed out connecting to Lightpad at {endpoint.address}",
        ) from e
    except OSError as e:
        raise ConnectError(
            ConnectErrorReason.UNREACHABLE,
            f"Failed to connect to Lightpad at {endpoint.address}: {e}",
        ) from e

    try:
        await connection.wait_authenticated(timeout)
    except BaseException:
        connection.close()
        raise
    return connection
