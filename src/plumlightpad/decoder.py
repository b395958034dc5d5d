# Copyright (c) 2025 Preston Elder
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Frame decoder for the Lightpad device channel.

Every message on the wire is a 5 byte header (lane byte, 4 byte big-endian
body length) followed by the body. The lane tells auth replies, command
replies and push events apart so that one reader can route them.

The decoder is fed arbitrary chunks and hands back whole frames:

    AWAITING_HEADER --header--> AWAITING_BODY --body--> AWAITING_HEADER
           \\                         /
            `------ FAILED <--------'   (bad header, oversize body, EOF)

FAILED is terminal. A fresh decoder is needed for a new connection.
"""
from __future__ import annotations

import logging
import struct
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .const import FRAME_HEADER_FORMAT, FRAME_HEADER_SIZE, LANES, MAX_FRAME_SIZE
from .errors import DecodeError

logger = logging.getLogger(__name__)


class DecoderState(str, Enum):
    AWAITING_HEADER = "awaiting_header"
    AWAITING_BODY = "awaiting_body"
    FAILED = "failed"


@dataclass(frozen=True)
class Frame:
    lane: bytes
    body: bytes


def encode_frame(lane: bytes, body: bytes) -> bytes:
    """Build a wire frame."""
    if lane not in LANES:
        raise ValueError(f"Unknown lane {lane!r}")
    if len(body) > MAX_FRAME_SIZE:
        raise ValueError(f"Frame body of {len(body)} bytes exceeds {MAX_FRAME_SIZE}")
    return struct.pack(FRAME_HEADER_FORMAT, lane, len(body)) + body


class StreamDecoder:
    """Incremental frame decoder."""

    def __init__(self, max_frame_size: int = MAX_FRAME_SIZE):
        self.max_frame_size = max_frame_size
        self.state = DecoderState.AWAITING_HEADER
        self.error: Optional[DecodeError] = None
        self._buffer = bytearray()
        self._lane: bytes = b""
        self._length = 0

    @property
    def failed(self) -> bool:
        return self.state is DecoderState.FAILED

    def _fail(self, message: str) -> None:
        logger.warning("Frame decoder failed: %s", message)
        self.state = DecoderState.FAILED
        self.error = DecodeError(message)
        self._buffer.clear()

    def feed(self, data: bytes) -> list[Frame]:
        """Consume a chunk and return every frame it completes.

        Frames completed before a failure in the same chunk are still
        returned; check ``failed`` afterwards.
        """
        if self.failed:
            return []

        self._buffer.extend(data)
        frames: list[Frame] = []

        while True:
            if self.state is DecoderState.AWAITING_HEADER:
                if len(self._buffer) < FRAME_HEADER_SIZE:
                    break
                lane, length = struct.unpack_from(FRAME_HEADER_FORMAT, self._buffer)
                if lane not in LANES:
                    self._fail(f"unknown lane {lane!r}")
                    break
                if length > self.max_frame_size:
                    self._fail(f"frame length {length} exceeds {self.max_frame_size}")
                    break
                del self._buffer[:FRAME_HEADER_SIZE]
                self._lane = lane
                self._length = length
                self.state = DecoderState.AWAITING_BODY

            if self.state is DecoderState.AWAITING_BODY:
                if len(self._buffer) < self._length:
                    break
                body = bytes(self._buffer[: self._length])
                del self._buffer[: self._length]
                frames.append(Frame(lane=self._lane, body=body))
                self.state = DecoderState.AWAITING_HEADER
            else:
                break

        return frames

    def feed_eof(self) -> None:
        """Mark end of stream. Always leaves the decoder FAILED."""
        if self.failed:
            return
        if self.state is DecoderState.AWAITING_BODY or self._buffer:
            self._fail("end of stream inside a frame")
        else:
            logger.debug("Frame decoder reached end of stream")
            self.state = DecoderState.FAILED
            self.error = DecodeError("end of stream")
