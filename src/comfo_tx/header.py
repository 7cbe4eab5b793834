#!/usr/bin/env python3
"""ComfoControl - the envelope codec (a fixed 38-byte header, then operation/payload).

Header layout (big-endian):
  offset  0: u32 total length, excluding this field (38 + op_length + msg_length - 4)
  offset  4: 16 bytes, the sender UUID
  offset 20: 16 bytes, the receiver UUID
  offset 36: u16 op_length
"""

from __future__ import annotations

import dataclasses
import logging
import re
import struct
from collections.abc import Iterator
from typing import Final

from . import exceptions as exc
from .const import HEADER_LENGTH, LENGTH_FIELD_SIZE, UUID_HEX_LENGTH

_LOGGER = logging.getLogger(__name__)


_HEADER_STRUCT: Final = struct.Struct(">I16s16sH")
_UUID_REGEX: Final = re.compile(r"^[0-9a-fA-F]*$")

MAX_OP_LENGTH: Final[int] = 0xFFFF


def normalise_uuid(uuid: str) -> str:
    """Return a UUID as 32 lower-case hex characters, zero-padded on the left.

    Raise a ValueError if the UUID is not a hex string of at most 32 characters.
    """

    if not isinstance(uuid, str) or not _UUID_REGEX.match(uuid):
        raise ValueError(f"Invalid UUID: {uuid!r} is not a hex string")
    if len(uuid) > UUID_HEX_LENGTH:
        raise ValueError(
            f"Invalid UUID: {uuid!r} is longer than {UUID_HEX_LENGTH} characters"
        )
    return uuid.lower().zfill(UUID_HEX_LENGTH)


class Header:
    """The fixed-size header that starts every envelope."""

    def __init__(
        self,
        sender_uuid: str,
        receiver_uuid: str,
        op_length: int,
        message_length: int,
    ) -> None:
        """Create a header, the UUIDs will be zero-padded to 32 hex characters."""

        if not 0 <= op_length <= MAX_OP_LENGTH:
            raise ValueError(f"Invalid op_length: {op_length}")
        if message_length < 0:
            raise ValueError(f"Invalid message_length: {message_length}")

        self.sender_uuid: Final[str] = normalise_uuid(sender_uuid)
        self.receiver_uuid: Final[str] = normalise_uuid(receiver_uuid)
        self.op_length: Final[int] = op_length
        self.message_length: Final[int] = message_length

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"{self.sender_uuid!r}, {self.receiver_uuid!r}, "
            f"{self.op_length}, {self.message_length})"
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Header):
            return NotImplemented
        return self.to_bytes() == other.to_bytes()

    def __hash__(self) -> int:
        return hash(self.to_bytes())

    @property
    def length(self) -> int:
        """Return the length of the whole envelope, including this header."""
        return HEADER_LENGTH + self.op_length + self.message_length

    @property
    def total_length(self) -> int:
        """Return the value of the total length field (it excludes itself)."""
        return self.length - LENGTH_FIELD_SIZE

    @property
    def op_offset(self) -> int:
        return HEADER_LENGTH

    @property
    def message_offset(self) -> int:
        return HEADER_LENGTH + self.op_length

    @classmethod
    def from_bytes(cls, data: bytes, offset: int = 0) -> Header:
        """Create a header from a buffer, starting at the offset.

        Raise FrameTooShort if fewer than 38 bytes remain in the buffer.
        """

        if len(data) - offset < HEADER_LENGTH:
            raise exc.FrameTooShort(
                f"Not enough bytes in buffer to read header: expected {HEADER_LENGTH}"
                f" bytes but got {max(len(data) - offset, 0)}"
            )

        total_length, sender, receiver, op_length = _HEADER_STRUCT.unpack_from(
            data, offset
        )

        message_length = total_length + LENGTH_FIELD_SIZE - HEADER_LENGTH - op_length
        if message_length < 0:
            raise exc.EnvelopeInvalid(
                f"Invalid header: total length {total_length} is less than"
                f" that of the header and operation ({op_length})"
            )

        return cls(sender.hex(), receiver.hex(), op_length, message_length)

    def to_bytes(self) -> bytes:
        """Return the header as 38 bytes."""

        return _HEADER_STRUCT.pack(
            self.total_length,
            bytes.fromhex(self.sender_uuid),
            bytes.fromhex(self.receiver_uuid),
            self.op_length,
        )

    def operation_bytes(self, data: bytes, offset: int = 0) -> bytes:
        """Return the operation bytes of the envelope that starts at the offset.

        Raise TruncatedOperation if the buffer is too short.
        """

        start = offset + self.op_offset
        if len(data) < start + self.op_length:
            raise exc.TruncatedOperation(
                f"Not enough bytes in buffer to read operation: expected"
                f" {self.op_length} bytes but buffer has {max(len(data) - start, 0)}"
                " bytes left"
            )
        return bytes(data[start : start + self.op_length])

    def payload_bytes(self, data: bytes, offset: int = 0) -> bytes:
        """Return the payload bytes of the envelope that starts at the offset.

        Raise TruncatedPayload if the buffer is too short.
        """

        start = offset + self.message_offset
        if len(data) < start + self.message_length:
            raise exc.TruncatedPayload(
                f"Not enough bytes in buffer to read payload: expected"
                f" {self.message_length} bytes but buffer has"
                f" {max(len(data) - start, 0)} bytes left"
            )
        return bytes(data[start : start + self.message_length])


@dataclasses.dataclass(frozen=True, kw_only=True)
class Envelope:
    """One complete wire message: header, operation and payload."""

    header: Header
    operation: bytes
    payload: bytes

    @property
    def sender_uuid(self) -> str:
        return self.header.sender_uuid

    @property
    def receiver_uuid(self) -> str:
        return self.header.receiver_uuid

    def to_bytes(self) -> bytes:
        return self.header.to_bytes() + self.operation + self.payload


def encode_envelope(
    sender_uuid: str, receiver_uuid: str, operation: bytes, payload: bytes
) -> bytes:
    """Return the bytes of an envelope."""

    header = Header(sender_uuid, receiver_uuid, len(operation), len(payload))
    return header.to_bytes() + operation + payload


def decode_envelope(data: bytes, offset: int = 0) -> tuple[Envelope, int]:
    """Decode the envelope at the offset, return it and the offset of the next one."""

    header = Header.from_bytes(data, offset)
    envelope = Envelope(
        header=header,
        operation=header.operation_bytes(data, offset),
        payload=header.payload_bytes(data, offset),
    )
    return envelope, offset + header.length


def iter_envelopes(data: bytes) -> Iterator[Envelope]:
    """Yield each of the (concatenated) envelopes in a buffer, in order.

    The buffer must hold only complete envelopes, else an EnvelopeInvalid is raised.
    """

    offset = 0
    while offset < len(data):
        envelope, offset = decode_envelope(data, offset)
        yield envelope
