#!/usr/bin/env python3
"""ComfoControl - a message (an operation, and its payload).

Decode/encode the operation of an envelope, and (lazily) its payload.
"""

from __future__ import annotations

import logging
from typing import Any

from google.protobuf.json_format import MessageToDict
from google.protobuf.message import Message as PbMessage

from . import exceptions as exc
from .const import Opcode, Result, opcode_name, result_name
from .header import Envelope, encode_envelope, iter_envelopes
from .protobuf import BodyT, decode_body, decode_operation, encode_body, new_operation

_LOGGER = logging.getLogger(__name__)


class Message:
    """The Message class: an operation (opcode, id, result), and its raw payload.

    The payload is deserialised only when required, as per the opcode's schema.
    """

    def __init__(
        self,
        operation: PbMessage,
        payload: bytes = b"",
        *,
        sender_uuid: str | None = None,
        receiver_uuid: str | None = None,
    ) -> None:
        self._operation = operation
        self.payload: bytes = payload

        self.sender_uuid = sender_uuid
        self.receiver_uuid = receiver_uuid

        self._body: PbMessage | None = None

    def __repr__(self) -> str:
        """Return an unambiguous string representation of this object."""
        return f"{self.__class__.__name__}({self}, payload={self.payload.hex()})"

    def __str__(self) -> str:
        """Return a brief readable string representation of this object."""
        # e.g.: START_SESSION_CONFIRM (1) - OK (0)
        return (
            f"{self.opcode_name} ({self.id}) - {self.result_name} ({self.result_code})"
        )

    @property
    def operation(self) -> PbMessage:
        return self._operation

    @property
    def opcode(self) -> Opcode | int:
        """Return the opcode, as an Opcode if it is a known one."""
        try:
            return Opcode(self._operation.opcode)
        except ValueError:
            return self._operation.opcode  # type: ignore[no-any-return]

    @property
    def opcode_name(self) -> str:
        return opcode_name(self._operation.opcode)

    @property
    def id(self) -> int:
        return self._operation.id  # type: ignore[no-any-return]

    @property
    def result_code(self) -> int:
        """Return the result code (absent means OK)."""
        if self._operation.HasField("result"):
            return self._operation.result  # type: ignore[no-any-return]
        return Result.OK

    @property
    def result_name(self) -> str:
        return result_name(self.result_code)

    @property
    def is_ok(self) -> bool:
        return self.result_code == Result.OK

    @property
    def description(self) -> str | None:
        if self._operation.HasField("description"):
            return self._operation.description  # type: ignore[no-any-return]
        return None

    def deserialize(self) -> PbMessage:
        """Return the payload, decoded as per the opcode's schema.

        Raise UnsupportedOpcode if there is no schema for the opcode.
        """

        if self._body is None:
            self._body = decode_body(self._operation.opcode, self.payload)
        return self._body

    def to_dict(self) -> dict[str, Any]:
        """Return the payload as a dict (with any unknown fields ignored)."""
        return MessageToDict(self.deserialize(), preserving_proto_field_name=True)

    def to_bytes(self, sender_uuid: str, receiver_uuid: str) -> bytes:
        """Return the message as an envelope."""
        return encode_envelope(
            sender_uuid,
            receiver_uuid,
            self._operation.SerializeToString(),
            self.payload,
        )

    @classmethod
    def from_attrs(
        cls,
        opcode: int,
        id_: int = 0,
        data: BodyT = None,
        *,
        result: int | None = None,
        description: str | None = None,
    ) -> Message:
        """Create a message from its attributes (the body may be a dict)."""

        operation = new_operation(opcode, id_, result=result, description=description)
        return cls(operation, encode_body(opcode, data))

    @classmethod
    def from_envelope(cls, envelope: Envelope) -> Message:
        """Create a message from an envelope.

        Raise a ProtocolError if the operation is invalid.
        """

        return cls(
            decode_operation(envelope.operation),
            envelope.payload,
            sender_uuid=envelope.sender_uuid,
            receiver_uuid=envelope.receiver_uuid,
        )

    @classmethod
    def from_bytes(cls, data: bytes) -> list[Message]:
        """Create the messages from a buffer of (concatenated) envelopes.

        Raise an EnvelopeInvalid/ProtocolError if any envelope is invalid.
        """

        try:
            return [cls.from_envelope(e) for e in iter_envelopes(data)]
        except exc.ProtocolError as err:
            _LOGGER.debug("%s < %s", data.hex(), err)
            raise
