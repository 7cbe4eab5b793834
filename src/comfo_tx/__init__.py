#!/usr/bin/env python3
"""ComfoControl - a ComfoConnect LAN C protocol client (the wire layer)."""

from __future__ import annotations

from .const import (
    CLIENT_UUID,
    CONFIRM_OPCODES,
    DISCOVERY_PORT,
    GATEWAY_PORT,
    SESSION_EXEMPT_OPCODES,
    NodeMode,
    Opcode,
    PropertyDataType,
    Result,
)
from .deferred import Deferred
from .discovery import DeviceInfo, DiscoveryOperation
from .header import Envelope, Header, decode_envelope, encode_envelope, iter_envelopes
from .logger import set_frame_logging, set_logging
from .message import Message
from .protobuf import OPCODE_MESSAGES, decode_body, encode_body
from .schemas import SCH_DISCOVERY_CONFIG, SCH_TRANSPORT_CONFIG
from .transport import ComfoTransport, ConnectionState
from .values import decode_value, encode_value
from .version import VERSION

__all__ = [
    "VERSION",
    #
    "CLIENT_UUID",
    "CONFIRM_OPCODES",
    "DISCOVERY_PORT",
    "GATEWAY_PORT",
    "OPCODE_MESSAGES",
    "SESSION_EXEMPT_OPCODES",
    "SCH_DISCOVERY_CONFIG",
    "SCH_TRANSPORT_CONFIG",
    #
    "NodeMode",
    "Opcode",
    "PropertyDataType",
    "Result",
    #
    "ComfoTransport",
    "ConnectionState",
    "Deferred",
    "DeviceInfo",
    "DiscoveryOperation",
    "Envelope",
    "Header",
    "Message",
    #
    "decode_body",
    "decode_envelope",
    "decode_value",
    "encode_body",
    "encode_envelope",
    "encode_value",
    "iter_envelopes",
    "set_frame_logging",
    "set_logging",
]
