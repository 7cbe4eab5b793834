#!/usr/bin/env python3
"""ComfoControl - the protobuf schema of the operations and their message bodies.

The schema is built at import time (as a FileDescriptorProto), so that no generated
_pb2 module need be shipped. Field names are those used by the gateway's own schema.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from enum import IntEnum
from typing import Any, Final, TypeAlias

from google.protobuf import descriptor_pb2, descriptor_pool, message_factory
from google.protobuf.message import DecodeError, Message as PbMessage

from . import exceptions as exc
from .const import NodeMode, Opcode, Result, opcode_name

_LOGGER = logging.getLogger(__name__)


PACKAGE: Final = "comfo"
PROTO_FILE: Final = "comfo/gateway.proto"

_FDP = descriptor_pb2.FieldDescriptorProto

BOOL: Final = _FDP.TYPE_BOOL
BYTES: Final = _FDP.TYPE_BYTES
ENUM: Final = _FDP.TYPE_ENUM
MESSAGE: Final = _FDP.TYPE_MESSAGE
STRING: Final = _FDP.TYPE_STRING
UINT32: Final = _FDP.TYPE_UINT32

# name, number, type, type_name (if enum/message), is optional (i.e. has presence)
_FieldT: TypeAlias = tuple[str, int, int, str | None, bool]


# message name -> fields (nested messages/enums are added separately, below)
_MESSAGES: Final[dict[str, tuple[_FieldT, ...]]] = {
    "GatewayOperation": (
        ("opcode", 1, ENUM, f".{PACKAGE}.Opcode", False),
        ("result", 2, ENUM, f".{PACKAGE}.Result", True),
        ("description", 3, STRING, None, True),
        ("id", 4, UINT32, None, False),
    ),
    "RegisterDeviceRequest": (
        ("uuid", 1, BYTES, None, False),
        ("pin", 2, UINT32, None, True),
        ("deviceName", 3, STRING, None, False),
    ),
    "StartSessionRequest": (("takeover", 1, BOOL, None, True),),
    "StartSessionConfirm": (
        ("deviceName", 1, STRING, None, False),
        ("resumed", 2, BOOL, None, False),
    ),
    "CnNodeNotification": (
        ("nodeId", 1, UINT32, None, False),
        ("productId", 2, UINT32, None, False),
        ("zoneId", 3, UINT32, None, False),
        ("mode", 4, ENUM, f".{PACKAGE}.CnNodeNotification.NodeModeType", False),
    ),
    "CnAlarmNotification": (
        ("zone", 1, UINT32, None, False),
        ("productId", 2, UINT32, None, False),
        ("productVariant", 3, UINT32, None, False),
        ("serialNumber", 4, STRING, None, False),
        ("swProgramVersion", 5, UINT32, None, False),
        ("errors", 6, BYTES, None, False),
        ("errorId", 7, UINT32, None, False),
        ("nodeId", 8, UINT32, None, False),
    ),
    "VersionConfirm": (
        ("gatewayVersion", 1, UINT32, None, False),
        ("serialNumber", 2, STRING, None, False),
        ("comfoNetVersion", 3, UINT32, None, False),
    ),
    "CnTimeRequest": (("setTime", 1, UINT32, None, True),),
    "CnTimeConfirm": (("currentTime", 1, UINT32, None, False),),
    "CnRpdoRequest": (
        ("pdid", 1, UINT32, None, False),
        ("zone", 2, UINT32, None, True),
        ("type", 3, UINT32, None, False),
        ("timeout", 4, UINT32, None, True),
    ),
    "CnRpdoNotification": (
        ("pdid", 1, UINT32, None, False),
        ("data", 2, BYTES, None, False),
    ),
    "CnRmiRequest": (
        ("nodeId", 1, UINT32, None, False),
        ("message", 2, BYTES, None, False),
    ),
    "CnRmiResponse": (
        ("result", 1, UINT32, None, False),
        ("message", 2, BYTES, None, False),
    ),
    "CnRmiAsyncRequest": (
        ("nodeId", 1, UINT32, None, False),
        ("message", 2, BYTES, None, False),
    ),
    "CnRmiAsyncConfirm": (("result", 1, UINT32, None, False),),
    "CnRmiAsyncResponse": (
        ("result", 1, UINT32, None, False),
        ("message", 2, BYTES, None, False),
    ),
    "NullMessage": (),
    "GatewayDiscovery": (
        ("request", 1, MESSAGE, f".{PACKAGE}.GatewayDiscovery.Request", False),
        ("response", 2, MESSAGE, f".{PACKAGE}.GatewayDiscovery.Response", False),
    ),
}

_NESTED_MESSAGES: Final[dict[str, dict[str, tuple[_FieldT, ...]]]] = {
    "GatewayDiscovery": {
        "Request": (),
        "Response": (
            ("address", 1, STRING, None, False),
            ("uuid", 2, BYTES, None, False),
            ("version", 3, UINT32, None, False),
        ),
    },
}

_NESTED_ENUMS: Final[dict[str, dict[str, type[IntEnum]]]] = {
    "CnNodeNotification": {"NodeModeType": NodeMode},
}


def _add_enum(container: Any, name: str, members: Iterable[IntEnum]) -> None:
    enum = container.add(name=name)
    for member in members:
        enum.value.add(name=member.name, number=member.value)


def _add_fields(msg: descriptor_pb2.DescriptorProto, fields: Iterable[_FieldT]) -> None:
    for name, number, type_, type_name, optional in fields:
        field = msg.field.add(
            name=name, number=number, type=type_, label=_FDP.LABEL_OPTIONAL
        )
        if type_name:
            field.type_name = type_name

        if optional:  # a proto3 'optional' has a synthetic oneof
            field.proto3_optional = True
            field.oneof_index = len(msg.oneof_decl)
            msg.oneof_decl.add(name=f"_{name}")


def _build_file() -> descriptor_pb2.FileDescriptorProto:
    """Return the descriptor of the gateway's .proto file."""

    fdp = descriptor_pb2.FileDescriptorProto(
        name=PROTO_FILE, package=PACKAGE, syntax="proto3"
    )

    _add_enum(fdp.enum_type, "Opcode", Opcode)
    _add_enum(fdp.enum_type, "Result", Result)

    for name, fields in _MESSAGES.items():
        msg = fdp.message_type.add(name=name)

        for nested_name, nested_fields in _NESTED_MESSAGES.get(name, {}).items():
            _add_fields(msg.nested_type.add(name=nested_name), nested_fields)
        for enum_name, enum_cls in _NESTED_ENUMS.get(name, {}).items():
            _add_enum(msg.enum_type, enum_name, enum_cls)

        _add_fields(msg, fields)

    return fdp


_POOL: Final = descriptor_pool.DescriptorPool()
_POOL.AddSerializedFile(_build_file().SerializeToString())


def _message_class(name: str) -> type[PbMessage]:
    return message_factory.GetMessageClass(  # type: ignore[no-any-return]
        _POOL.FindMessageTypeByName(f"{PACKAGE}.{name}")
    )


GatewayOperation = _message_class("GatewayOperation")
GatewayDiscovery = _message_class("GatewayDiscovery")

RegisterDeviceRequest = _message_class("RegisterDeviceRequest")
StartSessionRequest = _message_class("StartSessionRequest")
StartSessionConfirm = _message_class("StartSessionConfirm")
VersionConfirm = _message_class("VersionConfirm")
CnTimeRequest = _message_class("CnTimeRequest")
CnTimeConfirm = _message_class("CnTimeConfirm")
CnNodeNotification = _message_class("CnNodeNotification")
CnAlarmNotification = _message_class("CnAlarmNotification")
CnRpdoRequest = _message_class("CnRpdoRequest")
CnRpdoNotification = _message_class("CnRpdoNotification")
CnRmiRequest = _message_class("CnRmiRequest")
CnRmiResponse = _message_class("CnRmiResponse")
CnRmiAsyncRequest = _message_class("CnRmiAsyncRequest")
CnRmiAsyncConfirm = _message_class("CnRmiAsyncConfirm")
CnRmiAsyncResponse = _message_class("CnRmiAsyncResponse")
NullMessage = _message_class("NullMessage")


# the body schema of each opcode, those absent here have a NullMessage body
_OPCODE_MESSAGES: Final[dict[Opcode, type[PbMessage]]] = {
    Opcode.REGISTER_DEVICE_REQUEST: RegisterDeviceRequest,
    Opcode.START_SESSION_REQUEST: StartSessionRequest,
    Opcode.START_SESSION_CONFIRM: StartSessionConfirm,
    Opcode.VERSION_CONFIRM: VersionConfirm,
    Opcode.CN_TIME_REQUEST: CnTimeRequest,
    Opcode.CN_TIME_CONFIRM: CnTimeConfirm,
    Opcode.CN_NODE_NOTIFICATION: CnNodeNotification,
    Opcode.CN_ALARM_NOTIFICATION: CnAlarmNotification,
    Opcode.CN_RPDO_REQUEST: CnRpdoRequest,
    Opcode.CN_RPDO_NOTIFICATION: CnRpdoNotification,
    Opcode.CN_RMI_REQUEST: CnRmiRequest,
    Opcode.CN_RMI_RESPONSE: CnRmiResponse,
    Opcode.CN_RMI_ASYNC_REQUEST: CnRmiAsyncRequest,
    Opcode.CN_RMI_ASYNC_CONFIRM: CnRmiAsyncConfirm,
    Opcode.CN_RMI_ASYNC_RESPONSE: CnRmiAsyncResponse,
}

OPCODE_MESSAGES: Final[dict[Opcode, type[PbMessage]]] = {
    o: _OPCODE_MESSAGES.get(o, NullMessage) for o in Opcode if o != Opcode.NO_OPERATION
}

BodyT: TypeAlias = PbMessage | Mapping[str, Any] | None


def message_class(opcode: int) -> type[PbMessage]:
    """Return the body schema of an opcode."""
    try:
        return OPCODE_MESSAGES[Opcode(opcode)]
    except (KeyError, ValueError) as err:
        raise exc.UnsupportedOpcode(
            f"No message schema for opcode {opcode_name(opcode)}"
        ) from err


def encode_body(opcode: int, data: BodyT = None) -> bytes:
    """Return the serialised body of an opcode.

    The body can be a message (of the opcode's schema), or a dict of its fields.
    """

    cls = message_class(opcode)

    if data is None:
        return cls().SerializeToString()  # type: ignore[no-any-return]

    if isinstance(data, PbMessage):
        if not isinstance(data, cls):
            raise TypeError(
                f"Invalid body for {opcode_name(opcode)}: "
                f"expected {cls.DESCRIPTOR.name}, got {data.DESCRIPTOR.name}"
            )
        return data.SerializeToString()  # type: ignore[no-any-return]

    try:
        return cls(**data).SerializeToString()  # type: ignore[no-any-return]
    except (TypeError, ValueError) as err:  # unknown field, wrong type
        raise TypeError(f"Invalid body for {opcode_name(opcode)}: {err}") from err


def decode_body(opcode: int, data: bytes) -> PbMessage:
    """Return the deserialised body of an opcode."""

    cls = message_class(opcode)
    try:
        return cls.FromString(data)  # type: ignore[no-any-return]
    except DecodeError as err:
        raise exc.ProtocolError(
            f"Invalid body for {opcode_name(opcode)}: {err}"
        ) from err


def new_operation(
    opcode: int,
    id_: int,
    result: int | None = None,
    description: str | None = None,
) -> PbMessage:
    """Return a GatewayOperation (the result/description are optional)."""

    operation = GatewayOperation(opcode=opcode, id=id_)
    if result is not None:
        operation.result = result
    if description is not None:
        operation.description = description
    return operation  # type: ignore[no-any-return]


def encode_operation(
    opcode: int,
    id_: int,
    result: int | None = None,
    description: str | None = None,
) -> bytes:
    """Return a serialised GatewayOperation."""
    return new_operation(  # type: ignore[no-any-return]
        opcode, id_, result=result, description=description
    ).SerializeToString()


def decode_operation(data: bytes) -> PbMessage:
    """Return a deserialised GatewayOperation."""

    try:
        return GatewayOperation.FromString(data)  # type: ignore[no-any-return]
    except DecodeError as err:
        raise exc.ProtocolError(f"Invalid operation: {err}") from err
