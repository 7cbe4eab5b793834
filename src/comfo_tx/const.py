#!/usr/bin/env python3
"""ComfoControl - a ComfoConnect LAN C protocol client."""

from __future__ import annotations

from enum import EnumCheck, IntEnum, verify
from typing import Final

# used by the envelope codec...
HEADER_LENGTH: Final[int] = 38  # every envelope starts with this many bytes
UUID_HEX_LENGTH: Final[int] = 32  # 16 bytes, as hex
LENGTH_FIELD_SIZE: Final[int] = 4  # total_length excludes itself

# the app's default client UUID: the gateway may refuse any other
CLIENT_UUID: Final[str] = "20200428000000000000000009080408"

# used by transport...
GATEWAY_PORT: Final[int] = 56747
DEFAULT_KEEP_ALIVE_INTERVAL: Final[float] = 30.0  # seconds
MIN_KEEP_ALIVE_INTERVAL: Final[float] = 5.0
DEFAULT_CONNECT_TIMEOUT: Final[float] = 10.0

# used by the client (request/response correlation)...
DEFAULT_REQUEST_TIMEOUT: Final[float] = 15.0
DEFAULT_PIN: Final[int] = 0

# used by discovery...
DISCOVERY_PORT: Final[int] = GATEWAY_PORT
DEFAULT_DISCOVERY_TIMEOUT: Final[float] = 30.0
DISCOVERY_BROADCAST_INTERVAL: Final[float] = 2.0

SZ_ADDRESS: Final = "address"
SZ_BROADCAST_ADDRESSES: Final = "broadcast_addresses"
SZ_CLIENT_UUID: Final = "client_uuid"
SZ_CONNECT_TIMEOUT: Final = "connect_timeout"
SZ_DEVICE_NAME: Final = "device_name"
SZ_KEEP_ALIVE_INTERVAL: Final = "keep_alive_interval"
SZ_LIMIT: Final = "limit"
SZ_PIN: Final = "pin"
SZ_PORT: Final = "port"
SZ_REQUEST_TIMEOUT: Final = "request_timeout"
SZ_TIMEOUT: Final = "timeout"
SZ_UUID: Final = "uuid"


@verify(EnumCheck.UNIQUE)
class Opcode(IntEnum):
    """The operation codes of the gateway protocol.

    NO_OPERATION must remain the first member (the zero value of the wire enum).
    """

    NO_OPERATION = 0

    SET_ADDRESS_REQUEST = 1
    REGISTER_DEVICE_REQUEST = 2
    START_SESSION_REQUEST = 3
    CLOSE_SESSION_REQUEST = 4
    LIST_REGISTERED_APPS_REQUEST = 5
    UNREGISTER_DEVICE_REQUEST = 6
    CHANGE_PIN_REQUEST = 7
    GET_REMOTE_ACCESS_ID_REQUEST = 8
    SET_REMOTE_ACCESS_ID_REQUEST = 9
    GET_SUPPORT_ID_REQUEST = 10
    SET_SUPPORT_ID_REQUEST = 11
    GET_WEB_ID_REQUEST = 12
    SET_WEB_ID_REQUEST = 13
    SET_PUSH_ID_REQUEST = 14
    DEBUG_REQUEST = 15
    UPGRADE_REQUEST = 16
    SET_DEVICE_SETTINGS_REQUEST = 17
    VERSION_REQUEST = 18

    SET_ADDRESS_CONFIRM = 51
    REGISTER_DEVICE_CONFIRM = 52
    START_SESSION_CONFIRM = 53
    CLOSE_SESSION_CONFIRM = 54
    LIST_REGISTERED_APPS_CONFIRM = 55
    UNREGISTER_DEVICE_CONFIRM = 56
    CHANGE_PIN_CONFIRM = 57
    GET_REMOTE_ACCESS_ID_CONFIRM = 58
    SET_REMOTE_ACCESS_ID_CONFIRM = 59
    GET_SUPPORT_ID_CONFIRM = 60
    SET_SUPPORT_ID_CONFIRM = 61
    GET_WEB_ID_CONFIRM = 62
    SET_WEB_ID_CONFIRM = 63
    SET_PUSH_ID_CONFIRM = 64
    DEBUG_CONFIRM = 65
    UPGRADE_CONFIRM = 66
    SET_DEVICE_SETTINGS_CONFIRM = 67
    VERSION_CONFIRM = 68

    GATEWAY_NOTIFICATION = 100
    KEEP_ALIVE = 101
    FACTORY_RESET = 102

    CN_TIME_REQUEST = 30
    CN_TIME_CONFIRM = 31
    CN_NODE_REQUEST = 42
    CN_NODE_NOTIFICATION = 32
    CN_RMI_REQUEST = 33
    CN_RMI_RESPONSE = 34
    CN_RMI_ASYNC_REQUEST = 35
    CN_RMI_ASYNC_CONFIRM = 36
    CN_RMI_ASYNC_RESPONSE = 37
    CN_RPDO_REQUEST = 38
    CN_RPDO_CONFIRM = 39
    CN_RPDO_NOTIFICATION = 40
    CN_ALARM_NOTIFICATION = 41

    CN_FUP_READ_REGISTER_REQUEST = 70
    CN_FUP_READ_REGISTER_CONFIRM = 71
    CN_FUP_PROGRAM_BEGIN_REQUEST = 72
    CN_FUP_PROGRAM_BEGIN_CONFIRM = 73
    CN_FUP_PROGRAM_REQUEST = 74
    CN_FUP_PROGRAM_CONFIRM = 75
    CN_FUP_PROGRAM_END_REQUEST = 76
    CN_FUP_PROGRAM_END_CONFIRM = 77
    CN_FUP_READ_REQUEST = 78
    CN_FUP_READ_CONFIRM = 79
    CN_FUP_RESET_REQUEST = 80
    CN_FUP_RESET_CONFIRM = 81


@verify(EnumCheck.UNIQUE)
class Result(IntEnum):
    """The result codes of a confirm (absent means OK)."""

    OK = 0
    BAD_REQUEST = 1
    INTERNAL_ERROR = 2
    NOT_REACHABLE = 3
    OTHER_SESSION = 4
    NOT_ALLOWED = 5
    NO_RESOURCES = 6
    NOT_EXIST = 7
    RMI_ERROR = 8


# request opcode -> the confirm opcode it elicits (NO_OPERATION: no confirm)
CONFIRM_OPCODES: Final[dict[Opcode, Opcode]] = {
    Opcode.SET_ADDRESS_REQUEST: Opcode.SET_ADDRESS_CONFIRM,
    Opcode.REGISTER_DEVICE_REQUEST: Opcode.REGISTER_DEVICE_CONFIRM,
    Opcode.START_SESSION_REQUEST: Opcode.START_SESSION_CONFIRM,
    Opcode.CLOSE_SESSION_REQUEST: Opcode.CLOSE_SESSION_CONFIRM,
    Opcode.LIST_REGISTERED_APPS_REQUEST: Opcode.LIST_REGISTERED_APPS_CONFIRM,
    Opcode.UNREGISTER_DEVICE_REQUEST: Opcode.UNREGISTER_DEVICE_CONFIRM,
    Opcode.CHANGE_PIN_REQUEST: Opcode.CHANGE_PIN_CONFIRM,
    Opcode.GET_REMOTE_ACCESS_ID_REQUEST: Opcode.GET_REMOTE_ACCESS_ID_CONFIRM,
    Opcode.SET_REMOTE_ACCESS_ID_REQUEST: Opcode.SET_REMOTE_ACCESS_ID_CONFIRM,
    Opcode.GET_SUPPORT_ID_REQUEST: Opcode.GET_SUPPORT_ID_CONFIRM,
    Opcode.SET_SUPPORT_ID_REQUEST: Opcode.SET_SUPPORT_ID_CONFIRM,
    Opcode.GET_WEB_ID_REQUEST: Opcode.GET_WEB_ID_CONFIRM,
    Opcode.SET_WEB_ID_REQUEST: Opcode.SET_WEB_ID_CONFIRM,
    Opcode.SET_PUSH_ID_REQUEST: Opcode.SET_PUSH_ID_CONFIRM,
    Opcode.DEBUG_REQUEST: Opcode.DEBUG_CONFIRM,
    Opcode.UPGRADE_REQUEST: Opcode.UPGRADE_CONFIRM,
    Opcode.SET_DEVICE_SETTINGS_REQUEST: Opcode.SET_DEVICE_SETTINGS_CONFIRM,
    Opcode.VERSION_REQUEST: Opcode.VERSION_CONFIRM,
    Opcode.CN_TIME_REQUEST: Opcode.CN_TIME_CONFIRM,
    Opcode.CN_NODE_REQUEST: Opcode.NO_OPERATION,  # replies are notifications
    Opcode.CN_RMI_REQUEST: Opcode.CN_RMI_RESPONSE,
    Opcode.CN_RMI_ASYNC_REQUEST: Opcode.CN_RMI_ASYNC_CONFIRM,
    Opcode.CN_RPDO_REQUEST: Opcode.CN_RPDO_CONFIRM,
    Opcode.CN_FUP_READ_REGISTER_REQUEST: Opcode.CN_FUP_READ_REGISTER_CONFIRM,
    Opcode.CN_FUP_PROGRAM_BEGIN_REQUEST: Opcode.CN_FUP_PROGRAM_BEGIN_CONFIRM,
    Opcode.CN_FUP_PROGRAM_REQUEST: Opcode.CN_FUP_PROGRAM_CONFIRM,
    Opcode.CN_FUP_PROGRAM_END_REQUEST: Opcode.CN_FUP_PROGRAM_END_CONFIRM,
    Opcode.CN_FUP_READ_REQUEST: Opcode.CN_FUP_READ_CONFIRM,
    Opcode.CN_FUP_RESET_REQUEST: Opcode.CN_FUP_RESET_CONFIRM,
    Opcode.KEEP_ALIVE: Opcode.NO_OPERATION,
    Opcode.FACTORY_RESET: Opcode.NO_OPERATION,
}

# these may be sent without an active session
SESSION_EXEMPT_OPCODES: Final[tuple[Opcode, ...]] = (
    Opcode.REGISTER_DEVICE_REQUEST,
    Opcode.START_SESSION_REQUEST,
    Opcode.KEEP_ALIVE,
)


def opcode_name(opcode: int) -> str:
    """Return the name of an opcode, or its number if it is not known."""
    try:
        return Opcode(opcode).name
    except ValueError:
        return f"OPCODE_{opcode}"


def result_name(result: int) -> str:
    """Return the name of a result code, or its number if it is not known."""
    try:
        return Result(result).name
    except ValueError:
        return f"RESULT_{result}"


@verify(EnumCheck.UNIQUE)
class NodeMode(IntEnum):
    """The mode of a ComfoNet node, as per its node notification."""

    NODE_LEGACY = 0
    NODE_OFFLINE = 1
    NODE_NORMAL = 2
    NODE_UPDATE = 3


@verify(EnumCheck.UNIQUE)
class PropertyDataType(IntEnum):
    """The data types of property values (as used by the device)."""

    BOOL = 0  # 00 (False), 01 (True)
    UINT8 = 1
    UINT16 = 2  # 3412 = 0x1234
    UINT32 = 3  # 78563412 = 0x12345678
    INT8 = 5
    INT16 = 6
    INT32 = 7
    INT64 = 8
    STRING = 9
    TIME = 10  # seconds
    VERSION = 11
