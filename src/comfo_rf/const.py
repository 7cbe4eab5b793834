#!/usr/bin/env python3
"""ComfoControl - the application layer (session, properties, RMI)."""

from __future__ import annotations

from enum import EnumCheck, IntEnum, verify
from typing import Final

from comfo_tx.const import (  # noqa: F401
    CLIENT_UUID as CLIENT_UUID,
    DEFAULT_PIN as DEFAULT_PIN,
    DEFAULT_REQUEST_TIMEOUT as DEFAULT_REQUEST_TIMEOUT,
    SZ_DEVICE_NAME as SZ_DEVICE_NAME,
    SZ_PIN as SZ_PIN,
    SZ_REQUEST_TIMEOUT as SZ_REQUEST_TIMEOUT,
    NodeMode as NodeMode,
    Opcode as Opcode,
    PropertyDataType as PropertyDataType,
    Result as Result,
)

# RPDO subscriptions are made in this zone, and never expire
RPDO_ZONE: Final[int] = 1
RPDO_TIMEOUT: Final[int] = 0

# the first byte of an RMI message
RMI_READ: Final[int] = 0x01
RMI_WRITE: Final[int] = 0x03

DEFAULT_SUBUNIT: Final[int] = 1


class SessionState(IntEnum):
    NONE = 0
    REGISTERING = 1
    ACTIVE = 2


@verify(EnumCheck.UNIQUE)
class NodeProductType(IntEnum):
    """The product types of the nodes on the ComfoNet bus."""

    COMFOAIR_Q = 1  # the ventilation unit
    COMFOSENSE = 2  # ComfoSense C
    COMFOSWITCH = 3  # ComfoSwitch C
    OPTION_BOX = 4
    ZEHNDER_GATEWAY = 5  # ComfoConnect LAN C
    COMFOCOOL = 6  # ComfoCool Q600
    KNX_GATEWAY = 7  # ComfoConnect KNX C
    SERVICE_TOOL = 8
    PT_TOOL = 9  # production test tool
    DVT_TOOL = 10  # design verification test tool


def product_type_name(product_id: int) -> str:
    try:
        return NodeProductType(product_id).name
    except ValueError:
        return f"PRODUCT_{product_id}"


@verify(EnumCheck.UNIQUE)
class NodeType(IntEnum):
    """The node ids of the RMI targets."""

    VENTILATION_UNIT = 1
    OPTION_BOX = 2
    COMFOCONTROL_GATEWAY = 55


@verify(EnumCheck.UNIQUE)
class RmiErrorCode(IntEnum):
    NO_ERROR = 0
    UNKNOWN_COMMAND = 11
    UNKNOWN_UNIT = 12
    UNKNOWN_SUBUNIT = 13
    UNKNOWN_PROPERTY = 14
    TYPE_CANNOT_HAVE_RANGE = 15
    VALUE_NOT_IN_RANGE = 30
    PROPERTY_NOT_GETTABLE_OR_SETTABLE = 32
    INTERNAL_ERROR = 40
    INTERNAL_ERROR_COMMAND_WRONG = 41


def rmi_error_name(code: int) -> str:
    try:
        return RmiErrorCode(code).name
    except ValueError:
        return f"RMI_ERROR_{code}"


@verify(EnumCheck.UNIQUE)
class RmiUnit(IntEnum):
    """The units of a node, each with one or more subunits (shown in brackets)."""

    NODE = 0x01  # serial number, firmware version, etc. (1)
    COMFOBUS = 0x02  # the ids of connected devices (1)
    ERROR = 0x03  # stored errors, which can be reset (1)
    SCHEDULE = 0x15  # timers, the schedule, levels, bypass (10)
    VALVE = 0x16  # bypass, preheater and extract (2)
    FAN = 0x17  # the supply/exhaust fans (2)
    POWERSENSOR = 0x18  # actual/accumulated wattage (1)
    PREHEATER = 0x19  # the optional preheater (1)
    HMI = 0x1A  # the display and buttons (1)
    RFCOMMUNICATION = 0x1B  # wireless communication with attached devices (1)
    FILTER = 0x1C  # days since the last filter change (1)
    TEMPHUMCONTROL = 0x1D  # target temperature, heating/cooling period (1)
    VENTILATIONCONFIG = 0x1E  # ventilation configuration (1)
    NODECONFIGURATION = 0x20  # (1)
    TEMPERATURESENSOR = 0x21  # (6)
    HUMIDITYSENSOR = 0x22  # (6)
    PRESSURESENSOR = 0x23  # (2)
    PERIPHERALS = 0x24  # the attached ComfoCool, peripheral errors (1)
    ANALOGINPUT = 0x25  # the analog inputs, and their scaling (4)
    COOKERHOOD = 0x26  # (1)
    POSTHEATER = 0x27  # the optional post heater (1)
    COMFOFOND = 0x28  # (1)
