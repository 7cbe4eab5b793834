#!/usr/bin/env python3
"""ComfoControl - the RMI (remote method invocation) properties of a node.

Unlike an RPDO property, an RMI property is addressed directly (by node, unit,
subunit and property id), and is read (or written) on demand.
"""

from __future__ import annotations

import dataclasses
from typing import Final

from comfo_tx.values import ValueT, encode_value

from . import exceptions as exc
from .const import (
    DEFAULT_SUBUNIT,
    RMI_READ,
    RMI_WRITE,
    NodeType,
    PropertyDataType as DT,
    RmiUnit,
)


@dataclasses.dataclass(frozen=True, kw_only=True)
class RmiProperty:
    name: str
    node_id: int
    unit: int
    subunit: int = DEFAULT_SUBUNIT
    property_id: int
    data_type: DT
    read_write: bool = False

    def __str__(self) -> str:
        return (
            f"{self.name} ({self.node_id}/{self.unit:02X}/{self.subunit}"
            f"/{self.property_id:02X})"
        )


def read_command(prop: RmiProperty) -> bytes:
    """Return the RMI message that reads a property."""
    return bytes([RMI_READ, prop.unit, prop.subunit, prop.property_id])


def write_command(prop: RmiProperty, value: ValueT) -> bytes:
    """Return the RMI message that writes a property.

    Raise ReadOnlyProperty if the property is not writable, and ValueEncodeError if
    the value is invalid for the property's data type.
    """

    if not prop.read_write:
        raise exc.ReadOnlyProperty(f"{prop} is a read-only property")

    return bytes([RMI_WRITE, prop.unit, prop.subunit, prop.property_id]) + (
        encode_value(prop.data_type, value)
    )


def _vu(
    name: str, unit: RmiUnit, property_id: int, data_type: DT, rw: bool = False
) -> RmiProperty:  # a property of the ventilation unit
    return RmiProperty(
        name=name,
        node_id=NodeType.VENTILATION_UNIT,
        unit=unit,
        property_id=property_id,
        data_type=data_type,
        read_write=rw,
    )


_N = RmiUnit.NODE
_T = RmiUnit.TEMPHUMCONTROL
_V = RmiUnit.VENTILATIONCONFIG
_C = RmiUnit.NODECONFIGURATION

# fmt: off
SERIAL_NUMBER: Final = _vu("SERIAL_NUMBER", _N, 0x04, DT.STRING)
FIRMWARE_VERSION: Final = _vu("FIRMWARE_VERSION", _N, 0x06, DT.UINT32)
MODEL_NUMBER: Final = _vu("MODEL_NUMBER", _N, 0x08, DT.STRING)
ARTICLE_NUMBER: Final = _vu("ARTICLE_NUMBER", _N, 0x0B, DT.STRING)
CURRENT_COUNTRY: Final = _vu("CURRENT_COUNTRY", _N, 0x0D, DT.STRING)
VENTILATION_UNIT_NAME: Final = _vu("VENTILATION_UNIT_NAME", _N, 0x14, DT.STRING)

RMOT_HEATING_PERIOD: Final = _vu("RMOT_HEATING_PERIOD", _T, 0x02, DT.INT16, rw=True)
RMOT_COOLING_PERIOD: Final = _vu("RMOT_COOLING_PERIOD", _T, 0x03, DT.INT16, rw=True)
PASSIVE_TEMPERATURE_CONTROL: Final = _vu("PASSIVE_TEMPERATURE_CONTROL", _T, 0x04, DT.UINT8, rw=True)
HUMIDITY_COMFORT_CONTROL: Final = _vu("HUMIDITY_COMFORT_CONTROL", _T, 0x06, DT.UINT8, rw=True)
HUMIDITY_PROTECTION: Final = _vu("HUMIDITY_PROTECTION", _T, 0x07, DT.UINT8, rw=True)
TARGET_TEMPERATURE_HEATING: Final = _vu("TARGET_TEMPERATURE_HEATING", _T, 0x0A, DT.INT16, rw=True)
TARGET_TEMPERATURE_NORMAL: Final = _vu("TARGET_TEMPERATURE_NORMAL", _T, 0x0B, DT.INT16, rw=True)
TARGET_TEMPERATURE_COOLING: Final = _vu("TARGET_TEMPERATURE_COOLING", _T, 0x0C, DT.INT16, rw=True)

VENTILATION_SPEED_AWAY: Final = _vu("VENTILATION_SPEED_AWAY", _V, 0x03, DT.INT16, rw=True)
VENTILATION_SPEED_LOW: Final = _vu("VENTILATION_SPEED_LOW", _V, 0x04, DT.INT16, rw=True)
VENTILATION_SPEED_MEDIUM: Final = _vu("VENTILATION_SPEED_MEDIUM", _V, 0x05, DT.INT16, rw=True)
VENTILATION_SPEED_HIGH: Final = _vu("VENTILATION_SPEED_HIGH", _V, 0x06, DT.INT16, rw=True)
HEIGHT_ABOVE_SEA_LEVEL: Final = _vu("HEIGHT_ABOVE_SEA_LEVEL", _V, 0x07, DT.UINT8)
VENTILATION_CONTROL_MODE: Final = _vu("VENTILATION_CONTROL_MODE", _V, 0x09, DT.UINT8)
BATHROOM_SWITCH_ACTIVATION_DELAY: Final = _vu("BATHROOM_SWITCH_ACTIVATION_DELAY", _V, 0x0B, DT.INT16)
BATHROOM_SWITCH_DEACTIVATION_DELAY: Final = _vu("BATHROOM_SWITCH_DEACTIVATION_DELAY", _V, 0x0C, DT.UINT8)
BATHROOM_SWITCH_MODE: Final = _vu("BATHROOM_SWITCH_MODE", _V, 0x0D, DT.UINT8)
UNBALANCE: Final = _vu("UNBALANCE", _V, 0x12, DT.INT16)

MAINTAINER_PASSWORD: Final = _vu("MAINTAINER_PASSWORD", _C, 0x03, DT.STRING)
ORIENTATION: Final = _vu("ORIENTATION", _C, 0x04, DT.UINT8)
# fmt: on


RMI_PROPERTIES: Final[dict[str, RmiProperty]] = {
    p.name: p for p in globals().copy().values() if isinstance(p, RmiProperty)
}


def rmi_property_by_name(name: str) -> RmiProperty:
    """Return the RMI property with the given name (it is not case-sensitive).

    Raise a KeyError if there is no such property.
    """
    return RMI_PROPERTIES[name.upper()]
