#!/usr/bin/env python3
"""ComfoControl - the (RPDO) properties of the ventilation unit.

A property is a data point that is pushed by the device to a subscriber whenever it
changes. Only the better-understood properties are listed here.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Callable
from typing import Final, TypeAlias

from comfo_tx.values import ValueT, decode_value

from .const import PropertyDataType as DT

ConvertT: TypeAlias = Callable[[ValueT], ValueT | float]


def _centi(value: ValueT) -> float:
    return value / 100  # type: ignore[operator]


@dataclasses.dataclass(frozen=True, kw_only=True)
class DeviceProperty:
    """A property, with an optional hook to convert its decoded value."""

    name: str
    property_id: int
    data_type: DT
    convert: ConvertT | None = dataclasses.field(default=None, compare=False)

    def __str__(self) -> str:
        return f"{self.name} ({self.property_id})"

    def decode(self, data: bytes) -> ValueT | float:
        """Return the (converted) value of the raw bytes."""

        value = decode_value(self.data_type, data)
        return value if self.convert is None else self.convert(value)


def _prop(
    name: str, property_id: int, data_type: DT, convert: ConvertT | None = None
) -> DeviceProperty:
    return DeviceProperty(
        name=name, property_id=property_id, data_type=data_type, convert=convert
    )


# fmt: off
AWAY_INDICATOR: Final = _prop("AWAY_INDICATOR", 16, DT.UINT8)  # 01 = low/med/high, 07 = away
OPERATING_MODE_49: Final = _prop("OPERATING_MODE_49", 49, DT.UINT8)  # 01 = limited manual, 05 = unlimited manual, ff = auto
OPERATING_MODE_56: Final = _prop("OPERATING_MODE_56", 56, DT.UINT8)  # 01 = unlimited manual, ff = auto
FAN_SPEED_SETTING: Final = _prop("FAN_SPEED_SETTING", 65, DT.UINT8)  # 00 (away), 01, 02 or 03
BYPASS_ACTIVATION_MODE: Final = _prop("BYPASS_ACTIVATION_MODE", 66, DT.UINT8)  # 00 = auto, 01 = on, 02 = off
TEMPERATURE_PROFILE: Final = _prop("TEMPERATURE_PROFILE", 67, DT.UINT8)  # 00 = normal, 01 = cold, 02 = warm
COUNTDOWN_NEXT_FAN_SPEED_CHANGE: Final = _prop("COUNTDOWN_NEXT_FAN_SPEED_CHANGE", 81, DT.UINT32)  # seconds

EXHAUST_FAN_DUTY: Final = _prop("EXHAUST_FAN_DUTY", 117, DT.UINT8)  # %
SUPPLY_FAN_DUTY: Final = _prop("SUPPLY_FAN_DUTY", 118, DT.UINT8)  # %
EXHAUST_FAN_FLOW: Final = _prop("EXHAUST_FAN_FLOW", 119, DT.UINT16)  # m³/h
SUPPLY_FAN_FLOW: Final = _prop("SUPPLY_FAN_FLOW", 120, DT.UINT16)  # m³/h
EXHAUST_FAN_SPEED: Final = _prop("EXHAUST_FAN_SPEED", 121, DT.UINT16)  # rpm
SUPPLY_FAN_SPEED: Final = _prop("SUPPLY_FAN_SPEED", 122, DT.UINT16)  # rpm

CURRENT_VENTILATION_POWER_CONSUMPTION: Final = _prop("CURRENT_VENTILATION_POWER_CONSUMPTION", 128, DT.UINT16)  # W
TOTAL_YEAR_TO_DATE_POWER_CONSUMPTION: Final = _prop("TOTAL_YEAR_TO_DATE_POWER_CONSUMPTION", 129, DT.UINT16)  # kWh
TOTAL_FROM_START_POWER_CONSUMPTION: Final = _prop("TOTAL_FROM_START_POWER_CONSUMPTION", 130, DT.UINT16)  # kWh

DAYS_LEFT_BEFORE_FILTER_REPLACEMENT: Final = _prop("DAYS_LEFT_BEFORE_FILTER_REPLACEMENT", 192, DT.UINT16)
CURRENT_RMOT: Final = _prop("CURRENT_RMOT", 209, DT.INT16, _centi)  # °C
TEMPERATURE_PROFILE_TARGET: Final = _prop("TEMPERATURE_PROFILE_TARGET", 212, DT.UINT16, _centi)  # °C
AVOIDED_HEATING_ACTUAL: Final = _prop("AVOIDED_HEATING_ACTUAL", 213, DT.UINT16, _centi)  # W
AVOIDED_COOLING_ACTUAL: Final = _prop("AVOIDED_COOLING_ACTUAL", 216, DT.UINT16, _centi)  # W

SUPPLY_AIR_TEMPERATURE: Final = _prop("SUPPLY_AIR_TEMPERATURE", 221, DT.INT16, _centi)  # °C
BYPASS_STATE: Final = _prop("BYPASS_STATE", 227, DT.UINT8)  # %
EXTRACT_AIR_TEMPERATURE: Final = _prop("EXTRACT_AIR_TEMPERATURE", 274, DT.INT16, _centi)  # °C
EXHAUST_AIR_TEMPERATURE: Final = _prop("EXHAUST_AIR_TEMPERATURE", 275, DT.INT16, _centi)  # °C
OUTDOOR_AIR_TEMPERATURE: Final = _prop("OUTDOOR_AIR_TEMPERATURE", 276, DT.INT16, _centi)  # °C
PREHEATED_OUTDOOR_AIR_TEMPERATURE: Final = _prop("PREHEATED_OUTDOOR_AIR_TEMPERATURE", 277, DT.INT16, _centi)  # °C

EXTRACT_AIR_HUMIDITY: Final = _prop("EXTRACT_AIR_HUMIDITY", 290, DT.UINT8)  # %
EXHAUST_AIR_HUMIDITY: Final = _prop("EXHAUST_AIR_HUMIDITY", 291, DT.UINT8)  # %
OUTDOOR_AIR_HUMIDITY: Final = _prop("OUTDOOR_AIR_HUMIDITY", 292, DT.UINT8)  # %
PREHEATED_OUTDOOR_AIR_HUMIDITY: Final = _prop("PREHEATED_OUTDOOR_AIR_HUMIDITY", 293, DT.UINT8)  # %
SUPPLY_AIR_HUMIDITY: Final = _prop("SUPPLY_AIR_HUMIDITY", 294, DT.UINT8)  # %

COMFOCOOL_COMPRESSOR_STATE: Final = _prop("COMFOCOOL_COMPRESSOR_STATE", 785, DT.BOOL)
# fmt: on


DEVICE_PROPERTIES: Final[dict[str, DeviceProperty]] = {
    p.name: p for p in globals().copy().values() if isinstance(p, DeviceProperty)
}

_PROPERTY_BY_ID: Final[dict[int, DeviceProperty]] = {
    p.property_id: p for p in DEVICE_PROPERTIES.values()
}


def get_property(property_id: int) -> DeviceProperty | None:
    """Return the (known) property with the given id."""
    return _PROPERTY_BY_ID.get(property_id)


def property_name(property_id: int) -> str:
    """Return the name of a property, or UNKNOWN if it is not known."""
    prop = _PROPERTY_BY_ID.get(property_id)
    return prop.name if prop else "UNKNOWN"


def property_by_name(name: str) -> DeviceProperty:
    """Return the property with the given name (it is not case-sensitive).

    Raise a KeyError if there is no such property.
    """
    return DEVICE_PROPERTIES[name.upper()]
