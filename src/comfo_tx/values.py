#!/usr/bin/env python3
"""ComfoControl - the property value codec.

Converts between the raw bytes of a property and its (unscaled) native value. All
multi-byte integers are little-endian.
"""

from __future__ import annotations

import logging
import struct
from typing import Final, TypeAlias

from . import exceptions as exc
from .const import PropertyDataType

_LOGGER = logging.getLogger(__name__)


ValueT: TypeAlias = bool | int | str

# the fixed-width types, and their struct format
_STRUCTS: Final[dict[PropertyDataType, struct.Struct]] = {
    PropertyDataType.UINT8: struct.Struct("<B"),
    PropertyDataType.UINT16: struct.Struct("<H"),
    PropertyDataType.UINT32: struct.Struct("<I"),
    PropertyDataType.INT8: struct.Struct("<b"),
    PropertyDataType.INT16: struct.Struct("<h"),
    PropertyDataType.INT32: struct.Struct("<i"),
    PropertyDataType.INT64: struct.Struct("<q"),
    PropertyDataType.TIME: struct.Struct("<I"),
}

_TEXT_TYPES: Final = (PropertyDataType.STRING, PropertyDataType.VERSION)


def _data_type(data_type: int) -> PropertyDataType:
    try:
        return PropertyDataType(data_type)
    except ValueError as err:
        raise ValueError(f"Unknown property data type: {data_type}") from err


def value_width(data_type: int) -> int | None:
    """Return the width (in bytes) of a data type, or None if it is variable."""

    data_type = _data_type(data_type)
    if data_type == PropertyDataType.BOOL:
        return 1
    if data_type in _TEXT_TYPES:
        return None
    return _STRUCTS[data_type].size


def decode_value(data_type: int, data: bytes) -> ValueT:
    """Return the native value of a property, from its raw bytes.

    Any bytes beyond the width of a fixed-width type are ignored.
    """

    data_type = _data_type(data_type)

    if data_type in _TEXT_TYPES:
        try:
            return bytes(data).decode("utf-8")
        except UnicodeDecodeError as err:
            raise exc.ValueDecodeError(
                f"Invalid {data_type.name} value: {bytes(data).hex()}"
            ) from err

    if data_type == PropertyDataType.BOOL:
        if len(data) < 1:
            raise exc.ValueDecodeError(f"Invalid {data_type.name} value: no bytes")
        return data[0] == 1

    fmt = _STRUCTS[data_type]
    if len(data) < fmt.size:
        raise exc.ValueDecodeError(
            f"Invalid {data_type.name} value: expected {fmt.size} bytes,"
            f" got {len(data)} ({bytes(data).hex()})"
        )
    return fmt.unpack_from(data)[0]  # type: ignore[no-any-return]


def encode_value(data_type: int, value: ValueT) -> bytes:
    """Return the raw bytes of a property, from its native value."""

    data_type = _data_type(data_type)

    if data_type in _TEXT_TYPES:
        if not isinstance(value, str):
            raise exc.ValueEncodeError(
                f"Invalid {data_type.name} value: {value!r} is not a string"
            )
        return value.encode("utf-8")

    if data_type == PropertyDataType.BOOL:
        return b"\x01" if value else b"\x00"

    if isinstance(value, bool) or not isinstance(value, int):
        raise exc.ValueEncodeError(
            f"Invalid {data_type.name} value: {value!r} is not an integer"
        )

    try:
        return _STRUCTS[data_type].pack(value)
    except struct.error as err:
        raise exc.ValueEncodeError(
            f"Invalid {data_type.name} value: {value} is out of range"
        ) from err
