#!/usr/bin/env python3
"""ComfoControl - a ComfoConnect LAN C protocol client.

Schema processor for protocol (lower) layer.
"""

from __future__ import annotations

import logging
from typing import Any, Final, TypedDict

import voluptuous as vol

from .const import (
    CLIENT_UUID,
    DEFAULT_CONNECT_TIMEOUT,
    DEFAULT_DISCOVERY_TIMEOUT,
    DEFAULT_KEEP_ALIVE_INTERVAL,
    DISCOVERY_PORT,
    GATEWAY_PORT,
    MIN_KEEP_ALIVE_INTERVAL,
    SZ_ADDRESS,
    SZ_BROADCAST_ADDRESSES,
    SZ_CLIENT_UUID,
    SZ_CONNECT_TIMEOUT,
    SZ_KEEP_ALIVE_INTERVAL,
    SZ_LIMIT,
    SZ_PORT,
    SZ_TIMEOUT,
    SZ_UUID,
)

_LOGGER = logging.getLogger(__name__)


DEVICE_UUID_REGEX: Final = r"^[0-9a-fA-F]{32}$"
CLIENT_UUID_REGEX: Final = r"^[0-9a-fA-F]{1,32}$"

SCH_DEVICE_UUID = vol.All(
    str, vol.Match(DEVICE_UUID_REGEX, msg="expected 32 hex characters"), str.lower
)
SCH_CLIENT_UUID = vol.All(
    str, vol.Match(CLIENT_UUID_REGEX, msg="expected up to 32 hex characters"), str.lower
)
SCH_PORT = vol.All(int, vol.Range(min=1, max=65535))


def normalise_keep_alive(value: float) -> float:
    """Return the keep-alive interval, raised to its floor."""
    return max(value, MIN_KEEP_ALIVE_INTERVAL)


#
# 1/2: Transport (TCP) configuration
class TransportConfigT(TypedDict):
    address: str
    uuid: str
    port: int
    client_uuid: str
    keep_alive_interval: float
    connect_timeout: float


SCH_TRANSPORT_DICT: Final[dict[vol.Marker, Any]] = {
    vol.Required(SZ_ADDRESS): vol.All(str, vol.Length(min=1)),
    vol.Required(SZ_UUID): SCH_DEVICE_UUID,
    vol.Optional(SZ_PORT, default=GATEWAY_PORT): SCH_PORT,
    vol.Optional(SZ_CLIENT_UUID, default=CLIENT_UUID): SCH_CLIENT_UUID,
    vol.Optional(SZ_KEEP_ALIVE_INTERVAL, default=DEFAULT_KEEP_ALIVE_INTERVAL): vol.All(
        vol.Coerce(float), vol.Range(min=0), normalise_keep_alive
    ),
    vol.Optional(SZ_CONNECT_TIMEOUT, default=DEFAULT_CONNECT_TIMEOUT): vol.All(
        vol.Coerce(float), vol.Range(min=0, min_included=False)
    ),
}

SCH_TRANSPORT_CONFIG = vol.Schema(SCH_TRANSPORT_DICT, extra=vol.PREVENT_EXTRA)


#
# 2/2: Discovery (UDP) configuration
class DiscoveryConfigT(TypedDict):
    timeout: float
    limit: int | None
    port: int
    broadcast_addresses: list[str] | None


SCH_DISCOVERY_CONFIG = vol.Schema(
    {
        vol.Optional(SZ_TIMEOUT, default=DEFAULT_DISCOVERY_TIMEOUT): vol.All(
            vol.Coerce(float), vol.Range(min=0, min_included=False)
        ),
        vol.Optional(SZ_LIMIT, default=None): vol.Any(
            None, vol.All(int, vol.Range(min=1))
        ),
        vol.Optional(SZ_PORT, default=DISCOVERY_PORT): SCH_PORT,
        vol.Optional(SZ_BROADCAST_ADDRESSES, default=None): vol.Any(
            None, vol.All([vol.All(str, vol.Length(min=1))], vol.Length(min=1))
        ),
    },
    extra=vol.PREVENT_EXTRA,
)
