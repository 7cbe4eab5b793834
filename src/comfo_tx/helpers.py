#!/usr/bin/env python3
"""ComfoControl - Protocol/Transport layer - Helper functions."""

from __future__ import annotations

import ipaddress
import logging
import socket
from datetime import datetime as dt, timedelta as td
from typing import Final

import psutil

_LOGGER = logging.getLogger(__name__)


# the gateway counts its time in seconds since this epoch (in local time)
GATEWAY_EPOCH: Final = dt(2000, 1, 1)


def hostname() -> str:
    """Return the hostname of this machine (the default name of this client)."""
    return socket.gethostname()


def broadcast_addresses() -> list[str]:
    """Return the broadcast addresses of each of the (non-loopback) IPv4 interfaces."""

    result: list[str] = []

    for name, addrs in psutil.net_if_addrs().items():
        for addr in addrs:
            if addr.family != socket.AF_INET or not addr.netmask:
                continue

            try:
                if ipaddress.IPv4Address(addr.address).is_loopback:
                    continue
                network = ipaddress.IPv4Network(
                    f"{addr.address}/{addr.netmask}", strict=False
                )
            except ValueError as err:
                _LOGGER.debug("Ignoring interface %s (%s): %s", name, addr.address, err)
                continue

            broadcast = addr.broadcast or str(network.broadcast_address)
            if broadcast not in result:
                result.append(broadcast)

    return result


def dt_from_gateway_time(seconds: int) -> dt:
    """Return the datetime of a gateway timestamp (seconds since 2000-01-01)."""
    return GATEWAY_EPOCH + td(seconds=seconds)


def mac_from_uuid(uuid: str) -> str:
    """Return the MAC address of a gateway, i.e. the low 6 bytes of its UUID (hex)."""
    return uuid[-12:]
