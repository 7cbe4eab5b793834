#!/usr/bin/env python3
"""ComfoControl - a ComfoConnect LAN C protocol client.

Schema processor for the application (upper) layer.
"""

from __future__ import annotations

import logging
from typing import Final

import voluptuous as vol

from comfo_tx.const import DEFAULT_PIN, DEFAULT_REQUEST_TIMEOUT
from comfo_tx.helpers import hostname
from comfo_tx.schemas import SCH_TRANSPORT_DICT, TransportConfigT

from .const import SZ_DEVICE_NAME, SZ_PIN, SZ_REQUEST_TIMEOUT

_LOGGER = logging.getLogger(__name__)


MAX_PIN: Final[int] = 9999


class ClientConfigT(TransportConfigT):
    pin: int
    device_name: str
    request_timeout: float


SCH_CLIENT_CONFIG = vol.Schema(
    {
        **SCH_TRANSPORT_DICT,
        vol.Optional(SZ_PIN, default=DEFAULT_PIN): vol.All(
            int, vol.Range(min=0, max=MAX_PIN)
        ),
        vol.Optional(SZ_DEVICE_NAME, default=hostname): vol.All(
            str, vol.Length(min=1)
        ),
        vol.Optional(SZ_REQUEST_TIMEOUT, default=DEFAULT_REQUEST_TIMEOUT): vol.All(
            vol.Coerce(float), vol.Range(min=0, min_included=False)
        ),
    },
    extra=vol.PREVENT_EXTRA,
)
