#!/usr/bin/env python3
"""ComfoControl - Test the config schemas."""

import socket

import pytest
import voluptuous as vol

from comfo_rf.schemas import SCH_CLIENT_CONFIG
from comfo_tx import SCH_DISCOVERY_CONFIG, SCH_TRANSPORT_CONFIG

from .helpers import DEVICE_UUID

MINIMAL_CONFIG = {"address": "192.168.1.213", "uuid": DEVICE_UUID}


def test_transport_defaults() -> None:
    config = SCH_TRANSPORT_CONFIG(MINIMAL_CONFIG)

    assert config == {
        "address": "192.168.1.213",
        "uuid": DEVICE_UUID,
        "port": 56747,
        "client_uuid": "20200428000000000000000009080408",
        "keep_alive_interval": 30.0,
        "connect_timeout": 10.0,
    }


@pytest.mark.parametrize(
    "value, expected", ((0, 5.0), (1, 5.0), (5, 5.0), ("60", 60.0))
)
def test_keep_alive_interval(value: int | str, expected: float) -> None:
    config = SCH_TRANSPORT_CONFIG({**MINIMAL_CONFIG, "keep_alive_interval": value})
    assert config["keep_alive_interval"] == expected


@pytest.mark.parametrize(
    "extra",
    (
        {"uuid": "0123"},
        {"uuid": DEVICE_UUID + "00"},
        {"address": ""},
        {"port": 0},
        {"port": 65536},
        {"client_uuid": "not-hex"},
        {"keep_alive_interval": -1},
        {"connect_timeout": 0},
        {"xxx": None},
    ),
)
def test_transport_invalid(extra: dict) -> None:
    with pytest.raises(vol.Invalid):
        SCH_TRANSPORT_CONFIG({**MINIMAL_CONFIG, **extra})


def test_client_defaults() -> None:
    config = SCH_CLIENT_CONFIG({**MINIMAL_CONFIG, "uuid": DEVICE_UUID.upper()})

    assert config["uuid"] == DEVICE_UUID
    assert config["pin"] == 0
    assert config["device_name"] == socket.gethostname()
    assert config["request_timeout"] == 15.0


@pytest.mark.parametrize(
    "extra",
    (
        {"pin": -1},
        {"pin": 10000},
        {"pin": "1234"},
        {"device_name": ""},
        {"request_timeout": 0},
    ),
)
def test_client_invalid(extra: dict) -> None:
    with pytest.raises(vol.Invalid):
        SCH_CLIENT_CONFIG({**MINIMAL_CONFIG, **extra})


def test_discovery_config() -> None:
    assert SCH_DISCOVERY_CONFIG({}) == {
        "timeout": 30.0,
        "limit": None,
        "port": 56747,
        "broadcast_addresses": None,
    }

    with pytest.raises(vol.Invalid):
        SCH_DISCOVERY_CONFIG({"broadcast_addresses": []})
    with pytest.raises(vol.Invalid):
        SCH_DISCOVERY_CONFIG({"limit": 0})
    with pytest.raises(vol.Invalid):
        SCH_DISCOVERY_CONFIG({"timeout": 0})
