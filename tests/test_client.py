#!/usr/bin/env python3
"""ComfoControl - Test the client (sessions, requests, notifications, subscriptions)."""

import asyncio
from datetime import datetime as dt
from unittest.mock import Mock

import pytest

from comfo_rf import ComfoControlClient, NodeProductType, SessionState
from comfo_rf import exceptions as exc
from comfo_rf.const import NodeMode, Opcode, Result, RmiUnit
from comfo_rf.properties import EXHAUST_FAN_SPEED, OUTDOOR_AIR_TEMPERATURE
from comfo_rf.rmi import SERIAL_NUMBER, VENTILATION_SPEED_LOW
from comfo_tx import Message

from .conftest import FakeGateway, client_factory, confirm_of
from .helpers import CLIENT_UUID, assert_this

pytestmark = pytest.mark.asyncio()


def _rpdo_notification(pdid: int, data: bytes) -> Message:
    return Message.from_attrs(Opcode.CN_RPDO_NOTIFICATION, 0, {"pdid": pdid, "data": data})


async def test_start_session(fake_gwy: FakeGateway, client: ComfoControlClient) -> None:
    fake_gwy.reply_with(
        Opcode.CN_TIME_REQUEST, lambda m: [confirm_of(m, {"currentTime": 594})]
    )

    assert client.state == SessionState.NONE

    # the session is started as required
    assert await client.get_server_time() == dt(2000, 1, 1, 0, 9, 54)
    assert client.session_active

    assert [m.opcode for m in fake_gwy.requests] == [
        Opcode.REGISTER_DEVICE_REQUEST,
        Opcode.START_SESSION_REQUEST,
        Opcode.CN_TIME_REQUEST,
    ]
    assert [m.id for m in fake_gwy.requests] == [1, 2, 3]

    register = fake_gwy.requests[0].deserialize()
    assert register.uuid == bytes.fromhex(CLIENT_UUID)
    assert register.pin == 0
    assert register.deviceName == "pytest"

    assert fake_gwy.requests[1].deserialize().takeover is True

    with pytest.raises(exc.AlreadyActive):
        await client.start_session()


async def test_register_failed(fake_gwy: FakeGateway) -> None:
    fake_gwy.reply_with(
        Opcode.REGISTER_DEVICE_REQUEST,
        lambda m: [confirm_of(m, result=Result.NOT_ALLOWED)],
    )
    client = client_factory(fake_gwy, pin=1234)

    try:
        with pytest.raises(exc.SessionRegisterFailed):
            await client.start_session()

        assert client.state == SessionState.NONE
        assert not fake_gwy.requests_of(Opcode.START_SESSION_REQUEST)
        assert fake_gwy.requests[0].deserialize().pin == 1234

    finally:
        await client.disconnect()


async def test_start_session_failed(
    fake_gwy: FakeGateway, client: ComfoControlClient
) -> None:
    fake_gwy.reply_with(
        Opcode.START_SESSION_REQUEST,
        lambda m: [confirm_of(m, result=Result.NOT_ALLOWED)],
    )

    with pytest.raises(exc.SessionStartFailed):
        await client.get_version()

    assert client.state == SessionState.NONE
    assert not fake_gwy.requests_of(Opcode.VERSION_REQUEST)


async def test_request_timeout(
    fake_gwy: FakeGateway, client: ComfoControlClient
) -> None:
    fake_gwy.reply_with(Opcode.CN_TIME_REQUEST, lambda m: [])

    with pytest.raises(exc.GatewayTimeout):
        await client.get_server_time()

    assert client._pending == {}
    assert client.session_active  # a timeout doesn't end the session


async def test_unexpected_response(
    fake_gwy: FakeGateway, client: ComfoControlClient
) -> None:
    fake_gwy.reply_with(
        Opcode.CN_TIME_REQUEST,
        lambda m: [Message.from_attrs(Opcode.VERSION_CONFIRM, m.id)],
    )

    with pytest.raises(exc.UnexpectedResponseOpcode):
        await client.get_server_time()

    assert client._pending == {}


async def test_request_failed(fake_gwy: FakeGateway, client: ComfoControlClient) -> None:
    fake_gwy.reply_with(
        Opcode.VERSION_REQUEST,
        lambda m: [confirm_of(m, result=Result.NOT_EXIST)],
    )

    with pytest.raises(exc.ProtocolError):
        await client.get_version()


async def test_get_version(fake_gwy: FakeGateway, client: ComfoControlClient) -> None:
    fake_gwy.reply_with(
        Opcode.VERSION_REQUEST,
        lambda m: [
            confirm_of(
                m,
                {
                    "gatewayVersion": 1_049_354,
                    "serialNumber": "DEM0116371101",
                    "comfoNetVersion": 1_073_741_824,
                },
            )
        ],
    )

    version = await client.get_version()

    assert version.serialNumber == "DEM0116371101"
    assert version.gatewayVersion == 1_049_354


async def test_disconnect_whilst_pending(
    fake_gwy: FakeGateway, client: ComfoControlClient
) -> None:
    fake_gwy.reply_with(Opcode.CN_TIME_REQUEST, lambda m: [])
    await client.start_session()

    task = asyncio.create_task(client.get_server_time())
    await assert_this(lambda: fake_gwy.requests_of(Opcode.CN_TIME_REQUEST))

    await fake_gwy.drop()

    with pytest.raises(exc.TransportDisconnected):
        await task

    assert client.state == SessionState.NONE
    assert client._pending == {}


async def test_property_listeners(
    fake_gwy: FakeGateway, client: ComfoControlClient
) -> None:
    updates = []
    failing = Mock(side_effect=RuntimeError("listener failed"))

    del_listener = await client.register_property_listener(
        OUTDOOR_AIR_TEMPERATURE, updates.append
    )
    await client.register_property_listener(OUTDOOR_AIR_TEMPERATURE, failing)

    requests = fake_gwy.requests_of(Opcode.CN_RPDO_REQUEST)
    assert len(requests) == 1  # the second listener doesn't resubscribe

    body = requests[0].deserialize()
    assert (body.pdid, body.zone, body.type, body.timeout) == (276, 1, 6, 0)

    sub = client.subscriptions[276]
    assert sub.registered
    assert len(sub.listeners) == 2

    fake_gwy.push(_rpdo_notification(276, b"\xec\xff"))
    await assert_this(lambda: len(updates) == 1)

    update = updates[0]
    assert update.property_id == 276
    assert update.property_name == "OUTDOOR_AIR_TEMPERATURE"
    assert update.value == -0.2
    assert update.raw == b"\xec\xff"
    failing.assert_called_once_with(update)  # it didn't prevent the other

    del_listener()
    del_listener()  # a no-op

    fake_gwy.push(_rpdo_notification(276, b"\x3c\x00"))
    await assert_this(lambda: failing.call_count == 2)
    assert len(updates) == 1


async def test_unsubscribed_property(
    fake_gwy: FakeGateway, client: ComfoControlClient, monkeypatch: pytest.MonkeyPatch
) -> None:
    logger = Mock()
    monkeypatch.setattr("comfo_rf.client._LOGGER", logger)

    updates = []
    await client.register_property_listener(EXHAUST_FAN_SPEED, updates.append)

    fake_gwy.push(_rpdo_notification(276, b"\x3c\x00"))
    fake_gwy.push(_rpdo_notification(121, b"\xe8\x03"))

    await assert_this(lambda: len(updates) == 1)
    assert updates[0].value == 1000

    logger.warning.assert_called_once()
    assert 276 in logger.warning.call_args.args


async def test_listener_subscribe_fails(
    fake_gwy: FakeGateway, client: ComfoControlClient
) -> None:
    fake_gwy.reply_with(Opcode.CN_RPDO_REQUEST, lambda m: [])

    with pytest.raises(exc.GatewayTimeout):
        await client.register_property_listener(OUTDOOR_AIR_TEMPERATURE, print)

    sub = client.subscriptions[276]
    assert not sub.registered
    assert sub.listeners == []


async def test_resubscribe_on_reconnect(
    fake_gwy: FakeGateway, client: ComfoControlClient
) -> None:
    updates = []
    await client.register_property_listener(OUTDOOR_AIR_TEMPERATURE, updates.append)

    await fake_gwy.drop()
    await client.transport.wait_for_disconnect(timeout=1)

    assert client.state == SessionState.NONE
    assert not client.subscriptions[276].registered

    await client.start_session()  # reconnects

    await assert_this(lambda: len(fake_gwy.requests_of(Opcode.CN_RPDO_REQUEST)) == 2)
    await assert_this(lambda: client.subscriptions[276].registered)
    assert fake_gwy.connections == 2

    fake_gwy.push(_rpdo_notification(276, b"\x3c\x00"))
    await assert_this(lambda: len(updates) == 1)

    await asyncio.sleep(0.05)
    assert len(updates) == 1  # the listener wasn't added twice
    assert len(fake_gwy.requests_of(Opcode.CN_RPDO_REQUEST)) == 2


async def test_reconnect_with_new_listener(
    fake_gwy: FakeGateway, client: ComfoControlClient
) -> None:
    updates_1, updates_2 = [], []
    await client.register_property_listener(OUTDOOR_AIR_TEMPERATURE, updates_1.append)

    await fake_gwy.drop()
    await client.transport.wait_for_disconnect(timeout=1)

    # reconnects, and the renewal shares the listener's request
    await client.register_property_listener(OUTDOOR_AIR_TEMPERATURE, updates_2.append)
    assert client.subscriptions[276].registered
    assert fake_gwy.connections == 2

    await asyncio.sleep(0.05)
    assert len(fake_gwy.requests_of(Opcode.CN_RPDO_REQUEST)) == 2

    fake_gwy.push(_rpdo_notification(276, b"\x3c\x00"))
    await assert_this(lambda: len(updates_1) == len(updates_2) == 1)


async def test_node_notification(
    fake_gwy: FakeGateway, client: ComfoControlClient
) -> None:
    await client.start_session()

    fake_gwy.push(
        Message.from_attrs(
            Opcode.CN_NODE_NOTIFICATION,
            0,
            {"nodeId": 1, "productId": 1, "zoneId": 1, "mode": NodeMode.NODE_NORMAL},
        )
    )
    fake_gwy.push(
        Message.from_attrs(
            Opcode.CN_NODE_NOTIFICATION,
            0,
            {"nodeId": 48, "productId": 99, "zoneId": 255, "mode": NodeMode.NODE_LEGACY},
        )
    )

    await assert_this(lambda: len(client.nodes) == 2)

    node = client.nodes[1]
    assert node.product_type == NodeProductType.COMFOAIR_Q
    assert node.mode == NodeMode.NODE_NORMAL
    assert str(node) == "COMFOAIR_Q (1)"

    assert client.nodes[48].product_type == 99  # an unknown product type


async def test_session_closed_by_gateway(
    fake_gwy: FakeGateway, client: ComfoControlClient
) -> None:
    await client.start_session()

    fake_gwy.push(Message.from_attrs(Opcode.CLOSE_SESSION_REQUEST, 0))
    await client.transport.wait_for_disconnect(timeout=1)

    assert client.state == SessionState.NONE
    assert not client.transport.is_connected


async def test_rmi_read(fake_gwy: FakeGateway, client: ComfoControlClient) -> None:
    fake_gwy.reply_with(
        Opcode.CN_RMI_REQUEST,
        lambda m: [confirm_of(m, {"result": 0, "message": b"DEM0116371101"})],
    )

    assert await client.read_property(SERIAL_NUMBER) == "DEM0116371101"

    body = fake_gwy.requests_of(Opcode.CN_RMI_REQUEST)[0].deserialize()
    assert body.nodeId == 1
    assert body.message == bytes([0x01, RmiUnit.NODE, 0x01, 0x04])


async def test_rmi_write(fake_gwy: FakeGateway, client: ComfoControlClient) -> None:
    await client.write_property(VENTILATION_SPEED_LOW, 100)

    body = fake_gwy.requests_of(Opcode.CN_RMI_REQUEST)[0].deserialize()
    assert body.message == (
        bytes([0x03, RmiUnit.VENTILATIONCONFIG, 0x01, 0x04]) + b"\x64\x00"
    )


async def test_rmi_error(fake_gwy: FakeGateway, client: ComfoControlClient) -> None:
    fake_gwy.reply_with(
        Opcode.CN_RMI_REQUEST,
        lambda m: [confirm_of(m, {"result": 14, "message": b""})],
    )

    with pytest.raises(exc.RmiError) as exc_info:
        await client.read_property(SERIAL_NUMBER)

    assert exc_info.value.error_code == 14


async def test_rmi_read_only(fake_gwy: FakeGateway, client: ComfoControlClient) -> None:
    with pytest.raises(exc.ReadOnlyProperty):
        await client.write_property(SERIAL_NUMBER, "DEM0116371101")

    assert fake_gwy.connections == 0  # nothing was sent


async def test_context_manager(fake_gwy: FakeGateway) -> None:
    async with client_factory(fake_gwy) as client:
        assert client.session_active

    assert client.state == SessionState.NONE
    assert not client.transport.is_connected

    assert fake_gwy.requests[-1].opcode == Opcode.CLOSE_SESSION_REQUEST
