#!/usr/bin/env python3
"""ComfoControl - Test the TCP transport (framing, lifecycle, keep-alives)."""

import asyncio
import socket
from unittest.mock import Mock

import pytest
import voluptuous as vol

from comfo_tx import ComfoTransport, ConnectionState, Message, Opcode, exceptions as exc
from comfo_tx.header import encode_envelope
from comfo_tx.protobuf import encode_operation

from .conftest import FakeGateway
from .helpers import CLIENT_UUID, DEVICE_UUID, assert_this


def _frame(opcode: Opcode, id_: int, payload: bytes = b"") -> bytes:
    return encode_envelope(DEVICE_UUID, CLIENT_UUID, encode_operation(opcode, id_), payload)


def _transport(**kwargs) -> tuple[ComfoTransport, list[Message]]:
    transport = ComfoTransport("127.0.0.1", DEVICE_UUID, **kwargs)
    msgs: list[Message] = []
    transport.add_handler(msgs.append)
    return transport, msgs


def _unused_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]  # type: ignore[no-any-return]


# ### data_received() ##################################################################


def test_partial_envelope_is_buffered() -> None:
    transport, msgs = _transport()
    frame = _frame(Opcode.CN_TIME_CONFIRM, 1, b"\x08\x2a")

    transport.data_received(frame[:10])  # less than a header
    transport.data_received(frame[10:40])  # less than an envelope
    assert msgs == []

    transport.data_received(frame[40:])
    assert len(msgs) == 1
    assert msgs[0].opcode == Opcode.CN_TIME_CONFIRM
    assert msgs[0].deserialize().currentTime == 42


def test_envelopes_in_one_chunk() -> None:
    transport, msgs = _transport()
    frame_1 = _frame(Opcode.START_SESSION_CONFIRM, 1)
    frame_2 = _frame(Opcode.CN_NODE_NOTIFICATION, 0)
    frame_3 = _frame(Opcode.CN_TIME_CONFIRM, 2)

    transport.data_received(frame_1 + frame_2 + frame_3[:5])
    assert [m.opcode for m in msgs] == [
        Opcode.START_SESSION_CONFIRM,
        Opcode.CN_NODE_NOTIFICATION,
    ]

    transport.data_received(frame_3[5:])
    assert [m.id for m in msgs] == [1, 0, 2]


def test_invalid_envelopes_are_dropped() -> None:
    transport, msgs = _transport()

    bad_header = bytearray(_frame(Opcode.CN_TIME_CONFIRM, 1))
    bad_header[:4] = (2).to_bytes(4, "big")  # shorter than the header itself

    transport.data_received(bytes(bad_header))
    assert msgs == []

    bad_operation = encode_envelope(DEVICE_UUID, CLIENT_UUID, b"\x08", b"")
    transport.data_received(bad_operation + _frame(Opcode.CN_TIME_CONFIRM, 3))

    assert [m.id for m in msgs] == [3]  # the connection is still usable


def test_handler_exceptions_are_swallowed() -> None:
    transport, msgs = _transport()
    transport.add_handler(Mock(side_effect=RuntimeError("handler failed")))

    del_handler = transport.add_handler(msgs.append)  # not added twice
    transport.data_received(_frame(Opcode.CN_TIME_CONFIRM, 1))
    assert len(msgs) == 1

    del_handler()
    transport.data_received(_frame(Opcode.CN_TIME_CONFIRM, 2))
    assert len(msgs) == 1


def test_transport_config() -> None:
    transport, _ = _transport(keep_alive_interval=1)
    assert transport.keep_alive_interval == 5.0  # the floor
    assert transport.client_uuid == "20200428000000000000000009080408"
    assert transport.port == 56747

    transport, _ = _transport(keep_alive_interval=0, client_uuid="ABC")
    assert transport.keep_alive_interval == 5.0  # keep-alives cannot be disabled
    assert transport.client_uuid == "abc"

    with pytest.raises(vol.Invalid):
        ComfoTransport("127.0.0.1", "1234")  # not 32 hex characters
    with pytest.raises(vol.Invalid):
        ComfoTransport("127.0.0.1", DEVICE_UUID, xxx=1)


# ### the connection lifecycle ########################################################


@pytest.mark.asyncio
async def test_send_when_disconnected() -> None:
    transport, _ = _transport()

    with pytest.raises(exc.TransportDisconnected):
        await transport.send(Opcode.KEEP_ALIVE)

    assert transport.state == ConnectionState.DISCONNECTED
    assert transport.next_msg_id == 1  # no id was consumed


@pytest.mark.asyncio
async def test_connect_refused() -> None:
    transport, _ = _transport(port=_unused_port())

    with pytest.raises(exc.TransportConnectError):
        await transport.connect()

    assert transport.state == ConnectionState.DISCONNECTED


@pytest.mark.asyncio
async def test_connect_send_disconnect(fake_gwy: FakeGateway) -> None:
    transport, _ = _transport(port=fake_gwy.port, client_uuid=CLIENT_UUID)
    on_disconnect = Mock()
    transport.add_disconnect_handler(on_disconnect)

    await transport.connect()
    assert transport.is_connected

    with pytest.raises(exc.AlreadyConnected):
        await transport.connect()

    assert await transport.send(Opcode.CN_NODE_REQUEST) == 1
    assert await transport.send(Opcode.KEEP_ALIVE) == 2

    await assert_this(lambda: len(fake_gwy.requests) == 2)
    assert [m.id for m in fake_gwy.requests] == [1, 2]
    assert fake_gwy.requests[0].sender_uuid == CLIENT_UUID
    assert fake_gwy.requests[0].receiver_uuid == DEVICE_UUID

    transport.disconnect()
    await transport.wait_for_disconnect(timeout=1)

    assert transport.state == ConnectionState.DISCONNECTED
    on_disconnect.assert_called_once_with()

    with pytest.raises(exc.TransportDisconnected):
        await transport.send(Opcode.KEEP_ALIVE)


@pytest.mark.asyncio
async def test_connection_lost(fake_gwy: FakeGateway) -> None:
    transport, _ = _transport(port=fake_gwy.port)
    on_disconnect = Mock()
    transport.add_disconnect_handler(on_disconnect)

    await transport.connect()
    await assert_this(lambda: fake_gwy.connections == 1)

    await fake_gwy.drop()
    await transport.wait_for_disconnect(timeout=1)

    assert transport.state == ConnectionState.DISCONNECTED
    on_disconnect.assert_called_once_with()

    transport.disconnect()  # a no-op
    await asyncio.sleep(0.01)
    on_disconnect.assert_called_once_with()

    await transport.connect()  # a transport can be reconnected
    assert await transport.send(Opcode.KEEP_ALIVE) == 1
    transport.disconnect()
    await transport.wait_for_disconnect(timeout=1)
    assert on_disconnect.call_count == 2


@pytest.mark.asyncio
async def test_keep_alives(
    fake_gwy: FakeGateway, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr("comfo_tx.schemas.MIN_KEEP_ALIVE_INTERVAL", 0.01)

    transport, _ = _transport(port=fake_gwy.port, keep_alive_interval=0.02)
    await transport.connect()

    try:
        await assert_this(lambda: len(fake_gwy.requests_of(Opcode.KEEP_ALIVE)) >= 2)
        assert all(m.payload == b"" for m in fake_gwy.requests)
    finally:
        transport.disconnect()
        await transport.wait_for_disconnect(timeout=1)

    count = len(fake_gwy.requests)
    await asyncio.sleep(0.05)
    assert len(fake_gwy.requests) == count  # the keep-alives have stopped


@pytest.mark.asyncio
async def test_keep_alive_errors(
    fake_gwy: FakeGateway, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr("comfo_tx.schemas.MIN_KEEP_ALIVE_INTERVAL", 0.01)
    logger = Mock()
    monkeypatch.setattr("comfo_tx.transport._LOGGER", logger)

    transport, _ = _transport(port=fake_gwy.port, keep_alive_interval=0.02)
    send = transport.send
    errors = [exc.TransportDisconnected("send failed"), OSError("send failed")]

    async def flaky_send(opcode, data=None):
        if errors:
            raise errors.pop(0)
        return await send(opcode, data)

    monkeypatch.setattr(transport, "send", flaky_send)
    await transport.connect()

    try:
        await assert_this(lambda: len(fake_gwy.requests_of(Opcode.KEEP_ALIVE)) >= 1)
        failures = [c for c in logger.error.call_args_list if "keep-alive" in c.args[0]]
        assert len(failures) == 2  # logged, and the loop carried on
        assert transport._keep_alive_task is not None
        assert not transport._keep_alive_task.done()
    finally:
        transport.disconnect()
        await transport.wait_for_disconnect(timeout=1)
