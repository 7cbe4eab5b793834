#!/usr/bin/env python3
"""Fixtures for testing."""

import asyncio
import contextlib
import logging
from collections.abc import AsyncGenerator, Callable
from typing import Any, TypeAlias

import pytest
import pytest_asyncio

from comfo_rf import ComfoControlClient
from comfo_tx import CONFIRM_OPCODES, Header, Message, Opcode
from comfo_tx import exceptions as exc
from comfo_tx.const import HEADER_LENGTH
from comfo_tx.header import decode_envelope
from comfo_tx.protobuf import BodyT

from .helpers import CLIENT_UUID, DEVICE_UUID

_LOGGER = logging.getLogger(__name__)


RuleT: TypeAlias = Callable[[Message], list[Message]]


def confirm_of(
    msg: Message, data: BodyT = None, *, result: int | None = None
) -> Message:
    """Return the confirm of a request (with the same id)."""
    return Message.from_attrs(CONFIRM_OPCODES[msg.opcode], msg.id, data, result=result)


class FakeGateway:
    """A fake gateway (a TCP server) that replies to each request as per its rules.

    By default, a request is replied to with its (OK) confirm, if it has one.
    """

    def __init__(self) -> None:
        self.requests: list[Message] = []
        self.connections = 0
        self.port = 0

        self._rules: dict[Opcode, RuleT] = {}
        self._server: asyncio.AbstractServer | None = None
        self._writers: list[asyncio.StreamWriter] = []

    async def start(self) -> None:
        self._server = await asyncio.start_server(self._handle, "127.0.0.1", 0)
        self.port = self._server.sockets[0].getsockname()[1]

    async def stop(self) -> None:
        await self.drop()
        if self._server is not None:
            self._server.close()
            await self._server.wait_closed()

    def reply_with(self, opcode: Opcode, rule: RuleT) -> None:
        self._rules[opcode] = rule

    def requests_of(self, opcode: Opcode) -> list[Message]:
        return [m for m in self.requests if m.opcode == opcode]

    def push(self, msg: Message) -> None:
        """Send a (unsolicited) message to every client."""
        for writer in self._writers:
            writer.write(msg.to_bytes(DEVICE_UUID, CLIENT_UUID))

    async def drop(self) -> None:
        """Close the connection to every client."""
        writers, self._writers = self._writers, []
        for writer in writers:
            writer.close()
            with contextlib.suppress(ConnectionError):
                await writer.wait_closed()

    def _replies(self, msg: Message) -> list[Message]:
        if (rule := self._rules.get(msg.opcode)) is not None:  # type: ignore[call-overload]
            return rule(msg)
        if CONFIRM_OPCODES.get(msg.opcode, Opcode.NO_OPERATION) == Opcode.NO_OPERATION:  # type: ignore[call-overload]
            return []
        return [confirm_of(msg)]

    async def _handle(
        self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter
    ) -> None:
        self.connections += 1
        self._writers.append(writer)
        buffer = b""

        try:
            while data := await reader.read(4096):
                buffer += data

                while len(buffer) >= HEADER_LENGTH:
                    header = Header.from_bytes(buffer)
                    if len(buffer) < header.length:
                        break

                    envelope, offset = decode_envelope(buffer)
                    buffer = buffer[offset:]

                    msg = Message.from_envelope(envelope)
                    self.requests.append(msg)

                    for reply in self._replies(msg):
                        writer.write(reply.to_bytes(DEVICE_UUID, CLIENT_UUID))
                    await writer.drain()

        except (ConnectionError, exc.ProtocolError) as err:
            _LOGGER.debug("Fake gateway: %s", err)


#######################################################################################


@pytest.fixture(autouse=True)
def patches_for_tests(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("comfo_tx.discovery.DISCOVERY_BROADCAST_INTERVAL", 0.05)


@pytest_asyncio.fixture()
async def fake_gwy() -> AsyncGenerator[FakeGateway, None]:
    """Utilize a fake gateway, listening on a local (ephemeral) port."""

    gwy = FakeGateway()
    await gwy.start()

    try:
        yield gwy
    finally:
        await gwy.stop()


def client_factory(fake_gwy: FakeGateway, **kwargs: Any) -> ComfoControlClient:
    return ComfoControlClient(
        "127.0.0.1",
        DEVICE_UUID,
        **{
            "port": fake_gwy.port,
            "client_uuid": CLIENT_UUID,
            "device_name": "pytest",
            "request_timeout": 0.5,
            **kwargs,
        },
    )


@pytest_asyncio.fixture()
async def client(fake_gwy: FakeGateway) -> AsyncGenerator[ComfoControlClient, None]:
    """Utilize a client of the fake gateway (it is not yet connected)."""

    client = client_factory(fake_gwy)

    try:
        yield client
    finally:
        await client.disconnect()
