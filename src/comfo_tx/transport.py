#!/usr/bin/env python3
"""ComfoControl - the TCP transport to a ComfoConnect LAN C gateway.

Operates at the envelope layer of: app - msg - envelope - tcp

The transport owns one TCP connection: it frames outgoing requests (assigning each a
monotonic id), splits the inbound byte stream into envelopes, and sends keep-alives.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import socket
from collections.abc import Callable
from enum import IntEnum
from typing import Any, Final, TypeAlias

from . import exceptions as exc
from .const import (
    HEADER_LENGTH,
    SZ_ADDRESS,
    SZ_CLIENT_UUID,
    SZ_CONNECT_TIMEOUT,
    SZ_KEEP_ALIVE_INTERVAL,
    SZ_PORT,
    SZ_UUID,
    Opcode,
    opcode_name,
)
from .header import Header, decode_envelope
from .message import Message
from .protobuf import BodyT
from .schemas import SCH_TRANSPORT_CONFIG, TransportConfigT

#
# NOTE: All debug flags should be False for deployment to end-users
_DBG_FORCE_FRAME_LOGGING: Final[bool] = False

_LOGGER = logging.getLogger(__name__)
_FRAME_LOGGER = logging.getLogger(f"{__name__}_log")  # i.e. comfo_tx.transport_log
if _DBG_FORCE_FRAME_LOGGING:
    _FRAME_LOGGER.setLevel(logging.DEBUG)


MsgHandlerT: TypeAlias = Callable[[Message], None]
DisconnectHandlerT: TypeAlias = Callable[[], None]


class ConnectionState(IntEnum):
    DISCONNECTED = 0
    CONNECTING = 1
    CONNECTED = 2


class ComfoTransport(asyncio.Protocol):
    """A TCP connection to a gateway (it is both the Protocol, and its owner).

    Inbound envelopes are decoded as Messages, and passed to each message handler.
    """

    def __init__(self, address: str, uuid: str, **kwargs: Any) -> None:
        """Create a transport, validating its config (raise vol.Invalid if invalid).

        kwargs: port, client_uuid, keep_alive_interval, connect_timeout
        """

        self._config: TransportConfigT = SCH_TRANSPORT_CONFIG(
            {SZ_ADDRESS: address, SZ_UUID: uuid, **kwargs}
        )

        self._loop: asyncio.AbstractEventLoop | None = None
        self._transport: asyncio.Transport | None = None
        self._state = ConnectionState.DISCONNECTED

        self._msg_id = 0  # the id of the most recently sent request
        self._buffer = bytearray()

        self._msg_handlers: list[MsgHandlerT] = []
        self._disconnect_handlers: list[DisconnectHandlerT] = []

        self._keep_alive_task: asyncio.Task[None] | None = None
        self._wait_connection_lost: asyncio.Future[None] | None = None

        self._pause_writing = False
        self._drain_waiters: list[asyncio.Future[None]] = []

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}"
            f"({self.address}:{self.port}, state={self._state.name})"
        )

    @property
    def address(self) -> str:
        return self._config[SZ_ADDRESS]  # type: ignore[literal-required]

    @property
    def port(self) -> int:
        return self._config[SZ_PORT]  # type: ignore[literal-required]

    @property
    def uuid(self) -> str:
        """Return the UUID of the gateway (the receiver)."""
        return self._config[SZ_UUID]  # type: ignore[literal-required]

    @property
    def client_uuid(self) -> str:
        """Return the UUID of this client (the sender)."""
        return self._config[SZ_CLIENT_UUID]  # type: ignore[literal-required]

    @property
    def keep_alive_interval(self) -> float:
        return self._config[SZ_KEEP_ALIVE_INTERVAL]  # type: ignore[literal-required]

    @property
    def next_msg_id(self) -> int:
        """Return the id that will be assigned to the next request."""
        return self._msg_id + 1

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state == ConnectionState.CONNECTED

    @property
    def is_connecting(self) -> bool:
        return self._state == ConnectionState.CONNECTING

    def add_handler(self, msg_handler: MsgHandlerT, /) -> Callable[[], None]:
        """Add a Message handler to the list of such callbacks.

        Returns a callback that can be used to subsequently remove the Message handler.
        """

        def del_handler() -> None:
            if msg_handler in self._msg_handlers:
                self._msg_handlers.remove(msg_handler)

        if msg_handler not in self._msg_handlers:
            self._msg_handlers.append(msg_handler)

        return del_handler

    def add_disconnect_handler(
        self, handler: DisconnectHandlerT, /
    ) -> Callable[[], None]:
        """Add a callback to be invoked (once) whenever the connection is lost."""

        def del_handler() -> None:
            if handler in self._disconnect_handlers:
                self._disconnect_handlers.remove(handler)

        if handler not in self._disconnect_handlers:
            self._disconnect_handlers.append(handler)

        return del_handler

    async def connect(self) -> None:
        """Connect to the gateway (there are no retries, if it fails).

        Raise TransportConnectError if the connection can't be established.
        """

        if self._state == ConnectionState.CONNECTING:
            raise exc.AlreadyConnecting(f"{self}: a connection is already in progress")
        if self._state == ConnectionState.CONNECTED:
            raise exc.AlreadyConnected(f"{self}: the transport is already connected")

        self._state = ConnectionState.CONNECTING
        self._loop = asyncio.get_running_loop()

        try:
            await asyncio.wait_for(
                self._loop.create_connection(lambda: self, self.address, self.port),
                self._config[SZ_CONNECT_TIMEOUT],  # type: ignore[literal-required]
            )
        except (OSError, TimeoutError) as err:
            _LOGGER.error("%s: failed to connect: %s", self, err)
            self._state = ConnectionState.DISCONNECTED
            self._transport = None
            raise exc.TransportConnectError(
                f"Unable to connect to {self.address}:{self.port}: {err}"
            ) from err
        except asyncio.CancelledError:
            self._state = ConnectionState.DISCONNECTED
            raise

    def connection_made(self, transport: asyncio.BaseTransport) -> None:
        """Called when the connection to the gateway is established."""

        self._loop = self._loop or asyncio.get_running_loop()

        self._transport = transport  # type: ignore[assignment]
        self._state = ConnectionState.CONNECTED
        self._buffer.clear()
        self._wait_connection_lost = self._loop.create_future()

        if (sock := transport.get_extra_info("socket")) is not None:
            with contextlib.suppress(OSError):
                sock.setsockopt(socket.SOL_SOCKET, socket.SO_KEEPALIVE, 1)

        _LOGGER.info("%s: connected", self)

        _LOGGER.info(
            "%s: sending keep-alives every %s secs", self, self.keep_alive_interval
        )
        self._keep_alive_task = self._loop.create_task(self._keep_alive_loop())

    def connection_lost(self, err: Exception | None) -> None:  # type: ignore[override]
        """Called when the connection to the gateway is lost or closed."""

        if err:
            _LOGGER.warning("%s: connection lost: %s", self, err)
        else:
            _LOGGER.info("%s: disconnected", self)

        self._close(err)

    def _close(self, err: Exception | None = None) -> None:
        """Tear down the connection state, and inform the disconnect handlers."""

        if self._wait_connection_lost is None or self._wait_connection_lost.done():
            return  # the handlers are invoked once per connection

        if self._keep_alive_task and not self._keep_alive_task.done():
            self._keep_alive_task.cancel()
        self._keep_alive_task = None

        self._state = ConnectionState.DISCONNECTED
        self._transport = None
        self._buffer.clear()

        for waiter in self._drain_waiters:
            if not waiter.done():
                waiter.set_exception(exc.TransportDisconnected("Connection lost"))
        self._drain_waiters.clear()
        self._pause_writing = False

        self._wait_connection_lost.set_result(None)

        for handler in list(self._disconnect_handlers):
            try:
                handler()
            except Exception as err_:  # noqa: BLE001
                _LOGGER.exception("%s: exception from disconnect handler: %s", self, err_)

    def disconnect(self) -> None:
        """Close the connection (the disconnect handlers are invoked when it closes)."""

        if self._transport is not None and not self._transport.is_closing():
            _LOGGER.info("%s: disconnecting", self)
            self._transport.close()

    async def wait_for_disconnect(self, timeout: float | None = None) -> None:
        """A courtesy function to wait until connection_lost() has been invoked."""

        if self._wait_connection_lost is None:
            return
        await asyncio.wait_for(asyncio.shield(self._wait_connection_lost), timeout)

    def pause_writing(self) -> None:
        self._pause_writing = True

    def resume_writing(self) -> None:
        self._pause_writing = False

        for waiter in self._drain_waiters:
            if not waiter.done():
                waiter.set_result(None)
        self._drain_waiters.clear()

    async def _drain(self) -> None:
        """Wait until the write buffer has been handed over to the OS."""

        if not self._pause_writing:
            return

        assert self._loop is not None  # mypy
        waiter: asyncio.Future[None] = self._loop.create_future()
        self._drain_waiters.append(waiter)
        await waiter

    async def send(self, opcode: Opcode | int, data: BodyT = None) -> int:
        """Send a request to the gateway, and return its id.

        Returns once the envelope has been written, not when any reply is received.
        Raise TransportDisconnected if the transport is not connected.
        """

        if self._state != ConnectionState.CONNECTED or self._transport is None:
            raise exc.TransportDisconnected(
                f"Cannot send {opcode_name(opcode)}: the transport is not connected"
            )

        self._msg_id += 1
        msg_id = self._msg_id

        msg = Message.from_attrs(opcode, msg_id, data)
        frame = msg.to_bytes(self.client_uuid, self.uuid)

        _LOGGER.debug("Send %s (%s) >> %s", msg.opcode_name, msg_id, data)
        _FRAME_LOGGER.debug(">> %s", frame.hex())

        self._transport.write(frame)
        await self._drain()

        return msg_id

    def data_received(self, data: bytes) -> None:
        """Called by the asyncio transport when some data is received."""

        _FRAME_LOGGER.debug("<< %s", data.hex())

        self._buffer.extend(data)

        while len(self._buffer) >= HEADER_LENGTH:
            try:
                header = Header.from_bytes(self._buffer)
            except exc.EnvelopeInvalid as err:
                _LOGGER.error(
                    "%s < dropped %s bytes: %s", self, len(self._buffer), err
                )
                self._buffer.clear()
                return

            if len(self._buffer) < header.length:
                return  # a partial envelope, wait for the remainder

            frame = bytes(self._buffer[: header.length])
            del self._buffer[: header.length]

            self._frame_read(frame)

    def _frame_read(self, frame: bytes) -> None:
        """Decode a (complete) envelope, and pass the Message to the handlers."""

        try:
            envelope, _ = decode_envelope(frame)
            msg = Message.from_envelope(envelope)
        except exc.ProtocolError as err:
            _LOGGER.warning("%s < invalid envelope: %s", frame.hex(), err)
            return

        _LOGGER.debug("Recv %s (%s) <<", msg.opcode_name, msg.id)

        for handler in list(self._msg_handlers):
            try:
                handler(msg)
            except Exception as err:  # noqa: BLE001
                _LOGGER.exception("%s < exception from msg handler: %s", msg, err)

    async def _keep_alive_loop(self) -> None:
        """Send a keep-alive every interval, until the connection is lost."""

        while True:
            await asyncio.sleep(self.keep_alive_interval)
            try:
                await self.send(Opcode.KEEP_ALIVE)
            except (exc.ComfoException, OSError) as err:
                _LOGGER.error("%s: failed to send a keep-alive: %s", self, err)
