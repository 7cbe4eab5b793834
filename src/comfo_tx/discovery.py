#!/usr/bin/env python3
"""ComfoControl - the discovery of gateways on the local network (via UDP broadcast).

A discovery request is broadcast (to every broadcast address) every few seconds, and
each response (from a gateway) is collected until the run times out, or a limit is
reached. The gateways must be on the same subnet as this host (routers will usually
not relay broadcasts).
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
import socket
from collections.abc import Callable
from typing import Any, Final, TypeAlias

from google.protobuf.message import DecodeError

from . import exceptions as exc
from .const import (
    DISCOVERY_BROADCAST_INTERVAL,
    SZ_BROADCAST_ADDRESSES,
    SZ_LIMIT,
    SZ_PORT,
    SZ_TIMEOUT,
)
from .deferred import Deferred
from .helpers import broadcast_addresses, mac_from_uuid
from .protobuf import GatewayDiscovery
from .schemas import SCH_DISCOVERY_CONFIG, DiscoveryConfigT

_LOGGER = logging.getLogger(__name__)


_LOCAL_ADDR: Final = ("0.0.0.0", 0)  # any interface, any (ephemeral) port


@dataclasses.dataclass(frozen=True, kw_only=True)
class DeviceInfo:
    """A gateway, as per its discovery response."""

    address: str
    port: int
    uuid: str  # 32 hex characters
    version: int
    mac: str  # 12 hex characters, the low 6 bytes of the UUID

    def __str__(self) -> str:
        return f"{self.address} ({self.uuid})"


DiscoverHandlerT: TypeAlias = Callable[[DeviceInfo], None]
ErrorHandlerT: TypeAlias = Callable[[Exception], None]


class _DiscoveryProtocol(asyncio.DatagramProtocol):
    """Pass the datagrams (and errors) of the UDP endpoint to its discovery run."""

    def __init__(self, operation: DiscoveryOperation) -> None:
        self._operation = operation

    def datagram_received(self, data: bytes, addr: tuple[str | Any, int]) -> None:
        self._operation._datagram_received(data, addr)

    def error_received(self, err: Exception) -> None:
        self._operation._on_error(err)

    def connection_lost(self, err: Exception | None) -> None:
        if err is not None:
            self._operation._on_error(err)


class DiscoveryOperation:
    """A (reusable) discovery operation, of which only one run is active at a time.

    Each run settles exactly once: it resolves with the devices discovered when it
    times out (or its limit is reached), or it fails if it is aborted, receives an
    invalid datagram, or has a socket error.
    """

    def __init__(
        self, broadcast_addresses: list[str] | str | None = None, **kwargs: Any
    ) -> None:
        """Create a discovery operation, validating its config.

        kwargs: port, timeout (seconds), limit (number of devices).
        """

        if isinstance(broadcast_addresses, str):
            broadcast_addresses = [broadcast_addresses]

        self._config: DiscoveryConfigT = SCH_DISCOVERY_CONFIG(
            {SZ_BROADCAST_ADDRESSES: broadcast_addresses, **kwargs}
        )

        self._discover_handlers: list[DiscoverHandlerT] = []
        self._error_handlers: list[ErrorHandlerT] = []

        self._deferred: Deferred[list[DeviceInfo]] | None = None
        self._running = False

        self._devices: list[DeviceInfo] = []
        self._limit: int | None = None
        self._transport: asyncio.DatagramTransport | None = None
        self._broadcast_task: asyncio.Task[None] | None = None
        self._abort_task: asyncio.Task[None] | None = None
        self._timeout_handle: asyncio.TimerHandle | None = None

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(port={self.port}, running={self._running})"

    @property
    def port(self) -> int:
        return self._config[SZ_PORT]  # type: ignore[literal-required]

    @property
    def in_progress(self) -> bool:
        return self._running

    @property
    def devices(self) -> list[DeviceInfo]:
        """Return the devices discovered so far (by the current/latest run)."""
        return list(self._devices)

    def add_discover_handler(self, handler: DiscoverHandlerT, /) -> Callable[[], None]:
        """Add a callback, invoked once for each newly-discovered device."""

        def del_handler() -> None:
            if handler in self._discover_handlers:
                self._discover_handlers.remove(handler)

        if handler not in self._discover_handlers:
            self._discover_handlers.append(handler)
        return del_handler

    def add_error_handler(self, handler: ErrorHandlerT, /) -> Callable[[], None]:
        """Add a callback, invoked with the error that aborts a run."""

        def del_handler() -> None:
            if handler in self._error_handlers:
                self._error_handlers.remove(handler)

        if handler not in self._error_handlers:
            self._error_handlers.append(handler)
        return del_handler

    async def discover(
        self,
        *,
        timeout: float | None = None,
        limit: int | None = None,
        abort_event: asyncio.Event | None = None,
    ) -> list[DeviceInfo]:
        """Discover the gateways on the network, and return them.

        Raise AlreadyInProgress if a run is already in progress, DiscoveryAborted if
        the run is aborted, and DiscoveryInvalidResponse if a datagram is invalid.
        Raise vol.Invalid if the timeout or the limit is invalid (e.g. 0).
        """

        if self._running:
            _LOGGER.error("%s: a discovery run is already in progress", self)
            raise exc.AlreadyInProgress("A discovery run is already in progress")

        # None means the configured value, anything else is validated as per the config
        overrides = {SZ_TIMEOUT: timeout, SZ_LIMIT: limit}
        config: DiscoveryConfigT = SCH_DISCOVERY_CONFIG(
            {**self._config, **{k: v for k, v in overrides.items() if v is not None}}
        )
        timeout = config[SZ_TIMEOUT]  # type: ignore[literal-required]
        limit = config[SZ_LIMIT]  # type: ignore[literal-required]
        addresses = (
            self._config[SZ_BROADCAST_ADDRESSES]  # type: ignore[literal-required]
            or broadcast_addresses()
        )
        if not addresses:
            raise exc.DiscoveryError("There are no broadcast addresses to use")

        loop = asyncio.get_running_loop()

        self._running = True
        self._devices = []
        self._limit = limit

        if self._deferred is None:
            self._deferred = Deferred(loop)
        else:
            self._deferred.reset()

        _LOGGER.info("Starting discovery (timeout=%s, limit=%s)", timeout, limit)

        try:
            if abort_event is not None and abort_event.is_set():
                self._on_abort()
            else:
                await self._start(loop, addresses, timeout, abort_event)
            return await self._deferred

        finally:
            self._cleanup()
            self._running = False

    async def _start(
        self,
        loop: asyncio.AbstractEventLoop,
        addresses: list[str],
        timeout: float,
        abort_event: asyncio.Event | None,
    ) -> None:
        try:
            transport, _ = await loop.create_datagram_endpoint(
                lambda: _DiscoveryProtocol(self),
                local_addr=_LOCAL_ADDR,
                family=socket.AF_INET,
                allow_broadcast=True,
            )
        except OSError as err:
            self._on_error(err)
            return

        self._transport = transport  # type: ignore[assignment]

        self._broadcast_task = loop.create_task(self._broadcast_loop(addresses))
        self._timeout_handle = loop.call_later(timeout, self._on_timeout)
        if abort_event is not None:
            self._abort_task = loop.create_task(self._wait_for_abort(abort_event))

    def abort(self) -> None:
        """Abort the current run (if any), which will fail with DiscoveryAborted."""
        if self._running:
            self._on_abort()

    async def _wait_for_abort(self, abort_event: asyncio.Event) -> None:
        await abort_event.wait()
        self._on_abort()

    async def _broadcast_loop(self, addresses: list[str]) -> None:
        """Broadcast a discovery request (to each address) now, and every interval."""

        request = GatewayDiscovery()
        request.request.SetInParent()
        data = request.SerializeToString()

        while self._transport is not None:
            for address in addresses:
                _LOGGER.debug("Broadcast on %s (%s): %s", address, self.port, data.hex())
                self._transport.sendto(data, (address, self.port))
            await asyncio.sleep(DISCOVERY_BROADCAST_INTERVAL)

    def _datagram_received(self, data: bytes, addr: tuple[str | Any, int]) -> None:
        if not self._running or self._deferred is None or self._deferred.done():
            return

        _LOGGER.debug("Received from %s: %s", addr[0], data.hex())

        try:
            device = self._parse_response(data)
        except exc.DiscoveryInvalidResponse as err:
            self._on_error(err)
            return

        if any(d.uuid == device.uuid for d in self._devices):
            return

        self._devices.append(device)
        _LOGGER.info("Discovered a gateway at %s, uuid=%s", device.address, device.uuid)

        for handler in list(self._discover_handlers):
            try:
                handler(device)
            except Exception as err:  # noqa: BLE001
                _LOGGER.exception("Exception from discover handler: %s", err)

        if self._limit and len(self._devices) >= self._limit:
            _LOGGER.info("Discovery limit (%s) reached", self._limit)
            self._on_timeout()

    def _parse_response(self, data: bytes) -> DeviceInfo:
        """Return the gateway of a discovery response.

        Raise DiscoveryInvalidResponse if the datagram is not a discovery response (a
        request is not a response).
        """

        try:
            msg = GatewayDiscovery.FromString(data)
        except DecodeError as err:
            raise exc.DiscoveryInvalidResponse(
                f"Invalid discovery response: {data.hex()}: {err}"
            ) from err

        if not msg.HasField("response"):
            raise exc.DiscoveryInvalidResponse(
                f"Invalid discovery response: {data.hex()}: no response"
            )

        uuid = msg.response.uuid.hex()
        return DeviceInfo(
            address=msg.response.address,
            port=self.port,
            uuid=uuid,
            version=msg.response.version,
            mac=mac_from_uuid(uuid),
        )

    def _on_timeout(self) -> None:
        """Stop the run, and resolve it with the devices discovered so far."""

        self._cleanup()
        if self._deferred is not None and not self._deferred.done():
            _LOGGER.info("Discovery stopped, found %s gateway(s)", len(self._devices))
            self._deferred.resolve(list(self._devices))

    def _on_abort(self) -> None:
        self._cleanup()
        if self._deferred is not None and not self._deferred.done():
            _LOGGER.warning("Discovery aborted")
            self._deferred.reject(exc.DiscoveryAborted("Discovery aborted"))

    def _on_error(self, err: Exception) -> None:
        """Abort the run because of an invalid response, or a socket error."""

        if self._deferred is None or self._deferred.done():
            return

        _LOGGER.error("Error during discovery: %s", err)

        for handler in list(self._error_handlers):
            try:
                handler(err)
            except Exception as err_:  # noqa: BLE001
                _LOGGER.exception("Exception from error handler: %s", err_)

        self._cleanup()

        if not isinstance(err, exc.DiscoveryError):
            wrapped = exc.DiscoveryError(f"Socket error during discovery: {err}")
            wrapped.__cause__ = err
            err = wrapped
        self._deferred.reject(err)

    def _cleanup(self) -> None:
        """Cancel the timers, and close the socket (is idempotent)."""

        if self._timeout_handle is not None:
            self._timeout_handle.cancel()
            self._timeout_handle = None

        for task in (self._broadcast_task, self._abort_task):
            if task and not task.done() and task is not asyncio.current_task():
                task.cancel()
        self._broadcast_task = None
        self._abort_task = None

        if self._transport is not None:
            transport, self._transport = self._transport, None
            transport.close()
