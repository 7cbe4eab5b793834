#!/usr/bin/env python3
"""ComfoControl - the client (i.e. a session with a ComfoConnect LAN C gateway).

The client layers a session over the transport: it registers with the gateway (with
the PIN) and starts a session, correlates each request with its confirm, dispatches
the notifications, and keeps track of the property subscriptions so that they can be
renewed after a reconnect.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from collections.abc import Callable
from datetime import datetime as dt
from typing import Any, TypeAlias

from google.protobuf.message import Message as PbMessage

from comfo_tx import (
    CONFIRM_OPCODES,
    SESSION_EXEMPT_OPCODES,
    ComfoTransport,
    Deferred,
    DeviceInfo,
    DiscoveryOperation,
    Message,
)
from comfo_tx.const import (
    SZ_ADDRESS,
    SZ_CLIENT_UUID,
    SZ_CONNECT_TIMEOUT,
    SZ_KEEP_ALIVE_INTERVAL,
    SZ_PORT,
    SZ_UUID,
    opcode_name,
)
from comfo_tx.header import normalise_uuid
from comfo_tx.helpers import dt_from_gateway_time
from comfo_tx.protobuf import BodyT
from comfo_tx.values import ValueT, decode_value

from . import exceptions as exc
from .const import (
    RPDO_TIMEOUT,
    RPDO_ZONE,
    SZ_DEVICE_NAME,
    SZ_PIN,
    SZ_REQUEST_TIMEOUT,
    NodeMode,
    NodeProductType,
    Opcode,
    PropertyDataType,
    SessionState,
    product_type_name,
    rmi_error_name,
)
from .properties import DeviceProperty
from .rmi import RmiProperty, read_command, write_command
from .schemas import SCH_CLIENT_CONFIG, ClientConfigT

_LOGGER = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True, kw_only=True)
class PropertyUpdate:
    """A (pushed) update of a subscribed property."""

    property_id: int
    property_name: str
    data_type: PropertyDataType
    value: ValueT | float  # after any conversion
    raw: bytes


@dataclasses.dataclass(kw_only=True)
class Node:
    """A node on the ComfoNet bus, as per its node notification."""

    node_id: int
    product_type: NodeProductType | int
    zone_id: int
    mode: NodeMode | int

    def __str__(self) -> str:
        return f"{product_type_name(self.product_type)} ({self.node_id})"


ListenerT: TypeAlias = Callable[[PropertyUpdate], Any]


@dataclasses.dataclass
class PropertySubscription:
    """The listeners of a property, and whether the gateway is sending its updates.

    The subscription is kept when the connection is lost, so it can be renewed.
    """

    device_property: DeviceProperty
    listeners: list[ListenerT] = dataclasses.field(default_factory=list)
    registered: bool = False
    request_task: asyncio.Task[None] | None = dataclasses.field(
        default=None, repr=False, compare=False
    )

    @property
    def property_id(self) -> int:
        return self.device_property.property_id

    @property
    def data_type(self) -> PropertyDataType:
        return self.device_property.data_type

    @property
    def requesting(self) -> bool:
        """Return True if a subscription request is in flight."""
        return self.request_task is not None and not self.request_task.done()


class ComfoControlClient:
    """A client of a ComfoControl gateway.

    Use discover() to find the address/UUID of the gateways on the network.
    """

    def __init__(self, address: str, uuid: str, **kwargs: Any) -> None:
        """Create a client, validating its config (raise vol.Invalid if invalid).

        kwargs: port, client_uuid, pin, device_name, keep_alive_interval,
        connect_timeout, request_timeout
        """

        self._config: ClientConfigT = SCH_CLIENT_CONFIG(
            {SZ_ADDRESS: address, SZ_UUID: uuid, **kwargs}
        )

        self._transport = ComfoTransport(
            self._config[SZ_ADDRESS],  # type: ignore[literal-required]
            self._config[SZ_UUID],  # type: ignore[literal-required]
            **{
                k: self._config[k]  # type: ignore[literal-required]
                for k in (
                    SZ_PORT,
                    SZ_CLIENT_UUID,
                    SZ_KEEP_ALIVE_INTERVAL,
                    SZ_CONNECT_TIMEOUT,
                )
            },
        )
        self._transport.add_handler(self._msg_received)
        self._transport.add_disconnect_handler(self._disconnected)

        self._state = SessionState.NONE
        self._pending: dict[int, Deferred[Message]] = {}
        self._nodes: dict[int, Node] = {}
        self._subscriptions: dict[int, PropertySubscription] = {}
        self._tasks: set[asyncio.Task[None]] = set()

        # the handlers of messages that are not a reply to a request
        self._handlers: dict[Opcode, Callable[[Message], None]] = {
            Opcode.CLOSE_SESSION_REQUEST: self._on_session_closed,
            Opcode.CN_NODE_NOTIFICATION: self._on_node_notification,
            Opcode.CN_RPDO_NOTIFICATION: self._on_property_update,
            Opcode.GATEWAY_NOTIFICATION: self.on_notification,
            Opcode.CN_ALARM_NOTIFICATION: self.on_notification,
        }

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.address}, state={self._state.name})"

    async def __aenter__(self) -> ComfoControlClient:
        if not self.session_active:
            await self.start_session()
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close_session()
        await self.disconnect()

    @property
    def address(self) -> str:
        return self._transport.address

    @property
    def uuid(self) -> str:
        return self._transport.uuid

    @property
    def device_name(self) -> str:
        return self._config[SZ_DEVICE_NAME]  # type: ignore[literal-required]

    @property
    def transport(self) -> ComfoTransport:
        return self._transport

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def session_active(self) -> bool:
        return self._state == SessionState.ACTIVE

    @property
    def nodes(self) -> dict[int, Node]:
        """Return the nodes of the ComfoNet bus (that have been notified so far)."""
        return dict(self._nodes)

    @property
    def subscriptions(self) -> dict[int, PropertySubscription]:
        return dict(self._subscriptions)

    @classmethod
    async def discover(
        cls,
        broadcast_addresses: list[str] | str | None = None,
        *,
        timeout: float | None = None,
        limit: int | None = None,
        abort_event: asyncio.Event | None = None,
        **kwargs: Any,
    ) -> list[DeviceInfo]:
        """Discover the gateways on the network (see DiscoveryOperation)."""

        operation = DiscoveryOperation(broadcast_addresses, **kwargs)
        return await operation.discover(
            timeout=timeout, limit=limit, abort_event=abort_event
        )

    async def start_session(self) -> None:
        """Register with the gateway, and start a session.

        Normally, this need not be invoked directly, as it is invoked by send() as
        required. Any subscriptions are renewed (in the background) once it starts.

        Raise AlreadyActive if the session is active (or is starting), and
        SessionRegisterFailed (e.g. the PIN is wrong) or SessionStartFailed (e.g.
        the client UUID is not accepted) if the gateway refuses.
        """

        if self._state != SessionState.NONE:
            raise exc.AlreadyActive("The session is already active, or is starting")

        _LOGGER.info("Registering with the gateway as: %s", self.device_name)
        self._state = SessionState.REGISTERING

        try:
            msg = await self.send(
                Opcode.REGISTER_DEVICE_REQUEST,
                {
                    "uuid": bytes.fromhex(normalise_uuid(self._transport.client_uuid)),
                    "pin": self._config[SZ_PIN],  # type: ignore[literal-required]
                    "deviceName": self.device_name,
                },
            )
            assert msg is not None  # mypy
            if not msg.is_ok:
                raise exc.SessionRegisterFailed(f"Failed to register: {msg.result_name}")

            msg = await self.send(Opcode.START_SESSION_REQUEST, {"takeover": True})
            assert msg is not None  # mypy
            if not msg.is_ok:
                raise exc.SessionStartFailed(
                    f"Failed to start session: {msg.result_name}"
                )

        except BaseException:
            self._state = SessionState.NONE
            raise

        _LOGGER.info("Session started with the gateway")
        self._state = SessionState.ACTIVE

        subs = [
            s for s in self._subscriptions.values() if s.listeners and not s.registered
        ]
        if subs:
            task = asyncio.get_running_loop().create_task(self._resubscribe(subs))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    async def _ensure_connected(self, opcode: Opcode | int) -> None:
        if not self._transport.is_connected:
            if self._transport.is_connecting:
                raise exc.AlreadyConnecting("The transport is already connecting")
            await self._transport.connect()

        if not self.session_active and opcode not in SESSION_EXEMPT_OPCODES:
            await self.start_session()

    async def send(self, opcode: Opcode | int, data: BodyT = None) -> Message | None:
        """Send a request to the gateway, and return its confirm (if it has one).

        Connects, and starts the session, as required. Requests that elicit no
        confirm return None once they have been sent.

        Raise GatewayTimeout if the confirm does not arrive in time, and
        UnexpectedResponseOpcode if the reply to the request is not its confirm.
        """

        await self._ensure_connected(opcode)

        confirm = CONFIRM_OPCODES.get(opcode, Opcode.NO_OPERATION)  # type: ignore[call-overload]
        if confirm == Opcode.NO_OPERATION:
            await self._transport.send(opcode, data)
            return None

        # the confirm may arrive before send() returns, so register it beforehand
        msg_id = self._transport.next_msg_id
        pending: Deferred[Message] = Deferred()
        self._pending[msg_id] = pending

        try:
            sent_id = await self._transport.send(opcode, data)
            assert sent_id == msg_id, f"{sent_id} != {msg_id}"

            try:
                msg = await pending.wait(
                    self._config[SZ_REQUEST_TIMEOUT]  # type: ignore[literal-required]
                )
            except TimeoutError as err:
                pending.cancel()
                raise exc.GatewayTimeout(
                    f"No reply to {opcode_name(opcode)} ({msg_id}) in time"
                ) from err

        finally:
            self._pending.pop(msg_id, None)

        if msg.opcode != confirm:
            raise exc.UnexpectedResponseOpcode(
                f"Unexpected response opcode: {msg.opcode_name}"
                f" (expected: {confirm.name})"
            )
        return msg

    def _msg_received(self, msg: Message) -> None:
        """Resolve the request that the message is a reply to, or else dispatch it."""

        _LOGGER.debug("Recv %s", msg)

        if (pending := self._pending.get(msg.id)) is not None and not pending.done():
            pending.resolve(msg)
            return

        if (handler := self._handlers.get(msg.opcode)) is None:  # type: ignore[call-overload]
            _LOGGER.debug("%s < no handler for this opcode, ignoring", msg)
            return

        try:
            handler(msg)
        except Exception as err:  # noqa: BLE001
            _LOGGER.exception("%s < exception from handler: %s", msg, err)

    def _disconnected(self) -> None:
        """Reset the session (and subscriptions), and fail any pending requests."""

        _LOGGER.info("Session ended (the connection was lost)")
        self._state = SessionState.NONE

        for sub in self._subscriptions.values():
            sub.registered = False

        for msg_id, pending in list(self._pending.items()):
            if not pending.done():
                pending.reject(
                    exc.TransportDisconnected(
                        f"Connection lost whilst awaiting the reply to request {msg_id}"
                    )
                )

    def _on_session_closed(self, msg: Message) -> None:
        _LOGGER.info("Session closed by the gateway")
        self._state = SessionState.NONE
        self._transport.disconnect()

    def _on_node_notification(self, msg: Message) -> None:
        body = msg.deserialize()

        try:
            product_type: NodeProductType | int = NodeProductType(body.productId)
        except ValueError:
            product_type = body.productId
        try:
            mode: NodeMode | int = NodeMode(body.mode)
        except ValueError:
            mode = body.mode

        node = Node(
            node_id=body.nodeId,
            product_type=product_type,
            zone_id=body.zoneId,
            mode=mode,
        )
        if node.node_id not in self._nodes:
            _LOGGER.info("Found %s", node)
        self._nodes[node.node_id] = node

    def _on_property_update(self, msg: Message) -> None:
        body = msg.deserialize()

        if (sub := self._subscriptions.get(body.pdid)) is None:
            _LOGGER.warning("Received an update of an unsubscribed property: %s", body.pdid)
            return

        raw = bytes(body.data)
        update = PropertyUpdate(
            property_id=sub.property_id,
            property_name=sub.device_property.name,
            data_type=sub.data_type,
            value=sub.device_property.decode(raw),
            raw=raw,
        )
        _LOGGER.debug("Property update: %s = %s", update.property_name, update.value)

        for listener in list(sub.listeners):
            try:
                listener(update)
            except Exception as err:  # noqa: BLE001
                _LOGGER.exception("Exception from property listener: %s", err)

    def on_notification(self, msg: Message) -> None:
        """Process a gateway/alarm notification (a subclass can override this)."""

    async def _request_updates(self, sub: PropertySubscription) -> None:
        """Ask the gateway to push the updates of a property (they never expire).

        Concurrent callers share the one request that is in flight.
        """

        if not sub.requesting:
            sub.request_task = asyncio.get_running_loop().create_task(
                self._send_rpdo_request(sub)
            )
            self._tasks.add(sub.request_task)
            sub.request_task.add_done_callback(self._tasks.discard)

        assert sub.request_task is not None  # mypy check
        await asyncio.shield(sub.request_task)

    async def _send_rpdo_request(self, sub: PropertySubscription) -> None:
        await self.send(
            Opcode.CN_RPDO_REQUEST,
            {
                "pdid": sub.property_id,
                "zone": RPDO_ZONE,
                "type": sub.data_type,
                "timeout": RPDO_TIMEOUT,
            },
        )
        sub.registered = True

    async def _resubscribe(self, subs: list[PropertySubscription]) -> None:
        """Renew the subscriptions that were lost with the previous session."""

        for sub in subs:
            if sub.registered or sub.requesting or not sub.listeners:
                continue
            try:
                await self._request_updates(sub)
            except exc.ComfoException as err:
                _LOGGER.error("Failed to resubscribe to %s: %s", sub.device_property, err)
            else:
                _LOGGER.info("Resubscribed to %s", sub.device_property)

    async def register_property_listener(
        self, device_property: DeviceProperty, listener: ListenerT
    ) -> Callable[[], None]:
        """Add a listener of the updates of a property, subscribing as required.

        Returns a callback that can be used to subsequently remove the listener. If the
        subscription request fails, the listener is removed and the error re-raised.
        """

        # a new session renews the existing subscriptions, so start it beforehand
        await self._ensure_connected(Opcode.CN_RPDO_REQUEST)

        sub = self._subscriptions.get(device_property.property_id)
        if sub is None:
            sub = PropertySubscription(device_property)
            self._subscriptions[device_property.property_id] = sub

        sub.listeners.append(listener)

        if not sub.registered:
            try:
                await self._request_updates(sub)
            except BaseException:
                sub.listeners.remove(listener)
                raise

        def del_listener() -> None:
            if listener in sub.listeners:
                sub.listeners.remove(listener)

        return del_listener

    def _check_rmi(self, msg: Message | None, prop: RmiProperty) -> PbMessage:
        """Return the RMI response, raise RmiError if the device reported an error."""

        assert msg is not None  # mypy
        body = msg.deserialize()

        if body.result or not msg.is_ok:
            raise exc.RmiError(
                f"RMI failed for {prop}: {rmi_error_name(body.result)}"
                f" ({msg.result_name})",
                error_code=body.result,
            )
        return body

    async def read_property(self, prop: RmiProperty) -> ValueT:
        """Return the (unconverted) value of an RMI property."""

        msg = await self.send(
            Opcode.CN_RMI_REQUEST,
            {"nodeId": prop.node_id, "message": read_command(prop)},
        )
        body = self._check_rmi(msg, prop)
        return decode_value(prop.data_type, body.message)

    async def write_property(self, prop: RmiProperty, value: ValueT) -> None:
        """Set the value of an RMI property.

        Raise ReadOnlyProperty (before sending anything) if it is not writable.
        """

        command = write_command(prop, value)
        msg = await self.send(
            Opcode.CN_RMI_REQUEST, {"nodeId": prop.node_id, "message": command}
        )
        self._check_rmi(msg, prop)

    async def _request(self, opcode: Opcode, data: BodyT = None) -> PbMessage:
        msg = await self.send(opcode, data)
        assert msg is not None  # mypy
        if not msg.is_ok:
            raise exc.ProtocolError(f"{msg.opcode_name} failed: {msg.result_name}")
        return msg.deserialize()

    async def get_server_time(self) -> dt:
        """Return the (local) time of the gateway."""

        body = await self._request(Opcode.CN_TIME_REQUEST)
        return dt_from_gateway_time(body.currentTime)

    async def get_version(self) -> PbMessage:
        """Return the versions (and serial number) of the gateway."""
        return await self._request(Opcode.VERSION_REQUEST)

    async def close_session(self) -> None:
        """Close the session, if there is one (the gateway may then disconnect)."""

        if not self.session_active:
            return

        try:
            await self.send(Opcode.CLOSE_SESSION_REQUEST)
        except (exc.TransportDisconnected, exc.GatewayTimeout) as err:
            _LOGGER.warning("Failed to close the session cleanly: %s", err)
        finally:
            self._state = SessionState.NONE

    async def disconnect(self) -> None:
        """Disconnect from the gateway (the subscriptions are kept)."""

        for task in list(self._tasks):
            task.cancel()

        self._transport.disconnect()
        await self._transport.wait_for_disconnect()
