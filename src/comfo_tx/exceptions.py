#!/usr/bin/env python3
"""ComfoControl - exceptions within the envelope/protocol/transport layer."""

from __future__ import annotations


class _ComfoBaseException(Exception):
    """Base class for all comfo_tx exceptions."""

    pass


class ComfoException(_ComfoBaseException):
    """Base class for all comfo_tx exceptions."""

    HINT: None | str = None

    def __init__(self, *args: object):
        super().__init__(*args)
        self.message: str | None = args[0] if args else None  # type: ignore[assignment]

    def __str__(self) -> str:
        if self.message and self.HINT:
            return f"{self.message} (hint: {self.HINT})"
        if self.message:
            return self.message
        if self.HINT:
            return f"Hint: {self.HINT}"
        return ""


########################################################################################
# Errors at the transport layer (the TCP connection)


class TransportError(ComfoException):
    """An error when connecting, or when sending or receiving bytes."""


class TransportConnectError(TransportError):
    """The connection to the gateway could not be established."""


class TransportDisconnected(TransportError):
    """The transport is not connected (or the connection was lost)."""

    HINT = "connect the transport before sending"


class AlreadyConnecting(TransportError):
    """A connection attempt is already in progress."""


class AlreadyConnected(TransportError):
    """The transport is already connected."""


########################################################################################
# Errors at the protocol layer, incl. envelope processing


class ProtocolError(ComfoException):
    """An error occurred when exchanging messages with the gateway."""


class EnvelopeInvalid(ProtocolError):
    """The envelope is corrupt/not internally consistent."""


class FrameTooShort(EnvelopeInvalid):
    """There are fewer bytes than required for an envelope header."""


class TruncatedOperation(EnvelopeInvalid):
    """The declared operation length exceeds the remaining bytes."""


class TruncatedPayload(EnvelopeInvalid):
    """The declared payload length exceeds the remaining bytes."""


class UnsupportedOpcode(ProtocolError):
    """There is no message body schema for the opcode."""


class UnexpectedResponseOpcode(ProtocolError):
    """A reply arrived for a pending request, but with the wrong opcode."""


class GatewayTimeout(ProtocolError, TimeoutError):
    """The gateway did not reply to a request in time."""


########################################################################################
# Errors of the property value codec


class ValueCodecError(ComfoException):
    """A property value could not be converted to/from bytes."""


class ValueDecodeError(ValueCodecError, ValueError):
    """The raw bytes cannot be decoded as the property's data type."""


class ValueEncodeError(ValueCodecError, ValueError):
    """The value cannot be encoded as the property's data type."""


########################################################################################
# Errors of the session layer


class SessionError(ComfoException):
    """The session with the gateway could not be established."""


class AlreadyActive(SessionError):
    """The session is already active, or is being started."""


class SessionRegisterFailed(SessionError):
    """The gateway refused to register this client."""

    HINT = "check the PIN of the gateway"


class SessionStartFailed(SessionError):
    """The gateway refused to start a session with this client."""

    HINT = "use the default client UUID"


########################################################################################
# Errors reported by the device (via the gateway)


class DeviceError(ComfoException):
    """The device behind the gateway reported an error."""


class RmiError(DeviceError):
    """The device rejected a remote method invocation."""

    def __init__(self, *args: object, error_code: int | None = None):
        super().__init__(*args)
        self.error_code = error_code


class ReadOnlyProperty(DeviceError):
    """The property cannot be written."""


########################################################################################
# Errors of the discovery process


class DiscoveryError(ComfoException):
    """The discovery of gateways failed."""


class AlreadyInProgress(DiscoveryError):
    """A discovery run is already in progress."""


class DiscoveryAborted(DiscoveryError):
    """The discovery run was aborted."""


class DiscoveryInvalidResponse(DiscoveryError):
    """A datagram that is not a valid discovery response was received."""
