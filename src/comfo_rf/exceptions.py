#!/usr/bin/env python3
"""ComfoControl - exceptions above the envelope/protocol/transport layer."""

from __future__ import annotations

from comfo_tx.exceptions import (  # noqa: F401
    AlreadyActive as AlreadyActive,
    AlreadyConnecting as AlreadyConnecting,
    ComfoException as ComfoException,
    DeviceError as DeviceError,
    GatewayTimeout as GatewayTimeout,
    ProtocolError as ProtocolError,
    ReadOnlyProperty as ReadOnlyProperty,
    RmiError as RmiError,
    SessionError as SessionError,
    SessionRegisterFailed as SessionRegisterFailed,
    SessionStartFailed as SessionStartFailed,
    TransportConnectError as TransportConnectError,
    TransportDisconnected as TransportDisconnected,
    UnexpectedResponseOpcode as UnexpectedResponseOpcode,
    ValueDecodeError as ValueDecodeError,
    ValueEncodeError as ValueEncodeError,
)
