#!/usr/bin/env python3
"""ComfoControl - a ComfoConnect LAN C protocol client.

Works with (amongst others):
- ComfoAir Q (via the ComfoConnect LAN C gateway)
"""

from __future__ import annotations

import logging

from comfo_tx import DeviceInfo, Message, Opcode, PropertyDataType  # noqa: F401

from .client import (  # noqa: F401
    ComfoControlClient,
    Node,
    PropertySubscription,
    PropertyUpdate,
)
from .const import NodeProductType, NodeType, RmiUnit, SessionState  # noqa: F401
from .properties import DEVICE_PROPERTIES, DeviceProperty  # noqa: F401
from .rmi import RMI_PROPERTIES, RmiProperty  # noqa: F401
from .version import VERSION  # noqa: F401

_LOGGER = logging.getLogger(__name__)
