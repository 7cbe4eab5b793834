#!/usr/bin/env python3
"""ComfoControl - a ComfoConnect LAN C protocol client.

The client of a ComfoConnect LAN C gateway (the session, its properties and nodes).
"""

from comfo_tx.version import __version__

VERSION = __version__
