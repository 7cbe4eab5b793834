#!/usr/bin/env python3
"""ComfoControl - a ComfoConnect LAN C protocol client."""

__version__ = "0.1.0"
VERSION = __version__
