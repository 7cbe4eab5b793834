#!/usr/bin/env python3
"""A CLI for the comfo_rf library."""

from __future__ import annotations
