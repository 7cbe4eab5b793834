#!/usr/bin/env python3
"""ComfoControl - a ComfoConnect LAN C protocol client.

This module wraps logger to provide bespoke functionality, especially for the console.
"""

from __future__ import annotations

import logging
import sys
from typing import Final

import colorlog

from .version import VERSION

DEFAULT_FMT: Final = "%(asctime)s.%(msecs)03d %(levelname)-8s %(name)s: %(message)s"
DEFAULT_DATEFMT: Final = "%H:%M:%S"

FRAME_LOG_FMT: Final = "%(asctime)s.%(msecs)03d %(message)s"

LOG_COLOURS: Final = {
    "DEBUG": "white",
    "INFO": "green",
    "WARNING": "yellow",
    "ERROR": "bold_red",
    "CRITICAL": "bold_red",
}  # default_log_colors

# the name of the logger of the frames (as hex) that are sent/received
FRAME_LOGGER_NAME: Final = "comfo_tx.transport_log"


class StdErrFilter(logging.Filter):  # record.levelno >= logging.WARNING
    """For sys.stderr, process only wanted records."""

    def filter(self, record: logging.LogRecord) -> bool:
        """Return True if the record is to be processed."""  # WARNING-30, ERROR-40
        return record.levelno >= logging.WARNING


class StdOutFilter(logging.Filter):  # record.levelno < logging.WARNING
    """For sys.stdout, process only wanted records."""

    def filter(self, record: logging.LogRecord) -> bool:
        """Return True if the record is to be processed."""  # INFO-20, DEBUG-10
        return record.levelno < logging.WARNING


def _formatter(fmt: str, color: bool) -> logging.Formatter:
    if color:
        return colorlog.ColoredFormatter(
            fmt=f"%(log_color)s{fmt}",
            datefmt=DEFAULT_DATEFMT,
            reset=True,
            log_colors=LOG_COLOURS,
        )
    return logging.Formatter(fmt=fmt, datefmt=DEFAULT_DATEFMT)


def set_logging(
    logger: logging.Logger | None = None,
    level: int = logging.WARNING,
    *,
    color: bool = True,
) -> logging.Logger:
    """Create/configure the console handlers (WARNING+ to stderr, the rest to stdout).

    Configures the root logger, unless another is specified.
    """

    logger = logger or logging.getLogger()
    logger.setLevel(level)

    # as set_logging() may be called several times: to avoid duplicates in logs...
    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    console_fmt = _formatter(DEFAULT_FMT, color)

    handler: logging.Handler = logging.StreamHandler(stream=sys.stderr)
    handler.setFormatter(console_fmt)
    handler.setLevel(logging.WARNING)
    handler.addFilter(StdErrFilter())  # record.levelno >= .WARNING
    logger.addHandler(handler)

    handler = logging.StreamHandler(stream=sys.stdout)
    handler.setFormatter(console_fmt)
    handler.setLevel(logging.DEBUG)
    handler.addFilter(StdOutFilter())  # record.levelno < .WARNING
    logger.addHandler(handler)

    logger.debug("comfo_tx %s: logging configured", VERSION)
    return logger


def set_frame_logging(file_name: str | None = None, *, color: bool = True) -> None:
    """Log each frame (as hex) to a file, or to the console if there is no file."""

    logger = logging.getLogger(FRAME_LOGGER_NAME)
    logger.propagate = False  # the frame log is distinct from any app/debug logging
    logger.setLevel(logging.DEBUG)

    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    if file_name:
        handler: logging.Handler = logging.FileHandler(file_name)
        handler.setFormatter(_formatter(FRAME_LOG_FMT, False))
    else:
        handler = logging.StreamHandler(stream=sys.stdout)
        handler.setFormatter(_formatter(FRAME_LOG_FMT, color))

    logger.addHandler(handler)
