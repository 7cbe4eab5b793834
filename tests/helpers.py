#!/usr/bin/env python3
"""ComfoControl - helpers for testing."""

import asyncio
import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any

logging.disable(logging.WARNING)  # usu. WARNING


TEST_DIR = Path(__file__).resolve().parent

CLIENT_UUID = "fedcba9876543210fedcba9876543210"
DEVICE_UUID = "0123456789abcdef0123456789abcdef"

DEFAULT_MAX_SLEEP = 1.0
ASSERT_CYCLE_TIME = 0.005


def assert_raises(exception: type[Exception], fnc: Callable, *args: Any) -> None:
    try:
        fnc(*args)
    except exception:  # as err:
        pass  # or: assert True
    else:
        assert False


async def assert_this(
    condition: Callable[[], bool], max_sleep: float = DEFAULT_MAX_SLEEP
) -> None:
    """Wait until the condition is True, and fail if it doesn't become so in time."""

    for _ in range(int(max_sleep / ASSERT_CYCLE_TIME)):
        await asyncio.sleep(ASSERT_CYCLE_TIME)
        if condition():
            break
    assert condition()
