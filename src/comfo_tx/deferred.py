#!/usr/bin/env python3
"""ComfoControl - a one-shot completion handle, resolved from outside its awaiter."""

from __future__ import annotations

import asyncio
from collections.abc import Generator
from typing import Any, Generic, TypeVar

_T = TypeVar("_T")


class Deferred(Generic[_T]):
    """A one-shot future that can be resolved (or rejected) once, and then reset.

    Resolving or rejecting it a second time raises an InvalidStateError, and the
    first result remains intact.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop or asyncio.get_running_loop()
        self._fut: asyncio.Future[_T] = self._loop.create_future()

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self._fut!r})"

    def __await__(self) -> Generator[Any, None, _T]:
        return self._fut.__await__()

    @property
    def future(self) -> asyncio.Future[_T]:
        return self._fut

    def done(self) -> bool:
        """Return True if the deferred has been resolved, rejected or cancelled."""
        return self._fut.done()

    def resolve(self, result: _T) -> None:
        if self._fut.done():
            raise asyncio.InvalidStateError(
                "Deferred is already settled: cannot resolve it twice"
            )
        self._fut.set_result(result)

    def reject(self, err: BaseException) -> None:
        if self._fut.done():
            raise asyncio.InvalidStateError(
                "Deferred is already settled: cannot reject it twice"
            )
        self._fut.set_exception(err)

    def cancel(self, msg: str | None = None) -> bool:
        """Cancel the deferred, return False if it was already settled."""
        return self._fut.cancel(msg=msg)

    def result(self) -> _T:
        """Return the result (or raise the exception) of a settled deferred."""
        return self._fut.result()

    def reset(self) -> None:
        """Make the deferred reusable, discarding any previous result."""

        if self._fut.done() and not self._fut.cancelled():
            self._fut.exception()  # so an unretrieved exception isn't logged
        self._fut = self._loop.create_future()

    async def wait(self, timeout: float | None = None) -> _T:
        """Wait for the deferred to settle, raise TimeoutError if it doesn't in time.

        A timeout doesn't cancel the deferred itself.
        """
        return await asyncio.wait_for(asyncio.shield(self._fut), timeout)
