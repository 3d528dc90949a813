"""Injectable time source for retries, handshake timeouts and balance polling."""

from __future__ import annotations

import asyncio
import time
from typing import Awaitable, Protocol, TypeVar

T = TypeVar("T")


class Clock(Protocol):
    def monotonic(self) -> float:
        ...

    async def sleep(self, seconds: float) -> None:
        ...


class AsyncioClock:
    """Wall-clock implementation backed by the running event loop."""

    def monotonic(self) -> float:
        return time.monotonic()

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)


async def run_with_timeout(clock: Clock, awaitable: Awaitable[T], seconds: float) -> T:
    """
    Await ``awaitable`` unless ``seconds`` elapse on ``clock`` first.

    Raises asyncio.TimeoutError and cancels the pending work on expiry.
    """
    work = asyncio.ensure_future(awaitable)
    timer = asyncio.ensure_future(clock.sleep(seconds))
    try:
        done, _ = await asyncio.wait({work, timer}, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        work.cancel()
        timer.cancel()
        raise

    if work in done:
        timer.cancel()
        return work.result()

    work.cancel()
    try:
        await work
    except (asyncio.CancelledError, Exception):  # noqa: BLE001
        pass
    raise asyncio.TimeoutError(f"Timed out after {seconds}s")
