"""Long-poll waits that stop early when the client goes away."""

from __future__ import annotations

import asyncio
from typing import Awaitable, Optional, TypeVar

from fastapi import Request

T = TypeVar("T")


class ClientDisconnected(Exception):
    """Raised when the client hangs up while a poll is still waiting."""


async def _watch_disconnect(request: Request, interval_s: float) -> None:
    while not await request.is_disconnected():
        await asyncio.sleep(interval_s)


async def wait_unless_disconnected(
    request: Request,
    wait: Awaitable[Optional[T]],
    check_interval_s: float,
) -> Optional[T]:
    """
    Await a store wait, cancelling it if the client disconnects first.

    Args:
        request: Request whose connection is watched
        wait: The store wait to run
        check_interval_s: Seconds between disconnect checks; <= 0 disables them

    Returns:
        Whatever the wait returns

    Raises:
        ClientDisconnected: If the client disconnected before the wait finished
        Exception: Whatever the disconnect check raised, if it failed first
    """
    if check_interval_s <= 0:
        return await wait

    wait_task = asyncio.ensure_future(wait)
    watch_task = asyncio.ensure_future(_watch_disconnect(request, check_interval_s))
    tasks = (wait_task, watch_task)
    try:
        await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
    finally:
        pending = [task for task in tasks if not task.done()]
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)

    watch_error = None
    if watch_task.done() and not watch_task.cancelled():
        watch_error = watch_task.exception()

    if wait_task.done() and not wait_task.cancelled():
        return wait_task.result()
    if watch_error is not None:
        raise watch_error
    raise ClientDisconnected()
