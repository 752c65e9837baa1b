"""Deadline guard for awaitables that must not be cancelled."""

import asyncio
from typing import Awaitable, TypeVar

from interview_prep.exceptions import StageTimeoutError

T = TypeVar("T")


def _consume_outcome(task: "asyncio.Future[object]") -> None:
    # Abandoned tasks must not log "exception was never retrieved".
    if not task.cancelled():
        task.exception()


async def call_with_timeout(
    operation: Awaitable[T],
    timeout: float | None,
    message: str,
) -> T:
    """Wait for ``operation`` for at most ``timeout`` seconds.

    Raises ``StageTimeoutError(message)`` when the deadline passes first. The
    operation itself keeps running and is simply no longer waited for; its
    outcome is consumed in the background. The deadline timer is cancelled on
    every exit path.
    """
    task = asyncio.ensure_future(operation)
    if timeout is None:
        return await task

    loop = asyncio.get_running_loop()
    waiter: asyncio.Future[None] = loop.create_future()

    def _release(_: object = None) -> None:
        if not waiter.done():
            waiter.set_result(None)

    timer = loop.call_later(timeout, _release)
    task.add_done_callback(_release)
    try:
        await waiter
    finally:
        timer.cancel()
        task.remove_done_callback(_release)

    if not task.done():
        task.add_done_callback(_consume_outcome)
        raise StageTimeoutError(message)
    return task.result()
