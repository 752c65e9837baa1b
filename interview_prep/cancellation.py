"""Cooperative cancellation for a single pipeline run."""

import asyncio
from enum import Enum
from typing import Awaitable, Literal, TypeVar

T = TypeVar("T")


class _Cancelled(Enum):
    CANCELLED = "cancelled"

    def __bool__(self) -> bool:
        return False


CANCELLED = _Cancelled.CANCELLED
"""Returned instead of a result when the token fires before the awaited work settles."""

CancelledType = Literal[_Cancelled.CANCELLED]


def _consume_outcome(task: "asyncio.Future[object]") -> None:
    if not task.cancelled():
        task.exception()


class CancellationToken:
    """Run-scoped stop signal checked at every suspension point.

    Cancelling does not raise inside the run. ``wait`` and ``sleep`` report the
    cancellation through their return values, and work that was in flight is
    abandoned rather than torn down: its late result is ignored.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        """Signal cancellation. Safe to call repeatedly."""
        self._event.set()

    async def wait(self, operation: Awaitable[T]) -> T | CancelledType:
        """Await ``operation`` unless the token fires first, in which case return ``CANCELLED``."""
        if self.cancelled:
            if asyncio.iscoroutine(operation):
                operation.close()
            return CANCELLED

        task = asyncio.ensure_future(operation)
        stopper = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({task, stopper}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            stopper.cancel()

        if self.cancelled:
            task.add_done_callback(_consume_outcome)
            return CANCELLED
        return task.result()

    async def sleep(self, delay: float) -> bool:
        """Sleep for ``delay`` seconds. Returns False if cancelled before or during the sleep."""
        if self.cancelled:
            return False
        try:
            await asyncio.wait_for(self._event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            return True
        return False
