"""
cacheaside - Single Flight

Per-key registry of in-flight calls. Concurrent callers asking for the same key
while a call is running await that call's result instead of starting their own.

Cancellation stays with the task it was aimed at: if the leader is cancelled, a
waiter that was not cancelled itself starts the call again as the new leader.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

logger = logging.getLogger(__name__)


def _cancelling_self() -> bool:
    task = asyncio.current_task()
    return task is not None and task.cancelling() > 0


class SingleFlight:
    """Collapse concurrent calls for the same key into one."""

    def __init__(self) -> None:
        self._inflight: dict[str, asyncio.Future[Any]] = {}
        self.shared = 0

    def __len__(self) -> int:
        return len(self._inflight)

    async def do(self, key: str, fn: Callable[[], Awaitable[Any]]) -> tuple[Any, bool]:
        """
        Run ``fn`` unless a call for ``key`` is already in flight.

        Returns:
            (result, shared) where shared is True if another caller's result was reused

        Raises:
            Whatever ``fn`` raised, in the leader and in every waiter
        """
        while (existing := self._inflight.get(key)) is not None:
            logger.debug("Joining in-flight call", extra={"key": key})
            try:
                # Shield so a cancelled waiter does not cancel the leader's future
                result = await asyncio.shield(existing)
            except asyncio.CancelledError:
                if existing.cancelled() and not _cancelling_self():
                    logger.debug("In-flight call was cancelled, retrying", extra={"key": key})
                    continue
                raise
            self.shared += 1
            return result, True

        future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
        self._inflight[key] = future
        try:
            result = await fn()
        except BaseException as e:
            if isinstance(e, asyncio.CancelledError):
                future.cancel()
            else:
                future.set_exception(e)
                # Retrieve so an unobserved exception is not reported by the loop
                future.exception()
            raise
        else:
            future.set_result(result)
            return result, False
        finally:
            self._inflight.pop(key, None)
