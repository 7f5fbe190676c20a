"""Per-key operation ordering.

Operations enqueued for the same key run strictly one after another, in
enqueue order.  Operations for different keys never wait on each other.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

_logger = logging.getLogger(__name__)

T = TypeVar("T")


async def _noop() -> None:
    return None


class OperationSerializer:
    """Chain async operations per key so their bodies never overlap."""

    def __init__(self) -> None:
        self._tails: dict[str, asyncio.Task[Any]] = {}

    def __contains__(self, key: object) -> bool:
        return key in self._tails

    def __len__(self) -> int:
        return len(self._tails)

    def pending_keys(self) -> list[str]:
        return list(self._tails)

    async def enqueue(self, key: str, op: Callable[[], Awaitable[T]]) -> T:
        """Run *op* after every operation previously enqueued for *key*.

        The previous tail is recorded before this coroutine suspends, so
        concurrent callers are ordered by call order.  A failure of an
        earlier operation is only used for sequencing and is not propagated
        here.  Cancelling the caller does not cancel *op* once queued.
        """
        previous = self._tails.get(key)
        task: asyncio.Task[T] = asyncio.ensure_future(self._run_after(previous, op))
        self._tails[key] = task
        task.add_done_callback(lambda done: self._settle(key, done))
        return await asyncio.shield(task)

    async def drain(self, key: str) -> None:
        """Wait until everything currently queued for *key* has settled."""
        if key in self._tails:
            await self.enqueue(key, _noop)

    async def drain_all(self) -> None:
        """Wait until every queued operation on every key has settled."""
        while self._tails:
            await asyncio.gather(*(self.drain(key) for key in list(self._tails)))

    def settle_current(self) -> asyncio.Future[list[Any]]:
        """Return an awaitable for the operations queued right now.

        The set of operations is fixed when this is called; work enqueued
        later is not waited on.  Failures are collected, not raised.
        """
        tails = list(self._tails.values())
        return asyncio.gather(*(asyncio.shield(task) for task in tails), return_exceptions=True)

    def clear(self) -> None:
        """Forget bookkeeping for all keys (running operations are not cancelled)."""
        self._tails.clear()

    @staticmethod
    async def _run_after(previous: asyncio.Task[Any] | None, op: Callable[[], Awaitable[T]]) -> T:
        if previous is not None and not previous.done():
            try:
                await asyncio.shield(previous)
            except asyncio.CancelledError:
                if not previous.cancelled():
                    raise
            except Exception:  # noqa: BLE001
                _logger.debug("Previous queued operation failed; continuing", exc_info=True)
        return await op()

    def _settle(self, key: str, task: asyncio.Task[Any]) -> None:
        if self._tails.get(key) is task:
            del self._tails[key]
        # Mark the outcome as retrieved; the caller awaiting the shield sees it.
        if not task.cancelled():
            task.exception()
