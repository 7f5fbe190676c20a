"""Debounced per-key writes.

Each key has at most one pending write: scheduling a new value cancels
the armed timer and replaces the payload.  When the timer fires, the
write goes through the :class:`OperationSerializer` and the retry policy.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from hoststore._retry import with_retry
from hoststore._serializer import OperationSerializer
from hoststore.config import RetryConfig
from hoststore.exceptions import StorageError

_logger = logging.getLogger(__name__)

Writer = Callable[[str, Any], Awaitable[None]]
WriteCallback = Callable[[str, Any, StorageError | None], None]


def _consume_outcome(future: asyncio.Future[None]) -> None:
    # Nobody is required to await a write; keep asyncio from warning about it.
    if not future.cancelled():
        future.exception()


@dataclass(slots=True)
class PendingWrite:
    """A scheduled, not yet fired write.

    ``waiter`` is shared by every mutation this write absorbed, so callers
    that scheduled a superseded value learn the outcome of the write that
    replaced it.
    """

    key: str
    value: Any
    handle: asyncio.TimerHandle | None
    waiter: asyncio.Future[None]


class WriteCoalescer:
    """Collapse rapid mutations per key into a single durable write."""

    def __init__(
        self,
        writer: Writer,
        serializer: OperationSerializer,
        retry: RetryConfig,
        *,
        on_written: WriteCallback | None = None,
    ) -> None:
        self._writer = writer
        self._serializer = serializer
        self._retry = retry
        self._on_written = on_written
        self._pending: dict[str, PendingWrite] = {}
        self._inflight: set[asyncio.Task[None]] = set()

    def __contains__(self, key: object) -> bool:
        return key in self._pending

    def pending_keys(self) -> list[str]:
        return list(self._pending)

    def schedule(self, key: str, value: Any, delay: float) -> asyncio.Future[None]:
        """Arm (or re-arm) the write timer for *key* with *value* as payload."""
        loop = asyncio.get_running_loop()
        pending = self._pending.get(key)
        if pending is not None:
            if pending.handle is not None:
                pending.handle.cancel()
            waiter = pending.waiter
            _logger.debug("Superseding pending write for %s", key)
        else:
            waiter = loop.create_future()
            waiter.add_done_callback(_consume_outcome)

        handle = loop.call_later(delay, self._fire, key)
        self._pending[key] = PendingWrite(key=key, value=value, handle=handle, waiter=waiter)
        return waiter

    async def flush_now(self, key: str) -> None:
        """Write the pending value for *key* immediately.

        Without a pending value this waits for writes already handed to the
        serializer.  Raises the write's :class:`StorageError` on failure.
        """
        pending = self._pending.pop(key, None)
        if pending is None:
            await self._serializer.drain(key)
            return
        if pending.handle is not None:
            pending.handle.cancel()
        await asyncio.shield(self._track(pending))
        await pending.waiter

    async def flush_all(self) -> None:
        """Flush every pending key and wait for in-flight writes.

        Raises the first failure after all writes have been attempted.
        """
        results = await asyncio.gather(
            *(self.flush_now(key) for key in list(self._pending)),
            return_exceptions=True,
        )
        if self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)
        for result in results:
            if isinstance(result, BaseException):
                raise result

    def cancel(self, key: str) -> bool:
        """Drop the pending write for *key*.

        The value was superseded by a removal or a clear.  Its waiter
        resolves with ``None`` and is never cancelled, so tasks awaiting it
        do not see ``CancelledError``.
        """
        pending = self._pending.pop(key, None)
        if pending is None:
            return False
        if pending.handle is not None:
            pending.handle.cancel()
        if not pending.waiter.done():
            pending.waiter.set_result(None)
        _logger.debug("Cancelled pending write for %s", key)
        return True

    def cancel_all(self) -> None:
        for key in list(self._pending):
            self.cancel(key)

    async def aclose(self) -> None:
        """Cancel pending timers and wait for writes already dispatched."""
        self.cancel_all()
        if self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)

    def _fire(self, key: str) -> None:
        pending = self._pending.pop(key, None)
        if pending is None:
            return
        pending.handle = None
        self._track(pending)

    def _track(self, pending: PendingWrite) -> asyncio.Task[None]:
        task = asyncio.get_running_loop().create_task(self._dispatch(pending))
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)
        return task

    async def _dispatch(self, pending: PendingWrite) -> None:
        key, value = pending.key, pending.value
        _logger.debug("Dispatching write for %s", key)

        error: StorageError | None = None
        try:
            await self._serializer.enqueue(
                key,
                lambda: with_retry(
                    lambda: self._writer(key, value),
                    self._retry,
                    description=f"write {key}",
                ),
            )
        except asyncio.CancelledError:
            if not pending.waiter.done():
                pending.waiter.cancel()
            raise
        except StorageError as exc:
            error = exc

        if self._on_written is not None:
            try:
                self._on_written(key, value, error)
            except Exception:
                _logger.debug("on_written callback failed for %s", key, exc_info=True)

        if pending.waiter.done():
            return
        if error is None:
            pending.waiter.set_result(None)
        else:
            pending.waiter.set_exception(error)
