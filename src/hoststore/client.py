"""Typed facade over a raw channel.

:class:`ChannelClient` is what application code uses for ad-hoc file
operations (project folders, exported documents).  Every call raises
:class:`~hoststore.exceptions.StorageError` instead of raw channel
failures; reads are retried and mutations are serialized per path so two
writes to the same file never overlap.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from hoststore._retry import with_retry
from hoststore._serializer import OperationSerializer
from hoststore._translate import translate_error
from hoststore.channels.base import Channel
from hoststore.config import RetryConfig
from hoststore.models.files import FileStats

_logger = logging.getLogger(__name__)

T = TypeVar("T")


def _default_queue_key(op: str, path: str) -> str:
    return f"{op}:{path}"


class ChannelClient:
    """Error-translating, retrying, per-path serialized channel wrapper.

    Mutations are queued under ``queue_key(op, path)`` (``"write:<path>"``
    and so on by default).  :class:`~hoststore.store.PersistedStore` shares
    its serializer and maps its own documents to their keys, so ``store.files``
    never overlaps the store's reads and writes.
    """

    def __init__(
        self,
        channel: Channel,
        *,
        retry: RetryConfig | None = None,
        serializer: OperationSerializer | None = None,
        queue_key: Callable[[str, str], str] | None = None,
    ) -> None:
        self._channel = channel
        self._retry = retry or RetryConfig()
        self._serializer = serializer or OperationSerializer()
        self._queue_key = queue_key or _default_queue_key

    @property
    def channel(self) -> Channel:
        return self._channel

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _call(self, description: str, fn: Callable[[], Awaitable[T]]) -> T:
        """Run one channel call, translating any failure."""
        try:
            return await fn()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            error = translate_error(exc)
            _logger.debug("%s failed: %s", description, error.kind.value)
            if error is exc:
                raise
            raise error from exc

    async def _retried(self, description: str, fn: Callable[[], Awaitable[T]]) -> T:
        return await with_retry(fn, self._retry, description=description)

    async def _queued(self, op: str, path: str, fn: Callable[[], Awaitable[T]]) -> T:
        return await self._serializer.enqueue(self._queue_key(op, path), lambda: self._call(f"{op} {path}", fn))

    # ------------------------------------------------------------------
    # Reads (retried)
    # ------------------------------------------------------------------

    async def read_text(self, path: str) -> str:
        return await self._retried(f"read {path}", lambda: self._channel.read(path))

    async def exists(self, path: str) -> bool:
        return await self._retried(f"exists {path}", lambda: self._channel.exists(path))

    async def list_dir(self, path: str, recursive: bool = False) -> list[str]:
        return await self._retried(f"list {path}", lambda: self._channel.list_dir(path, recursive))

    async def stat(self, path: str) -> FileStats:
        raw = await self._retried(f"stat {path}", lambda: self._channel.stat(path))
        return FileStats.model_validate(raw)

    # ------------------------------------------------------------------
    # Mutations (serialized per path)
    # ------------------------------------------------------------------

    async def write_text(self, path: str, content: str, *, backup: bool = False) -> None:
        await self._queued("write", path, lambda: self._channel.write(path, content, backup=backup))

    async def delete(self, path: str) -> None:
        await self._queued("delete", path, lambda: self._channel.delete(path))

    async def move(self, src: str, dst: str) -> None:
        await self._queued("move", src, lambda: self._channel.move(src, dst))

    async def copy(self, src: str, dst: str) -> None:
        await self._queued("copy", src, lambda: self._channel.copy(src, dst))

    async def mkdir(self, path: str, recursive: bool = True) -> None:
        await self._call(f"mkdir {path}", lambda: self._channel.mkdir(path, recursive))

    async def ensure_dir(self, path: str) -> None:
        """Create *path* (and parents) unless it already exists."""
        if not await self.exists(path):
            await self.mkdir(path, recursive=True)
