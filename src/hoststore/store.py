"""Persisted values with read-through caching and debounced writes.

:class:`PersistedStore` is the entry point consumers use.  It keeps one
JSON document per key under ``config.root`` and composes the in-memory
cache, the per-key operation serializer, the write coalescer and the
retry policy:

* reads are served from the cache when warm, otherwise read once through
  the channel (missing documents resolve to the caller's default);
* mutations update the cache immediately and are written after
  ``config.debounce_delay`` seconds, later mutations replacing earlier
  ones that have not been written yet;
* all channel calls for a key run one at a time, in call order.

Usage::

    store = PersistedStore(LocalChannel(), StoreConfig(root="/tmp/app/store"))
    settings, status = await store.bind("settings", {"theme": "dark"})
    store.set_value("settings", lambda prev: {**prev, "theme": "light"})
    await store.aclose()
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from hoststore._cache import MemoryCache
from hoststore._coalescer import WriteCoalescer
from hoststore._constants import BACKUP_SUFFIX
from hoststore._logfmt import summarize_for_log
from hoststore._paths import key_path, parent_path
from hoststore._retry import with_retry
from hoststore._serializer import OperationSerializer
from hoststore.channels.base import Channel
from hoststore.client import ChannelClient
from hoststore.config import StoreConfig
from hoststore.exceptions import StorageError, StorageNotFoundError, StorageUnknownError
from hoststore.models.status import BindStatus, CacheState

_logger = logging.getLogger(__name__)

Updater = Callable[[Any], Any]
Subscriber = Callable[[str, Any, BindStatus], None]


@dataclass(frozen=True, slots=True)
class _Mutation:
    """Payload handed to the coalescer: the value and the cache version it produced."""

    value: Any
    version: int
    barrier: asyncio.Task[None] | None = None


def _encode(value: Any) -> str:
    return json.dumps(value, indent=2, ensure_ascii=False)


class PersistedStore:
    """Cache-backed, debounced key/value persistence over a channel.

    One instance owns its cache and queues; construct one per storage root
    and call :meth:`aclose` (or use ``async with``) on shutdown.
    """

    def __init__(self, channel: Channel, config: StoreConfig | None = None) -> None:
        self._config = config or StoreConfig()
        self._channel = channel
        self._cache = MemoryCache()
        self._serializer = OperationSerializer()
        self._coalescer = WriteCoalescer(
            self._write_document,
            self._serializer,
            self._config.retry,
            on_written=self._on_written,
        )
        self._loads: dict[str, asyncio.Task[Any]] = {}
        self._subscribers: dict[str, list[Subscriber]] = {}
        self._root_ready = False
        self._clearing: asyncio.Task[None] | None = None
        self.files = ChannelClient(
            channel,
            retry=self._config.retry,
            serializer=self._serializer,
            queue_key=self._files_queue_key,
        )

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> PersistedStore:
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Write out pending values, then release timers and bookkeeping.

        Write failures at this point are logged, not raised.
        """
        try:
            await self._coalescer.flush_all()
        except StorageError as exc:
            _logger.warning("Pending write failed during close: %s", exc)
        await self._coalescer.aclose()
        await self._serializer.drain_all()
        self.reset()

    def reset(self) -> None:
        """Drop all in-memory state without touching the channel."""
        self._coalescer.cancel_all()
        self._loads.clear()
        self._serializer.clear()
        self._cache.clear()
        self._subscribers.clear()
        self._root_ready = False
        self._clearing = None

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def config(self) -> StoreConfig:
        return self._config

    @property
    def channel(self) -> Channel:
        return self._channel

    def path_for(self, key: str) -> str:
        return key_path(self._config.root, key, self._config.extension)

    def _files_queue_key(self, op: str, path: str) -> str:
        """Queue key for ``files`` mutations.

        Documents (and their backups) under the root share the queue of the
        key they back, so ``files`` never overlaps the store's own calls.
        """
        root = self._config.root.rstrip("/")
        if parent_path(path).rstrip("/") == root:
            name = path.rsplit("/", 1)[-1]
            if name.endswith(BACKUP_SUFFIX):
                name = name[: -len(BACKUP_SUFFIX)]
            ext = self._config.extension
            if ext and name.endswith(ext) and len(name) > len(ext):
                return name[: -len(ext)]
        return f"{op}:{path}"

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, key: str, default: Any = None) -> tuple[Any, BindStatus]:
        """Return the cached value without I/O (*default* unless READY)."""
        value, state = self._cache.get(key)
        if state != CacheState.READY:
            value = default
        return value, self._cache.status(key)

    def status(self, key: str) -> BindStatus:
        return self._cache.status(key)

    async def bind(self, key: str, default: Any = None) -> tuple[Any, BindStatus]:
        """Return the value for *key*, loading it through the channel when cold.

        A missing document resolves to *default* and is not an error.  Other
        read failures raise :class:`StorageError` and leave the cache as it
        was.  Concurrent binds of the same cold key share one read.
        """
        self.path_for(key)
        value, state = self._cache.get(key)
        if state == CacheState.READY:
            return value, self._cache.status(key)

        task = self._loads.get(key)
        if task is None:
            task = asyncio.get_running_loop().create_task(self._load(key, default))
            self._loads[key] = task
            task.add_done_callback(lambda done: self._load_done(key, done))

        value = await asyncio.shield(task)
        current, state = self._cache.get(key)
        if state == CacheState.READY:
            value = current
        return value, self._cache.status(key)

    def _load_done(self, key: str, task: asyncio.Task[Any]) -> None:
        if self._loads.get(key) is task:
            del self._loads[key]
        if not task.cancelled():
            task.exception()

    async def _load(self, key: str, default: Any) -> Any:
        path = self.path_for(key)
        entry = self._cache.entry(key)
        previous_state = entry.state if entry is not None else CacheState.UNINITIALIZED
        entry = self._cache.mark_loading(key)
        started_version = entry.version
        barrier = self._clearing
        self._notify(key)
        _logger.debug("Loading %s from %s", key, path)

        found = True
        try:
            content = await self._serializer.enqueue(key, lambda: self._read_document(key, path, barrier))
        except StorageNotFoundError:
            found = False
            content = None
        except StorageError as exc:
            self._load_failed(key, started_version, previous_state, exc)
            raise

        if found:
            try:
                value = json.loads(content) if content else None
            except json.JSONDecodeError as exc:
                error = StorageUnknownError(
                    f"Stored value for {key!r} is not valid JSON",
                    details={"path": path, "position": exc.pos},
                )
                self._load_failed(key, started_version, previous_state, error)
                raise error from exc
        else:
            value = default

        entry = self._cache.entry(key)
        if entry is None or entry.version != started_version:
            # Mutated, removed or cleared while the read was in flight.
            _logger.debug("Discarding stale load for %s", key)
            current, state = self._cache.get(key)
            return current if state == CacheState.READY else default

        self._cache.set(key, value, CacheState.READY)
        if found:
            self._cache.confirm(key, value)
        else:
            entry.error = None
        self._notify(key)
        _logger.debug("Loaded %s (found=%s): %s", key, found, summarize_for_log(value))
        return value

    def _load_failed(
        self,
        key: str,
        started_version: int,
        previous_state: CacheState,
        error: StorageError,
    ) -> None:
        entry = self._cache.entry(key)
        if entry is None or entry.version != started_version:
            return
        entry.state = previous_state
        entry.error = error
        _logger.debug("Load of %s failed: %s", key, error.kind.value)
        self._notify(key)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def set_value(
        self,
        key: str,
        updater: Any | Updater,
        *,
        default: Any = None,
        delay: float | None = None,
    ) -> asyncio.Future[None]:
        """Update *key* in the cache now and schedule a debounced write.

        *updater* is either the new value or a function of the previous one
        (the cached value when READY, otherwise *default*).  Must be called
        from the event loop.  The returned future resolves once the write
        carrying this value (or a later one that replaced it) has been
        stored, and raises its :class:`StorageError` if that write failed.
        Awaiting it is optional.

        Raises
        ------
        TypeError
            If the new value cannot be encoded as JSON.
        """
        self.path_for(key)
        if callable(updater):
            previous, _ = self.get(key, default)
            value = updater(previous)
        else:
            value = updater
        _encode(value)

        entry = self._cache.set(key, value, CacheState.READY)
        self._cache.mark_dirty(key)
        self._notify(key)

        waiter = self._coalescer.schedule(
            key,
            _Mutation(value=value, version=entry.version, barrier=self._clearing),
            self._config.debounce_delay if delay is None else delay,
        )
        return waiter

    async def flush(self, key: str) -> None:
        """Write the pending value for *key* now and wait for it."""
        await self._coalescer.flush_now(key)

    async def flush_all(self) -> None:
        await self._coalescer.flush_all()

    async def remove(self, key: str) -> None:
        """Delete the document for *key* and mark the entry REMOVED.

        A pending write is dropped first.  A document that does not exist is
        not an error.  A value set while the delete is in flight is newer
        than the removal: it stays in the cache and its write goes ahead.
        """
        path = self.path_for(key)
        self._coalescer.cancel(key)
        entry = self._cache.entry(key)
        version = entry.version if entry is not None else 0
        barrier = self._clearing

        async def _delete() -> None:
            await self._wait_for_clear(barrier)
            await self._delete_if_present(path, f"delete {key}")
            if self._config.backup:
                await self._delete_if_present(f"{path}{BACKUP_SUFFIX}", f"delete {key} backup")

        await self._serializer.enqueue(key, _delete)

        current = self._cache.entry(key)
        if current is not None and current.dirty and (current is not entry or current.version != version):
            _logger.debug("%s was set again while being removed; keeping the new value", key)
            return
        entry = self._cache.set(key, None, CacheState.REMOVED)
        entry.error = None
        _logger.debug("Removed %s", key)
        self._notify(key)

    async def clear_all(self) -> None:
        """Delete the whole storage root and forget every cached key.

        The cache is cleared and subscribers are notified before any I/O.
        Reads and writes issued while the root is being deleted run after
        the delete, so values set during a clear survive it.
        """
        root = self._config.root
        self._coalescer.cancel_all()
        self._loads.clear()
        keys = set(self._cache.keys()) | set(self._subscribers)
        self._cache.clear()
        self._root_ready = False

        clearing = asyncio.get_running_loop().create_task(
            self._delete_root(self._serializer.settle_current(), self._clearing)
        )
        self._clearing = clearing
        clearing.add_done_callback(self._clear_done)

        removed = BindStatus(state=CacheState.REMOVED)
        for key in keys:
            self._dispatch(key, None, removed)

        await asyncio.shield(clearing)
        _logger.debug("Cleared store at %s", root)

    async def keys(self) -> list[str]:
        """Keys that currently have a document under the storage root."""
        root = self._config.root
        try:
            names = await with_retry(
                lambda: self._channel.list_dir(root, False),
                self._config.retry,
                description=f"list {root}",
            )
        except StorageNotFoundError:
            return []
        ext = self._config.extension
        return sorted(name[: len(name) - len(ext)] if ext else name for name in names if name.endswith(ext))

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def subscribe(self, key: str, callback: Subscriber) -> Callable[[], None]:
        """Call ``callback(key, value, status)`` whenever *key* changes.

        Returns a function that removes the subscription.
        """
        self._subscribers.setdefault(key, []).append(callback)

        def _unsubscribe() -> None:
            callbacks = self._subscribers.get(key)
            if callbacks and callback in callbacks:
                callbacks.remove(callback)
                if not callbacks:
                    del self._subscribers[key]

        return _unsubscribe

    def value(self, key: str, default: Any = None) -> PersistedValue:
        """Return a handle bound to *key* with *default* as fallback."""
        self.path_for(key)
        return PersistedValue(self, key, default)

    def _notify(self, key: str) -> None:
        if key not in self._subscribers:
            return
        value, state = self._cache.get(key)
        self._dispatch(key, value if state == CacheState.READY else None, self._cache.status(key))

    def _dispatch(self, key: str, value: Any, status: BindStatus) -> None:
        for callback in list(self._subscribers.get(key, ())):
            try:
                callback(key, value, status)
            except Exception:
                _logger.debug("Subscriber for %s failed", key, exc_info=True)

    # ------------------------------------------------------------------
    # Channel plumbing (runs inside the serializer)
    # ------------------------------------------------------------------

    async def _ensure_root(self) -> None:
        if self._root_ready:
            return
        root = self._config.root
        if not await self._channel.exists(root):
            await self._channel.mkdir(root, True)
        self._root_ready = True

    async def _wait_for_clear(self, barrier: asyncio.Task[None] | None) -> None:
        if barrier is None or barrier.done():
            return
        try:
            await asyncio.shield(barrier)
        except StorageError:
            _logger.debug("Clearing the store failed; continuing", exc_info=True)

    async def _delete_root(
        self,
        settled: asyncio.Future[list[Any]],
        previous: asyncio.Task[None] | None,
    ) -> None:
        await self._wait_for_clear(previous)
        await settled
        root = self._config.root
        exists = await with_retry(
            lambda: self._channel.exists(root),
            self._config.retry,
            description=f"exists {root}",
        )
        if exists:
            await self._delete_if_present(root, f"delete {root}")
        self._root_ready = False

    def _clear_done(self, task: asyncio.Task[None]) -> None:
        if self._clearing is task:
            self._clearing = None
        if not task.cancelled():
            task.exception()

    async def _read_document(self, key: str, path: str, barrier: asyncio.Task[None] | None) -> str:
        await self._wait_for_clear(barrier)
        return await with_retry(
            lambda: self._channel.read(path),
            self._config.retry,
            description=f"read {key}",
        )

    async def _write_document(self, key: str, mutation: _Mutation) -> None:
        content = _encode(mutation.value)
        await self._wait_for_clear(mutation.barrier)
        _logger.debug("Writing %s: %s", key, summarize_for_log(mutation.value))
        await self._ensure_root()
        await self._channel.write(self.path_for(key), content, backup=self._config.backup)

    async def _delete_if_present(self, path: str, description: str) -> None:
        try:
            await with_retry(
                lambda: self._channel.delete(path),
                self._config.retry,
                description=description,
            )
        except StorageNotFoundError:
            _logger.debug("%s: nothing to delete", description)

    def _on_written(self, key: str, mutation: _Mutation, error: StorageError | None) -> None:
        entry = self._cache.entry(key)
        if entry is None or entry.state == CacheState.REMOVED:
            return
        is_latest = entry.version == mutation.version

        if error is None:
            self._cache.confirm(key, mutation.value)
            if is_latest:
                entry.dirty = False
            _logger.debug("Stored %s", key)
            self._notify(key)
            return

        _logger.warning("Failed to persist %s: %s", key, error)
        self._cache.record_error(key, error)
        if not is_latest:
            # A newer mutation owns the cache value; its own write decides.
            self._notify(key)
            return

        if self._config.rollback_on_failure and entry.has_confirmed:
            self._cache.set(key, entry.last_confirmed, CacheState.READY)
            entry.dirty = False
            entry.tainted = False
            _logger.debug("Rolled back %s to last stored value", key)
        else:
            entry.tainted = True
        self._notify(key)


class PersistedValue:
    """A store handle bound to one key.

    Mirrors the ``[value, set_value, status]`` triple UI code works with::

        recent = store.value("recentProjects", [])
        await recent.load()
        recent.set(lambda prev: [project, *prev][:10])
    """

    def __init__(self, store: PersistedStore, key: str, default: Any = None) -> None:
        self._store = store
        self.key = key
        self.default = default

    def __repr__(self) -> str:
        return f"PersistedValue(key={self.key!r}, state={self.status.state.value})"

    @property
    def value(self) -> Any:
        return self._store.get(self.key, self.default)[0]

    @property
    def status(self) -> BindStatus:
        return self._store.status(self.key)

    async def load(self) -> Any:
        value, _ = await self._store.bind(self.key, self.default)
        return value

    def set(self, updater: Any | Updater, *, delay: float | None = None) -> asyncio.Future[None]:
        return self._store.set_value(self.key, updater, default=self.default, delay=delay)

    async def flush(self) -> None:
        await self._store.flush(self.key)

    async def remove(self) -> None:
        await self._store.remove(self.key)

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        return self._store.subscribe(self.key, callback)
