"""In-memory cache of persisted values, one entry per storage key."""

from __future__ import annotations

import copy
from dataclasses import dataclass
from typing import Any

from hoststore.exceptions import StorageError
from hoststore.models.status import BindStatus, CacheState


@dataclass
class CacheEntry:
    """Last-known value for a single key.

    ``last_confirmed`` is the most recent value known to match the durable
    artifact (read from it or successfully written to it).  ``version``
    increases on every assignment so late write completions can tell
    whether the entry moved on while they were in flight.
    """

    key: str
    value: Any = None
    state: CacheState = CacheState.UNINITIALIZED
    last_confirmed: Any = None
    has_confirmed: bool = False
    dirty: bool = False
    tainted: bool = False
    error: StorageError | None = None
    version: int = 0

    def status(self) -> BindStatus:
        return BindStatus(
            state=self.state,
            loading=self.state == CacheState.LOADING,
            dirty=self.dirty,
            tainted=self.tainted,
            error=self.error,
        )


class MemoryCache:
    """Key -> value map with a lifecycle state per key.

    Pure bookkeeping: no method here performs I/O or suspends.  Values are
    copied on the way in and out so callers cannot mutate cached state
    behind the store's back.
    """

    def __init__(self) -> None:
        self._entries: dict[str, CacheEntry] = {}

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def keys(self) -> list[str]:
        return list(self._entries)

    def _entry(self, key: str) -> CacheEntry:
        entry = self._entries.get(key)
        if entry is None:
            entry = CacheEntry(key=key)
            self._entries[key] = entry
        return entry

    def entry(self, key: str) -> CacheEntry | None:
        return self._entries.get(key)

    def get(self, key: str) -> tuple[Any, CacheState]:
        entry = self._entries.get(key)
        if entry is None:
            return None, CacheState.UNINITIALIZED
        return copy.deepcopy(entry.value), entry.state

    def status(self, key: str) -> BindStatus:
        entry = self._entries.get(key)
        if entry is None:
            return BindStatus()
        return entry.status()

    def set(self, key: str, value: Any, state: CacheState) -> CacheEntry:
        entry = self._entry(key)
        entry.value = copy.deepcopy(value)
        entry.state = state
        entry.version += 1
        if state == CacheState.REMOVED:
            entry.dirty = False
            entry.tainted = False
            entry.has_confirmed = False
            entry.last_confirmed = None
        return entry

    def mark_loading(self, key: str) -> CacheEntry:
        entry = self._entry(key)
        entry.state = CacheState.LOADING
        entry.error = None
        return entry

    def mark_dirty(self, key: str) -> CacheEntry:
        entry = self._entry(key)
        entry.dirty = True
        return entry

    def confirm(self, key: str, value: Any) -> CacheEntry:
        """Record *value* as matching the durable artifact."""
        entry = self._entry(key)
        entry.last_confirmed = copy.deepcopy(value)
        entry.has_confirmed = True
        entry.tainted = False
        entry.error = None
        return entry

    def record_error(self, key: str, error: StorageError) -> CacheEntry:
        entry = self._entry(key)
        entry.error = error
        return entry

    def clear(self) -> None:
        self._entries.clear()
