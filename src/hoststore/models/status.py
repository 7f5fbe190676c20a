"""Cache state and per-key status models."""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict

from hoststore.exceptions import StorageError


class CacheState(StrEnum):
    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    READY = "ready"
    REMOVED = "removed"


class BindStatus(BaseModel):
    """Status of a bound key as seen by consumers.

    Parameters
    ----------
    state : CacheState
        Lifecycle state of the key's cache entry.
    loading : bool
        ``True`` while the first read from the channel is outstanding.
    dirty : bool
        The cached value has not been durably written yet.
    tainted : bool
        A write failed and the cache was left ahead of the durable copy.
    error : StorageError or None
        Last read or write failure for the key, if any.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    state: CacheState = CacheState.UNINITIALIZED
    loading: bool = False
    dirty: bool = False
    tainted: bool = False
    error: StorageError | None = None

    @property
    def ready(self) -> bool:
        return self.state == CacheState.READY
