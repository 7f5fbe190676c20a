from __future__ import annotations

from hoststore._cache import MemoryCache
from hoststore.exceptions import StorageTimeoutError
from hoststore.models.status import BindStatus, CacheState


def test_unknown_key_is_uninitialized() -> None:
    cache = MemoryCache()

    assert cache.get("missing") == (None, CacheState.UNINITIALIZED)
    assert cache.status("missing") == BindStatus()
    assert "missing" not in cache


def test_values_are_copied_in_and_out() -> None:
    cache = MemoryCache()
    original = {"recent": ["a"]}
    cache.set("projects", original, CacheState.READY)
    original["recent"].append("b")

    value, state = cache.get("projects")
    value["recent"].append("c")

    assert state == CacheState.READY
    assert cache.get("projects")[0] == {"recent": ["a"]}


def test_set_bumps_version() -> None:
    cache = MemoryCache()
    first = cache.set("k", 1, CacheState.READY).version
    second = cache.set("k", 2, CacheState.READY).version

    assert second == first + 1


def test_confirm_clears_taint_and_error() -> None:
    cache = MemoryCache()
    entry = cache.set("k", 1, CacheState.READY)
    entry.tainted = True
    cache.record_error("k", StorageTimeoutError("slow"))

    cache.confirm("k", 1)

    status = cache.status("k")
    assert status.tainted is False
    assert status.error is None
    assert entry.has_confirmed and entry.last_confirmed == 1


def test_removed_resets_confirmation() -> None:
    cache = MemoryCache()
    cache.set("k", 1, CacheState.READY)
    cache.confirm("k", 1)
    cache.mark_dirty("k")

    entry = cache.set("k", None, CacheState.REMOVED)

    assert entry.has_confirmed is False
    assert entry.dirty is False
    assert cache.status("k").state == CacheState.REMOVED


def test_mark_loading_reports_loading() -> None:
    cache = MemoryCache()
    cache.record_error("k", StorageTimeoutError("slow"))

    status = cache.mark_loading("k").status()

    assert status.loading is True
    assert status.error is None
