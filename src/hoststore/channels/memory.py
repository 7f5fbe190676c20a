"""In-memory channel.

Behaves like a small host filesystem: files need an existing parent
directory, deletes of missing paths fail with ``FILE_NOT_FOUND``.  Every
call is recorded in :attr:`MemoryChannel.calls`, and failures can be
injected per operation, which makes it the default double for tests.
"""

from __future__ import annotations

import asyncio
import time
from collections import defaultdict, deque
from typing import Any

from hoststore._constants import BACKUP_SUFFIX
from hoststore._paths import parent_path
from hoststore.exceptions import ChannelFailure


def _norm(path: str) -> str:
    if path in ("", "/"):
        return path
    return path.rstrip("/")


class MemoryChannel:
    """Channel backed by dictionaries, for tests and ephemeral stores."""

    def __init__(self, *, latency: float = 0.0) -> None:
        self.latency = latency
        self.files: dict[str, str] = {}
        self.dirs: set[str] = set()
        self.mtimes: dict[str, float] = {}
        self.calls: list[tuple[str, str]] = []
        self._failures: defaultdict[str, deque[ChannelFailure]] = defaultdict(deque)

    # ------------------------------------------------------------------
    # Test helpers
    # ------------------------------------------------------------------

    def fail(self, op: str, code: str, *, times: int = 1, message: str = "") -> None:
        """Make the next *times* calls of *op* raise ``ChannelFailure(code)``."""
        for _ in range(times):
            self._failures[op].append(ChannelFailure(message or f"{op} failed", code=code))

    def calls_for(self, op: str) -> list[str]:
        return [path for name, path in self.calls if name == op]

    def _is_dir(self, path: str) -> bool:
        return path in ("", "/") or path in self.dirs

    async def _enter(self, op: str, path: str) -> None:
        self.calls.append((op, path))
        if self.latency:
            await asyncio.sleep(self.latency)
        else:
            await asyncio.sleep(0)
        queue = self._failures.get(op)
        if queue:
            raise queue.popleft()

    def _not_found(self, path: str) -> ChannelFailure:
        return ChannelFailure(f"No such file or directory: {path}", code="FILE_NOT_FOUND", details={"path": path})

    def _children(self, path: str) -> list[str]:
        prefix = f"{path.rstrip('/')}/"
        return [p for p in (*self.files, *self.dirs) if p.startswith(prefix)]

    # ------------------------------------------------------------------
    # Channel protocol
    # ------------------------------------------------------------------

    async def read(self, path: str) -> str:
        path = _norm(path)
        await self._enter("read", path)
        if path not in self.files:
            raise self._not_found(path)
        return self.files[path]

    async def write(self, path: str, content: str, *, backup: bool = False) -> None:
        path = _norm(path)
        await self._enter("write", path)
        if not self._is_dir(parent_path(path)):
            raise self._not_found(parent_path(path))
        if self._is_dir(path):
            raise ChannelFailure(f"Is a directory: {path}", code="INVALID_PATH")
        if backup and path in self.files:
            self.files[f"{path}{BACKUP_SUFFIX}"] = self.files[path]
        self.files[path] = content
        self.mtimes[path] = time.time()

    async def exists(self, path: str) -> bool:
        path = _norm(path)
        await self._enter("exists", path)
        return path in self.files or self._is_dir(path)

    async def mkdir(self, path: str, recursive: bool = True) -> None:
        path = _norm(path)
        await self._enter("mkdir", path)
        if path in self.files:
            raise ChannelFailure(f"File exists: {path}", code="INVALID_PATH")
        parent = parent_path(path)
        if not self._is_dir(parent):
            if not recursive:
                raise self._not_found(parent)
            while parent and not self._is_dir(parent):
                self.dirs.add(parent)
                parent = parent_path(parent)
        self.dirs.add(path)

    async def delete(self, path: str) -> None:
        path = _norm(path)
        await self._enter("delete", path)
        if path in self.files:
            del self.files[path]
            self.mtimes.pop(path, None)
            return
        if path not in self.dirs:
            raise self._not_found(path)
        for child in self._children(path):
            self.files.pop(child, None)
            self.mtimes.pop(child, None)
            self.dirs.discard(child)
        self.dirs.discard(path)

    async def list_dir(self, path: str, recursive: bool = False) -> list[str]:
        path = _norm(path)
        await self._enter("list_dir", path)
        if not self._is_dir(path):
            raise self._not_found(path)
        prefix = f"{path.rstrip('/')}/"
        names = sorted(child[len(prefix) :] for child in self._children(path))
        if recursive:
            return names
        return [name for name in names if "/" not in name]

    async def stat(self, path: str) -> dict[str, Any]:
        path = _norm(path)
        await self._enter("stat", path)
        if path in self.files:
            return {
                "isDirectory": False,
                "size": len(self.files[path].encode("utf-8")),
                "mtime": self.mtimes.get(path),
            }
        if self._is_dir(path):
            return {"isDirectory": True, "size": 0, "mtime": None}
        raise self._not_found(path)

    async def move(self, src: str, dst: str) -> None:
        src, dst = _norm(src), _norm(dst)
        await self._enter("move", src)
        if src not in self.files:
            raise self._not_found(src)
        if not self._is_dir(parent_path(dst)):
            raise self._not_found(parent_path(dst))
        self.files[dst] = self.files.pop(src)
        self.mtimes[dst] = self.mtimes.pop(src, time.time())

    async def copy(self, src: str, dst: str) -> None:
        src, dst = _norm(src), _norm(dst)
        await self._enter("copy", src)
        if src not in self.files:
            raise self._not_found(src)
        if not self._is_dir(parent_path(dst)):
            raise self._not_found(parent_path(dst))
        self.files[dst] = self.files[src]
        self.mtimes[dst] = time.time()
