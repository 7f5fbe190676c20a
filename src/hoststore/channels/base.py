"""Structural channel interface.

A channel is the only way the store reaches durable storage.  Production
code passes a concrete implementation (local filesystem, remote file
service); tests pass :class:`~hoststore.channels.memory.MemoryChannel` or
their own doubles.  Implementations signal failures by raising
:class:`~hoststore.exceptions.ChannelFailure` (or ``OSError``); the store
translates them.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class Channel(Protocol):
    async def read(self, path: str) -> str:
        ...

    async def write(self, path: str, content: str, *, backup: bool = False) -> None:
        ...

    async def exists(self, path: str) -> bool:
        ...

    async def mkdir(self, path: str, recursive: bool = True) -> None:
        ...

    async def delete(self, path: str) -> None:
        ...

    async def list_dir(self, path: str, recursive: bool = False) -> list[str]:
        ...

    async def stat(self, path: str) -> dict[str, Any]:
        ...

    async def move(self, src: str, dst: str) -> None:
        ...

    async def copy(self, src: str, dst: str) -> None:
        ...
