"""Channel over the local filesystem.

Blocking filesystem calls run in the default executor via
:func:`asyncio.to_thread`.  Failures surface as plain ``OSError``
subclasses, which the store's error translator understands.
"""

from __future__ import annotations

import asyncio
import logging
import os
import shutil
from pathlib import Path
from typing import Any

from hoststore._constants import BACKUP_SUFFIX

_logger = logging.getLogger(__name__)


def _write_file(path: Path, content: str, backup: bool) -> None:
    if backup and path.is_file():
        shutil.copy2(path, path.with_name(path.name + BACKUP_SUFFIX))
    tmp = path.with_name(f".{path.name}.tmp")
    tmp.write_text(content, encoding="utf-8")
    os.replace(tmp, path)


def _delete(path: Path) -> None:
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    else:
        path.unlink()


def _list_dir(path: Path, recursive: bool) -> list[str]:
    if recursive:
        return sorted(p.relative_to(path).as_posix() for p in path.rglob("*"))
    return sorted(p.name for p in path.iterdir())


def _stat(path: Path) -> dict[str, Any]:
    st = path.stat()
    return {"isDirectory": path.is_dir(), "size": st.st_size, "mtime": st.st_mtime}


class LocalChannel:
    """Channel that reads and writes files on this machine."""

    async def read(self, path: str) -> str:
        _logger.debug("read %s", path)
        return await asyncio.to_thread(Path(path).read_text, encoding="utf-8")

    async def write(self, path: str, content: str, *, backup: bool = False) -> None:
        _logger.debug("write %s (%d chars, backup=%s)", path, len(content), backup)
        await asyncio.to_thread(_write_file, Path(path), content, backup)

    async def exists(self, path: str) -> bool:
        return await asyncio.to_thread(Path(path).exists)

    async def mkdir(self, path: str, recursive: bool = True) -> None:
        _logger.debug("mkdir %s", path)
        await asyncio.to_thread(Path(path).mkdir, parents=recursive, exist_ok=True)

    async def delete(self, path: str) -> None:
        _logger.debug("delete %s", path)
        await asyncio.to_thread(_delete, Path(path))

    async def list_dir(self, path: str, recursive: bool = False) -> list[str]:
        return await asyncio.to_thread(_list_dir, Path(path), recursive)

    async def stat(self, path: str) -> dict[str, Any]:
        return await asyncio.to_thread(_stat, Path(path))

    async def move(self, src: str, dst: str) -> None:
        _logger.debug("move %s -> %s", src, dst)
        await asyncio.to_thread(os.replace, src, dst)

    async def copy(self, src: str, dst: str) -> None:
        _logger.debug("copy %s -> %s", src, dst)
        await asyncio.to_thread(shutil.copy2, src, dst)
