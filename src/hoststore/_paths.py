"""Storage root resolution and key-to-path mapping."""

from __future__ import annotations

import os
import sys
from collections.abc import Mapping

from hoststore._constants import DEFAULT_APP_NAME
from hoststore.exceptions import StorageInvalidPathError

_FORBIDDEN_KEY_CHARS = frozenset('/\\:*?"<>|\x00')


def user_data_dir(
    app_name: str = DEFAULT_APP_NAME,
    *,
    platform: str | None = None,
    environ: Mapping[str, str] | None = None,
) -> str:
    """Return the per-user application data directory for *app_name*.

    Windows: ``%APPDATA%/<app>``; macOS: ``~/Library/Application Support/<app>``;
    elsewhere ``$XDG_CONFIG_HOME/<app>`` falling back to ``~/.config/<app>``.
    """
    platform = platform or sys.platform
    env = os.environ if environ is None else environ
    home = env.get("HOME") or os.path.expanduser("~")

    if platform.startswith("win"):
        base = env.get("APPDATA") or f"{home}/AppData/Roaming"
    elif platform == "darwin":
        base = f"{home}/Library/Application Support"
    else:
        base = env.get("XDG_CONFIG_HOME") or f"{home}/.config"
    return join_path(base, app_name)


def default_storage_dir(
    app_name: str = DEFAULT_APP_NAME,
    *,
    platform: str | None = None,
    environ: Mapping[str, str] | None = None,
) -> str:
    """Directory holding one document per key (``<user data>/store``)."""
    return join_path(user_data_dir(app_name, platform=platform, environ=environ), "store")


def join_path(root: str, name: str) -> str:
    """Join host path segments with ``/`` (hosts accept it on every platform)."""
    if not root:
        return name
    return f"{root.rstrip('/')}/{name.lstrip('/')}"


def parent_path(path: str) -> str:
    stripped = path.rstrip("/")
    index = stripped.rfind("/")
    if index <= 0:
        return "/" if index == 0 else ""
    return stripped[:index]


def validate_key(key: str) -> str:
    """Reject keys that would escape the storage root or be unusable as file names."""
    if not isinstance(key, str) or not key.strip():
        raise StorageInvalidPathError("Storage key must be a non-empty string", details={"key": key})
    if key in {".", ".."} or any(ch in _FORBIDDEN_KEY_CHARS for ch in key):
        raise StorageInvalidPathError(f"Invalid storage key: {key!r}", details={"key": key})
    return key


def key_path(root: str, key: str, extension: str) -> str:
    """Path of the document backing *key*: ``<root>/<key><extension>``."""
    return join_path(root, f"{validate_key(key)}{extension}")
