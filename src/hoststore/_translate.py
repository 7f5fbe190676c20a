"""Translate raw channel failures into typed storage errors.

Channels report failures in several shapes: :class:`ChannelFailure`
exceptions, ``{"code": ..., "message": ...}`` payloads relayed from the
host, plain :class:`OSError` from local filesystem calls, or aiohttp
client errors.  Everything funnels through :func:`translate_error` so
callers only ever branch on :class:`~hoststore.exceptions.ErrorKind`.
"""

from __future__ import annotations

import errno
from collections.abc import Mapping
from typing import Any

import aiohttp

from hoststore._constants import CODE_TO_KIND, KIND_MESSAGES
from hoststore.exceptions import ChannelFailure, ErrorKind, StorageError, storage_error


def kind_for_code(code: str | None) -> ErrorKind:
    """Map a host error code to an :class:`ErrorKind` (``UNKNOWN`` if unmapped)."""
    if not code:
        return ErrorKind.UNKNOWN
    return CODE_TO_KIND.get(str(code).strip().upper(), ErrorKind.UNKNOWN)


def _from_code(code: str, message: str, details: Any) -> StorageError:
    kind = kind_for_code(code)
    if kind is ErrorKind.UNKNOWN:
        text = message or KIND_MESSAGES[kind]
    else:
        text = KIND_MESSAGES[kind]
    payload: dict[str, Any] = {"code": code or ErrorKind.UNKNOWN.value}
    if message:
        payload["message"] = message
    if details is not None:
        payload["details"] = details
    return storage_error(kind, text, details=payload)


def _kind_for_os_error(exc: OSError) -> ErrorKind:
    if isinstance(exc, TimeoutError):
        return ErrorKind.TIMEOUT
    if isinstance(exc, FileNotFoundError):
        return ErrorKind.NOT_FOUND
    if isinstance(exc, PermissionError):
        return ErrorKind.PERMISSION_DENIED
    if isinstance(exc, (NotADirectoryError, IsADirectoryError)):
        return ErrorKind.INVALID_PATH
    if isinstance(exc, ConnectionError):
        return ErrorKind.NETWORK_ERROR
    if exc.errno is not None:
        if exc.errno in (errno.ENAMETOOLONG, errno.EINVAL):
            return ErrorKind.INVALID_PATH
        return kind_for_code(errno.errorcode.get(exc.errno))
    return ErrorKind.UNKNOWN


def translate_error(failure: Any) -> StorageError:
    """Convert any failure surfaced by a channel call into a :class:`StorageError`.

    Pure function: no logging, no I/O.  Already-typed errors are returned
    unchanged so wrappers can be stacked without double translation.
    """
    if isinstance(failure, StorageError):
        return failure

    if isinstance(failure, ChannelFailure):
        return _from_code(failure.code, str(failure), failure.details)

    if isinstance(failure, Mapping) and "code" in failure:
        return _from_code(
            str(failure.get("code") or ""),
            str(failure.get("message") or ""),
            failure.get("details"),
        )

    # aiohttp.ServerTimeoutError is both a ClientError and a TimeoutError.
    if isinstance(failure, TimeoutError):
        return storage_error(ErrorKind.TIMEOUT, KIND_MESSAGES[ErrorKind.TIMEOUT], details=failure)

    if isinstance(failure, aiohttp.ClientError):
        return storage_error(
            ErrorKind.NETWORK_ERROR,
            KIND_MESSAGES[ErrorKind.NETWORK_ERROR],
            details=failure,
        )

    if isinstance(failure, OSError):
        kind = _kind_for_os_error(failure)
        message = KIND_MESSAGES[kind] if kind is not ErrorKind.UNKNOWN else (str(failure) or KIND_MESSAGES[kind])
        return storage_error(kind, message, details=failure)

    if isinstance(failure, BaseException):
        return storage_error(
            ErrorKind.UNKNOWN,
            str(failure) or KIND_MESSAGES[ErrorKind.UNKNOWN],
            details=failure,
        )

    return storage_error(ErrorKind.UNKNOWN, KIND_MESSAGES[ErrorKind.UNKNOWN], details=failure)
