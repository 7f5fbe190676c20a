"""Custom exception hierarchy for hoststore."""

from __future__ import annotations

from enum import StrEnum
from typing import Any


class ErrorKind(StrEnum):
    """Closed set of failure kinds the store ever reports."""

    NOT_FOUND = "NOT_FOUND"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    INVALID_PATH = "INVALID_PATH"
    NETWORK_ERROR = "NETWORK_ERROR"
    TIMEOUT = "TIMEOUT"
    UNKNOWN = "UNKNOWN"


class HostStoreError(Exception):
    """Base exception for all hoststore errors."""


class StoreConfigError(HostStoreError):
    """Invalid or missing configuration."""


class ChannelFailure(HostStoreError):
    """Raw failure reported by a channel implementation.

    Channels raise this with the host's machine-readable ``code``
    (e.g. ``FILE_NOT_FOUND``).  It never escapes the store: the error
    translator turns it into a :class:`StorageError`.
    """

    def __init__(
        self,
        message: str,
        *,
        code: str = "",
        details: Any = None,
    ) -> None:
        self.code = code
        self.details = details
        super().__init__(message)


class StorageError(HostStoreError):
    """Typed storage failure with a kind from :class:`ErrorKind`."""

    kind: ErrorKind = ErrorKind.UNKNOWN

    def __init__(
        self,
        message: str,
        *,
        kind: ErrorKind | None = None,
        details: Any = None,
    ) -> None:
        if kind is not None:
            self.kind = kind
        self.message = message
        self.details = details
        super().__init__(message)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(kind={self.kind.value}, message={self.message!r})"


class StorageNotFoundError(StorageError):
    """Artifact or directory does not exist."""

    kind = ErrorKind.NOT_FOUND


class StoragePermissionError(StorageError):
    """Host refused access to the path."""

    kind = ErrorKind.PERMISSION_DENIED


class StorageInvalidPathError(StorageError):
    """Path rejected by the host as malformed or outside its sandbox."""

    kind = ErrorKind.INVALID_PATH


class StorageNetworkError(StorageError):
    """Transport between the store and the host failed."""

    kind = ErrorKind.NETWORK_ERROR


class StorageTimeoutError(StorageError):
    """Host did not answer in time."""

    kind = ErrorKind.TIMEOUT


class StorageUnknownError(StorageError):
    """Any failure the translator could not classify.

    Also raised when a stored document exists but cannot be decoded.
    """

    kind = ErrorKind.UNKNOWN


ERROR_CLASSES: dict[ErrorKind, type[StorageError]] = {
    ErrorKind.NOT_FOUND: StorageNotFoundError,
    ErrorKind.PERMISSION_DENIED: StoragePermissionError,
    ErrorKind.INVALID_PATH: StorageInvalidPathError,
    ErrorKind.NETWORK_ERROR: StorageNetworkError,
    ErrorKind.TIMEOUT: StorageTimeoutError,
    ErrorKind.UNKNOWN: StorageUnknownError,
}


def storage_error(kind: ErrorKind, message: str, *, details: Any = None) -> StorageError:
    """Build the :class:`StorageError` subclass matching *kind*."""
    return ERROR_CLASSES[kind](message, details=details)
