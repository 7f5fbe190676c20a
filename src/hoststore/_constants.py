"""Internal constants shared across the library."""

from hoststore.exceptions import ErrorKind

DEFAULT_APP_NAME = "hoststore"
DEFAULT_EXTENSION = ".json"
BACKUP_SUFFIX = ".bak"

#: Seconds a mutation waits before it is written out.
DEFAULT_DEBOUNCE_DELAY: float = 0.5

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BASE_DELAY: float = 1.0
DEFAULT_NON_RETRYABLE_KINDS: frozenset[ErrorKind] = frozenset(
    {
        ErrorKind.NOT_FOUND,
        ErrorKind.PERMISSION_DENIED,
        ErrorKind.INVALID_PATH,
    }
)

# ------------------------------------------------------------------
# Host error codes -> error kinds
# ------------------------------------------------------------------

CODE_TO_KIND: dict[str, ErrorKind] = {
    "FILE_NOT_FOUND": ErrorKind.NOT_FOUND,
    "NOT_FOUND": ErrorKind.NOT_FOUND,
    "ENOENT": ErrorKind.NOT_FOUND,
    "PERMISSION_DENIED": ErrorKind.PERMISSION_DENIED,
    "EACCES": ErrorKind.PERMISSION_DENIED,
    "EPERM": ErrorKind.PERMISSION_DENIED,
    "INVALID_PATH": ErrorKind.INVALID_PATH,
    "NETWORK_ERROR": ErrorKind.NETWORK_ERROR,
    "TIMEOUT": ErrorKind.TIMEOUT,
    "ETIMEDOUT": ErrorKind.TIMEOUT,
}

#: Human readable messages used when the host supplies none.
KIND_MESSAGES: dict[ErrorKind, str] = {
    ErrorKind.NOT_FOUND: "File or directory not found",
    ErrorKind.PERMISSION_DENIED: "Permission denied",
    ErrorKind.INVALID_PATH: "Invalid file path",
    ErrorKind.NETWORK_ERROR: "Network request failed",
    ErrorKind.TIMEOUT: "Request timed out",
    ErrorKind.UNKNOWN: "An unknown error occurred",
}
