"""hoststore - Cached, debounced persistence over an async storage channel."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("hoststore")
except PackageNotFoundError:
    __version__ = "0+local"

from hoststore._paths import default_storage_dir, user_data_dir
from hoststore._retry import with_retry
from hoststore._translate import translate_error
from hoststore.channels import Channel, HttpChannel, LocalChannel, MemoryChannel
from hoststore.client import ChannelClient
from hoststore.config import RetryConfig, StoreConfig
from hoststore.exceptions import (
    ChannelFailure,
    ErrorKind,
    HostStoreError,
    StorageError,
    StorageInvalidPathError,
    StorageNetworkError,
    StorageNotFoundError,
    StoragePermissionError,
    StorageTimeoutError,
    StorageUnknownError,
    StoreConfigError,
)
from hoststore.models import BindStatus, CacheState, FileStats
from hoststore.store import PersistedStore, PersistedValue

__all__ = [
    "__version__",
    "BindStatus",
    "CacheState",
    "Channel",
    "ChannelClient",
    "ChannelFailure",
    "ErrorKind",
    "FileStats",
    "HostStoreError",
    "HttpChannel",
    "LocalChannel",
    "MemoryChannel",
    "PersistedStore",
    "PersistedValue",
    "RetryConfig",
    "StorageError",
    "StorageInvalidPathError",
    "StorageNetworkError",
    "StorageNotFoundError",
    "StoragePermissionError",
    "StorageTimeoutError",
    "StorageUnknownError",
    "StoreConfig",
    "StoreConfigError",
    "default_storage_dir",
    "translate_error",
    "user_data_dir",
    "with_retry",
]
