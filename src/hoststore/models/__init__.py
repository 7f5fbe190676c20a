"""Public data models."""

from hoststore.models.files import FileStats
from hoststore.models.status import BindStatus, CacheState

__all__ = [
    "BindStatus",
    "CacheState",
    "FileStats",
]
