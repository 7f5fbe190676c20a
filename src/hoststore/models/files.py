"""File metadata returned by channel ``stat`` calls."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Threshold to distinguish seconds from milliseconds.
_MS_THRESHOLD = 1_000_000_000_000


class FileStats(BaseModel):
    """Metadata for one path on the host.

    Hosts report ``mtime`` either as an ISO string or as epoch seconds /
    milliseconds; all are normalized to an aware UTC datetime.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    is_directory: bool = Field(default=False, alias="isDirectory")
    size: int = 0
    mtime: datetime | None = None

    @field_validator("mtime", mode="before")
    @classmethod
    def _parse_mtime(cls, value: Any) -> Any:
        if value is None or value == "":
            return None
        if isinstance(value, (int, float)):
            ts = float(value)
            if ts > _MS_THRESHOLD:
                ts /= 1000.0
            return datetime.fromtimestamp(ts, tz=UTC)
        return value

    @field_validator("mtime")
    @classmethod
    def _ensure_tz_aware(cls, value: datetime | None) -> datetime | None:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value
