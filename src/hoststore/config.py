"""Store configuration for hoststore."""

from __future__ import annotations

import dataclasses
import os
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from hoststore._constants import (
    DEFAULT_APP_NAME,
    DEFAULT_BASE_DELAY,
    DEFAULT_DEBOUNCE_DELAY,
    DEFAULT_EXTENSION,
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_NON_RETRYABLE_KINDS,
)
from hoststore._paths import default_storage_dir
from hoststore.exceptions import ErrorKind, StoreConfigError


def _env_bool(env: Mapping[str, str], key: str, default: bool) -> bool:
    value = env.get(key)
    if value is None or not value.strip():
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    raise StoreConfigError(f"{key} must be a boolean, got {value!r}")


def _env_number(env: Mapping[str, str], key: str, cast: type) -> Any:
    raw = env.get(key)
    if raw is None:
        return None
    try:
        return cast(raw)
    except ValueError as exc:
        raise StoreConfigError(f"{key} must be a {cast.__name__}, got {raw!r}") from exc


class RetryConfig(BaseModel):
    """Retry policy parameters.

    Parameters
    ----------
    max_attempts : int
        Total number of attempts, including the first one.
    base_delay : float
        Seconds to wait after the first failure.  The wait grows linearly:
        ``base_delay * attempt``.
    non_retryable_kinds : frozenset[ErrorKind]
        Kinds that are raised immediately without another attempt.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    max_attempts: int = Field(default=DEFAULT_MAX_ATTEMPTS, ge=1)
    base_delay: float = Field(default=DEFAULT_BASE_DELAY, ge=0.0)
    non_retryable_kinds: frozenset[ErrorKind] = DEFAULT_NON_RETRYABLE_KINDS

    @field_validator("non_retryable_kinds", mode="before")
    @classmethod
    def _coerce_kinds(cls, value: Any) -> Any:
        if isinstance(value, str):
            return frozenset(ErrorKind(part.strip().upper()) for part in value.split(",") if part.strip())
        return value

    def is_retryable(self, kind: ErrorKind) -> bool:
        return kind not in self.non_retryable_kinds


@dataclasses.dataclass(frozen=True)
class StoreConfig:
    """Persisted store configuration.

    Parameters
    ----------
    root : str
        Directory (as understood by the channel) holding one document
        per key.  Defaults to ``<user data dir>/store``.
    debounce_delay : float
        Seconds a mutation waits before being written.  Later mutations
        inside the window replace the pending value.
    extension : str
        File extension appended to each key.
    backup : bool
        Ask the channel to keep a ``.bak`` copy before each overwrite.
    rollback_on_failure : bool
        When a write fails after all retries, restore the last value
        known to be durable.  When ``False`` the optimistic value stays
        in the cache and the entry is marked tainted.
    retry : RetryConfig
        Retry policy applied to every channel call.
    """

    root: str = dataclasses.field(default_factory=default_storage_dir)
    debounce_delay: float = DEFAULT_DEBOUNCE_DELAY
    extension: str = DEFAULT_EXTENSION
    backup: bool = True
    rollback_on_failure: bool = True
    retry: RetryConfig = dataclasses.field(default_factory=RetryConfig)

    def __post_init__(self) -> None:
        if not self.root:
            raise StoreConfigError("root must be non-empty")
        if self.debounce_delay < 0:
            raise StoreConfigError(f"debounce_delay must be >= 0, got {self.debounce_delay}")
        if self.extension and not self.extension.startswith("."):
            raise StoreConfigError(f"extension must start with '.', got {self.extension!r}")

    @classmethod
    def from_env(cls, **overrides: Any) -> StoreConfig:
        """Create configuration from environment variables.

        Reads ``HOSTSTORE_ROOT`` (or ``HOSTSTORE_APP_NAME`` to derive the
        default root), ``HOSTSTORE_DEBOUNCE``, ``HOSTSTORE_BACKUP``,
        ``HOSTSTORE_ROLLBACK``, ``HOSTSTORE_MAX_ATTEMPTS`` and
        ``HOSTSTORE_BASE_DELAY``.  Explicit keyword arguments override
        environment values.

        Parameters
        ----------
        **overrides
            Explicit field values that take precedence over env vars.

        Returns
        -------
        StoreConfig
            Populated configuration.
        """
        env = os.environ
        config_kwargs: dict[str, Any] = {}

        root = env.get("HOSTSTORE_ROOT")
        if root:
            config_kwargs["root"] = root
        else:
            app_name = env.get("HOSTSTORE_APP_NAME")
            if app_name:
                config_kwargs["root"] = default_storage_dir(app_name)

        debounce = _env_number(env, "HOSTSTORE_DEBOUNCE", float)
        if debounce is not None:
            config_kwargs["debounce_delay"] = debounce

        config_kwargs["backup"] = _env_bool(env, "HOSTSTORE_BACKUP", True)
        config_kwargs["rollback_on_failure"] = _env_bool(env, "HOSTSTORE_ROLLBACK", True)

        # Retry settings can be overridden as a whole or via a nested dict
        retry_kwargs: dict[str, Any] = {}
        attempts = _env_number(env, "HOSTSTORE_MAX_ATTEMPTS", int)
        if attempts is not None:
            retry_kwargs["max_attempts"] = attempts
        base_delay = _env_number(env, "HOSTSTORE_BASE_DELAY", float)
        if base_delay is not None:
            retry_kwargs["base_delay"] = base_delay

        retry_overrides = overrides.pop("retry", None)
        if isinstance(retry_overrides, RetryConfig):
            retry_kwargs = retry_overrides.model_dump()
        elif isinstance(retry_overrides, dict):
            retry_kwargs.update(retry_overrides)

        try:
            config_kwargs["retry"] = RetryConfig(**retry_kwargs)
        except ValidationError as exc:
            raise StoreConfigError(f"Invalid retry configuration: {exc}") from exc

        if "app_name" in overrides:
            config_kwargs["root"] = default_storage_dir(overrides.pop("app_name") or DEFAULT_APP_NAME)

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
