from __future__ import annotations

import pytest
from pydantic import ValidationError

from hoststore.config import RetryConfig, StoreConfig
from hoststore.exceptions import ErrorKind, StoreConfigError

_ENV_KEYS = (
    "HOSTSTORE_ROOT",
    "HOSTSTORE_APP_NAME",
    "HOSTSTORE_DEBOUNCE",
    "HOSTSTORE_BACKUP",
    "HOSTSTORE_ROLLBACK",
    "HOSTSTORE_MAX_ATTEMPTS",
    "HOSTSTORE_BASE_DELAY",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


def test_defaults() -> None:
    config = StoreConfig(root="/data/store")

    assert config.debounce_delay == 0.5
    assert config.extension == ".json"
    assert config.backup is True
    assert config.rollback_on_failure is True
    assert config.retry.max_attempts == 3
    assert config.retry.non_retryable_kinds == frozenset(
        {ErrorKind.NOT_FOUND, ErrorKind.PERMISSION_DENIED, ErrorKind.INVALID_PATH}
    )


def test_default_root_lives_under_user_data(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("sys.platform", "linux")
    monkeypatch.setenv("XDG_CONFIG_HOME", "/home/u/.config")

    assert StoreConfig().root == "/home/u/.config/hoststore/store"


def test_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("HOSTSTORE_ROOT", "/srv/store")
    monkeypatch.setenv("HOSTSTORE_DEBOUNCE", "0.25")
    monkeypatch.setenv("HOSTSTORE_BACKUP", "off")
    monkeypatch.setenv("HOSTSTORE_MAX_ATTEMPTS", "5")
    monkeypatch.setenv("HOSTSTORE_BASE_DELAY", "0.1")

    config = StoreConfig.from_env()

    assert config.root == "/srv/store"
    assert config.debounce_delay == 0.25
    assert config.backup is False
    assert config.rollback_on_failure is True
    assert config.retry == RetryConfig(max_attempts=5, base_delay=0.1)


def test_from_env_overrides_win(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("HOSTSTORE_ROOT", "/srv/store")
    monkeypatch.setenv("HOSTSTORE_MAX_ATTEMPTS", "5")

    config = StoreConfig.from_env(root="/override", retry={"base_delay": 0.0})

    assert config.root == "/override"
    assert config.retry.max_attempts == 5
    assert config.retry.base_delay == 0.0


def test_from_env_app_name(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("sys.platform", "linux")
    monkeypatch.setenv("XDG_CONFIG_HOME", "/cfg")
    monkeypatch.setenv("HOSTSTORE_APP_NAME", "book-crafter")

    assert StoreConfig.from_env().root == "/cfg/book-crafter/store"


def test_from_env_rejects_bad_numbers(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("HOSTSTORE_DEBOUNCE", "soon")

    with pytest.raises(StoreConfigError):
        StoreConfig.from_env(root="/x")


def test_from_env_rejects_bad_retry(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("HOSTSTORE_MAX_ATTEMPTS", "0")

    with pytest.raises(StoreConfigError):
        StoreConfig.from_env(root="/x")


def test_invalid_values_rejected() -> None:
    with pytest.raises(StoreConfigError):
        StoreConfig(root="")
    with pytest.raises(StoreConfigError):
        StoreConfig(root="/x", debounce_delay=-1)
    with pytest.raises(StoreConfigError):
        StoreConfig(root="/x", extension="json")


def test_retry_config_validation_and_kinds_from_string() -> None:
    with pytest.raises(ValidationError):
        RetryConfig(base_delay=-1)

    config = RetryConfig(non_retryable_kinds="timeout, not_found")
    assert config.non_retryable_kinds == frozenset({ErrorKind.TIMEOUT, ErrorKind.NOT_FOUND})
    assert config.is_retryable(ErrorKind.NETWORK_ERROR)
    assert not config.is_retryable(ErrorKind.TIMEOUT)


@pytest.mark.parametrize("key", ["HOSTSTORE_BACKUP", "HOSTSTORE_ROLLBACK"])
def test_from_env_rejects_unrecognised_booleans(monkeypatch: pytest.MonkeyPatch, key: str) -> None:
    monkeypatch.setenv(key, "maybe")

    with pytest.raises(StoreConfigError, match=key):
        StoreConfig.from_env(root="/x")


def test_from_env_blank_boolean_uses_default(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("HOSTSTORE_BACKUP", " ")

    assert StoreConfig.from_env(root="/x").backup is True
