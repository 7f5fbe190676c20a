from __future__ import annotations

import pytest

from hoststore.channels.memory import MemoryChannel
from hoststore.config import RetryConfig, StoreConfig
from hoststore.store import PersistedStore

ROOT = "/userdata/store"


@pytest.fixture
def channel() -> MemoryChannel:
    return MemoryChannel()


@pytest.fixture
def config() -> StoreConfig:
    return StoreConfig(
        root=ROOT,
        debounce_delay=0.02,
        retry=RetryConfig(max_attempts=3, base_delay=0.0),
    )


@pytest.fixture
def store(channel: MemoryChannel, config: StoreConfig) -> PersistedStore:
    return PersistedStore(channel, config)
