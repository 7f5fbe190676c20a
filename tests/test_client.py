from __future__ import annotations

import asyncio
from datetime import UTC, datetime

import pytest

from hoststore.channels.memory import MemoryChannel
from hoststore.client import ChannelClient
from hoststore.config import RetryConfig
from hoststore.exceptions import StorageInvalidPathError, StorageNotFoundError, StorageTimeoutError
from hoststore.models.files import FileStats
from hoststore.store import PersistedStore


@pytest.fixture
def channel() -> MemoryChannel:
    return MemoryChannel()


@pytest.fixture
def client(channel: MemoryChannel) -> ChannelClient:
    return ChannelClient(channel, retry=RetryConfig(max_attempts=3, base_delay=0.0))


@pytest.mark.asyncio
async def test_missing_file_raises_not_found_without_retry(client: ChannelClient, channel: MemoryChannel) -> None:
    with pytest.raises(StorageNotFoundError) as exc_info:
        await client.read_text("/nope.json")

    assert exc_info.value.message == "File or directory not found"
    assert exc_info.value.details["code"] == "FILE_NOT_FOUND"
    assert channel.calls_for("read") == ["/nope.json"]


@pytest.mark.asyncio
async def test_reads_retry_transient_failures(client: ChannelClient, channel: MemoryChannel) -> None:
    await channel.mkdir("/docs")
    await channel.write("/docs/a.md", "hello")
    channel.fail("read", "TIMEOUT", times=2)

    assert await client.read_text("/docs/a.md") == "hello"
    assert len(channel.calls_for("read")) == 3


@pytest.mark.asyncio
async def test_reads_give_up_after_max_attempts(client: ChannelClient, channel: MemoryChannel) -> None:
    channel.fail("exists", "TIMEOUT", times=3)

    with pytest.raises(StorageTimeoutError):
        await client.exists("/docs")


@pytest.mark.asyncio
async def test_mutations_translate_without_retry(client: ChannelClient, channel: MemoryChannel) -> None:
    channel.fail("write", "INVALID_PATH")

    with pytest.raises(StorageInvalidPathError):
        await client.write_text("/x.json", "{}")
    assert channel.calls_for("write") == ["/x.json"]


@pytest.mark.asyncio
async def test_writes_to_same_path_are_serialized() -> None:
    channel = MemoryChannel(latency=0.01)
    client = ChannelClient(channel)
    await channel.mkdir("/docs")

    await asyncio.gather(*(client.write_text("/docs/a.md", f"v{i}") for i in range(5)))

    assert channel.files["/docs/a.md"] == "v4"


@pytest.mark.asyncio
async def test_stat_returns_file_stats(client: ChannelClient, channel: MemoryChannel) -> None:
    await channel.mkdir("/docs")
    await channel.write("/docs/a.md", "héllo")
    channel.mtimes["/docs/a.md"] = 1_700_000_000.0

    stats = await client.stat("/docs/a.md")

    assert isinstance(stats, FileStats)
    assert stats.is_directory is False
    assert stats.size == 6
    assert stats.mtime == datetime.fromtimestamp(1_700_000_000, tz=UTC)
    assert (await client.stat("/docs")).is_directory is True


@pytest.mark.asyncio
async def test_ensure_dir_creates_only_when_missing(client: ChannelClient, channel: MemoryChannel) -> None:
    await client.ensure_dir("/projects/novel")
    await client.ensure_dir("/projects/novel")

    assert "/projects/novel" in channel.dirs
    assert channel.calls_for("mkdir") == ["/projects/novel"]


@pytest.mark.asyncio
async def test_copy_move_delete_and_list(client: ChannelClient, channel: MemoryChannel) -> None:
    await client.ensure_dir("/p")
    await client.write_text("/p/a.txt", "A")
    await client.copy("/p/a.txt", "/p/b.txt")
    await client.move("/p/b.txt", "/p/c.txt")

    assert await client.list_dir("/p") == ["a.txt", "c.txt"]

    await client.delete("/p/a.txt")
    assert await client.list_dir("/p") == ["c.txt"]
    with pytest.raises(StorageNotFoundError):
        await client.delete("/p/a.txt")


@pytest.mark.asyncio
async def test_store_exposes_client_on_its_channel(store: PersistedStore, channel: MemoryChannel) -> None:
    await store.set_value("settings", {"theme": "dark"})

    text = await store.files.read_text(store.path_for("settings"))

    assert store.files.channel is channel
    assert text == '{\n  "theme": "dark"\n}'
