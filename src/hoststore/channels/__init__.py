"""Channel implementations the store can be constructed with."""

from hoststore.channels.base import Channel
from hoststore.channels.http import HttpChannel
from hoststore.channels.local import LocalChannel
from hoststore.channels.memory import MemoryChannel

__all__ = [
    "Channel",
    "HttpChannel",
    "LocalChannel",
    "MemoryChannel",
]
