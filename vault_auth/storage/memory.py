"""In-memory storage area.

Default backend for single-process use, development, and tests.
"""

from __future__ import annotations

import asyncio

from .base import StorageArea


class MemoryStorage(StorageArea):
    """In-memory storage area.

    Thread-safe implementation using asyncio locks.
    """

    def __init__(self) -> None:
        """Initialize the memory storage area."""
        self._items: dict[str, str] = {}
        self._lock = asyncio.Lock()

    async def get(self, key: str) -> str | None:
        """Get a value from memory."""
        async with self._lock:
            return self._items.get(key)

    async def set(self, key: str, value: str) -> None:
        """Store a value in memory."""
        async with self._lock:
            self._items[key] = value

    async def remove(self, key: str) -> None:
        """Remove a value from memory."""
        async with self._lock:
            self._items.pop(key, None)

    async def keys(self) -> list[str]:
        """List all keys in memory."""
        async with self._lock:
            return list(self._items)

    async def clear(self) -> None:
        """Drop every stored value."""
        async with self._lock:
            self._items.clear()
