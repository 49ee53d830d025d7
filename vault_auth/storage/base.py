"""Abstract base class for pluggable storage areas.

A storage area is the client-side equivalent of a browser storage
object: a flat string-to-string map. The core uses two of them, one
scoped to the browsing session and one that survives restarts.
"""

# pylint: disable=unnecessary-ellipsis
# Ellipsis (...) is the standard Python idiom for abstract method bodies

from __future__ import annotations

from abc import ABC, abstractmethod


class StorageArea(ABC):
    """Abstract string key/value storage.

    All methods are async to support both local and network-backed areas.
    """

    @abstractmethod
    async def get(self, key: str) -> str | None:
        """Get the value stored under ``key``.

        Parameters
        ----------
        key : str
            The storage key.

        Returns
        -------
        str or None
            The stored value, or None if absent.
        """
        ...

    @abstractmethod
    async def set(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``, replacing any previous value.

        Parameters
        ----------
        key : str
            The storage key.
        value : str
            The value to store.
        """
        ...

    @abstractmethod
    async def remove(self, key: str) -> None:
        """Remove ``key``. Removing an absent key is not an error.

        Parameters
        ----------
        key : str
            The storage key.
        """
        ...

    @abstractmethod
    async def keys(self) -> list[str]:
        """List all keys currently stored.

        Returns
        -------
        list[str]
            Stored keys.
        """
        ...

    async def contains(self, key: str) -> bool:
        """Check if ``key`` is present."""
        return await self.get(key) is not None

    async def clear(self) -> None:
        """Remove every key in this area."""
        for key in await self.keys():
            await self.remove(key)

    async def close(self) -> None:
        """Release any held connections."""
        return
