"""Storage areas for the authentication core.

Provides pluggable string key/value storage standing in for the
browser's session-scoped and persistent storage objects. In-memory
storage is the default; Redis is available when several processes
must share one area.

Usage
-----
    from vault_auth.storage import create_storage_areas
    areas = create_storage_areas(settings.storage)
    await areas.local.set("key", "value")
"""

from __future__ import annotations

from ._factory import StorageAreas, create_storage_areas
from .base import StorageArea
from .memory import MemoryStorage


__all__ = [
    "MemoryStorage",
    "StorageArea",
    "StorageAreas",
    "create_storage_areas",
]
