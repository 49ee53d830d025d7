"""Factory functions for storage areas."""

from __future__ import annotations

from typing import TYPE_CHECKING, NamedTuple

from .memory import MemoryStorage


if TYPE_CHECKING:
    from ..config import StorageSettings
    from .base import StorageArea


class StorageAreas(NamedTuple):
    """The pair of storage areas the auth core runs on.

    Attributes
    ----------
    session : StorageArea
        Cleared when the browsing session ends. Holds the vault key and
        the in-flight PKCE artifacts.
    local : StorageArea
        Survives restarts. Holds the encrypted session and the user profile.
    """

    session: StorageArea
    local: StorageArea


def create_storage_areas(settings: StorageSettings) -> StorageAreas:
    """Create the session and local storage areas.

    Parameters
    ----------
    settings : StorageSettings
        Storage section of the configuration.

    Returns
    -------
    StorageAreas
        Fresh storage areas for the configured backend.
    """
    if settings.backend == "redis":
        from .redis import RedisStorage

        return StorageAreas(
            session=RedisStorage(
                "session",
                redis_url=settings.redis_url,
                prefix=settings.redis_prefix,
                ttl=settings.session_ttl_seconds,
            ),
            local=RedisStorage(
                "local",
                redis_url=settings.redis_url,
                prefix=settings.redis_prefix,
            ),
        )

    return StorageAreas(session=MemoryStorage(), local=MemoryStorage())
