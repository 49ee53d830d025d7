"""Unit tests for storage areas."""

# pylint: disable=redefined-outer-name

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from vault_auth.config import StorageSettings
from vault_auth.storage import MemoryStorage, StorageAreas, create_storage_areas
from vault_auth.storage.redis import RedisStorage


@pytest.fixture()
def mock_redis() -> MagicMock:
    """A redis.asyncio client double."""
    client = MagicMock()
    client.get = AsyncMock(return_value="stored")
    client.set = AsyncMock()
    client.setex = AsyncMock()
    client.delete = AsyncMock()
    client.aclose = AsyncMock()

    async def scan_iter(match: str):
        for key in ("vault_auth:local:vault_auth_user", "vault_auth:local:vault_auth_session"):
            yield key

    client.scan_iter = MagicMock(side_effect=scan_iter)
    return client


# ── Memory ──────────────────────────────────────────────────────────


class TestMemoryStorage:
    """Tests for MemoryStorage."""

    @pytest.fixture()
    def storage(self) -> MemoryStorage:
        """An empty memory area."""
        return MemoryStorage()

    @pytest.mark.asyncio
    async def test_set_get(self, storage: MemoryStorage) -> None:
        """Stored values are returned."""
        await storage.set("k", "v")
        assert await storage.get("k") == "v"

    @pytest.mark.asyncio
    async def test_get_missing(self, storage: MemoryStorage) -> None:
        """Missing keys return None."""
        assert await storage.get("nope") is None

    @pytest.mark.asyncio
    async def test_set_overwrites(self, storage: MemoryStorage) -> None:
        """A second set replaces the value."""
        await storage.set("k", "first")
        await storage.set("k", "second")
        assert await storage.get("k") == "second"

    @pytest.mark.asyncio
    async def test_remove_is_idempotent(self, storage: MemoryStorage) -> None:
        """Removing twice is not an error."""
        await storage.set("k", "v")
        await storage.remove("k")
        await storage.remove("k")
        assert await storage.contains("k") is False

    @pytest.mark.asyncio
    async def test_keys_and_clear(self, storage: MemoryStorage) -> None:
        """keys() lists entries and clear() drops them all."""
        await storage.set("a", "1")
        await storage.set("b", "2")
        assert sorted(await storage.keys()) == ["a", "b"]
        await storage.clear()
        assert await storage.keys() == []

    @pytest.mark.asyncio
    async def test_close_is_noop(self, storage: MemoryStorage) -> None:
        """close() on a memory area keeps its entries usable."""
        await storage.set("k", "v")
        await storage.close()
        assert await storage.get("k") == "v"


# ── Redis ───────────────────────────────────────────────────────────


class TestRedisStorage:
    """Tests for RedisStorage with an injected client."""

    @pytest.mark.asyncio
    async def test_get_uses_namespaced_key(self, mock_redis: MagicMock) -> None:
        """Keys are prefixed with prefix and namespace."""
        storage = RedisStorage("local", redis_client=mock_redis)
        assert await storage.get("vault_auth_user") == "stored"
        mock_redis.get.assert_awaited_once_with("vault_auth:local:vault_auth_user")

    @pytest.mark.asyncio
    async def test_set_without_ttl(self, mock_redis: MagicMock) -> None:
        """Without a TTL values are stored with SET."""
        storage = RedisStorage("local", prefix="app", redis_client=mock_redis)
        await storage.set("k", "v")
        mock_redis.set.assert_awaited_once_with("app:local:k", "v")
        mock_redis.setex.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_set_with_ttl(self, mock_redis: MagicMock) -> None:
        """With a TTL values are stored with SETEX."""
        storage = RedisStorage("session", ttl=300, redis_client=mock_redis)
        await storage.set("vault_auth_pkce", "blob")
        mock_redis.setex.assert_awaited_once_with("vault_auth:session:vault_auth_pkce", 300, "blob")

    @pytest.mark.asyncio
    async def test_remove(self, mock_redis: MagicMock) -> None:
        """remove() deletes the namespaced key."""
        storage = RedisStorage("session", redis_client=mock_redis)
        await storage.remove("vault_crypto_key")
        mock_redis.delete.assert_awaited_once_with("vault_auth:session:vault_crypto_key")

    @pytest.mark.asyncio
    async def test_keys_strip_prefix(self, mock_redis: MagicMock) -> None:
        """keys() scans the namespace and strips the prefix."""
        storage = RedisStorage("local", redis_client=mock_redis)
        assert await storage.keys() == ["vault_auth_user", "vault_auth_session"]
        mock_redis.scan_iter.assert_called_once_with(match="vault_auth:local:*")

    @pytest.mark.asyncio
    async def test_contains(self, mock_redis: MagicMock) -> None:
        """contains() is derived from get()."""
        mock_redis.get = AsyncMock(return_value=None)
        storage = RedisStorage("local", redis_client=mock_redis)
        assert await storage.contains("missing") is False

    @pytest.mark.asyncio
    async def test_close(self, mock_redis: MagicMock) -> None:
        """close() closes the client."""
        await RedisStorage("local", redis_client=mock_redis).close()
        mock_redis.aclose.assert_awaited_once()


# ── Factory ─────────────────────────────────────────────────────────


class TestCreateStorageAreas:
    """Tests for create_storage_areas()."""

    def test_memory_default(self) -> None:
        """The default backend yields two independent memory areas."""
        areas = create_storage_areas(StorageSettings())
        assert isinstance(areas, StorageAreas)
        assert isinstance(areas.session, MemoryStorage)
        assert isinstance(areas.local, MemoryStorage)
        assert areas.session is not areas.local

    def test_redis_backend(self) -> None:
        """The redis backend yields namespaced areas; only session has a TTL."""
        settings = StorageSettings(backend="redis", redis_prefix="t", session_ttl_seconds=120)
        areas = create_storage_areas(settings)
        assert isinstance(areas.session, RedisStorage)
        assert isinstance(areas.local, RedisStorage)
        # pylint: disable=protected-access
        assert areas.session._key("x") == "t:session:x"
        assert areas.local._key("x") == "t:local:x"
        assert areas.session._ttl == 120
        assert areas.local._ttl is None
