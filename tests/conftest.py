"""Pytest configuration and fixtures."""

# pylint: disable=redefined-outer-name

from __future__ import annotations

import os

from typing import TYPE_CHECKING

import pytest

from vault_auth.auth.exchange import PlaceholderTokenExchanger
from vault_auth.auth.providers import ProviderRegistry
from vault_auth.auth.session import AuthSessionManager
from vault_auth.config import VaultAuthSettings, clear_settings_cache
from vault_auth.storage import MemoryStorage


if TYPE_CHECKING:
    from collections.abc import Generator
    from pathlib import Path


@pytest.fixture(autouse=True)
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """Keep user config files and VAULT_AUTH_* variables out of every test."""
    for name in list(os.environ):
        if name.startswith("VAULT_AUTH"):
            monkeypatch.delenv(name)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    monkeypatch.setenv("APPDATA", str(tmp_path / "appdata"))
    monkeypatch.chdir(tmp_path)
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture()
def settings() -> VaultAuthSettings:
    """Settings with every provider enabled and client ids filled in."""
    return VaultAuthSettings(
        base_url="https://app.example.test/",
        enabled_providers=["apple", "google", "idme", "logingov"],
        google_client_id="google-client",
        idme_client_id="idme-client",
        logingov_client_id="logingov-client",
    )


@pytest.fixture()
def registry(settings: VaultAuthSettings) -> ProviderRegistry:
    """Registry built from the test settings."""
    return ProviderRegistry.from_settings(settings)


@pytest.fixture()
def session_storage() -> MemoryStorage:
    """Session-scoped storage area."""
    return MemoryStorage()


@pytest.fixture()
def local_storage() -> MemoryStorage:
    """Persistent storage area."""
    return MemoryStorage()


@pytest.fixture()
def navigated() -> list[str]:
    """URLs passed to the manager's navigate callable."""
    return []


@pytest.fixture()
def manager(
    registry: ProviderRegistry,
    session_storage: MemoryStorage,
    local_storage: MemoryStorage,
    navigated: list[str],
) -> AuthSessionManager:
    """Session manager wired to memory storage and the placeholder exchanger."""
    return AuthSessionManager(
        registry,
        PlaceholderTokenExchanger(session_lifetime_seconds=3600),
        session_storage,
        local_storage,
        navigate=navigated.append,
    )
