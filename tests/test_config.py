"""Tests for layered configuration."""

from __future__ import annotations

from pathlib import Path

import pytest

from pydantic import ValidationError

from vault_auth.config import (
    DEFAULT_PROVIDERS,
    ExchangeSettings,
    SessionSettings,
    StorageSettings,
    VaultAuthSettings,
    clear_settings_cache,
    get_settings,
)


class TestDefaults:
    """Tests for built-in defaults."""

    def test_defaults(self) -> None:
        """Defaults enable three providers and the broker exchange."""
        settings = VaultAuthSettings()
        assert settings.base_url == "https://vault-dem.pages.dev"
        assert settings.enabled_providers == DEFAULT_PROVIDERS
        assert settings.apple_client_id == "com.vault.webapp"
        assert settings.session.artifact_ttl_seconds == 600
        assert settings.storage.backend == "memory"
        assert settings.exchange.backend == "broker"

    def test_base_url_trailing_slash(self) -> None:
        """Trailing slashes are stripped from base_url."""
        assert VaultAuthSettings(base_url="https://x.test///").base_url == "https://x.test"

    def test_client_id_for(self) -> None:
        """client_id_for() reads the per-provider field."""
        settings = VaultAuthSettings(idme_client_id="idme-123")
        assert settings.client_id_for("idme") == "idme-123"
        assert settings.client_id_for("unknown") == ""


class TestValidation:
    """Tests for field validation."""

    def test_unknown_provider_rejected(self) -> None:
        """Only providers with a definition may be enabled."""
        with pytest.raises(ValidationError, match="github"):
            VaultAuthSettings(enabled_providers=["google", "github"])

    def test_artifact_ttl_minimum(self) -> None:
        """The artifact TTL cannot be set below 30 seconds."""
        with pytest.raises(ValidationError):
            SessionSettings(artifact_ttl_seconds=5)

    def test_storage_backend_literal(self) -> None:
        """Unknown storage backends are rejected."""
        with pytest.raises(ValidationError):
            StorageSettings(backend="sqlite")


class TestEnvironment:
    """Tests for environment variable overrides."""

    def test_comma_separated_providers(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """VAULT_AUTH__ENABLED_PROVIDERS accepts a comma-separated list."""
        monkeypatch.setenv("VAULT_AUTH__ENABLED_PROVIDERS", "google, logingov")
        assert VaultAuthSettings().enabled_providers == ["google", "logingov"]

    def test_nested_delimiter(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Nested sections are set with the __ delimiter."""
        monkeypatch.setenv("VAULT_AUTH__EXCHANGE__BROKER_URL", "https://broker.test")
        monkeypatch.setenv("VAULT_AUTH__GOOGLE_CLIENT_ID", "g-env")
        settings = VaultAuthSettings()
        assert settings.exchange.broker_url == "https://broker.test"
        assert settings.google_client_id == "g-env"

    def test_section_prefix(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Sections also read their own prefix."""
        monkeypatch.setenv("VAULT_AUTH_EXCHANGE__BACKEND", "placeholder")
        assert ExchangeSettings().backend == "placeholder"


class TestTomlLayering:
    """Tests for TOML configuration files."""

    def test_pyproject_section(self, tmp_path: Path) -> None:
        """[tool.vault_auth] in pyproject.toml is read."""
        (tmp_path / "pyproject.toml").write_text(
            '[tool.vault_auth]\ngoogle_client_id = "from-pyproject"\n', encoding="utf-8"
        )
        assert VaultAuthSettings().google_client_id == "from-pyproject"

    def test_explicit_file_overrides_pyproject(self, tmp_path: Path) -> None:
        """vault_auth.toml wins over pyproject.toml."""
        (tmp_path / "pyproject.toml").write_text(
            '[tool.vault_auth]\ngoogle_client_id = "from-pyproject"\n', encoding="utf-8"
        )
        (tmp_path / "vault_auth.toml").write_text(
            'google_client_id = "from-file"\n\n[session]\nartifact_ttl_seconds = 120\n',
            encoding="utf-8",
        )
        settings = VaultAuthSettings()
        assert settings.google_client_id == "from-file"
        assert settings.session.artifact_ttl_seconds == 120

    def test_config_file_env(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """VAULT_AUTH_CONFIG_FILE points at an extra file."""
        extra = tmp_path / "extra.toml"
        extra.write_text('base_url = "https://extra.test"\n', encoding="utf-8")
        monkeypatch.setenv("VAULT_AUTH_CONFIG_FILE", str(extra))
        assert VaultAuthSettings().base_url == "https://extra.test"

    def test_kwargs_override_files(self, tmp_path: Path) -> None:
        """Explicit arguments win over TOML."""
        (tmp_path / "vault_auth.toml").write_text('idme_client_id = "file"\n', encoding="utf-8")
        assert VaultAuthSettings(idme_client_id="kwarg").idme_client_id == "kwarg"

    def test_environment_overrides_files(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Environment variables win over TOML, section prefixes included."""
        (tmp_path / "vault_auth.toml").write_text(
            'base_url = "https://from-toml.test"\n\n'
            "[session]\nartifact_ttl_seconds = 100\nsession_lifetime_seconds = 120\n\n"
            '[exchange]\nbroker_url = "https://toml-broker.test"\n',
            encoding="utf-8",
        )
        monkeypatch.setenv("VAULT_AUTH__BASE_URL", "https://from-env.test")
        monkeypatch.setenv("VAULT_AUTH_SESSION__ARTIFACT_TTL_SECONDS", "300")
        monkeypatch.setenv("VAULT_AUTH__EXCHANGE__BROKER_URL", "https://env-broker.test")
        settings = VaultAuthSettings()
        assert settings.base_url == "https://from-env.test"
        assert settings.session.artifact_ttl_seconds == 300
        assert settings.session.session_lifetime_seconds == 120
        assert settings.exchange.broker_url == "https://env-broker.test"

    def test_kwargs_override_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Explicit arguments win over environment variables."""
        monkeypatch.setenv("VAULT_AUTH__IDME_CLIENT_ID", "env")
        assert VaultAuthSettings(idme_client_id="kwarg").idme_client_id == "kwarg"

    def test_invalid_toml_skipped(self, tmp_path: Path) -> None:
        """Unparseable files are ignored."""
        (tmp_path / "vault_auth.toml").write_text("not = [valid", encoding="utf-8")
        assert VaultAuthSettings().google_client_id == ""


class TestExport:
    """Tests for to_toml() and to_env()."""

    def test_toml_redacts_redis_url(self) -> None:
        """The Redis URL never appears in TOML output."""
        settings = VaultAuthSettings(storage={"redis_url": "redis://:hunter2@cache:6379/0"})
        output = settings.to_toml()
        assert "hunter2" not in output
        assert 'redis_url = "********"' in output
        assert "[exchange]" in output

    def test_env_redacts_redis_url(self) -> None:
        """The Redis URL never appears in env output."""
        settings = VaultAuthSettings(storage={"redis_url": "redis://:hunter2@cache:6379/0"})
        output = settings.to_env()
        assert "hunter2" not in output
        assert 'export VAULT_AUTH_STORAGE__REDIS_URL="********"' in output
        assert 'export VAULT_AUTH__ENABLED_PROVIDERS="apple,google,idme"' in output


class TestGetSettings:
    """Tests for the cached accessor."""

    def test_cached(self) -> None:
        """get_settings() returns the same instance until cleared."""
        first = get_settings()
        assert get_settings() is first
        clear_settings_cache()
        assert get_settings() is not first
