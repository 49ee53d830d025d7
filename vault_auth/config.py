"""Configuration system for vault-auth using pydantic-settings.

Supports layered configuration:
1. Built-in defaults (lowest priority)
2. pyproject.toml [tool.vault_auth] section (project-level)
3. ./vault_auth.toml (project-level, explicit)
4. ~/.config/vault_auth/config.toml (user-level, overrides project)
5. Environment variables
6. Keyword arguments (highest priority)

Environment variables use VAULT_AUTH__ prefix with nested delimiter __.
Example: VAULT_AUTH__GOOGLE_CLIENT_ID, VAULT_AUTH__SESSION__ARTIFACT_TTL_SECONDS
"""

from __future__ import annotations

import os
import sys

from functools import lru_cache
from pathlib import Path
from typing import Annotated, Any, Literal

from pydantic import Field, field_validator
from pydantic.fields import FieldInfo
from pydantic_settings import (
    BaseSettings,
    NoDecode,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)


if sys.version_info >= (3, 11):
    import tomllib
else:
    try:
        import tomli as tomllib  # type: ignore[import-not-found]
    except ImportError:
        tomllib = None


#: Providers that ship a static definition.
KNOWN_PROVIDERS: frozenset[str] = frozenset({"apple", "google", "idme", "logingov"})

#: Providers enabled out of the box. Login.gov needs a private_key_jwt backend.
DEFAULT_PROVIDERS: list[str] = ["apple", "google", "idme"]


def _find_config_files() -> list[Path]:
    """Find all configuration files in order of precedence (lowest first)."""
    files = []

    pyproject = Path("pyproject.toml")
    if pyproject.exists():
        files.append(pyproject)

    explicit = Path("vault_auth.toml")
    if explicit.exists():
        files.append(explicit)

    if sys.platform == "win32":
        user_config = Path(os.environ.get("APPDATA", "~")) / "vault_auth" / "config.toml"
    else:
        user_config = Path("~/.config/vault_auth/config.toml")
    user_config = user_config.expanduser()
    if user_config.exists():
        files.append(user_config)

    env_config = os.environ.get("VAULT_AUTH_CONFIG_FILE")
    if env_config:
        env_path = Path(env_config)
        if env_path.exists():
            files.append(env_path)

    return files


def _load_toml_config() -> dict[str, Any]:
    """Load and merge all TOML configuration files."""
    if tomllib is None:
        return {}

    merged: dict[str, Any] = {}

    for config_file in _find_config_files():
        try:
            data = tomllib.loads(config_file.read_text(encoding="utf-8"))
        except (OSError, tomllib.TOMLDecodeError):
            continue  # unreadable config files are skipped

        if config_file.name == "pyproject.toml":
            data = data.get("tool", {}).get("vault_auth", {})

        merged = _deep_merge(merged, data)

    return merged


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Deep merge two dictionaries."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


# Field names that contain sensitive data and must be redacted in output.
_SENSITIVE_FIELDS: set[str] = {
    "redis_url",
}

_REDACTED = "********"


class SessionSettings(BaseSettings):
    """Login attempt and session lifetime settings.

    Environment prefix: VAULT_AUTH_SESSION__
    Example: VAULT_AUTH_SESSION__ARTIFACT_TTL_SECONDS=300
    """

    model_config = SettingsConfigDict(
        env_prefix="VAULT_AUTH_SESSION__",
        extra="ignore",
    )

    artifact_ttl_seconds: float = Field(
        default=600.0,
        ge=30.0,
        description="Seconds an issued PKCE artifact set stays usable for the callback",
    )
    session_lifetime_seconds: int = Field(
        default=3600,
        ge=60,
        description="Session lifetime used when the exchange does not report expires_in",
    )


class StorageSettings(BaseSettings):
    """Storage backend settings.

    Environment prefix: VAULT_AUTH_STORAGE__
    Example: VAULT_AUTH_STORAGE__BACKEND=redis
    """

    model_config = SettingsConfigDict(
        env_prefix="VAULT_AUTH_STORAGE__",
        extra="ignore",
    )

    backend: Literal["memory", "redis"] = Field(
        default="memory",
        description="Storage backend for session and local storage areas",
    )
    redis_url: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL (redis backend only)",
    )
    redis_prefix: str = Field(
        default="vault_auth",
        description="Key prefix for Redis keys",
    )
    session_ttl_seconds: int = Field(
        default=86400,
        ge=60,
        description="TTL applied to the session-scoped storage area in Redis",
    )


class ExchangeSettings(BaseSettings):
    """Authorization code resolution settings.

    Environment prefix: VAULT_AUTH_EXCHANGE__
    Example: VAULT_AUTH_EXCHANGE__BROKER_URL=https://broker.internal/exchange
    """

    model_config = SettingsConfigDict(
        env_prefix="VAULT_AUTH_EXCHANGE__",
        extra="ignore",
    )

    backend: Literal["broker", "placeholder"] = Field(
        default="broker",
        description="broker: trusted exchange service; placeholder: fixed development users",
    )
    broker_url: str = Field(
        default="",
        description="Endpoint of the trusted token broker",
    )
    timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="HTTP timeout for broker requests",
    )


class LogSettings(BaseSettings):
    """Logging settings.

    Environment prefix: VAULT_AUTH_LOG__
    Example: VAULT_AUTH_LOG__LEVEL=DEBUG
    """

    model_config = SettingsConfigDict(
        env_prefix="VAULT_AUTH_LOG__",
        extra="ignore",
    )

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "WARNING"
    format: str = "%(name)s - %(levelname)s - %(message)s"


class _TomlConfigSource(PydanticBaseSettingsSource):
    """Settings source reading the merged TOML configuration files.

    Sections keep reading their own environment prefix, so a
    ``VAULT_AUTH_SESSION__*`` variable still beats a ``[session]`` table.
    """

    def get_field_value(self, field: FieldInfo, field_name: str) -> tuple[Any, str, bool]:
        # Values are produced all at once in __call__
        return None, field_name, False

    def __call__(self) -> dict[str, Any]:
        data = _load_toml_config()
        for name, field in self.settings_cls.model_fields.items():
            section_cls = field.annotation
            if not (isinstance(section_cls, type) and issubclass(section_cls, BaseSettings)):
                continue
            table = data.get(name)
            if not isinstance(table, dict):
                continue
            data[name] = {**table, **_section_env(section_cls)}
        return data


def _section_env(section_cls: type[BaseSettings]) -> dict[str, str]:
    """Collect the environment variables set under a section's own prefix."""
    prefix = str(section_cls.model_config.get("env_prefix", "")).upper()
    values = {}
    for key, value in os.environ.items():
        if not key.upper().startswith(prefix):
            continue
        field_name = key[len(prefix):].lower()
        if field_name in section_cls.model_fields:
            values[field_name] = value
    return values


class VaultAuthSettings(BaseSettings):
    """Main settings aggregating all configuration sections.

    Environment prefix: VAULT_AUTH__

    Configuration sources (in order of precedence):
    1. Built-in defaults
    2. pyproject.toml [tool.vault_auth] section
    3. ./vault_auth.toml (project-level)
    4. ~/.config/vault_auth/config.toml (user-level, overrides project)
    5. Environment variables, including section prefixes
    6. Keyword arguments (highest priority)
    """

    model_config = SettingsConfigDict(
        env_prefix="VAULT_AUTH__",
        env_nested_delimiter="__",
        extra="ignore",
    )

    base_url: str = Field(
        default="https://vault-dem.pages.dev",
        description="Origin the provider redirects back to (callback paths are appended)",
    )
    enabled_providers: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: list(DEFAULT_PROVIDERS),
        description=(
            "Providers exposed by the registry. Disabled providers are not "
            "registered at all. Set via VAULT_AUTH__ENABLED_PROVIDERS (comma-separated)."
        ),
    )

    apple_client_id: str = Field(default="com.vault.webapp", description="Apple Services ID")
    google_client_id: str = Field(default="", description="Google OAuth2 client ID")
    idme_client_id: str = Field(default="", description="ID.me client ID")
    logingov_client_id: str = Field(default="", description="Login.gov client ID")

    session: SessionSettings = Field(default_factory=SessionSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    exchange: ExchangeSettings = Field(default_factory=ExchangeSettings)
    log: LogSettings = Field(default_factory=LogSettings)

    @field_validator("base_url")
    @classmethod
    def _strip_base_url(cls, v: str) -> str:
        """Drop trailing slashes so callback paths join cleanly."""
        return v.rstrip("/")

    @field_validator("enabled_providers", mode="before")
    @classmethod
    def _parse_enabled_providers(cls, v: Any) -> list[str]:
        """Accept a comma-separated string (from env var) or a list."""
        if isinstance(v, str):
            v = [p.strip() for p in v.split(",") if p.strip()]
        if not isinstance(v, list):
            msg = f"enabled_providers must be a list or comma-separated string, got {type(v).__name__}"
            raise TypeError(msg)
        unknown = set(v) - KNOWN_PROVIDERS
        if unknown:
            msg = (
                f"Unknown provider(s): {', '.join(sorted(unknown))}. "
                f"Available: {', '.join(sorted(KNOWN_PROVIDERS))}"
            )
            raise ValueError(msg)
        return v

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Rank keyword arguments over environment variables over TOML files."""
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            _TomlConfigSource(settings_cls),
            file_secret_settings,
        )

    def client_id_for(self, provider_id: str) -> str:
        """Return the configured client id for ``provider_id``."""
        return str(getattr(self, f"{provider_id}_client_id", ""))

    def to_toml(self) -> str:
        """Export settings as TOML string."""
        lines = ["# vault-auth Configuration", "# Generated by: vault-auth config --toml", ""]

        ep = "[" + ", ".join(f'"{p}"' for p in self.enabled_providers) + "]"
        lines.append(f'base_url = "{self.base_url}"')
        lines.append(f"enabled_providers = {ep}")
        for provider_id in sorted(KNOWN_PROVIDERS):
            lines.append(f'{provider_id}_client_id = "{self.client_id_for(provider_id)}"')
        lines.append("")

        section_names = ["session", "storage", "exchange", "log"]
        all_data = self.model_dump(exclude=dict.fromkeys(section_names, _SENSITIVE_FIELDS))

        for section_name in section_names:
            lines.append(f"[{section_name}]")
            for field_name, field_value in all_data[section_name].items():
                if isinstance(field_value, bool):
                    value_str = "true" if field_value else "false"
                elif isinstance(field_value, str):
                    value_str = f'"{field_value}"'
                else:
                    value_str = str(field_value)
                lines.append(f"{field_name} = {value_str}")
            section_cls = type(getattr(self, section_name))
            lines.extend(
                f'{rn} = "{_REDACTED}"'
                for rn in sorted(_SENSITIVE_FIELDS & section_cls.model_fields.keys())
            )
            lines.append("")

        return "\n".join(lines)

    def to_env(self) -> str:
        """Export settings as shell environment variables."""
        lines = [
            "# vault-auth Environment Variables",
            "# Generated by: vault-auth config --env",
            "",
            f'export VAULT_AUTH__BASE_URL="{self.base_url}"',
            f'export VAULT_AUTH__ENABLED_PROVIDERS="{",".join(self.enabled_providers)}"',
        ]
        lines.extend(
            f'export VAULT_AUTH__{provider_id.upper()}_CLIENT_ID="{self.client_id_for(provider_id)}"'
            for provider_id in sorted(KNOWN_PROVIDERS)
        )
        lines.append("")

        env_sections = [
            ("SESSION", "session"),
            ("STORAGE", "storage"),
            ("EXCHANGE", "exchange"),
            ("LOG", "log"),
        ]
        all_data = self.model_dump(exclude={attr: _SENSITIVE_FIELDS for _, attr in env_sections})

        for prefix, attr in env_sections:
            lines.append(f"# {prefix} settings")
            for field_name, field_value in all_data[attr].items():
                env_name = f"VAULT_AUTH_{prefix}__{field_name.upper()}"
                if isinstance(field_value, bool):
                    value_str = "true" if field_value else "false"
                else:
                    value_str = str(field_value)
                lines.append(f'export {env_name}="{value_str}"')
            section_cls = type(getattr(self, attr))
            lines.extend(
                f'export VAULT_AUTH_{prefix}__{rn.upper()}="{_REDACTED}"'
                for rn in sorted(_SENSITIVE_FIELDS & section_cls.model_fields.keys())
            )
            lines.append("")

        return "\n".join(lines)


@lru_cache(maxsize=1)
def get_settings() -> VaultAuthSettings:
    """Get the cached settings instance.

    Returns
    -------
    VaultAuthSettings
        The loaded settings.
    """
    return VaultAuthSettings()


def clear_settings_cache() -> None:
    """Clear the settings cache to force reload."""
    get_settings.cache_clear()
