"""Identity provider configuration and registry.

Static definitions for Apple, Google, ID.me and Login.gov, assembled
into a read-only registry from settings at start-up.
"""

# pylint: disable=logging-too-many-args

from __future__ import annotations

import logging

from collections.abc import Callable, Iterator
from dataclasses import dataclass
from typing import TYPE_CHECKING, Literal, Union
from urllib.parse import urlencode

from ..exceptions import UnknownProviderError


if TYPE_CHECKING:
    from ..config import VaultAuthSettings
    from .pkce import ChallengeMethod, PKCEArtifacts


logger = logging.getLogger("vault_auth.auth")


# ── Provider extras ─────────────────────────────────────────────────


@dataclass(frozen=True)
class AppleExtras:
    """Apple carries no extra authorization parameters."""

    kind: Literal["apple"] = "apple"

    def authorization_params(self) -> dict[str, str]:
        return {}

    @property
    def assurance_level(self) -> str | None:
        return None


@dataclass(frozen=True)
class GoogleExtras:
    """Google account chooser hint."""

    prompt: str = "select_account"
    kind: Literal["google"] = "google"

    def authorization_params(self) -> dict[str, str]:
        return {"prompt": self.prompt} if self.prompt else {}

    @property
    def assurance_level(self) -> str | None:
        return None


@dataclass(frozen=True)
class IdMeExtras:
    """ID.me level-of-assurance requirement and verification group."""

    required_loa: int = 2
    verification_group: str = "veteran"
    kind: Literal["idme"] = "idme"

    def authorization_params(self) -> dict[str, str]:
        # ID.me derives LOA and group from the requested scope
        return {}

    @property
    def assurance_level(self) -> str | None:
        return f"LOA{self.required_loa}"


@dataclass(frozen=True)
class LoginGovExtras:
    """Login.gov identity assurance level request."""

    acr_values: str = "http://idmanagement.gov/ns/assurance/ial/2"
    kind: Literal["logingov"] = "logingov"

    def authorization_params(self) -> dict[str, str]:
        return {"acr_values": self.acr_values} if self.acr_values else {}

    @property
    def assurance_level(self) -> str | None:
        return f"IAL{self.acr_values.rsplit('/', 1)[-1]}" if self.acr_values else None


ProviderExtras = Union[AppleExtras, GoogleExtras, IdMeExtras, LoginGovExtras]


# ── Provider config ─────────────────────────────────────────────────


@dataclass(frozen=True)
class ProviderConfig:
    """Immutable configuration for one identity provider.

    Attributes
    ----------
    id : str
        Stable provider id (``"apple"``, ``"google"``, ...).
    name : str
        Human-readable name.
    client_id : str
        OAuth2 client identifier.
    redirect_uri : str
        Callback URL registered with the provider.
    scope : str
        Space-separated scopes to request.
    response_type : str
        ``"code"`` or the hybrid ``"code id_token"``.
    authorization_endpoint, token_endpoint : str
        Provider endpoints.
    userinfo_endpoint : str or None
        Userinfo endpoint, when the provider has one.
    response_mode : str or None
        ``"fragment"`` for providers that return parameters in the hash.
    use_pkce : bool
        Whether the PKCE challenge is sent.
    code_challenge_method : str
        ``"S256"`` or ``"plain"``.
    extras : ProviderExtras
        Provider-specific settings.
    """

    id: str
    name: str
    client_id: str
    redirect_uri: str
    scope: str
    response_type: str
    authorization_endpoint: str
    token_endpoint: str
    extras: ProviderExtras
    userinfo_endpoint: str | None = None
    response_mode: str | None = None
    use_pkce: bool = True
    code_challenge_method: ChallengeMethod = "S256"

    def build_authorize_url(self, artifacts: PKCEArtifacts) -> str:
        """Build the full authorization URL.

        Parameters
        ----------
        artifacts : PKCEArtifacts
            The artifacts issued for this attempt.

        Returns
        -------
        str
            The authorization endpoint with all query parameters.
        """
        params: dict[str, str] = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": self.response_type,
            "scope": self.scope,
            "state": artifacts.state,
            "nonce": artifacts.nonce,
        }
        if self.use_pkce:
            params["code_challenge"] = artifacts.code_challenge
            params["code_challenge_method"] = artifacts.code_challenge_method
        if self.response_mode:
            params["response_mode"] = self.response_mode
        params.update(self.extras.authorization_params())
        return f"{self.authorization_endpoint}?{urlencode(params)}"


@dataclass(frozen=True)
class ProviderDisplay:
    """Presentation info for the login surface."""

    id: str
    name: str
    icon: str
    description: str
    badge: str | None = None


# ── Static definitions ──────────────────────────────────────────────


def _apple(client_id: str, base_url: str) -> ProviderConfig:
    return ProviderConfig(
        id="apple",
        name="Apple",
        client_id=client_id,
        redirect_uri=f"{base_url}/auth/callback/apple",
        scope="name email",
        response_type="code id_token",
        response_mode="fragment",
        authorization_endpoint="https://appleid.apple.com/auth/authorize",
        token_endpoint="https://appleid.apple.com/auth/token",  # noqa: S106
        extras=AppleExtras(),
    )


def _google(client_id: str, base_url: str) -> ProviderConfig:
    return ProviderConfig(
        id="google",
        name="Google",
        client_id=client_id,
        redirect_uri=f"{base_url}/auth/callback/google",
        scope="openid email profile",
        response_type="code",
        authorization_endpoint="https://accounts.google.com/o/oauth2/v2/auth",
        token_endpoint="https://oauth2.googleapis.com/token",  # noqa: S106
        userinfo_endpoint="https://openidconnect.googleapis.com/v1/userinfo",
        extras=GoogleExtras(),
    )


def _idme(client_id: str, base_url: str) -> ProviderConfig:
    return ProviderConfig(
        id="idme",
        name="ID.me",
        client_id=client_id,
        redirect_uri=f"{base_url}/auth/callback/idme",
        # The military scope verifies veteran status
        scope="openid military",
        response_type="code",
        authorization_endpoint="https://api.id.me/oauth/authorize",
        token_endpoint="https://api.id.me/oauth/token",  # noqa: S106
        userinfo_endpoint="https://api.id.me/api/public/v3/attributes.json",
        extras=IdMeExtras(),
    )


def _logingov(client_id: str, base_url: str) -> ProviderConfig:
    return ProviderConfig(
        id="logingov",
        name="Login.gov",
        client_id=client_id,
        redirect_uri=f"{base_url}/auth/callback/logingov",
        scope="openid email profile",
        response_type="code",
        authorization_endpoint="https://secure.login.gov/openid_connect/authorize",
        token_endpoint="https://secure.login.gov/api/openid_connect/token",  # noqa: S106
        userinfo_endpoint="https://secure.login.gov/api/openid_connect/userinfo",
        extras=LoginGovExtras(),
    )


PROVIDER_DEFINITIONS: dict[str, Callable[[str, str], ProviderConfig]] = {
    "apple": _apple,
    "google": _google,
    "idme": _idme,
    "logingov": _logingov,
}

PROVIDER_DISPLAY: dict[str, ProviderDisplay] = {
    "apple": ProviderDisplay("apple", "Apple", "apple", "Sign in with your Apple ID"),
    "google": ProviderDisplay("google", "Google", "google", "Sign in with Google"),
    "idme": ProviderDisplay(
        "idme", "ID.me", "shield-check", "Verify your veteran status", badge="Veteran Verified"
    ),
    "logingov": ProviderDisplay(
        "logingov",
        "Login.gov",
        "landmark",
        "Federal identity verification",
        badge="Federal Standard",
    ),
}


# ── Registry ────────────────────────────────────────────────────────


class ProviderRegistry:
    """Read-only lookup of enabled provider configurations.

    Parameters
    ----------
    configs : iterable of ProviderConfig
        The enabled providers. Anything not passed here does not exist
        as far as the rest of the core is concerned.
    """

    def __init__(self, configs: Iterator[ProviderConfig] | list[ProviderConfig]) -> None:
        """Initialize the registry."""
        self._configs: dict[str, ProviderConfig] = {c.id: c for c in configs}

    @classmethod
    def from_settings(cls, settings: VaultAuthSettings) -> ProviderRegistry:
        """Assemble the registry from static definitions and settings.

        Parameters
        ----------
        settings : VaultAuthSettings
            Supplies the base URL, enabled providers and client ids.

        Returns
        -------
        ProviderRegistry
            A registry containing only the enabled providers.
        """
        configs = []
        for provider_id in settings.enabled_providers:
            client_id = settings.client_id_for(provider_id)
            if not client_id:
                logger.warning("Provider %s is enabled without a client id", provider_id)
            configs.append(PROVIDER_DEFINITIONS[provider_id](client_id, settings.base_url))
        return cls(configs)

    def get(self, provider_id: str) -> ProviderConfig:
        """Look up a provider configuration.

        Raises
        ------
        UnknownProviderError
            If ``provider_id`` is not registered.
        """
        try:
            return self._configs[provider_id]
        except KeyError:
            msg = f"Unknown auth provider: {provider_id}"
            raise UnknownProviderError(msg, provider=provider_id) from None

    def ids(self) -> list[str]:
        """Registered provider ids in registration order."""
        return list(self._configs)

    def display_info(self) -> list[ProviderDisplay]:
        """Presentation records for the registered providers."""
        return [
            PROVIDER_DISPLAY.get(pid) or ProviderDisplay(pid, cfg.name, pid, f"Sign in with {cfg.name}")
            for pid, cfg in self._configs.items()
        ]

    def __contains__(self, provider_id: object) -> bool:
        return provider_id in self._configs

    def __iter__(self) -> Iterator[ProviderConfig]:
        return iter(self._configs.values())

    def __len__(self) -> int:
        return len(self._configs)
