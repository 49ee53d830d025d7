"""Resolution of a validated authorization code into a session.

A standards-compliant code-for-token exchange needs a confidential
client, which a distributable client cannot hold. The step is therefore
an injectable ``TokenExchanger``: ``BrokerTokenExchanger`` delegates to a
trusted broker service, ``PlaceholderTokenExchanger`` reproduces the
fixed development users and must be selected explicitly.
"""

# pylint: disable=logging-too-many-args

from __future__ import annotations

import logging
import time

from abc import ABC, abstractmethod
from dataclasses import replace
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

import httpx

from ..exceptions import ConfigError, TokenExchangeError
from .callback import check_nonce
from .types import AuthUser, Session, user_from_dict


if TYPE_CHECKING:
    from ..config import ExchangeSettings
    from .providers import ProviderConfig
    from .types import ValidatedCode


logger = logging.getLogger("vault_auth.auth")


class TokenExchanger(ABC):
    """Turns a validated authorization code into a Session."""

    @abstractmethod
    async def exchange(self, config: ProviderConfig, validated: ValidatedCode) -> Session:
        """Resolve the code into a session.

        Parameters
        ----------
        config : ProviderConfig
            The provider the code was issued by.
        validated : ValidatedCode
            The code paired with its PKCE verifier and nonce.

        Returns
        -------
        Session
            A new session.

        Raises
        ------
        TokenExchangeError
            If the code cannot be resolved.
        """

    async def close(self) -> None:
        """Release any held resources."""
        return


_PLACEHOLDER_USERS: dict[str, dict[str, Any]] = {
    "apple": {
        "id": "apple_demo_user_001",
        "email": "veteran@icloud.com",
        "name": "Demo Veteran",
        "given_name": "Demo",
        "family_name": "Veteran",
        "is_veteran_verified": False,
        "verification_level": "LOA1",
    },
    "google": {
        "id": "google_demo_user_001",
        "email": "veteran@gmail.com",
        "name": "Demo Veteran",
        "given_name": "Demo",
        "family_name": "Veteran",
        "picture": "https://ui-avatars.com/api/?name=Demo+Veteran&background=c9a227&color=0f172a",
        "is_veteran_verified": False,
        "verification_level": "LOA1",
    },
    "idme": {
        "id": "idme_demo_user_001",
        "email": "veteran.verified@id.me",
        "name": "Verified Veteran",
        "given_name": "Verified",
        "family_name": "Veteran",
        "is_veteran_verified": True,
        "verification_source": "idme",
        "verification_level": "LOA2",
    },
    "logingov": {
        "id": "logingov_demo_user_001",
        "email": "veteran@login.gov",
        "name": "Federal Veteran",
        "given_name": "Federal",
        "family_name": "Veteran",
        "is_veteran_verified": True,
        "verification_source": "logingov",
        "verification_level": "IAL2",
    },
}


class PlaceholderTokenExchanger(TokenExchanger):
    """Development exchanger returning a fixed user per provider.

    The authorization code is not redeemed. Tokens are opaque local
    strings that no API will accept.

    Parameters
    ----------
    session_lifetime_seconds : int
        Lifetime of the issued session (default one hour).
    """

    def __init__(self, session_lifetime_seconds: int = 3600) -> None:
        """Initialize the placeholder exchanger."""
        self.session_lifetime_seconds = session_lifetime_seconds

    async def exchange(self, config: ProviderConfig, validated: ValidatedCode) -> Session:
        """Return the fixed placeholder session for ``config.id``."""
        template = _PLACEHOLDER_USERS.get(config.id)
        if template is None:
            msg = f"No placeholder user for provider {config.id}"
            raise TokenExchangeError(msg, provider=config.id)

        logger.warning("Using placeholder exchange for %s; the code is not redeemed", config.id)
        now = time.time()
        instant = datetime.fromtimestamp(now, tz=timezone.utc)
        user = user_from_dict({**template, "created_at": instant, "last_login_at": instant})
        return Session(
            access_token=f"demo_access_token_{int(now * 1000)}",
            expires_at=now + self.session_lifetime_seconds,
            provider=config.id,
            user=user,
        )


class BrokerTokenExchanger(TokenExchanger):
    """Delegates the exchange to a trusted broker service.

    The broker holds whatever client credentials the provider needs,
    redeems the code with the PKCE verifier, and returns tokens plus
    the resolved user profile.

    Parameters
    ----------
    broker_url : str
        Endpoint accepting the exchange request.
    timeout : float
        HTTP timeout in seconds.
    session_lifetime_seconds : int
        Lifetime used when the broker omits ``expires_in``.
    http_client : httpx.AsyncClient, optional
        Pre-configured client (for testing).
    """

    def __init__(
        self,
        broker_url: str,
        timeout: float = 30.0,
        session_lifetime_seconds: int = 3600,
        *,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the broker exchanger."""
        self.broker_url = broker_url
        self.timeout = timeout
        self.session_lifetime_seconds = session_lifetime_seconds
        self._http_client = http_client

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the shared HTTP client."""
        if self._http_client is None or self._http_client.is_closed:
            self._http_client = httpx.AsyncClient(timeout=self.timeout)
        return self._http_client

    async def close(self) -> None:
        """Close the shared HTTP client."""
        if self._http_client is not None and not self._http_client.is_closed:
            await self._http_client.aclose()
            self._http_client = None

    async def exchange(self, config: ProviderConfig, validated: ValidatedCode) -> Session:
        """Exchange the code through the broker."""
        payload = {
            "provider": config.id,
            "code": validated.code,
            "code_verifier": validated.code_verifier,
            "redirect_uri": config.redirect_uri,
            "nonce": validated.nonce,
        }
        try:
            client = await self._get_client()
            resp = await client.post(
                self.broker_url,
                json=payload,
                headers={"Accept": "application/json"},
            )
            resp.raise_for_status()
            raw = resp.json()
        except httpx.HTTPStatusError as exc:
            msg = f"Token exchange failed: {exc.response.status_code}"
            raise TokenExchangeError(msg, provider=config.id) from exc
        except httpx.HTTPError as exc:
            msg = f"Token exchange request failed: {exc}"
            raise TokenExchangeError(msg, provider=config.id) from exc
        except ValueError as exc:
            msg = "Token exchange returned invalid JSON"
            raise TokenExchangeError(msg, provider=config.id) from exc

        if not isinstance(raw, dict):
            msg = "Token exchange returned an unexpected payload"
            raise TokenExchangeError(msg, provider=config.id)

        if "error" in raw:
            msg = f"Token exchange error: {raw.get('error_description', raw['error'])}"
            raise TokenExchangeError(msg, provider=config.id)

        id_token = raw.get("id_token")
        if id_token:
            check_nonce(id_token, validated.nonce, provider=config.id)

        try:
            user = self._resolve_user(config, raw.get("user") or {})
            access_token = raw["access_token"]
            expires_in = float(raw.get("expires_in") or self.session_lifetime_seconds)
        except (KeyError, TypeError, ValueError) as exc:
            msg = f"Token exchange response is incomplete: {exc}"
            raise TokenExchangeError(msg, provider=config.id) from exc

        return Session(
            access_token=access_token,
            expires_at=time.time() + expires_in,
            provider=config.id,
            user=user,
            id_token=id_token,
            refresh_token=raw.get("refresh_token"),
        )

    @staticmethod
    def _resolve_user(config: ProviderConfig, data: dict[str, Any]) -> AuthUser:
        user = user_from_dict(data)
        if user.is_veteran_verified and user.verification_source is None:
            # Verification is attributed to the provider that performed it
            user = replace(user, verification_source=config.id)
        return user


def create_exchanger(settings: ExchangeSettings, session_lifetime_seconds: int = 3600) -> TokenExchanger:
    """Create the configured token exchanger.

    Parameters
    ----------
    settings : ExchangeSettings
        Exchange section of the configuration.
    session_lifetime_seconds : int
        Fallback session lifetime.

    Returns
    -------
    TokenExchanger
        The configured exchanger.

    Raises
    ------
    ConfigError
        If the broker backend is selected without a broker URL.
    """
    if settings.backend == "placeholder":
        return PlaceholderTokenExchanger(session_lifetime_seconds=session_lifetime_seconds)
    if not settings.broker_url:
        msg = "Broker exchange selected but VAULT_AUTH_EXCHANGE__BROKER_URL is not set"
        raise ConfigError(msg)
    return BrokerTokenExchanger(
        settings.broker_url,
        timeout=settings.timeout_seconds,
        session_lifetime_seconds=session_lifetime_seconds,
    )
