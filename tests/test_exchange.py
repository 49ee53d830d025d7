"""Unit tests for token exchangers."""

# pylint: disable=redefined-outer-name

from __future__ import annotations

import asyncio
import json
import time

from typing import Any

import httpx
import pytest

from test_callback import make_id_token
from vault_auth.auth.exchange import (
    BrokerTokenExchanger,
    PlaceholderTokenExchanger,
    create_exchanger,
)
from vault_auth.auth.types import ValidatedCode
from vault_auth.config import ExchangeSettings
from vault_auth.exceptions import ConfigError, NonceMismatchError, TokenExchangeError


BROKER_URL = "https://broker.example.test/exchange"


def _run(coro):
    """Run an async coroutine synchronously."""
    return asyncio.run(coro)


def _validated(provider: str = "idme") -> ValidatedCode:
    return ValidatedCode(code="abc123", code_verifier="verifier", nonce="nonce-1", provider=provider)


def _broker(handler) -> BrokerTokenExchanger:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return BrokerTokenExchanger(BROKER_URL, session_lifetime_seconds=900, http_client=client)


def _exchange(exchanger, config, validated: ValidatedCode | None = None):
    async def _test():
        try:
            return await exchanger.exchange(config, validated or _validated(config.id))
        finally:
            await exchanger.close()

    return _run(_test())


# ── Placeholder ─────────────────────────────────────────────────────


class TestPlaceholderTokenExchanger:
    """Tests for PlaceholderTokenExchanger."""

    def test_idme_user_is_verified(self, registry) -> None:
        """The ID.me placeholder is a verified veteran at LOA2."""
        session = _exchange(PlaceholderTokenExchanger(), registry.get("idme"))
        assert session.provider == "idme"
        assert session.user.is_veteran_verified is True
        assert session.user.verification_source == "idme"
        assert session.user.verification_level == "LOA2"
        assert session.access_token.startswith("demo_access_token_")

    def test_google_user_unverified(self, registry) -> None:
        """The Google placeholder is not veteran verified."""
        session = _exchange(PlaceholderTokenExchanger(), registry.get("google"))
        assert session.user.email == "veteran@gmail.com"
        assert session.user.is_veteran_verified is False

    def test_lifetime(self, registry) -> None:
        """expires_at honours the configured lifetime."""
        before = time.time()
        session = _exchange(PlaceholderTokenExchanger(120), registry.get("apple"))
        assert before + 120 <= session.expires_at <= time.time() + 120

    def test_logs_warning(self, registry, caplog: pytest.LogCaptureFixture) -> None:
        """Using the placeholder is always logged."""
        with caplog.at_level("WARNING", logger="vault_auth.auth"):
            _exchange(PlaceholderTokenExchanger(), registry.get("google"))
        assert "placeholder exchange" in caplog.text


# ── Broker ──────────────────────────────────────────────────────────


class TestBrokerTokenExchanger:
    """Tests for BrokerTokenExchanger against a mock transport."""

    def test_posts_exchange_request(self, registry) -> None:
        """The broker receives the code, verifier, redirect URI and nonce."""
        seen: dict[str, Any] = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["body"] = json.loads(request.content)
            return httpx.Response(
                200,
                json={
                    "access_token": "at_1",
                    "refresh_token": "rt_1",
                    "expires_in": 600,
                    "user": {
                        "id": "u1",
                        "email": "vet@example.test",
                        "givenName": "Val",
                        "isVeteranVerified": True,
                        "verificationLevel": "LOA2",
                    },
                },
            )

        config = registry.get("idme")
        before = time.time()
        session = _exchange(_broker(handler), config)

        assert seen["url"] == BROKER_URL
        assert seen["body"] == {
            "provider": "idme",
            "code": "abc123",
            "code_verifier": "verifier",
            "redirect_uri": config.redirect_uri,
            "nonce": "nonce-1",
        }
        assert session.access_token == "at_1"
        assert session.refresh_token == "rt_1"
        assert before + 600 <= session.expires_at <= time.time() + 600
        assert session.user.given_name == "Val"
        assert session.user.verification_source == "idme"

    def test_default_lifetime(self, registry) -> None:
        """Without expires_in the configured lifetime applies."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"access_token": "at", "user": {"id": "u"}})

        before = time.time()
        session = _exchange(_broker(handler), registry.get("google"))
        assert session.expires_at >= before + 900

    def test_http_error(self, registry) -> None:
        """Non-2xx responses raise TokenExchangeError."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(502, text="bad gateway")

        with pytest.raises(TokenExchangeError, match="502"):
            _exchange(_broker(handler), registry.get("google"))

    def test_transport_error(self, registry) -> None:
        """Connection failures raise TokenExchangeError."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(TokenExchangeError, match="request failed"):
            _exchange(_broker(handler), registry.get("google"))

    def test_invalid_json(self, registry) -> None:
        """A non-JSON body raises TokenExchangeError."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<html>")

        with pytest.raises(TokenExchangeError, match="invalid JSON"):
            _exchange(_broker(handler), registry.get("google"))

    def test_error_payload(self, registry) -> None:
        """An OAuth error body raises TokenExchangeError."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200, json={"error": "invalid_grant", "error_description": "Code expired"}
            )

        with pytest.raises(TokenExchangeError, match="Code expired"):
            _exchange(_broker(handler), registry.get("google"))

    def test_incomplete_response(self, registry) -> None:
        """A response without an access token is rejected."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"user": {"id": "u"}})

        with pytest.raises(TokenExchangeError, match="incomplete"):
            _exchange(_broker(handler), registry.get("google"))

    def test_non_numeric_expires_in(self, registry) -> None:
        """A non-numeric expires_in is reported as an exchange failure."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200, json={"access_token": "at", "expires_in": "soon", "user": {"id": "u"}}
            )

        with pytest.raises(TokenExchangeError, match="incomplete"):
            _exchange(_broker(handler), registry.get("google"))

    def test_non_object_user(self, registry) -> None:
        """A user field that is not an object is reported as an exchange failure."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"access_token": "at", "user": ["u"]})

        with pytest.raises(TokenExchangeError, match="incomplete"):
            _exchange(_broker(handler), registry.get("google"))

    def test_string_veteran_flag_not_verified(self, registry) -> None:
        """A string "false" from the broker does not verify the user."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200,
                json={"access_token": "at", "user": {"id": "u", "is_veteran_verified": "false"}},
            )

        session = _exchange(_broker(handler), registry.get("idme"))
        assert session.user.is_veteran_verified is False
        assert session.user.verification_source is None

    def test_id_token_nonce_checked(self, registry) -> None:
        """An ID token from the broker must carry the issued nonce."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200,
                json={
                    "access_token": "at",
                    "id_token": make_id_token({"nonce": "other"}),
                    "user": {"id": "u"},
                },
            )

        with pytest.raises(NonceMismatchError):
            _exchange(_broker(handler), registry.get("google"))

    def test_close_releases_client(self) -> None:
        """close() closes and drops the HTTP client."""
        exchanger = _broker(lambda request: httpx.Response(200, json={}))
        client = exchanger._http_client  # pylint: disable=protected-access
        _run(exchanger.close())
        assert client is not None
        assert client.is_closed


class TestCreateExchanger:
    """Tests for create_exchanger()."""

    def test_placeholder(self) -> None:
        """The placeholder backend is selected explicitly."""
        exchanger = create_exchanger(ExchangeSettings(backend="placeholder"), 1200)
        assert isinstance(exchanger, PlaceholderTokenExchanger)
        assert exchanger.session_lifetime_seconds == 1200

    def test_broker(self) -> None:
        """The broker backend uses the configured URL and timeout."""
        exchanger = create_exchanger(ExchangeSettings(broker_url=BROKER_URL, timeout_seconds=5))
        assert isinstance(exchanger, BrokerTokenExchanger)
        assert exchanger.broker_url == BROKER_URL
        assert exchanger.timeout == 5

    def test_broker_without_url(self) -> None:
        """Broker mode without a URL is a configuration error."""
        with pytest.raises(ConfigError, match="BROKER_URL"):
            create_exchanger(ExchangeSettings())
