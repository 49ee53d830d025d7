"""Validation of the return leg of the authorization flow.

Parses the redirect the provider sent back and checks it against the
artifacts issued at login. Pure functions: nothing here touches storage.
"""

# pylint: disable=logging-too-many-args

from __future__ import annotations

import base64
import binascii
import json
import logging

from typing import TYPE_CHECKING, Any
from urllib.parse import parse_qs, urlparse

from ..exceptions import (
    MissingCodeError,
    NonceMismatchError,
    ProviderError,
    StateMismatchError,
)
from .types import ValidatedCode


if TYPE_CHECKING:
    from collections.abc import Mapping

    from .pkce import PKCEArtifacts


logger = logging.getLogger("vault_auth.auth")


def parse_callback_params(url: str) -> dict[str, str]:
    """Extract callback parameters from a return URL.

    Parameters may arrive in the query string, the fragment, or both.
    They are merged with query parameters taking precedence.

    Parameters
    ----------
    url : str
        The full URL the provider redirected to.

    Returns
    -------
    dict[str, str]
        First value of each parameter.
    """
    parsed = urlparse(url)
    merged: dict[str, str] = {}
    for part in (parsed.fragment, parsed.query):
        for key, values in parse_qs(part).items():
            merged[key] = values[0]
    return merged


def id_token_claims(id_token: str) -> dict[str, Any]:
    """Decode the payload of a JWT without verifying its signature.

    Signature verification belongs to whoever exchanges the code; this
    is only used to bind the returned token to the issued nonce.

    Raises
    ------
    ValueError
        If the token is not a decodable JWT.
    """
    parts = id_token.split(".")
    if len(parts) != 3:
        msg = "ID token is not a compact JWT"
        raise ValueError(msg)
    payload = parts[1]
    try:
        raw = base64.urlsafe_b64decode(payload + "=" * (-len(payload) % 4))
        claims = json.loads(raw)
    except (binascii.Error, UnicodeDecodeError, json.JSONDecodeError) as exc:
        msg = "ID token payload is not valid JSON"
        raise ValueError(msg) from exc
    if not isinstance(claims, dict):
        msg = "ID token payload is not a JSON object"
        raise ValueError(msg)
    return claims


def check_nonce(id_token: str, expected_nonce: str, provider: str | None = None) -> None:
    """Ensure an ID token carries the nonce issued for this attempt.

    Raises
    ------
    NonceMismatchError
        If the token is undecodable or its nonce differs.
    """
    try:
        claims = id_token_claims(id_token)
    except ValueError as exc:
        raise NonceMismatchError(str(exc), provider=provider) from exc
    if claims.get("nonce") != expected_nonce:
        logger.warning("ID token nonce mismatch for %s (possible replay)", provider)
        msg = "Nonce mismatch - possible replay attack"
        raise NonceMismatchError(msg, provider=provider)


class CallbackValidator:
    """Checks returned callback parameters against issued artifacts."""

    def check_response(self, params: Mapping[str, str], provider: str | None = None) -> str:
        """Run the checks that need no artifacts.

        Returns
        -------
        str
            The authorization code.

        Raises
        ------
        ProviderError
            If the provider reported an error.
        MissingCodeError
            If no authorization code was returned.
        """
        error = params.get("error")
        if error:
            raise ProviderError(error, params.get("error_description"), provider=provider)

        code = params.get("code")
        if not code:
            msg = "No authorization code received"
            raise MissingCodeError(msg, provider=provider)
        return code

    def validate(
        self,
        params: Mapping[str, str],
        expected: PKCEArtifacts | None,
        provider: str | None = None,
    ) -> ValidatedCode:
        """Validate a callback.

        Checks run in a fixed order: provider error, missing code,
        state, then the ID token nonce when one was returned.

        Parameters
        ----------
        params : Mapping[str, str]
            Parsed callback parameters.
        expected : PKCEArtifacts or None
            Artifacts issued at login; None when they could not be loaded.
        provider : str, optional
            Provider id, for error context.

        Returns
        -------
        ValidatedCode
            The authorization code paired with the original verifier.

        Raises
        ------
        ProviderError
            If the provider reported an error.
        MissingCodeError
            If no authorization code was returned.
        StateMismatchError
            If the state differs from the issued one or nothing was issued.
        NonceMismatchError
            If a returned ID token does not carry the issued nonce.
        """
        code = self.check_response(params, provider)

        if expected is None or params.get("state") != expected.state:
            logger.warning("State mismatch on callback for %s (possible CSRF)", provider)
            msg = "State mismatch - possible CSRF attack"
            raise StateMismatchError(msg, provider=provider)

        id_token = params.get("id_token")
        if id_token:
            check_nonce(id_token, expected.nonce, provider=provider)

        return ValidatedCode(
            code=code,
            code_verifier=expected.code_verifier,
            nonce=expected.nonce,
            provider=expected.provider or provider or "",
            id_token=id_token,
        )
