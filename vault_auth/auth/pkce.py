"""PKCE (Proof Key for Code Exchange) implementation.

RFC 7636 - Proof Key for Code Exchange for OAuth 2.0 public clients.
Uses the S256 challenge method unless a provider forbids hashing.
"""

# pylint: disable=logging-too-many-args

from __future__ import annotations

import hashlib
import logging
import secrets
import time

from base64 import urlsafe_b64encode
from dataclasses import asdict, dataclass
from typing import TYPE_CHECKING, Any, Literal


if TYPE_CHECKING:
    from .providers import ProviderConfig


logger = logging.getLogger("vault_auth.auth")

ChallengeMethod = Literal["S256", "plain"]

VERIFIER_BYTES = 32
STATE_BYTES = 16
NONCE_BYTES = 16


def _b64url(raw: bytes) -> str:
    return urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def compute_challenge(verifier: str, method: ChallengeMethod = "S256") -> str:
    """Derive the code challenge for ``verifier``.

    Parameters
    ----------
    verifier : str
        The code verifier.
    method : str
        ``"S256"`` (base64url SHA-256) or ``"plain"`` (verifier as-is).

    Returns
    -------
    str
        The code challenge.
    """
    if method == "S256":
        return _b64url(hashlib.sha256(verifier.encode("ascii")).digest())
    if method == "plain":
        return verifier
    msg = f"Unsupported code challenge method: {method}"
    raise ValueError(msg)


@dataclass(frozen=True)
class PKCEArtifacts:
    """One-shot PKCE artifacts for a single login attempt.

    Attributes
    ----------
    code_verifier : str
        43-character URL-safe random secret.
    code_challenge : str
        Challenge derived from the verifier.
    code_challenge_method : str
        ``"S256"`` or ``"plain"``.
    state : str
        CSRF token echoed back by the provider.
    nonce : str
        Replay token bound into the ID token.
    provider : str
        Provider id the artifacts were issued for.
    issued_at : float
        Unix timestamp of issuance.
    """

    code_verifier: str
    code_challenge: str
    code_challenge_method: ChallengeMethod
    state: str
    nonce: str
    provider: str = ""
    issued_at: float = 0.0

    def is_stale(self, ttl_seconds: float, now: float | None = None) -> bool:
        """Check whether the artifacts are older than ``ttl_seconds``."""
        return (time.time() if now is None else now) - self.issued_at > ttl_seconds

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dict."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PKCEArtifacts:
        """Rebuild artifacts from ``to_dict`` output."""
        return cls(
            code_verifier=data["code_verifier"],
            code_challenge=data["code_challenge"],
            code_challenge_method=data.get("code_challenge_method", "S256"),
            state=data["state"],
            nonce=data["nonce"],
            provider=data.get("provider", ""),
            issued_at=float(data.get("issued_at", 0.0)),
        )


class PKCEChallengeGenerator:
    """Produces fresh, independent PKCE artifact sets.

    Every call draws new bytes from ``secrets``; nothing is cached
    between calls.
    """

    def generate(self, method: ChallengeMethod = "S256", provider: str = "") -> PKCEArtifacts:
        """Generate a new verifier/challenge/state/nonce tuple.

        Parameters
        ----------
        method : str
            Challenge method (default ``"S256"``). ``"plain"`` is weaker and
            only for providers that refuse hashed challenges.
        provider : str
            Provider id recorded on the artifacts.

        Returns
        -------
        PKCEArtifacts
            A new artifact set stamped with the current time.
        """
        if method == "plain":
            logger.warning("Issuing plain PKCE challenge for %s; S256 is preferred", provider)
        verifier = _b64url(secrets.token_bytes(VERIFIER_BYTES))
        return PKCEArtifacts(
            code_verifier=verifier,
            code_challenge=compute_challenge(verifier, method),
            code_challenge_method=method,
            state=_b64url(secrets.token_bytes(STATE_BYTES)),
            nonce=_b64url(secrets.token_bytes(NONCE_BYTES)),
            provider=provider,
            issued_at=time.time(),
        )

    def generate_for(self, config: ProviderConfig) -> PKCEArtifacts:
        """Generate artifacts using the provider's required challenge method."""
        return self.generate(method=config.code_challenge_method, provider=config.id)
