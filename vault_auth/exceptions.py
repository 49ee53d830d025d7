"""vault-auth exception hierarchy.

All vault-auth exceptions inherit from VaultAuthException, enabling
catch-all handling while supporting specific error types.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class VaultAuthException(Exception):
    """Base exception for all vault-auth errors."""

    def __init__(self, message: str, **context: Any) -> None:
        """Initialize vault-auth exception.

        Parameters
        ----------
        message : str
            Human-readable error message.
        **context : Any
            Additional context (provider, kind, etc.).
        """
        super().__init__(message)
        self.message = message
        self.context = context

    def __str__(self) -> str:
        """Format exception with context."""
        if self.context:
            ctx = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
            return f"{self.message} ({ctx})"
        return self.message


class ConfigError(VaultAuthException):
    """Provider configuration is missing or invalid.

    Fatal and surfaced immediately; there is no retry path.
    """

    def __init__(self, message: str, provider: str | None = None, **context: Any) -> None:
        """Initialize configuration error.

        Parameters
        ----------
        message : str
            Human-readable error message.
        provider : str, optional
            The provider id involved.
        **context : Any
            Additional context.
        """
        super().__init__(message, provider=provider, **context)
        self.provider = provider


class UnknownProviderError(ConfigError):
    """The requested provider id is not registered (or is disabled)."""


class ProtocolErrorKind(str, Enum):
    """Reasons a callback leg can violate the protocol."""

    MISSING_CODE = "MissingCode"
    MISSING_ARTIFACTS = "MissingArtifacts"
    STATE_MISMATCH = "StateMismatch"
    NONCE_MISMATCH = "NonceMismatch"


class ProtocolError(VaultAuthException):
    """The return leg of the flow violated the protocol.

    Fatal for the current attempt. Subclasses fix ``kind``.
    """

    kind: ProtocolErrorKind

    def __init__(
        self,
        message: str,
        provider: str | None = None,
        kind: ProtocolErrorKind | None = None,
        **context: Any,
    ) -> None:
        """Initialize protocol error.

        Parameters
        ----------
        message : str
            Human-readable error message.
        provider : str, optional
            The provider id of the attempt.
        kind : ProtocolErrorKind, optional
            Overrides the class-level kind.
        **context : Any
            Additional context.
        """
        if kind is not None:
            self.kind = kind
        elif not hasattr(self, "kind"):
            msg = "ProtocolError requires a kind"
            raise TypeError(msg)
        super().__init__(message, provider=provider, kind=self.kind.value, **context)
        self.provider = provider


class MissingCodeError(ProtocolError):
    """The callback carried no authorization code."""

    kind = ProtocolErrorKind.MISSING_CODE


class MissingArtifactsError(ProtocolError):
    """No usable PKCE artifacts were found for the callback."""

    kind = ProtocolErrorKind.MISSING_ARTIFACTS


class StateMismatchError(ProtocolError):
    """Returned state does not match the issued state.

    Treated as a suspected CSRF attempt and never retried.
    """

    kind = ProtocolErrorKind.STATE_MISMATCH


class NonceMismatchError(ProtocolError):
    """A returned ID token does not carry the issued nonce."""

    kind = ProtocolErrorKind.NONCE_MISMATCH


class ProviderError(VaultAuthException):
    """The identity provider reported an error on the callback.

    Surfaced verbatim for display and never retried automatically.
    """

    def __init__(
        self,
        error: str,
        description: str | None = None,
        provider: str | None = None,
        **context: Any,
    ) -> None:
        """Initialize provider error.

        Parameters
        ----------
        error : str
            The ``error`` code returned by the provider.
        description : str, optional
            The ``error_description`` returned by the provider.
        provider : str, optional
            The provider id.
        **context : Any
            Additional context.
        """
        message = f"Auth error: {error}"
        if description:
            message = f"{message} - {description}"
        super().__init__(message, provider=provider, **context)
        self.error = error
        self.description = description
        self.provider = provider


class DecryptionError(VaultAuthException):
    """An encrypted payload could not be decrypted.

    Covers corrupted, foreign, truncated, or key-less blobs.
    """


class ExpiredSessionError(VaultAuthException):
    """The persisted session is past its expiry."""


class TokenExchangeError(VaultAuthException):
    """Resolving an authorization code into a session failed."""

    def __init__(self, message: str, provider: str | None = None, **context: Any) -> None:
        """Initialize token exchange error.

        Parameters
        ----------
        message : str
            Human-readable error message.
        provider : str, optional
            The provider id.
        **context : Any
            Additional context.
        """
        super().__init__(message, provider=provider, **context)
        self.provider = provider
