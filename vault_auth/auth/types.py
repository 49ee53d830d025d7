"""Type definitions for the authentication core.

Shared records passed between the validator, the exchangers, and the
session manager.
"""

from __future__ import annotations

import time

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal


VerificationLevel = Literal["LOA1", "LOA2", "LOA3", "IAL1", "IAL2"]


class AuthStatus(str, Enum):
    """States of the authentication state machine."""

    ANONYMOUS = "anonymous"
    INITIATING = "initiating"
    AWAITING_CALLBACK = "awaiting_callback"
    AUTHENTICATED = "authenticated"
    FAILED = "failed"


@dataclass(frozen=True)
class AuthUser:
    """The resolved identity of an authenticated user.

    Attributes
    ----------
    id : str
        Stable subject identifier.
    email : str
        Primary email address.
    name, given_name, family_name : str or None
        Display name parts.
    picture : str or None
        Avatar URL.
    is_veteran_verified : bool
        Whether the provider verified veteran status.
    verification_source : str or None
        Provider id that performed the verification.
    verification_level : str or None
        Assurance level (``LOA1`` .. ``IAL2``).
    created_at, last_login_at : datetime
        Timezone-aware instants.
    """

    id: str
    email: str
    name: str | None = None
    given_name: str | None = None
    family_name: str | None = None
    picture: str | None = None
    is_veteran_verified: bool = False
    verification_source: str | None = None
    verification_level: VerificationLevel | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    last_login_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(frozen=True)
class Session:
    """An established authenticated session.

    Attributes
    ----------
    access_token : str
        The access token.
    expires_at : float
        Absolute expiry as a Unix timestamp.
    provider : str
        Provider id the session was obtained from.
    user : AuthUser
        The resolved user.
    id_token : str or None
        Optional OIDC ID token.
    refresh_token : str or None
        Optional refresh token.
    """

    access_token: str
    expires_at: float
    provider: str
    user: AuthUser
    id_token: str | None = None
    refresh_token: str | None = None

    def is_expired(self, now: float | None = None) -> bool:
        """Check whether the session is past its expiry."""
        return (time.time() if now is None else now) >= self.expires_at


@dataclass(frozen=True)
class ValidatedCode:
    """An authorization code that passed callback validation.

    Paired with the verifier from the issuing artifacts, ready for exchange.
    """

    code: str
    code_verifier: str
    nonce: str
    provider: str
    id_token: str | None = None


@dataclass(frozen=True)
class AuthSnapshot:
    """Public view of the authentication state.

    Handed to subscribers and read by UI collaborators. Never carries
    token material.
    """

    status: AuthStatus = AuthStatus.ANONYMOUS
    user: AuthUser | None = None
    provider: str | None = None
    expires_at: float | None = None
    error: str | None = None
    error_kind: str | None = None
    restored: bool = True

    @property
    def is_authenticated(self) -> bool:
        """True only in the AUTHENTICATED state."""
        return self.status is AuthStatus.AUTHENTICATED

    @property
    def is_loading(self) -> bool:
        """True before the persisted session is restored or while a login is in flight."""
        if self.status is AuthStatus.ANONYMOUS:
            return not self.restored
        return self.status in (AuthStatus.INITIATING, AuthStatus.AWAITING_CALLBACK)


_USER_FIELD_ALIASES = {
    "givenName": "given_name",
    "familyName": "family_name",
    "isVeteranVerified": "is_veteran_verified",
    "verificationSource": "verification_source",
    "verificationLevel": "verification_level",
    "createdAt": "created_at",
    "lastLoginAt": "last_login_at",
}


def _parse_instant(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    if isinstance(value, str) and value:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    return datetime.now(timezone.utc)


def user_to_dict(user: AuthUser) -> dict[str, Any]:
    """Serialize an AuthUser to a JSON-compatible dict."""
    return {
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "given_name": user.given_name,
        "family_name": user.family_name,
        "picture": user.picture,
        "is_veteran_verified": user.is_veteran_verified,
        "verification_source": user.verification_source,
        "verification_level": user.verification_level,
        "created_at": user.created_at.isoformat(),
        "last_login_at": user.last_login_at.isoformat(),
    }


def user_from_dict(data: dict[str, Any]) -> AuthUser:
    """Build an AuthUser from a dict with snake_case or camelCase keys.

    Only a JSON ``true`` marks the user as veteran verified.

    Raises
    ------
    TypeError
        If ``data`` is not a dict.
    KeyError
        If ``id`` is missing.
    """
    if not isinstance(data, dict):
        msg = f"User profile must be an object, got {type(data).__name__}"
        raise TypeError(msg)
    obj = {_USER_FIELD_ALIASES.get(k, k): v for k, v in data.items()}
    return AuthUser(
        id=str(obj["id"]),
        email=obj.get("email") or "",
        name=obj.get("name"),
        given_name=obj.get("given_name"),
        family_name=obj.get("family_name"),
        picture=obj.get("picture"),
        is_veteran_verified=obj.get("is_veteran_verified") is True,
        verification_source=obj.get("verification_source"),
        verification_level=obj.get("verification_level"),
        created_at=_parse_instant(obj.get("created_at")),
        last_login_at=_parse_instant(obj.get("last_login_at")),
    )
