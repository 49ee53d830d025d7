"""OAuth2 authorization code + PKCE authentication core.

Provides the provider registry, PKCE generation, the encrypted vault,
callback validation, token exchange, and the session manager that
orchestrates them.
"""

from __future__ import annotations

from .callback import CallbackValidator, parse_callback_params
from .exchange import (
    BrokerTokenExchanger,
    PlaceholderTokenExchanger,
    TokenExchanger,
    create_exchanger,
)
from .guard import AccessDecision, AccessOutcome, check_access
from .pkce import PKCEArtifacts, PKCEChallengeGenerator, compute_challenge
from .providers import (
    AppleExtras,
    GoogleExtras,
    IdMeExtras,
    LoginGovExtras,
    ProviderConfig,
    ProviderDisplay,
    ProviderRegistry,
)
from .session import AuthSessionManager, create_session_manager
from .types import AuthSnapshot, AuthStatus, AuthUser, Session, ValidatedCode
from .vault import EncryptedVault


__all__ = [
    "AccessDecision",
    "AccessOutcome",
    "AppleExtras",
    "AuthSessionManager",
    "AuthSnapshot",
    "AuthStatus",
    "AuthUser",
    "BrokerTokenExchanger",
    "CallbackValidator",
    "EncryptedVault",
    "GoogleExtras",
    "IdMeExtras",
    "LoginGovExtras",
    "PKCEArtifacts",
    "PKCEChallengeGenerator",
    "PlaceholderTokenExchanger",
    "ProviderConfig",
    "ProviderDisplay",
    "ProviderRegistry",
    "Session",
    "TokenExchanger",
    "ValidatedCode",
    "check_access",
    "compute_challenge",
    "create_exchanger",
    "create_session_manager",
    "parse_callback_params",
]
