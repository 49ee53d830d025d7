"""vault-auth - OAuth2 authorization code + PKCE client core.

Drives redirect-based sign-in against Apple, Google, ID.me and
Login.gov, validates the return leg, and keeps the resulting session
encrypted at rest in pluggable storage.
"""

from __future__ import annotations

from .auth import (
    AccessDecision,
    AccessOutcome,
    AuthSessionManager,
    AuthSnapshot,
    AuthStatus,
    AuthUser,
    EncryptedVault,
    ProviderRegistry,
    Session,
    check_access,
    create_session_manager,
)
from .config import VaultAuthSettings, clear_settings_cache, get_settings
from .exceptions import (
    ConfigError,
    DecryptionError,
    ExpiredSessionError,
    MissingArtifactsError,
    MissingCodeError,
    NonceMismatchError,
    ProtocolError,
    ProviderError,
    StateMismatchError,
    TokenExchangeError,
    UnknownProviderError,
    VaultAuthException,
)
from .log import enable_debug, get_logger, set_level


__version__ = "0.1.0"

__all__ = [
    "AccessDecision",
    "AccessOutcome",
    "AuthSessionManager",
    "AuthSnapshot",
    "AuthStatus",
    "AuthUser",
    "ConfigError",
    "DecryptionError",
    "EncryptedVault",
    "ExpiredSessionError",
    "MissingArtifactsError",
    "MissingCodeError",
    "NonceMismatchError",
    "ProtocolError",
    "ProviderError",
    "ProviderRegistry",
    "Session",
    "StateMismatchError",
    "TokenExchangeError",
    "UnknownProviderError",
    "VaultAuthException",
    "VaultAuthSettings",
    "__version__",
    "check_access",
    "clear_settings_cache",
    "create_session_manager",
    "enable_debug",
    "get_logger",
    "get_settings",
    "set_level",
]
