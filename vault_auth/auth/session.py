"""Authentication session orchestrator.

Provides AuthSessionManager, which owns the login state machine and
coordinates the provider registry, PKCE generation, the encrypted
vault, callback validation and token exchange. Everything the return
leg needs is written to storage before the browser is sent away, and
the callback leg reads storage only.
"""

# pylint: disable=logging-too-many-args,too-many-instance-attributes

from __future__ import annotations

import json
import logging
import time
import webbrowser

from typing import TYPE_CHECKING, Any

from ..exceptions import (
    DecryptionError,
    ExpiredSessionError,
    MissingArtifactsError,
    ProtocolError,
)
from ..log import redact_sensitive_data
from .callback import CallbackValidator, parse_callback_params
from .pkce import PKCEArtifacts, PKCEChallengeGenerator
from .providers import ProviderRegistry
from .types import (
    AuthSnapshot,
    AuthStatus,
    AuthUser,
    Session,
    user_from_dict,
    user_to_dict,
)
from .vault import EncryptedVault


if TYPE_CHECKING:
    from collections.abc import Callable

    from ..config import VaultAuthSettings
    from ..storage.base import StorageArea
    from .exchange import TokenExchanger


logger = logging.getLogger("vault_auth.auth")

PKCE_SLOT = "vault_auth_pkce"
SESSION_KEY = "vault_auth_session"
USER_KEY = "vault_auth_user"


def _open_browser(url: str) -> None:
    webbrowser.open(url)


def _serialize_session(session: Session) -> str:
    """Serialize the token part of a Session to JSON."""
    return json.dumps(
        {
            "access_token": session.access_token,
            "id_token": session.id_token,
            "refresh_token": session.refresh_token,
            "expires_at": session.expires_at,
            "provider": session.provider,
        }
    )


def _deserialize_session(data: str, user: AuthUser) -> Session:
    """Rebuild a Session from its token JSON and the stored user."""
    obj = json.loads(data)
    if not isinstance(obj, dict):
        msg = "Persisted session record is not an object"
        raise DecryptionError(msg)
    return Session(
        access_token=obj["access_token"],
        expires_at=float(obj["expires_at"]),
        provider=obj["provider"],
        user=user,
        id_token=obj.get("id_token"),
        refresh_token=obj.get("refresh_token"),
    )


class AuthSessionManager:
    """Owns the authentication state machine.

    States run ANONYMOUS -> INITIATING -> AWAITING_CALLBACK ->
    AUTHENTICATED or FAILED, and back to ANONYMOUS on logout or when a
    validity check finds the session expired.

    Create one instance and pass it to the consumers that need it.

    Parameters
    ----------
    registry : ProviderRegistry
        Enabled providers.
    exchanger : TokenExchanger
        Resolves validated codes into sessions.
    session_storage : StorageArea
        Storage cleared when the browsing session ends. Holds the vault
        key and the in-flight artifacts.
    local_storage : StorageArea
        Persistent storage for the encrypted session and user profile.
    navigate : callable, optional
        Performs the full-page navigation to the authorization URL.
        Defaults to opening the system browser.
    artifact_ttl_seconds : float
        Age after which issued artifacts are ignored (default ``600``).
    clock : callable, optional
        Returns the current Unix time.
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        exchanger: TokenExchanger,
        session_storage: StorageArea,
        local_storage: StorageArea,
        navigate: Callable[[str], Any] | None = None,
        *,
        artifact_ttl_seconds: float = 600.0,
        generator: PKCEChallengeGenerator | None = None,
        validator: CallbackValidator | None = None,
        vault: EncryptedVault | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the session manager."""
        self.registry = registry
        self.exchanger = exchanger
        self.session_storage = session_storage
        self.local_storage = local_storage
        self.navigate = navigate or _open_browser
        self.artifact_ttl_seconds = artifact_ttl_seconds
        self.generator = generator or PKCEChallengeGenerator()
        self.validator = validator or CallbackValidator()
        self.vault = vault or EncryptedVault(session_storage)
        self._clock = clock

        self._status = AuthStatus.ANONYMOUS
        self._session: Session | None = None
        self._error: Exception | None = None
        # Anonymous is not definitive until restore_session() has run
        self._restored = False
        self._login_started_at: float | None = None
        self._listeners: list[Callable[[AuthSnapshot], None]] = []

    # ── Public state ────────────────────────────────────────────────

    @property
    def status(self) -> AuthStatus:
        """Current state of the state machine."""
        return self._status

    @property
    def snapshot(self) -> AuthSnapshot:
        """Public view of the current state, without tokens."""
        authenticated = self._status is AuthStatus.AUTHENTICATED and self._session is not None
        session = self._session if authenticated else None
        error_kind: str | None = None
        if isinstance(self._error, ProtocolError):
            error_kind = self._error.kind.value
        elif self._error is not None:
            error_kind = type(self._error).__name__
        return AuthSnapshot(
            status=self._status,
            user=session.user if session else None,
            provider=session.provider if session else None,
            expires_at=session.expires_at if session else None,
            error=str(getattr(self._error, "message", self._error)) if self._error else None,
            error_kind=error_kind,
            restored=self._restored,
        )

    @property
    def is_authenticated(self) -> bool:
        """True while a session is established."""
        return self.snapshot.is_authenticated

    @property
    def user(self) -> AuthUser | None:
        """The authenticated user, if any."""
        return self.snapshot.user

    @property
    def error(self) -> Exception | None:
        """The error of the last failed attempt, if any."""
        return self._error

    def clear_error(self) -> None:
        """Forget the last error and notify subscribers."""
        self._error = None
        self._notify()

    def subscribe(self, listener: Callable[[AuthSnapshot], None]) -> Callable[[], None]:
        """Register a listener for state transitions.

        Parameters
        ----------
        listener : callable
            Called with an ``AuthSnapshot`` on every transition.

        Returns
        -------
        callable
            Removes the listener when called.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # ── Login leg ───────────────────────────────────────────────────

    async def login(self, provider_id: str) -> str:
        """Start the authorization code flow.

        Artifacts are encrypted and persisted to the single in-flight
        slot (overwriting any earlier attempt) before ``navigate`` runs.

        Parameters
        ----------
        provider_id : str
            The provider to sign in with.

        Returns
        -------
        str
            The authorization URL that was navigated to.

        Raises
        ------
        UnknownProviderError
            If the provider is not registered.
        """
        self._error = None
        try:
            config = self.registry.get(provider_id)
            self._transition(AuthStatus.INITIATING)

            artifacts = self.generator.generate_for(config)
            blob = await self.vault.encrypt(json.dumps(artifacts.to_dict()))
            await self.session_storage.set(PKCE_SLOT, blob)
            self._login_started_at = self._clock()
            logger.debug("Issued PKCE artifacts for %s", provider_id)

            url = config.build_authorize_url(artifacts)
        except Exception as exc:
            self._fail(exc)
            raise

        self._transition(AuthStatus.AWAITING_CALLBACK)
        self.navigate(url)
        return url

    # ── Callback leg ────────────────────────────────────────────────

    async def handle_callback(self, provider_id: str, callback_url: str) -> AuthUser:
        """Complete the flow from the provider's redirect.

        Parameters
        ----------
        provider_id : str
            The provider whose callback path was hit.
        callback_url : str
            The full return URL, including query and fragment.

        Returns
        -------
        AuthUser
            The authenticated user.

        Raises
        ------
        ConfigError
            If the provider is not registered.
        ProviderError
            If the provider reported an error.
        ProtocolError
            On a missing code, missing artifacts, or a state/nonce mismatch.
        TokenExchangeError
            If the code could not be resolved into a session.
        """
        try:
            config = self.registry.get(provider_id)
            params = parse_callback_params(callback_url)
            logger.debug("Callback for %s: %s", provider_id, redact_sensitive_data(params))

            try:
                artifacts = await self._take_artifacts(provider_id)
            except MissingArtifactsError:
                # A provider error or missing code outranks missing artifacts
                self.validator.check_response(params, provider_id)
                raise

            validated = self.validator.validate(params, artifacts, provider=provider_id)
            session = await self.exchanger.exchange(config, validated)
            await self._persist_session(session)
        except Exception as exc:
            await self.session_storage.remove(PKCE_SLOT)
            self._fail(exc)
            raise

        self._session = session
        self._restored = True
        self._login_started_at = None
        self._transition(AuthStatus.AUTHENTICATED)
        logger.info("Authenticated via %s", provider_id)
        return session.user

    async def _take_artifacts(self, provider_id: str) -> PKCEArtifacts:
        """Load and consume the in-flight artifacts.

        Raises
        ------
        MissingArtifactsError
            If no usable artifacts were issued for ``provider_id``.
        """
        blob = await self.session_storage.get(PKCE_SLOT)
        await self.session_storage.remove(PKCE_SLOT)
        if blob is None:
            msg = "PKCE state not found - please restart login"
            raise MissingArtifactsError(msg, provider=provider_id)

        try:
            artifacts = PKCEArtifacts.from_dict(json.loads(await self.vault.decrypt(blob)))
        except DecryptionError as exc:
            logger.warning("Stored PKCE artifacts could not be decrypted: %s", exc)
            msg = "PKCE state unreadable - please restart login"
            raise MissingArtifactsError(msg, provider=provider_id) from exc
        except (ValueError, KeyError, TypeError) as exc:
            msg = "PKCE state malformed - please restart login"
            raise MissingArtifactsError(msg, provider=provider_id) from exc

        if artifacts.is_stale(self.artifact_ttl_seconds, now=self._clock()):
            msg = "PKCE state expired - please restart login"
            raise MissingArtifactsError(msg, provider=provider_id)
        if artifacts.provider != provider_id:
            msg = f"No login in flight for {provider_id}"
            raise MissingArtifactsError(msg, provider=provider_id, issued_for=artifacts.provider)
        return artifacts

    async def _persist_session(self, session: Session) -> None:
        blob = await self.vault.encrypt(_serialize_session(session))
        await self.local_storage.set(SESSION_KEY, blob)
        # The profile holds no secrets and stays readable without the vault key
        await self.local_storage.set(USER_KEY, json.dumps(user_to_dict(session.user)))

    # ── Lifecycle ───────────────────────────────────────────────────

    async def logout(self) -> None:
        """Clear every persisted record and destroy the vault key."""
        await self.local_storage.remove(SESSION_KEY)
        await self.local_storage.remove(USER_KEY)
        await self.session_storage.remove(PKCE_SLOT)
        await self.vault.clear_key()

        self._session = None
        self._error = None
        self._restored = True
        self._login_started_at = None
        self._transition(AuthStatus.ANONYMOUS)
        logger.info("Logged out")

    async def restore_session(self) -> AuthSnapshot:
        """Restore a persisted session at start-up.

        A valid session moves straight to AUTHENTICATED without any
        network call. An expired, undecryptable, or half-written one
        triggers a full logout.

        Returns
        -------
        AuthSnapshot
            The state after restoring.
        """
        stored_session = await self.local_storage.get(SESSION_KEY)
        stored_user = await self.local_storage.get(USER_KEY)

        if stored_session is None and stored_user is None:
            self._restored = True
            await self._expire_abandoned_login()
            self._notify()
            return self.snapshot

        try:
            if stored_session is None or stored_user is None:
                msg = "Persisted session is incomplete"
                raise DecryptionError(msg)
            user = user_from_dict(json.loads(stored_user))
            session = _deserialize_session(await self.vault.decrypt(stored_session), user)
            if session.is_expired(now=self._clock()):
                msg = "Persisted session has expired"
                raise ExpiredSessionError(msg, provider=session.provider)
        except ExpiredSessionError:
            logger.info("Persisted session expired; clearing")
            await self.logout()
            return self.snapshot
        except (DecryptionError, ValueError, KeyError, TypeError) as exc:
            logger.warning("Failed to restore session: %s", exc)
            await self.logout()
            return self.snapshot

        self._session = session
        self._error = None
        self._restored = True
        self._login_started_at = None
        self._transition(AuthStatus.AUTHENTICATED)
        logger.debug("Restored session for %s", session.provider)
        return self.snapshot

    async def is_session_valid(self) -> bool:
        """Check the current session, logging out if it has expired.

        A login left waiting for its callback longer than the artifact
        TTL is abandoned first, so the state stops reporting loading.
        """
        await self._expire_abandoned_login()
        if self._status is not AuthStatus.AUTHENTICATED or self._session is None:
            return False
        if self._session.is_expired(now=self._clock()):
            logger.info("Session expired; returning to anonymous")
            await self.logout()
            return False
        return True

    async def get_access_token(self) -> str:
        """Get the access token of the current session.

        Raises
        ------
        ExpiredSessionError
            If there is no session, or it expired (after logging out).
        """
        if not await self.is_session_valid() or self._session is None:
            msg = "No active session"
            raise ExpiredSessionError(msg)
        return self._session.access_token

    async def close(self) -> None:
        """Release the exchanger and storage connections. Call from app shutdown."""
        await self.exchanger.close()
        await self.session_storage.close()
        if self.local_storage is not self.session_storage:
            await self.local_storage.close()

    async def _expire_abandoned_login(self) -> None:
        if self._status is not AuthStatus.AWAITING_CALLBACK or self._login_started_at is None:
            return
        if self._clock() - self._login_started_at <= self.artifact_ttl_seconds:
            return
        logger.info("Login attempt abandoned; discarding its artifacts")
        await self.session_storage.remove(PKCE_SLOT)
        self._login_started_at = None
        self._transition(
            AuthStatus.AUTHENTICATED if self._session is not None else AuthStatus.ANONYMOUS
        )

    # ── Internals ───────────────────────────────────────────────────

    def _fail(self, exc: Exception) -> None:
        self._error = exc
        self._transition(AuthStatus.FAILED)
        logger.info("Login attempt failed: %s", exc)

    def _transition(self, status: AuthStatus) -> None:
        if status is not self._status:
            logger.debug("Auth state %s -> %s", self._status.value, status.value)
        self._status = status
        self._notify()

    def _notify(self) -> None:
        snapshot = self.snapshot
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("Auth state listener failed")


def create_session_manager(
    settings: VaultAuthSettings | None = None,
    *,
    navigate: Callable[[str], Any] | None = None,
    exchanger: TokenExchanger | None = None,
    session_storage: StorageArea | None = None,
    local_storage: StorageArea | None = None,
) -> AuthSessionManager:
    """Build an AuthSessionManager from settings.

    Parameters
    ----------
    settings : VaultAuthSettings, optional
        Loaded configuration (defaults to ``get_settings()``).
    navigate : callable, optional
        Navigation callable passed to the manager.
    exchanger : TokenExchanger, optional
        Overrides the configured exchanger.
    session_storage, local_storage : StorageArea, optional
        Override the configured storage areas.

    Returns
    -------
    AuthSessionManager
        A ready manager; call ``restore_session()`` before relying on it.
    """
    from ..config import get_settings
    from ..log import configure_from_settings
    from ..storage import create_storage_areas
    from .exchange import create_exchanger

    settings = settings or get_settings()
    configure_from_settings(settings.log)
    if session_storage is None or local_storage is None:
        areas = create_storage_areas(settings.storage)
        session_storage = session_storage or areas.session
        local_storage = local_storage or areas.local

    return AuthSessionManager(
        registry=ProviderRegistry.from_settings(settings),
        exchanger=exchanger
        or create_exchanger(settings.exchange, settings.session.session_lifetime_seconds),
        session_storage=session_storage,
        local_storage=local_storage,
        navigate=navigate,
        artifact_ttl_seconds=settings.session.artifact_ttl_seconds,
    )
