"""Access decisions for protected routes.

The routing layer asks ``check_access`` what to do with a navigation
and renders, waits, or redirects accordingly.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING
from urllib.parse import quote


if TYPE_CHECKING:
    from .types import AuthSnapshot


LOGIN_PATH = "/login"
VERIFY_PATH = "/verify"


class AccessOutcome(str, Enum):
    """What the router should do with a navigation."""

    ALLOW = "allow"
    LOADING = "loading"
    REDIRECT_LOGIN = "redirect_login"
    VERIFICATION_REQUIRED = "verification_required"


@dataclass(frozen=True)
class AccessDecision:
    """Result of an access check.

    Attributes
    ----------
    outcome : AccessOutcome
        The decision.
    redirect_to : str or None
        Where to send the user, for redirecting outcomes.
    return_path : str or None
        The path to come back to after signing in.
    """

    outcome: AccessOutcome
    redirect_to: str | None = None
    return_path: str | None = None

    @property
    def allowed(self) -> bool:
        return self.outcome is AccessOutcome.ALLOW


def check_access(
    snapshot: AuthSnapshot,
    require_veteran_verification: bool = False,
    path: str = "/",
) -> AccessDecision:
    """Decide whether the current user may open ``path``.

    Parameters
    ----------
    snapshot : AuthSnapshot
        Current authentication state.
    require_veteran_verification : bool
        Whether the route needs a verified veteran.
    path : str
        The requested path, remembered as the post-login return path.

    Returns
    -------
    AccessDecision
        ``LOADING`` before the persisted session is restored or while a
        login is in flight, ``REDIRECT_LOGIN`` when signed out,
        ``VERIFICATION_REQUIRED`` for an unverified user on a verified-only
        route, else ``ALLOW``.
    """
    if snapshot.is_loading:
        return AccessDecision(AccessOutcome.LOADING)

    if not snapshot.is_authenticated or snapshot.user is None:
        return AccessDecision(
            AccessOutcome.REDIRECT_LOGIN,
            redirect_to=f"{LOGIN_PATH}?from={quote(path, safe='/')}",
            return_path=path,
        )

    if require_veteran_verification and not snapshot.user.is_veteran_verified:
        return AccessDecision(AccessOutcome.VERIFICATION_REQUIRED, redirect_to=VERIFY_PATH)

    return AccessDecision(AccessOutcome.ALLOW)
