"""
Route access policy for MediaShelf.

Every inbound request is classified once, before any page or API handler runs,
and receives one of three outcomes:

- PROCEED: the request reaches its handler unmodified
- REDIRECT_HOME: the caller is sent to the dashboard (``/home``)
- REDIRECT_SIGN_IN: the caller is sent to the sign-in page

The decision is a pure function of the request path, the caller's
``AuthContext`` and an immutable ``AccessPolicy`` built once at startup from the
configured allow-lists. It performs no I/O; the identity lookup that produces
the ``AuthContext`` happens before it is called (see ``mediashelf.core.auth``).

Usage:
    ```python
    from mediashelf.core.access_policy import AccessPolicy, AuthContext, evaluate_access

    policy = AccessPolicy.from_settings(get_settings())
    decision = evaluate_access("/video-upload", AuthContext(user_id=None), policy)
    assert decision.outcome is AccessOutcome.REDIRECT_SIGN_IN
    ```
"""

import re

from dataclasses import dataclass
from enum import Enum

from mediashelf.config import Settings


ROOT_PATH = "/"
API_PREFIX = "/api"

# Trailing marker turning an allow-list entry into a prefix pattern
PREFIX_WILDCARD = "(.*)"


class AccessOutcome(str, Enum):
    """Result of evaluating the access policy for a single request."""

    PROCEED = "proceed"
    REDIRECT_HOME = "redirect_home"
    REDIRECT_SIGN_IN = "redirect_sign_in"


@dataclass(frozen=True)
class AuthContext:
    """
    Authentication state of the current request.

    ``user_id`` is the identity provider's opaque subject, or None for an
    anonymous caller.
    """

    user_id: str | None = None

    @property
    def is_authenticated(self) -> bool:
        return bool(self.user_id)


ANONYMOUS = AuthContext()


@dataclass(frozen=True)
class AccessDecision:
    """An outcome plus the redirect target it implies (None for PROCEED)."""

    outcome: AccessOutcome
    location: str | None = None

    @property
    def is_redirect(self) -> bool:
        return self.outcome is not AccessOutcome.PROCEED


@dataclass(frozen=True)
class RequestClassification:
    """Per-request facts the decision procedure is evaluated over. Never stored."""

    path: str
    is_authenticated: bool
    is_public_page: bool
    is_public_api: bool
    is_home_page: bool
    is_api_request: bool


def compile_route_pattern(pattern: str) -> re.Pattern[str]:
    """
    Compile one allow-list entry into an anchored regular expression.

    ``/sign-in`` matches ``/sign-in`` and ``/sign-in/`` only. ``/sign-in(.*)``
    matches ``/sign-in`` followed by anything. Matching is case-insensitive.

    Raises:
        ValueError: If the pattern does not start with '/'.
    """
    if not pattern.startswith("/"):
        raise ValueError(f"Route pattern '{pattern}' must start with '/'")

    if pattern.endswith(PREFIX_WILDCARD):
        prefix = pattern[: -len(PREFIX_WILDCARD)]
        return re.compile(rf"^{re.escape(prefix)}.*$", re.IGNORECASE | re.DOTALL)

    base = pattern.rstrip("/") or ""
    return re.compile(rf"^{re.escape(base)}/?$", re.IGNORECASE)


class RouteMatcher:
    """
    Immutable set of compiled route patterns.

    Built once from configuration and shared read-only across requests.
    """

    __slots__ = ("_patterns", "_compiled")

    def __init__(self, patterns: list[str] | tuple[str, ...]) -> None:
        self._patterns: tuple[str, ...] = tuple(patterns)
        self._compiled: tuple[re.Pattern[str], ...] = tuple(
            compile_route_pattern(p) for p in self._patterns
        )

    @property
    def patterns(self) -> tuple[str, ...]:
        return self._patterns

    def matches(self, path: str) -> bool:
        """Return True if any pattern matches ``path``. Non-paths never match."""
        if not isinstance(path, str) or not path.startswith("/"):
            return False
        return any(regex.match(path) for regex in self._compiled)

    def __contains__(self, path: object) -> bool:
        return isinstance(path, str) and self.matches(path)

    def __repr__(self) -> str:
        return f"RouteMatcher({list(self._patterns)!r})"


@dataclass(frozen=True)
class AccessPolicy:
    """
    Read-only access configuration handed to ``evaluate_access``.

    Attributes:
        public_pages: Pages served to anonymous users
        public_apis: API endpoints reachable without authentication
        home_path: Dashboard path; also the redirect target for signed-in users
        sign_in_path: Redirect target for anonymous users
    """

    public_pages: RouteMatcher
    public_apis: RouteMatcher
    home_path: str = "/home"
    sign_in_path: str = "/sign-in"

    @classmethod
    def from_patterns(
        cls,
        public_pages: list[str] | tuple[str, ...],
        public_apis: list[str] | tuple[str, ...],
        home_path: str = "/home",
        sign_in_path: str = "/sign-in",
    ) -> "AccessPolicy":
        return cls(
            public_pages=RouteMatcher(public_pages),
            public_apis=RouteMatcher(public_apis),
            home_path=home_path,
            sign_in_path=sign_in_path,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "AccessPolicy":
        """Build the policy from configured allow-lists and redirect targets."""
        return cls.from_patterns(
            public_pages=settings.public_pages,
            public_apis=settings.public_apis,
            home_path=settings.home_path,
            sign_in_path=settings.sign_in_path,
        )

    def classify(self, path: str, auth: AuthContext) -> RequestClassification:
        return RequestClassification(
            path=path,
            is_authenticated=auth.is_authenticated,
            is_public_page=self.public_pages.matches(path),
            is_public_api=self.public_apis.matches(path),
            is_home_page=path == self.home_path,
            is_api_request=isinstance(path, str) and path.startswith(API_PREFIX),
        )


def evaluate_access(path: str, auth: AuthContext, policy: AccessPolicy) -> AccessDecision:
    """
    Decide whether a request proceeds or is redirected.

    Rules are evaluated in order and the first one that fires wins:

    1. The root path always redirects home, whoever is asking.
    2. A signed-in user on a public page other than home is sent home.
    3. An anonymous caller is sent to sign-in when the path is neither a public
       page nor a public API, or when it is an API path outside the public APIs
       (an API path can match a public page pattern, so 3b is not redundant).
    4. Everything else proceeds.

    Args:
        path: Request URL path
        auth: Authentication state resolved for this request
        policy: Allow-lists and redirect targets

    Returns:
        AccessDecision: The outcome and, for redirects, the target path.
    """
    if path == ROOT_PATH:
        return AccessDecision(AccessOutcome.REDIRECT_HOME, policy.home_path)

    request = policy.classify(path, auth)

    if request.is_authenticated and request.is_public_page and not request.is_home_page:
        return AccessDecision(AccessOutcome.REDIRECT_HOME, policy.home_path)

    if not request.is_authenticated:
        if not request.is_public_api and not request.is_public_page:
            return AccessDecision(AccessOutcome.REDIRECT_SIGN_IN, policy.sign_in_path)

        if request.is_api_request and not request.is_public_api:
            return AccessDecision(AccessOutcome.REDIRECT_SIGN_IN, policy.sign_in_path)

    return AccessDecision(AccessOutcome.PROCEED)


__all__ = [
    "ANONYMOUS",
    "API_PREFIX",
    "ROOT_PATH",
    "AccessDecision",
    "AccessOutcome",
    "AccessPolicy",
    "AuthContext",
    "RequestClassification",
    "RouteMatcher",
    "compile_route_pattern",
    "evaluate_access",
]
