"""
HTTP middleware enforcing the route access policy.

Runs before any page or API handler. For every evaluated request it resolves
the caller's ``AuthContext``, stores it on ``request.state.auth`` and either
forwards the request or answers with a ``307 Temporary Redirect`` to the
dashboard or the sign-in page.

Static assets, the framework's documentation endpoints and the health checks
are never evaluated. Paths under ``/api`` and ``/trpc`` are always evaluated,
even when they end in a static-file extension.
"""

import logging
import re

from fastapi import Request, Response
from fastapi.responses import RedirectResponse

from mediashelf.config import get_settings
from mediashelf.core.access_policy import AccessDecision, AccessPolicy, evaluate_access
from mediashelf.core.auth import resolve_auth_context


logger = logging.getLogger(__name__)


# =============================================================================
# Exclusion Patterns
# =============================================================================

STATIC_EXTENSION_PATTERN = re.compile(
    r"\.(?:html?|css|js(?!on)|jpe?g|webp|png|gif|svg|ttf|woff2?|ico|csv|docx?|xlsx?|zip|webmanifest)$",
    re.IGNORECASE,
)

EXCLUDED_PREFIXES = ("/static/", "/_internal/")

EXCLUDED_PATHS = frozenset(
    {"/docs", "/docs/oauth2-redirect", "/redoc", "/openapi.json", "/health", "/ready"}
)

ALWAYS_EVALUATED_PATTERN = re.compile(r"^/(?:api|trpc)(?:/|$)")


def is_excluded_path(path: str) -> bool:
    """
    Return True for paths the access policy never sees.

    API and tRPC paths are always evaluated, whatever they end with.
    """
    if ALWAYS_EVALUATED_PATTERN.match(path):
        return False
    if path in EXCLUDED_PATHS:
        return True
    if path.startswith(EXCLUDED_PREFIXES):
        return True
    last_segment = path.rsplit("/", 1)[-1]
    return bool(STATIC_EXTENSION_PATTERN.search(last_segment))


def build_redirect(request: Request, decision: AccessDecision) -> RedirectResponse:
    """Absolute same-origin redirect to the decision's target, query dropped."""
    target = request.url.replace(path=decision.location, query="", fragment="")
    return RedirectResponse(str(target), status_code=307)


def get_access_policy(request: Request) -> AccessPolicy:
    """
    Return the policy built at startup, building it on first use otherwise.

    The policy lives on ``app.state`` and is never rebuilt once set.
    """
    policy = getattr(request.app.state, "access_policy", None)
    if policy is None:
        policy = AccessPolicy.from_settings(get_settings())
        request.app.state.access_policy = policy
    return policy


async def access_policy_middleware(request: Request, call_next) -> Response:
    """
    Apply the access policy to the incoming request.

    Args:
        request: The incoming HTTP request
        call_next: The next middleware or route handler

    Returns:
        Response: The handler's response, or a 307 redirect
    """
    path = request.url.path

    if is_excluded_path(path):
        return await call_next(request)

    auth = await resolve_auth_context(request, get_settings())
    request.state.auth = auth

    decision = evaluate_access(path, auth, get_access_policy(request))
    if decision.is_redirect:
        logger.debug(
            "Access policy redirect: %s %s -> %s (%s)",
            request.method,
            path,
            decision.location,
            decision.outcome.value,
        )
        return build_redirect(request, decision)

    return await call_next(request)


__all__ = [
    "access_policy_middleware",
    "build_redirect",
    "get_access_policy",
    "is_excluded_path",
]
