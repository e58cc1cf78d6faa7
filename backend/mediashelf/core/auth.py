"""
MediaShelf Identity Provider Integration

This module turns the session token carried by a request into an explicit
``AuthContext`` for the access policy and route handlers. It implements Auth0
JWT validation with automatic fallback to local HS256 JWTs when Auth0 is not
configured. Key features include:

- Session token extraction from the ``Authorization: Bearer`` header or the
  session cookie
- Auth0 RS256 JWT validation using public keys from the tenant JWKS endpoint
- Local HS256 JWT generation and validation with configurable expiration
- ``resolve_auth_context`` which never raises: missing or invalid tokens
  resolve to an anonymous context
- FastAPI dependencies for route protection (``get_auth_context``,
  ``require_user_id``)

Usage:
    ```python
    from fastapi import Depends
    from mediashelf.core.auth import require_user_id

    @router.post("/video-upload")
    async def upload(user_id: str = Depends(require_user_id)):
        return {"user_id": user_id}
    ```
"""

import asyncio
import json
import logging

from datetime import UTC, datetime, timedelta
from typing import Any
from urllib.parse import urlencode

import requests

from fastapi import Depends, HTTPException, Request, status
from jose import JWTError, jwt
from jose.utils import base64url_decode

from mediashelf.config import Settings, get_settings
from mediashelf.core.access_policy import ANONYMOUS, AuthContext


# Configure module logger
logger = logging.getLogger(__name__)


# =============================================================================
# JWT Format Constants
# =============================================================================

# JWT format: header.payload.signature (3 parts)
JWT_PARTS_COUNT = 3

# Base64 padding byte boundary
BASE64_PADDING_BOUNDARY = 4

BEARER_SCHEME = "bearer"

LOCAL_JWT_ALGORITHM = "HS256"


# =============================================================================
# Auth0 Token Validator
# =============================================================================


class Auth0TokenValidator:
    """
    Auth0 JWT token validator using RS256 algorithm with public key verification.

    This class handles Auth0 token validation by:
    1. Extracting the key ID (kid) from the token header
    2. Fetching the corresponding public key from Auth0's JWKS endpoint
    3. Verifying the token signature using RS256 algorithm
    4. Validating token claims (audience, issuer, expiration)

    The JWKS (JSON Web Key Set) is cached for an hour so that the per-request
    identity lookup does not hit the tenant on every request.

    Attributes:
        settings: Application settings containing Auth0 configuration
        _jwks_cache: Cached JWKS data to avoid repeated HTTP requests
        _jwks_cache_time: Timestamp when JWKS was cached
        _jwks_failure_time: Timestamp of the last failed JWKS fetch
    """

    # JWKS cache duration in seconds (1 hour)
    JWKS_CACHE_DURATION = 3600

    # Seconds to wait after a failed JWKS fetch before trying again
    JWKS_FAILURE_BACKOFF = 30

    JWKS_REQUEST_TIMEOUT = 10

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self._jwks_cache: dict[str, Any] | None = None
        self._jwks_cache_time: datetime | None = None
        self._jwks_failure_time: datetime | None = None
        self._jwks_lock = asyncio.Lock()

        logger.info(
            "Auth0TokenValidator initialized for domain: %s",
            settings.auth0_domain,
        )

    def _get_jwks_url(self) -> str:
        """Construct the JWKS endpoint URL for the configured Auth0 domain."""
        return f"https://{self.settings.auth0_domain}/.well-known/jwks.json"

    def _download_jwks(self) -> dict[str, Any]:
        response = requests.get(self._get_jwks_url(), timeout=self.JWKS_REQUEST_TIMEOUT)
        response.raise_for_status()
        return response.json()

    def _cached_jwks(self, now: datetime) -> dict[str, Any] | None:
        if self._jwks_cache is None or self._jwks_cache_time is None:
            return None
        cache_age = (now - self._jwks_cache_time).total_seconds()
        if cache_age >= self.JWKS_CACHE_DURATION:
            return None
        logger.debug("Using cached JWKS (age: %.0f seconds)", cache_age)
        return self._jwks_cache

    def _jwks_unavailable(self) -> HTTPException:
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Unable to verify token: Auth0 JWKS endpoint unavailable",
        )

    async def _fetch_jwks(self) -> dict[str, Any]:
        """
        Fetch JWKS from Auth0 with caching to reduce HTTP requests.

        The HTTP call runs in a worker thread and concurrent callers share a
        single fetch. After a failed fetch, callers get 503 without a new
        request until ``JWKS_FAILURE_BACKOFF`` seconds have passed.

        Returns:
            dict: The JWKS containing public keys for token verification.

        Raises:
            HTTPException: 503 if the JWKS endpoint cannot be reached.
        """
        cached = self._cached_jwks(datetime.now(UTC))
        if cached is not None:
            return cached

        async with self._jwks_lock:
            now = datetime.now(UTC)
            cached = self._cached_jwks(now)
            if cached is not None:
                return cached

            if self._jwks_failure_time is not None:
                failure_age = (now - self._jwks_failure_time).total_seconds()
                if failure_age < self.JWKS_FAILURE_BACKOFF:
                    logger.debug("JWKS fetch failed %.0f seconds ago, not retrying yet", failure_age)
                    raise self._jwks_unavailable()

            logger.info("Fetching JWKS from: %s", self._get_jwks_url())
            try:
                jwks = await asyncio.to_thread(self._download_jwks)
            except requests.RequestException as e:
                self._jwks_failure_time = datetime.now(UTC)
                logger.exception("Failed to fetch JWKS from Auth0")
                raise self._jwks_unavailable() from e

            self._jwks_cache = jwks
            self._jwks_cache_time = datetime.now(UTC)
            self._jwks_failure_time = None
            logger.info("JWKS fetched and cached successfully")
            return jwks

    async def get_auth0_public_key(self, token: str) -> dict[str, Any]:
        """
        Get the Auth0 public key matching the token's key ID (kid).

        Raises:
            HTTPException: 401 if the header is invalid, kid is missing,
                          or no matching key is found in JWKS.
        """
        try:
            unverified_header = decode_token_without_verification(token)

            kid = unverified_header.get("kid")
            if not kid:
                logger.warning("Token header missing 'kid' claim")
                raise HTTPException(
                    status_code=status.HTTP_401_UNAUTHORIZED,
                    detail="Invalid token: missing key ID",
                )

            jwks = await self._fetch_jwks()
            for key in jwks.get("keys", []):
                if key.get("kid") == kid:
                    logger.debug("Found matching public key for kid: %s", kid)
                    return key

            logger.warning("No matching key found for kid: %s", kid)
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid token: key not found",
            )

        except HTTPException:
            raise
        except Exception as e:
            logger.exception("Error getting Auth0 public key")
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid token format",
            ) from e

    async def validate_auth0_token(self, token: str) -> dict[str, Any]:
        """
        Validate an Auth0 JWT with signature, audience, issuer and expiry checks.

        Returns:
            dict: The decoded and verified token payload containing claims.

        Raises:
            HTTPException: With 401 status if token validation fails for any reason.
        """
        try:
            rsa_key = await self.get_auth0_public_key(token)

            payload = jwt.decode(
                token,
                rsa_key,
                algorithms=["RS256"],
                audience=self.settings.auth0_api_audience,
                issuer=f"https://{self.settings.auth0_domain}/",
            )

            logger.debug(
                "Auth0 token validated for subject: %s",
                payload.get("sub", "unknown"),
            )
            return payload

        except jwt.ExpiredSignatureError as e:
            logger.info("Auth0 token has expired")
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Token has expired",
            ) from e
        except jwt.JWTClaimsError as e:
            logger.warning("Auth0 token claims validation failed: %s", str(e))
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid token claims",
            ) from e
        except JWTError as e:
            logger.warning("Auth0 token validation failed: %s", str(e))
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid token",
            ) from e


class _ValidatorContainer:
    """Holds the process-wide Auth0 validator so the JWKS cache survives requests."""

    validator: Auth0TokenValidator | None = None


_container = _ValidatorContainer()


def get_token_validator(settings: Settings) -> Auth0TokenValidator:
    """Return the shared Auth0 validator, rebuilding it if the tenant changed."""
    current = _container.validator
    if current is None or current.settings.auth0_domain != settings.auth0_domain:
        _container.validator = Auth0TokenValidator(settings)
    return _container.validator


def reset_token_validator() -> None:
    _container.validator = None


# =============================================================================
# Local JWT Functions
# =============================================================================


def create_local_jwt(user_id: str, email: str, settings: Settings) -> str:
    """
    Create a local JWT token using HS256 algorithm.

    Used when Auth0 is not configured (development and tests).

    Token claims:
    - sub: User ID (subject)
    - email: User's email address
    - exp: Expiration timestamp (settings.jwt_expiration_hours from now)
    - iat: Issued at timestamp
    - type: "local" to distinguish from provider-issued tokens

    Args:
        user_id: The user's unique identifier.
        email: The user's email address.
        settings: Settings instance containing secret_key and jwt_expiration_hours.

    Returns:
        str: The encoded JWT token string.
    """
    now = datetime.now(UTC)
    expire = now + timedelta(hours=settings.jwt_expiration_hours)

    payload = {
        "sub": user_id,
        "email": email,
        "exp": expire,
        "iat": now,
        "type": "local",
    }

    token = jwt.encode(payload, settings.secret_key, algorithm=LOCAL_JWT_ALGORITHM)

    logger.info("Created local JWT for user: %s (expires: %s)", user_id, expire.isoformat())
    return token


def validate_local_jwt(token: str, settings: Settings) -> dict[str, Any]:
    """
    Validate a local JWT token using HS256 algorithm.

    Raises:
        JWTError: If the token is invalid, expired, or signature verification fails.
    """
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[LOCAL_JWT_ALGORITHM])
        logger.debug("Local JWT validated for subject: %s", payload.get("sub", "unknown"))
        return payload
    except jwt.ExpiredSignatureError:
        logger.info("Local JWT has expired")
        raise
    except JWTError as e:
        logger.warning("Local JWT validation failed: %s", str(e))
        raise


def decode_token_without_verification(token: str) -> dict[str, Any]:
    """
    Decode a JWT header without signature verification.

    Only used to find the key ID (kid) before verifying an Auth0 token.

    Raises:
        ValueError: If the token format is invalid.
    """
    try:
        parts = token.split(".")
        if len(parts) != JWT_PARTS_COUNT:
            raise ValueError(f"Invalid JWT format: expected {JWT_PARTS_COUNT} parts")

        header_b64 = parts[0]
        padding = BASE64_PADDING_BOUNDARY - len(header_b64) % BASE64_PADDING_BOUNDARY
        if padding != BASE64_PADDING_BOUNDARY:
            header_b64 += "=" * padding

        header_bytes = base64url_decode(header_b64.encode("utf-8"))
        return json.loads(header_bytes.decode("utf-8"))

    except Exception as e:
        logger.warning("Failed to decode token header: %s", str(e))
        raise ValueError(f"Invalid token format: {e!s}") from e


# =============================================================================
# Session Resolution
# =============================================================================


def extract_session_token(request: Request, settings: Settings) -> str | None:
    """
    Find the session token for a request.

    The ``Authorization: Bearer`` header takes precedence over the session
    cookie. Returns None when neither carries a non-empty token.
    """
    authorization = request.headers.get("authorization")
    if authorization:
        scheme, _, credentials = authorization.partition(" ")
        if scheme.lower() == BEARER_SCHEME and credentials.strip():
            return credentials.strip()

    cookie_token = request.cookies.get(settings.session_cookie_name)
    if cookie_token and cookie_token.strip():
        return cookie_token.strip()

    return None


async def validate_session_token(token: str, settings: Settings) -> dict[str, Any]:
    """
    Validate a session token using the configured strategy.

    - Auth0 configured: RS256 verification against the tenant JWKS
    - Otherwise: local HS256 verification with ``settings.secret_key``

    Raises:
        HTTPException: With 401 status if token validation fails.
    """
    try:
        if settings.is_auth0_enabled:
            return await get_token_validator(settings).validate_auth0_token(token)
        return validate_local_jwt(token, settings)
    except JWTError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
            headers={"WWW-Authenticate": "Bearer"},
        ) from e


async def resolve_auth_context(request: Request, settings: Settings) -> AuthContext:
    """
    Ask the identity provider who is making this request.

    Never raises for bad credentials: an absent, expired, malformed or
    unverifiable token resolves to the anonymous context, which the access
    policy then routes to sign-in.
    """
    token = extract_session_token(request, settings)
    if token is None:
        return ANONYMOUS

    try:
        payload = await validate_session_token(token, settings)
    except HTTPException as e:
        logger.debug("Session token rejected: %s", e.detail)
        return ANONYMOUS

    subject = payload.get("sub")
    if not isinstance(subject, str) or not subject:
        logger.warning("Session token has no usable 'sub' claim")
        return ANONYMOUS

    return AuthContext(user_id=subject)


# =============================================================================
# Authentication Dependencies
# =============================================================================


async def get_auth_context(
    request: Request,
    settings: Settings = Depends(get_settings),
) -> AuthContext:
    """
    Dependency returning the caller's ``AuthContext``.

    Reuses the context the access-policy middleware stored on
    ``request.state.auth``; resolves it when the middleware did not run
    (excluded paths, tests mounting routers directly).
    """
    cached = getattr(request.state, "auth", None)
    if isinstance(cached, AuthContext):
        return cached

    auth = await resolve_auth_context(request, settings)
    request.state.auth = auth
    return auth


async def require_user_id(auth: AuthContext = Depends(get_auth_context)) -> str:
    """
    Dependency for routes that need a signed-in user.

    Raises:
        HTTPException: 401 Unauthorized for anonymous callers.
    """
    if not auth.is_authenticated:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return auth.user_id  # type: ignore[return-value]


# =============================================================================
# Hosted Sign-in URLs
# =============================================================================


def build_provider_login_url(
    settings: Settings,
    redirect_uri: str,
    sign_up: bool = False,
) -> str | None:
    """
    Build the Auth0 Universal Login URL, or None when Auth0 is not configured.

    ``sign_up`` opens the sign-up screen instead of the login screen.
    """
    if not settings.is_auth0_enabled:
        return None

    params = {
        "response_type": "code",
        "client_id": settings.auth0_client_id,
        "redirect_uri": redirect_uri,
        "scope": "openid profile email",
    }
    if settings.auth0_api_audience:
        params["audience"] = settings.auth0_api_audience
    if sign_up:
        params["screen_hint"] = "signup"

    return f"https://{settings.auth0_domain}/authorize?{urlencode(params)}"


__all__ = [
    "Auth0TokenValidator",
    "build_provider_login_url",
    "create_local_jwt",
    "decode_token_without_verification",
    "extract_session_token",
    "get_auth_context",
    "get_token_validator",
    "require_user_id",
    "reset_token_validator",
    "resolve_auth_context",
    "validate_local_jwt",
    "validate_session_token",
]
