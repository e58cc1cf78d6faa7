"""
Page endpoints for MediaShelf.

These are the targets of the access-policy redirects. Each returns a small
JSON payload describing the page; rendering is up to the frontend.

- GET /home - Anonymous landing, or the signed-in user's dashboard
- GET /sign-in, GET /sign-up - Where to authenticate
- POST /sign-in - Development sign-in issuing a local session token
- POST /sign-out - Clear the session cookie
- GET /video-upload - Upload form description and limits
- GET /social-share - Social-format tool description
"""

import logging

from typing import Any

from fastapi import APIRouter, Depends, Form, HTTPException, Request, status
from fastapi.responses import RedirectResponse

from mediashelf.config import Settings, get_settings
from mediashelf.core.access_policy import AuthContext
from mediashelf.core.auth import build_provider_login_url, create_local_jwt, get_auth_context
from mediashelf.models.social import SOCIAL_FORMATS


logger = logging.getLogger(__name__)

router = APIRouter()

SIGN_UP_PATH = "/sign-up"
SIGN_OUT_PATH = "/sign-out"
LOCAL_SUBJECT_PREFIX = "local|"


def is_local_sign_in_enabled(settings: Settings) -> bool:
    """Local sign-in exists only without Auth0 and outside production."""
    return not settings.is_auth0_enabled and not settings.is_production


def _home_url(request: Request, settings: Settings) -> str:
    return str(request.url.replace(path=settings.home_path, query="", fragment=""))


def _sign_in_payload(request: Request, settings: Settings, sign_up: bool) -> dict[str, Any]:
    page = "sign-up" if sign_up else "sign-in"
    if settings.is_auth0_enabled:
        return {
            "page": page,
            "provider": "auth0",
            "login_url": build_provider_login_url(
                settings, redirect_uri=_home_url(request, settings), sign_up=sign_up
            ),
        }

    payload: dict[str, Any] = {"page": page, "provider": "local", "login_url": None}
    if is_local_sign_in_enabled(settings):
        payload["form"] = {"action": settings.sign_in_path, "method": "POST", "fields": ["email"]}
    return payload


@router.get("/home", summary="Home page")
async def home_page(
    auth: AuthContext = Depends(get_auth_context),
    settings: Settings = Depends(get_settings),
) -> dict[str, Any]:
    """
    Dashboard for signed-in users, public landing for everyone else.

    Anonymous callers land here after the root redirect, so this page must
    never itself require authentication.
    """
    if not auth.is_authenticated:
        return {
            "page": "home",
            "authenticated": False,
            "links": {"sign_in": settings.sign_in_path, "sign_up": SIGN_UP_PATH},
            "videos_endpoint": "/api/videos",
        }

    return {
        "page": "home",
        "authenticated": True,
        "user_id": auth.user_id,
        "videos_endpoint": "/api/videos",
        "links": {
            "video_upload": "/video-upload",
            "social_share": "/social-share",
            "sign_out": SIGN_OUT_PATH,
        },
    }


@router.get("/sign-in", summary="Sign-in page")
async def sign_in_page(request: Request, settings: Settings = Depends(get_settings)) -> dict[str, Any]:
    return _sign_in_payload(request, settings, sign_up=False)


@router.get("/sign-up", summary="Sign-up page")
async def sign_up_page(request: Request, settings: Settings = Depends(get_settings)) -> dict[str, Any]:
    return _sign_in_payload(request, settings, sign_up=True)


@router.post("/sign-in", summary="Development sign-in")
async def sign_in(
    request: Request,
    email: str = Form(..., min_length=3, max_length=254),
    settings: Settings = Depends(get_settings),
) -> RedirectResponse:
    """
    Issue a local session token for ``email`` and redirect to the dashboard.

    Raises:
        HTTPException: 404 when Auth0 is configured or in production,
            400 for an implausible email.
    """
    if not is_local_sign_in_enabled(settings):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not Found")

    email = email.strip().lower()
    if "@" not in email or email.startswith("@") or email.endswith("@"):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid email address")

    user_id = f"{LOCAL_SUBJECT_PREFIX}{email}"
    token = create_local_jwt(user_id, email, settings)

    response = RedirectResponse(_home_url(request, settings), status_code=status.HTTP_303_SEE_OTHER)
    response.set_cookie(
        key=settings.session_cookie_name,
        value=token,
        max_age=settings.jwt_expiration_hours * 3600,
        httponly=True,
        samesite="lax",
        secure=settings.is_production,
    )
    logger.info("Local sign-in for %s", user_id)
    return response


@router.post(SIGN_OUT_PATH, summary="Sign out")
async def sign_out(request: Request, settings: Settings = Depends(get_settings)) -> RedirectResponse:
    target = request.url.replace(path=settings.sign_in_path, query="", fragment="")
    response = RedirectResponse(str(target), status_code=status.HTTP_303_SEE_OTHER)
    response.delete_cookie(settings.session_cookie_name)
    return response


@router.get("/video-upload", summary="Video upload page")
async def video_upload_page(settings: Settings = Depends(get_settings)) -> dict[str, Any]:
    return {
        "page": "video-upload",
        "form": {
            "action": "/api/video-upload",
            "method": "POST",
            "enctype": "multipart/form-data",
            "fields": ["file", "title", "description"],
        },
        "max_file_size_bytes": settings.max_video_size_bytes,
        "max_file_size_mb": settings.max_video_size_mb,
        "allowed_extensions": settings.allowed_video_extensions,
    }


@router.get("/social-share", summary="Social share page")
async def social_share_page(settings: Settings = Depends(get_settings)) -> dict[str, Any]:
    return {
        "page": "social-share",
        "upload": {
            "action": "/api/image-upload",
            "method": "POST",
            "enctype": "multipart/form-data",
            "fields": ["file"],
        },
        "max_file_size_bytes": settings.max_image_size_bytes,
        "allowed_extensions": settings.allowed_image_extensions,
        "formats": [social_format.model_dump() for social_format in SOCIAL_FORMATS],
        "transform_endpoint": "/api/social-share/{public_id}",
    }
