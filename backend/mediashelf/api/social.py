"""
FastAPI Social Share Router for MediaShelf

- GET /social-formats - The available social media crops
- GET /social-share/{public_id} - Transformed image URL for one crop
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status

from mediashelf.core.auth import require_user_id
from mediashelf.models.social import (
    DEFAULT_SOCIAL_FORMAT,
    SOCIAL_FORMATS,
    SocialFormat,
    SocialFormatResponse,
    SocialShareResponse,
    get_social_format,
)
from mediashelf.services.media_service import MediaService, get_media_service


logger = logging.getLogger(__name__)

router = APIRouter()


def _format_response(social_format: SocialFormat) -> SocialFormatResponse:
    return SocialFormatResponse(**social_format.model_dump())


@router.get(
    "/social-formats",
    response_model=list[SocialFormatResponse],
    summary="List social formats",
)
async def list_social_formats(
    _user_id: str = Depends(require_user_id),
) -> list[SocialFormatResponse]:
    return [_format_response(social_format) for social_format in SOCIAL_FORMATS]


@router.get(
    "/social-share/{public_id:path}",
    response_model=SocialShareResponse,
    summary="Transform image for a social format",
    description=(
        "Build the Cloudinary URL that crops an uploaded image to the chosen format "
        "(fill, automatic gravity) and a suggested download file name."
    ),
)
async def social_share(
    public_id: str,
    format: str = Query(DEFAULT_SOCIAL_FORMAT.name, description="Format name, e.g. 'Twitter Post (16:9)'"),
    _user_id: str = Depends(require_user_id),
    media_service: MediaService = Depends(get_media_service),
) -> SocialShareResponse:
    """
    Raises:
        HTTPException: 400 when ``format`` names no known social format.
    """
    social_format = get_social_format(format)
    if social_format is None:
        allowed = ", ".join(f.name for f in SOCIAL_FORMATS)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unknown format '{format}'. Allowed formats: {allowed}",
        )

    logger.debug("Building %s image for %s", social_format.name, public_id)
    return SocialShareResponse(
        public_id=public_id,
        format=_format_response(social_format),
        image_url=media_service.social_image_url(
            public_id, social_format.width, social_format.height, social_format.aspect_ratio
        ),
        download_url=media_service.social_image_url(
            public_id,
            social_format.width,
            social_format.height,
            social_format.aspect_ratio,
            attachment=True,
        ),
        download_filename=social_format.download_filename,
    )
