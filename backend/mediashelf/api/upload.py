"""
FastAPI Upload Router for MediaShelf

Endpoints:
- POST /video-upload - Upload a video to Cloudinary and record its metadata
- POST /image-upload - Upload an image for the social-share tool

Both endpoints require a signed-in user and a ``multipart/form-data`` body
whose ``file`` field carries the upload. Checks run in this order:

1. 401 when the caller is anonymous
2. 500 when Cloudinary credentials are missing
3. 400 when the body is not multipart
4. 400 when the ``file`` field is missing
5. 415 / 413 for an unsupported extension or an oversized file
6. 500 when Cloudinary or MongoDB fails
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from starlette.datastructures import UploadFile

from mediashelf.config import Settings, get_settings
from mediashelf.core.auth import require_user_id
from mediashelf.models.social import ImageUploadResponse
from mediashelf.models.video import DESCRIPTION_MAX_LENGTH, TITLE_MAX_LENGTH, VideoResponse
from mediashelf.services.media_service import (
    MediaCredentialsError,
    MediaService,
    MediaServiceError,
    get_media_service,
)
from mediashelf.services.video_service import VideoService, VideoServiceError, get_video_service
from mediashelf.utils.file_validator import (
    raise_file_too_large_error,
    raise_unsupported_type_error,
    sanitize_filename,
    validate_file_extension,
    validate_file_size,
)


logger = logging.getLogger(__name__)

router = APIRouter()

MULTIPART_CONTENT_TYPE = "multipart/form-data"


# ============================================================================
# Helper Functions
# ============================================================================


def ensure_media_configured(media_service: MediaService) -> None:
    try:
        media_service.ensure_configured()
    except MediaCredentialsError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e)) from e


async def read_upload_form(request: Request) -> tuple[UploadFile, dict[str, str]]:
    """
    Parse the multipart body and return the ``file`` upload plus text fields.

    Raises:
        HTTPException: 400 "Invalid content type" or 400 "File not found".
    """
    content_type = request.headers.get("content-type", "")
    if not content_type.lower().startswith(MULTIPART_CONTENT_TYPE):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid content type")

    form = await request.form()
    upload = form.get("file")
    if not isinstance(upload, UploadFile):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="File not found")

    fields = {key: value for key, value in form.items() if isinstance(value, str)}
    return upload, fields


async def read_validated_file(
    upload: UploadFile, allowed_extensions: list[str], max_size: int
) -> bytes:
    """
    Read the upload after checking its extension, then check its size.

    A declared size over ``max_size`` is rejected before reading, and at most
    ``max_size + 1`` bytes are ever read into memory.

    Raises:
        HTTPException: 415 for a disallowed extension, 400 for an empty file,
            413 when over ``max_size``.
    """
    is_valid, error = validate_file_extension(upload.filename, allowed_extensions)
    if not is_valid:
        logger.warning("Rejected upload %s: %s", upload.filename, error)
        raise_unsupported_type_error(error)

    if upload.size is not None and upload.size > max_size:
        _, error = validate_file_size(upload.size, max_size)
        logger.warning("Rejected upload %s: %s", upload.filename, error)
        raise_file_too_large_error(error)

    content = await upload.read(max_size + 1)
    if not content:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="File is empty")

    is_valid, error = validate_file_size(len(content), max_size)
    if not is_valid:
        logger.warning("Rejected upload %s: %s", upload.filename, error)
        raise_file_too_large_error(error)

    return content


def clean_text_field(value: str | None, field: str, max_length: int, required: bool) -> str | None:
    text = (value or "").strip()
    if required and not text:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"{field} is required")
    if len(text) > max_length:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"{field} must be at most {max_length} characters",
        )
    return text or None


# ============================================================================
# Endpoints
# ============================================================================


@router.post(
    "/video-upload",
    response_model=VideoResponse,
    status_code=status.HTTP_200_OK,
    summary="Upload video",
    description="Upload a video (multipart: file, title, description). Cloudinary converts it to MP4.",
)
async def upload_video(
    request: Request,
    user_id: str = Depends(require_user_id),
    settings: Settings = Depends(get_settings),
    media_service: MediaService = Depends(get_media_service),
    video_service: VideoService = Depends(get_video_service),
) -> VideoResponse:
    """
    Upload a video and store its record.

    Returns:
        VideoResponse: The stored video with sizes, duration and delivery URLs.
    """
    ensure_media_configured(media_service)

    upload, fields = await read_upload_form(request)
    title = clean_text_field(fields.get("title"), "Title", TITLE_MAX_LENGTH, required=True)
    description = clean_text_field(
        fields.get("description"), "Description", DESCRIPTION_MAX_LENGTH, required=False
    )
    content = await read_validated_file(
        upload, settings.allowed_video_extensions, settings.max_video_size_bytes
    )

    logger.info("Video upload request from user %s: %s (%d bytes)", user_id, upload.filename, len(content))

    try:
        return await video_service.upload_video(
            data=content,
            title=title,
            description=description,
            user_id=user_id,
            filename=sanitize_filename(upload.filename),
        )
    except (MediaServiceError, VideoServiceError) as e:
        logger.error("Video upload failed for user %s: %s", user_id, str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Upload video failed"
        ) from e


@router.post(
    "/image-upload",
    response_model=ImageUploadResponse,
    summary="Upload image",
    description="Upload an image (multipart: file) for social-format transformations.",
)
async def upload_image(
    request: Request,
    user_id: str = Depends(require_user_id),
    settings: Settings = Depends(get_settings),
    media_service: MediaService = Depends(get_media_service),
) -> ImageUploadResponse:
    """
    Upload an image and return its Cloudinary public id as ``publicId``.
    """
    ensure_media_configured(media_service)

    upload, _ = await read_upload_form(request)
    content = await read_validated_file(
        upload, settings.allowed_image_extensions, settings.max_image_size_bytes
    )

    logger.info("Image upload request from user %s: %s (%d bytes)", user_id, upload.filename, len(content))

    try:
        result = await media_service.upload_image(content, filename=sanitize_filename(upload.filename))
    except MediaServiceError as e:
        logger.error("Image upload failed for user %s: %s", user_id, str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Upload image failed"
        ) from e

    return ImageUploadResponse(public_id=result.public_id)
