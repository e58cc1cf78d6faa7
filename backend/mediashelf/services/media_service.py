"""
Async media service for MediaShelf.

Wraps the synchronous ``MediaClient`` so uploads run in a worker thread and
never block the event loop, and translates Cloudinary SDK failures into a small
exception hierarchy the API layer maps to HTTP responses.
"""

import asyncio
import logging

from functools import wraps
from typing import Any, Callable, TypeVar

from cloudinary.exceptions import Error as CloudinaryError

from mediashelf.core.media import MediaClient, MediaUploadResult, get_media_client


logger = logging.getLogger(__name__)

T = TypeVar("T")


def async_wrap(func: Callable[..., T]) -> Callable[..., "asyncio.Future[T]"]:
    """
    Decorator to run a blocking SDK call via ``asyncio.to_thread``.

    Args:
        func: The synchronous function to wrap

    Returns:
        An async function that executes the original in a thread pool
    """

    @wraps(func)
    async def wrapper(*args: Any, **kwargs: Any) -> T:
        return await asyncio.to_thread(func, *args, **kwargs)

    return wrapper


class MediaServiceError(Exception):
    """Base exception for media service errors."""


class MediaCredentialsError(MediaServiceError):
    """Raised when Cloudinary credentials are missing."""


class MediaUploadError(MediaServiceError):
    """Raised when Cloudinary rejects or fails an upload."""


class MediaService:
    """
    Async facade over ``MediaClient``.

    URL builders are pure string formatting and are exposed synchronously;
    uploads are awaited.

    Example:
        >>> service = MediaService()
        >>> result = await service.upload_video(data, filename="clip.mp4")
        >>> service.thumbnail_url(result.public_id)
    """

    def __init__(self, client: MediaClient | None = None) -> None:
        self.client = client or get_media_client()

    def ensure_configured(self) -> None:
        """
        Raises:
            MediaCredentialsError: If any Cloudinary credential is missing.
        """
        if not self.client.is_configured:
            logger.error("Cloudinary credentials are not configured")
            raise MediaCredentialsError("Cloudinary credentials not found")

    async def _upload(self, kind: str, upload: Callable[..., MediaUploadResult], data: bytes, filename: str | None) -> MediaUploadResult:
        self.ensure_configured()

        @async_wrap
        def _run() -> MediaUploadResult:
            return upload(data, filename=filename)

        try:
            result = await _run()
        except CloudinaryError as e:
            logger.error("Cloudinary %s upload failed: %s", kind, str(e))
            raise MediaUploadError(f"{kind.capitalize()} upload failed: {e!s}") from e
        except KeyError as e:
            logger.error("Cloudinary %s upload returned no public id", kind)
            raise MediaUploadError(f"{kind.capitalize()} upload returned an incomplete response") from e

        logger.info("Uploaded %s to Cloudinary: public_id=%s bytes=%d", kind, result.public_id, result.bytes)
        return result

    async def upload_video(self, data: bytes, filename: str | None = None) -> MediaUploadResult:
        """
        Upload a video and return the transformed asset's details.

        Raises:
            MediaCredentialsError: If Cloudinary is not configured.
            MediaUploadError: If the upload fails.
        """
        return await self._upload("video", self.client.upload_video, data, filename)

    async def upload_image(self, data: bytes, filename: str | None = None) -> MediaUploadResult:
        return await self._upload("image", self.client.upload_image, data, filename)

    def thumbnail_url(self, public_id: str) -> str:
        return self.client.video_thumbnail_url(public_id)

    def preview_url(self, public_id: str) -> str:
        return self.client.video_preview_url(public_id)

    def video_url(self, public_id: str) -> str:
        return self.client.video_url(public_id)

    def download_url(self, public_id: str) -> str:
        return self.client.video_url(public_id, attachment=True)

    def social_image_url(
        self, public_id: str, width: int, height: int, aspect_ratio: str, attachment: bool = False
    ) -> str:
        return self.client.image_url(
            public_id, width=width, height=height, aspect_ratio=aspect_ratio, attachment=attachment
        )


def get_media_service() -> MediaService:
    """FastAPI dependency returning a service bound to the shared client."""
    return MediaService()


__all__ = [
    "MediaCredentialsError",
    "MediaService",
    "MediaServiceError",
    "MediaUploadError",
    "async_wrap",
    "get_media_service",
]
