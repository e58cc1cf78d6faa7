"""
MediaShelf Cloudinary Media Client

This module wraps the Cloudinary SDK, the hosted service that compresses,
converts, crops and delivers every uploaded asset. MediaShelf never decodes
media itself: it hands the uploaded bytes to Cloudinary and stores the
returned public id, then builds transformation URLs from that id.

Key Features:
- Video uploads converted to MP4 with automatic quality
- Image uploads into a dedicated folder
- Delivery URLs for video thumbnails, hover previews, full-size playback,
  social-format crops and attachment downloads
- Credentials passed per call so no global SDK configuration is mutated

All methods are synchronous; ``mediashelf.services.media_service`` runs them in
a worker thread.
"""

import io
import logging

from dataclasses import dataclass
from typing import Any

import cloudinary.uploader
import cloudinary.utils

from mediashelf.config import Settings, get_settings


logger = logging.getLogger(__name__)

# Singleton container for the media client instance
_singleton_container: dict[str, "MediaClient"] = {}


# =============================================================================
# Delivery Transformation Constants
# =============================================================================

THUMBNAIL_WIDTH = 400
THUMBNAIL_HEIGHT = 225

FULL_VIDEO_WIDTH = 1920
FULL_VIDEO_HEIGHT = 1080

# First 15 seconds summarised into at most 9 segments of at least 1 second
PREVIEW_TRANSFORMATION = "e_preview:duration_15:max_seg_9:min_seg_dur_1"

VIDEO_UPLOAD_TRANSFORMATION = [{"quality": "auto", "fetch_format": "mp4"}]


@dataclass(frozen=True)
class MediaUploadResult:
    """Fields MediaShelf keeps from a Cloudinary upload response."""

    public_id: str
    bytes: int
    duration: float = 0.0
    format: str | None = None
    width: int | None = None
    height: int | None = None
    secure_url: str | None = None

    @classmethod
    def from_response(cls, response: dict[str, Any]) -> "MediaUploadResult":
        """
        Build a result from the raw upload response.

        Images carry no duration; it defaults to 0 like a missing video duration.

        Raises:
            KeyError: If the response has no ``public_id``.
        """
        return cls(
            public_id=response["public_id"],
            bytes=int(response.get("bytes") or 0),
            duration=float(response.get("duration") or 0),
            format=response.get("format"),
            width=response.get("width"),
            height=response.get("height"),
            secure_url=response.get("secure_url"),
        )


class MediaClient:
    """
    Thin synchronous client over the Cloudinary upload and URL APIs.

    Attributes:
        settings: Application settings containing Cloudinary credentials
    """

    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or get_settings()
        logger.info(
            "MediaClient initialized for cloud: %s",
            self.settings.cloudinary_cloud_name or "<unconfigured>",
        )

    @property
    def is_configured(self) -> bool:
        return self.settings.is_cloudinary_configured

    def _credentials(self) -> dict[str, Any]:
        return {
            "cloud_name": self.settings.cloudinary_cloud_name,
            "api_key": self.settings.cloudinary_api_key,
            "api_secret": self.settings.cloudinary_api_secret,
        }

    # =========================================================================
    # Uploads
    # =========================================================================

    def upload_video(self, data: bytes, filename: str | None = None) -> MediaUploadResult:
        """
        Upload a video, asking Cloudinary to store it as auto-quality MP4.

        Raises:
            cloudinary.exceptions.Error: If Cloudinary rejects the upload.
        """
        logger.info("Uploading video (%d bytes) to folder %s", len(data), self.settings.video_upload_folder)
        response = cloudinary.uploader.upload(
            io.BytesIO(data),
            resource_type="video",
            folder=self.settings.video_upload_folder,
            transformation=VIDEO_UPLOAD_TRANSFORMATION,
            filename=filename,
            **self._credentials(),
        )
        return MediaUploadResult.from_response(response)

    def upload_image(self, data: bytes, filename: str | None = None) -> MediaUploadResult:
        """
        Upload an image into the image folder.

        Raises:
            cloudinary.exceptions.Error: If Cloudinary rejects the upload.
        """
        logger.info("Uploading image (%d bytes) to folder %s", len(data), self.settings.image_upload_folder)
        response = cloudinary.uploader.upload(
            io.BytesIO(data),
            resource_type="image",
            folder=self.settings.image_upload_folder,
            filename=filename,
            **self._credentials(),
        )
        return MediaUploadResult.from_response(response)

    # =========================================================================
    # Delivery URLs
    # =========================================================================

    def _url(self, public_id: str, **options: Any) -> str:
        url, _ = cloudinary.utils.cloudinary_url(
            public_id,
            secure=True,
            cloud_name=self.settings.cloudinary_cloud_name,
            **options,
        )
        return url

    def video_thumbnail_url(self, public_id: str) -> str:
        """JPEG poster frame, 400x225, cropped around the subject."""
        return self._url(
            public_id,
            resource_type="video",
            width=THUMBNAIL_WIDTH,
            height=THUMBNAIL_HEIGHT,
            crop="fill",
            gravity="auto",
            format="jpg",
            quality="auto",
        )

    def video_preview_url(self, public_id: str) -> str:
        """Short auto-generated preview clip played on hover."""
        return self._url(
            public_id,
            resource_type="video",
            transformation=[
                {"width": THUMBNAIL_WIDTH, "height": THUMBNAIL_HEIGHT, "crop": "fill", "gravity": "auto"},
                {"raw_transformation": PREVIEW_TRANSFORMATION},
            ],
            format="mp4",
        )

    def video_url(self, public_id: str, attachment: bool = False) -> str:
        """Playback URL fitted within 1920x1080 without cropping; ``attachment`` forces a download."""
        options: dict[str, Any] = {
            "resource_type": "video",
            "width": FULL_VIDEO_WIDTH,
            "height": FULL_VIDEO_HEIGHT,
            "crop": "limit",
            "format": "mp4",
        }
        if attachment:
            options["flags"] = "attachment"
        return self._url(public_id, **options)

    def image_url(
        self,
        public_id: str,
        width: int,
        height: int,
        aspect_ratio: str | None = None,
        attachment: bool = False,
        format: str = "png",
    ) -> str:
        """Image cropped to fill ``width`` x ``height`` with automatic gravity."""
        options: dict[str, Any] = {
            "resource_type": "image",
            "width": width,
            "height": height,
            "crop": "fill",
            "gravity": "auto",
            "format": format,
        }
        if aspect_ratio:
            options["aspect_ratio"] = aspect_ratio
        if attachment:
            options["flags"] = "attachment"
        return self._url(public_id, **options)


def get_media_client() -> MediaClient:
    """
    Get the singleton MediaClient instance.

    Returns:
        MediaClient: The shared client configured from application settings.
    """
    if "instance" not in _singleton_container:
        _singleton_container["instance"] = MediaClient()
    return _singleton_container["instance"]


def reset_media_client() -> None:
    _singleton_container.clear()


__all__ = [
    "FULL_VIDEO_HEIGHT",
    "FULL_VIDEO_WIDTH",
    "PREVIEW_TRANSFORMATION",
    "THUMBNAIL_HEIGHT",
    "THUMBNAIL_WIDTH",
    "MediaClient",
    "MediaUploadResult",
    "get_media_client",
    "reset_media_client",
]
