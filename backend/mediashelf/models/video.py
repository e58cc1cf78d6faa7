"""
Video Pydantic models for MediaShelf.

``Video`` mirrors a document in the ``videos`` collection. ``VideoResponse`` is
what the API returns: the stored fields plus human-readable sizes and duration,
the compression saving and the Cloudinary delivery URLs for the video card.
"""

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

from mediashelf.utils.formatting import (
    compression_percentage,
    format_duration,
    format_relative_time,
    format_size,
)


TITLE_MAX_LENGTH = 200
DESCRIPTION_MAX_LENGTH = 2000


def _utcnow() -> datetime:
    return datetime.now(UTC)


class Video(BaseModel):
    """
    Uploaded video record.

    ``public_id`` is the Cloudinary identifier every delivery URL is derived
    from. ``compressed_size`` is the size Cloudinary reports after conversion.
    """

    id: str | None = Field(default=None, alias="_id", description="MongoDB ObjectId as string")

    title: str = Field(..., min_length=1, max_length=TITLE_MAX_LENGTH, description="Video title")

    description: str | None = Field(
        default=None, max_length=DESCRIPTION_MAX_LENGTH, description="Optional description"
    )

    public_id: str = Field(..., min_length=1, description="Cloudinary public id")

    original_size: int = Field(..., ge=0, description="Uploaded size in bytes")

    compressed_size: int = Field(..., ge=0, description="Size after Cloudinary conversion")

    duration: float = Field(default=0.0, ge=0, description="Duration in seconds")

    user_id: str | None = Field(default=None, description="Uploader's identity provider subject")

    created_at: datetime = Field(default_factory=_utcnow, description="Creation timestamp")

    updated_at: datetime = Field(default_factory=_utcnow, description="Last update timestamp")

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "title": "Launch teaser",
                "description": "30 second cut for social",
                "public_id": "video-uploads/launch_teaser_x1y2z3",
                "original_size": 48_234_112,
                "compressed_size": 9_874_221,
                "duration": 31.2,
                "user_id": "auth0|64f1c2",
            }
        },
    )

    @field_validator("id", mode="before")
    @classmethod
    def validate_id(cls, v: Any) -> str | None:
        """Accept a raw ObjectId from Motor."""
        return None if v is None else str(v)

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        stripped = v.strip()
        if not stripped:
            raise ValueError("Title cannot be blank")
        return stripped

    @field_validator("description")
    @classmethod
    def validate_description(cls, v: str | None) -> str | None:
        if v is None:
            return None
        return v.strip() or None

    @field_validator("duration", mode="before")
    @classmethod
    def validate_duration(cls, v: Any) -> Any:
        """Cloudinary omits duration for some containers; treat that as 0."""
        return 0.0 if v is None else v

    @property
    def compression_percentage(self) -> int:
        return compression_percentage(self.original_size, self.compressed_size)

    def to_document(self) -> dict[str, Any]:
        """Mongo document without ``_id`` so the driver assigns one."""
        return self.model_dump(exclude={"id"})


class VideoResponse(BaseModel):
    """Video as rendered by the API and the dashboard cards."""

    id: str | None = Field(None, description="Video ID")
    title: str = Field(..., description="Video title")
    description: str | None = Field(None, description="Description")
    public_id: str = Field(..., description="Cloudinary public id")
    original_size: int = Field(..., description="Uploaded size in bytes")
    compressed_size: int = Field(..., description="Stored size in bytes")
    duration: float = Field(..., description="Duration in seconds")
    user_id: str | None = Field(None, description="Uploader")
    created_at: datetime = Field(..., description="Creation timestamp")
    updated_at: datetime = Field(..., description="Last update timestamp")

    original_size_formatted: str = Field(..., description="e.g. '46 MB'")
    compressed_size_formatted: str = Field(..., description="e.g. '9.42 MB'")
    duration_formatted: str = Field(..., description="m:ss")
    compression_percentage: int = Field(..., description="Percent saved by compression")

    thumbnail_url: str | None = Field(None, description="400x225 JPEG poster")
    preview_url: str | None = Field(None, description="Hover preview clip")
    video_url: str | None = Field(None, description="1920x1080 playback URL")
    download_url: str | None = Field(None, description="Attachment download URL")

    @computed_field  # type: ignore[prop-decorator]
    @property
    def created_at_relative(self) -> str:
        """Upload time relative to the moment of serialization, e.g. '3 days ago'."""
        return format_relative_time(self.created_at)

    @classmethod
    def from_video(cls, video: Video, urls: dict[str, str] | None = None) -> "VideoResponse":
        """
        Create response from a Video model.

        Args:
            video: Stored video
            urls: Delivery URLs keyed by field name (thumbnail_url, preview_url,
                video_url, download_url); missing keys are left as None
        """
        urls = urls or {}
        return cls(
            id=video.id,
            title=video.title,
            description=video.description,
            public_id=video.public_id,
            original_size=video.original_size,
            compressed_size=video.compressed_size,
            duration=video.duration,
            user_id=video.user_id,
            created_at=video.created_at,
            updated_at=video.updated_at,
            original_size_formatted=format_size(video.original_size),
            compressed_size_formatted=format_size(video.compressed_size),
            duration_formatted=format_duration(video.duration),
            compression_percentage=video.compression_percentage,
            thumbnail_url=urls.get("thumbnail_url"),
            preview_url=urls.get("preview_url"),
            video_url=urls.get("video_url"),
            download_url=urls.get("download_url"),
        )


class VideoListResponse(BaseModel):
    videos: list[VideoResponse] = Field(default_factory=list)
    total: int = Field(..., ge=0)
