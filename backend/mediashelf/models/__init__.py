"""
Pydantic models for MediaShelf.

Models Overview:
    - Video: Stored video record (MongoDB ``videos`` collection)
    - VideoResponse: Video with formatted sizes, duration and delivery URLs
    - SocialFormat: Target crop for a social network placement
"""

from mediashelf.models.social import (
    SOCIAL_FORMATS,
    ImageUploadResponse,
    SocialFormat,
    SocialFormatResponse,
    SocialShareResponse,
    get_social_format,
)
from mediashelf.models.video import Video, VideoListResponse, VideoResponse


__all__ = [
    "SOCIAL_FORMATS",
    "ImageUploadResponse",
    "SocialFormat",
    "SocialFormatResponse",
    "SocialShareResponse",
    "Video",
    "VideoListResponse",
    "VideoResponse",
    "get_social_format",
]
