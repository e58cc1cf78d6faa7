"""
MediaShelf Video Service Module

Coordinates a video upload end to end and serves the video listing:

1. Send the uploaded bytes to Cloudinary through ``MediaService``
2. Record title, description, public id, original and compressed sizes and
   duration in the ``videos`` collection
3. Invalidate the cached listing

Listings are read newest first and cached in Redis under ``videos:list`` when
Redis is available; every response carries the delivery URLs the dashboard
cards need. A cached listing is tagged with the value of the
``videos:list:generation`` counter read before the MongoDB query, and uploads
increment that counter, so a listing read before an upload is never served
after it.
"""

import logging

from datetime import UTC, datetime
from typing import Any

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import DESCENDING
from pymongo.errors import PyMongoError

from mediashelf.config import Settings, get_settings
from mediashelf.core.database import DatabaseClient, get_db_client
from mediashelf.core.redis_client import CacheKeys, RedisClient, get_redis_client
from mediashelf.models.video import Video, VideoResponse
from mediashelf.services.media_service import MediaService, get_media_service


logger = logging.getLogger(__name__)


class VideoServiceError(Exception):
    """Base exception for video service errors."""


class VideoPersistenceError(VideoServiceError):
    """Raised when the video record cannot be written or read."""


class InvalidVideoIdError(VideoServiceError):
    """Raised when a video id is not a valid ObjectId."""


class VideoService:
    """
    Video upload and listing service.

    Attributes:
        db_client: Connected MongoDB client
        media_service: Cloudinary facade used for uploads and delivery URLs
        redis_client: Optional cache; None disables caching
        settings: Application settings
    """

    def __init__(
        self,
        db_client: DatabaseClient,
        media_service: MediaService,
        redis_client: RedisClient | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.db_client = db_client
        self.media_service = media_service
        self.redis_client = redis_client
        self.settings = settings or get_settings()

    # =========================================================================
    # Responses
    # =========================================================================

    def build_response(self, video: Video) -> VideoResponse:
        """Attach thumbnail, preview, playback and download URLs to a video."""
        urls = {
            "thumbnail_url": self.media_service.thumbnail_url(video.public_id),
            "preview_url": self.media_service.preview_url(video.public_id),
            "video_url": self.media_service.video_url(video.public_id),
            "download_url": self.media_service.download_url(video.public_id),
        }
        return VideoResponse.from_video(video, urls)

    # =========================================================================
    # Upload
    # =========================================================================

    async def upload_video(
        self,
        data: bytes,
        title: str,
        description: str | None,
        user_id: str,
        filename: str | None = None,
    ) -> VideoResponse:
        """
        Upload to Cloudinary and store the resulting record.

        ``original_size`` is the number of bytes received; ``compressed_size``
        is what Cloudinary reports for the converted asset.

        Raises:
            MediaCredentialsError: If Cloudinary is not configured.
            MediaUploadError: If Cloudinary rejects the upload.
            VideoPersistenceError: If the record cannot be inserted.
        """
        result = await self.media_service.upload_video(data, filename=filename)

        now = datetime.now(UTC)
        video = Video(
            title=title,
            description=description,
            public_id=result.public_id,
            original_size=len(data),
            compressed_size=result.bytes,
            duration=result.duration,
            user_id=user_id,
            created_at=now,
            updated_at=now,
        )

        try:
            insert = await self.db_client.get_videos_collection().insert_one(video.to_document())
        except PyMongoError as e:
            logger.exception("Failed to store video record for public_id=%s", result.public_id)
            raise VideoPersistenceError(f"Failed to store video: {e!s}") from e

        video.id = str(insert.inserted_id)
        logger.info(
            "Stored video %s for user %s (%d -> %d bytes)",
            video.id,
            user_id,
            video.original_size,
            video.compressed_size,
        )

        await self.invalidate_cache()
        return self.build_response(video)

    # =========================================================================
    # Queries
    # =========================================================================

    async def list_videos(self) -> list[VideoResponse]:
        """
        All videos, newest first.

        Served from Redis when a cached copy exists; otherwise read from MongoDB
        and cached for ``redis_cache_ttl_seconds``.

        Raises:
            VideoPersistenceError: If MongoDB cannot be queried.
        """
        generation = await self._listing_generation()
        cached = await self._get_cached_listing(generation)
        if cached is not None:
            logger.debug("Serving video listing from cache (%d videos)", len(cached))
            return cached

        try:
            cursor = self.db_client.get_videos_collection().find().sort("created_at", DESCENDING)
            documents = await cursor.to_list(length=None)
        except PyMongoError as e:
            logger.exception("Failed to list videos")
            raise VideoPersistenceError(f"Failed to list videos: {e!s}") from e

        videos = [self.build_response(Video.model_validate(doc)) for doc in documents]
        await self._cache_listing(videos, generation)
        return videos

    async def get_video(self, video_id: str) -> VideoResponse | None:
        """
        Fetch one video by id.

        Raises:
            InvalidVideoIdError: If ``video_id`` is not a valid ObjectId.
            VideoPersistenceError: If MongoDB cannot be queried.
        """
        try:
            object_id = ObjectId(video_id)
        except (InvalidId, TypeError) as e:
            raise InvalidVideoIdError(f"Invalid video ID format: {video_id}") from e

        try:
            document = await self.db_client.get_videos_collection().find_one({"_id": object_id})
        except PyMongoError as e:
            logger.exception("Failed to fetch video %s", video_id)
            raise VideoPersistenceError(f"Failed to fetch video: {e!s}") from e

        if document is None:
            return None
        return self.build_response(Video.model_validate(document))

    # =========================================================================
    # Cache
    # =========================================================================

    async def _listing_generation(self) -> int | None:
        """Current listing generation; None disables caching for this read."""
        if self.redis_client is None:
            return None
        return await self.redis_client.get_int(CacheKeys.VIDEO_LIST_GENERATION)

    async def _get_cached_listing(self, generation: int | None) -> list[VideoResponse] | None:
        if self.redis_client is None or generation is None:
            return None
        payload: Any = await self.redis_client.get_json(CacheKeys.VIDEO_LIST)
        if not isinstance(payload, dict) or payload.get("generation") != generation:
            return None
        return [VideoResponse.model_validate(item) for item in payload.get("videos", [])]

    async def _cache_listing(self, videos: list[VideoResponse], generation: int | None) -> None:
        if self.redis_client is None or generation is None:
            return
        await self.redis_client.set_json(
            CacheKeys.VIDEO_LIST,
            {"generation": generation, "videos": [video.model_dump(mode="json") for video in videos]},
            ttl=self.settings.redis_cache_ttl_seconds,
        )

    async def invalidate_cache(self) -> None:
        if self.redis_client is None:
            return
        # Listings tagged with an older generation are ignored from here on.
        await self.redis_client.incr(CacheKeys.VIDEO_LIST_GENERATION)
        await self.redis_client.delete(CacheKeys.VIDEO_LIST)


def get_video_service() -> VideoService:
    """
    FastAPI dependency wiring the service to the shared clients.

    Raises:
        RuntimeError: If the database client has not been initialized.
    """
    return VideoService(
        db_client=get_db_client(),
        media_service=get_media_service(),
        redis_client=get_redis_client(),
    )
