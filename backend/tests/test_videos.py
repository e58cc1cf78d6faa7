"""
Video listing and lookup tests: the VideoService read path with its Redis
cache, and the GET /api/videos endpoints behind the access policy.
"""

import asyncio

from typing import Any
from unittest.mock import MagicMock

import pytest

from bson import ObjectId
from fastapi.testclient import TestClient
from pymongo import DESCENDING
from pymongo.errors import PyMongoError

from mediashelf.core.redis_client import CacheKeys
from mediashelf.models.video import Video
from mediashelf.services.video_service import (
    InvalidVideoIdError,
    VideoPersistenceError,
    VideoService,
)


VIDEO_ID = "65a4f1c2e4b0a1b2c3d4e5f6"


class TestVideoServiceListing:
    async def test_reads_newest_first_and_caches(
        self,
        video_service: VideoService,
        mock_videos_collection: MagicMock,
        mock_redis: MagicMock,
        video_document: dict[str, Any],
    ) -> None:
        mock_videos_collection.cursor.to_list.return_value = [video_document]

        videos = await video_service.list_videos()

        assert [v.id for v in videos] == [VIDEO_ID]
        mock_videos_collection.cursor.sort.assert_called_once_with("created_at", DESCENDING)
        mock_redis.get_int.assert_awaited_once_with(CacheKeys.VIDEO_LIST_GENERATION)
        key, payload = mock_redis.set_json.await_args.args
        assert key == CacheKeys.VIDEO_LIST
        assert payload["generation"] == 0
        assert payload["videos"][0]["public_id"] == video_document["public_id"]
        assert mock_redis.set_json.await_args.kwargs["ttl"] == 60

    async def test_cache_hit_skips_database(
        self,
        video_service: VideoService,
        mock_videos_collection: MagicMock,
        mock_redis: MagicMock,
        video_document: dict[str, Any],
    ) -> None:
        cached = video_service.build_response(Video.model_validate(video_document))
        mock_redis.get_json.return_value = {"generation": 0, "videos": [cached.model_dump(mode="json")]}

        videos = await video_service.list_videos()

        assert videos == [cached]
        mock_videos_collection.find.assert_not_called()
        mock_redis.set_json.assert_not_called()

    async def test_listing_from_older_generation_is_ignored(
        self,
        video_service: VideoService,
        mock_videos_collection: MagicMock,
        mock_redis: MagicMock,
        video_document: dict[str, Any],
    ) -> None:
        mock_redis.get_int.return_value = 4
        mock_redis.get_json.return_value = {"generation": 3, "videos": []}
        mock_videos_collection.cursor.to_list.return_value = [video_document]

        videos = await video_service.list_videos()

        assert len(videos) == 1
        assert mock_redis.set_json.await_args.args[1]["generation"] == 4

    async def test_redis_failure_skips_cache(
        self,
        video_service: VideoService,
        mock_videos_collection: MagicMock,
        mock_redis: MagicMock,
        video_document: dict[str, Any],
    ) -> None:
        mock_redis.get_int.return_value = None
        mock_videos_collection.cursor.to_list.return_value = [video_document]

        assert len(await video_service.list_videos()) == 1
        mock_redis.get_json.assert_not_called()
        mock_redis.set_json.assert_not_called()

    async def test_upload_during_listing_is_not_hidden_by_cache(
        self,
        video_service: VideoService,
        mock_videos_collection: MagicMock,
        mock_redis: MagicMock,
    ) -> None:
        store: dict[str, Any] = {}
        mock_redis.get_json.side_effect = lambda key: store.get(key)
        mock_redis.get_int.side_effect = lambda key: store.get(key, 0)
        mock_redis.set_json.side_effect = lambda key, value, ttl=None: store.__setitem__(key, value)
        mock_redis.delete.side_effect = lambda key: store.pop(key, None) is not None
        mock_redis.incr.side_effect = lambda key: store.__setitem__(key, store.get(key, 0) + 1)

        rows: list[dict[str, Any]] = []
        read_started = asyncio.Event()
        release_read = asyncio.Event()

        async def to_list(length: int | None = None) -> list[dict[str, Any]]:
            snapshot = list(rows)
            if not read_started.is_set():
                read_started.set()
                await release_read.wait()
            return snapshot

        async def insert_one(document: dict[str, Any]) -> MagicMock:
            stored = {**document, "_id": ObjectId()}
            rows.append(stored)
            return MagicMock(inserted_id=stored["_id"])

        mock_videos_collection.cursor.to_list.side_effect = to_list
        mock_videos_collection.insert_one.side_effect = insert_one

        listing = asyncio.create_task(video_service.list_videos())
        await read_started.wait()
        await video_service.upload_video(b"video-bytes", "Launch teaser", None, "local|tester@example.com")
        release_read.set()
        assert await listing == []

        videos = await video_service.list_videos()

        assert [v.title for v in videos] == ["Launch teaser"]
        assert [v.title for v in await video_service.list_videos()] == ["Launch teaser"]

    async def test_works_without_redis(
        self,
        mock_db: MagicMock,
        mock_media_service: MagicMock,
        mock_videos_collection: MagicMock,
        video_document: dict[str, Any],
        mock_settings: Any,
    ) -> None:
        service = VideoService(mock_db, mock_media_service, redis_client=None, settings=mock_settings)
        mock_videos_collection.cursor.to_list.return_value = [video_document]

        videos = await service.list_videos()

        assert len(videos) == 1
        await service.invalidate_cache()

    async def test_database_error(
        self, video_service: VideoService, mock_videos_collection: MagicMock
    ) -> None:
        mock_videos_collection.cursor.to_list.side_effect = PyMongoError("boom")
        with pytest.raises(VideoPersistenceError):
            await video_service.list_videos()

    async def test_response_carries_delivery_urls(
        self, video_service: VideoService, video_document: dict[str, Any]
    ) -> None:
        response = video_service.build_response(Video.model_validate(video_document))
        public_id = video_document["public_id"]

        assert response.thumbnail_url == f"https://cdn.test/thumb/{public_id}.jpg"
        assert response.preview_url == f"https://cdn.test/preview/{public_id}.mp4"
        assert response.video_url == f"https://cdn.test/video/{public_id}.mp4"
        assert response.download_url == f"https://cdn.test/download/{public_id}.mp4"
        assert response.compression_percentage == 75


class TestVideoServiceLookup:
    async def test_found(
        self,
        video_service: VideoService,
        mock_videos_collection: MagicMock,
        video_document: dict[str, Any],
    ) -> None:
        mock_videos_collection.find_one.return_value = video_document

        video = await video_service.get_video(VIDEO_ID)

        assert video is not None
        assert video.title == "Launch teaser"
        assert mock_videos_collection.find_one.await_args.args[0]["_id"] == video_document["_id"]

    async def test_missing(self, video_service: VideoService) -> None:
        assert await video_service.get_video(VIDEO_ID) is None

    @pytest.mark.parametrize("video_id", ["not-an-id", "123", ""])
    async def test_invalid_id(self, video_service: VideoService, video_id: str) -> None:
        with pytest.raises(InvalidVideoIdError):
            await video_service.get_video(video_id)


class TestVideoEndpoints:
    def test_listing_is_public(
        self,
        test_client: TestClient,
        mock_videos_collection: MagicMock,
        video_document: dict[str, Any],
    ) -> None:
        mock_videos_collection.cursor.to_list.return_value = [video_document]

        response = test_client.get("/api/videos")

        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 1
        assert body["videos"][0]["id"] == VIDEO_ID
        assert body["videos"][0]["duration_formatted"] == "1:15"
        assert body["videos"][0]["compressed_size_formatted"] == "244.14 KB"

    def test_listing_error(self, test_client: TestClient, mock_videos_collection: MagicMock) -> None:
        mock_videos_collection.cursor.to_list.side_effect = PyMongoError("down")

        response = test_client.get("/api/videos")

        assert response.status_code == 500
        assert response.json() == {"error": "Error fetching videos"}

    def test_single_video_requires_sign_in(self, test_client: TestClient) -> None:
        response = test_client.get(f"/api/videos/{VIDEO_ID}")
        assert response.status_code == 307
        assert response.headers["location"].endswith("/sign-in")

    def test_single_video(
        self,
        test_client: TestClient,
        auth_headers: dict[str, str],
        mock_videos_collection: MagicMock,
        video_document: dict[str, Any],
    ) -> None:
        mock_videos_collection.find_one.return_value = video_document

        response = test_client.get(f"/api/videos/{VIDEO_ID}", headers=auth_headers)

        assert response.status_code == 200
        assert response.json()["public_id"] == video_document["public_id"]

    def test_single_video_invalid_id(self, test_client: TestClient, auth_headers: dict[str, str]) -> None:
        response = test_client.get("/api/videos/not-an-id", headers=auth_headers)
        assert response.status_code == 400
        assert response.json() == {"error": "Invalid video ID format: not-an-id"}

    def test_single_video_not_found(self, test_client: TestClient, auth_headers: dict[str, str]) -> None:
        response = test_client.get(f"/api/videos/{VIDEO_ID}", headers=auth_headers)
        assert response.status_code == 404
        assert response.json() == {"error": "Video not found"}
