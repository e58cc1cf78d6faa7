"""
Pytest Configuration and Test Fixtures for the MediaShelf Backend

This module provides the shared fixtures:
- Test Settings with local JWT authentication and Cloudinary credentials
- Mocked MongoDB and Redis clients
- Mocked media and video services injected with ``app.dependency_overrides``
- FastAPI TestClient (redirects not followed) and httpx AsyncClient
- Local session tokens for signed-in requests
- Sample video documents
"""

from collections.abc import AsyncGenerator, Generator
from datetime import UTC, datetime, timedelta
from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from bson import ObjectId
from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient
from jose import jwt

from mediashelf.config import Settings, get_settings
from mediashelf.core.access_policy import AccessPolicy
from mediashelf.core.auth import reset_token_validator
from mediashelf.core.database import DatabaseClient
from mediashelf.core.media import MediaClient, MediaUploadResult, reset_media_client
from mediashelf.core.redis_client import RedisClient
from mediashelf.main import app
from mediashelf.services.media_service import MediaService, get_media_service
from mediashelf.services.video_service import VideoService, get_video_service


TEST_SECRET_KEY = "test-secret-key-for-jwt-signing-minimum-32-chars"
TEST_USER_ID = "local|tester@example.com"


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line("markers", "integration: mark test as integration test")


# ==============================================================================
# Settings Fixtures
# ==============================================================================


@pytest.fixture
def mock_settings() -> Settings:
    """
    Settings for tests: local HS256 tokens, fake Cloudinary credentials and
    the default allow-lists.
    """
    return Settings(
        app_env="testing",
        app_name="MediaShelf-Test",
        debug=True,
        secret_key=TEST_SECRET_KEY,
        mongodb_uri="mongodb://localhost:27017/test_mediashelf",
        mongodb_db_name="test_mediashelf",
        redis_url="redis://localhost:6379/1",
        redis_cache_ttl_seconds=60,
        auth0_domain=None,
        auth0_client_id=None,
        auth0_client_secret=None,
        auth0_api_audience=None,
        cloudinary_cloud_name="demo-cloud",
        cloudinary_api_key="test-api-key",
        cloudinary_api_secret="test-api-secret",
        max_video_size_mb=1,
        max_image_size_mb=1,
    )


@pytest.fixture
def mock_settings_with_auth0(mock_settings: Settings) -> Settings:
    return mock_settings.model_copy(
        update={
            "auth0_domain": "test-tenant.auth0.com",
            "auth0_client_id": "test-client-id",
            "auth0_client_secret": "test-client-secret",
            "auth0_api_audience": "https://api.mediashelf.test",
        }
    )


@pytest.fixture(autouse=True)
def reset_singletons() -> Generator[None, None, None]:
    """Clear cached settings, clients and overrides around every test."""
    get_settings.cache_clear()
    reset_media_client()
    reset_token_validator()
    yield
    app.dependency_overrides.clear()
    if hasattr(app.state, "access_policy"):
        del app.state.access_policy
    get_settings.cache_clear()
    reset_media_client()
    reset_token_validator()


# ==============================================================================
# Authentication Fixtures
# ==============================================================================


def make_local_token(settings: Settings, subject: str | None = TEST_USER_ID, expires_in_hours: int = 1) -> str:
    now = datetime.now(UTC)
    payload: dict[str, Any] = {
        "email": "tester@example.com",
        "exp": now + timedelta(hours=expires_in_hours),
        "iat": now,
        "type": "local",
    }
    if subject is not None:
        payload["sub"] = subject
    return jwt.encode(payload, settings.secret_key, algorithm="HS256")


@pytest.fixture
def test_jwt_token(mock_settings: Settings) -> str:
    return make_local_token(mock_settings)


@pytest.fixture
def test_expired_jwt_token(mock_settings: Settings) -> str:
    return make_local_token(mock_settings, expires_in_hours=-1)


@pytest.fixture
def auth_headers(test_jwt_token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {test_jwt_token}"}


# ==============================================================================
# MongoDB / Redis Fixtures
# ==============================================================================


@pytest.fixture
def mock_videos_collection() -> MagicMock:
    """
    Mocked Motor collection.

    ``find()`` returns a cursor whose ``sort()`` returns itself and whose
    ``to_list()`` is awaitable, mirroring Motor's chaining.
    """
    collection = MagicMock()
    collection.insert_one = AsyncMock(return_value=MagicMock(inserted_id=ObjectId()))
    collection.find_one = AsyncMock(return_value=None)

    cursor = MagicMock()
    cursor.sort.return_value = cursor
    cursor.to_list = AsyncMock(return_value=[])
    collection.find.return_value = cursor
    collection.cursor = cursor
    return collection


@pytest.fixture
def mock_db(mock_videos_collection: MagicMock) -> MagicMock:
    mock = MagicMock(spec=DatabaseClient)
    mock.get_videos_collection.return_value = mock_videos_collection
    mock.ping = AsyncMock(return_value=True)
    mock.close = AsyncMock()
    return mock


@pytest.fixture
def mock_redis() -> MagicMock:
    mock = MagicMock(spec=RedisClient)
    mock.get_json = AsyncMock(return_value=None)
    mock.set_json = AsyncMock(return_value=True)
    mock.delete = AsyncMock(return_value=True)
    mock.get_int = AsyncMock(return_value=0)
    mock.incr = AsyncMock(return_value=1)
    mock.is_connected = AsyncMock(return_value=True)
    return mock


# ==============================================================================
# Media Fixtures
# ==============================================================================


@pytest.fixture
def upload_result() -> MediaUploadResult:
    return MediaUploadResult(
        public_id="video-uploads/launch_teaser_x1y2z3",
        bytes=250_000,
        duration=75.4,
        format="mp4",
        width=1920,
        height=1080,
        secure_url="https://res.cloudinary.com/demo-cloud/video/upload/launch_teaser_x1y2z3.mp4",
    )


@pytest.fixture
def media_client(mock_settings: Settings) -> MediaClient:
    return MediaClient(mock_settings)


@pytest.fixture
def mock_media_service(upload_result: MediaUploadResult) -> MagicMock:
    """MediaService double with deterministic delivery URLs."""
    mock = MagicMock(spec=MediaService)
    mock.ensure_configured.return_value = None
    mock.upload_video = AsyncMock(return_value=upload_result)
    mock.upload_image = AsyncMock(
        return_value=MediaUploadResult(public_id="next-cloudinary-uploads/banner_abc", bytes=2048)
    )
    mock.thumbnail_url.side_effect = lambda public_id: f"https://cdn.test/thumb/{public_id}.jpg"
    mock.preview_url.side_effect = lambda public_id: f"https://cdn.test/preview/{public_id}.mp4"
    mock.video_url.side_effect = lambda public_id: f"https://cdn.test/video/{public_id}.mp4"
    mock.download_url.side_effect = lambda public_id: f"https://cdn.test/download/{public_id}.mp4"
    mock.social_image_url.side_effect = (
        lambda public_id, width, height, aspect_ratio, attachment=False: (
            f"https://cdn.test/image/{width}x{height}/{public_id}.png"
            + ("?download" if attachment else "")
        )
    )
    return mock


@pytest.fixture
def video_document() -> dict[str, Any]:
    created = datetime(2026, 1, 15, 10, 30, tzinfo=UTC)
    return {
        "_id": ObjectId("65a4f1c2e4b0a1b2c3d4e5f6"),
        "title": "Launch teaser",
        "description": "30 second cut",
        "public_id": "video-uploads/launch_teaser_x1y2z3",
        "original_size": 1_000_000,
        "compressed_size": 250_000,
        "duration": 75.4,
        "user_id": TEST_USER_ID,
        "created_at": created,
        "updated_at": created,
    }


@pytest.fixture
def video_service(
    mock_db: MagicMock,
    mock_media_service: MagicMock,
    mock_redis: MagicMock,
    mock_settings: Settings,
) -> VideoService:
    return VideoService(
        db_client=mock_db,
        media_service=mock_media_service,
        redis_client=mock_redis,
        settings=mock_settings,
    )


# ==============================================================================
# FastAPI Test Client Fixtures
# ==============================================================================


@pytest.fixture
def configured_app(
    mock_settings: Settings,
    mock_media_service: MagicMock,
    video_service: VideoService,
) -> Generator[Any, None, None]:
    """
    The application wired to test settings and mocked services.

    The access-policy middleware reads settings directly, so ``get_settings``
    is patched there as well as overridden for route dependencies.
    """
    app.dependency_overrides[get_settings] = lambda: mock_settings
    app.dependency_overrides[get_media_service] = lambda: mock_media_service
    app.dependency_overrides[get_video_service] = lambda: video_service
    app.state.access_policy = AccessPolicy.from_settings(mock_settings)

    with patch("mediashelf.core.middleware.get_settings", return_value=mock_settings):
        yield app


@pytest.fixture
def test_client(configured_app: Any) -> TestClient:
    """Synchronous client; redirects are returned, not followed."""
    return TestClient(configured_app, follow_redirects=False)


@pytest.fixture
async def async_test_client(configured_app: Any) -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=configured_app)
    async with AsyncClient(transport=transport, base_url="http://test", follow_redirects=False) as client:
        yield client
