"""
Access-policy middleware tests: path exclusions, redirects as HTTP responses,
identity resolution from header or cookie, and request logging headers.
"""

from unittest.mock import AsyncMock, patch

import pytest

from fastapi.testclient import TestClient

from mediashelf.config import Settings
from mediashelf.core.access_policy import AuthContext
from mediashelf.core.middleware import is_excluded_path


TEST_USER_ID = "local|tester@example.com"


class TestExcludedPaths:
    @pytest.mark.parametrize(
        "path",
        [
            "/favicon.ico",
            "/assets/app.js",
            "/styles/main.CSS",
            "/fonts/inter.woff2",
            "/static/logo.svg",
            "/static/data",
            "/_internal/build-manifest",
            "/site.webmanifest",
            "/docs",
            "/redoc",
            "/openapi.json",
            "/health",
            "/ready",
        ],
    )
    def test_excluded(self, path: str) -> None:
        assert is_excluded_path(path) is True

    @pytest.mark.parametrize(
        "path",
        [
            "/",
            "/home",
            "/video-upload",
            "/api/videos",
            "/api/export.csv",
            "/api/thumbnail.png",
            "/trpc/videos.list",
            "/data.json",
            "/reports.csv/details",
        ],
    )
    def test_evaluated(self, path: str) -> None:
        assert is_excluded_path(path) is False


class TestRedirects:
    def test_root_redirects_home(self, test_client: TestClient) -> None:
        response = test_client.get("/")
        assert response.status_code == 307
        assert response.headers["location"] == "http://testserver/home"

    def test_anonymous_protected_page_redirects_to_sign_in(self, test_client: TestClient) -> None:
        response = test_client.get("/video-upload?tab=recent")
        assert response.status_code == 307
        assert response.headers["location"] == "http://testserver/sign-in"

    def test_anonymous_private_api_redirects_to_sign_in(self, test_client: TestClient) -> None:
        response = test_client.post("/api/video-upload")
        assert response.status_code == 307
        assert response.headers["location"] == "http://testserver/sign-in"

    def test_api_path_with_static_extension_is_still_evaluated(self, test_client: TestClient) -> None:
        response = test_client.get("/api/secret.png")
        assert response.status_code == 307

    def test_signed_in_user_on_sign_in_page_goes_home(
        self, test_client: TestClient, auth_headers: dict[str, str]
    ) -> None:
        response = test_client.get("/sign-in", headers=auth_headers)
        assert response.status_code == 307
        assert response.headers["location"] == "http://testserver/home"

    def test_redirect_carries_request_id(self, test_client: TestClient) -> None:
        response = test_client.get("/video-upload", headers={"X-Request-ID": "req-123"})
        assert response.status_code == 307
        assert response.headers["x-request-id"] == "req-123"
        assert response.headers["x-process-time"].endswith("ms")


class TestProceed:
    def test_anonymous_home_renders_landing(self, test_client: TestClient) -> None:
        response = test_client.get("/home")
        assert response.status_code == 200
        body = response.json()
        assert body["page"] == "home"
        assert body["authenticated"] is False

    def test_signed_in_home_renders_dashboard(
        self, test_client: TestClient, auth_headers: dict[str, str]
    ) -> None:
        response = test_client.get("/home", headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["user_id"] == TEST_USER_ID

    def test_session_cookie_authenticates(
        self, test_client: TestClient, mock_settings: Settings, test_jwt_token: str
    ) -> None:
        test_client.cookies.set(mock_settings.session_cookie_name, test_jwt_token)
        response = test_client.get("/video-upload")
        assert response.status_code == 200
        assert response.json()["page"] == "video-upload"

    def test_expired_token_is_treated_as_anonymous(
        self, test_client: TestClient, test_expired_jwt_token: str
    ) -> None:
        response = test_client.get(
            "/video-upload", headers={"Authorization": f"Bearer {test_expired_jwt_token}"}
        )
        assert response.status_code == 307
        assert response.headers["location"].endswith("/sign-in")

    def test_excluded_paths_skip_identity_lookup(self, test_client: TestClient) -> None:
        resolver = AsyncMock(return_value=AuthContext())
        with patch("mediashelf.core.middleware.resolve_auth_context", resolver):
            health = test_client.get("/health")
            missing_asset = test_client.get("/logo.png")

        assert health.status_code == 200
        assert health.json()["status"] == "healthy"
        assert missing_asset.status_code == 404
        resolver.assert_not_awaited()

    def test_handlers_reuse_resolved_identity(self, test_client: TestClient) -> None:
        resolver = AsyncMock(return_value=AuthContext(user_id="auth0|from-middleware"))
        with patch("mediashelf.core.middleware.resolve_auth_context", resolver):
            response = test_client.get("/home")

        assert response.json()["user_id"] == "auth0|from-middleware"
        resolver.assert_awaited_once()

    def test_generated_request_id(self, test_client: TestClient) -> None:
        response = test_client.get("/health")
        assert len(response.headers["x-request-id"]) == 32
