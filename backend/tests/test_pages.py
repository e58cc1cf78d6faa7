"""
Page endpoint and social-share tests, exercised through the full application
so the access policy applies.
"""

from typing import Any
from urllib.parse import parse_qs, urlparse

import pytest

from fastapi.testclient import TestClient
from jose import jwt

from mediashelf.config import Settings, get_settings
from mediashelf.core.access_policy import AccessPolicy
from mediashelf.models.social import SOCIAL_FORMATS, get_social_format


class TestSignIn:
    def test_local_sign_in_page(self, test_client: TestClient) -> None:
        response = test_client.get("/sign-in")
        assert response.status_code == 200
        body = response.json()
        assert body["provider"] == "local"
        assert body["login_url"] is None
        assert body["form"]["fields"] == ["email"]

    def test_auth0_sign_up_page(
        self, test_client: TestClient, configured_app: Any, mock_settings_with_auth0: Settings
    ) -> None:
        configured_app.dependency_overrides[get_settings] = lambda: mock_settings_with_auth0

        response = test_client.get("/sign-up")

        body = response.json()
        assert body["page"] == "sign-up"
        assert body["provider"] == "auth0"
        params = parse_qs(urlparse(body["login_url"]).query)
        assert params["screen_hint"] == ["signup"]
        assert params["redirect_uri"] == ["http://testserver/home"]
        assert "form" not in body

    def test_local_sign_in_sets_session_cookie(
        self, test_client: TestClient, mock_settings: Settings
    ) -> None:
        response = test_client.post("/sign-in", data={"email": "  Person@Example.com "})

        assert response.status_code == 303
        assert response.headers["location"] == "http://testserver/home"
        token = response.cookies[mock_settings.session_cookie_name]
        claims = jwt.decode(token, mock_settings.secret_key, algorithms=["HS256"])
        assert claims["sub"] == "local|person@example.com"
        assert "httponly" in response.headers["set-cookie"].lower()

    def test_session_cookie_then_reaches_dashboard(self, test_client: TestClient) -> None:
        test_client.post("/sign-in", data={"email": "person@example.com"})

        response = test_client.get("/home")

        assert response.json()["user_id"] == "local|person@example.com"

    def test_invalid_email(self, test_client: TestClient) -> None:
        response = test_client.post("/sign-in", data={"email": "nobody@"})
        assert response.status_code == 400
        assert response.json() == {"error": "Invalid email address"}

    def test_disabled_in_production(
        self, test_client: TestClient, configured_app: Any, mock_settings: Settings
    ) -> None:
        production = mock_settings.model_copy(update={"app_env": "production"})
        configured_app.dependency_overrides[get_settings] = lambda: production

        response = test_client.post("/sign-in", data={"email": "person@example.com"})

        assert response.status_code == 404

    def test_sign_out_clears_cookie(
        self, test_client: TestClient, auth_headers: dict[str, str], mock_settings: Settings
    ) -> None:
        response = test_client.post("/sign-out", headers=auth_headers)

        assert response.status_code == 303
        assert response.headers["location"] == "http://testserver/sign-in"
        assert f'{mock_settings.session_cookie_name}=""' in response.headers["set-cookie"]


class TestPages:
    def test_dashboard_links(self, test_client: TestClient, auth_headers: dict[str, str]) -> None:
        body = test_client.get("/home", headers=auth_headers).json()
        assert body["authenticated"] is True
        assert body["links"]["video_upload"] == "/video-upload"

    def test_video_upload_page(self, test_client: TestClient, auth_headers: dict[str, str]) -> None:
        body = test_client.get("/video-upload", headers=auth_headers).json()
        assert body["form"]["action"] == "/api/video-upload"
        assert body["max_file_size_mb"] == 1
        assert ".mp4" in body["allowed_extensions"]

    def test_social_share_page(self, test_client: TestClient, auth_headers: dict[str, str]) -> None:
        body = test_client.get("/social-share", headers=auth_headers).json()
        assert [f["name"] for f in body["formats"]] == [f.name for f in SOCIAL_FORMATS]

    def test_social_share_page_requires_sign_in(self, test_client: TestClient) -> None:
        assert test_client.get("/social-share").status_code == 307


class TestSocialFormats:
    def test_lookup_is_case_insensitive(self) -> None:
        assert get_social_format("  twitter post (16:9) ").width == 1200
        assert get_social_format("Pinterest Pin") is None

    @pytest.mark.parametrize(
        ("name", "filename"),
        [
            ("Instagram Square (1:1)", "instagram_square_(1:1).png"),
            ("Facebook Cover (205:78)", "facebook_cover_(205:78).png"),
        ],
    )
    def test_download_filename(self, name: str, filename: str) -> None:
        assert get_social_format(name).download_filename == filename

    def test_list_endpoint(self, test_client: TestClient, auth_headers: dict[str, str]) -> None:
        response = test_client.get("/api/social-formats", headers=auth_headers)
        assert response.status_code == 200
        assert len(response.json()) == 5
        assert response.json()[2] == {
            "name": "Twitter Post (16:9)",
            "width": 1200,
            "height": 675,
            "aspect_ratio": "16:9",
        }

    def test_share_default_format(self, test_client: TestClient, auth_headers: dict[str, str]) -> None:
        response = test_client.get(
            "/api/social-share/next-cloudinary-uploads/banner_abc", headers=auth_headers
        )

        assert response.status_code == 200
        body = response.json()
        assert body["public_id"] == "next-cloudinary-uploads/banner_abc"
        assert body["format"]["name"] == "Instagram Square (1:1)"
        assert body["image_url"] == "https://cdn.test/image/1080x1080/next-cloudinary-uploads/banner_abc.png"
        assert body["download_url"].endswith("?download")
        assert body["download_filename"] == "instagram_square_(1:1).png"

    def test_share_named_format(self, test_client: TestClient, auth_headers: dict[str, str]) -> None:
        response = test_client.get(
            "/api/social-share/banner_abc",
            params={"format": "Twitter Header (3:1)"},
            headers=auth_headers,
        )
        assert response.json()["image_url"] == "https://cdn.test/image/1500x500/banner_abc.png"

    def test_share_unknown_format(self, test_client: TestClient, auth_headers: dict[str, str]) -> None:
        response = test_client.get(
            "/api/social-share/banner_abc", params={"format": "Pinterest Pin"}, headers=auth_headers
        )
        assert response.status_code == 400
        assert response.json()["error"].startswith("Unknown format 'Pinterest Pin'")


class TestConfiguredAllowLists:
    def test_comma_separated_patterns(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PUBLIC_PAGES", "/sign-in, /sign-up,/,/home,/pricing(.*)")
        monkeypatch.setenv("PUBLIC_APIS", "/api/videos,/api/health")
        monkeypatch.setenv("ALLOWED_VIDEO_EXTENSIONS", "MP4,.mov")

        settings = Settings(_env_file=None)

        assert settings.public_pages == ["/sign-in", "/sign-up", "/", "/home", "/pricing(.*)"]
        assert settings.public_apis == ["/api/videos", "/api/health"]
        assert settings.allowed_video_extensions == [".mp4", ".mov"]
        assert AccessPolicy.from_settings(settings).public_pages.matches("/pricing/teams")

    def test_pattern_without_slash_rejected(self) -> None:
        with pytest.raises(ValueError):
            Settings(_env_file=None, public_apis=["api/videos"])

    def test_cloudinary_configured_requires_all_credentials(self, mock_settings: Settings) -> None:
        assert mock_settings.is_cloudinary_configured is True
        partial = mock_settings.model_copy(update={"cloudinary_api_key": None})
        assert partial.is_cloudinary_configured is False

    def test_size_limits_in_bytes(self) -> None:
        settings = Settings(_env_file=None)
        assert settings.max_video_size_bytes == 70 * 1024 * 1024
        assert settings.max_image_size_bytes == 10 * 1024 * 1024
