"""
MediaShelf Configuration Management Module

This module provides configuration management for the MediaShelf service using
Pydantic Settings. It loads and validates all environment variables required for:
- Application settings (name, environment, debug mode, logging)
- Route access policy allow-lists (public pages and public APIs)
- Identity provider settings (Auth0 with local JWT fallback)
- MongoDB database connection and pooling
- Redis caching
- Cloudinary media transformation and delivery credentials
- Upload validation and limits

All settings support environment variable overrides and .env file loading.
"""

from functools import lru_cache
from typing import Annotated

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    """
    Configuration settings for the MediaShelf service.

    Configuration Categories:
    - Application: Core app settings like name, environment, debug mode
    - Access policy: Paths reachable without authentication
    - Identity: Auth0 settings with local JWT fallback and session cookie name
    - MongoDB: Database connection URI and connection pool settings
    - Redis: Cache connection URL and TTL settings
    - Cloudinary: Media service credentials and upload folders
    - Upload: File size limits and allowed extensions

    Example usage:
        ```python
        from mediashelf.config import get_settings

        settings = get_settings()
        print(f"Public pages: {settings.public_pages}")
        ```
    """

    # =========================================================================
    # Application Settings
    # =========================================================================

    app_name: str = Field(
        default="MediaShelf",
        description="Application name displayed in API documentation and logs",
    )

    app_env: str = Field(
        default="development",
        description="Application environment (development, staging, production, testing)",
    )

    debug: bool = Field(default=True, description="Enable debug mode with verbose logging")

    log_level: str = Field(
        default="info", description="Logging level (debug, info, warning, error, critical)"
    )

    json_logs: bool = Field(
        default=False, description="Emit JSON log lines instead of human-readable text"
    )

    secret_key: str = Field(
        default="development-secret-key-change-in-production-32chars",
        description="Secret key for local JWT signing. Must be a secure random string.",
        min_length=32,
    )

    host: str = Field(default="0.0.0.0", description="Host address for the API server to bind to")

    port: int = Field(default=8000, description="Port number for the API server", ge=1, le=65535)

    cors_origins: Annotated[list[str], NoDecode] = Field(
        default=["http://localhost:3000"],
        description="List of allowed CORS origins for frontend access",
    )

    # =========================================================================
    # Access Policy
    # =========================================================================

    public_pages: Annotated[list[str], NoDecode] = Field(
        default=["/sign-in", "/sign-up", "/", "/home"],
        description="Page patterns served to anonymous users",
    )

    public_apis: Annotated[list[str], NoDecode] = Field(
        default=["/api/videos"],
        description="API patterns reachable without authentication",
    )

    home_path: str = Field(default="/home", description="Dashboard path")

    sign_in_path: str = Field(default="/sign-in", description="Sign-in page path")

    # =========================================================================
    # Identity Provider Configuration
    # =========================================================================

    auth0_domain: str | None = Field(
        default=None, description="Auth0 tenant domain (e.g., your-tenant.auth0.com)"
    )

    auth0_api_audience: str | None = Field(
        default=None, description="Auth0 API audience identifier for token validation"
    )

    auth0_client_id: str | None = Field(default=None, description="Auth0 application client ID")

    auth0_client_secret: str | None = Field(
        default=None, description="Auth0 application client secret"
    )

    jwt_expiration_hours: int = Field(
        default=24, description="Local JWT expiration time in hours", ge=1, le=168
    )

    session_cookie_name: str = Field(
        default="__session", description="Cookie carrying the session token"
    )

    # =========================================================================
    # MongoDB Configuration
    # =========================================================================

    mongodb_uri: str = Field(
        default="mongodb://localhost:27017",
        description="MongoDB connection URI (e.g., mongodb://localhost:27017)",
    )

    mongodb_db_name: str = Field(default="mediashelf", description="MongoDB database name")

    mongodb_min_pool_size: int = Field(
        default=1, description="Minimum number of connections in MongoDB connection pool", ge=0
    )

    mongodb_max_pool_size: int = Field(
        default=50, description="Maximum number of connections in MongoDB connection pool", ge=1
    )

    # =========================================================================
    # Redis Configuration
    # =========================================================================

    redis_url: str = Field(
        default="redis://localhost:6379",
        description="Redis connection URL (e.g., redis://localhost:6379)",
    )

    redis_cache_ttl_seconds: int = Field(
        default=60, description="TTL for cached video listings in seconds", ge=1
    )

    # =========================================================================
    # Cloudinary Configuration
    # =========================================================================

    cloudinary_cloud_name: str | None = Field(
        default=None, description="Cloudinary cloud name used in delivery URLs"
    )

    cloudinary_api_key: str | None = Field(default=None, description="Cloudinary API key")

    cloudinary_api_secret: str | None = Field(default=None, description="Cloudinary API secret")

    video_upload_folder: str = Field(
        default="video-uploads", description="Cloudinary folder for uploaded videos"
    )

    image_upload_folder: str = Field(
        default="next-cloudinary-uploads", description="Cloudinary folder for uploaded images"
    )

    # =========================================================================
    # Upload Settings
    # =========================================================================

    max_video_size_mb: int = Field(
        default=70, description="Maximum video upload size in megabytes", ge=1, le=2048
    )

    max_image_size_mb: int = Field(
        default=10, description="Maximum image upload size in megabytes", ge=1, le=100
    )

    allowed_video_extensions: Annotated[list[str], NoDecode] = Field(
        default=[".mp4", ".mov", ".m4v", ".mkv", ".webm", ".avi"],
        description="Video file extensions accepted for upload",
    )

    allowed_image_extensions: Annotated[list[str], NoDecode] = Field(
        default=[".png", ".jpg", ".jpeg", ".webp", ".gif"],
        description="Image file extensions accepted for upload",
    )

    # =========================================================================
    # Model Configuration
    # =========================================================================

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False, extra="ignore"
    )

    # =========================================================================
    # Validators
    # =========================================================================

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate that log_level is a valid logging level."""
        valid_levels = {"debug", "info", "warning", "error", "critical"}
        normalized = v.lower()
        if normalized not in valid_levels:
            raise ValueError(f"Invalid log_level '{v}'. Must be one of: {', '.join(valid_levels)}")
        return normalized

    @field_validator("app_env")
    @classmethod
    def validate_app_env(cls, v: str) -> str:
        """Validate that app_env is a valid environment name."""
        valid_envs = {"development", "staging", "production", "testing"}
        normalized = v.lower()
        if normalized not in valid_envs:
            raise ValueError(f"Invalid app_env '{v}'. Must be one of: {', '.join(valid_envs)}")
        return normalized

    @field_validator("cors_origins", mode="before")
    @classmethod
    def validate_cors_origins(cls, v: str | list[str]) -> list[str]:
        """Parse CORS origins from comma-separated string if provided as string."""
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    @field_validator("public_pages", "public_apis", mode="before")
    @classmethod
    def validate_path_patterns(cls, v: str | list[str]) -> list[str]:
        """
        Parse path patterns from a comma-separated string and require a leading slash.

        Patterns are compiled once at startup, so a malformed entry is a
        configuration error rather than something to discover per request.
        """
        patterns = [p.strip() for p in v.split(",")] if isinstance(v, str) else list(v)
        patterns = [p for p in patterns if p]
        for pattern in patterns:
            if not pattern.startswith("/"):
                raise ValueError(f"Path pattern '{pattern}' must start with '/'")
        return patterns

    @field_validator("home_path", "sign_in_path")
    @classmethod
    def validate_redirect_path(cls, v: str) -> str:
        """Redirect targets are same-origin absolute paths."""
        if not v.startswith("/"):
            raise ValueError(f"Redirect path '{v}' must start with '/'")
        return v

    @field_validator("allowed_video_extensions", "allowed_image_extensions", mode="before")
    @classmethod
    def validate_allowed_extensions(cls, v: str | list[str]) -> list[str]:
        """Parse allowed extensions from comma-separated string if provided as string."""
        if isinstance(v, str):
            extensions = [ext.strip() for ext in v.split(",") if ext.strip()]
        else:
            extensions = list(v)
        return [
            (ext if ext.startswith(".") else f".{ext}").lower() for ext in extensions
        ]

    # =========================================================================
    # Computed Properties
    # =========================================================================

    @property
    def is_auth0_enabled(self) -> bool:
        """
        Check if Auth0 authentication is fully configured.

        When False, the application falls back to local JWT authentication
        using HS256 with the configured secret_key.
        """
        return all([self.auth0_domain, self.auth0_client_id, self.auth0_client_secret])

    @property
    def is_cloudinary_configured(self) -> bool:
        """Check that all three Cloudinary credentials are present."""
        return all(
            [self.cloudinary_cloud_name, self.cloudinary_api_key, self.cloudinary_api_secret]
        )

    @property
    def max_video_size_bytes(self) -> int:
        """Maximum video upload size in bytes."""
        return self.max_video_size_mb * 1024 * 1024

    @property
    def max_image_size_bytes(self) -> int:
        """Maximum image upload size in bytes."""
        return self.max_image_size_mb * 1024 * 1024

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.app_env == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.app_env == "production"


@lru_cache
def get_settings() -> Settings:
    """
    Get the global Settings instance.

    The @lru_cache decorator ensures that the Settings object is created only
    once on first call, and subsequent calls return the cached instance without
    re-reading environment variables or .env files.

    Returns:
        Settings: The global configuration instance.
    """
    return Settings()
