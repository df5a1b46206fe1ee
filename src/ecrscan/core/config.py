"""Configuration management using pydantic-settings."""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DOCKER_IMAGE_CONFIG_MEDIA_TYPE = "application/vnd.docker.container.image.v1+json"
OCI_IMAGE_CONFIG_MEDIA_TYPE = "application/vnd.oci.image.config.v1+json"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="ECRSCAN_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # AWS
    aws_region: str | None = Field(default=None)
    aws_profile: str | None = Field(default=None)

    # Fetch Configuration
    max_concurrent_repositories: int = Field(default=5, ge=1, le=50)
    page_size: int = Field(default=100, ge=1, le=1000)

    # Only images with one of these artifact media types are reported.
    # An empty list disables the filter.
    artifact_media_types: list[str] = Field(
        default=[DOCKER_IMAGE_CONFIG_MEDIA_TYPE, OCI_IMAGE_CONFIG_MEDIA_TYPE]
    )

    # Rate Limiting
    api_requests_per_second: float = Field(default=10.0, gt=0, le=1000)

    # Retry / Backoff
    throttle_max_retries: int = Field(default=5, ge=0, le=20)
    transient_max_retries: int = Field(default=2, ge=0, le=10)
    backoff_base_seconds: float = Field(default=0.5, ge=0, le=60)
    backoff_max_seconds: float = Field(default=20.0, ge=0, le=600)

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="WARNING"
    )
    log_format: Literal["json", "text"] = Field(default="text")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
