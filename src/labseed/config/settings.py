"""
Runtime settings using Pydantic.

Provides environment-based configuration loading with GITLAB_ prefix.
"""

from __future__ import annotations

from dataclasses import dataclass

from pydantic_settings import BaseSettings

from labseed.errors import ConfigurationError


class Settings(BaseSettings):
    """Connection settings for the GitLab instance."""

    url: str | None = None
    token: str | None = None

    # HTTP client settings
    timeout: float = 30.0
    per_page: int = 100

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        env_prefix = "GITLAB_"
        extra = "ignore"


@dataclass(frozen=True)
class Credentials:
    """Resolved connection credentials."""

    url: str
    token: str
    timeout: float = 30.0
    per_page: int = 100


def get_settings() -> Settings:
    """Load settings from the environment (not cached, flags may be re-read in tests)."""
    return Settings()


def resolve_credentials(
    host: str | None = None,
    token: str | None = None,
    settings: Settings | None = None,
) -> Credentials:
    """
    Resolve credentials from CLI flags, falling back to the environment.

    Raises:
        ConfigurationError: If the URL or token is missing from both sources
    """
    settings = settings or get_settings()

    url = host or settings.url
    if not url:
        raise ConfigurationError("GitLab host is required (use --host or GITLAB_URL env)")

    access_token = token or settings.token
    if not access_token:
        raise ConfigurationError("GitLab token is required (use --token or GITLAB_TOKEN env)")

    return Credentials(
        url=url.rstrip("/"),
        token=access_token,
        timeout=settings.timeout,
        per_page=settings.per_page,
    )
