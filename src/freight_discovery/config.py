"""Runtime settings for freight discovery.

Settings are read from environment variables with the FREIGHT_DISCOVERY_
prefix. They tune transport behaviour only; selection semantics are never
affected by settings.

Environment Variables:
    FREIGHT_DISCOVERY_REQUEST_TIMEOUT_SECONDS: Per-request timeout (default 30)
    FREIGHT_DISCOVERY_USER_AGENT: User-Agent header sent to registries
    FREIGHT_DISCOVERY_TAG_PAGE_SIZE: Page size requested when listing tags
    FREIGHT_DISCOVERY_MAX_TAG_PAGES: Upper bound on followed tag list pages

Example:
    >>> settings = get_settings()
    >>> settings.request_timeout_seconds
    30.0
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class DiscoverySettings(BaseSettings):
    """Transport settings shared by registry clients and index fetches."""

    model_config = SettingsConfigDict(
        env_prefix="FREIGHT_DISCOVERY_",
        extra="ignore",
        frozen=True,
    )

    request_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Timeout applied to every HTTP request",
    )
    user_agent: str = Field(
        default="freight-discovery",
        min_length=1,
        description="User-Agent header for registry and index requests",
    )
    tag_page_size: int = Field(
        default=1000,
        ge=1,
        description="Number of tags requested per page (n= query parameter)",
    )
    max_tag_pages: int = Field(
        default=100,
        ge=1,
        description="Maximum number of Link-header pages followed when listing tags",
    )


@lru_cache(maxsize=1)
def get_settings() -> DiscoverySettings:
    """Return the process-wide settings, read once from the environment."""
    return DiscoverySettings()


__all__ = ["DiscoverySettings", "get_settings"]
