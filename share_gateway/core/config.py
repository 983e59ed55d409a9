from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables."""

    project_name: str = "Immich Share Gateway"
    api_version: str = "0.1.0"

    # Backend (Immich) connection
    immich_url: str = Field(
        default="http://immich-server:2283",
        description="Base URL of the Immich server; the API is served under /api",
    )
    backend_timeout_seconds: float = Field(default=30.0)

    # Gallery listing
    public_base_url: str = Field(
        default="https://i.techie.pics",
        description="External base URL used in listing URLs. Empty = derive from request",
    )
    listing_default_page_size: int = Field(default=20, ge=1)

    # Unlock credentials and session cookie
    credential_ttl_minutes: int = Field(default=60, ge=1)
    session_cookie_name: str = Field(default="session")
    session_cookie_secure: bool = Field(default=False)

    # Asset serving behaviour
    download_original_photo: bool = Field(
        default=True, description="Serve untouched originals for the 'original' size"
    )
    allow_download_all: bool = Field(
        default=True, description="Allow zip download of a whole share when the link permits it"
    )
    show_home_page: bool = Field(default=True)
    invalid_response: str | None = Field(
        default=None,
        description="Override for invalid requests: a status code or a URL to redirect to",
    )
    response_headers: dict[str, str] = Field(
        default_factory=lambda: {"Cache-Control": "public, max-age=2592000"},
        description="Extra headers attached to asset and page responses",
    )

    # Logging configuration
    log_level: str = Field(default="INFO", description="Log level (DEBUG, INFO, WARNING, ERROR)")
    log_format: str = Field(default="json", description="Log format: 'json' or 'text'")

    metrics_enabled: bool = Field(default=True)

    # Bundled server runner
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=3000)

    @property
    def immich_api_url(self) -> str:
        return self.immich_url.rstrip("/") + "/api"

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
