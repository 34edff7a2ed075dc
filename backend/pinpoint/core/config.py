from __future__ import annotations

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    debug: bool = Field(False, alias="PINPOINT_DEBUG")

    mapbox_access_token: str | None = Field(
        None, alias="PINPOINT_MAPBOX_ACCESS_TOKEN"
    )
    geocoder_endpoint: str = Field(
        "https://api.mapbox.com/geocoding/v5/mapbox.places",
        alias="PINPOINT_GEOCODER_ENDPOINT",
    )
    geocoder_timeout: float = Field(8.0, gt=0, alias="PINPOINT_GEOCODER_TIMEOUT")
    geocoder_result_limit: int = Field(
        5, ge=1, le=10, alias="PINPOINT_GEOCODER_RESULT_LIMIT"
    )
    geocoder_max_concurrency: int = Field(
        4, ge=1, le=50, alias="PINPOINT_GEOCODER_MAX_CONCURRENCY"
    )
    # Stricter structured-field policy: no postcode, no lookup.
    geocoder_require_postcode: bool = Field(
        True, alias="PINPOINT_GEOCODER_REQUIRE_POSTCODE"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @field_validator("mapbox_access_token", mode="before")
    def _blank_token_is_missing(cls, value: str | None) -> str | None:
        if isinstance(value, str):
            return value.strip() or None
        return value

    @field_validator("geocoder_endpoint", mode="before")
    def _strip_endpoint(cls, value: str) -> str:
        if isinstance(value, str):
            return value.strip().rstrip("/")
        return value


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached application settings."""

    return Settings()  # type: ignore[call-arg]
