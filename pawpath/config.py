from functools import lru_cache
from typing import List

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # ==========================================================================
    # MongoDB Configuration
    # ==========================================================================
    mongodb_uri: str = "mongodb://localhost:27017/?replicaSet=rs0"
    mongodb_database: str = "pawpath"

    # ==========================================================================
    # Redis Configuration
    # ==========================================================================
    redis_url: str = "redis://localhost:6379/0"

    # Exclusive locks around multi-entity transactions
    lock_timeout_seconds: float = 10.0
    lock_blocking_timeout_seconds: float = 5.0

    # ==========================================================================
    # Rate Limiting
    # ==========================================================================
    rate_limit_per_minute: int = 60
    rate_limit_auth_per_minute: int = 300

    # ==========================================================================
    # Application Settings
    # ==========================================================================
    api_v1_str: str = "/api/v1"
    debug: bool = False
    log_level: str = "INFO"
    cors_origins: str = "*"

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse comma-separated CORS origins into list."""
        if self.cors_origins == "*":
            return ["*"]
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    # ==========================================================================
    # Marketplace Configuration
    # ==========================================================================
    default_service_radius_km: float = 5.0
    max_walk_photos: int = 5
    max_offer_message_length: int = 500
    max_review_comment_length: int = 500
    notifications_page_size: int = 50
    payments_page_size: int = 20
    # Local zone of the marketplace as a fixed UTC offset (Lima, UTC-5)
    local_utc_offset_minutes: int = -300
    # Dispatch notifications in a background task after commit
    notifications_in_background: bool = True

    @field_validator("default_service_radius_km")
    @classmethod
    def _radius_positive(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("DEFAULT_SERVICE_RADIUS_KM must be positive")
        return value

    @field_validator("max_walk_photos")
    @classmethod
    def _photo_cap_positive(cls, value: int) -> int:
        if value < 1:
            raise ValueError("MAX_WALK_PHOTOS must be at least 1")
        return value

    @field_validator("local_utc_offset_minutes")
    @classmethod
    def _offset_in_range(cls, value: int) -> int:
        if not -14 * 60 <= value <= 14 * 60:
            raise ValueError("LOCAL_UTC_OFFSET_MINUTES must be within +/-14 hours")
        return value

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore", case_sensitive=False
    )


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses LRU cache to avoid re-reading env vars on every request.
    """
    return Settings()


# Convenience export
settings = get_settings()
