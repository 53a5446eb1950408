from __future__ import annotations

from pydantic import ConfigDict, Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    redis_url: str = Field("redis://localhost:6379", alias="REDIS_URL")
    store_timeout_s: float = Field(2.0, alias="STORE_TIMEOUT_S")

    daily_limit: int = Field(1000, alias="DAILY_LIMIT")
    concurrent_limit: int = Field(100, alias="CONCURRENT_LIMIT")

    session_ttl_s: int = Field(600, alias="SESSION_TTL_S")
    stale_after_s: int = Field(
        300,
        alias="STALE_AFTER_S",
        description="Age after which a liveness record no longer counts as live",
    )
    heartbeat_interval_s: int = Field(30, alias="HEARTBEAT_INTERVAL_S")

    marker_max_age_s: int = Field(60 * 60 * 24, alias="MARKER_MAX_AGE_S")
    cookie_secure: bool = Field(False, alias="COOKIE_SECURE")
    day_key_tz: str = Field(
        "UTC",
        alias="DAY_KEY_TZ",
        description="Time zone used to partition the daily admission counter",
    )

    model_config = ConfigDict(
        extra="ignore",
        env_file=".env",
        case_sensitive=False,
        populate_by_name=True,
    )
