"""Configuration management using pydantic-settings."""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="Talestolen")
    app_env: str = Field(default="development")
    debug: bool = Field(default=True)
    log_level: str = Field(default="INFO")

    # Relay server
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8080)
    cors_origins: list[str] = Field(default=["*"])
    room_ttl_minutes: int = Field(default=24 * 60, ge=1)
    room_gc_interval_seconds: float = Field(default=600.0, gt=0)

    # Speaking slot durations (seconds)
    default_opening_seconds: int = Field(default=120)
    default_rebuttal_seconds: int = Field(default=60)
    default_reply_seconds: int = Field(default=30)
    min_duration_seconds: int = Field(default=5)
    max_duration_seconds: int = Field(default=1200)

    # Same-device sync
    # Note: every surface on one machine must point at the same file
    snapshot_database_url: str = Field(default="sqlite:///talestolen.db")
    snapshot_key: str = Field(default="talestolen_state_v1")
    broadcast_channel: str = Field(default="talestolen")
    snapshot_poll_interval_seconds: float = Field(default=0.5, gt=0)

    # Peer-to-peer sync
    ice_gathering_timeout_seconds: float = Field(default=3.0, gt=0)
    stun_servers: list[str] = Field(default=["stun:stun.l.google.com:19302"])

    # Relay client
    relay_url: str = Field(default="ws://localhost:8080")
    relay_reconnect_attempts: int = Field(default=5, ge=1)
    relay_reconnect_delay_seconds: float = Field(default=1.0, ge=0)

    # Displays
    display_tick_ms: int = Field(default=250, ge=150, le=300)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
