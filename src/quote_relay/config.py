"""Application settings loaded from environment variables and an optional .env file."""
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings for the quote relay. Every field can be overridden by env var."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database (alert records)
    database_url: str = Field(default="sqlite:///./quote_relay.db")
    sql_echo: bool = False

    # Auth: tokens are issued elsewhere, we only verify them
    jwt_secret: str = Field(default="dev-secret-change-me", min_length=16)
    jwt_algorithm: str = "HS256"

    # Market data
    alpha_vantage_api_key: str | None = None
    alpha_vantage_base_url: str = "https://www.alphavantage.co/query"
    provider_timeout_seconds: float = Field(default=10.0, gt=0)

    # Real-time engine
    poll_interval_seconds: float = Field(default=30.0, gt=0)
    max_symbols_per_connection: int = Field(default=20, ge=1)
    outbound_queue_size: int = Field(default=256, ge=1)

    # Server
    log_level: str = "INFO"
    host: str = "127.0.0.1"
    port: int = 8001


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide settings (read once)."""
    return Settings()
