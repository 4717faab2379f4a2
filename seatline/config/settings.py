"""Application settings loaded from environment variables."""

from functools import lru_cache

from fastapi import Request
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Database
    DATABASE_URL: str = "sqlite:///./data/seatline.db"
    SEED_TABLES: str = "24,12,25,23"

    # Live channel
    HEARTBEAT_INTERVAL_SECONDS: float = 15.0
    SUBSCRIBER_QUEUE_SIZE: int = 64

    # Paging
    MESSAGE_PAGE_DEFAULT: int = 20
    MESSAGE_PAGE_MAX: int = 100
    SEARCH_LIMIT_DEFAULT: int = 30

    # CORS
    ALLOWED_ORIGINS: str = "http://localhost:3000,http://localhost:5173"

    # Rate limiting (requests per minute per client address)
    RATE_LIMIT_STANDARD: int = 120
    RATE_LIMIT_SEND: int = 30

    LOG_LEVEL: str = "INFO"

    @property
    def allowed_origins_list(self) -> list[str]:
        return [o.strip() for o in self.ALLOWED_ORIGINS.split(",") if o.strip()]

    @property
    def seed_table_ids(self) -> list[str]:
        return [t.strip() for t in self.SEED_TABLES.split(",") if t.strip()]

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")


class ClientSettings(BaseSettings):
    """Settings for the incoming-request client (env prefix ``SEATLINE_CLIENT_``)."""

    API_BASE_URL: str = "http://127.0.0.1:8000"
    WATERMARK_FILE: str = "~/.seatline/watermarks.json"
    BACKLOG_LIMIT: int = 200

    POLL_BASE_SECONDS: float = 4.0
    POLL_MAX_SECONDS: float = 60.0
    POLL_BACKOFF: float = 2.0
    POLL_HIDDEN_FACTOR: float = 3.0

    model_config = SettingsConfigDict(
        env_prefix="SEATLINE_CLIENT_", env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )


def app_settings(request: Request) -> Settings:
    """FastAPI dependency: the settings the running app was built with."""
    return request.app.state.settings


@lru_cache()
def get_settings() -> Settings:
    return Settings()


@lru_cache()
def get_client_settings() -> ClientSettings:
    return ClientSettings()
