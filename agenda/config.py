from functools import lru_cache
from typing import List

from pydantic import AnyHttpUrl, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    app_name: str = Field(default="Agenda Booking Engine")
    cors_origins: List[str] = Field(
        default_factory=lambda: [
            "http://localhost:3000",
            "http://127.0.0.1:3000",
        ]
    )
    log_level: str = Field(
        default="INFO"
    )
    slot_interval_minutes: int = Field(
        default=30, ge=1, le=24 * 60
    )
    notification_queue_size: int = Field(
        default=1000, ge=1
    )
    seed_demo_data: bool = Field(
        default=True
    )
    email_api_base_url: AnyHttpUrl | None = Field(
        default=None
    )
    email_api_key: str | None = Field(
        default=None
    )
    email_from: str = Field(
        default="reservas@agenda.local"
    )
    email_timeout: float = Field(
        default=10.0
    )

    model_config = SettingsConfigDict(env_prefix="AGENDA_", case_sensitive=False)

    @field_validator("cors_origins", mode="before")
    def _split_origins(cls, value):
        if isinstance(value, str):
            return [origin.strip() for origin in value.split(",") if origin.strip()]
        return value


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached application settings."""

    return Settings()
