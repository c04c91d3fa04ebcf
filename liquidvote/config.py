from __future__ import annotations

from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    api_base_url: str
    api_token: str | None = None
    http_timeout_seconds: float = 15.0

    cooldown_seconds: int = 60
    cooldown_margin_seconds: int = 1
    default_retry_after_seconds: int = 60
    ending_soon_hours: int = 24
    suggestion_cutoff_minutes: int = 60

    categories_page_limit: int = 200
    delegate_autocomplete_limit: int = 5

    activity_buffer_size: int = 500
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env", env_prefix="LIQUIDVOTE_", case_sensitive=False, extra="ignore"
    )

    @field_validator("api_base_url")
    @classmethod
    def validate_api_base_url(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("LIQUIDVOTE_API_BASE_URL must be provided")
        return value.rstrip("/")

    def cooldown_timer_delay(self) -> float:
        return float(self.cooldown_seconds + self.cooldown_margin_seconds)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
