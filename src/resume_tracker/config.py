from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_name: str = "Resume Tracker"
    app_env: str = "development"
    app_host: str = "127.0.0.1"
    app_port: int = 8787
    log_level: str = "INFO"

    database_url: str = "sqlite:///./data/resume_tracker.db"
    data_dir: Path = Path("./data")
    api_prefix: str = "/api"
    cors_origins: str = "http://localhost:5173"

    openai_api_key: str = ""
    openai_base_url: str = "https://api.openai.com/v1"
    openai_model: str = "gpt-3.5-turbo"
    openai_timeout_sec: int = 60
    openai_temperature: float = 0.1
    openai_max_tokens: int = 2000

    parse_cache_ttl_sec: int = 300
    parse_cache_max_entries: int = 256
    scraper_cache_ttl_days: int = 7
    fetch_timeout_sec: int = 10
    activity_log_limit: int = 50

    reminder_tone: str = "gentle"
    followup_reminder_days: int = 4
    thank_you_reminder_days: int = 2
    decision_check_days: int = 10

    storage_mode: str = "api"
    api_base_url: str = "http://127.0.0.1:8787/api"
    api_timeout_sec: int = 30
    local_storage_path: Path = Path("./data/local_store.json")

    @field_validator("app_env")
    @classmethod
    def validate_env(cls, value: str) -> str:
        allowed = {"development", "staging", "production", "test"}
        if value not in allowed:
            raise ValueError(f"app_env must be one of {sorted(allowed)}")
        return value

    @field_validator("storage_mode")
    @classmethod
    def validate_storage_mode(cls, value: str) -> str:
        allowed = {"api", "local"}
        if value not in allowed:
            raise ValueError(f"storage_mode must be one of {sorted(allowed)}")
        return value

    @field_validator("reminder_tone")
    @classmethod
    def validate_reminder_tone(cls, value: str) -> str:
        allowed = {"gentle", "medium", "savage"}
        if value not in allowed:
            raise ValueError(f"reminder_tone must be one of {sorted(allowed)}")
        return value

    @property
    def cors_origin_list(self) -> list[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def ai_configured(self) -> bool:
        key = self.openai_api_key.strip()
        return bool(key and self.openai_base_url and key != "your_openai_api_key_here")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
