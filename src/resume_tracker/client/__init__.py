from __future__ import annotations

from resume_tracker.client.api import ApiError, ApiStorage
from resume_tracker.client.base import AppState, StorageBackend
from resume_tracker.client.local import LocalStorage
from resume_tracker.config import Settings, get_settings


def get_storage(settings: Settings | None = None) -> StorageBackend:
    settings = settings or get_settings()
    if settings.storage_mode == "local":
        return LocalStorage(settings.local_storage_path, cache_ttl_days=settings.scraper_cache_ttl_days)
    return ApiStorage(settings.api_base_url, timeout_sec=settings.api_timeout_sec)


__all__ = ["ApiError", "ApiStorage", "AppState", "LocalStorage", "StorageBackend", "get_storage"]
