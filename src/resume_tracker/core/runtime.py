from __future__ import annotations

from resume_tracker.config import get_settings
from resume_tracker.llm.cache import ParseCache

_PARSE_CACHE: ParseCache | None = None


def get_parse_cache() -> ParseCache:
    global _PARSE_CACHE
    if _PARSE_CACHE is None:
        settings = get_settings()
        _PARSE_CACHE = ParseCache(
            ttl_sec=settings.parse_cache_ttl_sec,
            max_entries=settings.parse_cache_max_entries,
        )
    return _PARSE_CACHE
