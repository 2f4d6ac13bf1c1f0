from __future__ import annotations

from collections.abc import Generator
from datetime import timedelta

from sqlalchemy.orm import Session

from resume_tracker.config import get_settings
from resume_tracker.core.runtime import get_parse_cache
from resume_tracker.db.session import SessionLocal, get_db_session
from resume_tracker.llm.cache import StoredParseCache
from resume_tracker.llm.parsing import JobDescriptionParser


def get_db() -> Generator[Session, None, None]:
    yield from get_db_session()


def get_parser() -> JobDescriptionParser:
    settings = get_settings()
    return JobDescriptionParser(
        settings=settings,
        cache=get_parse_cache(),
        stored_cache=StoredParseCache(SessionLocal, timedelta(days=settings.scraper_cache_ttl_days)),
    )
