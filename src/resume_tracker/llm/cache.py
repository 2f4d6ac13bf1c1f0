from __future__ import annotations

import hashlib
import logging
import threading
import time
from collections import OrderedDict
from collections.abc import Callable
from datetime import timedelta
from typing import Protocol

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from resume_tracker.db.base import utcnow
from resume_tracker.db.repositories import Repository
from resume_tracker.errors import TrackerError
from resume_tracker.types import ParseResult

logger = logging.getLogger(__name__)

STORED_KEY_PREFIX = "parse:"
STORED_KEY_MAX_LENGTH = 512


class ResultCache(Protocol):
    def get(self, key: str) -> ParseResult | None: ...

    def set(self, key: str, result: ParseResult) -> None: ...


class ParseCache:
    """Process-local parse results with a TTL and an LRU size bound."""

    def __init__(
        self,
        ttl_sec: float = 300,
        max_entries: int = 256,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_sec = ttl_sec
        self.max_entries = max_entries
        self._clock = clock
        self._entries: OrderedDict[str, tuple[float, ParseResult]] = OrderedDict()
        self._lock = threading.Lock()

    def get(self, key: str) -> ParseResult | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            stored_at, result = entry
            if self._clock() - stored_at >= self.ttl_sec:
                del self._entries[key]
                return None
            self._entries.move_to_end(key)
            return result.model_copy(deep=True)

    def set(self, key: str, result: ParseResult) -> None:
        with self._lock:
            self._entries[key] = (self._clock(), result.model_copy(deep=True))
            self._entries.move_to_end(key)
            while len(self._entries) > self.max_entries:
                self._entries.popitem(last=False)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


class StoredParseCache:
    """Parse results persisted as scraper cache rows with an explicit expiry.

    Database failures degrade to a miss on read and a skipped write.
    """

    def __init__(self, session_factory: Callable[[], Session], ttl: timedelta):
        self.session_factory = session_factory
        self.ttl = ttl

    @staticmethod
    def stored_key(key: str) -> str:
        stored = STORED_KEY_PREFIX + key
        if len(stored) > STORED_KEY_MAX_LENGTH:
            # Long context payloads do not fit the input_hash column.
            stored = STORED_KEY_PREFIX + hashlib.sha256(key.encode("utf-8")).hexdigest()
        return stored

    def get(self, key: str) -> ParseResult | None:
        try:
            with self.session_factory() as session:
                entry = Repository(session).get_cache_entry(self.stored_key(key))
                payload = entry.result if entry is not None else None
        except SQLAlchemyError as exc:
            logger.warning("Stored parse cache lookup failed: %s", exc)
            return None
        if payload is None:
            return None
        try:
            return ParseResult.model_validate_json(payload)
        except PydanticValidationError:
            logger.warning("Discarding unreadable stored parse result for key=%s", key)
            return None

    def set(self, key: str, result: ParseResult) -> None:
        payload = result.model_copy(update={"from_cache": False}).model_dump_json(by_alias=True)
        try:
            with self.session_factory() as session:
                Repository(session).upsert_cache_entry(
                    self.stored_key(key),
                    payload,
                    expires_at=utcnow() + self.ttl,
                )
        except (SQLAlchemyError, TrackerError) as exc:
            logger.warning("Skipping stored parse cache write: %s", exc)
