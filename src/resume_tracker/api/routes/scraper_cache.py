from __future__ import annotations

import json
from datetime import timedelta

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from resume_tracker.api.deps import get_db
from resume_tracker.api.schemas import CacheStats, ScraperCacheWriteRequest
from resume_tracker.config import get_settings
from resume_tracker.db.base import utcnow
from resume_tracker.db.repositories import Repository
from resume_tracker.errors import NotFoundError, ValidationError, missing_fields_message
from resume_tracker.types import ScraperCacheRecord

router = APIRouter(prefix="/scraper-cache", tags=["scraper-cache"])


@router.get("", response_model=list[ScraperCacheRecord])
def list_entries(
    input_hash: str | None = Query(default=None, alias="inputHash"),
    limit: int = Query(default=100, ge=1),
    db: Session = Depends(get_db),
) -> list[ScraperCacheRecord]:
    rows = Repository(db).list_cache_entries(input_hash=input_hash, limit=limit)
    return [ScraperCacheRecord.model_validate(row) for row in rows]


@router.get("/stats/summary", response_model=CacheStats)
def cache_stats(db: Session = Depends(get_db)) -> CacheStats:
    return CacheStats.model_validate(Repository(db).cache_stats())


@router.delete("/cleanup/expired")
def cleanup_expired(db: Session = Depends(get_db)) -> dict:
    count = Repository(db).cleanup_expired_cache()
    return {"message": f"Cleaned up {count} expired cache entries", "count": count}


@router.get("/{input_hash}", response_model=ScraperCacheRecord)
def get_entry(input_hash: str, db: Session = Depends(get_db)) -> ScraperCacheRecord:
    entry = Repository(db).get_cache_entry(input_hash)
    if entry is None:
        raise NotFoundError("Cache entry not found or expired")
    return ScraperCacheRecord.model_validate(entry)


@router.post("", response_model=ScraperCacheRecord, status_code=201)
def upsert_entry(payload: ScraperCacheWriteRequest, db: Session = Depends(get_db)) -> ScraperCacheRecord:
    if not payload.input_hash or payload.result in (None, "", {}, []):
        raise ValidationError(missing_fields_message(["inputHash", "result"]))
    result = payload.result if isinstance(payload.result, str) else json.dumps(payload.result)
    expires_at = payload.expires_at or utcnow() + timedelta(days=get_settings().scraper_cache_ttl_days)
    entry = Repository(db).upsert_cache_entry(payload.input_hash, result, expires_at=expires_at)
    return ScraperCacheRecord.model_validate(entry)


@router.delete("/{input_hash}")
def delete_entry(input_hash: str, db: Session = Depends(get_db)) -> dict:
    Repository(db).delete_cache_entry(input_hash)
    return {"message": "Cache entry deleted successfully"}
