from __future__ import annotations

from fastapi import APIRouter

from resume_tracker.api.routes import jobs, migration, scraper_cache
from resume_tracker.api.routes.documents import build_document_router
from resume_tracker.api.schemas import (
    CoverLetterCreateRequest,
    CoverLetterListItem,
    ResumeCreateRequest,
    ResumeListItem,
)
from resume_tracker.db.repositories import COVER_LETTER, RESUME
from resume_tracker.types import CoverLetterFields, CoverLetterRecord, DocumentFields, ResumeRecord


def build_api_router(prefix: str = "/api") -> APIRouter:
    router = APIRouter(prefix=prefix)
    router.include_router(jobs.router)
    router.include_router(
        build_document_router(
            RESUME,
            prefix="/resumes",
            create_model=ResumeCreateRequest,
            update_model=DocumentFields,
            record_model=ResumeRecord,
            list_model=ResumeListItem,
        )
    )
    router.include_router(
        build_document_router(
            COVER_LETTER,
            prefix="/cover-letters",
            create_model=CoverLetterCreateRequest,
            update_model=CoverLetterFields,
            record_model=CoverLetterRecord,
            list_model=CoverLetterListItem,
        )
    )
    router.include_router(migration.router)
    router.include_router(scraper_cache.router)
    return router
