from __future__ import annotations

from typing import Any

from pydantic import Field

from resume_tracker.core.migration import ImportResults
from resume_tracker.db.models import JobDescription
from resume_tracker.types import (
    ActivityLogRecord,
    CamelModel,
    CoverLetterFields,
    CoverLetterRecord,
    DocumentFields,
    DocumentRef,
    JobDescriptionFields,
    JobDescriptionRecord,
    JobRef,
    ParseResult,
    ResumeRecord,
    StatusHistoryRecord,
    UtcDateTime,
)


class JobCreateRequest(JobDescriptionFields):
    id: str | None = None


class JobUpdateRequest(JobDescriptionFields):
    pass


class JobListItem(JobDescriptionRecord):
    linked_resumes: list[DocumentRef] = Field(default_factory=list)
    linked_cover_letters: list[DocumentRef] = Field(default_factory=list)
    duplicate_of: JobRef | None = None
    duplicates: list[JobRef] = Field(default_factory=list)


class JobDetail(JobDescriptionRecord):
    linked_resumes: list[ResumeRecord] = Field(default_factory=list)
    linked_cover_letters: list[CoverLetterRecord] = Field(default_factory=list)
    duplicate_of: JobDescriptionRecord | None = None
    duplicates: list[JobDescriptionRecord] = Field(default_factory=list)
    status_history: list[StatusHistoryRecord] = Field(default_factory=list)
    activity_log: list[ActivityLogRecord] = Field(default_factory=list)

    @classmethod
    def build(cls, job: JobDescription, activity: list[Any]) -> JobDetail:
        detail = cls.model_validate(job)
        detail.activity_log = [ActivityLogRecord.model_validate(entry) for entry in activity]
        return detail


class JobStats(CamelModel):
    total: int
    applied: int
    interviewing: int
    rejected: int
    offered: int
    archived: int
    pending: int


class ParseTextRequest(CamelModel):
    raw_text: str = ""
    additional_context: dict[str, Any] | None = None


class JobParseRequest(CamelModel):
    additional_context: dict[str, Any] | None = None


class JobParseResponse(CamelModel):
    job_description: JobDescriptionRecord
    result: ParseResult


class ResumeCreateRequest(DocumentFields):
    id: str | None = None


class CoverLetterCreateRequest(CoverLetterFields):
    id: str | None = None


class ResumeListItem(ResumeRecord):
    linked_job_descriptions: list[JobRef] = Field(default_factory=list)


class CoverLetterListItem(CoverLetterRecord):
    linked_job_descriptions: list[JobRef] = Field(default_factory=list)


class DuplicateCheckRequest(CamelModel):
    file_name: str
    file_size: int = 0
    file_data: str = ""


class DuplicateCheckResponse(CamelModel):
    is_duplicate: bool
    type: str | None = None
    existing: DocumentRef | None = None


class ScraperCacheWriteRequest(CamelModel):
    input_hash: str | None = None
    result: Any = None
    expires_at: UtcDateTime | None = None


class CacheStats(CamelModel):
    total: int
    active: int
    expired: int


class ClearDataRequest(CamelModel):
    confirm: str | None = None


class CsvImportRequest(CamelModel):
    csv_text: str = ""


class CsvImportResponse(CamelModel):
    success: bool
    preview: str
    row_errors: list[str] = Field(default_factory=list)
    results: ImportResults


class AgingStats(CamelModel):
    fresh: int
    followup: int
    stale: int
    cold: int


class SnoozeRequest(CamelModel):
    days: int
