from __future__ import annotations

import json
import logging
from typing import Any

from pydantic import Field, field_validator
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import SQLAlchemyError

from resume_tracker.db.base import utcnow
from resume_tracker.db.models import ActivityLog, JobDescription, ScraperCache, StatusHistory
from resume_tracker.db.repositories import (
    COVER_LETTER,
    DOCUMENT_REQUIRED_FIELDS,
    JOB_REQUIRED_FIELDS,
    RESUME,
    DocumentKind,
    Repository,
)
from resume_tracker.errors import AlreadyLinkedError, TrackerError, ValidationError, require_fields
from resume_tracker.types import (
    ActivityLogRecord,
    CamelModel,
    CoverLetterFields,
    CoverLetterRecord,
    DocumentFields,
    JobDescriptionFields,
    JobDescriptionRecord,
    ResumeRecord,
    ScraperCacheRecord,
    StatusHistoryRecord,
    UtcDateTime,
    format_utc,
)

logger = logging.getLogger(__name__)

EXPORT_VERSION = 5
IMPORT_SECTIONS = ("resumes", "coverLetters", "jobDescriptions", "scraperCache")
_NESTED_GROUPS = {
    "source1": {"type": "source1Type", "content": "source1Content"},
    "source2": {"type": "source2Type", "content": "source2Content"},
    "contact": {"name": "contactName", "email": "contactEmail", "phone": "contactPhone"},
}
# Row-level failures during import; anything else is a bug and propagates.
ITEM_ERRORS = (TrackerError, PydanticValidationError, ValueError, TypeError)
# Database failures on one row roll back that row only.
ROW_ERRORS = (*ITEM_ERRORS, SQLAlchemyError)


class StatusHistoryImport(CamelModel):
    status: str
    interview_stage: str | None = None
    offer_stage: str | None = None
    date: UtcDateTime | None = None
    notes: str | None = None


class ActivityImport(CamelModel):
    timestamp: UtcDateTime | None = None
    type: str = "field_updated"
    field: str | None = None
    from_value: Any = None
    to_value: Any = None
    description: str | None = None
    details: str | None = None

    @field_validator("from_value", "to_value", mode="before")
    @classmethod
    def decode_json_text(cls, value: Any) -> Any:
        if isinstance(value, str):
            try:
                return json.loads(value)
            except json.JSONDecodeError:
                return value
        return value


class ScraperCacheImport(CamelModel):
    id: str | None = None
    input_hash: str
    result: Any
    expires_at: UtcDateTime
    created_at: UtcDateTime | None = None

    @field_validator("result", mode="before")
    @classmethod
    def serialize_result(cls, value: Any) -> str:
        return value if isinstance(value, str) else json.dumps(value)


class ImportCounts(CamelModel):
    imported: int = 0
    errors: int = 0


class ImportResults(CamelModel):
    resumes: ImportCounts = Field(default_factory=ImportCounts)
    cover_letters: ImportCounts = Field(default_factory=ImportCounts)
    job_descriptions: ImportCounts = Field(default_factory=ImportCounts)
    scraper_cache: ImportCounts = Field(default_factory=ImportCounts)
    links: ImportCounts = Field(default_factory=ImportCounts)


def has_import_data(payload: dict[str, Any]) -> bool:
    return any(payload.get(section) for section in IMPORT_SECTIONS)


def import_items(value: Any) -> list[Any]:
    """Entries of an import section or nested log; anything but a list counts as empty."""
    return value if isinstance(value, list) else []


def require_object(item: Any, label: str) -> dict[str, Any]:
    if not isinstance(item, dict):
        raise ValidationError(f"{label} must be an object")
    return item


def link_ids(value: Any) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(entry, str) and entry for entry in value):
        raise ValidationError("Linked ids must be a list of strings")
    return value



def flatten_job(job: dict[str, Any]) -> dict[str, Any]:
    """Legacy nested job shape (source1/source2/contact objects) to flat wire keys."""
    flat = dict(job)
    for group, mapping in _NESTED_GROUPS.items():
        nested = flat.pop(group, None)
        if not isinstance(nested, dict):
            continue
        for key, wire in mapping.items():
            if flat.get(wire) is None and nested.get(key) is not None:
                flat[wire] = nested[key]
    return flat


def nest_job(job: dict[str, Any]) -> dict[str, Any]:
    nested = dict(job)
    for group, mapping in _NESTED_GROUPS.items():
        nested[group] = {key: nested.pop(wire, None) for key, wire in mapping.items()}
    return nested


class DataMigrator:
    def __init__(self, repo: Repository):
        self.repo = repo

    def import_data(self, payload: dict[str, Any]) -> ImportResults:
        results = ImportResults()
        self._import_documents(RESUME, payload.get("resumes"), DocumentFields, results.resumes)
        self._import_documents(
            COVER_LETTER, payload.get("coverLetters"), CoverLetterFields, results.cover_letters
        )

        created: list[tuple[str, dict[str, Any]]] = []
        for item in import_items(payload.get("jobDescriptions")):
            try:
                job_id = self._import_job(item)
            except ROW_ERRORS as exc:
                self.repo.session.rollback()
                logger.warning("Skipping job description during import: %s", exc)
                results.job_descriptions.errors += 1
                continue
            results.job_descriptions.imported += 1
            created.append((job_id, item))

        for item in import_items(payload.get("scraperCache")):
            try:
                self._import_cache_entry(item)
            except ROW_ERRORS as exc:
                self.repo.session.rollback()
                logger.warning("Skipping scraper cache entry during import: %s", exc)
                results.scraper_cache.errors += 1
                continue
            results.scraper_cache.imported += 1

        # Links and duplicate pointers need every job in place first.
        for job_id, item in created:
            self._import_links(job_id, item, results.links)
        logger.info("Import finished: %s", results.model_dump(by_alias=True))
        return results

    def _import_documents(
        self,
        kind: DocumentKind,
        items: Any,
        fields_model: type[DocumentFields],
        counts: ImportCounts,
    ) -> None:
        for item in import_items(items):
            try:
                values = fields_model.model_validate(require_object(item, kind.label)).values()
                require_fields(values, DOCUMENT_REQUIRED_FIELDS)
                values = {key: value for key, value in values.items() if value is not None}
                document = kind.model(**values)
                if item.get("id"):
                    document.id = item["id"]
                self.repo.insert(document)
            except ROW_ERRORS as exc:
                self.repo.session.rollback()
                logger.warning("Skipping %s during import: %s", kind.label.lower(), exc)
                counts.errors += 1
                continue
            counts.imported += 1

    def _import_job(self, item: Any) -> str:
        item = require_object(item, "Job description")
        values = JobDescriptionFields.model_validate(flatten_job(item)).values()
        require_fields(values, JOB_REQUIRED_FIELDS)
        values = {key: value for key, value in values.items() if value is not None}
        values.pop("duplicate_of_id", None)
        values.setdefault("application_status", "not_applied")
        upload_date = values.setdefault("upload_date", utcnow())
        values.setdefault("last_activity_date", upload_date)

        sequential_id = item.get("sequentialId")
        if not isinstance(sequential_id, int) or self.repo.sequential_id_taken(sequential_id):
            sequential_id = self.repo.next_sequential_id()

        histories = import_items(item.get("statusHistory"))
        activities = import_items(item.get("activityLog"))
        job = JobDescription(sequential_id=sequential_id, **values)
        if item.get("id"):
            job.id = item["id"]
        self.repo.insert(job)
        job_id = job.id

        for history in histories:
            try:
                entry = StatusHistoryImport.model_validate(history).model_dump(exclude_none=True)
                self.repo.insert(StatusHistory(job_description_id=job_id, **entry))
            except ROW_ERRORS as exc:
                self.repo.session.rollback()
                logger.warning("Skipping status history for job %s: %s", job_id, exc)

        for activity in activities:
            try:
                entry = ActivityImport.model_validate(activity)
                self.repo.insert(
                    ActivityLog(
                        job_description_id=job_id,
                        timestamp=entry.timestamp or utcnow(),
                        type=entry.type,
                        field=entry.field,
                        from_value=entry.from_value,
                        to_value=entry.to_value,
                        description=entry.description or entry.details or f"{entry.type} action",
                    )
                )
            except ROW_ERRORS as exc:
                self.repo.session.rollback()
                logger.warning("Skipping activity entry for job %s: %s", job_id, exc)
        return job_id

    def _import_cache_entry(self, item: Any) -> None:
        item = require_object(item, "Scraper cache entry")
        entry = ScraperCacheImport.model_validate(item).model_dump(exclude_none=True)
        self.repo.insert(ScraperCache(**entry))

    def _import_links(self, job_id: str, item: dict[str, Any], counts: ImportCounts) -> None:
        for kind, key in ((RESUME, "linkedResumeIds"), (COVER_LETTER, "linkedCoverLetterIds")):
            try:
                document_ids = link_ids(item.get(key))
            except ValidationError as exc:
                logger.warning("Skipping %s for job %s: %s", key, job_id, exc)
                counts.errors += 1
                continue
            for document_id in document_ids:
                try:
                    self.repo.link_document(kind, document_id, job_id)
                except AlreadyLinkedError:
                    continue
                except ROW_ERRORS as exc:
                    self.repo.session.rollback()
                    logger.warning("Could not link %s %s to job %s: %s", kind.label, document_id, job_id, exc)
                    counts.errors += 1
                    continue
                counts.imported += 1

        duplicate_of_id = item.get("duplicateOfId")
        if duplicate_of_id:
            try:
                if not isinstance(duplicate_of_id, str):
                    raise ValidationError("duplicateOfId must be a string")
                self.repo.assign_duplicate_of(job_id, duplicate_of_id)
            except ROW_ERRORS as exc:
                self.repo.session.rollback()
                logger.warning("Could not restore duplicate pointer for job %s: %s", job_id, exc)
                counts.errors += 1

    def export_data(self) -> dict[str, Any]:
        jobs = []
        for job in self.repo.all_jobs():
            record = JobDescriptionRecord.model_validate(job).model_dump(by_alias=True, mode="json")
            record["statusHistory"] = [
                StatusHistoryRecord.model_validate(row).model_dump(by_alias=True, mode="json")
                for row in job.status_history
            ]
            record["activityLog"] = [
                ActivityLogRecord.model_validate(row).model_dump(by_alias=True, mode="json")
                for row in job.activity_entries
            ]
            record["linkedResumeIds"] = [link.resume_id for link in job.resume_links]
            record["linkedCoverLetterIds"] = [link.cover_letter_id for link in job.cover_letter_links]
            jobs.append(nest_job(record))

        return {
            "version": EXPORT_VERSION,
            "timestamp": format_utc(utcnow()),
            "resumes": self._export_documents(RESUME, ResumeRecord),
            "coverLetters": self._export_documents(COVER_LETTER, CoverLetterRecord),
            "jobDescriptions": jobs,
            "scraperCache": [
                ScraperCacheRecord.model_validate(entry).model_dump(by_alias=True, mode="json")
                for entry in self.repo.all_cache_entries()
            ],
        }

    def _export_documents(self, kind: DocumentKind, record_model: type[ResumeRecord]) -> list[dict]:
        exported = []
        for document in self.repo.list_documents(kind):
            record = record_model.model_validate(document).model_dump(by_alias=True, mode="json")
            record["linkedJobDescriptions"] = [link.job_description_id for link in document.job_links]
            exported.append(record)
        return exported
