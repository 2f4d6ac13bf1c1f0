from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from resume_tracker.core import reminders
from resume_tracker.core.analytics import JobSnapshot, job_analytics, status_summary
from resume_tracker.core.duplicates import DuplicateMatch, find_duplicate_document
from resume_tracker.core.lifecycle import (
    DUPLICATE_STATUS,
    archive_activity,
    creates_duplicate_cycle,
    creation_activity,
    creation_history,
    status_transition,
    strip_managed_fields,
)
from resume_tracker.db.base import utcnow
from resume_tracker.db.models import (
    ActivityLog,
    CoverLetter,
    JobCoverLetterLink,
    JobDescription,
    JobResumeLink,
    Resume,
    ScraperCache,
    StatusHistory,
)
from resume_tracker.errors import (
    AlreadyLinkedError,
    ConflictError,
    NotFoundError,
    ValidationError,
    require_fields,
)

logger = logging.getLogger(__name__)

JOB_REQUIRED_FIELDS = {"title": "title", "company": "company", "raw_text": "rawText"}
DOCUMENT_REQUIRED_FIELDS = {"name": "name", "file_name": "fileName", "file_data": "fileData"}
CACHE_REQUIRED_FIELDS = {"input_hash": "inputHash", "result": "result"}
JOB_NON_NULL_FIELDS = frozenset(
    {
        "title",
        "company",
        "raw_text",
        "extracted_info",
        "keywords",
        "parse_status",
        "upload_date",
        "application_status",
        "is_archived",
        "priority",
        "impact",
        "waiting_for_response",
        "interview_dates",
    }
)


@dataclass(frozen=True, slots=True)
class DocumentKind:
    model: type
    link_model: type
    link_column: str
    label: str

    @property
    def not_found(self) -> str:
        return f"{self.label} not found"

    @property
    def already_linked(self) -> str:
        return f"{self.label} is already linked to this job"


RESUME = DocumentKind(Resume, JobResumeLink, "resume_id", "Resume")
COVER_LETTER = DocumentKind(CoverLetter, JobCoverLetterLink, "cover_letter_id", "Cover letter")

JOB_NOT_FOUND = "Job description not found"


class Repository:
    def __init__(self, session: Session):
        self.session = session

    # Jobs

    def _job_query(self):
        return select(JobDescription).options(
            selectinload(JobDescription.resume_links).selectinload(JobResumeLink.resume),
            selectinload(JobDescription.cover_letter_links).selectinload(JobCoverLetterLink.cover_letter),
            selectinload(JobDescription.duplicate_of),
            selectinload(JobDescription.duplicates),
        )

    def list_jobs(
        self,
        *,
        status: str | None = None,
        archived: bool | None = None,
        company: str | None = None,
        search: str | None = None,
    ) -> list[JobDescription]:
        statement = self._job_query()
        if status:
            statement = statement.where(JobDescription.application_status == status)
        if archived is not None:
            statement = statement.where(JobDescription.is_archived == archived)
        if company:
            statement = statement.where(JobDescription.company.ilike(f"%{company}%"))
        if search:
            pattern = f"%{search}%"
            statement = statement.where(
                or_(
                    JobDescription.title.ilike(pattern),
                    JobDescription.company.ilike(pattern),
                    JobDescription.role.ilike(pattern),
                    JobDescription.location.ilike(pattern),
                    JobDescription.raw_text.ilike(pattern),
                )
            )
        statement = statement.order_by(
            JobDescription.last_activity_date.desc().nulls_last(),
            JobDescription.upload_date.desc(),
        )
        return list(self.session.scalars(statement).all())

    def get_job(self, job_id: str) -> JobDescription | None:
        return self.session.scalar(self._job_query().where(JobDescription.id == job_id))

    def require_job(self, job_id: str) -> JobDescription:
        job = self.get_job(job_id)
        if job is None:
            raise NotFoundError(JOB_NOT_FOUND)
        return job

    def next_sequential_id(self) -> int:
        current = self.session.scalar(select(func.max(JobDescription.sequential_id)))
        return (current or 0) + 1

    def create_job(self, values: dict[str, Any], job_id: str | None = None) -> JobDescription:
        require_fields(values, JOB_REQUIRED_FIELDS)
        values = {key: value for key, value in strip_managed_fields(values).items() if value is not None}
        values.setdefault("application_status", "not_applied")
        now = utcnow()
        values["last_activity_date"] = now

        job = JobDescription(sequential_id=self.next_sequential_id(), **values)
        if job_id:
            job.id = job_id
        self.session.add(job)
        self._flush_or_conflict(f"Job description {job_id} already exists")

        status = job.application_status
        self.session.add(StatusHistory(job_description_id=job.id, date=now, **creation_history(status)))
        self.session.add(ActivityLog(job_description_id=job.id, timestamp=now, **creation_activity(status)))
        self._commit_or_conflict(f"Job description {job_id} already exists")
        logger.info("Created job description id=%s sequential_id=%s", job.id, job.sequential_id)
        return self.require_job(job.id)

    def update_job(self, job_id: str, values: dict[str, Any]) -> JobDescription:
        job = self.require_job(job_id)
        values = {
            key: value
            for key, value in strip_managed_fields(values).items()
            if value is not None or key not in JOB_NON_NULL_FIELDS
        }
        for attr in JOB_REQUIRED_FIELDS:
            if attr in values and not values[attr]:
                raise ValidationError(f"{JOB_REQUIRED_FIELDS[attr]} cannot be empty")
        if values.get("duplicate_of_id"):
            self._check_duplicate_target(job_id, values["duplicate_of_id"])

        transition = status_transition(job.application_status, values)
        now = utcnow()
        for key, value in values.items():
            setattr(job, key, value)
        job.last_activity_date = now

        if transition is not None:
            self.session.add(
                StatusHistory(job_description_id=job_id, date=now, **transition.history_values())
            )
            self.session.add(
                ActivityLog(job_description_id=job_id, timestamp=now, **transition.activity_values())
            )
        self._commit_or_conflict("Update conflicts with an existing record")
        self.session.refresh(job)
        return job

    def delete_job(self, job_id: str) -> None:
        if self.session.get(JobDescription, job_id) is None:
            raise NotFoundError(JOB_NOT_FOUND)
        self._delete_jobs([job_id])
        self.session.commit()
        logger.info("Deleted job description id=%s", job_id)

    def _delete_jobs(self, job_ids: list[str]) -> None:
        self.session.execute(
            update(JobDescription)
            .where(JobDescription.duplicate_of_id.in_(job_ids))
            .values(duplicate_of_id=None)
        )
        for model in (ActivityLog, StatusHistory, JobResumeLink, JobCoverLetterLink):
            self.session.execute(delete(model).where(model.job_description_id.in_(job_ids)))
        self.session.execute(delete(JobDescription).where(JobDescription.id.in_(job_ids)))
        self.session.expire_all()

    def archive_job(self, job_id: str) -> JobDescription:
        job = self.require_job(job_id)
        now = utcnow()
        job.is_archived = True
        job.last_activity_date = now
        self.session.add(ActivityLog(job_description_id=job_id, timestamp=now, **archive_activity()))
        self.session.commit()
        self.session.refresh(job)
        return job

    def _check_duplicate_target(self, job_id: str, duplicate_of_id: str) -> None:
        if self.session.get(JobDescription, duplicate_of_id) is None:
            raise NotFoundError(JOB_NOT_FOUND)

        def parent_of(candidate: str) -> str | None:
            return self.session.scalar(
                select(JobDescription.duplicate_of_id).where(JobDescription.id == candidate)
            )

        if job_id == duplicate_of_id:
            raise ValidationError("A job description cannot be a duplicate of itself")
        if creates_duplicate_cycle(job_id, duplicate_of_id, parent_of):
            raise ValidationError("Marking this job as a duplicate would create a duplicate cycle")

    def mark_duplicate(self, job_id: str, duplicate_of_id: str) -> JobDescription:
        self.require_job(job_id)
        return self.update_job(
            job_id,
            {"duplicate_of_id": duplicate_of_id, "application_status": DUPLICATE_STATUS},
        )

    def assign_duplicate_of(self, job_id: str, duplicate_of_id: str) -> None:
        """Point a job at its original without touching status or activity."""
        job = self.session.get(JobDescription, job_id)
        if job is None:
            raise NotFoundError(JOB_NOT_FOUND)
        self._check_duplicate_target(job_id, duplicate_of_id)
        job.duplicate_of_id = duplicate_of_id
        self.session.commit()

    def status_history(self, job_id: str) -> list[StatusHistory]:
        statement = (
            select(StatusHistory)
            .where(StatusHistory.job_description_id == job_id)
            .order_by(StatusHistory.date.desc())
        )
        return list(self.session.scalars(statement).all())

    def recent_activity(self, job_id: str, limit: int = 50) -> list[ActivityLog]:
        statement = (
            select(ActivityLog)
            .where(ActivityLog.job_description_id == job_id)
            .order_by(ActivityLog.timestamp.desc())
            .limit(limit)
        )
        return list(self.session.scalars(statement).all())

    def add_activity(self, job_id: str, values: dict[str, Any], commit: bool = True) -> ActivityLog:
        entry = ActivityLog(job_description_id=job_id, **values)
        self.session.add(entry)
        if commit:
            self.session.commit()
        return entry

    def add_status_history(self, job_id: str, values: dict[str, Any], commit: bool = True) -> StatusHistory:
        entry = StatusHistory(job_description_id=job_id, **values)
        self.session.add(entry)
        if commit:
            self.session.commit()
        return entry

    def set_parse_status(self, job_id: str, parse_status: str) -> JobDescription:
        job = self.require_job(job_id)
        job.parse_status = parse_status
        self.session.commit()
        self.session.refresh(job)
        return job

    def _snapshots(self) -> list[JobSnapshot]:
        jobs = self.session.execute(
            select(
                JobDescription.id,
                JobDescription.application_status,
                JobDescription.interview_stage,
                JobDescription.is_archived,
            )
        ).all()
        activity: dict[str, list[str]] = {}
        for job_id, kind in self.session.execute(
            select(ActivityLog.job_description_id, ActivityLog.type)
        ).all():
            activity.setdefault(job_id, []).append(kind)
        return [
            JobSnapshot(
                status=row.application_status,
                interview_stage=row.interview_stage,
                is_archived=row.is_archived,
                activity_types=activity.get(row.id, []),
            )
            for row in jobs
        ]

    def job_stats(self) -> dict[str, int]:
        return status_summary(self._snapshots())

    def job_analytics(self) -> dict:
        return job_analytics(self._snapshots())

    def aging_stats(self) -> dict[str, int]:
        return reminders.aging_stats(self.session.scalars(select(JobDescription)).all())

    def action_items(self, rules: reminders.ReminderRules) -> list[reminders.ActionItem]:
        return reminders.action_items(self.session.scalars(select(JobDescription)).all(), rules)

    def complete_action(self, job_id: str, action_type: str) -> JobDescription:
        job = self.require_job(job_id)
        for key, value in reminders.completion_values(job, action_type).items():
            setattr(job, key, value)
        self.session.commit()
        self.session.refresh(job)
        return job

    def snooze_action(self, job_id: str, action_type: str, days: int) -> JobDescription:
        job = self.require_job(job_id)
        for key, value in reminders.snooze_values(job, action_type, days).items():
            setattr(job, key, value)
        self.session.commit()
        self.session.refresh(job)
        return job

    def all_jobs(self) -> list[JobDescription]:
        statement = (
            select(JobDescription)
            .options(
                selectinload(JobDescription.resume_links),
                selectinload(JobDescription.cover_letter_links),
                selectinload(JobDescription.status_history),
                selectinload(JobDescription.activity_entries),
            )
            .order_by(JobDescription.sequential_id)
        )
        return list(self.session.scalars(statement).all())

    # Documents

    def list_documents(self, kind: DocumentKind) -> list[Any]:
        model = kind.model
        statement = (
            select(model)
            .options(selectinload(model.job_links).selectinload(kind.link_model.job_description))
            .order_by(model.upload_date.desc())
        )
        return list(self.session.scalars(statement).all())

    def get_document(self, kind: DocumentKind, document_id: str) -> Any | None:
        model = kind.model
        statement = (
            select(model)
            .options(selectinload(model.job_links).selectinload(kind.link_model.job_description))
            .where(model.id == document_id)
        )
        return self.session.scalar(statement)

    def require_document(self, kind: DocumentKind, document_id: str) -> Any:
        document = self.get_document(kind, document_id)
        if document is None:
            raise NotFoundError(kind.not_found)
        return document

    def create_document(self, kind: DocumentKind, values: dict[str, Any], document_id: str | None = None) -> Any:
        require_fields(values, DOCUMENT_REQUIRED_FIELDS)
        values = {key: value for key, value in strip_managed_fields(values).items() if value is not None}
        document = kind.model(**values)
        if document_id:
            document.id = document_id
        self.session.add(document)
        self._commit_or_conflict(f"{kind.label} {document_id} already exists")
        return self.require_document(kind, document.id)

    def update_document(self, kind: DocumentKind, document_id: str, values: dict[str, Any]) -> Any:
        document = self.require_document(kind, document_id)
        values = strip_managed_fields(values)
        for attr, wire in DOCUMENT_REQUIRED_FIELDS.items():
            if attr in values and not values[attr]:
                raise ValidationError(f"{wire} cannot be empty")
        for key, value in values.items():
            setattr(document, key, value)
        self.session.commit()
        self.session.refresh(document)
        return document

    def delete_document(self, kind: DocumentKind, document_id: str) -> None:
        if self.session.get(kind.model, document_id) is None:
            raise NotFoundError(kind.not_found)
        link_column = getattr(kind.link_model, kind.link_column)
        self.session.execute(delete(kind.link_model).where(link_column == document_id))
        self.session.execute(delete(kind.model).where(kind.model.id == document_id))
        self.session.commit()
        self.session.expire_all()

    def link_document(self, kind: DocumentKind, document_id: str, job_id: str) -> None:
        if self.session.get(kind.model, document_id) is None:
            raise NotFoundError(kind.not_found)
        if self.session.get(JobDescription, job_id) is None:
            raise NotFoundError(JOB_NOT_FOUND)
        link = kind.link_model(job_description_id=job_id, **{kind.link_column: document_id})
        self.session.add(link)
        try:
            self.session.commit()
        except IntegrityError as exc:
            self.session.rollback()
            raise AlreadyLinkedError(kind.already_linked) from exc

    def unlink_document(self, kind: DocumentKind, document_id: str, job_id: str) -> int:
        link_column = getattr(kind.link_model, kind.link_column)
        result = self.session.execute(
            delete(kind.link_model).where(
                link_column == document_id,
                kind.link_model.job_description_id == job_id,
            )
        )
        self.session.commit()
        return result.rowcount or 0

    def find_duplicate_document(
        self,
        kind: DocumentKind,
        *,
        file_name: str,
        file_size: int,
        file_data: str,
    ) -> DuplicateMatch | None:
        documents = self.session.scalars(select(kind.model)).all()
        return find_duplicate_document(
            documents,
            file_name=file_name,
            file_size=file_size,
            file_data=file_data,
        )

    # Scraper cache

    def list_cache_entries(self, input_hash: str | None = None, limit: int = 100) -> list[ScraperCache]:
        statement = select(ScraperCache).where(ScraperCache.expires_at > utcnow())
        if input_hash:
            statement = statement.where(ScraperCache.input_hash == input_hash)
        statement = statement.order_by(ScraperCache.created_at.desc()).limit(limit)
        return list(self.session.scalars(statement).all())

    def get_cache_entry(self, input_hash: str) -> ScraperCache | None:
        return self.session.scalar(
            select(ScraperCache).where(
                ScraperCache.input_hash == input_hash,
                ScraperCache.expires_at > utcnow(),
            )
        )

    def upsert_cache_entry(self, input_hash: str, result: str, expires_at: datetime) -> ScraperCache:
        require_fields({"input_hash": input_hash, "result": result}, CACHE_REQUIRED_FIELDS)
        entry = self.session.scalar(select(ScraperCache).where(ScraperCache.input_hash == input_hash))
        if entry is None:
            entry = ScraperCache(input_hash=input_hash, result=result, expires_at=expires_at)
            self.session.add(entry)
        else:
            entry.result = result
            entry.expires_at = expires_at
        self._commit_or_conflict("Cache entry already exists")
        self.session.refresh(entry)
        return entry

    def delete_cache_entry(self, input_hash: str) -> None:
        result = self.session.execute(delete(ScraperCache).where(ScraperCache.input_hash == input_hash))
        if not result.rowcount:
            self.session.rollback()
            raise NotFoundError("Cache entry not found")
        self.session.commit()

    def cleanup_expired_cache(self) -> int:
        result = self.session.execute(delete(ScraperCache).where(ScraperCache.expires_at < utcnow()))
        self.session.commit()
        logger.info("Removed %s expired cache entries", result.rowcount)
        return result.rowcount or 0

    def cache_stats(self) -> dict[str, int]:
        now = utcnow()
        total = self.session.scalar(select(func.count()).select_from(ScraperCache)) or 0
        active = self.session.scalar(
            select(func.count()).select_from(ScraperCache).where(ScraperCache.expires_at > now)
        ) or 0
        expired = self.session.scalar(
            select(func.count()).select_from(ScraperCache).where(ScraperCache.expires_at < now)
        ) or 0
        return {"total": total, "active": active, "expired": expired}

    def all_cache_entries(self) -> list[ScraperCache]:
        return list(self.session.scalars(select(ScraperCache).order_by(ScraperCache.created_at)).all())

    # Bulk

    def insert(self, obj: Any) -> Any:
        """Insert one row in its own transaction; constraint violations become ConflictError."""
        self.session.add(obj)
        self._commit_or_conflict(f"{type(obj).__name__} conflicts with an existing record")
        return obj

    def sequential_id_taken(self, sequential_id: int) -> bool:
        return (
            self.session.scalar(
                select(JobDescription.id).where(JobDescription.sequential_id == sequential_id)
            )
            is not None
        )

    def clear_all_data(self) -> None:
        for model in (
            ActivityLog,
            StatusHistory,
            JobResumeLink,
            JobCoverLetterLink,
            ScraperCache,
        ):
            self.session.execute(delete(model))
        self.session.execute(update(JobDescription).values(duplicate_of_id=None))
        for model in (JobDescription, CoverLetter, Resume):
            self.session.execute(delete(model))
        self.session.commit()
        self.session.expire_all()
        logger.warning("Cleared all tracker data")

    def _flush_or_conflict(self, message: str) -> None:
        try:
            self.session.flush()
        except IntegrityError as exc:
            self.session.rollback()
            raise ConflictError(message) from exc

    def _commit_or_conflict(self, message: str) -> None:
        try:
            self.session.commit()
        except IntegrityError as exc:
            self.session.rollback()
            raise ConflictError(message) from exc
