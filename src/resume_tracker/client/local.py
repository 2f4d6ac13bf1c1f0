from __future__ import annotations

import copy
import json
import logging
import threading
from datetime import timedelta
from pathlib import Path
from typing import Any

from resume_tracker.client.base import COVER_LETTERS, JOB_DESCRIPTIONS, RESUMES, StorageBackend
from resume_tracker.config import get_settings
from resume_tracker.core import reminders
from resume_tracker.core.analytics import JobSnapshot, job_analytics, status_summary
from resume_tracker.core.lifecycle import (
    archive_activity,
    camelize,
    creates_duplicate_cycle,
    creation_activity,
    creation_history,
    status_transition,
    strip_managed_fields,
)
from resume_tracker.core.migration import (
    EXPORT_VERSION,
    ITEM_ERRORS,
    ActivityImport,
    ImportCounts,
    ImportResults,
    ScraperCacheImport,
    StatusHistoryImport,
    flatten_job,
    has_import_data,
    import_items,
    link_ids,
    nest_job,
    require_object,
)
from resume_tracker.db.base import new_id, utcnow
from resume_tracker.db.repositories import (
    CACHE_REQUIRED_FIELDS,
    COVER_LETTER,
    DOCUMENT_REQUIRED_FIELDS,
    JOB_NON_NULL_FIELDS,
    JOB_NOT_FOUND,
    JOB_REQUIRED_FIELDS,
    RESUME,
)
from resume_tracker.errors import (
    AlreadyLinkedError,
    ConflictError,
    NotFoundError,
    TrackerError,
    ValidationError,
    require_fields,
)
from resume_tracker.types import (
    ActivityLogRecord,
    CoverLetterFields,
    CoverLetterRecord,
    DocumentFields,
    JobDescriptionFields,
    JobDescriptionRecord,
    ResumeRecord,
    ScraperCacheRecord,
    StatusHistoryRecord,
    format_utc,
)

logger = logging.getLogger(__name__)

_DOCUMENTS = {
    RESUMES: (RESUME, DocumentFields, ResumeRecord, "linkedResumeIds"),
    COVER_LETTERS: (COVER_LETTER, CoverLetterFields, CoverLetterRecord, "linkedCoverLetterIds"),
}
_JOB_EXTRAS = ("statusHistory", "activityLog", "linkedResumeIds", "linkedCoverLetterIds")


def _now() -> str:
    return format_utc(utcnow())


def _history_entry(job_id: str, values: dict[str, Any], date: Any) -> dict[str, Any]:
    record = StatusHistoryRecord.model_validate(
        {"id": new_id(), "job_description_id": job_id, "date": date, "created_at": utcnow(), **values}
    )
    return record.model_dump(by_alias=True, mode="json")


def _activity_entry(job_id: str, values: dict[str, Any], timestamp: Any) -> dict[str, Any]:
    record = ActivityLogRecord.model_validate(
        {"id": new_id(), "job_description_id": job_id, "timestamp": timestamp, "created_at": utcnow(), **values}
    )
    return record.model_dump(by_alias=True, mode="json")


class LocalStorage(StorageBackend):
    """JSON file store kept in the export document layout.

    The whole store is held in memory and rewritten after every change.
    """

    def __init__(self, path: str | Path, cache_ttl_days: int = 7):
        self.path = Path(path)
        self.cache_ttl_days = cache_ttl_days
        self._lock = threading.RLock()
        self._resumes: list[dict[str, Any]] = []
        self._cover_letters: list[dict[str, Any]] = []
        self._jobs: list[dict[str, Any]] = []
        self._cache: list[dict[str, Any]] = []
        self._read()

    # Persistence

    def _read(self) -> None:
        if not self.path.exists():
            return
        with self.path.open(encoding="utf-8") as handle:
            data = json.load(handle)
        self._resumes = [self._strip_links(item) for item in data.get("resumes") or []]
        self._cover_letters = [self._strip_links(item) for item in data.get("coverLetters") or []]
        self._jobs = [flatten_job(item) for item in data.get("jobDescriptions") or []]
        self._cache = list(data.get("scraperCache") or [])
        logger.debug("Loaded local store from %s (%s jobs)", self.path, len(self._jobs))

    def _write(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        staging = self.path.with_name(self.path.name + ".tmp")
        staging.write_text(json.dumps(self.export_data(), indent=2), encoding="utf-8")
        staging.replace(self.path)

    @staticmethod
    def _strip_links(item: dict[str, Any]) -> dict[str, Any]:
        return {key: value for key, value in item.items() if key != "linkedJobDescriptions"}

    def _records(self, collection: str) -> list[dict[str, Any]]:
        if collection == RESUMES:
            return self._resumes
        if collection == COVER_LETTERS:
            return self._cover_letters
        if collection == JOB_DESCRIPTIONS:
            return self._jobs
        raise ValueError(f"Unknown collection: {collection}")

    def _find(self, collection: str, record_id: str) -> dict[str, Any] | None:
        return next((item for item in self._records(collection) if item.get("id") == record_id), None)

    def _require_job(self, job_id: str) -> dict[str, Any]:
        job = self._find(JOB_DESCRIPTIONS, job_id)
        if job is None:
            raise NotFoundError(JOB_NOT_FOUND)
        return job

    # StorageBackend

    def _save(self, collection: str, record: dict[str, Any]) -> dict[str, Any]:
        with self._lock:
            record_id = record.get("id")
            existing = self._find(collection, record_id) if record_id else None
            if collection == JOB_DESCRIPTIONS:
                saved = self._update_job(existing, record) if existing else self._create_job(record)
            elif existing:
                saved = self._update_document(collection, existing, record)
            else:
                saved = self._create_document(collection, record)
            self._write()
            return copy.deepcopy(saved)

    def _get(self, collection: str, record_id: str) -> dict[str, Any] | None:
        with self._lock:
            found = self._find(collection, record_id)
            return copy.deepcopy(found) if found is not None else None

    def _load(self, collection: str) -> list[dict[str, Any]]:
        with self._lock:
            records = copy.deepcopy(self._records(collection))
        if collection == JOB_DESCRIPTIONS:
            records.sort(key=lambda job: job.get("uploadDate") or "", reverse=True)
            # Stable: jobs without activity sort last, newest upload first among ties.
            records.sort(key=lambda job: job.get("lastActivityDate") or "", reverse=True)
        else:
            records.sort(key=lambda item: item.get("uploadDate") or "", reverse=True)
        return records

    def _delete(self, collection: str, record_id: str) -> None:
        with self._lock:
            records = self._records(collection)
            target = self._find(collection, record_id)
            if target is None:
                if collection == JOB_DESCRIPTIONS:
                    raise NotFoundError(JOB_NOT_FOUND)
                raise NotFoundError(_DOCUMENTS[collection][0].not_found)
            records.remove(target)
            if collection == JOB_DESCRIPTIONS:
                for job in self._jobs:
                    if job.get("duplicateOfId") == record_id:
                        job["duplicateOfId"] = None
            else:
                link_key = _DOCUMENTS[collection][3]
                for job in self._jobs:
                    if record_id in job.get(link_key, []):
                        job[link_key].remove(record_id)
            self._write()
            logger.info("Deleted %s id=%s from local store", collection, record_id)

    def _link(self, collection: str, document_id: str, job_id: str) -> None:
        kind, _, _, link_key = _DOCUMENTS[collection]
        with self._lock:
            if self._find(collection, document_id) is None:
                raise NotFoundError(kind.not_found)
            job = self._require_job(job_id)
            linked = job.setdefault(link_key, [])
            if document_id in linked:
                raise AlreadyLinkedError(kind.already_linked)
            linked.append(document_id)
            self._write()

    def _unlink(self, collection: str, document_id: str, job_id: str) -> None:
        link_key = _DOCUMENTS[collection][3]
        with self._lock:
            job = self._find(JOB_DESCRIPTIONS, job_id)
            if job is not None and document_id in job.get(link_key, []):
                job[link_key].remove(document_id)
                self._write()

    # Jobs

    def _next_sequential_id(self) -> int:
        return max((job.get("sequentialId") or 0 for job in self._jobs), default=0) + 1

    def _job_record(self, values: dict[str, Any], extras: dict[str, Any]) -> dict[str, Any]:
        record = JobDescriptionRecord.model_validate(values).model_dump(by_alias=True, mode="json")
        record.update(extras)
        return record

    def _create_job(self, payload: dict[str, Any]) -> dict[str, Any]:
        values = JobDescriptionFields.model_validate(payload).values()
        require_fields(values, JOB_REQUIRED_FIELDS)
        values = {key: value for key, value in values.items() if value is not None}
        values.pop("duplicate_of_id", None)
        values.setdefault("application_status", "not_applied")
        now = utcnow()
        values.setdefault("upload_date", now)
        values["last_activity_date"] = now

        job_id = payload.get("id") or new_id()
        status = values["application_status"]
        job = self._job_record(
            {**values, "id": job_id, "sequential_id": self._next_sequential_id(), "created_at": now, "updated_at": now},
            {
                "statusHistory": [_history_entry(job_id, creation_history(status), now)],
                "activityLog": [_activity_entry(job_id, creation_activity(status), now)],
                "linkedResumeIds": [],
                "linkedCoverLetterIds": [],
            },
        )
        self._jobs.append(job)
        logger.info("Created job description id=%s sequential_id=%s", job_id, job["sequentialId"])
        return job

    def _update_job(self, job: dict[str, Any], payload: dict[str, Any]) -> dict[str, Any]:
        job_id = job["id"]
        values = {
            key: value
            for key, value in JobDescriptionFields.model_validate(strip_managed_fields(payload)).values().items()
            if value is not None or key not in JOB_NON_NULL_FIELDS
        }
        for attr, wire in JOB_REQUIRED_FIELDS.items():
            if attr in values and not values[attr]:
                raise ValidationError(f"{wire} cannot be empty")
        if values.get("duplicate_of_id"):
            self._check_duplicate_target(job_id, values["duplicate_of_id"])

        transition = status_transition(job.get("applicationStatus"), values)
        now = utcnow()
        extras = {key: job.get(key) or [] for key in _JOB_EXTRAS}
        if transition is not None:
            extras["statusHistory"].insert(0, _history_entry(job_id, transition.history_values(), now))
            extras["activityLog"].insert(0, _activity_entry(job_id, transition.activity_values(), now))

        base = {key: value for key, value in job.items() if key not in _JOB_EXTRAS}
        updated = self._job_record(
            {**base, **camelize(values), "lastActivityDate": now, "updatedAt": now},
            extras,
        )
        job.clear()
        job.update(updated)
        return job

    def _check_duplicate_target(self, job_id: str, duplicate_of_id: str) -> None:
        self._require_job(duplicate_of_id)
        if job_id == duplicate_of_id:
            raise ValidationError("A job description cannot be a duplicate of itself")

        def parent_of(candidate: str) -> str | None:
            found = self._find(JOB_DESCRIPTIONS, candidate)
            return found.get("duplicateOfId") if found else None

        if creates_duplicate_cycle(job_id, duplicate_of_id, parent_of):
            raise ValidationError("Marking this job as a duplicate would create a duplicate cycle")

    def archive_job_description(self, job_id: str) -> dict[str, Any]:
        with self._lock:
            job = self._require_job(job_id)
            now = utcnow()
            job["isArchived"] = True
            job["lastActivityDate"] = format_utc(now)
            job["updatedAt"] = format_utc(now)
            job.setdefault("activityLog", []).insert(0, _activity_entry(job_id, archive_activity(), now))
            self._write()
            return copy.deepcopy(job)

    def mark_duplicate(self, job_id: str, duplicate_of_id: str) -> dict[str, Any]:
        with self._lock:
            job = self._require_job(job_id)
            updated = self._update_job(job, {"duplicateOfId": duplicate_of_id, "applicationStatus": "duplicate"})
            self._write()
            return copy.deepcopy(updated)

    # Documents

    def _create_document(self, collection: str, payload: dict[str, Any]) -> dict[str, Any]:
        kind, fields_model, record_model, _ = _DOCUMENTS[collection]
        values = fields_model.model_validate(payload).values()
        require_fields(values, DOCUMENT_REQUIRED_FIELDS)
        values = {key: value for key, value in values.items() if value is not None}
        now = utcnow()
        values.setdefault("upload_date", now)
        document_id = payload.get("id") or new_id()
        record = record_model.model_validate(
            {**values, "id": document_id, "created_at": now, "updated_at": now}
        ).model_dump(by_alias=True, mode="json")
        self._records(collection).append(record)
        logger.info("Created %s id=%s", kind.label.lower(), document_id)
        return record

    def _update_document(self, collection: str, document: dict[str, Any], payload: dict[str, Any]) -> dict[str, Any]:
        _, fields_model, record_model, _ = _DOCUMENTS[collection]
        values = fields_model.model_validate(strip_managed_fields(payload)).values()
        for attr, wire in DOCUMENT_REQUIRED_FIELDS.items():
            if attr in values and not values[attr]:
                raise ValidationError(f"{wire} cannot be empty")
        values = {key: value for key, value in values.items() if value is not None}
        updated = record_model.model_validate(
            {**document, **camelize(values), "updatedAt": utcnow()}
        ).model_dump(by_alias=True, mode="json")
        document.clear()
        document.update(updated)
        return document

    # Scraper cache

    def get_scraper_cache(self, input_hash: str) -> dict[str, Any] | None:
        now = _now()
        with self._lock:
            for entry in self._cache:
                if entry.get("inputHash") == input_hash and entry.get("expiresAt", "") > now:
                    return copy.deepcopy(entry)
        return None

    def set_scraper_cache(self, entry: dict[str, Any]) -> dict[str, Any]:
        require_fields(
            {"input_hash": entry.get("inputHash"), "result": entry.get("result")},
            CACHE_REQUIRED_FIELDS,
        )
        now = utcnow()
        payload = dict(entry)
        if not payload.get("expiresAt"):
            payload["expiresAt"] = now + timedelta(days=self.cache_ttl_days)
        values = ScraperCacheImport.model_validate(payload)
        with self._lock:
            existing = next((item for item in self._cache if item.get("inputHash") == values.input_hash), None)
            record = ScraperCacheRecord.model_validate(
                {
                    "id": existing["id"] if existing else values.id or new_id(),
                    "input_hash": values.input_hash,
                    "result": values.result,
                    "expires_at": values.expires_at,
                    "created_at": existing["createdAt"] if existing else values.created_at or now,
                }
            ).model_dump(by_alias=True, mode="json")
            if existing:
                existing.update(record)
            else:
                self._cache.append(record)
            self._write()
            return copy.deepcopy(record)

    def clear_expired_scraper_cache(self) -> int:
        now = _now()
        with self._lock:
            kept = [entry for entry in self._cache if entry.get("expiresAt", "") >= now]
            removed = len(self._cache) - len(kept)
            self._cache = kept
            self._write()
        logger.info("Removed %s expired cache entries", removed)
        return removed

    # Bulk

    def import_data(self, data: dict[str, Any]) -> dict[str, Any]:
        if not has_import_data(data or {}):
            raise ValidationError("No data provided for import")
        results = ImportResults()
        with self._lock:
            for collection, section, counts in (
                (RESUMES, "resumes", results.resumes),
                (COVER_LETTERS, "coverLetters", results.cover_letters),
            ):
                for item in import_items(data.get(section)):
                    self._import_item(counts, collection, lambda: self._import_document(collection, item))

            created: list[tuple[dict[str, Any], dict[str, Any]]] = []
            for item in import_items(data.get("jobDescriptions")):
                job = self._import_item(results.job_descriptions, JOB_DESCRIPTIONS, lambda: self._import_job(item))
                if job is not None:
                    created.append((job, item))

            for item in import_items(data.get("scraperCache")):
                self._import_item(results.scraper_cache, "scraper cache", lambda: self._import_cache_entry(item))

            for job, item in created:
                self._import_links(job, item, results.links)
            self._write()
        logger.info("Import finished: %s", results.model_dump(by_alias=True))
        return {"success": True, "message": "Data import completed", "results": results.model_dump(by_alias=True)}

    @staticmethod
    def _import_item(counts: ImportCounts, label: str, action) -> Any:
        try:
            created = action()
        except ITEM_ERRORS as exc:
            logger.warning("Skipping %s item during import: %s", label, exc)
            counts.errors += 1
            return None
        counts.imported += 1
        return created

    def _import_document(self, collection: str, item: Any) -> dict[str, Any]:
        item = require_object(item, _DOCUMENTS[collection][0].label)
        if item.get("id") and self._find(collection, item["id"]) is not None:
            raise ConflictError(f"{_DOCUMENTS[collection][0].label} {item['id']} already exists")
        return self._create_document(collection, item)

    def _import_job(self, item: Any) -> dict[str, Any]:
        item = require_object(item, "Job description")
        if item.get("id") and self._find(JOB_DESCRIPTIONS, item["id"]) is not None:
            raise ConflictError(f"Job description {item['id']} already exists")
        values = JobDescriptionFields.model_validate(flatten_job(item)).values()
        require_fields(values, JOB_REQUIRED_FIELDS)
        values = {key: value for key, value in values.items() if value is not None}
        values.pop("duplicate_of_id", None)
        values.setdefault("application_status", "not_applied")
        now = utcnow()
        upload_date = values.setdefault("upload_date", now)
        values.setdefault("last_activity_date", upload_date)

        sequential_id = item.get("sequentialId")
        if not isinstance(sequential_id, int) or any(job.get("sequentialId") == sequential_id for job in self._jobs):
            sequential_id = self._next_sequential_id()

        job_id = item.get("id") or new_id()
        history = []
        for entry in import_items(item.get("statusHistory")):
            try:
                parsed = StatusHistoryImport.model_validate(entry).model_dump(exclude_none=True)
                date = parsed.pop("date", now)
                history.append(_history_entry(job_id, parsed, date))
            except ITEM_ERRORS as exc:
                logger.warning("Skipping status history for job %s: %s", job_id, exc)
        activity = []
        for entry in import_items(item.get("activityLog")):
            try:
                parsed = ActivityImport.model_validate(entry)
                activity.append(
                    _activity_entry(
                        job_id,
                        {
                            "type": parsed.type,
                            "field": parsed.field,
                            "from_value": parsed.from_value,
                            "to_value": parsed.to_value,
                            "description": parsed.description or parsed.details or f"{parsed.type} action",
                        },
                        parsed.timestamp or now,
                    )
                )
            except ITEM_ERRORS as exc:
                logger.warning("Skipping activity entry for job %s: %s", job_id, exc)

        job = self._job_record(
            {
                **values,
                "id": job_id,
                "sequential_id": sequential_id,
                "created_at": item.get("createdAt") or now,
                "updated_at": item.get("updatedAt") or now,
            },
            {"statusHistory": history, "activityLog": activity, "linkedResumeIds": [], "linkedCoverLetterIds": []},
        )
        self._jobs.append(job)
        return job

    def _import_cache_entry(self, item: dict[str, Any]) -> None:
        entry = ScraperCacheImport.model_validate(require_object(item, "Scraper cache entry"))
        if any(existing.get("inputHash") == entry.input_hash for existing in self._cache):
            raise ConflictError("Cache entry already exists")
        now = utcnow()
        self._cache.append(
            ScraperCacheRecord.model_validate(
                {
                    "id": entry.id or new_id(),
                    "input_hash": entry.input_hash,
                    "result": entry.result,
                    "expires_at": entry.expires_at,
                    "created_at": entry.created_at or now,
                }
            ).model_dump(by_alias=True, mode="json")
        )

    def _import_links(self, job: dict[str, Any], item: dict[str, Any], counts: ImportCounts) -> None:
        for collection, (kind, _, _, link_key) in _DOCUMENTS.items():
            try:
                document_ids = link_ids(item.get(link_key))
            except ValidationError as exc:
                logger.warning("Skipping %s for job %s: %s", link_key, job["id"], exc)
                counts.errors += 1
                continue
            for document_id in document_ids:
                if document_id in job[link_key]:
                    continue
                if self._find(collection, document_id) is None:
                    logger.warning("Could not link %s %s to job %s", kind.label, document_id, job["id"])
                    counts.errors += 1
                    continue
                job[link_key].append(document_id)
                counts.imported += 1

        duplicate_of_id = item.get("duplicateOfId")
        if duplicate_of_id:
            try:
                if not isinstance(duplicate_of_id, str):
                    raise ValidationError("duplicateOfId must be a string")
                self._check_duplicate_target(job["id"], duplicate_of_id)
            except TrackerError as exc:
                logger.warning("Could not restore duplicate pointer for job %s: %s", job["id"], exc)
                counts.errors += 1
                return
            job["duplicateOfId"] = duplicate_of_id

    def export_data(self) -> dict[str, Any]:
        with self._lock:
            return {
                "version": EXPORT_VERSION,
                "timestamp": _now(),
                "resumes": self._export_documents(RESUMES),
                "coverLetters": self._export_documents(COVER_LETTERS),
                "jobDescriptions": [nest_job(copy.deepcopy(job)) for job in self._jobs],
                "scraperCache": copy.deepcopy(self._cache),
            }

    def _export_documents(self, collection: str) -> list[dict[str, Any]]:
        link_key = _DOCUMENTS[collection][3]
        exported = []
        for document in self._records(collection):
            record = copy.deepcopy(document)
            record["linkedJobDescriptions"] = [
                job["id"] for job in self._jobs if document["id"] in job.get(link_key, [])
            ]
            exported.append(record)
        return exported

    def clear_all_data(self) -> None:
        with self._lock:
            self._resumes, self._cover_letters, self._jobs, self._cache = [], [], [], []
            self._write()
        logger.warning("Cleared all tracker data in %s", self.path)

    def _snapshots(self) -> list[JobSnapshot]:
        return [
            JobSnapshot(
                status=job.get("applicationStatus") or "not_applied",
                interview_stage=job.get("interviewStage"),
                is_archived=bool(job.get("isArchived")),
                activity_types=[entry.get("type") for entry in job.get("activityLog") or []],
            )
            for job in self._jobs
        ]

    def get_stats(self) -> dict[str, int]:
        with self._lock:
            return status_summary(self._snapshots())

    def get_analytics(self) -> dict[str, Any]:
        with self._lock:
            return job_analytics(self._snapshots())

    # Reminders

    def _job_views(self) -> list[JobDescriptionRecord]:
        return [JobDescriptionRecord.model_validate(job) for job in self._jobs]

    def get_aging_stats(self) -> dict[str, int]:
        with self._lock:
            return reminders.aging_stats(self._job_views())

    def get_action_items(self, tone: str | None = None) -> list[dict[str, Any]]:
        rules = reminders.ReminderRules.from_settings(get_settings(), tone=tone)
        with self._lock:
            items = reminders.action_items(self._job_views(), rules)
        return [item.model_dump(by_alias=True) for item in items]

    def complete_action(self, job_id: str, action_type: str) -> dict[str, Any]:
        with self._lock:
            job = self._require_job(job_id)
            values = reminders.completion_values(JobDescriptionRecord.model_validate(job), action_type)
            job["completedActions"] = values["completed_actions"]
            job["lastActivityDate"] = format_utc(values["last_activity_date"])
            job["updatedAt"] = _now()
            self._write()
            return copy.deepcopy(job)

    def snooze_action(self, job_id: str, action_type: str, days: int) -> dict[str, Any]:
        with self._lock:
            job = self._require_job(job_id)
            values = reminders.snooze_values(JobDescriptionRecord.model_validate(job), action_type, days)
            job["snoozedUntil"] = values["snoozed_until"]
            job["updatedAt"] = _now()
            self._write()
            return copy.deepcopy(job)
