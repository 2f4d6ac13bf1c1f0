from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from resume_tracker.core.csv_import import parse_csv, to_import_jobs
from resume_tracker.errors import ValidationError

RESUMES = "resumes"
COVER_LETTERS = "cover-letters"
JOB_DESCRIPTIONS = "job-descriptions"


@dataclass(slots=True)
class AppState:
    resumes: list[dict[str, Any]] = field(default_factory=list)
    cover_letters: list[dict[str, Any]] = field(default_factory=list)
    job_descriptions: list[dict[str, Any]] = field(default_factory=list)


class StorageBackend(ABC):
    """Record storage as seen by a client: camelCase dicts in, camelCase dicts out.

    ``get_*`` return None for unknown ids; every other failure raises a
    ``TrackerError`` subclass.
    """

    @abstractmethod
    def _save(self, collection: str, record: dict[str, Any]) -> dict[str, Any]: ...

    @abstractmethod
    def _get(self, collection: str, record_id: str) -> dict[str, Any] | None: ...

    @abstractmethod
    def _load(self, collection: str) -> list[dict[str, Any]]: ...

    @abstractmethod
    def _delete(self, collection: str, record_id: str) -> None: ...

    @abstractmethod
    def _link(self, collection: str, document_id: str, job_id: str) -> None: ...

    @abstractmethod
    def _unlink(self, collection: str, document_id: str, job_id: str) -> None: ...

    @abstractmethod
    def archive_job_description(self, job_id: str) -> dict[str, Any]: ...

    @abstractmethod
    def get_scraper_cache(self, input_hash: str) -> dict[str, Any] | None: ...

    @abstractmethod
    def set_scraper_cache(self, entry: dict[str, Any]) -> dict[str, Any]: ...

    @abstractmethod
    def clear_expired_scraper_cache(self) -> int: ...

    @abstractmethod
    def import_data(self, data: dict[str, Any]) -> dict[str, Any]: ...

    @abstractmethod
    def export_data(self) -> dict[str, Any]: ...

    @abstractmethod
    def clear_all_data(self) -> None: ...

    @abstractmethod
    def get_stats(self) -> dict[str, int]: ...

    @abstractmethod
    def get_analytics(self) -> dict[str, Any]: ...

    @abstractmethod
    def get_aging_stats(self) -> dict[str, int]: ...

    @abstractmethod
    def get_action_items(self, tone: str | None = None) -> list[dict[str, Any]]: ...

    @abstractmethod
    def complete_action(self, job_id: str, action_type: str) -> dict[str, Any]: ...

    @abstractmethod
    def snooze_action(self, job_id: str, action_type: str, days: int) -> dict[str, Any]: ...

    def save_resume(self, resume: dict[str, Any]) -> dict[str, Any]:
        return self._save(RESUMES, resume)

    def get_resume(self, resume_id: str) -> dict[str, Any] | None:
        return self._get(RESUMES, resume_id)

    def load_resumes(self) -> list[dict[str, Any]]:
        return self._load(RESUMES)

    def delete_resume(self, resume_id: str) -> None:
        self._delete(RESUMES, resume_id)

    def save_cover_letter(self, cover_letter: dict[str, Any]) -> dict[str, Any]:
        return self._save(COVER_LETTERS, cover_letter)

    def get_cover_letter(self, cover_letter_id: str) -> dict[str, Any] | None:
        return self._get(COVER_LETTERS, cover_letter_id)

    def load_cover_letters(self) -> list[dict[str, Any]]:
        return self._load(COVER_LETTERS)

    def delete_cover_letter(self, cover_letter_id: str) -> None:
        self._delete(COVER_LETTERS, cover_letter_id)

    def save_job_description(self, job: dict[str, Any]) -> dict[str, Any]:
        return self._save(JOB_DESCRIPTIONS, job)

    def get_job_description(self, job_id: str) -> dict[str, Any] | None:
        return self._get(JOB_DESCRIPTIONS, job_id)

    def load_job_descriptions(self) -> list[dict[str, Any]]:
        return self._load(JOB_DESCRIPTIONS)

    def delete_job_description(self, job_id: str) -> None:
        self._delete(JOB_DESCRIPTIONS, job_id)

    def link_resume_to_job(self, resume_id: str, job_id: str) -> None:
        self._link(RESUMES, resume_id, job_id)

    def unlink_resume_from_job(self, resume_id: str, job_id: str) -> None:
        self._unlink(RESUMES, resume_id, job_id)

    def link_cover_letter_to_job(self, cover_letter_id: str, job_id: str) -> None:
        self._link(COVER_LETTERS, cover_letter_id, job_id)

    def unlink_cover_letter_from_job(self, cover_letter_id: str, job_id: str) -> None:
        self._unlink(COVER_LETTERS, cover_letter_id, job_id)

    def load_state(self) -> AppState:
        return AppState(
            resumes=self.load_resumes(),
            cover_letters=self.load_cover_letters(),
            job_descriptions=self.load_job_descriptions(),
        )

    def import_csv(self, csv_text: str) -> dict[str, Any]:
        """Import a spreadsheet export; unreadable rows are reported, not fatal."""
        parsed = parse_csv(csv_text)
        if not parsed.success:
            raise ValidationError("; ".join(parsed.errors))
        response = self.import_data({"jobDescriptions": to_import_jobs(parsed.rows)})
        return {
            "success": True,
            "preview": parsed.preview,
            "rowErrors": parsed.errors,
            "results": response["results"],
        }
