from __future__ import annotations

import logging

from resume_tracker.core.lifecycle import parse_activity
from resume_tracker.core.text import extract_salary_max, extract_salary_min
from resume_tracker.db.base import utcnow
from resume_tracker.db.models import JobDescription
from resume_tracker.db.repositories import Repository
from resume_tracker.llm.parsing import JobDescriptionParser
from resume_tracker.types import ParseResult, format_utc

logger = logging.getLogger(__name__)

# Job column -> extractedInfo key, filled only while the column is empty.
BACKFILL_FIELDS = {
    "role": "role",
    "location": "location",
    "work_arrangement": "workArrangement",
    "salary_range": "salaryRange",
    "url": "jobUrl",
}


def backfill_from_extracted(job: JobDescription, extracted: dict) -> None:
    for attr, key in BACKFILL_FIELDS.items():
        value = extracted.get(key)
        if value and not getattr(job, attr):
            setattr(job, attr, value)
    if job.salary_range:
        if job.salary_min is None:
            job.salary_min = extract_salary_min(job.salary_range)
        if job.salary_max is None:
            job.salary_max = extract_salary_max(job.salary_range)


def parse_job(
    repo: Repository,
    parser: JobDescriptionParser,
    job_id: str,
    additional_context: dict | None = None,
) -> tuple[JobDescription, ParseResult]:
    """Run a stored job through the parser, tracking parse status on the row."""
    job = repo.set_parse_status(job_id, "parsing")
    try:
        result = parser.parse(job.raw_text, additional_context=additional_context, existing_job=job)
    except Exception as exc:
        # The job must not be left in "parsing" when the parser breaks its contract.
        logger.exception("Parser raised for job %s", job_id)
        repo.session.rollback()
        job = repo.require_job(job_id)
        result = ParseResult(success=False, error=f"Unexpected error: {exc}", error_kind="unexpected")

    if result.success:
        ai_usage = dict(job.ai_usage or {})
        if result.usage is not None:
            ai_usage.update(result.usage.model_dump(by_alias=True))
            ai_usage["model"] = parser.settings.openai_model
            ai_usage["parsedAt"] = format_utc(utcnow())
        ai_usage["rawTextHash"] = result.text_hash
        job.extracted_info = result.extracted_info or {}
        job.keywords = result.keywords
        job.ai_usage = ai_usage
        job.parse_status = "parsed"
        backfill_from_extracted(job, job.extracted_info)
        activity = parse_activity(True, keyword_count=len(result.keywords))
    else:
        logger.warning("Parsing job %s failed (%s): %s", job_id, result.error_kind, result.error)
        job.parse_status = "failed"
        activity = parse_activity(False, error=result.error)

    job.last_activity_date = utcnow()
    repo.add_activity(job_id, {**activity, "timestamp": job.last_activity_date}, commit=False)
    repo.session.commit()
    return repo.require_job(job_id), result
