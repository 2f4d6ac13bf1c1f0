from __future__ import annotations

from fastapi import APIRouter, Body, Depends
from sqlalchemy.orm import Session

from resume_tracker.api.deps import get_db, get_parser
from resume_tracker.api.schemas import (
    AgingStats,
    CsvImportRequest,
    CsvImportResponse,
    JobCreateRequest,
    JobDetail,
    JobListItem,
    JobParseRequest,
    JobParseResponse,
    JobStats,
    JobUpdateRequest,
    ParseTextRequest,
    SnoozeRequest,
)
from resume_tracker.config import get_settings
from resume_tracker.core.csv_import import parse_csv, to_import_jobs
from resume_tracker.core.job_parsing import parse_job
from resume_tracker.core.migration import DataMigrator
from resume_tracker.core.reminders import ActionItem, ReminderRules, require_action_type
from resume_tracker.db.repositories import Repository
from resume_tracker.errors import ValidationError
from resume_tracker.llm.parsing import JobDescriptionParser
from resume_tracker.types import JobDescriptionRecord, ParseResult

router = APIRouter(prefix="/job-descriptions", tags=["job-descriptions"])


@router.get("", response_model=list[JobListItem])
def list_jobs(
    status: str | None = None,
    archived: str | None = None,
    company: str | None = None,
    search: str | None = None,
    db: Session = Depends(get_db),
) -> list[JobListItem]:
    repo = Repository(db)
    rows = repo.list_jobs(
        status=status,
        archived=None if archived is None else archived == "true",
        company=company,
        search=search,
    )
    return [JobListItem.model_validate(row) for row in rows]


@router.get("/stats/summary", response_model=JobStats)
def job_stats(db: Session = Depends(get_db)) -> JobStats:
    return JobStats.model_validate(Repository(db).job_stats())


@router.get("/stats/analytics")
def job_analytics(db: Session = Depends(get_db)) -> dict:
    return Repository(db).job_analytics()


@router.get("/stats/aging", response_model=AgingStats)
def aging_stats(db: Session = Depends(get_db)) -> AgingStats:
    return AgingStats.model_validate(Repository(db).aging_stats())


@router.get("/actions", response_model=list[ActionItem])
def action_items(tone: str | None = None, db: Session = Depends(get_db)) -> list[ActionItem]:
    return Repository(db).action_items(ReminderRules.from_settings(get_settings(), tone=tone))


@router.post("/import-csv", response_model=CsvImportResponse)
def import_csv(payload: CsvImportRequest, db: Session = Depends(get_db)) -> CsvImportResponse:
    parsed = parse_csv(payload.csv_text)
    if not parsed.success:
        raise ValidationError("; ".join(parsed.errors))
    results = DataMigrator(Repository(db)).import_data({"jobDescriptions": to_import_jobs(parsed.rows)})
    return CsvImportResponse(success=True, preview=parsed.preview, row_errors=parsed.errors, results=results)


@router.post("/parse", response_model=ParseResult)
def parse_text(
    payload: ParseTextRequest,
    parser: JobDescriptionParser = Depends(get_parser),
) -> ParseResult:
    return parser.parse(payload.raw_text, additional_context=payload.additional_context)


@router.get("/{job_id}", response_model=JobDetail)
def get_job(job_id: str, db: Session = Depends(get_db)) -> JobDetail:
    repo = Repository(db)
    job = repo.require_job(job_id)
    return JobDetail.build(job, repo.recent_activity(job_id, get_settings().activity_log_limit))


@router.post("", response_model=JobDescriptionRecord, status_code=201)
def create_job(payload: JobCreateRequest, db: Session = Depends(get_db)) -> JobDescriptionRecord:
    repo = Repository(db)
    values = payload.values()
    job_id = values.pop("id", None)
    job = repo.create_job(values, job_id=job_id)
    return JobDescriptionRecord.model_validate(job)


@router.put("/{job_id}", response_model=JobListItem)
def update_job(job_id: str, payload: JobUpdateRequest, db: Session = Depends(get_db)) -> JobListItem:
    repo = Repository(db)
    job = repo.update_job(job_id, payload.values())
    return JobListItem.model_validate(job)


@router.delete("/{job_id}")
def delete_job(job_id: str, db: Session = Depends(get_db)) -> dict:
    Repository(db).delete_job(job_id)
    return {"message": "Job description deleted successfully"}


@router.post("/{job_id}/archive", response_model=JobDescriptionRecord)
def archive_job(job_id: str, db: Session = Depends(get_db)) -> JobDescriptionRecord:
    job = Repository(db).archive_job(job_id)
    return JobDescriptionRecord.model_validate(job)


@router.post("/{job_id}/duplicate/{duplicate_id}")
def mark_duplicate(job_id: str, duplicate_id: str, db: Session = Depends(get_db)) -> dict:
    Repository(db).mark_duplicate(job_id, duplicate_id)
    return {"message": "Job description marked as duplicate"}


@router.post("/{job_id}/parse", response_model=JobParseResponse)
def parse_stored_job(
    job_id: str,
    payload: JobParseRequest | None = Body(default=None),
    db: Session = Depends(get_db),
    parser: JobDescriptionParser = Depends(get_parser),
) -> JobParseResponse:
    context = payload.additional_context if payload else None
    job, result = parse_job(Repository(db), parser, job_id, additional_context=context)
    return JobParseResponse(job_description=JobDescriptionRecord.model_validate(job), result=result)


@router.post("/{job_id}/actions/{action_type}/complete", response_model=JobDescriptionRecord)
def complete_action(job_id: str, action_type: str, db: Session = Depends(get_db)) -> JobDescriptionRecord:
    job = Repository(db).complete_action(job_id, require_action_type(action_type))
    return JobDescriptionRecord.model_validate(job)


@router.post("/{job_id}/actions/{action_type}/snooze", response_model=JobDescriptionRecord)
def snooze_action(
    job_id: str,
    action_type: str,
    payload: SnoozeRequest,
    db: Session = Depends(get_db),
) -> JobDescriptionRecord:
    job = Repository(db).snooze_action(job_id, require_action_type(action_type), payload.days)
    return JobDescriptionRecord.model_validate(job)
