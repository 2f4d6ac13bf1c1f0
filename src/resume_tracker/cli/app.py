from __future__ import annotations

import json
from pathlib import Path

import typer
import uvicorn

from resume_tracker.api.app import create_app
from resume_tracker.api.deps import get_parser
from resume_tracker.api.routes.migration import CLEAR_CONFIRMATION
from resume_tracker.api.schemas import JobDetail, JobListItem
from resume_tracker.config import get_settings
from resume_tracker.core.csv_import import parse_csv, to_import_jobs
from resume_tracker.core.job_fetcher import fetch_job_description
from resume_tracker.core.job_parsing import parse_job
from resume_tracker.core.migration import DataMigrator, has_import_data
from resume_tracker.core.reminders import ReminderRules, require_action_type
from resume_tracker.db.init import init_database
from resume_tracker.db.repositories import Repository
from resume_tracker.db.session import SessionLocal
from resume_tracker.errors import TrackerError, ValidationError
from resume_tracker.logging_config import configure_logging
from resume_tracker.types import JobDescriptionRecord

app = typer.Typer(help="Resume tracker CLI")
jobs_app = typer.Typer(help="Job description commands")
data_app = typer.Typer(help="Import, export and reset tracker data")
cache_app = typer.Typer(help="Scraper cache maintenance")

app.add_typer(jobs_app, name="jobs")
app.add_typer(data_app, name="data")
app.add_typer(cache_app, name="cache")

_INITIALIZED = False


def ensure_initialized() -> None:
    global _INITIALIZED
    if _INITIALIZED:
        return
    init_database()
    _INITIALIZED = True


def _echo(payload) -> None:
    typer.echo(json.dumps(payload, indent=2))


def _fail(exc: TrackerError) -> None:
    typer.echo(json.dumps({"error": exc.message}, indent=2), err=True)
    raise typer.Exit(code=1)


@app.command("init")
def init_cmd() -> None:
    """Create the data directories and database tables."""
    configure_logging()
    result = init_database()
    _echo({"ok": True, **result})


@jobs_app.command("list")
def jobs_list(
    status: str | None = typer.Option(None, "--status"),
    company: str | None = typer.Option(None, "--company"),
    search: str | None = typer.Option(None, "--search"),
    archived: bool | None = typer.Option(None, "--archived/--active"),
) -> None:
    configure_logging()
    ensure_initialized()
    with SessionLocal() as db:
        jobs = Repository(db).list_jobs(status=status, archived=archived, company=company, search=search)
        _echo(
            [
                {
                    "id": job.id,
                    "sequentialId": job.sequential_id,
                    "title": job.title,
                    "company": job.company,
                    "applicationStatus": job.application_status,
                    "isArchived": job.is_archived,
                }
                for job in jobs
            ]
        )


@jobs_app.command("show")
def jobs_show(job_id: str = typer.Argument(...)) -> None:
    configure_logging()
    ensure_initialized()
    with SessionLocal() as db:
        repo = Repository(db)
        try:
            job = repo.require_job(job_id)
        except TrackerError as exc:
            _fail(exc)
        detail = JobDetail.build(job, repo.recent_activity(job_id, get_settings().activity_log_limit))
        _echo(detail.model_dump(by_alias=True, mode="json"))


@jobs_app.command("create")
def jobs_create(
    title: str = typer.Option(..., "--title"),
    company: str = typer.Option(..., "--company"),
    file: Path | None = typer.Option(None, "--file", exists=True, readable=True),
    text: str | None = typer.Option(None, "--text"),
    url: str | None = typer.Option(None, "--url"),
    status: str = typer.Option("not_applied", "--status"),
) -> None:
    """Create a job description from inline text, a file, or a fetched URL."""
    configure_logging()
    ensure_initialized()
    raw_text = text or (file.read_text(encoding="utf-8") if file else None)
    if raw_text is None and url:
        fetched = fetch_job_description(url, timeout_sec=get_settings().fetch_timeout_sec)
        if not fetched.success:
            typer.echo(json.dumps(fetched.to_dict(), indent=2), err=True)
            raise typer.Exit(code=1)
        raw_text = fetched.text
    if not raw_text:
        raise typer.BadParameter("one of --text, --file or --url is required")

    with SessionLocal() as db:
        try:
            job = Repository(db).create_job(
                {
                    "title": title,
                    "company": company,
                    "raw_text": raw_text,
                    "url": url,
                    "application_status": status,
                }
            )
        except TrackerError as exc:
            _fail(exc)
        _echo(JobDescriptionRecord.model_validate(job).model_dump(by_alias=True, mode="json"))


@jobs_app.command("fetch")
def jobs_fetch(url: str = typer.Option(..., "--url")) -> None:
    """Download a posting and print the extracted text without storing it."""
    configure_logging()
    result = fetch_job_description(url, timeout_sec=get_settings().fetch_timeout_sec)
    _echo(result.to_dict())


@jobs_app.command("status")
def jobs_status(
    job_id: str = typer.Argument(...),
    status: str = typer.Option(..., "--status"),
    interview_stage: str | None = typer.Option(None, "--interview-stage"),
    notes: str | None = typer.Option(None, "--notes"),
) -> None:
    configure_logging()
    ensure_initialized()
    with SessionLocal() as db:
        try:
            job = Repository(db).update_job(
                job_id,
                {"application_status": status, "interview_stage": interview_stage, "notes": notes},
            )
        except TrackerError as exc:
            _fail(exc)
        _echo(JobListItem.model_validate(job).model_dump(by_alias=True, mode="json"))


@jobs_app.command("archive")
def jobs_archive(job_id: str = typer.Argument(...)) -> None:
    configure_logging()
    ensure_initialized()
    with SessionLocal() as db:
        try:
            job = Repository(db).archive_job(job_id)
        except TrackerError as exc:
            _fail(exc)
        _echo({"id": job.id, "isArchived": job.is_archived})


@jobs_app.command("parse")
def jobs_parse(job_id: str = typer.Argument(...)) -> None:
    """Run the stored posting text through the language model parser."""
    configure_logging()
    ensure_initialized()
    parser = get_parser()
    with SessionLocal() as db:
        try:
            job, result = parse_job(Repository(db), parser, job_id)
        except TrackerError as exc:
            _fail(exc)
        _echo({"id": job.id, "parseStatus": job.parse_status, "result": result.to_wire()})


@jobs_app.command("aging")
def jobs_aging() -> None:
    """Count open applications by days since the last activity."""
    configure_logging()
    ensure_initialized()
    with SessionLocal() as db:
        _echo(Repository(db).aging_stats())


@jobs_app.command("actions")
def jobs_actions(tone: str | None = typer.Option(None, "--tone")) -> None:
    configure_logging()
    ensure_initialized()
    try:
        rules = ReminderRules.from_settings(get_settings(), tone=tone)
    except TrackerError as exc:
        _fail(exc)
    with SessionLocal() as db:
        items = Repository(db).action_items(rules)
    _echo([item.model_dump(by_alias=True) for item in items])


@jobs_app.command("complete-action")
def jobs_complete_action(
    job_id: str = typer.Argument(...),
    action_type: str = typer.Argument(...),
) -> None:
    configure_logging()
    ensure_initialized()
    with SessionLocal() as db:
        try:
            job = Repository(db).complete_action(job_id, require_action_type(action_type))
        except TrackerError as exc:
            _fail(exc)
        _echo({"id": job.id, "completedActions": job.completed_actions})


@jobs_app.command("snooze")
def jobs_snooze(
    job_id: str = typer.Argument(...),
    action_type: str = typer.Argument(...),
    days: int = typer.Option(3, "--days"),
) -> None:
    configure_logging()
    ensure_initialized()
    with SessionLocal() as db:
        try:
            job = Repository(db).snooze_action(job_id, require_action_type(action_type), days)
        except TrackerError as exc:
            _fail(exc)
        _echo({"id": job.id, "snoozedUntil": job.snoozed_until})


@data_app.command("export")
def data_export(output: Path | None = typer.Option(None, "--output")) -> None:
    configure_logging()
    ensure_initialized()
    with SessionLocal() as db:
        data = DataMigrator(Repository(db)).export_data()
    if output is None:
        _echo(data)
        return
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(json.dumps(data, indent=2), encoding="utf-8")
    _echo({"ok": True, "path": str(output), "jobDescriptions": len(data["jobDescriptions"])})


@data_app.command("import")
def data_import(file: Path = typer.Option(..., "--file", exists=True, readable=True)) -> None:
    configure_logging()
    ensure_initialized()
    payload = json.loads(file.read_text(encoding="utf-8"))
    if not isinstance(payload, dict) or not has_import_data(payload):
        raise typer.BadParameter("No data provided for import")
    with SessionLocal() as db:
        results = DataMigrator(Repository(db)).import_data(payload)
    _echo({"success": True, "results": results.model_dump(by_alias=True)})


@data_app.command("import-csv")
def data_import_csv(file: Path = typer.Option(..., "--file", exists=True, readable=True)) -> None:
    """Import job applications from a spreadsheet CSV export."""
    configure_logging()
    ensure_initialized()
    parsed = parse_csv(file.read_text(encoding="utf-8"))
    if not parsed.success:
        _fail(ValidationError("; ".join(parsed.errors)))
    with SessionLocal() as db:
        results = DataMigrator(Repository(db)).import_data({"jobDescriptions": to_import_jobs(parsed.rows)})
    _echo(
        {
            "success": True,
            "preview": parsed.preview,
            "rowErrors": parsed.errors,
            "results": results.model_dump(by_alias=True),
        }
    )


@data_app.command("clear")
def data_clear(confirm: str = typer.Option(..., "--confirm", help=f"Must be {CLEAR_CONFIRMATION}")) -> None:
    configure_logging()
    ensure_initialized()
    if confirm != CLEAR_CONFIRMATION:
        raise typer.BadParameter(f"pass --confirm {CLEAR_CONFIRMATION} to proceed")
    with SessionLocal() as db:
        Repository(db).clear_all_data()
    _echo({"ok": True})


@cache_app.command("cleanup")
def cache_cleanup() -> None:
    configure_logging()
    ensure_initialized()
    with SessionLocal() as db:
        count = Repository(db).cleanup_expired_cache()
    _echo({"count": count})


@cache_app.command("stats")
def cache_stats() -> None:
    configure_logging()
    ensure_initialized()
    with SessionLocal() as db:
        _echo(Repository(db).cache_stats())


@app.command("serve")
def serve(
    host: str | None = typer.Option(None, "--host"),
    port: int | None = typer.Option(None, "--port"),
    log_level: str | None = typer.Option(None, "--log-level"),
) -> None:
    configure_logging(log_level)
    ensure_initialized()
    settings = get_settings()
    app_instance = create_app()
    uvicorn.run(
        app_instance,
        host=host or settings.app_host,
        port=port or settings.app_port,
        log_level=(log_level or settings.log_level).lower(),
    )
