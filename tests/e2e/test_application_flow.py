from __future__ import annotations

import json
from types import SimpleNamespace

from fastapi.testclient import TestClient
from typer.testing import CliRunner

from resume_tracker.api.app import create_app
from resume_tracker.api.deps import get_parser
from resume_tracker.cli.app import app as cli_app
from resume_tracker.client import ApiStorage
from resume_tracker.config import Settings
from resume_tracker.core.job_fetcher import FetchResult
from resume_tracker.llm.parsing import JobDescriptionParser
from resume_tracker.llm.providers import LLMProvider, ProviderConfig
from resume_tracker.logging_config import configure_logging

POSTING = "Senior Data Engineer. Acme Analytics. Remote. $140k - $170k. Spark, Airflow, Python."

REPLY = {
    "extractedInfo": {
        "role": "Senior Data Engineer",
        "company": "Acme Analytics",
        "workArrangement": "remote",
        "salaryRange": "$140k - $170k",
        "requiredSkills": ["Spark", "Airflow", "Python"],
    },
    "keywords": ["spark", "airflow", "python"],
}


def _fake_parser() -> JobDescriptionParser:
    def create(**kwargs):
        return SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content=json.dumps(REPLY)))],
            usage=SimpleNamespace(prompt_tokens=10, completion_tokens=5, total_tokens=15),
        )

    provider = LLMProvider(
        ProviderConfig(name="openai", base_url="http://localhost:9999/v1", api_key="dummy", timeout_sec=5),
        client=SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create))),
    )
    return JobDescriptionParser(settings=Settings(openai_api_key="dummy"), provider=provider)


def test_fetch_track_parse_and_export(monkeypatch) -> None:
    configure_logging()
    monkeypatch.setattr(
        "resume_tracker.cli.app.fetch_job_description",
        lambda url, timeout_sec=10: FetchResult(success=True, title="Senior Data Engineer", text=POSTING),
    )

    created = CliRunner().invoke(
        cli_app,
        ["jobs", "create", "--title", "Senior Data Engineer", "--company", "Acme", "--url", "https://jobs.example.com/42"],
    )
    assert created.exit_code == 0, created.output
    job_id = json.loads(created.stdout)["id"]

    app = create_app()
    app.dependency_overrides[get_parser] = _fake_parser
    storage = ApiStorage("http://testserver/api", session=TestClient(app))

    job = storage.get_job_description(job_id)
    assert job["url"] == "https://jobs.example.com/42"
    assert job["rawText"] == POSTING

    resume = storage.save_resume({"name": "Data CV", "fileName": "data.docx", "fileData": "UEsD", "fileSize": 4})
    storage.link_resume_to_job(resume["id"], job_id)

    parsed = storage.session.post(f"http://testserver/api/job-descriptions/{job_id}/parse").json()
    assert parsed["jobDescription"]["parseStatus"] == "parsed"
    assert parsed["jobDescription"]["workArrangement"] == "remote"
    assert parsed["jobDescription"]["salaryMin"] == 140000

    for status, stage in (("applied", None), ("interviewing", "screening"), ("offered", None)):
        job = storage.get_job_description(job_id)
        storage.save_job_description({**job, "applicationStatus": status, "interviewStage": stage})

    repost = storage.save_job_description({"title": "Senior Data Engineer", "company": "Acme", "rawText": POSTING})
    storage.mark_duplicate(repost["id"], job_id)

    stats = storage.get_stats()
    assert stats["total"] == 2
    assert stats["offered"] == 1
    assert stats["pending"] == 1

    detail = storage.get_job_description(job_id)
    assert [entry["status"] for entry in detail["statusHistory"]] == [
        "offered",
        "interviewing",
        "applied",
        "not_applied",
    ]
    assert [item["id"] for item in detail["duplicates"]] == [repost["id"]]

    exported = storage.export_data()
    original = next(item for item in exported["jobDescriptions"] if item["id"] == job_id)
    assert original["linkedResumeIds"] == [resume["id"]]
    assert original["aiUsage"]["totalTokens"] == 15
    assert "spark" in original["keywords"]

    analytics = storage.get_analytics()
    assert analytics["funnel"]["offered"] == 1
    assert analytics["funnel"]["duplicate"] == 1
