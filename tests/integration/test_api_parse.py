from __future__ import annotations

import json
from types import SimpleNamespace

from fastapi.testclient import TestClient

from resume_tracker.api.app import create_app
from resume_tracker.api.deps import get_parser
from resume_tracker.config import Settings
from resume_tracker.llm.cache import ParseCache
from resume_tracker.llm.parsing import JobDescriptionParser
from resume_tracker.llm.providers import LLMProvider, ProviderConfig

POSTING = "Staff Engineer at Acme. Salary $150k - $180k. Python and Postgres."

REPLY = {
    "extractedInfo": {
        "role": "Staff Engineer",
        "company": "Acme",
        "location": "Berlin",
        "workArrangement": "hybrid",
        "salaryRange": "$150k - $180k",
        "requiredSkills": ["Python", "Postgres"],
    },
    "keywords": ["python", "postgres", "staff"],
}


class FakeChatCompletionsAPI:
    def __init__(self, content: str):
        self.content = content
        self.calls = 0

    def create(self, **kwargs):
        self.calls += 1
        return SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content=self.content))],
            usage=SimpleNamespace(prompt_tokens=50, completion_tokens=25, total_tokens=75),
        )


def _client_with_model(content: str) -> tuple[TestClient, FakeChatCompletionsAPI]:
    completions = FakeChatCompletionsAPI(content)
    provider = LLMProvider(
        ProviderConfig(name="openai", base_url="http://localhost:9999/v1", api_key="dummy", timeout_sec=5),
        client=SimpleNamespace(chat=SimpleNamespace(completions=completions)),
    )
    parser = JobDescriptionParser(
        settings=Settings(openai_api_key="dummy", openai_model="test-model"),
        provider=provider,
        cache=ParseCache(),
    )
    app = create_app()
    app.dependency_overrides[get_parser] = lambda: parser
    return TestClient(app), completions


def _create_job(client: TestClient) -> dict:
    return client.post(
        "/api/job-descriptions",
        json={"title": "Staff Engineer", "company": "Acme", "rawText": POSTING},
    ).json()


def test_parse_text_endpoint() -> None:
    client, completions = _client_with_model(json.dumps(REPLY))

    response = client.post("/api/job-descriptions/parse", json={"rawText": POSTING})
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["extractedInfo"]["role"] == "Staff Engineer"
    assert body["keywords"][:3] == ["python", "postgres", "staff"]
    assert body["usage"] == {"promptTokens": 50, "completionTokens": 25, "totalTokens": 75}

    again = client.post("/api/job-descriptions/parse", json={"rawText": POSTING}).json()
    assert again["fromCache"] is True
    assert completions.calls == 1


def test_parse_text_failure_is_reported_in_body() -> None:
    client, _ = _client_with_model("")
    body = client.post("/api/job-descriptions/parse", json={"rawText": ""}).json()
    assert body["success"] is False
    assert body["errorKind"] == "empty_input"


def test_parse_stored_job_updates_record() -> None:
    client, completions = _client_with_model(json.dumps(REPLY))
    job = _create_job(client)

    response = client.post(f"/api/job-descriptions/{job['id']}/parse")
    assert response.status_code == 200
    body = response.json()
    assert body["result"]["success"] is True

    parsed = body["jobDescription"]
    assert parsed["parseStatus"] == "parsed"
    assert parsed["extractedInfo"]["location"] == "Berlin"
    assert parsed["location"] == "Berlin"
    assert parsed["workArrangement"] == "hybrid"
    assert parsed["salaryMin"] == 150000
    assert parsed["salaryMax"] == 180000
    assert parsed["aiUsage"]["totalTokens"] == 75
    assert parsed["aiUsage"]["model"] == "test-model"
    assert parsed["aiUsage"]["rawTextHash"] == body["result"]["textHash"]

    detail = client.get(f"/api/job-descriptions/{job['id']}").json()
    assert detail["activityLog"][0]["type"] == "field_updated"
    assert detail["activityLog"][0]["field"] == "extractedInfo"

    # Unchanged text reuses the stored result.
    second = client.post(f"/api/job-descriptions/{job['id']}/parse").json()
    assert second["result"]["fromCache"] is True
    assert completions.calls == 1


def test_failed_parse_marks_job_failed() -> None:
    client, _ = _client_with_model("not json")
    job = _create_job(client)

    body = client.post(f"/api/job-descriptions/{job['id']}/parse", json={"additionalContext": {"note": "x"}}).json()
    assert body["result"]["success"] is False
    assert body["result"]["errorKind"] == "invalid_json"
    assert body["jobDescription"]["parseStatus"] == "failed"
    assert body["jobDescription"]["extractedInfo"] == {}


def test_parse_unknown_job_returns_404() -> None:
    client, _ = _client_with_model(json.dumps(REPLY))
    assert client.post("/api/job-descriptions/missing/parse").status_code == 404


def test_parser_crash_does_not_leave_job_parsing() -> None:
    class ExplodingParser:
        def parse(self, raw_text, additional_context=None, existing_job=None):
            raise RuntimeError("value too long for type character varying(512)")

    app = create_app()
    app.dependency_overrides[get_parser] = ExplodingParser
    client = TestClient(app)
    job = _create_job(client)

    response = client.post(f"/api/job-descriptions/{job['id']}/parse")

    assert response.status_code == 200
    body = response.json()
    assert body["result"]["success"] is False
    assert body["result"]["errorKind"] == "unexpected"
    assert body["jobDescription"]["parseStatus"] == "failed"
    assert client.get(f"/api/job-descriptions/{job['id']}").json()["parseStatus"] == "failed"
