from __future__ import annotations

from datetime import datetime, timedelta

from fastapi.testclient import TestClient
from sqlalchemy import func, select

from resume_tracker.api.app import create_app
from resume_tracker.db.base import utcnow
from resume_tracker.db.models import ActivityLog, JobResumeLink, StatusHistory
from resume_tracker.db.repositories import Repository
from resume_tracker.db.session import SessionLocal
from resume_tracker.types import format_utc


def _client() -> TestClient:
    return TestClient(create_app())


def _create_job(client: TestClient, **overrides) -> dict:
    payload = {"title": "Engineer", "company": "Acme", "rawText": "Build things in Python."}
    payload.update(overrides)
    response = client.post("/api/job-descriptions", json=payload)
    assert response.status_code == 201, response.text
    return response.json()


def _create_resume(client: TestClient, **overrides) -> dict:
    payload = {"name": "Main", "fileName": "main.docx", "fileData": "UEsDBBQ=", "fileSize": 5}
    payload.update(overrides)
    response = client.post("/api/resumes", json=payload)
    assert response.status_code == 201, response.text
    return response.json()


def test_create_job_assigns_sequential_id_and_seeds_history() -> None:
    client = _client()

    job = _create_job(client)
    second = _create_job(client, title="Analyst")

    assert job["sequentialId"] == 1
    assert second["sequentialId"] == 2
    assert job["applicationStatus"] == "not_applied"
    assert job["parseStatus"] == "unparsed"
    assert job["uploadDate"].endswith("Z")
    assert job["lastActivityDate"] is not None

    detail = client.get(f"/api/job-descriptions/{job['id']}").json()
    assert len(detail["statusHistory"]) == 1
    assert detail["statusHistory"][0]["notes"] == "Job description created"
    assert detail["activityLog"][0]["description"] == "Job description created"


def test_create_job_requires_title_company_and_text() -> None:
    client = _client()
    response = client.post("/api/job-descriptions", json={"title": "Engineer"})
    assert response.status_code == 400
    assert response.json() == {"error": "Missing required fields: title, company, and rawText"}


def test_create_job_accepts_client_id_and_rejects_reuse() -> None:
    client = _client()
    job = _create_job(client, id="job-fixed-1")
    assert job["id"] == "job-fixed-1"

    response = client.post(
        "/api/job-descriptions",
        json={"id": "job-fixed-1", "title": "Again", "company": "Acme", "rawText": "text"},
    )
    assert response.status_code == 400


def test_status_change_records_history_and_stats() -> None:
    client = _client()
    job = _create_job(client)

    response = client.put(f"/api/job-descriptions/{job['id']}", json={"applicationStatus": "applied"})
    assert response.status_code == 200
    assert response.json()["applicationStatus"] == "applied"

    detail = client.get(f"/api/job-descriptions/{job['id']}").json()
    assert [entry["status"] for entry in detail["statusHistory"]] == ["applied", "not_applied"]
    assert detail["activityLog"][0]["description"] == "Status changed from not_applied to applied"
    assert detail["activityLog"][0]["fromValue"] == {"status": "not_applied"}

    stats = client.get("/api/job-descriptions/stats/summary").json()
    assert stats["total"] == 1
    assert stats["applied"] == 1
    assert stats["pending"] == 0


def test_same_status_update_adds_no_history() -> None:
    client = _client()
    job = _create_job(client, applicationStatus="applied")

    response = client.put(
        f"/api/job-descriptions/{job['id']}",
        json={"applicationStatus": "applied", "notes": "Followed up"},
    )
    assert response.status_code == 200
    assert response.json()["notes"] == "Followed up"

    with SessionLocal() as db:
        rows = db.query(StatusHistory).filter_by(job_description_id=job["id"]).count()
    assert rows == 1


def test_update_ignores_managed_fields_and_rejects_empty_required() -> None:
    client = _client()
    job = _create_job(client)

    response = client.put(
        f"/api/job-descriptions/{job['id']}",
        json={"id": "other", "sequentialId": 99, "createdAt": "2020-01-01T00:00:00Z", "location": "Remote"},
    )
    body = response.json()
    assert body["id"] == job["id"]
    assert body["sequentialId"] == 1
    assert body["createdAt"] == job["createdAt"]
    assert body["location"] == "Remote"

    response = client.put(f"/api/job-descriptions/{job['id']}", json={"title": ""})
    assert response.status_code == 400
    assert response.json() == {"error": "title cannot be empty"}


def test_unknown_job_returns_404() -> None:
    client = _client()
    assert client.get("/api/job-descriptions/missing").status_code == 404
    assert client.put("/api/job-descriptions/missing", json={"title": "x"}).status_code == 404
    response = client.delete("/api/job-descriptions/missing")
    assert response.status_code == 404
    assert response.json() == {"error": "Job description not found"}


def test_list_filters_and_search() -> None:
    client = _client()
    _create_job(client, title="Backend Engineer", company="Acme")
    _create_job(client, title="Data Analyst", company="Globex", applicationStatus="applied")
    archived = _create_job(client, title="Designer", company="Initech")
    client.post(f"/api/job-descriptions/{archived['id']}/archive")

    assert len(client.get("/api/job-descriptions").json()) == 3
    assert [job["title"] for job in client.get("/api/job-descriptions?status=applied").json()] == ["Data Analyst"]
    assert [job["title"] for job in client.get("/api/job-descriptions?archived=true").json()] == ["Designer"]
    assert len(client.get("/api/job-descriptions?archived=false").json()) == 2
    assert [job["company"] for job in client.get("/api/job-descriptions?company=glob").json()] == ["Globex"]
    assert [job["title"] for job in client.get("/api/job-descriptions?search=backend").json()] == [
        "Backend Engineer"
    ]


def test_archive_logs_activity() -> None:
    client = _client()
    job = _create_job(client)

    response = client.post(f"/api/job-descriptions/{job['id']}/archive")
    assert response.status_code == 200
    assert response.json()["isArchived"] is True

    detail = client.get(f"/api/job-descriptions/{job['id']}").json()
    assert detail["activityLog"][0]["description"] == "Job description archived"
    assert client.get("/api/job-descriptions/stats/summary").json()["archived"] == 1


def test_delete_removes_dependents() -> None:
    client = _client()
    job = _create_job(client)
    resume = _create_resume(client)
    client.post(f"/api/resumes/{resume['id']}/link-job/{job['id']}")
    client.put(f"/api/job-descriptions/{job['id']}", json={"applicationStatus": "applied"})

    response = client.delete(f"/api/job-descriptions/{job['id']}")
    assert response.status_code == 200
    assert response.json() == {"message": "Job description deleted successfully"}

    with SessionLocal() as db:
        for model in (StatusHistory, ActivityLog, JobResumeLink):
            assert db.query(model).filter_by(job_description_id=job["id"]).count() == 0
    assert client.get(f"/api/resumes/{resume['id']}").json()["linkedJobDescriptions"] == []


def test_mark_duplicate_and_cycle_rejection() -> None:
    client = _client()
    original = _create_job(client, title="Original")
    copy = _create_job(client, title="Copy")

    response = client.post(f"/api/job-descriptions/{copy['id']}/duplicate/{original['id']}")
    assert response.status_code == 200
    assert response.json() == {"message": "Job description marked as duplicate"}

    detail = client.get(f"/api/job-descriptions/{copy['id']}").json()
    assert detail["applicationStatus"] == "duplicate"
    assert detail["duplicateOfId"] == original["id"]
    assert detail["duplicateOf"]["title"] == "Original"
    assert [job["id"] for job in client.get(f"/api/job-descriptions/{original['id']}").json()["duplicates"]] == [
        copy["id"]
    ]

    cycle = client.post(f"/api/job-descriptions/{original['id']}/duplicate/{copy['id']}")
    assert cycle.status_code == 400
    assert "cycle" in cycle.json()["error"]

    itself = client.post(f"/api/job-descriptions/{original['id']}/duplicate/{original['id']}")
    assert itself.status_code == 400

    missing = client.post(f"/api/job-descriptions/{original['id']}/duplicate/missing")
    assert missing.status_code == 404


def test_deleting_original_clears_duplicate_pointer() -> None:
    client = _client()
    original = _create_job(client, title="Original")
    copy = _create_job(client, title="Copy")
    client.post(f"/api/job-descriptions/{copy['id']}/duplicate/{original['id']}")

    assert client.delete(f"/api/job-descriptions/{original['id']}").status_code == 200
    assert client.get(f"/api/job-descriptions/{copy['id']}").json()["duplicateOfId"] is None


def test_analytics_endpoint() -> None:
    client = _client()
    job = _create_job(client)
    client.put(f"/api/job-descriptions/{job['id']}", json={"applicationStatus": "interviewing"})

    analytics = client.get("/api/job-descriptions/stats/analytics").json()
    assert analytics["totalJobs"] == 1
    assert analytics["funnel"]["firstInterview"] == 1
    assert analytics["activitySummary"]["statusChanges"] == 2


def test_unknown_route_and_bad_body() -> None:
    client = _client()
    response = client.get("/api/nope")
    assert response.status_code == 404
    assert response.json() == {"error": "Not Found", "message": "Route /api/nope not found"}

    response = client.post("/api/job-descriptions", json={"title": "x", "company": "y", "rawText": "z", "salaryMin": []})
    assert response.status_code == 400
    assert response.json()["error"] == "Validation Error"


def test_health() -> None:
    body = _client().get("/health").json()
    assert body["status"] == "ok"
    assert body["timestamp"].endswith("Z")


def test_detail_returns_newest_fifty_activity_entries() -> None:
    client = _client()
    job = _create_job(client)
    start = datetime(2030, 1, 1)
    with SessionLocal() as db:
        repo = Repository(db)
        for index in range(60):
            repo.add_activity(
                job["id"],
                {"timestamp": start + timedelta(minutes=index), "type": "note_added", "description": f"entry {index}"},
                commit=False,
            )
        db.commit()

    activity = client.get(f"/api/job-descriptions/{job['id']}").json()["activityLog"]

    assert len(activity) == 50
    assert activity[0]["description"] == "entry 59"
    assert activity[-1]["description"] == "entry 10"
    timestamps = [entry["timestamp"] for entry in activity]
    assert timestamps == sorted(timestamps, reverse=True)
    with SessionLocal() as db:
        stored = db.scalar(
            select(func.count()).select_from(ActivityLog).where(ActivityLog.job_description_id == job["id"])
        )
    assert stored == 61


def test_aging_stats_and_action_reminders() -> None:
    client = _client()
    stale = format_utc(utcnow() - timedelta(days=20))
    client.post(
        "/api/migration/import-from-indexeddb",
        json={
            "jobDescriptions": [
                {
                    "id": "job-stale",
                    "title": "Engineer",
                    "company": "Acme",
                    "rawText": "x",
                    "applicationStatus": "applied",
                    "applicationDate": stale,
                    "lastActivityDate": stale,
                },
                {"id": "job-new", "title": "Analyst", "company": "Globex", "rawText": "x", "applicationStatus": "applied"},
            ]
        },
    )

    assert client.get("/api/job-descriptions/stats/aging").json() == {"fresh": 1, "followup": 0, "stale": 1, "cold": 0}

    actions = client.get("/api/job-descriptions/actions", params={"tone": "savage"}).json()
    assert [(item["id"], item["actionType"], item["urgency"]) for item in actions] == [
        ("job-stale_followup", "followup", "high")
    ]
    assert actions[0]["daysSince"] == 21
    assert actions[0]["message"].startswith("You applied to Acme 21 days ago.")
    assert len(actions[0]["suggestions"]) == 3

    snoozed = client.post("/api/job-descriptions/job-stale/actions/followup/snooze", json={"days": 2})
    assert snoozed.status_code == 200
    assert "followup" in snoozed.json()["snoozedUntil"]
    assert client.get("/api/job-descriptions/actions").json() == []


def test_action_endpoints_validate_input() -> None:
    client = _client()
    job = _create_job(client)

    unknown = client.post(f"/api/job-descriptions/{job['id']}/actions/dance/complete")
    assert unknown.status_code == 400
    assert unknown.json() == {"error": "Unknown action type: dance"}

    short = client.post(f"/api/job-descriptions/{job['id']}/actions/followup/snooze", json={"days": 0})
    assert short.status_code == 400
    assert client.get("/api/job-descriptions/actions", params={"tone": "rude"}).status_code == 400
    assert client.post("/api/job-descriptions/missing/actions/followup/complete").status_code == 404

    completed = client.post(f"/api/job-descriptions/{job['id']}/actions/thankyou/complete").json()
    assert completed["completedActions"]["thankyou"].endswith("Z")
