from __future__ import annotations

from fastapi.testclient import TestClient

from resume_tracker.api.app import create_app

PAST = "2000-01-01T00:00:00.000Z"
FUTURE = "2999-01-01T00:00:00.000Z"


def _client() -> TestClient:
    return TestClient(create_app())


def test_upsert_and_get_entry() -> None:
    client = _client()

    created = client.post("/api/scraper-cache", json={"inputHash": "h1", "result": "first"})
    assert created.status_code == 201
    entry = created.json()
    assert entry["inputHash"] == "h1"
    assert entry["expiresAt"] > entry["createdAt"]

    replaced = client.post(
        "/api/scraper-cache",
        json={"inputHash": "h1", "result": {"title": "second"}, "expiresAt": FUTURE},
    ).json()
    assert replaced["id"] == entry["id"]
    assert replaced["result"] == '{"title": "second"}'
    assert replaced["expiresAt"] == FUTURE

    assert client.get("/api/scraper-cache/h1").json()["result"] == '{"title": "second"}'
    assert len(client.get("/api/scraper-cache").json()) == 1


def test_upsert_requires_hash_and_result() -> None:
    response = _client().post("/api/scraper-cache", json={"inputHash": "h1"})
    assert response.status_code == 400
    assert response.json() == {"error": "Missing required fields: inputHash and result"}


def test_expired_entries_are_hidden_and_cleaned_up() -> None:
    client = _client()
    client.post("/api/scraper-cache", json={"inputHash": "old", "result": "x", "expiresAt": PAST})
    client.post("/api/scraper-cache", json={"inputHash": "new", "result": "y", "expiresAt": FUTURE})

    missing = client.get("/api/scraper-cache/old")
    assert missing.status_code == 404
    assert missing.json() == {"error": "Cache entry not found or expired"}

    assert client.get("/api/scraper-cache/stats/summary").json() == {"total": 2, "active": 1, "expired": 1}

    cleanup = client.delete("/api/scraper-cache/cleanup/expired").json()
    assert cleanup == {"message": "Cleaned up 1 expired cache entries", "count": 1}
    assert [entry["inputHash"] for entry in client.get("/api/scraper-cache").json()] == ["new"]


def test_filter_and_delete() -> None:
    client = _client()
    for index in range(3):
        client.post("/api/scraper-cache", json={"inputHash": f"h{index}", "result": "r"})

    assert len(client.get("/api/scraper-cache?limit=2").json()) == 2
    assert [entry["inputHash"] for entry in client.get("/api/scraper-cache?inputHash=h1").json()] == ["h1"]

    assert client.delete("/api/scraper-cache/h1").status_code == 200
    response = client.delete("/api/scraper-cache/h1")
    assert response.status_code == 404
    assert response.json() == {"error": "Cache entry not found"}
