from __future__ import annotations

import logging
from typing import Any

import requests

from resume_tracker.client.base import JOB_DESCRIPTIONS, StorageBackend
from resume_tracker.errors import TrackerError

logger = logging.getLogger(__name__)

CLEAR_CONFIRMATION = "DELETE_ALL_DATA"


class ApiError(TrackerError):
    """Non-2xx reply from the tracker API; ``status`` is 0 for transport failures."""

    def __init__(self, status: int, message: str):
        super().__init__(message)
        self.status = status
        self.status_code = status or 503


class ApiStorage(StorageBackend):
    def __init__(self, base_url: str, timeout_sec: int = 30, session: Any | None = None):
        self.base_url = base_url.rstrip("/")
        self.timeout_sec = timeout_sec
        self.session = session or requests.Session()

    def _request(self, method: str, endpoint: str, payload: Any = None) -> Any:
        url = f"{self.base_url}{endpoint}"
        options: dict[str, Any] = {"json": payload, "headers": {"Content-Type": "application/json"}}
        if isinstance(self.session, requests.Session):
            # TestClient warns on per-request timeouts.
            options["timeout"] = self.timeout_sec
        try:
            response = self.session.request(method, url, **options)
        except requests.RequestException as exc:
            logger.warning("API request failed: %s %s (%s)", method, url, exc)
            raise ApiError(0, f"Network error: {exc}") from exc

        if response.status_code >= 400:
            try:
                body = response.json()
            except ValueError:
                body = {}
            reason = getattr(response, "reason", None) or getattr(response, "reason_phrase", "")
            message = (body.get("error") if isinstance(body, dict) else None) or (
                f"HTTP {response.status_code}: {reason}"
            )
            raise ApiError(response.status_code, message)
        return response.json()

    def _get_or_none(self, endpoint: str) -> Any | None:
        try:
            return self._request("GET", endpoint)
        except ApiError as exc:
            if exc.status == 404:
                return None
            raise

    def _save(self, collection: str, record: dict[str, Any]) -> dict[str, Any]:
        record_id = record.get("id")
        body = {key: value for key, value in record.items() if key != "id"}
        if record_id:
            try:
                return self._request("PUT", f"/{collection}/{record_id}", body)
            except ApiError as exc:
                if exc.status != 404:
                    raise
        return self._request("POST", f"/{collection}", {**body, "id": record_id} if record_id else body)

    def _get(self, collection: str, record_id: str) -> dict[str, Any] | None:
        return self._get_or_none(f"/{collection}/{record_id}")

    def _load(self, collection: str) -> list[dict[str, Any]]:
        return self._request("GET", f"/{collection}")

    def _delete(self, collection: str, record_id: str) -> None:
        self._request("DELETE", f"/{collection}/{record_id}")

    def _link(self, collection: str, document_id: str, job_id: str) -> None:
        self._request("POST", f"/{collection}/{document_id}/link-job/{job_id}")

    def _unlink(self, collection: str, document_id: str, job_id: str) -> None:
        self._request("DELETE", f"/{collection}/{document_id}/unlink-job/{job_id}")

    def archive_job_description(self, job_id: str) -> dict[str, Any]:
        return self._request("POST", f"/{JOB_DESCRIPTIONS}/{job_id}/archive")

    def mark_duplicate(self, job_id: str, duplicate_of_id: str) -> None:
        self._request("POST", f"/{JOB_DESCRIPTIONS}/{job_id}/duplicate/{duplicate_of_id}")

    def parse_job_description(self, raw_text: str, additional_context: dict | None = None) -> dict[str, Any]:
        return self._request(
            "POST",
            f"/{JOB_DESCRIPTIONS}/parse",
            {"rawText": raw_text, "additionalContext": additional_context},
        )

    def get_scraper_cache(self, input_hash: str) -> dict[str, Any] | None:
        return self._get_or_none(f"/scraper-cache/{input_hash}")

    def set_scraper_cache(self, entry: dict[str, Any]) -> dict[str, Any]:
        return self._request("POST", "/scraper-cache", entry)

    def clear_expired_scraper_cache(self) -> int:
        return self._request("DELETE", "/scraper-cache/cleanup/expired").get("count", 0)

    def import_data(self, data: dict[str, Any]) -> dict[str, Any]:
        return self._request("POST", "/migration/import-from-indexeddb", data)

    def export_data(self) -> dict[str, Any]:
        return self._request("GET", "/migration/export-to-json")

    def clear_all_data(self) -> None:
        self._request("DELETE", "/migration/clear-all-data", {"confirm": CLEAR_CONFIRMATION})

    def get_stats(self) -> dict[str, int]:
        return self._request("GET", f"/{JOB_DESCRIPTIONS}/stats/summary")

    def get_analytics(self) -> dict[str, Any]:
        return self._request("GET", f"/{JOB_DESCRIPTIONS}/stats/analytics")

    def get_aging_stats(self) -> dict[str, int]:
        return self._request("GET", f"/{JOB_DESCRIPTIONS}/stats/aging")

    def get_action_items(self, tone: str | None = None) -> list[dict[str, Any]]:
        query = f"?tone={tone}" if tone else ""
        return self._request("GET", f"/{JOB_DESCRIPTIONS}/actions{query}")

    def complete_action(self, job_id: str, action_type: str) -> dict[str, Any]:
        return self._request("POST", f"/{JOB_DESCRIPTIONS}/{job_id}/actions/{action_type}/complete")

    def snooze_action(self, job_id: str, action_type: str, days: int) -> dict[str, Any]:
        return self._request("POST", f"/{JOB_DESCRIPTIONS}/{job_id}/actions/{action_type}/snooze", {"days": days})

    def import_csv(self, csv_text: str) -> dict[str, Any]:
        return self._request("POST", f"/{JOB_DESCRIPTIONS}/import-csv", {"csvText": csv_text})
