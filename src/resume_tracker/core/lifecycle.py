from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from pydantic.alias_generators import to_camel

MANAGED_FIELDS = ("id", "createdAt", "updatedAt", "sequentialId")
DUPLICATE_STATUS = "duplicate"
CREATED_NOTE = "Job description created"


def strip_managed_fields(payload: dict[str, Any]) -> dict[str, Any]:
    managed = set(MANAGED_FIELDS) | {"created_at", "updated_at", "sequential_id"}
    return {key: value for key, value in payload.items() if key not in managed}


def camelize(values: dict[str, Any]) -> dict[str, Any]:
    return {to_camel(key): value for key, value in values.items()}


@dataclass(slots=True)
class StatusTransition:
    previous: str | None
    status: str
    interview_stage: str | None = None
    offer_stage: str | None = None
    notes: str | None = None

    def history_values(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "interview_stage": self.interview_stage,
            "offer_stage": self.offer_stage,
            "notes": self.notes or f"Status changed to {self.status}",
        }

    def activity_values(self) -> dict[str, Any]:
        return {
            "type": "status_change",
            "from_value": {"status": self.previous},
            "to_value": {"status": self.status},
            "description": f"Status changed from {self.previous} to {self.status}",
        }


def status_transition(current_status: str | None, values: dict[str, Any]) -> StatusTransition | None:
    """Transition implied by an update, or None when the status is absent or unchanged."""
    new_status = values.get("application_status")
    if not new_status or new_status == current_status:
        return None
    return StatusTransition(
        previous=current_status,
        status=new_status,
        interview_stage=values.get("interview_stage"),
        offer_stage=values.get("offer_stage"),
        notes=values.get("notes"),
    )


def creation_history(status: str) -> dict[str, Any]:
    return {"status": status, "notes": CREATED_NOTE}


def creation_activity(status: str) -> dict[str, Any]:
    return {
        "type": "status_change",
        "to_value": {"status": status},
        "description": CREATED_NOTE,
    }


def archive_activity() -> dict[str, Any]:
    return {
        "type": "status_change",
        "to_value": {"archived": True},
        "description": "Job description archived",
    }


def parse_activity(succeeded: bool, keyword_count: int = 0, error: str | None = None) -> dict[str, Any]:
    if succeeded:
        description = f"Job description parsed ({keyword_count} keywords)"
    else:
        description = f"Job description parsing failed: {error or 'unknown error'}"
    return {
        "type": "field_updated",
        "field": "extractedInfo",
        "to_value": {"parseStatus": "parsed" if succeeded else "failed"},
        "description": description,
    }


def creates_duplicate_cycle(
    job_id: str,
    target_id: str,
    duplicate_of: Callable[[str], str | None],
) -> bool:
    """True when pointing ``job_id`` at ``target_id`` would close a duplicate chain loop."""
    if job_id == target_id:
        return True
    seen: set[str] = set()
    current: str | None = target_id
    while current and current not in seen:
        if current == job_id:
            return True
        seen.add(current)
        current = duplicate_of(current)
    return False
