from __future__ import annotations

import math
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Literal

from resume_tracker.db.base import as_naive_utc, utcnow
from resume_tracker.errors import ValidationError
from resume_tracker.types import CamelModel, format_utc

ActionType = Literal["followup", "thankyou", "decision_check", "offer_response"]
Urgency = Literal["low", "medium", "high"]

ACTION_TYPES: tuple[str, ...] = ("followup", "thankyou", "decision_check", "offer_response")
REMINDER_TONES = ("gentle", "medium", "savage")
AGING_BUCKETS = ("fresh", "followup", "stale", "cold")
INACTIVE_STATUSES = {"archived", "duplicate", "rejected", "withdrawn"}
OPEN_OFFER_STAGES = {"received", "considering"}
_URGENCY_ORDER = {"high": 3, "medium": 2, "low": 1}

MESSAGES: dict[str, dict[str, str]] = {
    "followup": {
        "gentle": "Consider following up on your {company} application ({days} days)",
        "medium": "{days} days of silence from {company}. Time to poke them?",
        "savage": "You applied to {company} {days} days ago. They've forgotten you exist. DO SOMETHING.",
    },
    "thankyou": {
        "gentle": "Thank you note recommended for {company} interview",
        "medium": "{company} interview was {days} days ago. Where's the gratitude?",
        "savage": "{days} days without thanking {company}. They think you're rude now.",
    },
    "decision_check": {
        "gentle": "Consider asking {company} about their decision timeline",
        "medium": "{days} days in limbo. Get a timeline from {company}!",
        "savage": "{company} has strung you along for {days} days. Demand a timeline.",
    },
    "offer_response": {
        "gentle": "You have an offer from {company}; time to respond thoughtfully",
        "medium": "{company} made you an offer {days} days ago. Don't leave them hanging!",
        "savage": "{company} offered you a job {days} days ago. Stop overthinking and respond!",
    },
}

SUGGESTIONS: dict[str, list[str]] = {
    "followup": [
        "Email the recruiter: restate your interest in the role and ask about next steps.",
        "Message the hiring manager on LinkedIn with a short note about your application.",
        "Reference recent company news in your follow-up to show you are paying attention.",
    ],
    "thankyou": [
        "Send each interviewer a personal note that mentions something you discussed.",
        "Connect with the interviewers on LinkedIn with a brief thank you.",
        "Restate how you would help with a challenge raised in the interview.",
    ],
    "decision_check": [
        "Ask for the expected timeline for a final decision.",
        "Ask which steps remain in the hiring process.",
        "Offer references or work samples if they would help the decision.",
    ],
    "offer_response": [
        "Thank them for the offer and confirm when they need an answer.",
        "Ask for the full compensation package, benefits, and start date in writing.",
        "If the numbers are off, name the salary you were hoping for and ask about flexibility.",
    ],
}


class ActionItem(CamelModel):
    id: str
    job_id: str
    company: str
    action_type: ActionType
    urgency: Urgency
    message: str
    suggestions: list[str]
    days_since: int
    can_snooze: bool = True


@dataclass(slots=True)
class ReminderRules:
    followup_days: int = 4
    thank_you_days: int = 2
    decision_check_days: int = 10
    tone: str = "gentle"

    @classmethod
    def from_settings(cls, settings: Any, tone: str | None = None) -> ReminderRules:
        return cls(
            followup_days=settings.followup_reminder_days,
            thank_you_days=settings.thank_you_reminder_days,
            decision_check_days=settings.decision_check_days,
            tone=require_tone(tone or settings.reminder_tone),
        )


def require_action_type(value: str) -> str:
    if value not in ACTION_TYPES:
        raise ValidationError(f"Unknown action type: {value}")
    return value


def require_tone(value: str) -> str:
    if value not in REMINDER_TONES:
        raise ValidationError(f"Unknown reminder tone: {value}")
    return value


def _moment(value: Any) -> datetime | None:
    if isinstance(value, datetime):
        return as_naive_utc(value)
    if isinstance(value, str) and value:
        try:
            return as_naive_utc(datetime.fromisoformat(value))
        except ValueError:
            return None
    return None


def days_since(moment: datetime, now: datetime) -> int:
    return max(0, math.ceil((now - moment).total_seconds() / 86400))


def aging_category(days: int) -> str:
    if days <= 3:
        return "fresh"
    if days <= 14:
        return "followup"
    if days <= 30:
        return "stale"
    return "cold"


def most_recent_activity(job: Any) -> datetime | None:
    moments = [
        moment
        for moment in (_moment(job.last_activity_date), _moment(job.application_date))
        if moment is not None
    ]
    return max(moments) if moments else None


def _is_tracked(job: Any) -> bool:
    return not (job.is_archived or job.duplicate_of_id or job.application_status in {"archived", "duplicate"})


def aging_stats(jobs: Iterable[Any], now: datetime | None = None) -> dict[str, int]:
    """Open jobs bucketed by days since their most recent application or activity date."""
    now = now or utcnow()
    stats = dict.fromkeys(AGING_BUCKETS, 0)
    for job in jobs:
        if not _is_tracked(job):
            continue
        moment = most_recent_activity(job)
        if moment is not None:
            stats[aging_category(days_since(moment, now))] += 1
    return stats


def is_snoozed(job: Any, action_type: str, now: datetime) -> bool:
    until = _moment((job.snoozed_until or {}).get(action_type))
    return until is not None and until > now


def is_completed(job: Any, action_type: str, since: datetime | None) -> bool:
    completed = _moment((job.completed_actions or {}).get(action_type))
    return completed is not None and (since is None or completed >= since)


def _due_actions(job: Any, days: int, rules: ReminderRules) -> list[tuple[str, str]]:
    status = job.application_status
    due: list[tuple[str, str]] = []
    if status == "applied" and days >= rules.followup_days:
        due.append(("followup", "high" if days > 14 else "medium" if days > 7 else "low"))
    if status == "interviewing":
        if days >= rules.thank_you_days:
            due.append(("thankyou", "high" if days > 5 else "medium"))
        if days >= rules.decision_check_days:
            due.append(("decision_check", "high" if days > 14 else "medium"))
    if status == "offered" and job.offer_stage in OPEN_OFFER_STAGES and days >= 1:
        due.append(("offer_response", "high" if days > 7 else "medium" if days > 3 else "low"))
    return due


def action_items(
    jobs: Iterable[Any],
    rules: ReminderRules | None = None,
    now: datetime | None = None,
) -> list[ActionItem]:
    rules = rules or ReminderRules()
    now = now or utcnow()
    items: list[ActionItem] = []
    for job in jobs:
        if not _is_tracked(job) or job.application_status in INACTIVE_STATUSES:
            continue
        moment = most_recent_activity(job)
        days = days_since(moment, now) if moment is not None else 0
        for action_type, urgency in _due_actions(job, days, rules):
            if is_snoozed(job, action_type, now) or is_completed(job, action_type, moment):
                continue
            items.append(
                ActionItem(
                    id=f"{job.id}_{action_type}",
                    job_id=job.id,
                    company=job.company,
                    action_type=action_type,
                    urgency=urgency,
                    message=MESSAGES[action_type][rules.tone].format(company=job.company, days=days),
                    suggestions=list(SUGGESTIONS[action_type]),
                    days_since=days,
                )
            )
    items.sort(key=lambda item: (_URGENCY_ORDER[item.urgency], item.days_since), reverse=True)
    return items


def completion_values(job: Any, action_type: str, now: datetime | None = None) -> dict[str, Any]:
    """Attribute updates recording a finished action; completing one counts as activity."""
    now = now or utcnow()
    return {
        "completed_actions": {**(job.completed_actions or {}), require_action_type(action_type): format_utc(now)},
        "last_activity_date": now,
    }


def snooze_values(job: Any, action_type: str, days: int, now: datetime | None = None) -> dict[str, Any]:
    if days < 1:
        raise ValidationError("Snooze days must be at least 1")
    now = now or utcnow()
    until = format_utc(now + timedelta(days=days))
    return {"snoozed_until": {**(job.snoozed_until or {}), require_action_type(action_type): until}}
