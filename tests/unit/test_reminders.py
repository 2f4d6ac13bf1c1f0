from __future__ import annotations

from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest

from resume_tracker.config import Settings
from resume_tracker.core.reminders import (
    ReminderRules,
    action_items,
    aging_stats,
    completion_values,
    most_recent_activity,
    snooze_values,
)
from resume_tracker.errors import ValidationError
from resume_tracker.types import format_utc

NOW = datetime(2026, 3, 10, 12, 0)


def _job(days: float = 5, **overrides) -> SimpleNamespace:
    values = {
        "id": "job-1",
        "company": "Acme",
        "application_status": "applied",
        "offer_stage": None,
        "is_archived": False,
        "duplicate_of_id": None,
        "application_date": None,
        "last_activity_date": NOW - timedelta(days=days),
        "completed_actions": {},
        "snoozed_until": {},
    }
    values.update(overrides)
    return SimpleNamespace(**values)


def _actions(*jobs, rules: ReminderRules | None = None) -> list[tuple[str, str, int]]:
    return [(item.action_type, item.urgency, item.days_since) for item in action_items(jobs, rules, now=NOW)]


def test_aging_buckets_by_most_recent_date() -> None:
    jobs = [
        _job(3),
        _job(4),
        _job(14),
        _job(15),
        _job(30),
        _job(31),
        _job(2, is_archived=True),
        _job(2, application_status="duplicate"),
        _job(2, duplicate_of_id="job-0"),
        _job(last_activity_date=None),
    ]
    assert aging_stats(jobs, now=NOW) == {"fresh": 1, "followup": 2, "stale": 2, "cold": 1}


def test_most_recent_activity_prefers_later_date() -> None:
    job = _job(10, application_date=NOW - timedelta(days=2))
    assert most_recent_activity(job) == NOW - timedelta(days=2)
    assert most_recent_activity(_job(application_date="2026-03-01T00:00:00.000Z", last_activity_date=None)) == (
        datetime(2026, 3, 1)
    )


def test_followup_urgency_grows_with_silence() -> None:
    assert _actions(_job(3)) == []
    assert _actions(_job(4)) == [("followup", "low", 4)]
    assert _actions(_job(8)) == [("followup", "medium", 8)]
    assert _actions(_job(15)) == [("followup", "high", 15)]
    assert _actions(_job(5), rules=ReminderRules(followup_days=7)) == []


def test_interview_and_offer_actions() -> None:
    assert _actions(_job(3, application_status="interviewing")) == [("thankyou", "medium", 3)]
    assert _actions(_job(11, application_status="interviewing")) == [
        ("thankyou", "high", 11),
        ("decision_check", "medium", 11),
    ]
    assert _actions(_job(2, application_status="offered", offer_stage="received")) == [("offer_response", "low", 2)]
    assert _actions(_job(9, application_status="offered", offer_stage="accepted")) == []
    assert _actions(_job(30, application_status="rejected"), _job(30, application_status="withdrawn")) == []


def test_items_sort_by_urgency_then_age() -> None:
    items = action_items(
        [
            _job(5, id="low"),
            _job(20, id="oldest"),
            _job(16, id="high"),
            _job(9, id="medium"),
        ],
        now=NOW,
    )
    assert [item.job_id for item in items] == ["oldest", "high", "medium", "low"]
    assert items[0].id == "oldest_followup"


def test_completed_and_snoozed_actions_are_hidden() -> None:
    recent = format_utc(NOW - timedelta(days=1))
    before_activity = format_utc(NOW - timedelta(days=9))
    assert _actions(_job(5, completed_actions={"followup": recent})) == []
    assert _actions(_job(5, completed_actions={"followup": before_activity})) == [("followup", "low", 5)]

    assert _actions(_job(5, snoozed_until={"followup": format_utc(NOW + timedelta(days=1))})) == []
    assert _actions(_job(5, snoozed_until={"followup": format_utc(NOW - timedelta(hours=1))})) == [
        ("followup", "low", 5)
    ]


def test_messages_follow_tone() -> None:
    [gentle] = action_items([_job(5)], now=NOW)
    [savage] = action_items([_job(5)], ReminderRules(tone="savage"), now=NOW)
    assert gentle.message == "Consider following up on your Acme application (5 days)"
    assert savage.message.startswith("You applied to Acme 5 days ago.")
    assert gentle.suggestions == savage.suggestions
    assert gentle.model_dump(by_alias=True)["actionType"] == "followup"


def test_rules_from_settings() -> None:
    settings = Settings(followup_reminder_days=6, reminder_tone="medium")
    rules = ReminderRules.from_settings(settings)
    assert rules.followup_days == 6
    assert rules.tone == "medium"
    assert ReminderRules.from_settings(settings, tone="savage").tone == "savage"
    with pytest.raises(ValidationError):
        ReminderRules.from_settings(settings, tone="rude")


def test_completion_and_snooze_values() -> None:
    job = _job(5, completed_actions={"thankyou": "2026-01-01T00:00:00.000Z"})

    completed = completion_values(job, "followup", now=NOW)
    assert completed["completed_actions"] == {
        "thankyou": "2026-01-01T00:00:00.000Z",
        "followup": "2026-03-10T12:00:00.000Z",
    }
    assert completed["last_activity_date"] == NOW

    snoozed = snooze_values(job, "followup", 3, now=NOW)
    assert snoozed == {"snoozed_until": {"followup": "2026-03-13T12:00:00.000Z"}}

    with pytest.raises(ValidationError):
        snooze_values(job, "followup", 0, now=NOW)
    with pytest.raises(ValidationError):
        completion_values(job, "dance", now=NOW)
