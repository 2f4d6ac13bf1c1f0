from __future__ import annotations

from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass, field

SUMMARY_STATUSES = ("applied", "interviewing", "rejected", "offered")
INTERVIEW_STAGE_BUCKETS = {
    "screening": "screening",
    "first_interview": "firstInterview",
    "followup_interview": "followupInterview",
    "final_round": "finalRound",
    "assessment": "assessment",
}
FUNNEL_STATUS_BUCKETS = {
    "not_applied": "notApplied",
    "applied": "applied",
    "offered": "offered",
    "rejected": "rejected",
    "withdrawn": "withdrawn",
    "duplicate": "duplicate",
}


@dataclass(slots=True)
class JobSnapshot:
    status: str
    interview_stage: str | None = None
    is_archived: bool = False
    activity_types: list[str] = field(default_factory=list)


def status_summary(jobs: Iterable[JobSnapshot]) -> dict[str, int]:
    """Headline counts; ``pending`` is whatever the other buckets do not cover."""
    rows = list(jobs)
    counts = Counter(job.status for job in rows)
    summary = {"total": len(rows)}
    for status in SUMMARY_STATUSES:
        summary[status] = counts.get(status, 0)
    summary["archived"] = sum(1 for job in rows if job.is_archived)
    summary["pending"] = summary["total"] - sum(summary[key] for key in (*SUMMARY_STATUSES, "archived"))
    return summary


def _percent(part: int, whole: int) -> float:
    return (part / whole) * 100 if whole else 0.0


def job_analytics(jobs: Iterable[JobSnapshot]) -> dict:
    rows = list(jobs)
    status_distribution = Counter(job.status or "not_applied" for job in rows)
    stage_distribution = Counter(job.interview_stage for job in rows if job.interview_stage)
    activity = Counter(kind for job in rows for kind in job.activity_types)

    applied = sum(1 for job in rows if job.status and job.status != "not_applied")
    interviewing = status_distribution.get("interviewing", 0)
    offered = status_distribution.get("offered", 0)
    rejected = status_distribution.get("rejected", 0)

    return {
        "totalJobs": len(rows),
        "statusDistribution": dict(status_distribution),
        "interviewStageDistribution": dict(stage_distribution),
        "conversionRates": {
            "appliedToInterview": _percent(interviewing, applied),
            "appliedToHired": _percent(offered, applied),
            "appliedToRejected": _percent(rejected, applied),
            "interviewToHired": _percent(offered, interviewing),
            "interviewToRejected": _percent(rejected, interviewing),
        },
        "activitySummary": {
            "totalActivities": sum(activity.values()),
            "statusChanges": activity.get("status_change", 0),
            "interviewStageChanges": activity.get("interview_stage_change", 0),
            "notesAdded": activity.get("note_added", 0),
        },
        "funnel": funnel_counts(rows),
    }


def funnel_counts(jobs: Iterable[JobSnapshot]) -> dict[str, int]:
    funnel = dict.fromkeys(
        [
            "notApplied",
            "applied",
            "screening",
            "firstInterview",
            "followupInterview",
            "finalRound",
            "assessment",
            "offered",
            "rejected",
            "withdrawn",
            "duplicate",
            "archived",
        ],
        0,
    )
    for job in jobs:
        if job.status == "interviewing":
            # An interviewing job without a known stage counts as a first interview.
            funnel[INTERVIEW_STAGE_BUCKETS.get(job.interview_stage or "", "firstInterview")] += 1
        elif job.status in FUNNEL_STATUS_BUCKETS:
            funnel[FUNNEL_STATUS_BUCKETS[job.status]] += 1
        if job.is_archived:
            funnel["archived"] += 1
    return funnel
