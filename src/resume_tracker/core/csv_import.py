"""Spreadsheet exports of job applications turned into import-ready job records.

The sheet has one row per application with the columns Date, ID, Source, Company,
Impact, Discipline, Status, Contact/Link and an optional Second Contact/Link.
"""

from __future__ import annotations

import csv
import io
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from resume_tracker.db.base import utcnow
from resume_tracker.types import format_utc

REQUIRED_COLUMNS = ("date", "id", "source", "company", "impact", "discipline", "status", "contact/link")
OPTIONAL_COLUMNS = ("second contact/link",)
PREVIEW_ROWS = 3

STATUS_MAP = {
    "submitted": "applied",
    "interviewed": "interviewing",
    "interviewing": "interviewing",
    "rejected": "rejected",
    "offered": "offered",
}
ROLE_KEYWORDS = (
    (("frontend", "fe dev"), ("frontend", "react", "javascript", "typescript")),
    (("ux",), ("ux", "ui", "design", "user experience")),
    (("software engineer",), ("software", "engineer", "development", "programming")),
    (("mendix",), ("mendix", "low-code", "platform")),
    (("tpm", "technical program manager"), ("tpm", "program management", "technical management")),
)
# Boards that need no "Source:" note.
WELL_KNOWN_SOURCES = {"LinkedIn", "Indeed"}

_WEEKDAY_SUFFIX = re.compile(r"\s*\([^)]*\)")
_LINKEDIN_SLUG = re.compile(r"/in/([^/?]+)")
_PERSON_NAME = re.compile(r"([A-Z][a-z]+ [A-Z][a-z]+)")


@dataclass(slots=True)
class CsvApplication:
    date: str = ""
    id: str = ""
    source: str = ""
    company: str = ""
    impact: str = ""
    discipline: str = ""
    status: str = ""
    contact_link: str = ""
    second_contact_link: str | None = None


@dataclass(slots=True)
class CsvParseResult:
    success: bool
    rows: list[CsvApplication] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    preview: str | None = None


def parse_csv(text: str) -> CsvParseResult:
    try:
        rows = list(csv.reader(io.StringIO(text.strip()), strict=True))
    except csv.Error as exc:
        return CsvParseResult(success=False, errors=[f"Failed to parse CSV: {exc}"])

    if len(rows) < 2:
        return CsvParseResult(
            success=False,
            errors=["CSV file must have at least a header row and one data row"],
        )

    headers = [cell.strip().lower() for cell in rows[0]]
    missing = [f"Missing required column: {name}" for name in REQUIRED_COLUMNS if name not in headers]
    if missing:
        return CsvParseResult(success=False, errors=missing)
    positions = {name: headers.index(name) for name in (*REQUIRED_COLUMNS, *OPTIONAL_COLUMNS) if name in headers}
    needed = max(positions[name] for name in REQUIRED_COLUMNS) + 1

    applications: list[CsvApplication] = []
    errors: list[str] = []
    for number, cells in enumerate(rows[1:], start=2):
        if not any(cell.strip() for cell in cells):
            continue
        if len(cells) < needed:
            errors.append(f"Row {number}: Not enough columns (expected at least {needed}, got {len(cells)})")
            continue

        def cell(name: str) -> str:
            index = positions.get(name)
            return cells[index].strip() if index is not None and index < len(cells) else ""

        if not cell("company") and not cell("discipline"):
            continue
        applications.append(
            CsvApplication(
                date=cell("date"),
                id=cell("id"),
                source=cell("source"),
                company=cell("company"),
                impact=cell("impact"),
                discipline=cell("discipline"),
                status=cell("status"),
                contact_link=cell("contact/link"),
                second_contact_link=cell("second contact/link") or None,
            )
        )
    return CsvParseResult(success=True, rows=applications, errors=errors, preview=preview(applications))


def preview(rows: list[CsvApplication]) -> str:
    if not rows:
        return "No valid job applications found."
    lines = [f"• {row.company} - {row.discipline} ({row.status})" for row in rows[:PREVIEW_ROWS]]
    remaining = len(rows) - PREVIEW_ROWS
    if remaining > 0:
        lines.append(f"... and {remaining} more")
    return "\n".join(lines)


def map_status(value: str) -> str:
    return STATUS_MAP.get(value.strip().lower(), "applied")


def parse_application_date(value: str) -> datetime | None:
    """M/D/YY or M/D/YYYY with an optional weekday suffix such as "11/21/25 (Fri)"."""
    parts = _WEEKDAY_SUFFIX.sub("", value).strip().split("/")
    if len(parts) != 3:
        return None
    month, day, year = parts
    if len(year) == 2 and year.isdigit():
        year = f"19{year}" if int(year) > 50 else f"20{year}"
    try:
        return datetime(int(year), int(month), int(day))
    except ValueError:
        return None


def contact_person(link: str) -> str | None:
    if not link:
        return None
    if "linkedin.com" in link:
        match = _LINKEDIN_SLUG.search(link)
        if match:
            return match.group(1).replace("-", " ").title()
    match = _PERSON_NAME.search(link)
    return match.group(1) if match else None


def keywords(row: CsvApplication) -> list[str]:
    found: list[str] = []
    if row.company:
        found.append(row.company.lower())
    if row.discipline:
        role = row.discipline.lower()
        found.append(role)
        for markers, extra in ROLE_KEYWORDS:
            if any(marker in role for marker in markers):
                found.extend(extra)
    if row.source:
        found.append(row.source.lower())
    return list(dict.fromkeys(found))


def _raw_text(row: CsvApplication) -> str:
    additional = f"Additional Contact: {row.second_contact_link}" if row.second_contact_link else ""
    return (
        f"Position: {row.discipline}\n"
        f"Company: {row.company}\n"
        f"Source: {row.source}\n"
        f"Application Date: {row.date}\n"
        f"Impact Level: {row.impact}\n\n"
        f"Contact Information:\n{row.contact_link}\n{additional}\n\n"
        f"Status: {row.status}"
    )


def _additional_context(row: CsvApplication) -> str:
    lines = []
    if row.source:
        lines.append(f"Found via: {row.source}")
    if row.impact and row.impact != "No":
        lines.append(f"Impact focus: {'High impact role' if row.impact == 'Yes' else row.impact}")
    if row.id:
        lines.append(f"Application ID: {row.id}")
    return "\n".join(lines)


def _notes(row: CsvApplication) -> str:
    lines = []
    if row.source and row.source not in WELL_KNOWN_SOURCES:
        lines.append(f"Source: {row.source}")
    if row.impact == "Yes":
        lines.append("High impact opportunity")
    elif row.impact and row.impact != "No":
        lines.append(f"Impact: {row.impact}")
    if row.second_contact_link:
        lines.append(f"Additional contact: {row.second_contact_link}")
    return "\n".join(lines)


def _priority(impact: str) -> str:
    if impact == "Yes":
        return "high"
    if impact == "Yes??":
        return "medium"
    return "low"


def to_import_jobs(rows: list[CsvApplication]) -> list[dict[str, Any]]:
    """Wire-shaped job payloads accepted by the data import."""
    jobs = []
    for row in rows:
        applied = parse_application_date(row.date)
        applied_at = format_utc(applied) if applied else None
        status = map_status(row.status)
        job: dict[str, Any] = {
            "title": row.discipline or "Unknown Position",
            "company": row.company or "Unknown Company",
            "url": row.contact_link or None,
            "rawText": _raw_text(row),
            "additionalContext": _additional_context(row) or None,
            "extractedInfo": {"role": row.discipline, "company": row.company},
            "keywords": keywords(row),
            "applicationStatus": status,
            "applicationDate": applied_at,
            "submissionDate": applied_at,
            "lastActivityDate": applied_at or format_utc(utcnow()),
            "source": row.source or None,
            "contactPerson": contact_person(row.contact_link),
            "secondaryContact": row.second_contact_link,
            "priority": _priority(row.impact),
            "notes": _notes(row) or None,
        }
        if applied_at:
            job["statusHistory"] = [
                {
                    "status": status,
                    "date": applied_at,
                    "notes": f"Imported from CSV - {row.source or 'Unknown source'}",
                }
            ]
        jobs.append(job)
    return jobs
