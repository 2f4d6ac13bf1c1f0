from __future__ import annotations

from datetime import datetime

from resume_tracker.core.csv_import import (
    CsvApplication,
    contact_person,
    keywords,
    map_status,
    parse_application_date,
    parse_csv,
    preview,
    to_import_jobs,
)

HEADER = "Date,ID,Source,Company,Impact,Discipline,Status,Contact/Link,Second Contact/Link"


def test_parse_maps_cells_by_header_name() -> None:
    text = (
        "Company,Discipline,Status,Date,ID,Source,Impact,Contact/Link\n"
        "Acme,TPM,Offered,2/3/25,X-9,Referral,Yes,Ask Maria Lopez\n"
    )

    result = parse_csv(text)

    assert result.success is True
    assert result.errors == []
    [row] = result.rows
    assert row.company == "Acme"
    assert row.discipline == "TPM"
    assert row.date == "2/3/25"
    assert row.contact_link == "Ask Maria Lopez"
    assert row.second_contact_link is None


def test_parse_skips_blank_and_anonymous_rows() -> None:
    text = "\n".join(
        [
            HEADER,
            "1/2/25,1,LinkedIn,Acme,No,Engineer,Submitted,,",
            ",,,,,,,,",
            "1/3/25,2,LinkedIn,,No,,Submitted,,",
            "1/4/25,3,LinkedIn",
        ]
    )

    result = parse_csv(text)

    assert [row.company for row in result.rows] == ["Acme"]
    assert result.errors == ["Row 5: Not enough columns (expected at least 8, got 3)"]


def test_parse_failures() -> None:
    assert parse_csv(HEADER).errors == ["CSV file must have at least a header row and one data row"]

    missing = parse_csv("Date,ID,Company\n1/1/25,1,Acme")
    assert missing.success is False
    assert missing.errors == [
        "Missing required column: source",
        "Missing required column: impact",
        "Missing required column: discipline",
        "Missing required column: status",
        "Missing required column: contact/link",
    ]

    broken = parse_csv(HEADER + '\n1/1/25,1,LinkedIn,"Acme')
    assert broken.success is False
    assert broken.errors[0].startswith("Failed to parse CSV:")


def test_quoted_cells_keep_commas() -> None:
    result = parse_csv(HEADER + '\n1/1/25,1,LinkedIn,"Acme, Inc.",No,"Engineer ""II""",Submitted,,')
    assert result.rows[0].company == "Acme, Inc."
    assert result.rows[0].discipline == 'Engineer "II"'


def test_preview_lists_first_three_rows() -> None:
    rows = [CsvApplication(company=f"Co{index}", discipline="Dev", status="Submitted") for index in range(5)]
    assert preview(rows).splitlines() == [
        "• Co0 - Dev (Submitted)",
        "• Co1 - Dev (Submitted)",
        "• Co2 - Dev (Submitted)",
        "... and 2 more",
    ]
    assert preview([]) == "No valid job applications found."


def test_status_and_date_mapping() -> None:
    assert map_status(" Submitted ") == "applied"
    assert map_status("Interviewed") == "interviewing"
    assert map_status("ghosted") == "applied"

    assert parse_application_date("11/21/25 (Fri)") == datetime(2025, 11, 21)
    assert parse_application_date("1/2/99") == datetime(1999, 1, 2)
    assert parse_application_date("3/4/2024") == datetime(2024, 3, 4)
    assert parse_application_date("13/40/25") is None
    assert parse_application_date("2025-01-01") is None
    assert parse_application_date("") is None


def test_contact_person_heuristics() -> None:
    assert contact_person("https://www.linkedin.com/in/jane-doe?trk=x") == "Jane Doe"
    assert contact_person("emailed Sam Carter last week") == "Sam Carter"
    assert contact_person("recruiting@acme.example") is None
    assert contact_person("") is None


def test_keywords_add_role_variations_once() -> None:
    row = CsvApplication(company="UX", discipline="UX Engineer", source="LinkedIn")
    assert keywords(row) == ["ux", "ux engineer", "ui", "design", "user experience", "linkedin"]


def test_import_jobs_shape() -> None:
    row = CsvApplication(
        date="11/21/25 (Fri)",
        id="A-1",
        source="Referral",
        company="Acme",
        impact="Yes",
        discipline="Software Engineer",
        status="Interviewing",
        contact_link="https://www.linkedin.com/in/jane-doe",
        second_contact_link="bob@acme.example",
    )

    [job] = to_import_jobs([row])

    assert job["title"] == "Software Engineer"
    assert job["applicationStatus"] == "interviewing"
    assert job["applicationDate"] == "2025-11-21T00:00:00.000Z"
    assert job["submissionDate"] == job["applicationDate"] == job["lastActivityDate"]
    assert job["priority"] == "high"
    assert job["contactPerson"] == "Jane Doe"
    assert job["additionalContext"] == "Found via: Referral\nImpact focus: High impact role\nApplication ID: A-1"
    assert job["notes"] == "Source: Referral\nHigh impact opportunity\nAdditional contact: bob@acme.example"
    assert job["statusHistory"] == [
        {"status": "interviewing", "date": job["applicationDate"], "notes": "Imported from CSV - Referral"}
    ]
    assert "Position: Software Engineer" in job["rawText"]


def test_import_jobs_defaults_for_sparse_rows() -> None:
    [job] = to_import_jobs([CsvApplication(company="Acme", impact="No")])

    assert job["title"] == "Unknown Position"
    assert job["applicationStatus"] == "applied"
    assert job["applicationDate"] is None
    assert job["lastActivityDate"].endswith("Z")
    assert job["priority"] == "low"
    assert job["notes"] is None
    assert "statusHistory" not in job
