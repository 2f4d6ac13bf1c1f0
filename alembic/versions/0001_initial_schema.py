"""Tracker tables: documents, job descriptions, links, history, activity, scraper cache

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-19

"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = "0001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    ]


def _document_columns() -> list[sa.Column]:
    return [
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("file_name", sa.String(255), nullable=False),
        sa.Column("file_size", sa.Integer(), nullable=False),
        sa.Column("upload_date", sa.DateTime(), nullable=False),
        sa.Column("file_data", sa.Text(), nullable=False),
        sa.Column("file_type", sa.String(20), nullable=False),
        sa.Column("text_content", sa.Text(), nullable=True),
        sa.Column("markdown_content", sa.Text(), nullable=True),
        sa.Column("detected_company", sa.String(255), nullable=True),
        sa.Column("detected_role", sa.String(255), nullable=True),
    ]


def _job_child(name: str, *columns: sa.Column, unique: tuple[str, str] | None = None) -> None:
    args: list = [
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column(
            "job_description_id",
            sa.String(64),
            sa.ForeignKey("job_descriptions.id", ondelete="CASCADE"),
            nullable=False,
        ),
        *columns,
        *_timestamps(),
    ]
    if unique is not None:
        args.append(sa.UniqueConstraint(*unique, name=f"uq_{name.removesuffix('s')}"))
    op.create_table(name, *args)
    op.create_index(f"ix_{name}_job_description_id", name, ["job_description_id"])


def upgrade() -> None:
    op.create_table("resumes", *_document_columns(), *_timestamps())
    op.create_table(
        "cover_letters",
        *_document_columns(),
        sa.Column("target_company", sa.String(255), nullable=True),
        sa.Column("target_position", sa.String(255), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        "job_descriptions",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("sequential_id", sa.Integer(), nullable=False, unique=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("company", sa.String(255), nullable=False),
        sa.Column("role", sa.String(255), nullable=True),
        sa.Column("location", sa.String(255), nullable=True),
        sa.Column("work_arrangement", sa.String(40), nullable=True),
        sa.Column("source1_type", sa.String(40), nullable=True),
        sa.Column("source1_content", sa.Text(), nullable=True),
        sa.Column("source2_type", sa.String(40), nullable=True),
        sa.Column("source2_content", sa.Text(), nullable=True),
        sa.Column("salary_min", sa.Integer(), nullable=True),
        sa.Column("salary_max", sa.Integer(), nullable=True),
        sa.Column("salary_range", sa.String(255), nullable=True),
        sa.Column("contact_name", sa.String(255), nullable=True),
        sa.Column("contact_email", sa.String(255), nullable=True),
        sa.Column("contact_phone", sa.String(80), nullable=True),
        sa.Column("url", sa.String(1000), nullable=True),
        sa.Column("raw_text", sa.Text(), nullable=False),
        sa.Column("additional_context", sa.Text(), nullable=True),
        sa.Column("extracted_info", sa.JSON(), nullable=False),
        sa.Column("keywords", sa.JSON(), nullable=False),
        sa.Column("ai_usage", sa.JSON(), nullable=True),
        sa.Column("parse_status", sa.String(20), nullable=False),
        sa.Column("upload_date", sa.DateTime(), nullable=False),
        sa.Column("application_status", sa.String(40), nullable=False),
        sa.Column("interview_stage", sa.String(40), nullable=True),
        sa.Column("offer_stage", sa.String(40), nullable=True),
        sa.Column("is_archived", sa.Boolean(), nullable=False),
        sa.Column("duplicate_of_id", sa.String(64), sa.ForeignKey("job_descriptions.id"), nullable=True),
        sa.Column("application_date", sa.DateTime(), nullable=True),
        sa.Column("submission_date", sa.DateTime(), nullable=True),
        sa.Column("last_activity_date", sa.DateTime(), nullable=True),
        sa.Column("follow_up_date", sa.DateTime(), nullable=True),
        sa.Column("source", sa.String(255), nullable=True),
        sa.Column("contact_person", sa.String(255), nullable=True),
        sa.Column("secondary_contact", sa.String(255), nullable=True),
        sa.Column("priority", sa.String(20), nullable=False),
        sa.Column("impact", sa.String(20), nullable=False),
        sa.Column("waiting_for_response", sa.Boolean(), nullable=False),
        sa.Column("interview_dates", sa.JSON(), nullable=False),
        sa.Column("salary_discussed", sa.String(255), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
    )
    for column in ("application_status", "is_archived", "duplicate_of_id"):
        op.create_index(f"ix_job_descriptions_{column}", "job_descriptions", [column])

    _job_child(
        "job_resume_links",
        sa.Column("resume_id", sa.String(64), sa.ForeignKey("resumes.id", ondelete="CASCADE"), nullable=False),
        unique=("job_description_id", "resume_id"),
    )
    op.create_index("ix_job_resume_links_resume_id", "job_resume_links", ["resume_id"])
    _job_child(
        "job_cover_letter_links",
        sa.Column(
            "cover_letter_id",
            sa.String(64),
            sa.ForeignKey("cover_letters.id", ondelete="CASCADE"),
            nullable=False,
        ),
        unique=("job_description_id", "cover_letter_id"),
    )
    op.create_index("ix_job_cover_letter_links_cover_letter_id", "job_cover_letter_links", ["cover_letter_id"])

    _job_child(
        "status_history",
        sa.Column("status", sa.String(40), nullable=False),
        sa.Column("interview_stage", sa.String(40), nullable=True),
        sa.Column("offer_stage", sa.String(40), nullable=True),
        sa.Column("date", sa.DateTime(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
    )
    _job_child(
        "activity_log",
        sa.Column("timestamp", sa.DateTime(), nullable=False),
        sa.Column("type", sa.String(40), nullable=False),
        sa.Column("field", sa.String(120), nullable=True),
        sa.Column("from_value", sa.JSON(), nullable=True),
        sa.Column("to_value", sa.JSON(), nullable=True),
        sa.Column("description", sa.Text(), nullable=False),
    )
    op.create_index("ix_activity_log_type", "activity_log", ["type"])

    op.create_table(
        "scraper_cache",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("input_hash", sa.String(512), nullable=False, unique=True),
        sa.Column("result", sa.Text(), nullable=False),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_scraper_cache_expires_at", "scraper_cache", ["expires_at"])


def downgrade() -> None:
    # Reverse dependency order.
    for table in (
        "scraper_cache",
        "activity_log",
        "status_history",
        "job_cover_letter_links",
        "job_resume_links",
        "job_descriptions",
        "cover_letters",
        "resumes",
    ):
        op.drop_table(table)
