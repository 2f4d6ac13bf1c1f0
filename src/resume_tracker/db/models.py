from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from resume_tracker.db.base import Base, TimestampMixin, new_id, utcnow


class Resume(TimestampMixin, Base):
    __tablename__ = "resumes"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    file_size: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    upload_date: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    file_data: Mapped[str] = mapped_column(Text, nullable=False)
    file_type: Mapped[str] = mapped_column(String(20), default="docx", nullable=False)
    text_content: Mapped[str | None] = mapped_column(Text, nullable=True)
    markdown_content: Mapped[str | None] = mapped_column(Text, nullable=True)
    detected_company: Mapped[str | None] = mapped_column(String(255), nullable=True)
    detected_role: Mapped[str | None] = mapped_column(String(255), nullable=True)

    job_links: Mapped[list[JobResumeLink]] = relationship(back_populates="resume")

    @property
    def linked_job_descriptions(self) -> list[JobDescription]:
        return [link.job_description for link in self.job_links]


class CoverLetter(TimestampMixin, Base):
    __tablename__ = "cover_letters"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    file_size: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    upload_date: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    file_data: Mapped[str] = mapped_column(Text, nullable=False)
    file_type: Mapped[str] = mapped_column(String(20), default="docx", nullable=False)
    text_content: Mapped[str | None] = mapped_column(Text, nullable=True)
    markdown_content: Mapped[str | None] = mapped_column(Text, nullable=True)
    detected_company: Mapped[str | None] = mapped_column(String(255), nullable=True)
    detected_role: Mapped[str | None] = mapped_column(String(255), nullable=True)
    target_company: Mapped[str | None] = mapped_column(String(255), nullable=True)
    target_position: Mapped[str | None] = mapped_column(String(255), nullable=True)

    job_links: Mapped[list[JobCoverLetterLink]] = relationship(back_populates="cover_letter")

    @property
    def linked_job_descriptions(self) -> list[JobDescription]:
        return [link.job_description for link in self.job_links]


class JobDescription(TimestampMixin, Base):
    __tablename__ = "job_descriptions"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    sequential_id: Mapped[int] = mapped_column(Integer, unique=True, nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    company: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str | None] = mapped_column(String(255), nullable=True)
    location: Mapped[str | None] = mapped_column(String(255), nullable=True)
    work_arrangement: Mapped[str | None] = mapped_column(String(40), nullable=True)

    source1_type: Mapped[str | None] = mapped_column(String(40), nullable=True)
    source1_content: Mapped[str | None] = mapped_column(Text, nullable=True)
    source2_type: Mapped[str | None] = mapped_column(String(40), nullable=True)
    source2_content: Mapped[str | None] = mapped_column(Text, nullable=True)

    salary_min: Mapped[int | None] = mapped_column(Integer, nullable=True)
    salary_max: Mapped[int | None] = mapped_column(Integer, nullable=True)
    salary_range: Mapped[str | None] = mapped_column(String(255), nullable=True)

    contact_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    contact_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    contact_phone: Mapped[str | None] = mapped_column(String(80), nullable=True)

    url: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    raw_text: Mapped[str] = mapped_column(Text, nullable=False)
    additional_context: Mapped[str | None] = mapped_column(Text, nullable=True)
    extracted_info: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)
    keywords: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    ai_usage: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    parse_status: Mapped[str] = mapped_column(String(20), default="unparsed", nullable=False)
    upload_date: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    application_status: Mapped[str] = mapped_column(
        String(40), default="not_applied", nullable=False, index=True
    )
    interview_stage: Mapped[str | None] = mapped_column(String(40), nullable=True)
    offer_stage: Mapped[str | None] = mapped_column(String(40), nullable=True)
    is_archived: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False, index=True)
    duplicate_of_id: Mapped[str | None] = mapped_column(
        ForeignKey("job_descriptions.id"), nullable=True, index=True
    )

    application_date: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    submission_date: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    last_activity_date: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    follow_up_date: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    source: Mapped[str | None] = mapped_column(String(255), nullable=True)
    contact_person: Mapped[str | None] = mapped_column(String(255), nullable=True)
    secondary_contact: Mapped[str | None] = mapped_column(String(255), nullable=True)
    priority: Mapped[str] = mapped_column(String(20), default="medium", nullable=False)
    impact: Mapped[str] = mapped_column(String(20), default="medium", nullable=False)
    waiting_for_response: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    interview_dates: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    salary_discussed: Mapped[str | None] = mapped_column(String(255), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    # action type -> ISO timestamp
    completed_actions: Mapped[dict[str, str] | None] = mapped_column(JSON, nullable=True)
    snoozed_until: Mapped[dict[str, str] | None] = mapped_column(JSON, nullable=True)

    resume_links: Mapped[list[JobResumeLink]] = relationship(back_populates="job_description")
    cover_letter_links: Mapped[list[JobCoverLetterLink]] = relationship(
        back_populates="job_description"
    )
    status_history: Mapped[list[StatusHistory]] = relationship(
        back_populates="job_description", order_by="desc(StatusHistory.date)"
    )
    activity_entries: Mapped[list[ActivityLog]] = relationship(
        back_populates="job_description", order_by="desc(ActivityLog.timestamp)"
    )
    duplicate_of: Mapped[JobDescription | None] = relationship(
        remote_side=[id], back_populates="duplicates"
    )
    duplicates: Mapped[list[JobDescription]] = relationship(back_populates="duplicate_of")

    @property
    def linked_resumes(self) -> list[Resume]:
        return [link.resume for link in self.resume_links]

    @property
    def linked_cover_letters(self) -> list[CoverLetter]:
        return [link.cover_letter for link in self.cover_letter_links]


class JobResumeLink(TimestampMixin, Base):
    __tablename__ = "job_resume_links"
    __table_args__ = (
        UniqueConstraint("job_description_id", "resume_id", name="uq_job_resume_link"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    job_description_id: Mapped[str] = mapped_column(
        ForeignKey("job_descriptions.id", ondelete="CASCADE"), index=True
    )
    resume_id: Mapped[str] = mapped_column(ForeignKey("resumes.id", ondelete="CASCADE"), index=True)

    job_description: Mapped[JobDescription] = relationship(back_populates="resume_links")
    resume: Mapped[Resume] = relationship(back_populates="job_links")


class JobCoverLetterLink(TimestampMixin, Base):
    __tablename__ = "job_cover_letter_links"
    __table_args__ = (
        UniqueConstraint(
            "job_description_id", "cover_letter_id", name="uq_job_cover_letter_link"
        ),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    job_description_id: Mapped[str] = mapped_column(
        ForeignKey("job_descriptions.id", ondelete="CASCADE"), index=True
    )
    cover_letter_id: Mapped[str] = mapped_column(
        ForeignKey("cover_letters.id", ondelete="CASCADE"), index=True
    )

    job_description: Mapped[JobDescription] = relationship(back_populates="cover_letter_links")
    cover_letter: Mapped[CoverLetter] = relationship(back_populates="job_links")


class StatusHistory(TimestampMixin, Base):
    __tablename__ = "status_history"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    job_description_id: Mapped[str] = mapped_column(
        ForeignKey("job_descriptions.id", ondelete="CASCADE"), index=True
    )
    status: Mapped[str] = mapped_column(String(40), nullable=False)
    interview_stage: Mapped[str | None] = mapped_column(String(40), nullable=True)
    offer_stage: Mapped[str | None] = mapped_column(String(40), nullable=True)
    date: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    job_description: Mapped[JobDescription] = relationship(back_populates="status_history")


class ActivityLog(TimestampMixin, Base):
    __tablename__ = "activity_log"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    job_description_id: Mapped[str] = mapped_column(
        ForeignKey("job_descriptions.id", ondelete="CASCADE"), index=True
    )
    timestamp: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    # status_change, interview_stage_change, note_added, document_linked, field_updated
    type: Mapped[str] = mapped_column(String(40), nullable=False, index=True)
    field: Mapped[str | None] = mapped_column(String(120), nullable=True)
    from_value: Mapped[Any | None] = mapped_column(JSON, nullable=True)
    to_value: Mapped[Any | None] = mapped_column(JSON, nullable=True)
    description: Mapped[str] = mapped_column(Text, default="", nullable=False)

    job_description: Mapped[JobDescription] = relationship(back_populates="activity_entries")


class ScraperCache(TimestampMixin, Base):
    __tablename__ = "scraper_cache"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    input_hash: Mapped[str] = mapped_column(String(512), unique=True, nullable=False)
    result: Mapped[str] = mapped_column(Text, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
