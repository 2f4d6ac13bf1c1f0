from __future__ import annotations

import json
from datetime import datetime
from typing import Annotated, Any, Literal

from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    Field,
    PlainSerializer,
    field_validator,
)
from pydantic.alias_generators import to_camel

from resume_tracker.db.base import as_naive_utc

ApplicationStatus = Literal[
    "not_applied",
    "applied",
    "interviewing",
    "rejected",
    "offered",
    "withdrawn",
    "duplicate",
]
ActivityType = Literal[
    "status_change",
    "interview_stage_change",
    "note_added",
    "document_linked",
    "field_updated",
]
ParseStatus = Literal["unparsed", "parsing", "parsed", "failed"]
ParseErrorKind = Literal[
    "empty_input",
    "not_configured",
    "auth",
    "rate_limit",
    "http",
    "network",
    "empty_response",
    "invalid_json",
    "invalid_response",
    "unexpected",
]


def format_utc(value: datetime) -> str:
    return as_naive_utc(value).isoformat(timespec="milliseconds") + "Z"


UtcDateTime = Annotated[
    datetime,
    AfterValidator(as_naive_utc),
    PlainSerializer(format_utc, return_type=str, when_used="json"),
]


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
        extra="ignore",
    )


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


def _split_list(value: Any) -> Any:
    if value is None:
        return []
    if isinstance(value, str):
        return [item.strip() for item in value.split(",") if item.strip()]
    return value


class JobDescriptionFields(CamelModel):
    """Writable job columns; managed columns (id, timestamps, sequentialId) are not listed."""

    title: str | None = None
    company: str | None = None
    role: str | None = None
    location: str | None = None
    work_arrangement: str | None = None
    source1_type: str | None = None
    source1_content: str | None = None
    source2_type: str | None = None
    source2_content: str | None = None
    salary_min: int | None = None
    salary_max: int | None = None
    salary_range: str | None = None
    contact_name: str | None = None
    contact_email: str | None = None
    contact_phone: str | None = None
    url: str | None = None
    raw_text: str | None = None
    additional_context: str | None = None
    extracted_info: dict[str, Any] | None = None
    keywords: list[str] | None = None
    ai_usage: dict[str, Any] | None = None
    parse_status: ParseStatus | None = None
    upload_date: UtcDateTime | None = None
    application_status: str | None = None
    interview_stage: str | None = None
    offer_stage: str | None = None
    is_archived: bool | None = None
    duplicate_of_id: str | None = None
    application_date: UtcDateTime | None = None
    submission_date: UtcDateTime | None = None
    last_activity_date: UtcDateTime | None = None
    follow_up_date: UtcDateTime | None = None
    source: str | None = None
    contact_person: str | None = None
    secondary_contact: str | None = None
    priority: str | None = None
    impact: str | None = None
    waiting_for_response: bool | None = None
    interview_dates: list[str] | None = None
    salary_discussed: str | None = None
    notes: str | None = None
    completed_actions: dict[str, str] | None = None
    snoozed_until: dict[str, str] | None = None

    @field_validator("salary_min", "salary_max", mode="before")
    @classmethod
    def coerce_salary(cls, value: Any) -> Any:
        value = _blank_to_none(value)
        if isinstance(value, str):
            digits = value.replace(",", "").replace("$", "").strip()
            try:
                return int(float(digits))
            except ValueError:
                return None
        if isinstance(value, float):
            return int(value)
        return value

    @field_validator(
        "upload_date",
        "application_date",
        "submission_date",
        "last_activity_date",
        "follow_up_date",
        mode="before",
    )
    @classmethod
    def blank_dates(cls, value: Any) -> Any:
        return _blank_to_none(value)

    @field_validator("keywords", "interview_dates", mode="before")
    @classmethod
    def split_lists(cls, value: Any) -> Any:
        return _split_list(value)

    @field_validator("extracted_info", mode="before")
    @classmethod
    def decode_extracted_info(cls, value: Any) -> Any:
        if value is None:
            return {}
        if isinstance(value, str):
            try:
                decoded = json.loads(value) if value.strip() else {}
            except json.JSONDecodeError:
                return {}
            return decoded if isinstance(decoded, dict) else {}
        return value

    def values(self) -> dict[str, Any]:
        """Attribute-keyed values that were present in the payload."""
        return self.model_dump(exclude_unset=True)


class DocumentFields(CamelModel):
    name: str | None = None
    file_name: str | None = None
    file_size: int | None = None
    upload_date: UtcDateTime | None = None
    file_data: str | None = None
    file_type: str | None = None
    text_content: str | None = None
    markdown_content: str | None = None
    detected_company: str | None = None
    detected_role: str | None = None

    @field_validator("upload_date", mode="before")
    @classmethod
    def blank_dates(cls, value: Any) -> Any:
        return _blank_to_none(value)

    def values(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True)


class CoverLetterFields(DocumentFields):
    target_company: str | None = None
    target_position: str | None = None


class JobRef(CamelModel):
    id: str
    title: str
    company: str


class DocumentRef(CamelModel):
    id: str
    name: str


class StatusHistoryRecord(CamelModel):
    id: str
    job_description_id: str
    status: str
    interview_stage: str | None = None
    offer_stage: str | None = None
    date: UtcDateTime
    notes: str | None = None
    created_at: UtcDateTime


class ActivityLogRecord(CamelModel):
    id: str
    job_description_id: str
    timestamp: UtcDateTime
    type: str
    field: str | None = None
    from_value: Any = None
    to_value: Any = None
    description: str = ""
    created_at: UtcDateTime


class JobDescriptionRecord(CamelModel):
    id: str
    sequential_id: int
    title: str
    company: str
    role: str | None = None
    location: str | None = None
    work_arrangement: str | None = None
    source1_type: str | None = None
    source1_content: str | None = None
    source2_type: str | None = None
    source2_content: str | None = None
    salary_min: int | None = None
    salary_max: int | None = None
    salary_range: str | None = None
    contact_name: str | None = None
    contact_email: str | None = None
    contact_phone: str | None = None
    url: str | None = None
    raw_text: str
    additional_context: str | None = None
    extracted_info: dict[str, Any] = Field(default_factory=dict)
    keywords: list[str] = Field(default_factory=list)
    ai_usage: dict[str, Any] | None = None
    parse_status: str = "unparsed"
    upload_date: UtcDateTime
    application_status: str = "not_applied"
    interview_stage: str | None = None
    offer_stage: str | None = None
    is_archived: bool = False
    duplicate_of_id: str | None = None
    application_date: UtcDateTime | None = None
    submission_date: UtcDateTime | None = None
    last_activity_date: UtcDateTime | None = None
    follow_up_date: UtcDateTime | None = None
    source: str | None = None
    contact_person: str | None = None
    secondary_contact: str | None = None
    priority: str = "medium"
    impact: str = "medium"
    waiting_for_response: bool = False
    interview_dates: list[str] = Field(default_factory=list)
    salary_discussed: str | None = None
    notes: str | None = None
    completed_actions: dict[str, str] = Field(default_factory=dict)
    snoozed_until: dict[str, str] = Field(default_factory=dict)
    created_at: UtcDateTime
    updated_at: UtcDateTime

    @field_validator("completed_actions", "snoozed_until", mode="before")
    @classmethod
    def empty_action_maps(cls, value: Any) -> Any:
        return {} if value is None else value


class ResumeRecord(CamelModel):
    id: str
    name: str
    file_name: str
    file_size: int = 0
    upload_date: UtcDateTime
    file_data: str
    file_type: str = "docx"
    text_content: str | None = None
    markdown_content: str | None = None
    detected_company: str | None = None
    detected_role: str | None = None
    created_at: UtcDateTime
    updated_at: UtcDateTime


class CoverLetterRecord(ResumeRecord):
    target_company: str | None = None
    target_position: str | None = None


class ScraperCacheRecord(CamelModel):
    id: str
    input_hash: str
    result: str
    expires_at: UtcDateTime
    created_at: UtcDateTime


class ExtractedInfo(BaseModel):
    """Structured fields pulled out of a job posting by the model."""

    model_config = ConfigDict(extra="allow")

    role: str = ""
    company: str = ""
    company_description: str = Field(default="", alias="companyDescription")
    location: str = ""
    work_arrangement: str = Field(default="", alias="workArrangement")
    salary_range: str = Field(default="", alias="salaryRange")
    job_url: str = Field(default="", alias="jobUrl")
    application_id: str = Field(default="", alias="applicationId")
    applicant_count: str = Field(default="", alias="applicantCount")
    required_skills: list[str] = Field(default_factory=list, alias="requiredSkills")
    preferred_skills: list[str] = Field(default_factory=list, alias="preferredSkills")
    responsibilities: list[str] = Field(default_factory=list)
    requirements: list[str] = Field(default_factory=list)

    @field_validator(
        "role",
        "company",
        "company_description",
        "location",
        "work_arrangement",
        "salary_range",
        "job_url",
        "application_id",
        "applicant_count",
        mode="before",
    )
    @classmethod
    def coerce_text(cls, value: Any) -> str:
        if value is None:
            return ""
        return str(value).strip()

    @field_validator(
        "required_skills",
        "preferred_skills",
        "responsibilities",
        "requirements",
        mode="before",
    )
    @classmethod
    def coerce_list(cls, value: Any) -> list[str]:
        if value is None:
            return []
        if isinstance(value, str):
            return [value.strip()] if value.strip() else []
        if not isinstance(value, list):
            return [str(value)]
        return [str(item).strip() for item in value if str(item).strip()]

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


class TokenUsage(CamelModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class ModelResponse(BaseModel):
    content: str
    raw: dict[str, Any] = Field(default_factory=dict)
    usage: TokenUsage | None = None


class ParseResult(CamelModel):
    success: bool
    extracted_info: dict[str, Any] | None = None
    keywords: list[str] = Field(default_factory=list)
    usage: TokenUsage | None = None
    error: str | None = None
    error_kind: ParseErrorKind | None = None
    from_cache: bool = False
    text_hash: str | None = None

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")
