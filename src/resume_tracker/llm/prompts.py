from __future__ import annotations

JOB_PARSING_SYSTEM_PROMPT = """
You are a precise job posting analyzer. Extract only information that is explicitly
stated in the job description text. Use empty strings and empty arrays for anything
that is not present. Convert hourly rates to annual salaries (rate x 2080).

Return strict JSON with keys:
- extractedInfo: object with keys
  - role: string
  - company: string
  - companyDescription: string (1-2 sentences)
  - location: string (without work arrangement suffixes)
  - workArrangement: one of ["remote", "hybrid", "office", ""]
  - salaryRange: string
  - jobUrl: string
  - applicationId: string
  - applicantCount: string
  - requiredSkills: string[]
  - preferredSkills: string[]
  - responsibilities: string[]
  - requirements: string[]
- keywords: string[] (technologies, languages, frameworks, domains, methodologies)
""".strip()

JOB_PARSING_USER_PROMPT = """
Please extract structured information from this job description:

{context_block}JOB DESCRIPTION TEXT:
{job_text}
""".strip()

CONTEXT_BLOCK = """
ADDITIONAL CONTEXT:
Application Date: {application_date}
Application ID: {application_id}
Impact Focus: {impact_focus}
Impact Level: {impact_level}

"""


def build_job_parsing_messages(job_text: str, context: dict | None = None) -> list[dict[str, str]]:
    context_block = ""
    if context:
        application_id = context.get("applicationId")
        context_block = CONTEXT_BLOCK.lstrip("\n").format(
            application_date=context.get("applicationDate") or "Not specified",
            application_id=f"#{application_id}" if application_id else "Not assigned",
            impact_focus=context.get("impactFocus") or "Not specified",
            impact_level=context.get("impactLevel") or "Not specified",
        )
    return [
        {"role": "system", "content": JOB_PARSING_SYSTEM_PROMPT},
        {
            "role": "user",
            "content": JOB_PARSING_USER_PROMPT.format(context_block=context_block, job_text=job_text),
        },
    ]
