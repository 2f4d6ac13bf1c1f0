from __future__ import annotations

import logging
import re
from dataclasses import asdict, dataclass
from urllib.parse import urlparse

import requests
from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)


USER_AGENT = "Mozilla/5.0 (compatible; ResumeTracker/1.0)"
BLOCKED_DOMAINS = ("linkedin.com", "indeed.com", "glassdoor.com", "monster.com")
_TITLE_PATTERN = re.compile(r"^([^|]*?)(?:\s*[-|]\s*([^|]*?))?(?:\s*[-|]\s*.*)?$")


@dataclass(slots=True)
class FetchResult:
    success: bool
    title: str | None = None
    company: str | None = None
    text: str | None = None
    error: str | None = None
    blocked: bool = False

    def to_dict(self) -> dict:
        return asdict(self)


def fetch_job_description(url: str, timeout_sec: int = 10) -> FetchResult:
    parsed = urlparse(url)
    if parsed.scheme not in {"http", "https"}:
        return FetchResult(success=False, error="Only HTTP and HTTPS URLs are supported")

    hostname = (parsed.hostname or "").lower()
    if any(domain in hostname for domain in BLOCKED_DOMAINS):
        return FetchResult(
            success=False,
            blocked=True,
            error=(
                f"{hostname} does not allow direct access. "
                "Please copy and paste the job description text manually."
            ),
        )

    try:
        response = requests.get(
            url,
            timeout=timeout_sec,
            headers={
                "User-Agent": USER_AGENT,
                "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            },
        )
    except requests.RequestException as exc:
        logger.warning("Failed to fetch job URL %s: %s", url, exc)
        return FetchResult(success=False, error=str(exc))

    if not response.ok:
        logger.warning("Job URL %s returned %s", url, response.status_code)
        return FetchResult(
            success=False,
            error=f"Failed to fetch URL: {response.status_code} {response.reason}",
        )

    soup = BeautifulSoup(response.text, "html.parser")
    for tag in soup(["script", "style", "nav", "header", "footer", "noscript"]):
        tag.extract()

    title = ""
    company = ""
    heading = soup.find("h1")
    if heading is not None:
        title = heading.get_text(strip=True)
    elif soup.title and soup.title.string:
        match = _TITLE_PATTERN.match(soup.title.string.strip())
        if match:
            title = (match.group(1) or "").strip()
            company = (match.group(2) or "").strip()

    body = soup.body or soup
    text = " ".join(body.get_text(" ").split())
    return FetchResult(success=True, title=title or None, company=company or None, text=text)
