from __future__ import annotations

from resume_tracker.core.text import (
    create_text_hash,
    extract_keywords,
    extract_salary_max,
    extract_salary_min,
    normalize_keywords,
)


def test_text_hash_matches_known_values() -> None:
    assert create_text_hash("") == "0"
    assert create_text_hash("a") == "2p"
    assert create_text_hash("ab") == "2e9"


def test_text_hash_is_stable_and_content_sensitive() -> None:
    text = "Senior Engineer at Acme. Python, Kubernetes, and a lot of coffee." * 20
    assert create_text_hash(text) == create_text_hash(text)
    assert create_text_hash(text) != create_text_hash(text + " ")
    assert create_text_hash(text).isalnum()


def test_text_hash_handles_non_ascii() -> None:
    assert create_text_hash("café") != create_text_hash("cafe")
    assert create_text_hash("emoji 🚀") == create_text_hash("emoji 🚀")


def test_extract_keywords_counts_filters_and_orders() -> None:
    text = "Python python developer. The team uses Python and Docker in 2024"
    assert extract_keywords(text) == ["python", "developer", "team", "uses", "docker"]


def test_extract_keywords_respects_limit() -> None:
    text = " ".join(f"word{index}x" for index in range(30))
    assert len(extract_keywords(text, max_keywords=5)) == 5


def test_salary_helpers_scale_thousands() -> None:
    assert extract_salary_min("$120k - $150k") == 120000
    assert extract_salary_max("$120k - $150k") == 150000
    assert extract_salary_min("100,000 - 120,000") == 100000
    assert extract_salary_max("100,000 - 120,000") == 120000


def test_salary_helpers_without_range() -> None:
    assert extract_salary_min("Competitive") is None
    assert extract_salary_max("$90k") is None
    assert extract_salary_min(None) is None


def test_normalize_keywords_dedupes_in_first_seen_order() -> None:
    merged = normalize_keywords(["Python", "AWS", "x"], ["python", "docker"], ["Docker", "Go"])
    assert merged == ["python", "aws", "docker", "go"]
