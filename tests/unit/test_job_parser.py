from __future__ import annotations

import json
from types import SimpleNamespace

import httpx
import openai
import pytest

from resume_tracker.config import Settings
from resume_tracker.core.text import create_text_hash
from resume_tracker.llm.cache import ParseCache
from resume_tracker.llm.parsing import JobDescriptionParser, parse_cache_key
from resume_tracker.llm.providers import LLMProvider, ProviderConfig, parse_json

POSTING = "Senior Python Engineer at Acme. Kubernetes experience required. Remote friendly."

MODEL_REPLY = {
    "extractedInfo": {
        "role": "Senior Python Engineer",
        "company": "Acme",
        "location": "Remote",
        "requiredSkills": ["Python", "Kubernetes"],
        "preferredSkills": "Go",
        "salaryRange": None,
    },
    "keywords": ["Python", "Backend"],
}


class DummyAPIError(Exception):
    def __init__(self, message: str, *, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class FakeChatCompletionsAPI:
    def __init__(self, fn):
        self._fn = fn
        self.calls = 0

    def create(self, **kwargs):
        self.calls += 1
        return self._fn(**kwargs)


class FakeClient:
    def __init__(self, fn):
        self.chat = SimpleNamespace(completions=FakeChatCompletionsAPI(fn))


def _chat_payload(content: str, usage: dict | None = None):
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content))],
        usage=SimpleNamespace(**usage) if usage else None,
    )


def _parser(fn, cache: ParseCache | None = None) -> tuple[JobDescriptionParser, FakeClient]:
    client = FakeClient(fn)
    provider = LLMProvider(
        ProviderConfig(name="openai", base_url="http://localhost:9999/v1", api_key="dummy", timeout_sec=5),
        client=client,
    )
    return JobDescriptionParser(settings=Settings(openai_api_key="dummy"), provider=provider, cache=cache), client


def test_successful_parse_merges_keywords_and_usage() -> None:
    parser, _ = _parser(
        lambda **kwargs: _chat_payload(
            json.dumps(MODEL_REPLY),
            {"prompt_tokens": 120, "completion_tokens": 40, "total_tokens": 160},
        )
    )

    result = parser.parse(POSTING)

    assert result.success is True
    assert result.extracted_info["role"] == "Senior Python Engineer"
    assert result.extracted_info["preferredSkills"] == ["Go"]
    assert result.extracted_info["salaryRange"] == ""
    assert result.keywords[:2] == ["python", "backend"]
    assert "kubernetes" in result.keywords
    assert "go" in result.keywords
    assert len(result.keywords) == len(set(result.keywords))
    assert result.usage.total_tokens == 160
    assert result.text_hash == create_text_hash(POSTING)
    assert result.from_cache is False


def test_model_reply_inside_code_fence_is_accepted() -> None:
    fenced = "Here you go:\n```json\n" + json.dumps(MODEL_REPLY) + "\n```"
    parser, _ = _parser(lambda **kwargs: _chat_payload(fenced))
    assert parser.parse(POSTING).success is True


def test_second_parse_comes_from_cache() -> None:
    parser, client = _parser(lambda **kwargs: _chat_payload(json.dumps(MODEL_REPLY)), cache=ParseCache())

    first = parser.parse(POSTING, additional_context={"company": "Acme"})
    second = parser.parse(POSTING, additional_context={"company": "Acme"})
    third = parser.parse(POSTING, additional_context={"company": "Other"})

    assert first.from_cache is False
    assert second.from_cache is True
    assert second.keywords == first.keywords
    assert third.from_cache is False
    assert client.chat.completions.calls == 2


def test_failed_parses_are_not_cached() -> None:
    cache = ParseCache()
    parser, client = _parser(lambda **kwargs: _chat_payload("not json at all"), cache=cache)

    assert parser.parse(POSTING).error_kind == "invalid_json"
    assert parser.parse(POSTING).error_kind == "invalid_json"
    assert client.chat.completions.calls == 2
    assert len(cache) == 0


def test_existing_job_with_same_text_hash_skips_model() -> None:
    parser, client = _parser(lambda **kwargs: pytest.fail("model should not be called"))
    existing = {
        "aiUsage": {"rawTextHash": create_text_hash(POSTING)},
        "extractedInfo": {"role": "Stored"},
        "keywords": ["stored"],
    }

    result = parser.parse(POSTING, existing_job=existing)

    assert result.success is True
    assert result.from_cache is True
    assert result.extracted_info == {"role": "Stored"}
    assert client.chat.completions.calls == 0


def test_empty_text_is_rejected_without_calling_model() -> None:
    parser, client = _parser(lambda **kwargs: pytest.fail("model should not be called"))
    result = parser.parse("   ")
    assert result.success is False
    assert result.error_kind == "empty_input"
    assert client.chat.completions.calls == 0


def test_missing_api_key_reports_not_configured() -> None:
    parser = JobDescriptionParser(settings=Settings(openai_api_key=""))
    result = parser.parse(POSTING)
    assert result.error_kind == "not_configured"
    assert "API key" in result.error


@pytest.mark.parametrize(
    ("status_code", "kind"),
    [(401, "auth"), (429, "rate_limit"), (500, "http"), (None, "unexpected")],
)
def test_provider_errors_map_to_error_kinds(status_code: int | None, kind: str) -> None:
    def fail(**kwargs):
        raise DummyAPIError("boom", status_code=status_code)

    parser, _ = _parser(fail)
    result = parser.parse(POSTING)

    assert result.success is False
    assert result.error_kind == kind


def test_connection_error_maps_to_network() -> None:
    def fail(**kwargs):
        raise openai.APIConnectionError(request=httpx.Request("POST", "http://localhost:9999/v1/chat/completions"))

    parser, _ = _parser(fail)
    assert parser.parse(POSTING).error_kind == "network"


@pytest.mark.parametrize(
    ("content", "kind"),
    [
        ("", "empty_response"),
        ("[1, 2, 3]", "invalid_json"),
        (json.dumps({"keywords": ["python"]}), "invalid_response"),
        (json.dumps({"extractedInfo": {"role": "x"}}), "invalid_response"),
    ],
)
def test_bad_model_replies_are_reported(content: str, kind: str) -> None:
    parser, _ = _parser(lambda **kwargs: _chat_payload(content))
    assert parser.parse(POSTING).error_kind == kind


def test_parse_cache_key_includes_context() -> None:
    assert parse_cache_key("abc", None) == "abc_{}"
    assert parse_cache_key("abc", {"company": "Acme"}) == 'abc_{"company":"Acme"}'


def test_parse_json_rejects_non_objects() -> None:
    assert parse_json('{"a": 1}') == {"a": 1}
    assert parse_json("[1]") is None
    assert parse_json("{broken") is None
