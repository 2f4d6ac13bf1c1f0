from __future__ import annotations

import json
import logging
from typing import Any

from openai import APIConnectionError
from pydantic import ValidationError as PydanticValidationError

from resume_tracker.config import Settings, get_settings
from resume_tracker.core.text import create_text_hash, extract_keywords, normalize_keywords
from resume_tracker.llm.cache import ResultCache
from resume_tracker.llm.prompts import build_job_parsing_messages
from resume_tracker.llm.providers import LLMProvider, build_openai_provider, parse_json
from resume_tracker.types import ExtractedInfo, ParseErrorKind, ParseResult

logger = logging.getLogger(__name__)

LOCAL_KEYWORD_LIMIT = 10


def parse_cache_key(text_hash: str, context: dict | None) -> str:
    return f"{text_hash}_{json.dumps(context or {}, separators=(',', ':'), ensure_ascii=False)}"


def _existing_value(job: Any, attr: str, wire: str) -> Any:
    if isinstance(job, dict):
        return job.get(wire, job.get(attr))
    return getattr(job, attr, None)


def _failure(kind: ParseErrorKind, message: str, text_hash: str | None = None) -> ParseResult:
    return ParseResult(success=False, error=message, error_kind=kind, text_hash=text_hash)


def _keyword_list(value: Any) -> list[str]:
    if isinstance(value, str):
        return [item.strip() for item in value.split(",")]
    if isinstance(value, list):
        return [item for item in value if isinstance(item, str)]
    return []


class JobDescriptionParser:
    """Turns raw posting text into extracted fields and keywords.

    ``parse`` never raises: every failure comes back as an unsuccessful
    ``ParseResult`` with an ``error_kind``. Lookups go existing job, then the
    in-memory cache, then the persisted cache, and only then the model.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        provider: LLMProvider | None = None,
        cache: ResultCache | None = None,
        stored_cache: ResultCache | None = None,
    ):
        self.settings = settings or get_settings()
        self._provider = provider
        self.cache = cache
        self.stored_cache = stored_cache

    @property
    def provider(self) -> LLMProvider | None:
        if self._provider is None and self.settings.ai_configured:
            self._provider = build_openai_provider(self.settings)
        return self._provider

    def parse(
        self,
        raw_text: str,
        additional_context: dict | None = None,
        existing_job: Any = None,
    ) -> ParseResult:
        text = (raw_text or "").strip()
        if not text:
            return _failure("empty_input", "No text to parse")

        text_hash = create_text_hash(text)
        key = parse_cache_key(text_hash, additional_context)

        reused = self._from_existing_job(existing_job, text_hash)
        if reused is not None:
            logger.info("Reusing stored parse for unchanged text hash=%s", text_hash)
            return reused

        for cache in (self.cache, self.stored_cache):
            if cache is None:
                continue
            cached = cache.get(key)
            if cached is not None:
                logger.info("Parse cache hit hash=%s", text_hash)
                return cached.model_copy(update={"from_cache": True})

        result = self._call_model(text, additional_context, text_hash)
        if result.success:
            for cache in (self.cache, self.stored_cache):
                if cache is not None:
                    cache.set(key, result)
        return result

    def _from_existing_job(self, job: Any, text_hash: str) -> ParseResult | None:
        if job is None:
            return None
        ai_usage = _existing_value(job, "ai_usage", "aiUsage") or {}
        extracted = _existing_value(job, "extracted_info", "extractedInfo")
        if ai_usage.get("rawTextHash") != text_hash or not extracted:
            return None
        return ParseResult(
            success=True,
            extracted_info=extracted,
            keywords=list(_existing_value(job, "keywords", "keywords") or []),
            from_cache=True,
            text_hash=text_hash,
        )

    def _call_model(self, text: str, context: dict | None, text_hash: str) -> ParseResult:
        provider = self.provider
        if provider is None:
            return _failure(
                "not_configured",
                "AI service not configured. Please add your OpenAI API key.",
                text_hash,
            )

        try:
            response = provider.complete_chat(
                model=self.settings.openai_model,
                messages=build_job_parsing_messages(text, context),
                temperature=self.settings.openai_temperature,
                max_tokens=self.settings.openai_max_tokens,
            )
        except APIConnectionError as exc:
            logger.warning("AI API unreachable: %s", exc)
            return _failure(
                "network",
                "Network error: Unable to reach AI API. Check your internet connection.",
                text_hash,
            )
        except Exception as exc:
            status_code = getattr(exc, "status_code", None)
            if status_code == 401:
                logger.warning("AI API rejected credentials")
                return _failure(
                    "auth",
                    "Invalid API key. Please check your OpenAI API key in the settings.",
                    text_hash,
                )
            if status_code == 429:
                logger.warning("AI API rate limit exceeded")
                return _failure(
                    "rate_limit",
                    "API rate limit exceeded. Please try again in a few minutes.",
                    text_hash,
                )
            if isinstance(status_code, int):
                logger.warning("AI API error status=%s: %s", status_code, exc)
                return _failure("http", f"AI API error: {status_code}", text_hash)
            logger.exception("Unexpected error calling AI API")
            return _failure("unexpected", f"Unexpected error: {exc}", text_hash)

        if not response.content.strip():
            return _failure("empty_response", "No response content from AI service.", text_hash)

        data = parse_json(response.content)
        if data is None:
            logger.warning("AI response content (first 500 chars): %s", response.content[:500])
            return _failure(
                "invalid_json",
                "Failed to parse AI response. The AI may have returned malformed JSON.",
                text_hash,
            )

        raw_info = data.get("extractedInfo")
        if not isinstance(raw_info, dict) or data.get("keywords") is None:
            logger.warning("Invalid AI response structure: keys=%s", sorted(data))
            return _failure("invalid_response", "Invalid response structure from AI service.", text_hash)

        try:
            info = ExtractedInfo.model_validate(raw_info)
        except PydanticValidationError as exc:
            logger.warning("Unrepairable extractedInfo payload: %s", exc)
            return _failure("invalid_response", "Invalid response structure from AI service.", text_hash)

        skills = [skill.lower() for skill in (*info.required_skills, *info.preferred_skills)]
        keywords = normalize_keywords(
            _keyword_list(data.get("keywords")),
            extract_keywords(text, LOCAL_KEYWORD_LIMIT),
            skills,
        )
        return ParseResult(
            success=True,
            extracted_info=info.to_wire(),
            keywords=keywords,
            usage=response.usage,
            text_hash=text_hash,
        )
