from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any

from openai import OpenAI

from resume_tracker.config import Settings
from resume_tracker.types import ModelResponse, TokenUsage

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ProviderConfig:
    name: str
    base_url: str
    api_key: str
    timeout_sec: int


class LLMProvider:
    def __init__(self, config: ProviderConfig, client: Any | None = None):
        self.config = config
        self.client = client or OpenAI(
            base_url=config.base_url,
            api_key=config.api_key,
            timeout=float(config.timeout_sec),
            max_retries=0,
        )

    def complete_chat(
        self,
        *,
        model: str,
        messages: list[dict[str, str]],
        temperature: float,
        max_tokens: int,
    ) -> ModelResponse:
        response = self.client.chat.completions.create(
            model=model,
            messages=messages,
            temperature=temperature,
            max_tokens=max_tokens,
        )

        text = self._extract_chat_text(response)
        raw = response.model_dump() if hasattr(response, "model_dump") else {}
        if not isinstance(raw, dict):
            raw = {"raw": raw}
        raw["api_path"] = "chat_completions"
        return ModelResponse(content=text, raw=raw, usage=self._extract_usage(response))

    @staticmethod
    def _extract_chat_text(response: Any) -> str:
        choices = getattr(response, "choices", None) or []
        if not choices:
            return ""

        message = getattr(choices[0], "message", None)
        if message is None:
            return ""

        content = getattr(message, "content", "")
        if isinstance(content, str):
            return content
        if content is None:
            return ""
        return str(content)

    @staticmethod
    def _extract_usage(response: Any) -> TokenUsage | None:
        usage = getattr(response, "usage", None)
        if usage is None:
            return None
        return TokenUsage(
            prompt_tokens=getattr(usage, "prompt_tokens", 0) or 0,
            completion_tokens=getattr(usage, "completion_tokens", 0) or 0,
            total_tokens=getattr(usage, "total_tokens", 0) or 0,
        )


def parse_json(content: str) -> dict[str, Any] | None:
    """Decode a model reply, unwrapping ```json fences; None when it is not a JSON object."""
    candidate = content.strip()
    if not candidate:
        return None

    if "```" in candidate:
        parts = candidate.split("```")
        for part in parts:
            part = part.strip()
            if part.startswith("json"):
                part = part[4:].strip()
            if part.startswith("{") and part.endswith("}"):
                candidate = part
                break

    try:
        value = json.loads(candidate)
    except json.JSONDecodeError:
        logger.warning("Failed to parse JSON model output (%d chars)", len(candidate))
        return None
    return value if isinstance(value, dict) else None


def build_openai_provider(settings: Settings, client: Any | None = None) -> LLMProvider:
    return LLMProvider(
        ProviderConfig(
            name="openai",
            base_url=settings.openai_base_url,
            api_key=settings.openai_api_key,
            timeout_sec=settings.openai_timeout_sec,
        ),
        client=client,
    )
