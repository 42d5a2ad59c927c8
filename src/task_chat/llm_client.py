"""Language-model access over an OpenAI-compatible chat completions endpoint."""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol, TypedDict

from openai import APIError, AsyncOpenAI, OpenAIError

from task_chat.config import Settings, get_settings
from task_chat.errors import LLMCallError
from task_chat.models import TokenUsage


class ChatMessage(TypedDict):
    role: str
    content: str


@dataclass(slots=True)
class Completion:
    text: str
    model: str
    usage: Optional[TokenUsage] = None


class LanguageModel(Protocol):
    """The two calls the query engine makes; anything raising on failure fits."""

    @property
    def model_identifier(self) -> str: ...

    async def parse_query(
        self, messages: List[ChatMessage], schema: Optional[Dict[str, Any]] = None
    ) -> Completion: ...

    async def analyze(self, messages: List[ChatMessage]) -> Completion: ...


_CLIENT: AsyncOpenAI | None = None


def _get_client() -> AsyncOpenAI:
    global _CLIENT
    if _CLIENT is None:
        settings = get_settings()
        if settings.openai_api_key is None:
            raise LLMCallError("OPENAI_API_KEY is not configured")
        _CLIENT = AsyncOpenAI(
            base_url=settings.openai_base_url,
            api_key=settings.openai_api_key.get_secret_value(),
        )
    return _CLIENT


_REASONING_BLOCK_RE = re.compile(r"<(think|thinking|reasoning|thought)>.*?</\1>", re.IGNORECASE | re.DOTALL)
_CODE_FENCE_RE = re.compile(r"```(?:json)?", re.IGNORECASE)


def extract_json_text(content: str) -> str:
    """Some models wrap JSON with reasoning tags, fences or prose; isolate the first full object."""

    text = _REASONING_BLOCK_RE.sub("", content)
    text = _CODE_FENCE_RE.sub("", text).strip()
    length = len(text)
    for start in range(length):
        if text[start] != "{":
            continue
        depth = 0
        in_string = False
        escaped = False
        for end in range(start, length):
            char = text[end]
            if in_string:
                if escaped:
                    escaped = False
                elif char == "\\":
                    escaped = True
                elif char == '"':
                    in_string = False
                continue
            if char == '"':
                in_string = True
            elif char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
                if depth == 0:
                    return text[start : end + 1]
        # unmatched braces, try next start
    return text


def _content_text(content: Any) -> str:
    if isinstance(content, list):
        # Some providers may return a list of content parts.
        return "".join(part.get("text", "") for part in content if isinstance(part, dict))
    return content or ""


def _usage(response: Any) -> Optional[TokenUsage]:
    usage = getattr(response, "usage", None)
    if usage is None:
        return None
    return TokenUsage(
        prompt_tokens=getattr(usage, "prompt_tokens", 0) or 0,
        completion_tokens=getattr(usage, "completion_tokens", 0) or 0,
    )


class OpenAIChatModel:
    """``LanguageModel`` backed by ``openai.AsyncOpenAI``."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        client: Optional[AsyncOpenAI] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._client = client
        self.parse_model = self._settings.model_name
        self.analysis_model = self._settings.analysis_model_name or self._settings.model_name

    @property
    def model_identifier(self) -> str:
        return self.parse_model

    def _client_or_default(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = _get_client()
        return self._client

    async def _complete(self, model: str, messages: List[ChatMessage], **extra: Any) -> Completion:
        client = self._client_or_default()
        try:
            response = await client.chat.completions.create(
                model=model,
                messages=messages,
                temperature=0,
                timeout=self._settings.llm_timeout_seconds,
                **extra,
            )
        except (APIError, OpenAIError, ConnectionError) as exc:
            raise LLMCallError(f"Failed to call LLM endpoint: {exc}", model) from exc

        if not response.choices:
            raise LLMCallError("LLM returned no choices", model)

        content = _content_text(response.choices[0].message.content)
        if not content:
            raise LLMCallError("LLM response content is empty", model)
        return Completion(text=content, model=getattr(response, "model", None) or model, usage=_usage(response))

    async def parse_query(
        self, messages: List[ChatMessage], schema: Optional[Dict[str, Any]] = None
    ) -> Completion:
        extra: Dict[str, Any] = {}
        if schema is not None and self._settings.structured_output:
            extra["response_format"] = {
                "type": "json_schema",
                "json_schema": {"name": "query_intent", "schema": schema},
            }
        return await self._complete(self.parse_model, messages, **extra)

    async def analyze(self, messages: List[ChatMessage]) -> Completion:
        return await self._complete(self.analysis_model, messages)


def default_language_model(settings: Optional[Settings] = None) -> Optional[OpenAIChatModel]:
    """Return a configured model or None when no API key is available."""

    settings = settings or get_settings()
    if not settings.has_llm:
        return None
    return OpenAIChatModel(settings)


__all__ = [
    "ChatMessage",
    "Completion",
    "LanguageModel",
    "OpenAIChatModel",
    "default_language_model",
    "extract_json_text",
]
