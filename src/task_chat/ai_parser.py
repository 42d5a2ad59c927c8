"""AI-assisted query parsing with postcondition checks and repair."""
from __future__ import annotations

import json
from datetime import date
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, ValidationInfo, field_validator

from task_chat.config import SearchConfig
from task_chat.errors import ParserFailure
from task_chat.llm_client import ChatMessage, LanguageModel, extract_json_text
from task_chat.logging_utils import LOGGER
from task_chat.models import (
    DueDateRange,
    ExpansionStats,
    Intent,
    IntentDiagnostics,
    PriorityFilter,
)
from task_chat.text_utils import deduplicate_exact, deduplicate_overlapping, filter_stop_words
from task_chat.time_utils import parse_iso_date
from task_chat.vocabulary import PropertyVocabulary

EXPECTED_KEYS = ("coreKeywords", "keywords", "priority", "dueDate", "status", "folder", "tags")

Scalar = Union[int, float, str]


def _string_list(value: Any, field: str) -> List[str]:
    """Coerce a loosely typed list field: null becomes [], a bare string one item."""

    if value is None:
        return []
    if isinstance(value, (str, int, float)) and not isinstance(value, bool):
        value = [value]
    if not isinstance(value, list):
        LOGGER.info("Ignoring %s value %r from parser response", field, value)
        return []
    return [str(item) for item in value if isinstance(item, (str, int, float)) and not isinstance(item, bool)]


def _optional_text(value: Any, field: str) -> Optional[str]:
    if value is None or isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    LOGGER.info("Ignoring %s value %r from parser response", field, value)
    return None


def _optional_number(value: Any, field: str) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    try:
        return float(str(value).strip().rstrip("%"))
    except ValueError:
        LOGGER.info("Ignoring non-numeric %s value %r from parser response", field, value)
        return None


class _Mappings(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    priority: Optional[Any] = None
    status: Optional[Any] = None
    due_date: Optional[Any] = Field(None, alias="dueDate")


class _Understanding(BaseModel):
    """Diagnostics only; a bad value is dropped instead of rejecting the reply."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    detected_language: Optional[str] = Field(None, alias="detectedLanguage")
    corrected_typos: List[str] = Field(default_factory=list, alias="correctedTypos")
    semantic_mappings: Optional[_Mappings] = Field(None, alias="semanticMappings")
    confidence: Optional[float] = None
    field_confidence: Dict[str, float] = Field(default_factory=dict, alias="fieldConfidence")
    natural_language_used: bool = Field(False, alias="naturalLanguageUsed")
    time_context: Optional[str] = Field(None, alias="timeContext")
    notes: Optional[str] = None

    @field_validator("detected_language", "time_context", "notes", mode="before")
    @classmethod
    def _text(cls, value: Any, info: ValidationInfo) -> Optional[str]:
        return _optional_text(value, info.field_name)

    @field_validator("corrected_typos", mode="before")
    @classmethod
    def _typos(cls, value: Any) -> List[str]:
        return _string_list(value, "correctedTypos")

    @field_validator("semantic_mappings", mode="before")
    @classmethod
    def _mappings(cls, value: Any) -> Optional[Dict[str, Any]]:
        if value is None or isinstance(value, dict):
            return value
        LOGGER.info("Ignoring semanticMappings value %r from parser response", value)
        return None

    @field_validator("confidence", mode="before")
    @classmethod
    def _confidence(cls, value: Any) -> Optional[float]:
        return _optional_number(value, "confidence")

    @field_validator("field_confidence", mode="before")
    @classmethod
    def _field_confidence(cls, value: Any) -> Dict[str, float]:
        if not isinstance(value, dict):
            if value is not None:
                LOGGER.info("Ignoring fieldConfidence value %r from parser response", value)
            return {}
        scores: Dict[str, float] = {}
        for name, raw in value.items():
            number = _optional_number(raw, f"fieldConfidence.{name}")
            if number is not None:
                scores[str(name)] = number
        return scores

    @field_validator("natural_language_used", mode="before")
    @classmethod
    def _flag(cls, value: Any) -> bool:
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            return value.strip().lower() in ("true", "yes", "1")
        return bool(value)


class _Range(BaseModel):
    start: Optional[str] = None
    end: Optional[str] = None

    @field_validator("start", "end", mode="before")
    @classmethod
    def _bound(cls, value: Any, info: ValidationInfo) -> Optional[str]:
        return _optional_text(value, f"dueDateRange.{info.field_name}")


class ParsedQueryPayload(BaseModel):
    """Shape the parsing model is asked to return (also used as its JSON schema)."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    core_keywords: List[str] = Field(default_factory=list, alias="coreKeywords")
    keywords: List[str] = Field(default_factory=list)
    priority: Optional[Union[Scalar, List[Scalar]]] = None
    due_date: Optional[str] = Field(None, alias="dueDate")
    due_date_range: Optional[_Range] = Field(None, alias="dueDateRange")
    status: Optional[Union[str, List[str]]] = None
    folder: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    understanding: Optional[_Understanding] = Field(None, alias="aiUnderstanding")

    @field_validator("core_keywords", "keywords", "tags", "status", mode="before")
    @classmethod
    def _lists(cls, value: Any, info: ValidationInfo) -> List[str]:
        return _string_list(value, info.field_name)

    @field_validator("priority", mode="before")
    @classmethod
    def _priority(cls, value: Any) -> Any:
        if isinstance(value, list):
            return [item for item in value if isinstance(item, (str, int, float)) and not isinstance(item, bool)]
        if value is None or (isinstance(value, (str, int, float)) and not isinstance(value, bool)):
            return value
        LOGGER.info("Ignoring priority value %r from parser response", value)
        return None

    @field_validator("due_date", "folder", mode="before")
    @classmethod
    def _text(cls, value: Any, info: ValidationInfo) -> Optional[str]:
        return _optional_text(value, info.field_name)

    @field_validator("due_date_range", "understanding", mode="before")
    @classmethod
    def _objects(cls, value: Any, info: ValidationInfo) -> Optional[Dict[str, Any]]:
        if value is None or isinstance(value, dict):
            return value
        LOGGER.info("Ignoring %s value %r from parser response", info.field_name, value)
        return None


SYSTEM_PROMPT_TEMPLATE = """You are a task search query parser. Convert the user's query into a JSON intent.

Return ONLY one JSON object, no prose and no code fences:
{{
  "coreKeywords": [<content words taken literally from the query, without property words>],
  "keywords": [<coreKeywords plus their semantic equivalents in every configured language>],
  "priority": <number 1-4, array of numbers, "any", "none" or null>,
  "dueDate": <English due-date token or YYYY-MM-DD or null>,
  "dueDateRange": <{{"start": "YYYY-MM-DD", "end": "YYYY-MM-DD"}} or null>,
  "status": <status key, array of status keys or null>,
  "folder": <string or null>,
  "tags": [<tags without the # symbol>],
  "aiUnderstanding": {{
    "detectedLanguage": <full language name>,
    "correctedTypos": [<"typo->fix">],
    "semanticMappings": {{"priority": <string or null>, "status": <string or null>, "dueDate": <string or null>}},
    "confidence": <number 0-1>,
    "naturalLanguageUsed": <boolean>,
    "timeContext": <the same English token as dueDate, or null>
  }}
}}

Rules:
1. Words that express priority, status or due date are filters, never keywords.
2. {expansion_rule}
3. Every coreKeyword must also appear in keywords.
4. dueDate and timeContext are always English tokens ({due_tokens}), "+Nd"/"+Nw"/"+Nm", or an ISO date, whatever the query language.
5. Status values must be one of: {status_keys}.
6. Today is {today}.

{vocabulary}
"""


def _expansion_rule(config: SearchConfig) -> str:
    languages = ", ".join(config.languages)
    if not config.semantic_expansion:
        return f"Do not add synonyms; only translate each core keyword into: {languages}."
    per_keyword = config.expansions_per_keyword
    return (
        f"For EACH core keyword generate exactly {config.expansions_per_language} semantic equivalents "
        f"per language for these languages: {languages} ({per_keyword} per core keyword)."
    )


def build_parser_messages(
    query: str,
    vocabulary: PropertyVocabulary,
    config: SearchConfig,
    today: Optional[date] = None,
) -> List[ChatMessage]:
    system_prompt = SYSTEM_PROMPT_TEMPLATE.format(
        expansion_rule=_expansion_rule(config),
        due_tokens="today, tomorrow, overdue, future, week, next-week, any, none",
        status_keys=", ".join(vocabulary.status_keys),
        today=(today or date.today()).isoformat(),
        vocabulary=vocabulary.render_prompt(),
    )
    user_prompt = f"Query:\n<<<\n{query}\n>>>\n\nReturn only the JSON object."
    return [
        {"role": "system", "content": system_prompt},
        {"role": "user", "content": user_prompt},
    ]


def response_schema() -> Dict[str, Any]:
    return ParsedQueryPayload.model_json_schema(by_alias=True)


def _load_payload(text: str, model_identifier: str) -> ParsedQueryPayload:
    try:
        payload = json.loads(extract_json_text(text))
    except json.JSONDecodeError as exc:
        raise ParserFailure(f"Parser returned invalid JSON: {exc}", model_identifier) from exc

    if not isinstance(payload, dict):
        raise ParserFailure(f"Parser returned {type(payload).__name__} instead of an object", model_identifier)
    if not any(key in payload for key in EXPECTED_KEYS):
        raise ParserFailure(
            f"Parser response has none of the expected fields ({', '.join(EXPECTED_KEYS)}); "
            f"got: {', '.join(sorted(payload)) or 'nothing'}",
            model_identifier,
        )
    try:
        return ParsedQueryPayload.model_validate(payload)
    except ValidationError as exc:
        raise ParserFailure(f"Parser response does not match schema: {exc}", model_identifier) from exc


def _as_list(value: Any) -> List[Any]:
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


def _normalize_priority(value: Any, vocabulary: PropertyVocabulary) -> Optional[PriorityFilter]:
    levels: List[int] = []
    for raw in _as_list(value):
        lowered = str(raw).strip().lower()
        if lowered in ("any", "all"):
            return "any"
        if lowered == "none":
            return "none"
        level = vocabulary.resolve_priority_value(int(raw) if isinstance(raw, float) and raw.is_integer() else raw)
        if level is None:
            LOGGER.info("Dropping unknown priority value %r from parser response", raw)
        elif level not in levels:
            levels.append(level)
    return sorted(levels) if levels else None


def _normalize_status(value: Any, vocabulary: PropertyVocabulary) -> List[str]:
    keys: List[str] = []
    for raw in _as_list(value):
        key = vocabulary.resolve_status(str(raw))
        if key is None:
            LOGGER.info("Dropping unknown status value %r from parser response", raw)
        elif key not in keys:
            keys.append(key)
    return keys


def _canonical_due(value: Optional[str], vocabulary: PropertyVocabulary, field: str) -> Optional[str]:
    if value is None or not str(value).strip():
        return None
    token = vocabulary.canonical_due_term(value)
    if token is None:
        LOGGER.info("Dropping unrecognised %s value %r from parser response", field, value)
    return token


def _normalize_confidence(value: Optional[float]) -> Optional[float]:
    if value is None:
        return None
    if value > 1.0:
        value = value / 100.0
    return max(0.0, min(1.0, value))


def _repair_expansion(
    core: List[str], expanded: List[str], config: SearchConfig
) -> tuple[List[str], ExpansionStats]:
    present = {word.lower() for word in expanded}
    missing = [word for word in core if word.lower() not in present]
    if missing:
        LOGGER.warning("Parser dropped core keywords %s from its expansion; re-inserting them", missing)
    repaired = deduplicate_exact([*missing, *expanded]) if expanded else list(core)

    expected = len(core) * config.expansions_per_keyword
    if core and len(repaired) < expected:
        LOGGER.info(
            "Parser expansion below target: %s keywords for %s core keywords (expected about %s)",
            len(repaired),
            len(core),
            expected,
        )
    stats = ExpansionStats(
        languages=list(config.languages),
        expansions_per_language=config.expansions_per_language,
        core_count=len(core),
        expected_total=expected,
        actual_total=len(repaired),
        repaired_core_keywords=missing,
    )
    return repaired, stats


def _merge_deterministic(intent: Intent, baseline: Intent) -> Intent:
    """Filters found by exact syntax or vocabulary hits win over the model's guesses."""

    updates: Dict[str, Any] = {}
    if baseline.priority is not None:
        updates["priority"] = baseline.priority
    if baseline.due_date is not None:
        updates["due_date"] = baseline.due_date
    if baseline.due_date_range is not None:
        updates["due_date_range"] = baseline.due_date_range
    if baseline.status:
        updates["status"] = list(baseline.status)
    if baseline.folder:
        updates["folder"] = baseline.folder
    if baseline.tags:
        updates["tags"] = list(baseline.tags)
    if not updates:
        return intent
    diagnostics = intent.diagnostics
    if "due_date" in updates and diagnostics.time_context != updates["due_date"]:
        diagnostics = diagnostics.model_copy(update={"time_context": updates["due_date"]})
    return intent.model_copy(update={**updates, "diagnostics": diagnostics})


async def parse_with_ai(
    query: str,
    vocabulary: PropertyVocabulary,
    config: SearchConfig,
    model: LanguageModel,
    today: Optional[date] = None,
    baseline: Optional[Intent] = None,
) -> Intent:
    """Ask ``model`` for a query intent; raises ParserFailure instead of guessing."""

    model_identifier = getattr(model, "model_identifier", "unknown")
    messages = build_parser_messages(query, vocabulary, config, today)
    try:
        completion = await model.parse_query(messages, response_schema())
    except Exception as exc:
        raise ParserFailure(f"Parser call failed: {exc}", model_identifier) from exc

    payload = _load_payload(completion.text, completion.model or model_identifier)

    core = deduplicate_overlapping(
        filter_stop_words((word.strip() for word in payload.core_keywords), config.stop_words)
    )
    if not core and baseline is not None and baseline.core_keywords:
        LOGGER.info("Parser returned no core keywords; keeping %s", baseline.core_keywords)
        core = list(baseline.core_keywords)
    expanded_raw = deduplicate_exact(word for word in payload.keywords if word.strip())
    expanded, stats = _repair_expansion(core, expanded_raw, config)

    understanding = payload.understanding or _Understanding()
    due_date = _canonical_due(payload.due_date, vocabulary, "dueDate")
    time_context = _canonical_due(understanding.time_context, vocabulary, "timeContext")
    if due_date is not None and time_context is not None and due_date != time_context:
        LOGGER.warning(
            "Parser dueDate %r disagrees with timeContext %r; keeping the filter value", due_date, time_context
        )
        time_context = due_date
    elif due_date is not None and time_context is None:
        time_context = due_date

    due_range = None
    if payload.due_date_range is not None:
        start = parse_iso_date(payload.due_date_range.start) if payload.due_date_range.start else None
        end = parse_iso_date(payload.due_date_range.end) if payload.due_date_range.end else None
        if start or end:
            due_range = DueDateRange(start=start, end=end)

    mappings = understanding.semantic_mappings
    diagnostics = IntentDiagnostics(
        detected_language=understanding.detected_language,
        corrected_typos=list(understanding.corrected_typos),
        confidence=_normalize_confidence(understanding.confidence),
        field_confidence={
            name: _normalize_confidence(value) or 0.0 for name, value in understanding.field_confidence.items()
        },
        natural_language_used=understanding.natural_language_used,
        time_context=time_context,
        semantic_mappings={
            name: None if value is None else str(value) for name, value in (mappings.model_dump() if mappings else {}).items()
        },
        expansion=stats,
        notes=understanding.notes,
    )

    intent = Intent(
        original_query=query,
        core_keywords=core,
        expanded_keywords=expanded,
        priority=_normalize_priority(payload.priority, vocabulary),
        due_date=due_date,
        due_date_range=due_range,
        status=_normalize_status(payload.status, vocabulary),
        folder=payload.folder.strip() if payload.folder and payload.folder.strip() else None,
        tags=deduplicate_exact(tag.lstrip("#") for tag in payload.tags if tag.strip("#")),
        parser="ai",
        diagnostics=diagnostics,
        usage=completion.usage,
    )
    if baseline is not None:
        intent = _merge_deterministic(intent, baseline)
    return intent


__all__ = [
    "EXPECTED_KEYS",
    "ParsedQueryPayload",
    "build_parser_messages",
    "response_schema",
    "parse_with_ai",
]
