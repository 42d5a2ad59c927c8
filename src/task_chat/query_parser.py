"""Deterministic (regex and vocabulary based) query parsing."""
from __future__ import annotations

import re
from datetime import date, timedelta
from typing import Callable, List, Optional, Sequence, Set

from task_chat.config import SearchConfig
from task_chat.logging_utils import LOGGER
from task_chat.models import DueDateRange, Intent, IntentDiagnostics, PriorityFilter
from task_chat.text_utils import (
    correct_typos,
    deduplicate_overlapping,
    filter_stop_words,
    split_into_words,
)
from task_chat.vocabulary import PropertyVocabulary

_VALUE = r"([^\s&|,]+(?:,[^\s&|,]+)*)"
_DATE = r"(\d{4}-\d{1,2}-\d{1,2}|\d{1,2}/\d{1,2}/\d{4}|\d{1,2}\.\d{1,2}\.\d{4}|today|tomorrow|yesterday)"

PRIORITY_FIELD_RE = re.compile(rf"(?<!\w)(?:p|priority):\s*{_VALUE}", re.IGNORECASE)
PRIORITY_SHORT_RE = re.compile(r"(?<!\w)p([1-4])(?!\w)", re.IGNORECASE)
STATUS_FIELD_RE = re.compile(rf"(?<!\w)(?:s|status):\s*{_VALUE}", re.IGNORECASE)
DUE_BEFORE_RE = re.compile(rf"(?<!\w)due\s+before:?\s*{_DATE}", re.IGNORECASE)
DUE_AFTER_RE = re.compile(rf"(?<!\w)due\s+after:?\s*{_DATE}", re.IGNORECASE)
DUE_BETWEEN_RE = re.compile(rf"(?<!\w)(?:due\s+)?from\s+{_DATE}\s+to\s+{_DATE}", re.IGNORECASE)
DUE_FIELD_RE = re.compile(rf"(?<!\w)(?:d|due):\s*{_VALUE}", re.IGNORECASE)
RELATIVE_RE = re.compile(r"(?<!\w)(?:due\s+)?in\s+(\d+)\s+(day|days|week|weeks|month|months)(?!\w)", re.IGNORECASE)
ISO_DATE_RE = re.compile(r"(?<![\w-])(\d{4})-(\d{1,2})-(\d{1,2})(?![\w-])")
US_DATE_RE = re.compile(r"(?<![\w/])(\d{1,2})/(\d{1,2})/(\d{4})(?![\w/])")
INTL_DATE_RE = re.compile(r"(?<![\w.])(\d{1,2})\.(\d{1,2})\.(\d{4})(?![\w.])")
HASHTAG_RE = re.compile(r"(?<![\w#])#([\w/-]+)")
TAGGED_RE = re.compile(r"(?<!\w)(?:tagged|(?:with|having)\s+tags?)\s+#?([\w/-]+)", re.IGNORECASE)
CJK_TAG_RE = re.compile(r"标签[:：]?\s*#?([\w/-]+)")
FOLDER_RE = re.compile(r"(?<!\w)(?:in\s+)?folder[:\s]\s*(\"[^\"]+\"|'[^']+'|[^\s]+)", re.IGNORECASE)
CJK_FOLDER_RE = re.compile(r"(?:在)?文件夹[:：]?\s*([^\s]+)")


def _parse_date_value(value: str, today: date) -> Optional[date]:
    lowered = value.lower()
    if lowered == "today":
        return today
    if lowered == "tomorrow":
        return today + timedelta(days=1)
    if lowered == "yesterday":
        return today - timedelta(days=1)
    if "/" in value:
        month, day, year = value.split("/")
        return _safe_date(int(year), int(month), int(day))
    if "." in value:
        day, month, year = value.split(".")
        return _safe_date(int(year), int(month), int(day))
    year, month, day = value.split("-")
    return _safe_date(int(year), int(month), int(day))


def _safe_date(year: int, month: int, day: int) -> Optional[date]:
    try:
        return date(year, month, day)
    except ValueError:
        return None


class _Extraction:
    """Mutable scratch state for one parse; discarded when the Intent is built."""

    def __init__(self, text: str) -> None:
        self.text = text
        self.priority: List[int] = []
        self.priority_special: Optional[str] = None
        self.due_values: List[str] = []
        self.due_range: Optional[DueDateRange] = None
        self.status: List[str] = []
        self.tags: List[str] = []
        self.folder: Optional[str] = None
        self.explicit: Set[str] = set()

    def consume(self, pattern: re.Pattern[str], handler: Callable[[re.Match[str]], bool]) -> None:
        """Apply ``handler`` to each match and blank out the ones it accepted."""

        def _replace(match: re.Match[str]) -> str:
            return " " if handler(match) else match.group(0)

        self.text = pattern.sub(_replace, self.text)

    def add_due(self, token: str) -> None:
        if token not in self.due_values:
            self.due_values.append(token)

    @property
    def priority_filter(self) -> Optional[PriorityFilter]:
        if self.priority:
            return sorted(self.priority)
        return self.priority_special


def _extract_explicit(state: _Extraction, vocabulary: PropertyVocabulary, today: date) -> None:
    def _priority_field(match: re.Match[str]) -> bool:
        for raw in match.group(1).split(","):
            lowered = raw.lower()
            if lowered in ("all", "any"):
                state.priority_special = "any"
                continue
            if lowered == "none":
                state.priority_special = "none"
                continue
            level = vocabulary.resolve_priority_value(raw)
            if level is None:
                LOGGER.info("Ignoring unknown priority value %r", raw)
            elif level not in state.priority:
                state.priority.append(level)
        state.explicit.add("priority")
        return True

    def _priority_short(match: re.Match[str]) -> bool:
        level = int(match.group(1))
        if level not in state.priority:
            state.priority.append(level)
        state.explicit.add("priority")
        return True

    def _status_field(match: re.Match[str]) -> bool:
        for raw in match.group(1).split(","):
            key = vocabulary.resolve_status(raw)
            if key is None:
                LOGGER.info("Ignoring unknown status value %r", raw)
            elif key not in state.status:
                state.status.append(key)
        state.explicit.add("status")
        return True

    def _range(start: Optional[str], end: Optional[str]) -> bool:
        window = state.due_range or DueDateRange()
        start_date = _parse_date_value(start, today) if start else window.start
        end_date = _parse_date_value(end, today) if end else window.end
        if (start and start_date is None) or (end and end_date is None):
            return False
        state.due_range = DueDateRange(start=start_date, end=end_date)
        state.explicit.add("dueDate")
        return True

    def _due_field(match: re.Match[str]) -> bool:
        for raw in match.group(1).split(","):
            token = vocabulary.canonical_due_term(raw)
            if token is None:
                parsed = _parse_date_value(raw, today) if re.fullmatch(_DATE, raw, re.IGNORECASE) else None
                token = parsed.isoformat() if parsed else None
            if token is None:
                LOGGER.info("Ignoring unknown due value %r", raw)
                continue
            state.add_due(token)
        state.explicit.add("dueDate")
        return True

    def _relative(match: re.Match[str]) -> bool:
        state.add_due(f"+{int(match.group(1))}{match.group(2)[0].lower()}")
        state.explicit.add("dueDate")
        return True

    def _specific_date(match: re.Match[str]) -> bool:
        parsed = _parse_date_value(match.group(0), today)
        if parsed is None:
            return False
        state.add_due(parsed.isoformat())
        state.explicit.add("dueDate")
        return True

    def _tag(match: re.Match[str]) -> bool:
        tag = match.group(1).strip("/-")
        if tag and tag not in state.tags:
            state.tags.append(tag)
        return bool(tag)

    def _folder(match: re.Match[str]) -> bool:
        state.folder = match.group(1).strip("\"'")
        return bool(state.folder)

    state.consume(PRIORITY_FIELD_RE, _priority_field)
    state.consume(PRIORITY_SHORT_RE, _priority_short)
    state.consume(STATUS_FIELD_RE, _status_field)
    state.consume(DUE_BETWEEN_RE, lambda m: _range(m.group(1), m.group(2)))
    state.consume(DUE_BEFORE_RE, lambda m: _range(None, m.group(1)))
    state.consume(DUE_AFTER_RE, lambda m: _range(m.group(1), None))
    state.consume(DUE_FIELD_RE, _due_field)
    state.consume(RELATIVE_RE, _relative)
    for pattern in (ISO_DATE_RE, US_DATE_RE, INTL_DATE_RE):
        state.consume(pattern, _specific_date)
    for pattern in (HASHTAG_RE, TAGGED_RE, CJK_TAG_RE):
        state.consume(pattern, _tag)
    for pattern in (FOLDER_RE, CJK_FOLDER_RE):
        state.consume(pattern, _folder)


def _extract_natural(state: _Extraction, vocabulary: PropertyVocabulary) -> bool:
    """Apply vocabulary matches; returns whether any specific term was found."""

    matches = vocabulary.find_all(state.text)
    specific = [m for m in matches if not m.is_general]
    for match in specific:
        if match.kind == "priority" and match.value not in state.priority:
            state.priority.append(int(match.value))
        elif match.kind == "dueDate":
            state.add_due(str(match.value))
        elif match.kind == "status" and match.value not in state.status:
            state.status.append(str(match.value))

    filtered_props = {m.kind for m in specific} | state.explicit
    removable = [m for m in matches if not m.is_general or m.kind in filtered_props]
    for match in sorted(removable, key=lambda item: item.start, reverse=True):
        state.text = state.text[: match.start] + " " + state.text[match.end :]
    return bool(specific)


def extract_keywords(text: str, extra_stop_words: Sequence[str] = ()) -> List[str]:
    """Tokenise free text into overlap-free keywords in query order."""

    words = split_into_words(text, extra_stop_words)
    return deduplicate_overlapping(filter_stop_words(words, extra_stop_words))


def parse_deterministic(
    query: str,
    config: SearchConfig,
    today: Optional[date] = None,
    vocabulary: Optional[PropertyVocabulary] = None,
) -> Intent:
    """Parse ``query`` without any external call; never raises on odd input."""

    vocabulary = vocabulary or PropertyVocabulary.from_config(config)
    today = today or date.today()
    corrected, corrections = correct_typos(query or "")
    state = _Extraction(corrected)

    _extract_explicit(state, vocabulary, today)
    natural_used = _extract_natural(state, vocabulary)

    due_date: Optional[str] = None
    if state.due_values:
        due_date = state.due_values[0]
        if len(state.due_values) > 1:
            LOGGER.info("Multiple due-date values %s in query; keeping %s", state.due_values, due_date)

    keywords = extract_keywords(state.text, config.stop_words)
    return Intent(
        original_query=query or "",
        core_keywords=keywords,
        priority=state.priority_filter,
        due_date=due_date,
        due_date_range=state.due_range,
        status=state.status,
        folder=state.folder,
        tags=state.tags,
        parser="deterministic",
        diagnostics=IntentDiagnostics(
            corrected_typos=corrections,
            natural_language_used=natural_used,
            time_context=due_date,
        ),
    )


__all__ = ["parse_deterministic", "extract_keywords"]
