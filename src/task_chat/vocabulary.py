"""Multilingual term tables mapping phrases to priority, due-date and status concepts."""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, Iterable, List, Literal, Mapping, Optional, Sequence, Tuple, Union

from task_chat.config import SearchConfig
from task_chat.models import StatusCategoryConfig
from task_chat.text_utils import deduplicate_exact, is_cjk
from task_chat.time_utils import is_valid_due_token

PropertyName = Literal["priority", "dueDate", "status"]

BASE_PRIORITY_GENERAL = [
    "priority", "urgent", "优先级", "优先", "紧急", "prioritet", "viktig", "brådskande",
]
# Single CJK characters such as 高 or 中 are left out: they occur inside unrelated words.
BASE_PRIORITY_LEVELS: Dict[int, List[str]] = {
    1: ["high priority", "highest priority", "top priority", "high", "highest", "critical",
        "高优先级", "最高优先级", "最高", "hög prioritet", "hög", "högst", "kritisk"],
    2: ["medium priority", "normal priority", "medium", "中优先级", "中等", "普通", "medel"],
    3: ["low priority", "low", "minor", "低优先级", "次要", "låg prioritet", "låg", "mindre"],
}

BASE_DUE_GENERAL = ["due", "deadline", "截止日期", "到期", "期限", "förfallodatum"]
# Checked in this order when two buckets are equally long.
BASE_DUE_BUCKETS: Dict[str, List[str]] = {
    "overdue": ["overdue", "past due", "late", "过期", "逾期", "延迟", "försenad", "försenade"],
    "future": ["future", "upcoming", "later", "未来", "将来", "以后", "framtida", "kommande"],
    "today": ["today", "due today", "今天", "今日", "idag"],
    "tomorrow": ["tomorrow", "due tomorrow", "明天", "imorgon"],
    "week": ["this week", "本周", "这周", "denna vecka"],
    "next-week": ["next week", "下周", "nästa vecka"],
}

BASE_STATUS_GENERAL = ["status", "progress", "状态", "进度", "情况", "tillstånd"]

_WEEK_ALIASES = {"this-week": "week", "this week": "week", "thisweek": "week", "next week": "next-week", "nextweek": "next-week"}


@dataclass(frozen=True, slots=True)
class TermMatch:
    """One vocabulary hit in a query; ``value`` is None for general terms."""

    kind: PropertyName
    value: Union[int, str, None]
    term: str
    start: int
    end: int

    @property
    def is_general(self) -> bool:
        return self.value is None


def _term_pattern(term: str) -> re.Pattern[str]:
    escaped = r"\s+".join(re.escape(part) for part in term.split())
    if is_cjk(term):
        return re.compile(escaped, re.IGNORECASE)
    return re.compile(rf"(?<!\w){escaped}(?!\w)", re.IGNORECASE)


def _split_camel(key: str) -> str:
    return re.sub(r"(?<=[a-z])(?=[A-Z])", " ", key).lower()


class PropertyVocabulary:
    """Lookup tables for one request; built from a frozen ``SearchConfig``."""

    def __init__(
        self,
        *,
        priority_general: Sequence[str],
        priority_levels: Mapping[int, Sequence[str]],
        due_general: Sequence[str],
        due_buckets: Mapping[str, Sequence[str]],
        status_general: Sequence[str],
        status_categories: Mapping[str, StatusCategoryConfig],
    ) -> None:
        self._general: Dict[PropertyName, List[str]] = {
            "priority": deduplicate_exact(priority_general),
            "dueDate": deduplicate_exact(due_general),
            "status": deduplicate_exact(status_general),
        }
        self._priority_levels = {level: deduplicate_exact(terms) for level, terms in priority_levels.items()}
        self._due_buckets = {token: deduplicate_exact(terms) for token, terms in due_buckets.items()}
        self._status_categories = dict(status_categories)
        self._status_terms: Dict[str, List[str]] = {}
        for key, category in self._status_categories.items():
            names = [key, _split_camel(key), category.display_name, *category.terms]
            self._status_terms[key] = deduplicate_exact(name for name in names if name)
        self._entries = self._build_entries()

    @classmethod
    def from_config(cls, config: SearchConfig) -> "PropertyVocabulary":
        return cls(
            priority_general=[*BASE_PRIORITY_GENERAL, *config.user_terms.priority],
            priority_levels=BASE_PRIORITY_LEVELS,
            due_general=[*BASE_DUE_GENERAL, *config.user_terms.due_date],
            due_buckets=BASE_DUE_BUCKETS,
            status_general=[*BASE_STATUS_GENERAL, *config.user_terms.status],
            status_categories=config.status_categories,
        )

    def _build_entries(self) -> List[Tuple[PropertyName, Union[int, str, None], str, re.Pattern[str]]]:
        entries: List[Tuple[PropertyName, Union[int, str, None], str, re.Pattern[str]]] = []
        for level, terms in self._priority_levels.items():
            entries.extend(("priority", level, term, _term_pattern(term)) for term in terms)
        for token, terms in self._due_buckets.items():
            entries.extend(("dueDate", token, term, _term_pattern(term)) for term in terms)
        for key, terms in self._status_terms.items():
            entries.extend(("status", key, term, _term_pattern(term)) for term in terms)
        for prop, terms in self._general.items():
            entries.extend((prop, None, term, _term_pattern(term)) for term in terms)
        # Longest phrase wins; sorted() is stable so table order breaks ties.
        return sorted(entries, key=lambda entry: len(entry[2]), reverse=True)

    @property
    def status_keys(self) -> List[str]:
        return list(self._status_categories)

    def find_all(self, text: str) -> List[TermMatch]:
        """Non-overlapping matches for every property, in query order."""

        taken: List[Tuple[int, int]] = []
        matches: List[TermMatch] = []
        for prop, value, term, pattern in self._entries:
            for found in pattern.finditer(text):
                start, end = found.span()
                if any(start < other_end and other_start < end for other_start, other_end in taken):
                    continue
                taken.append((start, end))
                matches.append(TermMatch(prop, value, found.group(0), start, end))
        return sorted(matches, key=lambda item: item.start)

    def match_priority(self, text: str) -> List[int]:
        return _unique(m.value for m in self.find_all(text) if m.kind == "priority" and m.value is not None)

    def match_due_date(self, text: str) -> List[str]:
        return _unique(m.value for m in self.find_all(text) if m.kind == "dueDate" and m.value is not None)

    def match_status(self, text: str) -> List[str]:
        return _unique(m.value for m in self.find_all(text) if m.kind == "status" and m.value is not None)

    def general_terms(self, prop: PropertyName) -> List[str]:
        return list(self._general[prop])

    def all_trigger_terms(self) -> List[str]:
        """Every phrase that activates a filter; these never count as keywords."""

        return [term for _, value, term, _ in self._entries if value is not None]

    def resolve_status(self, value: str) -> Optional[str]:
        """Map a key, display name, symbol or synonym to a configured category key."""

        if value is None:
            return None
        raw = str(value)
        if raw in self._status_categories:
            return raw
        for key, category in self._status_categories.items():
            if raw in category.symbols and raw.strip():
                return key
        lowered = raw.strip().lower()
        if not lowered:
            return None
        for key, terms in self._status_terms.items():
            if any(lowered == term.lower() for term in terms):
                return key
        compact = lowered.replace("-", "").replace("_", "").replace(" ", "")
        for key in self._status_categories:
            if key.lower() == compact:
                return key
        return None

    def resolve_priority_value(self, value: Union[int, str, None]) -> Optional[int]:
        if value is None or isinstance(value, bool):
            return None
        if isinstance(value, int):
            return value if 1 <= value <= 4 else None
        lowered = str(value).strip().lower()
        if lowered.startswith("p") and lowered[1:].isdigit():
            lowered = lowered[1:]
        if lowered.isdigit():
            level = int(lowered)
            return level if 1 <= level <= 4 else None
        for level, terms in self._priority_levels.items():
            if any(lowered == term.lower() for term in terms):
                return level
        return None

    def canonical_due_term(self, value: Optional[str]) -> Optional[str]:
        """Return the English due-date token for ``value`` or None if unrecognised."""

        if value is None:
            return None
        raw = str(value).strip()
        if not raw:
            return None
        lowered = raw.lower()
        if lowered in _WEEK_ALIASES:
            return _WEEK_ALIASES[lowered]
        if is_valid_due_token(lowered):
            return lowered
        for token, terms in self._due_buckets.items():
            if any(lowered == term.lower() for term in terms):
                return token
        if any(lowered == term.lower() for term in self._general["dueDate"]):
            return "any"
        return None

    def render_prompt(self) -> str:
        """Render the term tables as instructions for the AI query parser."""

        lines = ["PROPERTY VOCABULARY (any language maps to the canonical value on the right):", "", "Priority:"]
        for level, terms in sorted(self._priority_levels.items()):
            lines.append(f"- {', '.join(terms)} -> priority {level}")
        lines.append(f"- general words ({', '.join(self._general['priority'])}) -> no specific level")
        lines.extend(["", "Due date (always answer with the English token):"])
        for token, terms in self._due_buckets.items():
            lines.append(f"- {', '.join(terms)} -> \"{token}\"")
        lines.append(f"- general words ({', '.join(self._general['dueDate'])}) -> \"any\"")
        lines.append("- \"in N days/weeks/months\" -> \"+Nd\" / \"+Nw\" / \"+Nm\"; explicit dates -> YYYY-MM-DD")
        lines.extend(["", "Status (answer with the category key):"])
        for key, terms in self._status_terms.items():
            lines.append(f"- {', '.join(terms)} -> \"{key}\"")
        lines.append(f"- general words ({', '.join(self._general['status'])}) -> no specific status")
        return "\n".join(lines)


def _unique(values: Iterable) -> list:
    result = []
    for value in values:
        if value not in result:
            result.append(value)
    return result


__all__ = ["PropertyVocabulary", "PropertyName", "TermMatch"]
