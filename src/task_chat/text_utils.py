"""Tokenisation helpers: stop words, CJK segmentation, overlap dedup, typo fixes."""
from __future__ import annotations

import re
from typing import Iterable, List, Sequence, Tuple

_CJK_CHARS = "\u3040-\u30ff\u3400-\u4dbf\u4e00-\u9fff\uf900-\ufaff\uac00-\ud7af"
CJK_RE = re.compile(f"[{_CJK_CHARS}]")
_TOKEN_RE = re.compile(
    f"[{_CJK_CHARS}]+|[^\\W{_CJK_CHARS}]+(?:[-'][^\\W{_CJK_CHARS}]+)*"
)

STOP_WORDS = frozenset(
    {
        # English
        "the", "a", "an", "and", "or", "but", "for", "of", "with", "by", "from",
        "as", "is", "was", "are", "were", "be", "to", "at", "on", "in", "it",
        "i", "me", "my", "all", "any", "some", "show", "find", "list", "give",
        "how", "what", "when", "where", "why", "which", "who", "whom", "whose",
        "do", "does", "did", "can", "could", "should", "would", "will",
        "have", "has", "had", "that", "this", "there", "please", "task", "tasks",
        # 中文
        "我", "的", "了", "吗", "呢", "啊", "吧", "任务",
        "如何", "怎么", "怎样", "什么", "哪些", "哪个", "哪里", "为什么", "一些",
        # Svenska
        "och", "att", "det", "som", "en", "ett", "jag", "mig", "min", "mina",
        "vad", "när", "var", "vilken", "vilka", "hur", "med", "för", "på", "av", "uppgift", "uppgifter",
    }
)

CJK_STOP_WORDS = tuple(
    sorted((word for word in STOP_WORDS if CJK_RE.search(word)), key=len, reverse=True)
)

COMMON_TYPOS = {
    "taks": "task",
    "tsak": "task",
    "priorty": "priority",
    "priortiy": "priority",
    "piority": "priority",
    "opne": "open",
    "complated": "completed",
    "compelted": "completed",
    "urgant": "urgent",
    "urgnet": "urgent",
    "overdu": "overdue",
    "overdeu": "overdue",
    "tommorow": "tomorrow",
    "tommorrow": "tomorrow",
    "tomorow": "tomorrow",
    "todya": "today",
    "toady": "today",
    "progres": "progress",
    "importent": "important",
    "imporant": "important",
    "critcal": "critical",
    "desing": "design",
    "developement": "development",
    "recieve": "receive",
}

_TYPO_RE = re.compile(r"(?<!\w)(" + "|".join(sorted(COMMON_TYPOS, key=len, reverse=True)) + r")(?!\w)", re.IGNORECASE)


def is_cjk(text: str) -> bool:
    return bool(CJK_RE.search(text))


def correct_typos(text: str) -> Tuple[str, List[str]]:
    """Replace known misspellings; returns the new text and ``typo->fix`` notes."""

    corrections: List[str] = []

    def _replace(match: re.Match[str]) -> str:
        original = match.group(0)
        fixed = COMMON_TYPOS[original.lower()]
        corrections.append(f"{original}->{fixed}")
        return fixed

    return _TYPO_RE.sub(_replace, text), corrections


def _segment_cjk_run(run: str, stop_words: Sequence[str]) -> List[str]:
    pieces = [run]
    for stop_word in stop_words:
        next_pieces: List[str] = []
        for piece in pieces:
            next_pieces.extend(part for part in piece.split(stop_word) if part)
        pieces = next_pieces

    units: List[str] = []
    for piece in pieces:
        # Non-overlapping two-character units; an odd trailing character stays single.
        for start in range(0, len(piece), 2):
            units.append(piece[start : start + 2])
    return units


def split_into_words(text: str, extra_stop_words: Iterable[str] = ()) -> List[str]:
    """Tokenise ``text`` in reading order; CJK runs become multi-character units."""

    cjk_stops = list(CJK_STOP_WORDS)
    extra_cjk = [word for word in extra_stop_words if is_cjk(word)]
    if extra_cjk:
        cjk_stops = sorted(set(cjk_stops) | set(extra_cjk), key=len, reverse=True)

    words: List[str] = []
    for match in _TOKEN_RE.finditer(text):
        token = match.group(0)
        if is_cjk(token):
            words.extend(_segment_cjk_run(token, cjk_stops))
        else:
            words.append(token)
    return words


def filter_stop_words(words: Iterable[str], extra_stop_words: Iterable[str] = ()) -> List[str]:
    stop_words = STOP_WORDS | {word.lower() for word in extra_stop_words}
    result: List[str] = []
    for word in words:
        cleaned = word.strip()
        if not cleaned or cleaned.lower() in stop_words:
            continue
        if len(cleaned) == 1 and not is_cjk(cleaned):
            continue
        result.append(cleaned)
    return result


def deduplicate_overlapping(words: Sequence[str]) -> List[str]:
    """Drop exact and substring duplicates; the longest form wins, query order is kept."""

    unique: List[str] = []
    seen = set()
    for word in words:
        lowered = word.lower()
        if lowered and lowered not in seen:
            seen.add(lowered)
            unique.append(word)

    kept_lower: List[str] = []
    kept = set()
    for word in sorted(unique, key=len, reverse=True):
        lowered = word.lower()
        if any(lowered in other for other in kept_lower):
            continue
        kept_lower.append(lowered)
        kept.add(word)
    return [word for word in unique if word in kept]


def deduplicate_exact(words: Iterable[str]) -> List[str]:
    seen = set()
    result: List[str] = []
    for word in words:
        lowered = word.strip().lower()
        if lowered and lowered not in seen:
            seen.add(lowered)
            result.append(word.strip())
    return result


__all__ = [
    "STOP_WORDS",
    "is_cjk",
    "correct_typos",
    "split_into_words",
    "filter_stop_words",
    "deduplicate_overlapping",
    "deduplicate_exact",
]
