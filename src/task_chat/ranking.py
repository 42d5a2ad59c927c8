"""Stable multi-criterion ordering of scored tasks."""
from __future__ import annotations

from functools import cmp_to_key
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

from task_chat.logging_utils import LOGGER
from task_chat.models import ScoredTask, SortCriterion, Task

KNOWN_CRITERIA = ("relevance", "dueDate", "priority", "created", "alphabetical")


def normalize_criteria(criteria: Iterable[str]) -> List[SortCriterion]:
    """Force ``relevance`` first and drop duplicates or unknown names."""

    result: List[SortCriterion] = ["relevance"]
    for name in criteria:
        if name not in KNOWN_CRITERIA:
            LOGGER.info("Ignoring unknown sort criterion %r", name)
            continue
        if name in result:
            if name != "relevance":
                LOGGER.info("Ignoring duplicate sort criterion %r", name)
            continue
        result.append(name)  # type: ignore[arg-type]
    return result


def _absent_last(left: Optional[Any], right: Optional[Any], *, descending: bool = False) -> int:
    if left is None and right is None:
        return 0
    if left is None:
        return 1
    if right is None:
        return -1
    if left == right:
        return 0
    smaller = -1 if left < right else 1
    return -smaller if descending else smaller


def _by_relevance(a: ScoredTask, b: ScoredTask) -> int:
    if a.final_score == b.final_score:
        return 0
    return -1 if a.final_score > b.final_score else 1


def _by_priority(a: ScoredTask, b: ScoredTask) -> int:
    return _absent_last(a.task.priority, b.task.priority)


def _by_due_date(a: ScoredTask, b: ScoredTask) -> int:
    return _absent_last(a.task.due_date, b.task.due_date)


def _by_created(a: ScoredTask, b: ScoredTask) -> int:
    return _absent_last(a.task.created_date, b.task.created_date, descending=True)


def _by_text(a: ScoredTask, b: ScoredTask) -> int:
    left, right = a.task.text.casefold(), b.task.text.casefold()
    if left == right:
        return 0
    return -1 if left < right else 1


COMPARATORS: Dict[str, Callable[[ScoredTask, ScoredTask], int]] = {
    "relevance": _by_relevance,
    "priority": _by_priority,
    "dueDate": _by_due_date,
    "created": _by_created,
    "alphabetical": _by_text,
}


def rank_scored(scored: Sequence[ScoredTask], criteria: Iterable[str]) -> List[ScoredTask]:
    comparators = [COMPARATORS[name] for name in normalize_criteria(criteria)]

    def _compare(a: ScoredTask, b: ScoredTask) -> int:
        for comparator in comparators:
            outcome = comparator(a, b)
            if outcome:
                return outcome
        return 0

    # sorted() is stable, so full ties keep their input order.
    return sorted(scored, key=cmp_to_key(_compare))


def rank(scored: Sequence[ScoredTask], criteria: Iterable[str]) -> List[Task]:
    return [item.task for item in rank_scored(scored, criteria)]


__all__ = ["KNOWN_CRITERIA", "normalize_criteria", "rank", "rank_scored"]
