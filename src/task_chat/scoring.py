"""Candidate filtering and weighted multi-component task scoring."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Iterable, List, Mapping, Optional, Sequence

from task_chat.config import PriorityScores, SearchConfig, UrgencyCurve
from task_chat.errors import ConfigurationError
from task_chat.logging_utils import LOGGER
from task_chat.models import Coefficients, Intent, ScoredTask, SortCriterion, StatusCategoryConfig, Task
from task_chat.text_utils import deduplicate_overlapping
from task_chat.time_utils import matches_due_range, matches_due_token

NEUTRAL_STATUS_SCORE = 0.5


@dataclass(frozen=True, slots=True)
class ActiveComponents:
    """Which scoring components take part in the weighted average for a query."""

    relevance: bool
    due_date: bool
    priority: bool
    status: bool

    @classmethod
    def resolve(
        cls,
        intent: Intent,
        coefficients: Coefficients,
        criteria: Sequence[SortCriterion] = (),
    ) -> "ActiveComponents":
        active = cls(
            relevance=intent.has_keywords and coefficients.relevance > 0,
            due_date=(intent.has_due_filter or "dueDate" in criteria) and coefficients.due_date > 0,
            priority=(intent.priority is not None or "priority" in criteria) and coefficients.priority > 0,
            status=bool(intent.status) and coefficients.status > 0,
        )
        if not active.any():
            return cls(relevance=True, due_date=False, priority=False, status=False)
        return active

    def any(self) -> bool:
        return self.relevance or self.due_date or self.priority or self.status

    def names(self) -> List[str]:
        flags = {
            "relevance": self.relevance,
            "dueDate": self.due_date,
            "priority": self.priority,
            "status": self.status,
        }
        return [name for name, enabled in flags.items() if enabled]


def max_possible_score(active: ActiveComponents, coefficients: Coefficients) -> float:
    """Sum of ``1.0 x coefficient`` over the active components."""

    total = 0.0
    if active.relevance:
        total += coefficients.relevance
    if active.due_date:
        total += coefficients.due_date
    if active.priority:
        total += coefficients.priority
    if active.status:
        total += coefficients.status
    return total


def quality_threshold(active: ActiveComponents, coefficients: Coefficients, percentage: float) -> float:
    return max_possible_score(active, coefficients) * percentage


def _haystack(task: Task) -> str:
    return " ".join([task.text, *task.tags]).lower()


def relevance_score(
    task: Task,
    core_keywords: Sequence[str],
    all_keywords: Sequence[str],
    core_weight: float = 0.2,
) -> float:
    core = deduplicate_overlapping(core_keywords)
    every = deduplicate_overlapping(all_keywords) or core
    if not core and not every:
        return 0.0
    haystack = _haystack(task)
    core_ratio = sum(1 for kw in core if kw.lower() in haystack) / len(core) if core else 0.0
    all_ratio = sum(1 for kw in every if kw.lower() in haystack) / len(every) if every else 0.0
    return max(0.0, min(1.0, core_ratio * core_weight + all_ratio * 1.0))


def due_date_score(due: Optional[date], today: date, curve: Optional[UrgencyCurve] = None) -> float:
    curve = curve or UrgencyCurve()
    if due is None:
        return curve.none_score
    days = (due - today).days
    if days < 0:
        decayed = curve.overdue_base - (-days) / curve.overdue_decay_days
        return min(1.0, max(curve.overdue_floor, decayed))
    if days == 0:
        return curve.today_score
    if days <= 7:
        return curve.within_week_score
    if days <= 30:
        return curve.within_month_score
    return curve.later_score


def priority_score(level: Optional[int], scores: Optional[PriorityScores] = None) -> float:
    return (scores or PriorityScores()).for_level(level)


def status_score(category: str, statuses: Mapping[str, StatusCategoryConfig]) -> float:
    """Configured score for ``category``; raises ConfigurationError when it is unknown."""

    config = statuses.get(category)
    if config is None:
        raise ConfigurationError(f"Status category '{category}' is not configured", key=category)
    return config.score


def filter_tasks(tasks: Iterable[Task], intent: Intent, today: date) -> List[Task]:
    """Keep tasks satisfying every structured filter and, if any, at least one keyword."""

    keywords = [kw.lower() for kw in intent.keywords if kw.strip()]
    folder = intent.folder.lower().strip("/") if intent.folder else None
    wanted_tags = [tag.lower().lstrip("#") for tag in intent.tags if tag.strip("#")]
    statuses = set(intent.status)

    result: List[Task] = []
    for task in tasks:
        if isinstance(intent.priority, list):
            if task.priority not in intent.priority:
                continue
        elif intent.priority == "any" and task.priority is None:
            continue
        elif intent.priority == "none" and task.priority is not None:
            continue
        if intent.due_date is not None and not matches_due_token(task.due_date, intent.due_date, today):
            continue
        if intent.due_date_range is not None and not matches_due_range(task.due_date, intent.due_date_range):
            continue
        if statuses and task.status_category not in statuses:
            continue
        if folder and folder not in task.folder.lower():
            continue
        if wanted_tags:
            task_tags = [tag.lower().lstrip("#") for tag in task.tags]
            if not any(wanted in tag for wanted in wanted_tags for tag in task_tags):
                continue
        if keywords:
            haystack = _haystack(task)
            if not any(kw in haystack for kw in keywords):
                continue
        result.append(task)
    return result


def score_tasks(
    tasks: Iterable[Task],
    intent: Intent,
    coefficients: Coefficients,
    criteria: Sequence[SortCriterion] = (),
    *,
    config: Optional[SearchConfig] = None,
    today: Optional[date] = None,
    warnings: Optional[List[str]] = None,
) -> List[ScoredTask]:
    """Score every task; unknown status categories score neutral and are reported once."""

    config = config or SearchConfig()
    today = today or date.today()
    active = ActiveComponents.resolve(intent, coefficients, criteria)
    denominator = max_possible_score(active, coefficients)
    reported: set = set()

    scored: List[ScoredTask] = []
    for task in tasks:
        relevance = (
            relevance_score(task, intent.core_keywords, intent.keywords, config.relevance_core_weight)
            if active.relevance
            else 0.0
        )
        due = due_date_score(task.due_date, today, config.urgency) if active.due_date else 0.0
        priority = priority_score(task.priority, config.priority_scores) if active.priority else 0.0
        status = 0.0
        if active.status:
            try:
                status = status_score(task.status_category, config.status_categories)
            except ConfigurationError as exc:
                status = NEUTRAL_STATUS_SCORE
                if exc.key not in reported:
                    reported.add(exc.key)
                    LOGGER.warning("%s; scoring it as neutral", exc.message)
                    if warnings is not None:
                        warnings.append(f"{exc.message}; tasks in it were scored as neutral.")

        weighted = 0.0
        if active.relevance:
            weighted += relevance * coefficients.relevance
        if active.due_date:
            weighted += due * coefficients.due_date
        if active.priority:
            weighted += priority * coefficients.priority
        if active.status:
            weighted += status * coefficients.status
        final = weighted / denominator if denominator > 0 else 0.0

        scored.append(
            ScoredTask(
                task=task,
                relevance=relevance,
                due_date=due,
                priority=priority,
                status=status,
                final_score=max(0.0, min(1.0, final)),
                weighted_score=weighted,
            )
        )
    return scored


def apply_quality_filter(
    scored: Sequence[ScoredTask],
    threshold: float,
    min_results: int = 0,
) -> List[ScoredTask]:
    """Drop tasks whose weighted score is below ``threshold``.

    When fewer than ``min_results`` tasks survive, the best ``min_results`` by
    final score are kept instead so an over-strict threshold never empties a
    non-empty candidate list.
    """

    kept = [item for item in scored if item.weighted_score >= threshold]
    floor = min(min_results, len(scored))
    if len(kept) >= floor:
        return kept
    best = sorted(scored, key=lambda item: item.final_score, reverse=True)[:floor]
    chosen = {id(item) for item in best}
    return [item for item in scored if id(item) in chosen]


__all__ = [
    "ActiveComponents",
    "NEUTRAL_STATUS_SCORE",
    "max_possible_score",
    "quality_threshold",
    "relevance_score",
    "due_date_score",
    "priority_score",
    "status_score",
    "filter_tasks",
    "score_tasks",
    "apply_quality_filter",
]
