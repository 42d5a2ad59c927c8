"""Data models shared across the project."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from pathlib import PurePosixPath
from typing import Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

SearchMode = Literal["simple", "smart", "chat"]
SortCriterion = Literal["relevance", "dueDate", "priority", "created", "alphabetical"]
ParserPath = Literal["deterministic", "ai"]
DegradationKind = Literal["parser-fallback", "analysis-fallback"]
PriorityFilter = Union[Literal["any", "none"], List[int]]


class Task(BaseModel):
    """One to-do record materialised by the task source for a single request."""

    model_config = ConfigDict(frozen=True)

    id: str
    text: str
    file_path: str = ""
    line_number: int = 0
    priority: Optional[int] = Field(None, ge=1, le=4)
    due_date: Optional[date] = None
    created_date: Optional[date] = None
    status_category: str = "open"
    status_symbol: str = " "
    tags: List[str] = Field(default_factory=list)

    @property
    def folder(self) -> str:
        parent = PurePosixPath(self.file_path.replace("\\", "/")).parent
        return "" if str(parent) == "." else str(parent)


class StatusCategoryConfig(BaseModel):
    """User-defined status category; the category key lives in the owning mapping."""

    model_config = ConfigDict(frozen=True)

    symbols: List[str] = Field(default_factory=list)
    score: float = Field(0.5, ge=0.0, le=1.0)
    display_name: str = ""
    display_priority: int = 0
    terms: List[str] = Field(default_factory=list)


class Coefficients(BaseModel):
    """Relative importance of the four scoring components."""

    model_config = ConfigDict(frozen=True)

    relevance: float = Field(20.0, ge=0.0)
    due_date: float = Field(4.0, ge=0.0)
    priority: float = Field(1.0, ge=0.0)
    status: float = Field(1.0, ge=0.0)


class DueDateRange(BaseModel):
    start: Optional[date] = None
    end: Optional[date] = None


class TokenUsage(BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.prompt_tokens + self.completion_tokens


class ExpansionStats(BaseModel):
    """How closely the AI parser met the requested expansion count."""

    languages: List[str] = Field(default_factory=list)
    expansions_per_language: int = 0
    core_count: int = 0
    expected_total: int = 0
    actual_total: int = 0
    repaired_core_keywords: List[str] = Field(default_factory=list)


class IntentDiagnostics(BaseModel):
    detected_language: Optional[str] = None
    corrected_typos: List[str] = Field(default_factory=list)
    confidence: Optional[float] = Field(None, ge=0.0, le=1.0)
    field_confidence: Dict[str, float] = Field(default_factory=dict)
    natural_language_used: bool = False
    time_context: Optional[str] = None
    semantic_mappings: Dict[str, Optional[str]] = Field(default_factory=dict)
    expansion: Optional[ExpansionStats] = None
    notes: Optional[str] = None


class Intent(BaseModel):
    """Normalised representation of a query: keywords plus structured filters."""

    original_query: str = ""
    core_keywords: List[str] = Field(default_factory=list)
    expanded_keywords: List[str] = Field(default_factory=list)
    priority: Optional[PriorityFilter] = None
    due_date: Optional[str] = None
    due_date_range: Optional[DueDateRange] = None
    status: List[str] = Field(default_factory=list)
    folder: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    parser: ParserPath = "deterministic"
    diagnostics: IntentDiagnostics = Field(default_factory=IntentDiagnostics)
    usage: Optional[TokenUsage] = None

    @property
    def keywords(self) -> List[str]:
        """Keywords used for matching: expanded when available, otherwise core."""

        return list(self.expanded_keywords) if self.expanded_keywords else list(self.core_keywords)

    @property
    def has_keywords(self) -> bool:
        return bool(self.core_keywords or self.expanded_keywords)

    @property
    def has_due_filter(self) -> bool:
        return self.due_date is not None or self.due_date_range is not None

    @property
    def has_filters(self) -> bool:
        return bool(
            self.priority is not None
            or self.has_due_filter
            or self.status
            or self.folder
            or self.tags
        )


class Degradation(BaseModel):
    """User-visible description of a fallback path taken by the orchestrator."""

    kind: DegradationKind
    step: Literal["parsing", "analysis"]
    detail: str
    substitution: str
    remedy: Optional[str] = None
    model: Optional[str] = None

    def describe(self) -> str:
        parts = [self.detail, self.substitution]
        if self.remedy:
            parts.append(f"Suggestion: {self.remedy}")
        return " ".join(parts)


@dataclass(slots=True)
class ScoredTask:
    task: Task
    relevance: float
    due_date: float
    priority: float
    status: float
    final_score: float
    weighted_score: float


@dataclass(slots=True)
class QueryResult:
    ranked_tasks: List[Task]
    intent: Intent
    mode: SearchMode
    degradations: List[Degradation] = field(default_factory=list)
    analysis: Optional[str] = None
    display_indices: List[int] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    usage: List[TokenUsage] = field(default_factory=list)

    @property
    def degradation(self) -> Optional[Degradation]:
        return self.degradations[-1] if self.degradations else None


__all__ = [
    "SearchMode",
    "SortCriterion",
    "ParserPath",
    "DegradationKind",
    "PriorityFilter",
    "Task",
    "StatusCategoryConfig",
    "Coefficients",
    "DueDateRange",
    "TokenUsage",
    "ExpansionStats",
    "IntentDiagnostics",
    "Intent",
    "Degradation",
    "ScoredTask",
    "QueryResult",
]
