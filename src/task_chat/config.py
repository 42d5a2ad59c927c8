"""Application configuration and settings management."""
from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from task_chat.models import Coefficients, SearchMode, SortCriterion, StatusCategoryConfig


def _default_status_categories() -> Dict[str, StatusCategoryConfig]:
    return {
        "open": StatusCategoryConfig(
            symbols=[" ", ""],
            score=1.0,
            display_name="Open",
            display_priority=1,
            terms=[
                "pending", "todo", "incomplete", "unstarted",
                "未完成", "待办", "待处理", "新建",
                "öppen", "väntande", "att göra",
            ],
        ),
        "inProgress": StatusCategoryConfig(
            symbols=["/", "~"],
            score=0.75,
            display_name="In progress",
            display_priority=2,
            terms=[
                "in progress", "working", "ongoing", "doing",
                "进行中", "正在做", "处理中",
                "pågående", "arbetar på",
            ],
        ),
        "completed": StatusCategoryConfig(
            symbols=["x", "X"],
            score=0.2,
            display_name="Completed",
            display_priority=5,
            terms=[
                "done", "finished", "closed", "resolved",
                "已完成", "完成", "已结束",
                "klar", "färdig", "slutförd",
            ],
        ),
        "cancelled": StatusCategoryConfig(
            symbols=["-"],
            score=0.1,
            display_name="Cancelled",
            display_priority=6,
            terms=[
                "canceled", "abandoned", "dropped",
                "已取消", "取消", "放弃",
                "avbruten", "inställd",
            ],
        ),
    }


def _default_sort_criteria() -> Dict[str, List[SortCriterion]]:
    return {
        "simple": ["relevance", "dueDate", "priority"],
        "smart": ["relevance", "dueDate", "priority"],
        "chat": ["relevance", "dueDate", "priority"],
    }


class UrgencyCurve(BaseModel):
    """Due-date urgency scores; empirical defaults, tune per vault."""

    model_config = ConfigDict(frozen=True)

    none_score: float = Field(0.1, ge=0.0, le=1.0)
    overdue_base: float = Field(1.0, ge=0.0, le=1.0)
    overdue_decay_days: float = Field(30.0, gt=0.0)
    overdue_floor: float = Field(0.5, ge=0.0, le=1.0)
    today_score: float = Field(1.0, ge=0.0, le=1.0)
    within_week_score: float = Field(0.8, ge=0.0, le=1.0)
    within_month_score: float = Field(0.5, ge=0.0, le=1.0)
    later_score: float = Field(0.2, ge=0.0, le=1.0)


class PriorityScores(BaseModel):
    model_config = ConfigDict(frozen=True)

    p1: float = Field(0.9, ge=0.0, le=1.0)
    p2: float = Field(0.7, ge=0.0, le=1.0)
    p3: float = Field(0.5, ge=0.0, le=1.0)
    p4: float = Field(0.3, ge=0.0, le=1.0)
    none: float = Field(0.0, ge=0.0, le=1.0)

    def for_level(self, level: Optional[int]) -> float:
        return {1: self.p1, 2: self.p2, 3: self.p3, 4: self.p4}.get(level or 0, self.none)


class UserPropertyTerms(BaseModel):
    """Extra trigger words the user wants recognised as general property terms."""

    model_config = ConfigDict(frozen=True)

    priority: List[str] = Field(default_factory=list)
    due_date: List[str] = Field(default_factory=list)
    status: List[str] = Field(default_factory=list)


class SearchConfig(BaseModel):
    """Read-only per-request snapshot of everything the query engine needs."""

    model_config = ConfigDict(frozen=True)

    coefficients: Coefficients = Field(default_factory=Coefficients)
    relevance_core_weight: float = Field(0.2, ge=0.0)
    quality_filter_percentage: float = Field(0.3, ge=0.0, le=1.0)
    quality_filter_min_results: int = Field(5, ge=0)
    status_categories: Dict[str, StatusCategoryConfig] = Field(default_factory=_default_status_categories)
    languages: List[str] = Field(default_factory=lambda: ["English", "中文"])
    expansions_per_language: int = Field(5, ge=1, le=100)
    semantic_expansion: bool = True
    sort_criteria: Dict[str, List[SortCriterion]] = Field(default_factory=_default_sort_criteria)
    max_direct_results: int = Field(50, ge=1)
    max_tasks_for_ai: int = Field(30, ge=1)
    max_recommendations: int = Field(20, ge=1)
    urgency: UrgencyCurve = Field(default_factory=UrgencyCurve)
    priority_scores: PriorityScores = Field(default_factory=PriorityScores)
    user_terms: UserPropertyTerms = Field(default_factory=UserPropertyTerms)
    stop_words: List[str] = Field(default_factory=list)

    @field_validator("languages")
    @classmethod
    def _languages_not_empty(cls, value: List[str]) -> List[str]:
        cleaned = [item.strip() for item in value if item and item.strip()]
        return cleaned or ["English"]

    def criteria_for(self, mode: SearchMode) -> List[SortCriterion]:
        return list(self.sort_criteria.get(mode) or ["relevance"])

    @property
    def expansions_per_keyword(self) -> int:
        if not self.semantic_expansion:
            return len(self.languages)
        return self.expansions_per_language * len(self.languages)


class Settings(BaseSettings):
    """Project-level settings loaded from environment variables/.env."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
        populate_by_name=True,
    )

    openai_api_key: Optional[SecretStr] = Field(None, alias="OPENAI_API_KEY")
    openai_base_url: str = Field("https://api.openai.com/v1", alias="OPENAI_BASE_URL")
    model_name: str = Field("gpt-4o-mini", alias="MODEL_NAME")
    analysis_model_name: Optional[str] = Field(None, alias="ANALYSIS_MODEL_NAME")
    llm_timeout_seconds: float = Field(60.0, alias="LLM_TIMEOUT_SECONDS")
    structured_output: bool = Field(True, alias="STRUCTURED_OUTPUT")

    obsidian_vault_dir: Optional[Path] = Field(None, alias="OBSIDIAN_VAULT_DIR")
    timezone: str = Field("UTC", alias="TIMEZONE")
    log_dir: Path = Field(Path("logs"), alias="LOG_DIR")

    search: SearchConfig = Field(default_factory=SearchConfig, alias="SEARCH")

    @property
    def has_llm(self) -> bool:
        return self.openai_api_key is not None and bool(self.openai_api_key.get_secret_value())


_SETTINGS: Optional[Settings] = None


def get_settings() -> Settings:
    """Return cached settings instance."""

    global _SETTINGS
    if _SETTINGS is None:
        _SETTINGS = Settings()
    return _SETTINGS


__all__ = [
    "Settings",
    "SearchConfig",
    "UrgencyCurve",
    "PriorityScores",
    "UserPropertyTerms",
    "get_settings",
]
