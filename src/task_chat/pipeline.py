"""High-level query pipeline: raw query -> intent -> ranked tasks (-> analysis)."""
from __future__ import annotations

from datetime import date
from typing import List, Optional, Sequence, Tuple

from task_chat.ai_parser import parse_with_ai
from task_chat.analysis import request_analysis
from task_chat.config import SearchConfig, get_settings
from task_chat.errors import AnalysisFailure, AnalysisNoReference, ParserFailure
from task_chat.llm_client import LanguageModel
from task_chat.logging_utils import LOGGER, log_event
from task_chat.models import Degradation, Intent, QueryResult, SearchMode, Task, TokenUsage
from task_chat.query_parser import parse_deterministic
from task_chat.ranking import normalize_criteria, rank
from task_chat.references import replace_references, resolve_references
from task_chat.scoring import ActiveComponents, apply_quality_filter, filter_tasks, quality_threshold, score_tasks
from task_chat.time_utils import get_timezone, get_today
from task_chat.vocabulary import PropertyVocabulary

NO_MODEL_MESSAGE = "No language model is configured"


def _parser_degradation(exc: ParserFailure, fallback: Intent) -> Degradation:
    keywords = ", ".join(fallback.core_keywords) or "no keywords"
    if exc.message == NO_MODEL_MESSAGE:
        remedy = "Set OPENAI_API_KEY (and optionally MODEL_NAME) to enable AI query parsing."
    else:
        remedy = "Check the parsing model, API key and network connection, then run the query again."
    return Degradation(
        kind="parser-fallback",
        step="parsing",
        detail=f"AI query parsing failed: {exc.message}.",
        substitution=f"Used simple keyword parsing instead ({keywords}).",
        remedy=remedy,
        model=exc.model_identifier,
    )


def _analysis_degradation(exc: AnalysisFailure, *, semantic: bool, shown: int, sent: int) -> Degradation:
    if isinstance(exc, AnalysisNoReference):
        detail = f"AI analysis referenced none of the {sent} tasks it was given."
        remedy = "Rephrase the question or try a model that follows the [TASK_n] reference format."
    else:
        detail = f"AI analysis failed: {exc.message}."
        remedy = (
            "Set OPENAI_API_KEY to enable chat analysis."
            if exc.message == NO_MODEL_MESSAGE
            else "Check the analysis model and network connection, then ask again."
        )
    if semantic:
        substitution = f"Showing the top {shown} tasks from the semantic ranking (AI-expanded keywords) instead."
    else:
        substitution = f"Showing the top {shown} tasks from the simple ranking (deterministic parsing) instead."
    return Degradation(
        kind="analysis-fallback",
        step="analysis",
        detail=detail,
        substitution=substitution,
        remedy=remedy,
        model=exc.model_identifier,
    )


async def _parse_intent(
    raw_query: str,
    mode: SearchMode,
    *,
    config: SearchConfig,
    vocabulary: PropertyVocabulary,
    model: Optional[LanguageModel],
    today: date,
) -> Tuple[Intent, Optional[Degradation]]:
    baseline = parse_deterministic(raw_query, config, today, vocabulary)
    if mode == "simple":
        return baseline, None
    if not baseline.has_keywords:
        LOGGER.info("Query has no free-text keywords; skipping AI parsing")
        return baseline, None
    try:
        if model is None:
            raise ParserFailure(NO_MODEL_MESSAGE)
        intent = await parse_with_ai(raw_query, vocabulary, config, model, today, baseline=baseline)
    except ParserFailure as exc:
        LOGGER.warning("AI parsing failed, falling back to deterministic parser: %s", exc.message)
        return baseline, _parser_degradation(exc, baseline)
    return intent, None


def _rank_candidates(
    tasks: Sequence[Task],
    intent: Intent,
    mode: SearchMode,
    *,
    config: SearchConfig,
    today: date,
    warnings: List[str],
) -> List[Task]:
    criteria = normalize_criteria(config.criteria_for(mode))
    coefficients = config.coefficients
    candidates = filter_tasks(tasks, intent, today)
    scored = score_tasks(candidates, intent, coefficients, criteria, config=config, today=today, warnings=warnings)
    active = ActiveComponents.resolve(intent, coefficients, criteria)
    if active.relevance and intent.has_keywords:
        threshold = quality_threshold(active, coefficients, config.quality_filter_percentage)
        before = len(scored)
        scored = apply_quality_filter(scored, threshold, config.quality_filter_min_results)
        LOGGER.info(
            "Quality filter %s -> %s tasks (threshold %.2f, components %s)",
            before,
            len(scored),
            threshold,
            ",".join(active.names()),
        )
    return rank(scored, criteria)


async def run_query(
    raw_query: str,
    mode: SearchMode,
    tasks: Sequence[Task],
    *,
    config: Optional[SearchConfig] = None,
    model: Optional[LanguageModel] = None,
    today: Optional[date] = None,
) -> QueryResult:
    """Run one query through the mode state machine; AI failures degrade, never raise."""

    if config is None or today is None:
        settings = get_settings()
        config = config or settings.search
        today = today or get_today(get_timezone(settings.timezone))
    vocabulary = PropertyVocabulary.from_config(config)

    intent, parser_degradation = await _parse_intent(
        raw_query, mode, config=config, vocabulary=vocabulary, model=model, today=today
    )
    degradations: List[Degradation] = [parser_degradation] if parser_degradation else []
    usage: List[TokenUsage] = [intent.usage] if intent.usage else []
    warnings: List[str] = []

    ranked = _rank_candidates(tasks, intent, mode, config=config, today=today, warnings=warnings)
    result = QueryResult(
        ranked_tasks=ranked[: config.max_direct_results],
        intent=intent,
        mode=mode,
        degradations=degradations,
        warnings=warnings,
        usage=usage,
    )

    if mode == "chat" and ranked:
        await _analyze(raw_query, result, ranked, config=config, model=model)

    log_event(
        {
            "query": raw_query,
            "mode": mode,
            "parser": intent.parser,
            "core_keywords": intent.core_keywords,
            "keyword_count": len(intent.keywords),
            "candidate_count": len(tasks),
            "result_count": len(result.ranked_tasks),
            "degradations": [item.kind for item in result.degradations],
            "warnings": result.warnings,
        }
    )
    return result


async def _analyze(
    raw_query: str,
    result: QueryResult,
    ranked: Sequence[Task],
    *,
    config: SearchConfig,
    model: Optional[LanguageModel],
) -> None:
    context_tasks = list(ranked[: config.max_tasks_for_ai])
    try:
        if model is None:
            raise AnalysisFailure(NO_MODEL_MESSAGE)
        completion = await request_analysis(
            raw_query,
            result.intent,
            context_tasks,
            model,
            statuses=config.status_categories,
            max_recommendations=config.max_recommendations,
        )
        if completion.usage:
            result.usage.append(completion.usage)
        resolved = resolve_references(completion.text, context_tasks, limit=config.max_recommendations)
        if resolved.empty:
            raise AnalysisNoReference("No valid task references in analysis", completion.model)
    except AnalysisFailure as exc:
        fallback = list(ranked[: config.max_recommendations])
        LOGGER.warning("AI analysis unusable, returning ranked list: %s", exc.message)
        result.degradations.append(
            _analysis_degradation(
                exc,
                semantic=result.intent.parser == "ai",
                shown=len(fallback),
                sent=len(context_tasks),
            )
        )
        result.ranked_tasks = fallback
        result.display_indices = list(range(len(fallback)))
        return

    result.ranked_tasks = resolved.tasks
    result.display_indices = resolved.display_indices
    result.analysis = replace_references(completion.text, resolved.display_indices)


__all__ = ["run_query", "NO_MODEL_MESSAGE"]
