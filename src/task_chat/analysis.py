"""Chat-mode analysis request: task context, prompt and the model call."""
from __future__ import annotations

from typing import List, Mapping, Optional, Sequence

from task_chat.errors import AnalysisFailure
from task_chat.llm_client import ChatMessage, Completion, LanguageModel
from task_chat.models import Intent, StatusCategoryConfig, Task
from task_chat.references import task_marker

ANALYSIS_SYSTEM_PROMPT = """You are a task assistant. The user asked a question about their tasks.
You receive the most relevant tasks, already ranked, each labelled [TASK_n].

Rules:
1. Recommend the tasks that best answer the question, most important first (at most {max_recommendations}).
2. Refer to every task ONLY by its label, e.g. [TASK_3]. Never copy task text instead of the label.
3. Only use labels from the list below; never invent new ones.
4. If none of the tasks fit, say so plainly without any label.
5. Answer in the language of the user's question. Be concise.
"""


def _status_label(category: str, statuses: Mapping[str, StatusCategoryConfig]) -> str:
    config = statuses.get(category)
    return config.display_name if config and config.display_name else category


def build_task_context(tasks: Sequence[Task], statuses: Mapping[str, StatusCategoryConfig]) -> str:
    """One labelled block per task, labels following list order (1-based)."""

    blocks: List[str] = []
    for position, task in enumerate(tasks):
        details = [f"Status: {_status_label(task.status_category, statuses)}"]
        if task.priority is not None:
            details.append(f"Priority: {task.priority}")
        if task.due_date is not None:
            details.append(f"Due: {task.due_date.isoformat()}")
        if task.created_date is not None:
            details.append(f"Created: {task.created_date.isoformat()}")
        if task.folder:
            details.append(f"Folder: {task.folder}")
        if task.tags:
            details.append("Tags: " + ", ".join(f"#{tag}" for tag in task.tags))
        blocks.append(f"{task_marker(position)} {task.text}\n  " + " | ".join(details))
    return "\n".join(blocks)


def build_analysis_messages(
    query: str,
    intent: Intent,
    context: str,
    max_recommendations: int,
) -> List[ChatMessage]:
    system_prompt = ANALYSIS_SYSTEM_PROMPT.format(max_recommendations=max_recommendations)
    keyword_line = ", ".join(intent.keywords) or "(none)"
    user_prompt = (
        f"Question: {query}\n"
        f"Search keywords: {keyword_line}\n\n"
        f"Tasks:\n{context}"
    )
    return [
        {"role": "system", "content": system_prompt},
        {"role": "user", "content": user_prompt},
    ]


async def request_analysis(
    query: str,
    intent: Intent,
    tasks: Sequence[Task],
    model: LanguageModel,
    *,
    statuses: Mapping[str, StatusCategoryConfig],
    max_recommendations: int,
) -> Completion:
    """Call the analysis model; any error it raises surfaces as AnalysisFailure."""

    model_identifier: Optional[str] = getattr(model, "model_identifier", None)
    messages = build_analysis_messages(query, intent, build_task_context(tasks, statuses), max_recommendations)
    try:
        completion = await model.analyze(messages)
    except Exception as exc:
        raise AnalysisFailure(f"Analysis call failed: {exc}", model_identifier) from exc
    if not completion.text or not completion.text.strip():
        raise AnalysisFailure("Analysis returned no text", completion.model or model_identifier)
    return completion


__all__ = ["build_task_context", "build_analysis_messages", "request_analysis"]
