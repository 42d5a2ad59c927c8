"""Utilities for turning query results into Markdown or JSON."""
from __future__ import annotations

import json
from typing import Any, Dict, Mapping, Optional

from task_chat.models import QueryResult, StatusCategoryConfig, Task


def _render_task_line(number: int, task: Task, statuses: Mapping[str, StatusCategoryConfig]) -> str:
    status = statuses.get(task.status_category)
    details = [f"status: {status.display_name if status and status.display_name else task.status_category}"]
    if task.priority is not None:
        details.append(f"priority: {task.priority}")
    if task.due_date is not None:
        details.append(f"due: {task.due_date.isoformat()}")
    if task.tags:
        details.append(" ".join(f"#{tag}" for tag in task.tags))
    location = f"{task.file_path}:{task.line_number}" if task.file_path else task.id
    return f"{number}. {task.text} ({', '.join(details)}) [{location}]"


def render_result(result: QueryResult, statuses: Optional[Mapping[str, StatusCategoryConfig]] = None) -> str:
    """Render a query result into Obsidian-friendly Markdown."""

    statuses = statuses or {}
    lines = []
    if result.analysis:
        lines.extend([result.analysis, ""])

    if result.ranked_tasks:
        heading = "Recommended tasks" if result.mode == "chat" and result.analysis else "Tasks"
        lines.append(f"{heading}:")
        for number, task in enumerate(result.ranked_tasks, start=1):
            lines.append(_render_task_line(number, task, statuses))
    else:
        lines.append("No matching tasks.")

    if result.degradations:
        lines.extend(["", "Notes:"])
        for number, item in enumerate(result.degradations, start=1):
            lines.append(f"{number}. [{item.step}] {item.describe()}")
    for warning in result.warnings:
        lines.append(f"- Warning: {warning}")
    return "\n".join(lines) + "\n"


def result_to_dict(result: QueryResult) -> Dict[str, Any]:
    degradation = result.degradation
    return {
        "mode": result.mode,
        "intent": result.intent.model_dump(mode="json"),
        "ranked_tasks": [task.model_dump(mode="json") for task in result.ranked_tasks],
        "display_indices": list(result.display_indices),
        "analysis": result.analysis,
        "degradation": degradation.model_dump(mode="json") if degradation else None,
        "degradations": [item.model_dump(mode="json") for item in result.degradations],
        "warnings": list(result.warnings),
        "usage": [item.model_dump(mode="json") for item in result.usage],
    }


def render_json(result: QueryResult) -> str:
    return json.dumps(result_to_dict(result), ensure_ascii=False, indent=2)


__all__ = ["render_result", "render_json", "result_to_dict"]
