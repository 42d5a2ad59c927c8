"""Map ``[TASK_n]`` markers in analysis text back to tasks by position."""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from task_chat.logging_utils import LOGGER
from task_chat.models import Task

TASK_REFERENCE_RE = re.compile(r"\[TASK[_ ]?(\d+)\]", re.IGNORECASE)
_SPACED_REFERENCE_RE = re.compile(r"([ \t]*)" + TASK_REFERENCE_RE.pattern, re.IGNORECASE)


def task_marker(position: int) -> str:
    """Marker for the 0-based ``position`` in the list sent to the model."""

    return f"[TASK_{position + 1}]"


@dataclass(slots=True)
class ResolvedReferences:
    tasks: List[Task] = field(default_factory=list)
    display_indices: List[int] = field(default_factory=list)
    invalid_markers: List[int] = field(default_factory=list)

    @property
    def empty(self) -> bool:
        return not self.tasks


def resolve_references(
    analysis_text: str,
    task_list: Sequence[Task],
    limit: Optional[int] = None,
) -> ResolvedReferences:
    """Resolve markers by index only; two identical tasks stay distinct."""

    result = ResolvedReferences()
    for match in TASK_REFERENCE_RE.finditer(analysis_text or ""):
        number = int(match.group(1))
        position = number - 1
        if position < 0 or position >= len(task_list):
            if number not in result.invalid_markers:
                result.invalid_markers.append(number)
                LOGGER.info("Ignoring out-of-range reference [TASK_%s] (%s tasks sent)", number, len(task_list))
            continue
        if position in result.display_indices:
            continue
        if limit is not None and len(result.display_indices) >= limit:
            break
        result.display_indices.append(position)
        result.tasks.append(task_list[position])
    return result


def replace_references(analysis_text: str, display_indices: Sequence[int]) -> str:
    """Rewrite markers as ``**Task k**`` where k is the task's place in the displayed list.

    Markers that map to no displayed task are dropped together with the
    whitespace before them, so no gap is left ahead of punctuation.
    """

    order = {position: rank for rank, position in enumerate(display_indices, start=1)}

    def _replace(match: re.Match[str]) -> str:
        rank = order.get(int(match.group(2)) - 1)
        return f"{match.group(1)}**Task {rank}**" if rank is not None else ""

    rewritten = _SPACED_REFERENCE_RE.sub(_replace, analysis_text or "")
    return re.sub(r"[ \t]{2,}", " ", rewritten).strip()


__all__ = ["ResolvedReferences", "resolve_references", "replace_references", "task_marker"]
