"""Utilities for reading checkbox tasks from the Obsidian vault."""
from __future__ import annotations

import re
from datetime import date
from pathlib import Path
from typing import Dict, List, Mapping, Optional

from task_chat.config import SearchConfig
from task_chat.models import StatusCategoryConfig, Task

CHECKBOX_RE = re.compile(r"^\s*(?:[-*+]|\d+[.)])\s+\[(.)\]\s+(.*)$")
TAG_RE = re.compile(r"(?<![\w#&])#([^\s#\d][^\s#]*)")
DATAVIEW_RE = re.compile(r"[\[(]\s*(\w+)\s*::\s*([^\])]*)[\])]")
EMOJI_DATE_RE = re.compile(r"(📅|➕|✅|⏳|🛫|❌)\ufe0f?\s*(\d{4}-\d{2}-\d{2})")
EMOJI_PRIORITY = {"🔺": 1, "⏫": 1, "🔼": 2, "🔽": 3, "⏬": 4}
WORD_PRIORITY = {"highest": 1, "high": 1, "medium": 2, "normal": 2, "low": 3, "lowest": 4}


def read_tasks(
    vault_dir: Path,
    statuses: Optional[Mapping[str, StatusCategoryConfig]] = None,
) -> List[Task]:
    """Scan the vault and return every checkbox task found in markdown files."""

    tasks: List[Task] = []
    if not vault_dir.exists():
        return tasks
    symbol_map = _symbol_map(statuses if statuses is not None else SearchConfig().status_categories)
    for path in sorted(vault_dir.rglob("*.md")):
        tasks.extend(_parse_task_file(path, vault_dir, symbol_map))
    return tasks


def _symbol_map(statuses: Mapping[str, StatusCategoryConfig]) -> Dict[str, str]:
    mapping: Dict[str, str] = {}
    for key, config in statuses.items():
        for symbol in config.symbols:
            mapping.setdefault(symbol, key)
    return mapping


def _parse_task_file(path: Path, root: Path, symbol_map: Mapping[str, str]) -> List[Task]:
    try:
        content = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError):
        return []

    relative = path.relative_to(root).as_posix()
    tasks: List[Task] = []
    for line_number, line in enumerate(content.splitlines(), start=1):
        match = CHECKBOX_RE.match(line)
        if not match:
            continue
        task = parse_task_line(
            match.group(2),
            symbol=match.group(1),
            symbol_map=symbol_map,
            file_path=relative,
            line_number=line_number,
        )
        if task is not None:
            tasks.append(task)
    return tasks


def _parse_date(value: str) -> Optional[date]:
    try:
        return date.fromisoformat(value.strip()[:10])
    except ValueError:
        return None


def _parse_priority(value: str) -> Optional[int]:
    lowered = value.strip().lower()
    if lowered.isdigit() and 1 <= int(lowered) <= 4:
        return int(lowered)
    return WORD_PRIORITY.get(lowered)


def parse_task_line(
    body: str,
    *,
    symbol: str = " ",
    symbol_map: Mapping[str, str],
    file_path: str = "",
    line_number: int = 0,
) -> Optional[Task]:
    """Build a Task from the text after ``- [c]``; inline metadata is stripped from text."""

    priority: Optional[int] = None
    due: Optional[date] = None
    created: Optional[date] = None

    for found in DATAVIEW_RE.finditer(body):
        field, value = found.group(1).lower(), found.group(2)
        if field == "priority":
            priority = _parse_priority(value) or priority
        elif field == "due":
            due = _parse_date(value) or due
        elif field == "created":
            created = _parse_date(value) or created
    text = DATAVIEW_RE.sub(" ", body)

    for found in EMOJI_DATE_RE.finditer(text):
        if found.group(1) == "📅":
            due = _parse_date(found.group(2)) or due
        elif found.group(1) == "➕":
            created = _parse_date(found.group(2)) or created
    text = EMOJI_DATE_RE.sub(" ", text)

    for emoji, level in EMOJI_PRIORITY.items():
        if emoji in text:
            priority = priority or level
            text = text.replace(emoji, " ")

    tags = [tag.rstrip(".,;:") for tag in TAG_RE.findall(text)]
    text = TAG_RE.sub(" ", text)
    text = re.sub(r"\s+", " ", text).strip()
    if not text:
        return None

    return Task(
        id=f"{file_path}:{line_number}",
        text=text,
        file_path=file_path,
        line_number=line_number,
        priority=priority,
        due_date=due,
        created_date=created,
        status_category=symbol_map.get(symbol, symbol),
        status_symbol=symbol,
        tags=tags,
    )


__all__ = ["read_tasks", "parse_task_line"]
