from datetime import date
from pathlib import Path

from task_chat.config import SearchConfig
from task_chat.task_reader import parse_task_line, read_tasks


def _write_notes(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        "\n".join(
            [
                "# Project",
                "- [ ] Write report 📅 2025-01-20 ⏫ #work",
                "- [x] Done thing ✅ 2025-01-02",
                "- [/] Migrate DB [priority:: low] [due:: 2025-02-01] #ops/db",
                "* [?] Odd status",
                "Some text",
                "  - [ ] Nested task ➕ 2025-01-01",
            ]
        ),
        encoding="utf-8",
    )


def test_read_tasks_parses_checkboxes(tmp_path):
    _write_notes(tmp_path / "Projects" / "alpha.md")

    tasks = read_tasks(tmp_path)
    assert [task.text for task in tasks] == [
        "Write report",
        "Done thing",
        "Migrate DB",
        "Odd status",
        "Nested task",
    ]

    report = tasks[0]
    assert report.id == "Projects/alpha.md:2"
    assert report.folder == "Projects"
    assert report.due_date == date(2025, 1, 20)
    assert report.priority == 1
    assert report.tags == ["work"]
    assert report.status_category == "open"

    assert tasks[1].status_category == "completed"
    assert tasks[2].status_category == "inProgress"
    assert tasks[2].priority == 3
    assert tasks[2].due_date == date(2025, 2, 1)
    assert tasks[2].tags == ["ops/db"]
    assert tasks[3].status_category == "?"
    assert tasks[4].created_date == date(2025, 1, 1)


def test_read_tasks_uses_configured_symbols(tmp_path):
    _write_notes(tmp_path / "alpha.md")
    statuses = SearchConfig().status_categories
    custom = {**statuses, "question": statuses["open"].model_copy(update={"symbols": ["?"]})}

    tasks = read_tasks(tmp_path, custom)
    assert tasks[3].status_category == "question"


def test_read_tasks_missing_vault(tmp_path):
    assert read_tasks(tmp_path / "missing") == []


def test_parse_task_line_skips_metadata_only_lines():
    assert parse_task_line("📅 2025-01-20 #tag", symbol_map={" ": "open"}) is None
