import json
from datetime import date

import pytest

from task_chat import cli
from task_chat.config import SearchConfig, Settings
from task_chat.models import Degradation, Intent, QueryResult, Task
from task_chat.result_renderer import render_json, render_result


def _result(**fields) -> QueryResult:
    task = Task(id="work.md:1", text="Write report", file_path="work.md", line_number=1, priority=1, due_date=date(2025, 1, 20), tags=["work"])
    values = {"ranked_tasks": [task], "intent": Intent(core_keywords=["report"]), "mode": "simple"}
    values.update(fields)
    return QueryResult(**values)


def test_render_result_lists_tasks_with_details():
    text = render_result(_result(), SearchConfig().status_categories)
    assert "Tasks:" in text
    assert "1. Write report (status: Open, priority: 1, due: 2025-01-20, #work) [work.md:1]" in text


def test_render_result_shows_degradation_notes():
    degradation = Degradation(
        kind="parser-fallback",
        step="parsing",
        detail="AI query parsing failed: timeout.",
        substitution="Used simple keyword parsing instead (report).",
        remedy="Check the network.",
    )
    text = render_result(_result(mode="smart", degradations=[degradation]))
    assert "Notes:" in text
    assert "[parsing] AI query parsing failed: timeout." in text
    assert "Suggestion: Check the network." in text


def test_render_result_without_tasks():
    assert "No matching tasks." in render_result(_result(ranked_tasks=[]))


def test_render_json_is_serialisable():
    payload = json.loads(render_json(_result(analysis="Do **Task 1**.", mode="chat", display_indices=[0])))
    assert payload["ranked_tasks"][0]["due_date"] == "2025-01-20"
    assert payload["analysis"] == "Do **Task 1**."
    assert payload["degradation"] is None


@pytest.mark.anyio
async def test_run_cli_reads_vault(monkeypatch, tmp_path):
    (tmp_path / "work.md").write_text("- [ ] Write report ⏫\n- [ ] Buy milk\n", encoding="utf-8")
    settings = Settings(_env_file=None, OBSIDIAN_VAULT_DIR=str(tmp_path))
    monkeypatch.setattr(cli, "get_settings", lambda: settings)

    output = await cli.run_cli("report", today=date(2025, 1, 15))
    assert "1. Write report" in output
    assert "Buy milk" not in output
