from datetime import date

import pytest

from task_chat.config import SearchConfig
from task_chat.models import Task
from task_chat.pipeline import run_query

TODAY = date(2025, 1, 15)

TASKS = [
    Task(id="work.md:1", text="Write quarterly report", file_path="work.md", line_number=1, priority=2, due_date=date(2025, 1, 20)),
    Task(id="work.md:2", text="Fix urgent login bug", file_path="work.md", line_number=2, priority=1, due_date=date(2025, 1, 10)),
    Task(id="home.md:1", text="买一把舒适的椅子", file_path="home.md", line_number=1),
    Task(id="work.md:3", text="Review budget", file_path="work.md", line_number=3, priority=1, due_date=date(2025, 1, 12)),
    Task(id="home.md:2", text="布置舒服的卧室", file_path="home.md", line_number=2),
    Task(id="home.md:3", text="Find a cozy reading lamp", file_path="home.md", line_number=3),
    Task(id="home.md:4", text="Buy groceries", file_path="home.md", line_number=4),
]

COMFORT_EXPANSION = {
    "coreKeywords": ["舒适"],
    "keywords": ["舒适", "舒服", "安逸", "惬意", "舒坦", "comfortable", "comfort", "cozy", "cosy", "relaxing"],
    "priority": None,
    "dueDate": None,
    "status": None,
    "folder": None,
    "tags": [],
}


def _ids(tasks):
    return [task.id for task in tasks]


async def _run(query, mode, model=None, config=None):
    return await run_query(query, mode, TASKS, config=config or SearchConfig(), model=model, today=TODAY)


@pytest.mark.anyio
async def test_pure_filter_query_skips_ai_parsing(fake_model):
    model = fake_model(parse_reply={"coreKeywords": ["should-not-be-used"]})
    result = await _run("P1 overdue", "smart", model)

    assert model.parse_messages == []
    assert result.intent.parser == "deterministic"
    assert result.degradation is None
    assert _ids(result.ranked_tasks) == ["work.md:3", "work.md:2"]


@pytest.mark.anyio
async def test_simple_mode_caps_direct_results():
    result = await _run("P1 overdue", "simple", config=SearchConfig(max_direct_results=1))
    assert _ids(result.ranked_tasks) == ["work.md:3"]
    assert result.analysis is None


@pytest.mark.anyio
async def test_parser_timeout_falls_back_to_keywords(fake_model, _quiet_event_log):
    model = fake_model(parse_error=TimeoutError("request timed out"))
    result = await _run("urgent report", "smart", model)

    assert result.degradation is not None
    assert result.degradation.kind == "parser-fallback"
    assert result.degradation.model == "fake-model"
    assert result.intent.parser == "deterministic"
    assert result.intent.core_keywords == ["urgent", "report"]
    assert set(_ids(result.ranked_tasks)) == {"work.md:1", "work.md:2"}
    assert _quiet_event_log[-1]["degradations"] == ["parser-fallback"]


@pytest.mark.anyio
async def test_smart_mode_without_model_suggests_api_key():
    result = await _run("urgent report", "smart")
    assert result.degradation.kind == "parser-fallback"
    assert "OPENAI_API_KEY" in result.degradation.remedy
    assert result.ranked_tasks


@pytest.mark.anyio
async def test_smart_mode_uses_expanded_keywords(fake_model):
    model = fake_model(parse_reply=COMFORT_EXPANSION)
    result = await _run("舒适", "smart", model)

    assert result.intent.parser == "ai"
    assert len(result.intent.expanded_keywords) == 10
    assert result.intent.diagnostics.expansion.expected_total == 10
    assert _ids(result.ranked_tasks) == ["home.md:1", "home.md:2", "home.md:3"]


@pytest.mark.anyio
async def test_analysis_without_references_returns_semantic_ranking(fake_model):
    model = fake_model(parse_reply=COMFORT_EXPANSION, analysis_reply="None of these tasks really fit.")
    result = await _run("舒适", "chat", model)

    assert len(model.analysis_messages) == 1
    assert result.analysis is None
    assert result.degradation.kind == "analysis-fallback"
    assert "semantic" in result.degradation.substitution
    assert "none of the 3 tasks" in result.degradation.detail
    assert _ids(result.ranked_tasks) == ["home.md:1", "home.md:2", "home.md:3"]
    assert result.display_indices == [0, 1, 2]


@pytest.mark.anyio
async def test_chat_resolves_references_in_mention_order(fake_model):
    model = fake_model(
        parse_reply={
            "coreKeywords": ["report", "budget"],
            "keywords": ["report", "budget"],
            "priority": None,
            "dueDate": None,
            "status": None,
            "folder": None,
            "tags": [],
        },
        analysis_reply="Start with [TASK_2], then [TASK_1].",
    )
    result = await _run("report budget", "chat", model)

    context = model.analysis_messages[0][1]["content"]
    assert "[TASK_1] Review budget" in context
    assert "[TASK_2] Write quarterly report" in context
    assert result.degradation is None
    assert _ids(result.ranked_tasks) == ["work.md:1", "work.md:3"]
    assert result.display_indices == [1, 0]
    assert result.analysis == "Start with **Task 1**, then **Task 2**."
    assert len(result.usage) == 2


@pytest.mark.anyio
async def test_both_ai_steps_failing_reports_both(fake_model):
    model = fake_model(parse_error=TimeoutError("slow"), analysis_error=ConnectionError("offline"))
    result = await _run("urgent report", "chat", model)

    assert [item.kind for item in result.degradations] == ["parser-fallback", "analysis-fallback"]
    assert result.degradation.kind == "analysis-fallback"
    assert "simple" in result.degradation.substitution
    assert set(_ids(result.ranked_tasks)) == {"work.md:1", "work.md:2"}


@pytest.mark.anyio
async def test_chat_without_candidates_makes_no_analysis_call(fake_model):
    model = fake_model(
        parse_reply={
            "coreKeywords": ["nonexistentword"],
            "keywords": ["nonexistentword"],
            "priority": None,
            "dueDate": None,
            "status": None,
            "folder": None,
            "tags": [],
        },
        analysis_reply="[TASK_1]",
    )
    result = await _run("nonexistentword", "chat", model)

    assert model.analysis_messages == []
    assert result.ranked_tasks == []
    assert result.degradations == []


@pytest.mark.anyio
async def test_unexpected_parser_error_degrades(fake_model):
    model = fake_model(parse_error=RuntimeError("provider blew up"))
    result = await _run("urgent report", "smart", model)

    assert result.degradation.kind == "parser-fallback"
    assert "provider blew up" in result.degradation.detail
    assert set(_ids(result.ranked_tasks)) == {"work.md:1", "work.md:2"}


@pytest.mark.anyio
async def test_unexpected_analysis_error_degrades(fake_model):
    model = fake_model(parse_reply=COMFORT_EXPANSION, analysis_error=ValueError("bad"))
    result = await _run("舒适", "chat", model)

    assert result.intent.parser == "ai"
    assert result.degradation.kind == "analysis-fallback"
    assert "semantic" in result.degradation.substitution
    assert _ids(result.ranked_tasks) == ["home.md:1", "home.md:2", "home.md:3"]


@pytest.mark.anyio
async def test_null_list_fields_keep_semantic_parse(fake_model):
    reply = dict(COMFORT_EXPANSION, tags=None, folder=None)
    result = await _run("舒适", "smart", fake_model(parse_reply=reply))

    assert result.intent.parser == "ai"
    assert result.degradation is None
    assert len(result.intent.expanded_keywords) == 10
