from task_chat.models import Task
from task_chat.references import replace_references, resolve_references, task_marker


def _tasks(count: int):
    tasks = [Task(id=f"inbox.md:{i}", text=f"Task number {i}") for i in range(count)]
    if count > 6:
        # Same text at the third and seventh positions.
        tasks[2] = Task(id="inbox.md:dup-a", text="Call the plumber")
        tasks[6] = Task(id="inbox.md:dup-b", text="Call the plumber")
    return tasks


def test_identical_tasks_resolve_by_position():
    tasks = _tasks(8)
    resolved = resolve_references("Do [TASK_7] first.", tasks)
    assert resolved.display_indices == [6]
    assert resolved.tasks[0].id == "inbox.md:dup-b"

    resolved = resolve_references("Then [TASK_3].", tasks)
    assert resolved.tasks[0].id == "inbox.md:dup-a"


def test_first_mention_order_and_duplicates():
    tasks = _tasks(8)
    resolved = resolve_references("[TASK_5] then [task 2], again [TASK_5] and [TASK2]", tasks)
    assert resolved.display_indices == [4, 1]


def test_out_of_range_markers_are_ignored():
    tasks = _tasks(3)
    resolved = resolve_references("[TASK_0] [TASK_99] [TASK_1]", tasks)
    assert resolved.display_indices == [0]
    assert resolved.invalid_markers == [0, 99]


def test_no_markers_gives_empty_result():
    resolved = resolve_references("Nothing relevant here.", _tasks(3))
    assert resolved.empty


def test_limit_caps_resolved_tasks():
    resolved = resolve_references("[TASK_1] [TASK_2] [TASK_3]", _tasks(3), limit=2)
    assert resolved.display_indices == [0, 1]


def test_replace_references_uses_display_order():
    text = "Start with [TASK_2], then [TASK_1]. Skip [TASK_9]."
    assert replace_references(text, [1, 0]) == "Start with **Task 1**, then **Task 2**. Skip."


def test_task_marker_is_one_based():
    assert task_marker(0) == "[TASK_1]"


def test_unmapped_marker_leaves_no_gap():
    assert replace_references("Do [TASK_4] now, or [TASK_1].", [0]) == "Do now, or **Task 1**."
