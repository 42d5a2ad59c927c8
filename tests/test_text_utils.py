from task_chat.text_utils import (
    correct_typos,
    deduplicate_overlapping,
    filter_stop_words,
    is_cjk,
    split_into_words,
)


def _no_element_contains_another(words):
    lowered = [word.lower() for word in words]
    for i, left in enumerate(lowered):
        for j, right in enumerate(lowered):
            if i != j and left in right:
                return False
    return True


def test_deduplicate_overlapping_keeps_longest_form_in_query_order():
    words = ["chat", "chatt", "ab", "abc", "Chat"]
    assert deduplicate_overlapping(words) == ["chatt", "abc"]


def test_deduplicate_overlapping_never_leaves_substrings():
    samples = [
        ["如何", "如", "何", "开发", "开发插件"],
        ["report", "reports", "port", "quarterly"],
        ["a", "A", "ab", "b"],
        ["Login", "log", "logging", "in"],
        [],
    ]
    for sample in samples:
        assert _no_element_contains_another(deduplicate_overlapping(sample))


def test_split_into_words_segments_cjk_runs_into_pairs():
    assert split_into_words("开发插件") == ["开发", "插件"]
    assert split_into_words("fix 开发插件 bug") == ["fix", "开发", "插件", "bug"]


def test_split_into_words_uses_cjk_stop_words_as_separators():
    assert split_into_words("我的开发任务") == ["开发"]


def test_split_into_words_keeps_odd_trailing_character():
    assert split_into_words("舒适椅") == ["舒适", "椅"]


def test_filter_stop_words_drops_single_latin_letters_and_stop_words():
    words = ["the", "a", "x", "report", "What", "椅", "budget"]
    assert filter_stop_words(words) == ["report", "椅", "budget"]


def test_filter_stop_words_accepts_user_words():
    assert filter_stop_words(["report", "quarterly"], ["Quarterly"]) == ["report"]


def test_correct_typos_reports_corrections():
    text, corrections = correct_typos("urgant taks for tommorow")
    assert text == "urgent task for tomorrow"
    assert corrections == ["urgant->urgent", "taks->task", "tommorow->tomorrow"]


def test_correct_typos_leaves_longer_words_alone():
    text, corrections = correct_typos("overdue items")
    assert text == "overdue items"
    assert corrections == []


def test_is_cjk():
    assert is_cjk("任务")
    assert is_cjk("mixed 中文")
    assert not is_cjk("plain")
