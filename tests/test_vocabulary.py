from task_chat.config import SearchConfig, UserPropertyTerms
from task_chat.models import StatusCategoryConfig
from task_chat.vocabulary import PropertyVocabulary


def _vocabulary(**overrides) -> PropertyVocabulary:
    return PropertyVocabulary.from_config(SearchConfig(**overrides))


def test_resolve_status_accepts_keys_symbols_names_and_synonyms():
    vocabulary = _vocabulary()
    assert vocabulary.resolve_status("open") == "open"
    assert vocabulary.resolve_status("x") == "completed"
    assert vocabulary.resolve_status("In progress") == "inProgress"
    assert vocabulary.resolve_status("in-progress") == "inProgress"
    assert vocabulary.resolve_status("进行中") == "inProgress"
    assert vocabulary.resolve_status("klar") == "completed"
    assert vocabulary.resolve_status("bogus") is None


def test_canonical_due_term_maps_any_language_to_english_tokens():
    vocabulary = _vocabulary()
    assert vocabulary.canonical_due_term("明天") == "tomorrow"
    assert vocabulary.canonical_due_term("this week") == "week"
    assert vocabulary.canonical_due_term("下周") == "next-week"
    assert vocabulary.canonical_due_term("逾期") == "overdue"
    assert vocabulary.canonical_due_term("+3d") == "+3d"
    assert vocabulary.canonical_due_term("2025-01-05") == "2025-01-05"
    assert vocabulary.canonical_due_term("deadline") == "any"
    assert vocabulary.canonical_due_term("someday") is None


def test_find_all_prefers_longest_phrase():
    matches = _vocabulary().find_all("high priority bug")
    assert [(m.kind, m.value, m.term) for m in matches] == [("priority", 1, "high priority")]


def test_find_all_returns_matches_in_query_order():
    matches = _vocabulary().find_all("overdue and urgent")
    assert [m.term for m in matches] == ["overdue", "urgent"]
    assert matches[1].is_general


def test_latin_terms_need_word_boundaries():
    vocabulary = _vocabulary()
    assert vocabulary.match_priority("highlight the lowlights") == []
    assert vocabulary.match_due_date("translate the document") == []


def test_cjk_terms_match_inside_longer_text():
    vocabulary = _vocabulary()
    assert vocabulary.match_status("进行中的任务") == ["inProgress"]
    assert vocabulary.match_due_date("明天要做的事") == ["tomorrow"]


def test_custom_status_categories_replace_defaults():
    config = SearchConfig(
        status_categories={
            "important": StatusCategoryConfig(symbols=["!"], score=0.9, display_name="Important"),
        }
    )
    vocabulary = PropertyVocabulary.from_config(config)
    assert vocabulary.status_keys == ["important"]
    assert vocabulary.resolve_status("!") == "important"
    assert vocabulary.resolve_status("open") is None


def test_user_terms_become_general_terms():
    vocabulary = _vocabulary(user_terms=UserPropertyTerms(priority=["wichtig"]))
    assert "wichtig" in vocabulary.general_terms("priority")
    assert "wichtig" not in vocabulary.all_trigger_terms()


def test_render_prompt_lists_every_status_key():
    prompt = _vocabulary().render_prompt()
    for key in ("open", "inProgress", "completed", "cancelled"):
        assert f'"{key}"' in prompt
    assert '"overdue"' in prompt
