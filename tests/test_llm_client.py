from types import SimpleNamespace

import pytest

from task_chat.config import Settings
from task_chat.errors import LLMCallError
from task_chat.llm_client import OpenAIChatModel, default_language_model, extract_json_text


def test_extract_json_text_handles_prefix_suffix():
    data = ".\n{\n  \"a\": 1\n}\nextra"
    assert extract_json_text(data) == '{\n  "a": 1\n}'


def test_extract_json_text_handles_nested_start():
    data = ".{\n{\"date\": \"2024-01-01\"}"
    assert extract_json_text(data) == '{"date": "2024-01-01"}'


def test_extract_json_text_returns_original_when_no_braces():
    data = "oops"
    assert extract_json_text(data) == "oops"


def test_extract_json_text_strips_reasoning_and_fences():
    data = "<think>maybe {\"wrong\": true}</think>\n```json\n{\"coreKeywords\": [\"a}b\"]}\n```"
    assert extract_json_text(data) == '{"coreKeywords": ["a}b"]}'


class _FakeCompletions:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return self.response


def _client(response=None, error=None):
    completions = _FakeCompletions(response, error)
    return SimpleNamespace(chat=SimpleNamespace(completions=completions)), completions


def _response(content, model="parse-model"):
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content))],
        usage=SimpleNamespace(prompt_tokens=12, completion_tokens=3),
        model=model,
    )


def _settings(**overrides):
    values = {
        "OPENAI_API_KEY": "sk-test",
        "MODEL_NAME": "parse-model",
        "ANALYSIS_MODEL_NAME": "analysis-model",
        "LLM_TIMEOUT_SECONDS": 5,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.mark.anyio
async def test_parse_query_requests_structured_output():
    client, completions = _client(_response('{"coreKeywords": []}'))
    model = OpenAIChatModel(_settings(), client=client)

    completion = await model.parse_query([{"role": "user", "content": "hi"}], {"type": "object"})

    assert completion.text == '{"coreKeywords": []}'
    assert completion.usage.total_tokens == 15
    call = completions.calls[0]
    assert call["model"] == "parse-model"
    assert call["temperature"] == 0
    assert call["timeout"] == 5
    assert call["response_format"]["type"] == "json_schema"
    assert call["response_format"]["json_schema"]["schema"] == {"type": "object"}


@pytest.mark.anyio
async def test_parse_query_without_structured_output():
    client, completions = _client(_response("{}"))
    model = OpenAIChatModel(_settings(STRUCTURED_OUTPUT=False), client=client)
    await model.parse_query([{"role": "user", "content": "hi"}], {"type": "object"})
    assert "response_format" not in completions.calls[0]


@pytest.mark.anyio
async def test_analyze_uses_analysis_model():
    client, completions = _client(_response("Try [TASK_1].", model="analysis-model"))
    model = OpenAIChatModel(_settings(), client=client)
    completion = await model.analyze([{"role": "user", "content": "hi"}])
    assert completions.calls[0]["model"] == "analysis-model"
    assert completion.model == "analysis-model"


@pytest.mark.anyio
async def test_transport_errors_become_llm_call_errors():
    client, _ = _client(error=ConnectionError("boom"))
    model = OpenAIChatModel(_settings(), client=client)
    with pytest.raises(LLMCallError) as excinfo:
        await model.analyze([{"role": "user", "content": "hi"}])
    assert excinfo.value.model_identifier == "analysis-model"


@pytest.mark.anyio
async def test_empty_content_is_an_error():
    client, _ = _client(_response(""))
    model = OpenAIChatModel(_settings(), client=client)
    with pytest.raises(LLMCallError):
        await model.parse_query([{"role": "user", "content": "hi"}])


def test_default_language_model_requires_api_key(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    assert default_language_model(Settings(_env_file=None)) is None
    assert default_language_model(_settings()) is not None
