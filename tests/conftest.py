import json
from datetime import date
from typing import Any, Dict, List, Optional

import pytest

from task_chat.llm_client import Completion
from task_chat.models import TokenUsage

TODAY = date(2025, 1, 15)


class FakeModel:
    """In-memory stand-in for the language model used by the pipeline."""

    model_identifier = "fake-model"

    def __init__(
        self,
        parse_reply: Any = None,
        analysis_reply: Optional[str] = None,
        parse_error: Optional[BaseException] = None,
        analysis_error: Optional[BaseException] = None,
    ) -> None:
        self.parse_reply = parse_reply
        self.analysis_reply = analysis_reply
        self.parse_error = parse_error
        self.analysis_error = analysis_error
        self.parse_messages: List[List[Dict[str, str]]] = []
        self.analysis_messages: List[List[Dict[str, str]]] = []

    async def parse_query(self, messages, schema=None):
        self.parse_messages.append(messages)
        if self.parse_error is not None:
            raise self.parse_error
        text = self.parse_reply if isinstance(self.parse_reply, str) else json.dumps(self.parse_reply, ensure_ascii=False)
        return Completion(text=text, model=self.model_identifier, usage=TokenUsage(prompt_tokens=10, completion_tokens=5))

    async def analyze(self, messages):
        self.analysis_messages.append(messages)
        if self.analysis_error is not None:
            raise self.analysis_error
        return Completion(
            text=self.analysis_reply or "",
            model=self.model_identifier,
            usage=TokenUsage(prompt_tokens=20, completion_tokens=8),
        )


@pytest.fixture
def fake_model():
    return FakeModel


@pytest.fixture(autouse=True)
def _quiet_event_log(monkeypatch):
    events: List[Dict[str, Any]] = []
    monkeypatch.setattr("task_chat.pipeline.log_event", events.append)
    return events
