import json

from task_chat import logging_utils
from task_chat.config import Settings


def test_log_event_appends_json_lines(monkeypatch, tmp_path):
    settings = Settings(_env_file=None, LOG_DIR=str(tmp_path / "logs"))
    monkeypatch.setattr(logging_utils, "get_settings", lambda: settings)

    logging_utils.log_event({"query": "urgent report", "mode": "smart", "degradations": ["parser-fallback"]})
    logging_utils.log_event({"query": "舒适", "mode": "chat", "degradations": []})

    lines = (tmp_path / "logs" / logging_utils.LOG_FILE_NAME).read_text(encoding="utf-8").splitlines()
    events = [json.loads(line) for line in lines]
    assert [event["query"] for event in events] == ["urgent report", "舒适"]
    assert events[0]["degradations"] == ["parser-fallback"]
    assert "timestamp" in events[0]
