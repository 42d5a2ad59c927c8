"""Append-only logging helpers for processed queries."""
from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping

from task_chat.config import get_settings

LOG_FILE_NAME = "query_events.jsonl"
LOGGER_NAME = "task_chat"


def _setup_logger() -> logging.Logger:
    logger = logging.getLogger(LOGGER_NAME)
    if not logger.handlers:
        logger.setLevel(logging.INFO)
        handler = logging.StreamHandler(sys.stdout)
        formatter = logging.Formatter("%(asctime)s | %(levelname)s | %(message)s")
        handler.setFormatter(formatter)
        logger.addHandler(handler)
        logger.propagate = False
    return logger


LOGGER = _setup_logger()


def _log_path() -> Path:
    settings = get_settings()
    log_dir = Path(settings.log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    return log_dir / LOG_FILE_NAME


def log_event(data: Mapping[str, Any]) -> None:
    """Append a JSON event to the log file and emit console output."""

    payload = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        **data,
    }
    try:
        path = _log_path()
        with path.open("a", encoding="utf-8") as handle:
            handle.write(json.dumps(payload, ensure_ascii=False, default=str))
            handle.write("\n")
    except OSError:
        # Logging is best-effort; a read-only log dir must not fail the query.
        pass

    degradations = payload.get("degradations") or []
    if not degradations:
        LOGGER.info(
            "Processed query | mode=%s parser=%s results=%s | query=%s",
            payload.get("mode"),
            payload.get("parser"),
            payload.get("result_count"),
            payload.get("query", ""),
        )
    else:
        LOGGER.warning(
            "Processed query with fallback | mode=%s parser=%s results=%s degradations=%s | query=%s",
            payload.get("mode"),
            payload.get("parser"),
            payload.get("result_count"),
            ",".join(str(item) for item in degradations),
            payload.get("query", ""),
        )


__all__ = ["log_event", "LOGGER", "LOGGER_NAME"]
