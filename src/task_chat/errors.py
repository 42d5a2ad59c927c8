"""Exception types raised below the query orchestrator."""
from __future__ import annotations

from typing import Optional


class TaskChatError(RuntimeError):
    """Base class for recoverable query engine errors."""


class LLMCallError(TaskChatError):
    """Raised when the language-model endpoint cannot produce a usable reply."""

    def __init__(self, message: str, model_identifier: Optional[str] = None):
        super().__init__(message)
        self.model_identifier = model_identifier


class ParserFailure(TaskChatError):
    """AI query parsing failed (transport, timeout, invalid JSON or wrong shape)."""

    def __init__(self, message: str, model_identifier: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.model_identifier = model_identifier


class AnalysisFailure(TaskChatError):
    """AI analysis call failed before producing text."""

    def __init__(self, message: str, model_identifier: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.model_identifier = model_identifier


class AnalysisNoReference(AnalysisFailure):
    """AI analysis answered but referenced none of the supplied tasks."""


class ConfigurationError(TaskChatError):
    """A value refers to something missing from the configuration."""

    def __init__(self, message: str, key: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.key = key


__all__ = [
    "TaskChatError",
    "LLMCallError",
    "ParserFailure",
    "AnalysisFailure",
    "AnalysisNoReference",
    "ConfigurationError",
]
