"""Helpers for dealing with dates, due-date tokens and timezones."""
from __future__ import annotations

import calendar
import re
from datetime import date, datetime, timedelta
from typing import Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from task_chat.models import DueDateRange

DUE_KEYWORD_TOKENS = ("today", "tomorrow", "overdue", "future", "week", "next-week", "any", "none")
RELATIVE_TOKEN_RE = re.compile(r"^\+(\d+)([dwm])$")


def get_timezone(tz_name: str) -> ZoneInfo:
    """Return ZoneInfo instance with graceful fallback to UTC."""

    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError):
        return ZoneInfo("UTC")


def get_today(tz: ZoneInfo) -> date:
    """Return today's date in the provided timezone."""

    return datetime.now(tz).date()


def add_months(value: date, months: int) -> date:
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def week_bounds(today: date, offset_weeks: int = 0) -> Tuple[date, date]:
    """Monday..Sunday of the ISO week containing ``today`` shifted by ``offset_weeks``."""

    start = today - timedelta(days=today.weekday()) + timedelta(weeks=offset_weeks)
    return start, start + timedelta(days=6)


def resolve_relative_token(token: str, today: date) -> Optional[date]:
    match = RELATIVE_TOKEN_RE.match(token)
    if not match:
        return None
    amount = int(match.group(1))
    unit = match.group(2)
    if unit == "d":
        return today + timedelta(days=amount)
    if unit == "w":
        return today + timedelta(weeks=amount)
    return add_months(today, amount)


def parse_iso_date(value: str) -> Optional[date]:
    try:
        return date.fromisoformat(value.strip())
    except ValueError:
        return None


def is_valid_due_token(token: str) -> bool:
    return (
        token in DUE_KEYWORD_TOKENS
        or RELATIVE_TOKEN_RE.match(token) is not None
        or parse_iso_date(token) is not None
    )


def matches_due_token(due: Optional[date], token: str, today: date) -> bool:
    """Return whether a task due date satisfies a canonical due-date token."""

    if token == "none":
        return due is None
    if due is None:
        return False
    if token == "any":
        return True
    if token == "today":
        return due == today
    if token == "tomorrow":
        return due == today + timedelta(days=1)
    if token == "overdue":
        return due < today
    if token == "future":
        return due > today
    if token in ("week", "next-week"):
        start, end = week_bounds(today, 1 if token == "next-week" else 0)
        return start <= due <= end
    relative = resolve_relative_token(token, today)
    if relative is not None:
        return due == relative
    exact = parse_iso_date(token)
    if exact is not None:
        return due == exact
    return False


def matches_due_range(due: Optional[date], window: DueDateRange) -> bool:
    if due is None:
        return False
    if window.start is not None and due < window.start:
        return False
    if window.end is not None and due > window.end:
        return False
    return True


__all__ = [
    "DUE_KEYWORD_TOKENS",
    "get_timezone",
    "get_today",
    "add_months",
    "week_bounds",
    "resolve_relative_token",
    "parse_iso_date",
    "is_valid_due_token",
    "matches_due_token",
    "matches_due_range",
]
