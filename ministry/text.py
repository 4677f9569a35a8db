"""
Helpers for derived text fields and time values.
"""

from __future__ import annotations

import re
import time
from datetime import datetime, timezone
from typing import Optional

EXCERPT_LENGTH = 200

_NON_ALNUM = re.compile(r"[^a-z0-9]+")
_NEWLINES = re.compile(r"\n+")


def slugify(title: str) -> str:
    """URL-friendly slug: "An Encounter in Phoenix!" -> "an-encounter-in-phoenix"."""
    return _NON_ALNUM.sub("-", title.lower()).strip("-")


def make_excerpt(content: str, length: int = EXCERPT_LENGTH) -> str:
    plain = _NEWLINES.sub(" ", content).strip()
    if len(plain) <= length:
        return plain
    return plain[:length].strip() + "..."


def ensure_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_millis(value: datetime | float) -> int:
    """Epoch milliseconds for a datetime or an epoch-seconds float."""
    if isinstance(value, datetime):
        return int(ensure_utc(value).timestamp() * 1000)
    return int(value * 1000)


def parse_datetime(value: Optional[str]) -> Optional[datetime]:
    if value is None:
        return None
    return ensure_utc(datetime.fromisoformat(value))


def format_datetime(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return ensure_utc(value).isoformat()


def time_ago(timestamp: float, now: Optional[float] = None) -> str:
    """Human readable age, e.g. "2 hours ago"."""
    seconds = int((now if now is not None else time.time()) - timestamp)
    minutes = seconds // 60
    hours = minutes // 60
    days = hours // 24
    for amount, unit in (
        (days // 365, "year"),
        (days // 30, "month"),
        (days // 7, "week"),
        (days, "day"),
        (hours, "hour"),
        (minutes, "minute"),
    ):
        if amount > 0:
            return f"{amount} {unit}{'s' if amount > 1 else ''} ago"
    return "just now"
