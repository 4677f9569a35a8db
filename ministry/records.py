"""
Record types persisted in the key-value store.

Each record serializes to a JSON-safe dict with ``as_dict`` and is rebuilt
with ``from_dict``. Timestamps are epoch seconds; calendar dates are
datetimes stored as ISO-8601 strings.
"""

from __future__ import annotations

import time
import uuid
from dataclasses import asdict, dataclass, field, fields
from datetime import datetime
from typing import Any, ClassVar, Optional

from ministry.text import format_datetime, parse_datetime


def new_id() -> str:
    return uuid.uuid4().hex


class Record:
    """Mixin for dataclass records with datetime fields."""

    datetime_fields: ClassVar[tuple[str, ...]] = ()

    def as_dict(self) -> dict:
        data = asdict(self)
        for name in self.datetime_fields:
            data[name] = format_datetime(data[name])
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]):
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in data.items() if k in known}
        for name in cls.datetime_fields:
            if name in values:
                values[name] = parse_datetime(values[name])
        return cls(**values)


@dataclass
class JournalEntry(Record):
    id: str
    slug: str
    title: str
    content: str
    excerpt: str
    date: datetime
    location_id: Optional[str] = None
    is_featured: bool = False
    is_published: bool = False
    created_at: float = field(default_factory=lambda: time.time())
    updated_at: float = field(default_factory=lambda: time.time())

    datetime_fields: ClassVar[tuple[str, ...]] = ("date",)


@dataclass
class Location(Record):
    id: str
    city: str
    state: str
    state_code: str
    latitude: float
    longitude: float
    visited_date: datetime
    is_current: bool = False
    notes: Optional[str] = None
    created_at: float = field(default_factory=lambda: time.time())
    updated_at: float = field(default_factory=lambda: time.time())

    datetime_fields: ClassVar[tuple[str, ...]] = ("visited_date",)


@dataclass
class Link(Record):
    id: str
    title: str
    url: str
    emoji: str
    order: int
    description: Optional[str] = None
    is_active: bool = True
    created_at: float = field(default_factory=lambda: time.time())
    updated_at: float = field(default_factory=lambda: time.time())


@dataclass
class Prayer(Record):
    id: str
    prayer: str
    is_public: bool
    name: Optional[str] = None
    email: Optional[str] = None
    is_prayed: bool = False
    created_at: float = field(default_factory=lambda: time.time())
    prayed_at: Optional[float] = None


@dataclass
class Testimonial(Record):
    id: str
    name: str
    testimony: str
    location: Optional[str] = None
    approved: bool = False
    approved_at: Optional[float] = None
    created_at: float = field(default_factory=lambda: time.time())
    key_id: Optional[str] = None


@dataclass
class TestimonialKey(Record):
    id: str
    name: str
    created_by: str
    created_at: float = field(default_factory=lambda: time.time())
    used: bool = False
    used_at: Optional[float] = None
    # None means the key never expires.
    expires_at: Optional[float] = None


@dataclass
class Session(Record):
    id: str
    username: str
    created_at: float
    expires_at: float


@dataclass
class LoginAttempt(Record):
    id: str
    username: str
    ip: str
    success: bool
    timestamp: float


@dataclass
class RateLimitEntry(Record):
    ip: str
    endpoint: str
    timestamp: float


@dataclass
class PageView(Record):
    id: str
    path: str
    device: str
    browser: str
    timestamp: float
    anonymized_ip: str
    referrer: Optional[str] = None
    user_agent: Optional[str] = None


@dataclass
class AnalyticsEvent(Record):
    id: str
    name: str
    page: str
    timestamp: float
    data: Optional[dict] = None
