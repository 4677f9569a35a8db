"""
Key naming conventions for the key-value store.

Every persisted record lives under one of these prefixes. Index keys put a
sort field (epoch milliseconds or display order) ahead of the record id so
prefix scans come back in that order with the id breaking ties.
"""

from __future__ import annotations

from ministry.store import Key

SESSIONS: Key = ("sessions",)
JOURNAL: Key = ("journal",)
JOURNAL_BY_SLUG: Key = ("journal_by_slug",)
JOURNAL_BY_DATE: Key = ("journal_by_date",)
JOURNAL_PUBLISHED: Key = ("journal_published",)
JOURNAL_FEATURED: Key = ("journal_featured",)
LOCATIONS: Key = ("locations",)
LOCATIONS_BY_DATE: Key = ("locations_by_date",)
CURRENT_LOCATION: Key = ("locations", "current")
LINKS: Key = ("links",)
LINKS_BY_ORDER: Key = ("links_by_order",)
LINKS_ACTIVE: Key = ("links_active",)
PRAYERS: Key = ("prayers",)
PRAYERS_BY_DATE: Key = ("prayers_by_date",)
PRAYERS_PUBLIC: Key = ("prayers_public",)
TESTIMONIALS: Key = ("testimonials",)
TESTIMONIALS_BY_DATE: Key = ("testimonials_by_date",)
TESTIMONIALS_APPROVED: Key = ("testimonials_approved",)
TESTIMONIAL_KEYS: Key = ("testimonial_keys",)
RATE_LIMIT: Key = ("rateLimit",)
LOGIN_ATTEMPTS: Key = ("security", "loginAttempts")
PAGE_VIEWS: Key = ("analytics", "pageviews")
EVENTS: Key = ("analytics", "events")
SETTINGS: Key = ("settings",)
VIDEO_CACHE: Key = ("youtube", "videos")


def session(session_id: str) -> Key:
    return SESSIONS + (session_id,)


def rate_limit_identifier(client_key: str, endpoint: str) -> str:
    return f"{client_key}:{endpoint}"


def rate_limit_prefix(client_key: str, endpoint: str) -> Key:
    return RATE_LIMIT + (rate_limit_identifier(client_key, endpoint),)


def rate_limit(
    client_key: str, endpoint: str, timestamp_ms: int, entry_id: str
) -> Key:
    return rate_limit_prefix(client_key, endpoint) + (timestamp_ms, entry_id)


def login_attempt(timestamp_ms: int, attempt_id: str) -> Key:
    return LOGIN_ATTEMPTS + (timestamp_ms, attempt_id)


def page_view(timestamp_ms: int, view_id: str) -> Key:
    return PAGE_VIEWS + (timestamp_ms, view_id)


def event(timestamp_ms: int, event_id: str) -> Key:
    return EVENTS + (timestamp_ms, event_id)


def setting(name: str) -> Key:
    return SETTINGS + (name,)


def testimonial_key(key_id: str) -> Key:
    return TESTIMONIAL_KEYS + (key_id,)
