"""
Dependency wiring for the FastAPI app.
"""

from __future__ import annotations

import logging

from fastapi import Depends

from ministry.analytics import AnalyticsService
from ministry.auth import SessionStore
from ministry.cleanup import CleanupService
from ministry.config import Settings, get_settings
from ministry.csrf import CsrfGuard
from ministry.journal import JournalRepository
from ministry.links import LinkRepository
from ministry.locations import LocationRepository
from ministry.notifications import Notifier
from ministry.prayers import PrayerRepository
from ministry.ratelimit import RateLimiter
from ministry.site_settings import SiteSettings
from ministry.store import InMemoryKeyValueStore, KeyValueStore, RedisKeyValueStore
from ministry.testimonials import TestimonialRepository
from ministry.videos import VideoFeed

logger = logging.getLogger(__name__)

_store: KeyValueStore | None = None


def get_store() -> KeyValueStore:
    """
    Return a singleton store so state persists across requests.
    """
    global _store
    if _store is not None:
        return _store

    settings = get_settings()
    if not settings.has_persistent_store:
        logger.info("Using in-memory key-value store")
        _store = InMemoryKeyValueStore()
    else:
        _store = RedisKeyValueStore(
            url=settings.redis_url,
            namespace=settings.store_namespace,
        )
    return _store


def get_journal(store: KeyValueStore = Depends(get_store)) -> JournalRepository:
    return JournalRepository(store)


def get_locations(store: KeyValueStore = Depends(get_store)) -> LocationRepository:
    return LocationRepository(store)


def get_links(store: KeyValueStore = Depends(get_store)) -> LinkRepository:
    return LinkRepository(store)


def get_prayers(store: KeyValueStore = Depends(get_store)) -> PrayerRepository:
    return PrayerRepository(store)


def get_testimonials(
    store: KeyValueStore = Depends(get_store),
) -> TestimonialRepository:
    return TestimonialRepository(store)


def get_sessions(
    store: KeyValueStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
) -> SessionStore:
    return SessionStore(store, settings)


def get_csrf_guard(settings: Settings = Depends(get_settings)) -> CsrfGuard:
    return CsrfGuard(max_age=settings.csrf_token_max_age, secure=settings.is_production)


def get_rate_limiter(store: KeyValueStore = Depends(get_store)) -> RateLimiter:
    return RateLimiter(store)


def get_analytics(
    store: KeyValueStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
) -> AnalyticsService:
    return AnalyticsService(store, salt=settings.analytics_salt)


def get_site_settings(store: KeyValueStore = Depends(get_store)) -> SiteSettings:
    return SiteSettings(store)


def get_notifier(
    site_settings: SiteSettings = Depends(get_site_settings),
    settings: Settings = Depends(get_settings),
) -> Notifier:
    return Notifier(site_settings, settings.ministry_name)


def get_video_feed(
    store: KeyValueStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
) -> VideoFeed:
    return VideoFeed(
        store,
        settings.youtube_channel_id,
        cache_seconds=settings.youtube_cache_seconds,
        default_author=settings.ministry_name,
    )


def get_cleanup(
    sessions: SessionStore = Depends(get_sessions),
    rate_limiter: RateLimiter = Depends(get_rate_limiter),
    analytics: AnalyticsService = Depends(get_analytics),
    prayers: PrayerRepository = Depends(get_prayers),
) -> CleanupService:
    return CleanupService(sessions, rate_limiter, analytics, prayers)
