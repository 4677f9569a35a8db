"""
Retention sweep: expired sessions, stale rate-limit entries, aged analytics
and prayers that were prayed for long enough ago.

Not self-scheduling; ``scripts/cleanup_daemon.py`` or the admin endpoint
triggers a run.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable

from ministry.analytics import AnalyticsService
from ministry.auth import SessionStore
from ministry.prayers import PrayerRepository
from ministry.ratelimit import RateLimiter
from ministry.store import StoreError

logger = logging.getLogger(__name__)

DAY_SECONDS = 24 * 60 * 60


@dataclass
class CleanupResult:
    expired_sessions: int = 0
    rate_limit_entries: int = 0
    old_analytics: int = 0
    prayed_prayers: int = 0

    @property
    def total(self) -> int:
        return (
            self.expired_sessions
            + self.rate_limit_entries
            + self.old_analytics
            + self.prayed_prayers
        )


class CleanupService:
    def __init__(
        self,
        sessions: SessionStore,
        rate_limiter: RateLimiter,
        analytics: AnalyticsService,
        prayers: PrayerRepository,
        clock: Callable[[], float] = time.time,
    ):
        self.sessions = sessions
        self.rate_limiter = rate_limiter
        self.analytics = analytics
        self.prayers = prayers
        self.clock = clock

    async def run(
        self, analytics_retention_days: int, prayed_retention_days: int
    ) -> CleanupResult:
        logger.info("Starting cleanup")
        result = CleanupResult()
        result.expired_sessions = await self._step(
            "expired sessions", self.sessions.sweep_expired
        )
        result.rate_limit_entries = await self._step(
            "rate limit entries", self.rate_limiter.sweep
        )
        result.old_analytics = await self._step(
            "old analytics",
            lambda: self.analytics.delete_old_data(analytics_retention_days),
        )
        result.prayed_prayers = await self._step(
            "prayed prayers",
            lambda: self.delete_prayed_prayers(prayed_retention_days),
        )
        logger.info(
            "Cleanup complete: %d removed (sessions=%d rate_limit=%d analytics=%d prayers=%d)",
            result.total,
            result.expired_sessions,
            result.rate_limit_entries,
            result.old_analytics,
            result.prayed_prayers,
        )
        return result

    async def _step(self, label: str, step: Callable[[], Awaitable[int]]) -> int:
        try:
            return await step()
        except StoreError:
            logger.exception("Cleanup step %r failed; continuing", label)
            return 0

    async def delete_prayed_prayers(self, days_to_keep: int) -> int:
        """Delete prayers marked prayed more than ``days_to_keep`` days ago."""
        cutoff = self.clock() - days_to_keep * DAY_SECONDS
        deleted = 0
        for prayer in await self.prayers.get_all():
            if not (prayer.is_prayed and prayer.prayed_at and prayer.prayed_at < cutoff):
                continue
            try:
                if await self.prayers.delete(prayer.id):
                    deleted += 1
            except StoreError:
                logger.warning("Could not delete prayer %s", prayer.id, exc_info=True)
        return deleted
