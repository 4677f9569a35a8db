"""
Daemon that periodically runs the retention sweep against the site store.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import random
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from ministry.analytics import AnalyticsService
from ministry.auth import SessionStore
from ministry.cleanup import CleanupService
from ministry.config import get_settings
from ministry.dependencies import get_store
from ministry.prayers import PrayerRepository
from ministry.ratelimit import RateLimiter
from ministry.store import StoreError

logger = logging.getLogger(__name__)


def build_cleanup_service() -> CleanupService:
    settings = get_settings()
    store = get_store()
    return CleanupService(
        sessions=SessionStore(store, settings),
        rate_limiter=RateLimiter(store),
        analytics=AnalyticsService(store, salt=settings.analytics_salt),
        prayers=PrayerRepository(store),
    )


def main() -> int:
    parser = argparse.ArgumentParser(description="Ministry site retention sweep")
    parser.add_argument(
        "--analytics-days",
        type=int,
        default=None,
        help="Keep analytics for this many days (default from settings)",
    )
    parser.add_argument(
        "--prayed-days",
        type=int,
        default=None,
        help="Keep prayed prayers for this many days (default from settings)",
    )
    parser.add_argument(
        "--interval-seconds",
        type=int,
        default=24 * 60 * 60,
        help="Seconds between cleanup runs",
    )
    parser.add_argument(
        "--jitter-seconds",
        type=int,
        default=300,
        help="Max random jitter added to sleep",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single sweep and exit",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(name)s %(levelname)s %(asctime)s %(message)s",
        datefmt="%m/%d/%Y %I:%M:%S %p",
    )

    return asyncio.run(run(args))


async def run(args: argparse.Namespace) -> int:
    settings = get_settings()
    if not settings.has_persistent_store:
        logger.error("No persistent store configured; set REDIS_URL to run the sweep")
        return 1
    analytics_days = args.analytics_days or settings.analytics_retention_days
    prayed_days = args.prayed_days or settings.prayed_prayer_retention_days
    service = build_cleanup_service()

    while True:
        try:
            result = await service.run(analytics_days, prayed_days)
            logger.info("Sweep complete, removed %d records", result.total)
        except StoreError as exc:
            logger.exception("Sweep failed: %s", exc)

        if args.once:
            return 0

        sleep_for = args.interval_seconds + random.uniform(0, args.jitter_seconds)
        logger.info("Sleeping for %.1fs", sleep_for)
        await asyncio.sleep(sleep_for)


if __name__ == "__main__":
    raise SystemExit(main())
