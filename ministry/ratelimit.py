"""
Sliding-window rate limiting per (client, endpoint).

Each allowed request stores one entry keyed by its millisecond timestamp;
the count is the number of entries inside the trailing window. The check
and the record are separate store calls, so simultaneous requests from one
client can all pass before any of them is recorded.
"""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass
from typing import Callable, Mapping, Optional

from ministry import keys
from ministry.records import RateLimitEntry, new_id
from ministry.store import KeyValueStore
from ministry.text import to_millis

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitProfile:
    max_attempts: int
    window_seconds: int


PROFILES: dict[str, RateLimitProfile] = {
    "login": RateLimitProfile(max_attempts=5, window_seconds=15 * 60),
    "prayer": RateLimitProfile(max_attempts=3, window_seconds=60 * 60),
    "form": RateLimitProfile(max_attempts=10, window_seconds=60 * 60),
}


@dataclass
class RateLimitResult:
    allowed: bool
    retry_after: Optional[int] = None


def get_profile(name: str) -> RateLimitProfile:
    try:
        return PROFILES[name]
    except KeyError:
        raise ValueError(f"Unknown rate limit profile: {name}") from None


def describe(profile: str) -> tuple[int, int]:
    """(max attempts, window in minutes) for user-facing messages."""
    config = get_profile(profile)
    return config.max_attempts, config.window_seconds // 60


def client_ip(headers: Mapping[str, str], fallback: Optional[str] = None) -> str:
    forwarded = headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    return fallback or "unknown"


class RateLimiter:
    def __init__(self, store: KeyValueStore, clock: Callable[[], float] = time.time):
        self.store = store
        self.clock = clock

    async def check_and_record(
        self, client_key: str, endpoint: str, profile: str = "form"
    ) -> RateLimitResult:
        config = get_profile(profile)
        now = self.clock()
        window_start_ms = to_millis(now - config.window_seconds)

        count = 0
        oldest: Optional[int] = None
        async for key, _ in self.store.scan(keys.rate_limit_prefix(client_key, endpoint)):
            timestamp_ms = key[2]
            if timestamp_ms >= window_start_ms:
                count += 1
                if oldest is None:
                    oldest = timestamp_ms

        if count >= config.max_attempts:
            reset_ms = oldest + config.window_seconds * 1000
            retry_after = max(math.ceil((reset_ms - now * 1000) / 1000), 1)
            logger.info(
                "Rate limited %s on %s (%d/%d)",
                client_key,
                endpoint,
                count,
                config.max_attempts,
            )
            return RateLimitResult(allowed=False, retry_after=retry_after)

        entry = RateLimitEntry(ip=client_key, endpoint=endpoint, timestamp=now)
        key = keys.rate_limit(client_key, endpoint, to_millis(now), new_id())
        await self.store.set(key, entry.as_dict())
        return RateLimitResult(allowed=True)

    async def sweep(self) -> int:
        """Delete entries older than the longest window, across all endpoints."""
        longest = max(p.window_seconds for p in PROFILES.values())
        cutoff_ms = to_millis(self.clock() - longest)
        removed = 0
        async for key, _ in self.store.scan(keys.RATE_LIMIT):
            if len(key) > 2 and isinstance(key[2], int) and key[2] < cutoff_ms:
                await self.store.delete(key)
                removed += 1
        if removed:
            logger.info("Removed %d stale rate limit entries", removed)
        return removed
