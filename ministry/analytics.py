"""
Privacy-friendly page-view and event tracking.

Visitor IPs are stored only as a salted SHA-256 prefix. Records are keyed by
millisecond timestamp, so range queries and retention sweeps walk the key
space in time order.
"""

from __future__ import annotations

import csv
import hashlib
import io
import json
import logging
import re
import time
from collections import Counter
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from ministry import keys
from ministry.records import AnalyticsEvent, PageView, new_id
from ministry.store import Key, KeyValueStore
from ministry.text import to_millis

logger = logging.getLogger(__name__)

DAY_SECONDS = 24 * 60 * 60

_TABLET = re.compile(r"tablet|ipad")
_MOBILE = re.compile(r"mobile|android|iphone")
_DESKTOP = re.compile(r"windows|mac|linux")


def parse_device(user_agent: Optional[str]) -> str:
    if not user_agent:
        return "unknown"
    ua = user_agent.lower()
    if _TABLET.search(ua):
        return "tablet"
    if _MOBILE.search(ua):
        return "mobile"
    if _DESKTOP.search(ua):
        return "desktop"
    return "unknown"


def parse_browser(user_agent: Optional[str]) -> str:
    if not user_agent:
        return "unknown"
    ua = user_agent.lower()
    if "firefox" in ua:
        return "Firefox"
    if "edg" in ua:
        return "Edge"
    if "opera" in ua or "opr/" in ua:
        return "Opera"
    if "chrome" in ua:
        return "Chrome"
    if "safari" in ua:
        return "Safari"
    return "Other"


def _top(counter: Counter, label: str, count_label: str, n: int = 10) -> list[dict]:
    return [{label: name, count_label: count} for name, count in counter.most_common(n)]


class AnalyticsService:
    def __init__(
        self,
        store: KeyValueStore,
        salt: str = "salt-twp",
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.salt = salt
        self.clock = clock

    def anonymize_ip(self, ip: Optional[str]) -> str:
        if not ip:
            return "unknown"
        return hashlib.sha256((ip + self.salt).encode("utf-8")).hexdigest()[:16]

    async def track_page_view(
        self,
        path: str,
        referrer: Optional[str] = None,
        user_agent: Optional[str] = None,
        ip: Optional[str] = None,
    ) -> PageView:
        view = PageView(
            id=new_id(),
            path=path,
            referrer=referrer or None,
            user_agent=user_agent,
            device=parse_device(user_agent),
            browser=parse_browser(user_agent),
            timestamp=self.clock(),
            anonymized_ip=self.anonymize_ip(ip),
        )
        await self.store.set(keys.page_view(to_millis(view.timestamp), view.id), view.as_dict())
        return view

    async def track_event(
        self, name: str, page: str, data: Optional[dict[str, Any]] = None
    ) -> AnalyticsEvent:
        event = AnalyticsEvent(
            id=new_id(), name=name, page=page, data=data, timestamp=self.clock()
        )
        await self.store.set(keys.event(to_millis(event.timestamp), event.id), event.as_dict())
        return event

    async def _range(self, prefix: Key, start: float, end: float) -> list[dict]:
        """Values under ``prefix`` with start <= timestamp <= end, newest first."""
        start_ms, end_ms = to_millis(start), to_millis(end)
        found = []
        async for key, data in self.store.scan(prefix, reverse=True):
            timestamp_ms = key[len(prefix)]
            if timestamp_ms > end_ms:
                continue
            if timestamp_ms < start_ms:
                break
            found.append(data)
        return found

    async def get_page_views(self, start: float, end: float) -> list[PageView]:
        return [PageView.from_dict(d) for d in await self._range(keys.PAGE_VIEWS, start, end)]

    async def get_events(self, start: float, end: float) -> list[AnalyticsEvent]:
        return [AnalyticsEvent.from_dict(d) for d in await self._range(keys.EVENTS, start, end)]

    async def overview(self, start: float, end: float) -> dict:
        views = await self.get_page_views(start, end)
        return {
            "total_page_views": len(views),
            "unique_visitors": len({v.anonymized_ip for v in views}),
            "top_pages": _top(Counter(v.path for v in views), "path", "views"),
            "top_referrers": _top(
                Counter(v.referrer or "Direct" for v in views), "referrer", "count"
            ),
            "device_breakdown": dict(Counter(v.device for v in views)),
            "browser_breakdown": dict(Counter(v.browser for v in views)),
        }

    async def page_views_by_day(self, start: float, end: float) -> list[dict]:
        days = Counter(
            datetime.fromtimestamp(v.timestamp, tz=timezone.utc).strftime("%Y-%m-%d")
            for v in await self.get_page_views(start, end)
        )
        return [{"date": day, "views": days[day]} for day in sorted(days)]

    async def event_counts(self, start: float, end: float) -> list[dict]:
        counts = Counter(e.name for e in await self.get_events(start, end))
        return [{"name": name, "count": count} for name, count in counts.most_common()]

    async def export_csv(self, start: float, end: float) -> str:
        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\n")
        writer.writerow(["Type", "Timestamp", "Path/Name", "Referrer", "Device", "Browser", "Data"])
        for view in await self.get_page_views(start, end):
            writer.writerow(
                [
                    "PageView",
                    _iso(view.timestamp),
                    view.path,
                    view.referrer or "",
                    view.device,
                    view.browser,
                    "",
                ]
            )
        for event in await self.get_events(start, end):
            data = json.dumps(event.data) if event.data else ""
            writer.writerow(["Event", _iso(event.timestamp), event.name, "", "", "", data])
        return buffer.getvalue()

    async def delete_old_data(self, days_to_keep: int) -> int:
        """Delete page views and events older than ``days_to_keep`` days."""
        cutoff_ms = to_millis(self.clock() - days_to_keep * DAY_SECONDS)
        deleted = 0
        for prefix in (keys.PAGE_VIEWS, keys.EVENTS):
            async for key, _ in self.store.scan(prefix):
                if key[len(prefix)] >= cutoff_ms:
                    break
                await self.store.delete(key)
                deleted += 1
        if deleted:
            logger.info("Deleted %d analytics records older than %d days", deleted, days_to_keep)
        return deleted


def _iso(timestamp: float) -> str:
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).isoformat()
