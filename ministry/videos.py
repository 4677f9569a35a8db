"""
Latest videos from the channel's public YouTube RSS feed.

The parsed feed is cached under ``("youtube", "videos")`` for
``cache_seconds``; when a refresh fails the stale copy is served instead.
"""

from __future__ import annotations

import asyncio
import calendar
import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

import feedparser
import requests

from ministry import keys
from ministry.records import Record
from ministry.store import KeyValueStore

logger = logging.getLogger(__name__)

FEED_URL = "https://www.youtube.com/feeds/videos.xml"
REQUEST_TIMEOUT = 30  # seconds
USER_AGENT = "TwoWitnessProject/1.0"


@dataclass
class Video(Record):
    id: str
    title: str
    link: str
    published: float
    thumbnail: str
    author: str


def parse_feed(content: bytes, default_author: str = "") -> list[Video]:
    parsed = feedparser.parse(content)
    videos = []
    for entry in parsed.entries:
        video_id = entry.get("yt_videoid", "")
        title = entry.get("title", "").strip()
        if not video_id or not title:
            continue
        published = entry.get("published_parsed")
        videos.append(
            Video(
                id=video_id,
                title=title,
                link=f"https://www.youtube.com/watch?v={video_id}",
                published=calendar.timegm(published) if published else 0.0,
                thumbnail=f"https://i.ytimg.com/vi/{video_id}/mqdefault.jpg",
                author=entry.get("author", default_author) or default_author,
            )
        )
    return videos


def fetch_channel_feed(channel_id: str) -> bytes:
    response = requests.get(
        FEED_URL,
        params={"channel_id": channel_id},
        headers={"User-Agent": USER_AGENT},
        timeout=REQUEST_TIMEOUT,
    )
    response.raise_for_status()
    return response.content


class VideoFeed:
    def __init__(
        self,
        store: KeyValueStore,
        channel_id: Optional[str],
        cache_seconds: int = 60 * 60,
        default_author: str = "",
        fetch: Callable[[str], bytes] = fetch_channel_feed,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.channel_id = (channel_id or "").strip()
        self.cache_seconds = cache_seconds
        self.default_author = default_author
        self.fetch = fetch
        self.clock = clock

    async def latest(self, limit: int = 6) -> list[Video]:
        if not self.channel_id:
            logger.warning("YouTube channel id not configured")
            return []

        cached = await self.store.get(keys.VIDEO_CACHE)
        if cached and self.clock() - cached["timestamp"] < self.cache_seconds:
            return [Video.from_dict(v) for v in cached["videos"][:limit]]

        try:
            content = await asyncio.to_thread(self.fetch, self.channel_id)
            videos = parse_feed(content, self.default_author)
        except requests.RequestException:
            logger.exception("YouTube RSS fetch failed")
            if cached:
                logger.info("Serving stale video cache")
                return [Video.from_dict(v) for v in cached["videos"][:limit]]
            return []

        await self.store.set(
            keys.VIDEO_CACHE,
            {"videos": [v.as_dict() for v in videos], "timestamp": self.clock()},
        )
        logger.info("Fetched %d videos from YouTube RSS", len(videos))
        return videos[:limit]
