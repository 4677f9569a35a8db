"""
Journal entries: ministry blog posts with slug, date, featured and
published indexes.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from typing import Optional, TYPE_CHECKING

from ministry import keys
from ministry.records import JournalEntry, new_id
from ministry.repository import Index, IndexedRepository, Page, paginate, provided_fields
from ministry.text import make_excerpt, slugify, to_millis

if TYPE_CHECKING:
    from ministry.locations import LocationRepository

UPDATABLE_FIELDS = (
    "title",
    "content",
    "date",
    "location_id",
    "is_featured",
    "is_published",
)
NULLABLE_FIELDS = ("location_id",)


class JournalRepository(IndexedRepository[JournalEntry]):
    record_type = JournalEntry
    primary_prefix = keys.JOURNAL
    indexes = (
        Index("by_slug", lambda e: keys.JOURNAL_BY_SLUG + (e.slug,)),
        Index("by_date", lambda e: keys.JOURNAL_BY_DATE + (to_millis(e.date), e.id)),
        Index(
            "featured",
            lambda e: keys.JOURNAL_FEATURED + (e.id,),
            lambda e: e.is_featured,
        ),
        Index(
            "published",
            lambda e: keys.JOURNAL_PUBLISHED + (to_millis(e.date), e.id),
            lambda e: e.is_published,
        ),
    )

    async def create(
        self,
        *,
        title: str,
        content: str,
        date: datetime,
        location_id: Optional[str] = None,
        is_featured: bool = False,
        is_published: bool = False,
    ) -> JournalEntry:
        if not title or not title.strip():
            raise ValueError("Title is required")
        if not content or not content.strip():
            raise ValueError("Content is required")
        now = self.clock()
        entry_id = new_id()
        entry = JournalEntry(
            id=entry_id,
            slug=await self._unique_slug(title, entry_id),
            title=title,
            content=content,
            excerpt=make_excerpt(content),
            date=date,
            location_id=location_id,
            is_featured=is_featured,
            is_published=is_published,
            created_at=now,
            updated_at=now,
        )
        return await self._insert(entry)

    async def _unique_slug(self, title: str, entry_id: str) -> str:
        """Slug for ``title``, suffixed -2, -3... when another entry holds it."""
        base = slugify(title) or entry_id
        slug, suffix = base, 1
        while True:
            holder = await self.store.get(keys.JOURNAL_BY_SLUG + (slug,))
            if holder is None or holder.get("id") == entry_id:
                return slug
            suffix += 1
            slug = f"{base}-{suffix}"

    async def get_by_slug(self, slug: str) -> Optional[JournalEntry]:
        data = await self.store.get(keys.JOURNAL_BY_SLUG + (slug,))
        if data is None:
            return None
        return JournalEntry.from_dict(data)

    async def get_by_slug_with_location(
        self, slug: str, locations: "LocationRepository"
    ) -> Optional[dict]:
        """Entry dict with ``location`` populated when the entry has one."""
        entry = await self.get_by_slug(slug)
        if not entry:
            return None
        payload = entry.as_dict()
        if entry.location_id:
            location = await locations.get_by_id(entry.location_id)
            if location:
                payload["location"] = {
                    "city": location.city,
                    "state": location.state,
                    "state_code": location.state_code,
                }
        return payload

    async def get_all(self, limit: Optional[int] = None) -> list[JournalEntry]:
        """All entries, drafts included, most recent first."""
        return await self._scan_index(keys.JOURNAL_BY_DATE, limit=limit)

    async def get_published(self, limit: Optional[int] = None) -> list[JournalEntry]:
        return await self._scan_index(keys.JOURNAL_PUBLISHED, limit=limit)

    async def get_published_page(
        self, page: int = 1, per_page: int = 10
    ) -> Page[JournalEntry]:
        return paginate(await self.get_published(), page, per_page)

    async def get_featured(self, limit: int = 2) -> list[JournalEntry]:
        # The featured index is keyed by id only, so sort by date afterwards.
        entries = await self._scan_index(
            keys.JOURNAL_FEATURED,
            newest_first=False,
            where=lambda e: e.is_published,
        )
        entries.sort(key=lambda e: to_millis(e.date), reverse=True)
        return entries[:limit]

    async def get_by_location(self, location_id: str) -> list[JournalEntry]:
        published = await self.get_published()
        return [e for e in published if e.location_id == location_id]

    async def update(self, entry_id: str, **changes) -> Optional[JournalEntry]:
        changes = provided_fields(changes, UPDATABLE_FIELDS, NULLABLE_FIELDS)
        existing = await self.get_by_id(entry_id)
        if not existing:
            return None

        updated = replace(existing, **changes, updated_at=self.clock())
        if "title" in changes and changes["title"] != existing.title:
            updated.slug = await self._unique_slug(changes["title"], entry_id)
        if "content" in changes and changes["content"] != existing.content:
            updated.excerpt = make_excerpt(changes["content"])
        return await self._replace(existing, updated)
