"""
Prayer wall: submitted prayer requests, optionally public.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Optional

from ministry import keys
from ministry.records import Prayer, new_id
from ministry.repository import Index, IndexedRepository, Page, paginate
from ministry.text import to_millis

MAX_PRAYER_LENGTH = 5000
MAX_NAME_LENGTH = 100
MAX_EMAIL_LENGTH = 255


def _clean(value: Optional[str]) -> Optional[str]:
    value = (value or "").strip()
    return value or None


class PrayerRepository(IndexedRepository[Prayer]):
    record_type = Prayer
    primary_prefix = keys.PRAYERS
    indexes = (
        Index("by_date", lambda p: keys.PRAYERS_BY_DATE + (to_millis(p.created_at), p.id)),
        Index(
            "public",
            lambda p: keys.PRAYERS_PUBLIC + (to_millis(p.created_at), p.id),
            lambda p: p.is_public,
        ),
    )

    async def submit(
        self,
        *,
        prayer: str,
        is_public: bool,
        name: Optional[str] = None,
        email: Optional[str] = None,
    ) -> Prayer:
        text = (prayer or "").strip()
        if not text:
            raise ValueError("Prayer request is required")
        if len(text) > MAX_PRAYER_LENGTH:
            raise ValueError(f"Prayer must be {MAX_PRAYER_LENGTH} characters or less")
        name, email = _clean(name), _clean(email)
        if name and len(name) > MAX_NAME_LENGTH:
            raise ValueError(f"Name must be {MAX_NAME_LENGTH} characters or less")
        if email and len(email) > MAX_EMAIL_LENGTH:
            raise ValueError(f"Email must be {MAX_EMAIL_LENGTH} characters or less")

        record = Prayer(
            id=new_id(),
            prayer=text,
            is_public=is_public,
            name=name,
            email=email,
            is_prayed=False,
            created_at=self.clock(),
            prayed_at=None,
        )
        return await self._insert(record)

    async def get_all(self) -> list[Prayer]:
        """All prayers, newest first (admin view)."""
        return await self._scan_index(keys.PRAYERS_BY_DATE)

    async def get_public(self) -> list[Prayer]:
        return await self._scan_index(keys.PRAYERS_PUBLIC)

    async def get_page(
        self, page: int, per_page: int, public_only: bool = True
    ) -> Page[Prayer]:
        prayers = await (self.get_public() if public_only else self.get_all())
        return paginate(prayers, page, per_page)

    async def mark_prayed(self, prayer_id: str) -> bool:
        existing = await self.get_by_id(prayer_id)
        if not existing:
            return False
        updated = replace(existing, is_prayed=True, prayed_at=self.clock())
        await self._replace(existing, updated)
        return True
