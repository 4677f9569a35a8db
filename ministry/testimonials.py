"""
Testimonials and the one-time keys that gate public submission.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Optional
from urllib.parse import quote

from ministry import keys
from ministry.records import Testimonial, TestimonialKey, new_id
from ministry.repository import Index, IndexedRepository, Page, paginate
from ministry.text import to_millis

logger = logging.getLogger(__name__)

MAX_TESTIMONY_LENGTH = 10000
MAX_NAME_LENGTH = 100
MAX_LOCATION_LENGTH = 100

DAY_SECONDS = 24 * 60 * 60


class TestimonialRepository(IndexedRepository[Testimonial]):
    record_type = Testimonial
    primary_prefix = keys.TESTIMONIALS
    indexes = (
        Index(
            "by_date",
            lambda t: keys.TESTIMONIALS_BY_DATE + (to_millis(t.created_at), t.id),
        ),
        Index(
            "approved",
            lambda t: keys.TESTIMONIALS_APPROVED + (to_millis(t.created_at), t.id),
            lambda t: t.approved,
        ),
    )

    # Submission keys

    async def create_key(
        self, name: str, created_by: str, expires_in_days: Optional[int] = None
    ) -> TestimonialKey:
        now = self.clock()
        key = TestimonialKey(
            id=new_id(),
            name=name,
            created_by=created_by,
            created_at=now,
            used=False,
            used_at=None,
            expires_at=now + expires_in_days * DAY_SECONDS if expires_in_days else None,
        )
        await self.store.set(keys.testimonial_key(key.id), key.as_dict())
        return key

    async def get_key(self, key_id: str) -> Optional[TestimonialKey]:
        data = await self.store.get(keys.testimonial_key(key_id))
        if data is None:
            return None
        return TestimonialKey.from_dict(data)

    async def validate_key(self, key_id: str) -> Optional[TestimonialKey]:
        """The key if it exists, is unused and has not expired."""
        key = await self.get_key(key_id)
        if not key or key.used:
            return None
        if key.expires_at is not None and self.clock() > key.expires_at:
            return None
        return key

    async def get_all_keys(self) -> list[TestimonialKey]:
        found = [
            TestimonialKey.from_dict(data)
            async for _, data in self.store.scan(keys.TESTIMONIAL_KEYS)
        ]
        return sorted(found, key=lambda k: k.created_at, reverse=True)

    async def delete_key(self, key_id: str) -> bool:
        if not await self.get_key(key_id):
            return False
        await self.store.delete(keys.testimonial_key(key_id))
        return True

    async def _mark_key_used(self, key: TestimonialKey) -> None:
        used = replace(key, used=True, used_at=self.clock())
        await self.store.set(keys.testimonial_key(key.id), used.as_dict())

    # Testimonials

    async def submit(
        self,
        *,
        key_id: str,
        name: str,
        testimony: str,
        location: Optional[str] = None,
    ) -> Optional[Testimonial]:
        """
        Store a testimonial if ``key_id`` is valid, then burn the key.

        Returns None for a missing, used or expired key. Validation and
        marking are separate steps, so two concurrent submissions with the
        same key can both succeed.
        """
        name, testimony = (name or "").strip(), (testimony or "").strip()
        location = (location or "").strip() or None
        if not name or not testimony:
            raise ValueError("Name and testimony are required")
        if len(name) > MAX_NAME_LENGTH:
            raise ValueError(f"Name must be {MAX_NAME_LENGTH} characters or less")
        if len(testimony) > MAX_TESTIMONY_LENGTH:
            raise ValueError(
                f"Testimony must be {MAX_TESTIMONY_LENGTH} characters or less"
            )
        if location and len(location) > MAX_LOCATION_LENGTH:
            raise ValueError(
                f"Location must be {MAX_LOCATION_LENGTH} characters or less"
            )

        key = await self.validate_key(key_id)
        if not key:
            logger.info("Rejected testimonial with invalid key %s", key_id)
            return None

        testimonial = Testimonial(
            id=new_id(),
            name=name,
            testimony=testimony,
            location=location,
            approved=False,
            approved_at=None,
            created_at=self.clock(),
            key_id=key.id,
        )
        await self._insert(testimonial)
        await self._mark_key_used(key)
        return testimonial

    async def get_all(self) -> list[Testimonial]:
        return await self._scan_index(keys.TESTIMONIALS_BY_DATE)

    async def get_approved(self) -> list[Testimonial]:
        return await self._scan_index(keys.TESTIMONIALS_APPROVED)

    async def get_page(
        self, page: int, per_page: int, approved_only: bool = True
    ) -> Page[Testimonial]:
        items = await (self.get_approved() if approved_only else self.get_all())
        return paginate(items, page, per_page)

    async def approve(self, testimonial_id: str) -> bool:
        existing = await self.get_by_id(testimonial_id)
        if not existing:
            return False
        updated = replace(existing, approved=True, approved_at=self.clock())
        await self._replace(existing, updated)
        return True


def sms_invite_link(phone: str, key_id: str, site_url: str, ministry_name: str) -> str:
    message = (
        f"You've been invited to share your testimony with {ministry_name}! "
        f"Click here: {site_url.rstrip('/')}/testimonials?key={key_id}"
    )
    return f"sms:{phone}?&body={quote(message, safe='')}"
