"""
Linktree-style homepage links, ordered by display order.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Iterable, Optional

from ministry import keys
from ministry.records import Link, new_id
from ministry.repository import Index, IndexedRepository, provided_fields

UPDATABLE_FIELDS = ("title", "url", "description", "emoji", "order", "is_active")
NULLABLE_FIELDS = ("description",)


class LinkRepository(IndexedRepository[Link]):
    record_type = Link
    primary_prefix = keys.LINKS
    indexes = (
        Index("by_order", lambda link: keys.LINKS_BY_ORDER + (link.order, link.id)),
        Index(
            "active",
            lambda link: keys.LINKS_ACTIVE + (link.order, link.id),
            lambda link: link.is_active,
        ),
    )

    async def create(
        self,
        *,
        title: str,
        url: str,
        emoji: str,
        description: Optional[str] = None,
        order: Optional[int] = None,
    ) -> Link:
        if not title or not url:
            raise ValueError("Title and URL are required")
        if order is None:
            # Put it at the end.
            existing = await self.get_all(include_inactive=True)
            order = max((link.order for link in existing), default=0) + 1
        now = self.clock()
        link = Link(
            id=new_id(),
            title=title,
            url=url,
            emoji=emoji,
            description=description,
            order=order,
            is_active=True,
            created_at=now,
            updated_at=now,
        )
        return await self._insert(link)

    async def get_all(self, include_inactive: bool = False) -> list[Link]:
        """Links by ascending display order; active only unless asked."""
        prefix = keys.LINKS_BY_ORDER if include_inactive else keys.LINKS_ACTIVE
        return await self._scan_index(prefix, newest_first=False)

    async def update(self, link_id: str, **changes) -> Optional[Link]:
        changes = provided_fields(changes, UPDATABLE_FIELDS, NULLABLE_FIELDS)
        existing = await self.get_by_id(link_id)
        if not existing:
            return None
        updated = replace(existing, **changes, updated_at=self.clock())
        return await self._replace(existing, updated)

    async def reorder(self, orders: Iterable[tuple[str, int]]) -> int:
        """Apply (id, order) pairs one by one; unknown ids are skipped."""
        applied = 0
        for link_id, order in orders:
            if await self.update(link_id, order=order):
                applied += 1
        return applied
