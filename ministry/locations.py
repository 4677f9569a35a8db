"""
Journey locations, ordered by visit date, with a single "current" marker.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime
from typing import Optional

from ministry import keys
from ministry.records import Location, new_id
from ministry.repository import Index, IndexedRepository, provided_fields
from ministry.text import to_millis

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = (
    "city",
    "state",
    "state_code",
    "latitude",
    "longitude",
    "visited_date",
    "is_current",
    "notes",
)
NULLABLE_FIELDS = ("notes",)


class LocationRepository(IndexedRepository[Location]):
    record_type = Location
    primary_prefix = keys.LOCATIONS
    indexes = (
        Index(
            "by_date",
            lambda loc: keys.LOCATIONS_BY_DATE + (to_millis(loc.visited_date), loc.id),
        ),
        Index(
            "current", lambda loc: keys.CURRENT_LOCATION, lambda loc: loc.is_current
        ),
    )

    async def create(
        self,
        *,
        city: str,
        state: str,
        state_code: str,
        latitude: float,
        longitude: float,
        visited_date: datetime,
        is_current: bool = False,
        notes: Optional[str] = None,
    ) -> Location:
        if not city or not state or not state_code:
            raise ValueError("City, state and state code are required")
        if is_current:
            await self._clear_current()
        now = self.clock()
        location = Location(
            id=new_id(),
            city=city,
            state=state,
            state_code=state_code.upper(),
            latitude=latitude,
            longitude=longitude,
            visited_date=visited_date,
            is_current=is_current,
            notes=notes,
            created_at=now,
            updated_at=now,
        )
        return await self._insert(location)

    async def get_by_id(self, location_id: str) -> Optional[Location]:
        # ("locations", "current") shares the primary prefix; it is not an id.
        if location_id == keys.CURRENT_LOCATION[-1]:
            return None
        return await super().get_by_id(location_id)

    async def get_current(self) -> Optional[Location]:
        data = await self.store.get(keys.CURRENT_LOCATION)
        if data is None:
            return None
        return Location.from_dict(data)

    async def get_all(self) -> list[Location]:
        """All locations, most recently visited first."""
        return await self._scan_index(keys.LOCATIONS_BY_DATE)

    async def count(self) -> int:
        return len(await self.get_all())

    async def update(self, location_id: str, **changes) -> Optional[Location]:
        changes = provided_fields(changes, UPDATABLE_FIELDS, NULLABLE_FIELDS)
        existing = await self.get_by_id(location_id)
        if not existing:
            return None

        if changes.get("is_current") and not existing.is_current:
            await self._clear_current()
        if "state_code" in changes:
            changes["state_code"] = changes["state_code"].upper()
        updated = replace(existing, **changes, updated_at=self.clock())
        return await self._replace(existing, updated)

    async def set_current(self, location_id: str) -> Optional[Location]:
        """Make ``location_id`` the only current location."""
        existing = await self.get_by_id(location_id)
        if not existing:
            return None
        await self._clear_current(keep=location_id)
        updated = replace(existing, is_current=True, updated_at=self.clock())
        return await self._replace(existing, updated)

    async def _clear_current(self, keep: Optional[str] = None) -> None:
        # Read-then-write per holder; two concurrent callers can both pass
        # this step and leave two holders behind.
        for location in await self.get_all():
            if location.is_current and location.id != keep:
                cleared = replace(location, is_current=False, updated_at=self.clock())
                await self._replace(location, cleared)
                logger.info("Cleared current flag on location %s", location.id)
