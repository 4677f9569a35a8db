"""
Primary-record plus secondary-index maintenance shared by every entity
repository.

A repository stores each record under ``primary_prefix + (id,)`` and a
denormalized copy under every index whose predicate the record satisfies.
Index writes are separate store calls (the store has no multi-key commit),
so a failure part way through an update can leave an index stale; callers
do not retry.
"""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass
from typing import Callable, Generic, Iterable, Optional, Sequence, Type, TypeVar

from ministry.records import Record
from ministry.store import Key, KeyValueStore

logger = logging.getLogger(__name__)

R = TypeVar("R", bound=Record)


@dataclass(frozen=True)
class Index(Generic[R]):
    """A derived key for a record, present only while ``applies`` holds."""

    name: str
    key: Callable[[R], Key]
    applies: Callable[[R], bool] = lambda record: True

    def key_for(self, record: R) -> Optional[Key]:
        return self.key(record) if self.applies(record) else None


@dataclass
class Page(Generic[R]):
    items: list[R]
    total: int
    pages: int


def paginate(items: Sequence[R], page: int, per_page: int) -> Page[R]:
    total = len(items)
    pages = math.ceil(total / per_page) if per_page > 0 else 0
    start = max(page - 1, 0) * per_page
    return Page(items=list(items[start : start + per_page]), total=total, pages=pages)


class IndexedRepository(Generic[R]):
    """CRUD plumbing for one record type and its secondary indexes."""

    record_type: Type[R]
    primary_prefix: Key
    indexes: tuple[Index[R], ...] = ()

    def __init__(
        self, store: KeyValueStore, clock: Callable[[], float] = time.time
    ):
        self.store = store
        self.clock = clock

    def primary_key(self, record_id: str) -> Key:
        return self.primary_prefix + (record_id,)

    def index(self, name: str) -> Index[R]:
        for index in self.indexes:
            if index.name == name:
                return index
        raise KeyError(name)

    async def get_by_id(self, record_id: str) -> Optional[R]:
        data = await self.store.get(self.primary_key(record_id))
        if data is None:
            return None
        return self.record_type.from_dict(data)

    async def delete(self, record_id: str) -> bool:
        existing = await self.get_by_id(record_id)
        if not existing:
            return False
        await self._remove(existing)
        return True

    async def _insert(self, record: R) -> R:
        value = record.as_dict()
        await self.store.set(self.primary_key(record.id), value)
        for index in self.indexes:
            key = index.key_for(record)
            if key is not None:
                await self.store.set(key, value)
        return record

    async def _replace(self, existing: R, updated: R) -> R:
        value = updated.as_dict()
        await self.store.set(self.primary_key(updated.id), value)
        for index in self.indexes:
            old_key = index.key_for(existing)
            new_key = index.key_for(updated)
            if old_key is not None and old_key != new_key:
                logger.debug(
                    "Dropping stale %s entry %r for %s", index.name, old_key, updated.id
                )
                await self.store.delete(old_key)
            if new_key is not None:
                await self.store.set(new_key, value)
        return updated

    async def _remove(self, record: R) -> None:
        await self.store.delete(self.primary_key(record.id))
        for index in self.indexes:
            key = index.key_for(record)
            if key is not None:
                await self.store.delete(key)

    async def _scan_index(
        self,
        prefix: Key,
        *,
        limit: Optional[int] = None,
        newest_first: bool = True,
        where: Optional[Callable[[R], bool]] = None,
    ) -> list[R]:
        records: list[R] = []
        async for _, data in self.store.scan(prefix, reverse=newest_first):
            record = self.record_type.from_dict(data)
            if where is not None and not where(record):
                continue
            records.append(record)
            if limit is not None and len(records) >= limit:
                break
        return records


def provided_fields(
    changes: dict, allowed: Iterable[str], nullable: Iterable[str] = ()
) -> dict:
    """
    Validate the fields an update provides. Names outside ``allowed`` are
    rejected; None clears a field in ``nullable`` and is rejected elsewhere.
    """
    unknown = set(changes) - set(allowed)
    if unknown:
        raise ValueError(f"Unknown field(s): {', '.join(sorted(unknown))}")
    cleared = sorted(k for k, v in changes.items() if v is None and k not in nullable)
    if cleared:
        raise ValueError(f"Field(s) cannot be empty: {', '.join(cleared)}")
    return dict(changes)
