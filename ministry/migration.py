"""
One-shot purge of key prefixes left behind by earlier storage layouts.
"""

from __future__ import annotations

import logging
from typing import Iterable

from ministry.store import Key, KeyValueStore

logger = logging.getLogger(__name__)

# Admin accounts are now configured through settings, email config moved to
# ("settings", "email") and testimonial keys to ("testimonial_keys",).
LEGACY_PREFIXES: list[Key] = [
    ("admin", "users"),
    ("email_config",),
    ("testimonial", "keys"),
]


def format_prefix(prefix: Key) -> str:
    return "/".join(str(part) for part in prefix)


def parse_prefix(text: str) -> Key:
    """"a/b/3" -> ("a", "b", 3); numeric parts become integers."""
    parts = [p for p in text.strip("/").split("/") if p]
    if not parts:
        raise ValueError("Prefix must not be empty")
    return tuple(int(p) if p.lstrip("-").isdigit() else p for p in parts)


class MigrationService:
    def __init__(self, store: KeyValueStore):
        self.store = store

    async def purge(
        self, prefixes: Iterable[Key] = LEGACY_PREFIXES, dry_run: bool = False
    ) -> dict[str, int]:
        """Delete every key under each prefix; returns counts per prefix."""
        counts: dict[str, int] = {}
        for prefix in prefixes:
            if not prefix:
                raise ValueError("Refusing to purge the empty prefix")
            count = 0
            async for key, _ in self.store.scan(prefix):
                if not dry_run:
                    await self.store.delete(key)
                count += 1
            counts[format_prefix(prefix)] = count
            if count:
                logger.info(
                    "%s %d entries under [%s]",
                    "Would delete" if dry_run else "Deleted",
                    count,
                    format_prefix(prefix),
                )
        total = sum(counts.values())
        if total == 0:
            logger.info("No legacy data found")
        return counts
