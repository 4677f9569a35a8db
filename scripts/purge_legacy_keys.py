"""
One-shot removal of key prefixes left over from earlier storage layouts.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from ministry.dependencies import get_store
from ministry.migration import LEGACY_PREFIXES, MigrationService, format_prefix, parse_prefix

logger = logging.getLogger(__name__)


def main() -> int:
    parser = argparse.ArgumentParser(description="Purge legacy key prefixes")
    parser.add_argument(
        "--prefix",
        action="append",
        default=[],
        help="Prefix to purge as a/b/c (repeatable; defaults to the legacy list)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Count matching keys without deleting them",
    )
    parser.add_argument(
        "--yes",
        action="store_true",
        help="Skip the confirmation prompt",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(name)s %(levelname)s %(asctime)s %(message)s",
        datefmt="%m/%d/%Y %I:%M:%S %p",
    )

    try:
        prefixes = [parse_prefix(p) for p in args.prefix] or LEGACY_PREFIXES
    except ValueError as exc:
        parser.error(str(exc))

    if not args.dry_run and not args.yes:
        listed = ", ".join(format_prefix(p) for p in prefixes)
        answer = input(f"Delete every key under [{listed}]? [y/N] ")
        if answer.strip().lower() not in ("y", "yes"):
            logger.info("Aborted")
            return 1

    counts = asyncio.run(MigrationService(get_store()).purge(prefixes, dry_run=args.dry_run))
    for prefix, count in counts.items():
        print(f"{prefix}: {count}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
