"""Execution set builder.

Pure functions computing which migrations a run executes and in what
order. Nothing here touches the database or the filesystem.
"""

import logging
from collections.abc import Sequence
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from .base import AppliedRecord, DiscoveryError, Direction, MigrationDescriptor

logger = logging.getLogger(__name__)

# Latest-applied marker used when the ledger is empty
NEVER_APPLIED = datetime(1900, 1, 1, tzinfo=timezone.utc)


def sort_migrations(
    migrations: Sequence[MigrationDescriptor],
    descending: bool = False,
) -> list[MigrationDescriptor]:
    """Sort migrations by timestamp. Ties keep their input order."""
    return sorted(migrations, key=lambda m: m.timestamp, reverse=descending)


def filter_newer_than(
    migrations: Sequence[MigrationDescriptor],
    reference: datetime,
    ignore_timestamp: bool = False,
) -> list[MigrationDescriptor]:
    """Keep migrations strictly newer than reference (all if ignore_timestamp)."""
    if ignore_timestamp:
        return list(migrations)
    return [m for m in migrations if m.timestamp > reference]


def filter_until_target(
    migrations: Sequence[MigrationDescriptor],
    target: Optional[str],
    direction: Direction,
) -> list[MigrationDescriptor]:
    """Truncate ascending migrations at a named target, inclusive.

    Up resolves the target against the newest migration of that name and
    keeps everything at or before it. Down resolves it against the oldest
    and keeps everything at or after it.

    Returns:
        Truncated list; empty if target is set but not found
    """
    if not target:
        return list(migrations)

    if direction == Direction.UP:
        search = reversed(migrations)
    else:
        search = iter(migrations)

    limit = next((m for m in search if m.name == target), None)
    if limit is None:
        logger.info(f"Target migration '{target}' not found, nothing to run")
        return []

    if direction == Direction.UP:
        return [m for m in migrations if m.timestamp <= limit.timestamp]
    return [m for m in migrations if m.timestamp >= limit.timestamp]


def build_up_plan(
    discovered: Sequence[MigrationDescriptor],
    latest: Optional[AppliedRecord],
    target: Optional[str] = None,
    ignore_timestamp: bool = False,
) -> list[MigrationDescriptor]:
    """Compute migrations to apply, oldest first.

    Args:
        discovered: Every migration found on disk
        latest: Most recently applied ledger record, or None
        target: Optional name of the last migration to apply
        ignore_timestamp: Treat every discovered migration as a candidate

    Returns:
        Ascending list of migrations to run up
    """
    reference = latest.applied_at if latest else NEVER_APPLIED
    candidates = filter_newer_than(discovered, reference, ignore_timestamp)
    candidates = sort_migrations(candidates)
    return filter_until_target(candidates, target, Direction.UP)


def build_down_plan(
    discovered: Sequence[MigrationDescriptor],
    applied: Sequence[AppliedRecord],
    relative_to: "str | Path",
    target: Optional[str] = None,
) -> list[MigrationDescriptor]:
    """Compute migrations to undo, newest first.

    Args:
        discovered: Every migration found on disk
        applied: Every ledger record
        relative_to: Root the ledger directories are relative to
        target: Optional name of the last migration to undo

    Returns:
        Descending list of migrations to run down

    Raises:
        DiscoveryError: If an applied migration has no file on disk
    """
    on_disk = {(m.filename, m.relative_directory(relative_to)): m for m in discovered}

    # A migration re-applied with ignore_timestamp has several rows; undo it once
    matched: dict[tuple[str, Path], MigrationDescriptor] = {}
    for record in applied:
        migration = on_disk.get(record.key)
        if migration is None:
            raise DiscoveryError(
                f"Applied migration {record.filename} (dir: {record.directory}) not found on disk"
            )
        matched.setdefault(migration.key, migration)

    candidates = sort_migrations(list(matched.values()))
    candidates = filter_until_target(candidates, target, Direction.DOWN)
    return sort_migrations(candidates, descending=True)
