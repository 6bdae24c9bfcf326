"""Migration discovery.

Scans migration directories and parses filenames of the form
``YYYYMMDDHHmmss-name.py`` into MigrationDescriptors.
"""

import logging
import re
from collections.abc import Callable, Iterable
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from .base import DiscoveryError, MigrationDescriptor

logger = logging.getLogger(__name__)

MIGRATION_PATTERN = re.compile(r"^(\d{14})-(.*)\.py$")
TIMESTAMP_FORMAT = "%Y%m%d%H%M%S"

ListDirectory = Callable[[Path], list[str]]


def list_directory(path: Path) -> list[str]:
    """List entry names of a directory in filesystem order.

    Raises:
        OSError: If the directory is missing or unreadable
    """
    return [entry.name for entry in Path(path).iterdir()]


def parse_migration_filename(filename: str, directory: Path) -> Optional[MigrationDescriptor]:
    """Parse a migration filename.

    Args:
        filename: File name to parse
        directory: Directory the file lives in

    Returns:
        MigrationDescriptor, or None if the name does not follow the pattern

    Raises:
        DiscoveryError: If the timestamp prefix is not a valid date
    """
    match = MIGRATION_PATTERN.match(filename)
    if not match:
        return None

    raw_timestamp, name = match.groups()
    try:
        timestamp = datetime.strptime(raw_timestamp, TIMESTAMP_FORMAT).replace(tzinfo=timezone.utc)
    except ValueError as e:
        raise DiscoveryError(f"Invalid timestamp in migration {directory / filename}: {e}") from e

    return MigrationDescriptor(
        timestamp=timestamp,
        name=name,
        filename=filename,
        directory=Path(directory),
    )


def discover_migrations(
    roots: Iterable[Path],
    list_dir: ListDirectory = list_directory,
) -> list[MigrationDescriptor]:
    """Discover migrations across all roots.

    Every root is listed before any descriptor is built, so an unreadable
    root fails the whole call. Results keep root order, then listing order
    within a root; they are not sorted.

    Args:
        roots: Directories to scan
        list_dir: Directory reader

    Returns:
        Descriptors for every file matching the migration pattern

    Raises:
        DiscoveryError: If any root cannot be read
    """
    listings: list[tuple[Path, list[str]]] = []
    for root in roots:
        root = Path(root)
        try:
            listings.append((root, list_dir(root)))
        except OSError as e:
            raise DiscoveryError(f"Cannot read migrations directory {root}: {e}") from e

    migrations: list[MigrationDescriptor] = []
    for root, filenames in listings:
        for filename in filenames:
            migration = parse_migration_filename(filename, root)
            if migration is not None:
                migrations.append(migration)

    logger.debug(f"Discovered {len(migrations)} migration(s) in {len(listings)} directories")
    return migrations
