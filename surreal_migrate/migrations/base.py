"""Base types for the migration engine.

Defines the core abstractions:
- MigrationError and its subclasses: the error taxonomy of a run
- Direction: up or down, fixed for a whole run
- MigrationBody: the up/down capability a migration file provides
- MigrationDescriptor: a migration discovered on disk
- AppliedRecord: a ledger row for an applied migration
- MigrationStatus: pending/applied, for status reports
"""

import os
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Optional, Protocol, runtime_checkable


class MigrationError(Exception):
    """Base exception for migration errors."""

    pass


class ConfigError(MigrationError):
    """Raised when migration options are missing or invalid."""

    pass


class DiscoveryError(MigrationError):
    """Raised when a migration directory cannot be read."""

    pass


class MigrationLoadError(MigrationError):
    """Raised when a migration body cannot be loaded."""

    pass


class LedgerError(MigrationError):
    """Raised when the ledger table cannot be read or written."""

    pass


class LedgerInitError(LedgerError):
    """Raised when the ledger table or its index cannot be created."""

    pass


class Direction(str, Enum):
    """Direction of a migration run."""

    UP = "up"
    DOWN = "down"


class ExecutionError(MigrationError):
    """Raised when a migration body fails.

    Attributes:
        migration: Descriptor of the failing migration
        direction: Direction the migration was run in
        result: The failed batch, holding the steps that ran before this one
    """

    def __init__(
        self,
        migration: "MigrationDescriptor",
        direction: Direction,
        cause: BaseException,
        result: Any = None,
    ):
        self.migration = migration
        self.direction = direction
        self.result = result
        super().__init__(
            f"Migration {migration.filename} failed running {direction.value}: {cause}"
        )


class MigrationStatus(str, Enum):
    """Status of a migration."""

    PENDING = "pending"
    APPLIED = "applied"


@runtime_checkable
class MigrationBody(Protocol):
    """The directional entry points of a migration."""

    async def up(self, conn: Any) -> Any:
        """Apply the migration."""
        ...

    async def down(self, conn: Any) -> Any:
        """Undo the migration."""
        ...


def format_timestamp(timestamp: datetime) -> str:
    """Format a timestamp as ISO-8601 UTC with milliseconds (e.g. 2023-01-01T00:00:00.000Z)."""
    utc = timestamp.astimezone(timezone.utc)
    return utc.strftime("%Y-%m-%dT%H:%M:%S.") + f"{utc.microsecond // 1000:03d}Z"


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 timestamp into an aware UTC datetime."""
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


@dataclass(frozen=True)
class AppliedRecord:
    """Ledger entry for an applied migration."""

    timestamp: str
    name: str
    filename: str
    directory: str

    @property
    def applied_at(self) -> datetime:
        """Timestamp of the migration as a datetime."""
        return parse_timestamp(self.timestamp)

    @property
    def key(self) -> tuple[str, str]:
        return (self.filename, self.directory)

    def to_dict(self) -> dict[str, str]:
        """Convert to a ledger row."""
        return {
            "timestamp": self.timestamp,
            "name": self.name,
            "filename": self.filename,
            "directory": self.directory,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AppliedRecord":
        """Create from a ledger row, ignoring extra fields such as id.

        Raises:
            KeyError: If a required field is missing
            ValueError: If the timestamp is not ISO-8601
        """
        timestamp = data["timestamp"]
        if isinstance(timestamp, datetime):
            timestamp = format_timestamp(timestamp)
        else:
            parse_timestamp(str(timestamp))
        return cls(
            timestamp=str(timestamp),
            name=data["name"],
            filename=data["filename"],
            directory=data.get("directory", ""),
        )


@dataclass(frozen=True)
class MigrationDescriptor:
    """A migration discovered on disk.

    Attributes:
        timestamp: UTC time parsed from the 14 digit filename prefix
        name: Human-readable part of the filename
        filename: File name including extension
        directory: Absolute directory the file was found in
        body: Loaded up/down entry points, only set once selected for execution
    """

    timestamp: datetime
    name: str
    filename: str
    directory: Path
    body: Optional[MigrationBody] = None

    @property
    def key(self) -> tuple[str, Path]:
        """Natural key of the migration across all discovery roots."""
        return (self.filename, self.directory)

    @property
    def source_path(self) -> Path:
        return self.directory / self.filename

    def relative_directory(self, relative_to: "str | Path") -> str:
        """Directory relative to the configured root, as stored in the ledger."""
        return os.path.relpath(self.directory, Path(relative_to).resolve())

    def with_body(self, body: MigrationBody) -> "MigrationDescriptor":
        return replace(self, body=body)

    def to_record(self, relative_to: "str | Path") -> AppliedRecord:
        """Build the ledger record for this migration."""
        return AppliedRecord(
            timestamp=format_timestamp(self.timestamp),
            name=self.name,
            filename=self.filename,
            directory=self.relative_directory(relative_to),
        )

    def __repr__(self) -> str:
        return f"<Migration {self.filename}>"
