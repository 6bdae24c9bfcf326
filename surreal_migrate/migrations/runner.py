"""Migration runner.

Provides:
- Apply pending migrations (up), optionally up to a named target
- Undo applied migrations (down), optionally back to a named target
- Migration status reporting

Migrations in a batch run strictly one at a time. The ledger is only
written once the whole batch has succeeded: a failing step leaves the
ledger exactly as it was, even though earlier steps already took effect.
"""

import inspect
import logging
import time
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Optional

from ..events import EventType, NullCallback, ProgressCallback, emit
from .base import (
    AppliedRecord,
    Direction,
    ExecutionError,
    MigrationDescriptor,
    MigrationStatus,
)
from .discovery import ListDirectory, discover_migrations, list_directory
from .ledger import DEFAULT_TABLE, MigrationLedger
from .loader import MigrationLoader, ModuleLoader, load_bodies
from .planner import build_down_plan, build_up_plan, sort_migrations

logger = logging.getLogger(__name__)


class BatchState(str, Enum):
    """Lifecycle of a migration batch."""

    PLANNED = "planned"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class MigrationResult:
    """Result of a migration batch."""

    direction: Direction
    executed: list[MigrationDescriptor] = field(default_factory=list)
    state: BatchState = BatchState.PLANNED

    @property
    def success(self) -> bool:
        return self.state == BatchState.COMPLETED

    @property
    def names(self) -> list[str]:
        return [m.name for m in self.executed]


@dataclass
class MigrationStatusEntry:
    """Applied/pending status of a discovered migration."""

    migration: MigrationDescriptor
    status: MigrationStatus
    applied_at: Optional[datetime] = None


class MigrationRunner:
    """Runner for executing migration batches against a live connection."""

    def __init__(
        self,
        conn: Any,
        roots: Sequence["str | Path"],
        relative_to: "str | Path",
        table: str = DEFAULT_TABLE,
        loader: Optional[MigrationLoader] = None,
        callback: Optional[ProgressCallback] = None,
        list_dir: ListDirectory = list_directory,
    ):
        """Initialize the runner.

        Args:
            conn: Live connection (or pool) handed to every migration body
            roots: Directories to discover migrations in
            relative_to: Root the ledger directories are stored relative to
            table: Ledger table name
            loader: Supplies migration bodies (imports files if not provided)
            callback: Receives progress events
            list_dir: Directory reader used for discovery
        """
        self.conn = conn
        self.roots = [Path(root) for root in roots]
        self.relative_to = Path(relative_to)
        self.ledger = MigrationLedger(conn, table)
        self.loader = loader or ModuleLoader()
        self.callback = callback or NullCallback()
        self.list_dir = list_dir

    def discover(self) -> list[MigrationDescriptor]:
        """Discover migrations across the configured roots."""
        return discover_migrations(self.roots, self.list_dir)

    async def run(
        self,
        direction: Direction,
        target: Optional[str] = None,
        ignore_timestamp: bool = False,
    ) -> MigrationResult:
        """Run a batch in the given direction.

        Args:
            direction: Up or down
            target: Optional migration name to stop at (inclusive)
            ignore_timestamp: On up, consider every discovered migration

        Returns:
            Result of the completed batch

        Raises:
            MigrationError: On any failure; nothing after the failing step runs
        """
        if Direction(direction) == Direction.UP:
            return await self.up(target=target, ignore_timestamp=ignore_timestamp)
        return await self.down(target=target)

    async def up(
        self,
        target: Optional[str] = None,
        ignore_timestamp: bool = False,
    ) -> MigrationResult:
        """Apply migrations newer than the latest applied one."""
        latest = await self.ledger.get_latest()
        plan = build_up_plan(self.discover(), latest, target, ignore_timestamp)
        plan = load_bodies(plan, self.loader)

        result = await self._execute(Direction.UP, plan)

        await self.ledger.insert([m.to_record(self.relative_to) for m in result.executed])
        emit(
            self.callback,
            EventType.METADATA_SAVED,
            "Saved migrations metadata",
            count=len(result.executed),
        )
        result.state = BatchState.COMPLETED
        return result

    async def down(self, target: Optional[str] = None) -> MigrationResult:
        """Undo applied migrations, newest first."""
        applied = await self.ledger.list_applied()
        plan = build_down_plan(self.discover(), applied, self.relative_to, target)
        plan = load_bodies(plan, self.loader)

        result = await self._execute(Direction.DOWN, plan)

        await self.ledger.delete([m.to_record(self.relative_to) for m in result.executed])
        emit(
            self.callback,
            EventType.METADATA_CLEARED,
            "Cleared migrations table",
            count=len(result.executed),
        )
        result.state = BatchState.COMPLETED
        return result

    async def _execute(
        self,
        direction: Direction,
        plan: list[MigrationDescriptor],
    ) -> MigrationResult:
        """Run every migration of the plan in order, stopping at the first failure."""
        result = MigrationResult(direction=direction)

        if not plan:
            logger.info(f"No migrations to run {direction.value}")

        result.state = BatchState.RUNNING
        for migration in plan:
            relative_dir = migration.relative_directory(self.relative_to)
            entry_point = getattr(migration.body, direction.value)

            start_time = time.time()
            try:
                outcome = entry_point(self.conn)
                if inspect.isawaitable(outcome):
                    await outcome
            except Exception as e:
                result.state = BatchState.FAILED
                logger.error(
                    f"Failed to run migration {migration.filename} {direction.value}: {e}"
                )
                raise ExecutionError(migration, direction, e, result=result) from e

            execution_time_ms = int((time.time() - start_time) * 1000)
            result.executed.append(migration)
            logger.info(
                f"{'Applied' if direction == Direction.UP else 'Rolled back'} "
                f"{migration.filename} in {execution_time_ms}ms"
            )
            emit(
                self.callback,
                EventType.MIGRATION_EXECUTED,
                f"Executed migration {migration.name} {direction.value} "
                f"(file: {migration.filename}, dir: {relative_dir})",
                name=migration.name,
                direction=direction.value,
                filename=migration.filename,
                directory=relative_dir,
                execution_time_ms=execution_time_ms,
            )

        return result

    async def get_status(self) -> list[MigrationStatusEntry]:
        """Get status of every discovered migration, oldest first."""
        applied: dict[tuple[str, str], AppliedRecord] = {
            record.key: record for record in await self.ledger.list_applied()
        }

        entries = []
        for migration in sort_migrations(self.discover()):
            record = applied.get((migration.filename, migration.relative_directory(self.relative_to)))
            if record is not None:
                entries.append(
                    MigrationStatusEntry(migration, MigrationStatus.APPLIED, record.applied_at)
                )
            else:
                entries.append(MigrationStatusEntry(migration, MigrationStatus.PENDING))
        return entries
