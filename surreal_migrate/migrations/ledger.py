"""Applied-state ledger.

Persists one row per applied migration in a SurrealDB table. The ledger
is the only source of truth for whether a migration has run.
"""

import asyncio
import logging
import re
from collections.abc import Sequence
from typing import Any, Optional

from ..connection import QueryError
from .base import AppliedRecord, ConfigError, LedgerError, LedgerInitError

logger = logging.getLogger(__name__)

DEFAULT_TABLE = "_migrations"

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

# Issued one per query: the client only reports the first statement of a call
LEDGER_TABLE_SQL = (
    "DEFINE TABLE IF NOT EXISTS {table} SCHEMALESS",
    "DEFINE INDEX IF NOT EXISTS {table}_timestamp ON TABLE {table} COLUMNS timestamp",
)


class MigrationLedger:
    """Reads and writes applied-migration records.

    Inserts and deletes are issued as independent per-record statements,
    never as a single transaction.
    """

    def __init__(self, conn: Any, table: str = DEFAULT_TABLE):
        """Initialize the ledger.

        Args:
            conn: Live connection (or pool) exposing query() and create()
            table: Ledger table name

        Raises:
            ConfigError: If table is not a plain identifier
        """
        if not _IDENTIFIER.match(table):
            raise ConfigError(f"Invalid ledger table name: {table!r}")
        self.conn = conn
        self.table = table

    async def ensure_table(self) -> None:
        """Create the ledger table and its timestamp index if absent."""
        for statement in LEDGER_TABLE_SQL:
            try:
                await self.conn.query(statement.format(table=self.table))
            except QueryError as e:
                raise LedgerInitError(f"Cannot create ledger table {self.table}: {e}") from e

    async def list_applied(self) -> list[AppliedRecord]:
        """Get all applied migrations, newest first."""
        await self.ensure_table()

        try:
            rows = await self.conn.query(f"SELECT * FROM {self.table} ORDER BY timestamp DESC")
        except QueryError as e:
            raise LedgerError(f"Cannot read ledger table {self.table}: {e}") from e

        try:
            return [AppliedRecord.from_dict(row) for row in rows or []]
        except (KeyError, TypeError, ValueError) as e:
            raise LedgerError(f"Malformed row in ledger table {self.table}: {e}") from e

    async def get_latest(self) -> Optional[AppliedRecord]:
        """Get the most recently applied migration, if any."""
        applied = await self.list_applied()
        return applied[0] if applied else None

    async def insert(self, records: Sequence[AppliedRecord]) -> None:
        """Persist records one after another."""
        for record in records:
            try:
                await self.conn.create(self.table, record.to_dict())
            except QueryError as e:
                raise LedgerError(f"Cannot record migration {record.filename}: {e}") from e
            logger.debug(f"Recorded migration {record.filename} in {self.table}")

    async def delete(self, records: Sequence[AppliedRecord]) -> None:
        """Remove records; each deletion is independent of the others."""
        await asyncio.gather(*(self._delete_one(record) for record in records))

    async def _delete_one(self, record: AppliedRecord) -> None:
        try:
            await self.conn.query(
                f"DELETE {self.table} WHERE filename = $filename AND directory = $directory",
                {"filename": record.filename, "directory": record.directory},
            )
        except QueryError as e:
            raise LedgerError(f"Cannot remove migration {record.filename}: {e}") from e
        logger.debug(f"Removed migration {record.filename} from {self.table}")
