"""In-memory stand-ins for a live database and for migration bodies.

FakeConnection understands exactly the statements the ledger issues and
records every other statement, so migration bodies can write through it.
"""

from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from surreal_migrate.connection import QueryError
from surreal_migrate.migrations.base import MigrationDescriptor


class FakeConnection:
    """Minimal async connection keeping ledger rows in memory."""

    def __init__(self, rows: Optional[list[dict[str, Any]]] = None):
        self.rows: dict[str, list[dict[str, Any]]] = {}
        if rows:
            self.rows["_migrations"] = [dict(row) for row in rows]
        self.statements: list[str] = []
        self.fail_on: Optional[str] = None
        self.database_exists = True
        self.ensure_calls = 0
        self.wait_calls: list[Optional[float]] = []
        self.closed = False

    def ledger(self, table: str = "_migrations") -> list[dict[str, Any]]:
        return self.rows.get(table, [])

    async def query(self, sql: str, params: Optional[dict[str, Any]] = None) -> list[dict[str, Any]]:
        statement = sql.strip()
        if self.fail_on and self.fail_on in statement:
            raise QueryError(f"Query failed: {statement}")

        if statement.startswith("DEFINE TABLE IF NOT EXISTS"):
            table = statement.split()[5]
            self.rows.setdefault(table, [])
            return []

        if statement.startswith("DEFINE INDEX IF NOT EXISTS"):
            return []

        if statement.startswith("SELECT * FROM"):
            table = statement.split()[3]
            return sorted(self.rows.get(table, []), key=lambda r: r["timestamp"], reverse=True)

        if statement.startswith("DELETE") and params is not None:
            table = statement.split()[1]
            self.rows[table] = [
                row
                for row in self.rows.get(table, [])
                if (row["filename"], row["directory"]) != (params["filename"], params["directory"])
            ]
            return []

        self.statements.append(statement)
        return []

    async def create(self, table: str, data: dict[str, Any]) -> dict[str, Any]:
        if self.fail_on and self.fail_on == "create":
            raise QueryError(f"Create failed: {table}")
        row = {"id": f"{table}:{len(self.rows.get(table, [])) + 1}", **data}
        self.rows.setdefault(table, []).append(row)
        return row

    async def ensure_database(self) -> bool:
        self.ensure_calls += 1
        if self.database_exists:
            return False
        self.database_exists = True
        return True

    async def wait_for_writes(self, timeout: Optional[float] = None) -> None:
        self.wait_calls.append(timeout)

    async def close(self) -> None:
        self.closed = True


class RecordingBody:
    """Migration body that logs its calls and can be told to fail."""

    def __init__(self, name: str, log: list[str], fail_on: Optional[str] = None):
        self.name = name
        self.log = log
        self.fail_on = fail_on

    async def up(self, conn: Any) -> None:
        if self.fail_on == "up":
            raise RuntimeError(f"{self.name} up exploded")
        self.log.append(f"up:{self.name}")
        await conn.query(f"CREATE {self.name}")

    async def down(self, conn: Any) -> None:
        if self.fail_on == "down":
            raise RuntimeError(f"{self.name} down exploded")
        self.log.append(f"down:{self.name}")
        await conn.query(f"REMOVE {self.name}")


def make_migration(
    stamp: str,
    name: str,
    directory: "str | Path" = "/app/migrations",
) -> MigrationDescriptor:
    """Build a descriptor from a 14 digit timestamp string."""
    return MigrationDescriptor(
        timestamp=datetime.strptime(stamp, "%Y%m%d%H%M%S").replace(tzinfo=timezone.utc),
        name=name,
        filename=f"{stamp}-{name}.py",
        directory=Path(directory),
    )


def write_migration_files(directory: Path, filenames: list[str]) -> None:
    """Create empty migration files in directory."""
    directory.mkdir(parents=True, exist_ok=True)
    for filename in filenames:
        (directory / filename).write_text("")
