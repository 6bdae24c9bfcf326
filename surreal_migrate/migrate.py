"""End-to-end migration run.

Validates options, connects, makes sure the database exists and accepts
writes, runs the requested batch, then closes the connection.

Usage:
    from surreal_migrate import migrate, LoggingCallback

    result = await migrate(
        {"op": "up", "db": "my_app", "to": "create_users"},
        callback=LoggingCallback(),
    )
"""

import logging
from typing import Any, Optional

from .config import MigrateOptions, validate_options
from .connection import MigrationConnection, connect
from .events import EventType, NullCallback, ProgressCallback, emit
from .migrations.loader import MigrationLoader
from .migrations.runner import MigrationResult, MigrationRunner

logger = logging.getLogger(__name__)


async def migrate(
    options: "MigrateOptions | dict[str, Any]",
    connection: Optional[MigrationConnection] = None,
    callback: Optional[ProgressCallback] = None,
    loader: Optional[MigrationLoader] = None,
) -> MigrationResult:
    """Run migrations up or down against the configured database.

    Errors propagate unchanged and stop the run where they happen; the
    connection is then left as it is.

    Args:
        options: MigrateOptions or a raw mapping of option values
        connection: Already-open connection or pool to use instead of connecting
        callback: Receives progress events
        loader: Supplies migration bodies (imports migration files if not provided)

    Returns:
        Result of the executed batch
    """
    callback = callback or NullCallback()

    emit(callback, EventType.VALIDATING, "Validating options")
    options = validate_options(options)
    emit(callback, EventType.VALIDATED, "Options validated", op=options.op.value, db=options.db)

    emit(callback, EventType.CONNECTING, "Connecting to SurrealDB", url=options.url)
    handle = connection if connection is not None else await connect(options)
    emit(callback, EventType.CONNECTED, "Connected to SurrealDB", db=options.db)

    if await handle.ensure_database():
        emit(callback, EventType.DATABASE_CREATED, f"Created db {options.db}", db=options.db)
    await handle.wait_for_writes(options.wait_timeout)

    emit(callback, EventType.MIGRATIONS_STARTING, "Executing migrations", op=options.op.value)
    runner = MigrationRunner(
        handle,
        roots=options.roots,
        relative_to=options.relative_to,
        table=options.migrations_table,
        loader=loader,
        callback=callback,
    )
    result = await runner.run(options.op, target=options.to, ignore_timestamp=options.ignore_timestamp)

    emit(callback, EventType.CLOSING, "Closing connection")
    if options.keep_connection_open:
        logger.debug("Leaving connection open")
    else:
        await handle.close()
        emit(callback, EventType.CONNECTION_CLOSED, "Connection closed")

    return result
