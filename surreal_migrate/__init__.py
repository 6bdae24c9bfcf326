"""SurrealDB migration runner.

Discovers timestamped migration files, compares them with the ledger
of applied migrations, and runs the missing ones up or down in order.

Usage:
    from surreal_migrate import migrate, LoggingCallback

    # Apply all pending migrations
    result = await migrate({"op": "up", "db": "my_app"}, callback=LoggingCallback())

    # Undo everything back to (and including) create_users
    result = await migrate({"op": "down", "db": "my_app", "to": "create_users"})

Migration files live in ``migrations/`` (relative to the working
directory by default) and are named ``YYYYMMDDHHmmss-name.py``, each
defining ``async def up(conn)`` and ``async def down(conn)``.

Environment Variables:
    SURREAL_URL: WebSocket URL (ws:// or wss://)
    SURREAL_NAMESPACE: Namespace holding the database
    SURREAL_USER: Authentication username
    SURREAL_PASS: Authentication password
    SURREAL_POOL_SIZE: Connection pool size
    SURREAL_SKIP_SSL_VERIFY: Skip certificate checks for wss:// (true/false)
"""

from .migrations import (
    AppliedRecord,
    BatchState,
    ConfigError,
    Direction,
    DiscoveryError,
    ExecutionError,
    LedgerError,
    LedgerInitError,
    MigrationBody,
    MigrationDescriptor,
    MigrationError,
    MigrationLedger,
    MigrationLoadError,
    MigrationResult,
    MigrationRunner,
    ModuleLoader,
    RegistryLoader,
)

from .config import (
    MigrateOptions,
    validate_options,
)

from .connection import (
    Connection,
    ConnectionError,
    ConnectionPool,
    QueryError,
    close,
    connect,
)

from .events import (
    CallbackGroup,
    EventType,
    LoggingCallback,
    MigrationEvent,
    NullCallback,
    ProgressCallback,
)

from .migrate import migrate

__all__ = [
    # Entry point
    "migrate",
    # Config
    "MigrateOptions",
    "validate_options",
    # Connection
    "Connection",
    "ConnectionPool",
    "ConnectionError",
    "QueryError",
    "connect",
    "close",
    # Events
    "CallbackGroup",
    "EventType",
    "LoggingCallback",
    "MigrationEvent",
    "NullCallback",
    "ProgressCallback",
    # Engine
    "AppliedRecord",
    "BatchState",
    "ConfigError",
    "Direction",
    "DiscoveryError",
    "ExecutionError",
    "LedgerError",
    "LedgerInitError",
    "MigrationBody",
    "MigrationDescriptor",
    "MigrationError",
    "MigrationLedger",
    "MigrationLoadError",
    "MigrationResult",
    "MigrationRunner",
    "ModuleLoader",
    "RegistryLoader",
]
