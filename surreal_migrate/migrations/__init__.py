"""Migration engine: discovery, ledger, planning and sequential execution.

Usage:
    from surreal_migrate.migrations import MigrationRunner, Direction

    runner = MigrationRunner(conn, roots=["migrations"], relative_to=".")
    result = await runner.run(Direction.UP, target="create_users")
"""

from .base import (
    AppliedRecord,
    ConfigError,
    Direction,
    DiscoveryError,
    ExecutionError,
    LedgerError,
    LedgerInitError,
    MigrationBody,
    MigrationDescriptor,
    MigrationError,
    MigrationLoadError,
    MigrationStatus,
)

from .discovery import (
    MIGRATION_PATTERN,
    discover_migrations,
    list_directory,
    parse_migration_filename,
)

from .loader import (
    MigrationLoader,
    ModuleLoader,
    RegistryLoader,
    load_bodies,
)

from .ledger import MigrationLedger

from .planner import (
    NEVER_APPLIED,
    build_down_plan,
    build_up_plan,
    filter_newer_than,
    filter_until_target,
    sort_migrations,
)

from .runner import (
    BatchState,
    MigrationResult,
    MigrationRunner,
    MigrationStatusEntry,
)

__all__ = [
    # Base
    "AppliedRecord",
    "ConfigError",
    "Direction",
    "DiscoveryError",
    "ExecutionError",
    "LedgerError",
    "LedgerInitError",
    "MigrationBody",
    "MigrationDescriptor",
    "MigrationError",
    "MigrationLoadError",
    "MigrationStatus",
    # Discovery
    "MIGRATION_PATTERN",
    "discover_migrations",
    "list_directory",
    "parse_migration_filename",
    # Loading
    "MigrationLoader",
    "ModuleLoader",
    "RegistryLoader",
    "load_bodies",
    # Ledger
    "MigrationLedger",
    # Planning
    "NEVER_APPLIED",
    "build_down_plan",
    "build_up_plan",
    "filter_newer_than",
    "filter_until_target",
    "sort_migrations",
    # Runner
    "BatchState",
    "MigrationResult",
    "MigrationRunner",
    "MigrationStatusEntry",
]
