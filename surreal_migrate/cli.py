"""CLI for database migrations.

Usage:
    surreal-migrate up --db my_app
    surreal-migrate up --db my_app --to create_users
    surreal-migrate down --db my_app --to create_users
    surreal-migrate status --db my_app
    surreal-migrate create add_users_table
"""

import argparse
import asyncio
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from textwrap import dedent
from typing import Any

from .config import MigrateOptions, validate_options
from .connection import connect
from .events import MigrationEvent
from .migrate import migrate
from .migrations.base import Direction, MigrationError, MigrationStatus
from .migrations.discovery import MIGRATION_PATTERN
from .migrations.runner import MigrationRunner

logger = logging.getLogger(__name__)

MIGRATION_TEMPLATE = '''"""Migration: {title}."""


async def up(conn):
    """Apply the migration."""
    # Example:
    # await conn.query("DEFINE TABLE IF NOT EXISTS users SCHEMAFULL")
    pass


async def down(conn):
    """Undo the migration."""
    # Example:
    # await conn.query("REMOVE TABLE IF EXISTS users")
    pass
'''


def setup_logging(verbose: bool = False) -> None:
    """Configure logging for CLI."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


class PrintCallback:
    """Prints progress events to stdout."""

    def on_event(self, event: MigrationEvent) -> None:
        print(event.message)


def build_options(args: argparse.Namespace, op: Direction) -> MigrateOptions:
    """Build migration options from parsed arguments."""
    values: dict[str, Any] = {
        "op": op,
        "db": args.db,
        "migrations_table": args.table,
        "migrations_directory": args.dir,
        "additional_migrations_directories": args.additional_dir or [],
        "pool": args.pool,
    }
    for name in ("url", "namespace", "user", "password", "token", "relative_to", "pool_size"):
        value = getattr(args, name)
        if value is not None:
            values[name] = value

    if op == Direction.UP:
        values["ignore_timestamp"] = getattr(args, "ignore_timestamp", False)
    values["to"] = getattr(args, "to", None)

    return MigrateOptions(**values)


async def cmd_migrate(args: argparse.Namespace) -> int:
    """Run migrations up or down."""
    options = build_options(args, Direction(args.command))
    result = await migrate(options, callback=PrintCallback())

    if not result.executed:
        print("No migrations to run")
        return 0

    verb = "Applied" if result.direction == Direction.UP else "Rolled back"
    print(f"{verb} {len(result.executed)} migration(s):")
    for migration in result.executed:
        print(f"  {'+' if result.direction == Direction.UP else '-'} {migration.filename}")

    return 0


async def cmd_status(args: argparse.Namespace) -> int:
    """Show migration status."""
    options = validate_options(build_options(args, Direction.UP))

    conn = await connect(options)
    try:
        runner = MigrationRunner(
            conn,
            roots=options.roots,
            relative_to=options.relative_to,
            table=options.migrations_table,
        )
        entries = await runner.get_status()
    finally:
        await conn.close()

    if not entries:
        print("No migrations found")
        return 0

    print(f"Migration status for database: {options.db}")
    print("-" * 60)

    for entry in entries:
        status_icon = "[x]" if entry.status == MigrationStatus.APPLIED else "[ ]"
        line = f"{status_icon} {entry.migration.filename}"
        if entry.applied_at:
            line += f" ({entry.applied_at.strftime('%Y-%m-%d %H:%M')})"
        print(line)

    print("-" * 60)

    applied = sum(1 for e in entries if e.status == MigrationStatus.APPLIED)
    pending = len(entries) - applied
    print(f"Total: {len(entries)} | Applied: {applied} | Pending: {pending}")

    return 0


def cmd_create(args: argparse.Namespace) -> int:
    """Create a new migration file."""
    name = args.name.strip().lower().replace(" ", "_")
    timestamp = datetime.now(timezone.utc).strftime("%Y%m%d%H%M%S")
    filename = f"{timestamp}-{name}.py"

    if not MIGRATION_PATTERN.match(filename) or any(sep in name for sep in ("/", "\\")):
        print(f"Error: Invalid migration name: {args.name}")
        return 1

    directory = Path(args.relative_to or ".") / args.dir
    directory.mkdir(parents=True, exist_ok=True)

    filepath = directory / filename
    if filepath.exists():
        print(f"Error: Migration file already exists: {filepath}")
        return 1

    filepath.write_text(MIGRATION_TEMPLATE.format(title=name.replace("_", " ").title()))
    print(f"Created migration: {filepath}")

    return 0


def add_connection_arguments(parser: argparse.ArgumentParser) -> None:
    """Add options shared by commands that talk to the database."""
    parser.add_argument("--db", required=True, help="Database name")
    parser.add_argument("--url", help="SurrealDB URL (default: $SURREAL_URL)")
    parser.add_argument("--namespace", help="SurrealDB namespace (default: $SURREAL_NAMESPACE)")
    parser.add_argument("--user", help="Username (default: $SURREAL_USER)")
    parser.add_argument("--password", help="Password (default: $SURREAL_PASS)")
    parser.add_argument("--token", help="Auth token, instead of user/password")
    parser.add_argument(
        "--table",
        default="_migrations",
        help="Table holding applied migrations (default: _migrations)",
    )
    parser.add_argument(
        "--additional-dir",
        action="append",
        metavar="DIR",
        help="Additional directory to read migrations from (repeatable)",
    )
    parser.add_argument("--pool", action="store_true", help="Use a connection pool")
    parser.add_argument("--pool-size", type=int, help="Connection pool size")


def add_location_arguments(parser: argparse.ArgumentParser) -> None:
    """Add options locating the migration files."""
    parser.add_argument(
        "--dir",
        default="migrations",
        help="Migrations directory (default: migrations)",
    )
    parser.add_argument(
        "--relative-to",
        help="Root the migration directories are resolved against (default: cwd)",
    )


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser."""
    parser = argparse.ArgumentParser(
        prog="surreal-migrate",
        description="SurrealDB schema and data migrations",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=dedent("""
            Examples:
              # Apply all pending migrations
              surreal-migrate up --db my_app

              # Apply up to and including create_users
              surreal-migrate up --db my_app --to create_users

              # Undo every migration back to and including create_users
              surreal-migrate down --db my_app --to create_users

              # Check status
              surreal-migrate status --db my_app

              # Create new migration
              surreal-migrate create add_user_preferences
        """),
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose output",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    up_parser = subparsers.add_parser("up", help="Apply pending migrations")
    add_connection_arguments(up_parser)
    add_location_arguments(up_parser)
    up_parser.add_argument("--to", help="Name of the last migration to apply")
    up_parser.add_argument(
        "--ignore-timestamp",
        action="store_true",
        help="Consider every migration, not only those newer than the latest applied",
    )

    down_parser = subparsers.add_parser("down", help="Undo applied migrations")
    add_connection_arguments(down_parser)
    add_location_arguments(down_parser)
    down_parser.add_argument("--to", help="Name of the last migration to undo")

    status_parser = subparsers.add_parser("status", help="Show migration status")
    add_connection_arguments(status_parser)
    add_location_arguments(status_parser)

    create_parser_cmd = subparsers.add_parser("create", help="Create a new migration file")
    create_parser_cmd.add_argument("name", help="Migration name (e.g., add_user_preferences)")
    add_location_arguments(create_parser_cmd)

    return parser


async def async_main(args: argparse.Namespace) -> int:
    """Async main entry point."""
    try:
        if args.command in ("up", "down"):
            return await cmd_migrate(args)
        elif args.command == "status":
            return await cmd_status(args)
    except MigrationError as e:
        print(f"Error: {e}")
        return 1

    print(f"Unknown command: {args.command}")
    return 1


def main(argv: "list[str] | None" = None) -> None:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    setup_logging(args.verbose)

    if args.command == "create":
        exit_code = cmd_create(args)
    else:
        exit_code = asyncio.run(async_main(args))
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
