"""Migration run configuration.

Environment-backed defaults for the SurrealDB connection settings,
plus the options that shape a single migration run.
"""

import os
import re
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Optional

from .migrations.base import ConfigError, Direction

TABLE_NAME_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

# camelCase option names accepted for compatibility with existing configs
OPTION_ALIASES = {
    "migrationsTable": "migrations_table",
    "ignoreTimestamp": "ignore_timestamp",
    "migrationsDirectory": "migrations_directory",
    "additionalMigrationsDirectories": "additional_migrations_directories",
    "relativeTo": "relative_to",
    "authKey": "token",
    "dontCloseConnectionAfterMigrations": "keep_connection_open",
}


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() == "true"


@dataclass
class MigrateOptions:
    """Options for a migration run.

    Attributes:
        op: Direction to migrate in
        db: Database name to migrate
        to: Optional migration name to stop at (inclusive)
        migrations_table: Ledger table holding applied migrations
        ignore_timestamp: Consider every discovered migration on "up"
        migrations_directory: Primary directory holding migration files
        additional_migrations_directories: Extra directories to read migrations from
        relative_to: Root path the migration directories are resolved against
        url: SurrealDB WebSocket URL (ws:// or wss://)
        namespace: SurrealDB namespace
        user: Authentication username
        username: Alias of user (mutually exclusive with it)
        password: Authentication password
        token: Pre-issued auth token (mutually exclusive with password)
        pool: Use a connection pool instead of a single connection
        pool_size: Number of pooled connections
        connect_timeout: Connection timeout in seconds
        query_timeout: Query timeout in seconds
        wait_timeout: Maximum wait for the database to accept writes
        retry_delay: Delay between write-availability checks in seconds
        skip_ssl_verify: Disable certificate checks for wss:// URLs
        keep_connection_open: Leave the connection open after migrating
    """

    op: Optional[Direction] = None
    db: Optional[str] = None
    to: Optional[str] = None
    migrations_table: str = "_migrations"
    ignore_timestamp: bool = False
    migrations_directory: str = "migrations"
    additional_migrations_directories: list[str] = field(default_factory=list)
    relative_to: str = field(default_factory=os.getcwd)
    url: str = field(default_factory=lambda: os.getenv("SURREAL_URL", "ws://localhost:8000/rpc"))
    namespace: str = field(default_factory=lambda: os.getenv("SURREAL_NAMESPACE", "migrations"))
    user: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None
    token: Optional[str] = None
    pool: bool = False
    pool_size: int = field(default_factory=lambda: int(os.getenv("SURREAL_POOL_SIZE", "5")))
    connect_timeout: float = 10.0
    query_timeout: float = 30.0
    wait_timeout: float = 20.0
    retry_delay: float = 0.5
    skip_ssl_verify: bool = field(default_factory=lambda: _env_bool("SURREAL_SKIP_SSL_VERIFY"))
    keep_connection_open: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MigrateOptions":
        """Build options from a raw mapping.

        Args:
            data: Option values keyed by field name or camelCase alias

        Returns:
            MigrateOptions with defaults filled in (not yet validated)

        Raises:
            ConfigError: If data is not a mapping or has unknown keys
        """
        if not isinstance(data, dict):
            raise ConfigError(f"Options must be a mapping, got {type(data).__name__}")

        known = {f.name for f in fields(cls)}
        values: dict[str, Any] = {}
        unknown = []
        for key, value in data.items():
            name = OPTION_ALIASES.get(key, key)
            if name not in known:
                unknown.append(key)
                continue
            values[name] = value

        if unknown:
            raise ConfigError(f"Unknown options: {', '.join(sorted(unknown))}")

        return cls(**values)

    @property
    def login(self) -> str:
        """Username to sign in with (falls back to SURREAL_USER)."""
        return self.username or self.user or os.getenv("SURREAL_USER", "root")

    @property
    def secret(self) -> str:
        """Password to sign in with (falls back to SURREAL_PASS)."""
        return self.password or os.getenv("SURREAL_PASS", "root")  # Default for local development

    @property
    def roots(self) -> list[Path]:
        """Migration directories resolved against relative_to, primary first."""
        base = Path(self.relative_to)
        directories = [self.migrations_directory, *self.additional_migrations_directories]
        return [(base / directory).resolve() for directory in directories]

    @property
    def is_secure(self) -> bool:
        """Check if using secure WebSocket connection."""
        return self.url.startswith("wss://")

    def validate(self) -> list[str]:
        """Validate options.

        Returns:
            List of validation errors (empty if valid)
        """
        errors = []

        if self.op is None:
            errors.append("op is required")
        elif not isinstance(self.op, Direction):
            try:
                self.op = Direction(self.op)
            except ValueError:
                errors.append(f"op must be one of 'up', 'down' (got {self.op!r})")

        if not self.db or not isinstance(self.db, str):
            errors.append("db is required")

        if self.to is not None and not isinstance(self.to, str):
            errors.append("to must be a string")

        if not isinstance(self.migrations_table, str) or not TABLE_NAME_PATTERN.match(
            self.migrations_table
        ):
            errors.append(f"migrations_table must be a plain identifier (got {self.migrations_table!r})")

        for name in ("ignore_timestamp", "pool", "skip_ssl_verify", "keep_connection_open"):
            if not isinstance(getattr(self, name), bool):
                errors.append(f"{name} must be a boolean")

        if not isinstance(self.migrations_directory, str) or not self.migrations_directory:
            errors.append("migrations_directory must be a non-empty string")

        if self.additional_migrations_directories is None:
            self.additional_migrations_directories = []
        if not isinstance(self.additional_migrations_directories, list) or not all(
            isinstance(d, str) for d in self.additional_migrations_directories
        ):
            errors.append("additional_migrations_directories must be a list of strings")

        if not self.url:
            errors.append("url is required")
        elif not self.url.startswith(("ws://", "wss://")):
            errors.append("url must start with ws:// or wss://")

        if not self.namespace:
            errors.append("namespace is required")

        if self.user and self.username:
            errors.append("user and username are mutually exclusive")

        if self.password and self.token:
            errors.append("password and token are mutually exclusive")

        if not isinstance(self.pool_size, int) or self.pool_size < 1:
            errors.append("pool_size must be a positive integer")

        for name in ("connect_timeout", "query_timeout", "wait_timeout", "retry_delay"):
            value = getattr(self, name)
            if not isinstance(value, (int, float)) or isinstance(value, bool) or value <= 0:
                errors.append(f"{name} must be a positive number")

        return errors


def validate_options(options: "MigrateOptions | dict[str, Any]") -> MigrateOptions:
    """Validate and default migration options.

    Args:
        options: MigrateOptions or a raw mapping of option values

    Returns:
        Validated MigrateOptions

    Raises:
        ConfigError: Listing every validation problem found
    """
    if not isinstance(options, MigrateOptions):
        options = MigrateOptions.from_dict(options)

    errors = options.validate()
    if errors:
        raise ConfigError("Invalid migration options: " + "; ".join(errors))

    return options
