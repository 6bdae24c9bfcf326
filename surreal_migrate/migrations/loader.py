"""Loaders that supply migration bodies.

The engine never imports migration files itself: it asks a loader for
the body of each migration selected for execution.
"""

import importlib.util
import logging
import re
from collections.abc import Iterable
from typing import Protocol

from .base import MigrationBody, MigrationDescriptor, MigrationLoadError

logger = logging.getLogger(__name__)


class MigrationLoader(Protocol):
    """Supplies the up/down entry points of a migration."""

    def load(self, migration: MigrationDescriptor) -> MigrationBody:
        ...


def _check_body(body: object, migration: MigrationDescriptor) -> MigrationBody:
    for entry_point in ("up", "down"):
        if not callable(getattr(body, entry_point, None)):
            raise MigrationLoadError(
                f"Migration {migration.source_path} must define a callable '{entry_point}'"
            )
    return body  # type: ignore[return-value]


class ModuleLoader:
    """Loads migration bodies by importing the migration file.

    A migration file is a Python module defining module-level
    ``async def up(conn)`` and ``async def down(conn)``.
    """

    def load(self, migration: MigrationDescriptor) -> MigrationBody:
        path = migration.source_path
        safe_name = re.sub(r"\W", "_", migration.name)
        module_name = f"migration_{migration.timestamp:%Y%m%d%H%M%S}_{safe_name}"

        spec = importlib.util.spec_from_file_location(module_name, path)
        if not spec or not spec.loader:
            raise MigrationLoadError(f"Cannot load migration module: {path}")

        module = importlib.util.module_from_spec(spec)
        try:
            spec.loader.exec_module(module)
        except Exception as e:
            raise MigrationLoadError(f"Failed to load migration {path}: {e}") from e

        logger.debug(f"Loaded migration module {module_name} from {path}")
        return _check_body(module, migration)


class RegistryLoader:
    """Serves migration bodies registered in memory, keyed by filename."""

    def __init__(self, bodies: "dict[str, MigrationBody] | None" = None):
        self._bodies: dict[str, MigrationBody] = dict(bodies or {})

    def register(self, filename: str, body: MigrationBody) -> None:
        """Register the body for a migration file.

        Raises:
            MigrationLoadError: If the filename is already registered
        """
        if filename in self._bodies:
            raise MigrationLoadError(f"Duplicate migration body for {filename}")
        self._bodies[filename] = body

    def load(self, migration: MigrationDescriptor) -> MigrationBody:
        body = self._bodies.get(migration.filename)
        if body is None:
            raise MigrationLoadError(f"No migration body registered for {migration.filename}")
        return _check_body(body, migration)


def load_bodies(
    migrations: Iterable[MigrationDescriptor],
    loader: MigrationLoader,
) -> list[MigrationDescriptor]:
    """Attach bodies to the given migrations, preserving order."""
    return [migration.with_body(loader.load(migration)) for migration in migrations]
