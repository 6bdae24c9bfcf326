"""Progress events for migration runs.

Events are passed to an explicit callback supplied by the caller.
Running without a listener is fine: the default callback drops them.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional, Protocol, runtime_checkable


class EventType(str, Enum):
    """Types of migration progress events."""

    # Orchestration
    VALIDATING = "validating"
    VALIDATED = "validated"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DATABASE_CREATED = "database_created"

    # Execution
    MIGRATIONS_STARTING = "migrations_starting"
    MIGRATION_EXECUTED = "migration_executed"

    # Ledger
    METADATA_SAVED = "metadata_saved"
    METADATA_CLEARED = "metadata_cleared"

    # Teardown
    CLOSING = "closing"
    CONNECTION_CLOSED = "connection_closed"


@dataclass
class MigrationEvent:
    """A progress notification emitted during a migration run.

    Attributes:
        event_type: Type of event
        message: Human-readable description
        data: Event-specific payload
        level: Log level name of the event
        timestamp: When the event occurred
    """

    event_type: EventType
    message: str
    data: dict[str, Any] = field(default_factory=dict)
    level: str = "info"
    timestamp: str = field(default_factory=lambda: datetime.now().isoformat())

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "event_type": self.event_type.value,
            "message": self.message,
            "data": self.data,
            "level": self.level,
            "timestamp": self.timestamp,
        }


@runtime_checkable
class ProgressCallback(Protocol):
    """Protocol for progress callbacks."""

    def on_event(self, event: MigrationEvent) -> None:
        """Called for every progress event."""
        ...


class NullCallback:
    """No-op callback implementation."""

    def on_event(self, event: MigrationEvent) -> None:
        """No-op."""
        pass


class LoggingCallback:
    """Forwards progress events to a logger."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger("surreal_migrate.progress")

    def on_event(self, event: MigrationEvent) -> None:
        level = logging.getLevelName(event.level.upper())
        if not isinstance(level, int):
            level = logging.INFO
        self.logger.log(level, event.message)


class CallbackGroup:
    """Fans events out to several callbacks in order."""

    def __init__(self, callbacks: list[ProgressCallback]):
        self.callbacks = list(callbacks)

    def on_event(self, event: MigrationEvent) -> None:
        for callback in self.callbacks:
            callback.on_event(event)


def emit(
    callback: ProgressCallback,
    event_type: EventType,
    message: str,
    **data: Any,
) -> MigrationEvent:
    """Build an info event and hand it to the callback."""
    event = MigrationEvent(event_type=event_type, message=message, data=data)
    callback.on_event(event)
    return event
