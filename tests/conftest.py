"""Pytest fixtures for migration tests.

Provides a mocked SurrealDB client, options pointing at a temporary
project directory, and an in-memory connection for engine tests.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from surreal_migrate.config import MigrateOptions
from surreal_migrate.connection import Connection
from tests.helpers.fakes import FakeConnection


@pytest.fixture(autouse=True)
def clean_surreal_env(monkeypatch):
    """Keep SURREAL_* variables of the host out of the tests."""
    for name in (
        "SURREAL_URL",
        "SURREAL_NAMESPACE",
        "SURREAL_USER",
        "SURREAL_PASS",
        "SURREAL_POOL_SIZE",
        "SURREAL_SKIP_SSL_VERIFY",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def mock_surreal_client():
    """Create a mock SurrealDB client."""
    client = MagicMock()
    client.connect = AsyncMock()
    client.signin = AsyncMock()
    client.authenticate = AsyncMock()
    client.use = AsyncMock()
    client.close = AsyncMock()
    client.query = AsyncMock(return_value=[{"result": [], "status": "OK"}])
    client.create = AsyncMock(return_value={"id": "_migrations:1"})
    return client


@pytest.fixture
def project_dir(tmp_path):
    """Project root with an empty migrations directory."""
    root = tmp_path.resolve()
    (root / "migrations").mkdir()
    return root


@pytest.fixture
def options(project_dir):
    """Valid options for an up run against test_db."""
    return MigrateOptions(
        op="up",
        db="test_db",
        relative_to=str(project_dir),
        url="ws://localhost:8000/rpc",
        namespace="test",
        user="root",
        password="root",
        pool_size=3,
        connect_timeout=5.0,
        wait_timeout=0.2,
        retry_delay=0.01,
    )


@pytest.fixture
def mock_connection(mock_surreal_client, options):
    """Create a Connection wired to the mock client."""
    conn = Connection(options, "test_db")
    conn._client = mock_surreal_client
    conn._connected = True
    return conn


@pytest.fixture
def fake_conn():
    """In-memory connection with an empty ledger."""
    return FakeConnection()
