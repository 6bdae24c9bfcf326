"""SurrealDB connection management.

Provides async connections and an optional connection pool, plus the
database bootstrap steps a migration run needs: creating the target
database if missing and waiting until it accepts writes.
"""

import asyncio
import logging
import ssl
import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any, Optional, Union

import requests
import websockets
from surrealdb import AsyncSurreal
from surrealdb.connections.async_ws import AsyncWsSurrealConnection

from .migrations.base import MigrationError

if TYPE_CHECKING:
    from .config import MigrateOptions

logger = logging.getLogger(__name__)


class InsecureAsyncWsSurrealConnection(AsyncWsSurrealConnection):
    """Custom connection that allows skipping SSL verification."""

    async def connect(self, url: Optional[str] = None) -> None:
        """Connect with optional SSL verification skip."""
        if self.socket:  # type: ignore[has-type]
            return

        # overwrite params if passed in
        if url is not None:
            from surrealdb.connections.url import Url

            self.url = Url(url)
            self.raw_url = f"{self.url.raw_url}/rpc"
            self.host = self.url.hostname
            self.port = self.url.port

        ssl_context = None
        if self.raw_url.startswith("wss://"):
            ssl_context = ssl.create_default_context()
            ssl_context.check_hostname = False
            ssl_context.verify_mode = ssl.CERT_NONE

        self.socket = await websockets.connect(
            self.raw_url,
            max_size=None,
            subprotocols=[websockets.Subprotocol("cbor")],
            ssl=ssl_context,
        )
        self.loop = asyncio.get_running_loop()
        self.recv_task = asyncio.create_task(self._recv_task())


class ConnectionError(MigrationError):
    """Database connection error."""

    pass


class QueryError(MigrationError):
    """Database query error."""

    pass


@dataclass
class ConnectionStats:
    """Connection pool statistics."""

    total_connections: int = 0
    active_connections: int = 0
    failed_connections: int = 0
    total_queries: int = 0
    failed_queries: int = 0
    last_connected: Optional[datetime] = None
    last_error: Optional[str] = None


def _database_names(info: list[dict[str, Any]]) -> set[str]:
    """Extract database names from an INFO FOR NS result."""
    names: set[str] = set()
    for entry in info:
        if isinstance(entry, dict):
            names.update((entry.get("databases") or entry.get("db") or {}).keys())
    return names


class Connection:
    """A single SurrealDB connection wrapper.

    Handles connection lifecycle, authentication, and namespace/database selection.
    """

    def __init__(
        self,
        config: "MigrateOptions",
        database: str,
    ):
        """Initialize connection.

        Args:
            config: Migration options holding the connection settings
            database: Database name to use
        """
        self.config = config
        self.database = database
        self._client: Optional[Union[AsyncSurreal, InsecureAsyncWsSurrealConnection]] = None
        self._connected = False
        self._lock = asyncio.Lock()
        # Databases this connection has already seen accept writes
        self._ready_databases: set[str] = set()

    @property
    def is_connected(self) -> bool:
        """Check if connection is active."""
        return self._connected and self._client is not None

    def _get_http_url(self) -> str:
        """Convert WebSocket URL to HTTP URL for token auth."""
        url: str = self.config.url.removesuffix("/rpc")
        if url.startswith("wss://"):
            return url.replace("wss://", "https://")
        elif url.startswith("ws://"):
            return url.replace("ws://", "http://")
        return url

    def _get_auth_token(self) -> str:
        """Get authentication token via HTTP signin."""
        signin_url = f"{self._get_http_url()}/signin"

        try:
            resp = requests.post(
                signin_url,
                json={"user": self.config.login, "pass": self.config.secret},
                headers={"Accept": "application/json"},
                timeout=self.config.connect_timeout,
            )
            resp.raise_for_status()
            data = resp.json()

            token: str | None = data.get("token")
            if not token:
                raise ConnectionError("No token in signin response")

            return token
        except requests.RequestException as e:
            raise ConnectionError(f"HTTP signin request failed: {e}") from e

    async def connect(self) -> None:
        """Establish connection to SurrealDB.

        Authenticates with a configured token when present, with HTTP token
        auth for wss:// URLs, and with direct WebSocket signin otherwise.
        """
        async with self._lock:
            if self._connected:
                return

            try:
                if self.config.skip_ssl_verify and self.config.is_secure:
                    self._client = InsecureAsyncWsSurrealConnection(self.config.url)
                    logger.warning("SSL verification disabled - not recommended for production")
                else:
                    self._client = AsyncSurreal(self.config.url)

                await asyncio.wait_for(
                    self._client.connect(),
                    timeout=self.config.connect_timeout,
                )

                if self.config.token:
                    await self._client.authenticate(self.config.token)
                elif self.config.is_secure:
                    token = self._get_auth_token()
                    logger.debug("Got auth token via HTTP signin")
                    await self._client.authenticate(token)
                else:
                    await self._client.signin(
                        {
                            "username": self.config.login,
                            "password": self.config.secret,
                        }
                    )
                    logger.debug("Signed in via WebSocket")

                await self._client.use(self.config.namespace, self.database)

                self._connected = True
                logger.debug(f"Connected to SurrealDB: {self.config.namespace}/{self.database}")

            except asyncio.TimeoutError as e:
                raise ConnectionError(
                    f"Connection timeout after {self.config.connect_timeout}s"
                ) from e
            except ConnectionError:
                raise
            except Exception as e:
                raise ConnectionError(f"Failed to connect: {e}") from e

    async def disconnect(self) -> None:
        """Close connection."""
        async with self._lock:
            if self._client:
                try:
                    await self._client.close()
                except Exception as e:
                    logger.warning(f"Error closing connection: {e}")
                finally:
                    self._client = None
                    self._connected = False

    async def close(self) -> None:
        await self.disconnect()

    async def query(
        self,
        sql: str,
        params: Optional[dict[str, Any]] = None,
    ) -> list[dict[str, Any]]:
        """Execute a SurrealQL query.

        Args:
            sql: SurrealQL query string
            params: Query parameters

        Returns:
            List of result records
        """
        if not self.is_connected:
            await self.connect()
        assert self._client is not None

        try:
            result = await asyncio.wait_for(
                self._client.query(sql, params or {}),
                timeout=self.config.query_timeout,
            )

            # SurrealDB returns list of results for each statement
            if isinstance(result, list):
                records: list[dict[str, Any]] = []
                for stmt_result in result:
                    if isinstance(stmt_result, dict):
                        if "result" in stmt_result:
                            if stmt_result.get("status") == "ERR":
                                raise QueryError(str(stmt_result["result"]))
                            # Standard format: {"result": [...], "status": "OK"}
                            inner = stmt_result["result"]
                            if isinstance(inner, list):
                                records.extend(inner)
                            elif inner:
                                records.append(inner)
                        else:
                            records.append(stmt_result)
                    elif isinstance(stmt_result, list):
                        records.extend(stmt_result)
                return records
            if isinstance(result, dict):
                return [result]
            return result or []

        except QueryError:
            raise
        except asyncio.TimeoutError as e:
            raise QueryError(f"Query timeout after {self.config.query_timeout}s") from e
        except Exception as e:
            raise QueryError(f"Query failed: {e}") from e

    async def create(
        self,
        table: str,
        data: dict[str, Any],
    ) -> dict[str, Any]:
        """Create a record.

        Args:
            table: Table name
            data: Record data

        Returns:
            Created record
        """
        if not self.is_connected:
            await self.connect()
        assert self._client is not None

        try:
            result = await self._client.create(table, data)
        except Exception as e:
            raise QueryError(f"Create failed: {e}") from e

        # Handle various SurrealDB return formats
        if isinstance(result, list):
            first = result[0] if result else {}
            return first if isinstance(first, dict) else {"id": first, **data}
        elif isinstance(result, dict):
            return result
        return {"id": result, **data}

    async def ensure_database(self) -> bool:
        """Create the connection's database if it does not exist.

        Returns:
            True if the database was created
        """
        info = await self.query("INFO FOR NS")
        if self.database in _database_names(info):
            return False

        await self.query(f"DEFINE DATABASE IF NOT EXISTS {self.database}")
        # Re-select so the session points at the new database
        assert self._client is not None
        await self._client.use(self.config.namespace, self.database)
        logger.info(f"Created database {self.config.namespace}/{self.database}")
        return True

    async def wait_for_writes(self, timeout: Optional[float] = None) -> None:
        """Wait until the database is ready to accept writes.

        Only waits once per database for the lifetime of this connection.

        Args:
            timeout: Maximum seconds to wait (config.wait_timeout if None)

        Raises:
            ConnectionError: If the database is not ready within timeout
        """
        if self.database in self._ready_databases:
            return

        timeout = self.config.wait_timeout if timeout is None else timeout
        deadline = time.monotonic() + timeout

        while True:
            try:
                await self.query("INFO FOR DB")
                break
            except QueryError as e:
                if time.monotonic() >= deadline:
                    raise ConnectionError(
                        f"Database {self.database} not ready for writes after {timeout}s: {e}"
                    ) from e
                logger.debug(f"Database {self.database} not ready yet: {e}")
                await asyncio.sleep(self.config.retry_delay)

        self._ready_databases.add(self.database)
        logger.debug(f"Database {self.database} ready for writes")


class ConnectionPool:
    """Connection pool for SurrealDB.

    Exposes the same query surface as Connection so it can be handed to
    the migration engine and to migration bodies directly.
    """

    def __init__(
        self,
        config: "MigrateOptions",
        database: str,
    ):
        """Initialize connection pool.

        Args:
            config: Migration options holding the connection settings
            database: Database name
        """
        self.config = config
        self.database = database

        self._connections: list[Connection] = []
        self._available: asyncio.Queue[Connection] = asyncio.Queue()
        self._lock = asyncio.Lock()
        self._initialized = False
        self._stats = ConnectionStats()
        self._ready_databases: set[str] = set()

    @property
    def stats(self) -> ConnectionStats:
        """Get pool statistics."""
        return self._stats

    async def initialize(self) -> None:
        """Initialize the connection pool."""
        async with self._lock:
            if self._initialized:
                return

            for i in range(self.config.pool_size):
                conn = Connection(self.config, self.database)
                try:
                    await conn.connect()
                    self._connections.append(conn)
                    await self._available.put(conn)
                    self._stats.total_connections += 1
                    self._stats.last_connected = datetime.now()
                except ConnectionError as e:
                    self._stats.failed_connections += 1
                    self._stats.last_error = str(e)
                    logger.warning(f"Failed to create connection {i+1}: {e}")

            if not self._connections:
                raise ConnectionError("Failed to create any connections")

            self._initialized = True
            logger.info(
                f"Connection pool initialized: {len(self._connections)} connections to db={self.database}"
            )

    async def close(self) -> None:
        """Close all connections in the pool."""
        async with self._lock:
            for conn in self._connections:
                await conn.disconnect()

            self._connections.clear()
            self._available = asyncio.Queue()
            self._initialized = False

            logger.info("Connection pool closed")

    @asynccontextmanager
    async def acquire(self) -> AsyncGenerator[Connection, None]:
        """Acquire a connection from the pool.

        Usage:
            async with pool.acquire() as conn:
                result = await conn.query("SELECT * FROM users")

        Yields:
            Connection instance
        """
        if not self._initialized:
            await self.initialize()

        conn = await self._available.get()
        self._stats.active_connections += 1

        try:
            if not conn.is_connected:
                await conn.connect()
            yield conn
        finally:
            self._stats.active_connections -= 1
            await self._available.put(conn)

    async def query(
        self,
        sql: str,
        params: Optional[dict[str, Any]] = None,
    ) -> list[dict[str, Any]]:
        """Execute a query using a pooled connection."""
        async with self.acquire() as conn:
            self._stats.total_queries += 1
            try:
                return await conn.query(sql, params)
            except QueryError:
                self._stats.failed_queries += 1
                raise

    async def create(self, table: str, data: dict[str, Any]) -> dict[str, Any]:
        """Create a record using a pooled connection."""
        async with self.acquire() as conn:
            return await conn.create(table, data)

    async def ensure_database(self) -> bool:
        """Create the pool's database if missing and point every connection at it."""
        async with self.acquire() as conn:
            created = await conn.ensure_database()

        if created:
            for conn in self._connections:
                assert conn._client is not None
                await conn._client.use(self.config.namespace, self.database)
        return created

    async def wait_for_writes(self, timeout: Optional[float] = None) -> None:
        """Wait until the database accepts writes, once per pool."""
        if self.database in self._ready_databases:
            return
        async with self.acquire() as conn:
            await conn.wait_for_writes(timeout)
        self._ready_databases.add(self.database)


MigrationConnection = Union[Connection, ConnectionPool]


async def connect(config: "MigrateOptions") -> MigrationConnection:
    """Open a connection (or pool) to the configured database.

    Args:
        config: Validated migration options

    Returns:
        Connected Connection, or an initialized ConnectionPool if config.pool
    """
    assert config.db is not None
    if config.pool:
        pool = ConnectionPool(config, config.db)
        await pool.initialize()
        return pool

    conn = Connection(config, config.db)
    await conn.connect()
    return conn


async def close(handle: MigrationConnection) -> None:
    """Close a connection or drain a pool."""
    await handle.close()
