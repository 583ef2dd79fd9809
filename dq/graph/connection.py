"""Neo4j driver lifecycle.

`GraphConnection` owns the async driver shared by every transaction the Neo4j
backend opens. It is created once by the hosting process, connected on
startup and closed on shutdown, and also installs the schema the flag
taxonomy relies on.
"""

import os
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

import structlog
from neo4j import AsyncDriver, AsyncGraphDatabase, AsyncSession
from neo4j.exceptions import Neo4jError, ServiceUnavailable

from .queries import QUERIES

logger = structlog.get_logger(__name__)


class GraphConnectionError(Exception):
    """Exception raised for graph connection errors."""

    pass


class GraphConnection:
    """Shared connection to a Neo4j database.

    Connection details fall back to the ``NEO4J_URI``, ``NEO4J_USER`` and
    ``NEO4J_PASSWORD`` environment variables when not given.

    Attributes:
        uri: Neo4j connection URI.
        user: Neo4j username.
        password: Neo4j password.
        database: Neo4j database name.
    """

    def __init__(
        self,
        uri: str | None = None,
        user: str | None = None,
        password: str | None = None,
        database: str = "neo4j",
        max_connection_pool_size: int = 50,
        connection_acquisition_timeout: float = 60.0,
    ) -> None:
        self.uri = uri or os.getenv("NEO4J_URI", "bolt://localhost:7687")
        self.user = user or os.getenv("NEO4J_USER", "neo4j")
        self.password = password or os.getenv("NEO4J_PASSWORD", "password")
        self.database = database
        self._driver_options = {
            "max_connection_pool_size": max_connection_pool_size,
            "connection_acquisition_timeout": connection_acquisition_timeout,
        }
        self._driver: AsyncDriver | None = None

    @property
    def is_connected(self) -> bool:
        return self._driver is not None

    @property
    def driver(self) -> AsyncDriver:
        """The live driver.

        Raises:
            GraphConnectionError: If `connect` has not been called.
        """
        if self._driver is None:
            raise GraphConnectionError("Not connected to Neo4j. Call connect() first.")
        return self._driver

    async def connect(self) -> None:
        """Create the driver and verify the server is reachable.

        Connecting an already connected instance does nothing.

        Raises:
            GraphConnectionError: If the server cannot be reached.
        """
        if self._driver is not None:
            return

        driver = AsyncGraphDatabase.driver(
            self.uri, auth=(self.user, self.password), **self._driver_options
        )
        try:
            await driver.verify_connectivity()
        except (ServiceUnavailable, Neo4jError) as e:
            await driver.close()
            raise GraphConnectionError(f"Failed to connect to Neo4j at {self.uri}: {e}") from e

        self._driver = driver
        logger.info("Connected to Neo4j", uri=self.uri, database=self.database)

    async def close(self) -> None:
        if self._driver is None:
            return
        await self._driver.close()
        self._driver = None
        logger.info("Disconnected from Neo4j", uri=self.uri)

    async def __aenter__(self) -> "GraphConnection":
        await self.connect()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    def open_session(self, **kwargs: Any) -> AsyncSession:
        """Open a session on the configured database; the caller closes it."""
        return self.driver.session(database=self.database, **kwargs)

    @asynccontextmanager
    async def session(self, **kwargs: Any) -> AsyncGenerator[AsyncSession, None]:
        """Open a session that is closed when the block exits."""
        session = self.open_session(**kwargs)
        try:
            yield session
        finally:
            await session.close()

    async def run_write(self, statement: str, parameters: dict[str, Any] | None = None) -> None:
        """Run one statement in its own managed write transaction.

        Used for schema statements, which Neo4j refuses to mix with data
        writes in a single transaction.
        """

        async def _work(tx: Any) -> None:
            result = await tx.run(statement, parameters or {})
            await result.consume()

        async with self.session() as session:
            await session.execute_write(_work)

    async def health_check(self) -> dict[str, Any]:
        """Report whether the server answers a trivial query.

        Returns:
            A dictionary with a ``status`` of ``healthy``, ``unhealthy`` or
            ``disconnected`` and either connection details or a message.
        """
        if self._driver is None:
            return {"status": "disconnected", "message": "Driver not initialized"}

        try:
            async with self.session() as session:
                result = await session.run("RETURN 1 AS n")
                record = await result.single()
        except (ServiceUnavailable, Neo4jError) as e:
            return {"status": "unhealthy", "message": f"Neo4j error: {e}"}

        if record is None or record["n"] != 1:
            return {"status": "unhealthy", "message": "Query returned unexpected result"}
        return {"status": "healthy", "uri": self.uri, "database": self.database}

    async def ensure_schema(self, enforce_unique_classes: bool = False) -> None:
        """Index flag class labels, or make them unique.

        By default duplicates are only detected when a class is looked up.
        With ``enforce_unique_classes`` a uniqueness constraint replaces the
        index (the two cannot coexist on one property), so the second of two
        racing creations fails instead.

        Args:
            enforce_unique_classes: Install a uniqueness constraint.
        """
        if enforce_unique_classes:
            statements = [QUERIES.DROP_CLASS_INDEX, QUERIES.CREATE_CLASS_UNIQUE_CONSTRAINT]
        else:
            statements = [QUERIES.CREATE_CLASS_INDEX]

        for statement in statements:
            try:
                await self.run_write(statement)
            except Neo4jError as e:
                logger.warning("Schema statement failed", statement=statement.strip(), error=str(e))

        logger.info("Graph schema verified", unique_classes=enforce_unique_classes)
