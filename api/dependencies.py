"""Dependency injection setup for the DQ Flags API.

This module owns the process-wide resources (graph backend, worker pool,
flag service), creates them on startup, releases them on shutdown, and
provides FastAPI dependency functions for injecting them into route handlers.
"""

from collections.abc import AsyncGenerator
from typing import Annotated

import structlog
from fastapi import Depends

from dq.execution.pool import WorkerPool
from dq.flags.service import DataQualityService
from dq.graph.base import GraphDatabase, GraphTransaction
from dq.graph.connection import GraphConnection
from dq.graph.memory import MemoryGraph
from dq.graph.store import Neo4jGraphDatabase

from .config import GraphBackend, Settings, get_settings

logger = structlog.get_logger(__name__)

# Type aliases for dependency injection
SettingsDep = Annotated[Settings, Depends(get_settings)]


# Global instances for resource management
_graph_connection: GraphConnection | None = None
_graph_database: GraphDatabase | None = None
_worker_pool: WorkerPool | None = None
_service: DataQualityService | None = None
_shutdown_timeout: float = 10.0


async def init_dependencies(settings: Settings) -> None:
    """Initialize global dependencies on application startup.

    Connects the graph backend, starts the worker pool batch deletions run
    on, and builds the flag service on top of both.

    Args:
        settings: Application settings instance.
    """
    global _graph_connection, _graph_database, _worker_pool, _service, _shutdown_timeout

    if settings.graph_backend is GraphBackend.MEMORY:
        _graph_database = MemoryGraph()
        logger.info("Using in-memory graph backend")
    else:
        _graph_connection = GraphConnection(
            uri=settings.neo4j_uri,
            user=settings.neo4j_user,
            password=settings.neo4j_password,
            database=settings.neo4j_database,
        )
        await _graph_connection.connect()
        await _graph_connection.ensure_schema(settings.enforce_unique_classes)
        _graph_database = Neo4jGraphDatabase(_graph_connection)

    _worker_pool = WorkerPool(
        core_workers=settings.worker_core_size,
        max_workers=settings.worker_max_size,
        queue_size=settings.worker_queue_size,
        keep_alive=settings.worker_keep_alive_seconds,
    )
    await _worker_pool.start()
    _shutdown_timeout = settings.worker_shutdown_timeout_seconds

    _service = DataQualityService(
        _graph_database,
        _worker_pool,
        batch_timeout=settings.batch_timeout_seconds,
        max_depth=settings.stats_max_depth,
    )


async def shutdown_dependencies() -> None:
    """Cleanup dependencies on application shutdown.

    Stops the worker pool before closing the connection its batches use.
    """
    global _graph_connection, _graph_database, _worker_pool, _service

    if _worker_pool is not None:
        await _worker_pool.stop(timeout=_shutdown_timeout)
        _worker_pool = None

    if _graph_connection is not None:
        await _graph_connection.close()
        _graph_connection = None

    _graph_database = None
    _service = None


def _require(resource, name: str):
    if resource is None:
        raise RuntimeError(f"{name} not initialized. Ensure init_dependencies() ran on startup.")
    return resource


async def get_graph_database() -> AsyncGenerator[GraphDatabase, None]:
    """Yield the shared graph database.

    Raises:
        RuntimeError: If dependencies have not been initialized.
    """
    yield _require(_graph_database, "Graph database")


async def get_worker_pool() -> AsyncGenerator[WorkerPool, None]:
    yield _require(_worker_pool, "Worker pool")


async def get_service() -> AsyncGenerator[DataQualityService, None]:
    yield _require(_service, "Flag service")


async def get_transaction(
    database: Annotated[GraphDatabase, Depends(get_graph_database)],
) -> AsyncGenerator[GraphTransaction, None]:
    """Open the transaction a request runs in.

    The transaction commits when the handler returns and rolls back when it
    raises, including HTTP errors.

    Yields:
        The request's transaction.
    """
    async with database.transaction() as tx:
        yield tx


# Type aliases for commonly used dependencies
GraphDatabaseDep = Annotated[GraphDatabase, Depends(get_graph_database)]
WorkerPoolDep = Annotated[WorkerPool, Depends(get_worker_pool)]
ServiceDep = Annotated[DataQualityService, Depends(get_service)]
TransactionDep = Annotated[GraphTransaction, Depends(get_transaction)]
