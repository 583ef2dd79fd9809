"""Health endpoints.

``/health`` and ``/health/live`` only prove the process answers;
``/health/ready`` probes the graph backend and the batch worker pool.
"""

from enum import Enum

import structlog
from fastapi import APIRouter
from pydantic import BaseModel, Field

from api.dependencies import GraphDatabaseDep, WorkerPoolDep
from dq.execution.pool import WorkerPool
from dq.graph.base import GraphDatabase
from dq.graph.store import Neo4jGraphDatabase

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/health", tags=["Health"])

Check = dict[str, str]


class HealthStatus(str, Enum):
    """Health check status values."""

    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"


class HealthResponse(BaseModel):
    status: HealthStatus = Field(..., description="Health status")
    message: str | None = Field(None, description="Optional status message")


class ReadinessResponse(BaseModel):
    """Readiness of each component the API depends on."""

    status: HealthStatus = Field(..., description="Unhealthy if any check failed")
    checks: dict[str, Check] = Field(
        default_factory=dict,
        description="Check results keyed by component",
    )


async def _probe_graph(database: GraphDatabase) -> tuple[str, Check]:
    if not isinstance(database, Neo4jGraphDatabase):
        return "graph", {"status": HealthStatus.HEALTHY.value, "backend": type(database).__name__}

    connection = database.connection
    try:
        result = await connection.health_check()
    except Exception as e:
        logger.warning("Neo4j readiness probe raised", error=str(e))
        return "neo4j", {"status": HealthStatus.UNHEALTHY.value, "message": str(e)}

    if result.get("status") != HealthStatus.HEALTHY.value:
        logger.warning("Neo4j not ready", result=result)
        return "neo4j", {
            "status": HealthStatus.UNHEALTHY.value,
            "message": result.get("message", "Unknown error"),
        }
    return "neo4j", {"status": HealthStatus.HEALTHY.value, "uri": connection.uri}


def _probe_pool(pool: WorkerPool) -> Check:
    if not pool.is_running:
        return {"status": HealthStatus.UNHEALTHY.value, "message": "Worker pool is stopped"}
    return {
        "status": HealthStatus.HEALTHY.value,
        "workers": str(pool.worker_count),
        "pending": str(pool.pending),
    }


@router.get("", response_model=HealthResponse, summary="Basic health check")
async def health_check() -> HealthResponse:
    return HealthResponse(status=HealthStatus.HEALTHY, message="DQ Flags API is running")


@router.get("/ready", response_model=ReadinessResponse, summary="Readiness check")
async def readiness_check(database: GraphDatabaseDep, pool: WorkerPoolDep) -> ReadinessResponse:
    """Probe the graph backend and the worker pool.

    Always answers 200; callers read ``status`` to decide whether to route
    traffic here.
    """
    graph_key, graph_check = await _probe_graph(database)
    checks = {graph_key: graph_check, "worker_pool": _probe_pool(pool)}

    ready = all(check["status"] == HealthStatus.HEALTHY.value for check in checks.values())
    return ReadinessResponse(
        status=HealthStatus.HEALTHY if ready else HealthStatus.UNHEALTHY,
        checks=checks,
    )


@router.get("/live", response_model=HealthResponse, summary="Liveness check")
async def liveness_check() -> HealthResponse:
    return HealthResponse(status=HealthStatus.HEALTHY)
