"""Tests for the DQ Flags API module.

This module contains tests for:
- Settings configuration
- Dependency lifecycle
- Health check endpoints
- Flag and class endpoints
- Error translation
- Middleware behavior

All tests use httpx.AsyncClient for async testing with FastAPI. The flag
service runs against the in-memory graph; the Neo4j connection is mocked.
"""

import os
from collections.abc import AsyncGenerator
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from api import dependencies
from api.config import GraphBackend, Settings, get_settings
from api.dependencies import (
    get_graph_database,
    get_service,
    get_worker_pool,
    init_dependencies,
    shutdown_dependencies,
)
from api.errors import to_http_exception
from api.main import create_app
from dq.execution.pool import WorkerPool
from dq.flags.errors import (
    BatchFailureError,
    ClassNotFoundError,
    InvalidArgumentError,
    MaxDepthExceededError,
    MultipleClassesFoundError,
)
from dq.flags.models import DQ_CLASS, DQ_FLAG
from dq.flags.service import DataQualityService
from dq.graph.base import GraphDatabase, NodeNotFoundError
from dq.graph.memory import MemoryGraph
from dq.graph.store import Neo4jGraphDatabase

# =============================================================================
# Fixtures
# =============================================================================


def _app_with(
    database: GraphDatabase,
    pool: WorkerPool,
    service: DataQualityService | None = None,
) -> FastAPI:
    app = create_app()

    async def override_graph_database() -> AsyncGenerator[GraphDatabase, None]:
        yield database

    async def override_worker_pool() -> AsyncGenerator[WorkerPool, None]:
        yield pool

    async def override_service() -> AsyncGenerator[DataQualityService, None]:
        yield service

    app.dependency_overrides[get_graph_database] = override_graph_database
    app.dependency_overrides[get_worker_pool] = override_worker_pool
    if service is not None:
        app.dependency_overrides[get_service] = override_service
    return app


@pytest.fixture
def app_with_memory_graph(
    graph: MemoryGraph,
    pool: WorkerPool,
    service: DataQualityService,
) -> FastAPI:
    """Create a FastAPI app wired to the in-memory graph."""
    return _app_with(graph, pool, service)


@pytest_asyncio.fixture
async def client(app_with_memory_graph: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """Create an async test client."""
    async with AsyncClient(
        transport=ASGITransport(app=app_with_memory_graph),
        base_url="http://test",
    ) as ac:
        yield ac


@pytest.fixture
def mock_graph_connection() -> MagicMock:
    """Create a mock GraphConnection instance."""
    mock = MagicMock()
    mock.uri = "bolt://localhost:7687"
    mock.health_check = AsyncMock(return_value={"status": "healthy"})
    return mock


@pytest_asyncio.fixture
async def neo4j_client(
    mock_graph_connection: MagicMock,
    pool: WorkerPool,
) -> AsyncGenerator[AsyncClient, None]:
    """Create a client whose graph database is the Neo4j backend."""
    app = _app_with(Neo4jGraphDatabase(mock_graph_connection), pool)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


# =============================================================================
# Config Tests
# =============================================================================


class TestSettings:
    """Tests for Settings configuration."""

    def test_settings_default_values(self):
        """Test that Settings has correct default values."""
        get_settings.cache_clear()

        settings = Settings()

        assert settings.app_name == "DQ Flags API"
        assert settings.graph_backend is GraphBackend.NEO4J
        assert settings.neo4j_uri == "bolt://localhost:7687"
        assert settings.worker_core_size is None
        assert settings.worker_max_size is None
        assert settings.worker_keep_alive_seconds == 30.0
        assert settings.worker_shutdown_timeout_seconds == 10.0
        assert settings.stats_max_depth == 64
        assert settings.enforce_unique_classes is False
        assert settings.api_prefix == "/api/v1"

    def test_settings_from_environment_variables(self):
        """Test that Settings loads from environment variables."""
        get_settings.cache_clear()

        with patch.dict(
            os.environ,
            {
                "GRAPH_BACKEND": "memory",
                "WORKER_CORE_SIZE": "2",
                "WORKER_MAX_SIZE": "4",
                "BATCH_TIMEOUT_SECONDS": "2.5",
                "ENFORCE_UNIQUE_CLASSES": "true",
            },
            clear=False,
        ):
            settings = Settings()

            assert settings.graph_backend is GraphBackend.MEMORY
            assert settings.worker_core_size == 2
            assert settings.worker_max_size == 4
            assert settings.batch_timeout_seconds == 2.5
            assert settings.enforce_unique_classes is True

    def test_get_settings_caching(self):
        """Test that get_settings() caches the settings instance."""
        get_settings.cache_clear()

        assert get_settings() is get_settings()


# =============================================================================
# Dependency Tests
# =============================================================================


class TestDependencies:
    """Tests for dependency initialization and shutdown."""

    @pytest.mark.asyncio
    async def test_memory_backend_lifecycle(self):
        settings = Settings(
            graph_backend=GraphBackend.MEMORY,
            worker_core_size=1,
            worker_max_size=2,
        )

        await init_dependencies(settings)
        try:
            pool = await anext(get_worker_pool())
            service = await anext(get_service())
            database = await anext(get_graph_database())

            assert pool.is_running
            assert isinstance(database, MemoryGraph)
            assert service.database is database
            assert service.max_depth == settings.stats_max_depth
        finally:
            await shutdown_dependencies()

        assert not pool.is_running
        assert dependencies._service is None

    @pytest.mark.asyncio
    async def test_uninitialized_dependency(self):
        await shutdown_dependencies()

        with pytest.raises(RuntimeError):
            await anext(get_service())


# =============================================================================
# Error Translation Tests
# =============================================================================


class TestErrorTranslation:
    """Tests for mapping core errors to HTTP errors."""

    @pytest.mark.parametrize(
        ("error", "status_code"),
        [
            (InvalidArgumentError("bad"), 422),
            (ClassNotFoundError("x"), 404),
            (NodeNotFoundError(1), 404),
            (MultipleClassesFoundError("x"), 409),
            (MaxDepthExceededError("x", 3), 500),
        ],
    )
    def test_status_codes(self, error, status_code):
        assert to_http_exception(error).status_code == status_code

    def test_batch_failure_reports_progress(self):
        error = BatchFailureError("failed", processed=4, batches_completed=2, batch_index=2)

        exception = to_http_exception(error)

        assert exception.status_code == 500
        assert exception.detail["processed"] == 4
        assert exception.detail["batches_completed"] == 2


# =============================================================================
# Health Endpoint Tests
# =============================================================================


class TestHealthEndpoints:
    """Tests for health check endpoints."""

    @pytest.mark.asyncio
    async def test_health_check_returns_200(self, client: AsyncClient):
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    @pytest.mark.asyncio
    async def test_ready_with_memory_graph(self, client: AsyncClient):
        response = await client.get("/health/ready")

        data = response.json()
        assert data["status"] == "healthy"
        assert data["checks"]["graph"]["backend"] == "MemoryGraph"
        assert data["checks"]["worker_pool"]["status"] == "healthy"

    @pytest.mark.asyncio
    async def test_ready_checks_neo4j(self, neo4j_client: AsyncClient):
        response = await neo4j_client.get("/health/ready")

        data = response.json()
        assert data["status"] == "healthy"
        assert data["checks"]["neo4j"]["uri"] == "bolt://localhost:7687"

    @pytest.mark.asyncio
    async def test_ready_unhealthy_neo4j(
        self,
        neo4j_client: AsyncClient,
        mock_graph_connection: MagicMock,
    ):
        mock_graph_connection.health_check.side_effect = Exception("Connection error")

        response = await neo4j_client.get("/health/ready")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "unhealthy"
        assert "Connection error" in data["checks"]["neo4j"]["message"]

    @pytest.mark.asyncio
    async def test_ready_with_stopped_pool(self, client: AsyncClient, pool: WorkerPool):
        await pool.stop()

        response = await client.get("/health/ready")

        data = response.json()
        assert data["status"] == "unhealthy"
        assert data["checks"]["worker_pool"]["status"] == "unhealthy"

    @pytest.mark.asyncio
    async def test_liveness_check_returns_200(self, client: AsyncClient):
        response = await client.get("/health/live")

        assert response.status_code == 200


# =============================================================================
# Flag Endpoint Tests
# =============================================================================


class TestFlagEndpoints:
    """Tests for flag endpoints."""

    @pytest.mark.asyncio
    async def test_create_flag(self, client: AsyncClient, graph: MemoryGraph, people):
        response = await client.post(
            "/api/v1/flags",
            json={
                "entity_id": people[0].id,
                "label": "BadName",
                "description": "nodes should not be called A",
            },
        )

        assert response.status_code == 201
        data = response.json()
        assert data["class_label"] == "BadName"
        assert data["description"] == "nodes should not be called A"
        assert data["created_at"] is not None
        assert graph.node_count(DQ_FLAG) == 1

    @pytest.mark.asyncio
    async def test_create_flag_default_label(self, client: AsyncClient, movie_graph):
        response = await client.post(
            "/api/v1/flags", json={"entity_id": int(movie_graph["movie"].id)}
        )

        assert response.status_code == 201
        assert response.json()["class_label"] == "Generic_Flag"

    @pytest.mark.asyncio
    async def test_create_flag_missing_entity(self, client: AsyncClient, graph: MemoryGraph):
        response = await client.post("/api/v1/flags", json={"entity_id": "999"})

        assert response.status_code == 404
        assert graph.node_count(DQ_CLASS) == 0

    @pytest.mark.asyncio
    async def test_create_flag_blank_label(self, client: AsyncClient, graph: MemoryGraph, people):
        response = await client.post(
            "/api/v1/flags", json={"entity_id": people[0].id, "label": " "}
        )

        assert response.status_code == 422
        assert graph.node_count(DQ_FLAG) == 0

    @pytest.mark.asyncio
    async def test_list_flags(self, client: AsyncClient, movie_graph, people):
        for person in people:
            await client.post("/api/v1/flags", json={"entity_id": person.id, "label": "BadName"})
        await client.post(
            "/api/v1/flags", json={"entity_id": movie_graph["movie"].id, "label": "BadMovie"}
        )

        everything = await client.get("/api/v1/flags")
        movies = await client.get("/api/v1/flags", params={"label": "BadMovie"})

        assert everything.json()["total"] == 5
        assert movies.json()["total"] == 1
        assert movies.json()["flags"][0]["class_label"] == "BadMovie"

    @pytest.mark.asyncio
    async def test_attach_to_flag(self, client: AsyncClient, movie_graph, people):
        created = await client.post(
            "/api/v1/flags", json={"entity_id": people[0].id, "label": "BadName"}
        )
        flag_id = created.json()["id"]

        response = await client.post(
            f"/api/v1/flags/{flag_id}/attachments",
            json={"target_id": people[2].id, "description": "attachmentDescription"},
        )

        assert response.status_code == 201
        data = response.json()
        assert data["flag_id"] == flag_id
        assert data["target_id"] == people[2].id
        assert data["description"] == "attachmentDescription"

        listed = await client.get(f"/api/v1/flags/{flag_id}/attachments")

        assert listed.status_code == 200
        assert listed.json()["total"] == 1
        assert listed.json()["attachments"][0]["target_id"] == people[2].id

    @pytest.mark.asyncio
    async def test_attach_to_non_flag(self, client: AsyncClient, people):
        response = await client.post(
            f"/api/v1/flags/{people[0].id}/attachments",
            json={"target_id": people[1].id},
        )

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_reserved_flag_label(self, client: AsyncClient, people):
        response = await client.post(
            "/api/v1/flags", json={"entity_id": people[0].id, "label": "DQ_Class"}
        )

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_delete_flags_in_batches(self, client: AsyncClient, graph: MemoryGraph, people):
        ids = []
        for person in people:
            created = await client.post("/api/v1/flags", json={"entity_id": person.id})
            ids.append(created.json()["id"])
        before = graph.transactions_opened

        response = await client.post("/api/v1/flags/delete", json={"ids": ids, "batch_size": 3})

        assert response.status_code == 200
        assert response.json() == {"value": 4}
        assert graph.node_count(DQ_FLAG) == 0
        assert graph.transactions_opened - before == 2

    @pytest.mark.asyncio
    async def test_delete_flags_bad_batch_size(self, client: AsyncClient):
        response = await client.post("/api/v1/flags/delete", json={"ids": [], "batch_size": 0})

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_delete_flags_reports_progress(self, client: AsyncClient, people):
        created = await client.post("/api/v1/flags", json={"entity_id": people[0].id})
        flag_id = created.json()["id"]

        response = await client.post(
            "/api/v1/flags/delete", json={"ids": [flag_id, "999"], "batch_size": 1}
        )

        assert response.status_code == 500
        detail = response.json()["detail"]
        assert detail["processed"] == 1
        assert detail["batches_completed"] == 1

    @pytest.mark.asyncio
    async def test_delete_flags_of_entities(self, client: AsyncClient, graph: MemoryGraph, people):
        for person in people:
            await client.post("/api/v1/flags", json={"entity_id": person.id})

        response = await client.post(
            "/api/v1/entities/flags/delete",
            json={"ids": [person.id for person in people], "batch_size": 2},
        )

        assert response.json() == {"value": 4}
        assert graph.node_count(DQ_FLAG) == 0


# =============================================================================
# Class Endpoint Tests
# =============================================================================


class TestClassEndpoints:
    """Tests for class and statistics endpoints."""

    @pytest.mark.asyncio
    async def test_create_and_list_classes(self, client: AsyncClient):
        response = await client.post(
            "/api/v1/classes",
            json={
                "label": "SomeClass",
                "parent_label": "ParentClass",
                "alert_trigger_limit": 100,
                "description": "description",
            },
        )

        assert response.status_code == 201
        data = response.json()
        assert data["label"] == "SomeClass"
        assert data["alert_trigger_limit"] == 100
        assert data["is_root"] is False

        listing = await client.get("/api/v1/classes")
        filtered = await client.get("/api/v1/classes", params={"label": "ParentClass"})
        assert listing.json()["total"] == 3
        assert [c["label"] for c in filtered.json()["classes"]] == ["ParentClass"]

    @pytest.mark.asyncio
    async def test_create_class_duplicate_label(self, client: AsyncClient, graph: MemoryGraph):
        async with graph.transaction() as tx:
            await tx.create_node([DQ_CLASS], {"class": "Twin"})
            await tx.create_node([DQ_CLASS], {"class": "Twin"})

        response = await client.post("/api/v1/classes", json={"label": "Twin"})

        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_delete_class(self, client: AsyncClient, people):
        for person in people:
            await client.post("/api/v1/flags", json={"entity_id": person.id, "label": "BadName"})

        response = await client.delete("/api/v1/classes/BadName")
        missing = await client.delete("/api/v1/classes/BadName")

        assert response.json() == {"label": "BadName", "flags_deleted": 4}
        assert missing.status_code == 404

    @pytest.mark.asyncio
    async def test_statistics(self, client: AsyncClient, people):
        await client.post("/api/v1/classes", json={"label": "SomeClass", "parent_label": "Parent"})
        for person in people:
            await client.post(
                "/api/v1/flags", json={"entity_id": person.id, "label": "SomeClass"}
            )

        root = await client.get("/api/v1/statistics")
        some = await client.get("/api/v1/statistics", params={"class_label": "SomeClass"})

        assert root.json() == [{"class": "all", "direct": 0, "indirect": 4, "total": 4}]
        assert some.json() == [{"class": "SomeClass", "direct": 4, "indirect": 0, "total": 4}]

    @pytest.mark.asyncio
    async def test_statistics_empty_graph(self, client: AsyncClient):
        response = await client.get("/api/v1/statistics")

        assert response.status_code == 200
        assert response.json() == []


# =============================================================================
# Middleware Tests
# =============================================================================


class TestMiddleware:
    """Tests for the request logging middleware."""

    @pytest.mark.asyncio
    async def test_adds_request_id_and_timing(self, client: AsyncClient):
        response = await client.get("/health")

        assert len(response.headers["X-Request-ID"]) == 8
        assert response.headers["X-Response-Time"].endswith("ms")

    @pytest.mark.asyncio
    async def test_reuses_client_request_id(self, client: AsyncClient):
        response = await client.get("/health", headers={"X-Request-ID": "trace-123"})

        assert response.headers["X-Request-ID"] == "trace-123"


# =============================================================================
# Root Endpoint Tests
# =============================================================================


class TestRootEndpoint:
    """Tests for root endpoint."""

    @pytest.mark.asyncio
    async def test_root_returns_api_info(self, client: AsyncClient):
        response = await client.get("/")

        assert response.status_code == 200
        assert response.json()["name"] == "DQ Flags API"
