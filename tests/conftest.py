"""Pytest configuration and shared fixtures for the flag core tests.

This module provides an in-memory graph seeded with a small movie dataset,
a running worker pool and a flag service wired to both.
"""

from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio

from dq.execution.pool import WorkerPool
from dq.flags.service import DataQualityService
from dq.graph.memory import MemoryGraph
from dq.graph.models import GraphNode

# ---------------------------------------------------------------------------
# Sample Data
# ---------------------------------------------------------------------------

MOVIE = {"title": "The Matrix", "released": 1999, "tagline": "Welcome to the Real World"}

PEOPLE = [
    ({"name": "Keanu Reeves", "born": 1964}, "Neo"),
    ({"name": "Carrie-Anne Moss", "born": 1967}, "Trinity"),
    ({"name": "Laurence Fishburne", "born": 1961}, "Morpheus"),
    ({"name": "Hugo Weaving", "born": 1960}, "Agent Smith"),
]


# ---------------------------------------------------------------------------
# Graph Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def graph() -> MemoryGraph:
    """Empty in-memory graph."""
    return MemoryGraph()


@pytest_asyncio.fixture
async def movie_graph(graph: MemoryGraph) -> dict[str, GraphNode]:
    """Seed the graph with one movie and its four actors.

    Returns:
        Nodes keyed by person name, plus the movie under ``"movie"``.
    """
    nodes: dict[str, GraphNode] = {}
    async with graph.transaction() as tx:
        movie = await tx.create_node(["Movie"], MOVIE)
        nodes["movie"] = movie
        for properties, role in PEOPLE:
            person = await tx.create_node(["Person"], properties)
            await tx.create_relationship(person, movie, "ACTED_IN", {"roles": [role]})
            nodes[properties["name"]] = person
    return nodes


@pytest.fixture
def people(movie_graph: dict[str, GraphNode]) -> list[GraphNode]:
    """The four seeded Person nodes, in insertion order."""
    return [movie_graph[properties["name"]] for properties, _ in PEOPLE]


# ---------------------------------------------------------------------------
# Execution Fixtures
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def pool() -> AsyncGenerator[WorkerPool, None]:
    """A small running worker pool, stopped after the test."""
    worker_pool = WorkerPool(core_workers=1, max_workers=2, queue_size=10, keep_alive=1.0)
    await worker_pool.start()
    yield worker_pool
    await worker_pool.stop(timeout=1.0)


@pytest.fixture
def service(graph: MemoryGraph, pool: WorkerPool) -> DataQualityService:
    """Flag service over the in-memory graph and the test pool."""
    return DataQualityService(graph, pool, batch_timeout=5.0)
