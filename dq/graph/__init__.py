"""Graph module for storage operations.

This module provides everything the data-quality core needs from a graph
engine: the abstract transaction primitives, node and relationship
snapshots, and two backends (Neo4j and in-memory).

Example usage:
    ```python
    from dq.graph import GraphConnection, Neo4jGraphDatabase

    async with GraphConnection() as conn:
        database = Neo4jGraphDatabase(conn)
        async with database.transaction() as tx:
            node = await tx.create_node(["Person"], {"name": "Keanu Reeves"})
    ```
"""

from .base import (
    GraphDatabase,
    GraphStoreError,
    GraphTransaction,
    MultipleNodesFoundError,
    NodeNotFoundError,
)
from .connection import GraphConnection, GraphConnectionError
from .memory import MemoryGraph, MemoryTransaction
from .models import Direction, GraphNode, GraphRelationship, TraversalStep
from .queries import QUERIES, CypherQueries
from .store import Neo4jGraphDatabase, Neo4jTransaction
from .utils import (
    clean_properties,
    iter_batches,
    labels_clause,
    quote_identifier,
    record_to_node,
    record_to_relationship,
    rel_type_clause,
    take,
    to_native,
)

__all__ = [
    # Connection
    "GraphConnection",
    "GraphConnectionError",
    # Interfaces
    "GraphDatabase",
    "GraphTransaction",
    "GraphStoreError",
    "NodeNotFoundError",
    "MultipleNodesFoundError",
    # Backends
    "Neo4jGraphDatabase",
    "Neo4jTransaction",
    "MemoryGraph",
    "MemoryTransaction",
    # Models
    "Direction",
    "GraphNode",
    "GraphRelationship",
    "TraversalStep",
    # Queries
    "QUERIES",
    "CypherQueries",
    # Utils
    "clean_properties",
    "iter_batches",
    "labels_clause",
    "quote_identifier",
    "record_to_node",
    "record_to_relationship",
    "rel_type_clause",
    "take",
    "to_native",
]
