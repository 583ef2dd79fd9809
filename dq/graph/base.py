"""Abstract graph storage interface.

This module defines the primitives the data-quality core needs from a graph
engine. Every backend (Neo4j, in-memory) implements `GraphDatabase` to open
transactions and `GraphTransaction` to read and write inside one.
"""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Mapping, Sequence
from contextlib import asynccontextmanager
from typing import Any

import structlog

from .models import Direction, GraphNode, GraphRelationship, TraversalStep

logger = structlog.get_logger(__name__)


class GraphStoreError(Exception):
    """Exception raised for graph store operation errors."""

    pass


class NodeNotFoundError(GraphStoreError):
    """Raised when a node identifier does not resolve to a node."""

    def __init__(self, identifier: int | str) -> None:
        super().__init__(f"Node not found: {identifier!r}")
        self.identifier = identifier


class MultipleNodesFoundError(GraphStoreError):
    """Raised when a single-node lookup matches more than one node."""

    def __init__(self, label: str, key: str, value: Any) -> None:
        super().__init__(f"Multiple nodes found for :{label}({key}={value!r})")
        self.label = label
        self.key = key
        self.value = value


class GraphTransaction(ABC):
    """A unit of work against the graph.

    Node and relationship arguments are snapshots; implementations resolve
    them by id, so snapshots taken in another transaction are accepted.
    """

    @abstractmethod
    async def create_node(
        self,
        labels: Sequence[str],
        properties: Mapping[str, Any] | None = None,
    ) -> GraphNode:
        """Create a node with the given labels and properties.

        Args:
            labels: Labels to put on the node.
            properties: Initial properties. None values are not stored.

        Returns:
            The created node.
        """
        ...

    @abstractmethod
    async def create_relationship(
        self,
        start: GraphNode,
        end: GraphNode,
        rel_type: str,
        properties: Mapping[str, Any] | None = None,
    ) -> GraphRelationship:
        """Create a directed relationship from ``start`` to ``end``."""
        ...

    @abstractmethod
    async def find_node(self, label: str, key: str, value: Any) -> GraphNode | None:
        """Find at most one node by label and property value.

        Returns:
            The matching node, or None if nothing matches.

        Raises:
            MultipleNodesFoundError: If more than one node matches.
        """
        ...

    @abstractmethod
    def find_nodes(
        self,
        label: str,
        key: str | None = None,
        value: Any = None,
    ) -> AsyncIterator[GraphNode]:
        """Iterate over nodes carrying ``label``.

        When ``key`` is given only nodes whose property equals ``value`` are
        yielded.
        """
        ...

    @abstractmethod
    async def get_node(self, identifier: int | str) -> GraphNode:
        """Resolve a node by raw numeric id or store id string.

        Raises:
            NodeNotFoundError: If no such node exists.
        """
        ...

    @abstractmethod
    async def traverse(
        self,
        node: GraphNode,
        direction: Direction,
        rel_type: str | None = None,
    ) -> list[TraversalStep]:
        """List relationships of a node with the node at their other end.

        Args:
            node: The node to expand.
            direction: Which relationships to follow, seen from ``node``.
            rel_type: Optional relationship type filter.

        Returns:
            A list of (relationship, other node) pairs.
        """
        ...

    @abstractmethod
    async def delete_relationship(self, relationship: GraphRelationship) -> None:
        """Delete a single relationship."""
        ...

    @abstractmethod
    async def delete_node(self, node: GraphNode) -> None:
        """Delete a node that has no remaining relationships.

        Raises:
            GraphStoreError: If the node still has relationships.
        """
        ...

    @abstractmethod
    async def detach_delete(self, node: GraphNode) -> None:
        """Delete every relationship of a node, then the node itself."""
        ...

    @abstractmethod
    async def commit(self) -> None:
        """Make the transaction's writes durable."""
        ...

    @abstractmethod
    async def rollback(self) -> None:
        """Discard the transaction's writes."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release resources held by the transaction."""
        ...


class GraphDatabase(ABC):
    """Factory for independent graph transactions."""

    @abstractmethod
    async def begin_transaction(self) -> GraphTransaction:
        """Open a new transaction."""
        ...

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[GraphTransaction]:
        """Run a block inside a brand-new transaction.

        Commits when the block exits normally and rolls back when it raises,
        including on cancellation.

        Yields:
            The open transaction.
        """
        tx = await self.begin_transaction()
        try:
            yield tx
        except BaseException:
            logger.debug("Rolling back transaction")
            await tx.rollback()
            raise
        else:
            await tx.commit()
        finally:
            await tx.close()
