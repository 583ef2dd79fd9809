"""In-process graph backend.

`MemoryGraph` keeps nodes and relationships in dictionaries and implements
the same primitives as the Neo4j backend. It is used for embedding the flag
service without a server and as the graph behind the test suite.

Writes are applied immediately and recorded in a per-transaction undo log;
rollback replays the log backwards. There is no isolation between
concurrently open transactions.
"""

import itertools
from collections import defaultdict
from collections.abc import AsyncIterator, Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

import structlog

from .base import (
    GraphDatabase,
    GraphStoreError,
    GraphTransaction,
    MultipleNodesFoundError,
    NodeNotFoundError,
)
from .models import Direction, GraphNode, GraphRelationship, TraversalStep
from .utils import clean_properties

logger = structlog.get_logger(__name__)


@dataclass
class _StoredNode:
    id: str
    labels: set[str]
    properties: dict[str, Any] = field(default_factory=dict)

    def snapshot(self) -> GraphNode:
        return GraphNode(
            id=self.id, labels=frozenset(self.labels), properties=dict(self.properties)
        )


@dataclass
class _StoredRelationship:
    id: str
    type: str
    start_id: str
    end_id: str
    properties: dict[str, Any] = field(default_factory=dict)

    def snapshot(self) -> GraphRelationship:
        return GraphRelationship(
            id=self.id,
            type=self.type,
            start_id=self.start_id,
            end_id=self.end_id,
            properties=dict(self.properties),
        )


class MemoryGraph(GraphDatabase):
    """A graph held entirely in process memory."""

    def __init__(self) -> None:
        self._nodes: dict[str, _StoredNode] = {}
        self._relationships: dict[str, _StoredRelationship] = {}
        self._adjacency: defaultdict[str, set[str]] = defaultdict(set)
        self._node_ids = itertools.count()
        self._relationship_ids = itertools.count()
        self.transactions_opened = 0

    async def begin_transaction(self) -> "MemoryTransaction":
        self.transactions_opened += 1
        return MemoryTransaction(self)

    def node_count(self, label: str | None = None) -> int:
        """Count committed and in-flight nodes, optionally by label."""
        if label is None:
            return len(self._nodes)
        return sum(1 for node in self._nodes.values() if label in node.labels)

    def relationship_count(self, rel_type: str | None = None) -> int:
        """Count relationships, optionally by type."""
        if rel_type is None:
            return len(self._relationships)
        return sum(1 for rel in self._relationships.values() if rel.type == rel_type)

    def clear(self) -> None:
        """Remove everything from the graph."""
        self._nodes.clear()
        self._relationships.clear()
        self._adjacency.clear()


class MemoryTransaction(GraphTransaction):
    """A transaction over a `MemoryGraph` with an undo log."""

    def __init__(self, graph: MemoryGraph) -> None:
        self._graph = graph
        self._undo: list[Callable[[], None]] = []
        self._open = True

    def _check_open(self) -> None:
        if not self._open:
            raise GraphStoreError("Transaction is closed")

    def _stored_node(self, node_id: str) -> _StoredNode:
        stored = self._graph._nodes.get(node_id)
        if stored is None:
            raise NodeNotFoundError(node_id)
        return stored

    async def create_node(
        self,
        labels: Sequence[str],
        properties: Mapping[str, Any] | None = None,
    ) -> GraphNode:
        self._check_open()
        node_id = str(next(self._graph._node_ids))
        stored = _StoredNode(
            id=node_id, labels=set(labels), properties=clean_properties(properties)
        )
        self._graph._nodes[node_id] = stored
        self._undo.append(lambda: self._graph._nodes.pop(node_id, None))
        return stored.snapshot()

    async def create_relationship(
        self,
        start: GraphNode,
        end: GraphNode,
        rel_type: str,
        properties: Mapping[str, Any] | None = None,
    ) -> GraphRelationship:
        self._check_open()
        self._stored_node(start.id)
        self._stored_node(end.id)
        rel_id = str(next(self._graph._relationship_ids))
        stored = _StoredRelationship(
            id=rel_id,
            type=rel_type,
            start_id=start.id,
            end_id=end.id,
            properties=clean_properties(properties),
        )
        self._link(stored)
        self._undo.append(lambda: self._unlink(stored))
        return stored.snapshot()

    def _link(self, stored: _StoredRelationship) -> None:
        self._graph._relationships[stored.id] = stored
        self._graph._adjacency[stored.start_id].add(stored.id)
        self._graph._adjacency[stored.end_id].add(stored.id)

    def _unlink(self, stored: _StoredRelationship) -> None:
        self._graph._relationships.pop(stored.id, None)
        self._graph._adjacency[stored.start_id].discard(stored.id)
        self._graph._adjacency[stored.end_id].discard(stored.id)

    def _matching(self, label: str, key: str | None, value: Any) -> list[_StoredNode]:
        return [
            node
            for node in self._graph._nodes.values()
            if label in node.labels and (key is None or node.properties.get(key) == value)
        ]

    async def find_node(self, label: str, key: str, value: Any) -> GraphNode | None:
        self._check_open()
        matches = self._matching(label, key, value)
        if len(matches) > 1:
            raise MultipleNodesFoundError(label, key, value)
        return matches[0].snapshot() if matches else None

    async def find_nodes(
        self,
        label: str,
        key: str | None = None,
        value: Any = None,
    ) -> AsyncIterator[GraphNode]:
        self._check_open()
        for node in self._matching(label, key, value):
            yield node.snapshot()

    async def get_node(self, identifier: int | str) -> GraphNode:
        self._check_open()
        stored = self._graph._nodes.get(str(identifier))
        if stored is None:
            raise NodeNotFoundError(identifier)
        return stored.snapshot()

    async def traverse(
        self,
        node: GraphNode,
        direction: Direction,
        rel_type: str | None = None,
    ) -> list[TraversalStep]:
        self._check_open()
        self._stored_node(node.id)
        steps: list[TraversalStep] = []
        for rel_id in sorted(self._graph._adjacency.get(node.id, ()), key=int):
            rel = self._graph._relationships[rel_id]
            if rel_type is not None and rel.type != rel_type:
                continue
            if direction is Direction.OUTGOING and rel.start_id != node.id:
                continue
            if direction is Direction.INCOMING and rel.end_id != node.id:
                continue
            other = self._graph._nodes[rel.end_id if rel.start_id == node.id else rel.start_id]
            steps.append((rel.snapshot(), other.snapshot()))
        return steps

    async def delete_relationship(self, relationship: GraphRelationship) -> None:
        self._check_open()
        stored = self._graph._relationships.get(relationship.id)
        if stored is None:
            return
        self._unlink(stored)
        self._undo.append(lambda: self._link(stored))

    async def delete_node(self, node: GraphNode) -> None:
        self._check_open()
        stored = self._graph._nodes.get(node.id)
        if stored is None:
            return
        if self._graph._adjacency.get(node.id):
            raise GraphStoreError(f"Node {node.id} still has relationships")
        del self._graph._nodes[node.id]
        self._graph._adjacency.pop(node.id, None)
        self._undo.append(lambda: self._graph._nodes.setdefault(stored.id, stored))

    async def detach_delete(self, node: GraphNode) -> None:
        self._check_open()
        if node.id not in self._graph._nodes:
            return
        for relationship, _ in await self.traverse(node, Direction.BOTH):
            await self.delete_relationship(relationship)
        await self.delete_node(node)

    async def commit(self) -> None:
        self._check_open()
        self._undo.clear()
        self._open = False

    async def rollback(self) -> None:
        self._check_open()
        for undo in reversed(self._undo):
            undo()
        logger.debug("Rolled back memory transaction", writes=len(self._undo))
        self._undo.clear()
        self._open = False

    async def close(self) -> None:
        if self._open:
            await self.rollback()
