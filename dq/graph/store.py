"""Neo4j implementation of the graph storage primitives.

This module adapts explicit Neo4j transactions to the `GraphTransaction`
interface. Each primitive maps to one parameterized Cypher statement from
`QUERIES`; driver errors are wrapped in `GraphStoreError`.
"""

from collections.abc import AsyncIterator, Mapping, Sequence
from typing import Any

import structlog
from neo4j import AsyncSession, AsyncTransaction
from neo4j.exceptions import Neo4jError

from .base import (
    GraphDatabase,
    GraphStoreError,
    GraphTransaction,
    MultipleNodesFoundError,
    NodeNotFoundError,
)
from .connection import GraphConnection
from .models import Direction, GraphNode, GraphRelationship, TraversalStep
from .queries import QUERIES
from .utils import (
    clean_properties,
    labels_clause,
    quote_identifier,
    record_to_node,
    record_to_relationship,
    rel_type_clause,
)

logger = structlog.get_logger(__name__)

_TRAVERSALS = {
    Direction.OUTGOING: QUERIES.TRAVERSE_OUTGOING,
    Direction.INCOMING: QUERIES.TRAVERSE_INCOMING,
    Direction.BOTH: QUERIES.TRAVERSE_BOTH,
}


class Neo4jTransaction(GraphTransaction):
    """A graph transaction backed by an explicit Neo4j transaction.

    Attributes:
        session: The session owning the transaction.
        tx: The open Neo4j transaction.
    """

    def __init__(self, session: AsyncSession, tx: AsyncTransaction) -> None:
        self.session = session
        self.tx = tx

    async def _fetch(self, query: str, parameters: dict[str, Any]) -> list[dict[str, Any]]:
        try:
            result = await self.tx.run(query, parameters)
            return await result.data()
        except Neo4jError as e:
            raise GraphStoreError(f"Query failed: {e}") from e

    async def create_node(
        self,
        labels: Sequence[str],
        properties: Mapping[str, Any] | None = None,
    ) -> GraphNode:
        query = QUERIES.CREATE_NODE.format(labels=labels_clause(labels))
        records = await self._fetch(query, {"properties": clean_properties(properties)})
        if not records:
            raise GraphStoreError(f"Node creation returned no record for labels {list(labels)}")
        node = record_to_node(records[0])
        logger.debug("Created node", node_id=node.id, labels=sorted(node.labels))
        return node

    async def create_relationship(
        self,
        start: GraphNode,
        end: GraphNode,
        rel_type: str,
        properties: Mapping[str, Any] | None = None,
    ) -> GraphRelationship:
        query = QUERIES.CREATE_RELATIONSHIP.format(rel_type=quote_identifier(rel_type))
        records = await self._fetch(
            query,
            {
                "start_id": start.id,
                "end_id": end.id,
                "properties": clean_properties(properties),
            },
        )
        if not records:
            # MATCH found nothing: one of the endpoints is gone
            raise NodeNotFoundError(f"{start.id} or {end.id}")
        relationship = record_to_relationship(records[0])
        logger.debug("Created relationship", rel_type=rel_type, rel_id=relationship.id)
        return relationship

    async def find_node(self, label: str, key: str, value: Any) -> GraphNode | None:
        query = QUERIES.FIND_NODE_BY_PROPERTY.format(label=quote_identifier(label))
        records = await self._fetch(query, {"key": key, "value": value})
        if len(records) > 1:
            raise MultipleNodesFoundError(label, key, value)
        return record_to_node(records[0]) if records else None

    async def find_nodes(
        self,
        label: str,
        key: str | None = None,
        value: Any = None,
    ) -> AsyncIterator[GraphNode]:
        if key is None:
            query = QUERIES.FIND_NODES_BY_LABEL.format(label=quote_identifier(label))
            parameters: dict[str, Any] = {}
        else:
            query = QUERIES.FIND_NODES_BY_PROPERTY.format(label=quote_identifier(label))
            parameters = {"key": key, "value": value}
        try:
            result = await self.tx.run(query, parameters)
            async for record in result:
                yield record_to_node(record)
        except Neo4jError as e:
            raise GraphStoreError(f"Query failed: {e}") from e

    async def get_node(self, identifier: int | str) -> GraphNode:
        if isinstance(identifier, int):
            query = QUERIES.GET_NODE_BY_NUMERIC_ID
        else:
            query = QUERIES.GET_NODE_BY_ELEMENT_ID
        records = await self._fetch(query, {"id": identifier})
        if not records:
            raise NodeNotFoundError(identifier)
        return record_to_node(records[0])

    async def traverse(
        self,
        node: GraphNode,
        direction: Direction,
        rel_type: str | None = None,
    ) -> list[TraversalStep]:
        query = _TRAVERSALS[direction].format(rel_type=rel_type_clause(rel_type))
        records = await self._fetch(query, {"id": node.id})
        return [(record_to_relationship(record), record_to_node(record)) for record in records]

    async def delete_relationship(self, relationship: GraphRelationship) -> None:
        await self._fetch(QUERIES.DELETE_RELATIONSHIP, {"id": relationship.id})

    async def delete_node(self, node: GraphNode) -> None:
        await self._fetch(QUERIES.DELETE_NODE, {"id": node.id})

    async def detach_delete(self, node: GraphNode) -> None:
        await self._fetch(QUERIES.DETACH_DELETE_NODE, {"id": node.id})
        logger.debug("Detach-deleted node", node_id=node.id)

    async def commit(self) -> None:
        try:
            await self.tx.commit()
        except Neo4jError as e:
            raise GraphStoreError(f"Commit failed: {e}") from e

    async def rollback(self) -> None:
        try:
            await self.tx.rollback()
        except Neo4jError as e:
            raise GraphStoreError(f"Rollback failed: {e}") from e

    async def close(self) -> None:
        try:
            await self.tx.close()
        finally:
            await self.session.close()


class Neo4jGraphDatabase(GraphDatabase):
    """Opens `Neo4jTransaction`s on a shared `GraphConnection`.

    Attributes:
        connection: The established Neo4j connection.
    """

    def __init__(self, connection: GraphConnection) -> None:
        self.connection = connection

    async def begin_transaction(self) -> Neo4jTransaction:
        session = self.connection.open_session()
        try:
            tx = await session.begin_transaction()
        except Neo4jError as e:
            await session.close()
            raise GraphStoreError(f"Failed to begin transaction: {e}") from e
        return Neo4jTransaction(session, tx)
