"""Pydantic models for graph nodes and relationships.

This module defines the detached snapshots the storage layer hands back to
callers. A snapshot carries the store identifier, labels (or type) and
properties of a node or relationship as they were when it was read, so it can
outlive the transaction that produced it and be re-resolved by id later.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class Direction(str, Enum):
    """Direction filter for relationship traversal."""

    OUTGOING = "OUTGOING"
    INCOMING = "INCOMING"
    BOTH = "BOTH"


class GraphNode(BaseModel):
    """Snapshot of a node in the graph.

    Attributes:
        id: Store identifier (element id for Neo4j).
        labels: Labels carried by the node.
        properties: Node properties.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str = Field(..., description="Store node identifier")
    labels: frozenset[str] = Field(default_factory=frozenset, description="Node labels")
    properties: dict[str, Any] = Field(default_factory=dict, description="Node properties")

    def has_label(self, label: str) -> bool:
        """Check whether the node carries a label."""
        return label in self.labels

    def get(self, key: str, default: Any = None) -> Any:
        """Get a property value, or a default when the property is unset."""
        return self.properties.get(key, default)

    def __hash__(self) -> int:
        return hash(self.id)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, GraphNode):
            return NotImplemented
        return self.id == other.id


class GraphRelationship(BaseModel):
    """Snapshot of a directed, typed relationship.

    Attributes:
        id: Store identifier of the relationship.
        type: Relationship type.
        start_id: Identifier of the start node.
        end_id: Identifier of the end node.
        properties: Relationship properties.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str = Field(..., description="Store relationship identifier")
    type: str = Field(..., description="Relationship type")
    start_id: str = Field(..., description="Start node ID")
    end_id: str = Field(..., description="End node ID")
    properties: dict[str, Any] = Field(
        default_factory=dict, description="Relationship properties"
    )

    def other_node_id(self, node_id: str) -> str:
        """Return the identifier of the node at the opposite end."""
        return self.end_id if node_id == self.start_id else self.start_id

    def __hash__(self) -> int:
        return hash(self.id)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, GraphRelationship):
            return NotImplemented
        return self.id == other.id


# A relationship paired with the node found at its far end
TraversalStep = tuple[GraphRelationship, GraphNode]
