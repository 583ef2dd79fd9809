"""Pydantic models for flag classes, flag instances and attachments.

This module also fixes the graph vocabulary of the data-quality core:

    (entity)-[:HAS_DQ_FLAG]->(flag:DQ_Flag:<class label>)
    (flag)-[:HAS_DQ_CLASS]->(class:DQ_Class {class: <label>})
    (class)-[:HAS_DQ_CLASS]->(parent:DQ_Class)          # absent for the root
    (flag)-[:HAS_ATTACHMENT {description}]->(any node)
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from dq.graph.models import GraphNode, GraphRelationship

# Node labels
DQ_CLASS = "DQ_Class"
DQ_ALL = "DQ_All"
DQ_FLAG = "DQ_Flag"
RESERVED_LABELS = frozenset({DQ_CLASS, DQ_ALL, DQ_FLAG})

# Relationship types
HAS_DQ_CLASS = "HAS_DQ_CLASS"
HAS_DQ_FLAG = "HAS_DQ_FLAG"
HAS_ATTACHMENT = "HAS_ATTACHMENT"

# Property keys
CLASS_PROPERTY = "class"
DESCRIPTION_PROPERTY = "description"
CREATED_PROPERTY = "created"
ALERT_TRIGGER_LIMIT_PROPERTY = "alertTriggerLimit"

ROOT_LABEL = "all"
DEFAULT_FLAG_LABEL = "Generic_Flag"


class FlagClass(BaseModel):
    """A node of the flag class taxonomy.

    Attributes:
        id: Store identifier of the class node.
        label: Taxonomy key, unique across classes.
        description: Optional free-text description.
        alert_trigger_limit: Optional alert threshold (stored metadata only).
        is_root: Whether this is the root class ``"all"``.
        node: The underlying graph node.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Class node ID")
    label: str = Field(..., description="Taxonomy label")
    description: str | None = Field(None, description="Class description")
    alert_trigger_limit: int | None = Field(None, description="Alert trigger limit")
    is_root: bool = Field(default=False, description="Whether this is the root class")
    node: GraphNode = Field(..., exclude=True, repr=False)

    @classmethod
    def from_node(cls, node: GraphNode) -> "FlagClass":
        """Build a class model from a ``DQ_Class`` node."""
        label = node.get(CLASS_PROPERTY)
        return cls(
            id=node.id,
            label=label,
            description=node.get(DESCRIPTION_PROPERTY),
            alert_trigger_limit=node.get(ALERT_TRIGGER_LIMIT_PROPERTY),
            is_root=node.has_label(DQ_ALL) or label == ROOT_LABEL,
            node=node,
        )


class FlagInstance(BaseModel):
    """One flag raised on an entity.

    Attributes:
        id: Store identifier of the flag node.
        class_label: Label of the flag's class (also a node label).
        description: Free-text description, possibly empty.
        created_at: Creation timestamp.
        node: The underlying graph node.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Flag node ID")
    class_label: str | None = Field(None, description="Owning class label")
    description: str = Field(default="", description="Flag description")
    created_at: datetime | None = Field(None, description="Creation timestamp")
    node: GraphNode = Field(..., exclude=True, repr=False)

    @classmethod
    def from_node(cls, node: GraphNode) -> "FlagInstance":
        """Build a flag model from a ``DQ_Flag`` node.

        The class label is read from the node's other label. A flag created
        under the label ``DQ_Flag`` itself carries no other label.
        """
        other_labels = sorted(label for label in node.labels if label != DQ_FLAG)
        return cls(
            id=node.id,
            class_label=other_labels[0] if other_labels else None,
            description=node.get(DESCRIPTION_PROPERTY, ""),
            created_at=node.get(CREATED_PROPERTY),
            node=node,
        )


class Attachment(BaseModel):
    """A metadata edge from a flag to any other node.

    Attributes:
        id: Store identifier of the relationship.
        flag_id: ID of the flag the attachment starts from.
        target_id: ID of the attached node.
        description: Free-text description.
        relationship: The underlying graph relationship.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Attachment relationship ID")
    flag_id: str = Field(..., description="Flag node ID")
    target_id: str = Field(..., description="Attached node ID")
    description: str = Field(default="", description="Attachment description")
    relationship: GraphRelationship = Field(..., exclude=True, repr=False)

    @classmethod
    def from_relationship(cls, relationship: GraphRelationship) -> "Attachment":
        """Build an attachment model from a ``HAS_ATTACHMENT`` relationship."""
        return cls(
            id=relationship.id,
            flag_id=relationship.start_id,
            target_id=relationship.end_id,
            description=relationship.properties.get(DESCRIPTION_PROPERTY, ""),
            relationship=relationship,
        )


class ClassStatistics(BaseModel):
    """Flag counts for a class subtree.

    Attributes:
        class_label: Label of the class the subtree is rooted at.
        direct: Flags attached directly to the class.
        indirect: Flags attached anywhere below the class.
        total: ``direct + indirect``.
    """

    class_label: str = Field(..., description="Class label")
    direct: int = Field(default=0, ge=0, description="Directly attached flags")
    indirect: int = Field(default=0, ge=0, description="Flags in descendant classes")

    @property
    def total(self) -> int:
        return self.direct + self.indirect

    def to_dict(self) -> dict[str, Any]:
        """Row form used by the command surface."""
        return {
            "class": self.class_label,
            "direct": self.direct,
            "indirect": self.indirect,
            "total": self.total,
        }


class LookupStatus(str, Enum):
    """Outcome of a class lookup by label."""

    FOUND = "found"
    NOT_FOUND = "not_found"
    MULTIPLE = "multiple"


class ClassLookup(BaseModel):
    """Tagged result of looking a class up by label.

    Exactly one of the statuses applies; ``flag_class`` is set only when the
    status is ``FOUND``.
    """

    model_config = ConfigDict(frozen=True)

    label: str
    status: LookupStatus
    flag_class: FlagClass | None = None

    @property
    def found(self) -> bool:
        return self.status is LookupStatus.FOUND
