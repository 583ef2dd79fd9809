"""Flag creation, listing and attachments."""

from collections.abc import AsyncIterator
from datetime import UTC, datetime

import structlog

from dq.graph.base import GraphTransaction
from dq.graph.models import Direction, GraphNode

from .models import (
    CREATED_PROPERTY,
    DEFAULT_FLAG_LABEL,
    DESCRIPTION_PROPERTY,
    DQ_FLAG,
    HAS_ATTACHMENT,
    HAS_DQ_CLASS,
    HAS_DQ_FLAG,
    Attachment,
    FlagInstance,
)
from .taxonomy import ClassListing, TaxonomyStore

logger = structlog.get_logger(__name__)


def as_node(ref: GraphNode | FlagInstance) -> GraphNode:
    """Unwrap a flag model to its graph node."""
    return ref.node if isinstance(ref, FlagInstance) else ref


class FlagListing:
    """Lazy, restartable sequence of flag instances.

    With a filter, only flags carrying that node label (their class label)
    are produced. Every ``async for`` re-reads the graph.
    """

    def __init__(self, tx: GraphTransaction, label_filter: str = "") -> None:
        self._tx = tx
        self._label_filter = label_filter

    async def __aiter__(self) -> AsyncIterator[FlagInstance]:
        async for node in self._tx.find_nodes(DQ_FLAG):
            if self._label_filter and not node.has_label(self._label_filter):
                continue
            yield FlagInstance.from_node(node)

    async def to_list(self) -> list[FlagInstance]:
        """Collect the listing."""
        return [flag async for flag in self]


class FlagRegistry:
    """Creates flags on entities and attaches nodes to flags.

    Attributes:
        tx: The caller's transaction.
        taxonomy: Class store sharing the same transaction.
    """

    def __init__(self, tx: GraphTransaction, taxonomy: TaxonomyStore | None = None) -> None:
        self.tx = tx
        self.taxonomy = taxonomy or TaxonomyStore(tx)

    async def create_flag(
        self,
        entity: GraphNode,
        label: str = DEFAULT_FLAG_LABEL,
        description: str = "",
    ) -> FlagInstance:
        """Raise a flag of class ``label`` on an entity.

        The class is resolved, or created under the root, first; if that
        fails nothing is written.

        Args:
            entity: The node to flag.
            label: Class label of the flag.
            description: Free-text description.

        Returns:
            The new flag.

        Raises:
            InvalidArgumentError: If the label is empty or reserved.
            MultipleClassesFoundError: If the class label is not unique.
        """
        flag_class = await self.taxonomy.find_or_create_class(label)

        node = await self.tx.create_node(
            [label, DQ_FLAG],
            {
                DESCRIPTION_PROPERTY: description,
                CREATED_PROPERTY: datetime.now(UTC),
            },
        )
        await self.tx.create_relationship(node, flag_class.node, HAS_DQ_CLASS)
        await self.tx.create_relationship(entity, node, HAS_DQ_FLAG)

        logger.debug("Created flag", flag_id=node.id, label=label, entity_id=entity.id)
        return FlagInstance.from_node(node)

    async def attach_to_flag(
        self,
        flag: GraphNode | FlagInstance,
        target: GraphNode,
        description: str = "",
    ) -> Attachment:
        """Attach any node to a flag.

        Args:
            flag: The flag to attach to.
            target: The node to attach.
            description: Description stored on the attachment edge.

        Returns:
            The attachment.
        """
        relationship = await self.tx.create_relationship(
            as_node(flag), target, HAS_ATTACHMENT, {DESCRIPTION_PROPERTY: description}
        )
        logger.debug("Attached node to flag", flag_id=relationship.start_id, target_id=target.id)
        return Attachment.from_relationship(relationship)

    async def attachments_of(self, flag: GraphNode | FlagInstance) -> list[Attachment]:
        """List the attachments of a flag."""
        steps = await self.tx.traverse(as_node(flag), Direction.OUTGOING, HAS_ATTACHMENT)
        return [Attachment.from_relationship(relationship) for relationship, _ in steps]

    async def flags_of(self, entity: GraphNode) -> list[FlagInstance]:
        """List the flags raised on an entity."""
        steps = await self.tx.traverse(entity, Direction.OUTGOING, HAS_DQ_FLAG)
        return [FlagInstance.from_node(node) for _, node in steps if node.has_label(DQ_FLAG)]

    def list_flags(self, label_filter: str = "") -> FlagListing:
        """List flags, optionally only those of class ``label_filter``."""
        return FlagListing(self.tx, label_filter)

    def list_classes(self, label_filter: str = "") -> ClassListing:
        """List classes, optionally only the one labelled ``label_filter``."""
        return self.taxonomy.list_classes(label_filter)
