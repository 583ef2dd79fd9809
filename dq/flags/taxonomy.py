"""Flag class taxonomy: find-or-create and hierarchy maintenance.

Classes form a tree rooted at the class ``"all"``. Each class is identified
by its label, which must be unique; uniqueness is checked when a class is
looked up, and a violation is reported instead of being repaired.
"""

from collections.abc import AsyncIterator

import structlog

from dq.graph.base import GraphTransaction, MultipleNodesFoundError
from dq.graph.models import Direction

from .errors import ClassNotFoundError, InvalidArgumentError, MultipleClassesFoundError
from .models import (
    ALERT_TRIGGER_LIMIT_PROPERTY,
    CLASS_PROPERTY,
    DESCRIPTION_PROPERTY,
    DQ_ALL,
    DQ_CLASS,
    HAS_DQ_CLASS,
    RESERVED_LABELS,
    ROOT_LABEL,
    ClassLookup,
    FlagClass,
    LookupStatus,
)

logger = structlog.get_logger(__name__)


def validate_label(label: str) -> str:
    """Reject empty class labels and the node labels the taxonomy itself uses.

    A flag carries its class label as a node label, so a class named after
    one of ``DQ_Class``, ``DQ_All`` or ``DQ_Flag`` would make its flags look
    like classes or the root.

    Returns:
        The label, unchanged.

    Raises:
        InvalidArgumentError: If the label is empty, whitespace or reserved.
    """
    if not isinstance(label, str) or not label.strip():
        raise InvalidArgumentError(f"Class label must be a non-empty string, got {label!r}")
    if label in RESERVED_LABELS:
        raise InvalidArgumentError(f"Class label {label!r} is reserved")
    return label


class ClassListing:
    """Lazy, restartable sequence of flag classes.

    Every ``async for`` over the listing re-reads the graph.
    """

    def __init__(self, tx: GraphTransaction, label_filter: str = "") -> None:
        self._tx = tx
        self._label_filter = label_filter

    async def __aiter__(self) -> AsyncIterator[FlagClass]:
        if self._label_filter:
            nodes = self._tx.find_nodes(DQ_CLASS, CLASS_PROPERTY, self._label_filter)
        else:
            nodes = self._tx.find_nodes(DQ_CLASS)
        async for node in nodes:
            yield FlagClass.from_node(node)

    async def to_list(self) -> list[FlagClass]:
        """Collect the listing."""
        return [flag_class async for flag_class in self]


class TaxonomyStore:
    """Resolves, creates and links flag classes inside a transaction.

    Attributes:
        tx: The caller's transaction.
    """

    def __init__(self, tx: GraphTransaction) -> None:
        self.tx = tx

    async def lookup_class(self, label: str) -> ClassLookup:
        """Look a class up by label without raising for absence or ambiguity.

        Args:
            label: The class label.

        Returns:
            A `ClassLookup` tagged ``FOUND``, ``NOT_FOUND`` or ``MULTIPLE``.
        """
        try:
            node = await self.tx.find_node(DQ_CLASS, CLASS_PROPERTY, label)
        except MultipleNodesFoundError:
            logger.error("Multiple flag classes share a label", label=label)
            return ClassLookup(label=label, status=LookupStatus.MULTIPLE)
        if node is None:
            return ClassLookup(label=label, status=LookupStatus.NOT_FOUND)
        return ClassLookup(
            label=label, status=LookupStatus.FOUND, flag_class=FlagClass.from_node(node)
        )

    async def find_class(self, label: str) -> FlagClass | None:
        """Get a class by label, or None when it does not exist.

        Raises:
            MultipleClassesFoundError: If the label is not unique.
        """
        lookup = await self.lookup_class(label)
        if lookup.status is LookupStatus.MULTIPLE:
            raise MultipleClassesFoundError(label)
        return lookup.flag_class

    async def get_class(self, label: str) -> FlagClass:
        """Get a class by label.

        Raises:
            ClassNotFoundError: If no class carries the label.
            MultipleClassesFoundError: If the label is not unique.
        """
        flag_class = await self.find_class(label)
        if flag_class is None:
            raise ClassNotFoundError(label)
        return flag_class

    async def find_or_create_class(
        self,
        label: str,
        parent_label: str | None = None,
        *,
        alert_trigger_limit: int = -1,
        description: str = "",
    ) -> FlagClass:
        """Return the class with ``label``, creating it (and its parent) if needed.

        An existing class is returned unchanged: its parent, description and
        alert limit are only set when it is first created. A new non-root
        class is linked to ``parent_label`` (default ``"all"``), which is
        itself resolved or created with the root as its parent.

        Args:
            label: The class label.
            parent_label: Parent class label for a newly created class.
            alert_trigger_limit: Stored on a new class only when positive.
            description: Stored on a new class only when non-empty.

        Returns:
            The existing or newly created class.

        Raises:
            InvalidArgumentError: If a label is empty or reserved.
            MultipleClassesFoundError: If ``label`` or the parent label is
                not unique. Nothing is created in that case.
        """
        validate_label(label)
        existing = await self.find_class(label)
        if existing is not None:
            return existing

        parent: FlagClass | None = None
        if label != ROOT_LABEL:
            parent_label = ROOT_LABEL if parent_label is None else validate_label(parent_label)
            if parent_label == label:
                raise InvalidArgumentError(f"Class {label!r} cannot be its own parent")
            # Resolve the parent first so a duplicate there aborts before any write
            parent = await self.find_or_create_class(parent_label)

        properties: dict[str, object] = {CLASS_PROPERTY: label}
        if description:
            properties[DESCRIPTION_PROPERTY] = description
        if alert_trigger_limit is not None and alert_trigger_limit > 0:
            properties[ALERT_TRIGGER_LIMIT_PROPERTY] = alert_trigger_limit

        labels = [DQ_CLASS, DQ_ALL] if label == ROOT_LABEL else [DQ_CLASS]
        node = await self.tx.create_node(labels, properties)
        if parent is not None:
            await self.tx.create_relationship(node, parent.node, HAS_DQ_CLASS)

        logger.info(
            "Created flag class",
            label=label,
            parent=parent.label if parent is not None else None,
        )
        return FlagClass.from_node(node)

    async def get_parent(self, flag_class: FlagClass) -> FlagClass | None:
        """Get the parent of a class.

        Returns:
            The parent class, or None for the root and for orphaned classes.
        """
        for _, other in await self.tx.traverse(flag_class.node, Direction.OUTGOING, HAS_DQ_CLASS):
            if other.has_label(DQ_CLASS):
                return FlagClass.from_node(other)
        return None

    async def get_children(self, flag_class: FlagClass) -> list[FlagClass]:
        """Get the classes directly below a class."""
        return [
            FlagClass.from_node(other)
            for _, other in await self.tx.traverse(
                flag_class.node, Direction.INCOMING, HAS_DQ_CLASS
            )
            if other.has_label(DQ_CLASS)
        ]

    def list_classes(self, label_filter: str = "") -> ClassListing:
        """List classes, optionally only those whose label equals ``label_filter``."""
        return ClassListing(self.tx, label_filter)
