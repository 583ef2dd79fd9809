"""Boundary facade over the flag core.

`DataQualityService` exposes the operations the command surface calls, with
their default arguments. Everything except the batch deletions runs inside
the transaction the caller passes in; the batch deletions run on the worker
pool in transactions of their own.
"""

import structlog

from dq.execution.pool import WorkerPool
from dq.graph.base import GraphDatabase, GraphTransaction
from dq.graph.models import GraphNode

from .batch import BatchDeletionScheduler, BatchInput
from .errors import ClassNotFoundError
from .lifecycle import ClassLifecycle
from .models import (
    DEFAULT_FLAG_LABEL,
    ROOT_LABEL,
    Attachment,
    ClassStatistics,
    FlagClass,
    FlagInstance,
)
from .registry import FlagListing, FlagRegistry
from .statistics import DEFAULT_MAX_DEPTH, StatisticsAggregator
from .taxonomy import ClassListing, TaxonomyStore

logger = structlog.get_logger(__name__)


class DataQualityService:
    """Entry point for flag, class and statistics operations.

    Attributes:
        database: Graph database used for batch transactions.
        pool: Worker pool the batch deletions run on.
        scheduler: Batch deletion scheduler.
        max_depth: Depth limit for statistics walks.
    """

    def __init__(
        self,
        database: GraphDatabase,
        pool: WorkerPool,
        *,
        batch_timeout: float | None = None,
        max_depth: int = DEFAULT_MAX_DEPTH,
    ) -> None:
        self.database = database
        self.pool = pool
        self.scheduler = BatchDeletionScheduler(database, pool, batch_timeout=batch_timeout)
        self.max_depth = max_depth

    async def create_flag(
        self,
        tx: GraphTransaction,
        entity: GraphNode,
        label: str = DEFAULT_FLAG_LABEL,
        description: str = "",
    ) -> FlagInstance:
        """Raise a flag on an entity; see `FlagRegistry.create_flag`."""
        return await FlagRegistry(tx).create_flag(entity, label, description)

    async def attach_to_flag(
        self,
        tx: GraphTransaction,
        flag: GraphNode | FlagInstance,
        target: GraphNode,
        description: str = "",
    ) -> Attachment:
        """Attach a node to a flag; see `FlagRegistry.attach_to_flag`."""
        return await FlagRegistry(tx).attach_to_flag(flag, target, description)

    async def attachments_of(
        self, tx: GraphTransaction, flag: GraphNode | FlagInstance
    ) -> list[Attachment]:
        return await FlagRegistry(tx).attachments_of(flag)

    async def delete_flags(self, refs: BatchInput, batch_size: int = 1) -> int:
        """Delete flags in isolated batches; returns references processed."""
        return await self.scheduler.delete_flags(refs, batch_size)

    async def delete_flags_of_entities(self, entities: BatchInput, batch_size: int = 1) -> int:
        """Delete the flags of entities in isolated batches; returns entities processed."""
        return await self.scheduler.delete_flags_of_entities(entities, batch_size)

    def list_flags(self, tx: GraphTransaction, label_filter: str = "") -> FlagListing:
        return FlagRegistry(tx).list_flags(label_filter)

    def list_classes(self, tx: GraphTransaction, label_filter: str = "") -> ClassListing:
        return TaxonomyStore(tx).list_classes(label_filter)

    async def create_class(
        self,
        tx: GraphTransaction,
        label: str,
        parent_label: str = ROOT_LABEL,
        alert_trigger_limit: int = -1,
        description: str = "",
    ) -> FlagClass:
        """Find or create a class under ``parent_label``.

        An existing class is returned as it is, parent unchanged.
        """
        return await TaxonomyStore(tx).find_or_create_class(
            label,
            parent_label,
            alert_trigger_limit=alert_trigger_limit,
            description=description,
        )

    async def delete_class(self, tx: GraphTransaction, label: str) -> int:
        """Delete a class and its direct flags; child classes are orphaned."""
        return await ClassLifecycle(tx).delete_class(label)

    async def statistics(
        self, tx: GraphTransaction, class_label: str = ROOT_LABEL
    ) -> ClassStatistics | None:
        """Flag counts for a class subtree.

        Returns:
            The counts, or None when the class does not exist. Callers can
            probe for a class this way without checking it first.

        Raises:
            MultipleClassesFoundError: If the label is not unique.
            MaxDepthExceededError: If the hierarchy is too deep.
        """
        aggregator = StatisticsAggregator(tx, max_depth=self.max_depth)
        try:
            return await aggregator.compute_stats(class_label)
        except ClassNotFoundError:
            logger.debug("No statistics for missing class", label=class_label)
            return None
