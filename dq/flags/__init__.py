"""Flag module for data-quality flags over graph entities.

This module provides the flag class taxonomy, flag creation and listing,
statistics over the class hierarchy, class deletion, and batched flag
deletion on a worker pool.

Example usage:
    ```python
    from dq.execution import WorkerPool
    from dq.flags import DataQualityService
    from dq.graph import MemoryGraph

    graph = MemoryGraph()
    pool = WorkerPool()
    await pool.start()
    service = DataQualityService(graph, pool)

    async with graph.transaction() as tx:
        person = await tx.create_node(["Person"], {"name": "Keanu Reeves"})
        flag = await service.create_flag(tx, person, "BadName", "names should not be A")
        stats = await service.statistics(tx)

    await service.delete_flags([flag], batch_size=2)
    await pool.stop()
    ```
"""

from .batch import (
    BatchDeletionScheduler,
    BatchInput,
    NodeRef,
    normalize_batch_input,
    validate_batch_size,
)
from .errors import (
    BatchFailureError,
    ClassNotFoundError,
    DataQualityError,
    InvalidArgumentError,
    MaxDepthExceededError,
    MultipleClassesFoundError,
)
from .lifecycle import ClassLifecycle
from .models import (
    DEFAULT_FLAG_LABEL,
    DQ_ALL,
    DQ_CLASS,
    DQ_FLAG,
    HAS_ATTACHMENT,
    HAS_DQ_CLASS,
    HAS_DQ_FLAG,
    RESERVED_LABELS,
    ROOT_LABEL,
    Attachment,
    ClassLookup,
    ClassStatistics,
    FlagClass,
    FlagInstance,
    LookupStatus,
)
from .registry import FlagListing, FlagRegistry
from .service import DataQualityService
from .statistics import DEFAULT_MAX_DEPTH, StatisticsAggregator
from .taxonomy import ClassListing, TaxonomyStore

__all__ = [
    # Service
    "DataQualityService",
    # Components
    "TaxonomyStore",
    "FlagRegistry",
    "StatisticsAggregator",
    "ClassLifecycle",
    "BatchDeletionScheduler",
    # Listings
    "ClassListing",
    "FlagListing",
    # Models
    "FlagClass",
    "FlagInstance",
    "Attachment",
    "ClassStatistics",
    "ClassLookup",
    "LookupStatus",
    # Batch input
    "BatchInput",
    "NodeRef",
    "normalize_batch_input",
    "validate_batch_size",
    # Errors
    "DataQualityError",
    "InvalidArgumentError",
    "ClassNotFoundError",
    "MultipleClassesFoundError",
    "MaxDepthExceededError",
    "BatchFailureError",
    # Vocabulary
    "DQ_CLASS",
    "DQ_ALL",
    "DQ_FLAG",
    "RESERVED_LABELS",
    "HAS_DQ_CLASS",
    "HAS_DQ_FLAG",
    "HAS_ATTACHMENT",
    "ROOT_LABEL",
    "DEFAULT_FLAG_LABEL",
    "DEFAULT_MAX_DEPTH",
]
