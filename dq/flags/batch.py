"""Chunked flag deletion on the worker pool.

Large deletions are split into fixed-size batches. Each batch runs on the
worker pool in a brand-new transaction, independent of whatever transaction
the caller is in, so no single transaction grows unbounded and the caller's
transaction is never nested. Batches run strictly one after another in input
order. A failed batch stops the run; batches committed before it stay
committed and the failure reports how far the run got.
"""

import asyncio
from collections.abc import Awaitable, Callable, Iterable, Mapping, Sequence
from functools import partial

import structlog

from dq.execution.pool import WorkerPool
from dq.graph.base import GraphDatabase, GraphTransaction
from dq.graph.models import GraphNode
from dq.graph.utils import iter_batches

from .errors import BatchFailureError, InvalidArgumentError
from .models import DQ_FLAG, FlagInstance
from .registry import FlagRegistry

logger = structlog.get_logger(__name__)

# A single node reference: a node snapshot, a flag model, or a raw numeric id
NodeRef = GraphNode | FlagInstance | int

# What batch operations accept: one reference or a sequence of references
BatchInput = NodeRef | Sequence[NodeRef]

# A reference after normalization: a store id string or a raw numeric id
NodeId = str | int

BatchWork = Callable[[GraphTransaction, list[NodeId]], Awaitable[int]]


def _normalize_ref(ref: object) -> NodeId:
    if isinstance(ref, FlagInstance):
        return ref.node.id
    if isinstance(ref, GraphNode):
        return ref.id
    # bool is an int subclass but never a node id
    if isinstance(ref, int) and not isinstance(ref, bool):
        if ref < 0:
            raise InvalidArgumentError(f"Node ids must not be negative, got {ref}")
        return ref
    raise InvalidArgumentError(f"Can't convert {type(ref).__name__} to a node reference")


def normalize_batch_input(refs: BatchInput) -> list[NodeId]:
    """Turn the accepted input shapes into a flat list of node ids.

    Accepts a single node, flag or numeric id, or any iterable of those
    (mixed freely). Strings, mappings, nested sequences, booleans, floats and
    None are rejected.

    Args:
        refs: The references to normalize.

    Returns:
        The node ids, in input order.

    Raises:
        InvalidArgumentError: If the input shape is not supported.
    """
    if isinstance(refs, GraphNode | FlagInstance | int) and not isinstance(refs, bool):
        return [_normalize_ref(refs)]
    if refs is None or isinstance(refs, str | bytes | Mapping):
        raise InvalidArgumentError(f"Unsupported batch input: {type(refs).__name__}")
    if not isinstance(refs, Iterable):
        raise InvalidArgumentError(f"Unsupported batch input: {type(refs).__name__}")
    return [_normalize_ref(ref) for ref in refs]


def validate_batch_size(batch_size: int) -> int:
    """Check that a batch size is a positive integer.

    Raises:
        InvalidArgumentError: If it is not.
    """
    if isinstance(batch_size, bool) or not isinstance(batch_size, int) or batch_size < 1:
        raise InvalidArgumentError(f"batch_size must be a positive integer, got {batch_size!r}")
    return batch_size


class BatchDeletionScheduler:
    """Runs deletions as a sequence of isolated, bounded transactions.

    Attributes:
        database: Opens the per-batch transactions.
        pool: Worker pool the batches run on.
        batch_timeout: Seconds to wait for a batch before failing it, or None
            to wait indefinitely.
    """

    def __init__(
        self,
        database: GraphDatabase,
        pool: WorkerPool,
        batch_timeout: float | None = None,
    ) -> None:
        self.database = database
        self.pool = pool
        self.batch_timeout = batch_timeout

    async def delete_flags(self, refs: BatchInput, batch_size: int = 1) -> int:
        """Detach-delete flags in batches.

        Nodes that are not flags are skipped silently; an id that resolves to
        no node at all fails its batch.

        Args:
            refs: Flags to delete.
            batch_size: Maximum references per transaction.

        Returns:
            Number of references processed.

        Raises:
            InvalidArgumentError: For a bad input shape or batch size.
            BatchFailureError: If a batch fails.
        """
        return await self._run(
            "delete_flags", normalize_batch_input(refs), batch_size, _delete_flag_batch
        )

    async def delete_flags_of_entities(self, entities: BatchInput, batch_size: int = 1) -> int:
        """Detach-delete every flag raised on the given entities, in batches.

        The count returned is the number of entities processed, not the
        number of flags deleted.

        Args:
            entities: Entities whose flags should go.
            batch_size: Maximum entities per transaction.

        Returns:
            Number of entities processed.

        Raises:
            InvalidArgumentError: For a bad input shape or batch size.
            BatchFailureError: If a batch fails.
        """
        return await self._run(
            "delete_flags_of_entities",
            normalize_batch_input(entities),
            batch_size,
            _delete_entity_flag_batch,
        )

    async def _run(
        self,
        operation: str,
        items: list[NodeId],
        batch_size: int,
        work: BatchWork,
    ) -> int:
        validate_batch_size(batch_size)

        processed = 0
        completed = 0
        for index, batch in enumerate(iter_batches(items, batch_size)):
            try:
                future = self.pool.submit(partial(self._in_transaction, work, batch))
                processed += await asyncio.wait_for(future, self.batch_timeout)
            except TimeoutError as e:
                message = f"{operation} timed out after {self.batch_timeout}s"
                raise self._failure(operation, message, processed, completed, index) from e
            except asyncio.CancelledError as e:
                current = asyncio.current_task()
                if current is not None and current.cancelling():
                    raise
                message = f"{operation} batch {index} was cancelled"
                raise self._failure(operation, message, processed, completed, index) from e
            except Exception as e:
                message = f"{operation} failed: {e}"
                raise self._failure(operation, message, processed, completed, index) from e
            completed += 1

        logger.info(
            "Batch deletion finished",
            operation=operation,
            batches=completed,
            processed=processed,
            batch_size=batch_size,
        )
        return processed

    async def _in_transaction(self, work: BatchWork, batch: list[NodeId]) -> int:
        async with self.database.transaction() as tx:
            return await work(tx, batch)

    def _failure(
        self,
        operation: str,
        message: str,
        processed: int,
        completed: int,
        index: int,
    ) -> BatchFailureError:
        logger.error(
            "Batch failed",
            operation=operation,
            batch=index,
            error=message,
            processed=processed,
        )
        return BatchFailureError(
            message,
            processed=processed,
            batches_completed=completed,
            batch_index=index,
        )


async def _delete_flag_batch(tx: GraphTransaction, batch: list[NodeId]) -> int:
    for node_id in batch:
        node = await tx.get_node(node_id)
        if node.has_label(DQ_FLAG):
            await tx.detach_delete(node)
    return len(batch)


async def _delete_entity_flag_batch(tx: GraphTransaction, batch: list[NodeId]) -> int:
    registry = FlagRegistry(tx)
    for node_id in batch:
        for flag in await registry.flags_of(await tx.get_node(node_id)):
            await tx.detach_delete(flag.node)
    return len(batch)
