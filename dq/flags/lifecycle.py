"""Flag class deletion."""

import structlog

from dq.graph.base import GraphTransaction
from dq.graph.models import Direction

from .models import DQ_FLAG, HAS_DQ_CLASS
from .taxonomy import TaxonomyStore

logger = structlog.get_logger(__name__)


class ClassLifecycle:
    """Deletes classes together with the flags directly attached to them.

    Child classes are not reparented. When a class is deleted its children
    lose their parent edge and, with everything below them, form a
    disconnected subtree that no ancestor's statistics include any more.

    Attributes:
        tx: The caller's transaction.
        taxonomy: Class store used to resolve labels.
    """

    def __init__(self, tx: GraphTransaction, taxonomy: TaxonomyStore | None = None) -> None:
        self.tx = tx
        self.taxonomy = taxonomy or TaxonomyStore(tx)

    async def delete_class(self, label: str) -> int:
        """Delete a class and the flags attached directly to it.

        Args:
            label: Label of the class to delete.

        Returns:
            Number of flags removed.

        Raises:
            ClassNotFoundError: If the class does not exist.
            MultipleClassesFoundError: If the label is not unique.
        """
        flag_class = await self.taxonomy.get_class(label)

        orphaned = [child.label for child in await self.taxonomy.get_children(flag_class)]

        removed = 0
        for _, node in await self.tx.traverse(flag_class.node, Direction.INCOMING, HAS_DQ_CLASS):
            if node.has_label(DQ_FLAG):
                await self.tx.detach_delete(node)
                removed += 1

        if orphaned:
            # TODO: reparent orphaned children to the deleted class's parent once
            # the intended behaviour is settled; until then they are left detached.
            logger.warning(
                "Child classes orphaned by class deletion", label=label, orphaned=orphaned
            )

        await self.tx.detach_delete(flag_class.node)
        logger.info("Deleted flag class", label=label, flags_removed=removed)
        return removed
