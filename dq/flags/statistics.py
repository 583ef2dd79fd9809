"""Flag counts aggregated over the class hierarchy."""

import structlog

from dq.graph.base import GraphTransaction
from dq.graph.models import Direction, GraphNode

from .errors import MaxDepthExceededError
from .models import DQ_CLASS, DQ_FLAG, HAS_DQ_CLASS, ClassStatistics, FlagClass
from .taxonomy import TaxonomyStore

logger = structlog.get_logger(__name__)

DEFAULT_MAX_DEPTH = 64


class StatisticsAggregator:
    """Computes direct, indirect and total flag counts for a class subtree.

    Attributes:
        tx: The caller's transaction.
        taxonomy: Class store used to resolve labels.
        max_depth: Deepest class level visited before giving up.
    """

    def __init__(
        self,
        tx: GraphTransaction,
        taxonomy: TaxonomyStore | None = None,
        max_depth: int = DEFAULT_MAX_DEPTH,
    ) -> None:
        self.tx = tx
        self.taxonomy = taxonomy or TaxonomyStore(tx)
        self.max_depth = max_depth

    async def compute_stats(self, class_label: str) -> ClassStatistics:
        """Count the flags in the subtree rooted at a class.

        Flags attached to the class itself are ``direct``; flags attached to
        any descendant class are ``indirect``.

        Args:
            class_label: Label of the subtree root.

        Returns:
            The counts for the class.

        Raises:
            ClassNotFoundError: If the class does not exist.
            MultipleClassesFoundError: If the label is not unique.
            MaxDepthExceededError: If the subtree is deeper than ``max_depth``.
        """
        flag_class = await self.taxonomy.get_class(class_label)
        stats = await self._walk(flag_class, 0)
        logger.debug(
            "Computed class statistics",
            label=class_label,
            direct=stats.direct,
            indirect=stats.indirect,
        )
        return stats

    async def _walk(self, flag_class: FlagClass, depth: int) -> ClassStatistics:
        if depth > self.max_depth:
            raise MaxDepthExceededError(flag_class.label, self.max_depth)

        direct = 0
        indirect = 0
        steps = await self.tx.traverse(flag_class.node, Direction.INCOMING, HAS_DQ_CLASS)
        for _, node in steps:
            if _is_flag(node):
                direct += 1
            elif node.has_label(DQ_CLASS):
                child = await self._walk(FlagClass.from_node(node), depth + 1)
                indirect += child.total

        return ClassStatistics(class_label=flag_class.label, direct=direct, indirect=indirect)


def _is_flag(node: GraphNode) -> bool:
    return node.has_label(DQ_FLAG)
