"""Exceptions raised by the data-quality flag core."""


class DataQualityError(Exception):
    """Base exception for flag and taxonomy operations."""

    pass


class InvalidArgumentError(DataQualityError, ValueError):
    """Raised for malformed labels, batch sizes or batch inputs."""

    pass


class ClassNotFoundError(DataQualityError):
    """Raised when no flag class carries the requested label."""

    def __init__(self, label: str) -> None:
        super().__init__(f"Flag class not found: {label!r}")
        self.label = label


class MultipleClassesFoundError(DataQualityError):
    """Raised when more than one flag class carries the same label.

    The duplicate is reported, never repaired.
    """

    def __init__(self, label: str) -> None:
        super().__init__(f"Multiple flag classes found with label {label!r}")
        self.label = label


class MaxDepthExceededError(DataQualityError):
    """Raised when a class hierarchy walk goes deeper than allowed.

    The hierarchy is expected to be a tree; reaching the limit usually means
    a cycle was introduced outside this library.
    """

    def __init__(self, label: str, max_depth: int) -> None:
        super().__init__(
            f"Class hierarchy below {label!r} exceeds {max_depth} levels; cycle suspected"
        )
        self.label = label
        self.max_depth = max_depth


class BatchFailureError(DataQualityError):
    """Raised when a batch deletion stops on a failed batch.

    Batches committed before the failure stay committed.

    Attributes:
        processed: Items processed by the batches that committed.
        batches_completed: Number of batches that committed.
        batch_index: Zero-based index of the failed batch.
    """

    def __init__(
        self,
        message: str,
        *,
        processed: int,
        batches_completed: int,
        batch_index: int,
    ) -> None:
        super().__init__(
            f"{message} (batch {batch_index} failed after {batches_completed} "
            f"batches / {processed} items committed)"
        )
        self.processed = processed
        self.batches_completed = batches_completed
        self.batch_index = batch_index
