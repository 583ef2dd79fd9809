"""Translation of core errors into HTTP errors."""

from fastapi import HTTPException, status

from dq.flags.errors import (
    BatchFailureError,
    ClassNotFoundError,
    DataQualityError,
    InvalidArgumentError,
    MultipleClassesFoundError,
)
from dq.graph.base import GraphStoreError, NodeNotFoundError


def to_http_exception(error: DataQualityError | GraphStoreError) -> HTTPException:
    """Map a core error to the HTTP error the API reports.

    Args:
        error: The error raised by the flag core or graph layer.

    Returns:
        The HTTPException to raise.
    """
    if isinstance(error, InvalidArgumentError):
        return HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(error))
    if isinstance(error, ClassNotFoundError | NodeNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(error))
    if isinstance(error, MultipleClassesFoundError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(error))
    if isinstance(error, BatchFailureError):
        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "message": str(error),
                "processed": error.processed,
                "batches_completed": error.batches_completed,
            },
        )
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(error))
