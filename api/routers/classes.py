"""Flag class endpoints for the DQ Flags API.

This module provides endpoints for managing the flag class taxonomy and
reading flag statistics over it.
"""

import structlog
from fastapi import APIRouter, Query, status
from pydantic import BaseModel, Field

from api.dependencies import ServiceDep, TransactionDep
from api.errors import to_http_exception
from dq.flags.errors import DataQualityError
from dq.flags.models import ROOT_LABEL, ClassStatistics, FlagClass

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["Classes"])


class CreateClassRequest(BaseModel):
    """Request model for creating a flag class.

    Attributes:
        label: Label of the new class.
        parent_label: Label of the parent class, created if missing.
        alert_trigger_limit: Alert threshold, stored only when positive.
        description: Description, stored only when non-empty.
    """

    label: str = Field(..., description="Class label")
    parent_label: str = Field(default=ROOT_LABEL, description="Parent class label")
    alert_trigger_limit: int = Field(default=-1, description="Alert trigger limit")
    description: str = Field(default="", description="Class description")


class ClassResponse(BaseModel):
    """Response model for a flag class."""

    id: str = Field(..., description="Class node ID")
    label: str = Field(..., description="Class label")
    description: str | None = Field(None, description="Class description")
    alert_trigger_limit: int | None = Field(None, description="Alert trigger limit")
    is_root: bool = Field(default=False, description="Whether this is the root class")

    @classmethod
    def from_class(cls, flag_class: FlagClass) -> "ClassResponse":
        return cls(**flag_class.model_dump())


class ClassListResponse(BaseModel):
    """Response model for listing classes."""

    classes: list[ClassResponse] = Field(..., description="Classes")
    total: int = Field(..., description="Total count")


class DeleteClassResponse(BaseModel):
    """Response model for deleting a class.

    Attributes:
        label: Label of the deleted class.
        flags_deleted: Flags directly attached to the class that were deleted.
    """

    label: str = Field(..., description="Deleted class label")
    flags_deleted: int = Field(..., description="Flags deleted with the class")


class StatisticsResponse(BaseModel):
    """Response model for one statistics row."""

    class_label: str = Field(..., serialization_alias="class", description="Class label")
    direct: int = Field(..., description="Flags attached to the class")
    indirect: int = Field(..., description="Flags attached below the class")
    total: int = Field(..., description="direct + indirect")

    @classmethod
    def from_stats(cls, stats: ClassStatistics) -> "StatisticsResponse":
        return cls(
            class_label=stats.class_label,
            direct=stats.direct,
            indirect=stats.indirect,
            total=stats.total,
        )


@router.get(
    "/classes",
    response_model=ClassListResponse,
    summary="List classes",
    description="List flag classes, optionally filtered by label.",
)
async def list_classes(
    tx: TransactionDep,
    service: ServiceDep,
    label: str = Query(default="", description="Class label filter"),
) -> ClassListResponse:
    classes = await service.list_classes(tx, label).to_list()
    return ClassListResponse(
        classes=[ClassResponse.from_class(flag_class) for flag_class in classes],
        total=len(classes),
    )


@router.post(
    "/classes",
    response_model=ClassResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create class",
    description="Find or create a flag class under a parent class.",
)
async def create_class(
    request: CreateClassRequest,
    tx: TransactionDep,
    service: ServiceDep,
) -> ClassResponse:
    """Find or create a class.

    An existing class is returned unchanged; its parent is not moved.

    Raises:
        HTTPException: 422 for an empty label or a class parented to itself,
            409 if a label is ambiguous.
    """
    try:
        flag_class = await service.create_class(
            tx,
            request.label,
            request.parent_label,
            request.alert_trigger_limit,
            request.description,
        )
    except DataQualityError as e:
        logger.warning("Failed to create class", label=request.label, error=str(e))
        raise to_http_exception(e) from e

    return ClassResponse.from_class(flag_class)


@router.delete(
    "/classes/{label}",
    response_model=DeleteClassResponse,
    summary="Delete class",
    description="Delete a class and the flags attached directly to it.",
)
async def delete_class(
    label: str,
    tx: TransactionDep,
    service: ServiceDep,
) -> DeleteClassResponse:
    """Delete a class.

    Child classes are left in place without a parent.

    Raises:
        HTTPException: 404 if the class does not exist, 409 if the label is
            ambiguous.
    """
    try:
        deleted = await service.delete_class(tx, label)
    except DataQualityError as e:
        raise to_http_exception(e) from e

    return DeleteClassResponse(label=label, flags_deleted=deleted)


@router.get(
    "/statistics",
    response_model=list[StatisticsResponse],
    response_model_by_alias=True,
    summary="Flag statistics",
    description="Direct, indirect and total flag counts for a class subtree.",
)
async def statistics(
    tx: TransactionDep,
    service: ServiceDep,
    class_label: str = Query(default=ROOT_LABEL, description="Class label"),
) -> list[StatisticsResponse]:
    """Flag statistics for a class.

    Returns an empty list when the class does not exist.
    """
    try:
        stats = await service.statistics(tx, class_label)
    except DataQualityError as e:
        raise to_http_exception(e) from e

    if stats is None:
        return []
    return [StatisticsResponse.from_stats(stats)]
