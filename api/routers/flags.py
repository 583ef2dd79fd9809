"""Flag endpoints for the DQ Flags API.

This module provides endpoints for raising flags on entities, attaching
nodes to flags, listing flags, and deleting flags in batches.
"""

from datetime import datetime

import structlog
from fastapi import APIRouter, HTTPException, Query, status
from pydantic import BaseModel, Field

from api.dependencies import ServiceDep, TransactionDep
from api.errors import to_http_exception
from dq.flags.errors import DataQualityError
from dq.flags.models import DEFAULT_FLAG_LABEL, DQ_FLAG, Attachment, FlagInstance
from dq.graph.base import GraphStoreError, GraphTransaction
from dq.graph.models import GraphNode

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["Flags"])


class CreateFlagRequest(BaseModel):
    """Request model for raising a flag.

    Attributes:
        entity_id: Numeric or store ID of the entity to flag.
        label: Class label of the flag.
        description: Free-text description.
    """

    entity_id: int | str = Field(..., description="Entity node ID")
    label: str = Field(default=DEFAULT_FLAG_LABEL, description="Flag class label")
    description: str = Field(default="", description="Flag description")


class FlagResponse(BaseModel):
    """Response model for a flag.

    Attributes:
        id: Flag node ID.
        class_label: Class of the flag.
        description: Flag description.
        created_at: Creation timestamp.
    """

    id: str = Field(..., description="Flag node ID")
    class_label: str | None = Field(None, description="Flag class label")
    description: str = Field(default="", description="Flag description")
    created_at: datetime | None = Field(None, description="Creation timestamp")

    @classmethod
    def from_flag(cls, flag: FlagInstance) -> "FlagResponse":
        return cls(
            id=flag.id,
            class_label=flag.class_label,
            description=flag.description,
            created_at=flag.created_at,
        )


class FlagListResponse(BaseModel):
    """Response model for listing flags."""

    flags: list[FlagResponse] = Field(..., description="Flags")
    total: int = Field(..., description="Total count")


class AttachRequest(BaseModel):
    """Request model for attaching a node to a flag."""

    target_id: int | str = Field(..., description="Node to attach")
    description: str = Field(default="", description="Attachment description")


class AttachmentResponse(BaseModel):
    """Response model for an attachment."""

    id: str = Field(..., description="Attachment relationship ID")
    flag_id: str = Field(..., description="Flag node ID")
    target_id: str = Field(..., description="Attached node ID")
    description: str = Field(default="", description="Attachment description")

    @classmethod
    def from_attachment(cls, attachment: Attachment) -> "AttachmentResponse":
        return cls(
            id=attachment.id,
            flag_id=attachment.flag_id,
            target_id=attachment.target_id,
            description=attachment.description,
        )


class AttachmentListResponse(BaseModel):
    """Response model for the attachments of a flag."""

    attachments: list[AttachmentResponse] = Field(default_factory=list)
    total: int = Field(..., description="Number of attachments")


class BatchDeleteRequest(BaseModel):
    """Request model for batch deletions.

    Attributes:
        ids: Numeric or store IDs of flags (or entities).
        batch_size: Items per transaction.
    """

    ids: list[int | str] = Field(..., description="Node IDs")
    batch_size: int = Field(default=1, description="Items per transaction")


class BatchDeleteResponse(BaseModel):
    """Response model for batch deletions."""

    value: int = Field(..., description="Items processed")


@router.post(
    "/flags",
    response_model=FlagResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create flag",
    description="Raise a data-quality flag on an entity.",
)
async def create_flag(
    request: CreateFlagRequest,
    tx: TransactionDep,
    service: ServiceDep,
) -> FlagResponse:
    """Raise a flag on an entity, creating its class under the root if needed.

    Raises:
        HTTPException: 404 if the entity does not exist, 409 if the class
            label is ambiguous, 422 for an empty label.
    """
    try:
        entity = await tx.get_node(request.entity_id)
        flag = await service.create_flag(tx, entity, request.label, request.description)
    except (DataQualityError, GraphStoreError) as e:
        logger.warning("Failed to create flag", label=request.label, error=str(e))
        raise to_http_exception(e) from e

    return FlagResponse.from_flag(flag)


@router.get(
    "/flags",
    response_model=FlagListResponse,
    summary="List flags",
    description="List flags, optionally only those of one class.",
)
async def list_flags(
    tx: TransactionDep,
    service: ServiceDep,
    label: str = Query(default="", description="Class label filter"),
) -> FlagListResponse:
    flags = await service.list_flags(tx, label).to_list()
    return FlagListResponse(
        flags=[FlagResponse.from_flag(flag) for flag in flags],
        total=len(flags),
    )


@router.post(
    "/flags/{flag_id}/attachments",
    response_model=AttachmentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Attach to flag",
    description="Attach any node to a flag.",
)
async def attach_to_flag(
    flag_id: str,
    request: AttachRequest,
    tx: TransactionDep,
    service: ServiceDep,
) -> AttachmentResponse:
    """Attach a node to a flag.

    Raises:
        HTTPException: 404 if the flag or target does not exist, or the flag
            id does not point at a flag.
    """
    flag = await _get_flag(tx, flag_id)
    try:
        target = await tx.get_node(request.target_id)
    except GraphStoreError as e:
        raise to_http_exception(e) from e

    attachment = await service.attach_to_flag(tx, flag, target, request.description)
    return AttachmentResponse.from_attachment(attachment)


@router.get(
    "/flags/{flag_id}/attachments",
    response_model=AttachmentListResponse,
    summary="List attachments",
    description="List the nodes attached to a flag.",
)
async def list_attachments(
    flag_id: str,
    tx: TransactionDep,
    service: ServiceDep,
) -> AttachmentListResponse:
    flag = await _get_flag(tx, flag_id)
    attachments = await service.attachments_of(tx, flag)
    return AttachmentListResponse(
        attachments=[AttachmentResponse.from_attachment(a) for a in attachments],
        total=len(attachments),
    )


@router.post(
    "/flags/delete",
    response_model=BatchDeleteResponse,
    summary="Delete flags",
    description="Delete flags in batches, each batch in its own transaction.",
)
async def delete_flags(
    request: BatchDeleteRequest,
    service: ServiceDep,
) -> BatchDeleteResponse:
    """Delete flags by id in isolated batches.

    Raises:
        HTTPException: 422 for a bad batch size, 500 with partial progress if
            a batch fails.
    """
    try:
        processed = await service.delete_flags(_as_refs(request.ids), request.batch_size)
    except DataQualityError as e:
        raise to_http_exception(e) from e
    return BatchDeleteResponse(value=processed)


@router.post(
    "/entities/flags/delete",
    response_model=BatchDeleteResponse,
    summary="Delete entity flags",
    description="Delete every flag raised on the given entities, in batches.",
)
async def delete_flags_of_entities(
    request: BatchDeleteRequest,
    service: ServiceDep,
) -> BatchDeleteResponse:
    """Delete the flags of entities in isolated batches.

    The value returned is the number of entities processed.
    """
    try:
        processed = await service.delete_flags_of_entities(
            _as_refs(request.ids), request.batch_size
        )
    except DataQualityError as e:
        raise to_http_exception(e) from e
    return BatchDeleteResponse(value=processed)


def _as_refs(ids: list[int | str]) -> list[GraphNode | int]:
    """Numeric ids pass through; store ids are wrapped as bare node references."""
    return [node_id if isinstance(node_id, int) else GraphNode(id=node_id) for node_id in ids]


async def _get_flag(tx: GraphTransaction, flag_id: str) -> GraphNode:
    try:
        node = await tx.get_node(int(flag_id) if flag_id.isdigit() else flag_id)
    except GraphStoreError as e:
        raise to_http_exception(e) from e

    if not node.has_label(DQ_FLAG):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Node {flag_id!r} is not a flag",
        )
    return node
