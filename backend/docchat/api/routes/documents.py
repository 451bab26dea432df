"""Document endpoints - listing, lookup, status polling, deletion, messages."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from pydantic import BaseModel

from backend.docchat.api.auth import get_current_context
from backend.docchat.db.context import RequestContext
from backend.docchat.dependencies import ServicesDep
from backend.docchat.errors import NotFound
from backend.docchat.lifecycle import delete_document
from backend.docchat.models.documents import (
    Document,
    DocumentStatus,
    FailureReason,
    MessagePage,
)

router = APIRouter(prefix="/documents", tags=["documents"])


class DocumentListResponse(BaseModel):
    """Response for GET /documents."""

    documents: list[Document]


class DocumentStatusResponse(BaseModel):
    """Response for GET /documents/{document_id}/status."""

    status: DocumentStatus
    failure_reason: FailureReason | None = None


def _not_found(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


@router.get("", response_model=DocumentListResponse)
async def list_documents(
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    services: ServicesDep,
) -> DocumentListResponse:
    """List the caller's documents, newest first."""
    documents = await services.store.list_documents(ctx.owner_id)
    return DocumentListResponse(documents=documents)


@router.get("/by-key/{storage_key}", response_model=Document)
async def get_document_by_key(
    storage_key: str,
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    services: ServicesDep,
) -> Document:
    """Look up one of the caller's documents by upload storage key.

    Returns 404 until ingestion has created the document.
    """
    try:
        return await services.store.find_by_storage_key(storage_key, ctx.owner_id)
    except NotFound as e:
        raise _not_found("Document not found") from e


@router.get("/{document_id}/status", response_model=DocumentStatusResponse)
async def get_document_status(
    document_id: UUID,
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    services: ServicesDep,
) -> DocumentStatusResponse:
    """Poll processing status.

    A document the caller cannot see yet reports PENDING.
    """
    try:
        document = await services.store.get(document_id, ctx.owner_id)
    except NotFound:
        return DocumentStatusResponse(status=DocumentStatus.PENDING)

    return DocumentStatusResponse(status=document.status, failure_reason=document.failure_reason)


@router.delete("/{document_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_document(
    document_id: UUID,
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    services: ServicesDep,
) -> Response:
    """Delete a document, its messages and its indexed chunks."""
    try:
        await delete_document(services.store, services.index, document_id, ctx.owner_id)
    except NotFound as e:
        raise _not_found("Document not found") from e

    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{document_id}/messages", response_model=MessagePage)
async def list_messages(
    document_id: UUID,
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    services: ServicesDep,
    cursor: Annotated[UUID | None, Query()] = None,
    limit: Annotated[int | None, Query(ge=1)] = None,
) -> MessagePage:
    """List messages newest-first.

    Follow ``next_cursor`` until it is null to read the whole conversation.
    """
    settings = services.settings
    if limit is None:
        limit = settings.messages_page_default
    if limit > settings.messages_page_max:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"limit must be at most {settings.messages_page_max}",
        )

    try:
        return await services.store.list_messages(document_id, ctx.owner_id, cursor, limit)
    except NotFound as e:
        raise _not_found("Document not found") from e
