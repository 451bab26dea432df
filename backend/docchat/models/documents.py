"""Document, message and plan domain models."""

from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field


class DocumentStatus(str, Enum):
    """Processing status of an uploaded document."""

    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self in (DocumentStatus.SUCCESS, DocumentStatus.FAILED)


class FailureReason(str, Enum):
    """Why ingestion ended in FAILED, as presented to the caller."""

    too_many_pages = "too_many_pages"
    file_too_large = "file_too_large"
    fetch_failed = "fetch_failed"
    parse_failed = "parse_failed"
    processing_failed = "processing_failed"


# Allowed forward moves; a terminal status may only be re-written with itself.
ALLOWED_TRANSITIONS: dict[DocumentStatus, frozenset[DocumentStatus]] = {
    DocumentStatus.PENDING: frozenset(
        {DocumentStatus.PROCESSING, DocumentStatus.SUCCESS, DocumentStatus.FAILED}
    ),
    DocumentStatus.PROCESSING: frozenset({DocumentStatus.SUCCESS, DocumentStatus.FAILED}),
    DocumentStatus.SUCCESS: frozenset(),
    DocumentStatus.FAILED: frozenset(),
}


class Document(BaseModel):
    """Uploaded document and its processing lifecycle."""

    document_id: UUID
    storage_key: str
    name: str
    owner_id: str
    source_url: str
    status: DocumentStatus
    failure_reason: FailureReason | None = None
    created_at: datetime


class Message(BaseModel):
    """Chat message attached to a document."""

    message_id: UUID
    document_id: UUID
    owner_id: str
    text: str
    is_user_message: bool
    created_at: datetime


class MessagePage(BaseModel):
    """One newest-first page of messages plus the cursor for the next page."""

    messages: list[Message]
    next_cursor: UUID | None = None


class PlanLimits(BaseModel):
    """Immutable quota limits for a subscription plan."""

    model_config = {"frozen": True}

    plan_id: str
    name: str
    quota: int = Field(..., ge=0, description="Documents per billing period")
    max_pages_per_document: int = Field(..., gt=0)
    max_file_size_bytes: int = Field(..., gt=0)
