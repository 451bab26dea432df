"""Repository protocol interfaces for data access."""

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol
from uuid import UUID

from backend.docchat.errors import InvalidStatusTransition
from backend.docchat.models.documents import (
    ALLOWED_TRANSITIONS,
    Document,
    DocumentStatus,
    FailureReason,
    Message,
    MessagePage,
)


def check_transition(current: DocumentStatus, new: DocumentStatus) -> bool:
    """Validate a status write against the document lifecycle.

    Returns:
        True if the write changes the status, False if it is an idempotent
        repeat of the current status.

    Raises:
        InvalidStatusTransition: If the write would regress the status.
    """
    if current == new:
        return False
    if new not in ALLOWED_TRANSITIONS[current]:
        raise InvalidStatusTransition(f"Cannot move document from {current.value} to {new.value}")
    return True


class DocumentStore(Protocol):
    """Persistence for documents and their chat messages.

    Every owner-scoped read treats a document belonging to another owner
    exactly like a missing one (NotFound).
    """

    async def create_pending(
        self, *, storage_key: str, name: str, owner_id: str, source_url: str
    ) -> Document:
        """Insert a new document with status PROCESSING.

        Raises:
            Conflict: If any owner already has a document with this storage key.
        """
        ...

    async def get_by_storage_key(self, storage_key: str) -> Document | None:
        """Unscoped lookup used by the ingestion idempotency check."""
        ...

    async def find_by_storage_key(self, storage_key: str, owner_id: str) -> Document:
        """Owner-scoped lookup by storage key.

        Raises:
            NotFound: If missing or owned by someone else.
        """
        ...

    async def mark_status(
        self,
        document_id: UUID,
        status: DocumentStatus,
        failure_reason: FailureReason | None = None,
    ) -> Document:
        """Move a document to a new status.

        Repeating the current status is a no-op.

        Raises:
            NotFound: If the document id is unknown.
            InvalidStatusTransition: If the status would regress.
        """
        ...

    async def get(self, document_id: UUID, owner_id: str) -> Document:
        """Get a document by id.

        Raises:
            NotFound: If missing or owned by someone else.
        """
        ...

    async def list_documents(self, owner_id: str) -> list[Document]:
        """List an owner's documents, newest first."""
        ...

    async def delete(self, document_id: UUID, owner_id: str) -> Document:
        """Delete a document and its messages.

        Raises:
            NotFound: If missing or owned by someone else.
        """
        ...

    async def append_message(
        self, document_id: UUID, owner_id: str, text: str, is_user_message: bool
    ) -> Message:
        """Append a message to a document's conversation.

        Raises:
            NotFound: If the document is missing or owned by someone else.
        """
        ...

    async def list_messages(
        self, document_id: UUID, owner_id: str, cursor: UUID | None, limit: int
    ) -> MessagePage:
        """List messages newest-first, one page at a time.

        The cursor is inclusive: it names the first message of the page. One
        extra row is read to detect a following page; that row is withheld and
        its id returned as ``next_cursor``.

        Raises:
            NotFound: If the document is missing or owned by someone else.
        """
        ...


@dataclass
class RetryAfter:
    """Rate limit retry-after information."""

    seconds: int


class RateLimiter(Protocol):
    """Rate limiter interface."""

    def check_quota(self, key: str, now: datetime) -> RetryAfter | None:
        """Check if quota is available.

        Args:
            key: Rate limit key
            now: Current timestamp

        Returns:
            RetryAfter if over quota, None if allowed
        """
        ...
