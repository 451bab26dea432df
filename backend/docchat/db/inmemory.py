"""In-memory implementations of repository interfaces."""

import uuid
from datetime import datetime, timedelta, timezone

from backend.docchat.db.repositories import RetryAfter, check_transition
from backend.docchat.errors import Conflict, NotFound
from backend.docchat.models.documents import (
    Document,
    DocumentStatus,
    FailureReason,
    Message,
    MessagePage,
)


class InMemoryDocumentStore:
    """In-memory implementation of DocumentStore.

    Each method completes without awaiting, so check-then-insert sequences are
    atomic with respect to other tasks on the same event loop.
    """

    def __init__(self) -> None:
        self._documents: dict[uuid.UUID, Document] = {}
        self._by_key: dict[str, uuid.UUID] = {}
        # Per document, oldest first
        self._messages: dict[uuid.UUID, list[Message]] = {}

    async def create_pending(
        self, *, storage_key: str, name: str, owner_id: str, source_url: str
    ) -> Document:
        """Insert a new PROCESSING document."""
        if storage_key in self._by_key:
            raise Conflict(storage_key)

        document = Document(
            document_id=uuid.uuid4(),
            storage_key=storage_key,
            name=name,
            owner_id=owner_id,
            source_url=source_url,
            status=DocumentStatus.PROCESSING,
            created_at=datetime.now(timezone.utc),
        )
        self._documents[document.document_id] = document
        self._by_key[storage_key] = document.document_id
        self._messages[document.document_id] = []
        return document

    async def get_by_storage_key(self, storage_key: str) -> Document | None:
        """Unscoped lookup by storage key."""
        document_id = self._by_key.get(storage_key)
        if document_id is None:
            return None
        return self._documents[document_id]

    async def find_by_storage_key(self, storage_key: str, owner_id: str) -> Document:
        """Owner-scoped lookup by storage key."""
        document = await self.get_by_storage_key(storage_key)
        if document is None or document.owner_id != owner_id:
            raise NotFound(f"Document with key {storage_key!r} not found")
        return document

    async def mark_status(
        self,
        document_id: uuid.UUID,
        status: DocumentStatus,
        failure_reason: FailureReason | None = None,
    ) -> Document:
        """Move a document to a new status."""
        document = self._documents.get(document_id)
        if document is None:
            raise NotFound(f"Document {document_id} not found")

        if not check_transition(document.status, status):
            return document

        updated = document.model_copy(
            update={
                "status": status,
                "failure_reason": failure_reason if status == DocumentStatus.FAILED else None,
            }
        )
        self._documents[document_id] = updated
        return updated

    async def get(self, document_id: uuid.UUID, owner_id: str) -> Document:
        """Get document by ID."""
        document = self._documents.get(document_id)

        # Enforce ownership
        if document is None or document.owner_id != owner_id:
            raise NotFound(f"Document {document_id} not found")

        return document

    async def list_documents(self, owner_id: str) -> list[Document]:
        """List an owner's documents, newest first."""
        results = [doc for doc in self._documents.values() if doc.owner_id == owner_id]
        results.sort(key=lambda doc: doc.created_at, reverse=True)
        return results

    async def delete(self, document_id: uuid.UUID, owner_id: str) -> Document:
        """Delete a document and its messages."""
        document = await self.get(document_id, owner_id)
        del self._documents[document_id]
        del self._by_key[document.storage_key]
        self._messages.pop(document_id, None)
        return document

    async def append_message(
        self, document_id: uuid.UUID, owner_id: str, text: str, is_user_message: bool
    ) -> Message:
        """Append a message to a document's conversation."""
        await self.get(document_id, owner_id)

        message = Message(
            message_id=uuid.uuid4(),
            document_id=document_id,
            owner_id=owner_id,
            text=text,
            is_user_message=is_user_message,
            created_at=datetime.now(timezone.utc),
        )
        self._messages[document_id].append(message)
        return message

    async def list_messages(
        self, document_id: uuid.UUID, owner_id: str, cursor: uuid.UUID | None, limit: int
    ) -> MessagePage:
        """List messages newest-first from an inclusive cursor."""
        await self.get(document_id, owner_id)

        # Snapshot before slicing so concurrent appends cannot shift the window
        newest_first = list(reversed(self._messages[document_id]))

        start = 0
        if cursor is not None:
            ids = [message.message_id for message in newest_first]
            if cursor not in ids:
                return MessagePage(messages=[], next_cursor=None)
            start = ids.index(cursor)

        rows = newest_first[start : start + limit + 1]

        next_cursor: uuid.UUID | None = None
        if len(rows) > limit:
            next_cursor = rows.pop().message_id

        return MessagePage(messages=rows, next_cursor=next_cursor)


class InMemoryRateLimiter:
    """In-memory implementation of RateLimiter using fixed window."""

    def __init__(self, max_requests: int, window_seconds: int = 60) -> None:
        """Initialize rate limiter.

        Args:
            max_requests: Maximum requests per window
            window_seconds: Window size in seconds (default 60)
        """
        self._max_requests = max_requests
        self._window_seconds = window_seconds
        self._windows: dict[str, tuple[datetime, int]] = {}

    def check_quota(self, key: str, now: datetime) -> RetryAfter | None:
        """Check if quota is available."""
        window = self._windows.get(key)
        window_length = timedelta(seconds=self._window_seconds)

        if window is None or now >= window[0] + window_length:
            self._windows[key] = (now, 1)
            return None

        window_start, count = window
        if count >= self._max_requests:
            seconds_remaining = int((window_start + window_length - now).total_seconds())
            return RetryAfter(seconds=max(1, seconds_remaining))

        self._windows[key] = (window_start, count + 1)
        return None
