"""SQL implementations of repository interfaces."""

import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy import and_, delete, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from backend.docchat.db.models import DocumentRow, MessageRow
from backend.docchat.db.repositories import check_transition
from backend.docchat.errors import Conflict, InvalidStatusTransition, NotFound
from backend.docchat.models.documents import (
    Document,
    DocumentStatus,
    FailureReason,
    Message,
    MessagePage,
)

logger = logging.getLogger(__name__)


def _to_document(row: DocumentRow) -> Document:
    return Document(
        document_id=row.document_id,
        storage_key=row.storage_key,
        name=row.name,
        owner_id=row.owner_id,
        source_url=row.source_url,
        status=DocumentStatus(row.status),
        failure_reason=FailureReason(row.failure_reason) if row.failure_reason else None,
        created_at=row.created_at,
    )


def _to_message(row: MessageRow) -> Message:
    return Message(
        message_id=row.message_id,
        document_id=row.document_id,
        owner_id=row.owner_id,
        text=row.text,
        is_user_message=row.is_user_message,
        created_at=row.created_at,
    )


class SqlDocumentStore:
    """SQL implementation of DocumentStore.

    Every call runs in its own short session; no session or lock is held
    between calls. Storage-key uniqueness is enforced by the database.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def create_pending(
        self, *, storage_key: str, name: str, owner_id: str, source_url: str
    ) -> Document:
        """Insert a new PROCESSING document."""
        row = DocumentRow(
            document_id=uuid.uuid4(),
            storage_key=storage_key,
            name=name,
            owner_id=owner_id,
            source_url=source_url,
            status=DocumentStatus.PROCESSING.value,
            failure_reason=None,
            created_at=datetime.now(timezone.utc),
        )

        async with self._session_factory() as session:
            session.add(row)
            try:
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                raise Conflict(storage_key) from e

            return _to_document(row)

    async def get_by_storage_key(self, storage_key: str) -> Document | None:
        """Unscoped lookup by storage key."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(DocumentRow).where(DocumentRow.storage_key == storage_key)
            )
            row = result.scalar_one_or_none()
            return _to_document(row) if row else None

    async def find_by_storage_key(self, storage_key: str, owner_id: str) -> Document:
        """Owner-scoped lookup by storage key."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(DocumentRow).where(
                    DocumentRow.storage_key == storage_key,
                    DocumentRow.owner_id == owner_id,
                )
            )
            row = result.scalar_one_or_none()

        if row is None:
            raise NotFound(f"Document with key {storage_key!r} not found")
        return _to_document(row)

    async def mark_status(
        self,
        document_id: uuid.UUID,
        status: DocumentStatus,
        failure_reason: FailureReason | None = None,
    ) -> Document:
        """Move a document to a new status with a compare-and-set update."""
        async with self._session_factory() as session:
            row = await session.get(DocumentRow, document_id)
            if row is None:
                raise NotFound(f"Document {document_id} not found")

            current = _to_document(row)
            if not check_transition(current.status, status):
                return current

            reason = failure_reason if status == DocumentStatus.FAILED else None
            result = await session.execute(
                update(DocumentRow)
                .where(DocumentRow.document_id == document_id)
                .where(DocumentRow.status == current.status.value)
                .values(status=status.value, failure_reason=reason.value if reason else None)
            )
            await session.commit()

            if result.rowcount == 0:
                # Lost a race with another writer; accept only an identical outcome
                refreshed = await session.get(DocumentRow, document_id, populate_existing=True)
                if refreshed is not None and refreshed.status == status.value:
                    return _to_document(refreshed)
                raise InvalidStatusTransition(
                    f"Document {document_id} changed status concurrently"
                )

            return current.model_copy(update={"status": status, "failure_reason": reason})

    async def get(self, document_id: uuid.UUID, owner_id: str) -> Document:
        """Get document by ID, scoped to owner."""
        async with self._session_factory() as session:
            row = await self._get_owned_row(session, document_id, owner_id)
            return _to_document(row)

    async def list_documents(self, owner_id: str) -> list[Document]:
        """List an owner's documents, newest first."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(DocumentRow)
                .where(DocumentRow.owner_id == owner_id)
                .order_by(DocumentRow.created_at.desc())
            )
            return [_to_document(row) for row in result.scalars().all()]

    async def delete(self, document_id: uuid.UUID, owner_id: str) -> Document:
        """Delete a document and its messages in one transaction."""
        async with self._session_factory() as session:
            row = await self._get_owned_row(session, document_id, owner_id)
            document = _to_document(row)

            await session.execute(delete(MessageRow).where(MessageRow.document_id == document_id))
            await session.execute(
                delete(DocumentRow).where(DocumentRow.document_id == document_id)
            )
            await session.commit()

        logger.info(f"Deleted document {document_id} for owner {owner_id}")
        return document

    async def append_message(
        self, document_id: uuid.UUID, owner_id: str, text: str, is_user_message: bool
    ) -> Message:
        """Append a message to a document's conversation."""
        async with self._session_factory() as session:
            await self._get_owned_row(session, document_id, owner_id)

            row = MessageRow(
                message_id=uuid.uuid4(),
                document_id=document_id,
                owner_id=owner_id,
                text=text,
                is_user_message=is_user_message,
                created_at=datetime.now(timezone.utc),
            )
            session.add(row)
            await session.commit()

            return _to_message(row)

    async def list_messages(
        self, document_id: uuid.UUID, owner_id: str, cursor: uuid.UUID | None, limit: int
    ) -> MessagePage:
        """List messages newest-first from an inclusive cursor.

        Anchor lookup and page read share one transaction so the page is a
        consistent snapshot.
        """
        async with self._session_factory() as session, session.begin():
            await self._get_owned_row(session, document_id, owner_id)

            query = select(MessageRow).where(MessageRow.document_id == document_id)

            if cursor is not None:
                anchor = await session.get(MessageRow, cursor)
                if anchor is None or anchor.document_id != document_id:
                    return MessagePage(messages=[], next_cursor=None)

                query = query.where(
                    or_(
                        MessageRow.created_at < anchor.created_at,
                        and_(
                            MessageRow.created_at == anchor.created_at,
                            MessageRow.message_id <= anchor.message_id,
                        ),
                    )
                )

            # Fetch one extra row to detect a following page
            query = query.order_by(
                MessageRow.created_at.desc(), MessageRow.message_id.desc()
            ).limit(limit + 1)

            result = await session.execute(query)
            rows = list(result.scalars().all())

        next_cursor: uuid.UUID | None = None
        if len(rows) > limit:
            next_cursor = rows.pop().message_id

        return MessagePage(messages=[_to_message(row) for row in rows], next_cursor=next_cursor)

    async def _get_owned_row(
        self, session: AsyncSession, document_id: uuid.UUID, owner_id: str
    ) -> DocumentRow:
        result = await session.execute(
            select(DocumentRow).where(
                DocumentRow.document_id == document_id,
                DocumentRow.owner_id == owner_id,
            )
        )
        row = result.scalar_one_or_none()
        if row is None:
            raise NotFound(f"Document {document_id} not found")
        return row
