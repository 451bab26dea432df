"""Document lifecycle operations that span the store and the vector index."""

import logging
from uuid import UUID

from backend.docchat.db.repositories import DocumentStore
from backend.docchat.models.documents import Document
from backend.docchat.retrieval.vector_index import VectorIndex

logger = logging.getLogger(__name__)


async def delete_document(
    store: DocumentStore, index: VectorIndex, document_id: UUID, owner_id: str
) -> Document:
    """Delete a document, its messages and its vector namespace.

    The namespace is removed after the row so a failed ownership check
    never touches the index.

    Raises:
        NotFound: If the document is missing or owned by someone else
    """
    document = await store.delete(document_id, owner_id)
    await index.delete_namespace(str(document_id))
    logger.info(f"Deleted document {document_id} and its vector namespace")
    return document
