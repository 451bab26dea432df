"""Prompt composition from retrieved passages and recent conversation."""

import logging
from uuid import UUID

from backend.docchat.db.repositories import DocumentStore
from backend.docchat.models.chunks import PromptMessage, RetrievedChunk
from backend.docchat.models.documents import Message
from backend.docchat.retrieval.vector_index import VectorIndex

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "Use the following pieces of context (or previous conversation if needed) "
    "to answer the user's question in markdown format."
)

INSTRUCTION = (
    "Use the following pieces of context (or previous conversation if needed) to answer "
    "the user's question in markdown format. \n"
    "If you don't know the answer, just say that you don't know, "
    "don't try to make up an answer."
)


def format_history(messages: list[Message]) -> str:
    """Render messages (oldest first) as a plain transcript."""
    lines = []
    for message in messages:
        speaker = "User" if message.is_user_message else "Assistant"
        lines.append(f"{speaker}: {message.text}")
    return "\n".join(lines)


def format_context(chunks: list[RetrievedChunk]) -> str:
    """Join retrieved passages in similarity order, separated by blank lines."""
    return "\n\n".join(chunk.text for chunk in chunks)


def build_user_turn(question: str, history: list[Message], chunks: list[RetrievedChunk]) -> str:
    return (
        f"{INSTRUCTION}\n\n"
        "----------------\n\n"
        "PREVIOUS CONVERSATION:\n"
        f"{format_history(history)}\n\n"
        "----------------\n\n"
        "CONTEXT:\n"
        f"{format_context(chunks)}\n\n"
        f"USER INPUT: {question}"
    )


class RetrievalComposer:
    """Builds the completion prompt for a question about one document.

    Composition reads from the store and the index but never writes. The
    number of passages is capped at ``top_k`` and the transcript at
    ``history_window`` messages regardless of document size.
    """

    def __init__(
        self,
        store: DocumentStore,
        index: VectorIndex,
        *,
        top_k: int = 4,
        history_window: int = 6,
    ) -> None:
        self._store = store
        self._index = index
        self.top_k = top_k
        self.history_window = history_window

    async def compose(self, document_id: UUID, owner_id: str, question: str) -> list[PromptMessage]:
        """Compose prompt messages for ``question``.

        Args:
            document_id: Document being asked about (also its vector namespace)
            owner_id: Caller; must own the document
            question: The user's question

        Returns:
            System instruction followed by a single user turn

        Raises:
            NotFound: If the document is missing or owned by someone else
        """
        await self._store.get(document_id, owner_id)

        chunks = await self._index.query_similar(str(document_id), question, self.top_k)
        chunks = chunks[: self.top_k]

        history: list[Message] = []
        if self.history_window > 0:
            page = await self._store.list_messages(
                document_id, owner_id, cursor=None, limit=self.history_window
            )
            # Page is newest first; the transcript reads oldest first
            history = list(reversed(page.messages))

        logger.debug(
            f"Composed prompt for document {document_id}: "
            f"{len(chunks)} passages, {len(history)} history messages"
        )

        return [
            PromptMessage(role="system", content=SYSTEM_PROMPT),
            PromptMessage(role="user", content=build_user_turn(question, history, chunks)),
        ]
