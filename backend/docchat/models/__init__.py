"""Models package - re-exports for convenience."""

from backend.docchat.models.chunks import (
    EmbeddedChunk,
    PageText,
    PromptMessage,
    RetrievedChunk,
    TextChunk,
)
from backend.docchat.models.documents import (
    ALLOWED_TRANSITIONS,
    Document,
    DocumentStatus,
    FailureReason,
    Message,
    MessagePage,
    PlanLimits,
)

__all__ = [
    # Documents
    "Document",
    "DocumentStatus",
    "FailureReason",
    "ALLOWED_TRANSITIONS",
    "Message",
    "MessagePage",
    "PlanLimits",
    # Chunks
    "PageText",
    "TextChunk",
    "EmbeddedChunk",
    "RetrievedChunk",
    "PromptMessage",
]
