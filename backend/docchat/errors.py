"""Domain error taxonomy shared by the ingestion and chat paths."""

from typing import Literal

PolicyReason = Literal["too_many_pages", "file_too_large"]


class DocChatError(Exception):
    """Base class for all domain errors."""


class Unauthorized(DocChatError):
    """Caller could not be identified."""


class NotFound(DocChatError):
    """Referenced document or message does not exist or belongs to another owner."""


class Conflict(DocChatError):
    """A document with the same storage key already exists."""

    def __init__(self, storage_key: str) -> None:
        super().__init__(f"Document with storage key {storage_key!r} already exists")
        self.storage_key = storage_key


class InvalidStatusTransition(DocChatError):
    """A status write would move a document backwards in its lifecycle."""


class PolicyExceeded(DocChatError):
    """Document violates the caller's plan limits."""

    def __init__(self, reason: PolicyReason, actual: int, limit: int) -> None:
        super().__init__(f"{reason}: {actual} exceeds plan limit {limit}")
        self.reason: PolicyReason = reason
        self.actual = actual
        self.limit = limit


class UpstreamFailure(DocChatError):
    """A fetch, parse, embedding or completion provider failed."""


class SourceFetchError(UpstreamFailure):
    """Source file could not be downloaded (network error, non-2xx, timeout)."""


class DocumentParseError(UpstreamFailure):
    """Downloaded bytes could not be parsed into pages."""


class EmbeddingError(UpstreamFailure):
    """Embedding provider failed."""


class CompletionError(UpstreamFailure):
    """Chat-completion provider reported an error."""


class UpstreamTransportError(CompletionError):
    """Hard transport failure (connection dropped) while talking to a provider."""
