"""Chunk and prompt models for the retrieval path."""

from typing import Any, Literal

from pydantic import BaseModel, Field


class PageText(BaseModel):
    """Text extracted from a single page."""

    page_number: int = Field(..., ge=1)
    text: str


class TextChunk(BaseModel):
    """Contiguous span of extracted text, before embedding."""

    index: int = Field(..., ge=0, description="0-based, unique within a namespace")
    page_number: int
    text: str


class EmbeddedChunk(BaseModel):
    """Chunk ready to be written into a vector namespace."""

    index: int = Field(..., ge=0)
    text: str
    embedding: list[float]
    metadata: dict[str, Any] = Field(default_factory=dict)


class RetrievedChunk(BaseModel):
    """Chunk returned by a similarity query."""

    namespace: str
    index: int
    text: str
    score: float
    metadata: dict[str, Any] = Field(default_factory=dict)


class PromptMessage(BaseModel):
    """Single role/content turn sent to the completion provider."""

    role: Literal["system", "user", "assistant"]
    content: str
