"""Embedding clients with OpenAI integration.

Provides a deterministic hashing fallback when no key is present, so the
pipeline and tests run without network access.
"""

import hashlib
import logging
import math
import re
from typing import Protocol

import openai
from openai import AsyncOpenAI

from backend.docchat.errors import EmbeddingError

logger = logging.getLogger(__name__)

_TOKEN = re.compile(r"\w+", re.UNICODE)


class Embedder(Protocol):
    """Protocol for embedding implementations."""

    async def embed_documents(self, texts: list[str]) -> list[list[float]]:
        """Embed chunk texts, one vector per input, in input order."""
        ...

    async def embed_query(self, text: str) -> list[float]:
        """Embed a search query."""
        ...


class HashingEmbedder:
    """Deterministic bag-of-words embedder (no API key required).

    Each lowercase token is hashed into one of ``dimension`` signed buckets
    and the result is L2-normalized, so cosine similarity tracks word overlap.
    """

    def __init__(self, dimension: int = 256) -> None:
        self.dimension = dimension

    def _vector(self, text: str) -> list[float]:
        vector = [0.0] * self.dimension
        for token in _TOKEN.findall(text.lower()):
            digest = hashlib.blake2b(token.encode("utf-8"), digest_size=8).digest()
            bucket = int.from_bytes(digest[:4], "big") % self.dimension
            sign = 1.0 if digest[4] & 1 else -1.0
            vector[bucket] += sign

        norm = math.sqrt(sum(v * v for v in vector))
        if norm == 0:
            return vector
        return [v / norm for v in vector]

    async def embed_documents(self, texts: list[str]) -> list[list[float]]:
        return [self._vector(text) for text in texts]

    async def embed_query(self, text: str) -> list[float]:
        return self._vector(text)


class OpenAIEmbedder:
    """OpenAI-backed embedder."""

    def __init__(
        self,
        client: AsyncOpenAI,
        model: str = "text-embedding-3-small",
        batch_size: int = 64,
    ) -> None:
        """Initialize OpenAI embedder.

        Args:
            client: Shared AsyncOpenAI client
            model: Embedding model name
            batch_size: Max inputs per embeddings request
        """
        self.client = client
        self.model = model
        self.batch_size = max(1, batch_size)

    async def embed_documents(self, texts: list[str]) -> list[list[float]]:
        """Embed texts in batches, preserving input order."""
        embeddings: list[list[float]] = []
        for start in range(0, len(texts), self.batch_size):
            batch = texts[start : start + self.batch_size]
            embeddings.extend(await self._embed_batch(batch))
        return embeddings

    async def embed_query(self, text: str) -> list[float]:
        """Embed a single query string."""
        (embedding,) = await self._embed_batch([text])
        return embedding

    async def _embed_batch(self, batch: list[str]) -> list[list[float]]:
        try:
            response = await self.client.embeddings.create(model=self.model, input=batch)
        except openai.OpenAIError as e:
            logger.error(f"OpenAI embeddings call failed: {e}")
            raise EmbeddingError(f"Embedding request failed: {type(e).__name__}") from e

        # Results carry their input index; do not rely on response order
        ordered = sorted(response.data, key=lambda item: item.index)
        if len(ordered) != len(batch):
            raise EmbeddingError(
                f"Embedding response size mismatch ({len(ordered)} for {len(batch)} inputs)"
            )
        return [list(item.embedding) for item in ordered]
