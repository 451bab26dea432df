"""Namespaced vector index - chunk storage and similarity search."""

import asyncio
import logging
import math
import uuid
from typing import Protocol

from qdrant_client import AsyncQdrantClient, models

from backend.docchat.models.chunks import EmbeddedChunk, RetrievedChunk
from backend.docchat.retrieval.embeddings import Embedder

logger = logging.getLogger(__name__)


def cosine_similarity(a: list[float], b: list[float]) -> float:
    """Cosine similarity; 0.0 when either vector is all zeros or sizes differ."""
    if len(a) != len(b):
        return 0.0
    dot = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return dot / (norm_a * norm_b)


def rank_chunks(
    namespace: str,
    query_embedding: list[float],
    candidates: list[EmbeddedChunk],
    k: int,
) -> list[RetrievedChunk]:
    """Score candidates and return the top k.

    Sorted by score descending, then by chunk index for determinism.
    """
    scored = [
        (cosine_similarity(query_embedding, chunk.embedding), chunk) for chunk in candidates
    ]
    scored.sort(key=lambda pair: (-pair[0], pair[1].index))

    return [
        RetrievedChunk(
            namespace=namespace,
            index=chunk.index,
            text=chunk.text,
            score=score,
            metadata=chunk.metadata,
        )
        for score, chunk in scored[: max(0, k)]
    ]


class VectorIndex(Protocol):
    """Embedding store, isolated per namespace (one namespace per document)."""

    async def upsert_chunks(self, namespace: str, chunks: list[EmbeddedChunk]) -> None:
        """Replace the namespace's contents with ``chunks``."""
        ...

    async def query_similar(self, namespace: str, query_text: str, k: int) -> list[RetrievedChunk]:
        """Return up to k chunks by descending similarity; empty for an unknown namespace."""
        ...

    async def delete_namespace(self, namespace: str) -> None:
        """Remove every chunk in the namespace. Unknown namespaces are a no-op."""
        ...

    async def count(self, namespace: str) -> int:
        """Number of chunks stored under a namespace."""
        ...


class InMemoryVectorIndex:
    """In-memory implementation of VectorIndex.

    Scores every chunk in the namespace; meant for unit tests, not for
    production-sized namespaces.
    """

    def __init__(self, embedder: Embedder) -> None:
        self._embedder = embedder
        self._namespaces: dict[str, list[EmbeddedChunk]] = {}

    async def upsert_chunks(self, namespace: str, chunks: list[EmbeddedChunk]) -> None:
        """Replace the namespace's contents."""
        self._namespaces[namespace] = sorted(chunks, key=lambda chunk: chunk.index)

    async def query_similar(self, namespace: str, query_text: str, k: int) -> list[RetrievedChunk]:
        """Similarity search within one namespace."""
        candidates = list(self._namespaces.get(namespace, []))
        if not candidates:
            return []

        query_embedding = await self._embedder.embed_query(query_text)
        return rank_chunks(namespace, query_embedding, candidates, k)

    async def delete_namespace(self, namespace: str) -> None:
        """Drop the namespace."""
        self._namespaces.pop(namespace, None)

    async def count(self, namespace: str) -> int:
        """Number of chunks stored under a namespace."""
        return len(self._namespaces.get(namespace, []))


class QdrantVectorIndex:
    """VectorIndex backed by a Qdrant collection.

    All namespaces share one collection. Every point carries its namespace
    in the payload and every operation filters on it. The collection is
    created on first write, sized to the embeddings being stored, with
    cosine distance so scores are cosine similarities.
    """

    def __init__(
        self,
        client: AsyncQdrantClient,
        embedder: Embedder,
        collection: str = "docchat_chunks",
    ) -> None:
        """Initialize index.

        Args:
            client: Shared Qdrant client (process-scoped)
            embedder: Embeds query text for similarity search
            collection: Collection holding every namespace
        """
        self._client = client
        self._embedder = embedder
        self._collection = collection
        self._ready = False
        self._create_lock = asyncio.Lock()

    @staticmethod
    def point_id(namespace: str, index: int) -> str:
        """Stable point id for a chunk, so re-indexing overwrites in place."""
        return str(uuid.uuid5(uuid.NAMESPACE_URL, f"{namespace}/{index}"))

    @staticmethod
    def _namespace_filter(namespace: str) -> models.Filter:
        return models.Filter(
            must=[models.FieldCondition(key="namespace", match=models.MatchValue(value=namespace))]
        )

    async def _exists(self) -> bool:
        if not self._ready:
            self._ready = await self._client.collection_exists(self._collection)
        return self._ready

    async def _ensure_collection(self, vector_size: int) -> None:
        async with self._create_lock:
            if await self._exists():
                return
            await self._client.create_collection(
                collection_name=self._collection,
                vectors_config=models.VectorParams(size=vector_size, distance=models.Distance.COSINE),
            )
            await self._client.create_payload_index(
                collection_name=self._collection,
                field_name="namespace",
                field_schema=models.PayloadSchemaType.KEYWORD,
            )
            self._ready = True
            logger.info(f"Created Qdrant collection {self._collection} (size={vector_size})")

    async def upsert_chunks(self, namespace: str, chunks: list[EmbeddedChunk]) -> None:
        """Replace the namespace's points with ``chunks``."""
        await self.delete_namespace(namespace)
        if not chunks:
            return

        await self._ensure_collection(len(chunks[0].embedding))
        await self._client.upsert(
            collection_name=self._collection,
            points=[
                models.PointStruct(
                    id=self.point_id(namespace, chunk.index),
                    vector=chunk.embedding,
                    payload={
                        "namespace": namespace,
                        "index": chunk.index,
                        "text": chunk.text,
                        "metadata": chunk.metadata,
                    },
                )
                for chunk in chunks
            ],
            wait=True,
        )

        logger.info(f"Indexed {len(chunks)} chunks into namespace {namespace}")

    async def query_similar(self, namespace: str, query_text: str, k: int) -> list[RetrievedChunk]:
        """Nearest-neighbour search restricted to one namespace."""
        if k <= 0 or not await self._exists():
            return []

        query_embedding = await self._embedder.embed_query(query_text)
        response = await self._client.query_points(
            collection_name=self._collection,
            query=query_embedding,
            query_filter=self._namespace_filter(namespace),
            limit=k,
            with_payload=True,
        )

        results = [
            RetrievedChunk(
                namespace=namespace,
                index=point.payload["index"],
                text=point.payload["text"],
                score=point.score,
                metadata=point.payload.get("metadata") or {},
            )
            for point in response.points
            if point.payload is not None
        ]
        # Equal scores come back in storage order; break ties by chunk index
        results.sort(key=lambda chunk: (-chunk.score, chunk.index))
        return results

    async def delete_namespace(self, namespace: str) -> None:
        """Delete every point in the namespace."""
        if not await self._exists():
            return
        await self._client.delete(
            collection_name=self._collection,
            points_selector=models.FilterSelector(filter=self._namespace_filter(namespace)),
            wait=True,
        )

    async def count(self, namespace: str) -> int:
        """Number of chunks stored under a namespace."""
        if not await self._exists():
            return 0
        result = await self._client.count(
            collection_name=self._collection,
            count_filter=self._namespace_filter(namespace),
            exact=True,
        )
        return result.count
