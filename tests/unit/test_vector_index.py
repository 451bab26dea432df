"""Tests for the in-memory vector index and similarity ranking."""

import pytest

from backend.docchat.models.chunks import EmbeddedChunk
from backend.docchat.retrieval.embeddings import HashingEmbedder
from backend.docchat.retrieval.vector_index import (
    InMemoryVectorIndex,
    cosine_similarity,
    rank_chunks,
)


async def _embedded(embedder: HashingEmbedder, texts: list[str]) -> list[EmbeddedChunk]:
    vectors = await embedder.embed_documents(texts)
    return [
        EmbeddedChunk(index=i, text=text, embedding=vector, metadata={"page_number": 1})
        for i, (text, vector) in enumerate(zip(texts, vectors))
    ]


def test_cosine_similarity_edge_cases() -> None:
    assert cosine_similarity([1.0, 0.0], [1.0, 0.0]) == pytest.approx(1.0)
    assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)
    assert cosine_similarity([0.0, 0.0], [1.0, 0.0]) == 0.0
    assert cosine_similarity([1.0], [1.0, 0.0]) == 0.0


def test_rank_chunks_orders_by_score_then_index() -> None:
    candidates = [
        EmbeddedChunk(index=0, text="low", embedding=[0.0, 1.0]),
        EmbeddedChunk(index=2, text="tie-b", embedding=[1.0, 0.0]),
        EmbeddedChunk(index=1, text="tie-a", embedding=[1.0, 0.0]),
    ]

    ranked = rank_chunks("ns", [1.0, 0.0], candidates, k=2)

    assert [chunk.text for chunk in ranked] == ["tie-a", "tie-b"]
    assert all(chunk.namespace == "ns" for chunk in ranked)


@pytest.mark.asyncio
async def test_query_returns_most_similar_first() -> None:
    # Wide vectors keep hash collisions out of the ranking
    embedder = HashingEmbedder(dimension=4096)
    memory_index = InMemoryVectorIndex(embedder)
    chunks = await _embedded(
        embedder,
        ["invoices are due in thirty days", "the office cat is orange", "late invoices incur fees"],
    )
    await memory_index.upsert_chunks("doc-1", chunks)

    results = await memory_index.query_similar("doc-1", "when are invoices due", k=2)

    assert len(results) == 2
    assert results[0].text == "invoices are due in thirty days"
    assert results[0].score >= results[1].score
    assert "cat" not in " ".join(r.text for r in results)


@pytest.mark.asyncio
async def test_empty_namespace_returns_empty_list(memory_index: InMemoryVectorIndex) -> None:
    assert await memory_index.query_similar("missing", "anything", k=4) == []


@pytest.mark.asyncio
async def test_namespaces_are_isolated(
    memory_index: InMemoryVectorIndex, embedder: HashingEmbedder
) -> None:
    await memory_index.upsert_chunks("a", await _embedded(embedder, ["alpha text"]))
    await memory_index.upsert_chunks("b", await _embedded(embedder, ["beta text"]))

    results = await memory_index.query_similar("a", "beta text", k=4)

    assert [r.text for r in results] == ["alpha text"]


@pytest.mark.asyncio
async def test_upsert_replaces_namespace(
    memory_index: InMemoryVectorIndex, embedder: HashingEmbedder
) -> None:
    await memory_index.upsert_chunks("doc", await _embedded(embedder, ["one", "two", "three"]))
    await memory_index.upsert_chunks("doc", await _embedded(embedder, ["only"]))

    assert await memory_index.count("doc") == 1


@pytest.mark.asyncio
async def test_delete_namespace(memory_index: InMemoryVectorIndex, embedder: HashingEmbedder) -> None:
    await memory_index.upsert_chunks("doc", await _embedded(embedder, ["one"]))

    await memory_index.delete_namespace("doc")
    await memory_index.delete_namespace("never-existed")

    assert await memory_index.query_similar("doc", "one", k=4) == []
