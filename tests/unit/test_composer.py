"""Tests for prompt composition."""

import uuid

import pytest

from backend.docchat.db.inmemory import InMemoryDocumentStore
from backend.docchat.errors import NotFound
from backend.docchat.models.chunks import EmbeddedChunk, RetrievedChunk
from backend.docchat.models.documents import Document
from backend.docchat.retrieval.composer import SYSTEM_PROMPT, RetrievalComposer
from backend.docchat.retrieval.embeddings import HashingEmbedder
from backend.docchat.retrieval.vector_index import InMemoryVectorIndex


async def _create_document(store: InMemoryDocumentStore, owner_id: str = "user_1") -> Document:
    return await store.create_pending(
        storage_key=f"key-{uuid.uuid4()}",
        name="report.pdf",
        owner_id=owner_id,
        source_url="https://files.example/f/report",
    )


class OversizedIndex:
    """Index stub that ignores k and returns every passage it holds."""

    def __init__(self, texts: list[str]) -> None:
        self.texts = texts

    async def query_similar(self, namespace: str, query_text: str, k: int) -> list[RetrievedChunk]:
        return [
            RetrievedChunk(namespace=namespace, index=i, text=text, score=1.0)
            for i, text in enumerate(self.texts)
        ]

    async def upsert_chunks(self, namespace: str, chunks: list[EmbeddedChunk]) -> None:
        raise AssertionError("composer must not write")

    async def delete_namespace(self, namespace: str) -> None:
        raise AssertionError("composer must not write")


@pytest.mark.asyncio
async def test_empty_namespace_still_produces_prompt(
    memory_store: InMemoryDocumentStore, memory_index: InMemoryVectorIndex
) -> None:
    """A document with no indexed chunks gets a context-free prompt."""
    document = await _create_document(memory_store)
    composer = RetrievalComposer(memory_store, memory_index)

    messages = await composer.compose(document.document_id, "user_1", "What is this about?")

    assert [m.role for m in messages] == ["system", "user"]
    assert messages[0].content == SYSTEM_PROMPT
    assert "CONTEXT:\n\n\nUSER INPUT: What is this about?" in messages[1].content
    assert messages[1].content.endswith("USER INPUT: What is this about?")


@pytest.mark.asyncio
async def test_passages_in_similarity_order_separated_by_blank_lines(
    memory_store: InMemoryDocumentStore,
) -> None:
    document = await _create_document(memory_store)
    embedder = HashingEmbedder(dimension=4096)
    index = InMemoryVectorIndex(embedder)
    texts = ["solar panels convert sunlight", "solar panel efficiency figures", "unrelated cooking tips"]
    vectors = await embedder.embed_documents(texts)
    await index.upsert_chunks(
        str(document.document_id),
        [EmbeddedChunk(index=i, text=t, embedding=v) for i, (t, v) in enumerate(zip(texts, vectors))],
    )
    composer = RetrievalComposer(memory_store, index, top_k=2)

    messages = await composer.compose(document.document_id, "user_1", "solar panels sunlight")

    content = messages[1].content
    assert "solar panels convert sunlight\n\nsolar panel efficiency figures" in content
    assert "cooking" not in content


@pytest.mark.asyncio
async def test_never_more_than_k_passages(memory_store: InMemoryDocumentStore) -> None:
    document = await _create_document(memory_store)
    passages = [f"passage-{i}" for i in range(10)]
    composer = RetrievalComposer(memory_store, OversizedIndex(passages), top_k=4)

    messages = await composer.compose(document.document_id, "user_1", "question")

    included = [p for p in passages if p in messages[1].content]
    assert included == passages[:4]


@pytest.mark.asyncio
async def test_history_is_last_window_oldest_first(
    memory_store: InMemoryDocumentStore, memory_index: InMemoryVectorIndex
) -> None:
    document = await _create_document(memory_store)
    for i in range(10):
        await memory_store.append_message(
            document.document_id, "user_1", f"msg-{i}", is_user_message=i % 2 == 0
        )
    composer = RetrievalComposer(memory_store, memory_index, history_window=6)

    messages = await composer.compose(document.document_id, "user_1", "next question")

    content = messages[1].content
    for i in range(4):
        assert f"msg-{i}" not in content
    positions = [content.index(f"msg-{i}") for i in range(4, 10)]
    assert positions == sorted(positions)
    assert "User: msg-4" in content
    assert "Assistant: msg-5" in content


@pytest.mark.asyncio
async def test_other_owner_gets_not_found(
    memory_store: InMemoryDocumentStore, memory_index: InMemoryVectorIndex
) -> None:
    document = await _create_document(memory_store, owner_id="owner_a")
    composer = RetrievalComposer(memory_store, memory_index)

    with pytest.raises(NotFound):
        await composer.compose(document.document_id, "owner_b", "question")


@pytest.mark.asyncio
async def test_composition_does_not_mutate_store(
    memory_store: InMemoryDocumentStore, memory_index: InMemoryVectorIndex
) -> None:
    document = await _create_document(memory_store)
    await memory_store.append_message(document.document_id, "user_1", "hello", is_user_message=True)
    composer = RetrievalComposer(memory_store, memory_index)

    await composer.compose(document.document_id, "user_1", "question")

    page = await memory_store.list_messages(document.document_id, "user_1", cursor=None, limit=10)
    assert [m.text for m in page.messages] == ["hello"]
