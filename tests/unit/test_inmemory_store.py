"""Tests for the in-memory document store."""

import uuid

import pytest

from backend.docchat.db.inmemory import InMemoryDocumentStore
from backend.docchat.errors import Conflict, NotFound
from backend.docchat.models.documents import Document, DocumentStatus, FailureReason


async def _create(store: InMemoryDocumentStore, key: str = "key-1", owner_id: str = "user_1") -> Document:
    return await store.create_pending(
        storage_key=key, name=f"{key}.pdf", owner_id=owner_id, source_url=f"https://f/{key}"
    )


@pytest.mark.asyncio
async def test_create_pending_starts_processing(memory_store: InMemoryDocumentStore) -> None:
    document = await _create(memory_store)

    assert document.status == DocumentStatus.PROCESSING
    assert await memory_store.get(document.document_id, "user_1") == document


@pytest.mark.asyncio
async def test_duplicate_storage_key_conflicts_across_owners(
    memory_store: InMemoryDocumentStore,
) -> None:
    await _create(memory_store, key="shared", owner_id="owner_a")

    with pytest.raises(Conflict):
        await _create(memory_store, key="shared", owner_id="owner_b")


@pytest.mark.asyncio
async def test_other_owner_cannot_see_document(memory_store: InMemoryDocumentStore) -> None:
    document = await _create(memory_store, owner_id="owner_a")

    with pytest.raises(NotFound):
        await memory_store.get(document.document_id, "owner_b")
    with pytest.raises(NotFound):
        await memory_store.find_by_storage_key(document.storage_key, "owner_b")
    with pytest.raises(NotFound):
        await memory_store.append_message(document.document_id, "owner_b", "hi", True)
    with pytest.raises(NotFound):
        await memory_store.delete(document.document_id, "owner_b")


@pytest.mark.asyncio
async def test_mark_status_records_failure_reason(memory_store: InMemoryDocumentStore) -> None:
    document = await _create(memory_store)

    failed = await memory_store.mark_status(
        document.document_id, DocumentStatus.FAILED, FailureReason.too_many_pages
    )
    again = await memory_store.mark_status(document.document_id, DocumentStatus.FAILED)

    assert failed.failure_reason == FailureReason.too_many_pages
    assert again.failure_reason == FailureReason.too_many_pages


@pytest.mark.asyncio
async def test_mark_status_unknown_document(memory_store: InMemoryDocumentStore) -> None:
    with pytest.raises(NotFound):
        await memory_store.mark_status(uuid.uuid4(), DocumentStatus.SUCCESS)


@pytest.mark.asyncio
async def test_pagination_walks_all_messages_newest_first(
    memory_store: InMemoryDocumentStore,
) -> None:
    """limit=2 over 5 messages: pages of 2, 2, 1, then no cursor."""
    document = await _create(memory_store)
    created = [
        await memory_store.append_message(document.document_id, "user_1", f"m{i}", i % 2 == 0)
        for i in range(5)
    ]

    pages = []
    cursor = None
    while True:
        page = await memory_store.list_messages(document.document_id, "user_1", cursor, limit=2)
        pages.append([m.text for m in page.messages])
        if page.next_cursor is None:
            break
        cursor = page.next_cursor

    assert pages == [["m4", "m3"], ["m2", "m1"], ["m0"]]
    assert cursor == created[0].message_id


@pytest.mark.asyncio
async def test_unknown_cursor_returns_empty_page(memory_store: InMemoryDocumentStore) -> None:
    document = await _create(memory_store)
    await memory_store.append_message(document.document_id, "user_1", "m0", True)

    page = await memory_store.list_messages(document.document_id, "user_1", uuid.uuid4(), limit=2)

    assert page.messages == []
    assert page.next_cursor is None


@pytest.mark.asyncio
async def test_list_documents_newest_first(memory_store: InMemoryDocumentStore) -> None:
    older = await _create(memory_store, key="older")
    newer = await _create(memory_store, key="newer")
    await _create(memory_store, key="foreign", owner_id="someone_else")

    documents = await memory_store.list_documents("user_1")

    assert [d.document_id for d in documents] == [newer.document_id, older.document_id]


@pytest.mark.asyncio
async def test_delete_removes_document_and_frees_key(memory_store: InMemoryDocumentStore) -> None:
    document = await _create(memory_store, key="gone")
    await memory_store.append_message(document.document_id, "user_1", "hi", True)

    await memory_store.delete(document.document_id, "user_1")

    with pytest.raises(NotFound):
        await memory_store.get(document.document_id, "user_1")
    assert await memory_store.get_by_storage_key("gone") is None
