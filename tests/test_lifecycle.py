"""
Tests for keeping embeddings in sync with document create, edit and delete.
"""

import asyncio

import pytest
from pydantic import ValidationError

from conftest import KeywordEmbedder
from journal_recall.core.exceptions import DimensionMismatchError, NotInitializedError
from journal_recall.core.lifecycle import LifecycleManager
from journal_recall.vector.index import InMemoryEmbeddingStore
from journal_recall.vector.types import DocumentSource


def words(count, word="family"):
    return " ".join([word] * count)


@pytest.fixture
def manager(memory_store, embedder):
    return LifecycleManager(memory_store, embedder)


@pytest.mark.asyncio
async def test_store_creates_one_record_per_chunk(manager, memory_store):
    ids = await manager.store_document_embeddings("entry-1", "Monday.md", words(1200))

    assert len(ids) == 3
    records = await manager.get_document_embeddings("entry-1")
    assert [r.id for r in records] == ids
    assert [r.metadata.chunk_index for r in records] == [0, 1, 2]
    assert all(r.metadata.chunk_count == 3 for r in records)
    assert all(r.metadata.document_name == "Monday.md" for r in records)
    assert [len(r.source_text.split()) for r in records] == [500, 500, 200]
    assert await memory_store.count() == 3


@pytest.mark.asyncio
async def test_store_empty_content_creates_nothing(manager, memory_store):
    assert await manager.store_document_embeddings("entry-1", "Empty.md", "   \n ") == []
    assert await memory_store.count() == 0


@pytest.mark.asyncio
async def test_store_rejects_blank_document_id(manager):
    with pytest.raises(ValidationError):
        await manager.store_document_embeddings("  ", "Nameless.md", "family")


@pytest.mark.asyncio
async def test_store_requires_open_store(embedder):
    manager = LifecycleManager(InMemoryEmbeddingStore(), embedder)
    with pytest.raises(NotInitializedError):
        await manager.store_document_embeddings("entry-1", "Monday.md", "family work")


@pytest.mark.asyncio
async def test_failed_chunks_are_skipped_and_recorded(memory_store):
    embedder = KeywordEmbedder(fail_on="broken")
    manager = LifecycleManager(memory_store, embedder, chunk_size=2)

    ids = await manager.store_document_embeddings("entry-1", "Mixed.md", "family work broken day travel health")

    assert len(ids) == 2
    records = await manager.get_document_embeddings("entry-1")
    assert [r.metadata.chunk_index for r in records] == [0, 2]
    assert all(r.metadata.chunk_count == 3 for r in records)

    assert len(manager.recent_failures) == 1
    failure = manager.recent_failures[0]
    assert failure.document_id == "entry-1"
    assert failure.chunk_index == 1
    assert "model unavailable" in failure.error


@pytest.mark.asyncio
async def test_dimension_mismatch_propagates(memory_store, make_record):
    await memory_store.put(make_record(document_id="other", vector=[1.0, 0.0, 0.0]))
    manager = LifecycleManager(memory_store, KeywordEmbedder(vocabulary=("family", "work")))

    with pytest.raises(DimensionMismatchError):
        await manager.store_document_embeddings("entry-1", "Monday.md", "family")


@pytest.mark.asyncio
async def test_delete_only_touches_one_document(manager, memory_store):
    await manager.store_document_embeddings("entry-1", "Monday.md", words(1200))
    kept = await manager.store_document_embeddings("entry-2", "Tuesday.md", words(600, "work"))

    assert await manager.delete_document_embeddings("entry-1") == 3
    assert await manager.get_document_embeddings("entry-1") == []
    assert {r.id for r in await memory_store.all()} == set(kept)


@pytest.mark.asyncio
async def test_delete_unknown_document_is_noop(manager):
    assert await manager.delete_document_embeddings("never-stored") == 0


@pytest.mark.asyncio
async def test_update_replaces_records(manager, memory_store):
    old_ids = await manager.store_document_embeddings("entry-1", "Monday.md", words(1200))
    new_ids = await manager.update_document_embeddings("entry-1", "Monday (edited).md", "travel plans for work")

    assert len(new_ids) == 1
    assert not set(old_ids) & set(new_ids)
    records = await manager.get_document_embeddings("entry-1")
    assert [r.id for r in records] == new_ids
    assert records[0].source_text == "travel plans for work"
    assert records[0].metadata.document_name == "Monday (edited).md"
    assert await memory_store.pending() == {}


@pytest.mark.asyncio
async def test_update_to_empty_content_removes_records(manager):
    await manager.store_document_embeddings("entry-1", "Monday.md", "family")
    assert await manager.update_document_embeddings("entry-1", "Monday.md", "") == []
    assert await manager.get_document_embeddings("entry-1") == []


@pytest.mark.asyncio
async def test_concurrent_updates_of_one_document_do_not_interleave(memory_store, embedder):
    manager = LifecycleManager(memory_store, embedder, chunk_size=2)
    await manager.store_document_embeddings("entry-1", "Monday.md", "family")

    first = "family work travel health family work"
    second = "work work travel travel"
    await asyncio.gather(
        manager.update_document_embeddings("entry-1", "Monday.md", first),
        manager.update_document_embeddings("entry-1", "Monday.md", second),
    )

    records = await manager.get_document_embeddings("entry-1")
    texts = " ".join(r.source_text for r in records)
    # Exactly one version survives, complete
    assert texts in (first, second)
    assert len({r.metadata.chunk_count for r in records}) == 1
    assert len(records) == records[0].metadata.chunk_count


@pytest.mark.asyncio
async def test_different_documents_proceed_concurrently(manager):
    results = await asyncio.gather(
        manager.store_document_embeddings("entry-1", "Monday.md", words(600)),
        manager.store_document_embeddings("entry-2", "Tuesday.md", words(600, "work")),
    )

    assert [len(ids) for ids in results] == [2, 2]


@pytest.mark.asyncio
async def test_index_documents_skips_existing_and_empty(manager, memory_store):
    await manager.store_document_embeddings("entry-1", "Monday.md", "family")
    progress = []

    results = await manager.index_documents(
        [
            DocumentSource("entry-1", "Monday.md", "family dinner"),
            DocumentSource("entry-2", "Tuesday.md", "work meeting"),
            DocumentSource("entry-3", "Wednesday.md", "   "),
        ],
        progress_callback=lambda current, total: progress.append((current, total)),
    )

    assert list(results) == ["entry-2"]
    assert progress == [(1, 3), (2, 3), (3, 3)]
    assert len(await manager.get_document_embeddings("entry-1")) == 1
    assert manager.is_indexing is False


@pytest.mark.asyncio
async def test_index_documents_continues_after_a_failure(memory_store, make_record):
    await memory_store.put(make_record(document_id="seed", vector=[1.0, 0.0, 0.0, 0.0]))
    manager = LifecycleManager(memory_store, KeywordEmbedder())

    results = await manager.index_documents([
        DocumentSource(" ", "Blank id.md", "family"),
        DocumentSource("entry-2", "Tuesday.md", "work"),
    ])

    assert list(results) == ["entry-2"]


@pytest.mark.asyncio
async def test_index_documents_refuses_concurrent_run(manager):
    manager._is_indexing = True
    assert await manager.index_documents([DocumentSource("entry-1", "Monday.md", "family")]) == {}


@pytest.mark.asyncio
async def test_reindex_all_rebuilds_from_scratch(manager, memory_store):
    await manager.store_document_embeddings("stale", "Deleted.md", "health")
    await manager.store_document_embeddings("entry-1", "Monday.md", "family")

    results = await manager.reindex_all([DocumentSource("entry-1", "Monday.md", "family work")])

    assert list(results) == ["entry-1"]
    records = await memory_store.all()
    assert len(records) == 1
    assert records[0].source_text == "family work"


@pytest.mark.asyncio
async def test_recover_reembeds_interrupted_update(manager, memory_store):
    await manager.store_document_embeddings("entry-1", "Monday.md", words(1200))
    # Simulate a crash after the marker was written
    await memory_store.mark_pending("entry-1", "Monday.md")

    async def loader(document_id):
        return DocumentSource(document_id, "Monday.md", "rewritten after crash")

    assert await manager.recover_interrupted_updates(loader) == ["entry-1"]
    records = await manager.get_document_embeddings("entry-1")
    assert [r.source_text for r in records] == ["rewritten after crash"]
    assert await memory_store.pending() == {}


@pytest.mark.asyncio
async def test_recover_deletes_records_of_vanished_document(manager, memory_store):
    await manager.store_document_embeddings("entry-1", "Monday.md", "family")
    await memory_store.mark_pending("entry-1", "Monday.md")

    async def loader(document_id):
        return None

    assert await manager.recover_interrupted_updates(loader) == ["entry-1"]
    assert await manager.get_document_embeddings("entry-1") == []
    assert await memory_store.pending() == {}


@pytest.mark.asyncio
async def test_recover_with_nothing_pending(manager):
    async def loader(document_id):
        raise AssertionError("loader should not be called")

    assert await manager.recover_interrupted_updates(loader) == []


class GatedEmbedder(KeywordEmbedder):
    """Holds back any text containing the gate word until released."""

    def __init__(self, gate_word):
        super().__init__()
        self.gate_word = gate_word
        self.released = asyncio.Event()

    async def embed(self, text):
        if self.gate_word in text:
            await self.released.wait()
        return await super().embed(text)


@pytest.mark.asyncio
async def test_reindex_during_bulk_index_keeps_written_records(memory_store):
    embedder = GatedEmbedder(gate_word="d2")
    manager = LifecycleManager(memory_store, embedder)
    documents = [DocumentSource(f"d{i}", f"d{i}.md", f"family d{i}") for i in range(4)]

    task = asyncio.create_task(manager.index_documents(documents))
    for _ in range(500):
        if await memory_store.count() == 2:
            break
        await asyncio.sleep(0.01)
    assert await memory_store.count() == 2
    assert manager.is_indexing is True

    assert await manager.reindex_all(documents) == {}

    embedder.released.set()
    results = await task

    assert set(results) == {"d0", "d1", "d2", "d3"}
    assert {r.metadata.document_id for r in await memory_store.all()} == {"d0", "d1", "d2", "d3"}
    assert manager.is_indexing is False


@pytest.mark.asyncio
async def test_reindex_all_drops_stale_pending_markers(manager, memory_store):
    await manager.store_document_embeddings("entry-1", "Monday.md", "family")
    await memory_store.mark_pending("entry-1", "Monday.md")

    await manager.reindex_all([DocumentSource("entry-1", "Monday.md", "family work")])

    assert await memory_store.pending() == {}

    async def loader(document_id):
        raise AssertionError("nothing should need recovery")

    assert await manager.recover_interrupted_updates(loader) == []


@pytest.mark.asyncio
async def test_document_locks_are_released_after_use(memory_store, embedder):
    manager = LifecycleManager(memory_store, embedder, chunk_size=2)

    await asyncio.gather(
        manager.store_document_embeddings("entry-1", "Monday.md", "family work"),
        manager.update_document_embeddings("entry-1", "Monday.md", "travel health"),
        manager.store_document_embeddings("entry-2", "Tuesday.md", "work"),
    )
    await manager.delete_document_embeddings("entry-2")

    assert manager._locks == {}


@pytest.mark.asyncio
async def test_document_lock_released_when_operation_fails(memory_store, make_record):
    await memory_store.put(make_record(document_id="seed", vector=[1.0, 0.0, 0.0]))
    manager = LifecycleManager(memory_store, KeywordEmbedder(vocabulary=("family", "work")))

    with pytest.raises(DimensionMismatchError):
        await manager.store_document_embeddings("entry-1", "Monday.md", "family")

    assert manager._locks == {}
