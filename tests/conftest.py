"""
Shared fixtures: a keyword-count embedder with predictable vectors and
opened stores for both backends.
"""

import pytest
import pytest_asyncio

from journal_recall.vector.embeddings import IEmbeddingProvider
from journal_recall.vector.index import InMemoryEmbeddingStore
from journal_recall.vector.store import SQLiteEmbeddingStore
from journal_recall.vector.types import EmbeddingMetadata, EmbeddingRecord

VOCABULARY = ("family", "work", "travel", "health")


class KeywordEmbedder(IEmbeddingProvider):
    """One dimension per vocabulary word, valued by its count in the text."""

    name = "keyword"

    def __init__(self, vocabulary=VOCABULARY, fail_on=None):
        self.vocabulary = tuple(vocabulary)
        self.fail_on = fail_on
        self.calls = []

    def embed_text(self, text: str) -> list[float]:
        self.calls.append(text)
        if self.fail_on and self.fail_on in text:
            raise RuntimeError("model unavailable")
        words = text.lower().split()
        return [float(words.count(word)) for word in self.vocabulary]

    def get_dimension(self) -> int:
        return len(self.vocabulary)


@pytest.fixture
def embedder():
    return KeywordEmbedder()


@pytest.fixture
def make_record():
    """Factory for records with explicit vectors and optional fixed ids."""

    def _make(document_id="doc-1", chunk_index=0, vector=(1.0, 0.0), text="chunk",
              document_name=None, chunk_count=1, record_id=None):
        metadata = EmbeddingMetadata(
            document_id=document_id,
            document_name=document_name if document_name is not None else f"{document_id}.md",
            chunk_index=chunk_index,
            chunk_count=chunk_count,
        )
        record = EmbeddingRecord.create(source_text=text, vector=vector, metadata=metadata)
        if record_id is not None:
            record = EmbeddingRecord(
                id=record_id,
                source_text=record.source_text,
                vector=record.vector,
                created_at=record.created_at,
                metadata=record.metadata,
            )
        return record

    return _make


@pytest_asyncio.fixture
async def memory_store():
    store = InMemoryEmbeddingStore()
    await store.open()
    yield store
    await store.close()


@pytest_asyncio.fixture
async def sqlite_store(tmp_path):
    store = SQLiteEmbeddingStore(str(tmp_path / "embeddings.db"))
    await store.open()
    yield store
    await store.close()


@pytest_asyncio.fixture(params=["memory", "sqlite"])
async def store(request, tmp_path):
    """An opened store of each backend."""
    if request.param == "memory":
        store = InMemoryEmbeddingStore()
    else:
        store = SQLiteEmbeddingStore(str(tmp_path / "embeddings.db"))
    await store.open()
    yield store
    await store.close()
