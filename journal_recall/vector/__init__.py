"""
Vector layer: chunking, embedding providers, record types and storage.
"""

from .chunker import Chunker, chunk_text
from .embeddings import (
    IEmbeddingProvider,
    DeterministicHashEmbedding,
    JournalFeatureEmbedding,
    SentenceTransformerEmbedding,
    OllamaEmbedding,
)
from .index import IEmbeddingStore, InMemoryEmbeddingStore, StoreState
from .similarity import cosine_similarity
from .store import SQLiteEmbeddingStore
from .types import (
    EmbeddingMetadata,
    EmbeddingRecord,
    SearchHit,
    StoreStats,
    ChunkFailure,
    DocumentSource,
)

__all__ = [
    'Chunker',
    'chunk_text',
    'IEmbeddingProvider',
    'DeterministicHashEmbedding',
    'JournalFeatureEmbedding',
    'SentenceTransformerEmbedding',
    'OllamaEmbedding',
    'IEmbeddingStore',
    'InMemoryEmbeddingStore',
    'StoreState',
    'cosine_similarity',
    'SQLiteEmbeddingStore',
    'EmbeddingMetadata',
    'EmbeddingRecord',
    'SearchHit',
    'StoreStats',
    'ChunkFailure',
    'DocumentSource',
]
