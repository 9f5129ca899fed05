"""
Record types for the embedding store.
"""

import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import numpy as np

# Recognized metadata keys as persisted
DOCUMENT_ID_KEY = "documentId"
DOCUMENT_NAME_KEY = "documentName"
CHUNK_INDEX_KEY = "chunkIndex"
CHUNK_COUNT_KEY = "chunkCount"

_KNOWN_KEYS = (DOCUMENT_ID_KEY, DOCUMENT_NAME_KEY, CHUNK_INDEX_KEY, CHUNK_COUNT_KEY)


def generate_record_id() -> str:
    """Time-ordered prefix plus random suffix; carries no other meaning."""
    return f"{int(time.time() * 1000):012x}-{uuid.uuid4().hex}"


def as_vector(values) -> np.ndarray:
    """Copy values into a read-only float64 vector."""
    vector = np.array(values, dtype=np.float64).reshape(-1)
    vector.setflags(write=False)
    return vector


@dataclass(frozen=True)
class EmbeddingMetadata:
    """Tags linking a record back to the journal document it came from."""

    document_id: str
    """Identifier of the source document"""

    document_name: str
    """Display name of the source document"""

    chunk_index: int
    """0-based position of this chunk within the document"""

    chunk_count: int
    """Total number of non-empty chunks stored for the document"""

    extra: Dict[str, Any] = field(default_factory=dict)
    """Open extension field for forward compatibility"""

    def to_dict(self) -> Dict[str, Any]:
        data = dict(self.extra)
        data.update({
            DOCUMENT_ID_KEY: self.document_id,
            DOCUMENT_NAME_KEY: self.document_name,
            CHUNK_INDEX_KEY: self.chunk_index,
            CHUNK_COUNT_KEY: self.chunk_count,
        })
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EmbeddingMetadata":
        return cls(
            document_id=str(data.get(DOCUMENT_ID_KEY, "")),
            document_name=str(data.get(DOCUMENT_NAME_KEY, "")),
            chunk_index=int(data.get(CHUNK_INDEX_KEY, 0)),
            chunk_count=int(data.get(CHUNK_COUNT_KEY, 0)),
            extra={k: v for k, v in data.items() if k not in _KNOWN_KEYS},
        )


@dataclass(frozen=True, eq=False)
class EmbeddingRecord:
    """Represents one embedded chunk of a journal document."""

    id: str
    """Unique identifier for the record"""

    source_text: str
    """The chunk of text this vector represents"""

    vector: np.ndarray
    """float64 embedding of source_text (read-only)"""

    created_at: datetime
    """UTC creation timestamp"""

    metadata: EmbeddingMetadata
    """Document tags"""

    @property
    def dimension(self) -> int:
        return int(self.vector.shape[0])

    @property
    def document_id(self) -> str:
        return self.metadata.document_id

    @classmethod
    def create(cls, source_text: str, vector, metadata: EmbeddingMetadata) -> "EmbeddingRecord":
        """Build a new record with a fresh id and timestamp."""
        return cls(
            id=generate_record_id(),
            source_text=source_text,
            vector=as_vector(vector),
            created_at=datetime.now(timezone.utc),
            metadata=metadata,
        )


@dataclass
class SearchHit:
    """Represents a ranked search result."""

    record: EmbeddingRecord
    """The matching record"""

    score: float
    """Cosine similarity to the query, in [-1, 1]"""

    @property
    def document_id(self) -> str:
        return self.record.metadata.document_id

    @property
    def document_name(self) -> str:
        return self.record.metadata.document_name

    @property
    def chunk_index(self) -> int:
        return self.record.metadata.chunk_index

    @property
    def text(self) -> str:
        return self.record.source_text


@dataclass
class StoreStats:
    """Read-only aggregate over the store at call time."""

    total_records: int
    document_count: int
    store_size_bytes: int
    dimension: Optional[int] = None
    pending_updates: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_records": self.total_records,
            "document_count": self.document_count,
            "store_size_bytes": self.store_size_bytes,
            "dimension": self.dimension,
            "pending_updates": self.pending_updates,
        }


@dataclass
class ChunkFailure:
    """A chunk skipped because its embedding could not be generated."""

    document_id: str
    chunk_index: int
    error: str
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class DocumentSource:
    """Document payload handed over by the journal storage layer."""

    document_id: str
    document_name: str
    content: str
