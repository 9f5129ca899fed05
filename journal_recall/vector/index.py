"""
Embedding store interface and the in-memory implementation.

Store lifecycle: UNINITIALIZED -> INITIALIZED -> DISPOSED. Data operations
need INITIALIZED; DISPOSED is terminal, a fresh instance must be built to
reopen the same location.
"""

import asyncio
import sys
from abc import ABC, abstractmethod
from enum import Enum
from typing import Dict, List, Optional

from .types import EmbeddingRecord
from ..core.exceptions import (
    DimensionMismatchError,
    InitializationError,
    NotInitializedError,
    StoreIOError,
)
from ..util.logging import logger


class StoreState(str, Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZED = "initialized"
    DISPOSED = "disposed"


class IEmbeddingStore(ABC):
    """Abstract interface for embedding record storage.

    Subclasses implement the _backend_* hooks; state checks, the
    single-open guarantee and dimension validation live here.
    """

    def __init__(self):
        self._state = StoreState.UNINITIALIZED
        self._open_lock = asyncio.Lock()
        self._write_lock = asyncio.Lock()

    @property
    def state(self) -> StoreState:
        return self._state

    @property
    def is_open(self) -> bool:
        return self._state is StoreState.INITIALIZED

    async def open(self) -> "IEmbeddingStore":
        """Open the store. Idempotent: an open store returns the same handle."""
        async with self._open_lock:
            if self._state is StoreState.INITIALIZED:
                return self
            if self._state is StoreState.DISPOSED:
                raise InitializationError("Store has been disposed; construct a new instance to reopen it")

            await self._backend_open()
            self._state = StoreState.INITIALIZED
            logger.log_store_operation("open", details={"backend": type(self).__name__})
            return self

    async def close(self) -> None:
        """Release resources. The store cannot be reopened afterwards."""
        async with self._open_lock:
            if self._state is StoreState.DISPOSED:
                return
            if self._state is StoreState.INITIALIZED:
                await self._backend_close()
            self._state = StoreState.DISPOSED
            logger.log_store_operation("close", details={"backend": type(self).__name__})

    dispose = close

    def _require_open(self) -> None:
        if self._state is not StoreState.INITIALIZED:
            raise NotInitializedError(f"Embedding store is {self._state.value}; call open() first")

    async def put(self, record: EmbeddingRecord) -> None:
        """Persist a new record; its dimension must match the store's."""
        self._require_open()
        # Dimension check and insert are one step with respect to other writers
        async with self._write_lock:
            expected = await self._backend_get_dimension()
            if expected is not None and record.dimension != expected:
                raise DimensionMismatchError(expected=expected, actual=record.dimension, record_id=record.id)
            if await self._backend_get(record.id) is not None:
                raise StoreIOError(f"Record {record.id} already exists; records are immutable")
            await self._backend_put(record, set_dimension=expected is None)

    async def get(self, record_id: str) -> Optional[EmbeddingRecord]:
        self._require_open()
        return await self._backend_get(record_id)

    async def delete(self, record_id: str) -> bool:
        """Delete a record by id. Returns False when nothing was stored under it."""
        self._require_open()
        return await self._backend_delete(record_id)

    async def all(self) -> List[EmbeddingRecord]:
        """All records, in no particular order."""
        self._require_open()
        return await self._backend_all()

    async def count(self) -> int:
        self._require_open()
        return await self._backend_count()

    async def clear(self) -> None:
        """Remove every record and forget the stored dimension."""
        self._require_open()
        async with self._write_lock:
            await self._backend_clear()

    async def dimension(self) -> Optional[int]:
        """Vector dimension fixed by the first stored record, if any."""
        self._require_open()
        return await self._backend_get_dimension()

    async def size_bytes(self) -> int:
        self._require_open()
        return await self._backend_size_bytes()

    async def mark_pending(self, document_id: str, document_name: str) -> None:
        """Write-ahead marker: an update of this document has started."""
        self._require_open()
        await self._backend_mark_pending(document_id, document_name)

    async def clear_pending(self, document_id: str) -> None:
        self._require_open()
        await self._backend_clear_pending(document_id)

    async def pending(self) -> Dict[str, str]:
        """Documents whose update started but never finished, id -> name."""
        self._require_open()
        return await self._backend_pending()

    @abstractmethod
    async def _backend_open(self) -> None:
        pass

    @abstractmethod
    async def _backend_close(self) -> None:
        pass

    @abstractmethod
    async def _backend_put(self, record: EmbeddingRecord, set_dimension: bool) -> None:
        pass

    @abstractmethod
    async def _backend_get(self, record_id: str) -> Optional[EmbeddingRecord]:
        pass

    @abstractmethod
    async def _backend_delete(self, record_id: str) -> bool:
        pass

    @abstractmethod
    async def _backend_all(self) -> List[EmbeddingRecord]:
        pass

    @abstractmethod
    async def _backend_count(self) -> int:
        pass

    @abstractmethod
    async def _backend_clear(self) -> None:
        pass

    @abstractmethod
    async def _backend_get_dimension(self) -> Optional[int]:
        pass

    @abstractmethod
    async def _backend_size_bytes(self) -> int:
        pass

    @abstractmethod
    async def _backend_mark_pending(self, document_id: str, document_name: str) -> None:
        pass

    @abstractmethod
    async def _backend_clear_pending(self, document_id: str) -> None:
        pass

    @abstractmethod
    async def _backend_pending(self) -> Dict[str, str]:
        pass


class InMemoryEmbeddingStore(IEmbeddingStore):
    """Dict-backed store; contents are lost when the process exits."""

    def __init__(self):
        super().__init__()
        self._records: Dict[str, EmbeddingRecord] = {}
        self._pending: Dict[str, str] = {}
        self._dimension: Optional[int] = None

    async def _backend_open(self) -> None:
        pass

    async def _backend_close(self) -> None:
        self._records.clear()
        self._pending.clear()

    async def _backend_put(self, record: EmbeddingRecord, set_dimension: bool) -> None:
        if set_dimension:
            self._dimension = record.dimension
        self._records[record.id] = record

    async def _backend_get(self, record_id: str) -> Optional[EmbeddingRecord]:
        return self._records.get(record_id)

    async def _backend_delete(self, record_id: str) -> bool:
        return self._records.pop(record_id, None) is not None

    async def _backend_all(self) -> List[EmbeddingRecord]:
        return list(self._records.values())

    async def _backend_count(self) -> int:
        return len(self._records)

    async def _backend_clear(self) -> None:
        self._records.clear()
        self._dimension = None

    async def _backend_get_dimension(self) -> Optional[int]:
        return self._dimension

    async def _backend_size_bytes(self) -> int:
        return sum(
            record.vector.nbytes + sys.getsizeof(record.source_text)
            for record in self._records.values()
        )

    async def _backend_mark_pending(self, document_id: str, document_name: str) -> None:
        self._pending[document_id] = document_name

    async def _backend_clear_pending(self, document_id: str) -> None:
        self._pending.pop(document_id, None)

    async def _backend_pending(self) -> Dict[str, str]:
        return dict(self._pending)
