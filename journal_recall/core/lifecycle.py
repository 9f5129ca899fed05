"""
Lifecycle Manager - keeps stored embeddings in step with document edits.

Store, update and delete for one document are serialised by a per-document
asyncio lock; different documents proceed concurrently. Update is
delete-then-recreate, bracketed by a write-ahead marker so that an update
interrupted by a crash can be found and repaired on the next start.
"""

import asyncio
from collections import deque
from contextlib import asynccontextmanager
from typing import Awaitable, Callable, Deque, Dict, Iterable, List, Optional

from .exceptions import EmbeddingGenerationError, RecallError
from .schemas import DocumentEmbeddingRequest, DocumentRef
from ..util.logging import logger
from ..vector.chunker import DEFAULT_CHUNK_SIZE, Chunker
from ..vector.embeddings import IEmbeddingProvider
from ..vector.index import IEmbeddingStore
from ..vector.types import (
    ChunkFailure,
    DocumentSource,
    EmbeddingMetadata,
    EmbeddingRecord,
)

ProgressCallback = Callable[[int, int], None]
DocumentLoader = Callable[[str], Awaitable[Optional[DocumentSource]]]

MAX_RECORDED_FAILURES = 100


class _DocumentLock:
    """A per-document lock and the number of callers holding or waiting on it."""

    def __init__(self):
        self.lock = asyncio.Lock()
        self.users = 0


class LifecycleManager:
    """Orchestrates chunker, embedder and store for document events."""

    def __init__(self, store: IEmbeddingStore, embedder: IEmbeddingProvider,
                 chunk_size: int = DEFAULT_CHUNK_SIZE):
        self.store = store
        self.embedder = embedder
        self.chunker = Chunker(chunk_size)
        self.recent_failures: Deque[ChunkFailure] = deque(maxlen=MAX_RECORDED_FAILURES)
        self._locks: Dict[str, _DocumentLock] = {}
        self._is_indexing = False

    @property
    def is_indexing(self) -> bool:
        return self._is_indexing

    @asynccontextmanager
    async def _lock_for(self, document_id: str):
        """Hold the document's lock; the entry is dropped once nobody holds or awaits it."""
        entry = self._locks.get(document_id)
        if entry is None:
            entry = self._locks[document_id] = _DocumentLock()
        entry.users += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.users -= 1
            if entry.users == 0:
                del self._locks[document_id]

    async def store_document_embeddings(self, document_id: str, document_name: str, content: str) -> List[str]:
        """
        Chunk, embed and store a document.

        Chunks whose embedding fails are skipped and recorded in
        recent_failures, so the returned ids can be fewer than the chunks.

        Returns:
            Ids of the records created

        Raises:
            DimensionMismatchError: If a vector does not match the store's dimension
            NotInitializedError: If the store is not open
        """
        request = DocumentEmbeddingRequest(document_id=document_id, document_name=document_name, content=content)
        async with self._lock_for(request.document_id):
            return await self._store(request.document_id, request.document_name, request.content)

    async def delete_document_embeddings(self, document_id: str) -> int:
        """
        Delete every record belonging to a document.

        Scans the whole store; no secondary index is kept at journal scale.

        Returns:
            Number of records removed
        """
        request = DocumentRef(document_id=document_id)
        async with self._lock_for(request.document_id):
            return await self._delete(request.document_id)

    async def update_document_embeddings(self, document_id: str, document_name: str, content: str) -> List[str]:
        """Replace a document's records with embeddings of its new content."""
        request = DocumentEmbeddingRequest(document_id=document_id, document_name=document_name, content=content)
        async with self._lock_for(request.document_id):
            return await self._update(request.document_id, request.document_name, request.content)

    async def get_document_embeddings(self, document_id: str) -> List[EmbeddingRecord]:
        """Records of one document, ordered by chunk index."""
        records = await self.store.all()
        matching = [r for r in records if r.metadata.document_id == document_id]
        return sorted(matching, key=lambda r: (r.metadata.chunk_index, r.id))

    async def index_documents(self, documents: Iterable[DocumentSource],
                              progress_callback: Optional[ProgressCallback] = None,
                              skip_existing: bool = True) -> Dict[str, List[str]]:
        """
        Bulk-index documents, one at a time.

        Documents that already have records are skipped when skip_existing
        is set, empty documents are skipped, and a failure on one document
        does not stop the batch. A call made while another bulk run is in
        progress returns immediately with no work done.

        Args:
            documents: Documents to index
            progress_callback: Called with (current, total) after each document
            skip_existing: Leave already-indexed documents untouched

        Returns:
            Mapping of document id to the record ids created
        """
        if self._is_indexing:
            logger.log_operation("lifecycle.index_documents", "skipped", {"reason": "already_indexing"})
            return {}

        self._is_indexing = True
        try:
            return await self._index(list(documents), progress_callback, skip_existing)
        finally:
            self._is_indexing = False

    async def reindex_all(self, documents: Iterable[DocumentSource],
                          progress_callback: Optional[ProgressCallback] = None) -> Dict[str, List[str]]:
        """
        Drop every stored record and pending marker, then index all documents from scratch.

        Refused like index_documents while another bulk run is in progress,
        so records that run has written are never cleared under it.
        """
        if self._is_indexing:
            logger.log_operation("lifecycle.reindex_all", "skipped", {"reason": "already_indexing"})
            return {}

        self._is_indexing = True
        try:
            await self.store.clear()
            for document_id in await self.store.pending():
                await self.store.clear_pending(document_id)
            logger.log_operation("lifecycle.clear", "success")
            return await self._index(list(documents), progress_callback, skip_existing=False)
        finally:
            self._is_indexing = False

    async def _index(self, documents: List[DocumentSource], progress_callback: Optional[ProgressCallback],
                     skip_existing: bool) -> Dict[str, List[str]]:
        results: Dict[str, List[str]] = {}
        indexed = set()
        if skip_existing:
            indexed = {r.metadata.document_id for r in await self.store.all()}

        total = len(documents)
        for position, document in enumerate(documents, start=1):
            if document.document_id in indexed:
                logger.debug(f"Document already indexed: {document.document_id}")
            elif not (document.content or "").strip():
                logger.debug(f"Skipping empty document: {document.document_id}")
            else:
                try:
                    results[document.document_id] = await self.store_document_embeddings(
                        document.document_id, document.document_name, document.content
                    )
                except (RecallError, ValueError) as e:
                    logger.log_lifecycle_event("index", document.document_id, {"error": str(e)}, status="failed")

            if progress_callback:
                progress_callback(position, total)

        logger.log_operation("lifecycle.index_documents", "success", {
            "documents": total,
            "indexed": len(results),
            "records": sum(len(ids) for ids in results.values()),
        })
        return results

    async def recover_interrupted_updates(self, loader: DocumentLoader) -> List[str]:
        """
        Repair documents whose update was interrupted.

        For each pending marker the loader is asked for the document's
        current content; the update is re-run with it. When the loader
        returns None the document no longer exists and its leftover records
        are deleted.

        Returns:
            Ids of the documents repaired
        """
        pending = await self.store.pending()
        repaired = []
        for document_id, document_name in pending.items():
            source = await loader(document_id)
            async with self._lock_for(document_id):
                if source is None:
                    await self._delete(document_id)
                    await self.store.clear_pending(document_id)
                    logger.log_lifecycle_event("recover", document_id, {"action": "deleted"})
                else:
                    await self._update(document_id, source.document_name or document_name, source.content)
                    logger.log_lifecycle_event("recover", document_id, {"action": "reembedded"})
            repaired.append(document_id)
        return repaired

    async def _store(self, document_id: str, document_name: str, content: str) -> List[str]:
        chunks = list(self.chunker.chunk(content))
        if not chunks:
            logger.log_lifecycle_event("store", document_id, {"chunks": 0}, status="skipped")
            return []

        chunk_count = len(chunks)
        created = []
        for chunk_index, chunk in enumerate(chunks):
            try:
                vector = await self.embedder.embed(chunk)
            except EmbeddingGenerationError as e:
                self.recent_failures.append(ChunkFailure(document_id, chunk_index, str(e)))
                logger.log_embedding_operation("generate", document_id, chunk_index, {"error": str(e)}, status="failed")
                continue

            record = EmbeddingRecord.create(
                source_text=chunk,
                vector=vector,
                metadata=EmbeddingMetadata(
                    document_id=document_id,
                    document_name=document_name,
                    chunk_index=chunk_index,
                    chunk_count=chunk_count,
                ),
            )
            await self.store.put(record)
            created.append(record.id)

        logger.log_lifecycle_event("store", document_id, {
            "chunks": chunk_count,
            "stored": len(created),
            "failed": chunk_count - len(created),
        })
        return created

    async def _delete(self, document_id: str) -> int:
        removed = 0
        for record in await self.store.all():
            if record.metadata.document_id == document_id:
                if await self.store.delete(record.id):
                    removed += 1

        logger.log_lifecycle_event("delete", document_id, {"removed": removed})
        return removed

    async def _update(self, document_id: str, document_name: str, content: str) -> List[str]:
        await self.store.mark_pending(document_id, document_name)
        await self._delete(document_id)
        created = await self._store(document_id, document_name, content)
        await self.store.clear_pending(document_id)
        logger.log_lifecycle_event("update", document_id, {"stored": len(created)})
        return created
