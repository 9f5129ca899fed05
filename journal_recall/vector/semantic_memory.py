"""
Semantic Memory Service
High-level facade over the embedding subsystem. Built once at application
start and handed to every consumer (document layer, AI chat).
"""

from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from .embeddings import IEmbeddingProvider, provider_info
from .index import IEmbeddingStore
from .types import DocumentSource, EmbeddingRecord, SearchHit, StoreStats
from ..core.config import Settings, get_embedding_provider, get_embedding_store
from ..core.context import build_context
from ..core.exceptions import RecallError
from ..core.lifecycle import DocumentLoader, LifecycleManager, ProgressCallback
from ..core.search_service import SimilaritySearchEngine
from ..core.stats import StatsReporter
from ..util.logging import logger


class SemanticMemoryService:
    """
    Entry point for storing, syncing and searching journal embeddings.
    Wires lifecycle, search and stats around one store and one embedder.
    """

    def __init__(self, store: IEmbeddingStore, embedder: IEmbeddingProvider, settings: Optional[Settings] = None):
        self.settings = settings or Settings()
        self.store = store
        self.embedder = embedder
        self.lifecycle = LifecycleManager(store, embedder, chunk_size=self.settings.chunk_size)
        self.search_engine = SimilaritySearchEngine(store, embedder)
        self.stats_reporter = StatsReporter(store)

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "SemanticMemoryService":
        """Build the configured store and embedder."""
        settings = settings or Settings.from_env()
        return cls(get_embedding_store(settings), get_embedding_provider(settings), settings)

    async def initialize(self) -> "SemanticMemoryService":
        """Open the store. Safe to call more than once."""
        await self.store.open()
        return self

    async def dispose(self) -> None:
        await self.store.close()

    async def __aenter__(self) -> "SemanticMemoryService":
        return await self.initialize()

    async def __aexit__(self, *args) -> None:
        await self.dispose()

    async def store_document_embeddings(self, document_id: str, document_name: str, content: str) -> List[str]:
        return await self.lifecycle.store_document_embeddings(document_id, document_name, content)

    async def update_document_embeddings(self, document_id: str, document_name: str, content: str) -> List[str]:
        return await self.lifecycle.update_document_embeddings(document_id, document_name, content)

    async def delete_document_embeddings(self, document_id: str) -> int:
        return await self.lifecycle.delete_document_embeddings(document_id)

    async def get_document_embeddings(self, document_id: str) -> List[EmbeddingRecord]:
        return await self.lifecycle.get_document_embeddings(document_id)

    async def index_documents(self, documents: Iterable[DocumentSource],
                              progress_callback: Optional[ProgressCallback] = None) -> Dict[str, List[str]]:
        return await self.lifecycle.index_documents(documents, progress_callback=progress_callback)

    async def reindex_all(self, documents: Iterable[DocumentSource],
                          progress_callback: Optional[ProgressCallback] = None) -> Dict[str, List[str]]:
        return await self.lifecycle.reindex_all(documents, progress_callback=progress_callback)

    async def recover_interrupted_updates(self, loader: DocumentLoader) -> List[str]:
        return await self.lifecycle.recover_interrupted_updates(loader)

    async def search(self, query: str, limit: Optional[int] = None, threshold: Optional[float] = None,
                     document_id: Optional[str] = None, unique_documents: bool = False) -> List[SearchHit]:
        """Similarity search; limit and threshold default to the configured values."""
        return await self.search_engine.search(
            query,
            limit=self.settings.search_limit if limit is None else limit,
            threshold=self.settings.search_threshold if threshold is None else threshold,
            document_id=document_id,
            unique_documents=unique_documents,
        )

    async def stats(self) -> StoreStats:
        return await self.stats_reporter.stats()

    async def retrieve_context(self, query: str, limit: Optional[int] = None,
                               threshold: Optional[float] = None) -> str:
        """
        Search and format the best chunk of each matching document for a prompt.

        Never raises for subsystem failures: the chat feature carries on
        without retrieved context, so errors are logged and "" is returned.
        """
        try:
            hits = await self.search(query, limit=limit, threshold=threshold, unique_documents=True)
        except (RecallError, ValueError) as e:
            logger.log_operation("context.retrieve", "failed", {"error": str(e)})
            return ""
        return build_context(hits, max_length=self.settings.context_max_length)

    async def health(self) -> Dict[str, Any]:
        """
        Return embedding subsystem health information.

        Returns:
            Health status dict with store state, size, dimension and provider
        """
        info: Dict[str, Any] = {
            'store_state': self.store.state.value,
            'is_indexing': self.lifecycle.is_indexing,
            'recent_failures': len(self.lifecycle.recent_failures),
            'search_threshold': self.settings.search_threshold,
            'last_checked': datetime.now().isoformat(),
            **provider_info(self.embedder),
        }

        try:
            stats = await self.stats()
        except RecallError as e:
            info.update({'status': 'unhealthy', 'error': str(e)})
            return info

        info.update({'status': 'healthy', **stats.to_dict()})
        return info
