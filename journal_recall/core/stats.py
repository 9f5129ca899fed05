"""
Stats Reporter - read-only aggregation over the embedding store.
"""

from ..vector.index import IEmbeddingStore
from ..vector.types import StoreStats


class StatsReporter:
    """Computes store statistics on every call; nothing is cached."""

    def __init__(self, store: IEmbeddingStore):
        self.store = store

    async def stats(self) -> StoreStats:
        records = await self.store.all()
        return StoreStats(
            total_records=await self.store.count(),
            document_count=len({r.metadata.document_id for r in records}),
            store_size_bytes=await self.store.size_bytes(),
            dimension=await self.store.dimension(),
            pending_updates=len(await self.store.pending()),
        )
