"""
Durable SQLite-backed embedding store.

Vectors are kept as little-endian float64 blobs, metadata as JSON. The
expected vector dimension is stored once in store_meta and checked on
every write.
"""

import json
import os
import sqlite3
from datetime import datetime
from typing import Dict, List, Optional

import aiosqlite
import numpy as np

from .index import IEmbeddingStore
from .types import EmbeddingMetadata, EmbeddingRecord, as_vector
from ..core.exceptions import InitializationError, StoreIOError
from ..util.logging import logger

SCHEMA_VERSION = "1"

_VECTOR_DTYPE = np.dtype("<f8")

_SCHEMA = [
    '''
    CREATE TABLE IF NOT EXISTS embeddings (
        id TEXT PRIMARY KEY,
        source_text TEXT NOT NULL,
        vector BLOB NOT NULL,
        dimension INTEGER NOT NULL,
        created_at TEXT NOT NULL,
        metadata TEXT NOT NULL
    )
    ''',
    '''
    CREATE TABLE IF NOT EXISTS store_meta (
        key TEXT PRIMARY KEY,
        value TEXT NOT NULL
    )
    ''',
    '''
    CREATE TABLE IF NOT EXISTS pending_updates (
        document_id TEXT PRIMARY KEY,
        document_name TEXT NOT NULL,
        started_at TEXT DEFAULT CURRENT_TIMESTAMP
    )
    ''',
]


def encode_vector(vector: np.ndarray) -> bytes:
    return np.asarray(vector, dtype=_VECTOR_DTYPE).tobytes()


def decode_vector(blob: bytes) -> np.ndarray:
    return as_vector(np.frombuffer(blob, dtype=_VECTOR_DTYPE))


class SQLiteEmbeddingStore(IEmbeddingStore):
    """Embedding store persisted in a single SQLite file.

    Only one instance should point at a given file per process.
    """

    def __init__(self, db_path: str, timeout: float = 30.0):
        super().__init__()
        self.db_path = db_path
        self.timeout = timeout
        self._conn: Optional[aiosqlite.Connection] = None

    @property
    def connection(self) -> aiosqlite.Connection:
        self._require_open()
        return self._conn

    async def _backend_open(self) -> None:
        conn = None
        try:
            conn = await aiosqlite.connect(self.db_path, timeout=self.timeout)
            # Fails on files that are not SQLite databases
            await conn.execute("PRAGMA schema_version")
            if self.db_path != ":memory:":
                await conn.execute("PRAGMA journal_mode=WAL")
            for statement in _SCHEMA:
                await conn.execute(statement)
            await conn.execute(
                "INSERT OR IGNORE INTO store_meta (key, value) VALUES ('schema_version', ?)",
                (SCHEMA_VERSION,),
            )
            await conn.commit()
        except (sqlite3.Error, OSError) as e:
            if conn is not None:
                await conn.close()
            raise InitializationError(f"Cannot open embedding store at {self.db_path}: {e}") from e
        self._conn = conn

    async def _backend_close(self) -> None:
        try:
            await self._conn.close()
        except sqlite3.Error as e:
            raise StoreIOError(f"Failed to close embedding store: {e}") from e
        finally:
            self._conn = None

    async def _backend_put(self, record: EmbeddingRecord, set_dimension: bool) -> None:
        try:
            if set_dimension:
                await self._conn.execute(
                    "INSERT OR REPLACE INTO store_meta (key, value) VALUES ('dimension', ?)",
                    (str(record.dimension),),
                )
            await self._conn.execute(
                '''
                INSERT INTO embeddings (id, source_text, vector, dimension, created_at, metadata)
                VALUES (?, ?, ?, ?, ?, ?)
                ''',
                (
                    record.id,
                    record.source_text,
                    encode_vector(record.vector),
                    record.dimension,
                    record.created_at.isoformat(),
                    json.dumps(record.metadata.to_dict()),
                ),
            )
            await self._conn.commit()
        except sqlite3.Error as e:
            await self._rollback()
            raise StoreIOError(f"Failed to store record {record.id}: {e}") from e

    async def _backend_get(self, record_id: str) -> Optional[EmbeddingRecord]:
        try:
            async with self._conn.execute(
                "SELECT id, source_text, vector, created_at, metadata FROM embeddings WHERE id = ?",
                (record_id,),
            ) as cursor:
                row = await cursor.fetchone()
        except sqlite3.Error as e:
            raise StoreIOError(f"Failed to read record {record_id}: {e}") from e
        if row is None:
            return None
        try:
            return self._row_to_record(row)
        except (ValueError, TypeError) as e:
            raise StoreIOError(f"Record {record_id} is corrupt: {e}") from e

    async def _backend_delete(self, record_id: str) -> bool:
        try:
            cursor = await self._conn.execute("DELETE FROM embeddings WHERE id = ?", (record_id,))
            await self._conn.commit()
        except sqlite3.Error as e:
            await self._rollback()
            raise StoreIOError(f"Failed to delete record {record_id}: {e}") from e
        return cursor.rowcount > 0

    async def _backend_all(self) -> List[EmbeddingRecord]:
        try:
            async with self._conn.execute(
                "SELECT id, source_text, vector, created_at, metadata FROM embeddings"
            ) as cursor:
                rows = await cursor.fetchall()
        except sqlite3.Error as e:
            raise StoreIOError(f"Failed to list records: {e}") from e

        records = []
        corrupt = []
        for row in rows:
            try:
                records.append(self._row_to_record(row))
            except (ValueError, TypeError) as e:
                corrupt.append(f"{row[0]}: {e}")
        if corrupt:
            logger.log_skipped("store.all", corrupt)
        return records

    async def _backend_count(self) -> int:
        return int(await self._scalar("SELECT COUNT(*) FROM embeddings"))

    async def _backend_clear(self) -> None:
        try:
            await self._conn.execute("DELETE FROM embeddings")
            await self._conn.execute("DELETE FROM store_meta WHERE key = 'dimension'")
            await self._conn.commit()
        except sqlite3.Error as e:
            await self._rollback()
            raise StoreIOError(f"Failed to clear embedding store: {e}") from e

    async def _backend_get_dimension(self) -> Optional[int]:
        value = await self._scalar("SELECT value FROM store_meta WHERE key = 'dimension'")
        return int(value) if value is not None else None

    async def _backend_size_bytes(self) -> int:
        if self.db_path == ":memory:":
            page_count = await self._scalar("PRAGMA page_count")
            page_size = await self._scalar("PRAGMA page_size")
            return int(page_count) * int(page_size)

        size = 0
        for suffix in ("", "-wal"):
            path = self.db_path + suffix
            if os.path.exists(path):
                size += os.path.getsize(path)
        return size

    async def _backend_mark_pending(self, document_id: str, document_name: str) -> None:
        await self._write(
            "INSERT OR REPLACE INTO pending_updates (document_id, document_name) VALUES (?, ?)",
            (document_id, document_name),
        )

    async def _backend_clear_pending(self, document_id: str) -> None:
        await self._write("DELETE FROM pending_updates WHERE document_id = ?", (document_id,))

    async def _backend_pending(self) -> Dict[str, str]:
        try:
            async with self._conn.execute(
                "SELECT document_id, document_name FROM pending_updates ORDER BY started_at"
            ) as cursor:
                rows = await cursor.fetchall()
        except sqlite3.Error as e:
            raise StoreIOError(f"Failed to read pending updates: {e}") from e
        return {document_id: document_name for document_id, document_name in rows}

    async def _scalar(self, query: str, params: tuple = ()):
        try:
            async with self._conn.execute(query, params) as cursor:
                row = await cursor.fetchone()
        except sqlite3.Error as e:
            raise StoreIOError(f"Query failed: {e}") from e
        return row[0] if row else None

    async def _write(self, query: str, params: tuple = ()) -> None:
        try:
            await self._conn.execute(query, params)
            await self._conn.commit()
        except sqlite3.Error as e:
            await self._rollback()
            raise StoreIOError(f"Write failed: {e}") from e

    async def _rollback(self) -> None:
        try:
            await self._conn.rollback()
        except sqlite3.Error:
            # The original error is what gets reported
            pass

    @staticmethod
    def _row_to_record(row) -> EmbeddingRecord:
        record_id, source_text, blob, created_at, metadata_json = row
        return EmbeddingRecord(
            id=record_id,
            source_text=source_text,
            vector=decode_vector(blob),
            created_at=datetime.fromisoformat(created_at),
            metadata=EmbeddingMetadata.from_dict(json.loads(metadata_json)),
        )
