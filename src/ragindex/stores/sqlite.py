"""
Embedded vector store on SQLite.
"""

import json
import logging
import sqlite3
import struct
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np

from ..config import VectorStoreConfig
from ..exceptions import StoreError
from ..models import QueryResult, VectorRecord
from .base import PAYLOAD_FIELDS, BaseVectorStore, validate_filter

logger = logging.getLogger(__name__)


class SQLiteVectorStore(BaseVectorStore):
    """SQLite-based vector storage with brute-force cosine similarity search."""

    slug = "sqlite"

    def __init__(self, config: Optional[VectorStoreConfig] = None):
        """
        Initialize vector store.

        Args:
            config: Store configuration
        """
        super().__init__(config or VectorStoreConfig())
        self._lock = threading.Lock()
        self._conn: Optional[sqlite3.Connection] = None
        self._closed = False

        try:
            self._init_db()
        except (sqlite3.Error, OSError) as e:
            if self._conn is not None:
                self._conn.close()
                self._conn = None
            raise StoreError(f"Cannot open vector database {self.config.db_path}: {e}") from e

    def _init_db(self) -> None:
        """Initialize database schema."""
        db_path = Path(self.config.db_path)
        if str(db_path) != ":memory:":
            db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(
            str(db_path),
            check_same_thread=False,
            isolation_level=None,
        )
        self._conn.row_factory = sqlite3.Row

        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA synchronous=NORMAL")

        self._conn.executescript("""
            CREATE TABLE IF NOT EXISTS collections (
                name TEXT PRIMARY KEY,
                dimensions INTEGER NOT NULL,
                distance TEXT NOT NULL DEFAULT 'Cosine',
                created_at TEXT DEFAULT CURRENT_TIMESTAMP
            );

            CREATE TABLE IF NOT EXISTS vectors (
                id TEXT NOT NULL,
                collection TEXT NOT NULL,
                content_id INTEGER NOT NULL,
                content_type TEXT NOT NULL,
                chunk_index INTEGER NOT NULL,
                chunk_text TEXT NOT NULL,
                embedding BLOB NOT NULL,
                metadata TEXT,
                created_at TEXT DEFAULT CURRENT_TIMESTAMP,
                PRIMARY KEY (collection, id)
            );

            CREATE INDEX IF NOT EXISTS idx_vectors_content
                ON vectors(collection, content_type, content_id);
        """)

    def _check_closed(self) -> None:
        if self._closed:
            raise StoreError("Store is closed")

    def create_collection(self, name: str, dimensions: int, config: Optional[Dict[str, Any]] = None) -> bool:
        self._check_closed()
        distance = (config or {}).get("distance", "Cosine")
        with self._lock:
            self._conn.execute(
                "INSERT OR REPLACE INTO collections (name, dimensions, distance, created_at) VALUES (?, ?, ?, ?)",
                (name, int(dimensions), distance, datetime.now().isoformat()),
            )
        logger.info(f"Created collection {name} ({dimensions} dims)")
        return True

    def delete_collection(self, name: str) -> bool:
        self._check_closed()
        with self._lock:
            self._conn.execute("BEGIN")
            try:
                self._conn.execute("DELETE FROM vectors WHERE collection = ?", (name,))
                cursor = self._conn.execute("DELETE FROM collections WHERE name = ?", (name,))
                self._conn.execute("COMMIT")
            except Exception:
                self._conn.execute("ROLLBACK")
                raise
        return cursor.rowcount > 0

    def collection_exists(self, name: str) -> bool:
        self._check_closed()
        with self._lock:
            row = self._conn.execute("SELECT 1 FROM collections WHERE name = ?", (name,)).fetchone()
        return row is not None

    def _collection_dimensions(self, name: str) -> Optional[int]:
        with self._lock:
            row = self._conn.execute("SELECT dimensions FROM collections WHERE name = ?", (name,)).fetchone()
        return row["dimensions"] if row else None

    def insert_vectors(self, name: str, records: Sequence[VectorRecord]) -> List[str]:
        self._check_closed()
        if not records:
            return []

        dimensions = self._collection_dimensions(name)
        if dimensions is None:
            dimensions = len(records[0].vector)
            self.create_collection(name, dimensions)
        for record in records:
            if len(record.vector) != dimensions:
                raise StoreError(
                    f"Vector has {len(record.vector)} dimensions, collection {name} expects {dimensions}"
                )

        now = datetime.now().isoformat()
        with self._lock:
            self._conn.execute("BEGIN")
            try:
                for record in records:
                    payload = record.payload
                    self._conn.execute("""
                        INSERT OR REPLACE INTO vectors
                        (id, collection, content_id, content_type, chunk_index, chunk_text, embedding, metadata, created_at)
                        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """, (
                        record.id,
                        name,
                        payload["content_id"],
                        payload["content_type"],
                        payload["chunk_index"],
                        payload.get("chunk_text", ""),
                        self._pack_embedding(record.vector),
                        json.dumps(payload.get("metadata") or {}),
                        now,
                    ))
                self._conn.execute("COMMIT")
            except Exception as e:
                self._conn.execute("ROLLBACK")
                raise StoreError(f"Failed to insert vectors into {name}: {e}") from e

        return [record.id for record in records]

    def delete_vectors(self, name: str, ids: Sequence[str]) -> bool:
        self._check_closed()
        if not ids:
            return True
        placeholders = ",".join("?" * len(ids))
        with self._lock:
            self._conn.execute(
                f"DELETE FROM vectors WHERE collection = ? AND id IN ({placeholders})",
                [name] + list(ids),
            )
        return True

    def _where(self, name: str, filter: Optional[Dict[str, Any]]) -> Tuple[str, List[Any]]:
        """Build a WHERE clause for a collection plus equality filter."""
        clauses = ["collection = ?"]
        params: List[Any] = [name]
        for key, value in validate_filter(filter).items():
            if key in PAYLOAD_FIELDS:
                clauses.append(f"{key} = ?")
                params.append(value)
            else:
                clauses.append("json_extract(metadata, ?) = ?")
                params.extend([f"$.{key}", value])
        return " AND ".join(clauses), params

    def delete_by_filter(self, name: str, filter: Dict[str, Any]) -> int:
        self._check_closed()
        where_sql, params = self._where(name, filter)
        with self._lock:
            cursor = self._conn.execute(f"DELETE FROM vectors WHERE {where_sql}", params)
        logger.debug(f"Deleted {cursor.rowcount} vectors from {name} matching {filter}")
        return cursor.rowcount

    def query(
        self,
        name: str,
        vector: List[float],
        limit: int = 5,
        filter: Optional[Dict[str, Any]] = None,
    ) -> List[QueryResult]:
        self._check_closed()

        query_vec = np.array(vector, dtype=np.float32)
        query_norm = np.linalg.norm(query_vec)
        if query_norm > 0:
            query_vec = query_vec / query_norm

        where_sql, params = self._where(name, filter)
        with self._lock:
            rows = self._conn.execute(f"SELECT * FROM vectors WHERE {where_sql}", params).fetchall()

        results = []
        for row in rows:
            doc_vec = np.array(self._unpack_embedding(row["embedding"]), dtype=np.float32)
            if doc_vec.shape != query_vec.shape:
                raise StoreError(f"Query vector has {len(query_vec)} dimensions, stored vectors have {len(doc_vec)}")
            doc_norm = np.linalg.norm(doc_vec)
            if doc_norm > 0:
                doc_vec = doc_vec / doc_norm

            # Cosine similarity
            score = float(np.dot(query_vec, doc_vec))
            results.append(QueryResult(id=row["id"], score=score, payload=self._row_payload(row)))

        results.sort(key=lambda r: r.score, reverse=True)
        return results[:limit]

    def get_max_chunk_index(self, name: str, filter: Dict[str, Any]) -> Optional[int]:
        self._check_closed()
        where_sql, params = self._where(name, filter)
        with self._lock:
            row = self._conn.execute(f"SELECT MAX(chunk_index) AS max_index FROM vectors WHERE {where_sql}", params).fetchone()
        return row["max_index"] if row and row["max_index"] is not None else None

    def count(self, name: str, filter: Optional[Dict[str, Any]] = None) -> int:
        """Number of vectors matching the filter."""
        self._check_closed()
        where_sql, params = self._where(name, filter)
        with self._lock:
            return self._conn.execute(f"SELECT COUNT(*) FROM vectors WHERE {where_sql}", params).fetchone()[0]

    def test_connection(self) -> bool:
        try:
            self._check_closed()
            with self._lock:
                self._conn.execute("SELECT 1").fetchone()
            return True
        except (StoreError, sqlite3.Error) as e:
            logger.warning(f"SQLite store connection test failed: {e}")
            return False

    def _row_payload(self, row: sqlite3.Row) -> Dict[str, Any]:
        return {
            "content_id": row["content_id"],
            "content_type": row["content_type"],
            "chunk_index": row["chunk_index"],
            "chunk_text": row["chunk_text"],
            "metadata": json.loads(row["metadata"]) if row["metadata"] else {},
        }

    def _pack_embedding(self, embedding: List[float]) -> bytes:
        """Pack embedding as binary blob."""
        return struct.pack(f"{len(embedding)}f", *embedding)

    def _unpack_embedding(self, blob: bytes) -> List[float]:
        """Unpack embedding from binary blob."""
        count = len(blob) // 4
        return list(struct.unpack(f"{count}f", blob))

    def close(self) -> None:
        """Close the store."""
        if self._closed:
            return

        with self._lock:
            self._closed = True
            if self._conn:
                self._conn.close()
                self._conn = None
