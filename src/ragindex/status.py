"""
Per content item indexing status, stored in SQLite.
"""

import json
import logging
import sqlite3
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from .exceptions import InvalidStatusTransition, StatusError
from .models import ContentRef, IndexStatus, IndexStatusRecord

logger = logging.getLogger(__name__)


# Current status (None = no record) -> statuses it may move to.
# INDEXED and FAILED are only reachable from PROCESSING.
ALLOWED_TRANSITIONS = {
    None: {IndexStatus.QUEUED, IndexStatus.PROCESSING},
    IndexStatus.QUEUED: {IndexStatus.QUEUED, IndexStatus.PROCESSING},
    IndexStatus.PROCESSING: {IndexStatus.PROCESSING, IndexStatus.INDEXED, IndexStatus.FAILED},
    IndexStatus.INDEXED: {IndexStatus.QUEUED, IndexStatus.PROCESSING},
    IndexStatus.FAILED: {IndexStatus.QUEUED, IndexStatus.PROCESSING},
}

UPDATABLE_FIELDS = (
    "content_hash",
    "chunking_strategy",
    "chunking_settings",
    "embedding_model",
    "embedding_dimensions",
    "chunk_count",
    "last_indexed_at",
    "error_message",
    "retry_count",
)


def can_transition(current: Optional[IndexStatus], requested: IndexStatus) -> bool:
    return requested in ALLOWED_TRANSITIONS[current]


class StatusStore:
    """
    SQLite-backed store of IndexStatusRecords, one per ContentRef.

    Every write is checked against the status state machine.
    """

    def __init__(self, db_path: Path):
        """
        Initialize the status store.

        Args:
            db_path: Path to the SQLite database file
        """
        self.db_path = Path(db_path)
        self._lock = threading.Lock()
        self._conn: Optional[sqlite3.Connection] = None
        self._closed = False

        self._init_db()

    def _init_db(self) -> None:
        """Initialize database schema."""
        if str(self.db_path) != ":memory:":
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(
            str(self.db_path),
            check_same_thread=False,
            isolation_level=None,
        )
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA synchronous=NORMAL")
        self._conn.executescript("""
            CREATE TABLE IF NOT EXISTS index_status (
                content_id INTEGER NOT NULL,
                content_type TEXT NOT NULL,
                content_hash TEXT NOT NULL DEFAULT '',
                chunking_strategy TEXT NOT NULL DEFAULT '',
                chunking_settings TEXT,
                embedding_model TEXT NOT NULL DEFAULT '',
                embedding_dimensions INTEGER NOT NULL DEFAULT 0,
                status TEXT NOT NULL,
                chunk_count INTEGER NOT NULL DEFAULT 0,
                last_indexed_at TEXT,
                error_message TEXT,
                retry_count INTEGER NOT NULL DEFAULT 0,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                PRIMARY KEY (content_id, content_type)
            );

            CREATE INDEX IF NOT EXISTS idx_index_status_status ON index_status(status);
        """)

    def _check_closed(self) -> None:
        if self._closed:
            raise StatusError("Status store is closed")

    def _select(self, ref: ContentRef) -> Optional[sqlite3.Row]:
        return self._conn.execute(
            "SELECT * FROM index_status WHERE content_id = ? AND content_type = ?",
            (ref.content_id, ref.content_type),
        ).fetchone()

    def get_status(self, ref: ContentRef) -> Optional[IndexStatusRecord]:
        """
        Get the status record for a content item.

        Args:
            ref: Content item

        Returns:
            Record, or None if the item has never been queued or indexed
        """
        self._check_closed()
        with self._lock:
            row = self._select(ref)
        return IndexStatusRecord.from_dict(dict(row)) if row else None

    def set_status(self, ref: ContentRef, status: IndexStatus, **fields: Any) -> IndexStatusRecord:
        """
        Create or update the status record for a content item.

        Fields not given keep their stored value (or the default on creation).

        Args:
            ref: Content item
            status: New status
            **fields: Any of UPDATABLE_FIELDS

        Returns:
            The stored record

        Raises:
            InvalidStatusTransition: If the state machine forbids the change
            ValueError: If an unknown field is given
        """
        self._check_closed()
        if isinstance(status, str):
            status = IndexStatus(status)
        unknown = set(fields) - set(UPDATABLE_FIELDS)
        if unknown:
            raise ValueError(f"Unknown status fields: {sorted(unknown)}")

        values = dict(fields)
        if "chunking_settings" in values:
            values["chunking_settings"] = json.dumps(values["chunking_settings"] or {})
        if isinstance(values.get("last_indexed_at"), datetime):
            values["last_indexed_at"] = values["last_indexed_at"].isoformat()
        now = datetime.now().isoformat()

        with self._lock:
            self._conn.execute("BEGIN IMMEDIATE")
            try:
                row = self._select(ref)
                current = IndexStatus(row["status"]) if row else None
                if not can_transition(current, status):
                    raise InvalidStatusTransition(
                        f"{ref}: cannot move from {current.value if current else 'new'} to {status.value}",
                        current=current.value if current else None,
                        requested=status.value,
                    )

                if row is None:
                    record = {
                        "content_hash": "",
                        "chunking_strategy": "",
                        "chunking_settings": "{}",
                        "embedding_model": "",
                        "embedding_dimensions": 0,
                        "chunk_count": 0,
                        "last_indexed_at": None,
                        "error_message": None,
                        "retry_count": 0,
                    }
                    record.update(values)
                    self._conn.execute("""
                        INSERT INTO index_status
                        (content_id, content_type, content_hash, chunking_strategy, chunking_settings,
                         embedding_model, embedding_dimensions, status, chunk_count, last_indexed_at,
                         error_message, retry_count, created_at, updated_at)
                        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """, (
                        ref.content_id, ref.content_type, record["content_hash"], record["chunking_strategy"],
                        record["chunking_settings"], record["embedding_model"], record["embedding_dimensions"],
                        status.value, record["chunk_count"], record["last_indexed_at"],
                        record["error_message"], record["retry_count"], now, now,
                    ))
                else:
                    assignments = ["status = ?", "updated_at = ?"]
                    params: List[Any] = [status.value, now]
                    for name, value in values.items():
                        assignments.append(f"{name} = ?")
                        params.append(value)
                    params.extend([ref.content_id, ref.content_type])
                    self._conn.execute(
                        f"UPDATE index_status SET {', '.join(assignments)} WHERE content_id = ? AND content_type = ?",
                        params,
                    )

                stored = self._select(ref)
                self._conn.execute("COMMIT")
            except Exception:
                self._conn.execute("ROLLBACK")
                raise

        logger.debug(f"{ref}: status {current.value if current else 'new'} -> {status.value}")
        return IndexStatusRecord.from_dict(dict(stored))

    def delete_status(self, ref: ContentRef) -> bool:
        """
        Delete the status record for a content item.

        Returns:
            True if a record was deleted
        """
        self._check_closed()
        with self._lock:
            cursor = self._conn.execute(
                "DELETE FROM index_status WHERE content_id = ? AND content_type = ?",
                (ref.content_id, ref.content_type),
            )
        return cursor.rowcount > 0

    def get_failed(self, limit: Optional[int] = None) -> List[IndexStatusRecord]:
        """Failed records, most recently updated first."""
        return self.list_by_status(IndexStatus.FAILED, limit)

    def list_by_status(self, status: IndexStatus, limit: Optional[int] = None) -> List[IndexStatusRecord]:
        self._check_closed()
        sql = "SELECT * FROM index_status WHERE status = ? ORDER BY updated_at DESC, rowid DESC"
        params: List[Any] = [status.value]
        if limit is not None:
            sql += " LIMIT ?"
            params.append(int(limit))
        with self._lock:
            rows = self._conn.execute(sql, params).fetchall()
        return [IndexStatusRecord.from_dict(dict(row)) for row in rows]

    def count_by_status(self, status: IndexStatus) -> int:
        self._check_closed()
        with self._lock:
            return self._conn.execute(
                "SELECT COUNT(*) FROM index_status WHERE status = ?", (status.value,)
            ).fetchone()[0]

    def get_statistics(self) -> Dict[str, int]:
        """
        Count records per status.

        Returns:
            Dict with ``total`` and one key per status
        """
        self._check_closed()
        stats = {"total": 0}
        stats.update({s.value: 0 for s in IndexStatus})
        with self._lock:
            rows = self._conn.execute(
                "SELECT status, COUNT(*) AS n FROM index_status GROUP BY status"
            ).fetchall()
        for row in rows:
            stats[row["status"]] = row["n"]
            stats["total"] += row["n"]
        return stats

    def close(self) -> None:
        """Close the store."""
        if self._closed:
            return

        with self._lock:
            self._closed = True
            if self._conn:
                self._conn.close()
                self._conn = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
