"""
Durable job scheduler backed by SQLite.

Jobs are a registered name plus JSON positional args. The scheduler can
enqueue a job for immediate execution, schedule it for a later time and
tell whether an identical job is still pending. ``run_pending`` claims
due jobs and invokes their handlers.
"""

import json
import logging
import sqlite3
import threading
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from .exceptions import SchedulerError

logger = logging.getLogger(__name__)

JobHandler = Callable[..., Any]


def dedup_key(job_name: str, args: Sequence[Any], group: Optional[str] = None) -> str:
    """Canonical identity of a job: same name, args and group."""
    return json.dumps([job_name, list(args), group or ""], sort_keys=True, separators=(",", ":"))


class BaseScheduler(ABC):
    """What the indexing pipeline needs from a job scheduler."""

    @abstractmethod
    def register(self, job_name: str, handler: JobHandler) -> None:
        """Register the callable invoked with a job's positional args."""
        pass

    @abstractmethod
    def enqueue_async(self, job_name: str, args: Sequence[Any], group: Optional[str] = None,
                      lock_key: Optional[str] = None) -> int:
        """
        Enqueue a job to run as soon as possible.

        Args:
            job_name: Registered job name
            args: JSON-serializable positional arguments
            group: Optional group label
            lock_key: Jobs sharing a lock key never run concurrently

        Returns:
            Job ID
        """
        pass

    @abstractmethod
    def has_scheduled(self, job_name: str, args: Sequence[Any], group: Optional[str] = None) -> bool:
        """Check whether an identical job is pending."""
        pass

    def enqueue_unique(self, job_name: str, args: Sequence[Any], group: Optional[str] = None,
                       lock_key: Optional[str] = None) -> Optional[int]:
        """
        Enqueue a job unless an identical one is pending.

        Schedulers that can check and insert atomically override this.

        Returns:
            Job ID, or None if an identical job was pending
        """
        if self.has_scheduled(job_name, args, group):
            return None
        return self.enqueue_async(job_name, args, group, lock_key=lock_key)

    @abstractmethod
    def schedule_delayed(self, run_at: float, job_name: str, args: Sequence[Any],
                         group: Optional[str] = None, lock_key: Optional[str] = None) -> int:
        """
        Schedule a job to run at a later time.

        Args:
            run_at: Unix timestamp
            job_name: Registered job name
            args: JSON-serializable positional arguments
            group: Optional group label
            lock_key: Jobs sharing a lock key never run concurrently

        Returns:
            Job ID
        """
        pass


class SQLiteScheduler(BaseScheduler):
    """
    SQLite-backed scheduler with durability and crash recovery.

    Features:
    - Immediate and delayed jobs
    - Pending-job lookup by (name, args, group)
    - Per lock key mutual exclusion at dispatch time
    - Crash recovery via requeue_unacked
    """

    def __init__(self, db_path: Path, clock: Callable[[], float] = time.time):
        """
        Initialize the scheduler.

        Args:
            db_path: Path to the SQLite database file
            clock: Source of the current Unix time
        """
        self.db_path = Path(db_path)
        self._clock = clock
        self._handlers: Dict[str, JobHandler] = {}
        self._lock = threading.Lock()
        self._local = threading.local()
        self._closed = False

        self._init_db()

    def _get_connection(self) -> sqlite3.Connection:
        """Get a thread-local database connection."""
        if not hasattr(self._local, "conn") or self._local.conn is None:
            self._local.conn = sqlite3.connect(
                str(self.db_path),
                check_same_thread=False,
                isolation_level=None,  # Autocommit mode
            )
            self._local.conn.execute("PRAGMA journal_mode=WAL")
            self._local.conn.execute("PRAGMA synchronous=NORMAL")
        return self._local.conn

    def _init_db(self) -> None:
        """Initialize the database schema."""
        if str(self.db_path) != ":memory:":
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = self._get_connection()
        conn.execute("""
            CREATE TABLE IF NOT EXISTS jobs (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                job_name TEXT NOT NULL,
                args TEXT NOT NULL,
                group_name TEXT NOT NULL DEFAULT '',
                dedup_key TEXT NOT NULL,
                lock_key TEXT,
                status TEXT NOT NULL DEFAULT 'pending',
                run_at REAL NOT NULL,
                last_error TEXT,
                created_at REAL NOT NULL,
                updated_at REAL NOT NULL
            )
        """)
        conn.execute("CREATE INDEX IF NOT EXISTS idx_jobs_status_run_at ON jobs(status, run_at)")
        conn.execute("CREATE INDEX IF NOT EXISTS idx_jobs_dedup ON jobs(dedup_key, status)")

    def _check_closed(self) -> None:
        if self._closed:
            raise SchedulerError("Scheduler is closed")

    def register(self, job_name: str, handler: JobHandler) -> None:
        """
        Register the handler invoked for a job name.

        Args:
            job_name: Job name
            handler: Callable taking the job's positional args
        """
        if not callable(handler):
            raise SchedulerError(f"Handler for {job_name} is not callable")
        self._handlers[job_name] = handler

    def _insert(self, run_at: float, job_name: str, args: Sequence[Any],
                group: Optional[str], lock_key: Optional[str], unique: bool = False) -> Optional[int]:
        self._check_closed()
        try:
            payload = json.dumps(list(args))
        except (TypeError, ValueError) as e:
            raise SchedulerError(f"Job args for {job_name} are not JSON-serializable: {e}") from e

        key = dedup_key(job_name, args, group)
        now = self._clock()
        job_id = None
        with self._lock:
            conn = self._get_connection()
            conn.execute("BEGIN IMMEDIATE")
            try:
                pending = unique and conn.execute(
                    "SELECT 1 FROM jobs WHERE dedup_key = ? AND status = 'pending' LIMIT 1", (key,)
                ).fetchone()
                if not pending:
                    cursor = conn.execute(
                        "INSERT INTO jobs (job_name, args, group_name, dedup_key, lock_key, status, run_at, created_at, updated_at) "
                        "VALUES (?, ?, ?, ?, ?, 'pending', ?, ?, ?)",
                        (job_name, payload, group or "", key, lock_key, run_at, now, now),
                    )
                    job_id = cursor.lastrowid
                conn.execute("COMMIT")
            except Exception:
                conn.execute("ROLLBACK")
                raise
        return job_id

    def enqueue_async(self, job_name: str, args: Sequence[Any], group: Optional[str] = None,
                      lock_key: Optional[str] = None) -> int:
        job_id = self._insert(self._clock(), job_name, args, group, lock_key)
        logger.debug(f"Enqueued job {job_id}: {job_name}{list(args)}")
        return job_id

    def enqueue_unique(self, job_name: str, args: Sequence[Any], group: Optional[str] = None,
                       lock_key: Optional[str] = None) -> Optional[int]:
        """Check for an identical pending job and enqueue in one transaction."""
        job_id = self._insert(self._clock(), job_name, args, group, lock_key, unique=True)
        if job_id is None:
            logger.debug(f"Job {job_name}{list(args)} already pending")
        else:
            logger.debug(f"Enqueued job {job_id}: {job_name}{list(args)}")
        return job_id

    def schedule_delayed(self, run_at: float, job_name: str, args: Sequence[Any],
                         group: Optional[str] = None, lock_key: Optional[str] = None) -> int:
        job_id = self._insert(float(run_at), job_name, args, group, lock_key)
        logger.debug(f"Scheduled job {job_id}: {job_name}{list(args)} at {run_at}")
        return job_id

    def has_scheduled(self, job_name: str, args: Sequence[Any], group: Optional[str] = None) -> bool:
        self._check_closed()
        with self._lock:
            conn = self._get_connection()
            row = conn.execute(
                "SELECT 1 FROM jobs WHERE dedup_key = ? AND status = 'pending' LIMIT 1",
                (dedup_key(job_name, args, group),),
            ).fetchone()
        return row is not None

    def _claim_next(self) -> Optional[Tuple[int, str, List[Any]]]:
        """
        Mark the oldest due job whose lock key is free as 'processing'.

        Returns:
            (id, job_name, args) or None if nothing can run now
        """
        now = self._clock()
        with self._lock:
            conn = self._get_connection()
            conn.execute("BEGIN IMMEDIATE")
            try:
                row = conn.execute("""
                    SELECT id, job_name, args FROM jobs AS j
                    WHERE status = 'pending' AND run_at <= ?
                      AND (lock_key IS NULL OR NOT EXISTS (
                          SELECT 1 FROM jobs AS p
                          WHERE p.status = 'processing' AND p.lock_key = j.lock_key))
                    ORDER BY run_at, id
                    LIMIT 1
                """, (now,)).fetchone()
                if row:
                    conn.execute(
                        "UPDATE jobs SET status = 'processing', updated_at = ? WHERE id = ?",
                        (now, row[0]),
                    )
                conn.execute("COMMIT")
            except Exception:
                conn.execute("ROLLBACK")
                raise
        if row is None:
            return None
        return row[0], row[1], json.loads(row[2])

    def ack(self, job_id: int) -> None:
        """Remove a finished job."""
        self._check_closed()
        with self._lock:
            self._get_connection().execute("DELETE FROM jobs WHERE id = ?", (job_id,))

    def fail(self, job_id: int, error: str) -> None:
        """Park a job whose handler raised."""
        self._check_closed()
        with self._lock:
            self._get_connection().execute(
                "UPDATE jobs SET status = 'failed', last_error = ?, updated_at = ? WHERE id = ?",
                (error, self._clock(), job_id),
            )

    def run_pending(self, max_jobs: Optional[int] = None) -> int:
        """
        Run due jobs one at a time until none is runnable.

        A handler that raises marks its job 'failed'; the next job still runs.

        Args:
            max_jobs: Stop after this many jobs

        Returns:
            Number of jobs run
        """
        self._check_closed()
        count = 0
        while max_jobs is None or count < max_jobs:
            claimed = self._claim_next()
            if claimed is None:
                break
            job_id, job_name, args = claimed
            count += 1

            handler = self._handlers.get(job_name)
            if handler is None:
                logger.error(f"No handler registered for job {job_name} (job {job_id})")
                self.fail(job_id, f"No handler registered for {job_name}")
                continue

            logger.debug(f"Running job {job_id}: {job_name}{args}")
            try:
                handler(*args)
            except Exception as e:
                logger.error(f"Job {job_id} ({job_name}) failed: {e}", exc_info=True)
                self.fail(job_id, str(e))
                continue
            self.ack(job_id)
        return count

    def requeue_unacked(self) -> int:
        """
        Requeue all jobs that were being processed (crash recovery).

        Returns:
            Number of jobs requeued
        """
        self._check_closed()
        with self._lock:
            cursor = self._get_connection().execute(
                "UPDATE jobs SET status = 'pending', updated_at = ? WHERE status = 'processing'",
                (self._clock(),),
            )
            return cursor.rowcount

    def list_jobs(self, status: str = "pending") -> List[Dict[str, Any]]:
        """Jobs with a given status, in run order."""
        self._check_closed()
        with self._lock:
            conn = self._get_connection()
            rows = conn.execute(
                "SELECT id, job_name, args, group_name, lock_key, run_at, last_error FROM jobs "
                "WHERE status = ? ORDER BY run_at, id",
                (status,),
            ).fetchall()
        return [
            {
                "id": row[0],
                "job_name": row[1],
                "args": json.loads(row[2]),
                "group": row[3],
                "lock_key": row[4],
                "run_at": row[5],
                "last_error": row[6],
            }
            for row in rows
        ]

    def size(self) -> int:
        """
        Get the number of pending jobs, due or not.

        Returns:
            Number of pending jobs
        """
        self._check_closed()
        with self._lock:
            return self._get_connection().execute(
                "SELECT COUNT(*) FROM jobs WHERE status = 'pending'"
            ).fetchone()[0]

    def next_run_at(self) -> Optional[float]:
        """Run time of the earliest pending job."""
        self._check_closed()
        with self._lock:
            row = self._get_connection().execute(
                "SELECT MIN(run_at) FROM jobs WHERE status = 'pending'"
            ).fetchone()
        return row[0] if row else None

    def close(self) -> None:
        """Close the scheduler and release resources."""
        if self._closed:
            return

        self._closed = True

        if hasattr(self._local, "conn") and self._local.conn:
            self._local.conn.close()
            self._local.conn = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
