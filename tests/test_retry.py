"""
Tests for retry scheduling.
"""

import pytest

from src.ragindex.models import ContentRef, IndexStatus, RetryTicket
from src.ragindex.queue import PROCESS_JOB, IndexQueue
from src.ragindex.retry import RETRY_JOB, RetryManager, backoff_seconds
from src.ragindex.scheduler import SQLiteScheduler
from src.ragindex.status import StatusStore


@pytest.mark.parametrize("attempt,delay", [
    (1, 300),
    (2, 900),
    (3, 3600),
    (4, 14400),
    (5, 86400),
    (12, 86400),
])
def test_backoff_schedule(attempt, delay):
    assert backoff_seconds(attempt) == delay


class TestRetryManager:
    """Tests for RetryManager."""

    @pytest.fixture
    def scheduler(self, tmp_path):
        scheduler = SQLiteScheduler(tmp_path / "scheduler.db", clock=lambda: 5000.0)
        yield scheduler
        scheduler.close()

    @pytest.fixture
    def status_store(self, tmp_path):
        store = StatusStore(tmp_path / "status.db")
        yield store
        store.close()

    @pytest.fixture
    def manager(self, scheduler, status_store):
        queue = IndexQueue(scheduler, site_id=1)
        return RetryManager(scheduler, status_store, queue, clock=lambda: 5000.0)

    def fail(self, status_store, ref, retry_count=1):
        status_store.set_status(ref, IndexStatus.PROCESSING)
        status_store.set_status(ref, IndexStatus.FAILED, error_message="boom", retry_count=retry_count)

    def test_queue_retry_schedules_with_backoff(self, manager, scheduler):
        ref = ContentRef(7, "post")

        manager.queue_retry(ref, 2, "timeout")

        jobs = scheduler.list_jobs()
        assert len(jobs) == 1
        assert jobs[0]["job_name"] == RETRY_JOB
        assert jobs[0]["run_at"] == 5000.0 + 900
        assert jobs[0]["group"] == "rag_retry_site_1"
        assert RetryTicket.from_args(jobs[0]["args"]) == RetryTicket(ref, 2, "timeout")

    def test_process_retry_requeues_failed_item(self, manager, status_store, scheduler):
        ref = ContentRef(7, "post")
        self.fail(status_store, ref)

        job_id = manager.process_retry(7, "post", 1, "boom")

        assert job_id is not None
        record = status_store.get_status(ref)
        assert record.status == IndexStatus.QUEUED
        assert record.retry_count == 1
        assert scheduler.list_jobs()[0]["args"] == [7, "post", "update"]

    def test_process_retry_ignores_non_failed(self, manager, status_store, scheduler):
        ref = ContentRef(7, "post")
        status_store.set_status(ref, IndexStatus.PROCESSING)
        status_store.set_status(ref, IndexStatus.INDEXED)

        assert manager.process_retry(7, "post", 1) is None
        assert scheduler.size() == 0

    def test_process_retry_ignores_deleted(self, manager, scheduler):
        assert manager.process_retry(7, "post", 1) is None
        assert scheduler.size() == 0

    def test_retry_now_resets_attempts(self, manager, status_store):
        ref = ContentRef(7, "post")
        self.fail(status_store, ref, retry_count=4)

        assert manager.retry_now(ref) is not None
        record = status_store.get_status(ref)
        assert record.status == IndexStatus.QUEUED
        assert record.retry_count == 0

    def test_retry_now_only_failed(self, manager, status_store):
        ref = ContentRef(7, "post")
        status_store.set_status(ref, IndexStatus.QUEUED)

        assert manager.retry_now(ref) is None

    def test_retry_all_failed(self, manager, status_store, scheduler):
        for content_id in (1, 2, 3):
            self.fail(status_store, ContentRef(content_id, "post"))
        status_store.set_status(ContentRef(4, "post"), IndexStatus.QUEUED)

        assert manager.get_failed_count() == 3
        assert manager.retry_all_failed() == 3
        assert manager.get_failed_count() == 0
        assert len([j for j in scheduler.list_jobs() if j["job_name"] == PROCESS_JOB]) == 3

    def test_retry_handler_runs_through_scheduler(self, manager, status_store, scheduler):
        ref = ContentRef(7, "post")
        self.fail(status_store, ref)
        scheduler.register(RETRY_JOB, manager.process_retry)
        scheduler.register(PROCESS_JOB, lambda *args: None)
        scheduler.schedule_delayed(4000.0, RETRY_JOB, RetryTicket(ref, 1, "boom").to_args(), manager.group)

        assert scheduler.run_pending() == 2
        assert status_store.get_status(ref).status == IndexStatus.QUEUED
