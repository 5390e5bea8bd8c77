"""
Delayed re-attempts of failed index jobs.
"""

import logging
import time
from typing import Callable, List, Optional

from .models import ContentRef, IndexStatus, IndexStatusRecord, RetryTicket
from .queue import IndexQueue
from .scheduler import BaseScheduler
from .status import StatusStore

logger = logging.getLogger(__name__)

RETRY_JOB = "ragindex_retry_item"

# Attempt number -> delay in seconds before it is re-queued
BACKOFF_SCHEDULE = {
    1: 5 * 60,
    2: 15 * 60,
    3: 60 * 60,
    4: 4 * 60 * 60,
}
DEFAULT_BACKOFF = 24 * 60 * 60


def backoff_seconds(attempt_count: int) -> int:
    """Delay before retrying after the given failed attempt."""
    return BACKOFF_SCHEDULE.get(attempt_count, DEFAULT_BACKOFF)


class RetryManager:
    """Schedules retries with backoff and re-queues failed items on demand."""

    def __init__(
        self,
        scheduler: BaseScheduler,
        status_store: StatusStore,
        queue: IndexQueue,
        clock: Callable[[], float] = time.time,
    ):
        self.scheduler = scheduler
        self.status_store = status_store
        self.queue = queue
        self._clock = clock

    @property
    def group(self) -> str:
        return f"rag_retry_site_{self.queue.site_id}"

    def queue_retry(self, ref: ContentRef, attempt_count: int, error_message: str) -> int:
        """
        Schedule a re-submission of the item's update job.

        Args:
            ref: Content item
            attempt_count: Number of the attempt that just failed
            error_message: Why it failed

        Returns:
            Scheduler job ID
        """
        ticket = RetryTicket(ref, attempt_count, error_message)
        delay = backoff_seconds(attempt_count)
        job_id = self.scheduler.schedule_delayed(
            self._clock() + delay, RETRY_JOB, ticket.to_args(), self.group,
        )
        logger.info(f"Scheduled retry of {ref} (attempt {attempt_count}) in {delay}s")
        return job_id

    def process_retry(self, content_id: int, content_type: str, attempt_count: int,
                      original_error: str = "") -> Optional[int]:
        """
        Job handler for a due retry: mark the item queued and push an update job.

        Returns:
            Job ID of the pushed update job, or None if nothing was queued
        """
        ticket = RetryTicket.from_args([content_id, content_type, attempt_count, original_error])
        ref = ticket.content_ref
        logger.info(f"Retrying {ref} (attempt {ticket.attempt_count}), previous error: {ticket.original_error}")

        record = self.status_store.get_status(ref)
        if record is None:
            logger.info(f"{ref} no longer has a status record, dropping retry")
            return None
        if record.status != IndexStatus.FAILED:
            logger.info(f"{ref} is {record.status.value}, dropping retry")
            return None

        self.status_store.set_status(ref, IndexStatus.QUEUED)
        return self.queue.push(ref.content_id, ref.content_type, "update")

    def retry_now(self, ref: ContentRef) -> Optional[int]:
        """
        Re-queue a failed item immediately with a fresh attempt budget.

        Returns:
            Job ID, or None if the item is not failed or a job is already pending
        """
        record = self.status_store.get_status(ref)
        if record is None or record.status != IndexStatus.FAILED:
            logger.info(f"{ref} is not failed, nothing to retry")
            return None

        self.status_store.set_status(ref, IndexStatus.QUEUED, retry_count=0)
        return self.queue.push(ref.content_id, ref.content_type, "update")

    def retry_all_failed(self) -> int:
        """
        Re-queue every failed item.

        Returns:
            Number of jobs submitted
        """
        count = 0
        for record in self.get_failed_items():
            if self.retry_now(record.content_ref) is not None:
                count += 1
        logger.info(f"Re-queued {count} failed items")
        return count

    def get_failed_items(self, limit: Optional[int] = None) -> List[IndexStatusRecord]:
        return self.status_store.get_failed(limit)

    def get_failed_count(self) -> int:
        return self.status_store.count_by_status(IndexStatus.FAILED)
