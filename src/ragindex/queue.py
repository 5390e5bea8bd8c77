"""
Deduplicating submission of index jobs.
"""

import logging
from typing import List, Optional

from .models import ContentRef, JobOperation
from .scheduler import BaseScheduler

logger = logging.getLogger(__name__)

PROCESS_JOB = "ragindex_process_item"


class IndexQueue:
    """Submits index jobs to the scheduler, at most one pending job per (item, operation)."""

    def __init__(self, scheduler: BaseScheduler, site_id: int = 1):
        """
        Initialize the queue.

        Args:
            scheduler: Job scheduler
            site_id: Site the jobs belong to (used as the job group)
        """
        self.scheduler = scheduler
        self.site_id = site_id

    @property
    def group(self) -> str:
        return f"rag_site_{self.site_id}"

    @staticmethod
    def job_args(ref: ContentRef, operation: JobOperation) -> List:
        return [ref.content_id, ref.content_type, operation.value]

    def push(self, content_id: int, content_type: str, operation="update") -> Optional[int]:
        """
        Submit an index job unless an identical one is already pending.

        Args:
            content_id: Content item id
            content_type: Content item type
            operation: "update" or "delete"

        Returns:
            Job ID, or None if the job was already pending
        """
        ref = ContentRef(content_id, content_type)
        operation = JobOperation(operation)
        args = self.job_args(ref, operation)

        job_id = self.scheduler.enqueue_unique(PROCESS_JOB, args, self.group, lock_key=ref.key)
        if job_id is None:
            logger.info(f"Job already pending for {ref} ({operation.value}), skipping")
            return None

        logger.info(f"Queued {operation.value} job {job_id} for {ref}")
        return job_id

