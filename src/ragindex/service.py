"""
Wiring of the indexing pipeline.
"""

import logging
from typing import Any, Dict, List, Optional

from .config import IndexerConfig
from .extractors import ContentSource
from .models import ContentRef, IndexStatus, QueryResult
from .queue import PROCESS_JOB, IndexQueue
from .registry import ActiveBackends, ComponentRegistry, create_default_registry
from .retry import RETRY_JOB, RetryManager
from .scheduler import BaseScheduler, SQLiteScheduler
from .search import Search
from .status import StatusStore
from .worker import Worker

logger = logging.getLogger(__name__)


class IndexingService:
    """
    Builds every component from one configuration and registers the job
    handlers with the scheduler.

    Also provides the trigger entry points a host application calls when
    content is saved or deleted.
    """

    def __init__(
        self,
        config: IndexerConfig,
        source: ContentSource,
        registry: Optional[ComponentRegistry] = None,
        scheduler: Optional[BaseScheduler] = None,
        status_store: Optional[StatusStore] = None,
        backends: Optional[ActiveBackends] = None,
    ):
        self.config = config
        self.source = source
        self.registry = registry or create_default_registry(source)
        self.status_store = status_store or StatusStore(config.status_db_path)
        self.scheduler = scheduler or SQLiteScheduler(config.scheduler_db_path)
        self.backends = backends or ActiveBackends(self.registry, config.embedding, config.vector_store)

        self.queue = IndexQueue(self.scheduler, config.vector_store.site_id)
        self.retry_manager = RetryManager(self.scheduler, self.status_store, self.queue)
        self.worker = Worker(
            config, self.registry, self.status_store, self.queue, self.retry_manager, self.backends,
        )
        self.searcher = Search(self.backends)

        self.scheduler.register(PROCESS_JOB, self.worker.process)
        self.scheduler.register(RETRY_JOB, self.retry_manager.process_retry)

    def content_saved(self, content_id: int, content_type: str) -> Optional[int]:
        """
        Trigger for a created or updated item: mark it queued and push an update job.

        Returns:
            Job ID, or None if skipped or already pending
        """
        ref = ContentRef(content_id, content_type)
        ct_config = self.config.get_content_type(ref.content_type)
        if ct_config is not None and not ct_config.enabled:
            logger.debug(f"Indexing disabled for {ref.content_type}, ignoring save of {ref}")
            return None

        record = self.status_store.get_status(ref)
        if record is not None and record.status == IndexStatus.PROCESSING:
            # The running job keeps its status; the pushed job re-checks the hash
            logger.info(f"{ref} is being indexed, queueing a follow-up run")
        else:
            self.status_store.set_status(ref, IndexStatus.QUEUED)
        return self.queue.push(ref.content_id, ref.content_type, "update")

    def content_deleted(self, content_id: int, content_type: str) -> Optional[int]:
        """Trigger for a deleted item: push a delete job."""
        return self.queue.push(content_id, content_type, "delete")

    def run_pending(self, max_jobs: Optional[int] = None) -> int:
        """Run due scheduler jobs; returns how many ran."""
        return self.scheduler.run_pending(max_jobs)

    def search(self, query: str, limit: int = 5, filter: Optional[Dict[str, Any]] = None) -> List[QueryResult]:
        return self.searcher.search(query, limit, filter)

    def test_connections(self) -> Dict[str, bool]:
        """
        Check the configured provider and store respond.

        Returns:
            {"embedding": bool, "vector_store": bool}
        """
        results = {}
        for name, factory in (("embedding", self.backends.provider), ("vector_store", self.backends.store)):
            try:
                results[name] = factory().test_connection()
            except Exception as e:
                logger.error(f"{name} connection test failed: {e}")
                results[name] = False
        return results

    def close(self) -> None:
        """Close all components."""
        self.backends.close()
        self.status_store.close()
        close = getattr(self.scheduler, "close", None)
        if close:
            close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
