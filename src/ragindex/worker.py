"""
Index job execution.

One ``Worker.process`` call handles one job: extract, fingerprint, chunk,
then embed and store chunks in batches. A run that outgrows its time
budget re-submits itself and the next run resumes after the highest chunk
index already stored.
"""

import logging
import time
from datetime import datetime
from typing import Callable, List, Optional

from .config import ContentTypeConfig, IndexerConfig
from .exceptions import ChunkingError, ConfigurationError
from .hasher import compute_content_hash
from .models import Chunk, ContentRef, IndexStatus, IndexStatusRecord, JobOperation, VectorRecord
from .queue import IndexQueue
from .registry import ActiveBackends, ComponentRegistry
from .retry import RetryManager
from .status import StatusStore

logger = logging.getLogger(__name__)


class Worker:
    """Runs index jobs."""

    def __init__(
        self,
        config: IndexerConfig,
        registry: ComponentRegistry,
        status_store: StatusStore,
        queue: IndexQueue,
        retry_manager: RetryManager,
        backends: Optional[ActiveBackends] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the worker.

        Args:
            config: Indexer configuration
            registry: Registered components
            status_store: Status records
            queue: Used to re-submit a job that ran out of time
            retry_manager: Schedules retries after failures
            backends: Provider/store holder (created from config when omitted)
            clock: Monotonic clock for the time budget
        """
        self.config = config
        self.registry = registry
        self.status_store = status_store
        self.queue = queue
        self.retry_manager = retry_manager
        self.backends = backends or ActiveBackends(registry, config.embedding, config.vector_store)
        self._clock = clock

    def process(self, content_id: int, content_type: str, operation: str = "update") -> None:
        """
        Execute one index job. Never raises.

        Args:
            content_id: Content item id
            content_type: Content item type
            operation: "update" or "delete"
        """
        ref = ContentRef(content_id, content_type)
        operation = JobOperation(operation)
        logger.info(f"Processing {operation.value} for {ref}")

        try:
            if operation == JobOperation.DELETE:
                self._delete(ref)
            else:
                self._update(ref)
        except Exception as e:
            logger.error(f"Unhandled error processing {ref}: {e}", exc_info=True)

    def _delete(self, ref: ContentRef) -> None:
        """Remove every vector and the status record of an item."""
        try:
            store = self.backends.store()
        except ConfigurationError as e:
            logger.error(f"Cannot delete vectors for {ref}: {e}")
        else:
            removed = store.delete_by_filter(store.collection_name, ref.as_filter())
            logger.info(f"Deleted {removed} vectors for {ref}")
        self.status_store.delete_status(ref)

    def _content_type_config(self, ref: ContentRef) -> Optional[ContentTypeConfig]:
        ct_config = self.config.get_content_type(ref.content_type)
        if ct_config is None:
            return ContentTypeConfig()
        if not ct_config.enabled:
            return None
        return ct_config

    def _update(self, ref: ContentRef) -> None:
        ct_config = self._content_type_config(ref)
        if ct_config is None:
            logger.info(f"Indexing disabled for content type {ref.content_type}, skipping {ref}")
            return

        extractor = self.registry.get_extractor(ref)
        if extractor is None:
            logger.warning(f"No extractor for {ref}, skipping")
            return

        segments = extractor.extract(ref)
        if not segments:
            logger.info(f"Nothing extracted from {ref}, skipping")
            return

        new_hash = compute_content_hash(segments)
        record = self.status_store.get_status(ref)

        if record and record.status == IndexStatus.INDEXED and record.content_hash == new_hash:
            logger.info(f"{ref} is unchanged and already indexed")
            return

        resuming = record is not None and record.status == IndexStatus.PROCESSING and record.content_hash == new_hash

        if not resuming:
            # The new hash is recorded only once the previous vectors are gone
            self.status_store.set_status(
                ref,
                IndexStatus.PROCESSING,
                content_hash="",
                chunking_strategy=ct_config.chunking_strategy,
                chunking_settings=ct_config.chunking_settings.to_dict(),
                error_message=None,
            )

        try:
            provider = self.backends.provider()
            store = self.backends.store()
        except ConfigurationError as e:
            # Retrying cannot fix configuration
            logger.error(f"Cannot index {ref}: {e}")
            self.status_store.set_status(ref, IndexStatus.FAILED, error_message=str(e))
            return
        except Exception as e:
            logger.error(f"Cannot open backends for {ref}: {e}", exc_info=True)
            self._handle_failure(ref, e)
            return

        try:
            if resuming:
                logger.info(f"Resuming interrupted run for {ref}")
            else:
                removed = store.delete_by_filter(store.collection_name, ref.as_filter())
                if removed:
                    logger.info(f"Removed {removed} stale vectors for {ref}")
                self.status_store.set_status(ref, IndexStatus.PROCESSING, content_hash=new_hash)
            self._embed_and_store(ref, segments, ct_config, provider, store)
        except ChunkingError as e:
            # Same input would fail the same way
            logger.error(f"Cannot index {ref}: {e}", exc_info=True)
            self.status_store.set_status(ref, IndexStatus.FAILED, error_message=str(e))
        except Exception as e:
            logger.error(f"Indexing {ref} failed: {e}", exc_info=True)
            self._handle_failure(ref, e)

    def _embed_and_store(self, ref, segments, ct_config, provider, store) -> None:
        collection = store.collection_name
        ref_filter = ref.as_filter()

        chunker = self.registry.get_chunker(ct_config.chunking_strategy)
        global_metadata = {
            "content_id": ref.content_id,
            "content_type": ref.content_type,
            "source_url": self.registry.source.get_source_url(ref),
        }
        try:
            chunks = chunker.chunk(segments, ct_config.chunking_settings, global_metadata)
        except Exception as e:
            raise ChunkingError(f"{chunker.name} chunking failed: {e}") from e
        total = len(chunks)

        max_index = store.get_max_chunk_index(collection, ref_filter)
        start = max_index + 1 if max_index is not None else 0
        if start >= total:
            self._finalize(ref, provider, total)
            return

        logger.info(f"Embedding chunks {start}..{total - 1} of {ref}")
        batch_size = self.config.worker.batch_size
        budget = self.config.worker.time_budget_seconds
        started = self._clock()

        for batch_start in range(start, total, batch_size):
            batch = chunks[batch_start:batch_start + batch_size]
            self._store_batch(ref, batch, provider, store, collection)

            done = batch_start + len(batch)
            if done < total and self._clock() - started >= budget:
                logger.info(f"Time budget reached for {ref} after {done}/{total} chunks, continuing in a new job")
                self.queue.push(ref.content_id, ref.content_type, JobOperation.UPDATE.value)
                return

        self._finalize(ref, provider, total)

    def _store_batch(self, ref: ContentRef, batch: List[Chunk], provider, store, collection: str) -> None:
        vectors = provider.embed_chunks(batch)
        records = [VectorRecord.from_chunk(ref, chunk, vector) for chunk, vector in zip(batch, vectors)]
        store.insert_vectors(collection, records)
        logger.debug(f"Stored chunks {batch[0].chunk_index}..{batch[-1].chunk_index} of {ref}")

    def _finalize(self, ref: ContentRef, provider, chunk_count: int) -> IndexStatusRecord:
        logger.info(f"Indexed {ref}: {chunk_count} chunks")
        return self.status_store.set_status(
            ref,
            IndexStatus.INDEXED,
            embedding_model=provider.model_id,
            embedding_dimensions=provider.dimensions,
            chunk_count=chunk_count,
            last_indexed_at=datetime.now(),
            error_message=None,
            retry_count=0,
        )

    def _handle_failure(self, ref: ContentRef, error: Exception) -> None:
        """Record the failure and schedule a retry unless the attempt budget is spent."""
        record = self.status_store.get_status(ref)
        attempt = (record.retry_count if record else 0) + 1
        max_attempts = self.config.worker.max_attempts
        message = str(error) or error.__class__.__name__
        retry_after = getattr(error, "retry_after", None)
        if retry_after:
            logger.warning(f"Provider asked to wait {retry_after}s for {ref}; next attempt follows the backoff schedule")

        if attempt < max_attempts:
            self.status_store.set_status(ref, IndexStatus.FAILED, error_message=message, retry_count=attempt)
            self.retry_manager.queue_retry(ref, attempt, message)
        else:
            logger.error(f"Giving up on {ref} after {max_attempts} attempts")
            self.status_store.set_status(
                ref,
                IndexStatus.FAILED,
                error_message=f"Failed after {max_attempts} attempts: {message}",
                retry_count=max_attempts,
            )

    def close(self) -> None:
        self.backends.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
