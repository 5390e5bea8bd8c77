"""
ragindex: content indexing pipeline for semantic retrieval.

Content items are extracted, fingerprinted, chunked, embedded and stored
in a vector store; a durable status record and retry schedule track each
item through the pipeline.
"""

from .models import (
    ContentRef,
    RawSegment,
    Chunk,
    VectorRecord,
    QueryResult,
    IndexStatus,
    IndexStatusRecord,
    RetryTicket,
    JobOperation,
)

from .config import (
    IndexerConfig,
    ChunkingSettings,
    ContentTypeConfig,
    EmbeddingConfig,
    VectorStoreConfig,
    WorkerConfig,
    collection_name_for,
    load_config,
)

from .exceptions import (
    RagIndexError,
    ExtractionError,
    ChunkingError,
    ProviderError,
    ProviderRateLimitError,
    ProviderAuthError,
    StoreError,
    ConfigurationError,
    StatusError,
    InvalidStatusTransition,
    SchedulerError,
    RegistrationError,
)

from .hasher import compute_content_hash
from .registry import ActiveBackends, ComponentRegistry, create_default_registry
from .status import StatusStore
from .scheduler import BaseScheduler, SQLiteScheduler
from .queue import IndexQueue
from .retry import RetryManager, backoff_seconds
from .worker import Worker
from .search import Search
from .service import IndexingService


__all__ = [
    # Models
    "ContentRef",
    "RawSegment",
    "Chunk",
    "VectorRecord",
    "QueryResult",
    "IndexStatus",
    "IndexStatusRecord",
    "RetryTicket",
    "JobOperation",

    # Config
    "IndexerConfig",
    "ChunkingSettings",
    "ContentTypeConfig",
    "EmbeddingConfig",
    "VectorStoreConfig",
    "WorkerConfig",
    "collection_name_for",
    "load_config",

    # Exceptions
    "RagIndexError",
    "ExtractionError",
    "ChunkingError",
    "ProviderError",
    "ProviderRateLimitError",
    "ProviderAuthError",
    "StoreError",
    "ConfigurationError",
    "StatusError",
    "InvalidStatusTransition",
    "SchedulerError",
    "RegistrationError",

    # Pipeline
    "compute_content_hash",
    "ActiveBackends",
    "ComponentRegistry",
    "create_default_registry",
    "StatusStore",
    "BaseScheduler",
    "SQLiteScheduler",
    "IndexQueue",
    "RetryManager",
    "backoff_seconds",
    "Worker",
    "Search",
    "IndexingService",
]
