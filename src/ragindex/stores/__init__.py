"""
Vector stores for the ragindex package.
"""

from ..config import collection_name_for
from .base import PAYLOAD_FIELDS, BaseVectorStore, validate_filter
from .qdrant import QdrantStore, build_filter
from .sqlite import SQLiteVectorStore

__all__ = [
    "BaseVectorStore",
    "QdrantStore",
    "SQLiteVectorStore",
    "PAYLOAD_FIELDS",
    "build_filter",
    "collection_name_for",
    "validate_filter",
    "DEFAULT_STORES",
]


DEFAULT_STORES = {
    SQLiteVectorStore.slug: SQLiteVectorStore,
    QdrantStore.slug: QdrantStore,
}
