"""
Base vector store class.
"""

import re
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence

from ..config import VectorStoreConfig
from ..exceptions import StoreError
from ..models import QueryResult, VectorRecord

# Top-level payload fields; any other filter key addresses payload["metadata"][key]
PAYLOAD_FIELDS = ("content_id", "content_type", "chunk_index", "chunk_text")

_FILTER_KEY_RE = re.compile(r"^[A-Za-z0-9_]+$")


def validate_filter(filter: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Check a filter is a flat mapping of field name to value.

    Every entry is an equality match and all entries must hold.

    Raises:
        StoreError: If a key is not a plain field name
    """
    filter = dict(filter or {})
    for key in filter:
        if not isinstance(key, str) or not _FILTER_KEY_RE.match(key):
            raise StoreError(f"Invalid filter key: {key!r}")
    return filter


class BaseVectorStore(ABC):
    """Abstract base class for vector stores."""

    slug: str = ""

    def __init__(self, config: VectorStoreConfig):
        self.config = config

    @property
    def collection_name(self) -> str:
        """The site's standard collection."""
        return self.config.get_collection_name()

    @abstractmethod
    def create_collection(self, name: str, dimensions: int, config: Optional[Dict[str, Any]] = None) -> bool:
        """
        Create a collection.

        Args:
            name: Collection name
            dimensions: Vector size
            config: Store-specific options (e.g. distance)

        Returns:
            True on success
        """
        pass

    @abstractmethod
    def delete_collection(self, name: str) -> bool:
        pass

    @abstractmethod
    def collection_exists(self, name: str) -> bool:
        pass

    @abstractmethod
    def insert_vectors(self, name: str, records: Sequence[VectorRecord]) -> List[str]:
        """
        Insert or replace vectors, creating the collection if needed.

        Args:
            name: Collection name
            records: Records to store

        Returns:
            Stored record ids, in input order

        Raises:
            StoreError: If the write is rejected
        """
        pass

    @abstractmethod
    def delete_vectors(self, name: str, ids: Sequence[str]) -> bool:
        pass

    @abstractmethod
    def delete_by_filter(self, name: str, filter: Dict[str, Any]) -> int:
        """
        Delete every vector matching the filter.

        Returns:
            Number of vectors deleted (0 if the collection does not exist)
        """
        pass

    @abstractmethod
    def query(
        self,
        name: str,
        vector: List[float],
        limit: int = 5,
        filter: Optional[Dict[str, Any]] = None,
    ) -> List[QueryResult]:
        """
        Similarity search.

        Args:
            name: Collection name
            vector: Query vector
            limit: Maximum number of results
            filter: Equality filter on payload fields

        Returns:
            Results ordered by descending score
        """
        pass

    @abstractmethod
    def get_max_chunk_index(self, name: str, filter: Dict[str, Any]) -> Optional[int]:
        """
        Highest ``chunk_index`` stored for vectors matching the filter.

        Returns:
            The index, or None if nothing matches
        """
        pass

    @abstractmethod
    def test_connection(self) -> bool:
        pass

    def close(self) -> None:
        """Release any held resources."""
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
