"""
Query-time semantic search.
"""

import logging
from typing import Any, Dict, List, Optional

from .models import Chunk, QueryResult
from .registry import ActiveBackends

logger = logging.getLogger(__name__)


class Search:
    """Embeds a query and looks up similar chunks in the site's collection."""

    def __init__(self, backends: ActiveBackends):
        self.backends = backends

    def search(self, query: str, limit: int = 5, filter: Optional[Dict[str, Any]] = None) -> List[QueryResult]:
        """
        Search indexed content.

        Errors are logged and produce an empty result.

        Args:
            query: Query text
            limit: Maximum number of results
            filter: Equality filter on payload fields (e.g. content_type)

        Returns:
            Results ordered by descending score
        """
        if not query or not query.strip():
            return []

        try:
            provider = self.backends.provider()
            store = self.backends.store()
            vectors = provider.embed_chunks([Chunk(content=query)])
            if not vectors:
                return []
            return store.query(store.collection_name, vectors[0], limit, filter)
        except Exception as e:
            logger.error(f"Search failed for query {query!r}: {e}", exc_info=True)
            return []
