"""
Qdrant vector store over its REST API.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence

import httpx

from ..config import VectorStoreConfig
from ..exceptions import StoreError
from ..models import QueryResult, VectorRecord
from .base import PAYLOAD_FIELDS, BaseVectorStore, validate_filter

logger = logging.getLogger(__name__)


def build_filter(filter: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """
    Translate an equality filter into a Qdrant ``must`` filter.

    Keys outside the top-level payload fields address the nested
    ``metadata`` object.
    """
    filter = validate_filter(filter)
    if not filter:
        return None
    must = []
    for key, value in filter.items():
        field_key = key if key in PAYLOAD_FIELDS else f"metadata.{key}"
        must.append({"key": field_key, "match": {"value": value}})
    return {"must": must}


class QdrantStore(BaseVectorStore):
    """
    Qdrant vector store.

    Environment variables:
    - QDRANT_API_KEY: API key (optional)
    """

    slug = "qdrant"

    SCROLL_PAGE_SIZE = 1000

    def __init__(self, config: VectorStoreConfig, http_client: Optional[httpx.Client] = None):
        """
        Initialize Qdrant store.

        Args:
            config: Store configuration (``url`` and optional ``api_key``)
            http_client: Optional preconfigured HTTP client
        """
        super().__init__(config)
        headers = {"Content-Type": "application/json"}
        api_key = config.get_api_key()
        if api_key:
            headers["api-key"] = api_key
        self._client = http_client or httpx.Client(
            base_url=config.url.rstrip("/"),
            headers=headers,
            timeout=config.timeout_seconds,
        )
        if http_client is not None:
            self._client.headers.update(headers)

    def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            return self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise StoreError(f"Qdrant {method} {path} failed: {e}") from e

    def _check(self, response: httpx.Response, action: str) -> Dict[str, Any]:
        if response.status_code != 200:
            raise StoreError(f"Qdrant {action} failed: HTTP {response.status_code}: {response.text[:200]}")
        try:
            return response.json()
        except ValueError as e:
            raise StoreError(f"Qdrant {action} returned invalid JSON: {e}") from e

    def create_collection(self, name: str, dimensions: int, config: Optional[Dict[str, Any]] = None) -> bool:
        body = {
            "vectors": {
                "size": int(dimensions),
                "distance": (config or {}).get("distance", "Cosine"),
            }
        }
        self._check(self._request("PUT", f"/collections/{name}", json=body), f"create collection {name}")
        logger.info(f"Created Qdrant collection {name} ({dimensions} dims)")
        return True

    def delete_collection(self, name: str) -> bool:
        response = self._request("DELETE", f"/collections/{name}")
        if response.status_code == 404:
            return False
        self._check(response, f"delete collection {name}")
        return True

    def collection_exists(self, name: str) -> bool:
        response = self._request("GET", f"/collections/{name}")
        if response.status_code == 404:
            return False
        data = self._check(response, f"get collection {name}")
        return data.get("status") == "ok"

    def insert_vectors(self, name: str, records: Sequence[VectorRecord]) -> List[str]:
        if not records:
            return []
        if not self.collection_exists(name):
            self.create_collection(name, len(records[0].vector))

        body = {"points": [record.to_dict() for record in records]}
        self._check(
            self._request("PUT", f"/collections/{name}/points", params={"wait": "true"}, json=body),
            f"upsert into {name}",
        )
        return [record.id for record in records]

    def delete_vectors(self, name: str, ids: Sequence[str]) -> bool:
        if not ids:
            return True
        self._check(
            self._request("POST", f"/collections/{name}/points/delete", params={"wait": "true"},
                          json={"points": list(ids)}),
            f"delete points from {name}",
        )
        return True

    def _scroll(self, name: str, filter: Optional[Dict[str, Any]], with_payload: Any):
        """Yield every point matching the filter, following pagination."""
        body: Dict[str, Any] = {
            "limit": self.SCROLL_PAGE_SIZE,
            "with_payload": with_payload,
            "with_vector": False,
        }
        qdrant_filter = build_filter(filter)
        if qdrant_filter:
            body["filter"] = qdrant_filter

        while True:
            data = self._check(
                self._request("POST", f"/collections/{name}/points/scroll", json=body),
                f"scroll {name}",
            )
            result = data.get("result") or {}
            for point in result.get("points", []):
                yield point
            next_offset = result.get("next_page_offset")
            if next_offset is None:
                break
            body["offset"] = next_offset

    def delete_by_filter(self, name: str, filter: Dict[str, Any]) -> int:
        if not self.collection_exists(name):
            return 0
        count = sum(1 for _ in self._scroll(name, filter, with_payload=False))
        if count == 0:
            return 0

        self._check(
            self._request("POST", f"/collections/{name}/points/delete", params={"wait": "true"},
                          json={"filter": build_filter(filter)}),
            f"delete by filter from {name}",
        )
        logger.debug(f"Deleted {count} points from {name} matching {filter}")
        return count

    def query(
        self,
        name: str,
        vector: List[float],
        limit: int = 5,
        filter: Optional[Dict[str, Any]] = None,
    ) -> List[QueryResult]:
        body: Dict[str, Any] = {
            "vector": list(vector),
            "limit": int(limit),
            "with_payload": True,
        }
        qdrant_filter = build_filter(filter)
        if qdrant_filter:
            body["filter"] = qdrant_filter

        response = self._request("POST", f"/collections/{name}/points/search", json=body)
        if response.status_code == 404:
            return []
        data = self._check(response, f"search {name}")
        return [
            QueryResult(id=hit.get("id"), score=float(hit.get("score", 0.0)), payload=hit.get("payload") or {})
            for hit in data.get("result") or []
        ]

    def get_max_chunk_index(self, name: str, filter: Dict[str, Any]) -> Optional[int]:
        if not self.collection_exists(name):
            return None
        max_index = None
        for point in self._scroll(name, filter, with_payload=["chunk_index"]):
            index = (point.get("payload") or {}).get("chunk_index")
            if index is not None and (max_index is None or index > max_index):
                max_index = int(index)
        return max_index

    def test_connection(self) -> bool:
        try:
            self._check(self._request("GET", "/collections"), "list collections")
            return True
        except StoreError as e:
            logger.warning(f"Qdrant connection test failed: {e}")
            return False

    def close(self) -> None:
        self._client.close()
