"""
Tests for vector stores.
"""

import json

import httpx
import pytest

from src.ragindex.config import VectorStoreConfig
from src.ragindex.exceptions import StoreError
from src.ragindex.models import Chunk, ContentRef, VectorRecord
from src.ragindex.stores import QdrantStore, SQLiteVectorStore, build_filter, validate_filter


def record(content_id, chunk_index, vector, content_type="post", **metadata):
    ref = ContentRef(content_id, content_type)
    chunk = Chunk(f"chunk {chunk_index} of {content_id}", {"chunk_index": chunk_index, **metadata})
    return VectorRecord.from_chunk(ref, chunk, vector)


class TestFilters:
    """Tests for filter validation and translation."""

    def test_validate_rejects_bad_keys(self):
        with pytest.raises(StoreError):
            validate_filter({"content_id; DROP TABLE": 1})
        with pytest.raises(StoreError):
            validate_filter({"$.page": 1})

    def test_build_filter(self):
        assert build_filter({"content_id": 5, "content_type": "post", "page": 2}) == {
            "must": [
                {"key": "content_id", "match": {"value": 5}},
                {"key": "content_type", "match": {"value": "post"}},
                {"key": "metadata.page", "match": {"value": 2}},
            ]
        }

    def test_build_empty_filter(self):
        assert build_filter(None) is None
        assert build_filter({}) is None


class TestSQLiteVectorStore:
    """Tests for SQLiteVectorStore."""

    @pytest.fixture
    def store(self, tmp_path):
        store = SQLiteVectorStore(VectorStoreConfig(db_path=tmp_path / "vectors.db"))
        yield store
        store.close()

    def test_insert_creates_collection(self, store):
        assert not store.collection_exists("docs")

        ids = store.insert_vectors("docs", [record(1, 0, [1.0, 0.0, 0.0]), record(1, 1, [0.0, 1.0, 0.0])])

        assert len(ids) == 2
        assert store.collection_exists("docs")
        assert store.count("docs") == 2

    def test_dimension_mismatch(self, store):
        store.insert_vectors("docs", [record(1, 0, [1.0, 0.0])])

        with pytest.raises(StoreError, match="dimensions"):
            store.insert_vectors("docs", [record(1, 1, [1.0, 0.0, 0.0])])

    def test_query_orders_by_similarity(self, store):
        store.insert_vectors("docs", [
            record(1, 0, [1.0, 0.0, 0.0]),
            record(2, 0, [0.0, 1.0, 0.0]),
            record(3, 0, [0.7, 0.7, 0.0]),
        ])

        results = store.query("docs", [1.0, 0.1, 0.0], limit=2)

        assert [r.payload["content_id"] for r in results] == [1, 3]
        assert results[0].score > results[1].score
        assert results[0].payload["chunk_text"] == "chunk 0 of 1"

    def test_query_filter(self, store):
        store.insert_vectors("docs", [
            record(1, 0, [1.0, 0.0]),
            record(1, 0, [1.0, 0.0], content_type="page"),
            record(2, 0, [0.9, 0.1], page=4),
        ])

        results = store.query("docs", [1.0, 0.0], filter={"content_type": "page"})
        assert [(r.payload["content_id"], r.payload["content_type"]) for r in results] == [(1, "page")]

        results = store.query("docs", [1.0, 0.0], filter={"page": 4})
        assert [r.payload["content_id"] for r in results] == [2]

    def test_delete_by_filter(self, store):
        store.insert_vectors("docs", [
            record(1, 0, [1.0, 0.0]),
            record(1, 1, [0.0, 1.0]),
            record(1, 0, [1.0, 0.0], content_type="page"),
            record(2, 0, [0.5, 0.5]),
        ])

        removed = store.delete_by_filter("docs", ContentRef(1, "post").as_filter())

        assert removed == 2
        assert store.count("docs", ContentRef(1, "post").as_filter()) == 0
        assert store.count("docs") == 2

    def test_delete_by_filter_missing_collection(self, store):
        assert store.delete_by_filter("missing", {"content_id": 1}) == 0

    def test_delete_vectors(self, store):
        ids = store.insert_vectors("docs", [record(1, 0, [1.0]), record(1, 1, [0.5])])

        store.delete_vectors("docs", ids[:1])

        assert store.count("docs") == 1

    def test_max_chunk_index(self, store):
        ref = ContentRef(1, "post")
        assert store.get_max_chunk_index("docs", ref.as_filter()) is None

        store.insert_vectors("docs", [record(1, i, [float(i), 1.0]) for i in range(4)])
        store.insert_vectors("docs", [record(2, 9, [1.0, 1.0])])

        assert store.get_max_chunk_index("docs", ref.as_filter()) == 3

    def test_delete_collection(self, store):
        store.insert_vectors("docs", [record(1, 0, [1.0])])

        assert store.delete_collection("docs") is True
        assert not store.collection_exists("docs")
        assert store.count("docs") == 0

    def test_persistence(self, tmp_path):
        config = VectorStoreConfig(db_path=tmp_path / "persist.db")
        with SQLiteVectorStore(config) as store:
            store.insert_vectors("docs", [record(1, 0, [0.25, 0.5])])

        with SQLiteVectorStore(config) as store:
            results = store.query("docs", [0.25, 0.5])
            assert len(results) == 1
            assert results[0].score == pytest.approx(1.0)

    def test_unopenable_database(self, tmp_path):
        directory = tmp_path / "not-a-file"
        directory.mkdir()

        with pytest.raises(StoreError, match="Cannot open vector database"):
            SQLiteVectorStore(VectorStoreConfig(db_path=directory))

    def test_closed_store(self, tmp_path):
        store = SQLiteVectorStore(VectorStoreConfig(db_path=tmp_path / "closed.db"))
        store.close()

        assert store.test_connection() is False
        with pytest.raises(StoreError, match="closed"):
            store.query("docs", [1.0])


class FakeQdrant:
    """In-memory stand-in for the Qdrant REST API, served through httpx.MockTransport."""

    def __init__(self, page_size=None):
        self.collections = {}
        self.requests = []
        self.page_size = page_size

    def matches(self, point, qdrant_filter):
        for condition in (qdrant_filter or {}).get("must", []):
            value = point["payload"]
            for part in condition["key"].split("."):
                value = (value or {}).get(part)
            if value != condition["match"]["value"]:
                return False
        return True

    def handler(self, request):
        self.requests.append(request)
        body = json.loads(request.content) if request.content else {}
        parts = request.url.path.strip("/").split("/")

        if parts == ["collections"]:
            return httpx.Response(200, json={"status": "ok", "result": {"collections": []}})

        name = parts[1]
        if len(parts) == 2:
            if request.method == "GET":
                if name not in self.collections:
                    return httpx.Response(404, json={"status": {"error": "Not found"}})
                return httpx.Response(200, json={"status": "ok", "result": {}})
            if request.method == "PUT":
                self.collections[name] = {"config": body, "points": {}}
                return httpx.Response(200, json={"status": "ok", "result": True})
            if request.method == "DELETE":
                if self.collections.pop(name, None) is None:
                    return httpx.Response(404, json={})
                return httpx.Response(200, json={"status": "ok", "result": True})

        if name not in self.collections:
            return httpx.Response(404, json={"status": {"error": "Not found"}})
        points = self.collections[name]["points"]
        action = "/".join(parts[2:])

        if action == "points" and request.method == "PUT":
            for point in body["points"]:
                points[point["id"]] = point
            return httpx.Response(200, json={"status": "ok", "result": {"status": "completed"}})

        if action == "points/delete":
            if "points" in body:
                for point_id in body["points"]:
                    points.pop(point_id, None)
            else:
                for point_id in [p["id"] for p in points.values() if self.matches(p, body.get("filter"))]:
                    del points[point_id]
            return httpx.Response(200, json={"status": "ok", "result": {"status": "completed"}})

        if action == "points/scroll":
            matched = sorted(
                (p for p in points.values() if self.matches(p, body.get("filter"))), key=lambda p: p["id"]
            )
            offset = body.get("offset") or 0
            limit = self.page_size or body["limit"]
            page = matched[offset:offset + limit]
            next_offset = offset + limit if offset + limit < len(matched) else None
            return httpx.Response(200, json={"status": "ok", "result": {
                "points": [{"id": p["id"], "payload": p["payload"]} for p in page],
                "next_page_offset": next_offset,
            }})

        if action == "points/search":
            hits = []
            for p in points.values():
                if self.matches(p, body.get("filter")):
                    score = sum(a * b for a, b in zip(p["vector"], body["vector"]))
                    hits.append({"id": p["id"], "score": score, "payload": p["payload"]})
            hits.sort(key=lambda h: h["score"], reverse=True)
            return httpx.Response(200, json={"status": "ok", "result": hits[:body["limit"]]})

        return httpx.Response(400, json={"status": {"error": f"unexpected {request.method} {action}"}})


class TestQdrantStore:
    """Tests for QdrantStore."""

    @pytest.fixture
    def fake(self):
        return FakeQdrant()

    @pytest.fixture
    def store(self, fake):
        client = httpx.Client(transport=httpx.MockTransport(fake.handler), base_url="http://qdrant:6333")
        store = QdrantStore(VectorStoreConfig(provider="qdrant", api_key="secret"), http_client=client)
        yield store
        store.close()

    def test_api_key_header(self, store, fake):
        store.test_connection()

        assert fake.requests[-1].headers["api-key"] == "secret"

    def test_insert_creates_collection(self, store, fake):
        store.insert_vectors("docs", [record(1, 0, [1.0, 0.0, 0.0])])

        assert fake.collections["docs"]["config"] == {"vectors": {"size": 3, "distance": "Cosine"}}
        upsert = [r for r in fake.requests if r.method == "PUT" and r.url.path.endswith("/points")][0]
        assert upsert.url.params["wait"] == "true"

    def test_collection_lifecycle(self, store):
        assert store.collection_exists("docs") is False
        store.create_collection("docs", 4)
        assert store.collection_exists("docs") is True
        assert store.delete_collection("docs") is True
        assert store.delete_collection("docs") is False

    def test_query(self, store):
        store.insert_vectors("docs", [record(1, 0, [1.0, 0.0]), record(2, 0, [0.0, 1.0])])

        results = store.query("docs", [0.9, 0.1], limit=1)

        assert len(results) == 1
        assert results[0].payload["content_id"] == 1

    def test_query_missing_collection(self, store):
        assert store.query("missing", [1.0]) == []

    def test_delete_by_filter_counts(self, store, fake):
        store.insert_vectors("docs", [
            record(1, 0, [1.0, 0.0]),
            record(1, 1, [0.0, 1.0]),
            record(2, 0, [0.5, 0.5]),
        ])

        removed = store.delete_by_filter("docs", ContentRef(1, "post").as_filter())

        assert removed == 2
        assert len(fake.collections["docs"]["points"]) == 1

    def test_delete_by_filter_missing_collection(self, store):
        assert store.delete_by_filter("missing", {"content_id": 1}) == 0

    def test_max_chunk_index_paginates(self, fake):
        fake.page_size = 2
        client = httpx.Client(transport=httpx.MockTransport(fake.handler), base_url="http://qdrant:6333")
        store = QdrantStore(VectorStoreConfig(provider="qdrant"), http_client=client)

        store.insert_vectors("docs", [record(1, i, [float(i), 1.0]) for i in range(5)])
        store.insert_vectors("docs", [record(2, 7, [1.0, 1.0])])

        assert store.get_max_chunk_index("docs", ContentRef(1, "post").as_filter()) == 4
        assert store.get_max_chunk_index("docs", ContentRef(3, "post").as_filter()) is None
        scrolls = [r for r in fake.requests if r.url.path.endswith("/points/scroll")]
        assert len(scrolls) >= 3

    def test_http_error_wrapped(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        client = httpx.Client(transport=httpx.MockTransport(handler), base_url="http://qdrant:6333")
        store = QdrantStore(VectorStoreConfig(provider="qdrant"), http_client=client)

        with pytest.raises(StoreError, match="failed"):
            store.create_collection("docs", 3)
        assert store.test_connection() is False

    def test_rejected_write(self, store):
        store.create_collection("docs", 2)
        store._client = httpx.Client(
            transport=httpx.MockTransport(lambda request: httpx.Response(
                200 if request.method == "GET" else 400, json={"status": "ok"},
            )),
            base_url="http://qdrant:6333",
        )

        with pytest.raises(StoreError, match="HTTP 400"):
            store.insert_vectors("docs", [record(1, 0, [1.0, 0.0])])
