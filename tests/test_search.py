"""
Tests for query-time search.
"""

import pytest


class TestSearch:
    """Tests for Search against an indexed site."""

    @pytest.fixture
    def indexed(self, service):
        service.worker.process(1, "post", "update")
        service.worker.process(2, "page", "update")
        return service

    def test_best_match_first(self, indexed):
        results = indexed.search("About us")

        assert results[0].payload["content_id"] == 2
        assert results[0].payload["chunk_text"] == "About us"
        assert results[0].score == pytest.approx(1.0)
        scores = [r.score for r in results]
        assert scores == sorted(scores, reverse=True)

    def test_limit(self, indexed):
        assert len(indexed.search("Paragraph", limit=3)) == 3

    def test_filter_by_content_type(self, indexed):
        results = indexed.search("About us", limit=10, filter={"content_type": "post"})

        assert len(results) == 5
        assert {r.payload["content_type"] for r in results} == {"post"}

    def test_filter_by_metadata(self, indexed):
        results = indexed.search("About us", limit=10, filter={"source_url": "http://site/p1"})

        assert {r.payload["content_id"] for r in results} == {1}

    @pytest.mark.parametrize("query", ["", "   "])
    def test_blank_query(self, indexed, query):
        provider = indexed.backends.provider()
        calls = len(provider.calls)

        assert indexed.search(query) == []
        assert len(provider.calls) == calls

    def test_provider_error_gives_empty_result(self, indexed, provider_error):
        indexed.backends.provider().fail_with = provider_error

        assert indexed.search("About us") == []

    def test_nothing_indexed(self, service):
        assert service.search("anything") == []
