"""
Shared fixtures for ragindex tests.
"""

import pytest

from src.ragindex.config import (
    ChunkingSettings,
    ContentTypeConfig,
    EmbeddingConfig,
    IndexerConfig,
    VectorStoreConfig,
    WorkerConfig,
)
from src.ragindex.embeddings import BaseEmbeddingProvider
from src.ragindex.exceptions import ProviderError
from src.ragindex.extractors import ManifestContentSource
from src.ragindex.registry import create_default_registry
from src.ragindex.service import IndexingService


class FakeProvider(BaseEmbeddingProvider):
    """Deterministic in-memory embedding provider."""

    slug = "fake"

    def __init__(self, config: EmbeddingConfig = None):
        super().__init__(config or EmbeddingConfig(provider="fake"))
        self.calls = []
        self.fail_with = None

    @property
    def model_id(self) -> str:
        return "fake-model"

    @property
    def dimensions(self) -> int:
        return 4

    def embed(self, texts):
        self.calls.append(list(texts))
        if self.fail_with is not None:
            raise self.fail_with
        return [self.vector_for(t) for t in texts]

    @staticmethod
    def vector_for(text: str):
        return [float(len(text)), float(text.count(" ")), 1.0, float(ord(text[0])) if text else 0.0]

    @property
    def embedded_texts(self):
        return [t for call in self.calls for t in call]


def paragraphs(count: int) -> str:
    return "".join(f"<p>Paragraph number {i} of the post.</p>" for i in range(count))


@pytest.fixture
def source():
    return ManifestContentSource([
        {"content_id": 1, "content_type": "post", "content": paragraphs(5), "source_url": "http://site/p1"},
        {"content_id": 2, "content_type": "page", "content": "<p>About us</p>"},
        {"content_id": 3, "content_type": "post", "content": ""},
    ])


@pytest.fixture
def config(tmp_path):
    return IndexerConfig(
        data_dir=tmp_path,
        content_types={
            "post": ContentTypeConfig(chunking_strategy="paragraph", chunking_settings=ChunkingSettings(chunk_size=1)),
            "page": ContentTypeConfig(),
            "link": ContentTypeConfig(enabled=False),
        },
        embedding=EmbeddingConfig(provider="fake"),
        vector_store=VectorStoreConfig(db_path=tmp_path / "vectors.db", site_url="http://site"),
        worker=WorkerConfig(batch_size=2, time_budget_seconds=1000, max_attempts=4),
    )


@pytest.fixture
def registry(source):
    registry = create_default_registry(source)
    registry.register_provider("fake", FakeProvider)
    return registry


@pytest.fixture
def service(config, source, registry):
    service = IndexingService(config, source, registry=registry)
    yield service
    service.close()


@pytest.fixture
def provider_error():
    return ProviderError("upstream unavailable", status_code=503)
