"""
Tests for embedding providers.
"""

import json
from unittest.mock import MagicMock, Mock, patch

import httpx
import numpy as np
import pytest
from openai import APIConnectionError, AuthenticationError, InternalServerError, RateLimitError

from src.ragindex.config import EmbeddingConfig
from src.ragindex.embeddings import LocalProvider, OllamaProvider, OpenAIProvider
from src.ragindex.exceptions import (
    ConfigurationError,
    ProviderAuthError,
    ProviderError,
    ProviderRateLimitError,
)
from src.ragindex.models import Chunk

from conftest import FakeProvider

OPENAI_URL = "https://api.openai.com/v1/embeddings"


def openai_response(vectors, shuffle=False):
    items = [Mock(index=i, embedding=v) for i, v in enumerate(vectors)]
    if shuffle:
        items.reverse()
    return Mock(data=items)


def api_response(status_code, headers=None):
    return httpx.Response(status_code, headers=headers or {}, request=httpx.Request("POST", OPENAI_URL))


class TestBaseEmbeddingProvider:
    """Tests for behavior shared by all providers."""

    def test_embed_chunks(self):
        provider = FakeProvider()
        vectors = provider.embed_chunks([Chunk("one"), Chunk("two words")])

        assert len(vectors) == 2
        assert provider.calls == [["one", "two words"]]

    def test_embed_chunks_empty(self):
        provider = FakeProvider()

        assert provider.embed_chunks([]) == []
        assert provider.calls == []

    def test_embed_chunks_count_mismatch(self):
        provider = FakeProvider()
        provider.embed = lambda texts: [[0.1, 0.2]]

        with pytest.raises(ProviderError, match="returned 1 embeddings for 2 inputs"):
            provider.embed_chunks([Chunk("a"), Chunk("b")])

    def test_connection_failure(self):
        provider = FakeProvider()
        provider.fail_with = ProviderError("down")

        assert provider.test_connection() is False


class TestOpenAIProvider:
    """Tests for OpenAIProvider."""

    @pytest.fixture
    def config(self):
        return EmbeddingConfig(provider="openai", settings={"api_key": "test-key"})

    def test_requires_api_key(self, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)

        with pytest.raises(ConfigurationError, match="API key"):
            OpenAIProvider(EmbeddingConfig(provider="openai"))

    def test_api_key_from_env(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "env-key")

        with patch("src.ragindex.embeddings.openai.OpenAI"):
            provider = OpenAIProvider(EmbeddingConfig(provider="openai"))
            assert provider._api_key == "env-key"

    def test_dimensions(self, config):
        with patch("src.ragindex.embeddings.openai.OpenAI"):
            assert OpenAIProvider(config).dimensions == 1536
            large = EmbeddingConfig(provider="openai", settings={"api_key": "k", "model": "text-embedding-3-large"})
            assert OpenAIProvider(large).dimensions == 3072
            custom = EmbeddingConfig(provider="openai", settings={"api_key": "k", "dimensions": 256})
            assert OpenAIProvider(custom).dimensions == 256

    def test_embed_orders_by_index(self, config):
        with patch("src.ragindex.embeddings.openai.OpenAI") as mock_openai:
            client = mock_openai.return_value
            client.embeddings.create.return_value = openai_response([[0.1], [0.2], [0.3]], shuffle=True)

            provider = OpenAIProvider(config)
            result = provider.embed(["a", "b", "c"])

            assert result == [[0.1], [0.2], [0.3]]
            client.embeddings.create.assert_called_once_with(model="text-embedding-3-small", input=["a", "b", "c"])

    def test_requested_dimensions_sent(self):
        config = EmbeddingConfig(provider="openai", settings={"api_key": "k", "dimensions": 256})
        with patch("src.ragindex.embeddings.openai.OpenAI") as mock_openai:
            client = mock_openai.return_value
            client.embeddings.create.return_value = openai_response([[0.5]])

            OpenAIProvider(config).embed(["a"])

            assert client.embeddings.create.call_args.kwargs["dimensions"] == 256

    def test_batches_large_input(self):
        config = EmbeddingConfig(provider="openai", settings={"api_key": "k", "batch_size": 2})
        with patch("src.ragindex.embeddings.openai.OpenAI") as mock_openai:
            client = mock_openai.return_value
            client.embeddings.create.side_effect = lambda model, input: openai_response([[1.0]] * len(input))

            result = OpenAIProvider(config).embed(["a", "b", "c", "d", "e"])

            assert len(result) == 5
            assert client.embeddings.create.call_count == 3

    def test_empty_input(self, config):
        with patch("src.ragindex.embeddings.openai.OpenAI") as mock_openai:
            assert OpenAIProvider(config).embed([]) == []
            mock_openai.return_value.embeddings.create.assert_not_called()

    def test_auth_error(self, config):
        with patch("src.ragindex.embeddings.openai.OpenAI") as mock_openai:
            mock_openai.return_value.embeddings.create.side_effect = AuthenticationError(
                "bad key", response=api_response(401), body=None,
            )

            with pytest.raises(ProviderAuthError):
                OpenAIProvider(config).embed(["a"])

    def test_rate_limit_error(self, config):
        with patch("src.ragindex.embeddings.openai.OpenAI") as mock_openai:
            mock_openai.return_value.embeddings.create.side_effect = RateLimitError(
                "slow down", response=api_response(429, {"retry-after": "7"}), body=None,
            )

            with pytest.raises(ProviderRateLimitError) as exc_info:
                OpenAIProvider(config).embed(["a"])

            assert exc_info.value.retry_after == 7.0
            assert exc_info.value.status_code == 429

    def test_server_error_retried(self, config):
        with patch("src.ragindex.embeddings.openai.OpenAI") as mock_openai, \
                patch("src.ragindex.embeddings.openai.time.sleep") as mock_sleep:
            mock_openai.return_value.embeddings.create.side_effect = [
                InternalServerError("boom", response=api_response(500), body=None),
                openai_response([[0.9]]),
            ]

            assert OpenAIProvider(config).embed(["a"]) == [[0.9]]
            mock_sleep.assert_called_once_with(1)

    def test_connection_error_exhausts_retries(self, config):
        with patch("src.ragindex.embeddings.openai.OpenAI") as mock_openai, \
                patch("src.ragindex.embeddings.openai.time.sleep"):
            mock_openai.return_value.embeddings.create.side_effect = APIConnectionError(
                request=httpx.Request("POST", OPENAI_URL),
            )

            with pytest.raises(ProviderError, match="after 2 attempts"):
                OpenAIProvider(config).embed(["a"])

    def test_test_connection(self, config):
        with patch("src.ragindex.embeddings.openai.OpenAI") as mock_openai:
            mock_openai.return_value.embeddings.create.return_value = openai_response([[0.1, 0.2]])

            assert OpenAIProvider(config).test_connection() is True
            assert mock_openai.return_value.embeddings.create.call_args.kwargs["input"] == ["test"]


class TestOllamaProvider:
    """Tests for OllamaProvider."""

    def make_provider(self, handler, **settings):
        settings.setdefault("request_delay_seconds", 0)
        config = EmbeddingConfig(provider="ollama", settings=settings)
        client = httpx.Client(transport=httpx.MockTransport(handler))
        return OllamaProvider(config, http_client=client)

    def test_embed_one_request_per_text(self):
        requests = []

        def handler(request):
            requests.append(json.loads(request.content))
            return httpx.Response(200, json={"embedding": [0.1, 0.2, 0.3]})

        provider = self.make_provider(handler)
        result = provider.embed(["first", "second"])

        assert result == [[0.1, 0.2, 0.3], [0.1, 0.2, 0.3]]
        assert requests == [
            {"model": "nomic-embed-text", "prompt": "first"},
            {"model": "nomic-embed-text", "prompt": "second"},
        ]

    def test_endpoint_and_auth_header(self):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["auth"] = request.headers.get("authorization")
            return httpx.Response(200, json={"embedding": [1.0]})

        provider = self.make_provider(handler, endpoint="http://ollama:11434/", api_key="secret")
        provider.embed(["text"])

        assert seen["url"] == "http://ollama:11434/api/embeddings"
        assert seen["auth"] == "Bearer secret"

    def test_delay_between_texts(self):
        def handler(request):
            return httpx.Response(200, json={"embedding": [1.0]})

        provider = self.make_provider(handler, request_delay_seconds=0.5)
        with patch("src.ragindex.embeddings.ollama.time.sleep") as mock_sleep:
            provider.embed(["a", "b", "c"])

        assert mock_sleep.call_count == 2
        mock_sleep.assert_called_with(0.5)

    def test_retries_once(self):
        responses = iter([httpx.Response(500, text="loading"), httpx.Response(200, json={"embedding": [2.0]})])
        provider = self.make_provider(lambda request: next(responses))

        with patch("src.ragindex.embeddings.ollama.time.sleep") as mock_sleep:
            assert provider.embed(["a"]) == [[2.0]]

        mock_sleep.assert_called_once_with(0.25)

    def test_gives_up_after_two_attempts(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(503, text="unavailable")

        provider = self.make_provider(handler)
        with patch("src.ragindex.embeddings.ollama.time.sleep"):
            with pytest.raises(ProviderError) as exc_info:
                provider.embed(["a"])

        assert len(calls) == 2
        assert exc_info.value.status_code == 503

    def test_auth_error_not_retried(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(401)

        provider = self.make_provider(handler)
        with pytest.raises(ProviderAuthError):
            provider.embed(["a"])

        assert len(calls) == 1

    def test_missing_embedding(self):
        provider = self.make_provider(lambda request: httpx.Response(200, json={"error": "no model"}))

        with patch("src.ragindex.embeddings.ollama.time.sleep"):
            with pytest.raises(ProviderError, match="no embedding"):
                provider.embed(["a"])

    def test_connection_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        provider = self.make_provider(handler)

        assert provider.test_connection() is False

    def test_defaults(self):
        provider = self.make_provider(lambda request: httpx.Response(200, json={"embedding": [1.0]}))

        assert provider.model_id == "nomic-embed-text"
        assert provider.dimensions == 768
        assert provider.test_connection() is True


class TestLocalProvider:
    """Tests for LocalProvider."""

    def test_embed(self):
        with patch("src.ragindex.embeddings.local.TextEmbedding") as mock_model_cls:
            model = MagicMock()
            model.embed.return_value = iter([np.array([0.5, 0.25]), np.array([1.0, 0.0])])
            mock_model_cls.return_value = model

            provider = LocalProvider(EmbeddingConfig(provider="local"))
            result = provider.embed(["a", "b"])

            assert result == [[0.5, 0.25], [1.0, 0.0]]
            mock_model_cls.assert_called_once_with(model_name="BAAI/bge-small-en-v1.5")

    def test_model_loaded_lazily_once(self):
        with patch("src.ragindex.embeddings.local.TextEmbedding") as mock_model_cls:
            mock_model_cls.return_value.embed.side_effect = lambda texts: iter([np.zeros(3) for _ in texts])

            provider = LocalProvider(EmbeddingConfig(provider="local"))
            mock_model_cls.assert_not_called()

            provider.embed(["a"])
            provider.embed(["b"])
            assert mock_model_cls.call_count == 1

    def test_load_failure(self):
        with patch("src.ragindex.embeddings.local.TextEmbedding", side_effect=ValueError("unknown model")):
            provider = LocalProvider(EmbeddingConfig(provider="local", settings={"model": "nope"}))

            with pytest.raises(ProviderError, match="Failed to load"):
                provider.embed(["a"])

    def test_dimensions(self):
        assert LocalProvider(EmbeddingConfig(provider="local")).dimensions == 384
