"""
OpenAI embedding provider.
"""

import logging
import time
from typing import List, Optional

import httpx
from openai import APIConnectionError, APIStatusError, AuthenticationError, OpenAI, RateLimitError

from ..config import EmbeddingConfig
from ..exceptions import (
    ConfigurationError,
    ProviderAuthError,
    ProviderError,
    ProviderRateLimitError,
)
from .base import BaseEmbeddingProvider

logger = logging.getLogger(__name__)


class OpenAIProvider(BaseEmbeddingProvider):
    """
    OpenAI embedding provider.

    Settings:
    - model: model name (default text-embedding-3-small)
    - api_key: API key (falls back to OPENAI_API_KEY)
    - api_base: base URL (optional)
    - dimensions: requested vector size (optional, 3rd generation models only)
    - timeout: request timeout in seconds
    - max_retries: attempts per batch for transient errors
    """

    slug = "openai"

    DEFAULT_MODEL = "text-embedding-3-small"
    DEFAULT_DIMENSIONS = 1536
    MAX_BATCH_SIZE = 2048

    MODEL_DIMENSIONS = {
        "text-embedding-3-small": 1536,
        "text-embedding-3-large": 3072,
        "text-embedding-ada-002": 1536,
    }

    def __init__(self, config: EmbeddingConfig, http_client: Optional[httpx.Client] = None):
        """
        Initialize OpenAI provider.

        Args:
            config: Embedding configuration
            http_client: Optional preconfigured HTTP client

        Raises:
            ConfigurationError: If no API key is available
        """
        super().__init__(config)
        self._model = config.get("model", self.DEFAULT_MODEL)
        self._requested_dimensions = config.get("dimensions")
        self._timeout = float(config.get("timeout", 60.0))
        self._max_retries = max(1, int(config.get("max_retries", 2)))
        self._batch_size = min(int(config.get("batch_size", self.MAX_BATCH_SIZE)), self.MAX_BATCH_SIZE)

        self._api_key = config.get_api_key()
        logger.debug(f"OpenAIProvider init: model={self._model}, api_key={'[SET]' if self._api_key else '[NOT SET]'}")
        if not self._api_key:
            raise ConfigurationError("OpenAI API key not provided. Set OPENAI_API_KEY environment variable.")

        self._http_client = http_client or httpx.Client()
        self._client = OpenAI(
            api_key=self._api_key,
            base_url=config.get("api_base"),
            http_client=self._http_client,
            timeout=self._timeout,
            max_retries=0,  # We handle retries ourselves
        )

    @property
    def model_id(self) -> str:
        return self._model

    @property
    def dimensions(self) -> int:
        if self._requested_dimensions:
            return int(self._requested_dimensions)
        return self.MODEL_DIMENSIONS.get(self._model, self.DEFAULT_DIMENSIONS)

    def embed(self, texts: List[str]) -> List[List[float]]:
        logger.debug(f"embed called with {len(texts)} texts")
        if not texts:
            return []

        all_embeddings = []
        for i in range(0, len(texts), self._batch_size):
            batch = texts[i:i + self._batch_size]
            all_embeddings.extend(self._embed_batch(batch))
        return all_embeddings

    def _embed_batch(self, texts: List[str]) -> List[List[float]]:
        """
        Embed a single batch of texts.

        Args:
            texts: Batch of texts

        Returns:
            List of embeddings, ordered by response index
        """
        kwargs = {"model": self._model, "input": texts}
        if self._requested_dimensions:
            kwargs["dimensions"] = int(self._requested_dimensions)

        last_error = None
        for attempt in range(self._max_retries):
            try:
                response = self._client.embeddings.create(**kwargs)
                embeddings_data = sorted(response.data, key=lambda x: x.index)
                return [item.embedding for item in embeddings_data]

            except AuthenticationError as e:
                raise ProviderAuthError(f"Authentication failed: {e}", status_code=401) from e

            except RateLimitError as e:
                retry_after = self._get_retry_after(e)
                raise ProviderRateLimitError(
                    f"Rate limit exceeded: {e}",
                    status_code=429,
                    retry_after=retry_after,
                ) from e

            except (APIConnectionError, APIStatusError) as e:
                logger.error(f"Embedding API error (attempt {attempt + 1}/{self._max_retries}): {e}")
                last_error = e
                status_code = getattr(e, "status_code", None)
                if status_code is not None and 400 <= status_code < 500:
                    raise ProviderError(f"Embedding request rejected: {e}", status_code=status_code) from e
                if attempt < self._max_retries - 1:
                    time.sleep(2 ** attempt)

        raise ProviderError(f"Failed to generate embeddings after {self._max_retries} attempts: {last_error}")

    def _get_retry_after(self, error: Exception) -> Optional[float]:
        """Extract retry-after seconds from the error response headers."""
        response = getattr(error, "response", None)
        if response is None:
            return None
        value = response.headers.get("retry-after")
        try:
            return float(value) if value else None
        except ValueError:
            return None

    def close(self) -> None:
        if self._http_client:
            self._http_client.close()
