"""
Ollama embedding provider.
"""

import logging
import time
from typing import List, Optional

import httpx

from ..config import EmbeddingConfig
from ..exceptions import ProviderAuthError, ProviderError
from .base import BaseEmbeddingProvider

logger = logging.getLogger(__name__)


class OllamaProvider(BaseEmbeddingProvider):
    """
    Ollama embedding provider.

    The embeddings endpoint takes one prompt per request, so texts are sent
    one at a time with a pause between calls; each call is retried once
    after a short delay since the server may be loading the model.
    """

    slug = "ollama"

    DEFAULT_ENDPOINT = "http://localhost:11434"
    DEFAULT_MODEL = "nomic-embed-text"
    DEFAULT_DIMENSIONS = 768
    MAX_ATTEMPTS = 2
    RETRY_DELAY = 0.25
    MAX_RETRY_DELAY = 0.5

    def __init__(self, config: EmbeddingConfig, http_client: Optional[httpx.Client] = None):
        super().__init__(config)
        self._endpoint = str(config.get("endpoint", self.DEFAULT_ENDPOINT)).rstrip("/")
        self._model = config.get("model", self.DEFAULT_MODEL)
        self._request_delay = float(config.get("request_delay_seconds", 0.5))
        self._timeout = float(config.get("timeout", 60.0))

        headers = {"Content-Type": "application/json"}
        api_key = config.get_api_key()
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        self._client = http_client or httpx.Client(timeout=self._timeout)
        self._headers = headers

    @property
    def model_id(self) -> str:
        return self._model

    @property
    def dimensions(self) -> int:
        return int(self.config.get("dimensions", self.DEFAULT_DIMENSIONS))

    def embed(self, texts: List[str]) -> List[List[float]]:
        embeddings = []
        for i, text in enumerate(texts):
            if i > 0 and self._request_delay > 0:
                time.sleep(self._request_delay)
            embeddings.append(self._embed_one(text))
        return embeddings

    def _embed_one(self, text: str) -> List[float]:
        delay = self.RETRY_DELAY
        last_error = None
        for attempt in range(self.MAX_ATTEMPTS):
            try:
                return self._request(text)
            except ProviderAuthError:
                raise
            except ProviderError as e:
                last_error = e
                logger.warning(f"Ollama embedding failed (attempt {attempt + 1}/{self.MAX_ATTEMPTS}): {e}")
                if attempt < self.MAX_ATTEMPTS - 1:
                    time.sleep(delay)
                    delay = min(delay * 2, self.MAX_RETRY_DELAY)
        raise last_error

    def _request(self, text: str) -> List[float]:
        try:
            response = self._client.post(
                f"{self._endpoint}/api/embeddings",
                json={"model": self._model, "prompt": text},
                headers=self._headers,
            )
        except httpx.HTTPError as e:
            raise ProviderError(f"Ollama request failed: {e}") from e

        if response.status_code in (401, 403):
            raise ProviderAuthError(f"Ollama rejected credentials: HTTP {response.status_code}",
                                    status_code=response.status_code)
        if response.status_code != 200:
            raise ProviderError(f"Ollama returned HTTP {response.status_code}: {response.text[:200]}",
                                status_code=response.status_code)
        try:
            data = response.json()
        except ValueError as e:
            raise ProviderError(f"Ollama returned invalid JSON: {e}") from e

        embedding = data.get("embedding") if isinstance(data, dict) else None
        if not embedding:
            raise ProviderError("Ollama response has no embedding")
        return embedding

    def test_connection(self) -> bool:
        try:
            return bool(self._request("Hello world"))
        except ProviderError as e:
            logger.warning(f"Ollama connection test failed: {e}")
            return False

    def close(self) -> None:
        self._client.close()
