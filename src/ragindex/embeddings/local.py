"""
In-process embedding provider using fastembed.
"""

import logging
from typing import List

from fastembed import TextEmbedding

from ..config import EmbeddingConfig
from ..exceptions import ProviderError
from .base import BaseEmbeddingProvider

logger = logging.getLogger(__name__)


class LocalProvider(BaseEmbeddingProvider):
    """Runs a small ONNX embedding model locally; no network calls once the model is cached."""

    slug = "local"

    DEFAULT_MODEL = "BAAI/bge-small-en-v1.5"
    MODEL_DIMENSIONS = {
        "BAAI/bge-small-en-v1.5": 384,
        "BAAI/bge-base-en-v1.5": 768,
        "sentence-transformers/all-MiniLM-L6-v2": 384,
    }

    def __init__(self, config: EmbeddingConfig):
        super().__init__(config)
        self._model = config.get("model", self.DEFAULT_MODEL)
        self._embedding = None

    def _get_model(self) -> TextEmbedding:
        if self._embedding is None:
            logger.info(f"Loading local embedding model {self._model}")
            try:
                self._embedding = TextEmbedding(model_name=self._model)
            except Exception as e:
                raise ProviderError(f"Failed to load local model {self._model}: {e}") from e
        return self._embedding

    @property
    def model_id(self) -> str:
        return self._model

    @property
    def dimensions(self) -> int:
        return int(self.config.get("dimensions", self.MODEL_DIMENSIONS.get(self._model, 384)))

    def embed(self, texts: List[str]) -> List[List[float]]:
        if not texts:
            return []
        model = self._get_model()
        try:
            return [embedding.tolist() for embedding in model.embed(texts)]
        except Exception as e:
            raise ProviderError(f"Local embedding failed: {e}") from e
