"""
Base embedding provider class.
"""

import logging
from abc import ABC, abstractmethod
from typing import List, Sequence

from ..config import EmbeddingConfig
from ..exceptions import ProviderError
from ..models import Chunk

logger = logging.getLogger(__name__)


class BaseEmbeddingProvider(ABC):
    """Abstract base class for embedding providers."""

    slug: str = ""

    def __init__(self, config: EmbeddingConfig):
        self.config = config

    @abstractmethod
    def embed(self, texts: List[str]) -> List[List[float]]:
        """
        Generate embeddings for multiple texts.

        Args:
            texts: List of texts to embed

        Returns:
            One vector per text, in input order

        Raises:
            ProviderError: If embedding fails
        """
        pass

    def embed_chunks(self, chunks: Sequence[Chunk]) -> List[List[float]]:
        """
        Embed chunk contents, checking the result lines up with the input.

        Args:
            chunks: Chunks to embed

        Returns:
            One vector per chunk, in input order
        """
        if not chunks:
            return []
        vectors = self.embed([c.content for c in chunks])
        if len(vectors) != len(chunks):
            raise ProviderError(
                f"{self.slug} returned {len(vectors)} embeddings for {len(chunks)} inputs"
            )
        return vectors

    @property
    @abstractmethod
    def model_id(self) -> str:
        """Return model identifier."""
        pass

    @property
    @abstractmethod
    def dimensions(self) -> int:
        """Return embedding dimensions."""
        pass

    def test_connection(self) -> bool:
        """
        Check the provider answers with a vector.

        Returns:
            True if a test embedding succeeded
        """
        try:
            vectors = self.embed(["test"])
        except ProviderError as e:
            logger.warning(f"{self.slug} connection test failed: {e}")
            return False
        return bool(vectors and vectors[0])

    def close(self) -> None:
        """Release any held resources."""
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
