"""
Component registry: the pluggable extractors, chunkers, embedding
providers and vector stores, keyed by slug.

A registry is built once at startup and handed to the worker and search
components; nothing is looked up through module-level state.
"""

import logging
from typing import Dict, List, Optional, Type

from .chunkers import DEFAULT_CHUNKERS, BaseChunker, PageChunker
from .config import EmbeddingConfig, VectorStoreConfig
from .embeddings import DEFAULT_PROVIDERS, BaseEmbeddingProvider
from .exceptions import ConfigurationError, RegistrationError
from .extractors import BaseExtractor, ContentSource, ExtractorRegistry, create_default_extractors
from .models import ContentRef
from .stores import DEFAULT_STORES, BaseVectorStore

logger = logging.getLogger(__name__)


def _require_subclass(cls, base: type, kind: str) -> None:
    if not isinstance(cls, type) or not issubclass(cls, base):
        raise RegistrationError(f"{kind} must be a subclass of {base.__name__}, got {cls!r}")


class ComponentRegistry:
    """Holds every registered component, validated at registration time."""

    def __init__(self, source: ContentSource, extractors: Optional[ExtractorRegistry] = None):
        self.source = source
        self.extractors = extractors or ExtractorRegistry()
        self._chunkers: Dict[str, Type[BaseChunker]] = {}
        self._providers: Dict[str, Type[BaseEmbeddingProvider]] = {}
        self._stores: Dict[str, Type[BaseVectorStore]] = {}

    # ── Registration ────────────────────────────────────────────

    def register_extractor(self, extractor: BaseExtractor) -> None:
        if not isinstance(extractor, BaseExtractor):
            raise RegistrationError(f"Extractor must be a BaseExtractor instance, got {extractor!r}")
        self.extractors.register(extractor)

    def register_chunker(self, name: str, chunker_cls: Type[BaseChunker]) -> None:
        _require_subclass(chunker_cls, BaseChunker, "Chunker")
        self._chunkers[name] = chunker_cls

    def register_provider(self, slug: str, provider_cls: Type[BaseEmbeddingProvider]) -> None:
        _require_subclass(provider_cls, BaseEmbeddingProvider, "Embedding provider")
        self._providers[slug] = provider_cls

    def register_store(self, slug: str, store_cls: Type[BaseVectorStore]) -> None:
        _require_subclass(store_cls, BaseVectorStore, "Vector store")
        self._stores[slug] = store_cls

    # ── Lookup ──────────────────────────────────────────────────

    def get_extractor(self, ref: ContentRef) -> Optional[BaseExtractor]:
        """
        Select the extractor for a content item.

        Attachments are matched by MIME type, everything else by content type.
        """
        if ref.content_type == "attachment":
            mime_type = self.source.get_mime_type(ref)
            logger.debug(f"{ref} has MIME type {mime_type}")
            return self.extractors.get(mime_type)
        return self.extractors.get(ref.content_type)

    def get_chunker(self, strategy: str) -> BaseChunker:
        """Chunker for a strategy name; unknown names fall back to page."""
        chunker_cls = self._chunkers.get(strategy)
        if chunker_cls is None:
            logger.warning(f"Unknown chunking strategy '{strategy}', falling back to page")
            chunker_cls = self._chunkers.get("page", PageChunker)
        return chunker_cls()

    def create_provider(self, config: EmbeddingConfig) -> BaseEmbeddingProvider:
        """
        Instantiate the configured embedding provider.

        Raises:
            ConfigurationError: If no provider is configured or the slug is unknown
        """
        if not config.provider:
            raise ConfigurationError("No embedding provider configured")
        provider_cls = self._providers.get(config.provider)
        if provider_cls is None:
            raise ConfigurationError(f"Unknown embedding provider: {config.provider}")
        return provider_cls(config)

    def create_store(self, config: VectorStoreConfig) -> BaseVectorStore:
        """
        Instantiate the configured vector store.

        Raises:
            ConfigurationError: If no store is configured or the slug is unknown
        """
        if not config.provider:
            raise ConfigurationError("No vector store configured")
        store_cls = self._stores.get(config.provider)
        if store_cls is None:
            raise ConfigurationError(f"Unknown vector store: {config.provider}")
        return store_cls(config)

    def provider_slugs(self) -> List[str]:
        return sorted(self._providers)

    def store_slugs(self) -> List[str]:
        return sorted(self._stores)

    def chunker_names(self) -> List[str]:
        return sorted(self._chunkers)


def create_default_registry(source: ContentSource) -> ComponentRegistry:
    """Create a registry with all built-in components."""
    registry = ComponentRegistry(source, create_default_extractors(source))
    for name, chunker_cls in DEFAULT_CHUNKERS.items():
        registry.register_chunker(name, chunker_cls)
    for slug, provider_cls in DEFAULT_PROVIDERS.items():
        registry.register_provider(slug, provider_cls)
    for slug, store_cls in DEFAULT_STORES.items():
        registry.register_store(slug, store_cls)
    return registry


class ActiveBackends:
    """
    The configured embedding provider and vector store, created on first use.

    Shared by the worker and search so both talk to the same instances.
    """

    def __init__(self, registry: ComponentRegistry, embedding: EmbeddingConfig, vector_store: VectorStoreConfig):
        self.registry = registry
        self.embedding_config = embedding
        self.store_config = vector_store
        self._provider: Optional[BaseEmbeddingProvider] = None
        self._store: Optional[BaseVectorStore] = None

    def provider(self) -> BaseEmbeddingProvider:
        """
        Raises:
            ConfigurationError: If the provider cannot be created from config
        """
        if self._provider is None:
            self._provider = self.registry.create_provider(self.embedding_config)
            logger.info(f"Using embedding provider {self.embedding_config.provider} ({self._provider.model_id})")
        return self._provider

    def store(self) -> BaseVectorStore:
        """
        Raises:
            ConfigurationError: If the store cannot be created from config
        """
        if self._store is None:
            self._store = self.registry.create_store(self.store_config)
            logger.info(f"Using vector store {self.store_config.provider}, collection {self._store.collection_name}")
        return self._store

    def close(self) -> None:
        if self._provider is not None:
            self._provider.close()
            self._provider = None
        if self._store is not None:
            self._store.close()
            self._store = None
