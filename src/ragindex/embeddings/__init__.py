"""
Embedding providers for the ragindex package.
"""

from .base import BaseEmbeddingProvider
from .local import LocalProvider
from .ollama import OllamaProvider
from .openai import OpenAIProvider

__all__ = [
    "BaseEmbeddingProvider",
    "LocalProvider",
    "OllamaProvider",
    "OpenAIProvider",
    "DEFAULT_PROVIDERS",
]


DEFAULT_PROVIDERS = {
    OpenAIProvider.slug: OpenAIProvider,
    OllamaProvider.slug: OllamaProvider,
    LocalProvider.slug: LocalProvider,
}
