"""
Configuration for the ragindex package.
"""

import hashlib
import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional


@dataclass
class ChunkingSettings:
    """Window settings passed to a chunker."""
    chunk_size: Optional[int] = None  # None means the strategy default
    overlap: int = 0

    def __post_init__(self):
        if self.chunk_size is not None:
            self.chunk_size = int(self.chunk_size)
        self.overlap = int(self.overlap or 0)

    def to_dict(self) -> Dict[str, Any]:
        return {"chunk_size": self.chunk_size, "overlap": self.overlap}


@dataclass
class ContentTypeConfig:
    """Per content type indexing configuration."""
    enabled: bool = True
    chunking_strategy: str = "paragraph"
    chunking_settings: ChunkingSettings = field(default_factory=lambda: ChunkingSettings(chunk_size=3))

    def __post_init__(self):
        if isinstance(self.chunking_settings, dict):
            self.chunking_settings = ChunkingSettings(**self.chunking_settings)


def _default_content_types() -> Dict[str, ContentTypeConfig]:
    return {
        "post": ContentTypeConfig(),
        "page": ContentTypeConfig(),
        "attachment": ContentTypeConfig(chunking_strategy="page", chunking_settings=ChunkingSettings()),
    }


@dataclass
class EmbeddingConfig:
    """Active embedding provider and its settings."""
    provider: str = "openai"
    settings: Dict[str, Any] = field(default_factory=dict)

    API_KEY_ENV = {
        "openai": "OPENAI_API_KEY",
        "ollama": "OLLAMA_API_KEY",
    }

    def get(self, key: str, default: Any = None) -> Any:
        """Read a provider setting."""
        value = self.settings.get(key)
        return default if value in (None, "") else value

    def get_api_key(self) -> Optional[str]:
        """Get API key from settings or environment."""
        env_name = self.settings.get("api_key_env") or self.API_KEY_ENV.get(self.provider)
        return self.get("api_key") or (os.environ.get(env_name) if env_name else None)


@dataclass
class VectorStoreConfig:
    """Active vector store and its settings."""
    provider: str = "sqlite"
    db_path: Path = field(default_factory=lambda: Path("vectors.db"))
    url: str = "http://localhost:6333"
    api_key: Optional[str] = None
    timeout_seconds: float = 30.0
    site_id: int = 1
    site_url: str = "http://localhost"
    collection_name: Optional[str] = None

    def __post_init__(self):
        if isinstance(self.db_path, str):
            self.db_path = Path(self.db_path)
        self.site_id = int(self.site_id)

    def get_api_key(self) -> Optional[str]:
        """Get API key from config or environment."""
        return self.api_key or os.environ.get("QDRANT_API_KEY")

    def get_collection_name(self) -> str:
        """Name of the standard collection for this site."""
        return self.collection_name or collection_name_for(self.site_id, self.site_url)


def collection_name_for(site_id: int, site_url: str) -> str:
    """
    Derive a stable collection name for a site.

    Args:
        site_id: Numeric site identifier
        site_url: Canonical site URL

    Returns:
        Name like ``site_1_1a2b3c4d``
    """
    digest = hashlib.sha256(site_url.encode("utf-8")).hexdigest()[:8]
    return f"site_{site_id}_{digest}"


@dataclass
class WorkerConfig:
    """Execution limits for one worker invocation."""
    batch_size: int = 3
    time_budget_seconds: float = 15.0
    max_attempts: int = 4

    def __post_init__(self):
        if self.batch_size < 1:
            raise ValueError(f"batch_size must be positive, got {self.batch_size}")
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be positive, got {self.max_attempts}")


@dataclass
class IndexerConfig:
    """Main configuration for the indexing pipeline."""
    data_dir: Path = field(default_factory=lambda: Path("data"))
    status_db_path: Optional[Path] = None
    scheduler_db_path: Optional[Path] = None

    content_types: Dict[str, ContentTypeConfig] = field(default_factory=_default_content_types)
    embedding: EmbeddingConfig = field(default_factory=EmbeddingConfig)
    vector_store: VectorStoreConfig = field(default_factory=VectorStoreConfig)
    worker: WorkerConfig = field(default_factory=WorkerConfig)

    def __post_init__(self):
        if isinstance(self.data_dir, str):
            self.data_dir = Path(self.data_dir)
        if isinstance(self.status_db_path, str):
            self.status_db_path = Path(self.status_db_path)
        if isinstance(self.scheduler_db_path, str):
            self.scheduler_db_path = Path(self.scheduler_db_path)
        if self.status_db_path is None:
            self.status_db_path = self.data_dir / "status.db"
        if self.scheduler_db_path is None:
            self.scheduler_db_path = self.data_dir / "scheduler.db"
        self.content_types = {
            name: ContentTypeConfig(**ct) if isinstance(ct, dict) else ct
            for name, ct in self.content_types.items()
        }
        if isinstance(self.embedding, dict):
            self.embedding = EmbeddingConfig(**self.embedding)
        if isinstance(self.vector_store, dict):
            self.vector_store = VectorStoreConfig(**self.vector_store)
        if isinstance(self.worker, dict):
            self.worker = WorkerConfig(**self.worker)

    def get_content_type(self, content_type: str) -> Optional[ContentTypeConfig]:
        """Config for a content type, or None when it is not configured."""
        return self.content_types.get(content_type)

    def is_enabled(self, content_type: str) -> bool:
        ct = self.content_types.get(content_type)
        return ct is not None and ct.enabled

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "IndexerConfig":
        """Build config from a plain dictionary (e.g. parsed JSON)."""
        return cls(**data)


def load_config(path: Path) -> IndexerConfig:
    """
    Load configuration from a JSON file.

    Args:
        path: JSON file path

    Returns:
        Parsed configuration

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the file is not valid JSON
    """
    path = Path(path)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid config file {path}: {e}") from e
    return IndexerConfig.from_dict(data)
