"""
Data models for the ragindex package.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional
import json
import uuid


class JobOperation(Enum):
    """Operations an index job can perform."""
    UPDATE = "update"
    DELETE = "delete"


class IndexStatus(Enum):
    """Indexing state of a content item."""
    QUEUED = "queued"
    PROCESSING = "processing"
    INDEXED = "indexed"
    FAILED = "failed"


@dataclass(frozen=True)
class ContentRef:
    """Identity of a content item: unique per (content_id, content_type)."""
    content_id: int
    content_type: str

    def __post_init__(self):
        if isinstance(self.content_id, str):
            object.__setattr__(self, "content_id", int(self.content_id))
        if not self.content_type:
            raise ValueError("content_type must not be empty")

    @property
    def key(self) -> str:
        """Stable string key, used for job locking."""
        return f"{self.content_type}:{self.content_id}"

    def as_filter(self) -> Dict[str, Any]:
        """Vector store filter matching every vector of this item."""
        return {"content_id": self.content_id, "content_type": self.content_type}

    def __str__(self) -> str:
        return f"{self.content_type} #{self.content_id}"


@dataclass
class RawSegment:
    """Text produced by an extractor for one logical unit (page, slide, body)."""
    content: str
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class Chunk:
    """Final unit of text sent to embedding."""
    content: str
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def chunk_index(self) -> int:
        return self.metadata["chunk_index"]

    def to_dict(self) -> Dict[str, Any]:
        return {"content": self.content, "metadata": dict(self.metadata)}


@dataclass
class VectorRecord:
    """A vector with its payload, as stored in a vector store."""
    vector: List[float]
    payload: Dict[str, Any]
    id: Optional[str] = None

    def __post_init__(self):
        if not self.id:
            self.id = str(uuid.uuid4())

    @classmethod
    def from_chunk(cls, ref: ContentRef, chunk: Chunk, vector: List[float]) -> "VectorRecord":
        """Build the record stored for one embedded chunk."""
        return cls(
            vector=list(vector),
            payload={
                "content_id": ref.content_id,
                "content_type": ref.content_type,
                "chunk_index": chunk.chunk_index,
                "chunk_text": chunk.content,
                "metadata": dict(chunk.metadata),
            },
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "vector": self.vector, "payload": self.payload}


@dataclass
class QueryResult:
    """A similarity match returned by a vector store."""
    id: Any
    score: float
    payload: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "score": self.score, "payload": self.payload}


@dataclass
class IndexStatusRecord:
    """Per-ContentRef indexing state."""
    content_ref: ContentRef
    status: IndexStatus
    content_hash: str = ""
    chunking_strategy: str = ""
    chunking_settings: Dict[str, Any] = field(default_factory=dict)
    embedding_model: str = ""
    embedding_dimensions: int = 0
    chunk_count: int = 0
    last_indexed_at: Optional[datetime] = None
    error_message: Optional[str] = None
    retry_count: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        if isinstance(self.status, str):
            self.status = IndexStatus(self.status)
        if isinstance(self.chunking_settings, str):
            self.chunking_settings = json.loads(self.chunking_settings) if self.chunking_settings else {}
        for name in ("last_indexed_at", "created_at", "updated_at"):
            value = getattr(self, name)
            if isinstance(value, str):
                setattr(self, name, datetime.fromisoformat(value))

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "content_id": self.content_ref.content_id,
            "content_type": self.content_ref.content_type,
            "status": self.status.value,
            "content_hash": self.content_hash,
            "chunking_strategy": self.chunking_strategy,
            "chunking_settings": self.chunking_settings,
            "embedding_model": self.embedding_model,
            "embedding_dimensions": self.embedding_dimensions,
            "chunk_count": self.chunk_count,
            "last_indexed_at": self.last_indexed_at.isoformat() if self.last_indexed_at else None,
            "error_message": self.error_message,
            "retry_count": self.retry_count,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "IndexStatusRecord":
        """Deserialize from dictionary (or a status table row)."""
        return cls(
            content_ref=ContentRef(data["content_id"], data["content_type"]),
            status=data["status"],
            content_hash=data.get("content_hash") or "",
            chunking_strategy=data.get("chunking_strategy") or "",
            chunking_settings=data.get("chunking_settings") or {},
            embedding_model=data.get("embedding_model") or "",
            embedding_dimensions=data.get("embedding_dimensions") or 0,
            chunk_count=data.get("chunk_count") or 0,
            last_indexed_at=data.get("last_indexed_at"),
            error_message=data.get("error_message"),
            retry_count=data.get("retry_count") or 0,
            created_at=data.get("created_at"),
            updated_at=data.get("updated_at"),
        )


@dataclass
class RetryTicket:
    """Arguments of a delayed retry job while it waits in the scheduler."""
    content_ref: ContentRef
    attempt_count: int
    original_error: str = ""

    def to_args(self) -> List[Any]:
        """Positional job arguments."""
        return [
            self.content_ref.content_id,
            self.content_ref.content_type,
            self.attempt_count,
            self.original_error,
        ]

    @classmethod
    def from_args(cls, args: List[Any]) -> "RetryTicket":
        content_id, content_type, attempt_count, original_error = args
        return cls(ContentRef(content_id, content_type), int(attempt_count), original_error or "")
