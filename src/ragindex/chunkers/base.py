"""
Base chunker class.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

from ..config import ChunkingSettings
from ..models import Chunk, RawSegment


def normalize_overlap(chunk_size: int, overlap: int) -> int:
    """Overlap that can never stall a window: 0 unless 0 <= overlap < chunk_size."""
    if overlap < 0 or overlap >= chunk_size:
        return 0
    return overlap


class BaseChunker(ABC):
    """Abstract base class for chunking strategies."""

    name: str = ""
    default_chunk_size: int = 1
    supports_overlap: bool = False

    def chunk(
        self,
        segments: Sequence[RawSegment],
        settings: Optional[ChunkingSettings] = None,
        global_metadata: Optional[Dict[str, Any]] = None,
    ) -> List[Chunk]:
        """
        Split segments into chunks.

        Chunk indices start at 0 and continue across segments.

        Args:
            segments: Extracted segments, in order
            settings: Window settings (strategy defaults when omitted)
            global_metadata: Metadata merged into every chunk

        Returns:
            Ordered list of chunks
        """
        chunk_size, overlap = self.resolve_settings(settings)
        chunks: List[Chunk] = []
        for segment in segments:
            if not segment.content or not segment.content.strip():
                continue
            for text in self.split_text(segment.content, chunk_size, overlap):
                chunks.append(Chunk(
                    content=text,
                    metadata=self.merge_metadata(global_metadata, segment.metadata, len(chunks)),
                ))
        return chunks

    def resolve_settings(self, settings: Optional[ChunkingSettings]) -> Tuple[int, int]:
        """Effective (chunk_size, overlap) for this strategy."""
        settings = settings or ChunkingSettings()
        chunk_size = settings.chunk_size if settings.chunk_size and settings.chunk_size > 0 else self.default_chunk_size
        overlap = normalize_overlap(chunk_size, settings.overlap) if self.supports_overlap else 0
        return chunk_size, overlap

    @staticmethod
    def merge_metadata(
        global_metadata: Optional[Dict[str, Any]],
        segment_metadata: Optional[Dict[str, Any]],
        chunk_index: int,
    ) -> Dict[str, Any]:
        merged = dict(global_metadata or {})
        merged.update(segment_metadata or {})
        merged["chunk_index"] = chunk_index
        return merged

    @abstractmethod
    def split_text(self, text: str, chunk_size: int, overlap: int) -> Iterator[str]:
        """
        Split the text of one segment into chunk texts.

        Args:
            text: Segment text (never blank)
            chunk_size: Window size in strategy units
            overlap: Normalized overlap in strategy units

        Yields:
            Non-empty chunk texts
        """
        pass


class UnitChunker(BaseChunker):
    """Groups text units (words, sentences, paragraphs) into fixed windows."""

    joiner: str = " "

    @abstractmethod
    def split_units(self, text: str) -> List[str]:
        """Split text into units."""
        pass

    def split_text(self, text: str, chunk_size: int, overlap: int) -> Iterator[str]:
        units = self.split_units(text)
        if not units:
            return
        if len(units) <= chunk_size:
            yield text.strip()
            return

        step = chunk_size - overlap
        for start in range(0, len(units), step):
            yield self.joiner.join(units[start:start + chunk_size])
            if start + chunk_size >= len(units):
                break
