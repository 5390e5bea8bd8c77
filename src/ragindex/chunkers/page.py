"""
Pass-through chunking for paginated sources.
"""

import logging
from typing import Any, Dict, Iterator, List, Optional, Sequence

from ..config import ChunkingSettings
from ..models import Chunk, RawSegment
from .base import BaseChunker
from .text_units import ParagraphChunker

logger = logging.getLogger(__name__)


class PageChunker(BaseChunker):
    """One chunk per extracted segment (page, slide, body)."""

    name = "page"

    # A single segment above this size means page boundaries were not detected
    OVERSIZED_CHARS = 3000
    FALLBACK_SETTINGS = ChunkingSettings(chunk_size=3)

    def chunk(
        self,
        segments: Sequence[RawSegment],
        settings: Optional[ChunkingSettings] = None,
        global_metadata: Optional[Dict[str, Any]] = None,
    ) -> List[Chunk]:
        if len(segments) == 1 and len(segments[0].content) > self.OVERSIZED_CHARS:
            logger.info(
                f"Single oversized segment ({len(segments[0].content)} chars), "
                f"delegating to paragraph chunking"
            )
            return ParagraphChunker().chunk(segments, self.FALLBACK_SETTINGS, global_metadata)
        return super().chunk(segments, settings, global_metadata)

    def split_text(self, text: str, chunk_size: int, overlap: int) -> Iterator[str]:
        yield text.strip()
