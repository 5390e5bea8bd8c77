"""
Fixed-size character windows with word-boundary snapping.
"""

from typing import Iterator

from .base import BaseChunker


class CharacterChunker(BaseChunker):
    """Splits text into windows of ``chunk_size`` characters."""

    name = "character"
    default_chunk_size = 300
    supports_overlap = True

    # A window is cut at its last space only if that space is in the final 20%
    SNAP_RATIO = 0.8

    def split_text(self, text: str, chunk_size: int, overlap: int) -> Iterator[str]:
        length = len(text)
        if length <= chunk_size:
            yield text.strip()
            return

        start = 0
        while start < length:
            end = start + chunk_size
            window = text[start:end]
            step = chunk_size

            if end < length:
                last_space = window.rfind(" ")
                if last_space > chunk_size * self.SNAP_RATIO:
                    window = window[:last_space]
                    step = last_space

            piece = window.strip()
            if piece:
                yield piece

            if end >= length:
                break
            start += max(step - overlap, 1)
