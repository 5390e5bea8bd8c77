"""
Word, sentence and paragraph chunking strategies.
"""

import re
from typing import Iterator, List

from .base import UnitChunker


class WordChunker(UnitChunker):
    """Windows of ``chunk_size`` whitespace-separated words, with optional overlap."""

    name = "word"
    default_chunk_size = 50
    supports_overlap = True

    WHITESPACE = re.compile(r"\s+")

    def split_units(self, text: str) -> List[str]:
        return [w for w in self.WHITESPACE.split(text.strip()) if w]


class SentenceChunker(UnitChunker):
    """Windows of ``chunk_size`` sentences."""

    name = "sentence"
    default_chunk_size = 5

    SENTENCE_ENDINGS = re.compile(r"(?<=[.!?])\s+")

    def split_units(self, text: str) -> List[str]:
        return [s.strip() for s in self.SENTENCE_ENDINGS.split(text.strip()) if s.strip()]


class ParagraphChunker(UnitChunker):
    """
    Windows of ``chunk_size`` paragraphs separated by blank lines.

    Any window longer than ``MAX_CHUNK_CHARS`` is split again on whitespace
    into pieces of at most ``SAFETY_WORDS`` words, which keeps text without
    paragraph breaks from producing a single huge chunk.
    """

    name = "paragraph"
    default_chunk_size = 3
    joiner = "\n\n"

    PARAGRAPH_PATTERN = re.compile(r"\n\s*\n")
    MAX_CHUNK_CHARS = 1500
    SAFETY_WORDS = 250

    def split_units(self, text: str) -> List[str]:
        return [p.strip() for p in self.PARAGRAPH_PATTERN.split(text.strip()) if p.strip()]

    def split_text(self, text: str, chunk_size: int, overlap: int) -> Iterator[str]:
        for window in super().split_text(text, chunk_size, overlap):
            if len(window) <= self.MAX_CHUNK_CHARS:
                yield window
                continue
            words = window.split()
            for start in range(0, len(words), self.SAFETY_WORDS):
                yield " ".join(words[start:start + self.SAFETY_WORDS])
