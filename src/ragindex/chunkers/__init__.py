"""
Chunking strategies for the ragindex package.
"""

from .base import BaseChunker, UnitChunker, normalize_overlap
from .character import CharacterChunker
from .page import PageChunker
from .text_units import ParagraphChunker, SentenceChunker, WordChunker

__all__ = [
    "BaseChunker",
    "UnitChunker",
    "CharacterChunker",
    "PageChunker",
    "ParagraphChunker",
    "SentenceChunker",
    "WordChunker",
    "normalize_overlap",
    "DEFAULT_CHUNKERS",
]


DEFAULT_CHUNKERS = {
    cls.name: cls
    for cls in (CharacterChunker, WordChunker, SentenceChunker, ParagraphChunker, PageChunker)
}
