"""
Content extractors for the ragindex package.
"""

from .base import BaseExtractor, ExtractorRegistry, FileExtractor
from .html import html_to_text, table_to_markdown
from .pdf import PDFExtractor
from .records import CommentExtractor, LinkExtractor, PostExtractor
from .slides import PptxExtractor
from .source import ContentSource, ManifestContentSource
from .text import TextExtractor
from .word import DocxExtractor

__all__ = [
    "BaseExtractor",
    "ExtractorRegistry",
    "FileExtractor",
    "ContentSource",
    "ManifestContentSource",
    "CommentExtractor",
    "DocxExtractor",
    "LinkExtractor",
    "PDFExtractor",
    "PostExtractor",
    "PptxExtractor",
    "TextExtractor",
    "html_to_text",
    "table_to_markdown",
    "create_default_extractors",
]


def create_default_extractors(source: ContentSource) -> ExtractorRegistry:
    """Create a registry with all default extractors."""
    registry = ExtractorRegistry()
    registry.register(PostExtractor(source))
    registry.register(CommentExtractor(source))
    registry.register(LinkExtractor(source))
    registry.register(TextExtractor(source))
    registry.register(PDFExtractor(source))
    registry.register(DocxExtractor(source))
    registry.register(PptxExtractor(source))
    return registry
