"""
Base extractor class and registry.
"""

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Optional

from ..exceptions import ExtractionError
from ..models import ContentRef, RawSegment
from .source import ContentSource

logger = logging.getLogger(__name__)


class BaseExtractor(ABC):
    """Abstract base class for content extractors."""

    def __init__(self, source: ContentSource):
        self.source = source

    @abstractmethod
    def supported_types(self) -> List[str]:
        """Return content types or MIME types this extractor handles."""
        pass

    def supports(self, type_or_mime: str) -> bool:
        """
        Check if this extractor can handle a content type or MIME type.

        Args:
            type_or_mime: Content type (e.g. 'post') or MIME type

        Returns:
            True if supported
        """
        return bool(type_or_mime) and type_or_mime.lower() in self.supported_types()

    def extract(self, ref: ContentRef) -> List[RawSegment]:
        """
        Extract raw segments for a content item.

        Never raises: a missing source, unreadable file or parse failure is
        logged and yields an empty list.

        Args:
            ref: Content item

        Returns:
            Non-empty segments in document order
        """
        try:
            segments = self._extract(ref)
        except ExtractionError as e:
            logger.warning(f"{self.__class__.__name__} could not extract {ref}: {e}")
            return []
        except Exception as e:
            logger.error(f"{self.__class__.__name__} failed for {ref}: {e}", exc_info=True)
            return []
        return [s for s in segments if s.content and s.content.strip()]

    @abstractmethod
    def _extract(self, ref: ContentRef) -> List[RawSegment]:
        """
        Extract segments; may raise.

        Raises:
            ExtractionError: If the source is missing or unreadable
        """
        pass


class FileExtractor(BaseExtractor):
    """Extractor for content stored as a file (attachments)."""

    def _extract(self, ref: ContentRef) -> List[RawSegment]:
        file_path = self.source.get_file_path(ref)
        if file_path is None:
            raise ExtractionError(f"No file recorded for {ref}")
        file_path = Path(file_path)
        if not file_path.exists():
            raise ExtractionError(f"File not found: {file_path}")
        if not file_path.is_file():
            raise ExtractionError(f"Not a file: {file_path}")
        return self.extract_file(file_path)

    @abstractmethod
    def extract_file(self, file_path: Path) -> List[RawSegment]:
        """
        Extract segments from a file.

        Args:
            file_path: Existing file

        Returns:
            Segments in document order

        Raises:
            ExtractionError: If every parse path failed
        """
        pass


class ExtractorRegistry:
    """Registry mapping content types and MIME types to extractors."""

    def __init__(self):
        self._extractors: List[BaseExtractor] = []
        self._type_map: Dict[str, BaseExtractor] = {}

    def register(self, extractor: BaseExtractor) -> None:
        """
        Register an extractor for every type it supports.

        Args:
            extractor: Extractor instance

        Raises:
            TypeError: If extractor is not a BaseExtractor
        """
        if not isinstance(extractor, BaseExtractor):
            raise TypeError(f"Not an extractor: {extractor!r}")
        self._extractors.append(extractor)
        for type_name in extractor.supported_types():
            self._type_map[type_name.lower()] = extractor

    def get(self, type_or_mime: Optional[str]) -> Optional[BaseExtractor]:
        """Extractor for a content type or MIME type, or None."""
        if not type_or_mime:
            return None
        return self._type_map.get(type_or_mime.lower())

    def supported_types(self) -> List[str]:
        return list(self._type_map.keys())

    def __len__(self) -> int:
        return len(self._extractors)
