"""
Plain text and markdown attachments.
"""

import logging
from pathlib import Path
from typing import List

from ..exceptions import ExtractionError
from ..models import RawSegment
from .base import FileExtractor

logger = logging.getLogger(__name__)


class TextExtractor(FileExtractor):
    """Whole file as one segment."""

    MIMETYPES = ["text/plain", "text/markdown", "text/x-markdown"]
    ENCODINGS = ["utf-8", "utf-16", "latin-1", "cp1252"]

    def supported_types(self) -> List[str]:
        return self.MIMETYPES

    def extract_file(self, file_path: Path) -> List[RawSegment]:
        content = None
        for encoding in self.ENCODINGS:
            try:
                content = file_path.read_text(encoding=encoding)
                break
            except UnicodeDecodeError:
                continue

        if content is None:
            raise ExtractionError(f"Could not decode file with any supported encoding: {file_path}")

        return [RawSegment(content=content.strip(), metadata={"page": 1})]
