"""
PDF attachments, one segment per page.
"""

import logging
from pathlib import Path
from typing import List

from ..exceptions import ExtractionError
from ..models import RawSegment
from .base import FileExtractor

logger = logging.getLogger(__name__)


class PDFExtractor(FileExtractor):
    """
    PDF extractor using pymupdf4llm.

    Falls back to raw PyMuPDF text and then to pypdf, since damaged files
    that one parser rejects are often readable by another.
    """

    def supported_types(self) -> List[str]:
        return ["application/pdf"]

    def extract_file(self, file_path: Path) -> List[RawSegment]:
        errors = []
        for method in (self._extract_markdown, self._extract_text_fallback, self._extract_pypdf_fallback):
            try:
                pages = method(file_path)
            except Exception as e:
                logger.warning(f"{method.__name__} failed for {file_path}: {e}")
                errors.append(f"{method.__name__}: {e}")
                continue
            segments = [
                RawSegment(content=text.strip(), metadata={"page": i + 1})
                for i, text in enumerate(pages)
                if text and text.strip()
            ]
            if segments:
                logger.debug(f"{method.__name__} extracted {len(segments)} pages from {file_path}")
                return segments
            errors.append(f"{method.__name__}: no text")
        raise ExtractionError(f"No text extracted from PDF {file_path}: {'; '.join(errors)}")

    def _extract_markdown(self, file_path: Path) -> List[str]:
        import pymupdf4llm
        pages_data = pymupdf4llm.to_markdown(str(file_path), page_chunks=True)
        return [pd["text"] if isinstance(pd, dict) else str(pd) for pd in pages_data]

    def _extract_text_fallback(self, file_path: Path) -> List[str]:
        import fitz
        doc = fitz.open(str(file_path))
        try:
            return [page.get_text() for page in doc]
        finally:
            doc.close()

    def _extract_pypdf_fallback(self, file_path: Path) -> List[str]:
        from pypdf import PdfReader
        reader = PdfReader(str(file_path), strict=False)
        return [page.extract_text() or "" for page in reader.pages]
