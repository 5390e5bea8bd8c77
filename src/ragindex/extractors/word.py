"""
Word (.docx) attachments using python-docx.
"""

import html
import logging
import re
import zipfile
from pathlib import Path
from typing import List

from ..exceptions import ExtractionError
from ..models import RawSegment
from .base import FileExtractor

logger = logging.getLogger(__name__)

_PARAGRAPH_RE = re.compile(r"<w:p[ >].*?</w:p>", re.DOTALL)
_TEXT_NODE_RE = re.compile(r"<w:t(?:\s[^>]*)?>(.*?)</w:t>", re.DOTALL)


class DocxExtractor(FileExtractor):
    """
    Word document extractor.

    DOCX has no reliable page boundaries, so the whole document is one
    segment; the page chunker re-splits it by paragraph when it is large.
    """

    def supported_types(self) -> List[str]:
        return ["application/vnd.openxmlformats-officedocument.wordprocessingml.document"]

    def extract_file(self, file_path: Path) -> List[RawSegment]:
        try:
            content = self._extract_docx(file_path)
        except Exception as e:
            logger.warning(f"python-docx failed for {file_path}: {e}, scraping XML instead")
            content = self._extract_xml_fallback(file_path)
        return [RawSegment(content=content, metadata={"page": 1})]

    def _extract_docx(self, file_path: Path) -> str:
        from docx import Document as DocxDocument

        doc = DocxDocument(str(file_path))
        text_parts = [para.text.strip() for para in doc.paragraphs if para.text.strip()]
        for table in doc.tables:
            table_text = self._extract_table(table)
            if table_text:
                text_parts.append(table_text)
        return "\n\n".join(text_parts)

    def _extract_table(self, table) -> str:
        """Extract text from a table as markdown."""
        rows = []
        for row in table.rows:
            cells = [cell.text.strip().replace("\n", " ") for cell in row.cells]
            rows.append("| " + " | ".join(cells) + " |")

        if len(rows) >= 1:
            col_count = len(table.rows[0].cells) if table.rows else 0
            separator = "| " + " | ".join(["---"] * col_count) + " |"
            rows.insert(1, separator)

        return "\n".join(rows) if rows else ""

    def _extract_xml_fallback(self, file_path: Path) -> str:
        """Read text nodes straight out of word/document.xml."""
        try:
            with zipfile.ZipFile(file_path) as archive:
                xml = archive.read("word/document.xml").decode("utf-8", errors="replace")
        except (zipfile.BadZipFile, KeyError, OSError) as e:
            raise ExtractionError(f"Cannot read Word document {file_path}: {e}") from e

        paragraphs = []
        for paragraph in _PARAGRAPH_RE.findall(xml):
            text = "".join(html.unescape(t) for t in _TEXT_NODE_RE.findall(paragraph)).strip()
            if text:
                paragraphs.append(text)
        return "\n\n".join(paragraphs)
