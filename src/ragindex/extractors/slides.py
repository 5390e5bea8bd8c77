"""
PowerPoint (.pptx) attachments, one segment per slide.
"""

import html
import logging
import re
import zipfile
from pathlib import Path
from typing import List
from xml.etree import ElementTree

from ..exceptions import ExtractionError
from ..models import RawSegment
from .base import FileExtractor

logger = logging.getLogger(__name__)

_SLIDE_NAME_RE = re.compile(r"^ppt/slides/slide(\d+)\.xml$")
_TEXT_NODE_RE = re.compile(r"<a:t(?:\s[^>]*)?>(.*?)</a:t>", re.DOTALL)

DRAWING_NS = "{http://schemas.openxmlformats.org/drawingml/2006/main}"


class PptxExtractor(FileExtractor):
    """Reads slide text from the slide XML parts of a .pptx archive."""

    def supported_types(self) -> List[str]:
        return ["application/vnd.openxmlformats-officedocument.presentationml.presentation"]

    def extract_file(self, file_path: Path) -> List[RawSegment]:
        try:
            archive = zipfile.ZipFile(file_path)
        except (zipfile.BadZipFile, OSError) as e:
            raise ExtractionError(f"Cannot open presentation {file_path}: {e}") from e

        segments = []
        with archive:
            for number, name in self._slide_names(archive):
                xml = archive.read(name)
                try:
                    text = self._slide_text(xml)
                except ElementTree.ParseError as e:
                    logger.warning(f"Malformed XML in {name} of {file_path}: {e}, scraping text nodes")
                    text = self._scrape_text_nodes(xml)
                if text.strip():
                    segments.append(RawSegment(content=text.strip(), metadata={"page": number}))
        return segments

    def _slide_names(self, archive: zipfile.ZipFile):
        """(slide number, part name) pairs in slide order."""
        slides = []
        for name in archive.namelist():
            match = _SLIDE_NAME_RE.match(name)
            if match:
                slides.append((int(match.group(1)), name))
        return sorted(slides)

    def _slide_text(self, xml: bytes) -> str:
        root = ElementTree.fromstring(xml)
        paragraphs = []
        for paragraph in root.iter(f"{DRAWING_NS}p"):
            text = "".join(node.text or "" for node in paragraph.iter(f"{DRAWING_NS}t")).strip()
            if text:
                paragraphs.append(text)
        return "\n".join(paragraphs)

    def _scrape_text_nodes(self, xml: bytes) -> str:
        raw = xml.decode("utf-8", errors="replace")
        return " ".join(html.unescape(t).strip() for t in _TEXT_NODE_RE.findall(raw) if t.strip())
