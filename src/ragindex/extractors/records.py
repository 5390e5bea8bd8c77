"""
Extractors for structured records: posts, comments and links.
"""

import logging
from typing import List, Optional

from ..exceptions import ExtractionError
from ..models import ContentRef, RawSegment
from .base import BaseExtractor
from .html import html_to_text
from .source import ContentSource

logger = logging.getLogger(__name__)


class PostExtractor(BaseExtractor):
    """HTML body of a post-like record, as a single segment."""

    def __init__(self, source: ContentSource, content_types: Optional[List[str]] = None):
        super().__init__(source)
        self._content_types = [t.lower() for t in (content_types or ["post", "page"])]

    def supported_types(self) -> List[str]:
        return self._content_types

    def _extract(self, ref: ContentRef) -> List[RawSegment]:
        record = self.source.get_record(ref)
        if record is None:
            raise ExtractionError(f"Record not found: {ref}")

        text = html_to_text(record.get("content") or "")
        logger.debug(f"Extracted {len(text)} chars from {ref}")
        return [RawSegment(content=text, metadata={"page": 1})]


class CommentExtractor(BaseExtractor):
    """A comment with its author and the title of the item it belongs to."""

    def supported_types(self) -> List[str]:
        return ["comment"]

    def _extract(self, ref: ContentRef) -> List[RawSegment]:
        record = self.source.get_record(ref)
        if record is None:
            raise ExtractionError(f"Comment not found: {ref}")

        author = record.get("author") or "Anonymous"
        post_title = record.get("post_title") or ""
        body = html_to_text(record.get("content") or "")
        if not body:
            return []

        text = f"Comment by {author}\nOn: {post_title}\n\n{body}"
        metadata = {
            "page": 1,
            "comment_author": author,
            "post_title": post_title,
        }
        if record.get("parent_id") is not None:
            metadata["parent_id"] = record["parent_id"]
        return [RawSegment(content=text, metadata=metadata)]


class LinkExtractor(BaseExtractor):
    """A bookmark/link record: name, URL and optional description."""

    def supported_types(self) -> List[str]:
        return ["link"]

    def _extract(self, ref: ContentRef) -> List[RawSegment]:
        record = self.source.get_record(ref)
        if record is None:
            raise ExtractionError(f"Link not found: {ref}")

        name = record.get("name") or record.get("title") or ""
        url = record.get("url") or ""
        text = f"{name}\n[Source: {url}]"
        description = (record.get("description") or "").strip()
        if description:
            text += f"\n\nDescription: {description}"
        return [RawSegment(content=text, metadata={"page": 1, "url": url})]
