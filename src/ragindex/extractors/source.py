"""
Content source: the host application's view of content items.
"""

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Iterable, Optional

from ..models import ContentRef

logger = logging.getLogger(__name__)


class ContentSource(ABC):
    """Looks up content records and attachment files by ContentRef."""

    @abstractmethod
    def get_record(self, ref: ContentRef) -> Optional[Dict[str, Any]]:
        """
        Get the record for a content item.

        Records are plain dicts. Known keys: ``title``, ``content`` (HTML
        body), ``author``, ``post_title``, ``name``, ``url``,
        ``description``, ``source_url``, ``mime_type``, ``file_path``.

        Args:
            ref: Content item

        Returns:
            Record, or None if the item does not exist
        """
        pass

    def get_mime_type(self, ref: ContentRef) -> Optional[str]:
        record = self.get_record(ref)
        return record.get("mime_type") if record else None

    def get_file_path(self, ref: ContentRef) -> Optional[Path]:
        record = self.get_record(ref)
        if not record or not record.get("file_path"):
            return None
        return Path(record["file_path"])

    def get_source_url(self, ref: ContentRef) -> str:
        record = self.get_record(ref)
        if not record:
            return ""
        return record.get("source_url") or record.get("url") or ""


class ManifestContentSource(ContentSource):
    """
    Content source backed by an in-memory list of records.

    Each record carries ``content_id`` and ``content_type`` plus the keys
    documented on ``ContentSource.get_record``. Relative ``file_path``
    values are resolved against ``base_dir``.
    """

    def __init__(self, records: Iterable[Dict[str, Any]] = (), base_dir: Optional[Path] = None):
        self.base_dir = Path(base_dir) if base_dir else None
        self._records: Dict[ContentRef, Dict[str, Any]] = {}
        for record in records:
            self.add(record)

    @classmethod
    def from_file(cls, path: Path) -> "ManifestContentSource":
        """
        Load a JSON manifest of the form ``{"records": [...]}``.

        Args:
            path: Manifest path; relative file paths resolve against its directory
        """
        path = Path(path)
        data = json.loads(path.read_text(encoding="utf-8"))
        records = data.get("records", []) if isinstance(data, dict) else data
        logger.debug(f"Loaded {len(records)} records from manifest {path}")
        return cls(records, base_dir=path.parent)

    def add(self, record: Dict[str, Any]) -> ContentRef:
        """Add or replace a record."""
        ref = ContentRef(record["content_id"], record["content_type"])
        record = dict(record)
        if record.get("file_path") and self.base_dir is not None:
            file_path = Path(record["file_path"])
            if not file_path.is_absolute():
                record["file_path"] = str(self.base_dir / file_path)
        self._records[ref] = record
        return ref

    def remove(self, ref: ContentRef) -> None:
        self._records.pop(ref, None)

    def get_record(self, ref: ContentRef) -> Optional[Dict[str, Any]]:
        return self._records.get(ref)

    def refs(self):
        """All known content refs."""
        return list(self._records.keys())

    def __len__(self) -> int:
        return len(self._records)
