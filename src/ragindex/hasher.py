"""
Content fingerprinting for change detection.
"""

import hashlib
from typing import Iterable

from .models import RawSegment


def compute_content_hash(segments: Iterable[RawSegment]) -> str:
    """
    Compute SHA-256 hash of all segment text, in extraction order.

    Args:
        segments: Extracted segments

    Returns:
        Hex digest
    """
    hasher = hashlib.sha256()
    for segment in segments:
        hasher.update(segment.content.encode("utf-8"))
    return hasher.hexdigest()
