# src/cache/fingerprint.py — v3
"""Content fingerprinting for verification cache keys."""

from __future__ import annotations

import hashlib

from aiscan.cache.models import CacheKey
from aiscan.core.models import WcagLevel

CONTENT_HASH_LENGTH = 16


def content_hash(content: str) -> str:
    """SHA-256 of the content, truncated to a 16-char hex prefix."""
    digest = hashlib.sha256(content.encode("utf-8")).hexdigest()
    return digest[:CONTENT_HASH_LENGTH]


def derive_key(content: str, wcag_level: WcagLevel, batch_number: int) -> CacheKey:
    """Build the cache key for a page's content, WCAG level and criteria batch.

    Identical inputs always give an identical key; a change in any of
    the three gives a different one.
    """
    return CacheKey(
        content_hash=content_hash(content),
        wcag_level=wcag_level,
        batch_number=batch_number,
    )
