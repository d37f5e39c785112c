# src/cache/verification_cache.py — v2
"""File-based cache of AI criteria verification results.

One JSON file per key under ``{cache_dir}/entries/``::

    .ai-scan-cache/
    └── entries/
        ├── a1b2c3d4e5f67890_AA_0.json
        └── a1b2c3d4e5f67890_AA_1.json

Reads never raise for missing, expired or corrupt entries: all three
are reported as a miss. Expired files are only removed by cleanup().
"""

from __future__ import annotations

import logging
import shutil
from datetime import timedelta
from pathlib import Path

from pydantic import ValidationError

from aiscan.cache.fingerprint import derive_key
from aiscan.cache.models import CacheEntry, CacheKey, CacheStats
from aiscan.core.models import AiCriteriaVerification, WcagLevel, utcnow
from aiscan.storage.atomic import atomic_write_text

logger = logging.getLogger(__name__)

DEFAULT_CACHE_DIR = ".ai-scan-cache"
DEFAULT_TTL_DAYS = 7
DEFAULT_MAX_ENTRIES = 1000
ENTRIES_DIR = "entries"


class CriteriaVerificationCache:
    """Content-addressed verification cache with TTL expiration.

    ``max_entries`` is advisory: it is exposed for the caller, the cache
    never evicts by count.
    """

    def __init__(
        self,
        cache_dir: str | Path = DEFAULT_CACHE_DIR,
        ttl_days: float = DEFAULT_TTL_DAYS,
        max_entries: int = DEFAULT_MAX_ENTRIES,
    ) -> None:
        if ttl_days <= 0:
            raise ValueError("ttl_days must be > 0")
        if max_entries <= 0:
            raise ValueError("max_entries must be > 0")
        self._cache_dir = Path(cache_dir).expanduser()
        self._ttl_days = ttl_days
        self._max_entries = max_entries
        self._stats = CacheStats()

    # --- Properties ---

    @property
    def cache_dir(self) -> Path:
        return self._cache_dir

    @property
    def entries_dir(self) -> Path:
        return self._cache_dir / ENTRIES_DIR

    @property
    def ttl_days(self) -> float:
        return self._ttl_days

    @property
    def ttl(self) -> timedelta:
        return timedelta(days=self._ttl_days)

    @property
    def max_entries(self) -> int:
        return self._max_entries

    # --- Keys ---

    @staticmethod
    def generate_key(
        html_content: str, wcag_level: WcagLevel, batch_number: int
    ) -> CacheKey:
        """Derive the cache key for page content, WCAG level and batch index."""
        return derive_key(html_content, wcag_level, batch_number)

    # --- Reads ---

    async def get(self, key: CacheKey) -> CacheEntry | None:
        """Return the unexpired entry for ``key`` or None.

        Absent, expired and unreadable entries all count as a miss.
        A hit adds the entry's tokens to ``total_saved_tokens``.
        """
        entry = self._read_entry(self._entry_path(key))
        if entry is None or self._is_expired(entry):
            self._stats.misses += 1
            self._update_hit_rate()
            logger.debug("Cache miss for %s", key.stem)
            return None

        self._stats.hits += 1
        self._stats.total_saved_tokens += entry.tokens_used
        self._update_hit_rate()
        logger.debug("Cache hit for %s (%d tokens saved)", key.stem, entry.tokens_used)
        return entry

    async def has(self, key: CacheKey) -> bool:
        """Check for a valid entry without touching statistics."""
        entry = self._read_entry(self._entry_path(key))
        return entry is not None and not self._is_expired(entry)

    def get_stats(self) -> CacheStats:
        """Return a snapshot of the statistics."""
        return self._stats.model_copy()

    # --- Writes ---

    async def set(
        self,
        key: CacheKey,
        verifications: list[AiCriteriaVerification],
        tokens_used: int,
        ai_model: str,
    ) -> CacheEntry:
        """Store a verification result set, overwriting any previous entry."""
        now = utcnow()
        entry = CacheEntry(
            key=key,
            verifications=verifications,
            tokens_used=tokens_used,
            ai_model=ai_model,
            created_at=now,
            expires_at=now + self.ttl,
        )
        atomic_write_text(self._entry_path(key), entry.to_json())
        self._stats.entries_count += 1
        return entry

    async def cleanup(self) -> int:
        """Remove expired and unparsable entries.

        Returns:
            Number of files removed.
        """
        removed = 0
        remaining = 0
        for path in self._entry_files():
            entry = self._read_entry(path)
            if entry is None or self._is_expired(entry):
                path.unlink(missing_ok=True)
                removed += 1
            else:
                remaining += 1

        self._stats.entries_count = remaining
        if removed:
            logger.info("Cache cleanup removed %d entries, %d remain", removed, remaining)
        return removed

    async def clear_all(self) -> None:
        """Remove every entry and reset statistics."""
        if self.entries_dir.exists():
            shutil.rmtree(self.entries_dir)
        self.entries_dir.mkdir(parents=True, exist_ok=True)
        self._stats = CacheStats()
        logger.info("Cache cleared: %s", self.entries_dir)

    async def warmup(self) -> None:
        """Recount valid entries on disk; hit/miss counters are left alone."""
        self.entries_dir.mkdir(parents=True, exist_ok=True)
        valid = 0
        for path in self._entry_files():
            entry = self._read_entry(path)
            if entry is not None and not self._is_expired(entry):
                valid += 1
        self._stats.entries_count = valid
        logger.debug("Cache warmed up with %d entries", valid)

    # --- Internal ---

    def _entry_path(self, key: CacheKey) -> Path:
        return self.entries_dir / f"{key.stem}.json"

    def _entry_files(self) -> list[Path]:
        if not self.entries_dir.is_dir():
            return []
        return sorted(p for p in self.entries_dir.glob("*.json") if p.is_file())

    def _read_entry(self, path: Path) -> CacheEntry | None:
        try:
            return CacheEntry.model_validate_json(path.read_bytes())
        except FileNotFoundError:
            return None
        except (OSError, ValidationError, ValueError) as e:
            logger.warning("Failed to read cache entry %s: %s", path.name, e)
            return None

    @staticmethod
    def _is_expired(entry: CacheEntry) -> bool:
        return utcnow() > entry.expires_at

    def _update_hit_rate(self) -> None:
        total = self._stats.hits + self._stats.misses
        self._stats.hit_rate = self._stats.hits / total if total else 0.0
