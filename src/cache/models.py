# src/cache/models.py — v2
"""Cache domain models: CacheKey, CacheEntry, CacheStats."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from aiscan.core.models import AiCriteriaVerification, CamelModel, UtcDatetime, WcagLevel


class CacheKey(CamelModel):
    """Identity of one cached verification batch.

    Derived from page content, never stored on its own; the filename
    ``{content_hash}_{wcag_level}_{batch_number}`` is reconstructible
    from the three fields.
    """

    model_config = ConfigDict(frozen=True)

    content_hash: str = Field(pattern=r"^[0-9a-f]{16}$")
    wcag_level: WcagLevel
    batch_number: int = Field(ge=0)

    @property
    def stem(self) -> str:
        return f"{self.content_hash}_{self.wcag_level}_{self.batch_number}"


class CacheEntry(CamelModel):
    """A complete verification result set as written to disk."""

    key: CacheKey
    verifications: list[AiCriteriaVerification]
    tokens_used: int = Field(ge=0)
    ai_model: str
    created_at: UtcDatetime
    expires_at: UtcDatetime


class CacheStats(BaseModel):
    """Process-lifetime cache counters. Never persisted."""

    hits: int = 0
    misses: int = 0
    hit_rate: float = 0.0
    entries_count: int = 0
    total_saved_tokens: int = 0
