# src/lock/models.py — v1
"""Lock file record."""

from __future__ import annotations

from aiscan.core.models import CamelModel, UtcDatetime


class LockInfo(CamelModel):
    """Owner of the execution lock, as written to the lock file."""

    pid: int
    started_at: UtcDatetime
    hostname: str
