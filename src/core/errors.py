# src/core/errors.py — v1
"""Exception hierarchy for the resumable-execution core.

Absence and corruption of on-disk state are never raised; they are
normalized to a miss / None / False by the components. Only programmer
misuse and lock contention surface here.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from aiscan.lock.models import LockInfo


class AiScanError(Exception):
    """Base class for aiscan errors."""


class CheckpointNotLoadedError(AiScanError):
    """Raised when flushing before a checkpoint was loaded or initialized."""

    def __init__(self) -> None:
        super().__init__(
            "Cannot flush: no checkpoint loaded. "
            "Call load_checkpoint() or init_checkpoint() first."
        )


class CheckpointNotFoundError(AiScanError):
    """Raised when updating a per-scan criteria checkpoint that does not exist."""

    def __init__(self, scan_id: str) -> None:
        self.scan_id = scan_id
        super().__init__(f"No checkpoint found for scan {scan_id}")


class LockHeldError(AiScanError):
    """Raised when another live run holds the execution lock."""

    def __init__(self, lock_path: str, holder: LockInfo | None = None) -> None:
        self.lock_path = lock_path
        self.holder = holder
        if holder is not None:
            detail = f"held by PID {holder.pid} on {holder.hostname} since {holder.started_at.isoformat()}"
        else:
            detail = "held by an unknown process"
        super().__init__(f"Lock {lock_path} is {detail}")
