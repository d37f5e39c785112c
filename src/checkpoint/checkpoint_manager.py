# src/checkpoint/checkpoint_manager.py — v1
"""Run checkpoint with buffered progress writes.

Completed scan ids are buffered in memory by mark_processed() and only
become durable (and visible to is_processed()) on flush(). Anything
buffered at crash time is redone on the next run.
"""

from __future__ import annotations

import logging
from pathlib import Path

from pydantic import ValidationError

from aiscan.checkpoint.models import Checkpoint
from aiscan.core.errors import CheckpointNotLoadedError
from aiscan.core.models import utcnow
from aiscan.storage.atomic import atomic_write_text

logger = logging.getLogger(__name__)

DEFAULT_CHECKPOINT_FILE = ".ai-scan-checkpoint.json"


class CheckpointManager:
    """Loads, buffers and atomically persists a single run Checkpoint."""

    def __init__(self, checkpoint_path: str | Path = DEFAULT_CHECKPOINT_FILE) -> None:
        self._path = Path(checkpoint_path).expanduser()
        self._checkpoint: Checkpoint | None = None
        self._processed: set[str] = set()
        self._pending: list[str] = []

    @property
    def checkpoint_path(self) -> Path:
        return self._path

    @property
    def checkpoint(self) -> Checkpoint | None:
        """The in-memory checkpoint, if one is initialized, loaded or saved."""
        return self._checkpoint

    @property
    def pending_ids(self) -> list[str]:
        return list(self._pending)

    def init_checkpoint(self, input_file: str) -> Checkpoint:
        """Start a fresh in-memory checkpoint.

        Nothing is written until save_checkpoint() or the next flush().
        """
        now = utcnow()
        checkpoint = Checkpoint(
            input_file=input_file,
            processed_scan_ids=[],
            last_batch=0,
            last_mini_batch=0,
            started_at=now,
            updated_at=now,
        )
        self._set_checkpoint(checkpoint)
        return checkpoint

    async def load_checkpoint(self) -> Checkpoint | None:
        """Read the checkpoint file.

        Returns None when the file is missing or cannot be decoded;
        neither case is an error for the caller.
        """
        try:
            checkpoint = Checkpoint.model_validate_json(self._path.read_bytes())
        except FileNotFoundError:
            checkpoint = None
        except (OSError, ValidationError, ValueError) as e:
            logger.warning("Ignoring unreadable checkpoint %s: %s", self._path, e)
            checkpoint = None

        self._set_checkpoint(checkpoint)
        return checkpoint

    async def save_checkpoint(self, checkpoint: Checkpoint) -> None:
        """Persist ``checkpoint`` atomically, stamping ``updated_at``."""
        checkpoint.updated_at = utcnow()
        atomic_write_text(self._path, checkpoint.to_json())
        self._set_checkpoint(checkpoint)

    def mark_processed(self, scan_ids: list[str]) -> None:
        """Buffer completed ids in call order. No disk I/O."""
        self._pending.extend(scan_ids)

    async def flush(self) -> None:
        """Append buffered ids to the checkpoint and persist it.

        A flush with nothing buffered leaves the file untouched.

        Raises:
            CheckpointNotLoadedError: ids are buffered but no checkpoint
                has been initialized or loaded yet.
        """
        if not self._pending:
            return
        if self._checkpoint is None:
            raise CheckpointNotLoadedError()

        # Build the new state first so a failed write can be retried as is.
        updated = self._checkpoint.model_copy(
            update={
                "processed_scan_ids": [
                    *self._checkpoint.processed_scan_ids,
                    *self._pending,
                ]
            }
        )
        await self.save_checkpoint(updated)
        logger.debug(
            "Flushed %d ids to checkpoint (%d total)",
            len(self._pending),
            len(updated.processed_scan_ids),
        )
        self._pending = []

    def is_processed(self, scan_id: str) -> bool:
        """True when ``scan_id`` is in the flushed checkpoint."""
        return scan_id in self._processed

    async def clear_checkpoint(self) -> None:
        """Delete the checkpoint file and forget the in-memory copy."""
        self._path.unlink(missing_ok=True)
        self._set_checkpoint(None)

    def _set_checkpoint(self, checkpoint: Checkpoint | None) -> None:
        self._checkpoint = checkpoint
        self._processed = set(checkpoint.processed_scan_ids) if checkpoint else set()
