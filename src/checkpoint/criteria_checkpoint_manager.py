# src/checkpoint/criteria_checkpoint_manager.py — v1
"""Per-scan criteria batch checkpoints.

Each scan gets ``{checkpoint_dir}/{scan_id}.json`` recording which
criteria batches are done and the verifications collected so far, so a
scan interrupted mid-way only re-runs the missing batches.
"""

from __future__ import annotations

import logging
from pathlib import Path

from pydantic import ValidationError

from aiscan.checkpoint.models import CriteriaCheckpoint, IssueEnhancementResult
from aiscan.core.errors import CheckpointNotFoundError
from aiscan.core.models import AiCriteriaVerification, WcagLevel, utcnow
from aiscan.storage.atomic import atomic_write_text

logger = logging.getLogger(__name__)

DEFAULT_CHECKPOINT_DIR = ".ai-scan-checkpoints"


class CriteriaCheckpointManager:
    """Stores one CriteriaCheckpoint file per scan."""

    def __init__(self, checkpoint_dir: str | Path = DEFAULT_CHECKPOINT_DIR) -> None:
        self._dir = Path(checkpoint_dir).expanduser()

    @property
    def checkpoint_dir(self) -> Path:
        return self._dir

    def checkpoint_path(self, scan_id: str) -> Path:
        safe_id = scan_id.replace("/", "_").replace("\\", "_")
        return self._dir / f"{safe_id}.json"

    def init_checkpoint(
        self,
        scan_id: str,
        url: str,
        wcag_level: WcagLevel,
        total_batches: int,
    ) -> CriteriaCheckpoint:
        """Build a fresh checkpoint for a scan. Nothing is written."""
        now = utcnow()
        return CriteriaCheckpoint(
            scan_id=scan_id,
            url=url,
            wcag_level=wcag_level,
            total_batches=total_batches,
            started_at=now,
            updated_at=now,
        )

    async def get_checkpoint(self, scan_id: str) -> CriteriaCheckpoint | None:
        """Load a scan's checkpoint; None if missing, corrupt or incomplete."""
        path = self.checkpoint_path(scan_id)
        try:
            return CriteriaCheckpoint.model_validate_json(path.read_bytes())
        except FileNotFoundError:
            return None
        except (OSError, ValidationError, ValueError) as e:
            logger.warning("Ignoring unreadable criteria checkpoint %s: %s", path, e)
            return None

    async def save_checkpoint(self, checkpoint: CriteriaCheckpoint) -> None:
        """Persist atomically, stamping ``updated_at``."""
        checkpoint.updated_at = utcnow()
        atomic_write_text(self.checkpoint_path(checkpoint.scan_id), checkpoint.to_json())

    async def mark_batch_complete(
        self,
        scan_id: str,
        batch_number: int,
        verifications: list[AiCriteriaVerification],
        tokens_used: int,
    ) -> CriteriaCheckpoint:
        """Record a finished batch with its verifications and token cost.

        Raises:
            CheckpointNotFoundError: No checkpoint exists for ``scan_id``.
        """
        checkpoint = await self._require(scan_id)
        if batch_number not in checkpoint.completed_batches:
            checkpoint.completed_batches.append(batch_number)
            checkpoint.completed_batches.sort()
        checkpoint.partial_verifications.extend(verifications)
        checkpoint.tokens_used += tokens_used
        await self.save_checkpoint(checkpoint)
        return checkpoint

    async def mark_issue_enhancement_complete(
        self,
        scan_id: str,
        result: IssueEnhancementResult | None,
    ) -> CriteriaCheckpoint:
        """Record the issue enhancement step as done.

        Raises:
            CheckpointNotFoundError: No checkpoint exists for ``scan_id``.
        """
        checkpoint = await self._require(scan_id)
        checkpoint.issue_enhancement_complete = True
        checkpoint.issue_enhancement_result = result
        if result is not None and result.tokens_used:
            checkpoint.tokens_used += result.tokens_used
        await self.save_checkpoint(checkpoint)
        return checkpoint

    async def clear_checkpoint(self, scan_id: str) -> None:
        """Delete a scan's checkpoint; absent files are fine."""
        self.checkpoint_path(scan_id).unlink(missing_ok=True)

    @staticmethod
    def get_incomplete_batches(checkpoint: CriteriaCheckpoint) -> list[int]:
        done = set(checkpoint.completed_batches)
        return [n for n in range(checkpoint.total_batches) if n not in done]

    @staticmethod
    def is_batch_complete(checkpoint: CriteriaCheckpoint, batch_number: int) -> bool:
        return batch_number in checkpoint.completed_batches

    async def _require(self, scan_id: str) -> CriteriaCheckpoint:
        checkpoint = await self.get_checkpoint(scan_id)
        if checkpoint is None:
            raise CheckpointNotFoundError(scan_id)
        return checkpoint
