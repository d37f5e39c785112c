# src/runner/session.py — v2
"""Resume session: the lock, checkpoint and cache wired together for a batch driver.

Usage::

    async with ResumeSession.from_settings("scans.csv", settings) as session:
        for scan_id in session.pending(all_ids):
            verifications, from_cache = await session.cached_verify(
                html, "AA", batch_number, compute=call_model,
            )
            ...
            await session.complete([scan_id])
        await session.finish()

Leaving the block without finish() (error, Ctrl-C, cancellation) flushes
buffered progress and releases the lock, so the next run resumes.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Awaitable, Callable, Iterable
from datetime import timedelta
from types import TracebackType

from pydantic import BaseModel

from aiscan.cache.verification_cache import CriteriaVerificationCache
from aiscan.checkpoint.checkpoint_manager import CheckpointManager
from aiscan.checkpoint.models import Checkpoint
from aiscan.config.settings import Settings
from aiscan.core.errors import LockHeldError
from aiscan.core.models import AiCriteriaVerification, WcagLevel
from aiscan.lock.lock_manager import LockManager
from aiscan.logging.context import clear_context, set_run_context

logger = logging.getLogger(__name__)


class VerificationOutcome(BaseModel):
    """What the expensive AI step returns for one criteria batch."""

    verifications: list[AiCriteriaVerification]
    tokens_used: int
    ai_model: str


class ResumeSession:
    """One lock-protected, resumable pass over an input file."""

    def __init__(
        self,
        input_file: str,
        lock: LockManager,
        checkpoints: CheckpointManager,
        cache: CriteriaVerificationCache | None = None,
        flush_every: int = 10,
        resume: bool = True,
    ) -> None:
        if flush_every <= 0:
            raise ValueError("flush_every must be > 0")
        self.input_file = input_file
        self.lock = lock
        self.checkpoints = checkpoints
        self.cache = cache
        self.run_id = uuid.uuid4().hex[:8]
        self._flush_every = flush_every
        self._resume = resume
        self._since_flush = 0
        self._position_dirty = False
        self._locked = False
        self._finished = False

    @classmethod
    def from_settings(
        cls, input_file: str, settings: Settings, resume: bool = True
    ) -> ResumeSession:
        cache = None
        if settings.cache_enabled:
            cache = CriteriaVerificationCache(
                cache_dir=settings.cache_dir,
                ttl_days=settings.cache_ttl_days,
                max_entries=settings.cache_max_entries,
            )
        return cls(
            input_file=input_file,
            lock=LockManager(
                settings.lock_file,
                stale_after=timedelta(hours=settings.lock_stale_after_hours),
            ),
            checkpoints=CheckpointManager(settings.checkpoint_file),
            cache=cache,
            flush_every=settings.checkpoint_flush_every,
            resume=resume,
        )

    @property
    def checkpoint(self) -> Checkpoint:
        checkpoint = self.checkpoints.checkpoint
        if checkpoint is None:
            raise RuntimeError("Session not started")
        return checkpoint

    # --- Lifecycle ---

    async def __aenter__(self) -> ResumeSession:
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if exc is not None and not self._finished:
            logger.info("Run interrupted (%s), saving progress", exc_type.__name__)
        await self.close()

    async def start(self) -> Checkpoint:
        """Take the lock, then load or create the checkpoint.

        Raises:
            LockHeldError: Another live run holds the lock.
        """
        if not await self.lock.acquire_lock():
            holder = await self.lock.read_lock_info()
            raise LockHeldError(str(self.lock.lock_file_path), holder)
        self._locked = True
        set_run_context(self.run_id, self.input_file)

        try:
            checkpoint = await self._open_checkpoint()
            if self.cache is not None:
                await self.cache.warmup()
                await self.cache.cleanup()
        except BaseException:
            await self._release()
            raise
        return checkpoint

    async def finish(self) -> None:
        """Mark the run complete: the checkpoint is removed."""
        await self.checkpoints.flush()
        await self.checkpoints.clear_checkpoint()
        self._finished = True
        logger.info("Run complete for %s", self.input_file)

    async def close(self) -> None:
        """Flush buffered progress and release the lock."""
        try:
            if not self._finished and self.checkpoints.checkpoint is not None:
                await self.flush()
        finally:
            await self._release()

    # --- Work tracking ---

    def pending(self, scan_ids: Iterable[str]) -> list[str]:
        """Filter out ids already recorded as processed."""
        return [s for s in scan_ids if not self.checkpoints.is_processed(s)]

    def is_processed(self, scan_id: str) -> bool:
        return self.checkpoints.is_processed(scan_id)

    async def complete(self, scan_ids: list[str]) -> None:
        """Record finished ids, flushing every ``flush_every`` ids."""
        self.checkpoints.mark_processed(scan_ids)
        self._since_flush += len(scan_ids)
        if self._since_flush >= self._flush_every:
            await self.flush()

    async def flush(self) -> None:
        """Persist buffered ids and any batch cursor change."""
        if self.checkpoints.pending_ids or not self._position_dirty:
            await self.checkpoints.flush()
        else:
            await self.checkpoints.save_checkpoint(self.checkpoint)
        self._position_dirty = False
        self._since_flush = 0

    def set_position(self, batch: int, mini_batch: int) -> None:
        """Update the batch cursor; written by the next flush, even with no ids buffered."""
        checkpoint = self.checkpoint
        checkpoint.last_batch = batch
        checkpoint.last_mini_batch = mini_batch
        self._position_dirty = True

    async def cached_verify(
        self,
        content: str,
        wcag_level: WcagLevel,
        batch_number: int,
        compute: Callable[[], Awaitable[VerificationOutcome]],
    ) -> tuple[list[AiCriteriaVerification], bool]:
        """Return cached verifications or run ``compute`` and cache its result.

        Returns:
            (verifications, from_cache)
        """
        if self.cache is None:
            outcome = await compute()
            return outcome.verifications, False

        key = self.cache.generate_key(content, wcag_level, batch_number)
        entry = await self.cache.get(key)
        if entry is not None:
            return entry.verifications, True

        outcome = await compute()
        await self.cache.set(
            key, outcome.verifications, outcome.tokens_used, outcome.ai_model
        )
        return outcome.verifications, False

    # --- Internal ---

    async def _open_checkpoint(self) -> Checkpoint:
        checkpoint: Checkpoint | None = None
        if self._resume:
            checkpoint = await self.checkpoints.load_checkpoint()
            if checkpoint is not None and checkpoint.input_file != self.input_file:
                logger.warning(
                    "Checkpoint belongs to %s, not %s; starting fresh",
                    checkpoint.input_file,
                    self.input_file,
                )
                checkpoint = None
        else:
            await self.checkpoints.clear_checkpoint()

        if checkpoint is None:
            checkpoint = self.checkpoints.init_checkpoint(self.input_file)
            await self.checkpoints.save_checkpoint(checkpoint)
            logger.info("Starting new run for %s", self.input_file)
        else:
            logger.info(
                "Resuming %s: %d scans already processed",
                self.input_file,
                len(checkpoint.processed_scan_ids),
            )
        return checkpoint

    async def _release(self) -> None:
        if self._locked:
            await self.lock.release_lock()
            self._locked = False
        clear_context()
