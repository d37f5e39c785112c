# src/lock/lock_manager.py — v2
"""Single-host execution lock backed by an exclusively created file.

The lock file holds ``{"pid", "startedAt", "hostname"}``. A lock left by
a dead process, or one older than the staleness threshold even if its
owner still runs, is reclaimed once before giving up.

Reclaim never unlinks the lock path blindly. The reclaimer first takes
a ``<lock>.reclaim`` guard file, then renames the stale record to a
unique name and only discards it if it still holds the bytes that were
judged stale. A record that changed in between is put back.
"""

from __future__ import annotations

import logging
import os
import re
import socket
from datetime import datetime, timedelta, timezone
from pathlib import Path
from uuid import uuid4

from pydantic import ValidationError

from aiscan.core.models import utcnow
from aiscan.lock.models import LockInfo
from aiscan.lock.process import is_process_running

logger = logging.getLogger(__name__)

DEFAULT_LOCK_FILE = ".ai-scan.lock"
STALE_AFTER = timedelta(hours=24)
# Window in which an unreadable lock file may still be mid-write by its creator.
UNPARSABLE_GRACE = timedelta(seconds=60)
# A reclaim guard older than this was left by a crashed reclaimer.
GUARD_EXPIRY = timedelta(seconds=60)

_PID_PATTERN = re.compile(r'"pid"\s*:\s*(\d+)')


class LockManager:
    """Acquire, inspect and release the run lock file."""

    def __init__(
        self,
        lock_file_path: str | Path = DEFAULT_LOCK_FILE,
        stale_after: timedelta = STALE_AFTER,
    ) -> None:
        self._path = Path(lock_file_path).expanduser()
        self._stale_after = stale_after

    @property
    def lock_file_path(self) -> Path:
        return self._path

    @property
    def guard_path(self) -> Path:
        return self._path.with_name(f"{self._path.name}.reclaim")

    def get_lock_file_path(self) -> Path:
        return self._path

    async def acquire_lock(self) -> bool:
        """Try to take the lock.

        Returns:
            True if this process now owns the lock, False if a live,
            recent owner holds it or another process is reclaiming it.

        Raises:
            OSError: Any failure other than the file already existing.
        """
        if self._try_create():
            return True

        snapshot = self._read_raw()
        if snapshot is None:
            # Released between our create attempt and now.
            return self._try_create()
        if not self._is_stale(snapshot):
            return False

        logger.warning("Reclaiming stale lock %s", self._path)
        return self._reclaim(snapshot)

    async def release_lock(self) -> None:
        """Remove the lock file; absent files are fine."""
        self._path.unlink(missing_ok=True)

    async def read_lock_info(self) -> LockInfo | None:
        """Read the current lock record; None if missing or unparsable."""
        raw = self._read_raw()
        if raw is None:
            return None
        return self._parse(raw)

    # --- Internal ---

    def _try_create(self) -> bool:
        info = LockInfo(
            pid=os.getpid(),
            started_at=utcnow(),
            hostname=socket.gethostname(),
        )
        self._path.parent.mkdir(parents=True, exist_ok=True)
        try:
            fd = os.open(self._path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o644)
        except FileExistsError:
            return False
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(info.to_json())
            fh.flush()
            os.fsync(fh.fileno())
        logger.debug("Acquired lock %s (pid %d)", self._path, info.pid)
        return True

    def _read_raw(self) -> bytes | None:
        try:
            return self._path.read_bytes()
        except FileNotFoundError:
            return None

    def _parse(self, raw: bytes) -> LockInfo | None:
        try:
            return LockInfo.model_validate_json(raw)
        except (ValidationError, ValueError) as e:
            logger.debug("Unreadable lock file %s: %s", self._path, e)
            return None

    def _is_stale(self, raw: bytes) -> bool:
        info = self._parse(raw)
        if info is not None:
            if not is_process_running(info.pid):
                return True
            return utcnow() - info.started_at > self._stale_after
        return self._is_unparsable_stale(raw)

    def _is_unparsable_stale(self, raw: bytes) -> bool:
        """Staleness of a lock file that does not decode as a LockInfo.

        The owner is inferred from any readable pid field; the age comes
        from the file's modification time.
        """
        try:
            mtime = datetime.fromtimestamp(self._path.stat().st_mtime, tz=timezone.utc)
        except FileNotFoundError:
            return True

        age = utcnow() - mtime
        match = _PID_PATTERN.search(raw.decode("utf-8", errors="replace"))
        if match is not None:
            if not is_process_running(int(match.group(1))):
                return True
            return age > self._stale_after
        return age > UNPARSABLE_GRACE

    def _reclaim(self, snapshot: bytes) -> bool:
        """Replace the stale record ``snapshot`` with our own, under the guard."""
        if not self._take_guard():
            logger.info("Lock %s is being reclaimed by another process", self._path)
            return False
        try:
            if not self._move_aside(snapshot):
                return False
            return self._try_create()
        finally:
            self.guard_path.unlink(missing_ok=True)

    def _take_guard(self) -> bool:
        guard = self.guard_path
        for _ in range(2):
            try:
                os.close(os.open(guard, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o644))
                return True
            except FileExistsError:
                if not self._guard_expired(guard):
                    return False
                logger.warning("Removing abandoned reclaim guard %s", guard)
                guard.unlink(missing_ok=True)
        return False

    @staticmethod
    def _guard_expired(guard: Path) -> bool:
        try:
            mtime = datetime.fromtimestamp(guard.stat().st_mtime, tz=timezone.utc)
        except FileNotFoundError:
            return True
        return utcnow() - mtime > GUARD_EXPIRY

    def _move_aside(self, snapshot: bytes) -> bool:
        """Move the stale record off the lock path.

        Returns:
            True if the lock path is now free, False if it holds a record
            other than ``snapshot``.
        """
        current = self._read_raw()
        if current is None:
            return True
        if current != snapshot:
            return False

        tomb = self._path.with_name(f"{self._path.name}.stale.{os.getpid()}.{uuid4().hex}")
        try:
            os.rename(self._path, tomb)
        except FileNotFoundError:
            return True
        try:
            if tomb.read_bytes() == snapshot:
                return True
            # A fresh lock landed after the re-read; hand it back.
            try:
                os.link(tomb, self._path)
            except FileExistsError:
                logger.warning("Could not restore lock record moved from %s", self._path)
            return False
        finally:
            tomb.unlink(missing_ok=True)
