# tests/conftest.py — v2
"""Shared test fixtures for all unit and integration tests.

Provides sample verifications, on-disk record writers and component
instances rooted in tmp_path. No external services.
"""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import pytest

from aiscan.cache.verification_cache import CriteriaVerificationCache
from aiscan.checkpoint.checkpoint_manager import CheckpointManager
from aiscan.checkpoint.criteria_checkpoint_manager import CriteriaCheckpointManager
from aiscan.core.models import AiCriteriaVerification
from aiscan.lock.lock_manager import LockManager
from aiscan.logging.context import clear_context


@pytest.fixture(autouse=True)
def _reset_log_context():
    clear_context()
    yield
    clear_context()


# === FIXTURES: Sample data ===


@pytest.fixture
def sample_verifications() -> list[AiCriteriaVerification]:
    """Two verifications as returned by the AI step."""
    return [
        AiCriteriaVerification(
            criterion_id="1.1.1",
            status="AI_VERIFIED_PASS",
            confidence=85,
            reasoning="All images have appropriate alt text.",
        ),
        AiCriteriaVerification(
            criterion_id="1.4.3",
            status="AI_VERIFIED_FAIL",
            confidence=90,
            reasoning="Some text has insufficient contrast ratio.",
            related_issue_ids=["issue-001"],
        ),
    ]


@pytest.fixture
def sample_html() -> str:
    return "<html><body><img src='a.png' alt='Logo'><p>Hello</p></body></html>"


# === FIXTURES: Components ===


@pytest.fixture
def cache_dir(tmp_path: Path) -> Path:
    return tmp_path / ".ai-scan-cache"


@pytest.fixture
def cache(cache_dir: Path) -> CriteriaVerificationCache:
    return CriteriaVerificationCache(cache_dir=cache_dir, ttl_days=7)


@pytest.fixture
def checkpoint_path(tmp_path: Path) -> Path:
    return tmp_path / ".ai-scan-checkpoint.json"


@pytest.fixture
def checkpoint_manager(checkpoint_path: Path) -> CheckpointManager:
    return CheckpointManager(checkpoint_path)


@pytest.fixture
def criteria_manager(tmp_path: Path) -> CriteriaCheckpointManager:
    return CriteriaCheckpointManager(tmp_path / ".ai-scan-checkpoints")


@pytest.fixture
def lock_path(tmp_path: Path) -> Path:
    return tmp_path / ".ai-scan.lock"


@pytest.fixture
def lock_manager(lock_path: Path) -> LockManager:
    return LockManager(lock_path)


# === Helpers ===


def iso(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def write_cache_entry(
    cache: CriteriaVerificationCache,
    content_hash: str,
    wcag_level: str = "AA",
    batch_number: int = 0,
    created_at: datetime | None = None,
    ttl: timedelta | None = None,
    tokens_used: int = 500,
    verifications: list[dict[str, Any]] | None = None,
) -> Path:
    """Write a raw cache entry file with controlled timestamps."""
    created = created_at or datetime.now(timezone.utc)
    expires = created + (ttl if ttl is not None else cache.ttl)
    record = {
        "key": {
            "contentHash": content_hash,
            "wcagLevel": wcag_level,
            "batchNumber": batch_number,
        },
        "verifications": verifications
        or [{"criterionId": "1.1.1", "status": "PASS", "confidence": 90, "reasoning": "Good"}],
        "tokensUsed": tokens_used,
        "aiModel": "claude-opus-4",
        "createdAt": iso(created),
        "expiresAt": iso(expires),
    }
    cache.entries_dir.mkdir(parents=True, exist_ok=True)
    path = cache.entries_dir / f"{content_hash}_{wcag_level}_{batch_number}.json"
    path.write_text(json.dumps(record, indent=2), encoding="utf-8")
    return path


def write_lock_file(
    path: Path, pid: int, started_at: datetime, hostname: str = "test-host"
) -> None:
    path.write_text(
        json.dumps({"pid": pid, "startedAt": iso(started_at), "hostname": hostname}),
        encoding="utf-8",
    )


@pytest.fixture
def write_entry(cache: CriteriaVerificationCache):
    """Factory writing raw entries into the ``cache`` fixture's directory."""

    def _write(content_hash: str, **kwargs: Any) -> Path:
        return write_cache_entry(cache, content_hash, **kwargs)

    return _write


@pytest.fixture
def write_lock(lock_path: Path):
    """Factory writing a raw lock record at ``lock_path``."""

    def _write(pid: int, started_at: datetime | None = None, hostname: str = "test-host") -> Path:
        write_lock_file(lock_path, pid, started_at or datetime.now(timezone.utc), hostname)
        return lock_path

    return _write
