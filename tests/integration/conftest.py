# tests/integration/conftest.py — v8
"""Shared fixtures for integration tests.

Everything runs against a real filesystem rooted in tmp_path; there are
no external services to start.
"""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from aiscan.config.settings import Settings


@pytest.fixture
def state_dir(tmp_path: Path) -> Path:
    path = tmp_path / "state"
    path.mkdir()
    return path


@pytest.fixture
def settings(state_dir: Path) -> Settings:
    """Settings with every on-disk location under ``state_dir``."""
    return Settings(
        _env_file=None,
        cache_dir=state_dir / ".ai-scan-cache",
        checkpoint_file=state_dir / ".ai-scan-checkpoint.json",
        criteria_checkpoint_dir=state_dir / ".ai-scan-checkpoints",
        lock_file=state_dir / ".ai-scan.lock",
        checkpoint_flush_every=2,
    )


@pytest.fixture
def reset_root_logger():
    yield
    root = logging.getLogger("aiscan")
    for handler in root.handlers:
        handler.close()
    root.handlers.clear()
