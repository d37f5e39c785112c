# src/logging/context.py — v2
"""Contextual logging support: attach run_id, input_file, scan_id, batch to log records."""

from __future__ import annotations

import contextvars
from dataclasses import dataclass
from typing import Any

# Context variables for structured logging, set per run and per work unit.
_run_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "run_id", default=None
)
_input_file: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "input_file", default=None
)
_scan_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "scan_id", default=None
)
_batch: contextvars.ContextVar[int | None] = contextvars.ContextVar(
    "batch", default=None
)


@dataclass
class LogContext:
    """Immutable snapshot of current logging context."""

    run_id: str | None = None
    input_file: str | None = None
    scan_id: str | None = None
    batch: int | None = None

    def as_dict(self) -> dict[str, Any]:
        """Return non-None fields as dict for JSON log injection."""
        return {k: v for k, v in self.__dict__.items() if v is not None}


def get_context() -> LogContext:
    """Snapshot current context variables."""
    return LogContext(
        run_id=_run_id.get(),
        input_file=_input_file.get(),
        scan_id=_scan_id.get(),
        batch=_batch.get(),
    )


def set_run_context(run_id: str, input_file: str) -> None:
    """Set run-level context (called once per run)."""
    _run_id.set(run_id)
    _input_file.set(input_file)


def set_scan_context(scan_id: str, batch: int | None = None) -> None:
    """Set work-unit context (called per scan or criteria batch)."""
    _scan_id.set(scan_id)
    _batch.set(batch)


def clear_context() -> None:
    """Reset all context variables."""
    _run_id.set(None)
    _input_file.set(None)
    _scan_id.set(None)
    _batch.set(None)
