# src/core/exit_codes.py — v1
"""Process exit codes shared by the CLI and batch drivers."""

from __future__ import annotations

from enum import IntEnum


class ExitCode(IntEnum):
    SUCCESS = 0
    PARTIAL_FAILURE = 1
    COMPLETE_FAILURE = 2
    LOCK_EXISTS = 3
    PREREQUISITES_MISSING = 4


def exit_code_for_status(status: str) -> ExitCode:
    """Map a run summary status to its exit code."""
    if status == "completed":
        return ExitCode.SUCCESS
    if status == "partial_failure":
        return ExitCode.PARTIAL_FAILURE
    return ExitCode.COMPLETE_FAILURE
