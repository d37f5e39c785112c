# src/lock/process.py — v2
"""Local process liveness probe used for stale lock detection."""

from __future__ import annotations

import os
import sys

# Largest value a pid_t can hold on the platforms we run on.
_PID_MAX = 2**31 - 1


def is_process_running(pid: int) -> bool:
    """Return True if ``pid`` is a live process on this host.

    Uses the signal-0 probe: nothing is delivered, only existence and
    permission are checked. A process owned by another user (EPERM)
    counts as running. Ids outside the pid_t range never name a process.
    """
    if pid <= 0 or pid > _PID_MAX:
        # 0 and negative values address process groups, not a process.
        return False
    if sys.platform == "win32":
        # os.kill terminates the target on Windows; rely on the age threshold.
        return True
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    except (OSError, OverflowError):
        return False
    return True
