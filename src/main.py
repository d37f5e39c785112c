# src/main.py — v2
"""CLI entry point for inspecting and resetting resumable run state.

Usage:
    aiscan cache stats|cleanup|clear
    aiscan checkpoint show|clear
    aiscan lock status|release [--force]

Paths default to the values in .env (see config/settings.py) and can be
overridden per command.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from aiscan.core.exit_codes import ExitCode
from aiscan.version import __version__

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return ExitCode.COMPLETE_FAILURE

    try:
        settings = _load_settings(args)
    except Exception as exc:
        print(f"Invalid configuration: {exc}", file=sys.stderr)
        return ExitCode.PREREQUISITES_MISSING

    from aiscan.logging.logger import setup_logging_from_settings

    setup_logging_from_settings(
        settings, stream=sys.stderr, level="DEBUG" if args.verbose else None
    )

    try:
        return int(asyncio.run(args.func(args, settings)))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except Exception as exc:
        logger.error("Fatal error: %s", exc, exc_info=args.verbose)
        return ExitCode.COMPLETE_FAILURE


def _build_parser() -> argparse.ArgumentParser:
    """Build CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="aiscan",
        description=f"aiscan v{__version__}: resumable AI scan state tools",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command")

    # --- cache ---
    p_cache = subparsers.add_parser("cache", help="Verification cache maintenance")
    p_cache.add_argument(
        "--cache-dir", type=Path, default=None,
        help="Cache directory (default: CACHE_DIR)",
    )
    p_cache.add_argument(
        "action", choices=["stats", "cleanup", "clear"],
        help="stats: count valid entries; cleanup: drop expired/corrupt; clear: drop all",
    )
    p_cache.set_defaults(func=_cmd_cache)

    # --- checkpoint ---
    p_ckpt = subparsers.add_parser("checkpoint", help="Run checkpoint inspection")
    p_ckpt.add_argument(
        "--file", dest="checkpoint_file", type=Path, default=None,
        help="Checkpoint file (default: CHECKPOINT_FILE)",
    )
    p_ckpt.add_argument("action", choices=["show", "clear"])
    p_ckpt.set_defaults(func=_cmd_checkpoint)

    # --- lock ---
    p_lock = subparsers.add_parser("lock", help="Execution lock inspection")
    p_lock.add_argument(
        "--file", dest="lock_file", type=Path, default=None,
        help="Lock file (default: LOCK_FILE)",
    )
    p_lock.add_argument("action", choices=["status", "release"])
    p_lock.add_argument(
        "--force", action="store_true",
        help="Release even if the owning process is alive",
    )
    p_lock.set_defaults(func=_cmd_lock)

    return parser


def _load_settings(args: argparse.Namespace):
    from aiscan.config.settings import load_settings

    overrides = {}
    for field in ("cache_dir", "checkpoint_file", "lock_file"):
        value = getattr(args, field, None)
        if value is not None:
            overrides[field] = value
    return load_settings(**overrides)


async def _cmd_cache(args: argparse.Namespace, settings) -> int:
    """Report, clean or clear the verification cache."""
    from aiscan.cache.verification_cache import CriteriaVerificationCache

    cache = CriteriaVerificationCache(
        cache_dir=settings.cache_dir,
        ttl_days=settings.cache_ttl_days,
        max_entries=settings.cache_max_entries,
    )

    if args.action == "cleanup":
        removed = await cache.cleanup()
        print(f"Removed {removed} expired or invalid entries")
    elif args.action == "clear":
        await cache.clear_all()
        print(f"Cleared {cache.entries_dir}")
        return ExitCode.SUCCESS
    else:
        await cache.warmup()

    stats = cache.get_stats()
    print(f"\nCache {cache.cache_dir}:")
    print(f"  Valid entries: {stats.entries_count} / {cache.max_entries}")
    print(f"  TTL:           {cache.ttl_days:g} days")
    if stats.entries_count > cache.max_entries:
        logger.warning(
            "Cache holds %d entries, above the configured maximum of %d",
            stats.entries_count,
            cache.max_entries,
        )
    return ExitCode.SUCCESS


async def _cmd_checkpoint(args: argparse.Namespace, settings) -> int:
    """Show or delete the run checkpoint."""
    from aiscan.checkpoint.checkpoint_manager import CheckpointManager

    manager = CheckpointManager(settings.checkpoint_file)

    if args.action == "clear":
        await manager.clear_checkpoint()
        print(f"Checkpoint cleared: {manager.checkpoint_path}")
        return ExitCode.SUCCESS

    checkpoint = await manager.load_checkpoint()
    if checkpoint is None:
        print(f"No checkpoint at {manager.checkpoint_path}")
        return ExitCode.SUCCESS

    summary = {
        "inputFile": checkpoint.input_file,
        "processed": len(checkpoint.processed_scan_ids),
        "lastBatch": checkpoint.last_batch,
        "lastMiniBatch": checkpoint.last_mini_batch,
        "startedAt": checkpoint.started_at.isoformat(),
        "updatedAt": checkpoint.updated_at.isoformat(),
    }
    print(json.dumps(summary, indent=2))
    return ExitCode.SUCCESS


async def _cmd_lock(args: argparse.Namespace, settings) -> int:
    """Show or release the execution lock."""
    from aiscan.lock.lock_manager import LockManager
    from aiscan.lock.process import is_process_running

    manager = LockManager(settings.lock_file)
    info = await manager.read_lock_info()
    exists = manager.lock_file_path.exists()

    if args.action == "status":
        if not exists:
            print(f"No lock at {manager.lock_file_path}")
            return ExitCode.SUCCESS
        if info is None:
            print(f"Lock {manager.lock_file_path} is unreadable")
            return ExitCode.LOCK_EXISTS
        alive = is_process_running(info.pid)
        print(
            f"Lock held by PID {info.pid} on {info.hostname} "
            f"since {info.started_at.isoformat()} "
            f"({'running' if alive else 'not running'})"
        )
        return ExitCode.LOCK_EXISTS

    if info is not None and is_process_running(info.pid) and not args.force:
        logger.error(
            "PID %d still holds %s; use --force to release anyway",
            info.pid,
            manager.lock_file_path,
        )
        return ExitCode.LOCK_EXISTS

    await manager.release_lock()
    print(f"Lock released: {manager.lock_file_path}")
    return ExitCode.SUCCESS


if __name__ == "__main__":
    sys.exit(main())
