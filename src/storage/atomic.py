# src/storage/atomic.py — v1
"""Durable file replacement: write to a sibling temp file, fsync, rename.

The final path is either the previous content or the complete new
content; a partially written final file can never be observed.
"""

from __future__ import annotations

import os
import tempfile
from contextlib import suppress
from pathlib import Path


def atomic_write_text(path: Path, content: str, encoding: str = "utf-8") -> None:
    """Atomically replace ``path`` with ``content``.

    The temp file lives in the destination directory so the rename never
    crosses filesystems. It is removed on any failure before the rename.

    Args:
        path: Destination file. Parent directories are created.
        content: Full text to write.
        encoding: Text encoding.

    Raises:
        OSError: Propagated unchanged (permissions, disk full, ...).
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path: str | None = None
    try:
        with tempfile.NamedTemporaryFile(
            mode="w",
            encoding=encoding,
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
        ) as fh:
            tmp_path = fh.name
            fh.write(content)
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(tmp_path, path)
    except BaseException:
        if tmp_path is not None:
            with suppress(OSError):
                os.unlink(tmp_path)
        raise
