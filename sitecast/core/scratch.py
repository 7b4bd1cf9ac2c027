"""Scoped scratch resources.

Archives and working trees are owned by exactly one run. Names are
randomized so concurrent runs never collide; nothing here needs locking.
"""

from __future__ import annotations

import logging
import re
import secrets
import shutil
import time
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

logger = logging.getLogger(__name__)

_UNSAFE = re.compile(r"[^A-Za-z0-9._-]+")


def scratch_name(*parts: str, suffix: str = "") -> str:
    """Collision-resistant name: parts + epoch millis + random suffix."""
    safe = [_UNSAFE.sub("_", p) for p in parts if p]
    stamp = str(int(time.time() * 1000))
    return "-".join([*safe, stamp, secrets.token_hex(4)]) + suffix


def remove_path(path: Path) -> bool:
    """Remove a file or directory tree; log and report failure instead of raising."""
    try:
        if path.is_dir() and not path.is_symlink():
            shutil.rmtree(path)
        else:
            path.unlink(missing_ok=True)
    except OSError as exc:
        logger.warning("Failed to clean up %s: %s", path, exc)
        return False
    return True


@contextmanager
def scratch_directory(root: Path, *parts: str) -> Iterator[Path]:
    """Yield a fresh directory path under *root*, removed on every exit path.

    The directory itself is not created; the extractor creates it.
    """
    root = Path(root)
    root.mkdir(parents=True, exist_ok=True)
    path = root / scratch_name("deploy", *parts)
    try:
        yield path
    finally:
        if path.exists():
            remove_path(path)
            logger.debug("Removed working tree %s", path)
