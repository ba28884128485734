"""Cross-process file locking using fcntl.flock.

Guards the shared session state file, which every workspace session on the
machine reads and rewrites.  The lock lives in a separate ``<path>.lock``
file so it does not interfere with atomic-rename writes.

The lock is released when the block exits, when an exception propagates,
or when the process dies (the OS closes the descriptor).  No stale
lockfiles.

Not reentrant: nesting file_lock() on the same path in one thread
deadlocks until the timeout.
"""

from __future__ import annotations

import errno
import fcntl
import logging
import time
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

logger = logging.getLogger("treenotes")

# State writes are tiny; anything longer than this means a stuck holder.
DEFAULT_LOCK_TIMEOUT = 5.0

_POLL_INTERVAL = 0.05


class LockTimeout(OSError):
    """Raised when a file lock cannot be acquired within the timeout."""


@contextmanager
def file_lock(path: Path, timeout: float = DEFAULT_LOCK_TIMEOUT) -> Iterator[None]:
    """Hold an exclusive flock on ``<path>.lock`` for the duration of the block.

    Args:
        path: The file being protected.
        timeout: Seconds to keep retrying (0 = a single attempt).

    Raises:
        LockTimeout: If the lock is not acquired in time.
    """
    lock_path = path.with_suffix(path.suffix + ".lock")
    lock_path.parent.mkdir(parents=True, exist_ok=True)
    fd = open(lock_path, "w")  # noqa: SIM115
    acquired = False
    try:
        deadline = time.monotonic() + timeout
        while True:
            try:
                fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
                acquired = True
                break
            except OSError as exc:
                if exc.errno not in (errno.EWOULDBLOCK, errno.EAGAIN):
                    raise
                if time.monotonic() >= deadline:
                    msg = f"Could not lock {lock_path} within {timeout:.1f}s"
                    logger.warning(msg)
                    raise LockTimeout(msg) from exc
                time.sleep(_POLL_INTERVAL)
        yield
    finally:
        if acquired:
            fcntl.flock(fd, fcntl.LOCK_UN)
        fd.close()
