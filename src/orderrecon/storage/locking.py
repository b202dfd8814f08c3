"""Single-writer lock for the Clean-Master build."""
from __future__ import annotations

import fcntl
import logging
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Iterator

from ..common.errors import BuildLockTimeout


LOGGER = logging.getLogger("orderrecon.storage")

LOCK_TIMEOUT_MESSAGE = "Lock timeout: another process is running. Wait ~10 seconds and try again."


@contextmanager
def build_lock(
    lock_path: str | Path,
    timeout_seconds: float,
    poll_interval: float = 0.25,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], None] = time.sleep,
) -> Iterator[Path]:
    """Hold an exclusive ``flock`` on ``lock_path`` for the duration of the block.

    Waits at most ``timeout_seconds`` and raises BuildLockTimeout otherwise.
    """
    path = Path(lock_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    handle = path.open("a+")
    try:
        deadline = clock() + max(0.0, float(timeout_seconds))
        while True:
            try:
                fcntl.flock(handle.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
                break
            except BlockingIOError:
                if clock() >= deadline:
                    LOGGER.warning("Build lock %s still held after %.1fs", path, timeout_seconds)
                    raise BuildLockTimeout(LOCK_TIMEOUT_MESSAGE)
                sleep(poll_interval)
        try:
            yield path
        finally:
            fcntl.flock(handle.fileno(), fcntl.LOCK_UN)
    finally:
        handle.close()
