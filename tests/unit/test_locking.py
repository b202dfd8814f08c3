"""Unit tests for the single-writer build lock."""
from pathlib import Path

import pytest

from orderrecon.common.errors import BuildLockTimeout
from orderrecon.storage.locking import LOCK_TIMEOUT_MESSAGE, build_lock


def test_second_holder_times_out(tmp_path: Path):
    lock = tmp_path / "build.lock"
    sleeps = []
    ticks = iter([0.0, 0.5, 1.0, 1.5, 2.5])
    with build_lock(lock, timeout_seconds=2):
        with pytest.raises(BuildLockTimeout) as excinfo:
            with build_lock(lock, timeout_seconds=2, clock=lambda: next(ticks), sleep=sleeps.append):
                pass
    assert str(excinfo.value) == LOCK_TIMEOUT_MESSAGE
    assert len(sleeps) == 3


def test_lock_is_released_after_block(tmp_path: Path):
    lock = tmp_path / "build.lock"
    with build_lock(lock, timeout_seconds=0):
        pass
    with build_lock(lock, timeout_seconds=0) as held:
        assert held == lock
