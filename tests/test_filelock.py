"""Tests for treenotes.filelock: cross-process locking of the state file."""

from __future__ import annotations

import fcntl
from pathlib import Path

import pytest

from treenotes.filelock import LockTimeout, file_lock


@pytest.fixture
def held_lock(tmp_path: Path):
    """Hold the lock for tmp_path/state.json the way another process would."""
    lock_path = tmp_path / "state.json.lock"
    lock_path.touch()
    blocker = open(lock_path, "w")
    fcntl.flock(blocker, fcntl.LOCK_EX | fcntl.LOCK_NB)
    yield tmp_path / "state.json"
    fcntl.flock(blocker, fcntl.LOCK_UN)
    blocker.close()


def test_lock_creates_lock_file(tmp_path: Path) -> None:
    target = tmp_path / "state.json"
    with file_lock(target):
        assert (tmp_path / "state.json.lock").exists()


def test_lock_creates_parent_dirs(tmp_path: Path) -> None:
    target = tmp_path / "deep" / "state.json"
    with file_lock(target):
        target.write_text("{}")
    assert target.read_text() == "{}"


def test_lock_released_on_exception(tmp_path: Path) -> None:
    target = tmp_path / "state.json"
    with pytest.raises(ValueError):
        with file_lock(target):
            raise ValueError("boom")
    with file_lock(target, timeout=0):
        pass


def test_lock_timeout_when_held(held_lock: Path) -> None:
    with pytest.raises(LockTimeout, match="Could not lock"):
        with file_lock(held_lock, timeout=0.15):
            pass  # pragma: no cover


def test_lock_timeout_zero_is_single_attempt(held_lock: Path) -> None:
    with pytest.raises(LockTimeout):
        with file_lock(held_lock, timeout=0):
            pass  # pragma: no cover


def test_lock_timeout_is_oserror() -> None:
    assert issubclass(LockTimeout, OSError)


def test_file_lock_is_not_reentrant(tmp_path: Path) -> None:
    target = tmp_path / "state.json"
    with file_lock(target):
        with pytest.raises(LockTimeout):
            with file_lock(target, timeout=0):
                pass  # pragma: no cover
