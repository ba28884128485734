"""Shared test fixtures for Tree Notes."""

from pathlib import Path

import pytest

from treenotes.config import TreeNotesConfig
from treenotes.paths import StorageMode
from treenotes.session import NotesSession
from treenotes.state import StateStore


@pytest.fixture(autouse=True)
def fake_home(tmp_path: Path, monkeypatch) -> Path:
    """Keep ~/.treenotes/ inside the test's temp directory."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    return home


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """A small project with a couple of source files."""
    root = tmp_path / "proj"
    (root / "src" / "lib").mkdir(parents=True)
    (root / "src" / "a.ts").write_text("export const a = 1;\n", encoding="utf-8")
    (root / "src" / "lib" / "util.py").write_text("def f(): pass\n", encoding="utf-8")
    (root / "README.md").write_text("# proj\n", encoding="utf-8")
    return root


@pytest.fixture
def git_workspace(workspace: Path) -> Path:
    (workspace / ".git").mkdir()
    return workspace


@pytest.fixture
def state_store(tmp_path: Path) -> StateStore:
    return StateStore(tmp_path / "state" / "state.json")


@pytest.fixture
def session(workspace: Path, state_store: StateStore, tmp_path: Path) -> NotesSession:
    """Workspace-mode session using .notes."""
    cfg = TreeNotesConfig(storage_mode=StorageMode.WORKSPACE)
    return NotesSession(workspace, cfg, state_store, global_storage=tmp_path / "global")
