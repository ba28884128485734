"""Canonical paths for Tree Notes.

Single source of truth for where notes live.  Everything that needs to
turn a source file into a note path (or back) goes through here.

Layout:
  ~/.treenotes/                       home_dir(): state.json, server.log
  ~/.treenotes/notes/<project>/       global notes root (no override)
  <global_notes_path>/<project>/      global notes root (with override)
  <project>/<workspace_notes_path>/   workspace notes root (default .notes)

Inside a notes root every note mirrors its source file:
  <notes_root>/<relative source path>.md

The filesystem is the only record of which notes exist.  Nothing here
caches.
"""

from __future__ import annotations

import os
from enum import Enum
from pathlib import Path

DOT_DIR = ".treenotes"
NOTE_SUFFIX = ".md"
DEFAULT_WORKSPACE_NOTES_DIR = ".notes"


class StorageMode(Enum):
    """Where a workspace keeps its notes."""

    GLOBAL = "global"
    WORKSPACE = "workspace"


def home_dir() -> Path:
    """Return ~/.treenotes/ (global notes, session state, logs)."""
    return Path.home() / DOT_DIR


def _lexical(path: Path | str) -> Path:
    # Normalise without touching the filesystem (no symlink resolution).
    return Path(os.path.abspath(os.fspath(path)))


def resolve_notes_root(
    workspace_root: Path,
    storage_mode: StorageMode,
    global_path_override: str | None = None,
    workspace_relative_setting: str | None = None,
    global_storage: Path | None = None,
) -> Path:
    """Return the absolute notes root for a workspace.

    Args:
        workspace_root: The project being annotated.
        storage_mode: GLOBAL keeps every project's notes under one shared
            root, one subfolder per project name.  WORKSPACE keeps them
            inside the project.
        global_path_override: User-chosen shared root (GLOBAL only).
        workspace_relative_setting: Folder inside the project (WORKSPACE
            only).  Defaults to ``.notes``.
        global_storage: Base for GLOBAL mode without an override.
            Defaults to ``home_dir()``.
    """
    project = _lexical(workspace_root).name
    if storage_mode is StorageMode.GLOBAL:
        if global_path_override:
            return _lexical(Path(global_path_override).expanduser() / project)
        base = global_storage if global_storage is not None else home_dir()
        return _lexical(base / "notes" / project)
    setting = workspace_relative_setting or DEFAULT_WORKSPACE_NOTES_DIR
    return _lexical(Path(workspace_root) / setting)


def source_to_note_path(notes_root: Path, relative_source_path: str) -> Path:
    """Return the note path for a workspace-relative source path.

    >>> source_to_note_path(Path("/proj/.notes"), "src/a.ts")
    PosixPath('/proj/.notes/src/a.ts.md')
    """
    return Path(notes_root) / (relative_source_path + NOTE_SUFFIX)


def note_path_exists(notes_root: Path, relative_source_path: str) -> Path | None:
    """Return the note path if the note exists on disk, else None."""
    p = source_to_note_path(notes_root, relative_source_path)
    return p if p.is_file() else None


def relative_source(path: Path | str, workspace_root: Path) -> str:
    """Return *path* relative to the workspace root, POSIX-style."""
    rel = os.path.relpath(_lexical(path), _lexical(workspace_root))
    return Path(rel).as_posix()


def is_within(path: Path | str, root: Path | str) -> bool:
    """True if *path* is *root* or lexically underneath it."""
    try:
        _lexical(path).relative_to(_lexical(root))
    except ValueError:
        return False
    return True


def is_note_path(path: Path | str, notes_root: Path) -> bool:
    """True if *path* looks like a note: under the notes root, ends in .md."""
    p = _lexical(path)
    return p != _lexical(notes_root) and is_within(p, notes_root) and p.name.endswith(NOTE_SUFFIX)


def note_to_source_path(note_path: Path, workspace_root: Path, notes_root: Path) -> Path | None:
    """Return the source file a note belongs to, or None.

    None when the note is not under *notes_root*, does not end in ``.md``,
    or its source file no longer exists.  A note whose source was deleted
    or renamed is orphaned and cannot be reversed.

    In GLOBAL mode the relative path is resolved against the current
    workspace root, so this is only meaningful with one workspace open.
    """
    if not is_note_path(note_path, notes_root):
        return None
    rel = _lexical(note_path).relative_to(_lexical(notes_root)).as_posix()
    source = _lexical(workspace_root) / rel[: -len(NOTE_SUFFIX)]
    return source if source.exists() else None
