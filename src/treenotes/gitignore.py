"""Keep the workspace .gitignore pointing at the current notes directory.

One line per notes root, written relative to the workspace in POSIX form.
When the root moves, the line for the old root goes and a line for the new
root is added.  Calling sync_gitignore() again with the same arguments
leaves the file unchanged.
"""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path

from treenotes.errors import IgnoreFileError
from treenotes.paths import is_within

logger = logging.getLogger(__name__)

GITIGNORE = ".gitignore"


def is_git_repository(workspace_root: Path) -> bool:
    """True if the workspace root holds a .git directory (or worktree file)."""
    return (Path(workspace_root) / ".git").exists()


def _relative_entry(workspace_root: Path, notes_root: Path) -> str | None:
    """Return the ignore entry for *notes_root*, or None if outside the workspace."""
    if not is_within(notes_root, workspace_root):
        return None
    rel = Path(os.path.relpath(os.path.abspath(notes_root), os.path.abspath(workspace_root)))
    entry = rel.as_posix()
    return None if entry == "." else entry


def _entry_pattern(entry: str, subpaths: bool = False) -> re.Pattern:
    """Match a line equal to *entry*, with an optional leading or trailing slash.

    With *subpaths*, lines naming something under *entry* match too.
    """
    tail = r"(/.*)?$" if subpaths else r"/?$"
    return re.compile(r"^/?" + re.escape(entry) + tail)


def sync_gitignore(
    workspace_root: Path,
    new_notes_root: Path,
    old_notes_root: Path | None = None,
) -> Path:
    """Make .gitignore ignore *new_notes_root* and forget *old_notes_root*.

    Creates the file if it is missing, drops blank lines on rewrite.
    Notes roots outside the workspace (global storage) are never written.

    Returns:
        Path to the ignore file.

    Raises:
        IgnoreFileError: If the file cannot be read or written.
    """
    path = Path(workspace_root) / GITIGNORE
    new_entry = _relative_entry(workspace_root, new_notes_root)
    old_entry = _relative_entry(workspace_root, old_notes_root) if old_notes_root else None

    try:
        if not path.exists():
            path.write_text("", encoding="utf-8")
        lines = path.read_text(encoding="utf-8").split("\n")
    except OSError as exc:
        raise IgnoreFileError(str(path), str(exc)) from exc

    if old_entry and old_entry != new_entry:
        old_re = _entry_pattern(old_entry, subpaths=True)
        lines = [line for line in lines if not old_re.match(line.rstrip())]

    if new_entry:
        new_re = _entry_pattern(new_entry)
        if not any(new_re.match(line.rstrip()) for line in lines):
            lines.append(new_entry)
            logger.info("Added %s to %s", new_entry, path)

    kept = [line for line in lines if line.strip()]
    content = "\n".join(kept) + "\n" if kept else ""
    try:
        if path.read_text(encoding="utf-8") != content:
            path.write_text(content, encoding="utf-8")
    except OSError as exc:
        raise IgnoreFileError(str(path), str(exc)) from exc
    return path
