"""Notes directory validation.

Checks a proposed notes directory name before anything touches disk.
Rules run in a fixed order and the first failure wins, so the message a
user sees is always the most basic thing wrong with their input.

A name passes only if it is a single new folder directly inside the
workspace that does not collide with, adopt, or shadow anything that is
already there.
"""

from __future__ import annotations

import os
import re
from collections.abc import Iterable, Iterator
from pathlib import Path

from treenotes.errors import NotesDirectoryInvalid
from treenotes.paths import DEFAULT_WORKSPACE_NOTES_DIR

# Control characters plus the characters Windows forbids in file names.
_INVALID_CHARS_RE = re.compile(r'[<>:"|?*\x00-\x1f]')

SYSTEM_DIRS = frozenset({"node_modules", ".git", ".vscode", "bin", "obj", "dist", "build"})

# Dependency / vendor trees skipped when looking for workspace files.
EXCLUDE_DIRS = frozenset({"node_modules", ".git"})

# Leaves room for note file names under the 260-char Windows limit.
MAX_PATH_LENGTH = 250

_SEPARATORS = {"/", "\\", os.sep} | ({os.altsep} if os.altsep else set())


def iter_workspace_files(
    workspace_root: Path,
    excluded: Iterable[str] = (),
) -> Iterator[Path]:
    """Yield every file under *workspace_root*, skipping excluded directories.

    *excluded* holds workspace-relative directory paths (the notes
    directory) or bare names (``node_modules``) matched at any depth.
    """
    skip = {Path(e).as_posix() for e in excluded}
    root = Path(workspace_root)
    for dirpath, dirnames, filenames in os.walk(root):
        rel_dir = Path(dirpath).relative_to(root)
        kept = []
        for d in sorted(dirnames):
            rel = (rel_dir / d).as_posix()
            if d in skip or rel in skip:
                continue
            kept.append(d)
        dirnames[:] = kept
        for f in sorted(filenames):
            yield Path(dirpath) / f


def validate_notes_directory(
    name: str,
    workspace_root: Path,
    current_notes_dir: str = DEFAULT_WORKSPACE_NOTES_DIR,
    excluded_dirs: Iterable[str] = EXCLUDE_DIRS,
) -> str | None:
    """Check a candidate notes directory name.

    Args:
        name: The candidate setting, relative to the workspace root.
        workspace_root: The project the notes belong to.
        current_notes_dir: The notes directory currently in use.  It may
            already exist and is never treated as a collision.
        excluded_dirs: Dependency directories skipped when checking for
            workspace files under the candidate.

    Returns:
        None if the name is acceptable, otherwise a message saying why not.
    """
    if name in (".", "..", ""):
        return 'Notes directory cannot be "." or ".." or empty'

    if _INVALID_CHARS_RE.search(name):
        return "Notes directory name contains invalid characters"

    if any(sep in name for sep in _SEPARATORS):
        return "Notes directory name cannot contain path separators"

    if name.lower() in SYSTEM_DIRS:
        return "Notes directory cannot be a system directory"

    if os.path.isabs(name):
        return "Notes directory must be a relative path"

    root = os.path.normpath(os.path.abspath(workspace_root))
    full_path = os.path.normpath(os.path.join(root, name))
    if not full_path.startswith(root):
        return "Notes directory must be inside the workspace"

    if os.path.normpath(name).startswith(".."):
        return "Notes directory cannot be a parent directory"

    if full_path == root:
        return "Notes directory cannot be the workspace root"

    if len(full_path) > MAX_PATH_LENGTH:
        return "Notes directory path is too long"

    if os.path.isdir(root):
        lower = name.lower()
        for entry in sorted(os.listdir(root)):
            if entry == name or entry.lower() != lower:
                continue
            if entry == current_notes_dir:
                continue
            if os.path.isdir(os.path.join(root, entry)):
                return (
                    f"A directory with the same name ({entry}) already exists. "
                    f"This may cause issues on case-insensitive file systems."
                )

    if os.path.isdir(full_path) and name != current_notes_dir:
        return "Notes directory cannot be an existing directory"

    candidate = Path(full_path)
    excluded = [current_notes_dir, *excluded_dirs]
    for f in iter_workspace_files(Path(root), excluded):
        if f == candidate or candidate in f.parents:
            return "Notes directory cannot contain workspace files"

    return None


def check_notes_directory(
    name: str,
    workspace_root: Path,
    current_notes_dir: str = DEFAULT_WORKSPACE_NOTES_DIR,
    excluded_dirs: Iterable[str] = EXCLUDE_DIRS,
) -> str:
    """Like validate_notes_directory(), but raises on failure.

    Returns:
        The name (unchanged) if valid.

    Raises:
        NotesDirectoryInvalid: With the first failing rule as the reason.
    """
    error = validate_notes_directory(name, workspace_root, current_notes_dir, excluded_dirs)
    if error:
        raise NotesDirectoryInvalid(name, error)
    return name
