"""Move every note from an old notes root into a new one.

Best effort and not transactional: each file is handled on its own, a
failure is logged and recorded, and the walk carries on.  Re-running with
the same pair of roots is safe and converges, because a file that already
reached the new root is no longer at the old one.

Conflict policy when the destination already has a note:
  same bytes       → drop the old copy
  different bytes  → append the old content under a marker, drop the old copy

Files are copied then deleted rather than renamed so that the two roots
may sit on different devices.
"""

from __future__ import annotations

import logging
import os
import shutil
from dataclasses import dataclass, field
from pathlib import Path

from treenotes.errors import MigrationError
from treenotes.validate import validate_notes_directory

logger = logging.getLogger(__name__)

MERGE_MARKER = b"\n\n---\n\nMigrated content from old location:\n\n"


@dataclass
class MigrationReport:
    """Outcome of one migrate_notes() call."""

    old_root: Path
    new_root: Path
    moved: int = 0
    merged: int = 0
    duplicates: int = 0
    removed_dirs: int = 0
    warnings: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.warnings

    @property
    def total(self) -> int:
        return self.moved + self.merged + self.duplicates


def migrate_notes(
    old_root: Path,
    new_root: Path,
    current_notes_dir: str | None = None,
) -> MigrationReport:
    """Relocate all notes from *old_root* to *new_root*.

    Args:
        old_root: Notes root being abandoned.  Nothing happens if it does
            not exist.
        new_root: Destination root.  Re-validated against the workspace
            (the parent of *old_root*) before anything moves.
        current_notes_dir: The notes directory setting in force.  Defaults
            to the destination's own name, which lets the destination
            already exist.

    Returns:
        A MigrationReport.  Per-file failures are in ``warnings``.

    Raises:
        MigrationError: If the destination fails validation.
    """
    old_root = Path(old_root)
    new_root = Path(new_root)
    report = MigrationReport(old_root=old_root, new_root=new_root)
    if not old_root.exists():
        logger.debug("No notes to migrate: %s does not exist", old_root)
        return report

    workspace_root = old_root.parent
    name = os.path.relpath(new_root, workspace_root)
    if current_notes_dir is None:
        current_notes_dir = name
    error = validate_notes_directory(name, workspace_root, current_notes_dir)
    if error:
        raise MigrationError(str(old_root), str(new_root), error)

    logger.info("Migrating notes %s -> %s", old_root, new_root)
    _process_directory(old_root, old_root, new_root, report)

    if _is_empty_dir(old_root):
        old_root.rmdir()
        report.removed_dirs += 1
    else:
        logger.warning("Old notes directory %s not empty after migration; left in place", old_root)

    logger.info(
        "Migration done: %d moved, %d merged, %d duplicates, %d warnings",
        report.moved,
        report.merged,
        report.duplicates,
        len(report.warnings),
    )
    return report


def _is_empty_dir(path: Path) -> bool:
    return path.is_dir() and not any(path.iterdir())


def _warn(report: MigrationReport, path: Path, exc: Exception) -> None:
    msg = f"Failed to migrate note {path}: {exc}"
    logger.warning(msg)
    report.warnings.append(msg)


def _process_directory(
    directory: Path,
    base: Path,
    new_root: Path,
    report: MigrationReport,
) -> None:
    try:
        entries = sorted(os.scandir(directory), key=lambda e: e.name)
    except OSError as exc:
        _warn(report, directory, exc)
        return

    for entry in entries:
        old_path = Path(entry.path)
        if entry.is_dir(follow_symlinks=False):
            _process_directory(old_path, base, new_root, report)
            try:
                if _is_empty_dir(old_path):
                    old_path.rmdir()
                    report.removed_dirs += 1
            except OSError as exc:
                _warn(report, old_path, exc)
        elif entry.is_file(follow_symlinks=False):
            new_path = new_root / old_path.relative_to(base)
            try:
                _migrate_file(old_path, new_path, report)
            except OSError as exc:
                _warn(report, old_path, exc)


def _migrate_file(old_path: Path, new_path: Path, report: MigrationReport) -> None:
    new_path.parent.mkdir(parents=True, exist_ok=True)

    if new_path.exists():
        old_content = old_path.read_bytes()
        new_content = new_path.read_bytes()
        if old_content == new_content:
            report.duplicates += 1
        else:
            with open(new_path, "ab") as fh:
                fh.write(MERGE_MARKER + old_content)
            report.merged += 1
            logger.info("Merged conflicting note into %s", new_path)
    else:
        shutil.copyfile(old_path, new_path)
        report.moved += 1

    old_path.unlink()
