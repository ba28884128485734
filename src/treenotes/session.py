"""Per-workspace notes session.

NotesSession is the one object a host talks to.  It owns the state that
outlives a single call (the last known-good notes directory, whether a
migration is running, the tree index) and exposes the operations a client
needs: resolve and toggle between sources and notes, create and delete
notes, and react to configuration and file events.

The session has no event loop of its own.  A host adapter calls
on_config_changed(), on_file_saved() and on_file_deleted() from whatever
events it has, and subscribes to tree changes with on_notes_tree_changed().

Changing notes_directory runs, in order:
  validate → migrate (workspace mode) → record as last known-good
  → update .gitignore (git workspaces) → refresh the tree
A failed validation reverts the setting to the last known-good value.
"""

from __future__ import annotations

import logging
import os
import shutil
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from pathlib import Path

from treenotes import config as tn_config
from treenotes.errors import IgnoreFileError, MigrationError, NoteIOError, UnsafeInput
from treenotes.gitignore import is_git_repository, sync_gitignore
from treenotes.migrate import MigrationReport, migrate_notes
from treenotes.paths import (
    DEFAULT_WORKSPACE_NOTES_DIR,
    StorageMode,
    is_note_path,
    is_within,
    note_path_exists,
    note_to_source_path,
    relative_source,
    resolve_notes_root,
    source_to_note_path,
)
from treenotes.state import PENDING_MIGRATION_KEY, StateStore
from treenotes.tree import NotesTree
from treenotes.validate import validate_notes_directory

logger = logging.getLogger(__name__)


@dataclass
class ConfigChangeResult:
    """What on_config_changed() did."""

    applied: bool
    notes_root: Path
    error: str | None = None
    report: MigrationReport | None = None
    warnings: list[str] = field(default_factory=list)
    coalesced: bool = False


@dataclass
class ToggleResult:
    """Where toggle() landed.  *target* is None when there is nowhere to go."""

    target: Path | None
    kind: str  # "note" or "source"
    created: bool = False


class NotesSession:
    """Notes lifecycle for one workspace."""

    def __init__(
        self,
        workspace_root: Path,
        config: tn_config.TreeNotesConfig | None = None,
        state: StateStore | None = None,
        global_storage: Path | None = None,
        persist_config: bool = True,
    ):
        self.workspace_root = Path(os.path.abspath(workspace_root))
        self.config = config if config is not None else tn_config.load_config(self.workspace_root)
        self.state = state if state is not None else StateStore()
        self.global_storage = global_storage
        self.persist_config = persist_config
        self._migrating = False
        self.tree = NotesTree(self.notes_root)

    # -- paths ---------------------------------------------------------------

    @property
    def last_notes_directory(self) -> str | None:
        return self.state.last_notes_directory(self.workspace_root)

    @property
    def active_notes_directory(self) -> str:
        """The validated notes directory, or the configured one before activation."""
        return self.last_notes_directory or self.config.notes_directory

    @property
    def notes_root(self) -> Path:
        return resolve_notes_root(
            self.workspace_root,
            self.config.storage_mode,
            self.config.global_notes_path or None,
            self.active_notes_directory,
            self.global_storage,
        )

    def resolve_note_for_source(self, source: Path | str) -> Path | None:
        """Return the existing note for *source*, or None."""
        if not is_within(source, self.workspace_root):
            return None
        rel = relative_source(source, self.workspace_root)
        return note_path_exists(self.notes_root, rel)

    def resolve_source_for_note(self, note: Path | str) -> Path | None:
        """Return the source file for *note*, or None if orphaned or not a note."""
        return note_to_source_path(Path(note), self.workspace_root, self.notes_root)

    def is_note(self, path: Path | str) -> bool:
        return is_note_path(path, self.notes_root)

    # -- notes ---------------------------------------------------------------

    def create_note(self, source: Path | str) -> tuple[Path, bool]:
        """Return the note for *source*, creating it if missing.

        Returns:
            (note path, True if the note was created by this call)

        Raises:
            UnsafeInput: If *source* is outside the workspace.
            NoteIOError: If the note cannot be written.
        """
        if not is_within(source, self.workspace_root):
            raise UnsafeInput("source", str(source), "file is not inside the workspace")
        if is_within(source, self.notes_root):
            raise UnsafeInput("source", str(source), "notes cannot have notes of their own")
        rel = relative_source(source, self.workspace_root)
        note = source_to_note_path(self.notes_root, rel)
        if note.exists():
            return note, False
        try:
            note.parent.mkdir(parents=True, exist_ok=True)
            note.write_text(f"# Notes for {rel}\n\n", encoding="utf-8")
        except OSError as exc:
            raise NoteIOError(str(note), str(exc)) from exc
        logger.info("Created note %s", note)
        self.tree.refresh()
        return note, True

    def toggle(self, path: Path | str) -> ToggleResult:
        """From a note go to its source; from a source go to (or create) its note."""
        if self.is_note(path):
            return ToggleResult(self.resolve_source_for_note(path), "source")
        existing = self.resolve_note_for_source(path)
        if existing is not None:
            return ToggleResult(existing, "note")
        note, created = self.create_note(path)
        return ToggleResult(note, "note", created)

    def _inside_notes_root(self, path: Path | str, field_name: str) -> Path:
        p = Path(os.path.abspath(path))
        if not is_within(p, self.notes_root):
            raise UnsafeInput(field_name, str(path), "not inside the notes directory")
        return p

    def delete_note(self, note: Path | str) -> None:
        """Delete a single note file."""
        p = self._inside_notes_root(note, "note")
        if not p.is_file():
            raise UnsafeInput("note", str(note), "not a note file")
        try:
            p.unlink()
        except OSError as exc:
            raise NoteIOError(str(p), str(exc)) from exc
        logger.info("Deleted note %s", p)
        self.tree.refresh()

    def delete_folder(self, folder: Path | str) -> None:
        """Delete a notes folder and everything in it."""
        p = self._inside_notes_root(folder, "folder")
        if not p.is_dir():
            raise UnsafeInput("folder", str(folder), "not a folder")
        try:
            shutil.rmtree(p)
        except OSError as exc:
            raise NoteIOError(str(p), str(exc)) from exc
        logger.info("Deleted notes folder %s", p)
        self.tree.refresh()

    # -- events --------------------------------------------------------------

    def on_notes_tree_changed(self, callback: Callable[[], None]) -> None:
        """Call *callback* after every refresh, migration, or note change."""
        self.tree.on_changed(callback)

    def on_file_saved(self, path: Path | str) -> None:
        if self.is_note(path):
            self.tree.refresh()

    def on_file_deleted(self, paths: Iterable[Path | str]) -> None:
        root = self.notes_root
        if any(is_within(p, root) and Path(p) != root for p in paths):
            self.tree.refresh()

    def activate(self) -> ConfigChangeResult:
        """Bring disk in line with the stored configuration at startup."""
        return self.on_config_changed(self.config)

    def _save_config(self) -> None:
        if self.persist_config:
            tn_config.save_config(self.workspace_root, self.config)

    def _sync_ignore(self, new_root: Path, old_root: Path | None, warnings: list[str]) -> None:
        if not is_git_repository(self.workspace_root):
            return
        roots = [new_root] + ([old_root] if old_root else [])
        if not any(is_within(r, self.workspace_root) for r in roots):
            return
        try:
            sync_gitignore(self.workspace_root, new_root, old_root)
        except IgnoreFileError as exc:
            logger.warning("%s", exc)
            warnings.append(str(exc))

    def _revert(self, new_config: tn_config.TreeNotesConfig, fallback: str) -> None:
        self.config = new_config.with_changes(notes_directory=fallback)
        self._save_config()

    def on_config_changed(self, new_config: tn_config.TreeNotesConfig) -> ConfigChangeResult:
        """Apply a new configuration.

        Events that arrive while a migration is running are ignored and
        reported as ``coalesced``.
        """
        if self._migrating:
            logger.info("Migration in progress; ignoring configuration change")
            return ConfigChangeResult(False, self.notes_root, coalesced=True)

        name = new_config.notes_directory
        last = self.last_notes_directory
        fallback = last or DEFAULT_WORKSPACE_NOTES_DIR
        # A migration that died half way left its target behind; let it resume.
        resuming = name == self.state.get(self.workspace_root, PENDING_MIGRATION_KEY)
        current = name if resuming or not last else last

        error = validate_notes_directory(name, self.workspace_root, current)
        if error:
            logger.warning("Rejected notes directory %r: %s", name, error)
            self._revert(new_config, fallback)
            return ConfigChangeResult(False, self.notes_root, error=error)

        old_root = self.notes_root
        self.config = new_config
        report = None
        warnings: list[str] = []
        old_dir = self.workspace_root / last if last and last != name else None

        if old_dir is not None and new_config.storage_mode is StorageMode.WORKSPACE:
            self._migrating = True
            self.state.set(self.workspace_root, PENDING_MIGRATION_KEY, name)
            try:
                report = migrate_notes(old_dir, self.workspace_root / name, current_notes_dir=name)
            except MigrationError as exc:
                logger.warning("%s", exc)
                self.state.set(self.workspace_root, PENDING_MIGRATION_KEY, None)
                self._revert(new_config, fallback)
                return ConfigChangeResult(False, self.notes_root, error=str(exc))
            finally:
                self._migrating = False
            warnings.extend(report.warnings)

        if name != last:
            self.state.set_last_notes_directory(self.workspace_root, name)
            if last is not None:
                self._save_config()
        if resuming or report is not None:
            self.state.set(self.workspace_root, PENDING_MIGRATION_KEY, None)

        new_root = self.notes_root
        self._sync_ignore(new_root, old_root if old_root != new_root else None, warnings)
        self.tree.set_root(new_root)
        return ConfigChangeResult(True, new_root, report=report, warnings=warnings)

    def switch_storage_mode(
        self,
        mode: StorageMode | str,
        global_notes_path: str | None = None,
    ) -> Path:
        """Change where notes are stored.  Existing notes are not moved.

        Returns:
            The new notes root.
        """
        if isinstance(mode, str):
            mode = tn_config.parse_storage_mode(mode)
        old_root = self.notes_root
        changes: dict[str, object] = {"storage_mode": mode}
        if global_notes_path is not None:
            changes["global_notes_path"] = global_notes_path
        self.config = self.config.with_changes(**changes)
        self._save_config()

        new_root = self.notes_root
        warnings: list[str] = []
        self._sync_ignore(new_root, old_root if old_root != new_root else None, warnings)
        self.tree.set_root(new_root)
        logger.info("Storage mode now %s; notes root %s", mode.value, new_root)
        return new_root
