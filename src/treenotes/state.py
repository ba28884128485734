"""Persisted session state: the last known-good notes directory.

Stored in ~/.treenotes/state.json, one entry per workspace keyed by its
absolute path:

    {"version": 1,
     "workspaces": {"/home/me/proj": {"last_notes_directory": ".notes"}}}

Reads never fail: a missing or corrupt file reads as "nothing recorded".
Writes are atomic (write .tmp, rename) with a .bak of the previous file,
and serialised across processes with file_lock().
"""

from __future__ import annotations

import json
import logging
import os
import shutil
from pathlib import Path
from typing import Any

from treenotes.filelock import file_lock
from treenotes.paths import home_dir

logger = logging.getLogger(__name__)

STATE_VERSION = 1
LAST_NOTES_DIR_KEY = "last_notes_directory"
PENDING_MIGRATION_KEY = "pending_migration"


def default_state() -> dict[str, Any]:
    return {"version": STATE_VERSION, "workspaces": {}}


class StateStore:
    """Per-workspace key/value state backed by one JSON file."""

    def __init__(self, path: Path | None = None):
        self.path = Path(path) if path is not None else home_dir() / "state.json"

    def _load(self) -> dict[str, Any]:
        if not self.path.exists():
            return default_state()
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("Ignoring unreadable state file %s: %s", self.path, exc)
            return default_state()
        if not isinstance(data, dict) or not isinstance(data.get("workspaces"), dict):
            return default_state()
        return data

    def _save(self, data: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        if self.path.exists():
            shutil.copy2(self.path, self.path.with_suffix(".json.bak"))
        tmp = self.path.with_suffix(".json.tmp")
        tmp.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")
        tmp.replace(self.path)

    @staticmethod
    def _key(workspace_root: Path) -> str:
        return os.path.abspath(workspace_root)

    def get(self, workspace_root: Path, key: str) -> Any:
        entry = self._load()["workspaces"].get(self._key(workspace_root), {})
        return entry.get(key) if isinstance(entry, dict) else None

    def set(self, workspace_root: Path, key: str, value: Any) -> None:
        with file_lock(self.path):
            data = self._load()
            entry = data["workspaces"].setdefault(self._key(workspace_root), {})
            entry[key] = value
            self._save(data)

    def last_notes_directory(self, workspace_root: Path) -> str | None:
        value = self.get(workspace_root, LAST_NOTES_DIR_KEY)
        return str(value) if value else None

    def set_last_notes_directory(self, workspace_root: Path, value: str) -> None:
        self.set(workspace_root, LAST_NOTES_DIR_KEY, value)
        logger.debug("Recorded last notes directory %r for %s", value, workspace_root)
