"""Workspace configuration: loads and saves <workspace>/.treenotes.yaml.

Keys mirror the editor settings of the same name.  Both snake_case and the
editor's camelCase spellings are accepted on load; saves use snake_case.

If no config exists, create_default() writes a commented starter file.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, replace
from pathlib import Path

import yaml

from treenotes.errors import ConfigError
from treenotes.paths import DEFAULT_WORKSPACE_NOTES_DIR, StorageMode

CONFIG_FILENAME = ".treenotes.yaml"

# snake_case field → camelCase alias used by the editor settings.
_ALIASES = {
    "storage_mode": "storageMode",
    "global_notes_path": "globalNotesPath",
    "workspace_notes_path": "workspaceNotesPath",
    "notes_directory": "notesDirectory",
    "open_in_split_view": "openInSplitView",
}


@dataclass
class TreeNotesConfig:
    """Parsed .treenotes.yaml."""

    storage_mode: StorageMode = StorageMode.GLOBAL
    global_notes_path: str = ""
    workspace_notes_path: str = DEFAULT_WORKSPACE_NOTES_DIR
    notes_directory: str = DEFAULT_WORKSPACE_NOTES_DIR
    open_in_split_view: bool = True  # read by clients only
    sha256: str = ""  # checksum of the raw config file

    def with_changes(self, **changes) -> TreeNotesConfig:
        return replace(self, **changes)


_DEFAULT_CONFIG = """\
# Tree Notes configuration
# Notes mirror your source tree: src/a.ts gets a note at <notes root>/src/a.ts.md

# Where notes live:
#   global    : one shared folder for all projects, one subfolder per project
#   workspace : inside this project (see workspace_notes_path)
storage_mode: global

# Optional shared folder for global mode.  Leave empty to use ~/.treenotes/notes/
global_notes_path: ""

# Folder inside the project for workspace mode.
workspace_notes_path: .notes

# Active notes directory.  Changing it moves existing notes to the new
# folder and updates .gitignore.  Must be a single new folder name.
notes_directory: .notes

# Open notes beside the source file (used by editor clients).
open_in_split_view: true
"""


def config_path(workspace_root: Path) -> Path:
    """Path to .treenotes.yaml at the workspace root."""
    return Path(workspace_root) / CONFIG_FILENAME


def create_default(workspace_root: Path) -> Path:
    """Write a starter .treenotes.yaml if it doesn't exist. Returns the path."""
    p = config_path(workspace_root)
    if not p.exists():
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_text(_DEFAULT_CONFIG, encoding="utf-8")
    return p


def _get(data: dict, key: str, default):
    if key in data:
        return data[key]
    return data.get(_ALIASES[key], default)


def parse_storage_mode(value: str) -> StorageMode:
    """Turn 'global' / 'workspace' (any case) into a StorageMode."""
    try:
        return StorageMode(str(value).strip().lower())
    except ValueError:
        raise ConfigError(
            f"Unknown storage_mode '{value}'",
            hint="Use 'global' or 'workspace'.",
        ) from None


def load_config(workspace_root: Path) -> TreeNotesConfig:
    """Load and validate .treenotes.yaml. Returns defaults if file is missing."""
    p = config_path(workspace_root)
    if not p.exists():
        return TreeNotesConfig()

    raw = p.read_text(encoding="utf-8")
    sha = hashlib.sha256(raw.encode("utf-8")).hexdigest()

    try:
        data = yaml.safe_load(raw) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {p}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {p}, got {type(data).__name__}")

    mode = parse_storage_mode(_get(data, "storage_mode", StorageMode.GLOBAL.value))
    # Empty strings fall back to the defaults, as the editor does.  An old
    # config that only sets workspace_notes_path uses it as notes_directory.
    return TreeNotesConfig(
        storage_mode=mode,
        global_notes_path=str(_get(data, "global_notes_path", "") or ""),
        workspace_notes_path=str(
            _get(data, "workspace_notes_path", "") or DEFAULT_WORKSPACE_NOTES_DIR
        ),
        notes_directory=str(
            _get(data, "notes_directory", "")
            or _get(data, "workspace_notes_path", "")
            or DEFAULT_WORKSPACE_NOTES_DIR
        ),
        open_in_split_view=bool(_get(data, "open_in_split_view", True)),
        sha256=sha,
    )


def save_config(workspace_root: Path, cfg: TreeNotesConfig) -> Path:
    """Write *cfg* to .treenotes.yaml atomically. Returns the path."""
    p = config_path(workspace_root)
    data = {
        "storage_mode": cfg.storage_mode.value,
        "global_notes_path": cfg.global_notes_path,
        "workspace_notes_path": cfg.workspace_notes_path,
        "notes_directory": cfg.notes_directory,
        "open_in_split_view": cfg.open_in_split_view,
    }
    text = yaml.dump(data, default_flow_style=False, allow_unicode=True, sort_keys=False)
    tmp = p.with_name(p.name + ".tmp")
    tmp.write_text(text, encoding="utf-8")
    tmp.replace(p)
    cfg.sha256 = hashlib.sha256(text.encode("utf-8")).hexdigest()
    return p
