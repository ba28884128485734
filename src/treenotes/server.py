"""Tree Notes MCP server: notes attached to files in a project tree.

Run with: python -m treenotes.server
The server uses stdio transport for MCP client communication.

This is the host adapter: every tool is a thin call into NotesSession.
Editor clients map their own events (active editor, save, delete, config
change) onto the matching tools.
"""

from __future__ import annotations

import functools
import json
import locale
import logging
import logging.handlers
import os
import re
import sys
import time
import traceback
from pathlib import Path
from typing import Any

from mcp.server.fastmcp import FastMCP

from treenotes import config as tn_config
from treenotes import paths as tn_paths
from treenotes.errors import NoWorkspaceRoot, TreeNotesError
from treenotes.session import NotesSession

mcp_server = FastMCP("TreeNotes")

# ---------------------------------------------------------------------------
# Logging: stderr always, rotating file under ~/.treenotes/ on first use
# ---------------------------------------------------------------------------

logger = logging.getLogger("treenotes")
logger.setLevel(logging.DEBUG)

_stderr_handler = logging.StreamHandler(sys.stderr)
_stderr_handler.setLevel(logging.WARNING)
_stderr_handler.setFormatter(
    logging.Formatter(
        "%(asctime)s [%(process)d] %(levelname)s %(name)s: %(message)s", datefmt="%H:%M:%S"
    )
)
logger.addHandler(_stderr_handler)

_file_handler: logging.Handler | None = None


def _attach_file_log(log_dir: Path) -> None:
    """Attach a rotating file handler to <log_dir>/server.log (idempotent)."""
    global _file_handler
    if _file_handler is not None:
        return
    log_dir.mkdir(parents=True, exist_ok=True)
    log_path = log_dir / "server.log"
    fh = logging.handlers.RotatingFileHandler(
        log_path,
        maxBytes=2_000_000,
        backupCount=3,
        encoding="utf-8",
    )
    fh.setLevel(logging.DEBUG)
    fh.setFormatter(
        logging.Formatter("%(asctime)s [%(process)d] %(levelname)s %(name)s: %(message)s")
    )
    logger.addHandler(fh)
    _file_handler = fh
    logger.info("TreeNotes server started; log attached to %s", log_path)


# ---------------------------------------------------------------------------
# Tool invocation logging: timing and error classification for every tool
# ---------------------------------------------------------------------------

_original_tool = mcp_server.tool


def _sanitize_exc(exc: Exception) -> str:
    """Strip filesystem paths from exception messages to avoid leaking internals."""
    msg = str(exc)
    msg = re.sub(r"/(?:Users|home|tmp|var|opt|etc)/\S+", "<path>", msg)
    msg = re.sub(r"[A-Z]:\\[\w\\]+", "<path>", msg)
    return msg.strip()


def _logging_tool(**kwargs):
    """Drop-in replacement for ``mcp_server.tool()`` that adds invocation logging."""
    decorator = _original_tool(**kwargs)

    def wrapper(fn):
        @functools.wraps(fn)
        def logged(*args, **kw):
            name = fn.__name__
            logger.info("TOOL %s called", name)
            t0 = time.monotonic()
            try:
                result = fn(*args, **kw)
            except TreeNotesError as exc:
                logger.warning(
                    "TOOL %s failed (%s) after %.2fs: %s",
                    name,
                    type(exc).__name__,
                    time.monotonic() - t0,
                    exc,
                )
                raise
            except Exception as exc:
                logger.error(
                    "TOOL %s crashed after %.2fs:\n%s",
                    name,
                    time.monotonic() - t0,
                    traceback.format_exc(),
                )
                raise TreeNotesError(
                    f"Internal error in {name}: {type(exc).__name__}: {_sanitize_exc(exc)}."
                ) from exc
            logger.info("TOOL %s completed in %.2fs", name, time.monotonic() - t0)
            return result

        return decorator(logged)

    return wrapper


mcp_server.tool = _logging_tool  # type: ignore[assignment]


# ---------------------------------------------------------------------------
# Workspace root, resolved from set_root() or TREENOTES_ROOT
# ---------------------------------------------------------------------------

_runtime_root: Path | None = None
_sessions: dict[Path, NotesSession] = {}


def _project_root() -> Path:
    """Workspace root: runtime override > TREENOTES_ROOT env var."""
    if _runtime_root is not None:
        return _runtime_root
    root = os.environ.get("TREENOTES_ROOT")
    if root:
        return Path(root)
    raise NoWorkspaceRoot()


def _session() -> NotesSession:
    root = Path(os.path.abspath(_project_root()))
    session = _sessions.get(root)
    if session is None:
        _attach_file_log(tn_paths.home_dir())
        session = NotesSession(root)
        _sessions[root] = session
        result = session.activate()
        if result.error:
            logger.warning("Workspace %s activated with error: %s", root, result.error)
    return session


def _abs(path: str) -> Path:
    p = Path(path).expanduser()
    if not p.is_absolute():
        p = _project_root() / p
    return Path(os.path.abspath(p))


def _rel(session: NotesSession, path: Path | None) -> str | None:
    if path is None:
        return None
    if tn_paths.is_within(path, session.workspace_root):
        return tn_paths.relative_source(path, session.workspace_root)
    return str(path)


def _dump(data: dict[str, Any]) -> str:
    return json.dumps(data, indent=2)


# ---------------------------------------------------------------------------
# Tools
# ---------------------------------------------------------------------------


@mcp_server.tool()
def set_root(path: str) -> str:
    """Open a workspace.  Validates the notes directory and migrates if it changed."""
    global _runtime_root
    root = Path(path).expanduser()
    if not root.is_dir():
        raise TreeNotesError(f"Workspace '{path}' is not a directory. Pass an existing project path.")
    _runtime_root = Path(os.path.abspath(root))
    tn_config.create_default(_runtime_root)
    _sessions.pop(_runtime_root, None)
    session = _session()
    return _dump(
        {
            "workspace": str(session.workspace_root),
            "notes_root": str(session.notes_root),
            "storage_mode": session.config.storage_mode.value,
            "has_notes": session.tree.has_notes(),
        }
    )


@mcp_server.tool()
def notes_root() -> str:
    """Show where notes for this workspace live."""
    session = _session()
    return _dump(
        {
            "notes_root": str(session.notes_root),
            "notes_directory": session.active_notes_directory,
            "storage_mode": session.config.storage_mode.value,
            "open_in_split_view": session.config.open_in_split_view,
            "has_notes": session.tree.has_notes(),
        }
    )


@mcp_server.tool()
def note(path: str, create: bool = True) -> str:
    """Return the note for a source file, creating it unless create=False."""
    session = _session()
    source = _abs(path)
    existing = session.resolve_note_for_source(source)
    if existing is not None or not create:
        return _dump({"note": str(existing) if existing else None, "created": False})
    created_path, created = session.create_note(source)
    return _dump({"note": str(created_path), "created": created})


@mcp_server.tool()
def source(path: str) -> str:
    """Return the source file for a note, or null if the note is orphaned."""
    session = _session()
    src = session.resolve_source_for_note(_abs(path))
    return _dump({"source": str(src) if src else None})


@mcp_server.tool()
def toggle(path: str) -> str:
    """Switch between a source file and its note (creating the note if needed)."""
    session = _session()
    result = session.toggle(_abs(path))
    return _dump(
        {
            "target": str(result.target) if result.target else None,
            "kind": result.kind,
            "created": result.created,
        }
    )


@mcp_server.tool()
def delete_note(path: str) -> str:
    """Delete one note file."""
    session = _session()
    session.delete_note(_abs(path))
    return _dump({"deleted": path})


@mcp_server.tool()
def delete_folder(path: str) -> str:
    """Delete a notes folder and all notes in it."""
    session = _session()
    session.delete_folder(_abs(path))
    return _dump({"deleted": path})


@mcp_server.tool()
def tree() -> str:
    """List the notes tree: folders first, then notes, each sorted by name."""
    session = _session()
    session.tree.refresh()
    nodes = []
    for node in session.tree.walk():
        parent = session.tree.get_parent(node)
        entry = node.to_dict()
        entry["parent"] = str(parent.path) if parent else None
        source_path = None if node.is_dir else session.resolve_source_for_note(node.path)
        entry["source"] = _rel(session, source_path)
        nodes.append(entry)
    return _dump({"notes_root": str(session.notes_root), "nodes": nodes})


@mcp_server.tool()
def set_notes_directory(name: str) -> str:
    """Change the notes directory.  Existing notes move to the new folder."""
    session = _session()
    result = session.on_config_changed(session.config.with_changes(notes_directory=name))
    out: dict[str, Any] = {
        "applied": result.applied,
        "notes_root": str(result.notes_root),
        "notes_directory": session.active_notes_directory,
    }
    if result.coalesced:
        out["coalesced"] = True
    if result.error:
        out["error"] = result.error
    if result.report is not None:
        out["migrated"] = {
            "moved": result.report.moved,
            "merged": result.report.merged,
            "duplicates": result.report.duplicates,
        }
    if result.warnings:
        out["warnings"] = result.warnings
    return _dump(out)


@mcp_server.tool()
def storage_mode(mode: str, global_notes_path: str = "") -> str:
    """Switch between 'global' and 'workspace' storage.  Notes are not moved."""
    session = _session()
    new_root = session.switch_storage_mode(mode, global_notes_path or None)
    return _dump({"storage_mode": session.config.storage_mode.value, "notes_root": str(new_root)})


@mcp_server.tool()
def file_event(kind: str, paths: list[str]) -> str:
    """Tell the server a file was 'saved', 'deleted' or the config 'changed'."""
    session = _session()
    if kind == "saved":
        for p in paths:
            session.on_file_saved(_abs(p))
    elif kind == "deleted":
        session.on_file_deleted([_abs(p) for p in paths])
    elif kind == "changed":
        result = session.on_config_changed(tn_config.load_config(session.workspace_root))
        return _dump({"applied": result.applied, "error": result.error})
    else:
        raise TreeNotesError(f"Unknown event kind '{kind}'. Use 'saved', 'deleted' or 'changed'.")
    return _dump({"ok": True})


def main():
    """Run the TreeNotes MCP server."""
    root = os.environ.get("TREENOTES_ROOT")
    if root:
        logger.info("Workspace from TREENOTES_ROOT: %s", root)
    try:
        locale.setlocale(locale.LC_COLLATE, "")
    except locale.Error as exc:
        logger.warning("Could not set collation locale, using C collation: %s", exc)
    try:
        mcp_server.run()
    except KeyboardInterrupt:
        logger.info("TreeNotes server stopped (keyboard interrupt)")
    except Exception:
        logger.critical("TreeNotes server crashed:\n%s", traceback.format_exc())
        raise


if __name__ == "__main__":
    main()
