"""Lazy tree view over a notes root.

Children are listed only when asked for.  Every node handed out is kept in
a path → node index so a client can later ask for a node's parent without
another directory walk.  refresh() throws the whole index away; there is
no incremental patching.
"""

from __future__ import annotations

import locale
import logging
import os
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from treenotes.paths import NOTE_SUFFIX, is_within

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NoteNode:
    """One entry in the notes tree: a folder or a note file."""

    label: str
    path: Path
    is_dir: bool

    @property
    def expandable(self) -> bool:
        return self.is_dir

    def to_dict(self) -> dict[str, object]:
        return {"label": self.label, "path": str(self.path), "dir": self.is_dir}


def _sort_key(node: NoteNode) -> tuple[int, str, str]:
    # Case-blind first so "a" sorts before "B" even in the C locale.
    return (0 if node.is_dir else 1, node.label.casefold(), locale.strxfrm(node.label))


class NotesTree:
    """On-demand listing of the notes root with reverse parent lookup."""

    def __init__(self, notes_root: Path):
        self.notes_root = Path(os.path.abspath(notes_root))
        self._index: dict[Path, NoteNode] = {}
        self._listeners: list[Callable[[], None]] = []

    def on_changed(self, callback: Callable[[], None]) -> None:
        """Register *callback* to run after every refresh()."""
        self._listeners.append(callback)

    def set_root(self, notes_root: Path) -> None:
        """Point the tree at a different notes root and refresh."""
        self.notes_root = Path(os.path.abspath(notes_root))
        self.refresh()

    def refresh(self) -> None:
        """Drop the path index and notify listeners."""
        self._index.clear()
        for callback in list(self._listeners):
            try:
                callback()
            except Exception:
                logger.exception("Notes tree listener failed")

    def root_node(self) -> NoteNode:
        node = NoteNode(self.notes_root.name, self.notes_root, True)
        self._index[self.notes_root] = node
        return node

    def children(self, node: NoteNode | None = None) -> list[NoteNode]:
        """Return the children of *node*, or ``[root]`` when *node* is None.

        Folders come first, then ``.md`` files; each group is sorted by
        label, ignoring case, then by the current locale's collation.
        Symlinked folders are not followed.
        """
        if node is None:
            return [self.root_node()]
        if not node.is_dir or not is_within(node.path, self.notes_root):
            return []

        try:
            entries = list(os.scandir(node.path))
        except OSError as exc:
            logger.warning("Error reading notes directory %s: %s", node.path, exc)
            return []

        result: list[NoteNode] = []
        for entry in entries:
            if entry.is_dir(follow_symlinks=False):
                child = NoteNode(entry.name, Path(entry.path), True)
            elif entry.name.endswith(NOTE_SUFFIX):
                child = NoteNode(entry.name, Path(entry.path), False)
            else:
                continue
            self._index[child.path] = child
            result.append(child)
        result.sort(key=_sort_key)
        return result

    def get_node(self, path: Path | str) -> NoteNode | None:
        """Return the node previously yielded for *path*, if any."""
        return self._index.get(Path(os.path.abspath(path)))

    def get_parent(self, node: NoteNode) -> NoteNode | None:
        """Return *node*'s parent from the index, without touching disk."""
        if node.path == self.notes_root or not is_within(node.path, self.notes_root):
            return None
        return self._index.get(node.path.parent)

    def walk(self) -> list[NoteNode]:
        """List every node depth-first, filling the index on the way."""
        out: list[NoteNode] = []

        def visit(n: NoteNode) -> None:
            out.append(n)
            for child in self.children(n):
                visit(child)

        root = self.root_node()
        if root.path.is_dir():
            visit(root)
        return out

    def has_notes(self) -> bool:
        """True if the notes root holds any folder or note file."""
        if not self.notes_root.is_dir():
            return False
        with os.scandir(self.notes_root) as it:
            return any(
                e.is_dir(follow_symlinks=False)
                or (e.is_file() and e.name.endswith(NOTE_SUFFIX))
                for e in it
            )
