"""Tests for treenotes.tree: lazy notes listing and parent lookup."""

from pathlib import Path

from treenotes.tree import NoteNode, NotesTree


def _touch(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("x", encoding="utf-8")


def _build(tmp_path: Path) -> Path:
    root = tmp_path / ".notes"
    _touch(root / "zeta" / "z.ts.md")
    _touch(root / "alpha" / "inner" / "deep.py.md")
    _touch(root / "b.ts.md")
    _touch(root / "a.ts.md")
    _touch(root / "stray.txt")
    return root


class TestChildren:
    def test_top_level_is_root(self, tmp_path):
        root = _build(tmp_path)
        tree = NotesTree(root)
        (node,) = tree.children()
        assert node == NoteNode(".notes", root, True)
        assert node.expandable

    def test_dirs_first_then_sorted_notes(self, tmp_path):
        root = _build(tmp_path)
        tree = NotesTree(root)
        labels = [n.label for n in tree.children(tree.children()[0])]
        assert labels == ["alpha", "zeta", "a.ts.md", "b.ts.md"]

    def test_mixed_case_sorts_case_blind(self, tmp_path):
        root = tmp_path / ".notes"
        for name in ("b.md", "B2.md", "a.md", "Zed.md"):
            _touch(root / name)
        for name in ("beta", "Alpha"):
            (root / name).mkdir()
        tree = NotesTree(root)
        labels = [n.label for n in tree.children(tree.children()[0])]
        assert labels == ["Alpha", "beta", "a.md", "b.md", "B2.md", "Zed.md"]

    def test_symlinked_folder_not_listed(self, tmp_path):
        root = _build(tmp_path)
        (root / "loop").symlink_to(root, target_is_directory=True)
        tree = NotesTree(root)
        labels = [n.label for n in tree.children(tree.children()[0])]
        assert "loop" not in labels

    def test_file_node_has_no_children(self, tmp_path):
        root = _build(tmp_path)
        tree = NotesTree(root)
        assert tree.children(NoteNode("a.ts.md", root / "a.ts.md", False)) == []

    def test_outside_root_returns_empty(self, tmp_path):
        root = _build(tmp_path)
        (tmp_path / "other").mkdir()
        tree = NotesTree(root)
        assert tree.children(NoteNode("other", tmp_path / "other", True)) == []

    def test_missing_root_returns_empty(self, tmp_path):
        tree = NotesTree(tmp_path / "nope")
        assert tree.children(tree.children()[0]) == []


class TestParentLookup:
    def test_parent_from_index(self, tmp_path):
        root = _build(tmp_path)
        tree = NotesTree(root)
        top = tree.children()[0]
        alpha = tree.children(top)[0]
        inner = tree.children(alpha)[0]
        deep = tree.children(inner)[0]
        assert tree.get_parent(deep) == inner
        assert tree.get_parent(inner) == alpha
        assert tree.get_parent(alpha) == top
        assert tree.get_parent(top) is None

    def test_unvisited_parent_is_unknown(self, tmp_path):
        root = _build(tmp_path)
        tree = NotesTree(root)
        node = NoteNode("deep.py.md", root / "alpha" / "inner" / "deep.py.md", False)
        assert tree.get_parent(node) is None

    def test_get_node(self, tmp_path):
        root = _build(tmp_path)
        tree = NotesTree(root)
        tree.walk()
        node = tree.get_node(root / "zeta" / "z.ts.md")
        assert node is not None and not node.is_dir
        assert tree.get_node(root / "stray.txt") is None


class TestRefresh:
    def test_clears_index_and_notifies(self, tmp_path):
        root = _build(tmp_path)
        tree = NotesTree(root)
        calls = []
        tree.on_changed(lambda: calls.append(1))
        tree.walk()
        assert tree.get_node(root / "a.ts.md") is not None
        tree.refresh()
        assert tree.get_node(root / "a.ts.md") is None
        assert calls == [1]

    def test_failing_listener_does_not_break_refresh(self, tmp_path):
        tree = NotesTree(tmp_path)
        calls = []

        def boom():
            raise RuntimeError("listener bug")

        tree.on_changed(boom)
        tree.on_changed(lambda: calls.append(1))
        tree.refresh()
        assert calls == [1]

    def test_set_root(self, tmp_path):
        tree = NotesTree(tmp_path / "a")
        tree.set_root(tmp_path / "b")
        assert tree.notes_root == tmp_path / "b"


class TestWalk:
    def test_depth_first(self, tmp_path):
        root = _build(tmp_path)
        labels = [n.label for n in NotesTree(root).walk()]
        assert labels == [
            ".notes",
            "alpha",
            "inner",
            "deep.py.md",
            "zeta",
            "z.ts.md",
            "a.ts.md",
            "b.ts.md",
        ]

    def test_missing_root(self, tmp_path):
        assert NotesTree(tmp_path / "nope").walk() == []

    def test_symlink_to_ancestor_does_not_recurse(self, tmp_path):
        root = _build(tmp_path)
        (root / "alpha" / "up").symlink_to(root, target_is_directory=True)
        labels = [n.label for n in NotesTree(root).walk()]
        assert "up" not in labels
        assert labels.count("deep.py.md") == 1


class TestHasNotes:
    def test_missing(self, tmp_path):
        assert not NotesTree(tmp_path / "nope").has_notes()

    def test_only_other_files(self, tmp_path):
        _touch(tmp_path / "n" / "x.txt")
        assert not NotesTree(tmp_path / "n").has_notes()

    def test_with_note(self, tmp_path):
        _touch(tmp_path / "n" / "x.md")
        assert NotesTree(tmp_path / "n").has_notes()

    def test_with_folder(self, tmp_path):
        (tmp_path / "n" / "sub").mkdir(parents=True)
        assert NotesTree(tmp_path / "n").has_notes()
