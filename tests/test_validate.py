"""Tests for treenotes.validate: notes directory rules, in order."""

import pytest

from treenotes.errors import NotesDirectoryInvalid
from treenotes.validate import (
    MAX_PATH_LENGTH,
    check_notes_directory,
    iter_workspace_files,
    validate_notes_directory,
)


class TestAccepts:
    def test_default_name(self, workspace):
        assert validate_notes_directory(".notes", workspace) is None

    def test_plain_name(self, workspace):
        assert validate_notes_directory("journal", workspace, ".notes") is None

    def test_existing_current_notes_dir(self, workspace):
        (workspace / ".notes" / "src").mkdir(parents=True)
        (workspace / ".notes" / "src" / "a.ts.md").write_text("x")
        assert validate_notes_directory(".notes", workspace, ".notes") is None


class TestRejects:
    @pytest.mark.parametrize("name", ["", ".", ".."])
    def test_dot_names(self, workspace, name):
        assert "cannot be" in validate_notes_directory(name, workspace)

    @pytest.mark.parametrize("name", ["a<b", "a>b", "c:d", 'q"', "p|q", "why?", "star*", "bell\x07"])
    def test_invalid_characters(self, workspace, name):
        assert validate_notes_directory(name, workspace) == (
            "Notes directory name contains invalid characters"
        )

    @pytest.mark.parametrize("name", ["a/b", "a\\b", "notes/"])
    def test_path_separators(self, workspace, name):
        assert validate_notes_directory(name, workspace) == (
            "Notes directory name cannot contain path separators"
        )

    @pytest.mark.parametrize(
        "name", ["node_modules", ".git", ".vscode", "bin", "obj", "dist", "build", "BUILD", "Node_Modules"]
    )
    def test_system_directories(self, workspace, name):
        assert validate_notes_directory(name, workspace) == (
            "Notes directory cannot be a system directory"
        )

    def test_absolute_path(self, workspace, tmp_path):
        assert validate_notes_directory(str(tmp_path / "elsewhere"), workspace) is not None

    def test_parent_traversal_prefix(self, workspace):
        assert validate_notes_directory("..notes", workspace) == (
            "Notes directory cannot be a parent directory"
        )

    def test_too_long(self, workspace):
        name = "n" * MAX_PATH_LENGTH
        assert validate_notes_directory(name, workspace) == "Notes directory path is too long"

    def test_case_insensitive_collision(self, workspace):
        (workspace / "Notes").mkdir()
        error = validate_notes_directory("notes", workspace, ".notes")
        assert "same name (Notes)" in error

    def test_case_collision_with_current_notes_dir_allowed(self, workspace):
        (workspace / "Notes").mkdir()
        assert validate_notes_directory("notes", workspace, "Notes") is None

    def test_case_collision_ignores_files(self, workspace):
        (workspace / "Notes").write_text("not a dir")
        error = validate_notes_directory("notes", workspace, ".notes")
        assert error is None

    def test_existing_directory(self, workspace):
        (workspace / "docs").mkdir()
        assert validate_notes_directory("docs", workspace, ".notes") == (
            "Notes directory cannot be an existing directory"
        )

    def test_existing_source_directory(self, workspace):
        assert validate_notes_directory("src", workspace, ".notes") == (
            "Notes directory cannot be an existing directory"
        )

    def test_would_shadow_workspace_file(self, workspace):
        (workspace / "notes").write_text("a regular file")
        assert validate_notes_directory("notes", workspace, ".notes") == (
            "Notes directory cannot contain workspace files"
        )

    def test_first_failure_wins(self, workspace):
        # Both a separator and a system name: separator rule runs first.
        assert "separators" in validate_notes_directory("node_modules/x", workspace)


class TestCheckNotesDirectory:
    def test_returns_name(self, workspace):
        assert check_notes_directory(".notes", workspace) == ".notes"

    def test_raises(self, workspace):
        with pytest.raises(NotesDirectoryInvalid, match="system directory") as exc_info:
            check_notes_directory("node_modules", workspace)
        assert exc_info.value.name == "node_modules"


class TestIterWorkspaceFiles:
    def test_lists_nested_files(self, workspace):
        rels = {p.relative_to(workspace).as_posix() for p in iter_workspace_files(workspace)}
        assert rels == {"src/a.ts", "src/lib/util.py", "README.md"}

    def test_skips_excluded(self, workspace):
        (workspace / "node_modules" / "pkg").mkdir(parents=True)
        (workspace / "node_modules" / "pkg" / "index.js").write_text("")
        (workspace / ".notes").mkdir()
        (workspace / ".notes" / "a.md").write_text("")
        (workspace / "src" / "node_modules").mkdir()
        (workspace / "src" / "node_modules" / "x.js").write_text("")
        rels = {
            p.relative_to(workspace).as_posix()
            for p in iter_workspace_files(workspace, [".notes", "node_modules"])
        }
        assert rels == {"src/a.ts", "src/lib/util.py", "README.md"}
