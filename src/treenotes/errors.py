"""Exception hierarchy for Tree Notes.

Every error message includes: what happened, why, and what to do next.
Clients surface the message verbatim, so it has to be enough on its own.

A missing note or missing source file is not an error: lookups return
``None`` and the caller decides what to offer.
"""


class TreeNotesError(Exception):
    """Base class for all Tree Notes errors."""


class NotesDirectoryInvalid(TreeNotesError):
    """A proposed notes directory failed validation."""

    def __init__(self, name: str, reason: str):
        super().__init__(
            f"Rejected notes directory '{name}': {reason}. "
            f"The setting was not applied. "
            f"Choose a single new folder name inside the workspace, e.g. '.notes'."
        )
        self.name = name
        self.reason = reason


class MigrationError(TreeNotesError):
    """Notes could not be moved to the new notes directory."""

    def __init__(self, old_root: str, new_root: str, reason: str):
        super().__init__(
            f"Cannot migrate notes from '{old_root}' to '{new_root}': {reason}. "
            f"No notes were moved; the old directory is untouched. "
            f"Fix the setting and try again."
        )
        self.old_root = old_root
        self.new_root = new_root
        self.reason = reason


class IgnoreFileError(TreeNotesError):
    """The VCS ignore file could not be read or written."""

    def __init__(self, path: str, detail: str):
        super().__init__(
            f"Failed to update '{path}': {detail}. "
            f"Notes were not affected. "
            f"Add the notes directory to the ignore file by hand, or fix its permissions."
        )
        self.path = path
        self.detail = detail


class NoteIOError(TreeNotesError):
    """A note file or folder could not be created or deleted."""

    def __init__(self, path: str, detail: str):
        super().__init__(
            f"Could not write or delete '{path}': {detail}. "
            f"Check that the notes directory is writable."
        )
        self.path = path
        self.detail = detail


class UnsafeInput(TreeNotesError):
    """A path falls outside the tree an operation is allowed to touch."""

    def __init__(self, field: str, value: str, reason: str):
        super().__init__(
            f"Rejected unsafe {field}='{value}': {reason}. "
            f"Sources must be inside the workspace; notes must be inside the notes directory."
        )
        self.field = field
        self.value = value
        self.reason = reason


class ConfigError(TreeNotesError):
    """Workspace configuration is missing or invalid."""

    def __init__(self, detail: str, hint: str = ""):
        msg = f"Configuration error: {detail}."
        if hint:
            msg += f" {hint}"
        super().__init__(msg)
        self.detail = detail
        self.hint = hint


class NoWorkspaceRoot(ConfigError):
    """No workspace has been opened yet."""

    def __init__(self):
        super().__init__(
            "No workspace root configured",
            hint=(
                "Call set_root(path='/path/to/project') first, "
                "or set the TREENOTES_ROOT environment variable."
            ),
        )
