"""Error taxonomy shared by the attribution pipeline."""

from __future__ import annotations


class AiBlameError(Exception):
    """Base class for errors reported to the operator."""


class NotARepositoryError(AiBlameError):
    def __init__(self, path: str = "."):
        super().__init__(f"Not in a git repository: {path}")
        self.path = path


class RevisionError(AiBlameError):
    def __init__(self, revision: str):
        super().__init__(f"Cannot resolve revision '{revision}'")
        self.revision = revision


class StagingError(AiBlameError):
    """Pending capture state could not be read or written."""


class StagingCorruptError(StagingError):
    """The staging file exists but holds malformed content."""

    def __init__(self, path: str, line_number: int, reason: str):
        super().__init__(
            f"Corrupt staging file {path} (line {line_number}: {reason}). "
            "Inspect it or run 'ai-blame clear' to discard pending attribution."
        )
        self.path = path
        self.line_number = line_number


class CodecError(AiBlameError):
    """An attribution note could not be decoded."""


class NoteConflictError(AiBlameError):
    """The notes ref moved while a note was being written."""

    def __init__(self, ref: str, commit: str, attempts: int):
        super().__init__(f"Concurrent update of {ref} while writing note for {commit[:8]} (gave up after {attempts} attempts)")
        self.ref = ref
        self.commit = commit
        self.attempts = attempts


class MissingRecordError(AiBlameError):
    def __init__(self, commit: str):
        super().__init__(f"Commit {commit[:8]} has no attribution")
        self.commit = commit


class FinalizeError(AiBlameError):
    """Drained events could not be persisted; they are not re-queued."""

    def __init__(self, commit: str, lost_events: int, cause: Exception):
        super().__init__(
            f"Failed to write attribution for {commit[:8]}: {cause}. {lost_events} captured event(s) were drained and are lost."
        )
        self.commit = commit
        self.lost_events = lost_events
        self.cause = cause
