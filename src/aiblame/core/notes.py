"""Attribution records stored as git notes.

Each commit carries at most one note under a dedicated ref (default
``refs/notes/ai-blame``). A write builds the new notes commit on a private
scratch ref and then moves the shared ref with ``git update-ref <ref> <new>
<old>``, which fails if another process moved the ref in between. Such a
lost race is retried a bounded number of times before NoteConflictError.
"""

from __future__ import annotations

import logging
import os
import subprocess
from uuid import uuid4

from .codec import decode_record, encode_record
from .errors import MissingRecordError, NoteConflictError
from .git_utils import ZERO_OID, resolve_commit, run_git
from .models import AttributionRecord

logger = logging.getLogger(__name__)

DEFAULT_NOTES_REF = "refs/notes/ai-blame"


def normalize_notes_ref(ref: str) -> str:
    """Expand a short notes ref the same way ``git notes --ref`` does."""
    if ref.startswith("refs/notes/"):
        return ref
    if ref.startswith("notes/"):
        return f"refs/{ref}"
    return f"refs/notes/{ref}"


class NotesRepository:
    def __init__(self, repo_path: str, ref: str = DEFAULT_NOTES_REF, write_retries: int = 3):
        self.repo_path = repo_path
        self.ref = normalize_notes_ref(ref)
        self.write_retries = max(1, write_retries)

    @classmethod
    def for_repo(cls, repo_path: str) -> NotesRepository:
        from .config import load_config

        config = load_config(repo_path)
        return cls(repo_path, ref=config["notes"]["ref"], write_retries=int(config["notes"]["write_retries"]))

    def _git(self, args: list[str], check: bool = True, input: str | None = None) -> subprocess.CompletedProcess:
        return run_git(args, cwd=self.repo_path, check=check, input=input)

    def resolve(self, revision: str) -> str:
        return resolve_commit(self.repo_path, revision)

    def _ref_value(self, ref: str) -> str | None:
        result = self._git(["rev-parse", "--verify", "--quiet", ref], check=False)
        if result.returncode == 0 and result.stdout.strip():
            return result.stdout.strip()
        return None

    def has_record(self, commit: str) -> bool:
        result = self._git(["notes", f"--ref={self.ref}", "list", commit], check=False)
        return result.returncode == 0 and bool(result.stdout.strip())

    def read(self, commit: str) -> AttributionRecord | None:
        """Decoded record for ``commit``, or None when it has no note."""
        result = self._git(["notes", f"--ref={self.ref}", "show", commit], check=False)
        if result.returncode != 0:
            return None
        return decode_record(result.stdout, commit=commit)

    def write(self, commit: str, record: AttributionRecord) -> None:
        """Attach ``record`` to ``commit``, replacing any existing note."""
        if record.commit != commit:
            record = record.readdressed(commit)
        body = encode_record(record)
        blob = self._git(["hash-object", "-w", "--stdin"], input=body).stdout.strip()

        for attempt in range(1, self.write_retries + 1):
            if self._try_write(commit, blob):
                logger.debug("Wrote attribution note for %s (%d ranges)", commit[:8], len(record.attributions))
                return
            logger.warning("Notes ref %s moved during write for %s (attempt %d/%d)", self.ref, commit[:8], attempt, self.write_retries)
        raise NoteConflictError(self.ref, commit, self.write_retries)

    def _try_write(self, commit: str, blob: str) -> bool:
        old = self._ref_value(self.ref)
        scratch = f"refs/notes/ai-blame-scratch/{os.getpid()}-{uuid4().hex[:8]}"
        try:
            if old:
                self._git(["update-ref", scratch, old])
            self._git(["notes", f"--ref={scratch}", "add", "-f", "-C", blob, commit])
            new = self._ref_value(scratch)
            result = self._git(
                ["update-ref", "-m", f"ai-blame: note for {commit}", self.ref, new, old or ZERO_OID],
                check=False,
            )
            return result.returncode == 0
        finally:
            self._git(["update-ref", "-d", scratch], check=False)

    def copy(self, source: str, target: str) -> AttributionRecord:
        """Copy the source commit's record verbatim to the target commit.

        Both revisions are resolved first. Raises MissingRecordError, and
        leaves the target untouched, when the source has no record.
        """
        source_oid = self.resolve(source)
        target_oid = self.resolve(target)
        record = self.read(source_oid)
        if record is None:
            raise MissingRecordError(source_oid)
        copied = record.readdressed(target_oid)
        self.write(target_oid, copied)
        return copied
