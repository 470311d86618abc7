"""Pending captures shared across short-lived hook processes.

Pending events live in ``<git-dir>/ai-blame/pending.jsonl``, one JSON object
per line in append order. Every read and write happens under an exclusive
``flock`` on the sibling ``pending.lock`` file, so concurrent capture
invocations and the post-commit drain never interleave. The lock covers the
staging file only; nothing else in the repository is blocked.
"""

from __future__ import annotations

import contextlib
import fcntl
import json
import logging
import os
import time
from pathlib import Path
from typing import Iterator

from .errors import StagingCorruptError, StagingError
from .git_utils import get_git_dir
from .models import CaptureEvent, PendingState
from .prompts import PromptStore

logger = logging.getLogger(__name__)

STAGING_DIR_NAME = "ai-blame"
PENDING_FILE = "pending.jsonl"
LOCK_FILE = "pending.lock"
_LOCK_POLL_SECONDS = 0.05


class StagingStore:
    """File-backed accumulator of capture events for one working copy."""

    def __init__(self, root: Path, lock_timeout: float = 5.0):
        self.root = Path(root)
        self.lock_timeout = lock_timeout
        self.pending_path = self.root / PENDING_FILE
        self.lock_path = self.root / LOCK_FILE
        self.prompts = PromptStore(self.root / "prompts")

    @classmethod
    def for_repo(cls, repo_path: str, lock_timeout: float | None = None) -> StagingStore:
        if lock_timeout is None:
            from .config import load_config

            lock_timeout = float(load_config(repo_path)["staging"]["lock_timeout_seconds"])
        return cls(get_git_dir(repo_path) / STAGING_DIR_NAME, lock_timeout=lock_timeout)

    @contextlib.contextmanager
    def _locked(self) -> Iterator[None]:
        """Hold the staging lock, waiting at most ``lock_timeout`` seconds.

        A holder that outlives the timeout is treated as a crashed or hung
        process: the wait is abandoned and the caller proceeds unlocked.
        """
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            fd = os.open(str(self.lock_path), os.O_RDWR | os.O_CREAT, 0o644)
        except OSError as e:
            raise StagingError(f"Cannot open staging lock {self.lock_path}: {e}") from e

        acquired = False
        deadline = time.monotonic() + self.lock_timeout
        try:
            while True:
                try:
                    fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
                    acquired = True
                    break
                except BlockingIOError:
                    if time.monotonic() >= deadline:
                        logger.warning(
                            "Staging lock %s held for more than %.1fs; treating it as stale and proceeding",
                            self.lock_path,
                            self.lock_timeout,
                        )
                        break
                    time.sleep(_LOCK_POLL_SECONDS)
            yield
        finally:
            if acquired:
                fcntl.flock(fd, fcntl.LOCK_UN)
            os.close(fd)

    def _read_events(self) -> list[CaptureEvent]:
        if not self.pending_path.exists():
            return []
        try:
            data = self.pending_path.read_bytes()
        except OSError as e:
            raise StagingError(f"Cannot read staging file {self.pending_path}: {e}") from e
        try:
            raw = data.decode("utf-8")
        except UnicodeDecodeError as e:
            line_number = data.count(b"\n", 0, e.start) + 1
            raise StagingCorruptError(str(self.pending_path), line_number, "invalid UTF-8") from e

        events = []
        for line_number, line in enumerate(raw.splitlines(), start=1):
            if not line.strip():
                continue
            try:
                events.append(CaptureEvent.from_dict(json.loads(line)))
            except json.JSONDecodeError as e:
                raise StagingCorruptError(str(self.pending_path), line_number, f"invalid JSON ({e.msg})") from e
            except (KeyError, TypeError, ValueError) as e:
                raise StagingCorruptError(str(self.pending_path), line_number, f"invalid event ({e})") from e
        return events

    def append(self, event: CaptureEvent) -> None:
        line = json.dumps(event.to_dict(), sort_keys=True) + "\n"
        with self._locked():
            try:
                with open(self.pending_path, "a", encoding="utf-8") as f:
                    f.write(line)
                    f.flush()
                    os.fsync(f.fileno())
            except OSError as e:
                raise StagingError(f"Cannot append to staging file {self.pending_path}: {e}") from e
        logger.debug("Staged %s [%d, %d) from %s", event.file_path, event.start_line, event.end_line, event.tool)

    def events(self) -> list[CaptureEvent]:
        """Pending events without consuming them."""
        with self._locked():
            return self._read_events()

    def status(self) -> PendingState:
        events = self.events()
        if not events:
            return PendingState()

        sessions: list[str] = []
        for e in events:
            if e.session_id not in sessions:
                sessions.append(e.session_id)
        latest = max(enumerate(events), key=lambda pair: (pair[1].sort_key(), pair[0]))[1]
        return PendingState(
            event_count=len(events),
            file_count=len({e.file_path for e in events}),
            line_count=sum(e.line_count for e in events),
            session_id=latest.session_id,
            sessions=tuple(sessions),
        )

    def drain_all(self) -> list[CaptureEvent]:
        """Remove and return every pending event, in append order.

        A corrupt staging file is left untouched and raises
        StagingCorruptError.
        """
        with self._locked():
            events = self._read_events()
            if self.pending_path.exists():
                self.pending_path.unlink()
        logger.debug("Drained %d staged event(s)", len(events))
        return events

    def clear(self) -> None:
        with self._locked():
            if self.pending_path.exists():
                self.pending_path.unlink()

    def _session_prompt_path(self, session_id: str) -> Path:
        safe = "".join(c if c.isalnum() or c in "-_." else "_" for c in session_id)
        return self.root / "sessions" / f"{safe}.prompt"

    def set_session_prompt(self, session_id: str, text: str) -> str:
        """Record the prompt a session is currently working on. Returns its digest."""
        digest = self.prompts.put(text)
        path = self._session_prompt_path(session_id)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(digest, encoding="utf-8")
        return digest

    def session_prompt(self, session_id: str) -> str | None:
        path = self._session_prompt_path(session_id)
        if not path.exists():
            return None
        digest = path.read_text(encoding="utf-8").strip()
        return digest or None
