"""Blame engine — git line history joined with attribution notes."""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from typing import Iterator

from .errors import AiBlameError
from .git_utils import ZERO_OID, blame_porcelain, resolve_commit
from .models import CONTRIBUTOR_HUMAN, AttributionRecord, BlameLine
from .notes import NotesRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BlameEntry:
    """One line of ``git blame --porcelain`` output."""

    commit: str
    orig_line: int
    final_line: int
    orig_path: str
    content: str


def parse_blame_porcelain(raw: str) -> list[BlameEntry]:
    """Parse ``git blame --porcelain`` output into per-line entries."""
    entries: list[BlameEntry] = []
    filenames: dict[str, str] = {}
    lines = raw.split("\n")
    i = 0
    while i < len(lines):
        parts = lines[i].split()
        i += 1
        if len(parts) < 3 or len(parts[0]) != 40:
            continue
        sha = parts[0]
        try:
            orig_line, final_line = int(parts[1]), int(parts[2])
        except ValueError:
            continue

        while i < len(lines) and not lines[i].startswith("\t"):
            if lines[i].startswith("filename "):
                filenames[sha] = lines[i][len("filename "):]
            i += 1

        content = ""
        if i < len(lines):
            content = lines[i][1:]
            i += 1
        entries.append(
            BlameEntry(
                commit=sha,
                orig_line=orig_line,
                final_line=final_line,
                orig_path=filenames.get(sha, ""),
                content=content,
            )
        )
    return entries


class FileBlame:
    """Per-line attribution for one file at one revision.

    Iterating is lazy: ``git blame`` runs on first use, and each
    introducing commit's note is read at most once. Iterating again
    replays the same answer.
    """

    def __init__(
        self,
        repo_path: str,
        file_path: str,
        revision: str = "HEAD",
        notes: NotesRepository | None = None,
        start_line: int | None = None,
        end_line: int | None = None,
    ):
        self.repo_path = repo_path
        self.file_path = file_path
        self.revision = resolve_commit(repo_path, revision)
        self.notes = notes or NotesRepository.for_repo(repo_path)
        self.start_line = start_line
        self.end_line = end_line
        self._entries: list[BlameEntry] | None = None
        self._records: dict[str, AttributionRecord | None] = {}

    def _load(self) -> list[BlameEntry]:
        if self._entries is None:
            try:
                raw = blame_porcelain(self.repo_path, self.file_path, self.revision, self.start_line, self.end_line)
            except subprocess.CalledProcessError as e:
                stderr = (e.stderr or "").strip()
                if "no such path" in stderr:
                    raise AiBlameError(f"No such file '{self.file_path}' at {self.revision[:8]}") from e
                raise AiBlameError(f"git blame failed for {self.file_path}: {stderr}") from e
            self._entries = parse_blame_porcelain(raw)
        return self._entries

    def record_for(self, commit: str) -> AttributionRecord | None:
        if commit not in self._records:
            self._records[commit] = None if commit == ZERO_OID else self.notes.read(commit)
            logger.debug("Attribution for %s: %s", commit[:8], "found" if self._records[commit] else "none")
        return self._records[commit]

    def __iter__(self) -> Iterator[BlameLine]:
        for entry in self._load():
            record = self.record_for(entry.commit)
            attribution = record.lookup(entry.orig_path or self.file_path, entry.orig_line) if record else None
            if attribution is None:
                yield BlameLine(
                    line_number=entry.final_line,
                    contributor=CONTRIBUTOR_HUMAN,
                    commit=entry.commit,
                    content=entry.content,
                )
            else:
                yield BlameLine(
                    line_number=entry.final_line,
                    contributor=attribution.contributor,
                    commit=entry.commit,
                    content=entry.content,
                    tool=attribution.tool,
                    session_id=attribution.session_id,
                    prompt_digest=attribution.prompt_digest,
                )

    def prompt_text(self, line: BlameLine) -> str | None:
        record = self.record_for(line.commit)
        return record.prompt_text(line.prompt_digest) if record else None


def blame_file(
    repo_path: str,
    file_path: str,
    revision: str = "HEAD",
    notes: NotesRepository | None = None,
    start_line: int | None = None,
    end_line: int | None = None,
) -> FileBlame:
    return FileBlame(repo_path, file_path, revision, notes=notes, start_line=start_line, end_line=end_line)


def summarize_blame(lines) -> dict:
    """Aggregate blame lines into human/AI counts and a per-tool breakdown."""
    total = 0
    ai = 0
    tools: dict[str, int] = {}
    for line in lines:
        total += 1
        if line.is_ai:
            ai += 1
            name = line.tool or "unknown"
            tools[name] = tools.get(name, 0) + 1
    return {
        "total_lines": total,
        "ai_lines": ai,
        "human_lines": total - ai,
        "ai_pct": round(ai / total * 100, 1) if total else 0.0,
        "human_pct": round((total - ai) / total * 100, 1) if total else 0.0,
        "tools": tools,
    }
