"""Tests for turning staged captures into a commit's attribution note."""

from __future__ import annotations

import subprocess
from unittest.mock import patch

import pytest

from aiblame.core.errors import FinalizeError
from aiblame.core.finalizer import changed_lines_by_file, finalize_commit, resolve_events
from aiblame.core.models import CaptureEvent

from conftest import commit_file, git, numbered_lines


def _event(path="app.py", start=1, end=2, session="s1", ts="2025-01-01T00:00:00+00:00", digest=None):
    return CaptureEvent(
        file_path=path,
        start_line=start,
        end_line=end,
        tool="claude-code",
        session_id=session,
        prompt_digest=digest,
        timestamp=ts,
    )


def _spans(entries):
    return [(a.path, a.start_line, a.end_line, a.session_id) for a in entries]


def _edit_lines(text: str, lines: set[int]) -> str:
    out = []
    for i, line in enumerate(text.splitlines(keepends=True), start=1):
        out.append(f"edited {i}\n" if i in lines else line)
    return "".join(out)


class TestResolveEvents:
    def test_intersects_with_changed_lines(self):
        entries = resolve_events([_event(start=10, end=20)], {"app.py": {12, 13, 14, 18}})
        assert [(a.start_line, a.end_line) for a in entries] == [(12, 15), (18, 19)]

    def test_later_timestamp_wins(self):
        events = [
            _event(start=1, end=10, session="late", ts="2025-01-02T00:00:00+00:00"),
            _event(start=5, end=15, session="early", ts="2025-01-01T00:00:00+00:00"),
        ]
        entries = resolve_events(events, None)
        assert _spans(entries) == [("app.py", 1, 10, "late"), ("app.py", 10, 15, "early")]

    def test_append_order_breaks_timestamp_ties(self):
        events = [
            _event(start=1, end=10, session="first"),
            _event(start=5, end=8, session="second"),
        ]
        entries = resolve_events(events, None)
        assert _spans(entries) == [
            ("app.py", 1, 5, "first"),
            ("app.py", 5, 8, "second"),
            ("app.py", 8, 10, "first"),
        ]

    def test_no_overlapping_output(self):
        events = [_event(start=s, end=s + 7, session=f"s{s}") for s in range(1, 30, 3)]
        entries = resolve_events(events, None)
        covered = [line for a in entries for line in range(a.start_line, a.end_line)]
        assert len(covered) == len(set(covered))

    def test_file_outside_commit_dropped(self):
        entries = resolve_events([_event(path="other.py", start=1, end=5)], {"app.py": {1, 2}})
        assert entries == []

    def test_none_changed_keeps_ranges(self):
        entries = resolve_events([_event(start=3, end=6)], None)
        assert [(a.start_line, a.end_line) for a in entries] == [(3, 6)]


class TestFinalizeCommit:
    def test_captured_range_clipped_to_diff(self, git_repo, store, notes):
        base = numbered_lines(1, 26)
        commit_file(git_repo, "app.py", base, "base")
        (git_repo / "app.py").write_text(_edit_lines(base, {12, 13, 14, 18}), encoding="utf-8")
        store.append(_event(start=10, end=20))
        head = commit_file(git_repo, "app.py", (git_repo / "app.py").read_text(encoding="utf-8"), "ai edit")

        result = finalize_commit(str(git_repo), store=store, notes=notes)

        assert result.written
        assert result.drained == 1
        record = notes.read(head)
        assert [(a.start_line, a.end_line) for a in record.attributions] == [(12, 15), (18, 19)]
        assert store.drain_all() == []

    def test_no_events_writes_nothing(self, git_repo, store, notes):
        head = commit_file(git_repo, "app.py", "x\n")
        result = finalize_commit(str(git_repo), store=store, notes=notes)
        assert not result.written
        assert result.drained == 0
        assert notes.read(head) is None

    def test_nothing_survives_writes_nothing(self, git_repo, store, notes):
        store.append(_event(path="untouched.py", start=1, end=5))
        head = commit_file(git_repo, "app.py", "x\n")

        result = finalize_commit(str(git_repo), store=store, notes=notes)
        assert not result.written
        assert result.dropped_files == ["untouched.py"]
        assert notes.read(head) is None

    def test_root_commit_diffs_against_empty_tree(self, bare_repo):
        from aiblame.core.notes import NotesRepository
        from aiblame.core.staging import StagingStore

        store = StagingStore.for_repo(str(bare_repo), lock_timeout=1.0)
        notes = NotesRepository(str(bare_repo))
        store.append(_event(start=2, end=4))
        head = commit_file(bare_repo, "app.py", numbered_lines(1, 6), "root")

        finalize_commit(str(bare_repo), store=store, notes=notes)
        assert [(a.start_line, a.end_line) for a in notes.read(head).attributions] == [(2, 4)]

    def test_prompts_carried_into_record(self, git_repo, store, notes):
        digest = store.prompts.put("write a parser")
        store.append(_event(start=1, end=3, digest=digest))
        head = commit_file(git_repo, "app.py", numbered_lines(1, 4))

        finalize_commit(str(git_repo), store=store, notes=notes)
        record = notes.read(head)
        assert record.prompt_text(digest) == "write a parser"

    def test_diff_failure_keeps_captured_ranges(self, git_repo, store, notes):
        store.append(_event(start=1, end=3))
        head = commit_file(git_repo, "app.py", numbered_lines(1, 4))

        error = subprocess.CalledProcessError(128, ["git", "diff"], stderr="boom")
        with patch("aiblame.core.finalizer.diff_commit", side_effect=error):
            result = finalize_commit(str(git_repo), store=store, notes=notes)

        assert not result.used_diff
        assert [(a.start_line, a.end_line) for a in notes.read(head).attributions] == [(1, 3)]

    def test_persistence_failure_reports_lost_events(self, git_repo, store, notes):
        store.append(_event(start=1, end=2))
        store.append(_event(start=2, end=3))
        commit_file(git_repo, "app.py", numbered_lines(1, 4))

        with patch.object(notes, "write", side_effect=RuntimeError("disk full")):
            with pytest.raises(FinalizeError) as exc_info:
                finalize_commit(str(git_repo), store=store, notes=notes)

        assert exc_info.value.lost_events == 2
        assert "disk full" in str(exc_info.value)
        # drained events are not re-queued
        assert store.drain_all() == []

    def test_explicit_revision(self, git_repo, store, notes):
        first = commit_file(git_repo, "app.py", numbered_lines(1, 4), "first")
        commit_file(git_repo, "other.py", "y\n", "second")
        store.append(_event(start=1, end=4))

        result = finalize_commit(str(git_repo), "HEAD~1", store=store, notes=notes)
        assert result.commit == first
        assert notes.has_record(first)


class TestChangedLines:
    def test_rename_reports_new_path(self, git_repo):
        commit_file(git_repo, "old.py", numbered_lines(1, 20))
        git(git_repo, "mv", "old.py", "new.py")
        (git_repo / "new.py").write_text(_edit_lines(numbered_lines(1, 20), {3}), encoding="utf-8")
        git(git_repo, "add", "-A")
        git(git_repo, "commit", "-q", "-m", "rename")
        head = git(git_repo, "rev-parse", "HEAD")

        assert changed_lines_by_file(str(git_repo), head) == {"new.py": {3}}
