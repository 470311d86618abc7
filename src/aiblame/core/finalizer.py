"""Turn staged capture events into a commit's attribution note."""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass, field

from .codec import coalesce
from .diff import lines_to_ranges, parse_diff
from .errors import FinalizeError
from .git_utils import diff_commit, resolve_commit
from .models import AttributionRecord, CaptureEvent, LineAttribution
from .notes import NotesRepository
from .staging import StagingStore

logger = logging.getLogger(__name__)


@dataclass
class FinalizeResult:
    commit: str
    drained: int = 0
    record: AttributionRecord | None = None
    used_diff: bool = True
    dropped_files: list[str] = field(default_factory=list)

    @property
    def written(self) -> bool:
        return self.record is not None


def changed_lines_by_file(repo_path: str, commit: str) -> dict[str, set[int]] | None:
    """Lines each file gained or rewrote in ``commit`` relative to its first parent.

    Returns None when the diff cannot be computed.
    """
    try:
        output = diff_commit(repo_path, commit)
    except (subprocess.CalledProcessError, subprocess.TimeoutExpired, FileNotFoundError) as e:
        logger.warning("Could not diff %s against its parent: %s", commit[:8], e)
        return None
    return {fd.new_path: fd.added_lines() for fd in parse_diff(output) if fd.new_path}


def resolve_events(events: list[CaptureEvent], changed: dict[str, set[int]] | None) -> list[LineAttribution]:
    """Intersect events with the commit's changed lines and flatten overlaps.

    Every line goes to the latest event covering it (by timestamp, then
    append order). With ``changed=None`` the captured ranges are kept as is.
    """
    owner: dict[str, dict[int, int]] = {}
    ordered = sorted(range(len(events)), key=lambda i: (events[i].sort_key(), i))
    for idx in ordered:
        event = events[idx]
        lines = set(range(event.start_line, event.end_line))
        if changed is not None:
            lines &= changed.get(event.file_path, set())
        file_owner = owner.setdefault(event.file_path, {})
        for line in lines:
            file_owner[line] = idx

    entries: list[LineAttribution] = []
    for path, file_owner in owner.items():
        lines_by_event: dict[int, list[int]] = {}
        for line, idx in file_owner.items():
            lines_by_event.setdefault(idx, []).append(line)
        for idx, lines in lines_by_event.items():
            event = events[idx]
            for start, end in lines_to_ranges(lines):
                entries.append(
                    LineAttribution(
                        path=path,
                        start_line=start,
                        end_line=end,
                        contributor=event.contributor,
                        tool=event.tool,
                        session_id=event.session_id,
                        prompt_digest=event.prompt_digest,
                    )
                )
    return coalesce(entries)


def finalize_commit(
    repo_path: str,
    revision: str = "HEAD",
    store: StagingStore | None = None,
    notes: NotesRepository | None = None,
) -> FinalizeResult:
    """Drain staged captures and persist them as the note for ``revision``.

    No staged events means no note and no error. Once drained, events are
    not re-queued: a failed note write raises FinalizeError naming how many
    events were lost.
    """
    commit = resolve_commit(repo_path, revision)
    store = store or StagingStore.for_repo(repo_path)
    notes = notes or NotesRepository.for_repo(repo_path)

    events = store.drain_all()
    result = FinalizeResult(commit=commit, drained=len(events))
    if not events:
        return result

    try:
        changed = changed_lines_by_file(repo_path, commit)
        if changed is None:
            result.used_diff = False
        else:
            result.dropped_files = sorted({e.file_path for e in events} - changed.keys())

        entries = resolve_events(events, changed)
        if not entries:
            logger.info("No captured lines of %s survived the commit diff; no note written", commit[:8])
            return result
        digests = {a.prompt_digest for a in entries if a.prompt_digest}
        record = AttributionRecord(commit=commit, attributions=tuple(entries), prompts=store.prompts.resolve(digests))
        notes.write(commit, record)
    except Exception as e:
        logger.error("Attribution for %s lost: %d drained event(s) not persisted", commit[:8], len(events), exc_info=True)
        raise FinalizeError(commit, len(events), e) from e

    result.record = record
    logger.info("Finalized %d event(s) into %d range(s) for %s", len(events), len(entries), commit[:8])
    return result
