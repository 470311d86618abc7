"""Rewrite propagator — carries attribution across rebase, amend and squash.

Old and new commits are compared tree to tree. A line keeps its
attribution only if the diff shows it unchanged; anything inside a changed
hunk loses it. Under-attribution is acceptable, over-attribution is not.
"""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from typing import Iterable

from .codec import coalesce, merge_records
from .diff import FileDiff, lines_to_ranges, parse_diff
from .errors import AiBlameError, MissingRecordError
from .git_utils import diff_trees, resolve_commit
from .models import AttributionRecord, LineAttribution
from .notes import NotesRepository

logger = logging.getLogger(__name__)


@dataclass
class PropagateResult:
    source: str
    target: str
    record: AttributionRecord
    source_lines: int

    @property
    def kept_lines(self) -> int:
        return self.record.line_count

    @property
    def dropped_lines(self) -> int:
        return self.source_lines - self.kept_lines


def remap_attributions(record: AttributionRecord, diffs: list[FileDiff], target: str) -> AttributionRecord:
    """Map every range of ``record`` through the per-file diffs onto ``target``."""
    by_old_path = {fd.old_path: fd for fd in diffs if fd.old_path}
    remapped: list[LineAttribution] = []

    for a in record.attributions:
        fd = by_old_path.get(a.path)
        if fd is None:
            remapped.append(a)
            continue
        if fd.deleted:
            continue
        new_lines = [n for n in (fd.map_line(line) for line in range(a.start_line, a.end_line)) if n is not None]
        for start, end in lines_to_ranges(new_lines):
            remapped.append(a.with_range(start, end, path=fd.new_path))

    used = {a.prompt_digest for a in remapped if a.prompt_digest}
    prompts = {d: t for d, t in record.prompts.items() if d in used}
    return AttributionRecord(commit=target, attributions=tuple(coalesce(remapped)), prompts=prompts)


def remap_record(repo_path: str, record: AttributionRecord, source: str, target: str) -> AttributionRecord:
    if record.is_empty:
        return AttributionRecord(commit=target)
    try:
        output = diff_trees(repo_path, source, target)
    except subprocess.CalledProcessError as e:
        raise AiBlameError(f"Cannot diff {source[:8]} against {target[:8]}: {(e.stderr or '').strip()}") from e
    return remap_attributions(record, parse_diff(output), target)


def propagate(
    repo_path: str,
    source: str,
    target: str,
    notes: NotesRepository | None = None,
    dry_run: bool = False,
) -> PropagateResult:
    """Write the remapped record of ``source`` as the note for ``target``.

    Raises MissingRecordError when ``source`` has no record. An empty
    remapped record is still written: it states that nothing survived.
    """
    notes = notes or NotesRepository.for_repo(repo_path)
    source_oid = resolve_commit(repo_path, source)
    target_oid = resolve_commit(repo_path, target)

    record = notes.read(source_oid)
    if record is None:
        raise MissingRecordError(source_oid)

    remapped = remap_record(repo_path, record, source_oid, target_oid)
    if not dry_run:
        notes.write(target_oid, remapped)
    logger.info(
        "Propagated %s -> %s: kept %d of %d line(s)", source_oid[:8], target_oid[:8], remapped.line_count, record.line_count
    )
    return PropagateResult(source=source_oid, target=target_oid, record=remapped, source_lines=record.line_count)


def parse_rewrite_pairs(lines: Iterable[str]) -> list[tuple[str, str]]:
    """Parse ``<old> <new> [extra]`` lines as fed to git's post-rewrite hook."""
    pairs = []
    for line in lines:
        parts = line.split()
        if len(parts) >= 2:
            pairs.append((parts[0], parts[1]))
    return pairs


def propagate_rewrites(
    repo_path: str,
    pairs: list[tuple[str, str]],
    notes: NotesRepository | None = None,
) -> list[PropagateResult]:
    """Propagate a batch of old -> new rewrites.

    Old commits without a record are skipped. When several old commits
    collapse into one new commit (squash, fixup), their remapped records are
    merged with later pairs winning on overlapping lines. A record already
    on the new commit is merged last and wins over everything carried.
    """
    notes = notes or NotesRepository.for_repo(repo_path)

    grouped: dict[str, list[str]] = {}
    for old, new in pairs:
        grouped.setdefault(new, []).append(old)

    results: list[PropagateResult] = []
    for new, olds in grouped.items():
        target_oid = resolve_commit(repo_path, new)
        remapped_parts: list[AttributionRecord] = []
        source_lines = 0
        sources: list[str] = []
        for old in olds:
            old_oid = resolve_commit(repo_path, old)
            record = notes.read(old_oid)
            if record is None:
                logger.debug("No attribution on rewritten commit %s", old_oid[:8])
                continue
            sources.append(old_oid)
            source_lines += record.line_count
            remapped_parts.append(remap_record(repo_path, record, old_oid, target_oid))
        if not remapped_parts:
            continue

        carried = merge_records(target_oid, remapped_parts)
        # an amend runs post-commit before post-rewrite; the fresh note wins
        existing = notes.read(target_oid)
        merged = merge_records(target_oid, [carried, existing]) if existing is not None else carried
        notes.write(target_oid, merged)
        results.append(PropagateResult(source=",".join(sources), target=target_oid, record=carried, source_lines=source_lines))
    return results
