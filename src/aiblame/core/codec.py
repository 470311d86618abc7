"""Attribution note codec.

A note body is JSON Lines, one object per line, each tagged by ``type``::

    {"type": "header", "version": 1, "commit": "<sha>"}
    {"type": "range", "path": "...", "start_line": 12, "end_line": 15, ...}
    {"type": "prompt", "digest": "<sha256>", "text": "..."}

Lines are emitted in a deterministic order with sorted keys, so two notes
for the same commit can be combined line-wise (``git notes merge -s
cat_sort_uniq``) and still decode.
"""

from __future__ import annotations

import json
from typing import Any

from .errors import CodecError
from .models import CONTRIBUTOR_AI, AttributionRecord, LineAttribution

FORMAT_VERSION = 1


def _dumps(obj: dict[str, Any]) -> str:
    return json.dumps(obj, sort_keys=True, ensure_ascii=False, separators=(",", ":"))


def encode_record(record: AttributionRecord) -> str:
    lines = [_dumps({"type": "header", "version": FORMAT_VERSION, "commit": record.commit})]
    for a in record.attributions:
        lines.append(
            _dumps(
                {
                    "type": "range",
                    "path": a.path,
                    "start_line": a.start_line,
                    "end_line": a.end_line,
                    "contributor": a.contributor,
                    "tool": a.tool,
                    "session_id": a.session_id,
                    "prompt_digest": a.prompt_digest,
                }
            )
        )
    for digest in sorted(record.prompts):
        lines.append(_dumps({"type": "prompt", "digest": digest, "text": record.prompts[digest]}))
    return "\n".join(lines) + "\n"


def decode_record(text: str, commit: str | None = None) -> AttributionRecord:
    """Decode a note body.

    ``commit`` overrides the header's commit id; the note's key is the
    authority on which commit the record belongs to. Duplicate lines, as
    left by a line-wise note merge, are ignored; when merged ranges
    overlap, the first one in sorted order keeps the overlapping lines.
    """
    header_commit = None
    entries: list[LineAttribution] = []
    prompts: dict[str, str] = {}
    seen: set[str] = set()

    for line_number, line in enumerate(text.splitlines(), start=1):
        line = line.strip()
        if not line or line in seen:
            continue
        seen.add(line)
        try:
            obj = json.loads(line)
        except json.JSONDecodeError as e:
            raise CodecError(f"Malformed attribution note (line {line_number}): {e.msg}") from e
        if not isinstance(obj, dict):
            raise CodecError(f"Malformed attribution note (line {line_number}): expected an object")

        kind = obj.get("type")
        try:
            if kind == "header":
                if int(obj.get("version", FORMAT_VERSION)) > FORMAT_VERSION:
                    raise CodecError(f"Unsupported attribution note version {obj['version']}")
                header_commit = obj.get("commit")
            elif kind == "range":
                entries.append(
                    LineAttribution(
                        path=obj["path"],
                        start_line=int(obj["start_line"]),
                        end_line=int(obj["end_line"]),
                        contributor=obj.get("contributor", CONTRIBUTOR_AI),
                        tool=obj.get("tool"),
                        session_id=obj.get("session_id"),
                        prompt_digest=obj.get("prompt_digest"),
                    )
                )
            elif kind == "prompt":
                prompts[obj["digest"]] = obj["text"]
        except (KeyError, TypeError, ValueError) as e:
            raise CodecError(f"Malformed attribution note (line {line_number}): {e}") from e

    record_commit = commit or header_commit
    if not record_commit:
        raise CodecError("Attribution note has no commit id")
    return AttributionRecord(commit=record_commit, attributions=tuple(_drop_overlaps(entries)), prompts=prompts)


def _drop_overlaps(entries: list[LineAttribution]) -> list[LineAttribution]:
    kept: list[LineAttribution] = []
    for a in sorted(entries, key=lambda a: (a.path, a.start_line, a.end_line)):
        if kept and kept[-1].path == a.path and a.start_line < kept[-1].end_line:
            if a.end_line <= kept[-1].end_line:
                continue
            a = a.with_range(kept[-1].end_line, a.end_line)
        kept.append(a)
    return kept


def merge_records(commit: str, records: list[AttributionRecord]) -> AttributionRecord:
    """Combine several records into one for ``commit``.

    Later records win on overlapping lines; earlier entries are truncated
    or split around them.
    """
    merged: list[LineAttribution] = []
    prompts: dict[str, str] = {}
    for record in records:
        prompts.update(record.prompts)
        for new in record.attributions:
            survivors: list[LineAttribution] = []
            for old in merged:
                if old.path != new.path or old.end_line <= new.start_line or new.end_line <= old.start_line:
                    survivors.append(old)
                    continue
                if old.start_line < new.start_line:
                    survivors.append(old.with_range(old.start_line, new.start_line))
                if new.end_line < old.end_line:
                    survivors.append(old.with_range(new.end_line, old.end_line))
            merged = survivors + [new]
    return AttributionRecord(commit=commit, attributions=tuple(coalesce(merged)), prompts=prompts)


def coalesce(entries: list[LineAttribution]) -> list[LineAttribution]:
    """Join adjacent ranges of the same file that share one source."""
    out: list[LineAttribution] = []
    for a in sorted(entries, key=lambda a: (a.path, a.start_line)):
        if out and out[-1].path == a.path and out[-1].end_line == a.start_line and out[-1].same_source(a):
            out[-1] = out[-1].with_range(out[-1].start_line, a.end_line)
        else:
            out.append(a)
    return out
