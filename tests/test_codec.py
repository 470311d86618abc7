"""Tests for the attribution note codec and record merging."""

from __future__ import annotations

import json

import pytest

from aiblame.core.codec import coalesce, decode_record, encode_record, merge_records
from aiblame.core.errors import CodecError
from aiblame.core.models import AttributionRecord, LineAttribution

COMMIT = "a" * 40
OTHER = "b" * 40


def _attr(path, start, end, tool="claude-code", session="s1", digest=None, contributor="ai"):
    return LineAttribution(
        path=path,
        start_line=start,
        end_line=end,
        contributor=contributor,
        tool=tool,
        session_id=session,
        prompt_digest=digest,
    )


def _record():
    return AttributionRecord(
        commit=COMMIT,
        attributions=(
            _attr("src/b.py", 1, 4, digest="d1"),
            _attr("src/a.py", 10, 20, digest="d1"),
            _attr("src/a.py", 30, 31, tool="cursor", session="s2"),
        ),
        prompts={"d1": "add a retry loop\nwith backoff"},
    )


class TestEncodeDecode:
    def test_round_trip_preserves_record(self):
        record = _record()
        decoded = decode_record(encode_record(record))
        assert decoded == record

    def test_output_is_deterministic(self):
        assert encode_record(_record()) == encode_record(_record())

    def test_lines_are_json_objects_with_type(self):
        lines = encode_record(_record()).splitlines()
        kinds = [json.loads(line)["type"] for line in lines]
        assert kinds == ["header", "range", "range", "range", "prompt"]

    def test_non_ascii_prompt(self):
        record = AttributionRecord(commit=COMMIT, attributions=(_attr("x.py", 1, 2, digest="d"),), prompts={"d": "héllo ✓"})
        assert decode_record(encode_record(record)).prompts == {"d": "héllo ✓"}

    def test_commit_argument_overrides_header(self):
        decoded = decode_record(encode_record(_record()), commit=OTHER)
        assert decoded.commit == OTHER

    def test_duplicate_lines_ignored(self):
        body = encode_record(_record())
        doubled = "\n".join(sorted(body.splitlines() * 2)) + "\n"
        assert decode_record(doubled) == _record()

    def test_overlapping_ranges_from_merge_are_trimmed(self):
        first = AttributionRecord(commit=COMMIT, attributions=(_attr("a.py", 1, 10),))
        second = AttributionRecord(commit=COMMIT, attributions=(_attr("a.py", 5, 15, tool="cursor"),))
        merged_text = "\n".join(sorted(set(encode_record(first).splitlines() + encode_record(second).splitlines())))
        decoded = decode_record(merged_text)
        assert [(a.start_line, a.end_line) for a in decoded.attributions] == [(1, 10), (10, 15)]
        assert decoded.line_count == 14

    def test_unknown_line_types_skipped(self):
        body = encode_record(_record()) + json.dumps({"type": "future-thing", "x": 1}) + "\n"
        assert decode_record(body) == _record()

    def test_malformed_json_raises(self):
        with pytest.raises(CodecError, match="line 2"):
            decode_record('{"type":"header","version":1,"commit":"%s"}\nnot json\n' % COMMIT)

    def test_missing_field_raises(self):
        with pytest.raises(CodecError):
            decode_record('{"type":"range","path":"a.py","start_line":1}\n', commit=COMMIT)

    def test_invalid_range_raises(self):
        with pytest.raises(CodecError):
            decode_record('{"type":"range","path":"a.py","start_line":5,"end_line":5}\n', commit=COMMIT)

    def test_newer_version_rejected(self):
        with pytest.raises(CodecError, match="version"):
            decode_record('{"type":"header","version":99,"commit":"%s"}\n' % COMMIT)

    def test_no_commit_anywhere_raises(self):
        with pytest.raises(CodecError):
            decode_record('{"type":"range","path":"a.py","start_line":1,"end_line":2}\n')


class TestMergeRecords:
    def test_later_record_wins_on_overlap(self):
        older = AttributionRecord(commit=COMMIT, attributions=(_attr("a.py", 1, 20, session="old"),))
        newer = AttributionRecord(commit=COMMIT, attributions=(_attr("a.py", 5, 10, session="new"),))
        merged = merge_records(OTHER, [older, newer])
        assert merged.commit == OTHER
        assert [(a.start_line, a.end_line, a.session_id) for a in merged.attributions] == [
            (1, 5, "old"),
            (5, 10, "new"),
            (10, 20, "old"),
        ]

    def test_disjoint_records_union(self):
        a = AttributionRecord(commit=COMMIT, attributions=(_attr("a.py", 1, 3),), prompts={"p": "one"})
        b = AttributionRecord(commit=COMMIT, attributions=(_attr("b.py", 1, 3),), prompts={"q": "two"})
        merged = merge_records(COMMIT, [a, b])
        assert merged.paths == ["a.py", "b.py"]
        assert merged.prompts == {"p": "one", "q": "two"}

    def test_empty_input(self):
        assert merge_records(COMMIT, []).is_empty


class TestCoalesce:
    def test_adjacent_same_source_joined(self):
        out = coalesce([_attr("a.py", 5, 8), _attr("a.py", 1, 5)])
        assert [(a.start_line, a.end_line) for a in out] == [(1, 8)]

    def test_different_source_kept_apart(self):
        out = coalesce([_attr("a.py", 1, 5), _attr("a.py", 5, 8, session="other")])
        assert len(out) == 2

    def test_gap_kept_apart(self):
        out = coalesce([_attr("a.py", 1, 5), _attr("a.py", 6, 8)])
        assert len(out) == 2


class TestAttributionRecord:
    def test_rejects_overlap(self):
        with pytest.raises(ValueError, match="Overlapping"):
            AttributionRecord(commit=COMMIT, attributions=(_attr("a.py", 1, 10), _attr("a.py", 9, 12)))

    def test_lookup(self):
        record = _record()
        assert record.lookup("src/a.py", 10).session_id == "s1"
        assert record.lookup("src/a.py", 19) is not None
        assert record.lookup("src/a.py", 20) is None
        assert record.lookup("src/a.py", 30).tool == "cursor"
        assert record.lookup("missing.py", 1) is None

    def test_line_count_and_paths(self):
        record = _record()
        assert record.line_count == 3 + 10 + 1
        assert record.paths == ["src/a.py", "src/b.py"]
