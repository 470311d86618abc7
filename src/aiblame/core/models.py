"""Attribution data types.

Line ranges are 1-indexed and end-exclusive throughout: ``start_line=12,
end_line=15`` covers lines 12, 13 and 14.
"""

from __future__ import annotations

from bisect import bisect_right
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

CONTRIBUTOR_AI = "ai"
CONTRIBUTOR_HUMAN = "human"
VALID_CONTRIBUTORS = (CONTRIBUTOR_AI, CONTRIBUTOR_HUMAN)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class CaptureEvent:
    """One recorded edit, staged until the next commit."""

    file_path: str
    start_line: int
    end_line: int
    tool: str
    session_id: str
    prompt_digest: str | None = None
    timestamp: str = field(default_factory=_now_iso)
    contributor: str = CONTRIBUTOR_AI

    def __post_init__(self):
        if self.start_line < 1 or self.end_line <= self.start_line:
            raise ValueError(f"Invalid line range [{self.start_line}, {self.end_line}) for {self.file_path}")
        if self.contributor not in VALID_CONTRIBUTORS:
            raise ValueError(f"Invalid contributor '{self.contributor}'. Must be one of: {VALID_CONTRIBUTORS}")

    @property
    def line_count(self) -> int:
        return self.end_line - self.start_line

    def sort_key(self) -> datetime:
        ts = datetime.fromisoformat(self.timestamp)
        if ts.tzinfo is None:
            ts = ts.replace(tzinfo=timezone.utc)
        return ts

    def to_dict(self) -> dict[str, Any]:
        return {
            "file_path": self.file_path,
            "start_line": self.start_line,
            "end_line": self.end_line,
            "tool": self.tool,
            "session_id": self.session_id,
            "prompt_digest": self.prompt_digest,
            "timestamp": self.timestamp,
            "contributor": self.contributor,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CaptureEvent:
        return cls(
            file_path=data["file_path"],
            start_line=int(data["start_line"]),
            end_line=int(data["end_line"]),
            tool=data["tool"],
            session_id=data["session_id"],
            prompt_digest=data.get("prompt_digest"),
            timestamp=data["timestamp"],
            contributor=data.get("contributor", CONTRIBUTOR_AI),
        )


@dataclass(frozen=True)
class LineAttribution:
    path: str
    start_line: int
    end_line: int
    contributor: str = CONTRIBUTOR_AI
    tool: str | None = None
    session_id: str | None = None
    prompt_digest: str | None = None

    def __post_init__(self):
        if self.start_line < 1 or self.end_line <= self.start_line:
            raise ValueError(f"Invalid line range [{self.start_line}, {self.end_line}) for {self.path}")
        if self.contributor not in VALID_CONTRIBUTORS:
            raise ValueError(f"Invalid contributor '{self.contributor}'. Must be one of: {VALID_CONTRIBUTORS}")

    @property
    def line_count(self) -> int:
        return self.end_line - self.start_line

    def covers(self, line: int) -> bool:
        return self.start_line <= line < self.end_line

    def same_source(self, other: LineAttribution) -> bool:
        """True when both entries carry the same contributor, tool, session and prompt."""
        return (self.contributor, self.tool, self.session_id, self.prompt_digest) == (
            other.contributor,
            other.tool,
            other.session_id,
            other.prompt_digest,
        )

    def with_range(self, start_line: int, end_line: int, path: str | None = None) -> LineAttribution:
        return LineAttribution(
            path=path or self.path,
            start_line=start_line,
            end_line=end_line,
            contributor=self.contributor,
            tool=self.tool,
            session_id=self.session_id,
            prompt_digest=self.prompt_digest,
        )


@dataclass(frozen=True)
class AttributionRecord:
    """All line attributions finalized for one commit.

    Entries are kept sorted by (path, start_line). Ranges of the same file
    must not overlap.
    """

    commit: str
    attributions: tuple[LineAttribution, ...] = ()
    prompts: dict[str, str] = field(default_factory=dict)

    def __post_init__(self):
        ordered = tuple(sorted(self.attributions, key=lambda a: (a.path, a.start_line)))
        for prev, cur in zip(ordered, ordered[1:]):
            if prev.path == cur.path and cur.start_line < prev.end_line:
                raise ValueError(
                    f"Overlapping attribution in {cur.path}: [{prev.start_line}, {prev.end_line}) "
                    f"and [{cur.start_line}, {cur.end_line})"
                )
        object.__setattr__(self, "attributions", ordered)

    @property
    def paths(self) -> list[str]:
        return sorted({a.path for a in self.attributions})

    @property
    def line_count(self) -> int:
        return sum(a.line_count for a in self.attributions)

    @property
    def is_empty(self) -> bool:
        return not self.attributions

    def for_path(self, path: str) -> list[LineAttribution]:
        return [a for a in self.attributions if a.path == path]

    def lookup(self, path: str, line: int) -> LineAttribution | None:
        """Return the entry covering ``line`` of ``path``, if any."""
        entries = self.for_path(path)
        idx = bisect_right([a.start_line for a in entries], line) - 1
        if idx >= 0 and entries[idx].covers(line):
            return entries[idx]
        return None

    def prompt_text(self, digest: str | None) -> str | None:
        if digest is None:
            return None
        return self.prompts.get(digest)

    def readdressed(self, commit: str) -> AttributionRecord:
        return AttributionRecord(commit=commit, attributions=self.attributions, prompts=dict(self.prompts))


@dataclass(frozen=True)
class PendingState:
    """Summary of staged, not-yet-finalized capture events."""

    event_count: int = 0
    file_count: int = 0
    line_count: int = 0
    session_id: str | None = None
    sessions: tuple[str, ...] = ()

    @property
    def has_pending(self) -> bool:
        return self.event_count > 0


@dataclass(frozen=True)
class BlameLine:
    line_number: int
    contributor: str
    commit: str
    content: str = ""
    tool: str | None = None
    session_id: str | None = None
    prompt_digest: str | None = None

    @property
    def is_ai(self) -> bool:
        return self.contributor == CONTRIBUTOR_AI


@dataclass
class RangeSummary:
    total_lines: int = 0
    ai_lines: int = 0
    by_tool: dict[str, int] = field(default_factory=dict)
    by_session: dict[str, int] = field(default_factory=dict)
    commits: int = 0
    attributed_commits: int = 0

    @property
    def ai_pct(self) -> float:
        return round(self.ai_lines / self.total_lines * 100, 1) if self.total_lines > 0 else 0.0
