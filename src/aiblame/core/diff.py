"""Zero-context unified diff parsing and line correspondence."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Iterable

_HUNK_RE = re.compile(r"^@@ -(\d+)(?:,(\d+))? \+(\d+)(?:,(\d+))? @@")


@dataclass(frozen=True)
class Hunk:
    old_start: int
    old_count: int
    new_start: int
    new_count: int


@dataclass
class FileDiff:
    old_path: str | None
    new_path: str | None
    hunks: list[Hunk] = field(default_factory=list)

    @property
    def deleted(self) -> bool:
        return self.new_path is None

    def added_lines(self) -> set[int]:
        """Lines of the new file that the diff adds or rewrites."""
        lines: set[int] = set()
        for h in self.hunks:
            lines.update(range(h.new_start, h.new_start + h.new_count))
        return lines

    def map_line(self, old_line: int) -> int | None:
        """Map a line of the old file to its position in the new file.

        Returns None when the line falls inside a changed hunk.
        """
        offset = 0
        for h in sorted(self.hunks, key=lambda h: h.old_start):
            if h.old_count == 0:
                # pure insertion after old line h.old_start
                if old_line <= h.old_start:
                    break
                offset += h.new_count
                continue
            if old_line < h.old_start:
                break
            if old_line < h.old_start + h.old_count:
                return None
            offset += h.new_count - h.old_count
        return old_line + offset


def _strip_prefix(path: str, prefix: str) -> str | None:
    if path == "/dev/null":
        return None
    if path.startswith(prefix):
        return path[len(prefix):]
    return path


def parse_diff(diff_output: str) -> list[FileDiff]:
    """Parse ``git diff -U0`` output into per-file hunk lists.

    Handles new and deleted files, and renames with or without content
    changes. Once a file's first hunk starts, only ``@@`` lines are read:
    a removed ``-- comment`` shows up as ``--- comment`` and is content,
    not a header.
    """
    files: list[FileDiff] = []
    current: FileDiff | None = None
    in_hunks = False

    for line in diff_output.split("\n"):
        if line.startswith("diff --git "):
            current = FileDiff(old_path=None, new_path=None)
            files.append(current)
            in_hunks = False
            parts = line[len("diff --git "):].split(" b/", 1)
            if len(parts) == 2 and parts[0].startswith("a/"):
                current.old_path = parts[0][2:]
                current.new_path = parts[1]
        elif current is None:
            continue
        elif line.startswith("@@"):
            in_hunks = True
            m = _HUNK_RE.match(line)
            if m:
                current.hunks.append(
                    Hunk(
                        old_start=int(m.group(1)),
                        old_count=int(m.group(2)) if m.group(2) is not None else 1,
                        new_start=int(m.group(3)),
                        new_count=int(m.group(4)) if m.group(4) is not None else 1,
                    )
                )
        elif in_hunks:
            continue
        elif line.startswith("rename from "):
            current.old_path = line[len("rename from "):]
        elif line.startswith("rename to "):
            current.new_path = line[len("rename to "):]
        elif line.startswith("new file mode"):
            current.old_path = None
        elif line.startswith("deleted file mode"):
            current.new_path = None
        elif line.startswith("--- "):
            current.old_path = _strip_prefix(line[4:], "a/")
        elif line.startswith("+++ "):
            current.new_path = _strip_prefix(line[4:], "b/")

    return files


def lines_to_ranges(lines: Iterable[int]) -> list[tuple[int, int]]:
    """Collapse line numbers into minimal end-exclusive ranges.

    >>> lines_to_ranges([12, 13, 14, 18])
    [(12, 15), (18, 19)]
    """
    ranges: list[tuple[int, int]] = []
    for line in sorted(set(lines)):
        if ranges and ranges[-1][1] == line:
            ranges[-1] = (ranges[-1][0], line + 1)
        else:
            ranges.append((line, line + 1))
    return ranges
