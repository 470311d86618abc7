"""Range aggregation of attribution notes."""

from __future__ import annotations

from .git_utils import rev_list
from .models import CONTRIBUTOR_AI, RangeSummary
from .notes import NotesRepository


def summarize(repo_path: str, commit_range: str, notes: NotesRepository | None = None) -> RangeSummary:
    """Fold the attribution notes of every commit in ``commit_range``.

    Each commit counts once, however many paths reach it. Commits
    without a note contribute nothing.
    """
    notes = notes or NotesRepository.for_repo(repo_path)
    summary = RangeSummary()
    seen: set[str] = set()

    for commit in rev_list(repo_path, commit_range):
        if commit in seen:
            continue
        seen.add(commit)
        summary.commits += 1

        record = notes.read(commit)
        if record is None or record.is_empty:
            continue
        summary.attributed_commits += 1

        for a in record.attributions:
            summary.total_lines += a.line_count
            if a.contributor != CONTRIBUTOR_AI:
                continue
            summary.ai_lines += a.line_count
            tool = a.tool or "unknown"
            summary.by_tool[tool] = summary.by_tool.get(tool, 0) + a.line_count
            session = a.session_id or "unknown"
            summary.by_session[session] = summary.by_session.get(session, 0) + a.line_count

    return summary
