"""Turn assistant tool invocations into staged capture events."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from ..core.diff import lines_to_ranges
from ..core.git_utils import find_git_root, to_repo_relative
from ..core.models import CaptureEvent
from ..core.staging import StagingStore

logger = logging.getLogger(__name__)


def ranges_from_structured_patch(patch: list[dict[str, Any]]) -> list[tuple[int, int]]:
    """Added lines of a Claude Code ``structuredPatch``, as end-exclusive ranges."""
    added: list[int] = []
    for hunk in patch:
        line_no = int(hunk.get("newStart", 1))
        for text in hunk.get("lines", []):
            if text.startswith("+"):
                added.append(line_no)
                line_no += 1
            elif text.startswith(" "):
                line_no += 1
    return lines_to_ranges(added)


def ranges_from_content(file_text: str, new_text: str, replace_all: bool = False) -> list[tuple[int, int]]:
    """Locate ``new_text`` in the edited file and return the lines it spans."""
    if not new_text:
        return []
    span = new_text.count("\n") + (0 if new_text.endswith("\n") else 1)
    ranges = []
    idx = file_text.find(new_text)
    while idx != -1:
        start = file_text.count("\n", 0, idx) + 1
        ranges.append((start, start + span))
        if not replace_all:
            break
        idx = file_text.find(new_text, idx + len(new_text))
    return ranges


def _line_count(text: str) -> int:
    if not text:
        return 0
    return text.count("\n") + (0 if text.endswith("\n") else 1)


def edited_ranges(
    tool_name: str,
    tool_input: dict[str, Any],
    tool_response: dict[str, Any] | None,
    file_text: str | None,
) -> list[tuple[int, int]]:
    """Line ranges a Write/Edit/MultiEdit call left in the file."""
    if isinstance(tool_response, dict):
        patch = tool_response.get("structuredPatch")
        if patch:
            return ranges_from_structured_patch(patch)

    if tool_name == "Write":
        content = tool_input.get("content")
        if content is None:
            content = file_text or ""
        count = _line_count(content)
        return [(1, count + 1)] if count else []

    if file_text is None:
        return []

    if tool_name == "Edit":
        return ranges_from_content(file_text, tool_input.get("new_string", ""), bool(tool_input.get("replace_all")))

    if tool_name == "MultiEdit":
        lines: list[int] = []
        for edit in tool_input.get("edits", []):
            for start, end in ranges_from_content(file_text, edit.get("new_string", ""), bool(edit.get("replace_all"))):
                lines.extend(range(start, end))
        return lines_to_ranges(lines)

    return []


def capture_range(
    repo_path: str,
    file_path: str,
    start_line: int,
    end_line: int,
    tool: str,
    session_id: str,
    prompt: str | None = None,
    prompt_digest: str | None = None,
    store: StagingStore | None = None,
) -> CaptureEvent:
    """Stage one edited range. ``prompt`` text is stored once by digest."""
    store = store or StagingStore.for_repo(repo_path)
    if prompt:
        prompt_digest = store.prompts.put(prompt)
    event = CaptureEvent(
        file_path=to_repo_relative(repo_path, file_path),
        start_line=start_line,
        end_line=end_line,
        tool=tool,
        session_id=session_id,
        prompt_digest=prompt_digest,
    )
    store.append(event)
    return event


def on_user_prompt(data: dict[str, Any]) -> None:
    """UserPromptSubmit: remember the prompt the session is working on."""
    session_id = data.get("session_id")
    prompt = data.get("prompt", "")
    if not session_id or not prompt:
        return

    repo_path = find_git_root(data.get("cwd", "."))
    if not repo_path:
        return

    StagingStore.for_repo(repo_path).set_session_prompt(session_id, prompt)


def on_tool_use(data: dict[str, Any]) -> list[CaptureEvent]:
    """PostToolUse: stage the lines a file-editing tool produced."""
    from ..core.config import load_config

    session_id = data.get("session_id") or "unknown"
    tool_name = data.get("tool_name", "")
    tool_input = data.get("tool_input") or {}
    if not isinstance(tool_input, dict):
        return []

    file_path = tool_input.get("file_path") or tool_input.get("path")
    if not file_path:
        return []

    cwd = data.get("cwd", ".")
    if not Path(file_path).is_absolute():
        file_path = str(Path(cwd) / file_path)

    repo_path = find_git_root(Path(file_path).parent if Path(file_path).parent.exists() else cwd)
    if not repo_path:
        return []

    config = load_config(repo_path)
    if not config["capture"]["enabled"] or tool_name not in config["capture"]["tools"]:
        return []

    file_text = None
    try:
        file_text = Path(file_path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError):
        logger.debug("Could not read %s after %s", file_path, tool_name)

    ranges = edited_ranges(tool_name, tool_input, data.get("tool_response"), file_text)
    if not ranges:
        return []

    store = StagingStore.for_repo(repo_path)
    prompt = data.get("prompt")
    prompt_digest = None if prompt else store.session_prompt(session_id)

    return [
        capture_range(
            repo_path,
            file_path,
            start,
            end,
            tool=data.get("agent") or config["capture"]["agent"],
            session_id=session_id,
            prompt=prompt,
            prompt_digest=prompt_digest,
            store=store,
        )
        for start, end in ranges
    ]
