"""Main hook handler — reads stdin JSON and dispatches to the capture handlers."""

from __future__ import annotations

import json
import logging
import sys
from typing import Any

logger = logging.getLogger(__name__)


def read_stdin_json() -> dict[str, Any]:
    """Read and parse one JSON payload from stdin (Claude Code hook protocol)."""
    try:
        raw = sys.stdin.read()
        if not raw.strip():
            return {}
        data = json.loads(raw)
        return data if isinstance(data, dict) else {}
    except (json.JSONDecodeError, OSError):
        logger.debug("Ignoring unreadable hook payload", exc_info=True)
        return {}


def handle_hook(hook_type: str | None = None, data: dict[str, Any] | None = None) -> int:
    """Dispatch a hook payload. Returns the process exit code.

    Capture errors propagate to the caller; unknown hook types are ignored.
    """
    if data is None:
        data = read_stdin_json()

    if hook_type is None:
        hook_type = data.get("hook_event_name") or data.get("hook_type", "")

    handlers = {
        "UserPromptSubmit": _handle_user_prompt,
        "PostToolUse": _handle_tool_use,
    }

    handler = handlers.get(hook_type)
    if handler is None:
        logger.debug("No handler for hook type %r", hook_type)
        return 0
    return handler(data)


def _handle_user_prompt(data: dict[str, Any]) -> int:
    from .capture import on_user_prompt

    on_user_prompt(data)
    return 0


def _handle_tool_use(data: dict[str, Any]) -> int:
    from .capture import on_tool_use

    on_tool_use(data)
    return 0
