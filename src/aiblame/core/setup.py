"""Repository setup: git hook scripts, notes refspecs and assistant hooks."""

from __future__ import annotations

import json
import shutil
import stat
import sys
from pathlib import Path

from .git_utils import add_config_value, get_config_values, run_git
from .notes import DEFAULT_NOTES_REF

HOOK_MARKER = "# ai-blame"


def _resolve_command() -> str:
    exe = shutil.which("ai-blame")
    if exe:
        return str(Path(exe).resolve())
    return f"{sys.executable} -m aiblame"


def _hook_scripts(command: str) -> dict[str, str]:
    return {
        "post-commit": f"{HOOK_MARKER}: attach AI attribution to the new commit\n{command} post-commit 2>/dev/null || true\n",
        "post-rewrite": f'{HOOK_MARKER}: carry AI attribution across amend/rebase\n{command} post-rewrite "$1" 2>/dev/null || true\n',
    }


def hooks_dir(repo_path: str) -> Path:
    path = Path(run_git(["rev-parse", "--git-path", "hooks"], cwd=repo_path).stdout.strip())
    if not path.is_absolute():
        path = Path(repo_path) / path
    return path


def install_git_hooks(repo_path: str) -> dict[str, str]:
    """Install or extend the post-commit and post-rewrite hooks.

    Existing hook scripts are appended to, never replaced. Returns
    ``{hook_name: "installed" | "appended" | "present"}``.
    """
    directory = hooks_dir(repo_path)
    directory.mkdir(parents=True, exist_ok=True)

    outcome: dict[str, str] = {}
    for name, snippet in _hook_scripts(_resolve_command()).items():
        hook_path = directory / name
        if hook_path.exists():
            content = hook_path.read_text(encoding="utf-8")
            if HOOK_MARKER in content:
                outcome[name] = "present"
                continue
            hook_path.write_text(content.rstrip("\n") + "\n\n" + snippet, encoding="utf-8")
            outcome[name] = "appended"
        else:
            hook_path.write_text("#!/bin/sh\n" + snippet, encoding="utf-8")
            outcome[name] = "installed"
        hook_path.chmod(hook_path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return outcome


def configure_notes_refspecs(repo_path: str, notes_ref: str = DEFAULT_NOTES_REF, remote: str = "origin") -> dict[str, bool]:
    """Make ``git push``/``git fetch`` carry the notes ref. Returns which refspecs were added."""
    wanted = {
        f"remote.{remote}.push": notes_ref,
        f"remote.{remote}.fetch": f"+{notes_ref}:{notes_ref}",
    }
    added = {}
    for key, refspec in wanted.items():
        existing = get_config_values(repo_path, key)
        if refspec in existing:
            added[key] = False
            continue
        if key.endswith(".push") and not existing:
            # an explicit push refspec replaces the default; keep pushing the current branch
            add_config_value(repo_path, key, "HEAD")
        add_config_value(repo_path, key, refspec)
        added[key] = True
    return added


AGENT_HOOK_TIMEOUTS = {
    "UserPromptSubmit": 5,
    "PostToolUse": 5,
}


def _is_aiblame_hook(entry: dict) -> bool:
    return any("ai-blame" in h.get("command", "") or "aiblame" in h.get("command", "") for h in entry.get("hooks", []))


def install_agent_hooks(repo_path: str, tools: list[str] | None = None) -> Path:
    """Register the capture hooks in ``.claude/settings.local.json``.

    Earlier ai-blame entries are replaced; other hooks are left alone.
    """
    settings_path = Path(repo_path) / ".claude" / "settings.local.json"
    settings_path.parent.mkdir(parents=True, exist_ok=True)

    settings: dict = {}
    if settings_path.exists():
        settings = json.loads(settings_path.read_text(encoding="utf-8"))

    command = f"{_resolve_command()} capture --stdin"
    matchers = {"UserPromptSubmit": "", "PostToolUse": "|".join(tools or ["Write", "Edit", "MultiEdit"])}

    hooks = settings.setdefault("hooks", {})
    for name, timeout in AGENT_HOOK_TIMEOUTS.items():
        existing = [h for h in hooks.get(name, []) if not _is_aiblame_hook(h)]
        existing.append({"matcher": matchers[name], "hooks": [{"type": "command", "command": command, "timeout": timeout}]})
        hooks[name] = existing

    settings_path.write_text(json.dumps(settings, indent=2) + "\n", encoding="utf-8")
    return settings_path
