"""Capture-side commands: capture, post-commit, status, clear."""

from __future__ import annotations

from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from . import app

console = Console()
err_console = Console(stderr=True)


@app.command("capture")
def capture_cmd(
    stdin: bool = typer.Option(False, "--stdin", help="Read a hook payload (JSON) from stdin"),
    hook_type: Optional[str] = typer.Option(None, "--type", "-t", help="Hook type when not in the payload"),
    file: Optional[str] = typer.Option(None, "--file", help="Edited file"),
    start: Optional[int] = typer.Option(None, "--start", help="First edited line (1-indexed)"),
    end: Optional[int] = typer.Option(None, "--end", help="Last edited line (inclusive)"),
    tool: str = typer.Option("claude-code", "--tool", help="Tool that made the edit"),
    prompt: Optional[str] = typer.Option(None, "--prompt", help="Prompt text"),
    session: Optional[str] = typer.Option(None, "--session", help="Session id"),
):
    """Record an AI edit (called by assistant hooks)."""
    from ..core.errors import AiBlameError

    try:
        if stdin:
            from ..hooks.handler import handle_hook, read_stdin_json

            data = read_stdin_json()
            raise typer.Exit(handle_hook(hook_type or data.get("hook_event_name") or "PostToolUse", data=data))

        if not file or start is None:
            console.print("[red]Capture needs --stdin, or --file and --start.[/red]")
            raise typer.Exit(2)

        from ..core.git_utils import require_git_root
        from ..hooks.capture import capture_range

        repo_path = require_git_root()
        event = capture_range(
            repo_path,
            file,
            start,
            (end if end is not None else start) + 1,
            tool=tool,
            session_id=session or "manual",
            prompt=prompt,
        )
        console.print(f"Captured {escape(event.file_path)}:{event.start_line}-{event.end_line - 1}")
    except (AiBlameError, ValueError) as e:
        err_console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1)


@app.command("post-commit")
def post_commit_cmd(
    commit: str = typer.Option("HEAD", "--commit", help="Commit to finalize"),
):
    """Finalize staged attribution into the new commit's note (post-commit hook)."""
    from ..core.errors import AiBlameError
    from ..core.finalizer import finalize_commit
    from ..core.git_utils import require_git_root

    try:
        repo_path = require_git_root()
        result = finalize_commit(repo_path, commit)
    except AiBlameError as e:
        err_console.print(f"[red]ai-blame:[/red] {escape(str(e))}")
        raise typer.Exit(1)

    if result.written:
        console.print(
            f"ai-blame: attributed {result.record.line_count} line(s) in "
            f"{len(result.record.paths)} file(s) to {result.commit[:8]}"
        )


@app.command("status")
def status_cmd():
    """Show pending (uncommitted) AI attribution."""
    from ..core.errors import AiBlameError
    from ..core.git_utils import find_git_root
    from ..core.staging import StagingStore

    repo_path = find_git_root()
    if not repo_path:
        console.print("[red]Not in a git repository.[/red]")
        raise typer.Exit(1)

    try:
        state = StagingStore.for_repo(repo_path).status()
    except AiBlameError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1)

    if not state.has_pending:
        console.print("No pending AI attribution.")
        return

    table = Table(title="Pending AI attribution")
    table.add_column("Property", style="bold")
    table.add_column("Value")
    table.add_row("Session", escape(state.session_id or "unknown"))
    if len(state.sessions) > 1:
        table.add_row("Sessions", str(len(state.sessions)))
    table.add_row("Files", str(state.file_count))
    table.add_row("Lines", str(state.line_count))
    table.add_row("Events", str(state.event_count))
    console.print(table)
    console.print("\nRun [bold]git commit[/bold] to finalize attribution.")


@app.command("clear")
def clear_cmd():
    """Discard pending AI attribution without committing."""
    from ..core.errors import AiBlameError
    from ..core.git_utils import find_git_root
    from ..core.staging import StagingStore

    repo_path = find_git_root()
    if not repo_path:
        console.print("[red]Not in a git repository.[/red]")
        raise typer.Exit(1)

    try:
        StagingStore.for_repo(repo_path).clear()
    except AiBlameError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1)
    console.print("Cleared pending AI attribution.")
