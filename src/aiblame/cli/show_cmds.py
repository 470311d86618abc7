"""Commit and range report commands."""

from __future__ import annotations

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from . import app

console = Console()


@app.command("show")
def show_cmd(
    rev: str = typer.Argument("HEAD", help="Commit to show attribution for"),
    prompts: bool = typer.Option(False, "--prompts", "-p", help="Include prompt text"),
):
    """Show the AI attribution recorded for one commit."""
    from ..core.errors import AiBlameError
    from ..core.git_utils import find_git_root, resolve_commit
    from ..core.notes import NotesRepository

    repo_path = find_git_root()
    if not repo_path:
        console.print("[red]Not in a git repository.[/red]")
        raise typer.Exit(1)

    try:
        commit = resolve_commit(repo_path, rev)
        record = NotesRepository.for_repo(repo_path).read(commit)
    except AiBlameError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1)

    if record is None or record.is_empty:
        console.print(f"[dim]No AI attribution for {commit[:8]}[/dim]")
        return

    table = Table(title=f"AI attribution: {commit[:8]} ({record.line_count} lines)")
    table.add_column("File")
    table.add_column("Lines", style="dim")
    table.add_column("Type")
    table.add_column("Tool", style="cyan")
    table.add_column("Session", style="dim", max_width=12)
    table.add_column("Prompt", style="dim", max_width=10)

    for a in record.attributions:
        table.add_row(
            escape(a.path),
            f"{a.start_line}-{a.end_line - 1}",
            a.contributor,
            escape(a.tool or ""),
            escape((a.session_id or "")[:12]),
            (a.prompt_digest or "")[:10],
        )
    console.print(table)

    if prompts and record.prompts:
        console.print("\n[bold]Prompts:[/bold]")
        for digest, text in sorted(record.prompts.items()):
            console.print(f"[dim]{digest[:10]}[/dim] {escape(text)}")


@app.command("summary")
def summary_cmd(
    commit_range: str = typer.Argument(..., help="Commit range, e.g. main..HEAD"),
):
    """Summarize AI attribution over a range of commits (useful for PRs)."""
    from ..core.errors import AiBlameError
    from ..core.git_utils import find_git_root
    from ..core.summary import summarize

    repo_path = find_git_root()
    if not repo_path:
        console.print("[red]Not in a git repository.[/red]")
        raise typer.Exit(1)

    try:
        result = summarize(repo_path, commit_range)
    except AiBlameError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1)

    console.print(f"\n[bold]AI Attribution Summary: {escape(commit_range)}[/bold]")
    console.print(f"  Commits: {result.commits} ({result.attributed_commits} with attribution)")
    console.print(f"  Attributed lines: {result.total_lines}")
    console.print(f"  AI lines: {result.ai_lines} ({result.ai_pct}%)")

    if result.by_tool:
        table = Table(title="By tool")
        table.add_column("Tool", style="cyan")
        table.add_column("Lines", justify="right")
        for tool, count in sorted(result.by_tool.items(), key=lambda kv: -kv[1]):
            table.add_row(escape(tool), str(count))
        console.print(table)

    if result.by_session:
        table = Table(title="By session")
        table.add_column("Session", style="dim")
        table.add_column("Lines", justify="right")
        for session, count in sorted(result.by_session.items(), key=lambda kv: -kv[1]):
            table.add_row(escape(session), str(count))
        console.print(table)
